"""Domain models for vote statistics."""

from dataclasses import dataclass, field

from phenotype_live.domain.votes import VoteResponse

LOW_CONSENSUS_THRESHOLD = 70.0


def empty_counts() -> dict[VoteResponse, int]:
    return {response: 0 for response in VoteResponse}


@dataclass(frozen=True)
class PhotoTally:
    """Aggregated responses for one photo at a point in time."""

    photo: int
    counts: dict[VoteResponse, int] = field(default_factory=empty_counts)
    by_gender: dict[str, dict[VoteResponse, int]] = field(default_factory=dict)
    by_age_bracket: dict[str, dict[VoteResponse, int]] = field(default_factory=dict)
    by_region: dict[str, dict[VoteResponse, int]] = field(default_factory=dict)
    average_elapsed_ms: float = 0.0
    voters: int = 0
    not_answered_missing: int = 0
    admin_response: VoteResponse | None = None

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def display_counts(self) -> dict[VoteResponse, int]:
        """Counts with present non-voters folded into NOT_ANSWERED."""
        merged = dict(self.counts)
        merged[VoteResponse.NOT_ANSWERED] += self.not_answered_missing
        return merged


@dataclass(frozen=True)
class ConsensusRow:
    """Post-hoc agreement figures for a finalized photo."""

    photo: int
    deferido: int
    indeferido: int
    not_answered: int
    total: int
    consensus: float
    majority: VoteResponse | None

    @property
    def is_low_consensus(self) -> bool:
        return self.total > 0 and self.consensus < LOW_CONSENSUS_THRESHOLD


@dataclass(frozen=True)
class DivergenceRow:
    """A photo where the admin answer differs from the participant majority."""

    photo: int
    admin_response: VoteResponse
    majority_response: VoteResponse
    majority_count: int
    deferido: int
    indeferido: int
    total_votes: int
