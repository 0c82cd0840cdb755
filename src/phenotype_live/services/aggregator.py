"""Live vote aggregation."""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from phenotype_live.domain.sessions import SessionPhase, SessionRecord
from phenotype_live.domain.stats import PhotoTally, empty_counts
from phenotype_live.domain.votes import VoteRecord, VoteResponse

UNKNOWN_GROUP = "unknown"


class VoteReader(Protocol):
    """Read access to vote records."""

    def list_votes(
        self, session_id: UUID, photo: int | None = None, generation: int | None = None
    ) -> list[VoteRecord]:
        """Return votes for a session, optionally narrowed to a photo/generation."""


class PresenceSource(Protocol):
    """Source of currently connected participants."""

    def participant_ids(self, session_id: UUID) -> set[UUID]:
        """Return identities of present participants."""


@dataclass
class VoteAggregator:
    """Recomputes the tally of the current photo from scratch."""

    vote_repository: VoteReader
    presence: PresenceSource

    def live_tally(self, session: SessionRecord) -> PhotoTally:
        """Return the tally for the session's current photo and generation."""
        votes = self.vote_repository.list_votes(
            session.id, photo=session.current_photo, generation=session.generation
        )
        return tally_votes(
            votes,
            photo=session.current_photo,
            present=self.presence.participant_ids(session.id),
            finalized=session.phase
            in {SessionPhase.SHOWING_RESULTS, SessionPhase.COMPLETED},
        )

    def voted_ids(self, session: SessionRecord) -> set[UUID]:
        votes = self.vote_repository.list_votes(
            session.id, photo=session.current_photo, generation=session.generation
        )
        return {vote.identity for vote in votes if not vote.is_admin_vote}


def tally_votes(
    votes: Iterable[VoteRecord],
    photo: int,
    present: set[UUID] | None = None,
    finalized: bool = False,
) -> PhotoTally:
    """Aggregate participant votes for a single photo.

    Admin votes are kept out of the counts and reported on their own. When
    the photo is finalized, present participants without a vote are counted
    as missing answers; they never appear in ``counts``.
    """
    counts = empty_counts()
    by_gender: dict[str, dict[VoteResponse, int]] = {}
    by_age: dict[str, dict[VoteResponse, int]] = {}
    by_region: dict[str, dict[VoteResponse, int]] = {}
    seen: set[UUID] = set()
    elapsed_total = 0
    admin_response: VoteResponse | None = None

    for vote in votes:
        if vote.photo != photo:
            continue
        if vote.is_admin_vote:
            admin_response = vote.response
            continue
        if vote.identity in seen:
            continue
        seen.add(vote.identity)
        counts[vote.response] += 1
        elapsed_total += vote.elapsed_ms
        _bump(by_gender, vote.demographics.gender, vote.response)
        _bump(by_age, vote.demographics.age_bracket, vote.response)
        _bump(by_region, vote.demographics.region, vote.response)

    missing = len((present or set()) - seen) if finalized else 0
    return PhotoTally(
        photo=photo,
        counts=counts,
        by_gender=by_gender,
        by_age_bracket=by_age,
        by_region=by_region,
        average_elapsed_ms=elapsed_total / len(seen) if seen else 0.0,
        voters=len(seen),
        not_answered_missing=missing,
        admin_response=admin_response,
    )


def consensus(counts: dict[VoteResponse, int]) -> float:
    """Percentage of recorded votes that agree with the majority answer."""
    total = sum(counts.values())
    if total == 0:
        return 0.0
    majority = max(counts[VoteResponse.DEFERIDO], counts[VoteResponse.INDEFERIDO])
    return majority / total * 100


def serialize_tally(tally: PhotoTally) -> dict[str, object]:
    return {
        "photo": tally.photo,
        "counts": _serialize_counts(tally.counts),
        "display_counts": _serialize_counts(tally.display_counts),
        "by_gender": _serialize_groups(tally.by_gender),
        "by_age_bracket": _serialize_groups(tally.by_age_bracket),
        "by_region": _serialize_groups(tally.by_region),
        "average_elapsed_ms": tally.average_elapsed_ms,
        "voters": tally.voters,
        "not_answered_missing": tally.not_answered_missing,
        "consensus": round(consensus(tally.counts), 1),
        "admin_response": tally.admin_response.value if tally.admin_response else None,
    }


def _bump(
    groups: dict[str, dict[VoteResponse, int]],
    key: str | None,
    response: VoteResponse,
) -> None:
    bucket = groups.setdefault(key or UNKNOWN_GROUP, empty_counts())
    bucket[response] += 1


def _serialize_counts(counts: dict[VoteResponse, int]) -> dict[str, int]:
    return {response.value: count for response, count in counts.items()}


def _serialize_groups(
    groups: dict[str, dict[VoteResponse, int]],
) -> dict[str, dict[str, int]]:
    return {key: _serialize_counts(counts) for key, counts in sorted(groups.items())}
