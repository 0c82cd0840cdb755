"""Domain models for participant profiles."""

from dataclasses import dataclass
from uuid import UUID

from phenotype_live.domain.votes import DemographicSnapshot


@dataclass(frozen=True)
class DemographicProfile:
    """Registration data owned by the profile service."""

    identity: UUID
    gender: str | None
    age_bracket: str | None
    state: str | None
    region: str | None
    racial_identity: str | None = None
    prior_experience: str | None = None

    def snapshot(self) -> DemographicSnapshot:
        """Return the fields copied onto a vote."""
        return DemographicSnapshot(
            gender=self.gender,
            age_bracket=self.age_bracket,
            region=self.region or self.state,
        )
