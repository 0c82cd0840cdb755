"""Domain models for evaluation votes."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class VoteResponse(StrEnum):
    """Possible answers for a photo."""

    DEFERIDO = "DEFERIDO"
    INDEFERIDO = "INDEFERIDO"
    NOT_ANSWERED = "NOT_ANSWERED"


@dataclass(frozen=True)
class DemographicSnapshot:
    """Profile fields copied onto a vote at submission time."""

    gender: str | None = None
    age_bracket: str | None = None
    region: str | None = None


@dataclass(frozen=True)
class NewVote:
    """Vote payload before it is persisted."""

    session_id: UUID
    photo: int
    identity: UUID
    response: VoteResponse
    elapsed_ms: int
    demographics: DemographicSnapshot
    is_admin_vote: bool
    generation: int


@dataclass(frozen=True)
class VoteRecord:
    """Represents a persisted vote."""

    id: UUID
    session_id: UUID
    photo: int
    identity: UUID
    response: VoteResponse
    elapsed_ms: int
    demographics: DemographicSnapshot
    is_admin_vote: bool
    generation: int
    created_at: datetime
