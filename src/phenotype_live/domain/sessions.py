"""Domain models for live evaluation sessions."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from uuid import UUID

PHOTO_COUNT = 30
DEFAULT_PHOTO_DURATION = 60


class SessionPhase(StrEnum):
    """Lifecycle phase of a live session."""

    WAITING = "waiting"
    ACTIVE = "active"
    SHOWING_RESULTS = "showing_results"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted live session."""

    id: UUID
    name: str
    scheduled_date: date | None
    phase: SessionPhase
    current_photo: int
    photo_start_time: datetime | None
    photo_duration: int
    generation: int = 0

    @property
    def is_last_photo(self) -> bool:
        return self.current_photo >= PHOTO_COUNT


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a state machine action."""

    session: SessionRecord
    changed: bool
