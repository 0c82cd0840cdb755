"""Domain models for live presence."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class PresenceRole(StrEnum):
    """Kind of connected client."""

    PARTICIPANT = "participant"
    ADMIN = "admin"


@dataclass(frozen=True)
class PresenceEntry:
    """A connected identity in a session; ``connections`` counts its open sockets."""

    session_id: UUID
    identity: UUID
    role: PresenceRole
    joined_at: datetime
    last_seen: datetime
    connections: int = 1
