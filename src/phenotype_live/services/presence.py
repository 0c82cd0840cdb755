"""Ephemeral presence tracking with heartbeat expiry."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from uuid import UUID

from phenotype_live.domain.presence import PresenceEntry, PresenceRole
from phenotype_live.services.fanout import (
    RealtimeEvent,
    RealtimeFanout,
    presence_channel,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class PresenceTracker:
    """Keeps the set of connected clients per session.

    Membership is keyed by (session, identity) and counts open connections,
    so one identity in several tabs stays present until its last tab leaves.
    An entry also disappears once it misses heartbeats for ``ttl_seconds``.
    Every membership change broadcasts the full member list rather than a diff.
    """

    fanout: RealtimeFanout
    ttl_seconds: int = 30
    clock: Callable[[], datetime] = _utcnow
    _entries: dict[UUID, dict[UUID, PresenceEntry]] = field(default_factory=dict)

    def join(
        self,
        session_id: UUID,
        identity: UUID,
        role: PresenceRole = PresenceRole.PARTICIPANT,
    ) -> PresenceEntry:
        """Register a connection, keeping the original join time on re-join."""
        now = self.clock()
        members = self._entries.setdefault(session_id, {})
        existing = members.get(identity)
        entry = PresenceEntry(
            session_id=session_id,
            identity=identity,
            role=role,
            joined_at=existing.joined_at if existing else now,
            last_seen=now,
            connections=existing.connections + 1 if existing else 1,
        )
        members[identity] = entry
        if existing is None:
            logger.info(
                "Presence join",
                extra={"session_id": str(session_id), "identity": str(identity)},
            )
            self._broadcast(session_id)
        return entry

    def heartbeat(self, session_id: UUID, identity: UUID) -> bool:
        """Refresh an entry; returns False when the client is unknown."""
        members = self._entries.get(session_id, {})
        entry = members.get(identity)
        if entry is None:
            return False
        members[identity] = replace(entry, last_seen=self.clock())
        return True

    def leave(self, session_id: UUID, identity: UUID) -> None:
        """Close one connection; the member goes once its last one closes."""
        members = self._entries.get(session_id, {})
        entry = members.get(identity)
        if entry is None:
            return
        if entry.connections > 1:
            members[identity] = replace(entry, connections=entry.connections - 1)
            return
        del members[identity]
        if not members:
            self._entries.pop(session_id, None)
        logger.info(
            "Presence leave",
            extra={"session_id": str(session_id), "identity": str(identity)},
        )
        self._broadcast(session_id)

    def members(self, session_id: UUID) -> list[PresenceEntry]:
        """Return live entries ordered by join time."""
        self._expire(session_id)
        entries = self._entries.get(session_id, {}).values()
        return sorted(entries, key=lambda entry: entry.joined_at)

    def participant_ids(self, session_id: UUID) -> set[UUID]:
        return {
            entry.identity
            for entry in self.members(session_id)
            if entry.role == PresenceRole.PARTICIPANT
        }

    def online_count(self, session_id: UUID) -> int:
        return len(self.participant_ids(session_id))

    def sweep(self) -> int:
        """Expire stale entries in every session; returns how many were dropped."""
        return sum(self._expire(session_id) for session_id in list(self._entries))

    def snapshot(self, session_id: UUID) -> list[dict[str, object]]:
        return [_serialize_entry(entry) for entry in self.members(session_id)]

    def _expire(self, session_id: UUID) -> int:
        members = self._entries.get(session_id)
        if not members:
            return 0
        cutoff = self.clock() - timedelta(seconds=self.ttl_seconds)
        stale = [
            identity for identity, entry in members.items() if entry.last_seen < cutoff
        ]
        for identity in stale:
            members.pop(identity, None)
        if not members:
            self._entries.pop(session_id, None)
        if stale:
            logger.info(
                "Presence expired",
                extra={"session_id": str(session_id), "expired": len(stale)},
            )
            self._broadcast(session_id)
        return len(stale)

    def _broadcast(self, session_id: UUID) -> None:
        entries = sorted(
            self._entries.get(session_id, {}).values(),
            key=lambda entry: entry.joined_at,
        )
        self.fanout.publish(
            RealtimeEvent(
                channel=presence_channel(session_id),
                kind="presence",
                payload={
                    "session_id": str(session_id),
                    "members": [_serialize_entry(entry) for entry in entries],
                    "online_count": sum(
                        1 for entry in entries if entry.role == PresenceRole.PARTICIPANT
                    ),
                },
            )
        )


def _serialize_entry(entry: PresenceEntry) -> dict[str, object]:
    return {
        "identity": str(entry.identity),
        "role": entry.role.value,
        "joined_at": entry.joined_at.isoformat(),
    }
