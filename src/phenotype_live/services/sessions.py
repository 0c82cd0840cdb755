"""State machine for live evaluation sessions."""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from typing import Protocol
from uuid import UUID

from phenotype_live.domain.errors import NotFoundError, TransitionConflictError
from phenotype_live.domain.sessions import (
    DEFAULT_PHOTO_DURATION,
    PHOTO_COUNT,
    SessionPhase,
    SessionRecord,
    TransitionResult,
)
from phenotype_live.domain.votes import NewVote, VoteRecord
from phenotype_live.services.audit import AuditService
from phenotype_live.services.fanout import (
    RealtimeEvent,
    RealtimeFanout,
    session_channel,
)

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionRecord], None]
SessionWriter = Callable[[SessionRecord, SessionRecord], SessionRecord | None]


class SessionRepository(Protocol):
    """Persistence interface for live sessions."""

    def create_session(
        self, name: str, scheduled_date: date | None, photo_duration: int
    ) -> SessionRecord:
        """Create a session in the waiting phase and return it."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def transition(
        self, current: SessionRecord, target: SessionRecord
    ) -> SessionRecord | None:
        """Write ``target`` only if the stored row still matches ``current``.

        The match covers phase, current photo and generation. Returns the
        updated session, or None when another writer got there first.
        """

    def reset(
        self, current: SessionRecord, target: SessionRecord, photo: int | None
    ) -> SessionRecord | None:
        """Conditionally write ``target`` and delete votes in one transaction.

        Votes of ``photo`` are removed, or every vote of the session when
        ``photo`` is None. Nothing is written when the row no longer matches
        ``current``, and a failure leaves both the session and its votes as
        they were.
        """


class VoteRepository(Protocol):
    """Persistence interface for vote records."""

    def insert_vote(self, vote: NewVote) -> VoteRecord:
        """Insert a vote; raises DuplicateVoteError on a repeated identity."""

    def list_votes(
        self, session_id: UUID, photo: int | None = None, generation: int | None = None
    ) -> list[VoteRecord]:
        """Return votes for a session, optionally narrowed to a photo/generation."""

    def delete_vote(self, vote_id: UUID) -> None:
        """Delete a single vote by id."""

    def delete_stale_votes(self, session_id: UUID, photo: int, generation: int) -> int:
        """Delete votes on ``photo`` from any run other than ``generation``."""

    def delete_admin_vote(
        self, session_id: UUID, photo: int, identity: UUID, generation: int
    ) -> None:
        """Delete an admin's own vote on a photo, if any."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def remaining_seconds(session: SessionRecord, now: datetime) -> int:
    """Seconds left on the current photo, derived from the shared start time."""
    if session.phase != SessionPhase.ACTIVE or session.photo_start_time is None:
        return 0
    elapsed = math.floor((now - session.photo_start_time).total_seconds())
    return min(session.photo_duration, max(0, session.photo_duration - elapsed))


@dataclass
class SessionService:
    """Drives a session through waiting, active, showing_results and completed.

    Every mutation is a conditional write against the phase, photo and
    generation the action was decided on, so concurrent admins cannot
    produce lost updates. Successful transitions are audited, published on
    the session channel and handed to listeners (the photo timer).
    """

    session_repository: SessionRepository
    vote_repository: VoteRepository
    fanout: RealtimeFanout
    audit_service: AuditService | None = None
    clock: Callable[[], datetime] = _utcnow
    grace_seconds: int = 1
    default_photo_duration: int = DEFAULT_PHOTO_DURATION
    listeners: list[SessionListener] = field(default_factory=list)

    def add_listener(self, listener: SessionListener) -> None:
        self.listeners.append(listener)

    def create_session(
        self,
        name: str,
        scheduled_date: date | None = None,
        photo_duration: int | None = None,
    ) -> SessionRecord:
        """Create a new session in the waiting room."""
        duration = photo_duration or self.default_photo_duration
        if duration <= 0:
            raise ValueError("photo_duration must be positive")
        session = self.session_repository.create_session(
            name=name, scheduled_date=scheduled_date, photo_duration=duration
        )
        logger.info("Session created", extra={"session_id": str(session.id)})
        self._audit("create_session", session, {"name": name})
        return session

    def get_session(self, session_id: UUID) -> SessionRecord:
        """Return the session or raise NotFoundError."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def start_session(self, session_id: UUID) -> TransitionResult:
        """Release the first photo to participants."""
        session = self.get_session(session_id)
        if session.phase != SessionPhase.WAITING:
            raise TransitionConflictError(
                f"Cannot start a session in phase '{session.phase}'"
            )
        target = replace(
            session,
            phase=SessionPhase.ACTIVE,
            current_photo=1,
            photo_start_time=self.clock(),
        )
        return self._apply(session, target, "start_session")

    def show_results(
        self, session_id: UUID, expected_photo: int | None = None
    ) -> TransitionResult:
        """Close voting on the current photo; repeating the call is a no-op."""
        session = self.get_session(session_id)
        photo = expected_photo or session.current_photo
        if session.phase == SessionPhase.SHOWING_RESULTS and (
            session.current_photo == photo
        ):
            return TransitionResult(session=session, changed=False)
        if session.current_photo != photo:
            raise TransitionConflictError(f"Photo {photo} is no longer current")
        if session.phase != SessionPhase.ACTIVE:
            raise TransitionConflictError(
                f"Cannot show results in phase '{session.phase}'"
            )
        self._purge_stale_votes(session)
        target = replace(session, phase=SessionPhase.SHOWING_RESULTS)
        return self._apply(
            session,
            target,
            "show_results",
            already_done=lambda latest: (
                latest.phase == SessionPhase.SHOWING_RESULTS
                and latest.current_photo == session.current_photo
                and latest.generation == session.generation
            ),
        )

    def expire_photo(
        self, session_id: UUID, photo: int, generation: int
    ) -> TransitionResult:
        """Timer path: close the photo once its time has run out.

        Stale triggers (another photo, a restarted photo, an already closed
        photo) are silent no-ops so any number of clocks can fire safely.
        """
        session = self.get_session(session_id)
        if not _is_running(session, photo, generation):
            return TransitionResult(session=session, changed=False)
        left = remaining_seconds(session, self.clock())
        if left > self.grace_seconds:
            raise TransitionConflictError(
                f"Photo {photo} still has {left}s remaining"
            )
        self._purge_stale_votes(session)
        target = replace(session, phase=SessionPhase.SHOWING_RESULTS)
        return self._apply(
            session,
            target,
            "photo_timeout",
            already_done=lambda latest: not _is_running(latest, photo, generation),
        )

    def next_photo(self, session_id: UUID) -> TransitionResult:
        """Advance to the next photo, or complete the session after the last."""
        session = self.get_session(session_id)
        if session.phase != SessionPhase.SHOWING_RESULTS:
            raise TransitionConflictError(
                f"Cannot advance from phase '{session.phase}'"
            )
        if session.is_last_photo:
            target = replace(session, phase=SessionPhase.COMPLETED)
        else:
            target = replace(
                session,
                phase=SessionPhase.ACTIVE,
                current_photo=min(session.current_photo + 1, PHOTO_COUNT),
                photo_start_time=self.clock(),
            )
        return self._apply(session, target, "next_photo")

    def restart_current_photo(self, session_id: UUID) -> TransitionResult:
        """Discard the votes of the current photo and run it again."""
        session = self.get_session(session_id)
        if session.phase not in {SessionPhase.ACTIVE, SessionPhase.SHOWING_RESULTS}:
            raise TransitionConflictError(
                f"Cannot restart a photo in phase '{session.phase}'"
            )
        target = replace(
            session,
            phase=SessionPhase.ACTIVE,
            photo_start_time=self.clock(),
            generation=session.generation + 1,
        )
        return self._apply(
            session,
            target,
            "restart_current_photo",
            write=lambda current, new: self.session_repository.reset(
                current, new, photo=current.current_photo
            ),
        )

    def back_to_start(self, session_id: UUID) -> TransitionResult:
        """Return to the waiting room on photo 1 and delete every vote."""
        session = self.get_session(session_id)
        if session.phase == SessionPhase.COMPLETED:
            raise TransitionConflictError("Completed sessions cannot be reset")
        target = replace(
            session,
            phase=SessionPhase.WAITING,
            current_photo=1,
            photo_start_time=None,
            generation=session.generation + 1,
        )
        return self._apply(
            session,
            target,
            "back_to_start",
            write=lambda current, new: self.session_repository.reset(
                current, new, photo=None
            ),
        )

    def remaining_seconds(self, session: SessionRecord) -> int:
        return remaining_seconds(session, self.clock())

    def early_advance_available(
        self, session: SessionRecord, voted: set[UUID], present: set[UUID]
    ) -> bool:
        """True when every present participant voted and time is left."""
        if session.phase != SessionPhase.ACTIVE:
            return False
        if not present or self.remaining_seconds(session) <= 0:
            return False
        return present <= voted

    def publish_snapshot(self, session: SessionRecord) -> None:
        """Push the full session row to subscribers."""
        self.fanout.publish(
            RealtimeEvent(
                channel=session_channel(session.id),
                kind="session",
                payload=serialize_session(session, self.clock()),
            )
        )

    def _apply(
        self,
        current: SessionRecord,
        target: SessionRecord,
        action: str,
        already_done: Callable[[SessionRecord], bool] | None = None,
        write: SessionWriter | None = None,
    ) -> TransitionResult:
        updated = (write or self.session_repository.transition)(current, target)
        if updated is None:
            latest = self.get_session(current.id)
            if already_done is not None and already_done(latest):
                logger.info(
                    "Transition already applied",
                    extra={"session_id": str(current.id), "action": action},
                )
                return TransitionResult(session=latest, changed=False)
            raise TransitionConflictError(
                "Session changed concurrently; reload and retry"
            )
        logger.info(
            "Session transition",
            extra={
                "session_id": str(updated.id),
                "action": action,
                "from_phase": current.phase.value,
                "to_phase": updated.phase.value,
                "photo": updated.current_photo,
            },
        )
        self._audit(
            action,
            updated,
            {
                "from_phase": current.phase.value,
                "to_phase": updated.phase.value,
                "photo": updated.current_photo,
                "generation": updated.generation,
            },
        )
        self.publish_snapshot(updated)
        for listener in list(self.listeners):
            try:
                listener(updated)
            except Exception:
                logger.exception(
                    "Session listener failed", extra={"session_id": str(updated.id)}
                )
        return TransitionResult(session=updated, changed=True)

    def _purge_stale_votes(self, session: SessionRecord) -> None:
        """Drop votes that landed on the photo after it was restarted."""
        deleted = self.vote_repository.delete_stale_votes(
            session.id, session.current_photo, session.generation
        )
        if deleted:
            logger.warning(
                "Stale votes discarded",
                extra={
                    "session_id": str(session.id),
                    "photo": session.current_photo,
                    "deleted": deleted,
                },
            )

    def _audit(
        self, action: str, session: SessionRecord, details: dict[str, object]
    ) -> None:
        if self.audit_service is None:
            return
        self.audit_service.record_event(
            action=action,
            resource_type="session",
            resource_id=session.id,
            details=details,
        )


def _is_running(session: SessionRecord, photo: int, generation: int) -> bool:
    return (
        session.phase == SessionPhase.ACTIVE
        and session.current_photo == photo
        and session.generation == generation
    )


def serialize_session(session: SessionRecord, now: datetime) -> dict[str, object]:
    return {
        "id": str(session.id),
        "name": session.name,
        "scheduled_date": session.scheduled_date.isoformat()
        if session.scheduled_date
        else None,
        "phase": session.phase.value,
        "current_photo": session.current_photo,
        "photo_count": PHOTO_COUNT,
        "photo_start_time": session.photo_start_time.isoformat()
        if session.photo_start_time
        else None,
        "photo_duration": session.photo_duration,
        "generation": session.generation,
        "remaining_seconds": remaining_seconds(session, now),
    }
