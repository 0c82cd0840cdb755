"""Server-side countdown that closes photos when their time runs out."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID

from phenotype_live.domain.errors import LiveSessionError
from phenotype_live.domain.sessions import SessionPhase, SessionRecord
from phenotype_live.services.sessions import SessionService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class PhotoTimer:
    """Keeps at most one countdown task per session.

    The task is re-armed on every session change and fires the idempotent
    timeout transition, so clients that also report a timeout are harmless.
    """

    session_service: SessionService
    clock: Callable[[], datetime] = _utcnow
    _tasks: dict[UUID, asyncio.Task[None]] = field(default_factory=dict)

    def on_session_changed(self, session: SessionRecord) -> None:
        """Session listener: re-arm or cancel the countdown."""
        self.cancel(session.id)
        self._arm(session)

    def ensure_armed(self, session: SessionRecord) -> None:
        """Arm a countdown for a running photo that has none yet."""
        if session.id not in self._tasks:
            self._arm(session)

    def is_armed(self, session_id: UUID) -> bool:
        return session_id in self._tasks

    def cancel(self, session_id: UUID) -> None:
        task = self._tasks.pop(session_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def shutdown(self) -> None:
        """Cancel every pending countdown."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _arm(self, session: SessionRecord) -> None:
        if session.phase != SessionPhase.ACTIVE or session.photo_start_time is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "No running loop; countdown left to clients",
                extra={"session_id": str(session.id)},
            )
            return
        deadline = session.photo_start_time + timedelta(seconds=session.photo_duration)
        delay = max(0.0, (deadline - self.clock()).total_seconds())
        self._tasks[session.id] = loop.create_task(self._fire(session, delay))

    async def _fire(self, session: SessionRecord, delay: float) -> None:
        await asyncio.sleep(delay)
        self._tasks.pop(session.id, None)
        try:
            result = self.session_service.expire_photo(
                session.id, session.current_photo, session.generation
            )
        except LiveSessionError:
            logger.exception(
                "Photo timeout rejected", extra={"session_id": str(session.id)}
            )
            return
        except Exception:
            logger.exception(
                "Photo timeout failed", extra={"session_id": str(session.id)}
            )
            return
        if result.changed:
            logger.info(
                "Photo closed by timer",
                extra={"session_id": str(session.id), "photo": session.current_photo},
            )
