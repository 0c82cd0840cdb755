"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import UUID

from supabase import Client

from phenotype_live.adapters.supabase_errors import execute
from phenotype_live.domain.errors import PersistenceError
from phenotype_live.domain.sessions import SessionPhase, SessionRecord
from phenotype_live.services.sessions import SessionRepository

_COLUMNS = (
    "id, nome, data, session_status, current_photo, photo_start_time, "
    "photo_duration, generation"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for live sessions."""

    client: Client

    def create_session(
        self, name: str, scheduled_date: date | None, photo_duration: int
    ) -> SessionRecord:
        """Create a session row and return it."""
        response = execute(
            self.client.table("sessions").insert(
                {
                    "nome": name,
                    "data": (scheduled_date or datetime.now(tz=UTC).date()).isoformat(),
                    "session_status": SessionPhase.WAITING.value,
                    "current_photo": 1,
                    "photo_start_time": None,
                    "photo_duration": photo_duration,
                    "generation": 0,
                }
            ),
            "create session",
        )
        if not response.data:
            raise PersistenceError("Failed to create session")
        return _parse_row(response.data[0])

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = execute(
            self.client.table("sessions")
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .limit(1),
            "load session",
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def transition(
        self, current: SessionRecord, target: SessionRecord
    ) -> SessionRecord | None:
        """Conditionally update the session row; None when it no longer matches."""
        response = execute(
            self.client.table("sessions")
            .update(
                {
                    "session_status": target.phase.value,
                    "current_photo": target.current_photo,
                    "photo_start_time": target.photo_start_time.isoformat()
                    if target.photo_start_time
                    else None,
                    "generation": target.generation,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", str(current.id))
            .eq("session_status", current.phase.value)
            .eq("current_photo", current.current_photo)
            .eq("generation", current.generation),
            "update session",
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])

    def reset(
        self, current: SessionRecord, target: SessionRecord, photo: int | None
    ) -> SessionRecord | None:
        """Rewind the session and delete its votes through one database function.

        ``reset_session_run`` runs the conditional update and the vote delete
        in a single transaction and returns the updated row, or no rows when
        the session no longer matches ``current``.
        """
        response = execute(
            self.client.rpc(
                "reset_session_run",
                {
                    "p_session_id": str(current.id),
                    "p_expected_status": current.phase.value,
                    "p_expected_photo": current.current_photo,
                    "p_expected_generation": current.generation,
                    "p_status": target.phase.value,
                    "p_current_photo": target.current_photo,
                    "p_photo_start_time": target.photo_start_time.isoformat()
                    if target.photo_start_time
                    else None,
                    "p_generation": target.generation,
                    "p_clear_photo": photo,
                },
            ),
            "reset session",
        )
        if not response.data:
            return None
        return _parse_row(response.data[0])


def _parse_row(row: dict[str, object]) -> SessionRecord:
    raw_date = row.get("data")
    raw_start = row.get("photo_start_time")
    return SessionRecord(
        id=UUID(str(row["id"])),
        name=str(row.get("nome") or ""),
        scheduled_date=date.fromisoformat(raw_date[:10])
        if isinstance(raw_date, str) and raw_date
        else None,
        phase=SessionPhase(row.get("session_status") or SessionPhase.WAITING.value),
        current_photo=int(row.get("current_photo") or 1),
        photo_start_time=datetime.fromisoformat(raw_start)
        if isinstance(raw_start, str) and raw_start
        else None,
        photo_duration=int(row.get("photo_duration") or 60),
        generation=int(row.get("generation") or 0),
    )
