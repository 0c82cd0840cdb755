"""Response payload builders shared by HTTP and websocket endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from phenotype_live.domain.presence import PresenceRole
from phenotype_live.services.aggregator import serialize_tally
from phenotype_live.services.sessions import serialize_session

if TYPE_CHECKING:
    from phenotype_live.containers import AppContainer
    from phenotype_live.domain.sessions import SessionRecord, TransitionResult


def session_state(container: AppContainer, session: SessionRecord) -> dict[str, object]:
    """Session row plus the values clients derive their UI from."""
    service = container.session_service
    present = container.presence.participant_ids(session.id)
    voted = container.aggregator.voted_ids(session)
    state = serialize_session(session, service.clock())
    state["online_count"] = len(present)
    state["voted_count"] = len(voted)
    state["early_advance_available"] = service.early_advance_available(
        session, voted=voted, present=present
    )
    return state


def transition_payload(
    container: AppContainer, result: TransitionResult
) -> dict[str, object]:
    return {
        "changed": result.changed,
        "session": session_state(container, result.session),
    }


def live_snapshot(
    container: AppContainer, session: SessionRecord, role: PresenceRole
) -> dict[str, object]:
    """Full state sent on connect and after a missed-event resync."""
    payload: dict[str, object] = {
        "session": session_state(container, session),
        "presence": container.presence.snapshot(session.id),
    }
    if role == PresenceRole.ADMIN:
        payload["tally"] = serialize_tally(container.aggregator.live_tally(session))
    return payload
