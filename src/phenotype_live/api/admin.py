"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from phenotype_live.api.models import (  # noqa: TC001
    AdminVoteRequest,
    CreateSessionRequest,
)
from phenotype_live.api.views import live_snapshot, session_state, transition_payload
from phenotype_live.domain.presence import PresenceRole
from phenotype_live.services.reports import serialize_consensus, serialize_divergence
from phenotype_live.services.votes import serialize_vote

if TYPE_CHECKING:
    from phenotype_live.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post(
    "/sessions",
    dependencies=[Depends(require_admin)],
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    payload: CreateSessionRequest, request: Request
) -> dict[str, object]:
    """Open a new session in the waiting room."""
    container: AppContainer = request.app.state.container
    session = container.session_service.create_session(
        name=payload.name,
        scheduled_date=payload.scheduled_date,
        photo_duration=payload.photo_duration,
    )
    return {"session": session_state(container, session)}


@router.get("/sessions/{session_id}/live", dependencies=[Depends(require_admin)])
async def live_console(session_id: UUID, request: Request) -> dict[str, object]:
    """Session, presence and tally for the live control console."""
    container: AppContainer = request.app.state.container
    session = container.session_service.get_session(session_id)
    return live_snapshot(container, session, PresenceRole.ADMIN)


@router.post("/sessions/{session_id}/start", dependencies=[Depends(require_admin)])
async def start_session(session_id: UUID, request: Request) -> dict[str, object]:
    """Release the first photo."""
    container: AppContainer = request.app.state.container
    result = container.session_service.start_session(session_id)
    return transition_payload(container, result)


@router.post(
    "/sessions/{session_id}/show-results", dependencies=[Depends(require_admin)]
)
async def show_results(
    session_id: UUID, request: Request, expected_photo: int | None = None
) -> dict[str, object]:
    """Close voting on the current photo."""
    container: AppContainer = request.app.state.container
    result = container.session_service.show_results(session_id, expected_photo)
    return transition_payload(container, result)


@router.post("/sessions/{session_id}/next-photo", dependencies=[Depends(require_admin)])
async def next_photo(session_id: UUID, request: Request) -> dict[str, object]:
    """Advance to the next photo or complete the session."""
    container: AppContainer = request.app.state.container
    result = container.session_service.next_photo(session_id)
    return transition_payload(container, result)


@router.post(
    "/sessions/{session_id}/restart-photo", dependencies=[Depends(require_admin)]
)
async def restart_photo(session_id: UUID, request: Request) -> dict[str, object]:
    """Clear the current photo's votes and restart its timer."""
    container: AppContainer = request.app.state.container
    result = container.session_service.restart_current_photo(session_id)
    return transition_payload(container, result)


@router.post(
    "/sessions/{session_id}/back-to-start", dependencies=[Depends(require_admin)]
)
async def back_to_start(session_id: UUID, request: Request) -> dict[str, object]:
    """Reset the session to the waiting room and delete all votes."""
    container: AppContainer = request.app.state.container
    result = container.session_service.back_to_start(session_id)
    return transition_payload(container, result)


@router.post("/sessions/{session_id}/admin-vote", dependencies=[Depends(require_admin)])
async def admin_vote(
    session_id: UUID,
    payload: AdminVoteRequest,
    request: Request,
    x_participant_id: UUID = Header(),
) -> dict[str, object]:
    """Record or replace the admin's own answer for the current photo."""
    container: AppContainer = request.app.state.container
    record = container.vote_service.submit_admin_vote(
        session_id,
        identity=x_participant_id,
        response=payload.response,
        elapsed_ms=payload.elapsed_ms,
    )
    return {"vote": serialize_vote(record)}


@router.get("/sessions/{session_id}/consensus", dependencies=[Depends(require_admin)])
async def consensus_report(session_id: UUID, request: Request) -> dict[str, object]:
    """Per-photo agreement with low-consensus flags."""
    container: AppContainer = request.app.state.container
    rows = container.report_service.consensus_by_photo(session_id)
    return {"photos": [serialize_consensus(row) for row in rows]}


@router.get("/sessions/{session_id}/divergence", dependencies=[Depends(require_admin)])
async def divergence_report(session_id: UUID, request: Request) -> dict[str, object]:
    """Photos where the admin answer differs from the participant majority."""
    container: AppContainer = request.app.state.container
    rows = container.report_service.divergences(session_id)
    return {"divergences": [serialize_divergence(row) for row in rows]}
