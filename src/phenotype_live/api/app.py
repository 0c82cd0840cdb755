"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from phenotype_live.api.admin import router as admin_router
from phenotype_live.api.live import router as live_router
from phenotype_live.api.models import ExpireRequest, VoteRequest
from phenotype_live.api.views import session_state, transition_payload
from phenotype_live.app_logging import configure_logging
from phenotype_live.containers import AppContainer
from phenotype_live.domain.errors import LiveSessionError
from phenotype_live.services.aggregator import serialize_tally
from phenotype_live.services.votes import serialize_vote


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    async def sweep_presence() -> None:
        interval = container.settings.presence_sweep_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                container.presence.sweep()
                container.rate_limiter.prune()
            except Exception:
                logger.exception("Presence sweep failed")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper = asyncio.create_task(sweep_presence())
        yield
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)
    app.include_router(live_router)

    @app.exception_handler(LiveSessionError)
    async def live_session_error(
        request: Request, exc: LiveSessionError
    ) -> JSONResponse:
        if exc.status_code >= 500:  # noqa: PLR2004
            logger.error(
                "Request failed",
                extra={"path": request.url.path, "error": type(exc).__name__},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: UUID, request: Request) -> dict[str, object]:
        """Current session state with the server-derived countdown."""
        state_container: AppContainer = request.app.state.container
        session = state_container.session_service.get_session(session_id)
        return {"session": session_state(state_container, session)}

    @app.post("/sessions/{session_id}/votes", status_code=201)
    async def submit_vote(
        session_id: UUID,
        payload: VoteRequest,
        request: Request,
        x_participant_id: UUID = Header(),
    ) -> dict[str, object]:
        """Record a participant's answer for the photo on screen."""
        state_container: AppContainer = request.app.state.container
        record = state_container.vote_service.submit_vote(
            session_id,
            identity=x_participant_id,
            response=payload.response,
            elapsed_ms=payload.elapsed_ms,
            photo=payload.photo,
            generation=payload.generation,
        )
        return {"vote": serialize_vote(record)}

    @app.post("/sessions/{session_id}/expire")
    async def expire_photo(
        session_id: UUID, payload: ExpireRequest, request: Request
    ) -> dict[str, object]:
        """Client report that the countdown reached zero."""
        state_container: AppContainer = request.app.state.container
        result = state_container.session_service.expire_photo(
            session_id, photo=payload.photo, generation=payload.generation
        )
        return transition_payload(state_container, result)

    @app.get("/sessions/{session_id}/tally")
    async def photo_tally(session_id: UUID, request: Request) -> dict[str, object]:
        """Live tally for the current photo and generation."""
        state_container: AppContainer = request.app.state.container
        session = state_container.session_service.get_session(session_id)
        tally = state_container.aggregator.live_tally(session)
        return {"tally": serialize_tally(tally)}

    return app
