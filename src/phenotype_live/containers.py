"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from phenotype_live.adapters.supabase_audit_repository import SupabaseAuditRepository
from phenotype_live.adapters.supabase_profile_repository import (
    SupabaseProfileRepository,
)
from phenotype_live.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from phenotype_live.adapters.supabase_vote_repository import SupabaseVoteRepository
from phenotype_live.config import Settings
from phenotype_live.services.aggregator import VoteAggregator
from phenotype_live.services.audit import AuditService
from phenotype_live.services.fanout import RealtimeFanout
from phenotype_live.services.presence import PresenceTracker
from phenotype_live.services.rate_limit import RateLimiter
from phenotype_live.services.reports import ReportService
from phenotype_live.services.sessions import SessionService
from phenotype_live.services.timer import PhotoTimer
from phenotype_live.services.votes import VoteService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    fanout: RealtimeFanout
    presence: PresenceTracker
    session_service: SessionService
    vote_service: VoteService
    aggregator: VoteAggregator
    report_service: ReportService
    photo_timer: PhotoTimer | None
    rate_limiter: RateLimiter
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    vote_repository = SupabaseVoteRepository(supabase_client)
    profile_repository = SupabaseProfileRepository(supabase_client)
    audit_service = AuditService(SupabaseAuditRepository(supabase_client))
    fanout = RealtimeFanout(queue_size=resolved_settings.fanout_queue_size)
    presence = PresenceTracker(
        fanout=fanout, ttl_seconds=resolved_settings.presence_ttl_seconds
    )
    session_service = SessionService(
        session_repository=session_repository,
        vote_repository=vote_repository,
        fanout=fanout,
        audit_service=audit_service,
        grace_seconds=resolved_settings.timer_grace_seconds,
        default_photo_duration=resolved_settings.photo_duration_seconds,
    )
    rate_limiter = RateLimiter(
        max_requests=resolved_settings.vote_rate_limit,
        window_seconds=resolved_settings.vote_rate_window_seconds,
    )
    vote_service = VoteService(
        session_service=session_service,
        vote_repository=vote_repository,
        profile_repository=profile_repository,
        fanout=fanout,
        rate_limiter=rate_limiter,
    )
    photo_timer = None
    if resolved_settings.authoritative_timer:
        photo_timer = PhotoTimer(session_service)
        session_service.add_listener(photo_timer.on_session_changed)

    async def close_resources() -> None:
        if photo_timer is not None:
            await photo_timer.shutdown()

    return AppContainer(
        settings=resolved_settings,
        fanout=fanout,
        presence=presence,
        session_service=session_service,
        vote_service=vote_service,
        aggregator=VoteAggregator(vote_repository=vote_repository, presence=presence),
        report_service=ReportService(
            session_service=session_service, vote_repository=vote_repository
        ),
        photo_timer=photo_timer,
        rate_limiter=rate_limiter,
        close_resources=close_resources,
    )
