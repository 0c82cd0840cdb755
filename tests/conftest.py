"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from phenotype_live.config import Settings
from phenotype_live.containers import AppContainer
from phenotype_live.domain.errors import DuplicateVoteError, PersistenceError
from phenotype_live.domain.profiles import DemographicProfile
from phenotype_live.domain.sessions import SessionPhase, SessionRecord
from phenotype_live.domain.votes import NewVote, VoteRecord
from phenotype_live.services.aggregator import VoteAggregator
from phenotype_live.services.audit import AuditRepository, AuditService
from phenotype_live.services.fanout import RealtimeFanout
from phenotype_live.services.presence import PresenceTracker
from phenotype_live.services.rate_limit import RateLimiter
from phenotype_live.services.reports import ReportService
from phenotype_live.services.sessions import (
    SessionRepository,
    SessionService,
    VoteRepository,
)
from phenotype_live.services.votes import ProfileRepository, VoteService


@dataclass
class FakeClock:
    """Manually advanced clock shared by services under test."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 5, 20, 14, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository with conditional writes.

    ``reset`` shares the vote store so the rewind and the vote delete apply
    together; ``fail_resets`` makes it fail before touching either.
    """

    sessions: dict[UUID, SessionRecord] = field(default_factory=dict)
    votes: "InMemoryVoteRepository | None" = None
    transitions: int = 0
    fail_resets: bool = False

    def create_session(
        self, name: str, scheduled_date: date | None, photo_duration: int
    ) -> SessionRecord:
        session = SessionRecord(
            id=uuid4(),
            name=name,
            scheduled_date=scheduled_date,
            phase=SessionPhase.WAITING,
            current_photo=1,
            photo_start_time=None,
            photo_duration=photo_duration,
        )
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def transition(
        self, current: SessionRecord, target: SessionRecord
    ) -> SessionRecord | None:
        stored = self.sessions.get(current.id)
        if stored is None or (
            stored.phase,
            stored.current_photo,
            stored.generation,
        ) != (current.phase, current.current_photo, current.generation):
            return None
        self.sessions[current.id] = target
        self.transitions += 1
        return target

    def reset(
        self, current: SessionRecord, target: SessionRecord, photo: int | None
    ) -> SessionRecord | None:
        if self.fail_resets:
            raise PersistenceError("Failed to reset session")
        updated = self.transition(current, target)
        if updated is not None and self.votes is not None:
            self.votes.discard(current.id, photo)
        return updated


@dataclass
class InMemoryVoteRepository(VoteRepository):
    """In-memory vote store enforcing one vote per identity and photo run."""

    votes: list[VoteRecord] = field(default_factory=list)

    def insert_vote(self, vote: NewVote) -> VoteRecord:
        for existing in self.votes:
            if (
                existing.session_id,
                existing.photo,
                existing.generation,
                existing.identity,
            ) == (vote.session_id, vote.photo, vote.generation, vote.identity):
                raise DuplicateVoteError("You already answered this photo")
        record = VoteRecord(
            id=uuid4(),
            session_id=vote.session_id,
            photo=vote.photo,
            identity=vote.identity,
            response=vote.response,
            elapsed_ms=vote.elapsed_ms,
            demographics=vote.demographics,
            is_admin_vote=vote.is_admin_vote,
            generation=vote.generation,
            created_at=datetime.now(tz=UTC),
        )
        self.votes.append(record)
        return record

    def list_votes(
        self, session_id: UUID, photo: int | None = None, generation: int | None = None
    ) -> list[VoteRecord]:
        return [
            vote
            for vote in self.votes
            if vote.session_id == session_id
            and (photo is None or vote.photo == photo)
            and (generation is None or vote.generation == generation)
        ]

    def delete_vote(self, vote_id: UUID) -> None:
        self.votes = [vote for vote in self.votes if vote.id != vote_id]

    def delete_stale_votes(self, session_id: UUID, photo: int, generation: int) -> int:
        kept = [
            vote
            for vote in self.votes
            if not (
                vote.session_id == session_id
                and vote.photo == photo
                and vote.generation != generation
            )
        ]
        deleted = len(self.votes) - len(kept)
        self.votes = kept
        return deleted

    def discard(self, session_id: UUID, photo: int | None) -> None:
        self.votes = [
            vote
            for vote in self.votes
            if vote.session_id != session_id
            or (photo is not None and vote.photo != photo)
        ]

    def delete_admin_vote(
        self, session_id: UUID, photo: int, identity: UUID, generation: int
    ) -> None:
        self.votes = [
            vote
            for vote in self.votes
            if not (
                vote.is_admin_vote
                and vote.session_id == session_id
                and vote.photo == photo
                and vote.identity == identity
                and vote.generation == generation
            )
        ]


@dataclass
class InMemoryProfileRepository(ProfileRepository):
    """In-memory profile lookups for tests."""

    profiles: dict[UUID, DemographicProfile] = field(default_factory=dict)

    def get_profile(self, identity: UUID) -> DemographicProfile | None:
        return self.profiles.get(identity)

    def add(
        self,
        gender: str | None = "feminino",
        age_bracket: str | None = "25-34",
        region: str | None = "Nordeste",
    ) -> UUID:
        identity = uuid4()
        self.profiles[identity] = DemographicProfile(
            identity=identity,
            gender=gender,
            age_bracket=age_bracket,
            state="BA",
            region=region,
        )
        return identity


@dataclass
class InMemoryAuditRepository(AuditRepository):
    """In-memory audit repository for tests."""

    events: list[dict[str, object]] = field(default_factory=list)

    def create_event(
        self,
        action: str,
        resource_type: str,
        resource_id: UUID,
        details: dict[str, object] | None,
    ) -> None:
        self.events.append(
            {
                "action": action,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "details": details,
            }
        )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        admin_token="admin-token",
        authoritative_timer=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def vote_repository() -> InMemoryVoteRepository:
    return InMemoryVoteRepository()


@pytest.fixture
def session_repository(
    vote_repository: InMemoryVoteRepository,
) -> InMemorySessionRepository:
    return InMemorySessionRepository(votes=vote_repository)


@pytest.fixture
def profile_repository() -> InMemoryProfileRepository:
    return InMemoryProfileRepository()


@pytest.fixture
def audit_repository() -> InMemoryAuditRepository:
    return InMemoryAuditRepository()


@pytest.fixture
def fanout() -> RealtimeFanout:
    return RealtimeFanout()


@pytest.fixture
def presence(fanout: RealtimeFanout, clock: FakeClock) -> PresenceTracker:
    return PresenceTracker(fanout=fanout, ttl_seconds=30, clock=clock)


@pytest.fixture
def session_service(
    session_repository: InMemorySessionRepository,
    vote_repository: InMemoryVoteRepository,
    audit_repository: InMemoryAuditRepository,
    fanout: RealtimeFanout,
    clock: FakeClock,
) -> SessionService:
    return SessionService(
        session_repository=session_repository,
        vote_repository=vote_repository,
        fanout=fanout,
        audit_service=AuditService(audit_repository),
        clock=clock,
    )


@pytest.fixture
def vote_service(
    session_service: SessionService,
    vote_repository: InMemoryVoteRepository,
    profile_repository: InMemoryProfileRepository,
    fanout: RealtimeFanout,
) -> VoteService:
    return VoteService(
        session_service=session_service,
        vote_repository=vote_repository,
        profile_repository=profile_repository,
        fanout=fanout,
    )


@pytest.fixture
def aggregator(
    vote_repository: InMemoryVoteRepository, presence: PresenceTracker
) -> VoteAggregator:
    return VoteAggregator(vote_repository=vote_repository, presence=presence)


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    fanout: RealtimeFanout,
    presence: PresenceTracker,
    session_service: SessionService,
    vote_service: VoteService,
    aggregator: VoteAggregator,
    vote_repository: InMemoryVoteRepository,
    clock: FakeClock,
) -> AppContainer:
    rate_limiter = RateLimiter(max_requests=100, window_seconds=60, clock=clock)
    vote_service.rate_limiter = rate_limiter

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        fanout=fanout,
        presence=presence,
        session_service=session_service,
        vote_service=vote_service,
        aggregator=aggregator,
        report_service=ReportService(
            session_service=session_service, vote_repository=vote_repository
        ),
        photo_timer=None,
        rate_limiter=rate_limiter,
        close_resources=close_resources,
    )
