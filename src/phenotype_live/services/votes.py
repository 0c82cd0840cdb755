"""Vote submission for live sessions."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from phenotype_live.domain.errors import NotFoundError, VoteRejectedError
from phenotype_live.domain.profiles import DemographicProfile
from phenotype_live.domain.sessions import SessionPhase, SessionRecord
from phenotype_live.domain.votes import (
    DemographicSnapshot,
    NewVote,
    VoteRecord,
    VoteResponse,
)
from phenotype_live.services.fanout import (
    RealtimeEvent,
    RealtimeFanout,
    session_channel,
)
from phenotype_live.services.rate_limit import RateLimiter
from phenotype_live.services.sessions import SessionService, VoteRepository

logger = logging.getLogger(__name__)


class ProfileRepository(Protocol):
    """Read access to participant profiles."""

    def get_profile(self, identity: UUID) -> DemographicProfile | None:
        """Return the profile for an identity, if present."""


@dataclass
class VoteService:
    """Write boundary for votes.

    Participants get one vote per photo run; the first write wins and a
    repeat is rejected by the repository. Admins may change their own
    answer, which replaces the previous record.
    """

    session_service: SessionService
    vote_repository: VoteRepository
    profile_repository: ProfileRepository
    fanout: RealtimeFanout
    rate_limiter: RateLimiter | None = None

    def submit_vote(  # noqa: PLR0913
        self,
        session_id: UUID,
        identity: UUID,
        response: VoteResponse,
        elapsed_ms: int,
        photo: int | None = None,
        generation: int | None = None,
    ) -> VoteRecord:
        """Record a participant's answer for the current photo."""
        if self.rate_limiter is not None:
            self.rate_limiter.check(f"submit-vote:{identity}")
        session = self.session_service.get_session(session_id)
        if session.phase != SessionPhase.ACTIVE:
            raise VoteRejectedError("Voting is closed for this photo")
        if self.session_service.remaining_seconds(session) <= 0:
            raise VoteRejectedError("Time is up for this photo")
        _check_current(session, photo, generation)
        profile = self.profile_repository.get_profile(identity)
        if profile is None:
            raise NotFoundError("Complete your profile before voting")
        record = self.vote_repository.insert_vote(
            NewVote(
                session_id=session.id,
                photo=session.current_photo,
                identity=identity,
                response=response,
                elapsed_ms=bound_elapsed_ms(elapsed_ms, session.photo_duration),
                demographics=profile.snapshot(),
                is_admin_vote=False,
                generation=session.generation,
            )
        )
        self._discard_if_superseded(record)
        logger.info(
            "Vote recorded",
            extra={
                "session_id": str(session.id),
                "photo": record.photo,
                "response": record.response.value,
            },
        )
        self._publish(record)
        return record

    def submit_admin_vote(
        self,
        session_id: UUID,
        identity: UUID,
        response: VoteResponse,
        elapsed_ms: int = 0,
    ) -> VoteRecord:
        """Record or replace the admin's reference answer."""
        session = self.session_service.get_session(session_id)
        if session.phase not in {SessionPhase.ACTIVE, SessionPhase.SHOWING_RESULTS}:
            raise VoteRejectedError("No photo is open for an admin vote")
        profile = self.profile_repository.get_profile(identity)
        demographics = profile.snapshot() if profile else DemographicSnapshot()
        self.vote_repository.delete_admin_vote(
            session.id, session.current_photo, identity, session.generation
        )
        record = self.vote_repository.insert_vote(
            NewVote(
                session_id=session.id,
                photo=session.current_photo,
                identity=identity,
                response=response,
                elapsed_ms=bound_elapsed_ms(elapsed_ms, session.photo_duration),
                demographics=demographics,
                is_admin_vote=True,
                generation=session.generation,
            )
        )
        logger.info(
            "Admin vote recorded",
            extra={"session_id": str(session.id), "photo": record.photo},
        )
        self._publish(record)
        return record

    def _discard_if_superseded(self, record: VoteRecord) -> None:
        """Undo an insert that raced with a restart of its photo."""
        latest = self.session_service.get_session(record.session_id)
        if (latest.current_photo, latest.generation) == (
            record.photo,
            record.generation,
        ):
            return
        self.vote_repository.delete_vote(record.id)
        logger.info(
            "Superseded vote discarded",
            extra={"session_id": str(record.session_id), "photo": record.photo},
        )
        raise VoteRejectedError("This photo was restarted; vote again")

    def _publish(self, record: VoteRecord) -> None:
        self.fanout.publish(
            RealtimeEvent(
                channel=session_channel(record.session_id),
                kind="vote",
                payload=serialize_vote(record),
            )
        )


def bound_elapsed_ms(elapsed_ms: int, photo_duration: int) -> int:
    """Clamp the reported answer time to the photo's time box."""
    return max(0, min(int(elapsed_ms), photo_duration * 1000))


def _check_current(
    session: SessionRecord, photo: int | None, generation: int | None
) -> None:
    if photo is not None and photo != session.current_photo:
        raise VoteRejectedError(f"Photo {photo} is no longer open")
    if generation is not None and generation != session.generation:
        raise VoteRejectedError("This photo was restarted; vote again")


def serialize_vote(record: VoteRecord) -> dict[str, object]:
    return {
        "id": str(record.id),
        "session_id": str(record.session_id),
        "photo": record.photo,
        "identity": str(record.identity),
        "response": record.response.value,
        "elapsed_ms": record.elapsed_ms,
        "gender": record.demographics.gender,
        "age_bracket": record.demographics.age_bracket,
        "region": record.demographics.region,
        "is_admin_vote": record.is_admin_vote,
        "generation": record.generation,
        "created_at": record.created_at.isoformat(),
    }
