"""Pydantic models for API request payloads."""

from datetime import date

from pydantic import BaseModel, Field

from phenotype_live.domain.sessions import PHOTO_COUNT
from phenotype_live.domain.votes import VoteResponse


class CreateSessionRequest(BaseModel):
    """Admin request to open a new session."""

    name: str = Field(min_length=1, max_length=200)
    scheduled_date: date | None = None
    photo_duration: int | None = Field(default=None, gt=0, le=3600)


class VoteRequest(BaseModel):
    """Participant answer for the photo on screen."""

    response: VoteResponse
    elapsed_ms: int = Field(default=0, ge=0)
    photo: int | None = Field(default=None, ge=1, le=PHOTO_COUNT)
    generation: int | None = Field(default=None, ge=0)


class AdminVoteRequest(BaseModel):
    """Admin reference answer for the current photo."""

    response: VoteResponse
    elapsed_ms: int = Field(default=0, ge=0)


class ExpireRequest(BaseModel):
    """Client report that the countdown of a photo reached zero."""

    photo: int = Field(ge=1, le=PHOTO_COUNT)
    generation: int = Field(ge=0)
