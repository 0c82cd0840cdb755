"""Error taxonomy for live session operations."""


class LiveSessionError(Exception):
    """Base class for errors surfaced to the initiating user action."""

    status_code = 400


class NotFoundError(LiveSessionError):
    """A session, profile or vote reference does not exist."""

    status_code = 404


class TransitionConflictError(LiveSessionError):
    """An action was attempted from a phase that does not allow it."""

    status_code = 409


class DuplicateVoteError(LiveSessionError):
    """The identity already voted on this photo."""

    status_code = 409


class VoteRejectedError(LiveSessionError):
    """The vote arrived for a closed, stale or unknown photo."""

    status_code = 409


class RateLimitedError(LiveSessionError):
    """Too many requests in the current window."""

    status_code = 429


class PersistenceError(LiveSessionError):
    """The backing store failed."""

    status_code = 503
