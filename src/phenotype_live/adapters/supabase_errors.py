"""Translation of Supabase/PostgREST failures into domain errors."""

import logging
from typing import Any, Protocol

from postgrest.exceptions import APIError

from phenotype_live.domain.errors import DuplicateVoteError, PersistenceError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class _Executable(Protocol):
    def execute(self) -> Any: ...


def execute(query: _Executable, action: str) -> Any:
    """Run a PostgREST query, raising PersistenceError on failure."""
    try:
        return query.execute()
    except APIError as exc:
        if exc.code == UNIQUE_VIOLATION:
            raise DuplicateVoteError("You already answered this photo") from exc
        logger.exception("Supabase call failed", extra={"action": action})
        raise PersistenceError(f"Failed to {action}") from exc
