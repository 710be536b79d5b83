from __future__ import annotations

from dataclasses import dataclass

from .errors import (
    BadInputError,
    ConfigError,
    InvalidResponseError,
    NotFoundOrInaccessibleError,
    RateLimitedError,
    TraversalTooLongError,
    UnreachableError,
)


@dataclass(frozen=True)
class Outcome:
    """What the caller sees for a failure. Never carries upstream detail."""

    status: int
    title: str
    message: str
    exit_code: int


INTERNAL_ERROR = Outcome(
    status=500,
    title="Internal Server Error",
    message="An unexpected error occurred.",
    exit_code=1,
)

# Most specific first; isinstance order matters for subclasses.
_OUTCOMES: tuple[tuple[type[BaseException], Outcome], ...] = (
    (
        BadInputError,
        Outcome(400, "Bad Request", "That is not a Bluesky post link.", 2),
    ),
    (
        NotFoundOrInaccessibleError,
        Outcome(404, "Not Found", "The post does not exist or is not visible.", 3),
    ),
    (
        RateLimitedError,
        Outcome(429, "Too Many Requests", "Rate limit exceeded. Please try again later.", 4),
    ),
    (
        UnreachableError,
        Outcome(503, "Service Unavailable", "Bluesky could not be reached.", 5),
    ),
    (
        InvalidResponseError,
        Outcome(502, "Bad Gateway", "Bluesky returned data we could not read.", 6),
    ),
    (
        TraversalTooLongError,
        Outcome(422, "Thread Too Long", "The thread is too long to unroll.", 7),
    ),
    (
        ConfigError,
        Outcome(500, "Configuration Error", "The service is misconfigured.", 8),
    ),
)


def outcome_for(exc: BaseException) -> Outcome:
    for kind, outcome in _OUTCOMES:
        if isinstance(exc, kind):
            return outcome
    return INTERNAL_ERROR
