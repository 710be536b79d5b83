from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ThreadUnrollError(RuntimeError):
    """Base class for failures while resolving a thread."""


class BadInputError(ThreadUnrollError, ValueError):
    """Raised when a post reference is malformed or points outside the web host."""


class NotFoundOrInaccessibleError(ThreadUnrollError):
    """Raised when the anchor post or handle is missing, blocked or moderated."""


class RateLimitedError(ThreadUnrollError):
    """Raised when the upstream API throttles us. Never retried."""


class UnreachableError(ThreadUnrollError):
    """Raised on network failures, timeouts and upstream server errors."""


class InvalidResponseError(ThreadUnrollError):
    """Raised when an upstream payload fails schema validation."""


class TraversalTooLongError(ThreadUnrollError):
    """Raised when a walk exceeds the configured hop ceiling."""
