from __future__ import annotations

from .config import apply_env_overrides, load_config
from .config_schema import AppConfig
from .errors import (
    BadInputError,
    ConfigError,
    InvalidResponseError,
    NotFoundOrInaccessibleError,
    RateLimitedError,
    ThreadUnrollError,
    TraversalTooLongError,
    UnreachableError,
)
from .post import Author, ExternalLink, ImageSet, Post, Thread, Video
from .service import render_thread_page, unroll_thread, unroll_url

__all__ = [
    "AppConfig",
    "Author",
    "BadInputError",
    "ConfigError",
    "ExternalLink",
    "ImageSet",
    "InvalidResponseError",
    "NotFoundOrInaccessibleError",
    "Post",
    "RateLimitedError",
    "Thread",
    "ThreadUnrollError",
    "TraversalTooLongError",
    "UnreachableError",
    "Video",
    "apply_env_overrides",
    "load_config",
    "render_thread_page",
    "unroll_thread",
    "unroll_url",
]
