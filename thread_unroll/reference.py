from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from .errors import BadInputError

DEFAULT_WEB_HOST = "bsky.app"
POST_COLLECTION = "app.bsky.feed.post"

_SEGMENT_RE = re.compile(r"^[^\s/]+$")


@dataclass(frozen=True)
class PostReference:
    """A validated `{handle, post-id}` pair. The handle may also be a DID."""

    handle: str
    post_id: str

    def at_uri(self, did: str) -> str:
        return f"at://{did}/{POST_COLLECTION}/{self.post_id}"


def post_reference(handle: str, post_id: str) -> PostReference:
    """Validate pre-split routing parameters."""
    h = (handle or "").strip() if isinstance(handle, str) else ""
    p = (post_id or "").strip() if isinstance(post_id, str) else ""

    if not _SEGMENT_RE.fullmatch(h):
        raise BadInputError("handle must be a single non-empty path segment")
    if not _SEGMENT_RE.fullmatch(p):
        raise BadInputError("post id must be a single non-empty path segment")

    return PostReference(handle=h, post_id=p)


def _post_path_parts(path: str) -> tuple[str, str]:
    segments = path.split("/")
    # Leading slash gives an empty first segment; tolerate one trailing slash.
    if segments and segments[0] == "":
        segments = segments[1:]
    if len(segments) == 5 and segments[-1] == "":
        segments = segments[:-1]

    if len(segments) != 4 or segments[0] != "profile" or segments[2] != "post":
        raise BadInputError(
            "URL must be a post link (e.g. /profile/<handle>/post/<id>)"
        )

    handle, post_id = segments[1], segments[3]
    if not handle or not post_id:
        raise BadInputError("URL must include both a handle and a post id")

    return handle, post_id


def parse_post_url(url: str, *, host: str = DEFAULT_WEB_HOST) -> PostReference:
    """
    Extract the post reference from a full web URL.

    Only http(s) URLs whose host is exactly `host` and whose path is
    /profile/<handle>/post/<post-id> are accepted. No network access happens here.
    """
    if not isinstance(url, str) or not url.strip():
        raise BadInputError("URL must be a non-empty string")

    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError as e:
        raise BadInputError(f"invalid URL: {e}") from e

    if parts.scheme.lower() not in ("http", "https"):
        raise BadInputError("URL must use http or https")

    expected = (host or DEFAULT_WEB_HOST).lower()
    if (
        (parts.hostname or "").lower() != expected
        or port is not None
        or parts.username is not None
        or parts.password is not None
    ):
        raise BadInputError(f"URL must be a {expected} link")

    handle, post_id = _post_path_parts(parts.path)
    return post_reference(handle, post_id)


def parse_reference(value: str, *, host: str = DEFAULT_WEB_HOST) -> PostReference:
    """Accept either a full web URL or a bare /profile/<handle>/post/<id> path."""
    text = (value or "").strip() if isinstance(value, str) else ""
    if text.startswith("/") and not text.startswith("//"):
        handle, post_id = _post_path_parts(urlsplit(text).path)
        return post_reference(handle, post_id)
    return parse_post_url(text, host=host)
