from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .appview_schema import (
    BlockedPost,
    GetPostThreadOutput,
    NotFoundPost,
    ResolveHandleOutput,
    ThreadViewPost,
    XrpcErrorBody,
)
from .config_schema import UpstreamConfig
from .errors import (
    InvalidResponseError,
    NotFoundOrInaccessibleError,
    RateLimitedError,
    UnreachableError,
)
from .run_log import RequestLogger

M = TypeVar("M", bound=BaseModel)

RESOLVE_HANDLE = "com.atproto.identity.resolveHandle"
GET_POST_THREAD = "app.bsky.feed.getPostThread"

# One ancestor level and direct replies only: per-fetch cost stays constant
# regardless of how long the thread is.
SHALLOW_DEPTH = 1
SHALLOW_PARENT_HEIGHT = 1

# XRPC error names that mean "this resource is not there for us".
_NOT_FOUND_ERRORS = frozenset({"NotFound", "InvalidRequest"})

_LOG_BODY_LIMIT = 500


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


def _xrpc_error(response: httpx.Response) -> XrpcErrorBody:
    try:
        return XrpcErrorBody.model_validate(response.json())
    except (ValueError, ValidationError):
        return XrpcErrorBody()


def build_http_client(config: UpstreamConfig) -> httpx.AsyncClient:
    """Create the pooled client shared by every concurrent walk."""
    return httpx.AsyncClient(
        base_url=config.base_url,
        timeout=httpx.Timeout(config.timeout_seconds),
        limits=httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_connections,
        ),
        headers={
            "User-Agent": config.user_agent,
            "Accept": "application/json",
        },
    )


class AppViewClient:
    """
    Read-only access to the public AppView XRPC API.

    Every response is validated with pydantic before any field is used; failures are
    translated into the error taxonomy in `errors`. Nothing here retries: a 429 is
    surfaced to the caller immediately.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        logger: RequestLogger | None = None,
    ) -> None:
        self._http = http
        self._logger = logger

    @classmethod
    @asynccontextmanager
    async def open(
        cls,
        config: UpstreamConfig,
        *,
        logger: RequestLogger | None = None,
    ) -> AsyncIterator["AppViewClient"]:
        async with build_http_client(config) as http:
            yield cls(http, logger=logger)

    def with_logger(self, logger: RequestLogger | None) -> "AppViewClient":
        """Share the connection pool under a per-request logger."""
        return AppViewClient(self._http, logger=logger)

    async def resolve_handle(self, handle: str) -> str:
        out = await self._get(
            RESOLVE_HANDLE,
            {"handle": handle},
            ResolveHandleOutput,
            subject=handle,
        )
        return out.did

    async def get_post_thread(self, uri: str) -> ThreadViewPost:
        """Shallow fetch of one post: its parent and its direct replies."""
        out = await self._get(
            GET_POST_THREAD,
            {
                "uri": uri,
                "depth": SHALLOW_DEPTH,
                "parentHeight": SHALLOW_PARENT_HEIGHT,
            },
            GetPostThreadOutput,
            subject=uri,
        )

        node = out.thread
        if isinstance(node, ThreadViewPost):
            return node
        if isinstance(node, NotFoundPost):
            raise NotFoundOrInaccessibleError(f"Post not found: {uri}")
        if isinstance(node, BlockedPost):
            raise NotFoundOrInaccessibleError(f"Post is blocked: {uri}")

        self._log_warning("upstream_unknown_thread_node", uri=uri, node_type=node.type)
        raise InvalidResponseError(f"Unexpected thread node type for {uri}")

    async def _get(
        self,
        method: str,
        params: Mapping[str, Any],
        model: type[M],
        *,
        subject: str,
    ) -> M:
        try:
            response = await self._http.get(f"/xrpc/{method}", params=dict(params))
        except httpx.TimeoutException as e:
            self._log_warning("upstream_timeout", method=method, subject=subject)
            raise UnreachableError(f"{method} timed out") from e
        except httpx.TransportError as e:
            self._log_warning(
                "upstream_transport_error",
                method=method,
                subject=subject,
                error=type(e).__name__,
            )
            raise UnreachableError(f"{method} failed: network error") from e

        self._raise_for_status(response, method=method, subject=subject)

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._log_warning("upstream_invalid_json", method=method, subject=subject)
            raise InvalidResponseError(f"{method} returned a non-JSON body") from e

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            self._log_warning(
                "upstream_schema_mismatch",
                method=method,
                subject=subject,
                errors=e.error_count(),
            )
            raise InvalidResponseError(f"{method} returned an unexpected payload") from e

    def _raise_for_status(
        self, response: httpx.Response, *, method: str, subject: str
    ) -> None:
        status = response.status_code
        if status < 400:
            return

        body = XrpcErrorBody()
        if status < 500:
            body = _xrpc_error(response)

        self._log_warning(
            "upstream_http_error",
            method=method,
            subject=subject,
            status=status,
            error=body.error,
            body=_truncate(response.text, limit=_LOG_BODY_LIMIT),
        )

        if status == 429:
            raise RateLimitedError(f"{method} was rate limited")
        if status == 404 or (status == 400 and body.error in _NOT_FOUND_ERRORS):
            raise NotFoundOrInaccessibleError(f"{method}: {subject} not found")
        raise UnreachableError(f"{method} failed with HTTP {status}")

    def _log_warning(self, event: str, **data: Any) -> None:
        if self._logger is not None:
            self._logger.warning(event, **data)
