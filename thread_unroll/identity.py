from __future__ import annotations

import re
from typing import Protocol

from .errors import BadInputError

_DID_RE = re.compile(r"^did:[a-z]+:[A-Za-z0-9._:%-]+$")


class HandleResolver(Protocol):
    async def resolve_handle(self, handle: str) -> str: ...


def is_did(value: str) -> bool:
    return bool(_DID_RE.fullmatch(value or ""))


async def resolve_identity(client: HandleResolver, handle: str) -> str:
    """
    Map a handle to its stable DID.

    A value that is already a DID is returned as-is. Otherwise this makes exactly one
    upstream call and caches nothing, so a renamed account is picked up on the next
    request.
    """
    h = (handle or "").strip().lstrip("@")
    if not h:
        raise BadInputError("handle must be non-empty")

    if h.startswith("did:"):
        if not is_did(h):
            raise BadInputError(f"malformed DID: {h!r}")
        return h

    return await client.resolve_handle(h.lower())
