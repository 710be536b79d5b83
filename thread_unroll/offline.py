from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from .appview_schema import (
    BLOCKED_POST,
    EXTERNAL_VIEW,
    IMAGES_VIEW,
    NOT_FOUND_POST,
    THREAD_VIEW_POST,
)
from .reference import POST_COLLECTION

OFFLINE_HANDLE = "alice.example"
OFFLINE_DID = "did:plc:offlinealice"
OFFLINE_ANCHOR_ID = "3offline2"
OFFLINE_URL = f"https://bsky.app/profile/{OFFLINE_HANDLE}/post/{OFFLINE_ANCHOR_ID}"


def post_uri(did: str, rkey: str) -> str:
    return f"at://{did}/{POST_COLLECTION}/{rkey}"


def _xrpc_error(status: int, error: str, message: str = "") -> httpx.Response:
    return httpx.Response(status, json={"error": error, "message": message or error})


@dataclass
class CannedAppView:
    """
    An in-memory AppView answering resolveHandle and shallow getPostThread calls.

    Used by the `--offline` CLI mode and as the upstream fake in tests. Every request
    is recorded in `calls` as (method, subject).
    """

    handles: dict[str, str] = field(default_factory=dict)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)
    posts: dict[str, dict[str, Any]] = field(default_factory=dict)
    parents: dict[str, str] = field(default_factory=dict)
    children: dict[str, list[str]] = field(default_factory=dict)

    # uri -> canned HTTP response, or an exception instance to raise.
    failures: dict[str, Any] = field(default_factory=dict)
    blocked: set[str] = field(default_factory=set)

    calls: list[tuple[str, str]] = field(default_factory=list)

    def add_author(
        self,
        handle: str,
        did: str,
        *,
        display_name: str | None = None,
        avatar: str | None = None,
    ) -> str:
        self.handles[handle.lower()] = did
        profile: dict[str, Any] = {"did": did, "handle": handle}
        if display_name is not None:
            profile["displayName"] = display_name
        if avatar is not None:
            profile["avatar"] = avatar
        self.profiles[did] = profile
        return did

    def add_post(
        self,
        did: str,
        rkey: str,
        text: str = "",
        *,
        parent: str | None = None,
        created_at: str = "2024-05-01T12:00:00.000Z",
        langs: list[str] | None = None,
        embed: dict[str, Any] | None = None,
        counts: dict[str, int] | None = None,
    ) -> str:
        uri = post_uri(did, rkey)
        record: dict[str, Any] = {
            "$type": POST_COLLECTION,
            "text": text,
            "createdAt": created_at,
        }
        if langs is not None:
            record["langs"] = list(langs)

        view: dict[str, Any] = {
            "uri": uri,
            "cid": f"bafy{rkey}",
            "author": self.profiles.get(did, {"did": did, "handle": did}),
            "record": record,
            "indexedAt": created_at,
        }
        if embed is not None:
            view["embed"] = embed
        view.update(counts or {})

        self.posts[uri] = view
        if parent is not None:
            self.parents[uri] = parent
            self.children.setdefault(parent, []).append(uri)
        return uri

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle_request)

    def http_client(self, base_url: str = "https://appview.test") -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=base_url, transport=self.transport())

    def fetch_count(self) -> int:
        return sum(1 for method, _ in self.calls if method == "app.bsky.feed.getPostThread")

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        params = request.url.params

        if method == "com.atproto.identity.resolveHandle":
            handle = params.get("handle", "")
            self.calls.append((method, handle))
            did = self.handles.get(handle.lower())
            if did is None:
                return _xrpc_error(400, "InvalidRequest", "Unable to resolve handle")
            return httpx.Response(200, json={"did": did})

        if method == "app.bsky.feed.getPostThread":
            uri = params.get("uri", "")
            self.calls.append((method, uri))
            return self._thread_response(uri, params)

        return _xrpc_error(501, "MethodNotImplemented")

    def _thread_response(self, uri: str, params: httpx.QueryParams) -> httpx.Response:
        if params.get("depth") != "1" or params.get("parentHeight") != "1":
            return _xrpc_error(400, "InvalidRequest", "only shallow fetches are served")

        failure = self.failures.get(uri)
        if isinstance(failure, BaseException):
            raise failure
        if isinstance(failure, httpx.Response):
            return failure

        if uri in self.blocked:
            return httpx.Response(200, json={"thread": self._blocked(uri)})

        if uri not in self.posts:
            return _xrpc_error(400, "NotFound", f"Post not found: {uri}")

        return httpx.Response(200, json={"thread": self._node(uri, with_parent=True)})

    def _blocked(self, uri: str) -> dict[str, Any]:
        node: dict[str, Any] = {"$type": BLOCKED_POST, "uri": uri, "blocked": True}
        if uri in self.posts:
            node["author"] = {"did": self.posts[uri]["author"]["did"]}
        return node

    def _ref(self, uri: str) -> dict[str, Any]:
        if uri in self.blocked:
            return self._blocked(uri)
        if uri not in self.posts:
            return {"$type": NOT_FOUND_POST, "uri": uri, "notFound": True}
        return {"$type": THREAD_VIEW_POST, "post": self.posts[uri]}

    def _node(self, uri: str, *, with_parent: bool) -> dict[str, Any]:
        node: dict[str, Any] = {"$type": THREAD_VIEW_POST, "post": self.posts[uri]}
        parent = self.parents.get(uri)
        if with_parent and parent is not None:
            node["parent"] = self._ref(parent)
        node["replies"] = [self._ref(child) for child in self.children.get(uri, [])]
        return node


def offline_app_view() -> CannedAppView:
    """A small canned thread: three self-replies, a branch, and a foreign reply."""
    view = CannedAppView()
    did = view.add_author(
        OFFLINE_HANDLE,
        OFFLINE_DID,
        display_name="Alice <Offline>",
        avatar="https://cdn.example/avatar/alice.jpg",
    )
    bob = view.add_author("bob.example", "did:plc:offlinebob", display_name="Bob")

    root = view.add_post(
        did,
        "3offline0",
        "A thread about tide pools & why they matter. Source: "
        "https://example.org/articles/tide-pools-and-their-ecosystems?ref=offline",
        created_at="2024-05-01T12:00:00.000Z",
        langs=["en"],
        counts={"likeCount": 12, "repostCount": 3, "replyCount": 2},
        embed={
            "$type": IMAGES_VIEW,
            "images": [
                {
                    "thumb": "https://cdn.example/img/thumb/1.jpg",
                    "fullsize": "https://cdn.example/img/full/1.jpg",
                    "alt": "A tide pool at \"low\" tide",
                    "aspectRatio": {"width": 4, "height": 3},
                }
            ],
        },
    )
    view.add_post(bob, "3offlineb", "Great thread!", parent=root)
    first = view.add_post(
        did,
        "3offline1",
        "1/ Anemones <3 shallow water.",
        parent=root,
        created_at="2024-05-01T12:01:00.000Z",
        embed={
            "$type": EXTERNAL_VIEW,
            "external": {
                "uri": "https://example.org/anemones",
                "title": "Anemones",
                "description": "All about anemones",
            },
        },
    )
    view.add_post(
        did,
        "3offlinex",
        "A side note nobody follows.",
        parent=root,
        created_at="2024-05-01T12:01:30.000Z",
    )
    view.add_post(
        did,
        OFFLINE_ANCHOR_ID,
        "2/ That's all, folks.",
        parent=first,
        created_at="2024-05-01T12:02:00.000Z",
    )
    return view
