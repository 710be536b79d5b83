from __future__ import annotations

from typing import Protocol

from .appview_schema import BlockedPost, ThreadViewPost
from .errors import (
    InvalidResponseError,
    NotFoundOrInaccessibleError,
    TraversalTooLongError,
)
from .run_log import RequestLogger

DEFAULT_MAX_HOPS = 1000


class ThreadFetcher(Protocol):
    async def get_post_thread(self, uri: str) -> ThreadViewPost: ...


class _HopBudget:
    """Counts upstream fetches across both phases of one walk."""

    def __init__(self, limit: int) -> None:
        self.limit = int(limit)
        self.used = 0

    def spend(self, uri: str, *, phase: str) -> None:
        if self.used >= self.limit:
            raise TraversalTooLongError(
                f"Thread walk exceeded {self.limit} hops during {phase} (at {uri})"
            )
        self.used += 1


class ThreadWalker:
    """
    Resolve the self-reply chain around an anchor post.

    The walk runs in two phases over explicit loops: first upward to the earliest
    same-author ancestor, then downward through the first same-author reply at each
    level. Memory is bounded by the result list; a hop ceiling bounds time and stops
    cyclic parent or reply pointers from upstream.

    Sibling self-replies are resolved by upstream order only: the first listed one is
    followed and the rest are dropped.
    """

    def __init__(
        self,
        client: ThreadFetcher,
        *,
        max_hops: int = DEFAULT_MAX_HOPS,
        logger: RequestLogger | None = None,
    ) -> None:
        if int(max_hops) < 1:
            raise ValueError("max_hops must be >= 1")
        self._client = client
        self._max_hops = int(max_hops)
        self._logger = logger

    async def walk(self, anchor_uri: str) -> list[ThreadViewPost]:
        """Return the chain's upstream nodes, root first."""
        budget = _HopBudget(self._max_hops)

        root = await self._find_root(anchor_uri, budget)
        nodes = await self._descend(root, budget)

        self._log(
            "thread_walk_completed",
            anchor=anchor_uri,
            root=root.post.uri,
            posts=len(nodes),
            hops=budget.used,
        )
        return nodes

    async def _find_root(self, anchor_uri: str, budget: _HopBudget) -> ThreadViewPost:
        # Failures on the anchor itself propagate: there is nothing to return yet.
        budget.spend(anchor_uri, phase="root-finding")
        current = await self._client.get_post_thread(anchor_uri)
        author_did = current.author_did

        while True:
            parent = current.same_author_parent(author_did)
            if parent is None:
                return current

            parent_uri = parent.post.uri
            budget.spend(parent_uri, phase="root-finding")
            try:
                fetched = await self._client.get_post_thread(parent_uri)
            except NotFoundOrInaccessibleError:
                self._log("ancestor_inaccessible", uri=parent_uri, hops=budget.used)
                return current

            self._check_author(fetched, author_did)
            current = fetched

    async def _descend(
        self, root: ThreadViewPost, budget: _HopBudget
    ) -> list[ThreadViewPost]:
        author_did = root.author_did
        nodes = [root]
        current = root

        while True:
            child = current.first_same_author_reply(author_did)
            if child is None:
                return nodes
            if isinstance(child, BlockedPost):
                self._log("thread_truncated", uri=child.uri, posts=len(nodes))
                return nodes

            child_uri = child.post.uri
            budget.spend(child_uri, phase="descent")
            try:
                fetched = await self._client.get_post_thread(child_uri)
            except NotFoundOrInaccessibleError:
                # The chain ends where we can no longer see it.
                self._log("thread_truncated", uri=child_uri, posts=len(nodes))
                return nodes

            self._check_author(fetched, author_did)
            nodes.append(fetched)
            current = fetched

    @staticmethod
    def _check_author(node: ThreadViewPost, author_did: str) -> None:
        if node.author_did != author_did:
            raise InvalidResponseError(
                f"Author changed between listing and fetch for {node.post.uri}"
            )

    def _log(self, event: str, **data: object) -> None:
        if self._logger is not None:
            self._logger.info(event, **data)
