from __future__ import annotations

from typing import Protocol

from .config_schema import AppConfig
from .document import assemble_page
from .errors import ThreadUnrollError
from .extract import thread_from_nodes
from .identity import HandleResolver, resolve_identity
from .post import Thread
from .reference import PostReference, parse_reference
from .render import render_thread
from .run_log import RequestLogger
from .walker import ThreadFetcher, ThreadWalker


class UpstreamClient(HandleResolver, ThreadFetcher, Protocol):
    pass


async def unroll_thread(
    reference: PostReference,
    *,
    client: UpstreamClient,
    config: AppConfig | None = None,
    logger: RequestLogger | None = None,
) -> Thread:
    """
    Resolve the self-reply chain containing the referenced post.

    Errors from identity resolution and the walk propagate unchanged; they are logged
    here with their detail, which the boundary never shows to the caller.
    """
    cfg = config or AppConfig()

    try:
        did = await resolve_identity(client, reference.handle)
        anchor_uri = reference.at_uri(did)

        walker = ThreadWalker(client, max_hops=cfg.walker.max_hops, logger=logger)
        nodes = await walker.walk(anchor_uri)
        thread = thread_from_nodes(nodes)
    except ThreadUnrollError as e:
        if logger is not None:
            logger.warning(
                "thread_failed",
                handle=reference.handle,
                post_id=reference.post_id,
                error=type(e).__name__,
                message=str(e),
            )
        raise

    if logger is not None:
        logger.info(
            "thread_resolved",
            handle=reference.handle,
            post_id=reference.post_id,
            author=thread.author.did,
            posts=len(thread.posts),
        )
    return thread


async def unroll_url(
    url: str,
    *,
    client: UpstreamClient,
    config: AppConfig | None = None,
    logger: RequestLogger | None = None,
) -> Thread:
    """Parse a web URL (or /profile/... path) and resolve its thread."""
    cfg = config or AppConfig()
    reference = parse_reference(url, host=cfg.site.web_host)
    return await unroll_thread(reference, client=client, config=cfg, logger=logger)


def render_thread_page(thread: Thread, config: AppConfig | None = None) -> str:
    cfg = config or AppConfig()
    return assemble_page(render_thread(thread, cfg.site))
