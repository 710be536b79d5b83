from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from .appview_schema import (
    EXTERNAL_VIEW,
    IMAGES_VIEW,
    RECORD_WITH_MEDIA_VIEW,
    VIDEO_VIEW,
    AspectRatioView,
    ExternalView,
    ImagesView,
    PostRecord,
    RecordWithMediaView,
    ThreadViewPost,
    VideoView,
)
from .errors import InvalidResponseError
from .post import (
    AspectRatio,
    Author,
    Embed,
    EmbedImage,
    ExternalLink,
    ImageSet,
    Post,
    Thread,
    Video,
)


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _aspect_ratio(view: AspectRatioView | None) -> AspectRatio | None:
    if view is None:
        return None
    return AspectRatio(width=view.width, height=view.height)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp into an aware UTC datetime.

    Raises InvalidResponseError when the value is not a timestamp.
    """
    raw = (value or "").strip()
    if not raw:
        raise InvalidResponseError("Post record has an empty createdAt")

    try:
        parsed = datetime.fromisoformat(raw)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        # Offsets near datetime.min/max cannot be shifted to UTC.
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError) as e:
        raise InvalidResponseError(f"Post record has a malformed createdAt: {raw!r}") from e


def _images(view: ImagesView) -> ImageSet | None:
    images = tuple(
        EmbedImage(
            thumb_url=img.thumb,
            fullsize_url=img.fullsize,
            alt=img.alt,
            aspect_ratio=_aspect_ratio(img.aspect_ratio),
        )
        for img in view.images
    )
    if not images:
        return None
    return ImageSet(images=images)


def _video(view: VideoView) -> Video:
    return Video(
        playlist_url=view.playlist,
        thumbnail_url=_coerce_str(view.thumbnail),
        alt=_coerce_str(view.alt),
        aspect_ratio=_aspect_ratio(view.aspect_ratio),
    )


def _external(view: ExternalView) -> ExternalLink:
    ext = view.external
    return ExternalLink(
        uri=ext.uri,
        title=ext.title,
        description=ext.description,
        thumb_url=_coerce_str(ext.thumb),
    )


def embed_from_view(raw: Mapping[str, Any] | None) -> Embed | None:
    """
    Resolve an embed view into exactly one Embed variant, or None.

    Unknown embed kinds (quote posts, lists, feeds) yield None. A known kind that fails
    validation raises InvalidResponseError.
    """
    if not isinstance(raw, Mapping):
        return None

    kind = raw.get("$type")
    try:
        if kind == IMAGES_VIEW:
            return _images(ImagesView.model_validate(raw))
        if kind == VIDEO_VIEW:
            return _video(VideoView.model_validate(raw))
        if kind == EXTERNAL_VIEW:
            return _external(ExternalView.model_validate(raw))
        if kind == RECORD_WITH_MEDIA_VIEW:
            media = RecordWithMediaView.model_validate(raw).media
            if media.get("$type") == RECORD_WITH_MEDIA_VIEW:
                return None
            return embed_from_view(media)
    except ValidationError as e:
        raise InvalidResponseError(f"Malformed {kind} embed") from e

    return None


def author_from_node(node: ThreadViewPost) -> Author:
    author = node.post.author
    return Author(
        did=author.did,
        handle=author.handle,
        display_name=_coerce_str(author.display_name),
        avatar_url=_coerce_str(author.avatar),
    )


def post_from_node(node: ThreadViewPost) -> Post:
    """Map one validated upstream node to a Post. Counters stay None when absent."""
    view = node.post

    try:
        record = PostRecord.model_validate(view.record)
    except ValidationError as e:
        raise InvalidResponseError(f"Malformed post record for {view.uri}") from e

    langs = tuple(tag.strip() for tag in record.langs if tag and tag.strip())

    return Post(
        uri=view.uri,
        cid=view.cid,
        text=record.text,
        created_at=parse_timestamp(record.created_at),
        reply_count=view.reply_count,
        repost_count=view.repost_count,
        like_count=view.like_count,
        embed=embed_from_view(view.embed),
        langs=langs,
    )


def thread_from_nodes(nodes: Sequence[ThreadViewPost]) -> Thread:
    """Assemble a Thread from walker output, checking single authorship."""
    if not nodes:
        raise InvalidResponseError("Thread walk returned no posts")

    author = author_from_node(nodes[0])
    for node in nodes[1:]:
        if node.author_did != author.did:
            raise InvalidResponseError(f"Foreign author in thread at {node.post.uri}")

    posts = tuple(post_from_node(node) for node in nodes)
    try:
        return Thread(author=author, posts=posts)
    except ValueError as e:
        raise InvalidResponseError(str(e)) from e
