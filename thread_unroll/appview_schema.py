from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag

THREAD_VIEW_POST = "app.bsky.feed.defs#threadViewPost"
NOT_FOUND_POST = "app.bsky.feed.defs#notFoundPost"
BLOCKED_POST = "app.bsky.feed.defs#blockedPost"
UNKNOWN_NODE = "unknown"

IMAGES_VIEW = "app.bsky.embed.images#view"
VIDEO_VIEW = "app.bsky.embed.video#view"
EXTERNAL_VIEW = "app.bsky.embed.external#view"
RECORD_WITH_MEDIA_VIEW = "app.bsky.embed.recordWithMedia#view"

NonNegativeInt = Annotated[int, Field(ge=0)]
PositiveInt = Annotated[int, Field(ge=1)]
NonEmptyStr = Annotated[str, Field(min_length=1)]


class _UpstreamModel(BaseModel):
    # Upstream adds fields over time; only the ones we read are validated.
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class XrpcErrorBody(_UpstreamModel):
    error: str | None = None
    message: str | None = None


class ResolveHandleOutput(_UpstreamModel):
    did: Annotated[str, Field(pattern=r"^did:[a-z]+:\S+$")]


class ProfileViewBasic(_UpstreamModel):
    did: NonEmptyStr
    handle: NonEmptyStr
    display_name: str | None = Field(None, alias="displayName")
    avatar: str | None = None


class PostView(_UpstreamModel):
    uri: NonEmptyStr
    cid: NonEmptyStr
    author: ProfileViewBasic
    record: dict[str, Any]
    embed: dict[str, Any] | None = None

    reply_count: NonNegativeInt | None = Field(None, alias="replyCount")
    repost_count: NonNegativeInt | None = Field(None, alias="repostCount")
    like_count: NonNegativeInt | None = Field(None, alias="likeCount")


class PostRecord(_UpstreamModel):
    text: str = ""
    created_at: str = Field(alias="createdAt")
    langs: list[str] = Field(default_factory=list)


class NotFoundPost(_UpstreamModel):
    type: Literal["app.bsky.feed.defs#notFoundPost"] = Field(
        NOT_FOUND_POST, alias="$type"
    )
    uri: str = ""


class BlockedAuthor(_UpstreamModel):
    did: str = ""


class BlockedPost(_UpstreamModel):
    type: Literal["app.bsky.feed.defs#blockedPost"] = Field(BLOCKED_POST, alias="$type")
    uri: str = ""
    author: BlockedAuthor | None = None

    @property
    def author_did(self) -> str:
        return self.author.did if self.author is not None else ""


class UnknownNode(_UpstreamModel):
    """A node kind we do not understand. It is kept but never followed."""

    type: str | None = Field(None, alias="$type")


def _node_kind(value: Any) -> str:
    if isinstance(value, BaseModel):
        kind = getattr(value, "type", None)
    elif isinstance(value, dict):
        kind = value.get("$type")
        if kind is None:
            # Some AppView deployments omit $type on nested nodes.
            if "post" in value:
                return THREAD_VIEW_POST
            if value.get("notFound") is True:
                return NOT_FOUND_POST
            if value.get("blocked") is True:
                return BLOCKED_POST
    else:
        return UNKNOWN_NODE

    if kind in (THREAD_VIEW_POST, NOT_FOUND_POST, BLOCKED_POST):
        return kind
    return UNKNOWN_NODE


class ThreadViewPost(_UpstreamModel):
    type: Literal["app.bsky.feed.defs#threadViewPost"] = Field(
        THREAD_VIEW_POST, alias="$type"
    )
    post: PostView
    parent: ThreadNode | None = None
    replies: list[ThreadNode] = Field(default_factory=list)

    @property
    def author_did(self) -> str:
        return self.post.author.did

    def same_author_parent(self, did: str) -> "ThreadViewPost | None":
        parent = self.parent
        if isinstance(parent, ThreadViewPost) and parent.author_did == did:
            return parent
        return None

    def first_same_author_reply(self, did: str) -> "ThreadViewPost | BlockedPost | None":
        # Upstream order wins; sibling branches are dropped. A blocked self-reply
        # still occupies its slot so later siblings are not promoted past it.
        for reply in self.replies:
            if isinstance(reply, ThreadViewPost) and reply.author_did == did:
                return reply
            if isinstance(reply, BlockedPost) and reply.author_did == did:
                return reply
        return None


ThreadNode = Annotated[
    Union[
        Annotated[ThreadViewPost, Tag(THREAD_VIEW_POST)],
        Annotated[NotFoundPost, Tag(NOT_FOUND_POST)],
        Annotated[BlockedPost, Tag(BLOCKED_POST)],
        Annotated[UnknownNode, Tag(UNKNOWN_NODE)],
    ],
    Discriminator(_node_kind),
]


class GetPostThreadOutput(_UpstreamModel):
    thread: ThreadNode


ThreadViewPost.model_rebuild()
GetPostThreadOutput.model_rebuild()


class AspectRatioView(_UpstreamModel):
    width: PositiveInt
    height: PositiveInt


class ImageView(_UpstreamModel):
    thumb: NonEmptyStr
    fullsize: NonEmptyStr
    alt: str = ""
    aspect_ratio: AspectRatioView | None = Field(None, alias="aspectRatio")


class ImagesView(_UpstreamModel):
    images: list[ImageView] = Field(default_factory=list)


class VideoView(_UpstreamModel):
    playlist: NonEmptyStr
    thumbnail: str | None = None
    alt: str | None = None
    aspect_ratio: AspectRatioView | None = Field(None, alias="aspectRatio")


class ExternalViewExternal(_UpstreamModel):
    uri: NonEmptyStr
    title: str = ""
    description: str = ""
    thumb: str | None = None


class ExternalView(_UpstreamModel):
    external: ExternalViewExternal


class RecordWithMediaView(_UpstreamModel):
    media: dict[str, Any]
