from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

WEB_BASE_URL = "https://bsky.app"


@dataclass(frozen=True)
class Author:
    did: str
    handle: str
    display_name: str | None = None
    avatar_url: str | None = None

    @property
    def name(self) -> str:
        """Display name, falling back to the handle when unset or blank."""
        name = (self.display_name or "").strip()
        return name or self.handle

    @property
    def profile_url(self) -> str:
        return f"{WEB_BASE_URL}/profile/{self.handle}"


@dataclass(frozen=True)
class AspectRatio:
    width: int
    height: int


@dataclass(frozen=True)
class EmbedImage:
    thumb_url: str
    fullsize_url: str
    alt: str = ""
    aspect_ratio: AspectRatio | None = None


@dataclass(frozen=True)
class ImageSet:
    images: tuple[EmbedImage, ...]

    def __post_init__(self) -> None:
        if not self.images:
            raise ValueError("ImageSet requires at least one image")


@dataclass(frozen=True)
class Video:
    playlist_url: str
    thumbnail_url: str | None = None
    alt: str | None = None
    aspect_ratio: AspectRatio | None = None


@dataclass(frozen=True)
class ExternalLink:
    uri: str
    title: str = ""
    description: str = ""
    thumb_url: str | None = None


Embed = Union[ImageSet, Video, ExternalLink]


@dataclass(frozen=True)
class Post:
    """One post of a resolved thread, detached from the upstream payload."""

    uri: str
    cid: str
    text: str
    created_at: datetime

    reply_count: int | None = None
    repost_count: int | None = None
    like_count: int | None = None

    embed: Embed | None = None
    langs: tuple[str, ...] = ()

    @property
    def post_id(self) -> str:
        # at://did:plc:xxx/app.bsky.feed.post/<rkey>
        return self.uri.rstrip("/").rsplit("/", 1)[-1]

    def web_url(self, handle: str) -> str:
        return f"{WEB_BASE_URL}/profile/{handle}/post/{self.post_id}"


@dataclass(frozen=True)
class Thread:
    """
    A self-reply chain by a single author, root first.

    Construction enforces that the chain is non-empty and that post URIs are unique.
    """

    author: Author
    posts: tuple[Post, ...]

    def __post_init__(self) -> None:
        if not self.posts:
            raise ValueError("Thread requires at least one post")

        seen: set[str] = set()
        for post in self.posts:
            if post.uri in seen:
                raise ValueError(f"Duplicate post in thread: {post.uri}")
            seen.add(post.uri)

    @property
    def root(self) -> Post:
        return self.posts[0]

    def primary_language(self, default: str = "en") -> str:
        for tag in self.root.langs:
            lang = (tag or "").strip()
            if lang:
                return lang
        return default

    @property
    def original_post_url(self) -> str:
        return self.root.web_url(self.author.handle)
