from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any, assert_never
from urllib.parse import quote, urlsplit
from xml.sax.saxutils import escape

from .config_schema import SiteConfig
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

LINK_TEXT_LIMIT = 40
DESCRIPTION_LIMIT = 160
_ELLIPSIS = "..."

_TEXT_ENTITIES = {'"': "&quot;", "'": "&#x27;"}
_ATTR_ENTITIES = {
    '"': "&quot;",
    "'": "&#x27;",
    "\n": "&#10;",
    "\r": "&#13;",
    "\t": "&#9;",
}

# Lone surrogates cannot be encoded as UTF-8; NUL is rewritten by HTML parsers.
_UNSAFE_CHARS_RE = re.compile("[\ud800-\udfff\x00]")

# Runs inside already-escaped text: stop at whitespace, angle brackets and at the
# entities escaping introduced for quotes and angle brackets.
_URL_RE = re.compile(r"https?://(?:(?!&quot;|&#x27;|&lt;|&gt;)[^\s<>])+", re.IGNORECASE)

_LANG_RE = re.compile(r"^[A-Za-z]{2,8}(?:-[A-Za-z0-9]{1,8})*$")


def _safe_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        s = value
    else:
        try:
            s = str(value)
        except Exception:
            return ""
    return _UNSAFE_CHARS_RE.sub("\ufffd", s)


def escape_text(value: Any) -> str:
    """Encode a value for HTML body text. Total: never raises."""
    return escape(_safe_str(value), _TEXT_ENTITIES)


def escape_attr(value: Any) -> str:
    """Encode a value for a double- or single-quoted attribute. Total: never raises."""
    return escape(_safe_str(value), _ATTR_ENTITIES)


def is_web_link(uri: str) -> bool:
    try:
        parts = urlsplit((uri or "").strip())
        host = parts.hostname
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(host)


def _truncate_link_text(url: str) -> str:
    if len(url) <= LINK_TEXT_LIMIT:
        return url
    return url[: LINK_TEXT_LIMIT - len(_ELLIPSIS)] + _ELLIPSIS


def _anchor(match: re.Match[str]) -> str:
    url = html.unescape(match.group(0))
    return (
        f'<a href="{escape_attr(url)}" target="_blank" rel="noopener noreferrer">'
        f"{escape_text(_truncate_link_text(url))}</a>"
    )


def linkify(escaped: str) -> str:
    """Turn bare http(s) URLs in already-escaped text into anchors."""
    return _URL_RE.sub(_anchor, escaped)


def truncate_for_description(text: str, limit: int = DESCRIPTION_LIMIT) -> str:
    s = " ".join((text or "").split())
    if len(s) <= limit:
        return s
    cut = s[:limit]
    space = cut.rfind(" ")
    if space > 0:
        cut = cut[:space]
    return cut + _ELLIPSIS


def _aspect_style(ratio: AspectRatio | None, default: str = "") -> str:
    if ratio is None:
        return default
    return f"aspect-ratio: {int(ratio.width)} / {int(ratio.height)};"


def _web_link_or_none(uri: str | None) -> str | None:
    """The stripped URI when it is an http(s) link, else None."""
    if not isinstance(uri, str) or not is_web_link(uri):
        return None
    return uri.strip()


def render_avatar(avatar_url: str | None, name: str) -> str:
    avatar_url = _web_link_or_none(avatar_url)
    if avatar_url:
        return (
            f'<img class="avatar" src="{escape_attr(avatar_url)}" '
            f"alt=\"{escape_attr(name)}'s avatar\">"
        )
    initial = (name.strip()[:1] or "?").upper()
    return (
        f'<div class="avatar-placeholder" role="img" '
        f"aria-label=\"{escape_attr(name)}'s avatar\">{escape_text(initial)}</div>"
    )


def _render_image(img: EmbedImage) -> str:
    thumb = _web_link_or_none(img.thumb_url)
    if thumb is None:
        return ""

    style = _aspect_style(img.aspect_ratio)
    style_attr = f' style="{style}"' if style else ""
    tag = (
        f'<img src="{escape_attr(thumb)}" alt="{escape_attr(img.alt)}" '
        f'class="embed-image"{style_attr} loading="lazy" decoding="async">'
    )

    fullsize = _web_link_or_none(img.fullsize_url)
    if fullsize is None:
        return tag
    return (
        f'<a href="{escape_attr(fullsize)}" target="_blank" '
        f'rel="noopener noreferrer" class="embed-image-link">{tag}</a>'
    )


def render_images(images: ImageSet) -> str:
    rendered = [tag for tag in (_render_image(img) for img in images.images) if tag]
    if not rendered:
        return ""
    count = len(rendered)
    layout = "single" if count == 1 else "double" if count == 2 else "grid"
    return f'<div class="embed-images {layout}">{"".join(rendered)}</div>'


def render_video(video: Video) -> str:
    playlist = _web_link_or_none(video.playlist_url)
    if playlist is None:
        return ""

    style = _aspect_style(video.aspect_ratio, default="aspect-ratio: 16 / 9;")
    thumbnail = _web_link_or_none(video.thumbnail_url)
    poster = f' poster="{escape_attr(thumbnail)}"' if thumbnail else ""
    label = video.alt or "Video"
    return (
        f'<div class="embed-video" style="{style}">'
        f'<video controls playsinline preload="metadata"{poster} '
        f'aria-label="{escape_attr(label)}">'
        f'<source src="{escape_attr(playlist)}" type="application/x-mpegURL">'
        "Your browser does not support HLS video."
        "</video></div>"
    )


def render_external(link: ExternalLink) -> str:
    thumb = ""
    thumb_url = _web_link_or_none(link.thumb_url)
    if thumb_url:
        thumb = (
            f'<img src="{escape_attr(thumb_url)}" alt="" '
            f'class="external-thumb" loading="lazy">'
        )

    info = (
        '<div class="external-info">'
        f'<div class="external-title">{escape_text(link.title)}</div>'
        f'<div class="external-description">{escape_text(link.description)}</div>'
        "</div>"
    )

    if not is_web_link(link.uri):
        return f'<div class="embed-external">{thumb}{info}</div>'

    return (
        f'<a href="{escape_attr(link.uri.strip())}" target="_blank" '
        f'rel="noopener noreferrer" class="embed-external">{thumb}{info}</a>'
    )


def render_embed(embed: Embed) -> str:
    if isinstance(embed, ImageSet):
        return render_images(embed)
    if isinstance(embed, Video):
        return render_video(embed)
    if isinstance(embed, ExternalLink):
        return render_external(embed)
    assert_never(embed)


def _post_meta(post: Post) -> str:
    created = post.created_at
    parts = [
        f'<time datetime="{escape_attr(created.isoformat())}">'
        f'{escape_text(created.strftime("%b %d, %Y at %H:%M UTC"))}</time>'
    ]
    if post.like_count:
        parts.append(f"{int(post.like_count)} likes")
    if post.repost_count:
        parts.append(f"{int(post.repost_count)} reposts")
    return " &middot; ".join(parts)


def render_post(post: Post, author: Author) -> str:
    text = linkify(escape_text(post.text))
    embed = render_embed(post.embed) if post.embed is not None else ""
    return (
        f'<article class="post" id="post-{escape_attr(post.post_id)}">\n'
        f'    <div class="post-text">{text}</div>\n'
        f"    {embed}\n"
        f'    <a href="{escape_attr(post.web_url(author.handle))}" target="_blank" '
        f'rel="noopener noreferrer" class="post-meta">{_post_meta(post)}</a>\n'
        "</article>\n"
    )


def render_header(author: Author) -> str:
    name = author.name
    return (
        '<header class="thread-header">\n'
        f'    <a href="{escape_attr(author.profile_url)}" target="_blank" '
        'rel="noopener noreferrer" class="author">\n'
        f"        {render_avatar(author.avatar_url, name)}\n"
        '        <span class="author-info">'
        f'<span class="author-name">{escape_text(name)}</span> '
        f'<span class="author-handle">@{escape_text(author.handle)}</span></span>\n'
        "    </a>\n"
        "</header>\n"
    )


def render_footer(thread: Thread) -> str:
    return (
        "<footer>\n"
        f'    <a href="{escape_attr(thread.original_post_url)}" target="_blank" '
        'rel="noopener noreferrer">View original on Bluesky</a>\n'
        "</footer>\n"
    )


@dataclass(frozen=True)
class RenderedThread:
    """
    Everything the page shell needs. Every field is already escaped.

    Fragments are HTML; the metadata strings are attribute-safe and therefore also safe
    as body text.
    """

    header: str
    posts: tuple[str, ...]
    footer: str

    lang: str
    icon_url: str | None
    title: str
    description: str
    canonical_url: str
    site_name: str

    @property
    def body(self) -> str:
        return (
            self.header
            + '<main class="thread">\n'
            + "".join(self.posts)
            + "</main>\n"
            + self.footer
        )


def _document_lang(thread: Thread, default: str) -> str:
    lang = thread.primary_language(default)
    if not _LANG_RE.fullmatch(lang):
        return default
    return lang


def render_thread(thread: Thread, site: SiteConfig | None = None) -> RenderedThread:
    """Pure transform of a resolved thread into escaped fragments and page metadata."""
    cfg = site or SiteConfig()
    author = thread.author
    icon = _web_link_or_none(author.avatar_url)

    canonical = (
        f"{cfg.public_url}/profile/{quote(author.handle, safe='')}"
        f"/post/{quote(thread.root.post_id, safe='')}"
    )

    return RenderedThread(
        header=render_header(author),
        posts=tuple(render_post(post, author) for post in thread.posts),
        footer=render_footer(thread),
        lang=escape_attr(_document_lang(thread, cfg.default_lang)),
        icon_url=escape_attr(icon) if icon else None,
        title=escape_attr(f"Thread by @{author.handle} - {cfg.site_name}"),
        description=escape_attr(truncate_for_description(thread.root.text)),
        canonical_url=escape_attr(canonical),
        site_name=escape_attr(cfg.site_name),
    )
