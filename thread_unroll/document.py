from __future__ import annotations

from .outcomes import Outcome
from .render import RenderedThread, escape_text

_STYLES = """\
:root { color-scheme: light dark; --fg: #1a1a1a; --muted: #666; --border: #ddd; }
body { margin: 0 auto; max-width: 42rem; padding: 1rem; font: 1.05rem/1.6 system-ui, sans-serif; color: var(--fg); }
.thread-header .author { display: flex; gap: .75rem; align-items: center; text-decoration: none; color: inherit; }
.avatar, .avatar-placeholder { width: 3rem; height: 3rem; border-radius: 50%; }
.avatar-placeholder { display: grid; place-items: center; background: var(--border); font-weight: 600; }
.author-name { font-weight: 600; }
.author-handle, .post-meta { color: var(--muted); }
.post { padding: 1rem 0; border-bottom: 1px solid var(--border); }
.post-text { white-space: pre-wrap; overflow-wrap: anywhere; }
.post-meta { display: block; margin-top: .5rem; font-size: .85rem; text-decoration: none; }
.embed-images { display: grid; gap: .25rem; margin-top: .75rem; }
.embed-images.double, .embed-images.grid { grid-template-columns: 1fr 1fr; }
.embed-image { width: 100%; height: auto; border-radius: .5rem; object-fit: cover; }
.embed-video { margin-top: .75rem; }
.embed-video video { width: 100%; height: 100%; }
.embed-external { display: block; margin-top: .75rem; border: 1px solid var(--border); border-radius: .5rem; overflow: hidden; color: inherit; text-decoration: none; }
.external-thumb { width: 100%; height: auto; }
.external-info { padding: .5rem .75rem; }
.external-title { font-weight: 600; }
.external-description { color: var(--muted); font-size: .9rem; }
footer { padding: 1.5rem 0; text-align: center; }
.error-page { text-align: center; padding: 3rem 0; }
"""


def _social_meta(rendered: RenderedThread) -> str:
    tags = [
        f'<meta name="description" content="{rendered.description}">',
        '<meta property="og:type" content="article">',
        f'<meta property="og:title" content="{rendered.title}">',
        f'<meta property="og:description" content="{rendered.description}">',
        f'<meta property="og:url" content="{rendered.canonical_url}">',
        f'<meta property="og:site_name" content="{rendered.site_name}">',
    ]
    if rendered.icon_url:
        tags.append(f'<meta property="og:image" content="{rendered.icon_url}">')
    tags.extend(
        [
            '<meta name="twitter:card" content="summary">',
            f'<meta name="twitter:title" content="{rendered.title}">',
            f'<meta name="twitter:description" content="{rendered.description}">',
        ]
    )
    if rendered.icon_url:
        tags.append(f'<meta name="twitter:image" content="{rendered.icon_url}">')
    return "\n    ".join(tags)


def _page(*, lang: str, title: str, head_extra: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{lang}">\n'
        "<head>\n"
        '    <meta charset="utf-8">\n'
        '    <meta name="viewport" content="width=device-width, initial-scale=1">\n'
        f"    <title>{title}</title>\n"
        f"    {head_extra}\n"
        f"    <style>{_STYLES}</style>\n"
        "</head>\n"
        "<body>\n"
        f"{body}"
        "</body>\n"
        "</html>\n"
    )


def assemble_page(rendered: RenderedThread) -> str:
    """
    Wrap rendered fragments in the page shell.

    Inputs are inserted verbatim: RenderedThread only carries escaped values.
    """
    head_extra = _social_meta(rendered)
    if rendered.icon_url:
        head_extra += f'\n    <link rel="icon" href="{rendered.icon_url}">'
    head_extra += f'\n    <link rel="canonical" href="{rendered.canonical_url}">'

    return _page(
        lang=rendered.lang,
        title=rendered.title,
        head_extra=head_extra,
        body=rendered.body,
    )


def error_page(outcome: Outcome, *, site_name: str = "thread-unroll") -> str:
    body = (
        '<main class="error-page">\n'
        f"    <h1>{int(outcome.status)}</h1>\n"
        f"    <p>{escape_text(outcome.title)}: {escape_text(outcome.message)}</p>\n"
        "</main>\n"
    )
    title = escape_text(f"{outcome.status} - {outcome.title} - {site_name}")
    return _page(
        lang="en",
        title=title,
        head_extra='<meta name="robots" content="noindex">',
        body=body,
    )

