from __future__ import annotations

import re
import unittest
from datetime import datetime, timezone

from thread_unroll.config_schema import SiteConfig
from thread_unroll.post import (
    AspectRatio,
    Author,
    EmbedImage,
    ExternalLink,
    ImageSet,
    Post,
    Thread,
    Video,
)
from thread_unroll.render import (
    escape_attr,
    escape_text,
    linkify,
    render_external,
    render_images,
    render_post,
    render_thread,
    render_video,
    truncate_for_description,
)

_AUTHOR = Author(did="did:plc:alice", handle="alice.test", display_name="Alice")
_WHEN = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
_ENTITY_RE = re.compile(r"&(?:amp|lt|gt|quot|#x27|#10|#13|#9);")


def _post(text: str = "hello", rkey: str = "p0", **kwargs) -> Post:
    return Post(
        uri=f"at://did:plc:alice/app.bsky.feed.post/{rkey}",
        cid=f"bafy{rkey}",
        text=text,
        created_at=_WHEN,
        **kwargs,
    )


def _post_text(fragment: str) -> str:
    return fragment.split('<div class="post-text">', 1)[1].split("</div>", 1)[0]


def _assert_inert(test: unittest.TestCase, escaped: str) -> None:
    test.assertNotIn("<", escaped)
    test.assertNotIn(">", escaped)
    test.assertNotIn('"', escaped)
    test.assertNotIn("'", escaped)
    for match in re.finditer("&", escaped):
        test.assertIsNotNone(
            _ENTITY_RE.match(escaped, match.start()),
            msg=f"bare ampersand at {match.start()} in {escaped!r}",
        )


class TestEscaping(unittest.TestCase):
    def test_escape_text_encodes_markup_characters(self) -> None:
        self.assertEqual(
            escape_text("""<a href="x">Tom & 'Jerry'</a>"""),
            "&lt;a href=&quot;x&quot;&gt;Tom &amp; &#x27;Jerry&#x27;&lt;/a&gt;",
        )

    def test_escape_attr_also_encodes_whitespace_controls(self) -> None:
        self.assertEqual(escape_attr('a\n"b"\tc'), "a&#10;&quot;b&quot;&#9;c")

    def test_escaping_is_total(self) -> None:
        class Broken:
            def __str__(self) -> str:
                raise RuntimeError("no")

        self.assertEqual(escape_text(None), "")
        self.assertEqual(escape_text(42), "42")
        self.assertEqual(escape_text(Broken()), "")
        self.assertEqual(escape_text("a\ud800b\x00c"), "a\ufffdb\ufffdc")

    def test_hostile_inputs_stay_inert(self) -> None:
        for value in (
            '<script>alert("x")</script>',
            "&lt;already escaped&gt;",
            "\" onerror='alert(1)",
            "</textarea><img src=x>",
        ):
            with self.subTest(value=value):
                _assert_inert(self, escape_text(value))
                _assert_inert(self, escape_attr(value))


class TestLinkify(unittest.TestCase):
    def test_wraps_urls_with_safe_anchor(self) -> None:
        out = linkify(escape_text("see https://example.com/a?b=1&c=2 now"))

        self.assertIn(
            '<a href="https://example.com/a?b=1&amp;c=2" target="_blank" '
            'rel="noopener noreferrer">https://example.com/a?b=1&amp;c=2</a>',
            out,
        )
        self.assertTrue(out.startswith("see "))
        self.assertTrue(out.endswith(" now"))

    def test_long_link_text_is_truncated_but_href_is_not(self) -> None:
        url = "https://example.com/" + "a" * 50

        out = linkify(escape_text(url))

        self.assertIn(f'href="{url}"', out)
        self.assertIn(f">{url[:37]}...</a>", out)

    def test_url_stops_at_escaped_quote(self) -> None:
        out = linkify(escape_text('"https://x.org" and <https://y.org>'))

        self.assertIn('href="https://x.org"', out)
        self.assertIn('href="https://y.org"', out)
        self.assertIn("&quot; and &lt;", out)

    def test_non_http_schemes_are_not_linked(self) -> None:
        out = linkify(escape_text("javascript:alert(1) ftp://x.org"))
        self.assertNotIn("<a", out)


class TestRenderPost(unittest.TestCase):
    def test_post_text_is_escaped(self) -> None:
        fragment = render_post(_post("""<b>hi</b> & "bye" 'x'"""), _AUTHOR)

        text = _post_text(fragment)
        _assert_inert(self, text)
        self.assertIn("&lt;b&gt;hi&lt;/b&gt; &amp; &quot;bye&quot; &#x27;x&#x27;", text)

    def test_meta_links_to_post_and_shows_positive_counts(self) -> None:
        fragment = render_post(_post(like_count=5, repost_count=0), _AUTHOR)

        self.assertIn('id="post-p0"', fragment)
        self.assertIn('href="https://bsky.app/profile/alice.test/post/p0"', fragment)
        self.assertIn('datetime="2024-05-01T12:00:00+00:00"', fragment)
        self.assertIn("May 01, 2024 at 12:00 UTC", fragment)
        self.assertIn("5 likes", fragment)
        self.assertNotIn("reposts", fragment)

    def test_unknown_counts_are_not_shown(self) -> None:
        fragment = render_post(_post(), _AUTHOR)
        self.assertNotIn("likes", fragment)


class TestRenderEmbeds(unittest.TestCase):
    def test_image_layouts_and_alt_escaping(self) -> None:
        img = EmbedImage(
            thumb_url="https://t/1",
            fullsize_url="https://f/1",
            alt='a "quoted" <alt>',
            aspect_ratio=AspectRatio(4, 3),
        )
        single = render_images(ImageSet(images=(img,)))
        self.assertIn('class="embed-images single"', single)
        self.assertIn('alt="a &quot;quoted&quot; &lt;alt&gt;"', single)
        self.assertIn('style="aspect-ratio: 4 / 3;"', single)
        self.assertIn('loading="lazy"', single)

        self.assertIn('class="embed-images double"', render_images(ImageSet(images=(img, img))))
        self.assertIn('class="embed-images grid"', render_images(ImageSet(images=(img,) * 3)))

    def test_video_defaults(self) -> None:
        out = render_video(Video(playlist_url="https://v/p.m3u8"))

        self.assertIn("aspect-ratio: 16 / 9;", out)
        self.assertIn('aria-label="Video"', out)
        self.assertNotIn("poster=", out)
        self.assertIn('<source src="https://v/p.m3u8" type="application/x-mpegURL">', out)

    def test_video_with_poster_and_alt(self) -> None:
        out = render_video(
            Video(
                playlist_url="https://v/p.m3u8",
                thumbnail_url="https://v/t.jpg",
                alt="A <clip>",
                aspect_ratio=AspectRatio(9, 16),
            )
        )

        self.assertIn('poster="https://v/t.jpg"', out)
        self.assertIn('aria-label="A &lt;clip&gt;"', out)
        self.assertIn("aspect-ratio: 9 / 16;", out)

    def test_external_link_card(self) -> None:
        out = render_external(
            ExternalLink(uri="https://example.org", title="<T>", description="D & E")
        )

        self.assertTrue(out.startswith('<a href="https://example.org"'))
        self.assertIn("&lt;T&gt;", out)
        self.assertIn("D &amp; E", out)

    def test_image_with_script_fullsize_is_not_wrapped_in_a_link(self) -> None:
        out = render_images(
            ImageSet(images=(EmbedImage("https://cdn/x.jpg", "javascript:alert(document.cookie)"),))
        )

        self.assertNotIn("javascript", out)
        self.assertNotIn("<a ", out)
        self.assertIn('<img src="https://cdn/x.jpg"', out)

    def test_images_with_unsafe_thumbs_are_dropped(self) -> None:
        good = EmbedImage("https://cdn/ok.jpg", "https://cdn/ok-full.jpg")
        bad = EmbedImage("data:image/svg+xml,<svg onload=alert(1)>", "https://cdn/full.jpg")

        out = render_images(ImageSet(images=(bad, good)))
        self.assertIn('class="embed-images single"', out)
        self.assertNotIn("data:", out)

        self.assertEqual(render_images(ImageSet(images=(bad,))), "")

    def test_video_with_unsafe_urls(self) -> None:
        self.assertEqual(render_video(Video(playlist_url="javascript:alert(1)")), "")

        out = render_video(
            Video(playlist_url="https://v/p.m3u8", thumbnail_url="javascript:alert(1)")
        )
        self.assertNotIn("poster=", out)
        self.assertNotIn("javascript", out)

    def test_external_with_unsafe_thumb_omits_it(self) -> None:
        out = render_external(
            ExternalLink(uri="https://example.org", title="x", thumb_url="javascript:alert(1)")
        )

        self.assertNotIn("external-thumb", out)
        self.assertNotIn("javascript", out)

    def test_external_with_unsafe_uri_is_not_a_link(self) -> None:
        out = render_external(ExternalLink(uri="javascript:alert(1)", title="x"))

        self.assertTrue(out.startswith('<div class="embed-external">'))
        self.assertNotIn("href", out)
        self.assertNotIn("javascript", out)


class TestRenderThread(unittest.TestCase):
    def _thread(self, *, langs: tuple[str, ...] = (), avatar: str | None = None) -> Thread:
        author = Author(
            did="did:plc:alice",
            handle="alice.test",
            display_name='Alice "A" <Admin>',
            avatar_url=avatar,
        )
        return Thread(
            author=author,
            posts=(_post("first " + "word " * 60, "p0", langs=langs), _post("second", "p1")),
        )

    def test_language_comes_from_root_post(self) -> None:
        self.assertEqual(render_thread(self._thread(langs=("ja",))).lang, "ja")
        self.assertEqual(render_thread(self._thread(langs=(" ", "pt-BR"))).lang, "pt-BR")

    def test_language_falls_back_to_default(self) -> None:
        self.assertEqual(render_thread(self._thread()).lang, "en")
        self.assertEqual(
            render_thread(self._thread(), SiteConfig(default_lang="fr")).lang, "fr"
        )
        self.assertEqual(render_thread(self._thread(langs=('en"><script>',))).lang, "en")

    def test_icon_is_author_avatar(self) -> None:
        self.assertIsNone(render_thread(self._thread()).icon_url)
        rendered = render_thread(self._thread(avatar="https://cdn/a.jpg?x=1&y=2"))
        self.assertEqual(rendered.icon_url, "https://cdn/a.jpg?x=1&amp;y=2")

    def test_metadata_is_escaped_and_bounded(self) -> None:
        rendered = render_thread(self._thread(), SiteConfig(site_name="Unroll"))

        self.assertEqual(rendered.title, "Thread by @alice.test - Unroll")
        self.assertEqual(
            rendered.canonical_url, "https://thread-unroll.app/profile/alice.test/post/p0"
        )
        self.assertLessEqual(len(rendered.description), 163)
        self.assertTrue(rendered.description.endswith("..."))
        self.assertIn("Alice &quot;A&quot; &lt;Admin&gt;", rendered.header)
        self.assertEqual(len(rendered.posts), 2)
        self.assertIn("View original on Bluesky", rendered.footer)
        self.assertIn('<main class="thread">', rendered.body)

    def test_unsafe_avatar_falls_back_to_placeholder(self) -> None:
        rendered = render_thread(self._thread(avatar="javascript:alert(1)"))

        self.assertIsNone(rendered.icon_url)
        self.assertIn('class="avatar-placeholder"', rendered.header)
        self.assertNotIn("javascript", rendered.header)

    def test_avatar_placeholder_uses_initial(self) -> None:
        rendered = render_thread(self._thread())
        self.assertIn('class="avatar-placeholder"', rendered.header)
        self.assertIn(">A</div>", rendered.header)

    def test_truncate_for_description(self) -> None:
        self.assertEqual(truncate_for_description("  a\n b  "), "a b")
        self.assertEqual(truncate_for_description("alpha beta gamma", limit=12), "alpha beta...")


if __name__ == "__main__":
    unittest.main()
