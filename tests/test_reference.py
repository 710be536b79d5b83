from __future__ import annotations

import unittest

from thread_unroll.errors import BadInputError
from thread_unroll.reference import (
    PostReference,
    parse_post_url,
    parse_reference,
    post_reference,
)


class TestParsePostUrl(unittest.TestCase):
    def test_accepts_canonical_post_url(self) -> None:
        ref = parse_post_url("https://bsky.app/profile/jay.bsky.team/post/3jwdwj2ctlk26")
        self.assertEqual(ref, PostReference(handle="jay.bsky.team", post_id="3jwdwj2ctlk26"))

    def test_accepts_http_trailing_slash_and_query(self) -> None:
        ref = parse_post_url("http://bsky.app/profile/alice.test/post/abc/?ref=share#x")
        self.assertEqual(ref.handle, "alice.test")
        self.assertEqual(ref.post_id, "abc")

    def test_host_comparison_is_case_insensitive(self) -> None:
        ref = parse_post_url("https://BSKY.app/profile/alice.test/post/abc")
        self.assertEqual(ref.post_id, "abc")

    def test_accepts_did_as_handle_segment(self) -> None:
        ref = parse_post_url("https://bsky.app/profile/did:plc:abc123/post/xyz")
        self.assertEqual(ref.handle, "did:plc:abc123")

    def test_custom_host(self) -> None:
        ref = parse_post_url("https://example.social/profile/a.b/post/c", host="example.social")
        self.assertEqual(ref.handle, "a.b")

    def test_rejects_wrong_or_lookalike_host(self) -> None:
        for url in (
            "https://example.com/profile/x/post/y",
            "https://bsky.app.evil.com/profile/x/post/y",
            "https://evil.com/bsky.app/profile/x/post/y",
            "https://staging.bsky.app/profile/x/post/y",
        ):
            with self.subTest(url=url):
                with self.assertRaises(BadInputError):
                    parse_post_url(url)

    def test_rejects_port_and_userinfo(self) -> None:
        for url in (
            "https://bsky.app:8443/profile/x/post/y",
            "https://user@bsky.app/profile/x/post/y",
            "https://user:pw@bsky.app/profile/x/post/y",
        ):
            with self.subTest(url=url):
                with self.assertRaises(BadInputError):
                    parse_post_url(url)

    def test_rejects_non_http_schemes(self) -> None:
        for url in (
            "ftp://bsky.app/profile/x/post/y",
            "javascript://bsky.app/profile/x/post/y",
            "bsky.app/profile/x/post/y",
        ):
            with self.subTest(url=url):
                with self.assertRaises(BadInputError):
                    parse_post_url(url)

    def test_rejects_non_post_paths(self) -> None:
        for url in (
            "https://bsky.app/profile/alice.test",
            "https://bsky.app/profile/alice.test/post",
            "https://bsky.app/profile/alice.test/post/",
            "https://bsky.app/profile//post/abc",
            "https://bsky.app/profile/alice.test/post/abc/extra",
            "https://bsky.app/profile/alice.test/feed/abc",
            "https://bsky.app/",
        ):
            with self.subTest(url=url):
                with self.assertRaises(BadInputError):
                    parse_post_url(url)

    def test_rejects_garbage(self) -> None:
        for url in ("not a url", "", "   ", "https://[::1"):
            with self.subTest(url=url):
                with self.assertRaises(BadInputError):
                    parse_post_url(url)

    def test_bad_input_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            parse_post_url("not a url")


class TestParseReference(unittest.TestCase):
    def test_accepts_bare_path(self) -> None:
        ref = parse_reference("/profile/alice.test/post/abc")
        self.assertEqual(ref, PostReference(handle="alice.test", post_id="abc"))

    def test_accepts_full_url(self) -> None:
        ref = parse_reference("  https://bsky.app/profile/alice.test/post/abc  ")
        self.assertEqual(ref.post_id, "abc")

    def test_protocol_relative_url_is_not_a_path(self) -> None:
        with self.assertRaises(BadInputError):
            parse_reference("//evil.com/profile/alice.test/post/abc")


class TestPostReference(unittest.TestCase):
    def test_strips_and_validates_segments(self) -> None:
        ref = post_reference("  alice.test ", " abc ")
        self.assertEqual(ref, PostReference(handle="alice.test", post_id="abc"))

    def test_rejects_empty_or_multi_segment_values(self) -> None:
        for handle, post_id in (("", "abc"), ("alice", ""), ("a/b", "c"), ("a", "b c")):
            with self.subTest(handle=handle, post_id=post_id):
                with self.assertRaises(BadInputError):
                    post_reference(handle, post_id)

    def test_at_uri(self) -> None:
        ref = PostReference(handle="alice.test", post_id="abc")
        self.assertEqual(ref.at_uri("did:plc:1"), "at://did:plc:1/app.bsky.feed.post/abc")


if __name__ == "__main__":
    unittest.main()
