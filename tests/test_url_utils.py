import unittest

from insightcourier.ingestion.url_utils import canonicalize_url, link_error, url_hash


class TestUrlUtils(unittest.TestCase):
    def test_canonicalize_strips_tracking_params(self):
        raw = "https://Example.com/path/to/article?utm_source=x&utm_medium=y&id=123&gclid=AAA#section"
        self.assertEqual(canonicalize_url(raw), "https://example.com/path/to/article?id=123")

    def test_hash_is_stable_for_equivalent_urls(self):
        a = "https://example.com/a?utm_source=x&id=1"
        b = "https://example.com/a?id=1&utm_medium=y"
        self.assertEqual(url_hash(a), url_hash(b))

    def test_link_error_accepts_http_links(self):
        self.assertIsNone(link_error("https://example.com/post/1"))
        self.assertIsNone(link_error("http://example.com"))

    def test_link_error_rejects_unusable_links(self):
        self.assertEqual(link_error("/relative/path"), "bad_scheme")
        self.assertEqual(link_error("ftp://example.com/file"), "bad_scheme")
        self.assertEqual(link_error("https://"), "missing_host")


if __name__ == "__main__":
    unittest.main()
