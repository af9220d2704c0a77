import unittest
from datetime import datetime, timezone
from unittest import mock

import feedparser
import requests

from insightcourier.errors import FetchError
from insightcourier.ingestion.rss import RSSFetcher, items_since

FEED_URL = "https://example.com/feed.xml"

RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example</title>
    <link>https://example.com/</link>
    <description>Example feed</description>
    <item>
      <title>Newest</title>
      <link>https://example.com/newest</link>
      <description>Newest summary</description>
      <pubDate>Wed, 01 May 2024 11:50:00 GMT</pubDate>
    </item>
    <item>
      <title>At watermark</title>
      <link>https://example.com/at-watermark</link>
      <pubDate>Wed, 01 May 2024 11:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Older</title>
      <link>https://example.com/older</link>
      <pubDate>Wed, 01 May 2024 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>No link</title>
      <pubDate>Wed, 01 May 2024 11:55:00 GMT</pubDate>
    </item>
    <item>
      <title>Undated</title>
      <link>https://example.com/undated</link>
    </item>
  </channel>
</rss>
"""

WATERMARK = datetime(2024, 5, 1, 11, 0, tzinfo=timezone.utc)
NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class TestItemsSince(unittest.TestCase):
    def setUp(self):
        self.parsed = feedparser.parse(RSS)

    def test_excludes_items_at_or_before_watermark(self):
        items = items_since(self.parsed, FEED_URL, WATERMARK, now=NOW)
        links = [it.link for it in items]
        self.assertEqual(links, ["https://example.com/newest", "https://example.com/undated"])
        for it in items:
            self.assertGreater(it.timestamp, WATERMARK)

    def test_item_fields(self):
        newest = items_since(self.parsed, FEED_URL, WATERMARK, now=NOW)[0]
        self.assertEqual(newest.title, "Newest")
        self.assertEqual(newest.description, "Newest summary")
        self.assertEqual(newest.source, FEED_URL)
        self.assertEqual(newest.timestamp, datetime(2024, 5, 1, 11, 50, tzinfo=timezone.utc))

    def test_undated_item_uses_now(self):
        items = items_since(self.parsed, FEED_URL, WATERMARK, now=NOW)
        self.assertEqual(items[-1].timestamp, NOW)

    def test_updated_time_wins_over_published(self):
        atom = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom</title>
  <id>urn:example</id>
  <updated>2024-05-01T11:40:00Z</updated>
  <entry>
    <title>Edited</title>
    <id>urn:example:1</id>
    <link href="https://example.com/edited"/>
    <published>2024-05-01T09:00:00Z</published>
    <updated>2024-05-01T11:40:00Z</updated>
  </entry>
</feed>
"""
        items = items_since(feedparser.parse(atom), FEED_URL, WATERMARK, now=NOW)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].timestamp, datetime(2024, 5, 1, 11, 40, tzinfo=timezone.utc))


class TestRSSFetcher(unittest.TestCase):
    @mock.patch("insightcourier.ingestion.rss.requests.get")
    def test_fetch_downloads_and_filters(self, get):
        get.return_value = mock.Mock(content=RSS, raise_for_status=mock.Mock())
        items = RSSFetcher(FEED_URL, source_name="blog").fetch(WATERMARK)
        self.assertIn("https://example.com/newest", [it.link for it in items])
        self.assertNotIn("https://example.com/at-watermark", [it.link for it in items])
        self.assertEqual(get.call_args[0][0], FEED_URL)
        self.assertEqual({it.source for it in items}, {"blog"})

    @mock.patch("insightcourier.ingestion.rss.requests.get")
    def test_transport_error_raises_fetch_error(self, get):
        get.side_effect = requests.ConnectionError("boom")
        with self.assertRaises(FetchError):
            RSSFetcher(FEED_URL).fetch(WATERMARK)

    @mock.patch("insightcourier.ingestion.rss.requests.get")
    def test_http_error_raises_fetch_error(self, get):
        resp = mock.Mock(content=b"")
        resp.raise_for_status.side_effect = requests.HTTPError("503")
        get.return_value = resp
        with self.assertRaises(FetchError):
            RSSFetcher(FEED_URL).fetch(WATERMARK)

    @mock.patch("insightcourier.ingestion.rss.requests.get")
    def test_garbage_raises_fetch_error(self, get):
        get.return_value = mock.Mock(content=b"<html><body>not a feed", raise_for_status=mock.Mock())
        with self.assertRaises(FetchError):
            RSSFetcher(FEED_URL).fetch(WATERMARK)


if __name__ == "__main__":
    unittest.main()
