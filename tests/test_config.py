import json
import os
import tempfile
import unittest
from unittest import mock

from insightcourier.config import DEFAULT_UPDATE_INTERVAL, Config, parse_interval
from insightcourier.errors import ConfigError

ENV = {
    "IC_TG_BOT_API_KEY": "123456:ABCDEF",
    "IC_TG_CHAT_ID": "-100200300",
}


class TestParseInterval(unittest.TestCase):
    def test_duration_strings(self):
        self.assertEqual(parse_interval("90s"), 90.0)
        self.assertEqual(parse_interval("5m"), 300.0)
        self.assertEqual(parse_interval("1h30m"), 5400.0)
        self.assertEqual(parse_interval("250ms"), 0.25)

    def test_numbers_are_seconds(self):
        self.assertEqual(parse_interval(30), 30.0)
        self.assertEqual(parse_interval(1.5), 1.5)

    def test_invalid_values(self):
        for bad in ("", "soon", "5", "5x", "m5", True):
            with self.assertRaises(ValueError):
                parse_interval(bad)

    def test_nanosecond_sized_numbers_rejected(self):
        with self.assertRaises(ValueError):
            parse_interval(300000000000)
        with self.assertRaises(ValueError):
            parse_interval("200h")
        self.assertEqual(parse_interval("168h"), 7 * 24 * 3600.0)


class TestConfigFromEnv(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        patcher = mock.patch("insightcourier.config.load_dotenv")
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        self.tmp.cleanup()

    def write_sources(self, sources):
        path = os.path.join(self.tmp.name, "sources.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"rssSources": sources}, f)
        return path

    def load(self, path, **extra):
        env = dict(ENV, **extra)
        with mock.patch.dict(os.environ, env, clear=True):
            return Config.from_env(path)

    def test_loads_sources_and_env(self):
        path = self.write_sources(
            {
                "blog": {"feedUrl": "https://example.com/feed.xml", "updateInterval": "10m"},
                "news": {"feedUrl": "https://news.example.com/rss", "updateInterval": 45},
            }
        )
        config = self.load(path, IC_STORAGE_DSN="sqlite:///tmp/x.db", IC_QUEUE_SIZE="5")

        self.assertEqual(set(config.sources), {"blog", "news"})
        self.assertEqual(config.sources["blog"].update_interval, 600.0)
        self.assertEqual(config.sources["news"].update_interval, 45.0)
        self.assertEqual(config.telegram_chat_id, "-100200300")
        self.assertEqual(config.storage_dsn, "sqlite:///tmp/x.db")
        self.assertEqual(config.queue_size, 5)

    def test_config_path_from_env(self):
        path = self.write_sources({"blog": {"feedUrl": "https://example.com/feed.xml"}})
        with mock.patch.dict(os.environ, dict(ENV, IC_CONFIG_PATH=path), clear=True):
            config = Config.from_env()
        self.assertIn("blog", config.sources)

    def test_missing_interval_defaults_to_five_minutes(self):
        path = self.write_sources(
            {
                "a": {"feedUrl": "https://example.com/a.xml"},
                "b": {"feedUrl": "https://example.com/b.xml", "updateInterval": 0},
            }
        )
        config = self.load(path)
        self.assertEqual(config.sources["a"].update_interval, DEFAULT_UPDATE_INTERVAL)
        self.assertEqual(config.sources["b"].update_interval, DEFAULT_UPDATE_INTERVAL)

    def test_non_positive_interval_rejected(self):
        path = self.write_sources({"blog": {"feedUrl": "https://example.com/feed.xml", "updateInterval": "0s"}})
        with self.assertRaises(ConfigError) as cm:
            self.load(path)
        self.assertIn("updateInterval must be positive", str(cm.exception))

    def test_duration_number_in_nanoseconds_rejected(self):
        path = self.write_sources({"blog": {"feedUrl": "https://example.com/feed.xml", "updateInterval": 300000000000}})
        with self.assertRaises(ConfigError) as cm:
            self.load(path)
        self.assertIn("numbers are seconds", str(cm.exception))

    def test_missing_credentials_reported_together(self):
        path = self.write_sources({"blog": {"feedUrl": "https://example.com/feed.xml"}})
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ConfigError) as cm:
                Config.from_env(path)
        message = str(cm.exception)
        self.assertIn("IC_TG_BOT_API_KEY", message)
        self.assertIn("IC_TG_CHAT_ID", message)

    def test_malformed_token(self):
        path = self.write_sources({"blog": {"feedUrl": "https://example.com/feed.xml"}})
        with self.assertRaises(ConfigError):
            self.load(path, IC_TG_BOT_API_KEY="no-colon-here")

    def test_missing_feed_url(self):
        path = self.write_sources({"blog": {"updateInterval": "5m"}})
        with self.assertRaises(ConfigError) as cm:
            self.load(path)
        self.assertIn("feedUrl is required", str(cm.exception))

    def test_unreadable_file(self):
        with self.assertRaises(ConfigError):
            self.load(os.path.join(self.tmp.name, "missing.json"))

    def test_no_sources(self):
        path = self.write_sources({})
        with self.assertRaises(ConfigError):
            self.load(path)

    def test_bad_integer_env(self):
        path = self.write_sources({"blog": {"feedUrl": "https://example.com/feed.xml"}})
        with self.assertRaises(ConfigError):
            self.load(path, IC_QUEUE_SIZE="lots")


if __name__ == "__main__":
    unittest.main()
