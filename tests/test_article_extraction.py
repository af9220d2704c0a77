import unittest

from insightcourier.errors import ExtractionError
from insightcourier.extraction.article import extract_article, html_language

PARAGRAPHS = [
    "The city council voted on Tuesday to expand the network of protected bike lanes across the "
    "downtown core, a decision that followed nearly two years of public consultation and debate.",
    "Supporters argued that the new lanes would reduce traffic injuries and encourage more residents "
    "to commute by bicycle, while several business owners raised concerns about lost parking spaces.",
    "According to the transportation department, construction will begin in early spring and is "
    "expected to last roughly eighteen months, with the busiest corridors prioritized first.",
    "The plan also includes new signal timing at forty intersections, wider sidewalks near schools, "
    "and a pilot program for secure bicycle parking at the main transit stations.",
    "Council members said they would review injury data every six months and adjust the design of "
    "individual corridors if the expected safety improvements did not materialize.",
]

HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <title>Council approves bike lane expansion</title>
  <meta name="description" content="The council backed a downtown bike lane plan.">
</head>
<body>
  <nav><a href="/">Home</a> <a href="/news">News</a></nav>
  <article>
    <h1>Council approves bike lane expansion</h1>
    %s
  </article>
  <footer>Copyright Example News</footer>
</body>
</html>
""" % "\n    ".join(f"<p>{p}</p>" for p in PARAGRAPHS)


class TestExtractArticle(unittest.TestCase):
    def test_extracts_title_text_excerpt_language(self):
        article = extract_article(HTML, "https://example.com/news/bike-lanes")
        self.assertIn("bike lane", article.title.lower())
        self.assertIn("protected bike lanes", article.text)
        self.assertNotIn("Copyright Example News", article.text)
        self.assertEqual(article.excerpt, "The council backed a downtown bike lane plan.")
        self.assertEqual(article.language, "en")

    def test_empty_document_raises(self):
        with self.assertRaises(ExtractionError):
            extract_article("   ", "https://example.com/empty")

    def test_html_language_fallback(self):
        self.assertEqual(html_language('<html class="x" lang="pt-BR"><body></body></html>'), "pt-br")
        self.assertIsNone(html_language("<html><body></body></html>"))


if __name__ == "__main__":
    unittest.main()
