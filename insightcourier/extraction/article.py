"""Readable-article extraction.

trafilatura does the heavy lifting; this module only normalizes its output
into the fields the store needs.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Optional

import trafilatura

from insightcourier.errors import ExtractionError

EXCERPT_CHARS = 500

_HTML_LANG = re.compile(r"<html\b[^>]*?\blang\s*=\s*[\"']?([A-Za-z]{2,3}(?:[-_][A-Za-z0-9]+)*)", re.IGNORECASE)


@dataclass(frozen=True)
class ExtractedArticle:
    title: str
    text: str
    excerpt: str
    language: Optional[str] = None


def html_language(html: str) -> Optional[str]:
    m = _HTML_LANG.search(html or "")
    return m.group(1).lower() if m else None


def extract_article(html: str, base_url: str) -> ExtractedArticle:
    """Extract title, plain text, excerpt and language from rendered HTML."""
    if not html or not html.strip():
        raise ExtractionError(f"empty document for {base_url}")
    try:
        raw = trafilatura.extract(
            html,
            url=base_url,
            output_format="json",
            with_metadata=True,
            include_comments=False,
            include_tables=False,
        )
    except Exception as e:
        # trafilatura surfaces lxml/parser errors as assorted exception types
        raise ExtractionError(f"failed to parse article at {base_url}: {e}") from e
    if not raw:
        raise ExtractionError(f"no article content found at {base_url}")

    data = json.loads(raw)
    text = (data.get("text") or "").strip()
    if not text:
        raise ExtractionError(f"no article content found at {base_url}")

    excerpt = (data.get("excerpt") or "").strip() or text[:EXCERPT_CHARS]
    return ExtractedArticle(
        title=(data.get("title") or "").strip(),
        text=text,
        excerpt=excerpt,
        language=data.get("language") or html_language(html),
    )
