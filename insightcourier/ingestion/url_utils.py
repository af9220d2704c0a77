"""URL helpers for article links."""

from __future__ import annotations

import hashlib
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "gclid",
        "fbclid",
        "mc_cid",
        "mc_eid",
    }
)


def canonicalize_url(url: str) -> str:
    """Lowercase scheme/host, drop the fragment and tracking params, sort the rest."""
    if not url:
        return ""
    p = urlparse(url.strip())
    kept = sorted(
        (k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if k.lower() not in TRACKING_PARAMS
    )
    return urlunparse(
        ((p.scheme or "https").lower(), p.netloc.lower(), p.path or "/", "", urlencode(kept), "")
    )


def url_hash(url: str) -> str:
    return hashlib.sha256(canonicalize_url(url).encode("utf-8")).hexdigest()


def link_error(url: str) -> Optional[str]:
    """Return a reason string if `url` is not an absolute http(s) link."""
    try:
        p = urlparse(url or "")
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    if not p.hostname:
        return "missing_host"
    return None
