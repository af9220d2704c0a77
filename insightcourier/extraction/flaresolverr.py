"""FlareSolverr client.

FlareSolverr renders a page in a headless browser, solving bot challenges on
the way, and hands back the final HTML. Only the `request.get` command is used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from insightcourier.errors import RetrievalError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolverResponse:
    status: str
    html: str = ""
    message: Optional[str] = None
    solution_url: Optional[str] = None
    solution_status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def raise_for_status(self) -> None:
        if not self.ok:
            raise RetrievalError(f"unexpected FlareSolverr status: status={self.status} message={self.message}")

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SolverResponse":
        solution = data.get("solution") or {}
        return cls(
            status=str(data.get("status") or "error"),
            message=data.get("message") or None,
            html=solution.get("response") or "",
            solution_url=solution.get("url") or None,
            solution_status=solution.get("status"),
        )


@dataclass(frozen=True)
class FlareSolverr:
    """Anti-bot retriever backed by a FlareSolverr endpoint (e.g. http://host:8191/v1)."""

    url: str
    max_timeout_ms: int = 60000
    # Leave room over maxTimeout for FlareSolverr's own bookkeeping.
    http_timeout: float = 90.0

    def retrieve(self, url: str, *, disable_media: bool = False, max_timeout_ms: Optional[int] = None) -> SolverResponse:
        """Fetch `url` through FlareSolverr; `max_timeout_ms` overrides the client default for this call."""
        timeout_ms = self.max_timeout_ms if max_timeout_ms is None else max_timeout_ms
        payload = {
            "cmd": "request.get",
            "url": url,
            "maxTimeout": timeout_ms,
            "disableMedia": disable_media,
        }
        try:
            resp = requests.post(self.url, json=payload, timeout=max(self.http_timeout, timeout_ms / 1000.0 + 30))
        except requests.RequestException as e:
            raise RetrievalError(f"unable to make FlareSolverr request for {url}: {e}") from e

        # FlareSolverr answers challenge failures with HTTP 500 and a JSON body,
        # so decode before looking at the status code.
        try:
            data = resp.json()
        except ValueError as e:
            raise RetrievalError(f"unable to decode FlareSolverr response (HTTP {resp.status_code}) for {url}") from e
        if not isinstance(data, dict):
            raise RetrievalError(f"unexpected FlareSolverr payload for {url}")

        result = SolverResponse.from_json(data)
        logger.debug(f"FlareSolverr {url}: status={result.status} upstream={result.solution_status}")
        return result
