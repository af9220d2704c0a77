"""Error kinds raised by the ingestion collaborators.

Collaborators raise; the worker's cycle boundary catches, logs and rolls back.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for failures inside an ingestion cycle."""


class ConfigError(IngestError):
    """Invalid or missing configuration (fatal at startup)."""


class FetchError(IngestError):
    """Feed could not be downloaded or parsed."""


class RetrievalError(IngestError):
    """Anti-bot proxy could not return the page."""


class ExtractionError(IngestError):
    """Page content could not be turned into an article."""


class NotifyError(IngestError):
    """Notification channel rejected or failed a delivery."""
