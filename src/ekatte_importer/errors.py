"""Exception hierarchy for the EKATTE importer."""

from __future__ import annotations

from typing import Optional


class EkatteImportError(Exception):
    """Base class for import failures."""


class ConfigError(EkatteImportError):
    """Raised for invalid or missing configuration."""


class FetchError(EkatteImportError):
    """Raised when a source URL cannot be retrieved."""

    def __init__(self, url: str, status_code: Optional[int] = None, detail: str = "") -> None:
        self.url = url
        self.status_code = status_code
        if status_code is not None:
            message = f"Failed to fetch {url}: HTTP {status_code}"
        else:
            message = f"Failed to fetch {url}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ShapeError(EkatteImportError):
    """Raised when a fetched payload is not a JSON array."""

    def __init__(self, url: str, detail: str) -> None:
        self.url = url
        super().__init__(f"Unexpected payload from {url}: {detail}")


class StoreError(EkatteImportError):
    """Raised for failures reported by the database during a run."""


class ReconciliationError(EkatteImportError):
    """Raised when a missing town hall cannot be synthesized under the strict policy."""
