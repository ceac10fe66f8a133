from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .errors import FetchError, ShapeError
from .models import KINDS, ApiConfig, SourceConfig

LOGGER = logging.getLogger("ekatte.importer.api")

USER_AGENT = "ekatte-importer/1.0"


@dataclass
class RawDatasets:
    """Raw JSON records exactly as served, one list per kind."""

    regions: list[dict[str, Any]] = field(default_factory=list)
    municipalities: list[dict[str, Any]] = field(default_factory=list)
    town_halls: list[dict[str, Any]] = field(default_factory=list)
    territorial_units: list[dict[str, Any]] = field(default_factory=list)


class EkatteApiClient:
    """Async HTTP client for the NSI EKATTE JSON endpoints."""

    def __init__(self, config: Optional[ApiConfig] = None) -> None:
        self._config = config or ApiConfig()
        self._client: Optional[httpx.AsyncClient] = None
        self._headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

    async def __aenter__(self) -> "EkatteApiClient":
        self._client = httpx.AsyncClient(timeout=self._config.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> list[dict[str, Any]]:
        """Fetch one dataset and return its records.

        Raises ``FetchError`` for transport failures and non-2xx responses,
        ``ShapeError`` when the body is not a JSON array.
        """
        if self._client is None:
            raise RuntimeError("HTTP client is not ready")

        request_url = f"{url.rstrip('/')}{self._config.url_suffix}"
        LOGGER.debug("Requesting %s", request_url)
        try:
            response = await self._client.get(request_url, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            LOGGER.error(
                "HTTP %s for %s; response preview: %s",
                status_code,
                request_url,
                exc.response.text[:500],
            )
            raise FetchError(request_url, status_code) from exc
        except httpx.RequestError as exc:
            raise FetchError(request_url, detail=str(exc)) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ShapeError(request_url, "body is not valid JSON") from exc

        return self._extract_records(request_url, payload)

    async def fetch_all(self, sources: SourceConfig) -> RawDatasets:
        datasets = RawDatasets()
        for kind in KINDS:
            records = await self.fetch(sources.url_for(kind))
            LOGGER.info("Fetched %s %s records", len(records), kind)
            setattr(datasets, kind, records)
        return datasets

    @staticmethod
    def _extract_records(url: str, payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            preview = str(payload)
            if len(preview) > 200:
                preview = preview[:200] + "..."
            raise ShapeError(url, f"expected a JSON array, got {preview}")

        records = [dict(item) for item in payload if isinstance(item, Mapping)]
        skipped = len(payload) - len(records)
        if skipped:
            LOGGER.debug("Skipped %s non-object items from %s", skipped, url)
        return records
