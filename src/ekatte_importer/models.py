from __future__ import annotations

from dataclasses import dataclass

DEFAULT_SOURCE_BASE_URL = "https://www.nsi.bg/nrnm/ekatte"
DEFAULT_URL_SUFFIX = "/json"
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_DB_CONNECT_TIMEOUT = 60.0
DEFAULT_BATCH_SIZE = 500

REGIONS = "regions"
MUNICIPALITIES = "municipalities"
TOWN_HALLS = "town_halls"
TERRITORIAL_UNITS = "territorial_units"

# Hierarchy order; parents are written before their children.
KINDS = (REGIONS, MUNICIPALITIES, TOWN_HALLS, TERRITORIAL_UNITS)

REGION_CODE_LENGTH = 3
MUNICIPALITY_CODE_LENGTH = 5

POLICY_FALLBACK = "fallback"
POLICY_FAIL = "fail"
MISSING_NAME_POLICIES = (POLICY_FALLBACK, POLICY_FAIL)


@dataclass(frozen=True)
class SourceConfig:
    regions: str = f"{DEFAULT_SOURCE_BASE_URL}/regions"
    municipalities: str = f"{DEFAULT_SOURCE_BASE_URL}/municipalities"
    town_halls: str = f"{DEFAULT_SOURCE_BASE_URL}/town-halls"
    territorial_units: str = f"{DEFAULT_SOURCE_BASE_URL}/territorial-units"

    def url_for(self, kind: str) -> str:
        if kind not in KINDS:
            raise KeyError(kind)
        return getattr(self, kind)


@dataclass(frozen=True)
class ApiConfig:
    timeout: float = DEFAULT_HTTP_TIMEOUT
    url_suffix: str = DEFAULT_URL_SUFFIX


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    connect_timeout: float = DEFAULT_DB_CONNECT_TIMEOUT
    apply_schema: bool = False


@dataclass(frozen=True)
class ImportConfig:
    database: DatabaseConfig
    sources: SourceConfig = SourceConfig()
    api: ApiConfig = ApiConfig()
    batch_size: int = DEFAULT_BATCH_SIZE
    missing_name_policy: str = POLICY_FALLBACK
