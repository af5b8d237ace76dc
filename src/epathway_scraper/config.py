"""Configuration loader for the ePathway scraper."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_BASE_URL = "https://epayments.barossa.sa.gov.au/ePathway/Production/Web"
DEFAULT_COMMENT_URL = "mailto:barossa@barossa.sa.gov.au"

CONFLICT_POLICIES = ("ignore", "replace")
ADDRESS_SOURCES = ("detail", "inline")


class ConfigError(ValueError):
    """Raised when a configuration value is out of range."""


class PortalConfig:
    """Where the portal lives and which enquiry list to search."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self.base_url = str(data.get("base_url", DEFAULT_BASE_URL)).rstrip("/")
        self.comment_url = data.get("comment_url", DEFAULT_COMMENT_URL)
        self.enquiry_list_id = str(data.get("enquiry_list_id", "54"))

    @property
    def default_url(self) -> str:
        return f"{self.base_url}/default.aspx"

    @property
    def enquiry_lists_url(self) -> str:
        return f"{self.base_url}/GeneralEnquiry/EnquiryLists.aspx?ModuleCode=LAP"

    @property
    def enquiry_search_url(self) -> str:
        return f"{self.base_url}/GeneralEnquiry/EnquirySearch.aspx"

    @property
    def enquiry_summary_view_url(self) -> str:
        return f"{self.base_url}/GeneralEnquiry/EnquirySummaryView.aspx"

    @property
    def general_enquiry_url(self) -> str:
        return f"{self.base_url}/GeneralEnquiry/"


class SearchConfig:
    """Date window, page ceiling and address strategy."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self.lookback_months = int(data.get("lookback_months", 2))
        self.max_pages = int(data.get("max_pages", 50))
        self.address_source = data.get("address_source", "detail")


class HttpConfig:
    """Transport settings; retries are off unless configured."""

    def __init__(self, data: Dict[str, Any]) -> None:
        self.timeout_seconds = float(data.get("timeout_seconds", 30.0))
        self.max_retries = int(data.get("max_retries", 0))
        self.retry_base_delay = float(data.get("retry_base_delay", 1.0))
        self.retry_exponential_base = float(data.get("retry_exponential_base", 2.0))
        self.retry_max_delay = float(data.get("retry_max_delay", 30.0))
        self.user_agent = data.get("user_agent", "Mozilla/5.0 (compatible; epathway-scraper/1.0)")


class DatabaseConfig:
    def __init__(self, data: Dict[str, Any]) -> None:
        self.path = Path(data.get("path", "data.sqlite"))
        self.on_conflict = data.get("on_conflict", "ignore")


class ScraperConfig:
    """Central configuration container for a scraper run."""

    DEFAULT_CONFIG_PATH = Path("config/epathway.yaml")

    def __init__(
        self,
        config_path: Optional[Path | str] = None,
        *,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        if not path.is_absolute():
            path = Path.cwd() / path
        self.config_path = path
        self._apply_sections(self._load_config())
        self._apply_env(os.environ if environ is None else environ)
        self.validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScraperConfig":
        """Build a configuration without touching the filesystem or environment."""
        config = cls.__new__(cls)
        config.config_path = None
        config._apply_sections(data)
        config.validate()
        return config

    def _apply_sections(self, data: Dict[str, Any]) -> None:
        self.portal = PortalConfig(data.get("portal") or {})
        self.search = SearchConfig(data.get("search") or {})
        self.http = HttpConfig(data.get("http") or {})
        self.database = DatabaseConfig(data.get("database") or {})

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {}
        with open(self.config_path, "r", encoding="utf-8") as handle:
            return yaml.safe_load(handle) or {}

    def _apply_env(self, environ: Mapping[str, str]) -> None:
        if environ.get("EPATHWAY_DB_PATH"):
            self.database.path = Path(environ["EPATHWAY_DB_PATH"])
        if environ.get("EPATHWAY_ON_CONFLICT"):
            self.database.on_conflict = environ["EPATHWAY_ON_CONFLICT"]
        if environ.get("EPATHWAY_LOOKBACK_MONTHS"):
            self.search.lookback_months = int(environ["EPATHWAY_LOOKBACK_MONTHS"])

    def validate(self) -> None:
        if self.database.on_conflict not in CONFLICT_POLICIES:
            raise ConfigError(
                f"on_conflict must be one of {', '.join(CONFLICT_POLICIES)}, "
                f"got {self.database.on_conflict!r}"
            )
        if self.search.address_source not in ADDRESS_SOURCES:
            raise ConfigError(
                f"address_source must be one of {', '.join(ADDRESS_SOURCES)}, "
                f"got {self.search.address_source!r}"
            )
        if not 1 <= self.search.max_pages <= 50:
            raise ConfigError(f"max_pages must be between 1 and 50, got {self.search.max_pages}")
        if self.search.lookback_months < 0:
            raise ConfigError(f"lookback_months must not be negative, got {self.search.lookback_months}")
