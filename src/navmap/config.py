from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Any, Optional
from pathlib import Path
import logging
import os

import yaml
from pydantic import BaseModel, Field

from navmap import constants

load_dotenv()  # Loads variables from .env file

logger = logging.getLogger(__name__)


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    USER_AGENT = os.getenv("NAVMAP_USER_AGENT", "Mozilla/5.0 (compatible; navmap/0.1)")
    OUTPUT_DIR = os.getenv("NAVMAP_OUTPUT_DIR", "discoveries")
    SITE_CONFIG_PATH = os.getenv("NAVMAP_SITE_CONFIG")  # YAML domain -> SiteCrawlConfig map
    MEMORY_PATH = os.getenv("NAVMAP_MEMORY_PATH")  # JSON strategy memory
    LOG_LEVEL = os.getenv("NAVMAP_LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("NAVMAP_LOG_FILE")


settings = Settings()


@dataclass
class DiscoveryConfig:
    """Defaults for the pipeline, tree builder and pagination resolver."""
    max_strategies: int = constants.DEFAULT_MAX_STRATEGIES
    min_confidence: float = constants.DEFAULT_MIN_CONFIDENCE
    parallel: bool = False
    early_exit: bool = True
    pipeline_timeout_ms: int = constants.PIPELINE_TIMEOUT_MS
    strategy_timeout_ms: int = constants.PER_STRATEGY_TIMEOUT_MS

    node_timeout_ms: int = constants.NODE_NAVIGATION_TIMEOUT_MS
    node_settle_ms: int = constants.NODE_SETTLE_MS
    node_retry_backoff_ms: int = constants.NODE_RETRY_BACKOFF_MS
    explorable_terms: tuple[str, ...] = constants.EXPLORABLE_TERMS  # Link words that mark a category

    max_pagination_depth: int = constants.DEFAULT_MAX_PAGINATION_DEPTH
    max_products_per_page: Optional[int] = None
    resolve_listings: int = 0  # Terminal nodes to resolve into product URLs

    @classmethod
    def from_env(cls) -> "DiscoveryConfig":
        """Load configuration from environment variables.

        Returns:
            DiscoveryConfig: Configuration instance with values from environment
        """
        max_products = os.getenv("NAVMAP_MAX_PRODUCTS_PER_PAGE")
        terms = os.getenv("NAVMAP_EXPLORABLE_TERMS")
        return cls(
            max_strategies=int(os.getenv("NAVMAP_MAX_STRATEGIES", str(constants.DEFAULT_MAX_STRATEGIES))),
            min_confidence=float(os.getenv("NAVMAP_MIN_CONFIDENCE", str(constants.DEFAULT_MIN_CONFIDENCE))),
            parallel=os.getenv("NAVMAP_PARALLEL", "false").lower() in ("1", "true", "yes"),
            early_exit=os.getenv("NAVMAP_EARLY_EXIT", "true").lower() in ("1", "true", "yes"),
            pipeline_timeout_ms=int(os.getenv("NAVMAP_PIPELINE_TIMEOUT_MS", str(constants.PIPELINE_TIMEOUT_MS))),
            node_timeout_ms=int(os.getenv("NAVMAP_NODE_TIMEOUT_MS", str(constants.NODE_NAVIGATION_TIMEOUT_MS))),
            explorable_terms=(
                tuple(t.strip() for t in terms.split(",") if t.strip()) if terms else constants.EXPLORABLE_TERMS
            ),
            max_pagination_depth=int(
                os.getenv("NAVMAP_MAX_PAGINATION_DEPTH", str(constants.DEFAULT_MAX_PAGINATION_DEPTH))
            ),
            max_products_per_page=int(max_products) if max_products else None,
            resolve_listings=int(os.getenv("NAVMAP_RESOLVE_LISTINGS", "0")),
        )


class SiteCrawlConfig(BaseModel):
    """
    Per-domain crawl bounds.

    Supplied by the caller and never mutated by discovery.
    """

    domain: str = Field(
        default="*",
        description="Domain this configuration applies to ('*' for defaults)"
    )

    allowed_headless: bool = Field(
        default=True,
        description="Whether the site can be rendered in a headless browser"
    )

    max_depth: int = Field(
        default=constants.DEFAULT_MAX_DEPTH,
        description="Maximum category tree depth",
        ge=1,
        le=10
    )

    max_branch_width: int = Field(
        default=constants.DEFAULT_MAX_BRANCH_WIDTH,
        description="Maximum children explored per tree node",
        ge=1,
        le=100
    )

    max_category_urls: int = Field(
        default=200,
        description="Maximum distinct category URLs visited during one run",
        ge=1
    )

    global_timeout_ms: int = Field(
        default=300000,
        description="Wall-clock budget for one discovery run in milliseconds",
        ge=1000
    )

    max_concurrent_pages: int = Field(
        default=2,
        description="Sibling category pages loaded concurrently",
        ge=1,
        le=16
    )

    crawl_rate_rps: float = Field(
        default=1.0,
        description="Target request rate against the site (requests per second)",
        gt=0,
        le=20
    )

    class Config:
        """Pydantic model configuration."""
        frozen = True


class SiteConfigRegistry:
    """Read-only domain -> SiteCrawlConfig lookup.

    The YAML layout is::

        defaults:
          max_depth: 3
        sites:
          example.com:
            allowed_headless: false
            crawl_rate_rps: 0.5
    """

    def __init__(
        self,
        sites: Optional[dict[str, dict[str, Any]]] = None,
        defaults: Optional[dict[str, Any]] = None,
    ):
        self._defaults = dict(defaults or {})
        self._sites = {self._normalize(domain): dict(values or {}) for domain, values in (sites or {}).items()}

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SiteConfigRegistry":
        """Load a registry from a YAML file.

        Args:
            path: Path to the YAML file

        Returns:
            SiteConfigRegistry with the file's defaults and per-site entries
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        logger.info(f"Loaded site configuration for {len(data.get('sites') or {})} domains from {path}")
        return cls(sites=data.get("sites"), defaults=data.get("defaults"))

    @classmethod
    def from_settings(cls) -> "SiteConfigRegistry":
        """Registry from NAVMAP_SITE_CONFIG, or defaults only when it is unset."""
        if settings.SITE_CONFIG_PATH:
            return cls.from_yaml(settings.SITE_CONFIG_PATH)
        return cls()

    @staticmethod
    def _normalize(domain: str) -> str:
        domain = domain.lower().strip()
        return domain[4:] if domain.startswith("www.") else domain

    def domains(self) -> list[str]:
        return sorted(self._sites)

    def get(self, domain: str) -> SiteCrawlConfig:
        """Resolve the configuration for a domain.

        Exact matches win; otherwise the closest parent domain is used, and
        finally the registry defaults.
        """
        domain = self._normalize(domain)
        candidate = domain
        while candidate:
            if candidate in self._sites:
                return SiteCrawlConfig(**{**self._defaults, **self._sites[candidate], "domain": domain})
            if "." not in candidate:
                break
            candidate = candidate.split(".", 1)[1]
        return SiteCrawlConfig(**{**self._defaults, "domain": domain})
