"""Navigation and taxonomy discovery for e-commerce sites."""

__version__ = "0.1.0"

from navmap.discovery import SiteDiscovery
from navmap.pipeline import DiscoveryPipeline
from navmap.tree_builder import NavigationTreeBuilder, VisitedSet
from navmap.taxonomy import TaxonomyClassifier, classify
from navmap.pagination import (
    NextPageSignal,
    PaginationHandler,
    ProductLinkExtractor,
    detect_next_page,
    resolve_listing,
)
from navmap.filters import discover_filters
from navmap.urls import canonicalize, same_origin
from navmap.models import (
    Bucket,
    DiscoveryResult,
    DropdownMenu,
    FilterGroup,
    FilterOption,
    ItemKind,
    ListingResult,
    NavigationCandidate,
    NavigationItem,
    NodeKind,
    PaginationState,
    PipelineResult,
    TaxonomyEntry,
    TaxonomyResult,
    TreeNode,
)
from navmap.config import DiscoveryConfig, SiteConfigRegistry, SiteCrawlConfig, settings
from navmap.errors import (
    InvalidSeedUrlError,
    NavmapError,
    NodeNavigationError,
    PageUnavailableError,
    PaginationLoopGuardTripped,
    StrategyExecutionError,
)
from navmap.events import CallbackEventSink, EventSink, LoggingEventSink
from navmap.page import PageAdapter, PageProvider, StaticPage, StaticPageProvider
from navmap.browser import BrowserConfig, BrowserPageProvider, PlaywrightPage
from navmap.storage import ResultStore
from navmap.intelligence import StrategyMemory, StrategyRecord
from navmap.infrastructure import PolitenessLimiter, RateLimitConfig
from navmap.logging_config import get_logger, setup_logging

__all__ = [
    "SiteDiscovery",
    "DiscoveryPipeline",
    "NavigationTreeBuilder",
    "VisitedSet",
    "TaxonomyClassifier",
    "classify",
    "NextPageSignal",
    "PaginationHandler",
    "ProductLinkExtractor",
    "detect_next_page",
    "resolve_listing",
    "discover_filters",
    "canonicalize",
    "same_origin",
    "Bucket",
    "DiscoveryResult",
    "DropdownMenu",
    "FilterGroup",
    "FilterOption",
    "ItemKind",
    "ListingResult",
    "NavigationCandidate",
    "NavigationItem",
    "NodeKind",
    "PaginationState",
    "PipelineResult",
    "TaxonomyEntry",
    "TaxonomyResult",
    "TreeNode",
    "DiscoveryConfig",
    "SiteConfigRegistry",
    "SiteCrawlConfig",
    "settings",
    "InvalidSeedUrlError",
    "NavmapError",
    "NodeNavigationError",
    "PageUnavailableError",
    "PaginationLoopGuardTripped",
    "StrategyExecutionError",
    "CallbackEventSink",
    "EventSink",
    "LoggingEventSink",
    "PageAdapter",
    "PageProvider",
    "StaticPage",
    "StaticPageProvider",
    "BrowserConfig",
    "BrowserPageProvider",
    "PlaywrightPage",
    "ResultStore",
    "StrategyMemory",
    "StrategyRecord",
    "PolitenessLimiter",
    "RateLimitConfig",
    "get_logger",
    "setup_logging",
]
