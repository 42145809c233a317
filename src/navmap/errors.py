"""Exception hierarchy for navigation discovery.

Only ``InvalidSeedUrlError`` and ``PageUnavailableError`` are meant to reach
callers of ``SiteDiscovery``. The others are scoped to one strategy, one tree
node or one pagination run and are caught and recorded in result metadata.
"""

from typing import Optional


class NavmapError(Exception):
    """Base class for all navmap errors."""


class StrategyExecutionError(NavmapError):
    """An extraction strategy failed while reading a page."""

    def __init__(self, strategy_name: str, message: str):
        super().__init__(f"{strategy_name}: {message}")
        self.strategy_name = strategy_name


class NodeNavigationError(NavmapError):
    """Navigating to or scanning a single tree node failed."""

    def __init__(self, url: str, message: str, attempts: int = 1):
        super().__init__(f"{url}: {message} (after {attempts} attempt(s))")
        self.url = url
        self.attempts = attempts


class InvalidSeedUrlError(NavmapError, ValueError):
    """The seed URL handed to discovery cannot be parsed as an http(s) URL."""

    def __init__(self, url: Optional[str]):
        super().__init__(f"Invalid seed URL: {url!r}")
        self.url = url


class PaginationLoopGuardTripped(NavmapError):
    """Pagination exceeded its page or time bound."""

    def __init__(self, reason: str, pages_visited: int):
        super().__init__(f"Pagination stopped ({reason}) after {pages_visited} page(s)")
        self.reason = reason
        self.pages_visited = pages_visited


class PageUnavailableError(NavmapError):
    """No page or browsing context could be obtained for the seed URL."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Could not open {url}: {message}")
        self.url = url
