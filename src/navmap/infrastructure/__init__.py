"""Crawl politeness infrastructure."""

from .rate_limiter import LoadRecord, PolitenessLimiter, RateLimitConfig

__all__ = [
    "LoadRecord",
    "PolitenessLimiter",
    "RateLimitConfig",
]
