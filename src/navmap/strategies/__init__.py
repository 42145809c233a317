"""
Navigation extraction strategies.

Strategies are registered in priority order; the discovery pipeline runs
them in this order unless learned per-domain priorities say otherwise.
"""

from navmap.strategies.base import (
    Extraction,
    NavigationStrategy,
    clamp_confidence,
    dedupe_items,
)
from navmap.strategies.aria import AriaNavigationStrategy
from navmap.strategies.data_attribute import DataAttributeStrategy
from navmap.strategies.visible import VisibleNavigationStrategy
from navmap.strategies.hidden import HiddenElementStrategy
from navmap.strategies.hover import HoverDropdownStrategy
from navmap.strategies.comprehensive import ComprehensiveLinkStrategy

STRATEGY_REGISTRY: dict[str, type[NavigationStrategy]] = {
    cls.name: cls
    for cls in (
        AriaNavigationStrategy,
        DataAttributeStrategy,
        VisibleNavigationStrategy,
        HiddenElementStrategy,
        HoverDropdownStrategy,
        ComprehensiveLinkStrategy,
    )
}


def get_strategy(name: str) -> NavigationStrategy:
    """Instantiate a registered strategy by name.

    Raises:
        KeyError: If no strategy is registered under ``name``
    """
    return STRATEGY_REGISTRY[name]()


def default_strategies() -> list[NavigationStrategy]:
    """Fresh instances of every registered strategy, in priority order."""
    return [cls() for cls in STRATEGY_REGISTRY.values()]


__all__ = [
    "Extraction",
    "NavigationStrategy",
    "clamp_confidence",
    "dedupe_items",
    "AriaNavigationStrategy",
    "DataAttributeStrategy",
    "VisibleNavigationStrategy",
    "HiddenElementStrategy",
    "HoverDropdownStrategy",
    "ComprehensiveLinkStrategy",
    "STRATEGY_REGISTRY",
    "get_strategy",
    "default_strategies",
]
