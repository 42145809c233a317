"""Learned per-domain knowledge that improves later discovery runs."""

from .strategy_memory import StrategyMemory, StrategyRecord

__all__ = [
    "StrategyMemory",
    "StrategyRecord",
]
