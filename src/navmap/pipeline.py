"""
Discovery pipeline: runs extraction strategies and keeps the best candidate.

Strategies run in priority order (optionally reordered by learned
per-domain priorities). The highest-confidence candidate wins; ties go to
the strategy that ran earlier. The pipeline never raises for strategy
problems: when nothing reaches the minimum confidence it returns an empty
candidate whose metadata explains why.
"""

import asyncio
import logging
import time
from typing import Optional, Sequence

from navmap import events as ev
from navmap.config import DiscoveryConfig
from navmap.constants import EARLY_EXIT_CONFIDENCE
from navmap.events import EventSink
from navmap.intelligence.strategy_memory import StrategyMemory
from navmap.models import NavigationCandidate, PipelineResult
from navmap.page import PageAdapter
from navmap.strategies import NavigationStrategy, default_strategies
from navmap.urls import domain_of

logger = logging.getLogger(__name__)

# Strategies that hover or reveal elements and must not share the page concurrently
INTERACTIVE_STRATEGIES = frozenset({"hidden", "hover_dropdown"})


class DiscoveryPipeline:
    """Arbitrates between navigation extraction strategies by confidence."""

    def __init__(
        self,
        strategies: Optional[Sequence[NavigationStrategy]] = None,
        config: Optional[DiscoveryConfig] = None,
        memory: Optional[StrategyMemory] = None,
        events: Optional[EventSink] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            strategies: Strategies in priority order (defaults to all registered)
            config: Pipeline defaults
            memory: Optional learned strategy priorities
            events: Optional progress event sink
        """
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.config = config or DiscoveryConfig()
        self.memory = memory
        self.events = events or EventSink()

    async def discover(
        self,
        page: PageAdapter,
        strategies: Optional[Sequence[NavigationStrategy]] = None,
        max_strategies: Optional[int] = None,
        min_confidence: Optional[float] = None,
        parallel: Optional[bool] = None,
        early_exit: Optional[bool] = None,
        timeout_ms: Optional[int] = None,
    ) -> PipelineResult:
        """
        Discover navigation on a loaded page.

        Args:
            page: Page to analyze
            strategies: Override the configured strategies for this call
            max_strategies: Maximum number of strategies to run
            min_confidence: Minimum confidence for a candidate to be accepted
            parallel: Run non-interactive strategies concurrently
            early_exit: Stop once a candidate is confident enough
            timeout_ms: Overall time budget for all strategies

        Returns:
            PipelineResult with the winning candidate and diagnostics
            (``strategies_used``, ``timings``, ``candidates``, ``winner``)
        """
        cfg = self.config
        max_strategies = cfg.max_strategies if max_strategies is None else max_strategies
        min_confidence = cfg.min_confidence if min_confidence is None else min_confidence
        parallel = cfg.parallel if parallel is None else parallel
        early_exit = cfg.early_exit if early_exit is None else early_exit
        timeout_ms = cfg.pipeline_timeout_ms if timeout_ms is None else timeout_ms

        domain = domain_of(page.url)
        ordered = list(strategies) if strategies is not None else list(self.strategies)
        if self.memory is not None:
            ordered = self.memory.order(domain, ordered)
        ordered = ordered[:max_strategies]

        start = time.monotonic()
        metadata = {
            "strategies_used": [],
            "timings": {},
            "candidates": {},
            "parallel": parallel,
            "early_exit": False,
            "timed_out": False,
        }

        if parallel:
            results = await self._run_parallel(page, ordered, start, timeout_ms, metadata)
        else:
            results = await self._run_sequential(page, ordered, start, timeout_ms, early_exit, metadata)

        best: Optional[NavigationCandidate] = None
        best_name = None
        for name, candidate in results:
            if best is None or candidate.confidence > best.confidence:
                best, best_name = candidate, name

        metadata["total_ms"] = round((time.monotonic() - start) * 1000, 1)

        if best is None or best.confidence < min_confidence:
            best_desc = f"{best_name} at {best.confidence:.2f}" if best else "no strategy ran"
            metadata["winner"] = None
            metadata["error"] = f"pipeline_exhausted: best was {best_desc}, below {min_confidence:.2f}"
            logger.warning(f"Navigation discovery exhausted on {page.url}: {metadata['error']}")
            winner = NavigationCandidate(
                confidence=0.0,
                strategy_name="none",
                metadata={"error": metadata["error"]},
            )
        else:
            winner = best
            metadata["winner"] = best_name
            logger.info(
                f"Navigation discovered on {page.url} by {best_name} "
                f"({len(best.items)} items, confidence {best.confidence:.2f})"
            )

        if self.memory is not None and metadata["candidates"]:
            self.memory.record_run(
                domain,
                {name: c["confidence"] for name, c in metadata["candidates"].items()},
                metadata["winner"],
            )

        return PipelineResult(candidate=winner, metadata=metadata)

    async def _run_one(
        self, page: PageAdapter, strategy: NavigationStrategy, budget_ms: float
    ) -> tuple[NavigationCandidate, float]:
        name = strategy_name(strategy)
        started = time.monotonic()
        try:
            candidate = await asyncio.wait_for(strategy.execute(page), timeout=budget_ms / 1000)
        except asyncio.TimeoutError:
            logger.warning(f"Strategy {name} timed out after {budget_ms:.0f}ms on {page.url}")
            candidate = NavigationCandidate.failed(name, f"timeout after {budget_ms:.0f}ms")
        return candidate, round((time.monotonic() - started) * 1000, 1)

    def _record(
        self, metadata: dict, name: str, candidate: NavigationCandidate, elapsed_ms: float, total: int
    ) -> None:
        metadata["strategies_used"].append(name)
        metadata["timings"][name] = elapsed_ms
        metadata["candidates"][name] = {
            "confidence": candidate.confidence,
            "items": len(candidate.items),
            "error": candidate.error,
        }
        self.events.emit(
            ev.STRATEGY_DONE,
            strategy=name,
            confidence=round(candidate.confidence, 3),
            items=len(candidate.items),
            progress=round(len(metadata["strategies_used"]) / max(total, 1) * 100),
        )

    async def _run_sequential(
        self,
        page: PageAdapter,
        ordered: list[NavigationStrategy],
        start: float,
        timeout_ms: int,
        early_exit: bool,
        metadata: dict,
    ) -> list[tuple[str, NavigationCandidate]]:
        results = []
        best_confidence = 0.0
        for strategy in ordered:
            name = strategy_name(strategy)
            remaining = timeout_ms - (time.monotonic() - start) * 1000
            if remaining <= 0:
                metadata["timed_out"] = True
                logger.warning(f"Pipeline budget of {timeout_ms}ms spent before {name}")
                break

            candidate, elapsed = await self._run_one(
                page, strategy, min(self.config.strategy_timeout_ms, remaining)
            )
            results.append((name, candidate))
            self._record(metadata, name, candidate, elapsed, len(ordered))
            best_confidence = max(best_confidence, candidate.confidence)

            if early_exit and best_confidence > EARLY_EXIT_CONFIDENCE:
                metadata["early_exit"] = True
                logger.debug(f"Early exit after {name} (confidence {best_confidence:.2f})")
                break
        return results

    async def _run_parallel(
        self,
        page: PageAdapter,
        ordered: list[NavigationStrategy],
        start: float,
        timeout_ms: int,
        metadata: dict,
    ) -> list[tuple[str, NavigationCandidate]]:
        budget = min(self.config.strategy_timeout_ms, timeout_ms)
        concurrent = [i for i, s in enumerate(ordered) if strategy_name(s) not in INTERACTIVE_STRATEGIES]
        interactive = [i for i, s in enumerate(ordered) if strategy_name(s) in INTERACTIVE_STRATEGIES]

        by_index: dict[int, NavigationCandidate] = {}
        outcomes = await asyncio.gather(*(self._run_one(page, ordered[i], budget) for i in concurrent))
        for index, (candidate, elapsed) in zip(concurrent, outcomes):
            by_index[index] = candidate
            self._record(metadata, strategy_name(ordered[index]), candidate, elapsed, len(ordered))

        for index in interactive:
            remaining = timeout_ms - (time.monotonic() - start) * 1000
            if remaining <= 0:
                metadata["timed_out"] = True
                break
            candidate, elapsed = await self._run_one(page, ordered[index], min(budget, remaining))
            by_index[index] = candidate
            self._record(metadata, strategy_name(ordered[index]), candidate, elapsed, len(ordered))

        # Tie-breaking follows priority order, not completion order
        return [(strategy_name(ordered[i]), by_index[i]) for i in sorted(by_index)]


def strategy_name(strategy) -> str:
    return getattr(strategy, "name", None) or type(strategy).__name__
