"""
Per-domain memory of which extraction strategies work.

Each run of the discovery pipeline reports the confidence every strategy
reached and which one won. Win rates are smoothed with a Bayesian prior so a
single lucky run does not reorder a domain's strategies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence, TypeVar
import json
import logging

from navmap.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class StrategyRecord:
    """Track record of one strategy on one domain."""
    strategy: str
    runs: int = 0
    wins: int = 0
    total_confidence: float = 0.0
    last_win: datetime | None = None
    last_run: datetime | None = None

    # Bayesian prior: assume 1 win out of 3 runs for strategies never seen
    PRIOR_WINS: int = field(default=1, repr=False)
    PRIOR_RUNS: int = field(default=3, repr=False)

    def record(self, confidence: float, won: bool) -> None:
        now = datetime.now()
        self.runs += 1
        self.total_confidence += confidence
        self.last_run = now
        if won:
            self.wins += 1
            self.last_win = now

    @property
    def win_rate(self) -> float:
        return (self.wins + self.PRIOR_WINS) / (self.runs + self.PRIOR_RUNS)

    @property
    def average_confidence(self) -> float:
        return self.total_confidence / self.runs if self.runs else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "runs": self.runs,
            "wins": self.wins,
            "total_confidence": self.total_confidence,
            "last_win": self.last_win.isoformat() if self.last_win else None,
            "last_run": self.last_run.isoformat() if self.last_run else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StrategyRecord":
        return cls(
            strategy=data["strategy"],
            runs=data.get("runs", 0),
            wins=data.get("wins", 0),
            total_confidence=data.get("total_confidence", 0.0),
            last_win=datetime.fromisoformat(data["last_win"]) if data.get("last_win") else None,
            last_run=datetime.fromisoformat(data["last_run"]) if data.get("last_run") else None,
        )


class StrategyMemory:
    """
    Learned strategy priorities keyed by domain.

    Provides:
    - Win/confidence tracking per domain and strategy
    - Priority ordering for the discovery pipeline
    - Optional JSON persistence
    """

    def __init__(self, storage_path: Path | None = None):
        """
        Initialize the strategy memory.

        Args:
            storage_path: Path to persist the memory
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self._records: dict[str, dict[str, StrategyRecord]] = {}  # domain -> strategy -> record

        if self.storage_path and self.storage_path.exists():
            self._load()

    @classmethod
    def from_settings(cls) -> "StrategyMemory":
        """Memory persisted at NAVMAP_MEMORY_PATH, in-process only when unset."""
        return cls(settings.MEMORY_PATH)

    def _load(self) -> None:
        """Load memory from disk."""
        with open(self.storage_path) as f:
            data = json.load(f)
        self._records = {
            domain: {
                name: StrategyRecord.from_dict(record)
                for name, record in strategies.items()
            }
            for domain, strategies in data.get("domains", {}).items()
        }
        logger.debug(f"Loaded strategy memory for {len(self._records)} domains")

    def _save(self) -> None:
        """Save memory to disk."""
        if self.storage_path:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.storage_path, "w") as f:
                json.dump({
                    "domains": {
                        domain: {name: record.to_dict() for name, record in strategies.items()}
                        for domain, strategies in self._records.items()
                    },
                }, f, indent=2)

    def record_run(self, domain: str, confidences: dict[str, float], winner: Optional[str]) -> None:
        """
        Record the outcome of one pipeline run.

        Args:
            domain: Site domain
            confidences: Confidence reached by each strategy that ran
            winner: Name of the winning strategy, or None if nothing qualified
        """
        records = self._records.setdefault(domain, {})
        for name, confidence in confidences.items():
            record = records.setdefault(name, StrategyRecord(strategy=name))
            record.record(confidence, won=(name == winner))
        self._save()

    def get_record(self, domain: str, strategy: str) -> StrategyRecord | None:
        return self._records.get(domain, {}).get(strategy)

    def priority(self, domain: str) -> list[str]:
        """
        Strategy names for a domain, best first.

        Returns an empty list for domains with no history.
        """
        records = self._records.get(domain, {})
        ranked = sorted(
            records.values(),
            key=lambda r: (r.win_rate, r.average_confidence),
            reverse=True,
        )
        return [r.strategy for r in ranked]

    def order(self, domain: str, strategies: Sequence[T]) -> list[T]:
        """
        Reorder strategies by learned priority.

        Strategies without history keep their relative order after the
        ranked ones. With no history the input order is returned unchanged.
        """
        ranking = {name: index for index, name in enumerate(self.priority(domain))}
        if not ranking:
            return list(strategies)
        return sorted(strategies, key=lambda s: ranking.get(getattr(s, "name", ""), len(ranking)))
