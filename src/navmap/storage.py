"""Result store for finished discovery runs, organized by domain and timestamp."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from navmap.config import settings
from navmap.models import DiscoveryResult

logger = logging.getLogger(__name__)


class DateTimeEncoder(json.JSONEncoder):
    """JSON encoder that handles datetime objects."""

    def default(self, obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        return super().default(obj)


class ResultStore:
    """Stores discovery results as JSON files.

    Example structure:
        discoveries/
        └── example.com/
            ├── 2026-03-02_101500_000000.json
            └── 2026-03-09_093012_512000.json
    """

    def __init__(self, base_dir: Union[str, Path, None] = None):
        """Initialize the store.

        Args:
            base_dir: Base directory for all discovery outputs (defaults to NAVMAP_OUTPUT_DIR)
        """
        self.base_dir = Path(base_dir or settings.OUTPUT_DIR)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _domain_dir(self, domain: str) -> Path:
        # Clean domain for filesystem
        return self.base_dir / domain.replace(":", "_").replace("/", "_")

    def save(
        self,
        domain: str,
        result: Union[DiscoveryResult, dict[str, Any]],
        timestamp: Optional[datetime] = None,
    ) -> Path:
        """Save a discovery result.

        Args:
            domain: Domain the result belongs to
            result: DiscoveryResult or its plain-dict form
            timestamp: Optional timestamp (defaults to now)

        Returns:
            Path of the written file
        """
        if isinstance(result, DiscoveryResult):
            result = result.to_dict()
        timestamp = timestamp or datetime.now()

        domain_dir = self._domain_dir(domain)
        domain_dir.mkdir(parents=True, exist_ok=True)
        path = domain_dir / f"{timestamp.strftime('%Y-%m-%d_%H%M%S_%f')}.json"

        with open(path, "w", encoding="utf-8") as f:
            json.dump(result, f, indent=2, ensure_ascii=False, cls=DateTimeEncoder)
        logger.info(f"Saved discovery result for {domain} to {path}")
        return path

    def history(self, domain: str) -> list[Path]:
        """Stored result files for a domain, newest first."""
        domain_dir = self._domain_dir(domain)
        if not domain_dir.exists():
            return []
        return sorted(domain_dir.glob("*.json"), reverse=True)

    def load(self, path: Union[str, Path]) -> dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def latest(self, domain: str) -> Optional[dict[str, Any]]:
        """Most recent stored result for a domain, or None."""
        files = self.history(domain)
        if not files:
            return None
        try:
            return self.load(files[0])
        except json.JSONDecodeError as e:
            logger.warning(f"Could not read {files[0]}: {e}")
            return None

    def compare(self, domain: str) -> Optional[dict[str, Any]]:
        """Compare the two most recent results for a domain.

        Returns:
            Sections added and removed between runs, or None when fewer
            than two results are stored
        """
        files = self.history(domain)
        if len(files) < 2:
            return None
        newer, older = self.load(files[0]), self.load(files[1])

        def section_urls(data: dict) -> set[str]:
            return {s.get("url") for s in data.get("main_sections", []) if s.get("url")}

        new_urls, old_urls = section_urls(newer), section_urls(older)
        return {
            "newer": files[0].stem,
            "older": files[1].stem,
            "added_sections": sorted(new_urls - old_urls),
            "removed_sections": sorted(old_urls - new_urls),
            "tree_nodes_diff": (
                (newer.get("hierarchical_tree") or {}).get("metadata", {}).get("total_items", 0)
                - (older.get("hierarchical_tree") or {}).get("metadata", {}).get("total_items", 0)
            ),
        }
