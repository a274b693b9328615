"""On-disk artifacts: the current-price cache file and backfill run logs."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from price_collector.core.exceptions import CollectionError
from price_collector.core.models import BackfillMode, BackfillReport, InstantSample

logger = logging.getLogger(__name__)

CACHE_FILENAME = "current-prices.json"


class JsonCacheWriter:
    """Writes the latest instant sample to ``<cache_dir>/current-prices.json``.

    The file is replaced on every sample; readers always see one complete
    document because it is written to a temporary sibling and renamed.
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self._cache_dir = Path(cache_dir)

    @property
    def path(self) -> Path:
        return self._cache_dir / CACHE_FILENAME

    def write(self, sample: InstantSample) -> Path:
        payload = {
            "timestamp": sample.timestamp.isoformat(),
            "prices": {symbol.value: price for symbol, price in sample.prices.items()},
        }
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".json.tmp")
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            raise CollectionError(
                f"Failed to write price cache: {e}",
                context={"stage": "cache", "path": str(self.path)},
            ) from e
        logger.debug("Price cache updated at %s", self.path)
        return self.path


def read_cache(cache_dir: str | Path) -> dict[str, Any] | None:
    """Return the cached sample document, or None if no sample was written yet."""
    path = Path(cache_dir) / CACHE_FILENAME
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CollectionError(
            f"Failed to read price cache: {e}",
            context={"stage": "cache", "path": str(path)},
        ) from e


def run_log_filename(report: BackfillReport) -> str:
    """``daily-<date>.json`` or ``recovery-<today>-<epoch ms>.json``."""
    if report.mode == BackfillMode.DAILY and report.dates:
        return f"daily-{report.dates[0].isoformat()}.json"
    started = report.started_at.astimezone(timezone.utc)
    epoch_ms = int(started.timestamp() * 1000)
    return f"{report.mode.value}-{started.date().isoformat()}-{epoch_ms}.json"


def write_run_log(report: BackfillReport, log_dir: str | Path) -> Path:
    """Persist a backfill report as JSON. Returns the file written."""
    log_path = Path(log_dir)
    path = log_path / run_log_filename(report)
    document = report.model_dump(mode="json")
    document.update(
        {
            "succeeded": report.succeeded,
            "already_present": report.already_present,
            "failed": report.failed,
            "written_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    try:
        log_path.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    except OSError as e:
        raise CollectionError(
            f"Failed to write run log: {e}",
            context={"stage": "run_log", "path": str(path)},
        ) from e
    logger.info("Run log written to %s", path)
    return path
