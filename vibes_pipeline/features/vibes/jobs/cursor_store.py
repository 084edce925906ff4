"""
Durable backfill cursor and run reports.

The cursor is the only state that survives a restart. It is rewritten after
every batch via temp-file-then-rename so a crash mid-write leaves the previous
cursor intact. It is trusted on resume only when both the environment and the
filter fingerprints match the current run.
"""

import hashlib
import json
import os
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from vibes_pipeline.features.vibes.domain.models import CandidateFilters
from vibes_pipeline.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

CURSOR_VERSION = 1


def _now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def _canonical(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def filter_fingerprint(filters: CandidateFilters) -> str:
    """sha256 over the normalized filter set; order of ids and states is irrelevant."""
    payload = {
        "kind": filters.kind.value,
        "states": sorted({s.strip().upper() for s in filters.states}) if filters.states else None,
        "ids": sorted({i.strip().lower() for i in filters.ids}) if filters.ids else None,
        "minPrice": filters.min_price,
    }
    return hashlib.sha256(_canonical(payload).encode("utf-8")).hexdigest()


def env_fingerprint(host: str) -> str:
    """Identifies the database a cursor belongs to without storing the URL."""
    return hashlib.sha256((host or "").encode("utf-8")).hexdigest()[:16]


@dataclass(slots=True)
class Cursor:
    """Resumable progress for one filter set."""

    offset: int = 0
    last_processed_id: str | None = None
    attempted: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    total_cost_usd: float = 0.0
    canceled: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "offset": data["offset"],
            "lastProcessedId": data["last_processed_id"],
            "attempted": data["attempted"],
            "success": data["success"],
            "failed": data["failed"],
            "skipped": data["skipped"],
            "totalCostUsd": round(data["total_cost_usd"], 6),
            "canceled": data["canceled"],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cursor":
        offset = int(data.get("offset") or 0)
        return cls(
            offset=max(offset, 0),
            last_processed_id=data.get("lastProcessedId"),
            attempted=int(data.get("attempted") or 0),
            success=int(data.get("success") or 0),
            failed=int(data.get("failed") or 0),
            skipped=int(data.get("skipped") or 0),
            total_cost_usd=float(data.get("totalCostUsd") or 0.0),
            canceled=bool(data.get("canceled", False)),
        )


def _atomic_write(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)
        handle.flush()
        os.fsync(handle.fileno())
    tmp_path.replace(path)


class CursorStore:
    """Reads and writes the cursor file for one run."""

    def __init__(self, path: str | Path, filters: CandidateFilters, env_host: str):
        self.path = Path(path)
        self.filters = filters
        self.filter_fingerprint = filter_fingerprint(filters)
        self.env_fingerprint = env_fingerprint(env_host)

    def _payload(self, cursor: Cursor) -> dict[str, Any]:
        return {
            "version": CURSOR_VERSION,
            "updatedAt": _now_iso(),
            "envFingerprint": self.env_fingerprint,
            "filterFingerprint": self.filter_fingerprint,
            "filters": self.filters.to_dict(),
            **cursor.to_dict(),
        }

    def load(self) -> Cursor | None:
        """
        Return the stored cursor if it belongs to this environment and filter set.

        A missing, unreadable or mismatched cursor yields ``None``.
        """
        if not self.path.exists():
            logger.info("No cursor file found", path=str(self.path))
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cursor file", path=str(self.path), error=str(e))
            return None

        if not isinstance(data, dict) or data.get("version") != CURSOR_VERSION:
            logger.warning("Ignoring cursor with unknown format", path=str(self.path))
            return None

        if data.get("envFingerprint") != self.env_fingerprint:
            logger.warning(
                "Cursor environment mismatch; starting fresh",
                path=str(self.path),
                stored=data.get("envFingerprint"),
                current=self.env_fingerprint,
            )
            return None

        if data.get("filterFingerprint") != self.filter_fingerprint:
            logger.warning(
                "Cursor filter mismatch; starting fresh",
                path=str(self.path),
                stored_filters=data.get("filters"),
                current_filters=self.filters.to_dict(),
            )
            return None

        try:
            cursor = Cursor.from_dict(data)
        except (TypeError, ValueError) as e:
            logger.warning("Ignoring malformed cursor", path=str(self.path), error=str(e))
            return None

        logger.info("Cursor loaded", path=str(self.path), offset=cursor.offset)
        return cursor

    def save(self, cursor: Cursor) -> None:
        """Atomically replace the cursor file."""
        _atomic_write(self.path, self._payload(cursor))
        logger.debug("Cursor saved", offset=cursor.offset, canceled=cursor.canceled)


def write_report(report_dir: str | Path, job: str, report: dict[str, Any]) -> tuple[Path, Path]:
    """
    Write the run report twice: an archive copy named by timestamp that is
    never touched again, and ``<job>-latest.json`` that each run overwrites.
    """
    directory = Path(report_dir)
    stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")
    payload = {"job": job, "finishedAt": _now_iso(), **report}

    archive = directory / f"{job}-{stamp}.json"
    suffix = 1
    while archive.exists():
        archive = directory / f"{job}-{stamp}-{suffix}.json"
        suffix += 1
    _atomic_write(archive, payload)

    latest = directory / f"{job}-latest.json"
    _atomic_write(latest, payload)

    logger.info("Run report written", archive=str(archive), latest=str(latest))
    return archive, latest
