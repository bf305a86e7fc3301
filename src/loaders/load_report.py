# src/loaders/load_report.py
"""Per-entity outcome of a load run."""
import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import pytz

from config.config import cfg
from src.errors import ErrorKind
from src.models.entities import EntityKind, LOAD_ORDER


class EntityStatus(str, Enum):
    PENDING = "pending"
    LOADED = "loaded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RejectedRecord:
    line_number: int
    error_kind: ErrorKind
    field: Optional[str]
    message: str


@dataclass
class EntityLoadResult:
    kind: EntityKind
    source: Optional[str] = None
    status: EntityStatus = EntityStatus.PENDING
    inserted: int = 0
    rejected: List[RejectedRecord] = field(default_factory=list)
    skipped: int = 0
    error: Optional[str] = None

    @property
    def rejected_count(self) -> int:
        return len(self.rejected)

    def reject(self, line_number, error_kind, field_name, message):
        self.rejected.append(RejectedRecord(line_number, error_kind, field_name, message))

    def rejections_by_kind(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for r in self.rejected:
            counts[r.error_kind.value] = counts.get(r.error_kind.value, 0) + 1
        return counts


def _now(timezone_name: str) -> datetime:
    return datetime.now(pytz.timezone(timezone_name))


@dataclass
class LoadReport:
    """Inserted / rejected / skipped counts and reasons for every entity kind."""

    timezone: str = cfg.report_timezone
    results: Dict[EntityKind, EntityLoadResult] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def start(self):
        self.started_at = _now(self.timezone)

    def finalize(self):
        self.finished_at = _now(self.timezone)

    def result_for(self, kind: EntityKind, source: Optional[str] = None) -> EntityLoadResult:
        if kind not in self.results:
            self.results[kind] = EntityLoadResult(kind=kind, source=source)
        return self.results[kind]

    def __getitem__(self, kind) -> EntityLoadResult:
        return self.results[EntityKind(kind)]

    @property
    def duration(self) -> Optional[float]:
        if not self.started_at or not self.finished_at:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def has_failures(self) -> bool:
        return any(r.status == EntityStatus.FAILED for r in self.results.values())

    @property
    def total_inserted(self) -> int:
        return sum(r.inserted for r in self.results.values())

    @property
    def total_rejected(self) -> int:
        return sum(r.rejected_count for r in self.results.values())

    @property
    def total_skipped(self) -> int:
        return sum(r.skipped for r in self.results.values())

    def ordered_results(self) -> List[EntityLoadResult]:
        return [self.results[k] for k in LOAD_ORDER if k in self.results]

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics."""
        return {
            "duration": self.duration,
            "entities": {
                r.kind.value: {
                    "status": r.status.value,
                    "inserted": r.inserted,
                    "rejected": r.rejected_count,
                    "skipped": r.skipped,
                }
                for r in self.ordered_results()
            },
            "total_inserted": self.total_inserted,
            "total_rejected": self.total_rejected,
            "total_skipped": self.total_skipped,
            "has_failures": self.has_failures,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "summary": self.get_summary(),
            "results": {
                r.kind.value: {
                    "source": r.source,
                    "status": r.status.value,
                    "inserted": r.inserted,
                    "skipped": r.skipped,
                    "error": r.error,
                    "rejections_by_kind": r.rejections_by_kind(),
                    "rejected": [
                        {
                            "line_number": rej.line_number,
                            "error_kind": rej.error_kind.value,
                            "field": rej.field,
                            "message": rej.message,
                        }
                        for rej in r.rejected
                    ],
                }
                for r in self.ordered_results()
            },
        }

    def save_to_file(self, filepath: str = None) -> str:
        """Save the report to a JSON file, by default under logs/load_reports."""
        if filepath is None:
            reports_dir = "logs/load_reports"
            os.makedirs(reports_dir, exist_ok=True)

            timestamp = (self.finished_at or _now(self.timezone)).strftime("%Y%m%d_%H%M%S")
            filepath = os.path.join(reports_dir, f"load_report_{timestamp}.json")
        else:
            directory = os.path.dirname(filepath)
            if directory:
                os.makedirs(directory, exist_ok=True)

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)
        return filepath
