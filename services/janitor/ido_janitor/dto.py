from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple


def utcnow() -> datetime:
    # IDO stores naive UTC datetimes.
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    time_column: str
    id_column: str


@dataclass(frozen=True)
class CleanupOutcome:
    table: str
    cutoff: datetime
    dry_run: bool
    oldest_timestamp: Optional[datetime] = None
    rows_affected: int = 0
    error: Optional[str] = None
    duration: float = 0.0


@dataclass(frozen=True)
class RoundResult:
    busy: bool
    outcomes: List[CleanupOutcome] = field(default_factory=list)


@dataclass(frozen=True)
class CleanupConfig:
    """Everything a cleanup round needs, resolved once at startup."""

    tables: Tuple[TableDescriptor, ...]
    ages: Mapping[str, int]
    instance_id: int
    limit: int
    dry_run: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "tables", tuple(self.tables))
        object.__setattr__(self, "ages", MappingProxyType(dict(self.ages)))


@dataclass(frozen=True)
class ScheduleConfig:
    normal_interval: float
    fast_interval: float
    once: bool = False

    def __post_init__(self) -> None:
        if self.fast_interval <= 0 or self.normal_interval <= self.fast_interval:
            raise ValueError("normal_interval must be larger than fast_interval, and both positive")
