"""
Query Gate.

Builds the immutable filter predicate applied uniformly to every record query
of one report request. Absent constraints are ``None`` and mean "no bound".
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from ..models.core import TaskRecord, as_utc


DateRange = Tuple[Optional[datetime], Optional[datetime]]


@dataclass(frozen=True)
class FilterPredicate:
    """Normalized date-range/owner/mode/priority constraint for one request."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    owner: Optional[str] = None
    mode: Optional[str] = None
    priority: Optional[str] = None
    task_id: Optional[str] = None

    @property
    def date_range(self) -> Optional[Tuple[datetime, datetime]]:
        """The closed date range, or None unless both bounds are set."""
        if self.start is None or self.end is None:
            return None
        return (self.start, self.end)

    def in_range(self, timestamp: Optional[datetime]) -> bool:
        """True when timestamp satisfies both bounds (inclusive)."""
        if self.start is None and self.end is None:
            return True
        if timestamp is None:
            return False
        if self.start is not None and timestamp < self.start:
            return False
        if self.end is not None and timestamp > self.end:
            return False
        return True

    def matches_task(self, task: TaskRecord) -> bool:
        if self.task_id is not None and task.id != self.task_id:
            return False
        if self.owner is not None and task.owner != self.owner:
            return False
        if self.mode is not None and task.mode != self.mode:
            return False
        if self.priority is not None and task.priority != self.priority:
            return False
        return self.in_range(task.creation_time)

    def period_length(self) -> Optional[timedelta]:
        if self.date_range is None:
            return None
        return self.end - self.start

    def with_range(self, start: Optional[datetime], end: Optional[datetime]) -> "FilterPredicate":
        return replace(self, start=start, end=end)

    def shifted_back(self, periods: int = 1) -> "FilterPredicate":
        """The same predicate moved back by exactly ``periods`` period lengths."""
        length = self.period_length()
        if length is None:
            return self
        offset = length * periods
        return self.with_range(self.start - offset, self.end - offset)

    def to_dict(self) -> Dict[str, Any]:
        """Echo of the active filters."""
        filters: Dict[str, Any] = {}
        if self.start is not None:
            filters["start_date"] = self.start.isoformat()
        if self.end is not None:
            filters["end_date"] = self.end.isoformat()
        for name in ("owner", "mode", "priority", "task_id"):
            value = getattr(self, name)
            if value is not None:
                filters[name] = value
        return filters


def build_filter(date_range: Optional[DateRange] = None,
                 owner: Optional[str] = None,
                 mode: Optional[str] = None,
                 priority: Optional[str] = None,
                 task_id: Optional[str] = None) -> FilterPredicate:
    """Build a filter predicate from request options. Pure and total.

    Naive bounds are read as UTC, like record timestamps."""
    start, end = date_range if date_range is not None else (None, None)
    return FilterPredicate(
        start=as_utc(start),
        end=as_utc(end),
        owner=owner or None,
        mode=mode or None,
        priority=priority or None,
        task_id=task_id or None,
    )
