"""Statistics Aggregator over a snapshot of PR records."""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..models.enums import PRState
from ..models.records import PRRecord

_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class Stats:
    """Counts and derived rates for a set of PR records."""

    total: int = 0
    open: int = 0
    closed: int = 0
    merged: int = 0
    draft: int = 0
    merge_rate_pct: int = 0
    avg_merge_days: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Shape served by the read endpoints."""
        return {
            "total": self.total,
            "open": self.open,
            "closed": self.closed,
            "merged": self.merged,
            "draft": self.draft,
            "mergeRate": self.merge_rate_pct,
            "avgMergeTimeDays": self.avg_merge_days,
        }


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def aggregate(records: Iterable[PRRecord]) -> Stats:
    """Compute statistics; an empty input yields all zeros.

    ``merge_rate_pct`` is ``merged / total * 100`` rounded half up to an
    integer. ``avg_merge_days`` is the mean of ``merged_at - created_at`` over
    merged records carrying both timestamps, rounded to two decimals.
    """
    records = list(records)
    total = len(records)
    if total == 0:
        return Stats()

    counts = {state: 0 for state in PRState}
    merge_days: list[float] = []
    for record in records:
        counts[record.state] += 1
        if (
            record.state is PRState.MERGED
            and record.created_at is not None
            and record.merged_at is not None
        ):
            elapsed = record.merged_at - record.created_at
            merge_days.append(elapsed.total_seconds() / _SECONDS_PER_DAY)

    merged = counts[PRState.MERGED]
    avg_merge_days = sum(merge_days) / len(merge_days) if merge_days else 0.0

    return Stats(
        total=total,
        open=counts[PRState.OPEN],
        closed=counts[PRState.CLOSED],
        merged=merged,
        draft=counts[PRState.DRAFT],
        merge_rate_pct=_round_half_up(merged / total * 100),
        avg_merge_days=round(avg_merge_days, 2),
    )
