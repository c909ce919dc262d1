"""
Summable raw-counter bundle behind every derived KPI.

Summation is field-wise addition, so it is associative and commutative:
summing ads directly or summing already-summed groups gives the same
totals. Derived ratios are never stored here; they are recomputed from
the sums by adreport.aggregation.build_row.
"""
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Iterable

from adreport.models import DailyStat

if TYPE_CHECKING:
    from adreport.aggregation import Row


@dataclass(frozen=True)
class MetricSet:
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    leads: int = 0
    results: int = 0
    reach: int = 0
    whatsapp_requests: int = 0
    appointments_scheduled: int = 0
    appointments_attended: int = 0
    treatments_completed: int = 0
    plans_sent: int = 0

    @classmethod
    def empty(cls) -> "MetricSet":
        """All-zero metric set, the identity for `+`."""
        return cls()

    @classmethod
    def from_stat(cls, stat: DailyStat) -> "MetricSet":
        return cls(**{f.name: getattr(stat, f.name) for f in fields(cls)})

    def __add__(self, other: "MetricSet") -> "MetricSet":
        if not isinstance(other, MetricSet):
            return NotImplemented
        return MetricSet(**{
            f.name: getattr(self, f.name) + getattr(other, f.name)
            for f in fields(self)
        })


def combine(a: MetricSet, b: MetricSet) -> MetricSet:
    return a + b


def sum_metrics(items: Iterable[MetricSet]) -> MetricSet:
    """Sum metric sets field-wise. An empty input gives MetricSet.empty()."""
    totals = MetricSet.empty()
    for item in items:
        totals = totals + item
    return totals


def sum_stats(stats: Iterable[DailyStat]) -> MetricSet:
    """Fold daily stat rows into one metric set."""
    return sum_metrics(MetricSet.from_stat(s) for s in stats)


def row_to_metric_set(row: "Row") -> MetricSet:
    """
    Project a built output row back to a MetricSet.

    Rows do not carry the whatsapp/appointment/treatment/plan counters, so
    those come back as 0. None of them feeds a KPI above the ad level.
    """
    return MetricSet(
        impressions=row.impressions,
        clicks=row.clicks,
        spend=row.expenses,
        leads=row.leads,
        results=row.results,
        reach=row.reach,
    )
