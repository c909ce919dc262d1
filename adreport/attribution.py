"""
Sales attribution engine.

Decides which sales an ad earned on a given report date:

- Direct sales: the sale's lead registered on the report date itself.
- Late sales: evaluated only on the ad's last active date. Sales whose
  lead registered within `late_window_days` after that date are credited
  to the ad, so conversions that land after the ad stops running are not
  lost.

A sale's registration date can equal at most one report date, and the
late window is only opened on the last active date, so one ad never
picks up the same sale twice. `attribute_ad` still tracks attributed sale
ids across dates so callers get that guarantee without relying on it.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple

from adreport.config import config
from adreport.models import Sale


@dataclass(frozen=True)
class ActivePeriod:
    """First and last date an ad had a daily stat row (YYYY-MM-DD)."""
    first_date: str
    last_date: str


@dataclass(frozen=True)
class AttributionDetail:
    """One attributed sale, as shown in the sale breakdown for an ad."""
    sale_id: str
    amount: float
    status: str
    sale_date: str
    registration_date: str
    is_late_sale: bool
    client: Optional[str] = None
    link: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "saleId": self.sale_id,
            "client": self.client,
            "amount": self.amount,
            "status": self.status,
            "link": self.link,
            "saleDate": self.sale_date,
            "registrationDate": self.registration_date,
            "isLateSale": self.is_late_sale,
        }


@dataclass
class AttributionResult:
    """Sales attributed to one ad on one report date."""
    sales_amount: float = 0.0
    sales_count: int = 0
    late_sales_amount: float = 0.0
    late_sales_count: int = 0
    details: List[AttributionDetail] = field(default_factory=list)


@dataclass
class AdAttribution:
    """Sales attributed to one ad across all of its active dates."""
    ad_id: str
    income: float = 0.0
    sales_count: int = 0
    late_income: float = 0.0
    late_sales_count: int = 0
    sale_ids: Set[str] = field(default_factory=set)
    details: List[AttributionDetail] = field(default_factory=list)


def get_ad_active_periods(pairs: Iterable[Tuple[str, str]]) -> Dict[str, ActivePeriod]:
    """
    Map each ad to the first and last date it has stats for.

    Args:
        pairs: (ad_id, date) pairs, dates as YYYY-MM-DD

    Returns:
        {ad_id: ActivePeriod}. ISO dates compare lexicographically in
        calendar order, so the result does not depend on input order.
    """
    bounds: Dict[str, List[str]] = {}
    for ad_id, day in pairs:
        current = bounds.get(ad_id)
        if current is None:
            bounds[ad_id] = [day, day]
            continue
        if day < current[0]:
            current[0] = day
        if day > current[1]:
            current[1] = day
    return {ad_id: ActivePeriod(first, last) for ad_id, (first, last) in bounds.items()}


def add_days(date_str: str, days: int) -> str:
    """Shift a YYYY-MM-DD string by whole calendar days."""
    return (date.fromisoformat(date_str) + timedelta(days=days)).isoformat()


def _detail(sale: Sale, is_late: bool) -> AttributionDetail:
    return AttributionDetail(
        sale_id=sale.id,
        amount=sale.amount,
        status=sale.deal_status,
        sale_date=sale.sale_date_str,
        registration_date=sale.registration_date_str,
        is_late_sale=is_late,
        client=sale.client_name,
        link=sale.deal_link,
    )


def attribute_sales_for_ad(
    ad_id: str,
    report_date: str,
    last_active_date: str,
    sales_for_ad: Iterable[Sale],
    late_window_days: Optional[int] = None,
) -> AttributionResult:
    """
    Attribute sales to an ad for one report date.

    Args:
        ad_id: Ad being reported (the sales are expected to be its own)
        report_date: Date being reported, YYYY-MM-DD
        last_active_date: The ad's last date with stats
        sales_for_ad: Candidate sales linked to the ad
        late_window_days: Grace window after the last active date
            (defaults to config.attribution.late_window_days)

    Returns:
        AttributionResult with direct and late sales combined in the
        totals, and the late subset isolated in the late_* fields
    """
    if late_window_days is None:
        late_window_days = config.attribution.late_window_days

    is_last_day = report_date == last_active_date
    window_end = add_days(report_date, late_window_days) if is_last_day else None

    result = AttributionResult()
    direct: List[AttributionDetail] = []
    late: List[AttributionDetail] = []

    for sale in sales_for_ad:
        registered = sale.registration_date_str
        if registered == report_date:
            direct.append(_detail(sale, is_late=False))
            result.sales_amount += sale.amount
        elif window_end is not None and report_date < registered <= window_end:
            late.append(_detail(sale, is_late=True))
            result.late_sales_amount += sale.amount

    result.sales_amount += result.late_sales_amount
    result.late_sales_count = len(late)
    result.sales_count = len(direct) + len(late)
    result.details = direct + late
    return result


def attribute_ad(
    ad_id: str,
    stat_dates: Iterable[str],
    last_active_date: str,
    sales_for_ad: List[Sale],
    late_window_days: Optional[int] = None,
) -> AdAttribution:
    """
    Run attribution for every distinct active date of one ad.

    Sales already credited on an earlier date are skipped by id, so the
    totals never count a sale twice.
    """
    totals = AdAttribution(ad_id=ad_id)

    for report_date in sorted(set(stat_dates)):
        result = attribute_sales_for_ad(
            ad_id, report_date, last_active_date, sales_for_ad, late_window_days
        )
        for detail in result.details:
            if detail.sale_id in totals.sale_ids:
                continue
            totals.sale_ids.add(detail.sale_id)
            totals.details.append(detail)
            totals.income += detail.amount
            totals.sales_count += 1
            if detail.is_late_sale:
                totals.late_income += detail.amount
                totals.late_sales_count += 1

    return totals


def group_sales_by_ad(sales: Iterable[Sale]) -> Dict[str, List[Sale]]:
    """Group ad-linked sales by ad id, dropping sales with no ad."""
    grouped: Dict[str, List[Sale]] = {}
    for sale in sales:
        if not sale.is_attributable:
            continue
        grouped.setdefault(sale.ad_id, []).append(sale)
    return grouped
