"""
Dashboard summary projector.

Builds the project-wide dashboard (funnel, KPI cards, income/expense,
top campaigns, recent activity, admin/doctor metric groups) straight from
raw stats, leads and sales. It does not reuse the analytics tree, so each
query aggregates from one consistent read of the store.
"""
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from adreport.aggregation import group_by_key
from adreport.attribution import attribute_ad, get_ad_active_periods, group_sales_by_ad
from adreport.config import config
from adreport.metrics import (
    calc_aov,
    calc_cpc,
    calc_cpl,
    calc_cpm,
    calc_cpql,
    calc_cpr,
    calc_cps,
    calc_cpshow,
    calc_ctr,
    calc_roas,
    round2,
    safe_divide,
)
from adreport.models import Ad, Campaign, DailyStat, EventType, Lead, Sale


# ═══════════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class FunnelStage:
    label: str
    value: float
    display_value: str
    conversion_rate: float


@dataclass
class KpiCard:
    label: str
    value: str


@dataclass
class TopCampaign:
    name: str
    results: int
    roas: float


@dataclass
class RecentEvent:
    type: EventType
    text: str
    time: str


@dataclass
class CampaignStats:
    active_campaigns_count: int
    total_results: int
    cpr: float
    qualified_leads: int


@dataclass
class AdminMetrics:
    appointments_scheduled: int
    appointments_attended: int
    sales_count: int
    conversion_to_appointment: float
    conversion_to_show_up: float


@dataclass
class DoctorMetrics:
    average_check: float
    conversion_to_total: float


@dataclass
class DashboardSummary:
    funnel: List[FunnelStage]
    kpis: List[KpiCard]
    income: float
    expense: float
    roas_value: float
    top_campaigns: List[TopCampaign]
    recent_events: List[RecentEvent]
    campaign_stats: CampaignStats
    admin_metrics: AdminMetrics
    doctor_metrics: DoctorMetrics
    sales_count: int = 0
    unattributed_income: float = 0.0
    unattributed_sales_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys for the dashboard."""
        return _camelize(asdict(self))


@dataclass
class _Totals:
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    results: int = 0
    reach: int = 0
    appointments_scheduled: int = 0
    appointments_attended: int = 0
    income: float = 0.0
    sales_count: int = 0
    unattributed_income: float = 0.0
    unattributed_sales_count: int = 0
    income_by_ad: Dict[str, float] = field(default_factory=dict)


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def _camelize(value: Any) -> Any:
    if isinstance(value, dict):
        return {_camel(k): _camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camelize(v) for v in value]
    if isinstance(value, EventType):
        return value.value
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

def format_display_value(value: float) -> str:
    """
    Compact funnel number: 1600000 -> "1.6M", 15156 -> "15,156", 107 -> "107".
    """
    if value >= 1_000_000:
        millions = f"{value / 1_000_000:.1f}"
        if millions.endswith(".0"):
            millions = millions[:-2]
        return f"{millions}M"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,}"


def format_amount(amount: float) -> str:
    """Thousands-separated amount, decimals only when present."""
    if float(amount).is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


def format_metric_value(value: float, kind: str, currency_symbol: Optional[str] = None) -> str:
    """KPI card value: "currency" -> "$3.74", "percent" -> "0.85%"."""
    if kind == "currency":
        symbol = config.dashboard.currency_symbol if currency_symbol is None else currency_symbol
        return f"{symbol}{value:.2f}"
    return f"{value:.2f}%"


def format_relative_time(timestamp_ms: int, now_ms: Optional[int] = None) -> str:
    """
    Relative label for an event time.

    "just now" under a minute, then minutes, then hours (with a ".5" step
    between one and two hours), days under 30, and 30-day months after.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    diff_min = (now_ms - timestamp_ms) // 60_000
    diff_hour = diff_min // 60
    diff_day = diff_hour // 24

    if diff_min < 1:
        return "just now"
    if diff_min < 60:
        return f"{diff_min} min ago"
    if diff_hour < 24:
        if diff_hour < 2 and diff_min % 60 >= 30:
            return f"{diff_hour}.5 h ago"
        return f"{diff_hour} h ago"
    if diff_day < 30:
        return f"{diff_day} days ago"
    return f"{diff_day // 30} months ago"


def mask_phone(phone: str) -> str:
    """Hide the middle of a phone number: keep the first 8 and last 4 chars."""
    if len(phone) <= 8:
        return phone
    return f"{phone[:8]} *** {phone[-4:]}"


def _rate(numerator: float, denominator: float) -> float:
    return round2(safe_divide(numerator, denominator) * 100)


# ═══════════════════════════════════════════════════════════════════════════════
# PROJECTION
# ═══════════════════════════════════════════════════════════════════════════════

def _aggregate_totals(
    stats: List[DailyStat],
    sales: List[Sale],
    late_window_days: Optional[int],
) -> _Totals:
    totals = _Totals()
    for stat in stats:
        totals.impressions += stat.impressions
        totals.clicks += stat.clicks
        totals.spend += stat.spend
        totals.results += stat.results
        totals.reach += stat.reach
        totals.appointments_scheduled += stat.appointments_scheduled
        totals.appointments_attended += stat.appointments_attended

    stats_by_ad = group_by_key(stats, lambda s: s.ad_id)
    active_periods = get_ad_active_periods((s.ad_id, s.date) for s in stats)
    sales_by_ad = group_sales_by_ad(sales)

    for ad_id, ad_stats in stats_by_ad.items():
        period = active_periods.get(ad_id)
        attribution = attribute_ad(
            ad_id,
            (s.date for s in ad_stats),
            period.last_date if period else "",
            sales_by_ad.get(ad_id, []),
            late_window_days,
        )
        totals.income_by_ad[ad_id] = attribution.income
        totals.income += attribution.income
        totals.sales_count += attribution.sales_count

    # Sales with no ad, or whose ad had no stats in the window, still count
    for sale in sales:
        if not sale.is_attributable or sale.ad_id not in stats_by_ad:
            totals.unattributed_income += sale.amount
            totals.unattributed_sales_count += 1

    totals.income += totals.unattributed_income
    totals.sales_count += totals.unattributed_sales_count
    return totals


def build_funnel(
    reach: float,
    impressions: float,
    clicks: float,
    results: float,
    leads: float,
    qualified_leads: float,
) -> List[FunnelStage]:
    """Six funnel stages; each rate is relative to the stage before it."""
    stages = [
        ("Reach", reach),
        ("Impressions", impressions),
        ("Clicks", clicks),
        ("Results", results),
        ("Leads", leads),
        ("Qualified leads", qualified_leads),
    ]
    funnel = []
    previous = None
    for label, value in stages:
        rate = 0.0 if previous is None else _rate(value, previous)
        funnel.append(FunnelStage(label, value, format_display_value(value), rate))
        previous = value
    return funnel


def rank_top_campaigns(
    campaigns: List[Campaign],
    ads: List[Ad],
    stats: List[DailyStat],
    income_by_ad: Dict[str, float],
    limit: Optional[int] = None,
) -> List[TopCampaign]:
    """
    Campaigns with results, best first.

    Ties keep input order. ROAS comes from each campaign's own spend and
    attributed income.
    """
    if limit is None:
        limit = config.dashboard.top_campaigns_limit

    spend_by_ad: Dict[str, float] = {}
    results_by_ad: Dict[str, int] = {}
    for stat in stats:
        spend_by_ad[stat.ad_id] = spend_by_ad.get(stat.ad_id, 0.0) + stat.spend
        results_by_ad[stat.ad_id] = results_by_ad.get(stat.ad_id, 0) + stat.results

    ad_ids_by_campaign = group_by_key(ads, lambda a: a.campaign_id)

    ranked = []
    for campaign in campaigns:
        campaign_ads = [ad.id for ad in ad_ids_by_campaign.get(campaign.id, [])]
        spend = sum(spend_by_ad.get(ad_id, 0.0) for ad_id in campaign_ads)
        results = sum(results_by_ad.get(ad_id, 0) for ad_id in campaign_ads)
        income = sum(income_by_ad.get(ad_id, 0.0) for ad_id in campaign_ads)
        if results > 0:
            ranked.append(TopCampaign(campaign.name, results, round2(calc_roas(income, spend))))

    ranked.sort(key=lambda c: c.results, reverse=True)
    return ranked[:limit]


def build_recent_events(
    leads: List[Lead],
    sales: List[Sale],
    now_ms: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[RecentEvent]:
    """Latest lead and sale events, newest first."""
    if limit is None:
        limit = config.dashboard.recent_events_limit
    symbol = config.dashboard.currency_symbol

    events = [
        (lead.created_at, EventType.LEAD, f"New lead: {mask_phone(lead.phone)}")
        for lead in leads
    ]
    events.extend(
        (sale.created_at, EventType.SALE, f"Sale: {symbol}{format_amount(sale.amount)}")
        for sale in sales
    )
    events.sort(key=lambda e: e[0], reverse=True)

    return [
        RecentEvent(event_type, text, format_relative_time(ts, now_ms))
        for ts, event_type, text in events[:limit]
    ]


def build_dashboard_summary(
    stats: List[DailyStat],
    leads: List[Lead],
    sales: List[Sale],
    campaigns: List[Campaign],
    ads: List[Ad],
    now_ms: Optional[int] = None,
    late_window_days: Optional[int] = None,
) -> DashboardSummary:
    """
    Project-wide dashboard for one query window.

    Args:
        stats: Daily stats in the window
        leads: All project leads
        sales: All project sales
        campaigns, ads: Project hierarchy (for the top-campaigns ranking)
        now_ms: Reference time for relative event labels
        late_window_days: Override for the late-sale window
    """
    totals = _aggregate_totals(stats, sales, late_window_days)

    total_leads = len(leads)
    qualified_leads = sum(1 for lead in leads if lead.is_qualified)
    expense = totals.spend

    cpm = calc_cpm(expense, totals.impressions)
    cpc = calc_cpc(expense, totals.clicks)
    ctr = calc_ctr(totals.clicks, totals.impressions)
    cpr = calc_cpr(expense, totals.results)
    cpl = calc_cpl(expense, total_leads)
    cpql = calc_cpql(expense, qualified_leads)
    cps = calc_cps(expense, totals.sales_count)
    aov = calc_aov(totals.income, totals.sales_count)
    roas = calc_roas(totals.income, expense)
    cpshow = calc_cpshow(expense, totals.appointments_attended)

    kpis = [
        KpiCard("CPM", format_metric_value(cpm, "currency")),
        KpiCard("CPC", format_metric_value(cpc, "currency")),
        KpiCard("CTR", format_metric_value(ctr, "percent")),
        KpiCard("CPR", format_metric_value(cpr, "currency")),
        KpiCard("CPL", format_metric_value(cpl, "currency")),
        KpiCard("CPqL", format_metric_value(cpql, "currency")),
        KpiCard("CPS", format_metric_value(cps, "currency")),
        KpiCard("AOV", format_metric_value(aov, "currency")),
        KpiCard("CPShow", format_metric_value(cpshow, "currency")),
    ]

    admin_metrics = AdminMetrics(
        appointments_scheduled=totals.appointments_scheduled,
        appointments_attended=totals.appointments_attended,
        sales_count=totals.sales_count,
        conversion_to_appointment=_rate(totals.appointments_scheduled, qualified_leads),
        conversion_to_show_up=_rate(totals.appointments_attended, totals.appointments_scheduled),
    )
    doctor_metrics = DoctorMetrics(
        average_check=round2(aov),
        conversion_to_total=_rate(totals.sales_count, totals.appointments_attended),
    )

    return DashboardSummary(
        funnel=build_funnel(
            totals.reach, totals.impressions, totals.clicks,
            totals.results, total_leads, qualified_leads,
        ),
        kpis=kpis,
        income=round2(totals.income),
        expense=round2(expense),
        roas_value=round2(roas),
        top_campaigns=rank_top_campaigns(campaigns, ads, stats, totals.income_by_ad),
        recent_events=build_recent_events(leads, sales, now_ms),
        campaign_stats=CampaignStats(
            active_campaigns_count=sum(1 for c in campaigns if c.is_active),
            total_results=totals.results,
            cpr=round2(cpr),
            qualified_leads=qualified_leads,
        ),
        admin_metrics=admin_metrics,
        doctor_metrics=doctor_metrics,
        sales_count=totals.sales_count,
        unattributed_income=round2(totals.unattributed_income),
        unattributed_sales_count=totals.unattributed_sales_count,
    )
