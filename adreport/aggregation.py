"""
Row builder and tree assembler for the analytics table.

Hierarchy:  ad account -> campaign -> ad group -> ad

Each parent row sums its children's raw counters and recomputes its KPIs
from those sums; child KPIs are never averaged. Ads without stats in the
query window are dropped, and so is any parent left without children.
"""
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

from adreport.attribution import attribute_ad, get_ad_active_periods, group_sales_by_ad
from adreport.config import config
from adreport.metric_set import MetricSet, row_to_metric_set, sum_metrics, sum_stats
from adreport.metrics import (
    calc_aov,
    calc_cpc,
    calc_cpl,
    calc_cpm,
    calc_cpql,
    calc_cpr,
    calc_cps,
    calc_ctr,
    calc_roas,
    round1,
    round2,
)
from adreport.models import Ad, AdAccount, AdGroup, Campaign, DailyStat, Lead, RowType, Sale
from adreport.observability import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class Row:
    """One node of the analytics tree."""
    id: str
    name: str
    type: RowType
    is_active: bool
    account: str
    expenses: float
    income: float
    roas: float
    reach: int
    impressions: int
    cpm: float
    clicks: int
    ctr: float
    cpc: float
    results: int
    cpr: float
    leads: int
    cpl: float
    q_leads: int
    cpql: float
    sales: int
    cps: float
    aov: float
    ad_id: Optional[str] = None
    children: Optional[List["Row"]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys the table view reads."""
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "isActive": self.is_active,
            "account": self.account,
            "expenses": self.expenses,
            "income": self.income,
            "roas": self.roas,
            "reach": self.reach,
            "impressions": self.impressions,
            "cpm": self.cpm,
            "clicks": self.clicks,
            "ctr": self.ctr,
            "cpc": self.cpc,
            "results": self.results,
            "cpr": self.cpr,
            "leads": self.leads,
            "cpl": self.cpl,
            "qLeads": self.q_leads,
            "cpql": self.cpql,
            "sales": self.sales,
            "cps": self.cps,
            "aov": self.aov,
        }
        if self.ad_id is not None:
            data["adId"] = self.ad_id
        if self.children:
            data["children"] = [child.to_dict() for child in self.children]
        return data


def build_row(
    *,
    id: str,
    name: str,
    type: RowType,
    is_active: bool,
    account: str,
    metrics: MetricSet,
    income: float,
    q_leads: int,
    sales_count: int,
    ad_id: Optional[str] = None,
    children: Optional[List[Row]] = None,
) -> Row:
    """
    Build a fully derived row from raw sums.

    Expenses and income are rounded to 2 decimals, ROAS to 1, every other
    derived value to 2. `children` is left unset when empty.
    """
    m = metrics
    return Row(
        id=id,
        name=name,
        type=type,
        is_active=is_active,
        account=account,
        expenses=round2(m.spend),
        income=round2(income),
        roas=round1(calc_roas(income, m.spend)),
        reach=m.reach,
        impressions=m.impressions,
        cpm=round2(calc_cpm(m.spend, m.impressions)),
        clicks=m.clicks,
        ctr=round2(calc_ctr(m.clicks, m.impressions)),
        cpc=round2(calc_cpc(m.spend, m.clicks)),
        results=m.results,
        cpr=round2(calc_cpr(m.spend, m.results)),
        leads=m.leads,
        cpl=round2(calc_cpl(m.spend, m.leads)),
        q_leads=q_leads,
        cpql=round2(calc_cpql(m.spend, q_leads)),
        sales=sales_count,
        cps=round2(calc_cps(m.spend, sales_count)),
        aov=round2(calc_aov(income, sales_count)),
        ad_id=ad_id,
        children=children or None,
    )


def build_parent_row(
    id: str,
    name: str,
    type: RowType,
    is_active: bool,
    account: str,
    child_rows: List[Row],
) -> Row:
    """Aggregate already-built child rows into their parent."""
    return build_row(
        id=id,
        name=name,
        type=type,
        is_active=is_active,
        account=account,
        metrics=sum_metrics(row_to_metric_set(r) for r in child_rows),
        income=sum(r.income for r in child_rows),
        q_leads=sum(r.q_leads for r in child_rows),
        sales_count=sum(r.sales for r in child_rows),
        children=child_rows,
    )


def group_by_key(items: Iterable[T], key_fn: Callable[[T], str]) -> Dict[str, List[T]]:
    grouped: Dict[str, List[T]] = defaultdict(list)
    for item in items:
        grouped[key_fn(item)].append(item)
    return dict(grouped)


def count_qualified_leads(leads: Iterable[Lead]) -> Dict[str, int]:
    """Qualified lead count per ad id. Leads with no ad are skipped."""
    counts: Dict[str, int] = defaultdict(int)
    for lead in leads:
        if lead.ad_id and lead.is_qualified:
            counts[lead.ad_id] += 1
    return dict(counts)


# ═══════════════════════════════════════════════════════════════════════════════
# TREE ASSEMBLY
# ═══════════════════════════════════════════════════════════════════════════════

def build_hierarchy(
    stats: List[DailyStat],
    accounts: List[AdAccount],
    campaigns: List[Campaign],
    ad_groups: List[AdGroup],
    ads: List[Ad],
    sales: List[Sale],
    leads: List[Lead],
    late_window_days: Optional[int] = None,
) -> List[Row]:
    """
    Build the account -> campaign -> group -> ad forest for one project.

    Args:
        stats: Daily stats already limited to the query window
        accounts, campaigns, ad_groups, ads: Full project hierarchy
        sales: All project sales (attribution needs full history)
        leads: All project leads (qualified counts are as of now)
        late_window_days: Override for the late-sale window

    Returns:
        Top-level account rows with nested children
    """
    stats_by_ad = group_by_key(stats, lambda s: s.ad_id)
    metrics_by_ad = {ad_id: sum_stats(rows) for ad_id, rows in stats_by_ad.items()}
    active_periods = get_ad_active_periods((s.ad_id, s.date) for s in stats)
    sales_by_ad = group_sales_by_ad(sales)
    q_leads_by_ad = count_qualified_leads(leads)

    attribution_by_ad = {}
    for ad_id, ad_stats in stats_by_ad.items():
        period = active_periods.get(ad_id)
        attribution_by_ad[ad_id] = attribute_ad(
            ad_id,
            (s.date for s in ad_stats),
            period.last_date if period else "",
            sales_by_ad.get(ad_id, []),
            late_window_days,
        )

    ads_by_group = group_by_key(ads, lambda a: a.ad_group_id)
    groups_by_campaign = group_by_key(ad_groups, lambda g: g.campaign_id)
    campaigns_by_account = group_by_key(campaigns, lambda c: c.ad_account_id)

    def build_ad_row(ad: Ad, account_name: str) -> Optional[Row]:
        metrics = metrics_by_ad.get(ad.id)
        if metrics is None:
            return None
        attribution = attribution_by_ad[ad.id]
        return build_row(
            id=ad.id,
            name=ad.name,
            type=RowType.AD,
            is_active=ad.is_active,
            account=account_name,
            metrics=metrics,
            income=attribution.income,
            q_leads=q_leads_by_ad.get(ad.id, 0),
            sales_count=attribution.sales_count,
            ad_id=ad.external_ad_id,
        )

    def build_group_row(group: AdGroup, account_name: str) -> Optional[Row]:
        child_rows = [
            row for row in (build_ad_row(ad, account_name) for ad in ads_by_group.get(group.id, []))
            if row is not None
        ]
        if not child_rows:
            return None
        return build_parent_row(group.id, group.name, RowType.GROUP, group.is_active, account_name, child_rows)

    def build_campaign_row(campaign: Campaign, account_name: str) -> Optional[Row]:
        child_rows = [
            row for row in (build_group_row(g, account_name) for g in groups_by_campaign.get(campaign.id, []))
            if row is not None
        ]
        if not child_rows:
            return None
        return build_parent_row(
            campaign.id, campaign.name, RowType.CAMPAIGN, campaign.is_active, account_name, child_rows
        )

    top_level: List[Row] = []
    for account in accounts:
        child_rows = [
            row for row in (build_campaign_row(c, account.name) for c in campaigns_by_account.get(account.id, []))
            if row is not None
        ]
        if not child_rows:
            continue
        display_name = config.channels.account_label(account.channel, account.name)
        top_level.append(
            build_parent_row(account.id, display_name, RowType.ACCOUNT, account.is_active, account.name, child_rows)
        )

    reached_ads = {
        child.id
        for account_row in top_level
        for campaign_row in account_row.children or []
        for group_row in campaign_row.children or []
        for child in group_row.children or []
    }
    orphaned = [ad_id for ad_id in metrics_by_ad if ad_id not in reached_ads]
    if orphaned:
        logger.debug(
            "Ads with stats missing from hierarchy",
            extra={"orphaned_ads": len(orphaned)},
        )

    return top_level
