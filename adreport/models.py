"""
Domain models for ad performance and CRM records.

Provides dataclasses for the hierarchy (ad accounts, campaigns, ad groups,
ads), daily performance snapshots, and CRM leads/sales. Records are built
from store rows (snake_case dicts) via `from_record`; the attribution and
rollup code only ever reads them.
"""
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class RowType(str, Enum):
    """Level of a node in the analytics tree."""
    ACCOUNT = "account"
    CAMPAIGN = "campaign"
    GROUP = "group"
    AD = "ad"


class MatchQuality(str, Enum):
    """How a sale was linked to an ad at ingestion time."""
    EXACT = "exact"
    CHANNEL_ONLY = "channel_only"
    NONE = "none"

    @classmethod
    def compute(cls, ad_id: Optional[str], channel: Optional[str]) -> "MatchQuality":
        """Derive match quality from the linking data a sale arrived with."""
        if ad_id:
            return cls.EXACT
        if channel:
            return cls.CHANNEL_ONLY
        return cls.NONE


class EventType(str, Enum):
    """Recent activity feed event kinds."""
    LEAD = "lead"
    SALE = "sale"


# Counter fields on a daily stat row, in storage order
STAT_COUNTER_FIELDS: List[str] = [
    "impressions",
    "clicks",
    "spend",
    "leads",
    "results",
    "reach",
    "whatsapp_requests",
    "appointments_scheduled",
    "appointments_attended",
    "treatments_completed",
    "plans_sent",
]


def date_str_to_ms(value: str) -> int:
    """Convert a YYYY-MM-DD string to epoch milliseconds at UTC midnight."""
    d = date.fromisoformat(value)
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp() * 1000)


def days_to_sale(registration_date_str: str, sale_date_str: str) -> int:
    """Whole days from lead registration to sale."""
    return (date.fromisoformat(sale_date_str) - date.fromisoformat(registration_date_str)).days


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


# ═══════════════════════════════════════════════════════════════════════════════
# HIERARCHY
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class AdAccount:
    """Advertising account on one channel (Facebook, Google, TikTok)."""
    id: str
    project_id: str
    name: str
    channel: str
    is_active: bool = True
    external_account_id: Optional[str] = None

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "AdAccount":
        return cls(
            id=str(data["id"]),
            project_id=str(data["project_id"]),
            name=data.get("name") or "",
            channel=data.get("channel") or "",
            is_active=bool(data.get("is_active", True)),
            external_account_id=_opt_str(data.get("external_account_id")),
        )


@dataclass
class Campaign:
    """Campaign within an ad account."""
    id: str
    project_id: str
    ad_account_id: str
    name: str
    channel: str = ""
    is_active: bool = True
    external_campaign_id: Optional[str] = None

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Campaign":
        return cls(
            id=str(data["id"]),
            project_id=str(data["project_id"]),
            ad_account_id=str(data["ad_account_id"]),
            name=data.get("name") or "",
            channel=data.get("channel") or "",
            is_active=bool(data.get("is_active", True)),
            external_campaign_id=_opt_str(data.get("external_campaign_id")),
        )


@dataclass
class AdGroup:
    """Ad group (ad set) within a campaign."""
    id: str
    project_id: str
    campaign_id: str
    name: str
    is_active: bool = True
    external_adset_id: Optional[str] = None

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "AdGroup":
        return cls(
            id=str(data["id"]),
            project_id=str(data["project_id"]),
            campaign_id=str(data["campaign_id"]),
            name=data.get("name") or "",
            is_active=bool(data.get("is_active", True)),
            external_adset_id=_opt_str(data.get("external_adset_id")),
        )


@dataclass
class Ad:
    """Single ad. `external_ad_id` is the platform's identifier."""
    id: str
    project_id: str
    ad_group_id: str
    campaign_id: str
    name: str
    external_ad_id: str
    channel: str = ""
    is_active: bool = True

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Ad":
        return cls(
            id=str(data["id"]),
            project_id=str(data["project_id"]),
            ad_group_id=str(data["ad_group_id"]),
            campaign_id=str(data["campaign_id"]),
            name=data.get("name") or "",
            external_ad_id=str(data.get("external_ad_id") or ""),
            channel=data.get("channel") or "",
            is_active=bool(data.get("is_active", True)),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# PERFORMANCE SNAPSHOTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class DailyStat:
    """One ad's counters for one calendar date."""
    ad_id: str
    project_id: str
    date: str
    date_ts: int
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
    def from_record(cls, data: Dict[str, Any]) -> "DailyStat":
        date_str = str(data["date"])
        date_ts = data.get("date_ts")
        return cls(
            ad_id=str(data["ad_id"]),
            project_id=str(data["project_id"]),
            date=date_str,
            date_ts=int(date_ts) if date_ts is not None else date_str_to_ms(date_str),
            impressions=int(data.get("impressions") or 0),
            clicks=int(data.get("clicks") or 0),
            spend=float(data.get("spend") or 0),
            leads=int(data.get("leads") or 0),
            results=int(data.get("results") or 0),
            reach=int(data.get("reach") or 0),
            whatsapp_requests=int(data.get("whatsapp_requests") or 0),
            appointments_scheduled=int(data.get("appointments_scheduled") or 0),
            appointments_attended=int(data.get("appointments_attended") or 0),
            treatments_completed=int(data.get("treatments_completed") or 0),
            plans_sent=int(data.get("plans_sent") or 0),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# CRM RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Lead:
    """CRM lead. Only counted, never attributed individually."""
    id: str
    project_id: str
    phone: str = ""
    created_at: int = 0
    ad_id: Optional[str] = None
    is_qualified: bool = False
    client_name: Optional[str] = None
    channel: Optional[str] = None

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Lead":
        return cls(
            id=str(data["id"]),
            project_id=str(data["project_id"]),
            phone=data.get("phone") or "",
            created_at=int(data.get("created_at") or 0),
            ad_id=_opt_str(data.get("ad_id")),
            is_qualified=bool(data.get("is_qualified", False)),
            client_name=data.get("client_name"),
            channel=data.get("channel"),
        )


@dataclass
class Sale:
    """
    Won CRM deal.

    `ad_id` is the best-effort link made at ingestion; attribution decides
    only whether the sale counts for that ad on a given report date.
    """
    id: str
    project_id: str
    amount: float
    registration_date_str: str
    sale_date_str: str
    deal_status: str = ""
    ad_id: Optional[str] = None
    lead_id: Optional[str] = None
    client_name: Optional[str] = None
    deal_link: Optional[str] = None
    created_at: int = 0
    channel: Optional[str] = None
    match_quality: MatchQuality = MatchQuality.NONE
    days_to_sale: Optional[int] = None

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Sale":
        ad_id = _opt_str(data.get("ad_id"))
        channel = data.get("channel")
        quality = data.get("match_quality")
        registration = str(data["registration_date_str"])
        sale_date = str(data["sale_date_str"])
        days = data.get("days_to_sale")
        return cls(
            id=str(data["id"]),
            project_id=str(data["project_id"]),
            amount=float(data.get("amount") or 0),
            registration_date_str=registration,
            sale_date_str=sale_date,
            deal_status=data.get("deal_status") or "",
            ad_id=ad_id,
            lead_id=_opt_str(data.get("lead_id")),
            client_name=data.get("client_name"),
            deal_link=data.get("deal_link"),
            created_at=int(data.get("created_at") or 0),
            channel=channel,
            match_quality=MatchQuality(quality) if quality else MatchQuality.compute(ad_id, channel),
            days_to_sale=int(days) if days is not None else days_to_sale(registration, sale_date),
        )

    @property
    def is_attributable(self) -> bool:
        """Whether the sale is linked to an ad at all."""
        return self.ad_id is not None
