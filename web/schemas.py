"""
Pydantic response models for API endpoints.

Provides type-safe response models with automatic validation and documentation.
Field names are camelCase to match what the dashboard reads.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class StoreStats(BaseModel):
    """DuckDB store status and row counts."""
    status: str
    latency_ms: Optional[float] = None
    tables: Dict[str, int] = Field(default_factory=dict)
    total_queries: Optional[int] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    store: StoreStats


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYTICS TREE
# ═══════════════════════════════════════════════════════════════════════════════

class RowResponse(BaseModel):
    """One row of the analytics table (account, campaign, group or ad)."""
    id: str
    name: str
    type: str = Field(description="account, campaign, group or ad")
    isActive: bool
    account: str = Field(description="Stored name of the owning ad account")
    expenses: float
    income: float = Field(description="Attributed sales amount")
    roas: float
    reach: int
    impressions: int
    cpm: float
    clicks: int
    ctr: float = Field(description="Click-through rate, percent")
    cpc: float
    results: int
    cpr: float
    leads: int
    cpl: float
    qLeads: int
    cpql: float
    sales: int
    cps: float
    aov: float
    adId: Optional[str] = Field(None, description="External ad id (ad rows only)")
    children: Optional[List["RowResponse"]] = None


RowResponse.model_rebuild()


# ═══════════════════════════════════════════════════════════════════════════════
# DASHBOARD SUMMARY
# ═══════════════════════════════════════════════════════════════════════════════

class FunnelStageResponse(BaseModel):
    label: str
    value: float
    displayValue: str
    conversionRate: float = Field(description="Percent of the previous stage")


class KpiCardResponse(BaseModel):
    label: str
    value: str = Field(description="Formatted value, e.g. $3.74 or 0.85%")


class TopCampaignResponse(BaseModel):
    name: str
    results: int
    roas: float


class RecentEventResponse(BaseModel):
    type: str = Field(description="lead or sale")
    text: str
    time: str = Field(description="Relative time label")


class CampaignStatsResponse(BaseModel):
    activeCampaignsCount: int
    totalResults: int
    cpr: float
    qualifiedLeads: int


class AdminMetricsResponse(BaseModel):
    appointmentsScheduled: int
    appointmentsAttended: int
    salesCount: int
    conversionToAppointment: float
    conversionToShowUp: float


class DoctorMetricsResponse(BaseModel):
    averageCheck: float
    conversionToTotal: float


class DashboardSummaryResponse(BaseModel):
    """Project dashboard for a time window."""
    funnel: List[FunnelStageResponse]
    kpis: List[KpiCardResponse]
    income: float
    expense: float
    roasValue: float
    topCampaigns: List[TopCampaignResponse]
    recentEvents: List[RecentEventResponse]
    campaignStats: CampaignStatsResponse
    adminMetrics: AdminMetricsResponse
    doctorMetrics: DoctorMetricsResponse
    salesCount: int
    unattributedIncome: float = Field(description="Sales with no ad, or whose ad had no stats")
    unattributedSalesCount: int
