"""
Ad performance reporting backend.

Shared by the web/ API and the ingestion jobs:
- attribution: Direct and late sale attribution per ad
- aggregation: Account -> campaign -> group -> ad analytics tree
- summary: Project dashboard projection
- store: DuckDB storage
- service: Report service tying store and builders together
"""

# Import in dependency order
from adreport.exceptions import (
    ReportError,
    StorageError,
    QueryTimeoutError,
    ValidationError,
)

from adreport.config import config

from adreport.attribution import (
    AttributionResult,
    attribute_ad,
    attribute_sales_for_ad,
    get_ad_active_periods,
)

from adreport.aggregation import Row, build_hierarchy

from adreport.summary import DashboardSummary, build_dashboard_summary

__all__ = [
    # Exceptions
    "ReportError",
    "StorageError",
    "QueryTimeoutError",
    "ValidationError",
    # Config
    "config",
    # Attribution
    "AttributionResult",
    "attribute_ad",
    "attribute_sales_for_ad",
    "get_ad_active_periods",
    # Reports
    "Row",
    "build_hierarchy",
    "DashboardSummary",
    "build_dashboard_summary",
]
