"""
Report service: reads one project's data from the store and runs the
pure builders over it.

Both reports read the whole hierarchy, sales and leads for the project,
plus the daily stats inside the requested window, in one store
transaction. Nothing is cached between calls.
"""
from typing import Any, Dict, List, Optional

from adreport.aggregation import build_hierarchy
from adreport.config import config
from adreport.observability import Timer, get_logger
from adreport.store import DuckDBStore
from adreport.summary import build_dashboard_summary
from adreport.validators import validate_project_id, validate_timestamp_range

logger = get_logger(__name__)


class ReportService:
    """Builds the analytics tree and dashboard summary for a project."""

    def __init__(self, store: DuckDBStore, late_window_days: Optional[int] = None):
        self.store = store
        self.late_window_days = (
            config.attribution.late_window_days if late_window_days is None else late_window_days
        )

    async def get_hierarchical_data(
        self,
        project_id: str,
        start_ts: int,
        end_ts: int,
    ) -> List[Dict[str, Any]]:
        """
        Account -> campaign -> group -> ad rows for the window.

        Args:
            project_id: Project to report on
            start_ts: Window start, epoch ms (inclusive)
            end_ts: Window end, epoch ms (inclusive)

        Returns:
            Top-level account rows as camelCase dicts with nested children

        Raises:
            ValidationError: If the project id or range is invalid
        """
        project_id = validate_project_id(project_id)
        start_ts, end_ts = validate_timestamp_range(start_ts, end_ts)

        with Timer("hierarchy_read", logger):
            snapshot = await self.store.read_project(project_id, start_ts, end_ts)

        with Timer("hierarchy_build", logger):
            rows = build_hierarchy(
                snapshot.stats,
                snapshot.accounts,
                snapshot.campaigns,
                snapshot.ad_groups,
                snapshot.ads,
                snapshot.sales,
                snapshot.leads,
                late_window_days=self.late_window_days,
            )

        logger.info(
            f"Built hierarchy for {project_id}",
            extra={
                "project_id": project_id,
                "stat_rows": len(snapshot.stats),
                "accounts": len(rows),
            },
        )
        return [row.to_dict() for row in rows]

    async def get_dashboard_summary(
        self,
        project_id: str,
        start_ts: int,
        end_ts: int,
        now_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Dashboard summary for the window.

        Raises:
            ValidationError: If the project id or range is invalid
        """
        project_id = validate_project_id(project_id)
        start_ts, end_ts = validate_timestamp_range(start_ts, end_ts)

        with Timer("summary_read", logger):
            snapshot = await self.store.read_project(project_id, start_ts, end_ts)

        with Timer("summary_build", logger):
            summary = build_dashboard_summary(
                snapshot.stats,
                snapshot.leads,
                snapshot.sales,
                snapshot.campaigns,
                snapshot.ads,
                now_ms=now_ms,
                late_window_days=self.late_window_days,
            )

        logger.info(
            f"Built dashboard summary for {project_id}",
            extra={"project_id": project_id, "stat_rows": len(snapshot.stats)},
        )
        return summary.to_dict()
