"""
DuckDB store for ad hierarchy, daily stats and CRM records.

The report builders only need simple lookups keyed by project: daily
stats in a millisecond range, and the full hierarchy, sales and leads.
read_project() returns all of them from one transaction. The upsert methods are the seams the ingestion jobs and CRM webhooks
write through; they are idempotent by primary key.
"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import duckdb

from adreport.config import config
from adreport.exceptions import QueryTimeoutError, StorageError
from adreport.models import (
    STAT_COUNTER_FIELDS,
    Ad,
    AdAccount,
    AdGroup,
    Campaign,
    DailyStat,
    Lead,
    Sale,
)
from adreport.observability import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS ad_accounts (
    id VARCHAR PRIMARY KEY,
    project_id VARCHAR NOT NULL,
    external_account_id VARCHAR,
    name VARCHAR NOT NULL,
    channel VARCHAR NOT NULL,
    is_active BOOLEAN DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS campaigns (
    id VARCHAR PRIMARY KEY,
    project_id VARCHAR NOT NULL,
    ad_account_id VARCHAR NOT NULL,
    external_campaign_id VARCHAR,
    name VARCHAR NOT NULL,
    channel VARCHAR,
    is_active BOOLEAN DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS ad_groups (
    id VARCHAR PRIMARY KEY,
    project_id VARCHAR NOT NULL,
    campaign_id VARCHAR NOT NULL,
    external_adset_id VARCHAR,
    name VARCHAR NOT NULL,
    is_active BOOLEAN DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS ads (
    id VARCHAR PRIMARY KEY,
    project_id VARCHAR NOT NULL,
    ad_group_id VARCHAR NOT NULL,
    campaign_id VARCHAR NOT NULL,
    external_ad_id VARCHAR NOT NULL,
    name VARCHAR NOT NULL,
    channel VARCHAR,
    is_active BOOLEAN DEFAULT TRUE
);

CREATE TABLE IF NOT EXISTS ad_daily_stats (
    ad_id VARCHAR NOT NULL,
    project_id VARCHAR NOT NULL,
    date VARCHAR NOT NULL,
    date_ts BIGINT NOT NULL,
    impressions BIGINT DEFAULT 0,
    clicks BIGINT DEFAULT 0,
    spend DOUBLE DEFAULT 0,
    leads BIGINT DEFAULT 0,
    results BIGINT DEFAULT 0,
    reach BIGINT DEFAULT 0,
    whatsapp_requests BIGINT DEFAULT 0,
    appointments_scheduled BIGINT DEFAULT 0,
    appointments_attended BIGINT DEFAULT 0,
    treatments_completed BIGINT DEFAULT 0,
    plans_sent BIGINT DEFAULT 0,
    PRIMARY KEY (ad_id, date)
);

CREATE TABLE IF NOT EXISTS leads (
    id VARCHAR PRIMARY KEY,
    project_id VARCHAR NOT NULL,
    ad_id VARCHAR,
    channel VARCHAR,
    phone VARCHAR,
    client_name VARCHAR,
    is_qualified BOOLEAN DEFAULT FALSE,
    created_at BIGINT NOT NULL
);

CREATE TABLE IF NOT EXISTS sales (
    id VARCHAR PRIMARY KEY,
    project_id VARCHAR NOT NULL,
    lead_id VARCHAR,
    ad_id VARCHAR,
    channel VARCHAR,
    deal_link VARCHAR,
    deal_status VARCHAR,
    amount DOUBLE NOT NULL,
    client_name VARCHAR,
    sale_date_str VARCHAR NOT NULL,
    registration_date_str VARCHAR NOT NULL,
    created_at BIGINT NOT NULL,
    match_quality VARCHAR,
    days_to_sale INTEGER
);
"""

# Tables reported by get_stats()
TABLES = ["ad_accounts", "campaigns", "ad_groups", "ads", "ad_daily_stats", "leads", "sales"]

DAILY_STATS_SQL = """
SELECT * FROM ad_daily_stats
WHERE project_id = ? AND date_ts BETWEEN ? AND ?
ORDER BY date, ad_id
"""
ACCOUNTS_SQL = "SELECT * FROM ad_accounts WHERE project_id = ? ORDER BY id"
CAMPAIGNS_SQL = "SELECT * FROM campaigns WHERE project_id = ? ORDER BY id"
AD_GROUPS_SQL = "SELECT * FROM ad_groups WHERE project_id = ? ORDER BY id"
ADS_SQL = "SELECT * FROM ads WHERE project_id = ? ORDER BY id"
SALES_SQL = "SELECT * FROM sales WHERE project_id = ? ORDER BY created_at, id"
LEADS_SQL = "SELECT * FROM leads WHERE project_id = ? ORDER BY created_at, id"


@dataclass
class ProjectSnapshot:
    """One project's rows, read in a single transaction."""

    stats: List[DailyStat]
    accounts: List[AdAccount]
    campaigns: List[Campaign]
    ad_groups: List[AdGroup]
    ads: List[Ad]
    sales: List[Sale]
    leads: List[Lead]


class DuckDBStore:
    """
    Async-compatible DuckDB store.

    All access to the single connection is serialized by an asyncio lock;
    reads run on a one-thread executor so they do not block the event loop.
    """

    def __init__(self, db_path: Optional[str] = None, query_timeout: Optional[float] = None):
        self.db_path = db_path or config.storage.db_path
        self.query_timeout = query_timeout or config.storage.query_timeout
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._total_queries = 0

    async def connect(self) -> None:
        """Open the connection, create the schema and start the executor."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        async with self._lock:
            if self._connection is None:
                try:
                    self._connection = duckdb.connect(self.db_path)
                    self._connection.execute(SCHEMA_SQL)
                except duckdb.Error as e:
                    self._connection = None
                    raise StorageError("Failed to open DuckDB store", str(e))

                # Single worker: DuckDB connections are not thread-safe
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="duckdb")
                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close the connection and executor."""
        async with self._lock:
            if self._executor:
                self._executor.shutdown(wait=True)
                self._executor = None
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    @asynccontextmanager
    async def connection(self):
        """Get the connection, connecting first if needed. Holds the lock."""
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    # ─── Reads ──────────────────────────────────────────────────────────────

    async def _run_reads(self, queries: List[Tuple[str, list]]) -> List[List[Dict[str, Any]]]:
        """
        Run read queries inside one transaction on the executor.

        The lock is held for the whole batch and every query sees the same
        committed state, so writes land either before or after all of them.

        Raises:
            QueryTimeoutError: If the batch exceeds the store timeout
            StorageError: If DuckDB rejects a query
        """
        async with self.connection() as conn:
            self._total_queries += len(queries)
            loop = asyncio.get_running_loop()

            def _run():
                conn.execute("BEGIN TRANSACTION")
                try:
                    results = []
                    for query, params in queries:
                        cursor = conn.execute(query, params)
                        columns = [d[0] for d in cursor.description]
                        results.append([dict(zip(columns, row)) for row in cursor.fetchall()])
                    conn.execute("COMMIT")
                except duckdb.Error:
                    conn.execute("ROLLBACK")
                    raise
                return results

            try:
                return await asyncio.wait_for(
                    loop.run_in_executor(self._executor, _run),
                    timeout=self.query_timeout,
                )
            except asyncio.TimeoutError:
                raise QueryTimeoutError(queries[0][0], self.query_timeout, "Fetch failed")
            except duckdb.Error as e:
                raise StorageError("Query failed", str(e))

    async def _fetch_dicts(self, query: str, params: Optional[list] = None) -> List[Dict[str, Any]]:
        """Run a single read query and return rows as dicts."""
        results = await self._run_reads([(query, params or [])])
        return results[0]

    async def read_project(self, project_id: str, start_ts: int, end_ts: int) -> ProjectSnapshot:
        """
        Everything a report needs for one project, read as one snapshot.

        Args:
            project_id: Project to read
            start_ts: Stats window start, epoch ms (inclusive)
            end_ts: Stats window end, epoch ms (inclusive)
        """
        stats, accounts, campaigns, ad_groups, ads, sales, leads = await self._run_reads([
            (DAILY_STATS_SQL, [project_id, start_ts, end_ts]),
            (ACCOUNTS_SQL, [project_id]),
            (CAMPAIGNS_SQL, [project_id]),
            (AD_GROUPS_SQL, [project_id]),
            (ADS_SQL, [project_id]),
            (SALES_SQL, [project_id]),
            (LEADS_SQL, [project_id]),
        ])
        return ProjectSnapshot(
            stats=[DailyStat.from_record(r) for r in stats],
            accounts=[AdAccount.from_record(r) for r in accounts],
            campaigns=[Campaign.from_record(r) for r in campaigns],
            ad_groups=[AdGroup.from_record(r) for r in ad_groups],
            ads=[Ad.from_record(r) for r in ads],
            sales=[Sale.from_record(r) for r in sales],
            leads=[Lead.from_record(r) for r in leads],
        )

    async def get_daily_stats(self, project_id: str, start_ts: int, end_ts: int) -> List[DailyStat]:
        """Daily stats for a project with start_ts <= date_ts <= end_ts."""
        rows = await self._fetch_dicts(DAILY_STATS_SQL, [project_id, start_ts, end_ts])
        return [DailyStat.from_record(r) for r in rows]

    async def get_ad_accounts(self, project_id: str) -> List[AdAccount]:
        rows = await self._fetch_dicts(ACCOUNTS_SQL, [project_id])
        return [AdAccount.from_record(r) for r in rows]

    async def get_campaigns(self, project_id: str) -> List[Campaign]:
        rows = await self._fetch_dicts(CAMPAIGNS_SQL, [project_id])
        return [Campaign.from_record(r) for r in rows]

    async def get_ad_groups(self, project_id: str) -> List[AdGroup]:
        rows = await self._fetch_dicts(AD_GROUPS_SQL, [project_id])
        return [AdGroup.from_record(r) for r in rows]

    async def get_ads(self, project_id: str) -> List[Ad]:
        rows = await self._fetch_dicts(ADS_SQL, [project_id])
        return [Ad.from_record(r) for r in rows]

    async def get_sales(self, project_id: str) -> List[Sale]:
        """All sales for a project, any date."""
        rows = await self._fetch_dicts(SALES_SQL, [project_id])
        return [Sale.from_record(r) for r in rows]

    async def get_leads(self, project_id: str) -> List[Lead]:
        """All leads for a project, any date."""
        rows = await self._fetch_dicts(LEADS_SQL, [project_id])
        return [Lead.from_record(r) for r in rows]

    async def get_stats(self) -> Dict[str, Any]:
        """Row counts per table, for health checks."""
        counts = {}
        for table in TABLES:
            rows = await self._fetch_dicts(f"SELECT COUNT(*) AS n FROM {table}")
            counts[table] = rows[0]["n"]
        counts["total_queries"] = self._total_queries
        return counts

    # ─── Writes ─────────────────────────────────────────────────────────────

    async def _upsert(self, table: str, columns: List[str], rows: List[tuple]) -> int:
        """INSERT OR REPLACE rows in one transaction."""
        if not rows:
            return 0

        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"

        async with self.connection() as conn:
            loop = asyncio.get_running_loop()

            def _run():
                conn.execute("BEGIN TRANSACTION")
                try:
                    conn.executemany(sql, rows)
                    conn.execute("COMMIT")
                except duckdb.Error:
                    conn.execute("ROLLBACK")
                    raise

            # Same worker as the reads, so a write never interleaves with a read batch
            try:
                await loop.run_in_executor(self._executor, _run)
            except duckdb.Error as e:
                raise StorageError(f"Upsert into {table} failed", str(e), table=table)

        logger.info(f"Upserted {len(rows)} rows to {table}")
        return len(rows)

    async def upsert_ad_accounts(self, records: List[Dict[str, Any]]) -> int:
        accounts = [AdAccount.from_record(r) for r in records]
        return await self._upsert(
            "ad_accounts",
            ["id", "project_id", "external_account_id", "name", "channel", "is_active"],
            [(a.id, a.project_id, a.external_account_id, a.name, a.channel, a.is_active) for a in accounts],
        )

    async def upsert_campaigns(self, records: List[Dict[str, Any]]) -> int:
        campaigns = [Campaign.from_record(r) for r in records]
        return await self._upsert(
            "campaigns",
            ["id", "project_id", "ad_account_id", "external_campaign_id", "name", "channel", "is_active"],
            [
                (c.id, c.project_id, c.ad_account_id, c.external_campaign_id, c.name, c.channel, c.is_active)
                for c in campaigns
            ],
        )

    async def upsert_ad_groups(self, records: List[Dict[str, Any]]) -> int:
        groups = [AdGroup.from_record(r) for r in records]
        return await self._upsert(
            "ad_groups",
            ["id", "project_id", "campaign_id", "external_adset_id", "name", "is_active"],
            [(g.id, g.project_id, g.campaign_id, g.external_adset_id, g.name, g.is_active) for g in groups],
        )

    async def upsert_ads(self, records: List[Dict[str, Any]]) -> int:
        ads = [Ad.from_record(r) for r in records]
        return await self._upsert(
            "ads",
            ["id", "project_id", "ad_group_id", "campaign_id", "external_ad_id", "name", "channel", "is_active"],
            [
                (a.id, a.project_id, a.ad_group_id, a.campaign_id, a.external_ad_id, a.name, a.channel, a.is_active)
                for a in ads
            ],
        )

    async def upsert_daily_stats(self, records: List[Dict[str, Any]]) -> int:
        """
        Insert or replace daily stats, keyed by (ad_id, date).

        Repeated keys within one batch keep the last record.
        """
        latest: Dict[tuple, DailyStat] = {}
        for record in records:
            stat = DailyStat.from_record(record)
            latest[(stat.ad_id, stat.date)] = stat

        columns = ["ad_id", "project_id", "date", "date_ts"] + STAT_COUNTER_FIELDS
        return await self._upsert(
            "ad_daily_stats",
            columns,
            [tuple(getattr(s, c) for c in columns) for s in latest.values()],
        )

    async def upsert_leads(self, records: List[Dict[str, Any]]) -> int:
        leads = [Lead.from_record(r) for r in records]
        return await self._upsert(
            "leads",
            ["id", "project_id", "ad_id", "channel", "phone", "client_name", "is_qualified", "created_at"],
            [
                (lead.id, lead.project_id, lead.ad_id, lead.channel, lead.phone, lead.client_name, lead.is_qualified, lead.created_at)
                for lead in leads
            ],
        )

    async def upsert_sales(self, records: List[Dict[str, Any]]) -> int:
        sales = [Sale.from_record(r) for r in records]
        columns = [
            "id", "project_id", "lead_id", "ad_id", "channel", "deal_link", "deal_status",
            "amount", "client_name", "sale_date_str", "registration_date_str", "created_at",
            "match_quality", "days_to_sale",
        ]
        return await self._upsert(
            "sales",
            columns,
            [
                (
                    s.id, s.project_id, s.lead_id, s.ad_id, s.channel, s.deal_link, s.deal_status,
                    s.amount, s.client_name, s.sale_date_str, s.registration_date_str, s.created_at,
                    s.match_quality.value, s.days_to_sale,
                )
                for s in sales
            ],
        )


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_store_instance: Optional[DuckDBStore] = None
_store_lock = asyncio.Lock()


async def get_store() -> DuckDBStore:
    """Get singleton store instance (coroutine-safe)."""
    global _store_instance
    async with _store_lock:
        if _store_instance is None:
            _store_instance = DuckDBStore()
            await _store_instance.connect()
    return _store_instance


async def close_store() -> None:
    """Close singleton store instance."""
    global _store_instance
    if _store_instance:
        await _store_instance.close()
        _store_instance = None
