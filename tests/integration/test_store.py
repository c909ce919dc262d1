"""
Integration tests for adreport/store.py

Runs against a real DuckDB file in a temporary directory.
"""
import asyncio
from concurrent.futures import Future, ThreadPoolExecutor

import pytest

from adreport.exceptions import QueryTimeoutError, StorageError
from adreport.models import MatchQuality
from adreport.store import DuckDBStore

PROJECT_ID = "proj-1"
JUNE_START_TS = 1717200000000
JUNE_END_TS = 1719791999999


class _StuckExecutor(ThreadPoolExecutor):
    """Executor whose jobs never complete."""

    def submit(self, fn, *args, **kwargs):
        return Future()


async def _seed(store: DuckDBStore, records) -> None:
    await store.upsert_ad_accounts(records["accounts"])
    await store.upsert_campaigns(records["campaigns"])
    await store.upsert_ad_groups(records["ad_groups"])
    await store.upsert_ads(records["ads"])
    await store.upsert_daily_stats(records["stats"])
    await store.upsert_sales(records["sales"])
    await store.upsert_leads(records["leads"])


class TestLifecycle:
    """Tests for connect/close."""

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "report.duckdb"
        store = DuckDBStore(db_path=str(db_path))
        await store.connect()
        try:
            assert db_path.parent.exists()
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_lazy_connect_on_first_query(self, tmp_path):
        store = DuckDBStore(db_path=str(tmp_path / "lazy.duckdb"))
        try:
            assert await store.get_ads(PROJECT_ID) == []
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, tmp_path):
        store = DuckDBStore(db_path=str(tmp_path / "close.duckdb"))
        await store.connect()
        await store.close()
        await store.close()

    @pytest.mark.asyncio
    async def test_in_memory(self):
        store = DuckDBStore(db_path=":memory:")
        try:
            stats = await store.get_stats()
            assert stats["ads"] == 0
        finally:
            await store.close()


class TestReadsAndWrites:
    """Tests for upserts and project-scoped reads."""

    @pytest.mark.asyncio
    async def test_round_trip_hierarchy(self, tmp_path, project_records):
        store = DuckDBStore(db_path=str(tmp_path / "rt.duckdb"))
        try:
            await _seed(store, project_records)

            accounts = await store.get_ad_accounts(PROJECT_ID)
            assert [a.id for a in accounts] == ["acc-fb", "acc-gg"]
            assert accounts[0].channel == "facebook"

            campaigns = await store.get_campaigns(PROJECT_ID)
            assert [(c.id, c.is_active) for c in campaigns] == [("c1", True), ("c2", False), ("c3", True)]

            ads = await store.get_ads(PROJECT_ID)
            assert [a.external_ad_id for a in ads] == ["fb-ad-1", "fb-ad-2", "fb-ad-3", "g-ad-4"]
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_daily_stats_range_is_inclusive(self, tmp_path, project_records):
        store = DuckDBStore(db_path=str(tmp_path / "range.duckdb"))
        try:
            await _seed(store, project_records)

            june = await store.get_daily_stats(PROJECT_ID, JUNE_START_TS, JUNE_END_TS)
            assert len(june) == 4

            # 2024-06-10 exactly to 2024-06-11 exactly
            start = 1717977600000
            end = start + 86_400_000
            window = await store.get_daily_stats(PROJECT_ID, start, end)
            assert [(s.ad_id, s.date) for s in window] == [("a1", "2024-06-10"), ("a3", "2024-06-11")]
            assert window[0].spend == 600.0
            assert window[0].appointments_attended == 1
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_reads_are_project_scoped(self, tmp_path, project_records):
        store = DuckDBStore(db_path=str(tmp_path / "scope.duckdb"))
        try:
            await _seed(store, project_records)
            assert await store.get_ads("other") == []
            assert await store.get_daily_stats("other", JUNE_START_TS, JUNE_END_TS) == []
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_daily_stats_upsert_is_idempotent(self, tmp_path, project_records):
        store = DuckDBStore(db_path=str(tmp_path / "idem.duckdb"))
        try:
            await store.upsert_daily_stats(project_records["stats"])
            await store.upsert_daily_stats(project_records["stats"])
            assert (await store.get_stats())["ad_daily_stats"] == 4

            updated = dict(project_records["stats"][0], spend=650.0)
            await store.upsert_daily_stats([updated])
            rows = await store.get_daily_stats(PROJECT_ID, JUNE_START_TS, JUNE_END_TS)
            assert rows[0].spend == 650.0
            assert len(rows) == 4
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_duplicate_keys_in_batch_keep_last(self, tmp_path):
        store = DuckDBStore(db_path=str(tmp_path / "dup.duckdb"))
        base = {"ad_id": "a1", "project_id": PROJECT_ID, "date": "2024-06-10"}
        try:
            count = await store.upsert_daily_stats([dict(base, clicks=1), dict(base, clicks=2)])
            assert count == 1
            rows = await store.get_daily_stats(PROJECT_ID, JUNE_START_TS, JUNE_END_TS)
            assert rows[0].clicks == 2
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_sales_and_leads(self, tmp_path, project_records):
        store = DuckDBStore(db_path=str(tmp_path / "crm.duckdb"))
        try:
            await _seed(store, project_records)

            sales = {s.id: s for s in await store.get_sales(PROJECT_ID)}
            assert len(sales) == 5
            assert sales["s1"].days_to_sale == 2
            assert sales["s1"].match_quality == MatchQuality.EXACT
            assert sales["s4"].ad_id is None
            assert sales["s4"].match_quality == MatchQuality.CHANNEL_ONLY

            leads = await store.get_leads(PROJECT_ID)
            assert sum(1 for lead in leads if lead.is_qualified) == 3
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_read_project_snapshot(self, tmp_path, project_records):
        store = DuckDBStore(db_path=str(tmp_path / "snap.duckdb"))
        try:
            await _seed(store, project_records)
            before = store._total_queries
            snapshot = await store.read_project(PROJECT_ID, JUNE_START_TS, JUNE_END_TS)
            assert store._total_queries - before == 7

            assert len(snapshot.stats) == 4
            assert [a.id for a in snapshot.accounts] == ["acc-fb", "acc-gg"]
            assert [c.id for c in snapshot.campaigns] == ["c1", "c2", "c3"]
            assert [g.id for g in snapshot.ad_groups] == ["g1", "g2", "g3"]
            assert len(snapshot.ads) == 4
            assert len(snapshot.sales) == 5
            assert len(snapshot.leads) == 4
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_read_project_waits_for_queued_write(self, tmp_path, project_records):
        store = DuckDBStore(db_path=str(tmp_path / "queued.duckdb"))
        extra_sale = dict(project_records["sales"][0], id="s-extra")
        try:
            await _seed(store, project_records)
            first, _, second = await asyncio.gather(
                store.read_project(PROJECT_ID, JUNE_START_TS, JUNE_END_TS),
                store.upsert_sales([extra_sale]),
                store.read_project(PROJECT_ID, JUNE_START_TS, JUNE_END_TS),
            )
            assert len(first.sales) == 5
            assert len(second.sales) == 6
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_empty_upsert(self, tmp_path):
        store = DuckDBStore(db_path=str(tmp_path / "empty.duckdb"))
        try:
            assert await store.upsert_sales([]) == 0
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_get_stats_counts(self, tmp_path, project_records):
        store = DuckDBStore(db_path=str(tmp_path / "stats.duckdb"))
        try:
            await _seed(store, project_records)
            stats = await store.get_stats()
            assert stats["ad_accounts"] == 2
            assert stats["ads"] == 4
            assert stats["sales"] == 5
            assert stats["leads"] == 4
            assert stats["total_queries"] >= 7
        finally:
            await store.close()


class TestErrors:
    """Tests for error translation."""

    @pytest.mark.asyncio
    async def test_bad_query_raises_storage_error(self, tmp_path):
        store = DuckDBStore(db_path=str(tmp_path / "err.duckdb"))
        try:
            with pytest.raises(StorageError):
                await store._fetch_dicts("SELECT * FROM no_such_table")
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_timeout_raises_query_timeout(self, tmp_path):
        store = DuckDBStore(db_path=str(tmp_path / "slow.duckdb"), query_timeout=0.05)
        await store.connect()
        store._executor.shutdown()
        store._executor = _StuckExecutor(max_workers=1)
        try:
            with pytest.raises(QueryTimeoutError) as exc_info:
                await store.get_ads(PROJECT_ID)
            assert exc_info.value.timeout == 0.05
        finally:
            await store.close()
