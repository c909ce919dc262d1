"""
Tests for adreport.aggregation module.
"""
import pytest

from adreport.aggregation import (
    Row,
    build_hierarchy,
    build_parent_row,
    build_row,
    count_qualified_leads,
    group_by_key,
)
from adreport.metric_set import MetricSet
from adreport.models import Ad, AdAccount, AdGroup, Campaign, RowType


def _build(project, **kwargs):
    return build_hierarchy(
        project["stats"],
        project["accounts"],
        project["campaigns"],
        project["ad_groups"],
        project["ads"],
        project["sales"],
        project["leads"],
        **kwargs,
    )


def _walk(rows):
    for row in rows:
        yield row
        yield from _walk(row.children or [])


class TestBuildRow:
    """Tests for build_row function."""

    def test_derived_values(self):
        row = build_row(
            id="a1", name="Video A", type=RowType.AD, is_active=True, account="Main FB",
            metrics=MetricSet(impressions=10000, clicks=500, spend=1000.0, leads=8, results=6, reach=7000),
            income=1200.0, q_leads=1, sales_count=2, ad_id="fb-ad-1",
        )
        assert row.expenses == 1000.0
        assert row.income == 1200.0
        assert row.roas == 20.0
        assert row.ctr == 5.0
        assert row.cpc == 2.0
        assert row.cpm == 100.0
        assert row.cpr == 166.67
        assert row.cpl == 125.0
        assert row.cpql == 1000.0
        assert row.cps == 500.0
        assert row.aov == 600.0
        assert row.children is None

    def test_zero_metrics(self):
        row = build_row(
            id="x", name="x", type=RowType.AD, is_active=True, account="",
            metrics=MetricSet.empty(), income=0, q_leads=0, sales_count=0,
        )
        assert (row.roas, row.ctr, row.cpc, row.cpm, row.cps, row.aov) == (0, 0, 0, 0, 0, 0)

    def test_to_dict_omits_missing_ad_id_and_children(self):
        row = build_row(
            id="g1", name="Broad", type=RowType.GROUP, is_active=True, account="Main FB",
            metrics=MetricSet.empty(), income=0, q_leads=0, sales_count=0, children=[],
        )
        data = row.to_dict()
        assert "adId" not in data
        assert "children" not in data
        assert data["type"] == "group"
        assert data["isActive"] is True
        assert data["qLeads"] == 0


class TestBuildParentRow:
    """Tests for build_parent_row function."""

    def test_recomputes_ratios_from_sums(self):
        """Parent CTR comes from summed counters, not an average of child CTRs."""
        children = [
            build_row(id="a", name="a", type=RowType.AD, is_active=True, account="",
                      metrics=MetricSet(impressions=100, clicks=10, spend=10.0),
                      income=0, q_leads=0, sales_count=0),
            build_row(id="b", name="b", type=RowType.AD, is_active=True, account="",
                      metrics=MetricSet(impressions=900, clicks=10, spend=30.0),
                      income=80.0, q_leads=2, sales_count=1),
        ]
        parent = build_parent_row("g", "g", RowType.GROUP, True, "", children)
        assert parent.impressions == 1000
        assert parent.clicks == 20
        assert parent.ctr == 2.0
        assert parent.expenses == 40.0
        assert parent.income == 80.0
        assert parent.roas == 100.0
        assert parent.q_leads == 2
        assert parent.sales == 1
        assert parent.children == children


class TestHelpers:
    """Tests for grouping helpers."""

    def test_group_by_key_keeps_order(self):
        grouped = group_by_key([("x", 1), ("y", 2), ("x", 3)], lambda item: item[0])
        assert grouped == {"x": [("x", 1), ("x", 3)], "y": [("y", 2)]}

    def test_count_qualified_leads(self, project):
        assert count_qualified_leads(project["leads"]) == {"a1": 1, "a2": 1}


class TestBuildHierarchy:
    """Tests for build_hierarchy on the sample project."""

    def test_shape(self, project):
        rows = _build(project)
        assert [r.id for r in rows] == ["acc-fb"]
        account = rows[0]
        assert [c.id for c in account.children] == ["c1", "c2"]
        assert [g.id for g in account.children[0].children] == ["g1"]
        assert [a.id for a in account.children[0].children[0].children] == ["a1", "a2"]

    def test_account_label_and_name(self, project):
        account = _build(project)[0]
        assert account.name == "Facebook Ads"
        assert all(row.account == "Main FB" for row in _walk([account]))

    def test_ad_row(self, project):
        ads = {r.id: r for r in _walk(_build(project)) if r.type == RowType.AD}
        a1 = ads["a1"]
        assert a1.ad_id == "fb-ad-1"
        assert a1.impressions == 10000
        assert a1.clicks == 500
        assert a1.expenses == 1000.0
        assert a1.ctr == 5.0
        assert a1.cpc == 2.0
        assert a1.income == 1200.0
        assert a1.sales == 2
        assert a1.roas == 20.0
        assert a1.q_leads == 1

    def test_loss_making_ad(self, project):
        ads = {r.id: r for r in _walk(_build(project)) if r.type == RowType.AD}
        assert ads["a2"].income == 0
        assert ads["a2"].roas == -100.0
        assert ads["a2"].q_leads == 1

    def test_group_rollup(self, project):
        group = _build(project)[0].children[0].children[0]
        assert group.expenses == 1100.0
        assert group.income == 1200.0
        assert group.impressions == 12000
        assert group.clicks == 540
        assert group.ctr == 4.5
        assert group.roas == 9.1
        assert group.q_leads == 2
        assert group.sales == 2

    def test_rollup_consistency(self, project):
        """Every parent's counters equal the sum of its children's."""
        for row in _walk(_build(project)):
            if not row.children:
                continue
            for field in ("impressions", "clicks", "reach", "results", "leads", "q_leads", "sales"):
                assert getattr(row, field) == sum(getattr(c, field) for c in row.children)
            assert row.expenses == pytest.approx(sum(c.expenses for c in row.children))
            assert row.income == pytest.approx(sum(c.income for c in row.children))

    def test_ads_without_stats_dropped(self, project):
        """a4 has a sale but no stats, so it and its empty parents are gone."""
        ids = {r.id for r in _walk(_build(project))}
        assert "a4" not in ids
        assert "g3" not in ids
        assert "c3" not in ids
        assert "acc-gg" not in ids

    def test_orphaned_ad_excluded(self, project, make_stat):
        """Stats for an ad whose group is missing do not surface anywhere."""
        project["ads"].append(Ad(
            id="a9", project_id="proj-1", ad_group_id="missing", campaign_id="c1",
            name="Orphan", external_ad_id="fb-ad-9",
        ))
        project["stats"].append(make_stat("a9", "2024-06-12", impressions=999, spend=9.0))
        rows = _build(project)
        assert "a9" not in {r.id for r in _walk(rows)}
        assert rows[0].impressions == 13000

    def test_empty_inputs(self):
        assert build_hierarchy([], [], [], [], [], [], []) == []

    def test_late_window_override(self, project):
        """With no late window a1 keeps only its direct sale."""
        ads = {r.id: r for r in _walk(_build(project, late_window_days=0)) if r.type == RowType.AD}
        assert ads["a1"].sales == 1
        assert ads["a1"].income == 500.0

    def test_unknown_channel_uses_account_name(self, make_stat):
        rows = build_hierarchy(
            [make_stat("ad", "2024-06-01", impressions=10)],
            [AdAccount(id="acc", project_id="p", name="Partner network", channel="native")],
            [Campaign(id="c", project_id="p", ad_account_id="acc", name="C")],
            [AdGroup(id="g", project_id="p", campaign_id="c", name="G")],
            [Ad(id="ad", project_id="p", ad_group_id="g", campaign_id="c", name="Ad", external_ad_id="x")],
            [],
            [],
        )
        assert rows[0].name == "Partner network"

    def test_to_dict_tree(self, project):
        data = [row.to_dict() for row in _build(project)]
        ad = data[0]["children"][0]["children"][0]["children"][0]
        assert ad["adId"] == "fb-ad-1"
        assert "children" not in ad
        assert "adId" not in data[0]
        assert isinstance(_build(project)[0], Row)
