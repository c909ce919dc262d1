"""
Pytest configuration and shared fixtures.

The sample project has one Facebook account with two campaigns and one
Google account whose only ad never ran in June 2024:

    acc-fb "Main FB" (facebook)
    ├── c1 "Spring Promo" (active) / g1 / a1, a2
    └── c2 "Retargeting" (paused)  / g2 / a3
    acc-gg "Search" (google)
    └── c3 "Brand" (active)        / g3 / a4   <- no stats
"""
import pytest
from typing import Any, Dict, List

from adreport.models import Ad, AdAccount, AdGroup, Campaign, DailyStat, Lead, Sale

PROJECT_ID = "proj-1"

# 2024-06-25T12:00:00Z, reference time for relative event labels
NOW_MS = 1719316800000


def _stat(ad_id: str, day: str, **counters) -> Dict[str, Any]:
    return {"ad_id": ad_id, "project_id": PROJECT_ID, "date": day, **counters}


@pytest.fixture
def project_records() -> Dict[str, List[Dict[str, Any]]]:
    """Raw store records for the sample project."""
    return {
        "accounts": [
            {"id": "acc-fb", "project_id": PROJECT_ID, "name": "Main FB", "channel": "facebook"},
            {"id": "acc-gg", "project_id": PROJECT_ID, "name": "Search", "channel": "google"},
        ],
        "campaigns": [
            {"id": "c1", "project_id": PROJECT_ID, "ad_account_id": "acc-fb",
             "name": "Spring Promo", "channel": "facebook", "is_active": True},
            {"id": "c2", "project_id": PROJECT_ID, "ad_account_id": "acc-fb",
             "name": "Retargeting", "channel": "facebook", "is_active": False},
            {"id": "c3", "project_id": PROJECT_ID, "ad_account_id": "acc-gg",
             "name": "Brand", "channel": "google", "is_active": True},
        ],
        "ad_groups": [
            {"id": "g1", "project_id": PROJECT_ID, "campaign_id": "c1", "name": "Broad"},
            {"id": "g2", "project_id": PROJECT_ID, "campaign_id": "c2", "name": "Visitors"},
            {"id": "g3", "project_id": PROJECT_ID, "campaign_id": "c3", "name": "Exact"},
        ],
        "ads": [
            {"id": "a1", "project_id": PROJECT_ID, "ad_group_id": "g1", "campaign_id": "c1",
             "name": "Video A", "external_ad_id": "fb-ad-1", "channel": "facebook"},
            {"id": "a2", "project_id": PROJECT_ID, "ad_group_id": "g1", "campaign_id": "c1",
             "name": "Carousel B", "external_ad_id": "fb-ad-2", "channel": "facebook"},
            {"id": "a3", "project_id": PROJECT_ID, "ad_group_id": "g2", "campaign_id": "c2",
             "name": "Static C", "external_ad_id": "fb-ad-3", "channel": "facebook"},
            {"id": "a4", "project_id": PROJECT_ID, "ad_group_id": "g3", "campaign_id": "c3",
             "name": "Text D", "external_ad_id": "g-ad-4", "channel": "google"},
        ],
        "stats": [
            _stat("a1", "2024-06-10", impressions=6000, clicks=300, spend=600.0, leads=5,
                  results=4, reach=4000, appointments_scheduled=2, appointments_attended=1),
            _stat("a1", "2024-06-15", impressions=4000, clicks=200, spend=400.0, leads=3,
                  results=2, reach=3000, appointments_scheduled=1, appointments_attended=1),
            _stat("a2", "2024-06-12", impressions=2000, clicks=40, spend=100.0, leads=1,
                  results=1, reach=1500),
            _stat("a3", "2024-06-11", impressions=1000, clicks=10, spend=50.0, reach=800),
        ],
        "sales": [
            # Direct: registered on a1's first active date
            {"id": "s1", "project_id": PROJECT_ID, "ad_id": "a1", "amount": 500.0,
             "registration_date_str": "2024-06-10", "sale_date_str": "2024-06-12",
             "deal_status": "won", "client_name": "Olena", "created_at": NOW_MS - 5 * 3_600_000},
            # Late: two days after a1's last active date
            {"id": "s2", "project_id": PROJECT_ID, "ad_id": "a1", "amount": 700.0,
             "registration_date_str": "2024-06-17", "sale_date_str": "2024-06-20",
             "deal_status": "won", "client_name": "Ivan", "created_at": NOW_MS - 2 * 3_600_000},
            # Eight days after the last active date: outside the window
            {"id": "s3", "project_id": PROJECT_ID, "ad_id": "a1", "amount": 300.0,
             "registration_date_str": "2024-06-23", "sale_date_str": "2024-06-24",
             "deal_status": "won", "created_at": NOW_MS - 30 * 60_000},
            # No ad link
            {"id": "s4", "project_id": PROJECT_ID, "amount": 250.0, "channel": "facebook",
             "registration_date_str": "2024-06-11", "sale_date_str": "2024-06-13",
             "deal_status": "won", "created_at": NOW_MS - 3 * 86_400_000},
            # Linked to an ad with no stats in June
            {"id": "s5", "project_id": PROJECT_ID, "ad_id": "a4", "amount": 400.0,
             "registration_date_str": "2024-06-12", "sale_date_str": "2024-06-14",
             "deal_status": "won", "created_at": NOW_MS - 4 * 86_400_000},
        ],
        "leads": [
            {"id": "l1", "project_id": PROJECT_ID, "ad_id": "a1", "phone": "+380501234567",
             "is_qualified": True, "created_at": NOW_MS - 10 * 60_000},
            {"id": "l2", "project_id": PROJECT_ID, "ad_id": "a1", "phone": "+380671112233",
             "is_qualified": False, "created_at": NOW_MS - 90 * 60_000},
            {"id": "l3", "project_id": PROJECT_ID, "ad_id": "a2", "phone": "+380932223344",
             "is_qualified": True, "created_at": NOW_MS - 2 * 86_400_000},
            {"id": "l4", "project_id": PROJECT_ID, "phone": "+380663334455",
             "is_qualified": True, "created_at": NOW_MS - 40 * 86_400_000},
        ],
    }


@pytest.fixture
def project(project_records) -> Dict[str, list]:
    """The sample project as model objects, ready for the builders."""
    return {
        "accounts": [AdAccount.from_record(r) for r in project_records["accounts"]],
        "campaigns": [Campaign.from_record(r) for r in project_records["campaigns"]],
        "ad_groups": [AdGroup.from_record(r) for r in project_records["ad_groups"]],
        "ads": [Ad.from_record(r) for r in project_records["ads"]],
        "stats": [DailyStat.from_record(r) for r in project_records["stats"]],
        "sales": [Sale.from_record(r) for r in project_records["sales"]],
        "leads": [Lead.from_record(r) for r in project_records["leads"]],
    }


@pytest.fixture
def make_sale():
    """Factory for Sale objects with sensible defaults."""
    counter = {"n": 0}

    def _make(registration_date: str, amount: float = 100.0, ad_id: str = "a1", **kwargs) -> Sale:
        counter["n"] += 1
        data = {
            "id": kwargs.pop("id", f"sale-{counter['n']}"),
            "project_id": PROJECT_ID,
            "ad_id": ad_id,
            "amount": amount,
            "registration_date_str": registration_date,
            "sale_date_str": kwargs.pop("sale_date_str", registration_date),
            "deal_status": "won",
        }
        data.update(kwargs)
        return Sale.from_record(data)

    return _make


@pytest.fixture
def make_stat():
    """Factory for DailyStat objects."""
    def _make(ad_id: str, day: str, **counters) -> DailyStat:
        return DailyStat.from_record(_stat(ad_id, day, **counters))

    return _make
