from datetime import date

import pytest

from adspilot.services.metric_resolver import CampaignData, canonical_metric, resolve, select_report_dates

TODAY = date(2026, 10, 17)


@pytest.fixture
def campaign():
    return CampaignData(
        campaign_id="111",
        toko_id="toko-1",
        daily_budget=50000,
        saldo=250000,
        reports={
            date(2026, 10, 17): {"cost": 20000, "click": 30, "impression": 1000, "ctr": 3.0,
                                 "broad_gmv": 80000, "broad_order": 2},
            date(2026, 10, 16): {"cost": 10000, "click": 10, "impression": 1000, "ctr": 1.0,
                                 "broad_gmv": 0, "broad_order": 0},
            date(2026, 10, 1): {"cost": 5000, "click": 5, "impression": 500, "ctr": 1.0},
        },
    )


def test_canonical_metric_aliases_and_prefix():
    assert canonical_metric("report_cost") == "cost"
    assert canonical_metric("clicks") == "click"
    assert canonical_metric("gmv") == "broad_gmv"
    assert canonical_metric("roas") == "broad_roi"
    assert canonical_metric("budget") == "daily_budget"
    assert canonical_metric("mystery") is None


def test_select_report_dates_windows(campaign):
    dates = campaign.reports.keys()
    assert select_report_dates(dates, "today", TODAY) == [date(2026, 10, 17)]
    assert select_report_dates(dates, "yesterday", TODAY) == [date(2026, 10, 16)]
    assert select_report_dates(dates, "last_7_days", TODAY) == [date(2026, 10, 16), date(2026, 10, 17)]
    assert len(select_report_dates(dates, "lifetime", TODAY)) == 3


def test_resolve_today_reads_stored_values(campaign):
    assert resolve(campaign, "cost", "today", TODAY) == 20000
    assert resolve(campaign, "ctr", "today", TODAY) == 3.0


def test_resolve_multi_day_sums_counts_and_recomputes_ratios(campaign):
    assert resolve(campaign, "cost", "last_7_days", TODAY) == 30000
    assert resolve(campaign, "ctr", "last_7_days", TODAY) == pytest.approx(2.0)
    assert resolve(campaign, "cpc", "last_7_days", TODAY) == pytest.approx(750)


def test_resolve_campaign_fields(campaign):
    assert resolve(campaign, "daily_budget", "today", TODAY) == 50000
    assert resolve(campaign, "budget", "lifetime", TODAY) == 50000
    assert resolve(campaign, "saldo", "today", TODAY) == 250000


def test_missing_report_resolves_to_zero(campaign):
    assert resolve(campaign, "cost", "today", date(2026, 11, 1)) == 0
    assert resolve(campaign, "ctr", "yesterday", date(2026, 11, 1)) == 0


def test_unknown_metric_returns_raw_name(campaign):
    assert resolve(campaign, "mystery", "today", TODAY) == "mystery"
