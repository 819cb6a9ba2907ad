from console_core.models import Period
from console_core.periods import MonthBounds, compute_month_bounds, period_label, pick_latest


def test_pick_latest_orders_by_year_month_week_then_id():
    periods = [
        Period(id=1, year=2026, month=3, week=1),
        Period(id=2, year=2026, month=3, week=2),
        Period(id=9, year=2025, month=12, week=4),
    ]
    assert pick_latest(periods).id == 2


def test_pick_latest_id_breaks_full_ties():
    periods = [Period(id=4, year=2026, month=3, week=2), Period(id=7, year=2026, month=3, week=2)]
    assert pick_latest(periods).id == 7


def test_pick_latest_week_outranks_id():
    periods = [Period(id=5, year=2025, month=12, week=0), Period(id=2, year=2025, month=12, week=1)]
    assert pick_latest(periods).id == 2


def test_pick_latest_empty_or_invalid():
    assert pick_latest([]) is None
    assert pick_latest(None) is None
    assert pick_latest({"id": 1}) is None


def test_month_bounds_from_dates():
    period = Period(id=1, year=2020, month=6, start_date="2026-01-15", end_date="2026-03-20")
    assert compute_month_bounds(period) == MonthBounds(year_from=2026, year_to=2026, month_from=1, month_to=3)


def test_month_bounds_fall_back_to_period_fields():
    period = Period(id=1, year=2026, month=5, start_date="not a date", end_date="2026-06-01")
    bounds = compute_month_bounds(period)
    assert bounds == MonthBounds(year_from=2026, year_to=2026, month_from=5, month_to=5)
    assert bounds.as_params() == {"yearFrom": 2026, "yearTo": 2026, "monthFrom": 5, "monthTo": 5}


def test_period_label():
    assert period_label(Period(id=1, year=2026, month=3, name="Q1 2026")) == "Q1 2026"
    assert period_label(Period(id=1, year=2026, month=3, name="  ")) == "3/2026"
