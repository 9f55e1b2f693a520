"""Tests for month/year resolution in English and Malay."""

from datetime import datetime

import pytest

from budgetcoach.parsing.temporal import Period, resolve_period

NOW = datetime(2025, 5, 10)


def test_numeric_month_and_explicit_year():
    assert resolve_period("bulan 2 tahun 2026 gaji saya", NOW) == Period(month=2, year=2026)


def test_defaults_to_now():
    assert resolve_period("gaji saya RM2500", NOW) == Period(month=5, year=2025)


@pytest.mark.parametrize(
    "text, month",
    [
        ("budget untuk Januari", 1),
        ("plan for mac please", 3),
        ("Ogos nanti saya nak simpan", 8),
        ("set up december budget", 12),
        ("bajet disember", 12),
        ("June expenses", 6),
    ],
)
def test_month_names(text, month):
    assert resolve_period(text, NOW).month == month


def test_numeric_month_beats_name():
    assert resolve_period("month 11 budget, not march", NOW).month == 11


def test_out_of_range_numeric_month_is_ignored():
    assert resolve_period("bulan 13 budget", NOW).month == 5


def test_explicit_year_beats_bare_year():
    assert resolve_period("from 2027 onwards, tahun 2028", NOW).year == 2028


def test_bare_year():
    assert resolve_period("budget for march 2030", NOW) == Period(month=3, year=2030)


def test_amount_is_not_a_year():
    assert resolve_period("saving RM 2030 a month", NOW).year == 2025


def test_month_name_inside_word_is_ignored():
    assert resolve_period("macam mana nak save", NOW).month == 5


def test_label():
    assert Period(month=2, year=2026).label == "February 2026"
