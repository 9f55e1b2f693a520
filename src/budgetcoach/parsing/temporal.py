"""Resolve month/year references (English and Malay) in a user message."""

import calendar
import re
from dataclasses import dataclass
from datetime import datetime

MALAY_MONTHS = {
    "januari": 1,
    "februari": 2,
    "mac": 3,
    "april": 4,
    "mei": 5,
    "jun": 6,
    "julai": 7,
    "ogos": 8,
    "september": 9,
    "oktober": 10,
    "november": 11,
    "disember": 12,
}

ENGLISH_MONTHS = {name.lower(): index for index, name in enumerate(calendar.month_name) if name}

_MONTH_NAME_RE = re.compile(
    r"\b(" + "|".join(sorted({*MALAY_MONTHS, *ENGLISH_MONTHS}, key=len, reverse=True)) + r")\b"
)
_MONTH_NUMBER_RE = re.compile(r"\b(?:bulan|month)\s+(\d{1,2})\b")
_EXPLICIT_YEAR_RE = re.compile(r"\b(?:tahun|year)\s+(\d{4})\b")
# A bare year in the 2020s-2090s; "RM 2030" is an amount, not a year.
_BARE_YEAR_RE = re.compile(r"(?<!rm )\b(20[2-9]\d)\b")


@dataclass(frozen=True)
class Period:
    """A calendar month."""

    month: int
    year: int

    @property
    def label(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"


def _resolve_month(text: str) -> int | None:
    for match in _MONTH_NUMBER_RE.finditer(text):
        month = int(match.group(1))
        if 1 <= month <= 12:
            return month

    match = _MONTH_NAME_RE.search(text)
    if match:
        name = match.group(1)
        return MALAY_MONTHS.get(name) or ENGLISH_MONTHS[name]
    return None


def _resolve_year(text: str) -> int | None:
    match = _EXPLICIT_YEAR_RE.search(text)
    if match:
        return int(match.group(1))

    match = _BARE_YEAR_RE.search(text)
    if match:
        return int(match.group(1))
    return None


def resolve_period(text: str, now: datetime | None = None) -> Period:
    """Find the month and year a message refers to.

    ``bulan 2``/``month 2`` beats a month name, ``tahun 2026``/``year 2026``
    beats a bare year, and anything not mentioned comes from ``now``.

    Args:
        text: User message
        now: Reference date (defaults to the current local time)

    Returns:
        Resolved Period
    """
    now = now or datetime.now()
    lowered = text.lower()

    month = _resolve_month(lowered) or now.month
    year = _resolve_year(lowered) or now.year
    return Period(month=month, year=year)
