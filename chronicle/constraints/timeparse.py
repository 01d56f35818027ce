from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum

from chronicle.api.models import WorldTime


class DurationUnit(StrEnum):
    year = "year"
    month = "month"
    day = "day"


@dataclass(frozen=True, slots=True)
class Duration:
    amount: int
    unit: DurationUnit

    @property
    def months(self) -> int:
        if self.unit == DurationUnit.year:
            return self.amount * 12
        if self.unit == DurationUnit.month:
            return self.amount
        return 0

    @property
    def whole_years(self) -> int:
        if self.unit == DurationUnit.year:
            return self.amount
        if self.unit == DurationUnit.month:
            return self.amount // 12
        return 0


_ZH_DIGITS = {"零": 0, "〇": 0, "一": 1, "二": 2, "两": 2, "三": 3, "四": 4, "五": 5, "六": 6, "七": 7, "八": 8, "九": 9}
_ZH_NUMERAL = "零〇一二两三四五六七八九十廿百"

# Grammar: <numeral><unit>, numeral in ASCII/full-width digits or Chinese numerals.
# A bare 月 or 日 is a calendar date ("五月", "初五日"), not a duration, so only 个月 and 天 count.
_ZH_DURATION_RE = re.compile(
    rf"(?P<num>[0-9０-９]+|[{_ZH_NUMERAL}]+)\s*(?P<unit>个月|年|载|天)"
)
_EN_DURATION_RE = re.compile(r"\b(?P<num>\d+)\s*(?P<unit>years?|months?|days?)\b", re.IGNORECASE)
_HALF_YEAR_RE = re.compile(r"半年|半载")

_UNIT_MAP = {
    "年": DurationUnit.year,
    "载": DurationUnit.year,
    "个月": DurationUnit.month,
    "天": DurationUnit.day,
    "year": DurationUnit.year,
    "years": DurationUnit.year,
    "month": DurationUnit.month,
    "months": DurationUnit.month,
    "day": DurationUnit.day,
    "days": DurationUnit.day,
}


def parse_numeral(raw: str) -> int | None:
    """Parse ASCII digits or a Chinese numeral up to the hundreds ("三", "十五", "二十", "一百")."""

    raw = raw.strip()
    if not raw:
        return None
    if raw.isdigit():
        return int(raw)

    total = 0
    current: int | None = None
    for ch in raw:
        if ch in _ZH_DIGITS:
            if current is not None:
                # Two digits in a row ("一二") is not a numeral we accept.
                return None
            current = _ZH_DIGITS[ch]
        elif ch == "十":
            total += (current if current is not None else 1) * 10
            current = None
        elif ch == "廿":
            total += 20
            current = None
        elif ch == "百":
            total += (current if current is not None else 1) * 100
            current = None
        else:
            return None
    return total + (current or 0)


def _limit_for(unit: DurationUnit, *, max_years: int) -> int:
    if unit == DurationUnit.year:
        return max_years
    if unit == DurationUnit.month:
        return max_years * 12
    return max_years * 365


def parse_duration(text: str, *, max_years: int = 100) -> Duration | None:
    """Find the first explicit duration in free text.

    Returns None when nothing matches. Amounts above the limit read as calendar
    references ("184年"), not skips, and also return None.
    """

    if not text:
        return None

    candidates: list[tuple[int, int, DurationUnit]] = []

    m = _ZH_DURATION_RE.search(text)
    if m is not None:
        n = parse_numeral(m.group("num"))
        if n is not None:
            candidates.append((m.start(), n, _UNIT_MAP[m.group("unit")]))

    m = _EN_DURATION_RE.search(text)
    if m is not None:
        candidates.append((m.start(), int(m.group("num")), _UNIT_MAP[m.group("unit").lower()]))

    m = _HALF_YEAR_RE.search(text)
    if m is not None:
        candidates.append((m.start(), 6, DurationUnit.month))

    if not candidates:
        return None

    _, amount, unit = min(candidates, key=lambda c: c[0])
    if amount <= 0 or amount > _limit_for(unit, max_years=max_years):
        return None
    return Duration(amount=amount, unit=unit)


def _clamp_day(year: int, month: int, day: int) -> int:
    return min(day, calendar.monthrange(year, month)[1])


def advance_time(current: WorldTime, duration: Duration) -> WorldTime:
    """Calendar-correct addition; the result is never earlier than `current`."""

    if duration.amount <= 0:
        return current.model_copy()

    if duration.unit == DurationUnit.day:
        start = date(current.year, current.month, _clamp_day(current.year, current.month, current.day))
        end = start + timedelta(days=duration.amount)
        return WorldTime(year=end.year, month=end.month, day=end.day)

    total = current.year * 12 + (current.month - 1) + duration.months
    year, month0 = divmod(total, 12)
    month = month0 + 1
    return WorldTime(year=year, month=month, day=_clamp_day(year, month, current.day))
