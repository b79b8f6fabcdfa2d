"""Five-field cron expressions (minute hour day-of-month month day-of-week).

Supports ``*``, single values, ranges ``a-b``, steps ``*/n`` and ``a-b/n``,
comma lists, and 0 or 7 for Sunday. When both day fields are restricted a
time matches if either of them does, as in Vixie cron.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

# (min, max) per field
_BOUNDS = (
    (0, 59),   # minute
    (0, 23),   # hour
    (1, 31),   # day of month
    (1, 12),   # month
    (0, 7),    # day of week
)
_FIELD_NAMES = ("minute", "hour", "day-of-month", "month", "day-of-week")

# Bound the search when a schedule can never match (e.g. "0 0 31 2 *")
_MAX_SEARCH_DAYS = 366 * 5


class CronParseError(ValueError):
    """Raised for malformed cron expressions."""


def _parse_field(text: str, low: int, high: int, name: str) -> frozenset[int]:
    values: set[int] = set()
    for part in text.split(","):
        if not part:
            raise CronParseError(f"Empty list item in {name} field")

        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                raise CronParseError(f"Invalid step '{step_text}' in {name} field")
            step = int(step_text)

        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            if not (start_text.isdigit() and end_text.isdigit()):
                raise CronParseError(f"Invalid range '{part}' in {name} field")
            start, end = int(start_text), int(end_text)
        elif part.isdigit():
            start = int(part)
            # "5/15" means 5, 20, 35, 50
            end = high if step > 1 else start
        else:
            raise CronParseError(f"Invalid value '{part}' in {name} field")

        if start < low or end > high or start > end:
            raise CronParseError(f"Value out of range in {name} field: {part} (allowed {low}-{high})")
        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True)
class CronExpression:
    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]  # 0 = Sunday
    day_of_month_restricted: bool
    day_of_week_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> "CronExpression":
        fields = expression.split()
        if len(fields) != 5:
            raise CronParseError(f"Expected 5 fields, got {len(fields)}: '{expression}'")

        parsed = [
            _parse_field(text, low, high, name)
            for text, (low, high), name in zip(fields, _BOUNDS, _FIELD_NAMES)
        ]
        weekdays = frozenset(0 if d == 7 else d for d in parsed[4])

        return cls(
            expression=expression,
            minutes=parsed[0],
            hours=parsed[1],
            days=parsed[2],
            months=parsed[3],
            weekdays=weekdays,
            day_of_month_restricted=not fields[2].startswith("*"),
            day_of_week_restricted=not fields[4].startswith("*"),
        )

    def _day_matches(self, value: datetime) -> bool:
        dom = value.day in self.days
        # Python: Monday=0 .. Sunday=6; cron: Sunday=0 .. Saturday=6
        dow = (value.weekday() + 1) % 7 in self.weekdays
        if self.day_of_month_restricted and self.day_of_week_restricted:
            return dom or dow
        return dom and dow

    def matches(self, value: datetime) -> bool:
        return (
            value.minute in self.minutes
            and value.hour in self.hours
            and value.month in self.months
            and self._day_matches(value)
        )

    def next_after(self, value: datetime) -> datetime:
        """First matching minute strictly after ``value``.

        Works on wall-clock fields; an aware ``value`` keeps its tzinfo and the
        result has ``fold=0``, so an ambiguous wall time means its first
        occurrence.
        """
        tzinfo = value.tzinfo
        candidate = value.replace(tzinfo=None, second=0, microsecond=0) + timedelta(minutes=1)
        limit = candidate + timedelta(days=_MAX_SEARCH_DAYS)

        while candidate <= limit:
            if candidate.month not in self.months:
                year = candidate.year + (candidate.month // 12)
                month = candidate.month % 12 + 1
                candidate = candidate.replace(year=year, month=month, day=1, hour=0, minute=0)
                continue
            if not self._day_matches(candidate):
                candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
                continue
            if candidate.hour not in self.hours:
                candidate = candidate.replace(minute=0) + timedelta(hours=1)
                continue
            if candidate.minute not in self.minutes:
                candidate += timedelta(minutes=1)
                continue
            return candidate.replace(tzinfo=tzinfo, fold=0)

        raise CronParseError(f"Expression never matches: '{self.expression}'")

    def __str__(self) -> str:
        return self.expression
