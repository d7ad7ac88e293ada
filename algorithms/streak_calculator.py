import datetime
from typing import Iterable, Tuple

from tools import DateTools

DayLike = datetime.date | datetime.datetime | str


class StreakCalculator:
    """Current and longest runs of consecutive activity days."""

    @staticmethod
    def activity_days(
        live_days: Iterable[DayLike],
        archived_days: Iterable[DayLike],
        today: datetime.date | None = None,
        window_days: int | None = None,
    ) -> set[datetime.date]:
        days = {DateTools.to_day(d) for d in live_days}
        days.update(DateTools.to_day(d) for d in archived_days)
        if window_days:
            today = today or datetime.date.today()
            start = DateTools.window_start(today, window_days)
            days = {d for d in days if start <= d <= today}
        return days

    @staticmethod
    def _step_back(
        day: datetime.date, days: set[datetime.date], skip_weekends: bool
    ) -> datetime.date:
        prev = day - datetime.timedelta(days=1)
        if skip_weekends:
            while DateTools.is_weekend(prev) and prev not in days:
                prev -= datetime.timedelta(days=1)
        return prev

    @classmethod
    def current(
        cls,
        days: set[datetime.date],
        today: datetime.date,
        skip_weekends: bool = False,
    ) -> int:
        if not days:
            return 0
        if today in days:
            cursor = today
        else:
            cursor = cls._step_back(today, days, skip_weekends)
            if cursor not in days:
                return 0
        count = 0
        while cursor in days:
            count += 1
            cursor = cls._step_back(cursor, days, skip_weekends)
        return count

    @classmethod
    def longest(cls, days: set[datetime.date], skip_weekends: bool = False) -> int:
        best = 0
        run = 0
        previous: datetime.date | None = None
        for day in sorted(days):
            if previous is not None and cls._step_back(day, days, skip_weekends) == previous:
                run += 1
            else:
                run = 1
            best = max(best, run)
            previous = day
        return best

    @classmethod
    def calculate(
        cls,
        live_days: Iterable[DayLike],
        archived_days: Iterable[DayLike],
        today: datetime.date | None = None,
        window_days: int | None = None,
        skip_weekends: bool = False,
    ) -> Tuple[int, int]:
        """Return ``(current, longest)`` over the union of both day sources.

        The current streak is anchored at ``today`` or, failing that, at
        yesterday. With ``skip_weekends`` an idle Saturday or Sunday neither
        breaks a run nor counts toward it.
        """
        today = today or datetime.date.today()
        days = cls.activity_days(live_days, archived_days, today, window_days)
        if not days:
            return 0, 0
        return (
            cls.current(days, today, skip_weekends),
            cls.longest(days, skip_weekends),
        )
