import datetime
from collections import defaultdict
from typing import Iterable, Tuple, Optional

from tools import DateTools, MathTools

LiveSet = Tuple[str, str, float, int]
ArchivedVolume = Tuple[Optional[str], str, float]


class VolumeAggregator:
    """Volume totals and consistency over live and archived data.

    A record whose grouping id is still live is skipped so one session is
    never summed twice. Records without a grouping id are always counted.
    """

    @staticmethod
    def _contributions(
        live_sets: Iterable[LiveSet],
        records: Iterable[ArchivedVolume],
        live_grouping_ids: Iterable[str],
    ) -> Iterable[Tuple[str, float]]:
        live_ids = set(live_grouping_ids)
        for grouping_id, date, weight, reps in live_sets:
            live_ids.add(grouping_id)
            yield date[:10], float(weight) * int(reps)
        for grouping_id, date, volume in records:
            if grouping_id is not None and grouping_id in live_ids:
                continue
            yield date[:10], float(volume)

    @classmethod
    def total_volume(
        cls,
        live_sets: Iterable[LiveSet],
        records: Iterable[ArchivedVolume],
        live_grouping_ids: Iterable[str] = (),
    ) -> float:
        total = sum(v for _, v in cls._contributions(live_sets, records, live_grouping_ids))
        return round(total, 2)

    @classmethod
    def volume_series(
        cls,
        live_sets: Iterable[LiveSet],
        records: Iterable[ArchivedVolume],
        live_grouping_ids: Iterable[str] = (),
    ) -> list[dict]:
        buckets: dict[str, float] = defaultdict(float)
        for date, vol in cls._contributions(live_sets, records, live_grouping_ids):
            buckets[date] += vol
        return [
            {"date": d, "volume": round(buckets[d], 2)} for d in sorted(buckets)
        ]

    @staticmethod
    def consistency(
        activity_days: Iterable[datetime.date | str],
        window_start: datetime.date,
        window_end: datetime.date,
    ) -> float:
        """Share of days in the inclusive window with any activity, capped at 1.0."""
        if window_end < window_start:
            return 0.0
        length = (window_end - window_start).days + 1
        days = {DateTools.to_day(d) for d in activity_days}
        active = sum(1 for d in days if window_start <= d <= window_end)
        return round(MathTools.ratio(active, length), 4)

    @staticmethod
    def weekly_frequency(
        sessions: Iterable[Tuple[str, datetime.date | str]],
        window_start: datetime.date,
        window_end: datetime.date,
    ) -> float:
        """Average distinct sessions per week in the window.

        ``sessions`` are ``(grouping_id, date)`` pairs.
        """
        if window_end < window_start:
            return 0.0
        seen = {
            gid
            for gid, date in sessions
            if window_start <= DateTools.to_day(date) <= window_end
        }
        weeks = ((window_end - window_start).days + 1) / 7
        return round(len(seen) / weeks, 2)
