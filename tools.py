import datetime
from typing import Iterable


class MathTools:
    """Provides essential mathematical utilities for history calculations."""

    @staticmethod
    def volume(sets: Iterable[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def ratio(numerator: float, denominator: float, cap: float = 1.0) -> float:
        """Return ``numerator / denominator`` capped at ``cap``; 0.0 for empty denominators."""
        if denominator <= 0:
            return 0.0
        return min(numerator / denominator, cap)


class DateTools:
    """Helpers for turning ISO strings into calendar days."""

    @staticmethod
    def to_day(value: datetime.date | datetime.datetime | str) -> datetime.date:
        """Truncate ``value`` to a calendar day.

        Accepts dates, datetimes and ISO ``YYYY-MM-DD`` or
        ``YYYY-MM-DDTHH:MM:SS`` strings.
        """
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        return datetime.date.fromisoformat(str(value)[:10])

    @staticmethod
    def window_start(today: datetime.date, window_days: int) -> datetime.date:
        """First day of a window of ``window_days`` ending on ``today``."""
        if window_days < 1:
            raise ValueError("window_days must be positive")
        return today - datetime.timedelta(days=window_days - 1)

    @staticmethod
    def is_weekend(day: datetime.date) -> bool:
        return day.weekday() >= 5

    @staticmethod
    def week_start(day: datetime.date) -> datetime.date:
        """Monday of the ISO week containing ``day``."""
        return day - datetime.timedelta(days=day.weekday())


class WeightConverter:
    """Utility for converting between kg and lb."""

    KG_TO_LB = 2.20462
    LB_TO_KG = 0.453592

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb * WeightConverter.LB_TO_KG, 2)

    @staticmethod
    def convert(value: float, from_unit: str, to_unit: str) -> float:
        if from_unit == to_unit:
            return round(value, 2)
        if from_unit == "kg" and to_unit == "lb":
            return WeightConverter.kg_to_lb(value)
        if from_unit == "lb" and to_unit == "kg":
            return WeightConverter.lb_to_kg(value)
        raise ValueError(f"unsupported conversion {from_unit} -> {to_unit}")
