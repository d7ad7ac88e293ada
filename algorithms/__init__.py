from .record_merger import RecordMerger
from .streak_calculator import StreakCalculator
from .volume_aggregator import VolumeAggregator

__all__ = ["RecordMerger", "StreakCalculator", "VolumeAggregator"]
