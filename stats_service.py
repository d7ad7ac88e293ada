from __future__ import annotations
import asyncio
import datetime
import logging
from typing import List, Optional, Dict, Tuple

from db import (
    UserRepository,
    ExerciseRepository,
    WorkoutRepository,
    SetRepository,
    ExerciseHistoryRepository,
    SettingsRepository,
    AsyncWorkoutRepository,
    AsyncExerciseHistoryRepository,
)
from errors import MissingUser, MissingExercise
from algorithms import RecordMerger, StreakCalculator, VolumeAggregator
from tools import DateTools

logger = logging.getLogger(__name__)


class StatisticsService:
    """Compute training statistics over live workouts and archived history.

    Archived records whose grouping id still belongs to a live workout are
    ignored for additive metrics, so a session is never counted twice.
    """

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
        history_repo: ExerciseHistoryRepository,
        settings_repo: SettingsRepository | None = None,
        exercise_repo: ExerciseRepository | None = None,
        user_repo: UserRepository | None = None,
        async_workout_repo: AsyncWorkoutRepository | None = None,
        async_history_repo: AsyncExerciseHistoryRepository | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.sets = set_repo
        self.history = history_repo
        self.settings = settings_repo
        self.exercises = exercise_repo or ExerciseRepository(workout_repo._db_path)
        self.users = user_repo or UserRepository(workout_repo._db_path)
        self.async_workouts = async_workout_repo
        self.async_history = async_history_repo

    # settings

    def _skip_weekends(self) -> bool:
        if self.settings is None:
            return False
        return self.settings.get_bool("skip_weekends", False)

    def _streak_window(self) -> int | None:
        if self.settings is None:
            return None
        return self.settings.get_int("streak_window_days", 0) or None

    def _consistency_window(self) -> int:
        if self.settings is None:
            return 30
        return self.settings.get_int("consistency_window_days", 30)

    # snapshot helpers

    def _live_grouping_ids(self, user_id: int) -> set[str]:
        return {row[1] for row in self.workouts.fetch_for_user(user_id)}

    def _snapshot(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        exercise_id: Optional[int] = None,
    ) -> Tuple[list, list[dict], set[str]]:
        live = self.sets.fetch_live_for_user(
            user_id, exercise_id=exercise_id, start_date=start_date, end_date=end_date
        )
        records = self.history.fetch_for_user(
            user_id, exercise_id=exercise_id, start_date=start_date, end_date=end_date
        )
        logger.debug(
            "snapshot for user %s: %d live sets, %d records", user_id, len(live), len(records)
        )
        return live, records, self._live_grouping_ids(user_id)

    @staticmethod
    def _archived_only(records: list[dict], live_ids: set[str]) -> list[dict]:
        return [
            r
            for r in records
            if r["grouping_id"] is None or r["grouping_id"] not in live_ids
        ]

    def _activity_days(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Tuple[List[str], List[str]]:
        return (
            self.workouts.fetch_dates(user_id, start_date, end_date),
            self.history.fetch_dates(user_id, start_date, end_date),
        )

    # core operations

    def get_personal_record(self, user_id: int, exercise_id: int) -> Tuple[float, int]:
        """Return ``(max_weight, reps_at_max)`` across live sets and history."""
        if not self.users.exists(user_id):
            raise MissingUser(f"user {user_id} not found")
        if not self.exercises.exists(exercise_id):
            raise MissingExercise(f"exercise {exercise_id} not found")
        live, records, _ = self._snapshot(user_id, exercise_id=exercise_id)
        return RecordMerger.best(
            ((w, r) for _sid, _gid, _d, _eid, w, r in live),
            ((rec["max_weight"], rec["reps_at_max_weight"]) for rec in records),
        )

    def get_streak(
        self,
        user_id: int,
        window_days: int | None = None,
        today: datetime.date | None = None,
    ) -> Tuple[int, int]:
        """Return ``(current, longest)`` daily streaks."""
        live_days, archived_days = self._activity_days(user_id)
        return StreakCalculator.calculate(
            live_days,
            archived_days,
            today=today,
            window_days=window_days or self._streak_window(),
            skip_weekends=self._skip_weekends(),
        )

    async def get_streak_async(
        self,
        user_id: int,
        window_days: int | None = None,
        today: datetime.date | None = None,
    ) -> Tuple[int, int]:
        """Like :meth:`get_streak` but reads both day sources concurrently."""
        workouts = self.async_workouts or AsyncWorkoutRepository(self.workouts._db_path)
        history = self.async_history or AsyncExerciseHistoryRepository(
            self.history._db_path
        )
        live_days, archived_days = await asyncio.gather(
            workouts.fetch_dates(user_id), history.fetch_dates(user_id)
        )
        return StreakCalculator.calculate(
            live_days,
            archived_days,
            today=today,
            window_days=window_days or self._streak_window(),
            skip_weekends=self._skip_weekends(),
        )

    def get_total_volume(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> float:
        live, records, live_ids = self._snapshot(user_id, start_date, end_date)
        return VolumeAggregator.total_volume(
            ((gid, d, w, r) for _sid, gid, d, _eid, w, r in live),
            ((rec["grouping_id"], rec["date"], rec["total_volume"]) for rec in records),
            live_ids,
        )

    def get_volume_series(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, float]]:
        live, records, live_ids = self._snapshot(user_id, start_date, end_date)
        return VolumeAggregator.volume_series(
            ((gid, d, w, r) for _sid, gid, d, _eid, w, r in live),
            ((rec["grouping_id"], rec["date"], rec["total_volume"]) for rec in records),
            live_ids,
        )

    def get_consistency(
        self,
        user_id: int,
        window_days: int | None = None,
        today: datetime.date | None = None,
    ) -> float:
        """Share of days in the trailing window with any activity, in [0, 1]."""
        today = today or datetime.date.today()
        window_days = window_days or self._consistency_window()
        start = DateTools.window_start(today, window_days)
        live_days, archived_days = self._activity_days(
            user_id, start.isoformat(), today.isoformat()
        )
        return VolumeAggregator.consistency(live_days + archived_days, start, today)

    # added read operations

    def exercise_stats(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, float]]:
        """Return set count, volume and best set for each exercise."""
        live, records, live_ids = self._snapshot(user_id, start_date, end_date)
        archived = self._archived_only(records, live_ids)
        counts: Dict[int, int] = {}
        volumes: Dict[int, float] = {}
        for _sid, _gid, _d, eid, w, r in live:
            counts[eid] = counts.get(eid, 0) + 1
            volumes[eid] = volumes.get(eid, 0.0) + float(w) * int(r)
        for rec in archived:
            eid = rec["exercise_id"]
            counts[eid] = counts.get(eid, 0) + rec["total_sets"]
            volumes[eid] = volumes.get(eid, 0.0) + rec["total_volume"]
        bests = RecordMerger.best_by_exercise(
            ((eid, w, r) for _sid, _gid, _d, eid, w, r in live),
            (
                (rec["exercise_id"], rec["max_weight"], rec["reps_at_max_weight"])
                for rec in records
            ),
        )
        names = self.exercises.fetch_names(counts)
        result = []
        for eid in counts:
            max_weight, reps = bests.get(eid, (0.0, 0))
            result.append(
                {
                    "exercise_id": eid,
                    "exercise": names.get(eid, str(eid)),
                    "sets": counts[eid],
                    "volume": round(volumes[eid], 2),
                    "max_weight": max_weight,
                    "reps_at_max_weight": reps,
                }
            )
        return sorted(result, key=lambda x: x["exercise"])

    def recent_personal_records(
        self,
        user_id: int,
        days: int = 30,
        today: datetime.date | None = None,
    ) -> List[Dict[str, float]]:
        """Best set per exercise within the last ``days`` days, newest first."""
        today = today or datetime.date.today()
        start = DateTools.window_start(today, days).isoformat()
        live, records, _ = self._snapshot(user_id, start, today.isoformat())
        best: Dict[int, Dict[str, float]] = {}
        entries = [(eid, d, float(w), int(r)) for _sid, _gid, d, eid, w, r in live]
        entries.extend(
            (rec["exercise_id"], rec["date"], rec["max_weight"], rec["reps_at_max_weight"])
            for rec in records
        )
        for eid, date, weight, reps in entries:
            current = best.get(eid)
            if current is None or RecordMerger.is_better(
                (weight, reps), (current["weight"], current["reps"])
            ):
                best[eid] = {"exercise_id": eid, "date": date, "weight": weight, "reps": reps}
        names = self.exercises.fetch_names(best)
        for eid, item in best.items():
            item["exercise"] = names.get(eid, str(eid))
        return sorted(best.values(), key=lambda x: (x["date"], x["exercise"]), reverse=True)

    def _sessions(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, str]:
        """Map session key to date for live workouts and archived-only sessions."""
        sessions: Dict[str, str] = {}
        live_ids: set[str] = set()
        for _wid, gid, date, *_ in self.workouts.fetch_for_user(user_id):
            live_ids.add(gid)
            if (start_date is None or date >= start_date) and (
                end_date is None or date <= end_date
            ):
                sessions[gid] = date
        for rec in self.history.fetch_for_user(
            user_id, start_date=start_date, end_date=end_date
        ):
            gid = rec["grouping_id"]
            if gid is None:
                # unowned records of one day count as one session
                sessions.setdefault(f"legacy:{rec['date']}", rec["date"])
            elif gid not in live_ids:
                sessions.setdefault(gid, rec["date"])
        return sessions

    def workout_summary(
        self, user_id: int, today: datetime.date | None = None
    ) -> Dict[str, float]:
        today = today or datetime.date.today()
        sessions = self._sessions(user_id)
        week_start = DateTools.week_start(today)
        this_week = sum(
            1
            for d in sessions.values()
            if week_start <= DateTools.to_day(d) <= today
        )
        live, records, live_ids = self._snapshot(user_id)
        archived = self._archived_only(records, live_ids)
        duration = sum(float(row[6] or 0.0) for row in self.workouts.fetch_for_user(user_id))
        exercises = {row[3] for row in live} | {rec["exercise_id"] for rec in archived}
        current, _longest = self.get_streak(user_id, today=today)
        return {
            "total_workouts": len(sessions),
            "workouts_this_week": this_week,
            "total_duration": round(duration, 2),
            "total_sets": len(live) + sum(rec["total_sets"] for rec in archived),
            "unique_exercises": len(exercises),
            "current_streak": current,
            "consistency": self.get_consistency(user_id, today=today),
        }

    def exercise_progress(
        self,
        user_id: int,
        exercise_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, float]]:
        """Return the best set of each session for one exercise, oldest first."""
        live, records, live_ids = self._snapshot(
            user_id, start_date, end_date, exercise_id=exercise_id
        )
        per_session: Dict[str, Tuple[str, list]] = {}
        for _sid, gid, date, _eid, w, r in live:
            per_session.setdefault(gid, (date, []))[1].append((w, r))
        for rec in self._archived_only(records, live_ids):
            key = rec["grouping_id"] or f"legacy:{rec['id']}"
            per_session.setdefault(key, (rec["date"], []))[1].append(
                (rec["max_weight"], rec["reps_at_max_weight"])
            )
        points = []
        for date, pairs in per_session.values():
            weight, reps = RecordMerger.best(pairs)
            points.append({"date": date, "weight": weight, "reps": reps})
        return sorted(points, key=lambda p: p["date"])

    def workout_frequency(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, int]]:
        """Return the number of sessions on each active day."""
        counts: Dict[str, int] = {}
        for date in self._sessions(user_id, start_date, end_date).values():
            counts[date] = counts.get(date, 0) + 1
        return [{"date": d, "workouts": counts[d]} for d in sorted(counts)]

    def workouts_per_week(
        self,
        user_id: int,
        window_days: int = 30,
        today: datetime.date | None = None,
    ) -> float:
        today = today or datetime.date.today()
        start = DateTools.window_start(today, window_days)
        sessions = self._sessions(user_id, start.isoformat(), today.isoformat())
        return VolumeAggregator.weekly_frequency(sessions.items(), start, today)
