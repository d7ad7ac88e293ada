import datetime
import logging
import sqlite3
from collections import defaultdict

from db import (
    UserRepository,
    ExerciseRepository,
    WorkoutRepository,
    SetRepository,
    ExerciseHistoryRepository,
)
from errors import (
    MissingUser,
    MissingExercise,
    RecordConflict,
    StorageReadError,
    StorageWriteError,
)
from algorithms import RecordMerger
from tools import MathTools

logger = logging.getLogger(__name__)


class HistoryArchiver:
    """Persist per-exercise summaries of a workout before its live rows go away."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        set_repo: SetRepository,
        history_repo: ExerciseHistoryRepository,
        user_repo: UserRepository | None = None,
        exercise_repo: ExerciseRepository | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.sets = set_repo
        self.history = history_repo
        self.users = user_repo or UserRepository(workout_repo._db_path)
        self.exercises = exercise_repo or ExerciseRepository(workout_repo._db_path)

    def _archive(
        self,
        conn: sqlite3.Connection,
        workout_id: int,
        grouping_id: str | None = None,
    ) -> list[int]:
        workout = self.workouts.fetch_detail(workout_id, conn)
        stored = workout["grouping_id"]
        if grouping_id is not None and grouping_id != stored:
            raise RecordConflict(
                f"workout {workout_id} is grouped as {stored}, not {grouping_id}",
                grouping_id=stored,
            )
        user_id = workout["user_id"]
        if not self.users.exists(user_id, conn):
            raise MissingUser(f"user {user_id} not found")

        by_exercise: dict[int, list[tuple[int, float, int]]] = defaultdict(list)
        for set_id, exercise_id, weight, reps, *_ in self.sets.fetch_for_workout(
            workout_id, conn
        ):
            by_exercise[exercise_id].append((set_id, float(weight), int(reps)))

        touched: list[int] = []
        for exercise_id, group in by_exercise.items():
            if not self.exercises.exists(exercise_id, conn):
                raise MissingExercise(f"exercise {exercise_id} not found")
            max_weight, reps_at_max = RecordMerger.best((w, r) for _, w, r in group)
            record = self.history.find_by_date(
                user_id, exercise_id, workout["date"], stored, conn
            ) or self.history.find_by_grouping(user_id, exercise_id, stored, conn)

            if record is None:
                volume = MathTools.volume((r, w) for _, w, r in group)
                history_id = self.history.create(
                    user_id,
                    exercise_id,
                    workout["date"],
                    max_weight,
                    reps_at_max,
                    volume,
                    len(group),
                    stored,
                    conn,
                )
                self.history.link_sets(history_id, [s for s, _, _ in group], conn)
                logger.info(
                    "created history %s for workout %s exercise %s",
                    history_id,
                    workout_id,
                    exercise_id,
                )
                touched.append(history_id)
                continue

            history_id = record["id"]
            archived = self.history.archived_set_ids(history_id, conn)
            fresh = [entry for entry in group if entry[0] not in archived]
            new_weight = record["max_weight"]
            new_reps = record["reps_at_max_weight"]
            if max_weight > new_weight:
                new_weight, new_reps = max_weight, reps_at_max
            if not fresh and (new_weight, new_reps) == (
                record["max_weight"],
                record["reps_at_max_weight"],
            ):
                logger.debug(
                    "history %s already holds workout %s exercise %s",
                    history_id,
                    workout_id,
                    exercise_id,
                )
                touched.append(history_id)
                continue
            self.history.update_stats(
                history_id,
                new_weight,
                new_reps,
                record["total_volume"] + MathTools.volume((r, w) for _, w, r in fresh),
                record["total_sets"] + len(fresh),
                stored,
                conn,
            )
            self.history.link_sets(history_id, [s for s, _, _ in fresh], conn)
            logger.info(
                "updated history %s with %d new sets from workout %s",
                history_id,
                len(fresh),
                workout_id,
            )
            touched.append(history_id)
        return touched

    def archive_workout(
        self, workout_id: int, grouping_id: str | None = None
    ) -> list[int]:
        """Write or update one history record per exercise in the workout.

        Safe to call repeatedly with the full set snapshot: sets already
        summed into a record are skipped and bests never go down.
        """
        with self.history.transaction() as conn:
            return self._run(self._archive, conn, workout_id, grouping_id)

    def complete_workout(
        self, workout_id: int, timestamp: str | None = None
    ) -> list[int]:
        timestamp = timestamp or datetime.datetime.now().isoformat(timespec="seconds")
        with self.history.transaction() as conn:
            self.workouts.set_end_time(workout_id, timestamp, conn)
            return self._run(self._archive, conn, workout_id)

    def delete_workout(self, workout_id: int) -> list[int]:
        """Archive a finished workout and delete its live rows atomically.

        A workout that never ended is removed without a history record.
        """
        with self.history.transaction() as conn:
            workout = self.workouts.fetch_detail(workout_id, conn)
            touched: list[int] = []
            if workout["end_time"]:
                touched = self._run(self._archive, conn, workout_id)
            else:
                logger.debug("workout %s has no end time; not archiving", workout_id)
            self.workouts.delete(workout_id, conn)
            logger.info("deleted workout %s", workout_id)
            return touched

    @staticmethod
    def _run(func, conn, *args):
        try:
            return func(conn, *args)
        except (StorageReadError, StorageWriteError):
            logger.error("archival failed for workout %s", args[0])
            raise
        except sqlite3.Error as e:
            logger.error("archival failed for workout %s: %s", args[0], e)
            raise StorageWriteError(str(e)) from e
