import os
import sys
import unittest
from unittest import mock

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    UserRepository,
    ExerciseRepository,
    WorkoutRepository,
    SetRepository,
    ExerciseHistoryRepository,
)
from errors import RecordConflict, StorageWriteError, MissingWorkout
from history_service import HistoryArchiver
from stats_service import StatisticsService


class ArchiverTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_archiver.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.users = UserRepository(self.db_path)
        self.exercises = ExerciseRepository(self.db_path)
        self.workouts = WorkoutRepository(self.db_path)
        self.sets = SetRepository(self.db_path)
        self.history = ExerciseHistoryRepository(self.db_path)
        self.archiver = HistoryArchiver(
            self.workouts, self.sets, self.history, self.users, self.exercises
        )
        self.stats = StatisticsService(
            self.workouts,
            self.sets,
            self.history,
            exercise_repo=self.exercises,
            user_repo=self.users,
        )
        self.user = self.users.create("Alex")
        self.bench = self.exercises.create("Bench Press")

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def _finished_workout(self, date: str = "2024-01-01") -> int:
        wid = self.workouts.create(self.user, date)
        self.workouts.set_start_time(wid, f"{date}T18:00:00")
        self.workouts.set_end_time(wid, f"{date}T19:00:00")
        return wid

    def test_bench_press_scenario(self) -> None:
        wid = self._finished_workout()
        self.sets.add(wid, self.bench, 10, 80.0)
        self.sets.add(wid, self.bench, 8, 85.0)
        [hid] = self.archiver.archive_workout(wid)
        rec = self.history.fetch_detail(hid)
        self.assertEqual(rec["max_weight"], 85.0)
        self.assertEqual(rec["reps_at_max_weight"], 8)
        self.assertAlmostEqual(rec["total_volume"], 1480.0)
        self.assertEqual(rec["total_sets"], 2)

        self.sets.add(wid, self.bench, 3, 90.0)
        self.assertEqual(self.archiver.archive_workout(wid), [hid])
        rec = self.history.fetch_detail(hid)
        self.assertEqual(rec["max_weight"], 90.0)
        self.assertEqual(rec["reps_at_max_weight"], 3)
        self.assertAlmostEqual(rec["total_volume"], 1750.0)
        self.assertEqual(rec["total_sets"], 3)

    def test_archival_is_idempotent(self) -> None:
        wid = self._finished_workout()
        self.sets.add(wid, self.bench, 10, 80.0)
        [hid] = self.archiver.archive_workout(wid)
        first = self.history.fetch_detail(hid)
        self.archiver.archive_workout(wid)
        self.archiver.archive_workout(wid)
        self.assertEqual(self.history.fetch_detail(hid), first)
        self.assertEqual(len(self.history.fetch_for_user(self.user)), 1)

    def test_bests_never_decrease(self) -> None:
        wid = self._finished_workout()
        heavy = self.sets.add(wid, self.bench, 5, 100.0)
        [hid] = self.archiver.archive_workout(wid)
        self.sets.update(heavy, 5, 60.0)
        self.archiver.archive_workout(wid)
        rec = self.history.fetch_detail(hid)
        self.assertEqual(rec["max_weight"], 100.0)
        self.assertEqual(rec["reps_at_max_weight"], 5)
        self.assertAlmostEqual(rec["total_volume"], 500.0)

    def test_equal_weight_keeps_reps(self) -> None:
        wid = self._finished_workout()
        self.sets.add(wid, self.bench, 5, 100.0)
        [hid] = self.archiver.archive_workout(wid)
        self.sets.add(wid, self.bench, 8, 100.0)
        self.archiver.archive_workout(wid)
        rec = self.history.fetch_detail(hid)
        self.assertEqual(rec["reps_at_max_weight"], 5)
        self.assertEqual(rec["total_sets"], 2)

    def test_grouping_conflict(self) -> None:
        wid = self._finished_workout()
        self.sets.add(wid, self.bench, 5, 100.0)
        with self.assertRaises(RecordConflict):
            self.archiver.archive_workout(wid, "not-this-workout")
        grouping = self.workouts.fetch_detail(wid)["grouping_id"]
        self.assertEqual(len(self.archiver.archive_workout(wid, grouping)), 1)

    def test_one_record_per_exercise(self) -> None:
        squat = self.exercises.create("Back Squat")
        wid = self._finished_workout()
        self.sets.add(wid, self.bench, 5, 100.0)
        self.sets.add(wid, squat, 5, 140.0)
        self.assertEqual(len(self.archiver.archive_workout(wid)), 2)

    def test_separate_sessions_same_day(self) -> None:
        first = self._finished_workout()
        second = self._finished_workout()
        self.sets.add(first, self.bench, 5, 100.0)
        self.sets.add(second, self.bench, 5, 90.0)
        a = self.archiver.archive_workout(first)
        b = self.archiver.archive_workout(second)
        self.assertNotEqual(a, b)

    def test_rearchive_after_date_change(self) -> None:
        wid = self._finished_workout("2024-01-01")
        self.sets.add(wid, self.bench, 5, 100.0)
        [hid] = self.archiver.archive_workout(wid)
        self.workouts.set_date(wid, "2024-01-02")
        self.sets.add(wid, self.bench, 5, 100.0)
        self.assertEqual(self.archiver.archive_workout(wid), [hid])
        self.assertEqual(self.history.fetch_detail(hid)["total_sets"], 2)

    def test_delete_archives_then_removes(self) -> None:
        wid = self._finished_workout()
        self.sets.add(wid, self.bench, 10, 80.0)
        self.sets.add(wid, self.bench, 8, 85.0)
        self.assertAlmostEqual(self.stats.get_total_volume(self.user), 1480.0)
        self.archiver.archive_workout(wid)
        # archived and still live: counted once
        self.assertAlmostEqual(self.stats.get_total_volume(self.user), 1480.0)
        records = self.archiver.delete_workout(wid)
        self.assertEqual(len(records), 1)
        with self.assertRaises(MissingWorkout):
            self.workouts.fetch_detail(wid)
        self.assertAlmostEqual(self.stats.get_total_volume(self.user), 1480.0)
        self.assertEqual(self.stats.get_personal_record(self.user, self.bench), (85.0, 8))

    def test_delete_without_end_time(self) -> None:
        wid = self.workouts.create(self.user, "2024-01-01")
        self.sets.add(wid, self.bench, 5, 100.0)
        self.assertEqual(self.archiver.delete_workout(wid), [])
        self.assertEqual(self.history.fetch_for_user(self.user), [])
        self.assertEqual(self.stats.get_total_volume(self.user), 0.0)

    def test_failed_archival_blocks_deletion(self) -> None:
        wid = self._finished_workout()
        self.sets.add(wid, self.bench, 5, 100.0)
        with mock.patch.object(
            self.archiver.history, "create", side_effect=StorageWriteError("disk full")
        ):
            with self.assertRaises(StorageWriteError):
                self.archiver.delete_workout(wid)
        self.assertEqual(self.workouts.fetch_detail(wid)["id"], wid)
        self.assertEqual(len(self.sets.fetch_for_workout(wid)), 1)
        self.assertEqual(self.history.fetch_for_user(self.user), [])

    def test_complete_workout(self) -> None:
        wid = self.workouts.create(self.user, "2024-01-01")
        self.workouts.set_start_time(wid, "2024-01-01T18:00:00")
        self.sets.add(wid, self.bench, 5, 100.0)
        records = self.archiver.complete_workout(wid, "2024-01-01T19:00:00")
        self.assertEqual(len(records), 1)
        detail = self.workouts.fetch_detail(wid)
        self.assertEqual(detail["status"], "completed")
        self.assertEqual(detail["duration"], 3600.0)

    def test_legacy_record_stays_separate(self) -> None:
        legacy = self.history.import_record(
            self.user, self.bench, "2024-01-01", 95.0, 3, 285.0, 1
        )
        wid = self._finished_workout()
        self.sets.add(wid, self.bench, 5, 100.0)
        self.assertAlmostEqual(self.stats.get_total_volume(self.user), 785.0)

        [hid] = self.archiver.archive_workout(wid)
        self.assertNotEqual(hid, legacy)
        rec = self.history.fetch_detail(legacy)
        self.assertIsNone(rec["grouping_id"])
        self.assertEqual(rec["max_weight"], 95.0)
        self.assertAlmostEqual(rec["total_volume"], 285.0)
        self.assertAlmostEqual(self.stats.get_total_volume(self.user), 785.0)

        self.archiver.delete_workout(wid)
        self.assertAlmostEqual(self.stats.get_total_volume(self.user), 785.0)


if __name__ == "__main__":
    unittest.main()
