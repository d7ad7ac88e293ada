import datetime
import logging
from fastapi import FastAPI, HTTPException, APIRouter, Query
from db import (
    UserRepository,
    ExerciseRepository,
    WorkoutRepository,
    SetRepository,
    ExerciseHistoryRepository,
    SettingsRepository,
)
from errors import HistoryError, RecordConflict, StorageError
from history_service import HistoryArchiver
from stats_service import StatisticsService
from unit_service import UnitService

logger = logging.getLogger(__name__)

_WEIGHT_KEYS = ("max_weight", "weight")
_VOLUME_KEYS = ("volume", "total_volume")


class HistoryAPI:
    """Provides REST endpoints for workout history and statistics."""

    def __init__(
        self,
        db_path: str = "workout.db",
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.users = UserRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.sets = SetRepository(db_path)
        self.history = ExerciseHistoryRepository(db_path)
        self.units = UnitService(self.settings)
        self.archiver = HistoryArchiver(
            self.workouts,
            self.sets,
            self.history,
            user_repo=self.users,
            exercise_repo=self.exercises,
        )
        self.statistics = StatisticsService(
            self.workouts,
            self.sets,
            self.history,
            self.settings,
            exercise_repo=self.exercises,
            user_repo=self.users,
        )
        self.app = FastAPI(
            title="Training History API",
            description="REST API for archiving workouts and training statistics",
        )
        self._setup_routes()

    @staticmethod
    def _error(e: Exception) -> HTTPException:
        if isinstance(e, RecordConflict):
            return HTTPException(status_code=409, detail=str(e))
        if isinstance(e, StorageError):
            logger.error("storage failure: %s", e)
            return HTTPException(status_code=500, detail=str(e))
        if isinstance(e, ValueError):
            return HTTPException(status_code=404, detail=str(e))
        return HTTPException(status_code=400, detail=str(e))

    def _convert(self, item: dict, unit: str | None) -> dict:
        if unit is None or unit == "kg":
            return item
        if unit != "lb":
            raise HTTPException(status_code=400, detail="unit must be kg or lb")
        out = dict(item)
        for key in _WEIGHT_KEYS + _VOLUME_KEYS:
            if key in out and isinstance(out[key], (int, float)):
                out[key] = self.units.convert_weight(out[key], unit)
        return out

    def _setup_routes(self) -> None:
        stats_router = APIRouter(prefix="/users/{user_id}/stats", tags=["Statistics"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.users.fetch_all_users()
                return {"status": "ok"}
            except StorageError as e:
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.post("/users")
        def create_user(
            name: str,
            body_weight: float = None,
            height: float = None,
            age: int = None,
        ):
            try:
                uid = self.users.create(name, body_weight, height, age)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": uid}

        @self.app.get("/users/{user_id}")
        def get_user(user_id: int):
            try:
                return self.users.fetch_detail(user_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.post("/exercises")
        def create_exercise(
            name: str,
            category: str = None,
            target_muscle_group: str = None,
            description: str = None,
        ):
            try:
                eid = self.exercises.create(
                    name, category, target_muscle_group, description
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": eid}

        @self.app.get("/exercises")
        def list_exercises():
            return [
                {
                    "id": eid,
                    "name": name,
                    "category": category,
                    "target_muscle_group": group,
                }
                for eid, name, category, group in self.exercises.fetch_all_exercises()
            ]

        @self.app.post("/workouts")
        def create_workout(
            user_id: int,
            date: str = None,
            name: str = None,
            notes: str = None,
        ):
            date = date or datetime.date.today().isoformat()
            try:
                wid = self.workouts.create(user_id, date, name, notes)
            except HistoryError as e:
                raise self._error(e)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": wid}

        @self.app.get("/workouts/{workout_id}")
        def get_workout(workout_id: int):
            try:
                return self.workouts.fetch_detail(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @self.app.post("/workouts/{workout_id}/sets")
        def add_set(
            workout_id: int,
            exercise_id: int,
            reps: int,
            weight: float,
            duration: float = None,
            completed: bool = False,
            unit: str = "kg",
        ):
            try:
                kg = self.units.to_storage_weight(weight, unit)
                sid = self.sets.add(
                    workout_id, exercise_id, reps, kg, duration, completed
                )
            except HistoryError as e:
                raise self._error(e)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": sid}

        @self.app.post("/workouts/{workout_id}/start")
        def start_workout(workout_id: int):
            timestamp = datetime.datetime.now().isoformat(timespec="seconds")
            try:
                self.workouts.set_start_time(workout_id, timestamp)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "started", "timestamp": timestamp}

        @self.app.post("/workouts/{workout_id}/finish")
        def finish_workout(workout_id: int):
            timestamp = datetime.datetime.now().isoformat(timespec="seconds")
            try:
                records = self.archiver.complete_workout(workout_id, timestamp)
            except (HistoryError, ValueError) as e:
                raise self._error(e)
            return {"status": "finished", "timestamp": timestamp, "records": records}

        @self.app.post("/workouts/{workout_id}/archive")
        def archive_workout(workout_id: int, grouping_id: str = None):
            try:
                records = self.archiver.archive_workout(workout_id, grouping_id)
            except (HistoryError, ValueError) as e:
                raise self._error(e)
            return {"records": records}

        @self.app.delete("/workouts/{workout_id}")
        def delete_workout(workout_id: int):
            try:
                records = self.archiver.delete_workout(workout_id)
            except (HistoryError, ValueError) as e:
                raise self._error(e)
            return {"status": "deleted", "records": records}

        @stats_router.get("/personal_record")
        def personal_record(user_id: int, exercise_id: int, unit: str = None):
            try:
                weight, reps = self.statistics.get_personal_record(user_id, exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return self._convert({"max_weight": weight, "reps": reps}, unit)

        @stats_router.get("/streak")
        def streak(user_id: int, window_days: int = Query(None, ge=1)):
            current, longest = self.statistics.get_streak(user_id, window_days)
            return {"current": current, "longest": longest}

        @stats_router.get("/volume")
        def total_volume(
            user_id: int,
            start_date: str = None,
            end_date: str = None,
            unit: str = None,
        ):
            vol = self.statistics.get_total_volume(user_id, start_date, end_date)
            return self._convert({"volume": vol}, unit)

        @stats_router.get("/volume_series")
        def volume_series(
            user_id: int,
            start_date: str = None,
            end_date: str = None,
            unit: str = None,
        ):
            return [
                self._convert(item, unit)
                for item in self.statistics.get_volume_series(
                    user_id, start_date, end_date
                )
            ]

        @stats_router.get("/consistency")
        def consistency(user_id: int, window_days: int = Query(None, ge=1)):
            return {
                "consistency": self.statistics.get_consistency(user_id, window_days)
            }

        @stats_router.get("/exercises")
        def exercise_stats(
            user_id: int,
            start_date: str = None,
            end_date: str = None,
            unit: str = None,
        ):
            return [
                self._convert(item, unit)
                for item in self.statistics.exercise_stats(
                    user_id, start_date, end_date
                )
            ]

        @stats_router.get("/recent_records")
        def recent_records(
            user_id: int, days: int = Query(30, ge=1), unit: str = None
        ):
            return [
                self._convert(item, unit)
                for item in self.statistics.recent_personal_records(user_id, days)
            ]

        @stats_router.get("/summary")
        def summary(user_id: int):
            return self.statistics.workout_summary(user_id)

        @stats_router.get("/progress/{exercise_id}")
        def exercise_progress(
            user_id: int,
            exercise_id: int,
            start_date: str = None,
            end_date: str = None,
            unit: str = None,
        ):
            return [
                self._convert(item, unit)
                for item in self.statistics.exercise_progress(
                    user_id, exercise_id, start_date, end_date
                )
            ]

        @stats_router.get("/frequency")
        def frequency(user_id: int, start_date: str = None, end_date: str = None):
            return self.statistics.workout_frequency(user_id, start_date, end_date)

        @stats_router.get("/workouts_per_week")
        def workouts_per_week(user_id: int, window_days: int = Query(30, ge=1)):
            return {
                "workouts_per_week": self.statistics.workouts_per_week(
                    user_id, window_days
                )
            }

        self.app.include_router(stats_router)


api = HistoryAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
