import requests
from typing import Optional


class HistoryClient:
    """Simple REST client for the training history API."""

    def __init__(self, base_url: str = "http://localhost:8000") -> None:
        self.base_url = base_url.rstrip("/")

    def _get(self, path: str, **params):
        params = {k: v for k, v in params.items() if v is not None}
        resp = requests.get(f"{self.base_url}{path}", params=params)
        resp.raise_for_status()
        return resp.json()

    def _post(self, path: str, **params):
        params = {k: v for k, v in params.items() if v is not None}
        resp = requests.post(f"{self.base_url}{path}", params=params)
        resp.raise_for_status()
        return resp.json()

    def create_user(self, name: str, **params) -> int:
        return self._post("/users", name=name, **params)["id"]

    def create_exercise(self, name: str, **params) -> int:
        return self._post("/exercises", name=name, **params)["id"]

    def create_workout(self, user_id: int, date: Optional[str] = None, **params) -> int:
        return self._post("/workouts", user_id=user_id, date=date, **params)["id"]

    def add_set(
        self, workout_id: int, exercise_id: int, reps: int, weight: float, **params
    ) -> int:
        return self._post(
            f"/workouts/{workout_id}/sets",
            exercise_id=exercise_id,
            reps=reps,
            weight=weight,
            **params,
        )["id"]

    def start_workout(self, workout_id: int) -> dict:
        return self._post(f"/workouts/{workout_id}/start")

    def finish_workout(self, workout_id: int) -> list[int]:
        return self._post(f"/workouts/{workout_id}/finish")["records"]

    def archive_workout(self, workout_id: int, grouping_id: Optional[str] = None) -> list[int]:
        return self._post(
            f"/workouts/{workout_id}/archive", grouping_id=grouping_id
        )["records"]

    def delete_workout(self, workout_id: int) -> list[int]:
        resp = requests.delete(f"{self.base_url}/workouts/{workout_id}")
        resp.raise_for_status()
        return resp.json()["records"]

    def personal_record(self, user_id: int, exercise_id: int, unit: Optional[str] = None) -> dict:
        return self._get(
            f"/users/{user_id}/stats/personal_record",
            exercise_id=exercise_id,
            unit=unit,
        )

    def streak(self, user_id: int, window_days: Optional[int] = None) -> tuple[int, int]:
        data = self._get(f"/users/{user_id}/stats/streak", window_days=window_days)
        return data["current"], data["longest"]

    def total_volume(self, user_id: int, **params) -> float:
        return self._get(f"/users/{user_id}/stats/volume", **params)["volume"]

    def volume_series(self, user_id: int, **params) -> list[dict]:
        return self._get(f"/users/{user_id}/stats/volume_series", **params)

    def consistency(self, user_id: int, window_days: Optional[int] = None) -> float:
        return self._get(
            f"/users/{user_id}/stats/consistency", window_days=window_days
        )["consistency"]

    def summary(self, user_id: int) -> dict:
        return self._get(f"/users/{user_id}/stats/summary")
