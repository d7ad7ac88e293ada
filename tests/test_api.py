import os
import sys
import unittest
from unittest import mock
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import HistoryAPI
from errors import StorageWriteError


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_workout.db"
        self.yaml_path = "test_settings.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.api = HistoryAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def _setup_workout(self) -> tuple[int, int, int]:
        uid = self.client.post("/users", params={"name": "Alex"}).json()["id"]
        eid = self.client.post("/exercises", params={"name": "Bench Press"}).json()["id"]
        wid = self.client.post(
            "/workouts", params={"user_id": uid, "date": "2024-01-01"}
        ).json()["id"]
        for reps, weight in ((10, 80.0), (8, 85.0)):
            resp = self.client.post(
                f"/workouts/{wid}/sets",
                params={"exercise_id": eid, "reps": reps, "weight": weight},
            )
            self.assertEqual(resp.status_code, 200)
        return uid, eid, wid

    def test_health(self) -> None:
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})

    def test_full_workflow(self) -> None:
        uid, eid, wid = self._setup_workout()

        resp = self.client.post(f"/workouts/{wid}/start")
        self.assertEqual(resp.json()["status"], "started")
        resp = self.client.post(f"/workouts/{wid}/finish")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.json()["records"]), 1)
        self.assertEqual(self.client.get(f"/workouts/{wid}").json()["status"], "completed")

        resp = self.client.delete(f"/workouts/{wid}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.client.get(f"/workouts/{wid}").status_code, 404)

        resp = self.client.get(
            f"/users/{uid}/stats/personal_record", params={"exercise_id": eid}
        )
        self.assertEqual(resp.json(), {"max_weight": 85.0, "reps": 8})
        resp = self.client.get(f"/users/{uid}/stats/volume")
        self.assertEqual(resp.json(), {"volume": 1480.0})
        resp = self.client.get(f"/users/{uid}/stats/volume", params={"unit": "lb"})
        self.assertEqual(resp.json(), {"volume": 3262.84})
        resp = self.client.get(f"/users/{uid}/stats/volume_series")
        self.assertEqual(resp.json(), [{"date": "2024-01-01", "volume": 1480.0}])
        resp = self.client.get(f"/users/{uid}/stats/exercises")
        self.assertEqual(resp.json()[0]["sets"], 2)
        resp = self.client.get(f"/users/{uid}/stats/frequency")
        self.assertEqual(resp.json(), [{"date": "2024-01-01", "workouts": 1}])
        resp = self.client.get(f"/users/{uid}/stats/summary")
        self.assertEqual(resp.json()["total_workouts"], 1)
        resp = self.client.get(f"/users/{uid}/stats/progress/{eid}")
        self.assertEqual(resp.json(), [{"date": "2024-01-01", "weight": 85.0, "reps": 8}])
        for path in ("streak", "consistency", "recent_records", "workouts_per_week"):
            self.assertEqual(
                self.client.get(f"/users/{uid}/stats/{path}").status_code, 200
            )

    def test_weight_entered_in_pounds(self) -> None:
        uid = self.client.post("/users", params={"name": "Sam"}).json()["id"]
        eid = self.client.post("/exercises", params={"name": "Deadlift"}).json()["id"]
        wid = self.client.post("/workouts", params={"user_id": uid}).json()["id"]
        sid = self.client.post(
            f"/workouts/{wid}/sets",
            params={"exercise_id": eid, "reps": 5, "weight": 220.46, "unit": "lb"},
        ).json()["id"]
        self.assertEqual(self.api.sets.fetch_detail(sid)["weight"], 100.0)

    def test_errors(self) -> None:
        uid, eid, wid = self._setup_workout()
        resp = self.client.post("/workouts", params={"user_id": 999})
        self.assertEqual(resp.status_code, 404)
        resp = self.client.post(
            f"/workouts/{wid}/sets",
            params={"exercise_id": eid, "reps": 0, "weight": 50.0},
        )
        self.assertEqual(resp.status_code, 400)
        resp = self.client.post(
            f"/workouts/{wid}/archive", params={"grouping_id": "other"}
        )
        self.assertEqual(resp.status_code, 409)
        resp = self.client.get(
            f"/users/{uid}/stats/personal_record", params={"exercise_id": 999}
        )
        self.assertEqual(resp.status_code, 404)
        resp = self.client.get(f"/users/{uid}/stats/volume", params={"unit": "stone"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.client.delete("/workouts/999").status_code, 404)

    def test_window_must_be_positive(self) -> None:
        uid = self.client.post("/users", params={"name": "Alex"}).json()["id"]
        for path, param in (
            ("streak", "window_days"),
            ("consistency", "window_days"),
            ("workouts_per_week", "window_days"),
            ("recent_records", "days"),
        ):
            for value in (-3, 0):
                resp = self.client.get(
                    f"/users/{uid}/stats/{path}", params={param: value}
                )
                self.assertEqual(resp.status_code, 422)
        resp = self.client.get(
            f"/users/{uid}/stats/consistency", params={"window_days": 7}
        )
        self.assertEqual(resp.json(), {"consistency": 0.0})

    def test_storage_failure_keeps_workout(self) -> None:
        uid, eid, wid = self._setup_workout()
        self.client.post(f"/workouts/{wid}/finish")
        with mock.patch.object(
            self.api.archiver, "delete_workout", side_effect=StorageWriteError("locked")
        ):
            resp = self.client.delete(f"/workouts/{wid}")
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(self.client.get(f"/workouts/{wid}").status_code, 200)

    def test_delete_unfinished_workout(self) -> None:
        uid, eid, wid = self._setup_workout()
        resp = self.client.delete(f"/workouts/{wid}")
        self.assertEqual(resp.json(), {"status": "deleted", "records": []})
        resp = self.client.get(f"/users/{uid}/stats/volume")
        self.assertEqual(resp.json(), {"volume": 0.0})


if __name__ == "__main__":
    unittest.main()
