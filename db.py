import sqlite3
import aiosqlite
import datetime
import logging
import uuid
from contextlib import contextmanager, asynccontextmanager, closing
from typing import List, Tuple, Optional, Iterable

from config import YamlConfig, APP_VERSION
from settings_schema import validate_settings
from errors import (
    StorageReadError,
    StorageWriteError,
    MissingUser,
    MissingExercise,
    MissingWorkout,
)

logger = logging.getLogger(__name__)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    body_weight REAL,
                    height REAL,
                    age INTEGER
                );""",
            ["id", "name", "body_weight", "height", "age"],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    category TEXT,
                    target_muscle_group TEXT,
                    description TEXT
                );""",
            ["id", "name", "category", "target_muscle_group", "description"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    grouping_id TEXT NOT NULL UNIQUE,
                    date TEXT NOT NULL,
                    name TEXT,
                    notes TEXT,
                    start_time TEXT,
                    end_time TEXT,
                    duration REAL NOT NULL DEFAULT 0,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_id",
                "grouping_id",
                "date",
                "name",
                "notes",
                "start_time",
                "end_time",
                "duration",
            ],
        ),
        "sets": (
            """CREATE TABLE sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    duration REAL,
                    position INTEGER NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            [
                "id",
                "workout_id",
                "exercise_id",
                "weight",
                "reps",
                "duration",
                "position",
                "completed",
            ],
        ),
        "exercise_history": (
            """CREATE TABLE exercise_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    max_weight REAL NOT NULL DEFAULT 0,
                    reps_at_max_weight INTEGER NOT NULL DEFAULT 0,
                    total_volume REAL NOT NULL DEFAULT 0,
                    total_sets INTEGER NOT NULL DEFAULT 0,
                    grouping_id TEXT,
                    created_at TEXT,
                    updated_at TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            [
                "id",
                "user_id",
                "exercise_id",
                "date",
                "max_weight",
                "reps_at_max_weight",
                "total_volume",
                "total_sets",
                "grouping_id",
                "created_at",
                "updated_at",
            ],
        ),
        "exercise_history_sets": (
            """CREATE TABLE exercise_history_sets (
                    history_id INTEGER NOT NULL,
                    set_id INTEGER NOT NULL,
                    PRIMARY KEY (history_id, set_id),
                    FOREIGN KEY(history_id) REFERENCES exercise_history(id) ON DELETE CASCADE
                );""",
            ["history_id", "set_id"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _INDEX_DEFINITIONS = [
        "CREATE UNIQUE INDEX IF NOT EXISTS ux_history_grouping "
        "ON exercise_history (user_id, exercise_id, grouping_id);",
        "CREATE INDEX IF NOT EXISTS ix_history_date "
        "ON exercise_history (user_id, exercise_id, date);",
        "CREATE INDEX IF NOT EXISTS ix_workouts_user_date "
        "ON workouts (user_id, date);",
        "CREATE INDEX IF NOT EXISTS ix_sets_workout "
        "ON sets (workout_id, exercise_id);",
    ]

    def __init__(self, db_path: str = "workout.db") -> None:
        self._db_path = db_path
        self._ensure_schema()
        self._init_settings()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        except BaseException:
            connection.rollback()
            raise
        finally:
            connection.close()

    @contextmanager
    def transaction(self):
        """Yield a connection holding the write lock until the block ends.

        The block is committed on success and rolled back on any exception.
        """
        try:
            connection = sqlite3.connect(self._db_path, isolation_level=None)
            connection.execute("PRAGMA foreign_keys=on;")
            connection.execute("BEGIN IMMEDIATE;")
        except sqlite3.Error as e:
            logger.error("could not open transaction on %s: %s", self._db_path, e)
            raise StorageWriteError(str(e)) from e
        try:
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK;")
                raise
            try:
                connection.execute("COMMIT;")
            except sqlite3.Error as e:
                logger.error("commit failed on %s: %s", self._db_path, e)
                raise StorageWriteError(str(e)) from e
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEX_DEFINITIONS:
                conn.execute(sql)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "grouping_id" and table == "workouts":
                        return "lower(hex(randomblob(16)))"
                    if col in (
                        "duration",
                        "completed",
                        "max_weight",
                        "reps_at_max_weight",
                        "total_volume",
                        "total_sets",
                    ):
                        return "0"
                    if col == "position":
                        return "1"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _init_settings(self) -> None:
        defaults = {
            "weight_unit": "kg",
            "unit_system": "metric",
            "skip_weekends": "0",
            "consistency_window_days": "30",
            "streak_window_days": "0",
            "log_level": "INFO",
            "app_version": APP_VERSION,
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )


class BaseRepository(Database):
    """Base repository providing helper methods.

    ``conn`` lets callers run a helper inside an open :meth:`transaction`.
    """

    def execute(
        self, query: str, params: Tuple = (), conn: sqlite3.Connection | None = None
    ) -> int:
        try:
            if conn is not None:
                return conn.execute(query, params).lastrowid
            with self._connection() as own, closing(own.cursor()) as cursor:
                cursor.execute(query, params)
                return cursor.lastrowid
        except sqlite3.Error as e:
            logger.error("write failed: %s (%s)", e, query.split(" ", 2)[:2])
            raise StorageWriteError(str(e)) from e

    def fetch_all(
        self, query: str, params: Tuple = (), conn: sqlite3.Connection | None = None
    ) -> List[Tuple]:
        try:
            if conn is not None:
                return conn.execute(query, params).fetchall()
            with self._connection() as own, closing(own.cursor()) as cursor:
                cursor.execute(query, params)
                return cursor.fetchall()
        except sqlite3.Error as e:
            logger.error("read failed: %s", e)
            raise StorageReadError(str(e)) from e

    @staticmethod
    def _now() -> str:
        return datetime.datetime.now().isoformat(timespec="seconds")


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        try:
            async with self._async_connection() as conn:
                cursor = await conn.execute(query, params)
                await conn.commit()
                return cursor.lastrowid
        except sqlite3.Error as e:
            raise StorageWriteError(str(e)) from e

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        try:
            async with self._async_connection() as conn:
                cursor = await conn.execute(query, params)
                rows = await cursor.fetchall()
                return list(rows)
        except sqlite3.Error as e:
            raise StorageReadError(str(e)) from e


def _date_filter(
    column: str, start_date: Optional[str], end_date: Optional[str]
) -> Tuple[str, list]:
    clauses: list[str] = []
    params: list[str] = []
    if start_date:
        clauses.append(f"{column} >= ?")
        params.append(start_date)
    if end_date:
        clauses.append(f"{column} <= ?")
        params.append(end_date)
    sql = "".join(f" AND {c}" for c in clauses)
    return sql, params


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async read access to live workouts."""

    async def fetch_dates(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[str]:
        extra, params = _date_filter("date", start_date, end_date)
        rows = await self.fetch_all(
            f"SELECT DISTINCT date FROM workouts WHERE user_id = ?{extra} ORDER BY date;",
            (user_id, *params),
        )
        return [r[0] for r in rows]


class AsyncExerciseHistoryRepository(AsyncBaseRepository):
    """Async read access to archived history records."""

    async def fetch_dates(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[str]:
        extra, params = _date_filter("date", start_date, end_date)
        rows = await self.fetch_all(
            f"SELECT DISTINCT date FROM exercise_history WHERE user_id = ?{extra} ORDER BY date;",
            (user_id, *params),
        )
        return [r[0] for r in rows]


class UserRepository(BaseRepository):
    """Repository for users table operations."""

    def create(
        self,
        name: str,
        body_weight: float | None = None,
        height: float | None = None,
        age: int | None = None,
    ) -> int:
        if not name:
            raise ValueError("name must not be empty")
        return self.execute(
            "INSERT INTO users (name, body_weight, height, age) VALUES (?, ?, ?, ?);",
            (name, body_weight, height, age),
        )

    def exists(self, user_id: int, conn: sqlite3.Connection | None = None) -> bool:
        rows = self.fetch_all("SELECT 1 FROM users WHERE id = ?;", (user_id,), conn)
        return bool(rows)

    def fetch_detail(self, user_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, name, body_weight, height, age FROM users WHERE id = ?;",
            (user_id,),
        )
        if not rows:
            raise MissingUser(f"user {user_id} not found")
        uid, name, body_weight, height, age = rows[0]
        return {
            "id": uid,
            "name": name,
            "body_weight": body_weight,
            "height": height,
            "age": age,
        }

    def fetch_all_users(self) -> List[Tuple[int, str]]:
        return self.fetch_all("SELECT id, name FROM users ORDER BY name;")


class ExerciseRepository(BaseRepository):
    """Repository for the exercise catalog."""

    def create(
        self,
        name: str,
        category: str | None = None,
        target_muscle_group: str | None = None,
        description: str | None = None,
    ) -> int:
        """Add an exercise, returning the existing id when the name is taken."""
        if not name:
            raise ValueError("name must not be empty")
        existing = self.fetch_by_name(name)
        if existing is not None:
            return existing
        return self.execute(
            "INSERT INTO exercises (name, category, target_muscle_group, description) VALUES (?, ?, ?, ?);",
            (name, category, target_muscle_group, description),
        )

    def fetch_by_name(self, name: str) -> int | None:
        rows = self.fetch_all("SELECT id FROM exercises WHERE name = ?;", (name,))
        return int(rows[0][0]) if rows else None

    def exists(self, exercise_id: int, conn: sqlite3.Connection | None = None) -> bool:
        rows = self.fetch_all(
            "SELECT 1 FROM exercises WHERE id = ?;", (exercise_id,), conn
        )
        return bool(rows)

    def fetch_detail(self, exercise_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, name, category, target_muscle_group, description FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise MissingExercise(f"exercise {exercise_id} not found")
        eid, name, category, muscle_group, description = rows[0]
        return {
            "id": eid,
            "name": name,
            "category": category,
            "target_muscle_group": muscle_group,
            "description": description,
        }

    def fetch_names(self, exercise_ids: Iterable[int]) -> dict[int, str]:
        ids = list(dict.fromkeys(exercise_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" for _ in ids)
        rows = self.fetch_all(
            f"SELECT id, name FROM exercises WHERE id IN ({placeholders});",
            tuple(ids),
        )
        return {int(eid): name for eid, name in rows}

    def fetch_all_exercises(self) -> List[Tuple[int, str, Optional[str], Optional[str]]]:
        return self.fetch_all(
            "SELECT id, name, category, target_muscle_group FROM exercises ORDER BY name;"
        )


class WorkoutRepository(BaseRepository):
    """Repository for live workout table operations."""

    _DETAIL_COLUMNS = (
        "id, user_id, grouping_id, date, name, notes, start_time, end_time, duration"
    )

    def create(
        self,
        user_id: int,
        date: str,
        name: str | None = None,
        notes: str | None = None,
        start_time: str | None = None,
        end_time: str | None = None,
        grouping_id: str | None = None,
    ) -> int:
        datetime.date.fromisoformat(date)
        if not self.fetch_all("SELECT 1 FROM users WHERE id = ?;", (user_id,)):
            raise MissingUser(f"user {user_id} not found")
        duration = self._duration(start_time, end_time)
        return self.execute(
            "INSERT INTO workouts (user_id, grouping_id, date, name, notes, start_time, end_time, duration) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                user_id,
                grouping_id or str(uuid.uuid4()),
                date,
                name,
                notes,
                start_time,
                end_time,
                duration,
            ),
        )

    @staticmethod
    def _duration(start: str | None, end: str | None) -> float:
        if not start or not end:
            return 0.0
        t0 = datetime.datetime.fromisoformat(start)
        t1 = datetime.datetime.fromisoformat(end)
        return max((t1 - t0).total_seconds(), 0.0)

    @staticmethod
    def _status(start: str | None, end: str | None) -> str:
        if start and not end:
            return "in_progress"
        if start and end:
            return "completed"
        return "planned"

    def fetch_detail(
        self, workout_id: int, conn: sqlite3.Connection | None = None
    ) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._DETAIL_COLUMNS} FROM workouts WHERE id = ?;",
            (workout_id,),
            conn,
        )
        if not rows:
            raise MissingWorkout(f"workout {workout_id} not found")
        (
            wid,
            user_id,
            grouping_id,
            date,
            name,
            notes,
            start_time,
            end_time,
            duration,
        ) = rows[0]
        return {
            "id": wid,
            "user_id": user_id,
            "grouping_id": grouping_id,
            "date": date,
            "name": name,
            "notes": notes,
            "start_time": start_time,
            "end_time": end_time,
            "duration": float(duration or 0.0),
            "status": self._status(start_time, end_time),
        }

    def fetch_for_user(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[
        Tuple[
            int,
            str,
            str,
            Optional[str],
            Optional[str],
            Optional[str],
            float,
        ]
    ]:
        """Return ``(id, grouping_id, date, name, start_time, end_time, duration)`` rows."""
        extra, params = _date_filter("date", start_date, end_date)
        return self.fetch_all(
            "SELECT id, grouping_id, date, name, start_time, end_time, duration "
            f"FROM workouts WHERE user_id = ?{extra} ORDER BY date DESC, id DESC;",
            (user_id, *params),
        )

    def fetch_dates(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[str]:
        extra, params = _date_filter("date", start_date, end_date)
        rows = self.fetch_all(
            f"SELECT DISTINCT date FROM workouts WHERE user_id = ?{extra} ORDER BY date;",
            (user_id, *params),
        )
        return [r[0] for r in rows]

    def set_start_time(self, workout_id: int, timestamp: str) -> None:
        self.fetch_detail(workout_id)
        self.execute(
            "UPDATE workouts SET start_time = ? WHERE id = ?;",
            (timestamp, workout_id),
        )

    def set_end_time(
        self,
        workout_id: int,
        timestamp: str,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """Stamp the end time and derive the duration from the start time."""
        detail = self.fetch_detail(workout_id, conn)
        start = detail["start_time"] or timestamp
        self.execute(
            "UPDATE workouts SET start_time = ?, end_time = ?, duration = ? WHERE id = ?;",
            (start, timestamp, self._duration(start, timestamp), workout_id),
            conn,
        )

    def set_date(self, workout_id: int, date: str) -> None:
        datetime.date.fromisoformat(date)
        self.execute("UPDATE workouts SET date = ? WHERE id = ?;", (date, workout_id))

    def delete(self, workout_id: int, conn: sqlite3.Connection | None = None) -> None:
        rows = self.fetch_all(
            "SELECT id FROM workouts WHERE id = ?;", (workout_id,), conn
        )
        if not rows:
            raise MissingWorkout(f"workout {workout_id} not found")
        self.execute("DELETE FROM sets WHERE workout_id = ?;", (workout_id,), conn)
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,), conn)


class SetRepository(BaseRepository):
    """Repository for live sets table operations."""

    def add(
        self,
        workout_id: int,
        exercise_id: int,
        reps: int,
        weight: float,
        duration: float | None = None,
        completed: bool = False,
    ) -> int:
        if reps <= 0:
            raise ValueError("reps must be positive")
        if weight < 0:
            raise ValueError("weight must be non-negative")
        if duration is not None and duration < 0:
            raise ValueError("duration must be non-negative")
        if not self.fetch_all("SELECT 1 FROM workouts WHERE id = ?;", (workout_id,)):
            raise MissingWorkout(f"workout {workout_id} not found")
        if not self.fetch_all("SELECT 1 FROM exercises WHERE id = ?;", (exercise_id,)):
            raise MissingExercise(f"exercise {exercise_id} not found")
        rows = self.fetch_all(
            "SELECT COALESCE(MAX(position), 0) + 1 FROM sets WHERE workout_id = ? AND exercise_id = ?;",
            (workout_id, exercise_id),
        )
        position = int(rows[0][0]) if rows else 1
        return self.execute(
            "INSERT INTO sets (workout_id, exercise_id, weight, reps, duration, position, completed) "
            "VALUES (?, ?, ?, ?, ?, ?, ?);",
            (
                workout_id,
                exercise_id,
                float(weight),
                int(reps),
                duration,
                position,
                int(completed),
            ),
        )

    def bulk_add(
        self,
        workout_id: int,
        exercise_id: int,
        entries: Iterable[tuple[int, float]],
    ) -> list[int]:
        ids: list[int] = []
        for reps, weight in entries:
            ids.append(self.add(workout_id, exercise_id, reps, weight))
        return ids

    def update(
        self, set_id: int, reps: int, weight: float, duration: float | None = None
    ) -> None:
        if reps <= 0:
            raise ValueError("reps must be positive")
        if weight < 0:
            raise ValueError("weight must be non-negative")
        self.fetch_detail(set_id)
        self.execute(
            "UPDATE sets SET reps = ?, weight = ?, duration = ? WHERE id = ?;",
            (int(reps), float(weight), duration, set_id),
        )

    def remove(self, set_id: int) -> None:
        self.execute("DELETE FROM sets WHERE id = ?;", (set_id,))

    def fetch_detail(self, set_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, workout_id, exercise_id, weight, reps, duration, position, completed FROM sets WHERE id = ?;",
            (set_id,),
        )
        if not rows:
            raise ValueError("set not found")
        sid, workout_id, exercise_id, weight, reps, duration, position, completed = rows[0]
        return {
            "id": sid,
            "workout_id": workout_id,
            "exercise_id": exercise_id,
            "weight": float(weight),
            "reps": int(reps),
            "duration": duration,
            "position": position,
            "completed": bool(completed),
            "volume": float(weight) * int(reps),
        }

    def fetch_for_workout(
        self, workout_id: int, conn: sqlite3.Connection | None = None
    ) -> List[Tuple[int, int, float, int, Optional[float], int, int]]:
        """Return ``(id, exercise_id, weight, reps, duration, position, completed)`` rows."""
        return self.fetch_all(
            "SELECT id, exercise_id, weight, reps, duration, position, completed "
            "FROM sets WHERE workout_id = ? ORDER BY exercise_id, position;",
            (workout_id,),
            conn,
        )

    def fetch_live_for_user(
        self,
        user_id: int,
        exercise_id: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Tuple[int, str, str, int, float, int]]:
        """Return ``(set_id, grouping_id, date, exercise_id, weight, reps)`` rows."""
        query = (
            "SELECT s.id, w.grouping_id, w.date, s.exercise_id, s.weight, s.reps "
            "FROM sets s JOIN workouts w ON s.workout_id = w.id "
            "WHERE w.user_id = ?"
        )
        params: list = [user_id]
        if exercise_id is not None:
            query += " AND s.exercise_id = ?"
            params.append(exercise_id)
        extra, date_params = _date_filter("w.date", start_date, end_date)
        query += extra + " ORDER BY w.date, s.id;"
        params.extend(date_params)
        return self.fetch_all(query, tuple(params))


class ExerciseHistoryRepository(BaseRepository):
    """Repository for archived exercise history records."""

    _COLUMNS = (
        "id, user_id, exercise_id, date, max_weight, reps_at_max_weight, "
        "total_volume, total_sets, grouping_id"
    )

    @staticmethod
    def _to_dict(row: Tuple) -> dict:
        (
            hid,
            user_id,
            exercise_id,
            date,
            max_weight,
            reps,
            total_volume,
            total_sets,
            grouping_id,
        ) = row
        return {
            "id": hid,
            "user_id": user_id,
            "exercise_id": exercise_id,
            "date": date,
            "max_weight": float(max_weight),
            "reps_at_max_weight": int(reps),
            "total_volume": float(total_volume),
            "total_sets": int(total_sets),
            "grouping_id": grouping_id,
        }

    def find_by_date(
        self,
        user_id: int,
        exercise_id: int,
        date: str,
        grouping_id: str,
        conn: sqlite3.Connection | None = None,
    ) -> dict | None:
        """Return the record for this day owned by ``grouping_id``.

        Unowned records (imports, legacy rows) are never merged into.
        """
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_history "
            "WHERE user_id = ? AND exercise_id = ? AND date = ? "
            "AND grouping_id = ? ORDER BY id LIMIT 1;",
            (user_id, exercise_id, date, grouping_id),
            conn,
        )
        return self._to_dict(rows[0]) if rows else None

    def find_by_grouping(
        self,
        user_id: int,
        exercise_id: int,
        grouping_id: str,
        conn: sqlite3.Connection | None = None,
    ) -> dict | None:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_history "
            "WHERE user_id = ? AND exercise_id = ? AND grouping_id = ?;",
            (user_id, exercise_id, grouping_id),
            conn,
        )
        return self._to_dict(rows[0]) if rows else None

    def create(
        self,
        user_id: int,
        exercise_id: int,
        date: str,
        max_weight: float,
        reps_at_max_weight: int,
        total_volume: float,
        total_sets: int,
        grouping_id: str | None,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        now = self._now()
        return self.execute(
            "INSERT INTO exercise_history (user_id, exercise_id, date, max_weight, reps_at_max_weight, "
            "total_volume, total_sets, grouping_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                user_id,
                exercise_id,
                date,
                float(max_weight),
                int(reps_at_max_weight),
                float(total_volume),
                int(total_sets),
                grouping_id,
                now,
                now,
            ),
            conn,
        )

    def update_stats(
        self,
        history_id: int,
        max_weight: float,
        reps_at_max_weight: int,
        total_volume: float,
        total_sets: int,
        grouping_id: str,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        self.execute(
            "UPDATE exercise_history SET max_weight = ?, reps_at_max_weight = ?, total_volume = ?, "
            "total_sets = ?, grouping_id = ?, updated_at = ? WHERE id = ?;",
            (
                float(max_weight),
                int(reps_at_max_weight),
                float(total_volume),
                int(total_sets),
                grouping_id,
                self._now(),
                history_id,
            ),
            conn,
        )

    def archived_set_ids(
        self, history_id: int, conn: sqlite3.Connection | None = None
    ) -> set[int]:
        rows = self.fetch_all(
            "SELECT set_id FROM exercise_history_sets WHERE history_id = ?;",
            (history_id,),
            conn,
        )
        return {int(r[0]) for r in rows}

    def link_sets(
        self,
        history_id: int,
        set_ids: Iterable[int],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        for sid in set_ids:
            self.execute(
                "INSERT OR IGNORE INTO exercise_history_sets (history_id, set_id) VALUES (?, ?);",
                (history_id, sid),
                conn,
            )

    def fetch_detail(self, history_id: int) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercise_history WHERE id = ?;",
            (history_id,),
        )
        if not rows:
            raise ValueError("history record not found")
        return self._to_dict(rows[0])

    def fetch_for_user(
        self,
        user_id: int,
        exercise_id: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[dict]:
        query = f"SELECT {self._COLUMNS} FROM exercise_history WHERE user_id = ?"
        params: list = [user_id]
        if exercise_id is not None:
            query += " AND exercise_id = ?"
            params.append(exercise_id)
        extra, date_params = _date_filter("date", start_date, end_date)
        query += extra + " ORDER BY date, id;"
        params.extend(date_params)
        return [self._to_dict(r) for r in self.fetch_all(query, tuple(params))]

    def fetch_dates(
        self,
        user_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[str]:
        extra, params = _date_filter("date", start_date, end_date)
        rows = self.fetch_all(
            f"SELECT DISTINCT date FROM exercise_history WHERE user_id = ?{extra} ORDER BY date;",
            (user_id, *params),
        )
        return [r[0] for r in rows]

    def import_record(
        self,
        user_id: int,
        exercise_id: int,
        date: str,
        max_weight: float,
        reps_at_max_weight: int,
        total_volume: float,
        total_sets: int,
        grouping_id: str | None = None,
    ) -> int:
        """Insert a record that did not come from a live workout (e.g. a legacy import)."""
        datetime.date.fromisoformat(date)
        if max_weight < 0 or total_volume < 0 or total_sets < 0:
            raise ValueError("history values must be non-negative")
        return self.create(
            user_id,
            exercise_id,
            date,
            max_weight,
            reps_at_max_weight,
            total_volume,
            total_sets,
            grouping_id,
        )


class SettingsRepository(BaseRepository):
    """Repository for engine settings synchronized with YAML."""

    _BOOL_KEYS = {"skip_weekends"}
    _TEXT_KEYS = {"weight_unit", "unit_system", "log_level", "app_version"}

    def __init__(
        self, db_path: str = "workout.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str | bool] = {}
        for k, v in rows:
            if k in self._BOOL_KEYS:
                result[k] = v in {"1", "1.0", "true", "True"}
                continue
            if k in self._TEXT_KEYS:
                result[k] = v
                continue
            try:
                num = float(v)
                result[k] = int(num) if num.is_integer() else num
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                val = str(value)
                if key in self._BOOL_KEYS:
                    val = "1" if val in {"1", "1.0", "true", "True"} else "0"
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, val),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def set_text(self, key: str, value: str) -> None:
        candidate = self._raw_all_settings()
        candidate[key] = value
        validate_settings(candidate)
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(self.get_text(key, str(default)))
        except ValueError:
            return default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(int(value)))

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def set_bool(self, key: str, value: bool) -> None:
        self.set_text(key, "1" if value else "0")

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()
