import argparse
import datetime
import json
import logging

from tools import WeightConverter
from rest_api import HistoryAPI

logger = logging.getLogger(__name__)


def demo_data(db_path: str, yaml_path: str) -> None:
    """Populate the database with a demo user and two finished workouts if empty."""
    api = HistoryAPI(db_path=db_path, yaml_path=yaml_path)
    if api.users.fetch_all_users():
        print("Database already contains users")
        return
    uid = api.users.create("Demo", body_weight=80.0, height=180.0, age=30)
    bench = api.exercises.create("Bench Press", "Strength", "Chest")
    squat = api.exercises.create("Back Squat", "Strength", "Legs")
    today = datetime.date.today()
    for offset, (bench_sets, squat_sets) in enumerate(
        [
            ([(10, 80.0), (8, 85.0)], [(5, 120.0)]),
            ([(5, 87.5), (3, 90.0)], [(5, 125.0), (5, 125.0)]),
        ]
    ):
        day = today - datetime.timedelta(days=1 - offset)
        wid = api.workouts.create(uid, day.isoformat(), "Demo session")
        api.sets.bulk_add(wid, bench, bench_sets)
        api.sets.bulk_add(wid, squat, squat_sets)
        api.workouts.set_start_time(wid, f"{day.isoformat()}T18:00:00")
        api.archiver.complete_workout(wid, f"{day.isoformat()}T19:00:00")
    logger.info("inserted demo workouts for user %s", uid)
    print(f"Demo data inserted for user {uid}")


def show_stats(db_path: str, yaml_path: str, user_id: int, unit: str | None) -> None:
    api = HistoryAPI(db_path=db_path, yaml_path=yaml_path)
    stats = api.statistics
    current, longest = stats.get_streak(user_id)
    summary = stats.workout_summary(user_id)
    volume = stats.get_total_volume(user_id)
    data = {
        "summary": summary,
        "streak": {"current": current, "longest": longest},
        "volume": api.units.convert_weight(volume, unit),
        "exercises": [
            {
                **item,
                "max_weight": api.units.convert_weight(item["max_weight"], unit),
                "volume": api.units.convert_weight(item["volume"], unit),
            }
            for item in stats.exercise_stats(user_id)
        ],
    }
    print(json.dumps(data, indent=2))


def archive_workout(db_path: str, yaml_path: str, workout_id: int) -> None:
    api = HistoryAPI(db_path=db_path, yaml_path=yaml_path)
    records = api.archiver.archive_workout(workout_id)
    print(f"Archived workout {workout_id} into records {records}")


def delete_workout(db_path: str, yaml_path: str, workout_id: int) -> None:
    api = HistoryAPI(db_path=db_path, yaml_path=yaml_path)
    records = api.archiver.delete_workout(workout_id)
    if records:
        print(f"Deleted workout {workout_id}; history kept in records {records}")
    else:
        print(f"Deleted workout {workout_id}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Training history utilities")
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default="workout.db")
    demo.add_argument("--yaml", default="settings.yaml")

    stats = sub.add_parser("stats")
    stats.add_argument("--db", default="workout.db")
    stats.add_argument("--yaml", default="settings.yaml")
    stats.add_argument("--user", type=int, required=True)
    stats.add_argument("--unit", choices=["kg", "lb"], default=None)

    arch = sub.add_parser("archive")
    arch.add_argument("--db", default="workout.db")
    arch.add_argument("--yaml", default="settings.yaml")
    arch.add_argument("--workout", type=int, required=True)

    dele = sub.add_parser("delete")
    dele.add_argument("--db", default="workout.db")
    dele.add_argument("--yaml", default="settings.yaml")
    dele.add_argument("--workout", type=int, required=True)

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=["kg", "lb"], required=True)

    args = parser.parse_args()

    level = args.log_level
    if level is None and hasattr(args, "db"):
        level = HistoryAPI(args.db, args.yaml).settings.get_text("log_level", "INFO")
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "demo":
        demo_data(args.db, args.yaml)
    elif args.cmd == "stats":
        show_stats(args.db, args.yaml, args.user, args.unit)
    elif args.cmd == "archive":
        archive_workout(args.db, args.yaml, args.workout)
    elif args.cmd == "delete":
        delete_workout(args.db, args.yaml, args.workout)
    elif args.cmd == "convert":
        if args.unit == "kg":
            print(f"{args.weight} kg = {WeightConverter.kg_to_lb(args.weight)} lb")
        else:
            print(f"{args.weight} lb = {WeightConverter.lb_to_kg(args.weight)} kg")


if __name__ == "__main__":
    main()
