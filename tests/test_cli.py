import os
import sys
import json

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli
from rest_api import HistoryAPI


def test_demo_and_stats(tmp_path, capsys):
    db = str(tmp_path / "demo.db")
    yml = str(tmp_path / "demo.yaml")
    cli.demo_data(db, yml)
    assert "Demo data inserted" in capsys.readouterr().out
    cli.demo_data(db, yml)
    assert "already contains users" in capsys.readouterr().out

    cli.show_stats(db, yml, 1, None)
    data = json.loads(capsys.readouterr().out)
    assert data["summary"]["total_workouts"] == 2
    assert data["streak"] == {"current": 2, "longest": 2}
    # 80*10 + 85*8 + 120*5 + 87.5*5 + 90*3 + 125*5*2
    assert data["volume"] == 4037.5
    bench = [e for e in data["exercises"] if e["exercise"] == "Bench Press"][0]
    assert bench["max_weight"] == 90.0


def test_delete_keeps_history(tmp_path, capsys):
    db = str(tmp_path / "demo.db")
    yml = str(tmp_path / "demo.yaml")
    cli.demo_data(db, yml)
    capsys.readouterr()
    cli.archive_workout(db, yml, 1)
    assert "Archived workout 1" in capsys.readouterr().out
    cli.delete_workout(db, yml, 1)
    assert "history kept" in capsys.readouterr().out
    api = HistoryAPI(db, yml)
    assert api.statistics.get_total_volume(1) == 4037.5


def test_convert(monkeypatch, capsys):
    monkeypatch.setattr(
        sys, "argv", ["cli.py", "convert", "--weight", "100", "--unit", "kg"]
    )
    cli.main()
    assert "100.0 kg = 220.46 lb" in capsys.readouterr().out
