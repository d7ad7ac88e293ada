import os
import sys
import unittest
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import SettingsRepository
from settings_schema import validate_settings
from unit_service import UnitService


class SettingsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_settings.db"
        self.yaml_path = "test_settings.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.settings = SettingsRepository(self.db_path, self.yaml_path)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_defaults_written_to_yaml(self) -> None:
        with open(self.yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        self.assertEqual(data["weight_unit"], "kg")
        self.assertEqual(data["consistency_window_days"], 30)
        self.assertIs(data["skip_weekends"], False)

    def test_typed_getters(self) -> None:
        self.assertEqual(self.settings.get_int("consistency_window_days", 0), 30)
        self.assertFalse(self.settings.get_bool("skip_weekends", True))
        self.settings.set_bool("skip_weekends", True)
        self.assertTrue(self.settings.get_bool("skip_weekends", False))
        self.settings.set_int("streak_window_days", 14)
        self.assertEqual(self.settings.get_float("streak_window_days", 0.0), 14.0)

    def test_yaml_edits_are_picked_up(self) -> None:
        data = self.settings.all_settings()
        data["weight_unit"] = "lb"
        with open(self.yaml_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f)
        self.assertEqual(self.settings.get_text("weight_unit", "kg"), "lb")

    def test_invalid_values_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.settings.set_text("weight_unit", "stone")
        with self.assertRaises(ValueError):
            self.settings.set_int("consistency_window_days", 0)
        with self.assertRaises(ValueError):
            validate_settings({"log_level": "LOUD"})
        self.assertEqual(self.settings.get_text("weight_unit", ""), "kg")


class UnitServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_units.db"
        self.yaml_path = "test_units.yaml"
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)
        self.settings = SettingsRepository(self.db_path, self.yaml_path)
        self.units = UnitService(self.settings)

    def tearDown(self) -> None:
        for path in (self.db_path, self.yaml_path):
            if os.path.exists(path):
                os.remove(path)

    def test_metric_defaults(self) -> None:
        self.assertEqual(self.units.format_weight(100), "100.0 kg")
        self.assertEqual(self.units.format_height(180), "180 cm")
        self.assertEqual(self.units.convert_weight(100), 100.0)

    def test_imperial(self) -> None:
        self.settings.set_text("unit_system", "imperial")
        self.assertEqual(self.units.weight_unit, "lb")
        self.assertEqual(self.units.convert_weight(100), 220.46)
        self.assertEqual(self.units.format_weight(100), "220.5 lbs")
        self.assertEqual(self.units.format_height(180), "5'11\"")

    def test_conversions(self) -> None:
        self.assertEqual(self.units.to_storage_weight(220.46, "lb"), 100.0)
        self.assertEqual(self.units.cm_to_in(2.54), 1.0)
        self.assertEqual(self.units.in_to_cm(10), 25.4)
        self.assertEqual(UnitService().format_weight(50, "lb"), "110.2 lbs")


if __name__ == "__main__":
    unittest.main()
