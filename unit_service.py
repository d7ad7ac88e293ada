from db import SettingsRepository
from tools import WeightConverter


class UnitService:
    """Convert canonical kilograms and centimetres for display.

    Stored values are always metric; conversion only happens on the way out.
    """

    CM_TO_IN = 0.393701
    IN_TO_CM = 2.54

    def __init__(self, settings_repo: SettingsRepository | None = None) -> None:
        self.settings = settings_repo

    @property
    def unit_system(self) -> str:
        if self.settings is None:
            return "metric"
        return self.settings.get_text("unit_system", "metric")

    @property
    def weight_unit(self) -> str:
        if self.settings is None:
            return "kg"
        unit = self.settings.get_text("weight_unit", "kg")
        if self.unit_system == "imperial":
            return "lb"
        return unit

    def convert_weight(self, kg: float, unit: str | None = None) -> float:
        return WeightConverter.convert(kg, "kg", unit or self.weight_unit)

    def to_storage_weight(self, value: float, unit: str | None = None) -> float:
        """Turn a weight entered in ``unit`` back into kilograms."""
        return WeightConverter.convert(value, unit or self.weight_unit, "kg")

    def format_weight(self, kg: float, unit: str | None = None) -> str:
        unit = unit or self.weight_unit
        label = "lbs" if unit == "lb" else "kg"
        return f"{self.convert_weight(kg, unit):.1f} {label}"

    def cm_to_in(self, cm: float) -> float:
        return round(cm * self.CM_TO_IN, 2)

    def in_to_cm(self, inches: float) -> float:
        return round(inches * self.IN_TO_CM, 2)

    def format_height(self, cm: float) -> str:
        if self.unit_system != "imperial":
            return f"{cm:.0f} cm"
        total_inches = int(round(cm * self.CM_TO_IN))
        feet, inches = divmod(total_inches, 12)
        return f"{feet}'{inches}\""
