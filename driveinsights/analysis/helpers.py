"""Low-level numeric and calendar helpers shared by the analyzers."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, tzinfo

from ..constants import DAY_NAMES, EFFICIENCY_DISTANCE_MILES, PERCENT, WEEKEND_DAYS
from ..drive_models import RawDrive


def round2(value: float) -> float:
    return round(value, 2)


def mean_or_zero(values: Iterable[float]) -> float:
    """Arithmetic mean rounded to 2 decimals; 0 for an empty input."""
    items = list(values)
    if not items:
        return 0.0
    return round2(sum(items) / len(items))


def safe_ratio(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def energy_kwh(battery_pct: float, capacity_kwh: float) -> float:
    return (battery_pct / PERCENT) * capacity_kwh


def efficiency_kwh_per_100mi(
    battery_used_pct: float, distance_miles: float, capacity_kwh: float
) -> float:
    """Consumption in kWh/100mi; 0 when no distance was covered."""
    if distance_miles <= 0:
        return 0.0
    return energy_kwh(battery_used_pct, capacity_kwh) / distance_miles * EFFICIENCY_DISTANCE_MILES


def drive_efficiency(drive: RawDrive, capacity_kwh: float) -> float:
    return efficiency_kwh_per_100mi(drive.battery_used, drive.odometer_distance, capacity_kwh)


def local_time(timestamp: float, zone: tzinfo) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=zone)


def day_name(moment: datetime) -> str:
    return DAY_NAMES[moment.weekday()]


def is_weekend(moment: datetime) -> bool:
    return moment.weekday() in WEEKEND_DAYS


def hour_label(hour: int) -> str:
    """12-hour clock label without minutes, e.g. ``7AM`` or ``12PM``."""
    display = 12 if hour % 12 == 0 else hour % 12
    return f"{display}{'AM' if hour < 12 else 'PM'}"


def clock_label(minutes_since_midnight: float) -> str:
    """12-hour clock label with minutes, e.g. ``07:45 AM``."""
    total = int(round(minutes_since_midnight)) % (24 * 60)
    hour, minute = divmod(total, 60)
    display = 12 if hour % 12 == 0 else hour % 12
    return f"{display:02d}:{minute:02d} {'AM' if hour < 12 else 'PM'}"


def format_hours_minutes(minutes: float) -> str:
    total = max(0.0, minutes)
    return f"{int(total // 60)}h {int(round(total % 60))}m"
