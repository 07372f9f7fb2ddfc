from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass
from datetime import UTC, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "analysis": {"timezone": "UTC"},
    "vehicle": {
        "battery_capacity_kwh": 75.0,
        "miles_per_kwh": 4.0,
    },
    "rates": {
        "home": 0.13,
        "supercharger": 0.28,
        "public": 0.20,
        "work": 0.0,
        "time_of_use": {
            "enabled": True,
            "off_peak_start_hour": 23,
            "off_peak_end_hour": 7,
            "off_peak_rate": 0.09,
            "peak_start_hour": 16,
            "peak_end_hour": 21,
            "peak_rate": 0.32,
        },
    },
    "segmentation": {
        "merge_gap_minutes": 7.0,
        "charging_battery_gain_pct": 5.0,
        "min_autopilot_distance_miles": 5.0,
        "max_autopilot_score": 0.9,
    },
    "charging": {
        "min_battery_gain_pct": 2.0,
        "fast_charge_max_minutes": 60.0,
        "fast_charge_min_gain_pct": 40.0,
        "long_stay_minutes": 240.0,
        "home_stay_minutes": 480.0,
        "public_min_minutes": 30.0,
        "home_promotion_visits": 5,
        "overnight_min_hours": 6.0,
        "work_min_visits": 10,
        "work_min_avg_stay_hours": 6.0,
        "supercharger_cost_share_pct": 30.0,
        "low_charge_rate_kw": 7.0,
        "work_charging_min_sessions": 10,
        "shiftable_supercharger_fraction": 0.5,
    },
    "efficiency": {
        "min_drives": 5,
        "max_plausible_kwh_per_100mi": 60.0,
        "highway_speed_mph": 55.0,
        "trend_windows_days": {"weekly": 7, "monthly": 30, "seasonal": 90},
        "trend_threshold_pct": 3.0,
        "cold_threshold": 35.0,
        "hot_threshold": 30.0,
        "highway_split_pct": 50.0,
        "min_hour_samples": 2,
    },
    "commute": {
        "min_drives": 10,
        "min_route_frequency": 3,
        "trend_window_drives": 6,
        "trend_threshold_pct": 5.0,
        "max_route_efficiency": 50.0,
        "high_energy_threshold": 30.0,
    },
    "trip_cost": {
        "gas_price_per_gallon": 4.50,
        "gas_mpg": 30.0,
        "co2_lbs_per_gallon": 19.6,
        "co2_lbs_per_kwh_grid": 0.855,
        "co2_lbs_per_tree_year": 48.0,
        "fast_charge_max_hours": 1.0,
        "fast_charge_min_gain_pct": 30.0,
        "unaccounted_energy_fraction": 0.5,
        "off_peak_discount": 0.3,
        "safety_buffer": 0.15,
        "home_charge_max_deficit_pct": 60.0,
        "home_charge_target_pct": 90.0,
        "supercharger_stop_pct": 50.0,
    },
}


def documented_default_config() -> dict[str, Any]:
    """Return the defaults in the shape documented by ``config.example.yaml``."""
    return deepcopy(DEFAULT_CONFIG)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _clamp_min(obj: object, section: str, field_name: str, minimum: float) -> None:
    val = getattr(obj, field_name)
    if val < minimum:
        LOGGER.warning(
            "%s.%s=%s is below minimum %s — clamped to %s",
            section,
            field_name,
            val,
            minimum,
            minimum,
        )
        object.__setattr__(obj, field_name, type(val)(minimum))


def _resolve_timezone(name: str) -> tzinfo:
    if name.strip().upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"analysis.timezone is not a known IANA zone: {name!r}") from None


def _check_hour(section: str, field_name: str, value: int) -> None:
    if not 0 <= value <= 23:
        raise ValueError(f"{section}.{field_name} must be 0-23, got {value!r}")


@dataclass(frozen=True, slots=True)
class VehicleConfig:
    battery_capacity_kwh: float
    miles_per_kwh: float

    def __post_init__(self) -> None:
        for name in ("battery_capacity_kwh", "miles_per_kwh"):
            if getattr(self, name) <= 0:
                raise ValueError(f"vehicle.{name} must be positive, got {getattr(self, name)!r}")


@dataclass(frozen=True, slots=True)
class TimeOfUseConfig:
    off_peak_start_hour: int
    off_peak_end_hour: int
    off_peak_rate: float
    peak_start_hour: int
    peak_end_hour: int
    peak_rate: float

    def __post_init__(self) -> None:
        for name in (
            "off_peak_start_hour",
            "off_peak_end_hour",
            "peak_start_hour",
            "peak_end_hour",
        ):
            _check_hour("rates.time_of_use", name, getattr(self, name))
        for name in ("off_peak_rate", "peak_rate"):
            if getattr(self, name) < 0:
                raise ValueError(
                    f"rates.time_of_use.{name} must be ≥0, got {getattr(self, name)!r}"
                )

    @staticmethod
    def _in_window(hour: int, start: int, end: int) -> bool:
        if start <= end:
            return start <= hour < end
        # window wraps past midnight
        return hour >= start or hour < end

    def is_off_peak(self, hour: int) -> bool:
        return self._in_window(hour, self.off_peak_start_hour, self.off_peak_end_hour)

    def is_peak(self, hour: int) -> bool:
        return self._in_window(hour, self.peak_start_hour, self.peak_end_hour)

    @property
    def off_peak_label(self) -> str:
        return f"{self.off_peak_start_hour:02d}:00-{self.off_peak_end_hour:02d}:00"

    @property
    def peak_label(self) -> str:
        return f"{self.peak_start_hour:02d}:00-{self.peak_end_hour:02d}:00"


@dataclass(frozen=True, slots=True)
class ChargeRates:
    """Per-kWh electricity prices by charging location type."""

    home: float
    supercharger: float
    public: float
    work: float
    time_of_use: TimeOfUseConfig | None

    def __post_init__(self) -> None:
        for name in ("home", "supercharger", "public", "work"):
            val = getattr(self, name)
            if val < 0:
                raise ValueError(f"rates.{name} must be ≥0, got {val!r}")

    @property
    def off_peak_home_rate(self) -> float:
        """Cheapest home rate: the off-peak rate when time-of-use applies."""
        if self.time_of_use is not None:
            return self.time_of_use.off_peak_rate
        return self.home


@dataclass(frozen=True, slots=True)
class SegmentationConfig:
    merge_gap_minutes: float
    charging_battery_gain_pct: float
    min_autopilot_distance_miles: float
    max_autopilot_score: float

    def __post_init__(self) -> None:
        _clamp_min(self, "segmentation", "merge_gap_minutes", 0.0)
        _clamp_min(self, "segmentation", "charging_battery_gain_pct", 0.0)
        _clamp_min(self, "segmentation", "min_autopilot_distance_miles", 0.0)
        if not 0.0 <= self.max_autopilot_score <= 1.0:
            clamped = min(max(self.max_autopilot_score, 0.0), 1.0)
            LOGGER.warning(
                "segmentation.max_autopilot_score=%s outside [0, 1] — clamped to %s",
                self.max_autopilot_score,
                clamped,
            )
            object.__setattr__(self, "max_autopilot_score", clamped)


@dataclass(frozen=True, slots=True)
class ChargingConfig:
    min_battery_gain_pct: float
    fast_charge_max_minutes: float
    fast_charge_min_gain_pct: float
    long_stay_minutes: float
    home_stay_minutes: float
    public_min_minutes: float
    home_promotion_visits: int
    overnight_min_hours: float
    work_min_visits: int
    work_min_avg_stay_hours: float
    supercharger_cost_share_pct: float
    low_charge_rate_kw: float
    work_charging_min_sessions: int
    shiftable_supercharger_fraction: float

    def __post_init__(self) -> None:
        for name in (
            "min_battery_gain_pct",
            "fast_charge_max_minutes",
            "long_stay_minutes",
            "public_min_minutes",
            "overnight_min_hours",
        ):
            _clamp_min(self, "charging", name, 0.0)
        for name in ("home_promotion_visits", "work_min_visits", "work_charging_min_sessions"):
            _clamp_min(self, "charging", name, 0)
        if self.home_stay_minutes < self.long_stay_minutes:
            LOGGER.warning(
                "charging.home_stay_minutes=%s is below long_stay_minutes=%s — raised to match",
                self.home_stay_minutes,
                self.long_stay_minutes,
            )
            object.__setattr__(self, "home_stay_minutes", self.long_stay_minutes)
        if not 0.0 <= self.shiftable_supercharger_fraction <= 1.0:
            clamped = min(max(self.shiftable_supercharger_fraction, 0.0), 1.0)
            LOGGER.warning(
                "charging.shiftable_supercharger_fraction=%s outside [0, 1] — clamped to %s",
                self.shiftable_supercharger_fraction,
                clamped,
            )
            object.__setattr__(self, "shiftable_supercharger_fraction", clamped)


@dataclass(frozen=True, slots=True)
class EfficiencyConfig:
    min_drives: int
    max_plausible_kwh_per_100mi: float
    highway_speed_mph: float
    trend_windows_days: dict[str, int]
    trend_threshold_pct: float
    cold_threshold: float
    hot_threshold: float
    highway_split_pct: float
    min_hour_samples: int

    def __post_init__(self) -> None:
        _clamp_min(self, "efficiency", "min_drives", 1)
        _clamp_min(self, "efficiency", "min_hour_samples", 1)
        _clamp_min(self, "efficiency", "trend_threshold_pct", 0.0)
        if not self.trend_windows_days:
            raise ValueError("efficiency.trend_windows_days must define at least one window")
        for name, days in self.trend_windows_days.items():
            if days <= 0:
                raise ValueError(
                    f"efficiency.trend_windows_days.{name} must be positive, got {days!r}"
                )


@dataclass(frozen=True, slots=True)
class CommuteConfig:
    min_drives: int
    min_route_frequency: int
    trend_window_drives: int
    trend_threshold_pct: float
    max_route_efficiency: float
    high_energy_threshold: float

    def __post_init__(self) -> None:
        _clamp_min(self, "commute", "min_drives", 1)
        _clamp_min(self, "commute", "min_route_frequency", 1)
        _clamp_min(self, "commute", "trend_window_drives", 1)
        _clamp_min(self, "commute", "trend_threshold_pct", 0.0)


@dataclass(frozen=True, slots=True)
class TripCostConfig:
    gas_price_per_gallon: float
    gas_mpg: float
    co2_lbs_per_gallon: float
    co2_lbs_per_kwh_grid: float
    co2_lbs_per_tree_year: float
    fast_charge_max_hours: float
    fast_charge_min_gain_pct: float
    unaccounted_energy_fraction: float
    off_peak_discount: float
    safety_buffer: float
    home_charge_max_deficit_pct: float
    home_charge_target_pct: float
    supercharger_stop_pct: float

    def __post_init__(self) -> None:
        for name in ("gas_mpg", "co2_lbs_per_tree_year", "supercharger_stop_pct"):
            if getattr(self, name) <= 0:
                raise ValueError(f"trip_cost.{name} must be positive, got {getattr(self, name)!r}")
        _clamp_min(self, "trip_cost", "gas_price_per_gallon", 0.0)
        _clamp_min(self, "trip_cost", "safety_buffer", 0.0)
        if not 0.0 <= self.home_charge_target_pct <= 100.0:
            raise ValueError(
                "trip_cost.home_charge_target_pct must be 0-100, "
                f"got {self.home_charge_target_pct!r}"
            )


@dataclass(frozen=True, slots=True)
class AnalyticsConfig:
    timezone: str
    vehicle: VehicleConfig
    rates: ChargeRates
    segmentation: SegmentationConfig
    charging: ChargingConfig
    efficiency: EfficiencyConfig
    commute: CommuteConfig
    trip_cost: TripCostConfig

    def __post_init__(self) -> None:
        _resolve_timezone(self.timezone)

    @property
    def zone(self) -> tzinfo:
        return _resolve_timezone(self.timezone)

    @classmethod
    def default(cls) -> AnalyticsConfig:
        return cls.from_dict({})

    @classmethod
    def from_dict(cls, override: dict[str, Any]) -> AnalyticsConfig:
        merged = _deep_merge(DEFAULT_CONFIG, override)
        rates_cfg = merged["rates"]
        tou_cfg = rates_cfg.get("time_of_use") or {}
        time_of_use = None
        if bool(tou_cfg.get("enabled", False)):
            time_of_use = TimeOfUseConfig(
                off_peak_start_hour=int(tou_cfg["off_peak_start_hour"]),
                off_peak_end_hour=int(tou_cfg["off_peak_end_hour"]),
                off_peak_rate=float(tou_cfg["off_peak_rate"]),
                peak_start_hour=int(tou_cfg["peak_start_hour"]),
                peak_end_hour=int(tou_cfg["peak_end_hour"]),
                peak_rate=float(tou_cfg["peak_rate"]),
            )
        charging = merged["charging"]
        efficiency = merged["efficiency"]
        commute = merged["commute"]
        trip = merged["trip_cost"]
        return cls(
            timezone=str(merged["analysis"]["timezone"]),
            vehicle=VehicleConfig(
                battery_capacity_kwh=float(merged["vehicle"]["battery_capacity_kwh"]),
                miles_per_kwh=float(merged["vehicle"]["miles_per_kwh"]),
            ),
            rates=ChargeRates(
                home=float(rates_cfg["home"]),
                supercharger=float(rates_cfg["supercharger"]),
                public=float(rates_cfg["public"]),
                work=float(rates_cfg["work"]),
                time_of_use=time_of_use,
            ),
            segmentation=SegmentationConfig(
                merge_gap_minutes=float(merged["segmentation"]["merge_gap_minutes"]),
                charging_battery_gain_pct=float(
                    merged["segmentation"]["charging_battery_gain_pct"]
                ),
                min_autopilot_distance_miles=float(
                    merged["segmentation"]["min_autopilot_distance_miles"]
                ),
                max_autopilot_score=float(merged["segmentation"]["max_autopilot_score"]),
            ),
            charging=ChargingConfig(
                min_battery_gain_pct=float(charging["min_battery_gain_pct"]),
                fast_charge_max_minutes=float(charging["fast_charge_max_minutes"]),
                fast_charge_min_gain_pct=float(charging["fast_charge_min_gain_pct"]),
                long_stay_minutes=float(charging["long_stay_minutes"]),
                home_stay_minutes=float(charging["home_stay_minutes"]),
                public_min_minutes=float(charging["public_min_minutes"]),
                home_promotion_visits=int(charging["home_promotion_visits"]),
                overnight_min_hours=float(charging["overnight_min_hours"]),
                work_min_visits=int(charging["work_min_visits"]),
                work_min_avg_stay_hours=float(charging["work_min_avg_stay_hours"]),
                supercharger_cost_share_pct=float(charging["supercharger_cost_share_pct"]),
                low_charge_rate_kw=float(charging["low_charge_rate_kw"]),
                work_charging_min_sessions=int(charging["work_charging_min_sessions"]),
                shiftable_supercharger_fraction=float(
                    charging["shiftable_supercharger_fraction"]
                ),
            ),
            efficiency=EfficiencyConfig(
                min_drives=int(efficiency["min_drives"]),
                max_plausible_kwh_per_100mi=float(efficiency["max_plausible_kwh_per_100mi"]),
                highway_speed_mph=float(efficiency["highway_speed_mph"]),
                trend_windows_days={
                    str(name): int(days)
                    for name, days in dict(efficiency["trend_windows_days"]).items()
                },
                trend_threshold_pct=float(efficiency["trend_threshold_pct"]),
                cold_threshold=float(efficiency["cold_threshold"]),
                hot_threshold=float(efficiency["hot_threshold"]),
                highway_split_pct=float(efficiency["highway_split_pct"]),
                min_hour_samples=int(efficiency["min_hour_samples"]),
            ),
            commute=CommuteConfig(
                min_drives=int(commute["min_drives"]),
                min_route_frequency=int(commute["min_route_frequency"]),
                trend_window_drives=int(commute["trend_window_drives"]),
                trend_threshold_pct=float(commute["trend_threshold_pct"]),
                max_route_efficiency=float(commute["max_route_efficiency"]),
                high_energy_threshold=float(commute["high_energy_threshold"]),
            ),
            trip_cost=TripCostConfig(
                gas_price_per_gallon=float(trip["gas_price_per_gallon"]),
                gas_mpg=float(trip["gas_mpg"]),
                co2_lbs_per_gallon=float(trip["co2_lbs_per_gallon"]),
                co2_lbs_per_kwh_grid=float(trip["co2_lbs_per_kwh_grid"]),
                co2_lbs_per_tree_year=float(trip["co2_lbs_per_tree_year"]),
                fast_charge_max_hours=float(trip["fast_charge_max_hours"]),
                fast_charge_min_gain_pct=float(trip["fast_charge_min_gain_pct"]),
                unaccounted_energy_fraction=float(trip["unaccounted_energy_fraction"]),
                off_peak_discount=float(trip["off_peak_discount"]),
                safety_buffer=float(trip["safety_buffer"]),
                home_charge_max_deficit_pct=float(trip["home_charge_max_deficit_pct"]),
                home_charge_target_pct=float(trip["home_charge_target_pct"]),
                supercharger_stop_pct=float(trip["supercharger_stop_pct"]),
            ),
        )


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a YAML object at the top level.")
        return data


def load_config(config_path: Path | None = None) -> AnalyticsConfig:
    """Build an :class:`AnalyticsConfig` from an optional YAML override file.

    A missing file yields the defaults; every key in the file is optional and
    deep-merged over :data:`DEFAULT_CONFIG`.
    """
    override: dict[str, Any] = {}
    if config_path is not None:
        override = _read_config_file(config_path.resolve())
    config = AnalyticsConfig.from_dict(override)
    LOGGER.info(
        "Loaded analytics config=%s timezone=%s time_of_use=%s",
        config_path,
        config.timezone,
        config.rates.time_of_use is not None,
    )
    return config
