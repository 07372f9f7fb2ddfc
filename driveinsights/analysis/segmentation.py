"""Trip segmentation: merge raw drives into continuous journeys.

Consecutive drives are joined when the stop between them was short (under
``merge_gap_minutes``) or when the battery level rose across the stop by more
than ``charging_battery_gain_pct``; a charging stop is part of the journey,
not the end of it.

The autopilot figure attached to each journey is a heuristic estimate built
from speed and distance patterns.  The upstream data carries no autopilot
telemetry, so the number must always be presented as an estimate.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..config import AnalyticsConfig, SegmentationConfig
from ..constants import MINUTES_PER_HOUR, PERCENT, SECONDS_PER_MINUTE
from ..drive_models import RawDrive, sort_drives
from .helpers import energy_kwh, format_hours_minutes, round2, safe_ratio
from .labels import StopType

LOGGER = logging.getLogger(__name__)

AUTOPILOT_ESTIMATE_NOTE = "Estimated based on highway driving patterns and speed consistency"
AUTOPILOT_UNLIKELY_NOTE = "Low probability of autopilot usage detected from driving patterns"

# (exclusive lower bound, score contribution); first match wins
_SPEED_FACTORS: tuple[tuple[float, float], ...] = ((45.0, 0.4), (35.0, 0.2))
_DISTANCE_FACTORS: tuple[tuple[float, float], ...] = ((30.0, 0.3), (15.0, 0.2), (10.0, 0.1))
_CONSISTENCY_BUCKETS: tuple[tuple[float, float], ...] = (
    (0.85, 1.0),
    (0.75, 0.8),
    (0.65, 0.6),
    (0.55, 0.4),
)
_CONSISTENCY_FLOOR = 0.2
_CONSISTENCY_WEIGHT = 0.2
_SUSTAINED_HIGHWAY_SPEED_MPH = 50.0
_SUSTAINED_HIGHWAY_MINUTES = 30.0
_SUSTAINED_HIGHWAY_BONUS = 0.1


@dataclass(frozen=True, slots=True)
class DriveStop:
    location: str
    duration_minutes: float
    stop_type: StopType
    started_at: int
    ended_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location,
            "duration_minutes": self.duration_minutes,
            "stop_type": str(self.stop_type),
            "started_at": self.started_at,
            "ended_at": self.ended_at,
        }


def classify_stop(
    gap_minutes: float, battery_gain_pct: float, config: SegmentationConfig
) -> StopType:
    if battery_gain_pct > config.charging_battery_gain_pct:
        return StopType.CHARGING
    if gap_minutes < config.merge_gap_minutes:
        return StopType.SHORT
    return StopType.EXCLUDED


def should_merge(prev: RawDrive, nxt: RawDrive, config: SegmentationConfig) -> bool:
    gap_minutes = (nxt.started_at - prev.ended_at) / SECONDS_PER_MINUTE
    if gap_minutes < config.merge_gap_minutes:
        return True
    return (nxt.starting_battery - prev.ending_battery) > config.charging_battery_gain_pct


def speed_consistency(average_speed: float, max_speed: float) -> float:
    """Bucketed average/max speed ratio in [0.2, 1.0]; 0 without speed data."""
    if average_speed <= 0 or max_speed <= 0:
        return 0.0
    ratio = average_speed / max_speed
    for lower, score in _CONSISTENCY_BUCKETS:
        if ratio > lower:
            return score
    return _CONSISTENCY_FLOOR


def autopilot_score(
    total_distance: float,
    average_speed: float,
    max_speed: float,
    driving_minutes: float,
    config: SegmentationConfig,
) -> float:
    """Fraction of the distance likely driven on autopilot, in [0, max_autopilot_score]."""
    if total_distance < config.min_autopilot_distance_miles:
        return 0.0

    score = 0.0
    for lower, contribution in _SPEED_FACTORS:
        if average_speed > lower:
            score += contribution
            break
    for lower, contribution in _DISTANCE_FACTORS:
        if total_distance > lower:
            score += contribution
            break
    score += speed_consistency(average_speed, max_speed) * _CONSISTENCY_WEIGHT

    trip_speed = safe_ratio(total_distance, driving_minutes / MINUTES_PER_HOUR)
    if trip_speed > _SUSTAINED_HIGHWAY_SPEED_MPH and driving_minutes > _SUSTAINED_HIGHWAY_MINUTES:
        score += _SUSTAINED_HIGHWAY_BONUS

    return min(score, config.max_autopilot_score)


@dataclass(frozen=True, slots=True)
class MergedDrive:
    """A journey built from one or more consecutive raw drives."""

    id: str
    original_drive_ids: tuple[int, ...]
    started_at: int
    ended_at: int
    starting_location: str
    ending_location: str
    starting_battery: float
    ending_battery: float
    total_distance: float
    total_duration_minutes: float
    driving_duration_minutes: float
    stops: tuple[DriveStop, ...]
    autopilot_distance: float
    autopilot_percentage: float
    energy_consumed: float
    average_speed: float
    max_speed: float

    @classmethod
    def from_drives(cls, drives: Sequence[RawDrive], config: SegmentationConfig) -> MergedDrive:
        """Build a journey from a chronologically ordered, non-empty group."""
        if not drives:
            raise ValueError("Cannot create merged drive from empty drive group")

        first, last = drives[0], drives[-1]
        stops: list[DriveStop] = []
        for current, nxt in zip(drives, drives[1:]):
            gap_minutes = (nxt.started_at - current.ended_at) / SECONDS_PER_MINUTE
            if gap_minutes <= 0:
                continue
            stop_type = classify_stop(
                gap_minutes, nxt.starting_battery - current.ending_battery, config
            )
            if stop_type is StopType.EXCLUDED:
                LOGGER.warning(
                    "Stop of %.1f min at %r between drives %s and %s matched no merge rule",
                    gap_minutes,
                    current.ending_location,
                    current.id,
                    nxt.id,
                )
            stops.append(
                DriveStop(
                    location=current.ending_location,
                    duration_minutes=round2(gap_minutes),
                    stop_type=stop_type,
                    started_at=current.ended_at,
                    ended_at=nxt.started_at,
                )
            )

        total_distance = round2(sum(d.odometer_distance for d in drives))
        total_duration = round2((last.ended_at - first.started_at) / SECONDS_PER_MINUTE)
        driving_duration = round2(sum(d.duration_minutes for d in drives))
        max_speed = round2(max((d.max_speed or 0.0) for d in drives))
        average_speed = round2(safe_ratio(total_distance, driving_duration / MINUTES_PER_HOUR))

        score = autopilot_score(
            total_distance, average_speed, max_speed, driving_duration, config
        )
        autopilot_distance = round2(total_distance * score)
        autopilot_percentage = round2(safe_ratio(autopilot_distance, total_distance) * PERCENT)

        return cls(
            id="merged_" + "_".join(str(d.id) for d in drives),
            original_drive_ids=tuple(d.id for d in drives),
            started_at=first.started_at,
            ended_at=last.ended_at,
            starting_location=first.starting_location,
            ending_location=last.ending_location,
            starting_battery=first.starting_battery,
            ending_battery=last.ending_battery,
            total_distance=total_distance,
            total_duration_minutes=total_duration,
            driving_duration_minutes=driving_duration,
            stops=tuple(stops),
            autopilot_distance=autopilot_distance,
            autopilot_percentage=autopilot_percentage,
            energy_consumed=round2(first.starting_battery - last.ending_battery),
            average_speed=average_speed,
            max_speed=max_speed,
        )

    @property
    def stop_minutes(self) -> float:
        return max(0.0, self.total_duration_minutes - self.driving_duration_minutes)

    def stop_count(self, stop_type: StopType) -> int:
        return sum(1 for stop in self.stops if stop.stop_type is stop_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "original_drive_ids": list(self.original_drive_ids),
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "starting_location": self.starting_location,
            "ending_location": self.ending_location,
            "starting_battery": self.starting_battery,
            "ending_battery": self.ending_battery,
            "total_distance": self.total_distance,
            "total_duration_minutes": self.total_duration_minutes,
            "driving_duration_minutes": self.driving_duration_minutes,
            "stops": [stop.to_dict() for stop in self.stops],
            "autopilot_distance": self.autopilot_distance,
            "autopilot_percentage": self.autopilot_percentage,
            "autopilot_is_estimate": True,
            "energy_consumed": self.energy_consumed,
            "average_speed": self.average_speed,
            "max_speed": self.max_speed,
        }


@dataclass(frozen=True, slots=True)
class BatteryConsumption:
    percentage_used: float
    estimated_kwh_used: float
    efficiency_miles_per_kwh: float | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "percentage_used": self.percentage_used,
            "estimated_kwh_used": self.estimated_kwh_used,
            "efficiency_miles_per_kwh": self.efficiency_miles_per_kwh,
        }


@dataclass(frozen=True, slots=True)
class AutopilotEstimate:
    total_autopilot_miles: float
    autopilot_percentage: float
    note: str
    is_estimate: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_autopilot_miles": self.total_autopilot_miles,
            "autopilot_percentage": self.autopilot_percentage,
            "is_estimate": self.is_estimate,
            "note": self.note,
        }


@dataclass(frozen=True, slots=True)
class DriveAnalysis:
    merged_drive: MergedDrive
    battery_consumption: BatteryConsumption
    autopilot: AutopilotEstimate
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "merged_drive": self.merged_drive.to_dict(),
            "battery_consumption": self.battery_consumption.to_dict(),
            "autopilot": self.autopilot.to_dict(),
            "summary": self.summary,
        }


class TripSegmenter:
    """Merge raw drives into journeys and report on the latest one."""

    def __init__(self, config: AnalyticsConfig | None = None) -> None:
        self._config = config or AnalyticsConfig.default()

    @property
    def config(self) -> AnalyticsConfig:
        return self._config

    def merge(self, drives: Sequence[RawDrive]) -> list[MergedDrive]:
        if not drives:
            return []
        seg_cfg = self._config.segmentation
        ordered = sort_drives(drives)
        merged: list[MergedDrive] = []
        group: list[RawDrive] = [ordered[0]]
        for prev, current in zip(ordered, ordered[1:]):
            if should_merge(prev, current, seg_cfg):
                group.append(current)
                continue
            merged.append(MergedDrive.from_drives(group, seg_cfg))
            group = [current]
        merged.append(MergedDrive.from_drives(group, seg_cfg))
        LOGGER.debug("Merged %d raw drives into %d journeys", len(ordered), len(merged))
        return merged

    def autopilot_score(self, drive: MergedDrive) -> float:
        return autopilot_score(
            drive.total_distance,
            drive.average_speed,
            drive.max_speed,
            drive.driving_duration_minutes,
            self._config.segmentation,
        )

    def speed_consistency(self, drive: MergedDrive) -> float:
        return speed_consistency(drive.average_speed, drive.max_speed)

    def predict_autopilot_miles(self, drive: MergedDrive) -> float:
        return round2(drive.total_distance * self.autopilot_score(drive))

    def analyze_latest(self, drives: Sequence[RawDrive]) -> DriveAnalysis | None:
        """Report on the most recent journey, or ``None`` without drives."""
        merged = self.merge(drives)
        if not merged:
            return None
        latest = merged[-1]
        battery = self._battery_consumption(latest)
        likely = latest.autopilot_distance > 0
        autopilot = AutopilotEstimate(
            total_autopilot_miles=latest.autopilot_distance,
            autopilot_percentage=latest.autopilot_percentage,
            note=AUTOPILOT_ESTIMATE_NOTE if likely else AUTOPILOT_UNLIKELY_NOTE,
        )
        return DriveAnalysis(
            merged_drive=latest,
            battery_consumption=battery,
            autopilot=autopilot,
            summary=_drive_summary(latest, battery, autopilot),
        )

    def _battery_consumption(self, drive: MergedDrive) -> BatteryConsumption:
        percentage_used = round2(drive.energy_consumed)
        kwh_used = round2(energy_kwh(percentage_used, self._config.vehicle.battery_capacity_kwh))
        efficiency = None
        if drive.total_distance > 0 and kwh_used > 0:
            efficiency = round2(drive.total_distance / kwh_used)
        return BatteryConsumption(
            percentage_used=percentage_used,
            estimated_kwh_used=kwh_used,
            efficiency_miles_per_kwh=efficiency,
        )


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def _drive_summary(
    drive: MergedDrive, battery: BatteryConsumption, autopilot: AutopilotEstimate
) -> str:
    lines = [
        f"Drive from {drive.starting_location} to {drive.ending_location}:",
        f"• Total time: {format_hours_minutes(drive.total_duration_minutes)}",
        f"• Driving time: {format_hours_minutes(drive.driving_duration_minutes)}",
    ]
    if drive.stop_minutes > 1:
        stop_line = f"• Stop time: {format_hours_minutes(drive.stop_minutes)}"
        charging = drive.stop_count(StopType.CHARGING)
        short = drive.stop_count(StopType.SHORT)
        if charging:
            stop_line += f" ({_plural(charging, 'charging stop')})"
        if short:
            stop_line += f" ({_plural(short, 'short stop')})"
        lines.append(stop_line)
    lines.append(f"• Distance: {drive.total_distance} miles")
    lines.append(f"• Average speed: {drive.average_speed} mph (max: {drive.max_speed} mph)")
    lines.append(
        f"• Battery used: {battery.percentage_used}% (≈{battery.estimated_kwh_used} kWh)"
    )
    if battery.efficiency_miles_per_kwh:
        lines.append(f"• Efficiency: {battery.efficiency_miles_per_kwh} mi/kWh")
    if autopilot.total_autopilot_miles > 0:
        lines.append(
            f"• Autopilot (estimate): {autopilot.total_autopilot_miles} miles "
            f"({autopilot.autopilot_percentage}% of drive)"
        )
    else:
        lines.append(f"• Autopilot (estimate): {autopilot.note}")
    return "\n".join(lines)
