"""Commute route clustering.

Drives are grouped by a direction-independent key built from normalised
origin and destination labels.  Groups seen at least ``min_route_frequency``
times become :class:`CommuteRoute` records with efficiency, frequency, trend
and time-of-day statistics.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..config import AnalyticsConfig, CommuteConfig
from ..constants import (
    DAY_NAMES,
    MINUTES_PER_HOUR,
    NOT_AVAILABLE,
    PERCENT,
    SECONDS_PER_WEEK,
)
from ..drive_models import RawDrive, sort_drives
from .helpers import (
    clock_label,
    day_name,
    drive_efficiency,
    is_weekend,
    local_time,
    mean_or_zero,
    round2,
)
from .labels import TrendDirection, trend_direction

LOGGER = logging.getLogger(__name__)

ROUTE_SEPARATOR = " ↔ "
MORNING_HOURS = (6, 10)
EVENING_HOURS = (15, 19)
MULTI_ROUTE_HINT_COUNT = 2

INSUFFICIENT_REASON = "Not enough driving data to detect commute patterns"
PRECONDITION_TIP = (
    "Pro tip: Pre-condition your car while plugged in to save battery on commutes"
)


class LocationKey(Protocol):
    """Normalises free-text location labels into clustering keys."""

    def key(self, label: str) -> str: ...

    def display_name(self, label: str) -> str: ...


class CityStateLocationKey:
    """Keep the last two comma-separated segments, approximating city/state."""

    segments = 2

    def key(self, label: str) -> str:
        parts = [part.strip() for part in label.split(",")]
        if len(parts) < self.segments:
            return label.strip()
        return ", ".join(parts[-self.segments :])

    def display_name(self, label: str) -> str:
        return self.key(label).split(",")[0].strip()


@dataclass(frozen=True, slots=True)
class TimeBucket:
    count: int = 0
    avg_time: str = NOT_AVAILABLE

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "avg_time": self.avg_time}


@dataclass(frozen=True, slots=True)
class RouteTimePatterns:
    morning_commute: TimeBucket = field(default_factory=TimeBucket)
    evening_commute: TimeBucket = field(default_factory=TimeBucket)
    weekend: TimeBucket = field(default_factory=TimeBucket)

    def to_dict(self) -> dict[str, Any]:
        return {
            "morning_commute": self.morning_commute.to_dict(),
            "evening_commute": self.evening_commute.to_dict(),
            "weekend": self.weekend.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class CommuteRoute:
    id: str
    name: str
    from_location: str
    to_location: str
    typical_distance: float
    frequency: float
    drive_count: int
    avg_duration_minutes: float
    avg_efficiency_kwh_per_100mi: float
    avg_battery_used: float
    best_efficiency: float
    worst_efficiency: float
    recent_trend: TrendDirection
    time_patterns: RouteTimePatterns

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "from_location": self.from_location,
            "to_location": self.to_location,
            "typical_distance": self.typical_distance,
            "frequency": self.frequency,
            "drive_count": self.drive_count,
            "avg_duration_minutes": self.avg_duration_minutes,
            "avg_efficiency_kwh_per_100mi": self.avg_efficiency_kwh_per_100mi,
            "avg_battery_used": self.avg_battery_used,
            "best_efficiency": self.best_efficiency,
            "worst_efficiency": self.worst_efficiency,
            "recent_trend": str(self.recent_trend),
            "time_patterns": self.time_patterns.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class WeeklySummary:
    total_drives: int = 0
    total_miles: float = 0.0
    total_cost: float = 0.0
    avg_efficiency: float = 0.0
    best_day: str = NOT_AVAILABLE
    worst_day: str = NOT_AVAILABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_drives": self.total_drives,
            "total_miles": self.total_miles,
            "total_cost": self.total_cost,
            "avg_efficiency": self.avg_efficiency,
            "best_day": self.best_day,
            "worst_day": self.worst_day,
        }


@dataclass(slots=True)
class CommuteAnalysis:
    routes_detected: int = 0
    total_commute_miles: float = 0.0
    total_commute_cost: float = 0.0
    avg_commute_efficiency: float = 0.0
    routes: list[CommuteRoute] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    weekly_summary: WeeklySummary = field(default_factory=WeeklySummary)
    insufficient_data: bool = False
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "routes_detected": self.routes_detected,
            "total_commute_miles": self.total_commute_miles,
            "total_commute_cost": self.total_commute_cost,
            "avg_commute_efficiency": self.avg_commute_efficiency,
            "routes": [route.to_dict() for route in self.routes],
            "recommendations": list(self.recommendations),
            "weekly_summary": self.weekly_summary.to_dict(),
            "insufficient_data": self.insufficient_data,
            "reason": self.reason,
        }


class CommuteRouteClusterer:
    def __init__(
        self,
        config: AnalyticsConfig | None = None,
        location_key: LocationKey | None = None,
    ) -> None:
        self._config = config or AnalyticsConfig.default()
        self.location_key: LocationKey = location_key or CityStateLocationKey()

    @property
    def settings(self) -> CommuteConfig:
        return self._config.commute

    # -- grouping --------------------------------------------------------------

    def route_key(self, start_location: str, end_location: str) -> str:
        normalise = self.location_key.key
        endpoints = sorted((normalise(start_location), normalise(end_location)))
        return ROUTE_SEPARATOR.join(endpoints)

    def group_routes(self, drives: Sequence[RawDrive]) -> dict[str, list[RawDrive]]:
        groups: dict[str, list[RawDrive]] = defaultdict(list)
        for drive in sort_drives(drives):
            groups[self.route_key(drive.starting_location, drive.ending_location)].append(drive)
        return dict(groups)

    def cluster(self, drives: Sequence[RawDrive]) -> list[CommuteRoute]:
        """Routes seen at least ``min_route_frequency`` times, most frequent first."""
        routes = [
            self.build_route(key, members)
            for key, members in self.group_routes(drives).items()
            if len(members) >= self.settings.min_route_frequency
        ]
        routes.sort(key=lambda route: (-route.drive_count, route.id))
        return routes

    # -- per-route statistics --------------------------------------------------

    def _route_efficiencies(self, drives: Sequence[RawDrive]) -> list[float]:
        capacity = self._config.vehicle.battery_capacity_kwh
        ceiling = self.settings.max_route_efficiency
        values = (drive_efficiency(drive, capacity) for drive in drives)
        return [value for value in values if 0 < value < ceiling]

    def route_name(self, drive: RawDrive) -> str:
        start = self.location_key.display_name(drive.starting_location)
        end = self.location_key.display_name(drive.ending_location)
        if start == end:
            return f"{start} Local"
        return f"{start}{ROUTE_SEPARATOR}{end}"

    @staticmethod
    def weekly_frequency(drives: Sequence[RawDrive]) -> float:
        if not drives:
            return 0.0
        span_weeks = (drives[-1].started_at - drives[0].started_at) / SECONDS_PER_WEEK
        if span_weeks == 0:
            return float(len(drives))
        return round2(len(drives) / span_weeks)

    def recent_trend(self, drives: Sequence[RawDrive]) -> TrendDirection:
        """Mean efficiency of the latest window against the window before it."""
        window = self.settings.trend_window_drives
        recent = drives[-window:]
        older = drives[-2 * window : -window]
        if len(recent) < window or len(older) < window:
            return TrendDirection.STABLE
        recent_avg = mean_or_zero(self._route_efficiencies(recent))
        older_avg = mean_or_zero(self._route_efficiencies(older))
        if older_avg <= 0:
            return TrendDirection.STABLE
        change_pct = (older_avg - recent_avg) / older_avg * PERCENT
        return trend_direction(change_pct, self.settings.trend_threshold_pct)

    def _bucket(self, minutes_of_day: list[float]) -> TimeBucket:
        if not minutes_of_day:
            return TimeBucket()
        return TimeBucket(
            count=len(minutes_of_day),
            avg_time=clock_label(sum(minutes_of_day) / len(minutes_of_day)),
        )

    def time_patterns(self, drives: Sequence[RawDrive]) -> RouteTimePatterns:
        zone = self._config.zone
        morning: list[float] = []
        evening: list[float] = []
        weekend: list[float] = []
        for drive in drives:
            moment = local_time(drive.started_at, zone)
            minutes = moment.hour * MINUTES_PER_HOUR + moment.minute + moment.second / 60
            if is_weekend(moment):
                weekend.append(minutes)
            elif MORNING_HOURS[0] <= moment.hour <= MORNING_HOURS[1]:
                morning.append(minutes)
            elif EVENING_HOURS[0] <= moment.hour <= EVENING_HOURS[1]:
                evening.append(minutes)
        return RouteTimePatterns(
            morning_commute=self._bucket(morning),
            evening_commute=self._bucket(evening),
            weekend=self._bucket(weekend),
        )

    def build_route(self, key: str, drives: Sequence[RawDrive]) -> CommuteRoute:
        members = sort_drives(drives)
        first = members[0]
        efficiencies = self._route_efficiencies(members)
        return CommuteRoute(
            id=key,
            name=self.route_name(first),
            from_location=first.starting_location,
            to_location=first.ending_location,
            typical_distance=mean_or_zero(d.odometer_distance for d in members),
            frequency=self.weekly_frequency(members),
            drive_count=len(members),
            avg_duration_minutes=mean_or_zero(d.duration_minutes for d in members),
            avg_efficiency_kwh_per_100mi=mean_or_zero(efficiencies),
            avg_battery_used=mean_or_zero(d.battery_used for d in members),
            best_efficiency=round2(min(efficiencies)) if efficiencies else 0.0,
            worst_efficiency=round2(max(efficiencies)) if efficiencies else 0.0,
            recent_trend=self.recent_trend(members),
            time_patterns=self.time_patterns(members),
        )

    # -- summaries -------------------------------------------------------------

    def _cost_for_miles(self, miles: float) -> float:
        return miles / self._config.vehicle.miles_per_kwh * self._config.rates.home

    def weekly_summary(self, drives: Sequence[RawDrive]) -> WeeklySummary:
        capacity = self._config.vehicle.battery_capacity_kwh
        zone = self._config.zone
        by_day: dict[str, list[float]] = defaultdict(list)
        for drive in drives:
            if drive.odometer_distance > 0:
                name = day_name(local_time(drive.started_at, zone))
                by_day[name].append(drive_efficiency(drive, capacity))

        best_day = worst_day = NOT_AVAILABLE
        best_avg = float("inf")
        worst_avg = 0.0
        for name in DAY_NAMES:
            values = by_day.get(name)
            if not values:
                continue
            avg = sum(values) / len(values)
            if 0 < avg < best_avg:
                best_avg, best_day = avg, name
            if avg > worst_avg:
                worst_avg, worst_day = avg, name

        total_miles = sum(d.odometer_distance for d in drives)
        return WeeklySummary(
            total_drives=len(drives),
            total_miles=round2(total_miles),
            total_cost=round2(self._cost_for_miles(total_miles)),
            avg_efficiency=mean_or_zero(self._route_efficiencies(drives)),
            best_day=best_day,
            worst_day=worst_day,
        )

    def recommendations(self, routes: Sequence[CommuteRoute], summary: WeeklySummary) -> list[str]:
        recommendations: list[str] = []
        for route in routes:
            if route.recent_trend is TrendDirection.DECLINING:
                recommendations.append(
                    f"{route.name}: Efficiency declining recently. "
                    "Check tire pressure and driving habits"
                )
            if route.avg_efficiency_kwh_per_100mi > self.settings.high_energy_threshold:
                recommendations.append(
                    f"{route.name}: High energy usage "
                    f"({route.avg_efficiency_kwh_per_100mi:.1f} kWh/100mi). "
                    "Try smoother acceleration and regenerative braking"
                )

        if routes:
            busiest = max(routes, key=lambda route: route.frequency)
            weekly_kwh = (
                busiest.typical_distance
                * busiest.frequency
                * busiest.avg_efficiency_kwh_per_100mi
                / PERCENT
            )
            weekly_cost = weekly_kwh * self._config.rates.home
            recommendations.append(
                f"{busiest.name}: Your most frequent route "
                f"({busiest.frequency:.1f}x/week, ~${weekly_cost:.2f}/week)"
            )

        if len(routes) > MULTI_ROUTE_HINT_COUNT:
            recommendations.append(
                f"You have {len(routes)} regular routes. Consider optimizing departure "
                "times to avoid traffic for better efficiency"
            )

        recommendations.append(PRECONDITION_TIP)

        if NOT_AVAILABLE not in (summary.best_day, summary.worst_day):
            recommendations.append(
                f"Best efficiency day: {summary.best_day}. Worst: {summary.worst_day}. "
                "Traffic patterns may be affecting your efficiency"
            )
        return recommendations

    # -- entry point -----------------------------------------------------------

    def analyze(self, drives: Sequence[RawDrive]) -> CommuteAnalysis:
        if len(drives) < self.settings.min_drives:
            LOGGER.info(
                "Commute analysis skipped: %d drives (minimum %d)",
                len(drives),
                self.settings.min_drives,
            )
            return CommuteAnalysis(
                recommendations=[INSUFFICIENT_REASON],
                insufficient_data=True,
                reason=INSUFFICIENT_REASON,
            )

        routes = self.cluster(drives)
        summary = self.weekly_summary(drives)
        commute_miles = sum(route.typical_distance * route.frequency for route in routes)
        LOGGER.info("Commute analysis: %d routes from %d drives", len(routes), len(drives))
        return CommuteAnalysis(
            routes_detected=len(routes),
            total_commute_miles=round2(commute_miles),
            total_commute_cost=round2(self._cost_for_miles(commute_miles)),
            avg_commute_efficiency=mean_or_zero(
                route.avg_efficiency_kwh_per_100mi for route in routes
            ),
            routes=routes,
            recommendations=self.recommendations(routes, summary),
            weekly_summary=summary,
        )
