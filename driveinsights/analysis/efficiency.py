"""Efficiency trend analysis over a drive history.

Each drive is normalised to kWh/100mi.  Trends compare a current window
``[ref - w, ref]`` against the preceding window ``[ref - 2w, ref - w)`` where
``ref`` is an explicit reference time, by default the start of the latest
data point, so results never depend on the wall clock.

Weather is a *proxy*: without temperature input, unusually high consumption
is tagged ``cold`` (> 35 kWh/100mi) or ``hot`` (> 30 kWh/100mi).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..config import AnalyticsConfig, EfficiencyConfig
from ..constants import DAY_NAMES, PERCENT, SECONDS_PER_DAY, UNKNOWN_LABEL
from ..drive_models import RawDrive, sort_drives
from .helpers import day_name, drive_efficiency, hour_label, local_time, mean_or_zero, round2
from .labels import Confidence, TrendDirection, WeatherFactor, trend_direction

LOGGER = logging.getLogger(__name__)

HIGHWAY_BASE_SPEED_MPH = 25.0
HIGHWAY_SPEED_SPAN_MPH = 45.0
OPTIMAL_TEMP_RANGE = "65-75°F"
OPTIMAL_SPEED_RANGE = "45-65 mph"

MIN_TREND_POINTS = 2
HIGH_CONFIDENCE_POINTS = 5
MEDIUM_CONFIDENCE_POINTS = 3

COLD_INSIGHT_PENALTY_PCT = 15.0
HOT_INSIGHT_PENALTY_PCT = 10.0
COLD_ADVICE_PENALTY_PCT = 20.0
HOT_ADVICE_PENALTY_PCT = 15.0
HIGHWAY_CITY_INSIGHT_DELTA = 3.0
HIGHWAY_CITY_ADVICE_DELTA = 5.0

NO_PLAUSIBLE_POINTS_REASON = "No drives with plausible efficiency values"


def insufficient_drives_reason(min_drives: int) -> str:
    return (
        "Insufficient driving data for trend analysis "
        f"(minimum {min_drives} drives required)"
    )


@dataclass(frozen=True, slots=True)
class EfficiencyDataPoint:
    drive_id: int
    started_at: int
    date: str
    efficiency_kwh_per_100mi: float
    distance_miles: float
    weather_factor: WeatherFactor
    highway_percentage: float
    avg_speed: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "drive_id": self.drive_id,
            "started_at": self.started_at,
            "date": self.date,
            "efficiency_kwh_per_100mi": round2(self.efficiency_kwh_per_100mi),
            "distance_miles": self.distance_miles,
            "weather_factor": str(self.weather_factor),
            "highway_percentage": round2(self.highway_percentage),
            "avg_speed": self.avg_speed,
        }


@dataclass(frozen=True, slots=True)
class EfficiencyTrend:
    period: str
    trend_direction: TrendDirection = TrendDirection.STABLE
    trend_percentage: float = 0.0
    avg_efficiency: float = 0.0
    best_efficiency: float = 0.0
    worst_efficiency: float = 0.0
    confidence: Confidence = Confidence.LOW
    current_points: int = 0
    previous_points: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "trend_direction": str(self.trend_direction),
            "trend_percentage": self.trend_percentage,
            "avg_efficiency": self.avg_efficiency,
            "best_efficiency": self.best_efficiency,
            "worst_efficiency": self.worst_efficiency,
            "confidence": str(self.confidence),
            "current_points": self.current_points,
            "previous_points": self.previous_points,
        }


@dataclass(frozen=True, slots=True)
class PeriodSummary:
    avg_efficiency: float = 0.0
    total_miles: float = 0.0
    total_drives: int = 0
    best_efficiency: float = 0.0
    worst_efficiency: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "avg_efficiency": self.avg_efficiency,
            "total_miles": self.total_miles,
            "total_drives": self.total_drives,
            "efficiency_range": {"best": self.best_efficiency, "worst": self.worst_efficiency},
        }


@dataclass(frozen=True, slots=True)
class WeatherImpact:
    hot_weather_penalty: float = 0.0
    cold_weather_penalty: float = 0.0
    optimal_temp_range: str = UNKNOWN_LABEL


@dataclass(frozen=True, slots=True)
class SpeedImpact:
    highway_efficiency: float = 0.0
    city_efficiency: float = 0.0
    optimal_speed_range: str = UNKNOWN_LABEL

    @property
    def highway_city_delta(self) -> float:
        """Highway minus city consumption; 0 unless both sides have data."""
        if self.highway_efficiency > 0 and self.city_efficiency > 0:
            return self.highway_efficiency - self.city_efficiency
        return 0.0


@dataclass(frozen=True, slots=True)
class TimePatterns:
    best_day_of_week: str = UNKNOWN_LABEL
    worst_day_of_week: str = UNKNOWN_LABEL
    best_time_of_day: str = UNKNOWN_LABEL


@dataclass(frozen=True, slots=True)
class FactorsAnalysis:
    weather_impact: WeatherImpact = field(default_factory=WeatherImpact)
    speed_impact: SpeedImpact = field(default_factory=SpeedImpact)
    time_patterns: TimePatterns = field(default_factory=TimePatterns)

    def to_dict(self) -> dict[str, Any]:
        weather = self.weather_impact
        speed = self.speed_impact
        times = self.time_patterns
        return {
            "weather_impact": {
                "hot_weather_penalty": weather.hot_weather_penalty,
                "cold_weather_penalty": weather.cold_weather_penalty,
                "optimal_temp_range": weather.optimal_temp_range,
            },
            "speed_impact": {
                "highway_efficiency": speed.highway_efficiency,
                "city_efficiency": speed.city_efficiency,
                "optimal_speed_range": speed.optimal_speed_range,
            },
            "time_patterns": {
                "best_day_of_week": times.best_day_of_week,
                "worst_day_of_week": times.worst_day_of_week,
                "best_time_of_day": times.best_time_of_day,
            },
        }


@dataclass(slots=True)
class EfficiencyAnalysis:
    current_period: PeriodSummary
    trends: dict[str, EfficiencyTrend]
    factors_analysis: FactorsAnalysis
    data_points: list[EfficiencyDataPoint] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    insufficient_data: bool = False
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_period": self.current_period.to_dict(),
            "trends": {name: trend.to_dict() for name, trend in self.trends.items()},
            "factors_analysis": self.factors_analysis.to_dict(),
            "data_points": [point.to_dict() for point in self.data_points],
            "insights": list(self.insights),
            "recommendations": list(self.recommendations),
            "insufficient_data": self.insufficient_data,
            "reason": self.reason,
        }


def _confidence(current: int, previous: int) -> Confidence:
    if current >= HIGH_CONFIDENCE_POINTS and previous >= HIGH_CONFIDENCE_POINTS:
        return Confidence.HIGH
    if current >= MEDIUM_CONFIDENCE_POINTS and previous >= MEDIUM_CONFIDENCE_POINTS:
        return Confidence.MEDIUM
    return Confidence.LOW


def _efficiencies(points: Sequence[EfficiencyDataPoint]) -> list[float]:
    return [p.efficiency_kwh_per_100mi for p in points]


class EfficiencyTrendAnalyzer:
    """Normalise drives to kWh/100mi and report trends, factors and advice."""

    def __init__(self, config: AnalyticsConfig | None = None) -> None:
        self._config = config or AnalyticsConfig.default()

    @property
    def settings(self) -> EfficiencyConfig:
        return self._config.efficiency

    # -- normalisation ---------------------------------------------------------

    def weather_factor(self, efficiency: float) -> WeatherFactor:
        if efficiency > self.settings.cold_threshold:
            return WeatherFactor.COLD
        if efficiency > self.settings.hot_threshold:
            return WeatherFactor.HOT
        return WeatherFactor.MILD

    def highway_percentage(self, average_speed: float) -> float:
        if average_speed <= self.settings.highway_speed_mph:
            return 0.0
        share = (average_speed - HIGHWAY_BASE_SPEED_MPH) / HIGHWAY_SPEED_SPAN_MPH * PERCENT
        return min(PERCENT, share)

    def data_points(self, drives: Sequence[RawDrive]) -> list[EfficiencyDataPoint]:
        """Plausible efficiency points in chronological order."""
        capacity = self._config.vehicle.battery_capacity_kwh
        zone = self._config.zone
        ceiling = self.settings.max_plausible_kwh_per_100mi
        points: list[EfficiencyDataPoint] = []
        for drive in sort_drives(drives):
            efficiency = drive_efficiency(drive, capacity)
            if not 0 < efficiency < ceiling:
                LOGGER.debug(
                    "Dropping drive %s with implausible efficiency %.2f", drive.id, efficiency
                )
                continue
            avg_speed = drive.average_speed or 0.0
            points.append(
                EfficiencyDataPoint(
                    drive_id=drive.id,
                    started_at=drive.started_at,
                    date=local_time(drive.started_at, zone).date().isoformat(),
                    efficiency_kwh_per_100mi=efficiency,
                    distance_miles=drive.odometer_distance,
                    weather_factor=self.weather_factor(efficiency),
                    highway_percentage=self.highway_percentage(avg_speed),
                    avg_speed=avg_speed,
                )
            )
        return points

    # -- aggregation -----------------------------------------------------------

    @staticmethod
    def period_summary(points: Sequence[EfficiencyDataPoint]) -> PeriodSummary:
        if not points:
            return PeriodSummary()
        values = _efficiencies(points)
        return PeriodSummary(
            avg_efficiency=mean_or_zero(values),
            total_miles=round2(sum(p.distance_miles for p in points)),
            total_drives=len(points),
            best_efficiency=round2(min(values)),
            worst_efficiency=round2(max(values)),
        )

    def period_trend(
        self,
        points: Sequence[EfficiencyDataPoint],
        period: str,
        days: int,
        reference_time: float,
    ) -> EfficiencyTrend:
        window = days * SECONDS_PER_DAY
        current_start = reference_time - window
        previous_start = reference_time - 2 * window
        current = [p for p in points if current_start <= p.started_at <= reference_time]
        previous = [p for p in points if previous_start <= p.started_at < current_start]

        current_values = _efficiencies(current)
        best = round2(min(current_values)) if current_values else 0.0
        worst = round2(max(current_values)) if current_values else 0.0
        current_avg = mean_or_zero(current_values)

        previous_avg = mean_or_zero(_efficiencies(previous))
        if (
            len(current) < MIN_TREND_POINTS
            or len(previous) < MIN_TREND_POINTS
            or previous_avg <= 0
        ):
            return EfficiencyTrend(
                period=period,
                avg_efficiency=current_avg,
                best_efficiency=best,
                worst_efficiency=worst,
                current_points=len(current),
                previous_points=len(previous),
            )

        change_pct = (previous_avg - current_avg) / previous_avg * PERCENT
        return EfficiencyTrend(
            period=period,
            trend_direction=trend_direction(change_pct, self.settings.trend_threshold_pct),
            trend_percentage=round2(abs(change_pct)),
            avg_efficiency=current_avg,
            best_efficiency=best,
            worst_efficiency=worst,
            confidence=_confidence(len(current), len(previous)),
            current_points=len(current),
            previous_points=len(previous),
        )

    def trends(
        self, points: Sequence[EfficiencyDataPoint], reference_time: float
    ) -> dict[str, EfficiencyTrend]:
        return {
            name: self.period_trend(points, name, days, reference_time)
            for name, days in self.settings.trend_windows_days.items()
        }

    # -- factors ---------------------------------------------------------------

    @staticmethod
    def weather_impact(points: Sequence[EfficiencyDataPoint]) -> WeatherImpact:
        by_factor: dict[WeatherFactor, list[float]] = defaultdict(list)
        for point in points:
            by_factor[point.weather_factor].append(point.efficiency_kwh_per_100mi)
        mild_avg = mean_or_zero(by_factor[WeatherFactor.MILD])
        if mild_avg <= 0:
            return WeatherImpact(optimal_temp_range=OPTIMAL_TEMP_RANGE)
        hot_avg = mean_or_zero(by_factor[WeatherFactor.HOT]) or mild_avg
        cold_avg = mean_or_zero(by_factor[WeatherFactor.COLD]) or mild_avg
        return WeatherImpact(
            hot_weather_penalty=round2((hot_avg - mild_avg) / mild_avg * PERCENT),
            cold_weather_penalty=round2((cold_avg - mild_avg) / mild_avg * PERCENT),
            optimal_temp_range=OPTIMAL_TEMP_RANGE,
        )

    def speed_impact(self, points: Sequence[EfficiencyDataPoint]) -> SpeedImpact:
        split = self.settings.highway_split_pct
        highway = [p.efficiency_kwh_per_100mi for p in points if p.highway_percentage > split]
        city = [p.efficiency_kwh_per_100mi for p in points if p.highway_percentage <= split]
        return SpeedImpact(
            highway_efficiency=mean_or_zero(highway),
            city_efficiency=mean_or_zero(city),
            optimal_speed_range=OPTIMAL_SPEED_RANGE,
        )

    def time_patterns(self, points: Sequence[EfficiencyDataPoint]) -> TimePatterns:
        zone = self._config.zone
        by_day: dict[str, list[float]] = defaultdict(list)
        by_hour: dict[int, list[float]] = defaultdict(list)
        for point in points:
            moment = local_time(point.started_at, zone)
            by_day[day_name(moment)].append(point.efficiency_kwh_per_100mi)
            by_hour[moment.hour].append(point.efficiency_kwh_per_100mi)

        best_day = worst_day = UNKNOWN_LABEL
        best_day_avg = float("inf")
        worst_day_avg = 0.0
        for name in DAY_NAMES:
            values = by_day.get(name)
            if not values:
                continue
            avg = mean_or_zero(values)
            if avg < best_day_avg:
                best_day_avg, best_day = avg, name
            if avg > worst_day_avg:
                worst_day_avg, worst_day = avg, name

        best_time = UNKNOWN_LABEL
        best_hour_avg = float("inf")
        for hour in sorted(by_hour):
            values = by_hour[hour]
            if len(values) < self.settings.min_hour_samples:
                continue
            avg = mean_or_zero(values)
            if avg < best_hour_avg:
                best_hour_avg, best_time = avg, hour_label(hour)

        return TimePatterns(
            best_day_of_week=best_day,
            worst_day_of_week=worst_day,
            best_time_of_day=best_time,
        )

    def factors(self, points: Sequence[EfficiencyDataPoint]) -> FactorsAnalysis:
        return FactorsAnalysis(
            weather_impact=self.weather_impact(points),
            speed_impact=self.speed_impact(points),
            time_patterns=self.time_patterns(points),
        )

    # -- narrative -------------------------------------------------------------

    @staticmethod
    def insights(trends: dict[str, EfficiencyTrend], factors: FactorsAnalysis) -> list[str]:
        insights: list[str] = []
        weekly = trends.get("weekly")
        if weekly is not None and weekly.confidence is not Confidence.LOW:
            if weekly.trend_direction is TrendDirection.IMPROVING:
                insights.append(
                    f"Your efficiency has improved {weekly.trend_percentage:.1f}% this week"
                )
            elif weekly.trend_direction is TrendDirection.DECLINING:
                insights.append(
                    f"Your efficiency declined {weekly.trend_percentage:.1f}% this week. "
                    "Check driving patterns and tire pressure"
                )

        weather = factors.weather_impact
        if weather.cold_weather_penalty > COLD_INSIGHT_PENALTY_PCT:
            insights.append(
                "Cold weather is significantly impacting efficiency "
                f"(+{weather.cold_weather_penalty:.1f}% consumption)"
            )
        if weather.hot_weather_penalty > HOT_INSIGHT_PENALTY_PCT:
            insights.append(
                "Hot weather and A/C usage is increasing consumption "
                f"(+{weather.hot_weather_penalty:.1f}%)"
            )

        delta = factors.speed_impact.highway_city_delta
        if abs(delta) > HIGHWAY_CITY_INSIGHT_DELTA:
            if delta > 0:
                insights.append(
                    f"City driving is {abs(delta):.1f} kWh/100mi more efficient "
                    "than highway driving"
                )
            else:
                insights.append(
                    f"Highway driving is {abs(delta):.1f} kWh/100mi more efficient "
                    "than city driving"
                )

        times = factors.time_patterns
        if UNKNOWN_LABEL not in (times.best_day_of_week, times.worst_day_of_week):
            insights.append(
                f"Most efficient driving: {times.best_day_of_week}s. "
                f"Least efficient: {times.worst_day_of_week}s"
            )

        monthly = trends.get("monthly")
        if (
            monthly is not None
            and monthly.confidence is Confidence.HIGH
            and monthly.trend_direction is TrendDirection.IMPROVING
        ):
            insights.append(
                f"Monthly trend shows {monthly.trend_percentage:.1f}% efficiency improvement"
            )
        return insights

    @staticmethod
    def recommendations(trends: dict[str, EfficiencyTrend], factors: FactorsAnalysis) -> list[str]:
        recommendations: list[str] = []
        weekly = trends.get("weekly")
        if (
            weekly is not None
            and weekly.trend_direction is TrendDirection.DECLINING
            and weekly.confidence is not Confidence.LOW
        ):
            recommendations.append(
                "Check tire pressure and reduce aggressive acceleration to improve efficiency"
            )
            recommendations.append("Use Eco mode in extreme weather conditions")

        weather = factors.weather_impact
        if weather.cold_weather_penalty > COLD_ADVICE_PENALTY_PCT:
            recommendations.append("Pre-condition the cabin while plugged in during cold weather")
            recommendations.append("Expect 15-25% reduced range in freezing temperatures")
        if weather.hot_weather_penalty > HOT_ADVICE_PENALTY_PCT:
            recommendations.append("Park in shade and pre-cool the cabin before driving")

        speed = factors.speed_impact
        if speed.highway_efficiency > speed.city_efficiency + HIGHWAY_CITY_ADVICE_DELTA:
            recommendations.append("Reduce highway speeds to 65-70 mph for optimal efficiency")
            recommendations.append("Use cruise control on highways to maintain consistent speed")

        recommendations.append("Maintain following distance to maximize regenerative braking")
        recommendations.append("Monitor the real-time efficiency display to build efficient habits")

        best_day = factors.time_patterns.best_day_of_week
        if best_day != UNKNOWN_LABEL:
            recommendations.append(f"Schedule non-urgent trips on {best_day}s for best efficiency")
        return recommendations

    # -- entry point -----------------------------------------------------------

    def _empty(self, reason: str) -> EfficiencyAnalysis:
        return EfficiencyAnalysis(
            current_period=PeriodSummary(),
            trends={
                name: EfficiencyTrend(period=name) for name in self.settings.trend_windows_days
            },
            factors_analysis=FactorsAnalysis(),
            recommendations=[reason],
            insufficient_data=True,
            reason=reason,
        )

    def analyze(
        self, drives: Sequence[RawDrive], reference_time: float | None = None
    ) -> EfficiencyAnalysis:
        """Analyse efficiency trends; *reference_time* anchors the trend windows."""
        if len(drives) < self.settings.min_drives:
            LOGGER.info(
                "Efficiency analysis skipped: %d drives (minimum %d)",
                len(drives),
                self.settings.min_drives,
            )
            return self._empty(insufficient_drives_reason(self.settings.min_drives))

        points = self.data_points(drives)
        if not points:
            LOGGER.info("Efficiency analysis skipped: no plausible data points")
            return self._empty(NO_PLAUSIBLE_POINTS_REASON)

        anchor = float(points[-1].started_at) if reference_time is None else reference_time
        trends = self.trends(points, anchor)
        factors = self.factors(points)
        LOGGER.info(
            "Efficiency analysis: %d/%d plausible points anchored at %s",
            len(points),
            len(drives),
            anchor,
        )
        return EfficiencyAnalysis(
            current_period=self.period_summary(points),
            trends=trends,
            factors_analysis=factors,
            data_points=points,
            insights=self.insights(trends, factors),
            recommendations=self.recommendations(trends, factors),
        )
