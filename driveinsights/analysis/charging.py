"""Charging-session detection and cost attribution.

A charging session is inferred whenever the battery level at the start of a
drive is more than ``min_battery_gain_pct`` above the level at the end of the
previous drive.  Each session is classified by location type and priced with
the configured per-kWh rates (time-of-use aware for home charging).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..config import AnalyticsConfig, ChargeRates
from ..constants import (
    MINUTES_PER_HOUR,
    PERCENT,
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
)
from ..drive_models import RawDrive, sort_drives
from .helpers import energy_kwh, local_time, round2, safe_ratio
from .labels import LocationType
from .location_memory import LearnedLocations

LOGGER = logging.getLogger(__name__)

SUPERCHARGER_MARKERS: tuple[str, ...] = ("supercharger", "tesla")

# Deep charge over several hours: destination (home/work) charging rather than
# a public top-up.
DESTINATION_CHARGE_MIN_MINUTES = 180.0
DESTINATION_CHARGE_MIN_GAIN_PCT = 40.0

NO_SESSIONS_MESSAGE = "No charging sessions found in the selected period"
OPTIMIZED_MESSAGE = "Your charging strategy is well optimized"


@dataclass(frozen=True, slots=True)
class ChargingSession:
    id: str
    started_at: int
    ended_at: int
    location: str
    location_type: LocationType
    starting_battery: float
    ending_battery: float
    energy_added_kwh: float
    cost_estimate: float
    cost_per_kwh: float
    miles_added: float
    charge_rate_kw: float
    duration_minutes: float

    @property
    def battery_gained(self) -> float:
        return self.ending_battery - self.starting_battery

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "location": self.location,
            "location_type": str(self.location_type),
            "starting_battery": self.starting_battery,
            "ending_battery": self.ending_battery,
            "energy_added_kwh": self.energy_added_kwh,
            "cost_estimate": self.cost_estimate,
            "cost_per_kwh": self.cost_per_kwh,
            "miles_added": self.miles_added,
            "charge_rate_kw": self.charge_rate_kw,
            "duration_minutes": self.duration_minutes,
        }


@dataclass(slots=True)
class LocationBreakdown:
    sessions: int = 0
    cost: float = 0.0
    kwh: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"sessions": self.sessions, "cost": round2(self.cost), "kwh": round2(self.kwh)}


def _empty_breakdown() -> dict[LocationType, LocationBreakdown]:
    return {location_type: LocationBreakdown() for location_type in LocationType}


@dataclass(slots=True)
class ChargingAnalysis:
    total_sessions: int = 0
    total_cost: float = 0.0
    total_kwh: float = 0.0
    total_miles_added: float = 0.0
    average_cost_per_session: float = 0.0
    average_cost_per_kwh: float = 0.0
    average_cost_per_mile: float = 0.0
    sessions_by_location: dict[LocationType, LocationBreakdown] = field(
        default_factory=_empty_breakdown
    )
    recommendations: list[str] = field(default_factory=list)
    potential_savings: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_sessions": self.total_sessions,
            "total_cost": self.total_cost,
            "total_kwh": self.total_kwh,
            "total_miles_added": self.total_miles_added,
            "average_cost_per_session": self.average_cost_per_session,
            "average_cost_per_kwh": self.average_cost_per_kwh,
            "average_cost_per_mile": self.average_cost_per_mile,
            "sessions_by_location": {
                str(location_type): breakdown.to_dict()
                for location_type, breakdown in self.sessions_by_location.items()
            },
            "recommendations": list(self.recommendations),
            "potential_savings": self.potential_savings,
        }


@dataclass(slots=True)
class ChargingReport:
    sessions: list[ChargingSession]
    analysis: ChargingAnalysis
    days_analyzed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions": [session.to_dict() for session in self.sessions],
            "analysis": self.analysis.to_dict(),
            "days_analyzed": self.days_analyzed,
        }


class ChargeRateModel:
    """Resolve the per-kWh price for a location type at a moment in time."""

    def __init__(self, rates: ChargeRates, config: AnalyticsConfig) -> None:
        self.rates = rates
        self._zone = config.zone

    def local_hour(self, timestamp: float) -> int:
        return local_time(timestamp, self._zone).hour

    def is_peak(self, timestamp: float) -> bool:
        tou = self.rates.time_of_use
        return tou is not None and tou.is_peak(self.local_hour(timestamp))

    def rate_for(self, location_type: LocationType, timestamp: float) -> float:
        rates = self.rates
        if location_type is LocationType.HOME:
            tou = rates.time_of_use
            if tou is not None:
                hour = self.local_hour(timestamp)
                if tou.is_off_peak(hour):
                    return tou.off_peak_rate
                if tou.is_peak(hour):
                    return tou.peak_rate
            return rates.home
        if location_type is LocationType.SUPERCHARGER:
            return rates.supercharger
        if location_type is LocationType.WORK:
            return rates.work
        # public and unknown sessions are priced as public charging
        return rates.public


@dataclass(slots=True)
class _StayStats:
    count: int = 0
    overnight: int = 0
    hours: float = 0.0


class ChargingSessionDetector:
    """Detect charging sessions between drives and attribute their cost.

    *memory* carries learned home/work locations across calls within one
    session; a fresh :class:`LearnedLocations` is created when omitted.
    """

    def __init__(
        self,
        config: AnalyticsConfig | None = None,
        memory: LearnedLocations | None = None,
        rates: ChargeRates | None = None,
    ) -> None:
        self._config = config or AnalyticsConfig.default()
        self.memory = memory if memory is not None else LearnedLocations()
        self.rate_model = ChargeRateModel(rates or self._config.rates, self._config)

    @property
    def rates(self) -> ChargeRates:
        return self.rate_model.rates

    # -- detection -------------------------------------------------------------

    def detect(self, drives: Sequence[RawDrive]) -> list[ChargingSession]:
        min_gain = self._config.charging.min_battery_gain_pct
        sessions: list[ChargingSession] = []
        ordered = sort_drives(drives)
        for prev, nxt in zip(ordered, ordered[1:]):
            gain = nxt.starting_battery - prev.ending_battery
            if gain > min_gain:
                sessions.append(self._build_session(prev, nxt, gain))
        LOGGER.debug("Detected %d charging sessions across %d drives", len(sessions), len(ordered))
        return sessions

    def _build_session(self, prev: RawDrive, nxt: RawDrive, gain: float) -> ChargingSession:
        vehicle = self._config.vehicle
        duration = (nxt.started_at - prev.ended_at) / SECONDS_PER_MINUTE
        location = prev.ending_location
        location_type = self.classify_location(location, duration, gain)
        energy = energy_kwh(gain, vehicle.battery_capacity_kwh)
        rate = self.rate_model.rate_for(location_type, prev.ended_at)
        charge_rate = safe_ratio(energy, duration / MINUTES_PER_HOUR) if duration > 0 else 0.0
        LOGGER.debug(
            "Session %s→%s at %r: +%.1f%% over %.0f min classified %s",
            prev.id,
            nxt.id,
            location,
            gain,
            duration,
            location_type,
        )
        return ChargingSession(
            id=f"charge_{prev.id}_{nxt.id}",
            started_at=prev.ended_at,
            ended_at=nxt.started_at,
            location=location,
            location_type=location_type,
            starting_battery=prev.ending_battery,
            ending_battery=nxt.starting_battery,
            energy_added_kwh=round2(energy),
            cost_estimate=round2(energy * rate),
            cost_per_kwh=rate,
            miles_added=round2(energy * vehicle.miles_per_kwh),
            charge_rate_kw=round(charge_rate, 1),
            duration_minutes=round2(duration),
        )

    def classify_location(
        self, location: str, duration_minutes: float, battery_gained: float
    ) -> LocationType:
        """Classify a charging stop; long stays update the frequency memory."""
        cfg = self._config.charging
        lowered = location.lower()
        if any(marker in lowered for marker in SUPERCHARGER_MARKERS):
            return LocationType.SUPERCHARGER
        if (
            duration_minutes < cfg.fast_charge_max_minutes
            and battery_gained > cfg.fast_charge_min_gain_pct
        ):
            return LocationType.SUPERCHARGER

        learned = self.memory.lookup(location)
        if learned is not None:
            return learned

        destination_charge = (
            duration_minutes >= DESTINATION_CHARGE_MIN_MINUTES
            and battery_gained > DESTINATION_CHARGE_MIN_GAIN_PCT
        )
        if duration_minutes > cfg.long_stay_minutes or destination_charge:
            previous_visits = self.memory.record_long_stay(location)
            if previous_visits > cfg.home_promotion_visits:
                self.memory.mark_home(location)
                LOGGER.info(
                    "Promoted %r to home after %d long stays", location, previous_visits + 1
                )
                return LocationType.HOME
            if duration_minutes > cfg.home_stay_minutes:
                return LocationType.HOME
            return LocationType.WORK

        if cfg.public_min_minutes < duration_minutes < cfg.long_stay_minutes:
            return LocationType.PUBLIC
        return LocationType.UNKNOWN

    # -- location learning -----------------------------------------------------

    def learn_locations(self, drives: Sequence[RawDrive]) -> None:
        """Learn home (most overnight stays) and work (frequent long stays) labels."""
        cfg = self._config.charging
        stats: dict[str, _StayStats] = {}
        ordered = sort_drives(drives)
        for prev, nxt in zip(ordered, ordered[1:]):
            stay_hours = (nxt.started_at - prev.ended_at) / SECONDS_PER_HOUR
            if stay_hours < 0:
                LOGGER.debug("Skipping overlapping drives %s and %s", prev.id, nxt.id)
                continue
            entry = stats.setdefault(prev.ending_location, _StayStats())
            entry.count += 1
            entry.hours += stay_hours
            arrival_hour = self.rate_model.local_hour(prev.ended_at)
            if (arrival_hour > 20 or arrival_hour < 6) and stay_hours > cfg.overnight_min_hours:
                entry.overnight += 1

        home_location = ""
        max_overnights = 0
        for location, entry in stats.items():
            if entry.overnight > max_overnights:
                max_overnights = entry.overnight
                home_location = location
        if home_location:
            self.memory.mark_home(home_location)
            LOGGER.info(
                "Learned home location %r (%d overnight stays)", home_location, max_overnights
            )

        for location, entry in stats.items():
            if (
                entry.count > cfg.work_min_visits
                and entry.hours / entry.count > cfg.work_min_avg_stay_hours
                and location not in self.memory.home
            ):
                self.memory.mark_work(location)
                LOGGER.info("Learned work location %r (%d visits)", location, entry.count)

    # -- cost analysis ---------------------------------------------------------

    def analyze_costs(self, sessions: Sequence[ChargingSession]) -> ChargingAnalysis:
        if not sessions:
            return ChargingAnalysis(recommendations=[NO_SESSIONS_MESSAGE])

        total_cost = sum(s.cost_estimate for s in sessions)
        total_kwh = sum(s.energy_added_kwh for s in sessions)
        total_miles = sum(s.miles_added for s in sessions)

        by_location = _empty_breakdown()
        for session in sessions:
            entry = by_location[session.location_type]
            entry.sessions += 1
            entry.cost += session.cost_estimate
            entry.kwh += session.energy_added_kwh

        return ChargingAnalysis(
            total_sessions=len(sessions),
            total_cost=round2(total_cost),
            total_kwh=round2(total_kwh),
            total_miles_added=round2(total_miles),
            average_cost_per_session=round2(total_cost / len(sessions)),
            average_cost_per_kwh=round2(safe_ratio(total_cost, total_kwh)),
            average_cost_per_mile=round(safe_ratio(total_cost, total_miles), 3),
            sessions_by_location=by_location,
            recommendations=self._recommendations(sessions, by_location, total_cost),
            potential_savings=round2(self._potential_savings(sessions, by_location)),
        )

    def _peak_home_sessions(self, sessions: Sequence[ChargingSession]) -> list[ChargingSession]:
        return [
            s
            for s in sessions
            if s.location_type is LocationType.HOME and self.rate_model.is_peak(s.started_at)
        ]

    def _recommendations(
        self,
        sessions: Sequence[ChargingSession],
        by_location: dict[LocationType, LocationBreakdown],
        total_cost: float,
    ) -> list[str]:
        cfg = self._config.charging
        recommendations: list[str] = []

        supercharger = by_location[LocationType.SUPERCHARGER]
        supercharger_share = safe_ratio(supercharger.cost, total_cost) * PERCENT
        if supercharger_share > cfg.supercharger_cost_share_pct:
            recommendations.append(
                f"{supercharger_share:.0f}% of charging costs are from Superchargers. "
                "Increase home charging to save "
                f"~${supercharger.cost * cfg.shiftable_supercharger_fraction:.2f} over this period"
            )

        tou = self.rates.time_of_use
        peak_sessions = self._peak_home_sessions(sessions)
        if peak_sessions and tou is not None:
            peak_kwh = sum(s.energy_added_kwh for s in peak_sessions)
            shift_savings = peak_kwh * (tou.peak_rate - tou.off_peak_rate)
            recommendations.append(
                f"Shift {len(peak_sessions)} peak-hour home charging session"
                f"{'s' if len(peak_sessions) != 1 else ''} ({tou.peak_label}) to off-peak hours "
                f"({tou.off_peak_label}) to save ~${shift_savings:.2f}"
            )

        home_rates = [s.charge_rate_kw for s in sessions if s.location_type is LocationType.HOME]
        if home_rates:
            avg_home_rate = sum(home_rates) / len(home_rates)
            if avg_home_rate < cfg.low_charge_rate_kw:
                recommendations.append(
                    f"Your average home charge rate is {avg_home_rate:.1f} kW. "
                    "Consider installing a Level 2 charger for faster charging"
                )

        if (
            by_location[LocationType.WORK].sessions == 0
            and len(sessions) > cfg.work_charging_min_sessions
        ):
            recommendations.append(
                "No workplace charging detected. Check if your employer offers EV charging"
            )

        return recommendations or [OPTIMIZED_MESSAGE]

    def _potential_savings(
        self,
        sessions: Sequence[ChargingSession],
        by_location: dict[LocationType, LocationBreakdown],
    ) -> float:
        rates = self.rates
        cfg = self._config.charging
        savings = (
            by_location[LocationType.SUPERCHARGER].kwh
            * (rates.supercharger - rates.off_peak_home_rate)
            * cfg.shiftable_supercharger_fraction
        )
        tou = rates.time_of_use
        if tou is not None:
            peak_kwh = sum(s.energy_added_kwh for s in self._peak_home_sessions(sessions))
            savings += peak_kwh * (tou.peak_rate - tou.off_peak_rate)
        return max(0.0, savings)

    # -- convenience -----------------------------------------------------------

    def analyze(self, drives: Sequence[RawDrive]) -> ChargingReport:
        """Learn locations, detect sessions and analyse their cost in one pass."""
        self.learn_locations(drives)
        sessions = self.detect(drives)
        analysis = self.analyze_costs(sessions)
        days = 0
        if drives:
            starts = [d.started_at for d in drives]
            days = math.ceil((max(starts) - min(starts)) / SECONDS_PER_DAY)
        LOGGER.info(
            "Charging analysis: %d sessions, $%.2f total over %d days",
            analysis.total_sessions,
            analysis.total_cost,
            days,
        )
        return ChargingReport(sessions=sessions, analysis=analysis, days_analyzed=days)
