"""Trip cost calculation and future-trip charging estimates."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..config import AnalyticsConfig, TripCostConfig
from ..constants import PERCENT, SECONDS_PER_HOUR
from ..drive_models import RawDrive, sort_drives
from .helpers import energy_kwh, round2, safe_ratio

LOGGER = logging.getLogger(__name__)

NO_TRIP_DATA = "No trip data available"
SUPERCHARGER_SHARE_HINT_PCT = 40.0
SINGLE_CHARGE_MAX_USED_PCT = 80.0
START_CHARGE_MARGIN_PCT = 20.0


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass(frozen=True, slots=True)
class TripSummary:
    distance_miles: float = 0.0
    duration_hours: float = 0.0
    battery_used_percent: float = 0.0
    energy_used_kwh: float = 0.0
    efficiency_miles_per_kwh: float = 0.0


@dataclass(frozen=True, slots=True)
class CostBreakdown:
    electricity_cost: float = 0.0
    charging_stops_cost: float = 0.0
    total_cost: float = 0.0
    cost_per_mile: float = 0.0


@dataclass(frozen=True, slots=True)
class GasComparison:
    gas_cost_estimate: float = 0.0
    savings: float = 0.0
    savings_percentage: float = 0.0


@dataclass(frozen=True, slots=True)
class OptimalChargingComparison:
    optimal_cost: float = 0.0
    current_cost: float = 0.0
    potential_savings: float = 0.0


@dataclass(frozen=True, slots=True)
class EnvironmentalImpact:
    co2_saved_lbs: float = 0.0
    trees_equivalent: int = 0


@dataclass(frozen=True, slots=True)
class TripCostAnalysis:
    trip_summary: TripSummary = field(default_factory=TripSummary)
    cost_breakdown: CostBreakdown = field(default_factory=CostBreakdown)
    vs_gas_vehicle: GasComparison = field(default_factory=GasComparison)
    vs_optimal_charging: OptimalChargingComparison = field(
        default_factory=OptimalChargingComparison
    )
    charging_strategy: tuple[str, ...] = ()
    environmental_impact: EnvironmentalImpact = field(default_factory=EnvironmentalImpact)

    def to_dict(self) -> dict[str, Any]:
        summary = self.trip_summary
        costs = self.cost_breakdown
        gas = self.vs_gas_vehicle
        optimal = self.vs_optimal_charging
        env = self.environmental_impact
        return {
            "trip_summary": {
                "distance_miles": summary.distance_miles,
                "duration_hours": summary.duration_hours,
                "battery_used_percent": summary.battery_used_percent,
                "energy_used_kwh": summary.energy_used_kwh,
                "efficiency_miles_per_kwh": summary.efficiency_miles_per_kwh,
            },
            "cost_breakdown": {
                "electricity_cost": costs.electricity_cost,
                "charging_stops_cost": costs.charging_stops_cost,
                "total_cost": costs.total_cost,
                "cost_per_mile": costs.cost_per_mile,
            },
            "comparison": {
                "vs_gas_vehicle": {
                    "gas_cost_estimate": gas.gas_cost_estimate,
                    "savings": gas.savings,
                    "savings_percentage": gas.savings_percentage,
                },
                "vs_optimal_charging": {
                    "optimal_cost": optimal.optimal_cost,
                    "current_cost": optimal.current_cost,
                    "potential_savings": optimal.potential_savings,
                },
            },
            "charging_strategy": list(self.charging_strategy),
            "environmental_impact": {
                "co2_saved_lbs": env.co2_saved_lbs,
                "trees_equivalent": env.trees_equivalent,
            },
        }


@dataclass(frozen=True, slots=True)
class FutureTripEstimate:
    estimated_cost: float
    charging_needed: bool
    recommended_charge_level: int
    charging_stops_needed: int
    strategy: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimated_cost": self.estimated_cost,
            "charging_needed": self.charging_needed,
            "recommended_charge_level": self.recommended_charge_level,
            "charging_stops_needed": self.charging_stops_needed,
            "strategy": self.strategy,
        }


@dataclass(frozen=True, slots=True)
class _ChargingCosts:
    home: float
    supercharger: float

    @property
    def total(self) -> float:
        return self.home + self.supercharger


class TripCostCalculator:
    """Attribute electricity cost to a set of drives and compare alternatives.

    Rates and gas price default to the configured values; each call may
    override them.
    """

    def __init__(self, config: AnalyticsConfig | None = None) -> None:
        self._config = config or AnalyticsConfig.default()

    @property
    def settings(self) -> TripCostConfig:
        return self._config.trip_cost

    @staticmethod
    def battery_used(drives: Sequence[RawDrive]) -> float:
        """Sum of per-drive battery drops; charging between drives is not usage."""
        return sum(drive.battery_used for drive in drives if drive.battery_used > 0)

    def _charging_costs(
        self,
        drives: Sequence[RawDrive],
        energy_used_kwh: float,
        home_rate: float,
        supercharger_rate: float,
    ) -> _ChargingCosts:
        cfg = self.settings
        capacity = self._config.vehicle.battery_capacity_kwh
        min_gain = self._config.charging.min_battery_gain_pct
        home_cost = supercharger_cost = detected_kwh = 0.0
        for prev, nxt in zip(drives, drives[1:]):
            gain = nxt.starting_battery - prev.ending_battery
            if gain <= min_gain:
                continue
            added = energy_kwh(gain, capacity)
            detected_kwh += added
            gap_hours = (nxt.started_at - prev.ended_at) / SECONDS_PER_HOUR
            if gap_hours < cfg.fast_charge_max_hours and gain > cfg.fast_charge_min_gain_pct:
                supercharger_cost += added * supercharger_rate
            else:
                home_cost += added * home_rate

        if detected_kwh < energy_used_kwh * cfg.unaccounted_energy_fraction:
            unaccounted = energy_used_kwh - detected_kwh
            LOGGER.debug("Charging %.2f unaccounted kWh at the home rate", unaccounted)
            home_cost += unaccounted * home_rate
        return _ChargingCosts(home=home_cost, supercharger=supercharger_cost)

    def _strategy(self, battery_used_pct: float, costs: _ChargingCosts) -> list[str]:
        strategy: list[str] = []
        supercharger_share = safe_ratio(costs.supercharger, costs.total) * PERCENT
        if supercharger_share > SUPERCHARGER_SHARE_HINT_PCT:
            strategy.append(
                f"High Supercharger usage ({supercharger_share:.0f}%). "
                "Consider charging at home before long trips"
            )
        if battery_used_pct < SINGLE_CHARGE_MAX_USED_PCT:
            strategy.append("This trip could be completed with a single overnight charge at home")

        start_charge = min(
            self.settings.home_charge_target_pct, battery_used_pct + START_CHARGE_MARGIN_PCT
        )
        strategy.append(f"Optimal starting charge: {start_charge:.0f}% for this trip distance")

        if costs.home > 0:
            tou = self._config.rates.time_of_use
            window = tou.off_peak_label if tou is not None else "overnight"
            strategy.append(
                f"Schedule home charging for off-peak hours ({window}) to save "
                f"~{self.settings.off_peak_discount:.0%} on electricity"
            )
        return strategy

    def cost(
        self,
        drives: Sequence[RawDrive],
        home_rate: float | None = None,
        supercharger_rate: float | None = None,
        gas_price: float | None = None,
    ) -> TripCostAnalysis:
        if not drives:
            return TripCostAnalysis(charging_strategy=(NO_TRIP_DATA,))

        cfg = self.settings
        vehicle = self._config.vehicle
        home = self._config.rates.home if home_rate is None else home_rate
        supercharger = (
            self._config.rates.supercharger if supercharger_rate is None else supercharger_rate
        )
        gas = cfg.gas_price_per_gallon if gas_price is None else gas_price

        ordered = sort_drives(drives)
        distance = sum(d.odometer_distance for d in ordered)
        duration_hours = (ordered[-1].ended_at - ordered[0].started_at) / SECONDS_PER_HOUR
        used_pct = self.battery_used(ordered)
        energy = energy_kwh(used_pct, vehicle.battery_capacity_kwh)

        costs = self._charging_costs(ordered, energy, home, supercharger)
        total = costs.total

        gallons = distance / cfg.gas_mpg
        gas_cost = gallons * gas
        savings = gas_cost - total
        optimal = energy * home * (1 - cfg.off_peak_discount)

        co2_saved = gallons * cfg.co2_lbs_per_gallon - energy * cfg.co2_lbs_per_kwh_grid
        co2_saved = max(0.0, co2_saved)

        LOGGER.info(
            "Trip cost: %d drives, %.1f mi, %.2f kWh, $%.2f",
            len(ordered),
            distance,
            energy,
            total,
        )
        return TripCostAnalysis(
            trip_summary=TripSummary(
                distance_miles=round2(distance),
                duration_hours=round2(duration_hours),
                battery_used_percent=round2(used_pct),
                energy_used_kwh=round2(energy),
                efficiency_miles_per_kwh=round2(safe_ratio(distance, energy)),
            ),
            cost_breakdown=CostBreakdown(
                electricity_cost=round2(costs.home),
                charging_stops_cost=round2(costs.supercharger),
                total_cost=round2(total),
                cost_per_mile=round(safe_ratio(total, distance), 3),
            ),
            vs_gas_vehicle=GasComparison(
                gas_cost_estimate=round2(gas_cost),
                savings=round2(savings),
                savings_percentage=round2(safe_ratio(savings, gas_cost) * PERCENT),
            ),
            vs_optimal_charging=OptimalChargingComparison(
                optimal_cost=round2(optimal),
                current_cost=round2(total),
                potential_savings=round2(max(0.0, total - optimal)),
            ),
            charging_strategy=tuple(self._strategy(used_pct, costs)),
            environmental_impact=EnvironmentalImpact(
                co2_saved_lbs=round(co2_saved, 1),
                trees_equivalent=_round_half_up(co2_saved / cfg.co2_lbs_per_tree_year),
            ),
        )

    def estimate_future_trip_cost(
        self,
        distance_miles: float,
        current_battery: float,
        home_rate: float | None = None,
        supercharger_rate: float | None = None,
    ) -> FutureTripEstimate:
        """Plan charging for a trip of *distance_miles* starting at *current_battery* %."""
        if distance_miles < 0:
            raise ValueError(f"distance_miles must be ≥0, got {distance_miles!r}")
        if not 0 <= current_battery <= PERCENT:
            raise ValueError(f"current_battery must be 0-100, got {current_battery!r}")

        cfg = self.settings
        vehicle = self._config.vehicle
        home = self._config.rates.home if home_rate is None else home_rate
        supercharger = (
            self._config.rates.supercharger if supercharger_rate is None else supercharger_rate
        )

        energy_needed = distance_miles / vehicle.miles_per_kwh
        needed_pct = energy_needed / vehicle.battery_capacity_kwh * PERCENT
        needed_pct *= 1 + cfg.safety_buffer
        charging_needed = needed_pct > current_battery
        deficit = max(0.0, needed_pct - current_battery)
        stops = math.ceil(deficit / cfg.supercharger_stop_pct)
        recommended = min(int(PERCENT), _round_half_up(current_battery + deficit))

        estimated_cost = 0.0
        if not charging_needed:
            strategy = f"No charging needed - current {current_battery:g}% is sufficient"
        elif (
            deficit <= cfg.home_charge_max_deficit_pct
            and current_battery + deficit <= PERCENT
        ):
            stops = 0
            estimated_cost = energy_kwh(deficit, vehicle.battery_capacity_kwh) * home
            strategy = f"Charge to {recommended}% at home before departure"
        else:
            home_pct = max(0.0, cfg.home_charge_target_pct - current_battery)
            home_kwh = energy_kwh(home_pct, vehicle.battery_capacity_kwh)
            supercharger_kwh = energy_kwh(deficit - home_pct, vehicle.battery_capacity_kwh)
            estimated_cost = home_kwh * home + supercharger_kwh * supercharger
            strategy = (
                f"Charge to {cfg.home_charge_target_pct:.0f}% at home, then {stops} "
                f"Supercharger stop{'s' if stops > 1 else ''} during trip"
            )

        LOGGER.debug(
            "Future trip %.1f mi from %.0f%%: deficit %.1f%%, %d stops",
            distance_miles,
            current_battery,
            deficit,
            stops,
        )
        return FutureTripEstimate(
            estimated_cost=round2(estimated_cost),
            charging_needed=charging_needed,
            recommended_charge_level=recommended,
            charging_stops_needed=stops,
            strategy=strategy,
        )
