from __future__ import annotations

import pytest
from builders import HOME, MALL, OFFICE, SUPERCHARGER, at, make_drive

from driveinsights.analysis import (
    ChargingSessionDetector,
    LearnedLocations,
    LocationType,
)
from driveinsights.analysis.charging import NO_SESSIONS_MESSAGE, OPTIMIZED_MESSAGE
from driveinsights.config import AnalyticsConfig
from driveinsights.drive_models import RawDrive


def _stop(
    *,
    arrive: int,
    gap_minutes: float,
    end_battery: float,
    next_battery: float,
    location: str = HOME,
    first_id: int = 1,
) -> list[RawDrive]:
    """Two drives around a stop at *location* that ends *gap_minutes* after *arrive*."""
    before = make_drive(
        first_id,
        start=arrive - 30 * 60,
        start_battery=min(100.0, end_battery + 6),
        end_battery=end_battery,
        end_location=location,
    )
    after = make_drive(
        first_id + 1,
        start=arrive + int(gap_minutes * 60),
        start_battery=next_battery,
        end_battery=next_battery - 6,
        start_location=location,
    )
    return [before, after]


@pytest.fixture
def detector(config: AnalyticsConfig, memory: LearnedLocations) -> ChargingSessionDetector:
    return ChargingSessionDetector(config, memory)


class TestDetect:
    def test_no_battery_increase_means_no_sessions(
        self, detector: ChargingSessionDetector
    ) -> None:
        drives = _stop(arrive=at(hours=9), gap_minutes=600, end_battery=60, next_battery=60)
        drives += _stop(
            arrive=at(days=1, hours=9), gap_minutes=90, end_battery=50, next_battery=51.5,
            first_id=3,
        )
        assert detector.detect(drives) == []

    @pytest.mark.smoke
    def test_three_hour_stop_with_large_gain_is_home_or_work(
        self, detector: ChargingSessionDetector
    ) -> None:
        drives = _stop(
            arrive=at(hours=9, minutes=30), gap_minutes=180, end_battery=40, next_battery=85,
            location="Garage, Springfield, IL",
        )
        [session] = detector.detect(drives)
        assert session.location_type in (LocationType.HOME, LocationType.WORK)
        assert session.id == "charge_1_2"
        assert session.started_at == drives[0].ended_at
        assert session.ended_at == drives[1].started_at
        assert session.ending_battery > session.starting_battery
        assert session.energy_added_kwh == pytest.approx(33.75)
        assert session.miles_added == pytest.approx(135.0)
        assert session.duration_minutes == pytest.approx(180.0)

    def test_input_order_does_not_matter(self, detector: ChargingSessionDetector) -> None:
        drives = _stop(arrive=at(hours=12), gap_minutes=90, end_battery=30, next_battery=50)
        assert detector.detect(list(reversed(drives))) == detector.detect(drives)

    def test_supercharger_label(self, detector: ChargingSessionDetector) -> None:
        drives = _stop(
            arrive=at(hours=12), gap_minutes=30, end_battery=20, next_battery=70,
            location=SUPERCHARGER,
        )
        [session] = detector.detect(drives)
        assert session.location_type is LocationType.SUPERCHARGER
        assert session.cost_per_kwh == 0.28
        assert session.cost_estimate == pytest.approx(10.5)

    def test_fast_charge_signature(self, detector: ChargingSessionDetector) -> None:
        drives = _stop(
            arrive=at(hours=12), gap_minutes=40, end_battery=20, next_battery=65,
            location="Lot 5, Ogdenville, IL",
        )
        assert detector.detect(drives)[0].location_type is LocationType.SUPERCHARGER

    def test_public_stop(self, detector: ChargingSessionDetector) -> None:
        drives = _stop(
            arrive=at(hours=12), gap_minutes=90, end_battery=40, next_battery=60, location=MALL
        )
        [session] = detector.detect(drives)
        assert session.location_type is LocationType.PUBLIC
        assert session.cost_estimate == pytest.approx(3.0)

    def test_unknown_stop_uses_public_rate(self, detector: ChargingSessionDetector) -> None:
        drives = _stop(
            arrive=at(hours=12), gap_minutes=20, end_battery=40, next_battery=50,
            location="Street, Capital City, IL",
        )
        [session] = detector.detect(drives)
        assert session.location_type is LocationType.UNKNOWN
        assert session.cost_per_kwh == 0.20
        assert session.cost_estimate == pytest.approx(1.5)


class TestClassification:
    def test_long_stays_promote_location_to_home(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        place = "Cabin, Lake Town, WI"
        results = [detector.classify_location(place, 300, 10) for _ in range(7)]
        assert results[:6] == [LocationType.WORK] * 6
        assert results[6] is LocationType.HOME
        assert place in memory.home
        assert detector.classify_location(place, 45, 10) is LocationType.HOME

    def test_very_long_stay_is_home(self, detector: ChargingSessionDetector) -> None:
        assert detector.classify_location("Friend, Lake Town, WI", 600, 10) is LocationType.HOME

    def test_learned_work_location(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        memory.mark_work(OFFICE)
        assert detector.classify_location(OFFICE, 45, 10) is LocationType.WORK

    def test_supercharger_marker_beats_learned_home(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        memory.mark_home(SUPERCHARGER)
        assert detector.classify_location(SUPERCHARGER, 600, 10) is LocationType.SUPERCHARGER


class TestLearnLocations:
    def test_most_overnight_stays_become_home(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        drives = [
            make_drive(1, start=at(hours=21), start_location=OFFICE, end_location=HOME),
            make_drive(2, start=at(days=1, hours=7, minutes=30), start_location=HOME),
            make_drive(3, start=at(days=1, hours=21), start_location=OFFICE, end_location=HOME),
            make_drive(4, start=at(days=2, hours=7, minutes=30), start_location=HOME),
        ]
        detector.learn_locations(drives)
        assert memory.home == {HOME}
        assert memory.work == set()

    def test_frequent_long_daytime_stays_become_work(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        drives: list[RawDrive] = []
        for day in range(12):
            drives.append(
                make_drive(2 * day, start=at(days=day, hours=8), end_location=OFFICE)
            )
            drives.append(
                make_drive(
                    2 * day + 1,
                    start=at(days=day, hours=20, minutes=45),
                    start_location=OFFICE,
                    end_location=HOME,
                )
            )
        detector.learn_locations(drives)
        assert memory.home == {HOME}
        assert memory.work == {OFFICE}
        assert memory.lookup(OFFICE) is LocationType.WORK

    def test_no_overnight_stays_learns_nothing(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        drives = _stop(arrive=at(hours=12), gap_minutes=60, end_battery=50, next_battery=50)
        detector.learn_locations(drives)
        assert memory.home == set()


class TestRates:
    def test_off_peak_home_session(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        memory.mark_home(HOME)
        drives = _stop(arrive=at(hours=23, minutes=30), gap_minutes=480, end_battery=40,
                       next_battery=80)
        [session] = detector.detect(drives)
        assert session.location_type is LocationType.HOME
        assert session.cost_per_kwh == 0.09
        assert session.cost_estimate == pytest.approx(2.7)

    def test_peak_home_session(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        memory.mark_home(HOME)
        drives = _stop(arrive=at(hours=17, minutes=30), gap_minutes=120, end_battery=40,
                       next_battery=60)
        [session] = detector.detect(drives)
        assert session.cost_per_kwh == 0.32
        assert session.cost_estimate == pytest.approx(4.8)

    def test_flat_home_rate_without_time_of_use(self, flat_rate_config: AnalyticsConfig) -> None:
        memory = LearnedLocations(home={HOME})
        detector = ChargingSessionDetector(flat_rate_config, memory)
        drives = _stop(arrive=at(hours=17, minutes=30), gap_minutes=120, end_battery=40,
                       next_battery=60)
        [session] = detector.detect(drives)
        assert session.cost_per_kwh == 0.13
        assert session.cost_estimate == pytest.approx(1.95)

    def test_shoulder_hours_use_standard_home_rate(
        self, detector: ChargingSessionDetector
    ) -> None:
        assert detector.rate_model.rate_for(LocationType.HOME, at(hours=12)) == 0.13
        assert detector.rate_model.rate_for(LocationType.WORK, at(hours=12)) == 0.0


class TestAnalyzeCosts:
    @pytest.mark.smoke
    def test_no_sessions_yields_zeroed_analysis(self, detector: ChargingSessionDetector) -> None:
        analysis = detector.analyze_costs([])
        assert analysis.total_sessions == 0
        assert analysis.total_cost == 0
        assert analysis.total_kwh == 0
        assert analysis.average_cost_per_kwh == 0
        assert analysis.potential_savings == 0
        assert analysis.recommendations == [NO_SESSIONS_MESSAGE]
        assert set(analysis.sessions_by_location) == set(LocationType)
        assert all(b.sessions == 0 for b in analysis.sessions_by_location.values())

    def test_supercharger_heavy_usage(self, detector: ChargingSessionDetector) -> None:
        drives = _stop(
            arrive=at(hours=12), gap_minutes=30, end_battery=20, next_battery=70,
            location=SUPERCHARGER,
        )
        analysis = detector.analyze_costs(detector.detect(drives))
        assert analysis.total_sessions == 1
        assert analysis.total_cost == pytest.approx(10.5)
        assert analysis.total_kwh == pytest.approx(37.5)
        assert analysis.total_miles_added == pytest.approx(150.0)
        assert analysis.average_cost_per_kwh == pytest.approx(0.28)
        assert analysis.average_cost_per_mile == pytest.approx(0.07)
        supercharger = analysis.sessions_by_location[LocationType.SUPERCHARGER]
        assert supercharger.sessions == 1
        assert any("Superchargers" in r for r in analysis.recommendations)
        assert analysis.potential_savings == pytest.approx(37.5 * (0.28 - 0.09) * 0.5, abs=0.01)

    def test_peak_and_slow_home_charging(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        memory.mark_home(HOME)
        drives = _stop(arrive=at(hours=17, minutes=30), gap_minutes=600, end_battery=40,
                       next_battery=60)
        analysis = detector.analyze_costs(detector.detect(drives))
        assert any("peak-hour" in r for r in analysis.recommendations)
        assert any("Level 2" in r for r in analysis.recommendations)
        assert analysis.potential_savings == pytest.approx(15 * (0.32 - 0.09), abs=0.01)

    def test_optimized_message_when_nothing_to_flag(
        self, detector: ChargingSessionDetector, memory: LearnedLocations
    ) -> None:
        memory.mark_home(HOME)
        # 30 kWh in 2 h at noon: standard rate, 15 kW
        drives = _stop(arrive=at(hours=12), gap_minutes=120, end_battery=30, next_battery=70)
        analysis = detector.analyze_costs(detector.detect(drives))
        assert analysis.recommendations == [OPTIMIZED_MESSAGE]
        assert analysis.potential_savings == 0

    def test_many_sessions_without_work_charging(self, detector: ChargingSessionDetector) -> None:
        drives = [
            make_drive(day, start=at(days=day, hours=12), start_battery=55, end_battery=50)
            for day in range(12)
        ]
        sessions = detector.detect(drives)
        assert len(sessions) == 11
        analysis = detector.analyze_costs(sessions)
        assert any("workplace" in r for r in analysis.recommendations)

    def test_to_dict_uses_string_keys(self, detector: ChargingSessionDetector) -> None:
        payload = detector.analyze_costs([]).to_dict()
        assert set(payload["sessions_by_location"]) == {
            "home",
            "work",
            "supercharger",
            "public",
            "unknown",
        }


class TestAnalyze:
    def test_report_covers_days_and_sessions(self, detector: ChargingSessionDetector) -> None:
        drives = _stop(arrive=at(hours=12), gap_minutes=90, end_battery=40, next_battery=60,
                       location=MALL)
        drives.append(
            make_drive(3, start=at(days=3, hours=12), start_battery=54, end_battery=50)
        )
        report = detector.analyze(drives)
        assert report.days_analyzed == 4
        assert len(report.sessions) == 1
        assert report.analysis.total_sessions == 1
        assert report.to_dict()["sessions"][0]["location_type"] == "public"

    def test_memory_persists_across_calls(self, config: AnalyticsConfig) -> None:
        memory = LearnedLocations()
        first = ChargingSessionDetector(config, memory)
        first.classify_location("Cabin, Lake Town, WI", 600, 10)
        assert memory.long_stay_counts["Cabin, Lake Town, WI"] == 1
        memory.reset()
        assert memory.to_dict() == {"home": [], "work": [], "long_stay_counts": {}}
