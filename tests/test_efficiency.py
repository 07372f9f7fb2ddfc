from __future__ import annotations

import pytest
from builders import at, make_drive, make_efficiency_drive

from driveinsights.analysis import (
    Confidence,
    EfficiencyTrendAnalyzer,
    TrendDirection,
    WeatherFactor,
)
from driveinsights.analysis.efficiency import NO_PLAUSIBLE_POINTS_REASON
from driveinsights.config import AnalyticsConfig
from driveinsights.drive_models import RawDrive


@pytest.fixture
def analyzer(config: AnalyticsConfig) -> EfficiencyTrendAnalyzer:
    return EfficiencyTrendAnalyzer(config)


def _two_weeks(previous: float, current: float) -> list[RawDrive]:
    """Three drives at *previous* kWh/100mi, then three a week later at *current*."""
    drives = [
        make_efficiency_drive(day + 1, start=at(days=day, hours=8), kwh_per_100mi=previous)
        for day in (0, 1, 2)
    ]
    drives += [
        make_efficiency_drive(day + 1, start=at(days=day, hours=8), kwh_per_100mi=current)
        for day in (8, 9, 10)
    ]
    return drives


class TestInsufficientData:
    @pytest.mark.smoke
    def test_four_drives_is_insufficient(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        drives = _two_weeks(30, 25)[:4]
        result = analyzer.analyze(drives)
        assert result.insufficient_data is True
        assert "minimum 5 drives required" in result.reason
        assert result.recommendations == [result.reason]
        assert set(result.trends) == {"weekly", "monthly", "seasonal"}
        for trend in result.trends.values():
            assert trend.trend_direction is TrendDirection.STABLE
            assert trend.confidence is Confidence.LOW
        assert result.current_period.total_drives == 0

    def test_no_plausible_points(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        drives = [make_drive(i, start=at(days=i), distance=0.0) for i in range(5)]
        result = analyzer.analyze(drives)
        assert result.insufficient_data is True
        assert result.reason == NO_PLAUSIBLE_POINTS_REASON


class TestTrends:
    @pytest.mark.smoke
    def test_improving_week(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        result = analyzer.analyze(_two_weeks(30, 25))
        weekly = result.trends["weekly"]
        assert result.insufficient_data is False
        assert weekly.trend_direction is TrendDirection.IMPROVING
        assert weekly.confidence in (Confidence.MEDIUM, Confidence.HIGH)
        assert weekly.trend_percentage == pytest.approx(16.67, abs=0.01)
        assert weekly.avg_efficiency == pytest.approx(25.0)
        assert weekly.current_points == 3
        assert weekly.previous_points == 3

    def test_declining_week(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        result = analyzer.analyze(_two_weeks(25, 30))
        weekly = result.trends["weekly"]
        assert weekly.trend_direction is TrendDirection.DECLINING
        assert weekly.confidence in (Confidence.MEDIUM, Confidence.HIGH)
        assert weekly.trend_percentage == pytest.approx(20.0, abs=0.01)
        assert any("tire pressure" in r for r in result.recommendations)

    def test_small_change_is_stable(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        result = analyzer.analyze(_two_weeks(25, 24.5))
        assert result.trends["weekly"].trend_direction is TrendDirection.STABLE

    def test_windows_without_history_are_low_confidence(
        self, analyzer: EfficiencyTrendAnalyzer
    ) -> None:
        monthly = analyzer.analyze(_two_weeks(30, 25)).trends["monthly"]
        assert monthly.trend_direction is TrendDirection.STABLE
        assert monthly.confidence is Confidence.LOW
        assert monthly.current_points == 6
        assert monthly.previous_points == 0

    def test_reference_time_anchors_windows(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        result = analyzer.analyze(_two_weeks(30, 25), reference_time=at(days=200))
        weekly = result.trends["weekly"]
        assert weekly.confidence is Confidence.LOW
        assert weekly.current_points == 0
        assert weekly.avg_efficiency == 0

    def test_previous_mean_rounding_to_zero_is_stable(
        self, analyzer: EfficiencyTrendAnalyzer
    ) -> None:
        # 0.003 kWh/100mi survives the plausibility filter but averages to 0.00
        drives = [
            make_drive(
                day + 1,
                start=at(days=day, hours=8),
                distance=100.0,
                start_battery=80,
                end_battery=79.996,
            )
            for day in (0, 1, 2)
        ]
        drives += [
            make_efficiency_drive(day + 1, start=at(days=day, hours=8), kwh_per_100mi=25)
            for day in (8, 9, 10)
        ]
        result = analyzer.analyze(drives)
        weekly = result.trends["weekly"]
        assert result.insufficient_data is False
        assert len(result.data_points) == 6
        assert weekly.trend_direction is TrendDirection.STABLE
        assert weekly.confidence is Confidence.LOW
        assert weekly.previous_points == 3
        assert weekly.avg_efficiency == pytest.approx(25.0)

    def test_high_confidence_needs_five_points_each(
        self, analyzer: EfficiencyTrendAnalyzer
    ) -> None:
        drives = [
            make_efficiency_drive(i, start=at(days=i, hours=8), kwh_per_100mi=30)
            for i in range(5)
        ]
        drives += [
            make_efficiency_drive(10 + i, start=at(days=8 + i, hours=8), kwh_per_100mi=24)
            for i in range(5)
        ]
        weekly = analyzer.analyze(drives).trends["weekly"]
        assert weekly.confidence is Confidence.HIGH
        assert weekly.trend_direction is TrendDirection.IMPROVING


class TestNormalisation:
    def test_implausible_points_are_dropped(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        drives = _two_weeks(30, 25)
        drives.append(make_drive(99, start=at(days=4), distance=0.0))
        drives.append(make_drive(98, start=at(days=5), distance=1.0, start_battery=90,
                                 end_battery=80))
        result = analyzer.analyze(drives)
        assert [p.drive_id for p in result.data_points] == [1, 2, 3, 9, 10, 11]
        assert result.current_period.total_drives == 6
        assert result.current_period.total_miles == pytest.approx(90.0)
        assert result.current_period.best_efficiency == pytest.approx(25.0)
        assert result.current_period.worst_efficiency == pytest.approx(30.0)

    def test_highway_percentage(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        assert analyzer.highway_percentage(50) == 0
        assert analyzer.highway_percentage(55) == 0
        assert analyzer.highway_percentage(60) == pytest.approx(77.78, abs=0.01)
        assert analyzer.highway_percentage(80) == 100

    def test_weather_proxy(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        assert analyzer.weather_factor(36) is WeatherFactor.COLD
        assert analyzer.weather_factor(31) is WeatherFactor.HOT
        assert analyzer.weather_factor(30) is WeatherFactor.MILD


class TestFactors:
    def test_time_patterns_use_each_drive_start(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        times = analyzer.analyze(_two_weeks(30, 25)).factors_analysis.time_patterns
        # Mon 30; Tue/Wed (30 + 25) / 2; Thu 25
        assert times.best_day_of_week == "Thursday"
        assert times.worst_day_of_week == "Monday"
        assert times.best_time_of_day == "8AM"

    def test_cold_weather_penalty(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        drives = [
            make_efficiency_drive(i, start=at(days=i, hours=9), kwh_per_100mi=25)
            for i in range(4)
        ]
        drives += [
            make_efficiency_drive(10 + i, start=at(days=5 + i, hours=9), kwh_per_100mi=40)
            for i in range(2)
        ]
        result = analyzer.analyze(drives)
        weather = result.factors_analysis.weather_impact
        assert weather.cold_weather_penalty == pytest.approx(60.0, abs=0.1)
        assert weather.hot_weather_penalty == 0
        assert any("Cold weather" in insight for insight in result.insights)
        assert any("Pre-condition" in r for r in result.recommendations)

    def test_highway_city_split(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        drives = [
            make_efficiency_drive(
                i, start=at(days=i, hours=9), kwh_per_100mi=32, average_speed=70
            )
            for i in range(3)
        ]
        drives += [
            make_efficiency_drive(
                10 + i, start=at(days=i, hours=15), kwh_per_100mi=24, average_speed=30
            )
            for i in range(3)
        ]
        result = analyzer.analyze(drives)
        speed = result.factors_analysis.speed_impact
        assert speed.highway_efficiency == pytest.approx(32.0)
        assert speed.city_efficiency == pytest.approx(24.0)
        assert speed.highway_city_delta == pytest.approx(8.0)
        assert any("City driving is 8.0" in insight for insight in result.insights)
        assert any("65-70 mph" in r for r in result.recommendations)

    def test_to_dict_is_plain(self, analyzer: EfficiencyTrendAnalyzer) -> None:
        payload = analyzer.analyze(_two_weeks(30, 25)).to_dict()
        assert payload["trends"]["weekly"]["trend_direction"] == "improving"
        assert payload["data_points"][0]["weather_factor"] == "mild"
        assert payload["current_period"]["efficiency_range"]["best"] == pytest.approx(25.0)
