"""driveinsights.analysis – drive history analyzers.

All analysis logic (trip segmentation, charging-session detection and cost
attribution, efficiency trends, commute clustering, trip costing) lives
here.  Every analyzer takes an optional :class:`~driveinsights.config.AnalyticsConfig`
in its constructor and returns plain result records with ``to_dict()``.

Public API re-exported here so that ``from driveinsights.analysis import …``
works the same as importing from the individual sub-modules.
"""

from .charging import (
    ChargeRateModel,
    ChargingAnalysis,
    ChargingReport,
    ChargingSession,
    ChargingSessionDetector,
    LocationBreakdown,
)
from .commute import (
    CityStateLocationKey,
    CommuteAnalysis,
    CommuteRoute,
    CommuteRouteClusterer,
    LocationKey,
    WeeklySummary,
)
from .efficiency import (
    EfficiencyAnalysis,
    EfficiencyDataPoint,
    EfficiencyTrend,
    EfficiencyTrendAnalyzer,
)
from .labels import Confidence, LocationType, StopType, TrendDirection, WeatherFactor
from .location_memory import LearnedLocations
from .segmentation import (
    AUTOPILOT_ESTIMATE_NOTE,
    DriveAnalysis,
    DriveStop,
    MergedDrive,
    TripSegmenter,
)
from .trip_cost import FutureTripEstimate, TripCostAnalysis, TripCostCalculator

__all__ = [
    "AUTOPILOT_ESTIMATE_NOTE",
    "ChargeRateModel",
    "ChargingAnalysis",
    "ChargingReport",
    "ChargingSession",
    "ChargingSessionDetector",
    "CityStateLocationKey",
    "CommuteAnalysis",
    "CommuteRoute",
    "CommuteRouteClusterer",
    "Confidence",
    "DriveAnalysis",
    "DriveStop",
    "EfficiencyAnalysis",
    "EfficiencyDataPoint",
    "EfficiencyTrend",
    "EfficiencyTrendAnalyzer",
    "FutureTripEstimate",
    "LearnedLocations",
    "LocationBreakdown",
    "LocationKey",
    "LocationType",
    "MergedDrive",
    "StopType",
    "TrendDirection",
    "TripCostAnalysis",
    "TripCostCalculator",
    "TripSegmenter",
    "WeatherFactor",
    "WeeklySummary",
]
