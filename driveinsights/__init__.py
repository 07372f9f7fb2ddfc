"""Driving data analytics engine."""

from importlib.metadata import PackageNotFoundError, version

from .analysis import (
    ChargingSessionDetector,
    CommuteRouteClusterer,
    EfficiencyTrendAnalyzer,
    LearnedLocations,
    TripCostCalculator,
    TripSegmenter,
)
from .config import AnalyticsConfig, load_config
from .drive_models import RawDrive, parse_drives

__all__ = [
    "AnalyticsConfig",
    "ChargingSessionDetector",
    "CommuteRouteClusterer",
    "EfficiencyTrendAnalyzer",
    "LearnedLocations",
    "RawDrive",
    "TripCostCalculator",
    "TripSegmenter",
    "__version__",
    "load_config",
    "parse_drives",
]

try:
    __version__: str = version("driveinsights")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
