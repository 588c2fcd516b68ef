"""SwissTransit - Swiss public-transit connections with reliability insights."""

__version__ = "0.1.0"

from .models import (
    Station,
    StopTime,
    Leg,
    Connection,
    ConnectionSearchResult,
    ConnectionDetails,
    TransferRisk,
    Reason,
    ReliabilityInsight,
    StationCoordinate,
    WeatherSample,
    WeatherInsight,
    DelayedRoute,
    DisruptionReport,
)
from .explorer import TransitExplorer
from .transport_client import TransportClient, TransportAPIError
from .normalizer import assemble_connections, normalize_leg
from .reliability import calculate_reliability
from .weather import WeatherCache, WeatherClient, WeatherRiskEstimator, WeatherAPIError
from .disruptions import DisruptionChecker

__all__ = [
    "TransitExplorer",
    "TransportClient",
    "TransportAPIError",
    "assemble_connections",
    "normalize_leg",
    "calculate_reliability",
    "WeatherCache",
    "WeatherClient",
    "WeatherRiskEstimator",
    "WeatherAPIError",
    "DisruptionChecker",
    "Station",
    "StopTime",
    "Leg",
    "Connection",
    "ConnectionSearchResult",
    "ConnectionDetails",
    "TransferRisk",
    "Reason",
    "ReliabilityInsight",
    "StationCoordinate",
    "WeatherSample",
    "WeatherInsight",
    "DelayedRoute",
    "DisruptionReport",
]
