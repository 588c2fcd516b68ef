"""Data models for Swiss transit connections and insights."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None so optional fields are omitted."""
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class Station:
    """A transit station. Identity is by name; id is provider-assigned."""
    name: str
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"id": self.id, "name": self.name})


@dataclass
class StopTime:
    """A stop within a leg with planned and (optionally) live data."""
    name: str
    time_planned: str  # ISO 8601, "" when unknown
    time_actual: Optional[str] = None  # Only set when it differs from time_planned
    platform: Optional[str] = None  # "!" marks a platform change

    @property
    def platform_changed(self) -> bool:
        return bool(self.platform) and "!" in self.platform

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "name": self.name,
            "timePlanned": self.time_planned,
            "timeActual": self.time_actual,
            "platform": self.platform,
        })


@dataclass
class Leg:
    """One uninterrupted ride or walk segment of a connection."""
    type: str  # "walk" or "ride"
    origin: StopTime
    destination: StopTime
    line: Optional[str] = None
    operator: Optional[str] = None
    stops: Optional[List[StopTime]] = None
    delay_minutes: Optional[int] = None  # Only set when strictly positive

    @property
    def is_walk(self) -> bool:
        return self.type == "walk"

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "type": self.type,
            "line": self.line,
            "operator": self.operator,
            "from": self.origin.to_dict(),
            "to": self.destination.to_dict(),
            "stops": [stop.to_dict() for stop in self.stops] if self.stops is not None else None,
            "delayMinutes": self.delay_minutes,
        })


@dataclass
class TransferRisk:
    """Risk assessment for a single transfer between two legs."""
    from_station: str
    to_station: str
    margin_minutes: int  # Negative when the transfer is infeasible
    risk_level: str  # "low", "medium" or "high"
    is_big_station: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromStation": self.from_station,
            "toStation": self.to_station,
            "marginMinutes": self.margin_minutes,
            "riskLevel": self.risk_level,
            "isBigStation": self.is_big_station,
        }


@dataclass
class Reason:
    """A scored reason with a stable code and a human-readable label."""
    code: str
    label: str
    penalty: float

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "label": self.label, "penalty": self.penalty}


# Reliability and weather reasons share one shape.
ReliabilityReason = Reason
WeatherReason = Reason


@dataclass
class ReliabilityInsight:
    """Predicted on-time likelihood for a connection."""
    score: float  # 0..1, higher is more reliable
    level: str  # risk level: "low", "medium" or "high"
    reasons: List[Reason] = field(default_factory=list)
    transfer_risks: List[TransferRisk] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level,
            "reasons": [reason.to_dict() for reason in self.reasons],
            "transferRisks": [risk.to_dict() for risk in self.transfer_risks],
        }


@dataclass
class Connection:
    """A complete journey between two stations made of one or more legs."""
    id: str
    departure_time: str
    arrival_time: str
    duration_minutes: int  # 0 when the provider duration is unknown
    transfers_count: int  # As reported by the provider
    legs: List[Leg]
    tags: List[str] = field(default_factory=list)
    reliability_score: Optional[float] = None
    reliability: Optional[ReliabilityInsight] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "id": self.id,
            "departureTime": self.departure_time,
            "arrivalTime": self.arrival_time,
            "durationMinutes": self.duration_minutes,
            "transfersCount": self.transfers_count,
            "legs": [leg.to_dict() for leg in self.legs],
            "reliabilityScore": self.reliability_score,
            "reliability": self.reliability.to_dict() if self.reliability else None,
            "tags": list(self.tags),
        })


@dataclass
class ConnectionSearchResult:
    """Normalized connections for one query, with the resolved endpoints."""
    connections: List[Connection]
    from_station: Optional[Station] = None
    to_station: Optional[Station] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "connections": [conn.to_dict() for conn in self.connections],
            "fromStation": self.from_station.to_dict() if self.from_station else None,
            "toStation": self.to_station.to_dict() if self.to_station else None,
        })


@dataclass
class ConnectionDetails:
    """A single connection with a plain-text leg breakdown."""
    connection: Connection
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {"connection": self.connection.to_dict(), "summary": self.summary}


@dataclass
class StationCoordinate:
    """A station position and the time at which weather matters there."""
    name: str
    lat: float
    lon: float
    time: str  # ISO 8601


@dataclass
class WeatherSample:
    """Hourly forecast values for one station."""
    station: str
    time: str
    lat: float
    lon: float
    temperature: float  # °C
    precipitation: float  # mm
    snowfall: float  # cm
    wind_speed: float  # km/h
    wind_gusts: float  # km/h
    weather_code: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "station": self.station,
            "time": self.time,
            "lat": self.lat,
            "lon": self.lon,
            "temperature": self.temperature,
            "precipitation": self.precipitation,
            "snowfall": self.snowfall,
            "windSpeed": self.wind_speed,
            "windGusts": self.wind_gusts,
            "weatherCode": self.weather_code,
        }


@dataclass
class WeatherInsight:
    """Aggregate weather risk over the stations of a journey."""
    level: str
    penalty: float  # 0..0.35
    reasons: List[Reason] = field(default_factory=list)
    samples: List[WeatherSample] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "penalty": self.penalty,
            "reasons": [reason.to_dict() for reason in self.reasons],
            "samples": [sample.to_dict() for sample in self.samples],
        }


@dataclass
class DelayedRoute:
    """A delayed leg found while checking disruptions."""
    route: str
    line: str
    scheduled_departure: str
    delay_minutes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "route": self.route,
            "line": self.line,
            "scheduledDeparture": self.scheduled_departure,
            "delayMinutes": self.delay_minutes,
        }


@dataclass
class DisruptionReport:
    """Area-wide service health around a station."""
    station: str
    checked_at: str
    routes_checked: List[str]
    total_connections_checked: int
    delayed_connections_count: int
    cancelled_or_missing: int
    average_delay_minutes: int
    max_delay_minutes: int
    delayed_routes: List[DelayedRoute]
    status: str  # "normal", "minor_delays", "major_delays" or "disrupted"
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "station": self.station,
            "checkedAt": self.checked_at,
            "routesChecked": list(self.routes_checked),
            "totalConnectionsChecked": self.total_connections_checked,
            "delayedConnectionsCount": self.delayed_connections_count,
            "cancelledOrMissing": self.cancelled_or_missing,
            "averageDelayMinutes": self.average_delay_minutes,
            "maxDelayMinutes": self.max_delay_minutes,
            "delayedRoutes": [route.to_dict() for route in self.delayed_routes],
            "status": self.status,
            "summary": self.summary,
        }
