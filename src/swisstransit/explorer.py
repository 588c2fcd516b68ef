"""Main Swiss transit explorer class."""

import logging
from typing import List, Optional

from .disruptions import DisruptionChecker
from .models import (
    Connection,
    ConnectionDetails,
    ConnectionSearchResult,
    DisruptionReport,
    Station,
    StationCoordinate,
    WeatherInsight,
)
from .normalizer import assemble_connections
from .timeutils import parse_timestamp, to_local
from .transport_client import TransportClient
from .weather import WeatherRiskEstimator

logger = logging.getLogger(__name__)


def format_time(iso: str) -> str:
    """Local HH:MM for an ISO timestamp, or "N/A"."""
    dt = parse_timestamp(iso)
    if dt is None:
        return "N/A"
    return to_local(dt).strftime("%H:%M")


def describe_connection(connection: Connection, origin: str, destination: str) -> str:
    """Plain-text breakdown of a connection, one numbered line per leg."""
    lines = []
    for i, leg in enumerate(connection.legs, 1):
        if leg.is_walk:
            lines.append(f"{i}. Walk: {leg.origin.name} → {leg.destination.name}")
            continue
        platform = f" (Pl. {leg.origin.platform})" if leg.origin.platform else ""
        delay = f" +{leg.delay_minutes}min" if leg.delay_minutes else ""
        lines.append(
            f"{i}. {leg.line}: {leg.origin.name}{platform} {format_time(leg.origin.time_planned)}"
            f" → {leg.destination.name} {format_time(leg.destination.time_planned)}{delay}"
        )

    header = (
        f"{origin} → {destination}\n"
        f"Depart: {format_time(connection.departure_time)} | Arrive: {format_time(connection.arrival_time)}\n"
        f"Duration: {connection.duration_minutes}min | Transfers: {connection.transfers_count}"
    )
    return header + "\n\n" + "\n".join(lines)


class TransitExplorer:
    """
    Finds and rates Swiss public-transit connections.

    This class provides methods to:
    - Search stations by name
    - Find connections with tags and reliability insights
    - Estimate weather risk along a journey
    - Check for disruptions around a station
    """

    def __init__(
        self,
        client: Optional[TransportClient] = None,
        weather: Optional[WeatherRiskEstimator] = None,
        disruptions: Optional[DisruptionChecker] = None,
    ):
        self.client = client or TransportClient()
        self.weather = weather or WeatherRiskEstimator()
        self.disruptions = disruptions or DisruptionChecker(client=self.client)

    def search_stations(self, query: str, limit: int = 8) -> List[Station]:
        """
        Search stations by name, for autocomplete and validation.

        Args:
            query: Station name or partial name (e.g., "Bern").
            limit: Maximum number of results.
        """
        return self.client.search_stations(query, limit)

    def find_connections(
        self,
        origin: str,
        destination: str,
        datetime_iso: Optional[str] = None,
        is_arrival_time: bool = False,
        limit: int = 6,
        score_reliability: bool = True,
    ) -> ConnectionSearchResult:
        """
        Find connections between two stations.

        Args:
            origin: Departure station name.
            destination: Destination station name.
            datetime_iso: Departure time, or arrival deadline when
                is_arrival_time is True. None means now.
            is_arrival_time: Arrive by datetime_iso instead of departing at it.
            limit: Maximum number of connections.
            score_reliability: Attach reliability insights.

        Returns:
            ConnectionSearchResult in provider order.

        Raises:
            TransportAPIError: If the provider rejects the request.
        """
        raw = self.client.get_connections(origin, destination, datetime_iso, is_arrival_time, limit)
        return assemble_connections(raw, limit=limit, score_reliability=score_reliability)

    def get_connection_details(
        self,
        origin: str,
        destination: str,
        datetime_iso: str,
        connection_index: int = 0,
    ) -> ConnectionDetails:
        """
        Get one connection with platforms and timing per leg.

        Falls back to the first connection when connection_index is out of range.

        Raises:
            ValueError: If no connections are found.
        """
        result = self.find_connections(origin, destination, datetime_iso, False, 6)
        if not result.connections:
            raise ValueError(f"No connections found from '{origin}' to '{destination}'")

        if 0 <= connection_index < len(result.connections):
            connection = result.connections[connection_index]
        else:
            connection = result.connections[0]
        return ConnectionDetails(
            connection=connection,
            summary=describe_connection(connection, origin, destination),
        )

    def estimate_weather(self, stations: List[StationCoordinate]) -> WeatherInsight:
        """Weather risk for up to four stations along a journey."""
        return self.weather.estimate(stations)

    def check_disruptions(self, station: str) -> DisruptionReport:
        """Classify service health around a station."""
        return self.disruptions.check(station)

    def cleanup(self) -> None:
        """Release resources and clear caches."""
        self.weather.clear_cache()
        self.client.close()
        logger.info("Cleaned up explorer resources")
