"""transport.opendata.ch API client."""

import logging
from typing import Any, Dict, List, Optional

import requests

from .models import Station
from .timeutils import parse_timestamp, to_local

logger = logging.getLogger(__name__)

TRANSPORT_BASE_URL = "https://transport.opendata.ch/v1"
USER_AGENT = "SwissTransitExplorer/1.0"
REQUEST_TIMEOUT = 10  # seconds


class TransportAPIError(Exception):
    """Raised when the provider answers with a non-2xx status."""

    def __init__(self, status_code: int, url: str = ""):
        super().__init__(f"API error: {status_code}")
        self.status_code = status_code
        self.url = url


class TransportClient:
    """Fetches stations and raw connections from transport.opendata.ch."""

    def __init__(
        self,
        base_url: str = TRANSPORT_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, without trailing slash.
            timeout: Per-request timeout in seconds.
            session: Optional shared requests session.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    def search_stations(self, query: str, limit: int = 8) -> List[Station]:
        """
        Search stations by name.

        Args:
            query: Free-text station name (e.g., "Zürich").
            limit: Maximum number of stations to return.

        Returns:
            Stations with a non-empty name, in provider order.
        """
        data = self._get("locations", {"query": query, "type": "station"})
        stations = []
        for location in data.get("stations") or []:
            name = location.get("name")
            if not name:
                continue
            location_id = location.get("id")
            stations.append(Station(name=name, id=str(location_id) if location_id else None))
        return stations[:limit]

    def get_connections(
        self,
        origin: str,
        destination: str,
        datetime_iso: Optional[str] = None,
        is_arrival_time: bool = False,
        limit: int = 6,
    ) -> List[Dict[str, Any]]:
        """
        Fetch raw connections between two stations.

        Args:
            origin: Departure station name.
            destination: Arrival station name.
            datetime_iso: Departure (or arrival) time. Omitted means "now".
            is_arrival_time: Treat datetime_iso as the latest arrival.
            limit: Number of connections requested from the provider.

        Returns:
            The provider's raw connection objects.

        Raises:
            TransportAPIError: On a non-2xx response.
        """
        params: Dict[str, Any] = {"from": origin, "to": destination, "limit": limit}
        when = parse_timestamp(datetime_iso)
        if when is not None:
            local = to_local(when)
            params["date"] = local.strftime("%Y-%m-%d")
            params["time"] = local.strftime("%H:%M")
            params["isArrivalTime"] = "1" if is_arrival_time else "0"

        data = self._get("connections", params)
        return data.get("connections") or []

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        logger.debug(f"Fetching {url} with {params}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {url}: {e}")
            raise

        if not response.ok:
            logger.error(f"{url} returned HTTP {response.status_code}")
            raise TransportAPIError(response.status_code, url)
        return response.json()

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
