"""Area-wide service health checks around a station."""

import logging
import random
from datetime import datetime, timezone
from typing import Callable, List, Optional

import requests

from .models import DelayedRoute, DisruptionReport
from .normalizer import assemble_connections
from .timeutils import round_half_up
from .transport_client import TransportAPIError, TransportClient

logger = logging.getLogger(__name__)

MAJOR_HUBS = [
    "Zürich HB", "Bern", "Basel SBB", "Genève",
    "Lausanne", "Luzern", "Winterthur", "St. Gallen",
]
HUBS_TO_CHECK = 4
CONNECTIONS_PER_HUB = 2

STATUS_NORMAL = "normal"
STATUS_MINOR = "minor_delays"
STATUS_MAJOR = "major_delays"
STATUS_DISRUPTED = "disrupted"


def candidate_hubs(station_name: str) -> List[str]:
    """Hubs whose first word does not appear in the station name."""
    lowered = station_name.lower()
    return [hub for hub in MAJOR_HUBS if hub.lower().split(" ")[0] not in lowered]


def classify_status(
    cancelled_or_missing: int,
    max_delay: int,
    delayed_count: int,
    total_checked: int,
) -> str:
    """First matching rule wins, from most to least severe."""
    if cancelled_or_missing >= 2 or max_delay > 30:
        return STATUS_DISRUPTED
    if max_delay > 15 or delayed_count > total_checked * 0.5:
        return STATUS_MAJOR
    if max_delay > 5 or delayed_count > 0:
        return STATUS_MINOR
    return STATUS_NORMAL


def build_summary(status: str, station: str, delayed_count: int, average_delay: int, max_delay: int) -> str:
    if status == STATUS_DISRUPTED:
        return f"⚠️ Significant disruptions around {station}. {delayed_count} delayed, max {max_delay}min."
    if status == STATUS_MAJOR:
        return f"🟠 Major delays around {station}. Average {average_delay}min."
    if status == STATUS_MINOR:
        return f"🟡 Minor delays around {station}. {delayed_count} delayed, avg {average_delay}min."
    return f"✅ Service normal around {station}."


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DisruptionChecker:
    """
    Samples connections from a station to major hubs and classifies
    the overall service status.
    """

    def __init__(
        self,
        client: Optional[TransportClient] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        """
        Args:
            client: Transport API client.
            rng: Random source used to pick hubs. Seed it for reproducible picks.
            clock: Returns the current aware datetime.
        """
        self.client = client or TransportClient()
        self.rng = rng or random.Random()
        self.clock = clock

    def select_hubs(self, station_name: str) -> List[str]:
        hubs = candidate_hubs(station_name)
        self.rng.shuffle(hubs)
        return hubs[:HUBS_TO_CHECK]

    def check(self, station_name: str) -> DisruptionReport:
        """
        Check delays around a station.

        Hub lookups run one after another. A failed lookup or an empty
        result counts as cancelled/missing rather than aborting the report.
        """
        now = self.clock()
        hubs = self.select_hubs(station_name)

        delays: List[int] = []
        delayed_routes: List[DelayedRoute] = []
        cancelled_or_missing = 0
        total_checked = 0

        for hub in hubs:
            try:
                raw = self.client.get_connections(
                    station_name, hub, now.isoformat(), False, CONNECTIONS_PER_HUB
                )
            except (TransportAPIError, requests.RequestException, ValueError) as e:
                logger.warning(f"Disruption check {station_name} -> {hub} failed: {e}")
                cancelled_or_missing += 1
                continue

            result = assemble_connections(raw)
            total_checked += len(result.connections)
            if not result.connections:
                cancelled_or_missing += 1

            for conn in result.connections:
                for leg in conn.legs:
                    if leg.delay_minutes and leg.delay_minutes > 0:
                        delays.append(leg.delay_minutes)
                        delayed_routes.append(DelayedRoute(
                            route=f"{leg.origin.name} → {leg.destination.name}",
                            line=leg.line or "walk",
                            scheduled_departure=leg.origin.time_planned,
                            delay_minutes=leg.delay_minutes,
                        ))

        delayed_count = len(delayed_routes)
        average_delay = round_half_up(sum(delays) / len(delays)) if delays else 0
        max_delay = max(delays) if delays else 0
        status = classify_status(cancelled_or_missing, max_delay, delayed_count, total_checked)
        logger.debug(f"{station_name}: {status} ({delayed_count} delayed, {cancelled_or_missing} missing)")

        return DisruptionReport(
            station=station_name,
            checked_at=now.isoformat(),
            routes_checked=[f"{station_name} → {hub}" for hub in hubs],
            total_connections_checked=total_checked,
            delayed_connections_count=delayed_count,
            cancelled_or_missing=cancelled_or_missing,
            average_delay_minutes=average_delay,
            max_delay_minutes=max_delay,
            delayed_routes=delayed_routes,
            status=status,
            summary=build_summary(status, station_name, delayed_count, average_delay, max_delay),
        )
