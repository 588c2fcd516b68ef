"""Normalize raw provider connections into canonical Connection objects."""

import logging
import re
from typing import Any, Dict, List, Optional

from .models import Connection, ConnectionSearchResult, Leg, Station, StopTime
from .reliability import calculate_reliability
from .timeutils import minutes_between, parse_duration

logger = logging.getLogger(__name__)

TAG_FASTEST = "fastest"
TAG_FEWEST_TRANSFERS = "fewest transfers"
TAG_RECOMMENDED = "recommended"

_ID_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9-]")


def _station_name(checkpoint: Dict[str, Any]) -> str:
    station = checkpoint.get("station") or {}
    return station.get("name") or ""


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _stop_time(checkpoint: Dict[str, Any], key: str) -> StopTime:
    """
    Build a StopTime from a provider checkpoint.

    Args:
        checkpoint: Raw checkpoint with station, times, platform and prognosis.
        key: "departure" or "arrival", selecting which time to read.
    """
    prognosis = checkpoint.get("prognosis") or {}
    planned = checkpoint.get(key) or ""
    actual = prognosis.get(key)
    platform = prognosis.get("platform") or checkpoint.get("platform")

    return StopTime(
        name=_station_name(checkpoint),
        time_planned=planned,
        time_actual=actual if actual and actual != planned else None,
        platform=platform or None,
    )


def _pass_list(journey: Dict[str, Any]) -> Optional[List[StopTime]]:
    pass_list = journey.get("passList")
    if not pass_list:
        return None
    stops = []
    for checkpoint in pass_list:
        key = "departure" if checkpoint.get("departure") else "arrival"
        stops.append(_stop_time(checkpoint, key))
    return stops


def normalize_leg(section: Dict[str, Any]) -> Leg:
    """
    Map one raw section (ride or walk) to a Leg.

    Delay is derived from the departure checkpoint only and is kept only
    when positive, so early running never shows up as negative delay.
    """
    departure = section.get("departure") or {}
    arrival = section.get("arrival") or {}
    is_walk = bool(section.get("walk"))

    leg = Leg(
        type="walk" if is_walk else "ride",
        origin=_stop_time(departure, "departure"),
        destination=_stop_time(arrival, "arrival"),
    )

    journey = section.get("journey")
    if not is_walk and journey:
        leg.line = journey.get("name") or journey.get("category") or None
        leg.operator = journey.get("operator") or None
        leg.stops = _pass_list(journey)

    live_departure = (departure.get("prognosis") or {}).get("departure")
    if live_departure and departure.get("departure"):
        delay = minutes_between(departure["departure"], live_departure)
        if delay is not None and delay > 0:
            leg.delay_minutes = delay

    return leg


def normalize_legs(sections: Optional[List[Dict[str, Any]]]) -> List[Leg]:
    """Normalize every section of a raw connection, preserving order."""
    return [normalize_leg(section) for section in sections or []]


def generate_connection_id(raw: Dict[str, Any]) -> str:
    """
    Derive a stable id from the departure time and the ride line names.

    The same raw connection always yields the same id. Two connections with
    the same departure and line sequence share an id.
    """
    departure = (raw.get("from") or {}).get("departure") or ""
    lines = "-".join(
        (section["journey"].get("name") or "")
        for section in raw.get("sections") or []
        if section.get("journey")
    )
    return _ID_UNSAFE_RE.sub("_", f"{departure}-{lines}")


def assemble_connections(
    raw_connections: List[Dict[str, Any]],
    limit: Optional[int] = None,
    score_reliability: bool = False,
) -> ConnectionSearchResult:
    """
    Build canonical connections for one query result page.

    Args:
        raw_connections: Provider connections in provider order.
        limit: Optional cap applied before tags are computed.
        score_reliability: Attach a ReliabilityInsight to each connection.

    Returns:
        ConnectionSearchResult with tagged connections and the endpoints
        taken from the first raw connection.
    """
    batch = list(raw_connections or [])
    if limit is not None:
        batch = batch[:limit]
    if not batch:
        return ConnectionSearchResult(connections=[])

    durations = [parse_duration(raw.get("duration")) for raw in batch]
    transfers = [_as_int(raw.get("transfers")) for raw in batch]
    fastest_duration = min(durations)
    fewest_transfers = min(transfers)

    connections: List[Connection] = []
    for index, raw in enumerate(batch):
        legs = normalize_legs(raw.get("sections"))

        tags = []
        if durations[index] == fastest_duration:
            tags.append(TAG_FASTEST)
        if transfers[index] == fewest_transfers:
            tags.append(TAG_FEWEST_TRANSFERS)
        if index == 0:
            tags.append(TAG_RECOMMENDED)

        connection = Connection(
            id=generate_connection_id(raw),
            departure_time=(raw.get("from") or {}).get("departure") or "",
            arrival_time=(raw.get("to") or {}).get("arrival") or "",
            duration_minutes=durations[index],
            transfers_count=transfers[index],
            legs=legs,
            tags=tags,
        )
        if score_reliability and legs:
            connection.reliability = calculate_reliability(legs, connection.departure_time)
            connection.reliability_score = connection.reliability.score
        connections.append(connection)

    first = batch[0]
    from_station = Station(name=_station_name(first.get("from") or {}))
    to_station = Station(name=_station_name(first.get("to") or {}))

    logger.debug(f"Assembled {len(connections)} connections {from_station.name} -> {to_station.name}")
    return ConnectionSearchResult(
        connections=connections,
        from_station=from_station,
        to_station=to_station,
    )
