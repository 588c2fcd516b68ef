"""Reliability scoring for multi-leg connections."""

import logging
from typing import List, Optional

from .models import Leg, Reason, ReliabilityInsight, TransferRisk, WeatherInsight
from .timeutils import minutes_between, parse_timestamp, to_local

logger = logging.getLogger(__name__)

# High-traffic interchange hubs with elevated transfer risk
BIG_STATIONS = [
    "Zürich HB", "Bern", "Basel SBB", "Lausanne", "Genève",
    "Luzern", "Winterthur", "Olten", "Zürich Flughafen",
]

TRANSFER_PENALTY = 0.12
BIG_STATION_PENALTY = 0.08
PEAK_TIME_PENALTY = 0.08
CURRENT_DELAY_PENALTY = 0.05
CURRENT_DELAY_THRESHOLD = 3  # minutes

# (upper margin bound in minutes, penalty, risk level, reason code)
MARGIN_BANDS = [
    (4, 0.35, "high", "tight_transfer"),
    (6, 0.20, "medium", "short_transfer"),
    (8, 0.10, "low", None),
]

# Weekday rush hours as (start, end) in fractional local hours, inclusive
PEAK_WINDOWS = [(7.0, 9.0), (16.5, 18.5)]

MAX_REASONS = 3


def is_big_station(name: str) -> bool:
    """Case-insensitive substring match against BIG_STATIONS."""
    lowered = (name or "").lower()
    return any(station.lower() in lowered for station in BIG_STATIONS)


def is_peak_time(departure_time: str) -> bool:
    """True for Monday–Friday departures inside a local rush-hour window."""
    dt = parse_timestamp(departure_time)
    if dt is None:
        return False
    local = to_local(dt)
    if local.weekday() >= 5:
        return False
    hour = local.hour + local.minute / 60
    return any(start <= hour <= end for start, end in PEAK_WINDOWS)


def risk_level_for_score(score: float) -> str:
    """Map a reliability score to a risk level. High score means low risk."""
    if score >= 0.75:
        return "low"
    if score >= 0.55:
        return "medium"
    return "high"


def _transfer_margin(arriving: Leg, departing: Leg) -> Optional[int]:
    arrival = arriving.destination.time_actual or arriving.destination.time_planned
    return minutes_between(arrival, departing.origin.time_planned)


def calculate_reliability(
    legs: List[Leg],
    departure_time: str,
    weather: Optional[WeatherInsight] = None,
) -> ReliabilityInsight:
    """
    Score how likely a connection is to arrive on time.

    Penalties are summed and the score is clamped to [0, 1] only at the end.

    Args:
        legs: Legs of the connection in travel order.
        departure_time: Departure used to detect rush hour.
        weather: Optional weather insight whose penalty is added on top.

    Returns:
        ReliabilityInsight with at most three reasons, highest penalty first,
        and one TransferRisk per transfer.
    """
    reasons: List[Reason] = []
    transfer_risks: List[TransferRisk] = []
    total_penalty = 0.0

    transfers = len(legs) - 1
    if transfers > 0:
        penalty = TRANSFER_PENALTY * transfers
        total_penalty += penalty
        reasons.append(Reason(
            code="transfers",
            label=f"{transfers} transfer{'s' if transfers > 1 else ''}",
            penalty=penalty,
        ))

    big_station_counted = False
    for arriving, departing in zip(legs, legs[1:]):
        margin = _transfer_margin(arriving, departing)
        station = arriving.destination.name
        transfer_at_hub = is_big_station(station)
        big_station = transfer_at_hub or is_big_station(departing.origin.name)

        risk_level = "low"
        if margin is not None:
            for upper, penalty, level, code in MARGIN_BANDS:
                if margin < upper:
                    total_penalty += penalty
                    risk_level = level
                    if code == "tight_transfer":
                        reasons.append(Reason(code, f"{margin}min transfer at {station}", penalty))
                    elif code == "short_transfer":
                        reasons.append(Reason(code, f"{margin}min transfer", penalty))
                    break
        else:
            logger.debug(f"Unknown transfer margin at {station}")

        if transfer_at_hub and not big_station_counted:
            total_penalty += BIG_STATION_PENALTY
            reasons.append(Reason("big_station", "Large station transfer", BIG_STATION_PENALTY))
            big_station_counted = True

        transfer_risks.append(TransferRisk(
            from_station=station,
            to_station=departing.origin.name,
            margin_minutes=margin if margin is not None else 0,
            risk_level=risk_level,
            is_big_station=big_station,
        ))

    if is_peak_time(departure_time):
        total_penalty += PEAK_TIME_PENALTY
        reasons.append(Reason("peak_time", "Rush hour travel", PEAK_TIME_PENALTY))

    delayed = [leg for leg in legs if (leg.delay_minutes or 0) > CURRENT_DELAY_THRESHOLD]
    if delayed:
        total_penalty += CURRENT_DELAY_PENALTY
        reasons.append(Reason(
            code="current_delay",
            label=f"Current delay (+{delayed[0].delay_minutes}min)",
            penalty=CURRENT_DELAY_PENALTY,
        ))

    if weather is not None and weather.penalty > 0:
        total_penalty += weather.penalty
        label = weather.reasons[0].label if weather.reasons else "Adverse weather"
        reasons.append(Reason("weather", label, weather.penalty))

    score = max(0.0, min(1.0, round(1 - total_penalty, 6)))
    reasons.sort(key=lambda r: r.penalty, reverse=True)

    return ReliabilityInsight(
        score=score,
        level=risk_level_for_score(score),
        reasons=reasons[:MAX_REASONS],
        transfer_risks=transfer_risks,
    )
