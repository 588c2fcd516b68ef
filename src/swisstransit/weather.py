"""Weather risk estimation from Open-Meteo hourly forecasts."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd
import requests

from .models import Reason, StationCoordinate, WeatherInsight, WeatherSample
from .timeutils import parse_timestamp, round_half_up, to_local

logger = logging.getLogger(__name__)

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
HOURLY_FIELDS = [
    "temperature_2m",
    "precipitation",
    "snowfall",
    "wind_speed_10m",
    "wind_gusts_10m",
    "weather_code",
]
WEATHER_CACHE_TTL = 15 * 60  # seconds
MAX_WEATHER_SAMPLES = 4
MAX_PENALTY = 0.35
MAX_REASONS = 2
REQUEST_TIMEOUT = 10  # seconds

CacheKey = Tuple[float, float, str, int]


class WeatherAPIError(Exception):
    """Raised when the forecast provider answers with a non-2xx status."""

    def __init__(self, status_code: int):
        super().__init__(f"Weather API error: {status_code}")
        self.status_code = status_code


class WeatherCache:
    """
    Key -> (sample, expiry) map with lazy expiry.

    Entries are only checked when looked up; nothing sweeps them in the
    background. A racing duplicate fetch simply overwrites the entry.
    """

    def __init__(self, ttl: float = WEATHER_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[CacheKey, Tuple[WeatherSample, float]] = {}

    @staticmethod
    def make_key(lat: float, lon: float, date: str, hour: int) -> CacheKey:
        return (round(lat, 2), round(lon, 2), date, hour)

    def get(self, key: CacheKey) -> Optional[WeatherSample]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        sample, expires = entry
        if expires <= self.clock():
            self._entries.pop(key, None)
            return None
        return sample

    def set(self, key: CacheKey, sample: WeatherSample) -> None:
        self._entries[key] = (sample, self.clock() + self.ttl)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class WeatherClient:
    """Fetches one local day of hourly forecast for a point."""

    def __init__(
        self,
        url: str = OPEN_METEO_URL,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_hourly(self, lat: float, lon: float, date: str) -> pd.DataFrame:
        """
        Get the hourly forecast for a single Europe/Zurich calendar day.

        Returns:
            DataFrame with a "time" column (local "YYYY-MM-DDTHH:MM") and
            one column per entry of HOURLY_FIELDS that the provider returned.

        Raises:
            WeatherAPIError: On a non-2xx response.
        """
        params = {
            "latitude": f"{lat:.4f}",
            "longitude": f"{lon:.4f}",
            "hourly": ",".join(HOURLY_FIELDS),
            "start_date": date,
            "end_date": date,
            "timezone": "Europe/Zurich",
        }
        logger.debug(f"Fetching forecast for {lat:.4f},{lon:.4f} on {date}")
        response = self.session.get(self.url, params=params, timeout=self.timeout)
        if not response.ok:
            raise WeatherAPIError(response.status_code)

        hourly = (response.json() or {}).get("hourly") or {}
        times = hourly.get("time") or []
        columns = {"time": times}
        for name in HOURLY_FIELDS:
            values = hourly.get(name)
            if values is not None and len(values) == len(times):
                columns[name] = values
        return pd.DataFrame(columns)


def _value(row: pd.Series, column: str) -> float:
    """Numeric forecast value; null becomes 0, non-numeric raises ValueError."""
    value = row.get(column)
    if value is None or pd.isna(value):
        return 0.0
    return float(pd.to_numeric(value))


def _sample_penalties(sample: WeatherSample) -> List[Reason]:
    """Reasons triggered by a single sample, before deduplication."""
    triggered = []
    if sample.temperature < 1 and sample.precipitation > 0.5:
        triggered.append(Reason("snow_risk", f"Snow risk at {sample.station}", 0.20))

    if sample.precipitation > 5:
        triggered.append(Reason("heavy_rain", f"Heavy rain at {sample.station}", 0.12))
    elif sample.precipitation > 2:
        triggered.append(Reason("rain", "Rain expected", 0.06))

    if sample.wind_gusts > 60:
        triggered.append(Reason("high_wind", f"Strong gusts ({round_half_up(sample.wind_gusts)}km/h)", 0.15))
    elif sample.wind_gusts > 40:
        triggered.append(Reason("wind", "Windy conditions", 0.08))

    if sample.temperature < -5:
        triggered.append(Reason("freezing", f"Freezing ({round_half_up(sample.temperature)}°C)", 0.05))
    return triggered


def weather_level(penalty: float) -> str:
    if penalty >= 0.20:
        return "high"
    if penalty >= 0.08:
        return "medium"
    return "low"


class WeatherRiskEstimator:
    """
    Estimates weather risk along a journey.

    Each station lookup is cached for WEATHER_CACHE_TTL seconds per
    (rounded position, local date, local hour). Lookups for different
    stations run concurrently; one failing lookup only drops its sample.
    """

    def __init__(
        self,
        client: Optional[WeatherClient] = None,
        cache: Optional[WeatherCache] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            client: Forecast client. A default WeatherClient is created if omitted.
            cache: Sample cache. A fresh WeatherCache is created if omitted.
            timeout: Overall seconds to wait for all lookups; None waits for all.
        """
        self.client = client or WeatherClient()
        self.cache = cache if cache is not None else WeatherCache()
        self.timeout = timeout

    def fetch_sample(self, coord: StationCoordinate) -> Optional[WeatherSample]:
        """Forecast for one station at its local hour, or None if unavailable."""
        when = parse_timestamp(coord.time)
        if when is None:
            logger.warning(f"Unparseable time {coord.time!r} for {coord.name}")
            return None
        local = to_local(when)
        date = local.strftime("%Y-%m-%d")
        key = WeatherCache.make_key(coord.lat, coord.lon, date, local.hour)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Using cached weather for {coord.name}")
            return replace(cached, station=coord.name, time=coord.time)

        try:
            hourly = self.client.fetch_hourly(coord.lat, coord.lon, date)
        except (WeatherAPIError, requests.RequestException, ValueError) as e:
            logger.warning(f"Weather lookup failed for {coord.name}: {e}")
            return None

        if hourly.empty:
            return None
        hours = pd.to_numeric(hourly["time"].astype(str).str.slice(11, 13), errors="coerce")
        matches = hourly[hours == local.hour]
        if matches.empty:
            logger.debug(f"No forecast hour {local.hour} for {coord.name}")
            return None

        row = matches.iloc[0]
        try:
            sample = WeatherSample(
                station=coord.name,
                time=coord.time,
                lat=coord.lat,
                lon=coord.lon,
                temperature=_value(row, "temperature_2m"),
                precipitation=_value(row, "precipitation"),
                snowfall=_value(row, "snowfall"),
                wind_speed=_value(row, "wind_speed_10m"),
                wind_gusts=_value(row, "wind_gusts_10m"),
                weather_code=int(_value(row, "weather_code")),
            )
        except (ValueError, TypeError) as e:
            logger.warning(f"Malformed forecast for {coord.name}: {e}")
            return None
        self.cache.set(key, sample)
        return sample

    def estimate(self, stations: List[StationCoordinate]) -> WeatherInsight:
        """
        Aggregate weather risk over up to MAX_WEATHER_SAMPLES stations.

        Each reason code counts once toward the penalty, however many
        stations trigger it. The total is capped at MAX_PENALTY.
        """
        coords = list(stations)[:MAX_WEATHER_SAMPLES]
        samples = self._fetch_all(coords)

        reasons: Dict[str, Reason] = {}
        for sample in samples:
            for reason in _sample_penalties(sample):
                reasons.setdefault(reason.code, reason)

        penalty = min(MAX_PENALTY, round(sum(r.penalty for r in reasons.values()), 6))
        ranked = sorted(reasons.values(), key=lambda r: r.penalty, reverse=True)

        return WeatherInsight(
            level=weather_level(penalty),
            penalty=penalty,
            reasons=ranked[:MAX_REASONS],
            samples=samples,
        )

    def _fetch_all(self, coords: List[StationCoordinate]) -> List[WeatherSample]:
        if not coords:
            return []

        executor = ThreadPoolExecutor(max_workers=len(coords))
        try:
            futures = [executor.submit(self.fetch_sample, coord) for coord in coords]
            done, not_done = wait(futures, timeout=self.timeout)
            for future in not_done:
                future.cancel()
            if not_done:
                logger.warning(f"Weather lookups timed out for {len(not_done)} station(s)")

            samples = []
            for future in futures:
                if future not in done:
                    continue
                sample = future.result()
                if sample is not None:
                    samples.append(sample)
            return samples
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def clear_cache(self) -> None:
        self.cache.clear()


def weather_icon(sample: WeatherSample) -> str:
    """Pick a single emoji summarizing a sample."""
    if sample.snowfall > 0:
        return "❄️"
    if sample.precipitation > 5:
        return "🌧️"
    if sample.precipitation > 0:
        return "🌦️"
    if sample.wind_gusts > 50:
        return "💨"
    if sample.temperature > 25:
        return "☀️"
    if sample.temperature < 0:
        return "🥶"
    return "⛅"


def describe_weather(sample: WeatherSample) -> str:
    """Short text such as "3°C, 2.5mm rain, gusts 45km/h"."""
    parts = [f"{round_half_up(sample.temperature)}°C"]
    if sample.precipitation > 0:
        parts.append(f"{sample.precipitation:.1f}mm rain")
    if sample.snowfall > 0:
        parts.append(f"{sample.snowfall:.1f}cm snow")
    if sample.wind_gusts > 30:
        parts.append(f"gusts {round_half_up(sample.wind_gusts)}km/h")
    return ", ".join(parts)
