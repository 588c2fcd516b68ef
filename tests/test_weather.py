"""Tests for the weather risk estimator."""

import time
import unittest
from unittest.mock import MagicMock
import sys
from pathlib import Path

import pandas as pd

# Add src to path so we can import swisstransit
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from swisstransit.models import StationCoordinate, WeatherSample
from swisstransit.weather import (
    WeatherAPIError,
    WeatherCache,
    WeatherClient,
    WeatherRiskEstimator,
    describe_weather,
    weather_icon,
)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def hourly_frame(temperature=5.0, precipitation=0.0, snowfall=0.0, wind_gusts=10.0, date="2024-01-10"):
    return pd.DataFrame({
        "time": [f"{date}T07:00", f"{date}T08:00", f"{date}T09:00"],
        "temperature_2m": [0.0, temperature, 0.0],
        "precipitation": [0.0, precipitation, 0.0],
        "snowfall": [0.0, snowfall, 0.0],
        "wind_speed_10m": [5.0, 12.0, 5.0],
        "wind_gusts_10m": [0.0, wind_gusts, 0.0],
        "weather_code": [0, 61, 0],
    })


def coord(name="Zürich HB", lat=47.378, lon=8.540, time="2024-01-10T08:30:00+01:00"):
    return StationCoordinate(name=name, lat=lat, lon=lon, time=time)


def make_sample(**overrides):
    values = dict(
        station="Bern", time="2024-01-10T08:00:00+01:00", lat=46.95, lon=7.44,
        temperature=5.0, precipitation=0.0, snowfall=0.0,
        wind_speed=10.0, wind_gusts=10.0, weather_code=0,
    )
    values.update(overrides)
    return WeatherSample(**values)


class TestWeatherCache(unittest.TestCase):
    """Test the TTL cache."""

    def test_key_rounds_position(self):
        self.assertEqual(
            WeatherCache.make_key(47.3781, 8.5402, "2024-01-10", 8),
            (47.38, 8.54, "2024-01-10", 8),
        )

    def test_entry_expires_lazily(self):
        clock = FakeClock()
        cache = WeatherCache(ttl=900, clock=clock)
        key = WeatherCache.make_key(47.38, 8.54, "2024-01-10", 8)
        cache.set(key, make_sample())

        clock.now += 899
        self.assertIsNotNone(cache.get(key))
        self.assertEqual(len(cache), 1)

        clock.now += 1
        self.assertIsNone(cache.get(key))
        self.assertEqual(len(cache), 0)


class TestWeatherRiskEstimator(unittest.TestCase):
    """Test sampling, caching and penalty aggregation."""

    def setUp(self):
        self.client = MagicMock(spec=WeatherClient)
        self.clock = FakeClock()
        self.estimator = WeatherRiskEstimator(
            client=self.client,
            cache=WeatherCache(clock=self.clock),
        )

    def test_extracts_matching_local_hour(self):
        self.client.fetch_hourly.return_value = hourly_frame(temperature=3.5, precipitation=1.2)

        sample = self.estimator.fetch_sample(coord())

        self.client.fetch_hourly.assert_called_once_with(47.378, 8.540, "2024-01-10")
        self.assertEqual(sample.station, "Zürich HB")
        self.assertEqual(sample.temperature, 3.5)
        self.assertEqual(sample.precipitation, 1.2)
        self.assertEqual(sample.wind_speed, 12.0)
        self.assertEqual(sample.weather_code, 61)

    def test_utc_time_resolved_to_local_hour(self):
        self.client.fetch_hourly.return_value = hourly_frame(temperature=-2.0)
        sample = self.estimator.fetch_sample(coord(time="2024-01-10T07:10:00Z"))
        self.assertEqual(sample.temperature, -2.0)

    def test_cache_hit_within_ttl(self):
        self.client.fetch_hourly.return_value = hourly_frame()

        self.estimator.fetch_sample(coord())
        again = self.estimator.fetch_sample(coord(name="Zürich, Hauptbahnhof", lat=47.3779))

        self.assertEqual(self.client.fetch_hourly.call_count, 1)
        self.assertEqual(again.station, "Zürich, Hauptbahnhof")

    def test_cache_miss_after_ttl(self):
        self.client.fetch_hourly.return_value = hourly_frame()

        self.estimator.fetch_sample(coord())
        self.clock.now += 15 * 60
        self.estimator.fetch_sample(coord())

        self.assertEqual(self.client.fetch_hourly.call_count, 2)

    def test_missing_hour_yields_nothing(self):
        self.client.fetch_hourly.return_value = hourly_frame()
        self.assertIsNone(self.estimator.fetch_sample(coord(time="2024-01-10T15:00:00+01:00")))

    def test_provider_error_yields_nothing(self):
        self.client.fetch_hourly.side_effect = WeatherAPIError(503)
        self.assertIsNone(self.estimator.fetch_sample(coord()))

    def test_failed_station_does_not_fail_estimate(self):
        def fetch(lat, lon, date):
            if lat > 47:
                raise WeatherAPIError(500)
            return hourly_frame(precipitation=3.0)

        self.client.fetch_hourly.side_effect = fetch
        insight = self.estimator.estimate([coord(), coord(name="Bern", lat=46.949, lon=7.439)])

        self.assertEqual([s.station for s in insight.samples], ["Bern"])
        self.assertEqual([r.code for r in insight.reasons], ["rain"])
        self.assertAlmostEqual(insight.penalty, 0.06)
        self.assertEqual(insight.level, "low")

    def test_malformed_forecast_drops_only_that_station(self):
        def fetch(lat, lon, date):
            if lat > 46.15:
                return hourly_frame(temperature="n/a")
            return hourly_frame()

        self.client.fetch_hourly.side_effect = fetch
        insight = self.estimator.estimate([coord(name="A", lat=46.1), coord(name="B", lat=46.2)])

        self.assertEqual([s.station for s in insight.samples], ["A"])
        self.assertEqual(insight.level, "low")

    def test_slow_station_omitted_after_timeout(self):
        def fetch(lat, lon, date):
            if lat > 46.15:
                time.sleep(1)
            return hourly_frame()

        self.client.fetch_hourly.side_effect = fetch
        estimator = WeatherRiskEstimator(client=self.client, cache=WeatherCache(clock=self.clock), timeout=0.3)

        started = time.monotonic()
        insight = estimator.estimate([coord(name="A", lat=46.1), coord(name="B", lat=46.2)])
        elapsed = time.monotonic() - started

        self.assertLess(elapsed, 0.9)
        self.assertEqual([s.station for s in insight.samples], ["A"])

    def test_only_first_four_stations_sampled(self):
        self.client.fetch_hourly.return_value = hourly_frame()
        stations = [coord(name=f"S{i}", lat=46.0 + i) for i in range(6)]

        insight = self.estimator.estimate(stations)

        self.assertEqual(self.client.fetch_hourly.call_count, 4)
        self.assertEqual([s.station for s in insight.samples], ["S0", "S1", "S2", "S3"])

    def test_reason_code_counted_once(self):
        self.client.fetch_hourly.return_value = hourly_frame(precipitation=6.0)
        insight = self.estimator.estimate([
            coord(name="A", lat=46.1),
            coord(name="B", lat=46.2),
        ])

        self.assertAlmostEqual(insight.penalty, 0.12)
        self.assertEqual(insight.level, "medium")
        self.assertEqual(len(insight.reasons), 1)
        self.assertEqual(insight.reasons[0].label, "Heavy rain at A")

    def test_penalty_capped_and_reasons_top_two(self):
        self.client.fetch_hourly.return_value = hourly_frame(
            temperature=-7.0, precipitation=6.0, wind_gusts=70.0
        )
        insight = self.estimator.estimate([coord()])

        self.assertEqual(insight.penalty, 0.35)
        self.assertEqual(insight.level, "high")
        self.assertEqual([r.code for r in insight.reasons], ["snow_risk", "high_wind"])

    def test_wind_and_freezing(self):
        self.client.fetch_hourly.return_value = hourly_frame(temperature=-6.0, wind_gusts=45.0)
        insight = self.estimator.estimate([coord()])

        self.assertAlmostEqual(insight.penalty, 0.13)
        self.assertEqual([r.code for r in insight.reasons], ["wind", "freezing"])
        self.assertEqual(insight.reasons[1].label, "Freezing (-6°C)")

    def test_labels_round_half_up(self):
        self.client.fetch_hourly.return_value = hourly_frame(temperature=-5.5, wind_gusts=62.5)
        insight = self.estimator.estimate([coord()])

        self.assertEqual([r.code for r in insight.reasons], ["high_wind", "freezing"])
        self.assertEqual(insight.reasons[0].label, "Strong gusts (63km/h)")
        self.assertEqual(insight.reasons[1].label, "Freezing (-5°C)")

    def test_calm_weather(self):
        self.client.fetch_hourly.return_value = hourly_frame()
        insight = self.estimator.estimate([coord()])

        self.assertEqual(insight.penalty, 0)
        self.assertEqual(insight.level, "low")
        self.assertEqual(insight.reasons, [])
        self.assertEqual(len(insight.samples), 1)

    def test_empty_input(self):
        insight = self.estimator.estimate([])
        self.assertEqual(insight.samples, [])
        self.assertEqual(insight.level, "low")


class TestWeatherClient(unittest.TestCase):
    """Test Open-Meteo request handling."""

    def setUp(self):
        self.session = MagicMock()
        self.client = WeatherClient(session=self.session)

    def test_fetch_hourly_builds_frame(self):
        response = MagicMock(ok=True)
        response.json.return_value = {
            "hourly": {
                "time": ["2024-01-10T08:00", "2024-01-10T09:00"],
                "temperature_2m": [1.0, None],
                "precipitation": [0.2, 0.0],
            }
        }
        self.session.get.return_value = response

        frame = self.client.fetch_hourly(47.378, 8.54, "2024-01-10")

        params = self.session.get.call_args.kwargs["params"]
        self.assertEqual(params["latitude"], "47.3780")
        self.assertEqual(params["start_date"], "2024-01-10")
        self.assertEqual(params["end_date"], "2024-01-10")
        self.assertEqual(params["timezone"], "Europe/Zurich")
        self.assertEqual(list(frame["time"]), ["2024-01-10T08:00", "2024-01-10T09:00"])
        self.assertNotIn("snowfall", frame.columns)

    def test_null_values_default_to_zero(self):
        response = MagicMock(ok=True)
        response.json.return_value = {
            "hourly": {"time": ["2024-01-10T08:00"], "temperature_2m": [None]}
        }
        self.session.get.return_value = response
        estimator = WeatherRiskEstimator(client=self.client)

        sample = estimator.fetch_sample(coord(time="2024-01-10T08:00:00+01:00"))

        self.assertEqual(sample.temperature, 0.0)
        self.assertEqual(sample.wind_gusts, 0.0)

    def test_non_2xx_raises(self):
        self.session.get.return_value = MagicMock(ok=False, status_code=502)
        with self.assertRaises(WeatherAPIError) as ctx:
            self.client.fetch_hourly(47.378, 8.54, "2024-01-10")
        self.assertEqual(ctx.exception.status_code, 502)


class TestWeatherText(unittest.TestCase):
    """Test icon and description helpers."""

    def test_icon(self):
        self.assertEqual(weather_icon(make_sample(snowfall=1.0)), "❄️")
        self.assertEqual(weather_icon(make_sample(precipitation=6.0)), "🌧️")
        self.assertEqual(weather_icon(make_sample(wind_gusts=55.0)), "💨")
        self.assertEqual(weather_icon(make_sample()), "⛅")

    def test_description(self):
        sample = make_sample(temperature=2.6, precipitation=2.5, wind_gusts=45.0)
        self.assertEqual(describe_weather(sample), "3°C, 2.5mm rain, gusts 45km/h")

    def test_description_rounds_half_up(self):
        sample = make_sample(temperature=-5.5, wind_gusts=62.5)
        self.assertEqual(describe_weather(sample), "-5°C, gusts 63km/h")


if __name__ == "__main__":
    unittest.main()
