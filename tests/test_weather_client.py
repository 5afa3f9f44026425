import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from weather_client import (
    CUSTOMER_FORECAST_URL,
    FREE_FORECAST_URL,
    OpenMeteoClient,
    WeatherLocation,
    WeatherProviderError,
    reading_from_current,
    weather_code_to_condition,
)


def _response(payload, status=200):
    response = MagicMock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.json.return_value = payload
    return response


def _current(temp=-3.0, code=71, speed=18.0, direction=250, gusts=36.0):
    return {
        "current": {
            "temperature_2m": temp,
            "weather_code": code,
            "wind_speed_10m": speed,
            "wind_direction_10m": direction,
            "wind_gusts_10m": gusts,
        }
    }


class ConversionTests(unittest.TestCase):
    def test_weather_codes(self):
        self.assertEqual(weather_code_to_condition(0), "Clear sky")
        self.assertEqual(weather_code_to_condition(71), "Slight snow")
        self.assertEqual(weather_code_to_condition(42), "Unknown")
        self.assertEqual(weather_code_to_condition(None), "")

    def test_reading_converts_kmh_to_mps(self):
        reading = reading_from_current(_current(temp=-3.04, speed=18.0, gusts=36.0)["current"])
        self.assertEqual(reading.temperature_c, -3.0)
        self.assertEqual(reading.wind_speed_mps, 5.0)
        self.assertEqual(reading.wind_gust_mps, 10.0)
        self.assertEqual(reading.wind_direction_deg, 250)
        self.assertEqual(reading.weather_condition, "Slight snow")

    def test_location_validation(self):
        self.assertEqual(WeatherLocation.from_dict({"lat": "1.5", "lng": 2, "index": 3}).index, 3)
        for payload in (
            {"lat": 1, "lng": 2},
            {"lat": "x", "lng": 2, "index": 0},
            {"lat": 1, "lng": 2, "index": float("inf")},
            ["not", "a", "dict"],
        ):
            with self.assertRaises(ValueError):
                WeatherLocation.from_dict(payload)


class OpenMeteoClientTests(unittest.TestCase):
    def test_free_endpoint_without_key(self):
        with patch.dict("os.environ", {"OPEN_METEO_API_KEY": "", "OPEN_METEO_BATCH_SIZE": ""}):
            client = OpenMeteoClient(session=MagicMock())
        self.assertEqual(client.base_url, FREE_FORECAST_URL)
        self.assertEqual(client.batch_size, 10)

    def test_customer_endpoint_with_key(self):
        session = MagicMock()
        session.get.return_value = _response([_current()])
        client = OpenMeteoClient(api_key="secret", session=session)

        client.fetch_current([WeatherLocation(64.75, -147.35, 7)])

        self.assertEqual(client.batch_size, 50)
        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(url, CUSTOMER_FORECAST_URL)
        self.assertEqual(params["apikey"], "secret")
        self.assertEqual(params["latitude"], "64.7500")
        self.assertEqual(params["wind_speed_unit"], "kmh")

    def test_batches_and_keys_by_index(self):
        session = MagicMock()
        session.get.side_effect = [
            _response([_current(temp=1.0), _current(temp=2.0)]),
            _response(_current(temp=3.0)),
        ]
        client = OpenMeteoClient(api_key="", batch_size=2, session=session)
        locations = [WeatherLocation(0, 0, 10), WeatherLocation(1, 1, 11), WeatherLocation(2, 2, 12)]

        readings = client.fetch_current(locations)

        self.assertEqual(session.get.call_count, 2)
        self.assertEqual(sorted(readings), [10, 11, 12])
        self.assertEqual(readings[12].temperature_c, 3.0)
        self.assertNotIn("apikey", session.get.call_args.kwargs["params"])

    def test_entries_without_current_are_skipped(self):
        session = MagicMock()
        session.get.return_value = _response([_current(), {"error": True}])
        client = OpenMeteoClient(api_key="", batch_size=5, session=session)
        readings = client.fetch_current([WeatherLocation(0, 0, 1), WeatherLocation(1, 1, 2)])
        self.assertEqual(list(readings), [1])

    def test_empty_locations_make_no_request(self):
        session = MagicMock()
        client = OpenMeteoClient(api_key="", session=session)
        self.assertEqual(client.fetch_current([]), {})
        session.get.assert_not_called()

    def test_error_status_raises(self):
        session = MagicMock()
        session.get.return_value = _response({"reason": "limit"}, status=429)
        client = OpenMeteoClient(api_key="", session=session)
        with self.assertRaises(WeatherProviderError):
            client.fetch_current([WeatherLocation(0, 0, 1)])

    def test_network_failure_raises(self):
        session = MagicMock()
        session.get.side_effect = requests.exceptions.ConnectionError("down")
        client = OpenMeteoClient(api_key="", session=session)
        with self.assertRaises(WeatherProviderError):
            client.fetch_current([WeatherLocation(0, 0, 1)])

    def test_invalid_json_raises(self):
        session = MagicMock()
        response = _response(None)
        response.json.side_effect = ValueError("bad json")
        session.get.return_value = response
        client = OpenMeteoClient(api_key="", session=session)
        with self.assertRaises(WeatherProviderError):
            client.fetch_current([WeatherLocation(0, 0, 1)])


if __name__ == "__main__":
    unittest.main()
