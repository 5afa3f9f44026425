import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

import api_server
from chat_agent import ChatProviderError, PoppaElfChat
from contracts.route_stops import City, WeatherReading
from elf_tools import PoppaElfTools
from route_builder import build_route
from route_csv import read_stops, write_stops
from speech_client import SpeechProviderError
from weather_client import WeatherProviderError

CITIES = [
    City("Kiritimati", "Kiribati", 1.87, -157.4, "Pacific/Kiritimati", 14, 5000),
    City("Toronto", "Canada", 43.65, -79.38, "America/Toronto", -5, 2700000, "Ontario"),
]


class ApiServerTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name)
        self.route_path = self.data_dir / "2025_santa_tracker.csv"
        write_stops(self.route_path, build_route(CITIES))
        (self.data_dir / "secret.csv").write_text("nope\n", encoding="utf-8")

        self._env = patch.dict("os.environ", {
            "ROUTE_DATA_DIR": str(self.data_dir),
            "LIVE_FLIGHT_FILE": "2025_santa_tracker.csv",
            "WEATHER_ALLOWED_FILES": "2025_santa_tracker.csv,test.csv",
            "MAX_SPEECH_CHARS": "50",
        })
        self._env.start()
        self.client = api_server.app.test_client()

    def tearDown(self):
        self._env.stop()
        self._tmp.cleanup()


class HealthTests(ApiServerTestCase):
    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["status"], "ok")


class SpeechEndpointTests(ApiServerTestCase):
    def test_returns_audio(self):
        synth = MagicMock()
        synth.synthesize.return_value = b"ID3audio"
        with patch.object(api_server, "speech", synth):
            resp = self.client.post("/api/speech", json={"text": "Ho ho ho"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.mimetype, "audio/mpeg")
        self.assertEqual(resp.headers["Cache-Control"], "no-store")
        self.assertEqual(resp.data, b"ID3audio")
        synth.synthesize.assert_called_once_with("Ho ho ho")

    def test_missing_or_blank_text(self):
        synth = MagicMock()
        with patch.object(api_server, "speech", synth):
            for body in ({}, {"text": ""}, {"text": "   "}, {"text": 42}):
                resp = self.client.post("/api/speech", json=body)
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.get_json()["error"], "Text is required")
        synth.synthesize.assert_not_called()

    def test_text_too_long(self):
        with patch.object(api_server, "speech", MagicMock()):
            resp = self.client.post("/api/speech", json={"text": "x" * 51})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("50", resp.get_json()["error"])

    def test_provider_failure(self):
        synth = MagicMock()
        synth.synthesize.side_effect = SpeechProviderError("boom")
        with patch.object(api_server, "speech", synth):
            resp = self.client.post("/api/speech", json={"text": "Ho ho ho"})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json(), {"error": "Unable to generate speech"})


class WeatherUpdateEndpointTests(ApiServerTestCase):
    def test_updates_live_file_by_default(self):
        resp = self.client.post("/api/weather/update", json={
            "updates": [
                {"stop_number": 2, "temperature_c": 28.4, "weather_condition": "Partly cloudy",
                 "wind_speed_mps": 4.2, "wind_direction_deg": 90, "wind_gust_mps": 6.3},
                {"stop_number": 999, "temperature_c": 1},
            ]
        })
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body, {"success": True, "updatedCount": 1, "message": "Updated weather for 1 stops"})
        stops = read_stops(self.route_path)
        self.assertEqual(stops[1].weather, WeatherReading(28.4, "Partly cloudy", 4.2, 90, 6.3))

    def test_leading_slash_accepted(self):
        resp = self.client.post("/api/weather/update", json={
            "dataFile": "/2025_santa_tracker.csv",
            "updates": [{"stop_number": 1, "temperature_c": -30}],
        })
        self.assertEqual(resp.status_code, 200)

    def test_empty_updates(self):
        for body in ({}, {"updates": []}, {"updates": "nope"}):
            resp = self.client.post("/api/weather/update", json=body)
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.get_json()["error"], "No weather updates provided")

    def test_file_not_on_allow_list(self):
        for name in ("secret.csv", "../2025_santa_tracker.csv"):
            resp = self.client.post("/api/weather/update", json={
                "dataFile": name,
                "updates": [{"stop_number": 1, "temperature_c": 1}],
            })
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.get_json()["error"], "Invalid data file")
        self.assertEqual((self.data_dir / "secret.csv").read_text(encoding="utf-8"), "nope\n")

    def test_missing_file(self):
        resp = self.client.post("/api/weather/update", json={
            "dataFile": "test.csv",
            "updates": [{"stop_number": 1, "temperature_c": 1}],
        })
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.get_json()["error"], "CSV file not found")

    def test_invalid_update(self):
        resp = self.client.post("/api/weather/update", json={"updates": [{"temperature_c": 1}]})
        self.assertEqual(resp.status_code, 400)

    def test_line_break_in_condition_rejected(self):
        before = self.route_path.read_text(encoding="utf-8")
        resp = self.client.post("/api/weather/update", json={
            "updates": [{"stop_number": 1, "weather_condition": "Snow\nheavy"}],
        })
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.route_path.read_text(encoding="utf-8"), before)
        self.assertEqual(len(read_stops(self.route_path)), 4)

    def test_structured_weather_values_rejected(self):
        for value in ([1], {"a": 1}):
            resp = self.client.post("/api/weather/update", json={
                "updates": [{"stop_number": 1, "temperature_c": value}],
            })
            self.assertEqual(resp.status_code, 400)
            self.assertIn("temperature_c", resp.get_json()["error"])

    def test_unexpected_failure(self):
        with patch.object(api_server, "apply_weather_updates", side_effect=OSError("disk full")):
            resp = self.client.post("/api/weather/update", json={
                "updates": [{"stop_number": 1, "temperature_c": 1}],
            })
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json()["error"], "Failed to update weather data")


class WeatherFetchEndpointTests(ApiServerTestCase):
    def test_returns_readings_keyed_by_index(self):
        weather = MagicMock()
        weather.fetch_current.return_value = {5: WeatherReading(-2.0, "Slight snow", 3.0, 180, 5.0)}
        with patch.object(api_server, "weather_client", weather):
            resp = self.client.post("/api/weather/fetch", json={"locations": [{"lat": 43.65, "lng": -79.38, "index": 5}]})
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["weather"]["5"]["weather_condition"], "Slight snow")
        location = weather.fetch_current.call_args.args[0][0]
        self.assertEqual((location.lat, location.lng, location.index), (43.65, -79.38, 5))

    def test_no_locations(self):
        resp = self.client.post("/api/weather/fetch", json={"locations": []})
        self.assertEqual(resp.status_code, 400)

    def test_bad_location(self):
        resp = self.client.post("/api/weather/fetch", json={"locations": [{"lat": 1}]})
        self.assertEqual(resp.status_code, 400)

    def test_provider_failure(self):
        weather = MagicMock()
        weather.fetch_current.side_effect = WeatherProviderError("HTTP 500")
        with patch.object(api_server, "weather_client", weather):
            resp = self.client.post("/api/weather/fetch", json={"locations": [{"lat": 1, "lng": 2, "index": 0}]})
        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.get_json(), {"error": "Failed to fetch weather"})


class FlightQueryEndpointTests(ApiServerTestCase):
    def test_get_stop(self):
        resp = self.client.get("/api/stops/3")
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["city"], "Toronto")
        self.assertEqual(body["state_province"], "Ontario")

    def test_get_missing_stop(self):
        self.assertEqual(self.client.get("/api/stops/99").status_code, 404)

    def test_stats_with_filters(self):
        resp = self.client.get("/api/flight/stats?country=canada")
        body = resp.get_json()
        self.assertEqual(body["total_stops"], 1)
        self.assertIsNone(body["total_distance_km"])
        self.assertEqual(body["filters"]["country"], "canada")

        body = self.client.get("/api/flight/stats").get_json()
        self.assertEqual(body["total_stops"], 4)
        self.assertGreater(body["total_distance_km"], 0)

    def test_stats_skip_stops_without_time(self):
        text = self.route_path.read_text(encoding="utf-8")
        self.route_path.write_text(text.replace("2025-12-24 10:30:00", "", 1), encoding="utf-8")
        resp = self.client.get("/api/flight/stats")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["total_stops"], 4)

    def test_window(self):
        body = self.client.get("/api/flight/window").get_json()
        self.assertEqual(body["start"], "2025-12-24 10:00:00")
        self.assertEqual(body["stops"], 4)

    def test_query_file_not_found_or_not_allowed(self):
        self.assertEqual(self.client.get("/api/flight/window?dataFile=test.csv").status_code, 404)
        self.assertEqual(self.client.get("/api/flight/window?dataFile=secret.csv").status_code, 400)

    def test_stops_at_utc_hour(self):
        resp = self.client.get("/api/flight/hour/11")
        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["count"], 2)
        self.assertEqual([stop["city"] for stop in body["stops"]], ["Toronto", "North Pole"])
        self.assertEqual(self.client.get("/api/flight/hour/24").status_code, 400)

    def test_stops_in_region(self):
        body = self.client.get("/api/flight/region?name=Canada").get_json()
        self.assertEqual(body["region"], "canada")
        self.assertEqual([stop["city"] for stop in body["stops"]], ["Toronto"])

        resp = self.client.get("/api/flight/region?name=Atlantis")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("europe", resp.get_json()["available_regions"])


def _tool_call(call_id, name, arguments):
    call = MagicMock(id=call_id)
    call.function.name = name
    call.function.arguments = arguments
    return call


def _completion(content=None, tool_calls=None):
    return MagicMock(choices=[MagicMock(message=MagicMock(content=content, tool_calls=tool_calls))])


class ChatEndpointTests(ApiServerTestCase):
    def test_reply_from_agent(self):
        agent = MagicMock()
        agent.reply.return_value = "Oh my snowflakes!"
        messages = [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Ho ho!"},
            {"role": "user", "content": "Where was stop 3?"},
        ]
        with patch.object(api_server, "chat_agent", agent):
            resp = self.client.post("/api/chat", json={"messages": messages})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), {"content": "Oh my snowflakes!", "role": "assistant"})
        sent, tools = agent.reply.call_args.args
        self.assertEqual(sent, messages)
        self.assertIsInstance(tools, PoppaElfTools)
        self.assertEqual(tools.log.get_stop(3).city, "Toronto")

    def test_invalid_messages(self):
        agent = MagicMock()
        with patch.object(api_server, "chat_agent", agent):
            for body in ({}, {"messages": "hi"}, []):
                resp = self.client.post("/api/chat", json=body)
                self.assertEqual(resp.status_code, 400)
                self.assertEqual(resp.get_json()["error"], "Invalid request: messages array required")
            resp = self.client.post("/api/chat", json={"messages": [{"role": "assistant", "content": "Ho ho!"}]})
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(resp.get_json()["error"], "No user message found")
        agent.reply.assert_not_called()

    def test_provider_failure(self):
        agent = MagicMock()
        agent.reply.side_effect = ChatProviderError("quota")
        with patch.object(api_server, "chat_agent", agent):
            resp = self.client.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json(), {"error": "Internal server error"})

    def test_tool_call_reads_live_route(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = [
            _completion(tool_calls=[_tool_call("call_1", "get_stop_by_number", '{"stop_number": 3}')]),
            _completion(content="Santa stopped in Toronto!"),
        ]
        with patch.object(api_server, "chat_agent", PoppaElfChat(client=client)):
            resp = self.client.post("/api/chat", json={"messages": [{"role": "user", "content": "Stop 3?"}]})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["content"], "Santa stopped in Toronto!")
        tool_turn = client.chat.completions.create.call_args.kwargs["messages"][-1]
        self.assertEqual(tool_turn["tool_call_id"], "call_1")
        self.assertIn("Toronto, Ontario, Canada", tool_turn["content"])


if __name__ == "__main__":
    unittest.main()
