#!/usr/bin/env python3
"""Flask API server for the Santa Tracker backend."""

import logging
import os
from pathlib import Path
from typing import Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from chat_agent import ChatProviderError, ChatRequestError, PoppaElfChat, normalize_messages
from elf_tools import PoppaElfTools
from flight_queries import REGION_BOUNDS, FlightLog, resolve_region
from geocoding_client import PhotonGeocoder
from route_patchers import WeatherUpdate, apply_weather_updates
from shared_utils import allowed_data_files, data_dir, env_bool, env_int, live_flight_file
from speech_client import SpeechProviderError, SpeechSynthesizer
from weather_client import OpenMeteoClient, WeatherLocation, WeatherProviderError

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app, origins=[
    os.getenv("ALLOWED_ORIGIN", "http://localhost:3000"),
])

speech = None
weather_client = None
chat_agent = None
geocoder = None


def get_speech() -> SpeechSynthesizer:
    """Lazily initialize the synthesizer so health checks never touch the provider."""
    global speech
    if speech is None:
        speech = SpeechSynthesizer()
        logger.info("Speech synthesizer ready (model=%s, voice=%s)", speech.model, speech.voice)
    return speech


def get_weather_client() -> OpenMeteoClient:
    global weather_client
    if weather_client is None:
        weather_client = OpenMeteoClient()
    return weather_client


def get_chat_agent() -> PoppaElfChat:
    global chat_agent
    if chat_agent is None:
        chat_agent = PoppaElfChat()
        logger.info("Chat agent ready (model=%s)", chat_agent.model)
    return chat_agent


def get_geocoder() -> PhotonGeocoder:
    global geocoder
    if geocoder is None:
        geocoder = PhotonGeocoder()
    return geocoder


def resolve_data_file(raw: Optional[str]) -> Path:
    """Map a request's file name onto the data directory.

    Only names on the allow-list are accepted; a leading slash is ignored.
    """
    name = (raw or "").strip().lstrip("/") or live_flight_file()
    if name not in allowed_data_files():
        raise ValueError("Invalid data file")
    return data_dir() / name


@app.route('/health', methods=['GET'])
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok", "service": "santa-tracker-api"})


@app.route('/api/speech', methods=['POST'])
def synthesize_speech():
    """Narrate text in the Poppa Elf voice; returns MPEG audio."""
    data = request.get_json(silent=True) or {}
    text = data.get("text") if isinstance(data, dict) else None

    if not text or not isinstance(text, str) or not text.strip():
        return jsonify({"error": "Text is required"}), 400

    max_chars = env_int("MAX_SPEECH_CHARS", 4000)
    if len(text) > max_chars:
        return jsonify({"error": f"Text exceeds maximum length of {max_chars} characters"}), 400

    try:
        audio = get_speech().synthesize(text)
    except SpeechProviderError:
        logger.exception("Error generating Poppa Elf speech")
        return jsonify({"error": "Unable to generate speech"}), 500

    return Response(
        audio,
        status=200,
        mimetype="audio/mpeg",
        headers={"Cache-Control": "no-store"},
    )


@app.route('/api/weather/update', methods=['POST'])
def update_weather():
    """
    Rewrite the weather columns of a route file for the given stops.

    Request body:
        {
            "dataFile": "2025_santa_tracker.csv",
            "updates": [{"stop_number": 1, "temperature_c": -4.5, ...}]
        }
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "No weather updates provided"}), 400

    raw_updates = data.get("updates")
    if not raw_updates or not isinstance(raw_updates, list):
        return jsonify({"error": "No weather updates provided"}), 400

    try:
        updates = [WeatherUpdate.from_dict(item) for item in raw_updates]
        csv_path = resolve_data_file(data.get("dataFile"))
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if not csv_path.exists():
        return jsonify({"error": "CSV file not found"}), 404

    try:
        updated_count = apply_weather_updates(csv_path, updates)
    except Exception:
        logger.exception("Error updating weather in CSV")
        return jsonify({"error": "Failed to update weather data"}), 500

    return jsonify({
        "success": True,
        "updatedCount": updated_count,
        "message": f"Updated weather for {updated_count} stops",
    })


@app.route('/api/weather/fetch', methods=['POST'])
def fetch_weather():
    """Current conditions for a batch of stop locations."""
    data = request.get_json(silent=True) or {}
    raw_locations = data.get("locations") if isinstance(data, dict) else None
    if not raw_locations or not isinstance(raw_locations, list):
        return jsonify({"error": "No locations provided"}), 400

    try:
        locations = [WeatherLocation.from_dict(item) for item in raw_locations]
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        readings = get_weather_client().fetch_current(locations)
    except WeatherProviderError:
        logger.exception("Error in weather fetch API")
        return jsonify({"error": "Failed to fetch weather"}), 502

    return jsonify({
        "success": True,
        "weather": {str(index): reading.to_dict() for index, reading in readings.items()},
        "count": len(readings),
    })


def _load_flight_log() -> FlightLog:
    path = resolve_data_file(request.args.get("dataFile"))
    if not path.exists():
        raise FileNotFoundError(path.name)
    return FlightLog.load(path)


@app.route('/api/stops/<int:stop_number>', methods=['GET'])
def get_stop(stop_number: int):
    try:
        log = _load_flight_log()
    except FileNotFoundError:
        return jsonify({"error": "CSV file not found"}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    stop = log.get_stop(stop_number)
    if stop is None:
        return jsonify({"error": f"Stop number {stop_number} not found"}), 404
    return jsonify(stop.to_dict())


@app.route('/api/flight/stats', methods=['GET'])
def flight_stats():
    """Totals for the whole route, or for stops matching city/country/state filters."""
    city = request.args.get("city")
    country = request.args.get("country")
    state_province = request.args.get("state_province")
    try:
        log = _load_flight_log()
        stops = log.search(city, country, state_province) if (city or country or state_province) else log.stops
        payload = log.statistics(stops).to_dict()
    except FileNotFoundError:
        return jsonify({"error": "CSV file not found"}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    payload["filters"] = {"city": city, "country": country, "state_province": state_province}
    return jsonify(payload)


@app.route('/api/flight/window', methods=['GET'])
def flight_window():
    try:
        log = _load_flight_log()
        return jsonify(log.flight_window())
    except FileNotFoundError:
        return jsonify({"error": "CSV file not found"}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400


@app.route('/api/flight/hour/<int:hour>', methods=['GET'])
def stops_at_hour(hour: int):
    """Stops whose UTC time falls in the given hour of day."""
    try:
        log = _load_flight_log()
        stops = log.stops_at_utc_hour(hour)
    except FileNotFoundError:
        return jsonify({"error": "CSV file not found"}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({"utc_hour": hour, "count": len(stops), "stops": [stop.to_dict() for stop in stops]})


@app.route('/api/flight/region', methods=['GET'])
def stops_in_region():
    resolved = resolve_region(request.args.get("name", ""))
    if resolved is None:
        return jsonify({"error": "Unknown region", "available_regions": sorted(REGION_BOUNDS)}), 400
    region, bounds = resolved
    try:
        stops = _load_flight_log().search_region(bounds)
    except FileNotFoundError:
        return jsonify({"error": "CSV file not found"}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    return jsonify({"region": region, "count": len(stops), "stops": [stop.to_dict() for stop in stops]})


@app.route('/api/chat', methods=['POST'])
def chat():
    """
    Answer a chat turn as Poppa Elf, using the flight records as tools.

    Request body:
        {"messages": [{"role": "user", "content": "Where was Santa at 10pm EST?"}]}
    """
    data = request.get_json(silent=True) or {}
    try:
        messages = normalize_messages(data.get("messages") if isinstance(data, dict) else None)
    except ChatRequestError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        log = _load_flight_log()
    except FileNotFoundError:
        return jsonify({"error": "CSV file not found"}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        content = get_chat_agent().reply(messages, PoppaElfTools(log, get_geocoder()))
    except ChatProviderError:
        logger.exception("Error in Poppa Elf chat API")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"content": content, "role": "assistant"})


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    print("=" * 60)
    print("SANTA TRACKER API SERVER")
    print("=" * 60)
    print("Endpoints:")
    print("  GET  /health                - Health check")
    print("  POST /api/speech            - Poppa Elf narration (audio/mpeg)")
    print("  POST /api/chat              - Poppa Elf chat with flight record tools")
    print("  POST /api/weather/update    - Patch weather columns in a route CSV")
    print("  POST /api/weather/fetch     - Current weather for stop locations")
    print("  GET  /api/stops/<n>         - Stop lookup")
    print("  GET  /api/flight/stats      - Route statistics")
    print("  GET  /api/flight/window     - Flight start/end")
    print("  GET  /api/flight/hour/<h>  - Stops in a UTC hour")
    print("  GET  /api/flight/region     - Stops in a named region")
    print("=" * 60)

    app.run(
        host='0.0.0.0',
        port=int(os.getenv("PORT", "5001")),
        debug=env_bool("FLASK_DEBUG", False),
    )
