import sys
import tempfile
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from contracts.route_stops import City, WeatherReading
from route_builder import build_route
from route_csv import (
    ROUTE_COLUMNS,
    RouteFileError,
    RouteTable,
    parse_stops,
    quote,
    read_stops,
    render_stops,
    split_csv_line,
    unquote,
    write_stops,
)
from shared_utils import format_number

HEADER_16 = (
    "stop_number,city,country,lat,lng,timezone,utc_offset,utc_offset_rounded,utc_time,local_time,"
    "population,temperature_c,weather_condition,wind_speed_mps,wind_direction_deg,wind_gust_mps"
)


class SplitLineTests(unittest.TestCase):
    def test_commas_inside_quotes_stay_in_field(self):
        fields = split_csv_line('1,"Washington, D.C.",United States,38.9')
        self.assertEqual(fields, ["1", '"Washington, D.C."', "United States", "38.9"])

    def test_empty_fields_preserved(self):
        self.assertEqual(split_csv_line("a,,c,"), ["a", "", "c", ""])

    def test_quote_and_unquote(self):
        self.assertEqual(quote('Say "hi"'), '"Say ""hi"""')
        self.assertEqual(unquote('"Say ""hi"""'), 'Say "hi"')
        self.assertEqual(unquote("plain"), "plain")


class FormatNumberTests(unittest.TestCase):
    def test_integral_values_drop_trailing_zero(self):
        self.assertEqual(format_number(14.0), "14")
        self.assertEqual(format_number(-10), "-10")
        self.assertEqual(format_number(5.5), "5.5")
        self.assertEqual(format_number(None), "")


class RouteTableTests(unittest.TestCase):
    def test_resolves_columns_from_header(self):
        table = RouteTable.parse(HEADER_16 + "\n1,North Pole,Arctic,90,0,UTC+14,14,14,2025-12-24 10:00:00,"
                                 "2025-12-25 00:00:00,0,,,,,\n\n")
        self.assertFalse(table.has_column("state_province"))
        self.assertEqual(table.column("utc_time"), 8)
        self.assertEqual(len(table.rows), 1)
        self.assertEqual(table.stop_number(table.rows[0]), 1)

    def test_missing_column_raises(self):
        table = RouteTable.parse("stop_number,city\n1,A\n")
        with self.assertRaises(RouteFileError):
            table.column("utc_time")

    def test_render_keeps_raw_fields(self):
        text = 'stop_number,city,weather_condition\n1,"Washington, D.C.","Clear sky"\n'
        table = RouteTable.parse(text)
        self.assertEqual(table.render(), text)

    def test_load_missing_file(self):
        with self.assertRaises(RouteFileError):
            RouteTable.load(Path("/nonexistent/route.csv"))


class TypedRoundTripTests(unittest.TestCase):
    def setUp(self):
        cities = [
            City("Kiritimati", "Kiribati", 1.87, -157.4, "Pacific/Kiritimati", 14, 5000),
            City("Washington, D.C.", "United States", 38.9, -77.04, "America/New_York", -5, 700000, "District of Columbia"),
            City("Delhi", "India", 28.6, 77.2, "Asia/Kolkata", 5.5, 30000000),
        ]
        self.route = build_route(cities)
        self.route[1].weather = WeatherReading(-4.5, "Light snow", 3.25, 270, 6.1)

    def test_serialize_then_parse_is_identity(self):
        self.assertEqual(parse_stops(render_stops(self.route)), self.route)

    def test_header_has_seventeen_columns(self):
        header = render_stops(self.route).split("\n", 1)[0]
        self.assertEqual(header.split(","), ROUTE_COLUMNS)
        self.assertEqual(len(ROUTE_COLUMNS), 17)

    def test_file_without_state_province(self):
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "nested" / "route.csv"
            write_stops(path, self.route, include_state=False)
            header = path.read_text(encoding="utf-8").split("\n", 1)[0]
            stops = read_stops(path)

        self.assertNotIn("state_province", header)
        self.assertEqual(len(stops), len(self.route))
        self.assertEqual(stops[3].city, "Washington, D.C.")
        self.assertEqual(stops[3].state_province, "")

    def test_malformed_rows_skipped(self):
        text = render_stops(self.route) + "x,Broken,Nowhere,,north,,,,,,,,,,,,\n"
        stops = parse_stops(text)
        self.assertEqual(len(stops), len(self.route))

    def test_missing_required_column(self):
        with self.assertRaises(RouteFileError):
            parse_stops("stop_number,city\n1,A\n")


if __name__ == "__main__":
    unittest.main()
