"""Tests for the GPX track parser."""

import pytest
from datetime import datetime, timedelta, timezone

from simlocation.exceptions import ParseError
from simlocation.gpx_parser import load_gpx_file, parse_gpx, parse_timestamp


class TestParseTimestamp:
    """Test strict GPX time parsing."""

    def test_utc_with_fraction(self):
        """Test the canonical form."""
        assert parse_timestamp("2024-05-01T08:30:00.250Z") == datetime(
            2024, 5, 1, 8, 30, 0, 250000, tzinfo=timezone.utc
        )

    def test_offset(self):
        """Test numeric UTC offsets."""
        value = parse_timestamp("2024-05-01T10:30:00.000+02:00")
        assert value.utcoffset() == timedelta(hours=2)
        assert value == datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)

    def test_long_fraction_truncated(self):
        """Test nanosecond fractions are accepted."""
        value = parse_timestamp("2024-05-01T08:30:00.123456789Z")
        assert value.microsecond == 123456

    @pytest.mark.parametrize("text", [
        "2024-05-01T08:30:00Z",
        "2024-05-01 08:30:00.000Z",
        "2024-05-01T08:30:00.000",
        "2024-13-01T08:30:00.000Z",
        "yesterday",
        "\u0662024-05-01T08:30:00.000Z",
        "2024-05-01T08:30:00.\u0665Z",
        "",
        None,
    ])
    def test_rejected_formats(self, text):
        """Test anything but the strict form is treated as absent."""
        assert parse_timestamp(text) is None


class TestParseGpx:
    """Test parse_gpx."""

    def test_points_in_document_order(self, gpx_builder):
        """Test output keeps document order without sorting."""
        data = gpx_builder([
            {"lat": "10.0", "lon": "20.0"},
            {"lat": "-5.5", "lon": "30.25"},
            {"lat": "1.0", "lon": "2.0"},
        ])
        points = parse_gpx(data)
        assert [p.coordinate for p in points] == [(10.0, 20.0), (-5.5, 30.25), (1.0, 2.0)]

    def test_elevation_and_time(self, gpx_builder):
        """Test a point with both children has both fields populated."""
        points = parse_gpx(gpx_builder([
            {"lat": "17.413399", "lon": "78.460046", "ele": "512.5", "time": "2024-05-01T08:30:00.000Z"},
        ]))
        assert len(points) == 1
        assert points[0].elevation == 512.5
        assert points[0].timestamp == datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)

    def test_missing_lat_or_lon_dropped(self, gpx_builder):
        """Test elements missing an attribute are dropped, others kept."""
        points = parse_gpx(gpx_builder([
            {"lat": "1", "lon": "1"},
            {"lat": "2"},
            {"lon": "3"},
            {"lat": "4", "lon": "4"},
        ]))
        assert [p.latitude for p in points] == [1.0, 4.0]

    def test_malformed_numbers_dropped(self, gpx_builder):
        """Test non-numeric lat/lon drop the point."""
        points = parse_gpx(gpx_builder([
            {"lat": "north", "lon": "1"},
            {"lat": "1_0", "lon": "1"},
            {"lat": "1", "lon": "\u0662"},
            {"lat": "-90", "lon": "180"},
        ]))
        assert [p.coordinate for p in points] == [(-90.0, 180.0)]

    def test_out_of_range_kept(self, gpx_builder):
        """Test numeric values outside WGS84 bounds are not the parser's concern."""
        points = parse_gpx(gpx_builder([
            {"lat": "95", "lon": "10"},
            {"lat": "1", "lon": "2"},
        ]))
        assert [p.coordinate for p in points] == [(95.0, 10.0), (1.0, 2.0)]

    def test_separator_in_elevation(self, gpx_builder):
        """Test digit separators make the elevation absent."""
        points = parse_gpx(gpx_builder([{"lat": "1", "lon": "2", "ele": "1_000"}]))
        assert points[0].elevation is None

    def test_bad_children_become_none(self, gpx_builder):
        """Test a malformed timestamp or elevation keeps the point."""
        points = parse_gpx(gpx_builder([
            {"lat": "1", "lon": "2", "ele": "high", "time": "2024-05-01T08:30:00Z"},
        ]))
        assert len(points) == 1
        assert points[0].elevation is None
        assert points[0].timestamp is None

    def test_without_namespace(self, gpx_builder):
        """Test documents without the GPX namespace."""
        points = parse_gpx(gpx_builder([{"lat": "1", "lon": "2", "ele": "3"}], namespace=None))
        assert points[0].elevation == 3.0

    def test_metadata_time_not_inherited(self):
        """Test document-level time does not leak into points."""
        data = (
            b'<gpx><metadata><time>2024-05-01T08:30:00.000Z</time></metadata>'
            b'<trk><trkseg><trkpt lat="1" lon="2"/></trkseg></trk></gpx>'
        )
        assert parse_gpx(data)[0].timestamp is None

    def test_no_points(self, gpx_builder):
        """Test an empty track parses to an empty list."""
        assert parse_gpx(gpx_builder([])) == []

    def test_duplicates_kept(self, gpx_builder):
        """Test no deduplication happens."""
        points = parse_gpx(gpx_builder([{"lat": "1", "lon": "1"}] * 3))
        assert len(points) == 3

    @pytest.mark.parametrize("data", [
        b"",
        b"<gpx><trk>",
        b"<gpx><trkpt lat='1' lon='2'></gpx>",
        b"not xml at all",
    ])
    def test_malformed_document(self, data):
        """Test malformed markup is one terminal ParseError."""
        with pytest.raises(ParseError):
            parse_gpx(data)


class TestLoadGpxFile:
    """Test load_gpx_file."""

    def test_load(self, temp_dir, gpx_builder):
        """Test reading a file from disk."""
        path = temp_dir / "ride.gpx"
        path.write_bytes(gpx_builder([{"lat": "1", "lon": "2"}]))
        assert len(load_gpx_file(path)) == 1

    def test_missing_file(self, temp_dir):
        """Test unreadable files raise ParseError."""
        with pytest.raises(ParseError):
            load_gpx_file(temp_dir / "missing.gpx")
