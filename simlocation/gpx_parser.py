"""Parse GPX documents into ordered track points."""

import re
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Union

from simlocation.exceptions import ParseError
from simlocation.logging import get_logger
from simlocation.models import TrackPoint

logger = get_logger(__name__)

POINT_ELEMENT = "trkpt"
ELEVATION_ELEMENT = "ele"
TIME_ELEMENT = "time"

# Internet date-time with mandatory fractional seconds, e.g.
# 2024-05-01T08:30:00.250Z or 2024-05-01T10:30:00.250+02:00
_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d+)"
    r"(?:(Z)|([+-])(\d{2}):(\d{2}))$",
    re.ASCII,
)


def _local_name(tag: str) -> str:
    """Strip the ``{namespace}`` prefix ElementTree puts on tags."""
    if isinstance(tag, str) and tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag


def _parse_float(value: Optional[str]) -> Optional[float]:
    """Decimal number, or None. Digit separators and non-ASCII digits are rejected."""
    if value is None or "_" in value or not value.isascii():
        return None
    try:
        return float(value.strip())
    except ValueError:
        return None


def parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    """Parse a GPX ``<time>`` value into an aware datetime.

    Only the strict form with fractional seconds is accepted; anything else
    (including otherwise valid ISO-8601 without a fraction) returns None.
    """
    if not text:
        return None
    match = _TIMESTAMP_RE.match(text.strip())
    if not match:
        return None

    year, month, day, hour, minute, second, fraction = match.groups()[:7]
    zulu, sign, offset_hours, offset_minutes = match.groups()[7:]
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(offset_hours), minutes=int(offset_minutes))
        tz = timezone(-offset if sign == "-" else offset)

    # datetime only holds microseconds
    microsecond = int(fraction[:6].ljust(6, "0"))
    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second),
            microsecond, tzinfo=tz,
        )
    except ValueError:
        return None


def _parse_point(element: ET.Element) -> Optional[TrackPoint]:
    latitude = _parse_float(element.get("lat"))
    longitude = _parse_float(element.get("lon"))
    if latitude is None or longitude is None:
        return None

    elevation = None
    timestamp = None
    for child in element:
        name = _local_name(child.tag)
        if name == ELEVATION_ELEMENT:
            elevation = _parse_float(child.text)
        elif name == TIME_ELEMENT:
            timestamp = parse_timestamp(child.text)

    return TrackPoint(latitude, longitude, elevation, timestamp)


def parse_gpx(data: Union[bytes, str]) -> List[TrackPoint]:
    """
    Parse a GPX document into track points in document order.

    Args:
        data: Raw document bytes (or text)

    Returns:
        List of TrackPoint. Points without a usable lat/lon are left out.

    Raises:
        ParseError: If the document is not well-formed XML
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ParseError(f"Malformed GPX document: {e}") from e

    points: List[TrackPoint] = []
    dropped = 0
    for element in root.iter():
        if _local_name(element.tag) != POINT_ELEMENT:
            continue
        point = _parse_point(element)
        if point is None:
            dropped += 1
            continue
        points.append(point)

    if dropped:
        logger.debug("Dropped %d track point(s) without numeric lat/lon", dropped)
    return points


def load_gpx_file(path: Union[str, Path]) -> List[TrackPoint]:
    """Read and parse a GPX file. Unreadable files raise ParseError."""
    file_path = Path(path)
    try:
        data = file_path.read_bytes()
    except OSError as e:
        raise ParseError(f"Cannot read {file_path.name}: {e}") from e
    return parse_gpx(data)
