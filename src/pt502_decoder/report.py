"""Grammar and field decoding for the textual full report.

Layout (``,`` and ``/`` delimited, anything before ``$`` is ignored)::

    $type,id,hhmmss.sss,A|V,DDMM.MMMM,N|S,DDDMM.MMMM,E|W,speed?,course?,ddmmyy,,,
      [m/]inputs,outputs/adc?/odometer[/rfid?[/sss]]

A structural mismatch returns ``None``; that is how delta frames are told
apart from full reports.  Optional numeric fields that are present but
malformed fall back to a default instead of failing the record.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from pt502_decoder.alarms import decode_alarm
from pt502_decoder.coordinates import to_degrees
from pt502_decoder.models import (
    KEY_ALARM,
    KEY_BATTERY,
    KEY_DRIVER_UNIQUE_ID,
    KEY_INPUT,
    KEY_ODOMETER,
    KEY_OUTPUT,
    KEY_RSSI,
    KEY_SATELLITES,
    PREFIX_ADC,
    PositionRecord,
)
from pt502_decoder.status import unpack_status

REPORT_RE = re.compile(
    r".*?\$"
    r"(?P<type>[^,]+),"
    r"(?P<id>\d+),"
    r"(?P<hour>\d\d)(?P<minute>\d\d)(?P<second>\d\d)\.(?P<millis>\d{3}),"
    r"(?P<validity>[AV]),"
    r"(?P<lat_deg>\d+)(?P<lat_min>\d\d\.\d{4}),"
    r"(?P<lat_hem>[NS]),"
    r"(?P<lon_deg>\d+)(?P<lon_min>\d\d\.\d{4}),"
    r"(?P<lon_hem>[EW]),"
    r"(?P<speed>\d+\.\d+)?,"
    r"(?P<course>\d+\.\d+)?,"
    r"(?P<day>\d\d)(?P<month>\d\d)(?P<year>\d\d),,,"
    r"(?:./)?"                                   # mode
    r"(?P<input>[01]+)[,/]"
    r"(?P<output>[01]+)/"
    r"(?P<adc>[^/]+)?[,/]"
    r"(?P<odometer>\d+)"
    r"(?:/(?P<rfid>[^/]*)"
    r"(?:/(?P<status>[0-9A-Fa-f]{3})(?![0-9A-Fa-f]))?)?"
    r".*",
    re.DOTALL,
)

PHOTO_RE = re.compile(r"PHO(\d+)")


@dataclass
class Report:
    """A matched full report, before device resolution."""

    type: str
    identifier: str
    position: PositionRecord

    @property
    def photo_size(self) -> Optional[int]:
        """Announced photo size for ``PHO<size>`` reports, else ``None``."""
        match = PHOTO_RE.match(self.type)
        if match is None:
            return None
        return int(match.group(1))


def int_or(value: Optional[str], default: int = 0, base: int = 10) -> int:
    if not value:
        return default
    try:
        return int(value, base)
    except ValueError:
        return default


def float_or(value: Optional[str], default: float = 0.0) -> float:
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def build_time(
    day: int, month: int, year: int,
    hour: int = 0, minute: int = 0, second: int = 0, millis: int = 0,
) -> datetime:
    """Build a UTC timestamp, rolling out-of-range parts over instead of failing.

    *year* is two-digit (``2000 + year``).  ``00`` as a day or month lands on
    the last day of the previous month or year.
    """
    months = (2000 + year) * 12 + (month - 1)
    start = datetime(months // 12, months % 12 + 1, 1, tzinfo=timezone.utc)
    return start + timedelta(
        days=day - 1, hours=hour, minutes=minute, seconds=second, milliseconds=millis
    )


def decode_report(text: str) -> Optional[Report]:
    """Match *text* against the full-report grammar and decode its fields."""
    match = REPORT_RE.match(text)
    if match is None:
        return None
    g = match.groupdict()

    position = PositionRecord()
    position.set(KEY_ALARM, decode_alarm(g["type"]))

    position.set_time(build_time(
        int_or(g["day"]), int_or(g["month"]), int_or(g["year"]),
        int_or(g["hour"]), int_or(g["minute"]), int_or(g["second"]), int_or(g["millis"]),
    ))
    position.valid = g["validity"] == "A"
    position.latitude = to_degrees(g["lat_deg"], g["lat_min"], g["lat_hem"])
    position.longitude = to_degrees(g["lon_deg"], g["lon_min"], g["lon_hem"])
    position.speed = float_or(g["speed"])
    position.course = float_or(g["course"])

    position.set(KEY_INPUT, g["input"])
    position.set(KEY_OUTPUT, g["output"])

    # Analog channels are always hexadecimal
    if g["adc"]:
        for i, value in enumerate(g["adc"].split(","), start=1):
            position.set(f"{PREFIX_ADC}{i}", int_or(value, base=16))

    position.set(KEY_ODOMETER, int_or(g["odometer"]))
    if g["rfid"]:
        position.set(KEY_DRIVER_UNIQUE_ID, g["rfid"])

    if g["status"]:
        status = unpack_status(int(g["status"], 16))
        position.set(KEY_BATTERY, status.battery)
        position.set(KEY_RSSI, status.rssi)
        position.set(KEY_SATELLITES, status.satellites)

    return Report(type=g["type"], identifier=g["id"], position=position)
