"""Dataclass models for PT502 decoding and NDJSON output.

Output events are designed to be serializable via ``dataclasses.asdict()``
followed by ``orjson.dumps()``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

PROTOCOL = "pt502"

# Attribute keys.  The set is closed; ``adc`` is suffixed with the channel number.
KEY_ALARM = "alarm"
KEY_INPUT = "input"
KEY_OUTPUT = "output"
PREFIX_ADC = "adc"
KEY_ODOMETER = "odometer"
KEY_DRIVER_UNIQUE_ID = "driverUniqueId"
KEY_BATTERY = "battery"
KEY_RSSI = "rssi"
KEY_SATELLITES = "sat"

MAX_CHUNK_SIZE = 960


class Alarm(enum.Enum):
    """Normalized alarm kinds reported by the terminal."""

    SOS = "sos"
    GEOFENCE = "geofence"
    TOW = "tow"
    HARD_ACCELERATION = "hardAcceleration"
    HARD_BRAKING = "hardBraking"
    FATIGUE_DRIVING = "fatigueDriving"
    VIBRATION = "vibration"
    MOVEMENT = "movement"
    POWER_CUT = "powerCut"


class FieldTag(enum.IntEnum):
    """Tags of the patch entries carried by a delta frame."""

    CMD = 0
    GID = 1
    TIME = 2
    FIX_FLAG = 3
    LATITUDE = 4
    NORTH_SOUTH = 5
    LONGITUDE = 6
    EAST_WEST = 7
    SPEED = 8
    HEADING = 9
    DATE = 10
    END = 13


@dataclass
class PositionRecord:
    """A decoded position, also used as the baseline for delta frames.

    Fields a delta frame may leave untouched default to ``None`` until the
    baseline carry-forward fills them in.
    """

    device_id: Optional[int] = None
    protocol: str = PROTOCOL
    device_time: Optional[datetime] = None
    fix_time: Optional[datetime] = None
    valid: Optional[bool] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed: Optional[float] = None
    course: Optional[float] = None
    attributes: dict[str, Any] = field(default_factory=dict)

    def set(self, key: str, value: Any) -> None:
        """Store an attribute; ``None`` values are ignored."""
        if value is not None:
            self.attributes[key] = value

    def set_time(self, value: datetime) -> None:
        """Use *value* as both device time and fix time."""
        self.device_time = value
        self.fix_time = value


@dataclass
class PatchEntry:
    """One ``tag / index / length / payload`` entry of a delta frame."""

    tag: int
    overwrite_index: int
    payload: bytes = b""

    @property
    def text(self) -> str:
        return self.payload.decode("latin-1")


@dataclass
class PhotoHandshake:
    """Reply instruction answering a ``PHO<size>`` announcement."""

    photo_size: int
    chunk_size: int

    @classmethod
    def for_size(cls, photo_size: int) -> "PhotoHandshake":
        return cls(photo_size=photo_size, chunk_size=min(photo_size, MAX_CHUNK_SIZE))

    @property
    def text(self) -> str:
        return f"#PHD0,{self.chunk_size}\r\n"


@dataclass
class DecodeOutcome:
    """Result of decoding one message: at most one record, at most one reply."""

    position: Optional[PositionRecord] = None
    reply: Optional[PhotoHandshake] = None


@dataclass
class SourceInfo:
    """Provenance metadata attached to every output record."""

    instance_id: str = ""
    session: Optional[str] = None


@dataclass
class PositionEvent:
    """A decoded position as written to the NDJSON output."""

    event_type: str = "position"
    received_at: str = ""
    device_id: Optional[int] = None
    unique_id: Optional[str] = None
    protocol: str = PROTOCOL
    device_time: Optional[str] = None
    fix_time: Optional[str] = None
    valid: Optional[bool] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    speed: Optional[float] = None
    course: Optional[float] = None
    attributes: dict[str, Any] = field(default_factory=dict)
    source: Optional[dict] = field(default_factory=dict)


@dataclass
class MalformedEvent:
    """Wrapper for input lines or frames that could not be decoded.

    These are *never* silently dropped: they appear in the NDJSON output
    alongside positions so operators can monitor data quality.
    """

    event_type: str = "malformed"
    timestamp: str = ""
    received_at: str = ""
    error: Optional[dict] = field(default_factory=dict)
    source: Optional[dict] = field(default_factory=dict)
