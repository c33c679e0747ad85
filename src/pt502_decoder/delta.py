"""Delta frames: binary patches applied to the last decoded position.

Frame layout::

    '@' (0x40) │ reserved (1) │ tag (1) │ index (1) │ len (1) │ payload (len) │ tag …

Each entry overwrites the *text form* of one field of the baseline
position, starting at ``index``.  Only the alarm, identifier and
coordinate tags carry a decode action; the remaining tags are walked and
ignored.

Decode pipeline::

    bytes
      │
      ├─ no '@' marker           → None
      ├─ session unknown         → None
      ├─ truncated header/entry  → DecodeError
      ├─ no entry applied        → None
      └─ otherwise               → PositionRecord (baseline fills the gaps)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Hashable, Optional

from pt502_decoder.alarms import decode_alarm
from pt502_decoder.coordinates import apply_patch
from pt502_decoder.models import KEY_ALARM, FieldTag, PatchEntry, PositionRecord
from pt502_decoder.providers import DeviceRegistry, PositionStore

logger = logging.getLogger(__name__)

MARKER = 0x40
ENTRY_HEADER_LEN = 3

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DecodeError(ValueError):
    """Raised when a delta frame ends before its declared contents."""


@dataclass
class DeltaFrame:
    """The patch entries of one delta frame, in wire order."""

    reserved: int = 0
    entries: list[PatchEntry] = field(default_factory=list)

    @classmethod
    def parse(cls, body: bytes) -> "DeltaFrame":
        """Walk *body* (everything after the ``@`` marker).

        Raises
        ------
        DecodeError
            If the reserved byte, an entry header, or a payload is cut short.
        """
        if not body:
            raise DecodeError("Delta frame missing reserved byte")

        frame = cls(reserved=body[0])
        offset = 1
        while offset < len(body):
            if len(body) - offset < ENTRY_HEADER_LEN:
                raise DecodeError(
                    f"Truncated entry header at offset {offset + 1}: "
                    f"{len(body) - offset} of {ENTRY_HEADER_LEN} bytes"
                )
            tag, index, length = body[offset:offset + ENTRY_HEADER_LEN]
            offset += ENTRY_HEADER_LEN

            remaining = len(body) - offset
            if length > remaining:
                raise DecodeError(
                    f"Entry tag {tag} declares {length} payload bytes, {remaining} remain"
                )
            frame.entries.append(PatchEntry(tag, index, bytes(body[offset:offset + length])))
            offset += length
        return frame


def fill_missing(position: PositionRecord, baseline: Optional[PositionRecord]) -> None:
    """Copy every field *position* left unset from *baseline*.

    Attributes are merged key by key; values already on *position* win.
    """
    if baseline is None:
        return
    for f in fields(PositionRecord):
        if f.name == "attributes":
            continue
        if getattr(position, f.name) is None:
            setattr(position, f.name, getattr(baseline, f.name))
    for key, value in baseline.attributes.items():
        position.attributes.setdefault(key, value)


class DeltaDecoder:
    """Rebuilds positions from delta frames.

    Parameters
    ----------
    registry:
        Resolves the transport session and extended identifiers.
    positions:
        Supplies the baseline; read once per frame, never written.
    """

    def __init__(self, registry: DeviceRegistry, positions: PositionStore) -> None:
        self._registry = registry
        self._positions = positions

    def decode(self, context: Hashable, data: bytes) -> Optional[PositionRecord]:
        """Decode one delta frame received on *context*.

        Returns
        -------
        PositionRecord
            When at least one entry contributed new information.
        None
            When the marker is missing, the session is unknown, or no
            entry applied.

        Raises
        ------
        DecodeError
            If the frame is truncated.
        """
        if not data or data[0] != MARKER:
            return None

        device_id = self._registry.resolve_session(context)
        if not device_id:
            logger.debug("Delta frame on %s without a known device", context)
            return None

        frame = DeltaFrame.parse(data[1:])

        position = PositionRecord(device_id=device_id)
        baseline = self._positions.get_last_position(device_id)

        got_new_info = False
        for entry in frame.entries:
            if self._apply(context, entry, position, baseline):
                got_new_info = True

        if not got_new_info:
            logger.debug("Delta frame for device %s carried no new information", device_id)
            return None

        fill_missing(position, baseline)

        if position.device_time is None:
            position.device_time = datetime.now(timezone.utc)
        if position.fix_time is None:
            position.fix_time = _EPOCH
        if position.valid is None:
            position.valid = False
        if position.latitude is None:
            position.latitude = 0.0
        if position.longitude is None:
            position.longitude = 0.0

        return position

    # ── entries ─────────────────────────────────────────────────────

    def _apply(
        self,
        context: Hashable,
        entry: PatchEntry,
        position: PositionRecord,
        baseline: Optional[PositionRecord],
    ) -> bool:
        """Apply one entry to *position*; ``True`` when it added information."""
        if entry.tag == FieldTag.CMD:
            alarm = decode_alarm(entry.text)
            if alarm is None:
                return False
            position.set(KEY_ALARM, alarm)
            return True

        if entry.tag == FieldTag.GID:
            return self._extend_identifier(context, entry, position)

        if entry.tag in (FieldTag.LATITUDE, FieldTag.LONGITUDE):
            if baseline is None:
                logger.debug("No baseline for device %s, skipping coordinate patch", position.device_id)
                return False
            if entry.tag == FieldTag.LATITUDE:
                value = apply_patch(baseline.latitude or 0.0, entry.overwrite_index, entry.payload, "N", "S")
                if value != 0:
                    position.latitude = value
                    return True
            else:
                value = apply_patch(baseline.longitude or 0.0, entry.overwrite_index, entry.payload, "E", "W")
                if value != 0:
                    position.longitude = value
                    return True
            logger.debug("Coordinate patch %r at %d did not apply", entry.payload, entry.overwrite_index)
            return False

        return False

    def _extend_identifier(self, context: Hashable, entry: PatchEntry, position: PositionRecord) -> bool:
        current = self._registry.get_unique_id(position.device_id)
        if current is None or entry.overwrite_index > len(current):
            return False

        identifier = current[:entry.overwrite_index] + entry.text
        device_id = self._registry.resolve_session_by_identifier(context, identifier)
        if not device_id:
            return False

        position.device_id = device_id
        return True
