"""Classify lines of a capture file into decoder input or malformed records.

Classification pipeline::

    raw line
      │
      ├─ blank or ``#`` comment   → None  (skip)
      ├─ ``hex:`` bad hex digits  → MalformedEvent(code="bad_hex")
      ├─ ``hex:<digits>``         → bytes (binary frame)
      └─ anything else            → str   (text report, trailing CR/LF removed)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union

from pt502_decoder.models import MalformedEvent

# Maximum bytes of raw payload preserved in malformed events.
MAX_RAW_PAYLOAD_BYTES = 4096

HEX_PREFIX = "hex:"


def classify_line(
    line: str,
    instance_id: str = "",
    session: Optional[str] = None,
) -> Union[str, bytes, MalformedEvent, None]:
    """Turn one capture line into a message for :class:`~pt502_decoder.Pt502Decoder`.

    Returns
    -------
    str
        A text message, passed on verbatim.
    bytes
        A binary frame written as ``hex:<digits>`` (whitespace allowed).
    MalformedEvent
        When a ``hex:`` line does not hold valid hex digits.
    None
        For blank lines and ``#`` comments.
    """
    stripped = line.rstrip("\r\n")
    if not stripped.strip() or stripped.lstrip().startswith("#"):
        return None

    if not stripped.startswith(HEX_PREFIX):
        return stripped

    try:
        return bytes.fromhex(stripped[len(HEX_PREFIX):])
    except ValueError as exc:
        return malformed(
            code="bad_hex",
            message=str(exc),
            raw=stripped,
            source={"instance_id": instance_id, "session": session},
        )


def malformed(code: str, message: str, raw: str | bytes, source: dict) -> MalformedEvent:
    """Build a :class:`MalformedEvent` with truncation handling."""
    now = datetime.now(timezone.utc).isoformat()
    raw_str = raw if isinstance(raw, str) else HEX_PREFIX + raw.hex()
    truncated = len(raw_str.encode("utf-8")) > MAX_RAW_PAYLOAD_BYTES
    if truncated:
        raw_str = raw_str[:MAX_RAW_PAYLOAD_BYTES]

    return MalformedEvent(
        event_type="malformed",
        timestamp=now,
        received_at=now,
        error={
            "code": code,
            "message": message,
            "raw_payload": raw_str,
            "raw_payload_truncated": truncated,
        },
        source=source,
    )
