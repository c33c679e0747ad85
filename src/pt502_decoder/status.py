"""Unpack the 12-bit status word that closes a full report."""

from __future__ import annotations

from typing import NamedTuple


class StatusWord(NamedTuple):
    battery: int
    rssi: int
    satellites: int


def unpack_status(value: int) -> StatusWord:
    """Split *value* into battery (bits 8+), rssi (bits 4-7) and satellites (bits 0-3)."""
    return StatusWord(
        battery=value >> 8,
        rssi=(value >> 4) & 0xF,
        satellites=value & 0xF,
    )
