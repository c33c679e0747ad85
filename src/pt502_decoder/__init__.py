"""Decoder for PT502 vehicle-tracker reports and delta frames."""

__version__ = "0.1.0"

from pt502_decoder.decoder import Pt502Decoder
from pt502_decoder.delta import DecodeError
from pt502_decoder.models import Alarm, DecodeOutcome, PhotoHandshake, PositionRecord

__all__ = [
    "Alarm",
    "DecodeError",
    "DecodeOutcome",
    "PhotoHandshake",
    "PositionRecord",
    "Pt502Decoder",
    "__version__",
]
