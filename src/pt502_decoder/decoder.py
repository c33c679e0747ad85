"""Dispatch one PT502 message to the full-report or delta decoder.

Dispatch pipeline::

    message (str | bytes)
      │
      ├─ full-report grammar matches
      │     ├─ PHO<size> type         → reply = PhotoHandshake
      │     ├─ identifier unknown     → position = None
      │     └─ otherwise              → position = PositionRecord
      └─ no match                     → DeltaDecoder (may raise DecodeError)

:meth:`Pt502Decoder.decode_message` is free of side effects;
:meth:`Pt502Decoder.decode` additionally sends the photo handshake.
"""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Optional, Union

from pt502_decoder.delta import DeltaDecoder
from pt502_decoder.models import DecodeOutcome, PhotoHandshake, PositionRecord
from pt502_decoder.providers import DeviceRegistry, PositionStore
from pt502_decoder.report import decode_report

logger = logging.getLogger(__name__)


class Pt502Decoder:
    """Decoder bound to one device connection.

    Parameters
    ----------
    registry:
        Device identity lookups.
    positions:
        Baseline lookups for delta frames.
    send_reply:
        Writes a reply to the device.  ``None`` when the connection is not
        writable; announced photos are then not acknowledged.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        positions: PositionStore,
        send_reply: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._registry = registry
        self._delta = DeltaDecoder(registry, positions)
        self._send_reply = send_reply
        self.expected_photo_size: Optional[int] = None

    def decode(self, context: Hashable, message: Union[str, bytes]) -> Optional[PositionRecord]:
        """Decode *message* and send the photo handshake if one is due.

        Raises
        ------
        DecodeError
            If *message* is a truncated delta frame.
        """
        outcome = self.decode_message(context, message)
        if outcome.reply is not None and self._send_reply is not None:
            self.expected_photo_size = outcome.reply.photo_size
            logger.info(
                "Photo of %d bytes announced, requesting %d-byte chunk",
                outcome.reply.photo_size,
                outcome.reply.chunk_size,
            )
            self._send_reply(outcome.reply.text)
        return outcome.position

    def decode_message(self, context: Hashable, message: Union[str, bytes]) -> DecodeOutcome:
        """Decode *message* without performing any I/O."""
        if isinstance(message, bytes):
            text, data = message.decode("latin-1"), message
        else:
            text, data = message, message.encode("latin-1", errors="replace")

        report = decode_report(text)
        if report is None:
            return DecodeOutcome(position=self._delta.decode(context, data))

        outcome = DecodeOutcome()
        photo_size = report.photo_size
        if photo_size is not None:
            outcome.reply = PhotoHandshake.for_size(photo_size)

        device_id = self._registry.resolve_session_by_identifier(context, report.identifier)
        if device_id is None:
            logger.debug("Report from unknown device %s dropped", report.identifier)
            return outcome

        report.position.device_id = device_id
        outcome.position = report.position
        return outcome
