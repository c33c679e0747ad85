"""Output sinks for decoded positions.

FileSink
    Writes to ``{prefix}-{instance_id}-{timestamp}.ndjson.active`` and, on
    rotation or close, renames the file to ``.ndjson`` so downstream
    collectors only ever pick up complete files.

StdoutSink
    Writes raw bytes to ``sys.stdout.buffer``.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional

logger = logging.getLogger(__name__)


class StdoutSink:
    """Write NDJSON bytes directly to stdout."""

    def write(self, data: bytes) -> None:
        """Write *data* to ``sys.stdout.buffer``.

        Raises
        ------
        BrokenPipeError
            If the stdout consumer has gone away.
        """
        try:
            sys.stdout.buffer.write(data)
            sys.stdout.buffer.flush()
        except BrokenPipeError:
            logger.warning("stdout broken, consumer likely exited")
            raise

    def close(self) -> None:
        """No-op for stdout."""


class FileSink:
    """Rotating NDJSON file writer.

    Parameters
    ----------
    output_dir:
        Directory for output files, created if missing.
    prefix:
        Filename prefix (e.g. ``"positions"``).
    instance_id:
        Decoder instance identifier included in the filename.
    rotation_seconds:
        Rotate after the active file has been open this long.
    rotation_bytes:
        Rotate once the active file reaches this size.
    """

    def __init__(
        self,
        output_dir: str,
        prefix: str = "positions",
        instance_id: str = "decoder-01",
        rotation_seconds: int = 600,
        rotation_bytes: int = 52428800,
    ) -> None:
        self._output_dir = Path(output_dir)
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._prefix = prefix
        self._instance_id = instance_id
        self._rotation_seconds = rotation_seconds
        self._rotation_bytes = rotation_bytes

        self._fh: Optional[BinaryIO] = None
        self._active_path: Optional[Path] = None
        self._bytes_written = 0
        self._opened_at = 0.0
        self._sequence = 0

        self._open()

    @property
    def active_path(self) -> Optional[Path]:
        return self._active_path

    def write(self, data: bytes) -> None:
        """Append *data* to the active file, rotating first if a threshold is met."""
        if self._bytes_written >= self._rotation_bytes or (
            time.monotonic() - self._opened_at >= self._rotation_seconds
        ):
            self._finish()
            self._open()

        self._fh.write(data)
        self._fh.flush()
        self._bytes_written += len(data)

    def close(self) -> None:
        """Finish the active file on graceful shutdown."""
        if self._fh is not None and not self._fh.closed:
            self._finish()

    # ── internal ────────────────────────────────────────────────────

    def _open(self) -> None:
        ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        self._sequence += 1
        name = f"{self._prefix}-{self._instance_id}-{ts}-{self._sequence:04d}.ndjson.active"
        self._active_path = self._output_dir / name
        self._fh = open(self._active_path, "ab")
        self._bytes_written = 0
        self._opened_at = time.monotonic()
        logger.info("Opened new file: %s", self._active_path.name)

    def _finish(self) -> None:
        os.fsync(self._fh.fileno())
        self._fh.close()
        final_path = self._active_path.with_suffix("")
        os.rename(self._active_path, final_path)
        logger.info("Finished %s (%d bytes)", final_path.name, self._bytes_written)
