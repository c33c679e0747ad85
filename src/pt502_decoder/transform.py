"""Transform decoded positions into NDJSON ``position`` records."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

import orjson

from pt502_decoder.models import MalformedEvent, PositionEvent, PositionRecord, SourceInfo


class Transformer:
    """PositionRecord → serialized NDJSON bytes."""

    def __init__(self, instance_id: str = "", session: Optional[str] = None) -> None:
        self._source = SourceInfo(instance_id=instance_id, session=session)

    def transform(self, position: PositionRecord, unique_id: Optional[str] = None) -> bytes:
        """Convert *position* into a newline-terminated NDJSON line.

        Timestamps are ISO 8601; alarm enums serialize to their value.
        """
        event = PositionEvent(
            event_type="position",
            received_at=datetime.now(timezone.utc).isoformat(),
            device_id=position.device_id,
            unique_id=unique_id,
            protocol=position.protocol,
            device_time=_isoformat(position.device_time),
            fix_time=_isoformat(position.fix_time),
            valid=position.valid,
            latitude=position.latitude,
            longitude=position.longitude,
            speed=position.speed,
            course=position.course,
            attributes=dict(position.attributes),
            source=asdict(self._source),
        )
        return orjson.dumps(asdict(event), option=orjson.OPT_APPEND_NEWLINE)

    def transform_malformed(self, malformed: MalformedEvent) -> bytes:
        """Serialize a :class:`MalformedEvent` to NDJSON bytes."""
        return orjson.dumps(asdict(malformed), option=orjson.OPT_APPEND_NEWLINE)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
