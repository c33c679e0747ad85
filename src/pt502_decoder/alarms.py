"""Map device alarm tokens to :class:`~pt502_decoder.models.Alarm`.

The report ``type`` field is not always an alarm (``POS``, ``PHO1234`` ...),
so unknown tokens are expected and map to ``None``.
"""

from __future__ import annotations

from typing import Optional

from pt502_decoder.models import Alarm

ALARM_CODES: dict[str, Alarm] = {
    "IN1": Alarm.SOS,
    "GOF": Alarm.GEOFENCE,
    "TOW": Alarm.TOW,
    "HDA": Alarm.HARD_ACCELERATION,
    "HDB": Alarm.HARD_BRAKING,
    "FDA": Alarm.FATIGUE_DRIVING,
    "SKA": Alarm.VIBRATION,
    "PMA": Alarm.MOVEMENT,
    "CPA": Alarm.POWER_CUT,
}


def decode_alarm(token: str) -> Optional[Alarm]:
    return ALARM_CODES.get(token)
