"""Interfaces the decoder consumes, plus in-memory implementations.

Device identity and position history live outside the decoder.  The
decoder only needs lookups; whoever owns the data decides how it is stored
and when the last position is updated.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, Optional

from pt502_decoder.models import PositionRecord

logger = logging.getLogger(__name__)


class DeviceRegistry(ABC):
    """Resolves transport sessions and unique identifiers to device handles.

    Handles are positive integers; ``None`` or ``0`` means the device has
    no known identity.
    """

    @abstractmethod
    def resolve_session(self, context: Hashable) -> Optional[int]:
        """Return the device already bound to *context*"""
        pass

    @abstractmethod
    def resolve_session_by_identifier(self, context: Hashable, identifier: str) -> Optional[int]:
        """Return the device for *identifier* and bind it to *context*"""
        pass

    @abstractmethod
    def get_unique_id(self, device_id: int) -> Optional[str]:
        """Return the textual unique identifier of *device_id*"""
        pass


class PositionStore(ABC):
    """Read access to the last decoded position of each device"""

    @abstractmethod
    def get_last_position(self, device_id: int) -> Optional[PositionRecord]:
        pass


class InMemoryDeviceRegistry(DeviceRegistry):
    """Dict-backed registry, optionally auto-registering unknown identifiers"""

    def __init__(self, devices: Optional[Dict[str, int]] = None, register_unknown: bool = False):
        self.devices: Dict[str, int] = dict(devices or {})
        self.register_unknown = register_unknown
        self.sessions: Dict[Any, int] = {}

    def add_device(self, identifier: str, device_id: Optional[int] = None) -> int:
        if device_id is None:
            device_id = max(self.devices.values(), default=0) + 1
        self.devices[identifier] = device_id
        logger.info("Registered device %s as %d", identifier, device_id)
        return device_id

    def resolve_session(self, context: Hashable) -> Optional[int]:
        return self.sessions.get(context)

    def resolve_session_by_identifier(self, context: Hashable, identifier: str) -> Optional[int]:
        device_id = self.devices.get(identifier)
        if device_id is None:
            if not self.register_unknown:
                logger.warning("Unknown device %s", identifier)
                return None
            device_id = self.add_device(identifier)
        self.sessions[context] = device_id
        return device_id

    def get_unique_id(self, device_id: int) -> Optional[str]:
        for identifier, known_id in self.devices.items():
            if known_id == device_id:
                return identifier
        return None


class InMemoryPositionStore(PositionStore):
    """Keeps the most recent position per device"""

    def __init__(self):
        self.positions: Dict[int, PositionRecord] = {}

    def get_last_position(self, device_id: int) -> Optional[PositionRecord]:
        return self.positions.get(device_id)

    def update(self, position: PositionRecord) -> None:
        if position.device_id:
            self.positions[position.device_id] = position
