"""Position filtering by fix validity and device identity.

Filter chain (evaluated in order)::

    1. ``drop_invalid`` and fix not valid                     → drop
    2. unique id in ``drop_device_ids``                       → drop
    3. ``keep_device_ids`` non-empty AND unique id not in it  → drop
    4. Otherwise                                              → pass
"""

from __future__ import annotations

import logging
from typing import Optional

from pt502_decoder.config import FilterConfig
from pt502_decoder.models import PositionRecord

logger = logging.getLogger(__name__)


class PositionFilter:
    """Stateless filter that decides whether a decoded position is written."""

    def __init__(self, config: FilterConfig) -> None:
        self._drop_invalid = config.drop_invalid
        self._drop_device_ids: set[str] = set(config.drop_device_ids)
        self._keep_device_ids: set[str] = set(config.keep_device_ids)

    def __call__(self, position: PositionRecord, unique_id: Optional[str]) -> Optional[PositionRecord]:
        return self.apply(position, unique_id)

    def apply(self, position: PositionRecord, unique_id: Optional[str]) -> Optional[PositionRecord]:
        """Evaluate the filter chain.

        Parameters
        ----------
        position:
            Decoded position.
        unique_id:
            Textual identifier of ``position.device_id``, if known.

        Returns
        -------
        PositionRecord or None
            The input unchanged when it passes, ``None`` when filtered.
        """
        if self._drop_invalid and not position.valid:
            logger.debug("Filtered device %s: invalid fix", unique_id)
            return None

        if unique_id in self._drop_device_ids:
            logger.debug("Filtered device %s: in drop_device_ids", unique_id)
            return None

        if self._keep_device_ids and unique_id not in self._keep_device_ids:
            logger.debug("Filtered device %s: not in keep_device_ids", unique_id)
            return None

        return position
