"""
Anchor registry.

Maps anchor identifiers (radio MAC addresses) to planar coordinates in the
local floor frame. Written by configuration/editing code, read by the
multilateration solver once per ranging cycle.
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ipos_core.errors import InvalidMeasurementError
from ipos_core.proto.range_reading import RangeReading

logger = logging.getLogger(__name__)


def normalize_anchor_id(raw: str) -> str:
    """Canonical form of an anchor ID: trimmed, lower-case."""
    return raw.strip().lower()


@dataclass(frozen=True)
class Anchor:
    """
    Fixed ranging reference with known coordinates.

    Attributes:
        anchor_id: Normalized anchor identifier
        x: X coordinate in meters
        y: Y coordinate in meters
    """

    anchor_id: str
    x: float
    y: float

    @property
    def position(self) -> Tuple[float, float]:
        """Get (x, y) in meters."""
        return (self.x, self.y)

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {'anchor_id': self.anchor_id, 'x': self.x, 'y': self.y}


class AnchorRegistry:
    """
    Thread-safe anchor table keyed by normalized anchor ID.

    Usage:
        registry = AnchorRegistry()
        registry.upsert("7C:8B:CA:12:34:56", 0.0, 0.0)
        registry.upsert("7c:8b:ca:12:34:57", 10.0, 0.0)

        pairs = registry.resolve(batch.get_successful_readings())
        for anchor, reading in pairs:
            ...
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._anchors: Dict[str, Anchor] = {}

    @classmethod
    def from_config(cls, anchors: Mapping[str, Mapping[str, float]]) -> "AnchorRegistry":
        """
        Build a registry from a config mapping.

        Args:
            anchors: {"aa:bb:..": {"x": 0.0, "y": 0.0}, ...}

        Returns:
            Populated AnchorRegistry
        """
        registry = cls()
        for anchor_id, coords in anchors.items():
            registry.upsert(anchor_id, coords["x"], coords["y"])
        return registry

    def upsert(self, anchor_id: str, x: float, y: float) -> Anchor:
        """
        Add or overwrite an anchor.

        Args:
            anchor_id: Raw anchor ID (normalized before storing)
            x: X coordinate in meters
            y: Y coordinate in meters

        Returns:
            The stored Anchor

        Raises:
            ValueError: If the ID is blank
            InvalidMeasurementError: If a coordinate is not finite
        """
        key = normalize_anchor_id(anchor_id)
        if not key:
            raise ValueError("Anchor ID is empty")

        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidMeasurementError(f"Anchor {key} coordinates must be finite: ({x}, {y})")

        anchor = Anchor(key, float(x), float(y))
        with self._lock:
            self._anchors[key] = anchor

        logger.debug(f"Anchor {key} set to ({x:.2f}, {y:.2f})")
        return anchor

    def remove(self, anchor_id: str) -> bool:
        """Remove an anchor; returns True if it was present."""
        key = normalize_anchor_id(anchor_id)
        with self._lock:
            removed = self._anchors.pop(key, None) is not None
        if removed:
            logger.debug(f"Anchor {key} removed")
        return removed

    def clear(self):
        """Remove all anchors."""
        with self._lock:
            self._anchors.clear()

    def get(self, anchor_id: str) -> Optional[Anchor]:
        """Look up an anchor by (raw or normalized) ID."""
        with self._lock:
            return self._anchors.get(normalize_anchor_id(anchor_id))

    def __contains__(self, anchor_id: str) -> bool:
        return self.get(anchor_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._anchors)

    def entries(self) -> List[Anchor]:
        """All anchors sorted by ID."""
        with self._lock:
            return sorted(self._anchors.values(), key=lambda a: a.anchor_id)

    def resolve(self, readings: Iterable[RangeReading]) -> List[Tuple[Anchor, RangeReading]]:
        """
        Join readings with known anchors.

        Args:
            readings: Range readings from one ranging cycle

        Returns:
            (Anchor, RangeReading) pairs, in reading order, for readings whose
            anchor is registered
        """
        with self._lock:
            anchors = dict(self._anchors)

        pairs = []
        for reading in readings:
            anchor = anchors.get(normalize_anchor_id(reading.anchor_id))
            if anchor is not None:
                pairs.append((anchor, reading))
        return pairs
