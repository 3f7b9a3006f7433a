"""
Protocol Module: Value types exchanged between components.

- Range readings from the ranging collaborator
- Displacement events from the step detector
- Position fixes (raw, fused, placeholder)
"""

from .range_reading import (
    RangeReading,
    RangingBatch,
    RangingStatus,
)
from .displacement import DisplacementEvent
from .position_fix import (
    PositionFix,
    FixSource,
    create_no_fix,
)

__all__ = [
    'RangeReading',
    'RangingBatch',
    'RangingStatus',
    'DisplacementEvent',
    'PositionFix',
    'FixSource',
    'create_no_fix',
]
