"""
Sensors Module: Pedestrian dead-reckoning displacement source.
"""

from .pdr import (
    StepDisplacementSource,
    DEFAULT_STEP_LENGTH_M,
    wrap_heading,
)

__all__ = [
    'StepDisplacementSource',
    'DEFAULT_STEP_LENGTH_M',
    'wrap_heading',
]
