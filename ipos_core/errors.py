"""
Error types raised by the positioning core.

All errors are recoverable: the caller keeps its prior fused estimate and
tries again with the next ranging cycle or displacement event. They derive
from ValueError so existing callers that guard input with ValueError keep
working.
"""

from typing import Optional, Sequence


class LocalizationError(ValueError):
    """Base class for all positioning core errors."""


class InsufficientAnchorsError(LocalizationError):
    """
    Fewer than the minimum number of resolvable anchor/range pairs.

    Attributes:
        available: Number of usable anchor/range pairs found
        required: Minimum number of pairs needed
        anchor_ids: IDs of the usable anchors
    """

    def __init__(
        self,
        available: int,
        required: int = 3,
        anchor_ids: Optional[Sequence[str]] = None,
    ):
        self.available = available
        self.required = required
        self.anchor_ids = list(anchor_ids or [])
        super().__init__(
            f"Need at least {required} anchors with known coordinates, "
            f"have {available}"
        )


class DegenerateGeometryError(LocalizationError):
    """
    Linearized multilateration system is (near) singular.

    Raised for collinear or too-close anchors. Carries the offending anchor
    set for diagnostics.

    Attributes:
        anchor_ids: IDs of the anchors in the degenerate set
        determinant: Determinant of the 2x2 normal matrix
    """

    def __init__(self, anchor_ids: Sequence[str], determinant: float):
        self.anchor_ids = list(anchor_ids)
        self.determinant = determinant
        super().__init__(
            f"Degenerate anchor geometry (det={determinant:.3e}): "
            f"{', '.join(self.anchor_ids) or 'unnamed anchors'}"
        )


class InvalidMeasurementError(LocalizationError):
    """Non-positive sigma, or non-finite distance/coordinate/displacement."""


class SingularMatrixError(LocalizationError):
    """2x2 matrix cannot be inverted (|det| at or below tolerance)."""
