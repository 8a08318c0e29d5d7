"""Custom exception types for polypos."""


class PolyposError(Exception):
    """Base exception for all polypos errors."""

    pass


class ShapeMismatchError(PolyposError, ValueError):
    """Matrix dimensions are incompatible with the requested operation."""

    pass


class CoordinateSystemError(PolyposError, ValueError):
    """Unknown coordinate system or axis."""

    pass


__all__ = [
    "PolyposError",
    "ShapeMismatchError",
    "CoordinateSystemError",
]
