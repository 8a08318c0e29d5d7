"""
Polypos: A Python library for 3D positions that can be read and manipulated in Cartesian, Spherical or
Cylindrical coordinates, converting lazily between them, with small matrices and composable 4x4 transforms.
"""

import logging

__version__ = version = "0.1.0"

# exposing the public API of the package
from polypos.system import CoordinateSystem, Axis, Quadrant
from polypos.constants import QUARTER, HALF, FULL, EQUALS_ERROR
from polypos.errors import PolyposError, ShapeMismatchError, CoordinateSystemError
from polypos.matrix import Matrix
from polypos.transform import Transform3d
from polypos.position import Position, dist_sqr, average

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "CoordinateSystem",
    "Axis",
    "Quadrant",
    "QUARTER",
    "HALF",
    "FULL",
    "EQUALS_ERROR",
    "PolyposError",
    "ShapeMismatchError",
    "CoordinateSystemError",
    "Matrix",
    "Transform3d",
    "Position",
    "dist_sqr",
    "average",
]
