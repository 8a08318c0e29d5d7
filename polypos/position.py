# position.py

# Licensed under the Apache License, Version 2.0 (the "License")

import logging
import math
from numbers import Real
from numpy import asarray as np_asarray
from numpy import float64 as np_float64
from numpy import ndarray
import numpy as np

from typing import Iterator, Optional, Sequence, Tuple, Union
from polypos.constants import QUARTER, HALF, EQUALS_ERROR, EQUALS_ERROR_SQR
from polypos.errors import CoordinateSystemError
from polypos.geometry import (
    spherical_to_cartesian,
    cylindrical_to_cartesian,
    cartesian_to_spherical,
    cylindrical_to_spherical,
    cartesian_to_cylindrical,
    spherical_to_cylindrical,
    rotate_in_plane,
    dot3,
    cross3,
)
from polypos.matrix import Matrix
from polypos.system import Axis, CoordinateSystem, Quadrant, _AXIS_TO_VEC, _SIGNS_TO_QUADRANT
from polypos.transform import Transform3d

logger = logging.getLogger(__name__)

CARTESIAN = CoordinateSystem.CARTESIAN
SPHERICAL = CoordinateSystem.SPHERICAL
CYLINDRICAL = CoordinateSystem.CYLINDRICAL

_DEG_TO_RAD = math.pi / 180.0
_Y_AXIS = tuple(_AXIS_TO_VEC[Axis.Y])

PositionLike = Union["Position", Sequence[float], ndarray]


def _as_system(system: Union[CoordinateSystem, int, None]) -> Optional[CoordinateSystem]:
    if system is None:
        return None
    try:
        return CoordinateSystem(system)
    except ValueError:
        raise CoordinateSystemError(f"Unknown coordinate system: {system!r}") from None


def _peek_cartesian(value: PositionLike) -> Tuple[float, float, float]:
    """Cartesian (x, y, z) of a Position or a 3-sequence, without converting the Position."""
    if isinstance(value, Position):
        system = value._system
        if system == SPHERICAL:
            return spherical_to_cartesian(value._a, value._b, value._c)
        if system == CYLINDRICAL:
            return cylindrical_to_cartesian(value._a, value._b, value._c)
        return value._a, value._b, value._c
    values = np_asarray(value, dtype=np_float64)
    if values.shape != (3,):
        raise ValueError(
            f"Expected a Position or 3 Cartesian values, got shape {values.shape}")
    return float(values[0]), float(values[1]), float(values[2])


def _to_position(value: PositionLike) -> "Position":
    """A new, independent Cartesian Position with the value of `value`."""
    return Position._new(*_peek_cartesian(value), CARTESIAN)


def _nan_sqrt(value: float) -> float:
    return math.sqrt(value) if value >= 0.0 else math.nan


def _sign(value: float, tol: float) -> int:
    if abs(value) <= tol:
        return 0
    return 1 if value > 0.0 else -1


class Position:
    """
    A mutable 3D position that can be read and manipulated in Cartesian,
    Spherical or Cylindrical coordinates.

    Y is the vertical axis and Z is the horizontal axis marking the zero
    azimuth. Angles increase counter-clockwise around their rotation axis as
    viewed from the positive end of that axis. All angles are radians.

    Only the value triple of the current `system` is stored:

    - CARTESIAN: (x, y, z)
    - SPHERICAL: (magnitude, azimuth around Y, elevation from horizontal)
    - CYLINDRICAL: (horizontal magnitude, azimuth around Y, y)

    Every operation converts into the system it needs before computing and
    leaves the position in that system. Mutating methods return `self`, so
    calls can be chained; use `clone()` (or the arithmetic operators) to keep
    the original.

    A position may carry a `checkpoint` (a saved snapshot to `revert()` to)
    and, between `relative()` and `unrelative()`, a `relative_frame`.
    """
    __slots__ = ("_a", "_b", "_c", "_system", "_checkpoint", "_relative")
    # make numpy defer binary operators (ndarray + Position) to this class
    __array_ufunc__ = None

    def __init__(self, a: float = 0.0, b: float = 0.0, c: float = 0.0,
                 system: Union[CoordinateSystem, int, None] = CARTESIAN):
        """
        Create a Position from three values in the given system.

        Args:
            a, b, c: the values, read according to `system`:
                Cartesian (x, y, z), Spherical (magnitude, azimuth, elevation),
                Cylindrical (magnitude, azimuth, y).
            system: a CoordinateSystem (or its integer value). None creates an
                untagged position, read as Cartesian by every conversion.
        """
        self._a = float(a)
        self._b = float(b)
        self._c = float(c)
        self._system: Optional[CoordinateSystem] = _as_system(system)
        self._checkpoint: Optional[Position] = None
        self._relative: Optional[Position] = None

    @classmethod
    def _new(cls, a: float, b: float, c: float, system: Optional[CoordinateSystem]) -> "Position":
        """Create a Position without checking or converting the inputs."""
        instance = object.__new__(cls)
        instance._a = a
        instance._b = b
        instance._c = c
        instance._system = system
        instance._checkpoint = None
        instance._relative = None
        return instance

    @classmethod
    def cartesian(cls, x: float, y: float, z: float) -> "Position":
        """Create a Position from Cartesian (x, y, z)."""
        return cls(x, y, z, CARTESIAN)

    @classmethod
    def spherical(cls, mag: float, ang1: float, ang2: float) -> "Position":
        """Create a Position from Spherical (magnitude, azimuth around Y, elevation from horizontal)."""
        return cls(mag, ang1, ang2, SPHERICAL)

    @classmethod
    def cylindrical(cls, mag: float, ang1: float, y: float) -> "Position":
        """Create a Position from Cylindrical (horizontal magnitude, azimuth around Y, y)."""
        return cls(mag, ang1, y, CYLINDRICAL)

    @classmethod
    def from_array(cls, abc: Union[Sequence[float], ndarray],
                   system: Union[CoordinateSystem, int] = CARTESIAN) -> "Position":
        """
        Create a Position from the first three values of `abc`, read in `system`.
        """
        return cls(abc[0], abc[1], abc[2], system)

    @classmethod
    def zero(cls) -> "Position":
        """The origin, untagged."""
        return cls._new(0.0, 0.0, 0.0, None)

    @classmethod
    def from_position(cls, other: "Position") -> "Position":
        """Create a clone of `other`, including its checkpoint chain but not its relative frame."""
        return other.clone()

    def clone(self) -> "Position":
        """
        Return an independent copy of this Position.

        The checkpoint chain is copied deeply. The relative frame is not
        copied, so the clone is never in relative mode.
        """
        new = self._new(self._a, self._b, self._c, self._system)
        if self._checkpoint is not None:
            new._checkpoint = self._checkpoint.clone()
        return new

    def _snapshot(self) -> "Position":
        """Values-only copy, used for intermediate results."""
        return self._new(self._a, self._b, self._c, self._system)

    #########
    # Coordinate system conversions
    #

    def to_cartesian(self) -> "Position":
        """
        Convert to Cartesian coordinates. A no-op when already Cartesian.

        Returns:
            self
        """
        system = self._system
        if system == SPHERICAL:
            self._a, self._b, self._c = spherical_to_cartesian(self._a, self._b, self._c)
        elif system == CYLINDRICAL:
            self._a, self._b, self._c = cylindrical_to_cartesian(self._a, self._b, self._c)
        self._system = CARTESIAN
        return self

    def to_spherical(self) -> "Position":
        """
        Convert to Spherical coordinates. A no-op when already Spherical.

        A position on the vertical axis gets an elevation of +/- pi/2 (pi/2 at the
        origin) and an azimuth of 0.

        Returns:
            self
        """
        system = self._system
        if system == SPHERICAL:
            return self
        if system == CYLINDRICAL:
            self._a, self._b, self._c = cylindrical_to_spherical(self._a, self._b, self._c)
        else:
            self._a, self._b, self._c = cartesian_to_spherical(self._a, self._b, self._c)
        self._system = SPHERICAL
        return self

    def to_cylindrical(self) -> "Position":
        """
        Convert to Cylindrical coordinates. A no-op when already Cylindrical.

        Returns:
            self
        """
        system = self._system
        if system == CYLINDRICAL:
            return self
        if system == SPHERICAL:
            self._a, self._b, self._c = spherical_to_cylindrical(self._a, self._b, self._c)
        else:
            self._a, self._b, self._c = cartesian_to_cylindrical(self._a, self._b, self._c)
        self._system = CYLINDRICAL
        return self

    def to_system(self, system: Union[CoordinateSystem, int]) -> "Position":
        """Convert to the given coordinate system."""
        system = _as_system(system)
        if system == CARTESIAN:
            return self.to_cartesian()
        if system == SPHERICAL:
            return self.to_spherical()
        if system == CYLINDRICAL:
            return self.to_cylindrical()
        raise CoordinateSystemError("Cannot convert to an untagged system")

    #########
    # Getters
    #

    @property
    def system(self) -> Optional[CoordinateSystem]:
        """The current coordinate system, or None for an untagged origin."""
        return self._system

    @property
    def a(self) -> float:
        """First raw value of the current system: x or magnitude."""
        return self._a

    @property
    def b(self) -> float:
        """Second raw value of the current system: y or azimuth."""
        return self._b

    @property
    def c(self) -> float:
        """Third raw value of the current system: z, elevation or y."""
        return self._c

    @property
    def x(self) -> float:
        return self.to_cartesian()._a

    @property
    def y(self) -> float:
        if self._system == CYLINDRICAL:
            return self._c
        return self.to_cartesian()._b

    @property
    def z(self) -> float:
        return self.to_cartesian()._c

    @property
    def mag_s(self) -> float:
        """Spherical magnitude (distance from the origin)."""
        return self.to_spherical()._a

    @property
    def mag_c(self) -> float:
        """Cylindrical magnitude (distance from the vertical axis)."""
        return self.to_cylindrical()._a

    @property
    def mag_s_sqr(self) -> float:
        """Squared spherical magnitude, computed in the current system."""
        system = self._system
        if system == SPHERICAL:
            return self._a * self._a
        if system == CYLINDRICAL:
            return self._a * self._a + self._c * self._c
        return self._a * self._a + self._b * self._b + self._c * self._c

    @property
    def mag_c_sqr(self) -> float:
        """Squared cylindrical magnitude, computed in the current system."""
        system = self._system
        if system == CYLINDRICAL:
            return self._a * self._a
        if system == SPHERICAL:
            horizontal = self._a * math.cos(self._c)
            return horizontal * horizontal
        return self._a * self._a + self._c * self._c

    @property
    def ang1(self) -> float:
        """Azimuth: rotation around the Y axis, measured from +Z towards +X."""
        if self._system == SPHERICAL:
            return self._b
        return self.to_cylindrical()._b

    @property
    def ang2(self) -> float:
        """Elevation: rotation up from the horizontal plane."""
        return self.to_spherical()._c

    @property
    def ang_x(self) -> float:
        """Rotation around the X axis."""
        self.to_cartesian()
        return -math.atan2(self._b, self._c)

    @property
    def ang_z(self) -> float:
        """Rotation around the Z axis."""
        self.to_cartesian()
        return math.atan2(self._b, self._a)

    #########
    # Setters
    #

    @x.setter
    def x(self, value: float) -> None:
        self.set_x(value)

    @y.setter
    def y(self, value: float) -> None:
        self.set_y(value)

    @z.setter
    def z(self, value: float) -> None:
        self.set_z(value)

    @mag_s.setter
    def mag_s(self, value: float) -> None:
        self.set_mag_s(value)

    @mag_c.setter
    def mag_c(self, value: float) -> None:
        self.set_mag_c(value)

    @ang1.setter
    def ang1(self, value: float) -> None:
        self.set_ang1(value)

    @ang2.setter
    def ang2(self, value: float) -> None:
        self.set_ang2(value)

    def set_x(self, x: float) -> "Position":
        """Set the Cartesian x."""
        self.to_cartesian()._a = float(x)
        return self

    def set_y(self, y: float) -> "Position":
        """Set y. Cylindrical positions stay Cylindrical, Spherical ones become Cylindrical."""
        if self._system == SPHERICAL:
            self.to_cylindrical()
        if self._system == CYLINDRICAL:
            self._c = float(y)
        else:
            self.to_cartesian()._b = float(y)
        return self

    def set_z(self, z: float) -> "Position":
        """Set the Cartesian z."""
        self.to_cartesian()._c = float(z)
        return self

    def set_ang1(self, ang1: float) -> "Position":
        """Set the azimuth. Spherical positions stay Spherical, others become Cylindrical."""
        if self._system != SPHERICAL:
            self.to_cylindrical()
        self._b = float(ang1)
        return self

    def set_ang2(self, ang2: float) -> "Position":
        """Set the elevation from horizontal."""
        self.to_spherical()._c = float(ang2)
        return self

    def set_mag_s(self, mag: float) -> "Position":
        """Set the spherical magnitude, keeping the direction."""
        self.to_spherical()._a = float(mag)
        return self

    def set_mag_c(self, mag: float) -> "Position":
        """Set the cylindrical magnitude, keeping the azimuth and y."""
        self.to_cylindrical()._a = float(mag)
        return self

    def set_to(self, other: "Position") -> "Position":
        """
        Copy the values and system of `other` into this.

        The checkpoint and relative frame of this are left untouched.
        """
        self._a = other._a
        self._b = other._b
        self._c = other._c
        self._system = other._system
        return self

    def set_values(self, a: float, b: float, c: float,
                   system: Union[CoordinateSystem, int] = CARTESIAN) -> "Position":
        """
        Replace the values, read in `system`, and switch to that system.

        The checkpoint and relative frame of this are left untouched.
        """
        self._a = float(a)
        self._b = float(b)
        self._c = float(c)
        self._system = _as_system(system)
        return self

    def set_array(self, abc: Union[Sequence[float], ndarray],
                  system: Union[CoordinateSystem, int] = CARTESIAN) -> "Position":
        """Like `set_values`, reading the first three values of `abc`."""
        return self.set_values(abc[0], abc[1], abc[2], system)

    #########
    # Arithmetic
    #

    @staticmethod
    def _operand(other: PositionLike, system: Union[CoordinateSystem, int]) -> "Position":
        # Positions are converted in place, plain values are read in `system`
        if isinstance(other, Position):
            return other.to_cartesian()
        values = np_asarray(other, dtype=np_float64)
        if values.shape != (3,):
            raise ValueError(
                f"Expected a Position or 3 values, got shape {values.shape}")
        return Position(values[0], values[1], values[2], system).to_cartesian()

    def add(self, other: PositionLike, system: Union[CoordinateSystem, int] = CARTESIAN) -> "Position":
        """
        Cartesian addition of `other` onto this.

        Args:
            other: a Position (converted to Cartesian in place) or three values.
            system: the system three plain values are read in.

        Returns:
            self, in Cartesian.
        """
        other = self._operand(other, system)
        self.to_cartesian()
        self._a += other._a
        self._b += other._b
        self._c += other._c
        return self

    def sub(self, other: PositionLike, system: Union[CoordinateSystem, int] = CARTESIAN) -> "Position":
        """Cartesian subtraction of `other` from this. Returns self, in Cartesian."""
        other = self._operand(other, system)
        self.to_cartesian()
        self._a -= other._a
        self._b -= other._b
        self._c -= other._c
        return self

    def mult(self, other: PositionLike, system: Union[CoordinateSystem, int] = CARTESIAN) -> "Position":
        """Component-wise Cartesian multiplication (x by x, y by y, z by z). Returns self, in Cartesian."""
        other = self._operand(other, system)
        self.to_cartesian()
        self._a *= other._a
        self._b *= other._b
        self._c *= other._c
        return self

    def divi(self, other: PositionLike, system: Union[CoordinateSystem, int] = CARTESIAN) -> "Position":
        """
        Component-wise Cartesian division (x by x, y by y, z by z).

        Division by a zero component follows IEEE 754 (inf or nan) instead of raising.

        Returns:
            self, in Cartesian.
        """
        other = self._operand(other, system)
        self.to_cartesian()
        with np.errstate(divide="ignore", invalid="ignore"):
            self._a = float(np_float64(self._a) / other._a)
            self._b = float(np_float64(self._b) / other._b)
            self._c = float(np_float64(self._c) / other._c)
        return self

    def scale(self, scale: float) -> "Position":
        """
        Scale this by `scale` without changing the coordinate system.

        Cartesian scales all three values, Spherical the magnitude, Cylindrical
        the magnitude and y.
        """
        system = self._system
        if system == SPHERICAL:
            self._a *= scale
        elif system == CYLINDRICAL:
            self._a *= scale
            self._c *= scale
        else:
            self._a *= scale
            self._b *= scale
            self._c *= scale
        return self

    def double_pos(self) -> "Position":
        """Add this onto itself, without changing the coordinate system."""
        return self.scale(2.0)

    def flip(self) -> "Position":
        """Flip this across the origin."""
        return self.scale(-1.0)

    def flip_and_double(self) -> "Position":
        """Flip this across the origin and double it."""
        return self.scale(-2.0)

    def sqr(self) -> "Position":
        """Square each Cartesian value."""
        self.to_cartesian()
        self._a *= self._a
        self._b *= self._b
        self._c *= self._c
        return self

    def sqrt(self) -> "Position":
        """Square root of each Cartesian value. Negative values become nan."""
        self.to_cartesian()
        self._a = _nan_sqrt(self._a)
        self._b = _nan_sqrt(self._b)
        self._c = _nan_sqrt(self._c)
        return self

    def sqrt_positive(self) -> "Position":
        """Square root of the absolute value of each Cartesian value."""
        self.to_cartesian()
        self._a = math.sqrt(abs(self._a))
        self._b = math.sqrt(abs(self._b))
        self._c = math.sqrt(abs(self._c))
        return self

    def sqr_preserve_sign(self) -> "Position":
        """Square each Cartesian value, keeping its sign."""
        self.to_cartesian()
        self._a *= abs(self._a)
        self._b *= abs(self._b)
        self._c *= abs(self._c)
        return self

    def sqrt_preserve_sign(self) -> "Position":
        """Square root of the absolute value of each Cartesian value, keeping its sign."""
        self.to_cartesian()
        self._a = math.copysign(math.sqrt(abs(self._a)), self._a)
        self._b = math.copysign(math.sqrt(abs(self._b)), self._b)
        self._c = math.copysign(math.sqrt(abs(self._c)), self._c)
        return self

    def sqr_mag_s(self) -> "Position":
        """Square the spherical magnitude."""
        self.to_spherical()
        self._a *= self._a
        return self

    def sqrt_mag_s(self) -> "Position":
        self.to_spherical()
        self._a = _nan_sqrt(self._a)
        return self

    def sqr_mag_c(self) -> "Position":
        """Square the cylindrical magnitude."""
        self.to_cylindrical()
        self._a *= self._a
        return self

    def sqrt_mag_c(self) -> "Position":
        self.to_cylindrical()
        self._a = _nan_sqrt(self._a)
        return self

    def flatten(self) -> "Position":
        """Drop the vertical component: y = 0 in Cartesian and Cylindrical, elevation = 0 in Spherical."""
        if self._system == SPHERICAL or self._system == CYLINDRICAL:
            self._c = 0.0
        else:
            self._b = 0.0
        return self

    def to_rad(self) -> "Position":
        """Convert the stored angles from degrees to radians. Cartesian positions are unchanged."""
        if self._system == SPHERICAL:
            self._b *= _DEG_TO_RAD
            self._c *= _DEG_TO_RAD
        elif self._system == CYLINDRICAL:
            self._b *= _DEG_TO_RAD
        return self

    def floor(self) -> "Position":
        """Floor each value of the current system. inf and nan pass through."""
        self._a, self._b, self._c = np.floor((self._a, self._b, self._c)).tolist()
        return self

    def ceil(self) -> "Position":
        """Ceil each value of the current system. inf and nan pass through."""
        self._a, self._b, self._c = np.ceil((self._a, self._b, self._c)).tolist()
        return self

    def round(self) -> "Position":
        """
        Round each value of the current system to the nearest integer, halves
        towards positive infinity (-2.5 becomes -2). inf and nan pass through.
        """
        self._a, self._b, self._c = np.floor(np.add((self._a, self._b, self._c), 0.5)).tolist()
        return self

    #########
    # Rotation
    #

    def rotate_around_y(self, radians: float) -> "Position":
        """
        Rotate counter-clockwise around the Y axis.

        Works on the azimuth directly: Spherical positions stay Spherical,
        everything else becomes Cylindrical.
        """
        if self._system != SPHERICAL:
            self.to_cylindrical()
        self._b += radians
        return self

    def rotate_vertical(self, radians: float) -> "Position":
        """
        Rotate "upwards" from the horizontal plane, in the vertical plane of the azimuth.

        The direction is up while the elevation is within (-pi/2, pi/2) and
        down past that, as increasing any angle would.
        """
        self.to_spherical()._c += radians
        return self

    def rotate_around_x(self, radians: float) -> "Position":
        """Rotate counter-clockwise around the X axis (+Y towards +Z)."""
        self.to_cartesian()
        self._c, self._b = rotate_in_plane(self._c, self._b, -radians)
        return self

    def rotate_around_z(self, radians: float) -> "Position":
        """Rotate counter-clockwise around the Z axis (+X towards +Y)."""
        self.to_cartesian()
        self._a, self._b = rotate_in_plane(self._a, self._b, radians)
        return self

    def rotate_around_axis(self, axis: PositionLike, radians: float) -> "Position":
        """
        Rotate counter-clockwise around the axis running from the origin through `axis`.

        The axis is first aligned with +Y, the rotation is done around Y, and
        the alignment is undone in reverse order.

        Args:
            axis: a point on the rotation axis other than the origin. It is not modified.
            radians: the rotation angle.

        Returns:
            self
        """
        _, axis_ang1, axis_ang2 = cartesian_to_spherical(*_peek_cartesian(axis))
        tilt = QUARTER - axis_ang2

        self.to_cartesian()
        self.rotate_around_y(-axis_ang1)
        self.rotate_around_x(-tilt)
        self.rotate_around_y(radians)
        self.rotate_around_x(tilt)
        self.rotate_around_y(axis_ang1)
        return self

    #########
    # Mirroring
    #

    def mirror_across_xy(self) -> "Position":
        """Mirror across the XY plane (negate z)."""
        if self._system == SPHERICAL or self._system == CYLINDRICAL:
            self._b = -(self._b + HALF)
        else:
            self._c = -self._c
        return self

    def mirror_across_yz(self) -> "Position":
        """Mirror across the YZ plane (negate x)."""
        if self._system == SPHERICAL or self._system == CYLINDRICAL:
            self._b = -self._b
        else:
            self._a = -self._a
        return self

    def mirror_across_zx(self) -> "Position":
        """Mirror across the ZX plane (negate y)."""
        if self._system == SPHERICAL or self._system == CYLINDRICAL:
            self._c = -self._c
        else:
            self._b = -self._b
        return self

    def mirror_across_plane(self, plane1: PositionLike, plane2: PositionLike,
                            plane3: Optional[PositionLike] = None) -> "Position":
        """
        Mirror across an arbitrary plane.

        The plane passes through the origin, `plane1` and `plane2`, or through
        `plane1`, `plane2` and `plane3` when the third point is given.

        Returns:
            self, in Cartesian.
        """
        offset = self._snapshot().dist_from_plane(plane1, plane2, plane3)
        return self.sub(offset.scale(2.0))

    #########
    # Projection
    #

    def project_onto(self, onto: PositionLike) -> "Position":
        """
        Become the projection of this onto the vector `onto`.

        The scalar projection dot(self, onto) / |onto| becomes the spherical
        magnitude along the direction of `onto`. Projecting onto a zero vector
        gives nan in every component.

        Returns:
            self, in Spherical.
        """
        onto = _to_position(onto)
        onto_mag = onto.mag_s
        if onto_mag == 0.0:
            return self.set_values(math.nan, math.nan, math.nan, CARTESIAN)
        s = self.dot_product(onto) / onto_mag
        return self.set_to(onto).set_mag_s(s)

    def project_onto_xy(self) -> "Position":
        return self.set_z(0.0)

    def project_onto_yz(self) -> "Position":
        return self.set_x(0.0)

    def project_onto_xz(self) -> "Position":
        return self.set_y(0.0)

    def project_onto_x(self) -> "Position":
        return self.set_z(0.0).set_y(0.0)

    def project_onto_y(self) -> "Position":
        return self.set_x(0.0).set_z(0.0)

    def project_onto_z(self) -> "Position":
        return self.set_y(0.0).set_x(0.0)

    def project_onto_plane(self, plane1: PositionLike, plane2: PositionLike,
                           plane3: Optional[PositionLike] = None) -> "Position":
        """
        Project onto an arbitrary plane, through the origin, `plane1` and
        `plane2`, or through the three given points.

        Returns:
            self, in Cartesian.
        """
        offset = self._snapshot().dist_from_plane(plane1, plane2, plane3)
        return self.sub(offset)

    def dist_from_plane(self, plane1: PositionLike, plane2: PositionLike,
                        plane3: Optional[PositionLike] = None) -> "Position":
        """
        Become the offset vector from the closest point on a plane to this.

        Args:
            plane1, plane2: points in the plane.
            plane3: a third point in the plane. When omitted, the plane passes
                through the origin, `plane1` and `plane2`.

        Returns:
            self. Collinear plane points give nan.
        """
        if plane3 is None:
            base = Position._new(0.0, 0.0, 0.0, CARTESIAN)
            first, second = _to_position(plane1), _to_position(plane2)
        else:
            base = _to_position(plane1)
            first, second = _to_position(plane2).sub(base), _to_position(plane3).sub(base)
        self.sub(base)
        normal = first.cross_product(second)
        return self.project_onto(normal)

    def dist_from_line(self, line1: PositionLike, line2: PositionLike) -> "Position":
        """
        Become the offset vector from the closest point on the infinite line
        through `line1` and `line2` to this.

        Returns:
            self, in Cartesian.
        """
        base = _to_position(line1)
        direction = _to_position(line2).sub(base)
        self.sub(base)
        along = self._snapshot().project_onto(direction)
        return self.sub(along)

    def dist_from_segment(self, seg1: PositionLike, seg2: Optional[PositionLike] = None) -> "Position":
        """
        Become the offset vector from the closest point on a line segment to this.

        The closest point is the start of the segment when this projects
        behind it, the end when this projects past it, and the perpendicular
        foot otherwise.

        Args:
            seg1: one end of the segment.
            seg2: the other end. When omitted, the segment runs from the origin to `seg1`.

        Returns:
            self, in Cartesian.
        """
        if seg2 is None:
            base = Position._new(0.0, 0.0, 0.0, CARTESIAN)
            direction = _to_position(seg1)
        else:
            base = _to_position(seg1)
            direction = _to_position(seg2).sub(base)
        self.sub(base)

        length_sqr = direction.mag_s_sqr
        along = self.dot_product(direction)
        if along <= 0.0 or length_sqr == 0.0:
            return self
        if along > length_sqr:
            return self.sub(direction)
        return self.sub(direction.scale(along / length_sqr))

    #########
    # Vector products and comparisons
    #

    def dot_product(self, other: PositionLike) -> float:
        """Dot product of this and `other`. `other` is not modified."""
        self.to_cartesian()
        return dot3(self._a, self._b, self._c, *_peek_cartesian(other))

    def cross_product(self, other: PositionLike) -> "Position":
        """
        Become the cross product of this by `other`.

        Returns:
            self, in Cartesian.
        """
        self.to_cartesian()
        self._a, self._b, self._c = cross3(self._a, self._b, self._c, *_peek_cartesian(other))
        return self

    def angle_between(self, other: PositionLike) -> float:
        """
        The angle between this and `other`, in [0, pi]. nan when either is the zero vector.
        """
        sx, sy, sz = _peek_cartesian(self)
        ox, oy, oz = _peek_cartesian(other)
        mags = math.sqrt(dot3(sx, sy, sz, sx, sy, sz) * dot3(ox, oy, oz, ox, oy, oz))
        if mags == 0.0:
            return math.nan
        cos_angle = dot3(sx, sy, sz, ox, oy, oz) / mags
        # clamp against rounding just outside [-1, 1]
        if cos_angle > 1.0:
            cos_angle = 1.0
        elif cos_angle < -1.0:
            cos_angle = -1.0
        return math.acos(cos_angle)

    def same_quadrant(self, other: PositionLike, tol: float = EQUALS_ERROR) -> bool:
        """
        True if every Cartesian component of this has the same sign as the
        matching component of `other`. Components within `tol` of zero count as zero.
        """
        sx, sy, sz = _peek_cartesian(self)
        ox, oy, oz = _peek_cartesian(other)
        return (_sign(sx, tol) == _sign(ox, tol)
                and _sign(sy, tol) == _sign(oy, tol)
                and _sign(sz, tol) == _sign(oz, tol))

    def quadrant_zp(self) -> Quadrant:
        """The octant this lies in, counting zeros as positive."""
        x, y, z = _peek_cartesian(self)
        return _SIGNS_TO_QUADRANT[(x >= 0.0, y >= 0.0, z >= 0.0)]

    def quadrant_zn(self) -> Quadrant:
        """The octant this lies in, counting zeros as negative."""
        x, y, z = _peek_cartesian(self)
        return _SIGNS_TO_QUADRANT[(x > 0.0, y > 0.0, z > 0.0)]

    def is_close(self, other: PositionLike, tol: float = EQUALS_ERROR) -> bool:
        """True if the Cartesian distance between this and `other` is below `tol`."""
        sx, sy, sz = _peek_cartesian(self)
        ox, oy, oz = _peek_cartesian(other)
        dx, dy, dz = sx - ox, sy - oy, sz - oz
        return dx*dx + dy*dy + dz*dz < tol * tol

    #########
    # Checkpoints
    #

    @property
    def checkpoint(self) -> Optional["Position"]:
        """The saved snapshot `revert()` restores, or None."""
        return self._checkpoint

    def set_checkpoint(self, other: Optional[PositionLike] = None) -> "Position":
        """
        Save a snapshot to revert to later.

        Args:
            other: the state to save. Defaults to the current values of this.
                When a Position is given, its own checkpoint chain is copied too.

        Returns:
            self
        """
        nested = None
        if other is None:
            source = self
        elif isinstance(other, Position):
            source = other
            if other._checkpoint is not None:
                nested = other._checkpoint.clone()
        else:
            source = _to_position(other)

        if self._checkpoint is None:
            self._checkpoint = source._snapshot()
        else:
            self._checkpoint.set_to(source)
        self._checkpoint._checkpoint = nested
        return self

    def clear_checkpoint(self) -> "Position":
        self._checkpoint = None
        return self

    def revert(self) -> "Position":
        """
        Restore the values saved by `set_checkpoint()`. The checkpoint itself is kept.
        Without a checkpoint this does nothing.
        """
        if self._checkpoint is None:
            logger.debug("revert: no checkpoint set, position left unchanged")
            return self
        return self.set_to(self._checkpoint)

    #########
    # Relative frames
    #

    @property
    def relative_frame(self) -> Optional["Position"]:
        """The frame this is currently expressed relative to, or None."""
        return self._relative

    @property
    def is_relative(self) -> bool:
        return self._relative is not None

    def relative(self) -> "Position":
        """
        Switch into the frame of this position.

        The current value is saved as the relative frame and this becomes the
        origin; further manipulations act as if performed from that frame.
        Only rotation and translation are carried, no scaling. When already
        relative, the current frame is flushed with `unrelative()` first, so
        this equals `unrelative().relative()`.

        Returns:
            self, as the Cartesian origin.
        """
        if self._relative is not None:
            self.unrelative()
        self._relative = self._snapshot()
        return self.set_values(0.0, 0.0, 0.0, CARTESIAN)

    def unrelative(self) -> "Position":
        """
        Switch out of the relative frame set by `relative()`.

        Everything done since `relative()` is re-expressed in world
        coordinates: the local frame's up direction is the saved frame turned
        up a quarter turn, and its orientation is re-applied as three
        rotations (around Y by gamma, around Z by beta, around Y by alpha,
        each skipped when negligible) followed by a translation by the frame.
        Without a relative frame this does nothing.

        Returns:
            self
        """
        frame = self._relative
        if frame is None:
            logger.debug("unrelative: position is not relative, left unchanged")
            return self

        up = frame._snapshot().rotate_vertical(QUARTER)
        normal = up._snapshot().cross_product(_Y_AXIS)
        gamma = frame.ang1 - normal.ang1
        beta = QUARTER - up.ang2
        alpha = normal.ang1

        if abs(gamma) > EQUALS_ERROR:
            self.rotate_around_y(gamma)
        if abs(beta) > EQUALS_ERROR:
            self.rotate_around_z(beta)
        if abs(alpha) > EQUALS_ERROR:
            self.rotate_around_y(alpha)

        self.add(frame)
        self._relative = None
        return self

    #########
    # Matrix transforms
    #

    def get_transforms(self) -> Tuple[Transform3d, Transform3d]:
        """
        Build the transformations to and from the coordinate space of this position.

        The forward transform rotates around X by `ang_x`, around Y by `ang1`,
        around Z by `ang_z`, then translates by (x, y, z). The second transform
        applies the inverse primitives in reverse order and undoes the first.
        This position is not modified.

        Returns:
            (to_frame, from_frame)
        """
        x, y, z = _peek_cartesian(self)
        angle_x = -math.atan2(y, z)
        angle_y = math.atan2(x, z)
        angle_z = math.atan2(y, x)

        to_frame = Transform3d(
            Matrix.rotation_3d(Axis.X, angle_x, padded=True),
            Matrix.rotation_3d(Axis.Y, angle_y, padded=True),
            Matrix.rotation_3d(Axis.Z, angle_z, padded=True),
            Matrix.translation(3, x, y, z),
        )
        from_frame = Transform3d(
            Matrix.translation(3, -x, -y, -z),
            Matrix.rotation_3d(Axis.Z, -angle_z, padded=True),
            Matrix.rotation_3d(Axis.Y, -angle_y, padded=True),
            Matrix.rotation_3d(Axis.X, -angle_x, padded=True),
        )
        return to_frame, from_frame

    def transform(self, transformation: Transform3d) -> "Position":
        """Apply `transformation` to this. Returns self, in Cartesian."""
        transformation.transform(self)
        return self

    #########
    # Arrays
    #

    def to_array(self, system: Union[CoordinateSystem, int, None] = None) -> ndarray:
        """
        The values of this as a length-3 float64 array.

        Args:
            system: the system to write in; this is converted to it. Defaults to
                the current system.
        """
        if system is not None:
            self.to_system(system)
        return np.array([self._a, self._b, self._c], dtype=np_float64)

    def fill_array(self, array: ndarray, system: Union[CoordinateSystem, int, None] = None) -> "Position":
        """Write the values of this, in `system`, into the first three slots of `array`."""
        if system is not None:
            self.to_system(system)
        array[0] = self._a
        array[1] = self._b
        array[2] = self._c
        return self

    @staticmethod
    def to_array_many(positions: Sequence["Position"],
                      system: Union[CoordinateSystem, int, None] = None) -> ndarray:
        """
        Write many positions to one flat float64 array.

        Args:
            positions: the positions to write.
            system: when given, every position is converted and written as
                (a, b, c). When None, each is written in its own system as
                (a, b, c, system).

        Returns:
            A flat array readable with `Position.from_array_many`.
        """
        if system is not None:
            system = _as_system(system)
            out = np.empty(len(positions) * 3, dtype=np_float64)
            for i, position in enumerate(positions):
                position.fill_array(out[i * 3:i * 3 + 3], system)
            return out

        out = np.empty(len(positions) * 4, dtype=np_float64)
        for i, position in enumerate(positions):
            if position._system is None:
                position.to_cartesian()
            position.fill_array(out[i * 4:i * 4 + 3])
            out[i * 4 + 3] = int(position._system)
        return out

    @staticmethod
    def to_array_many_xyz(positions: Sequence["Position"]) -> ndarray:
        """Write many positions to one flat array of Cartesian triples."""
        return Position.to_array_many(positions, CARTESIAN)

    @classmethod
    def from_array_many(cls, array: Union[Sequence[float], ndarray], index: int,
                        system: Union[CoordinateSystem, int, None] = None) -> "Position":
        """
        Read the position at `index` from a flat array.

        Args:
            array: values laid out as (a0, b0, c0, a1, b1, c1, ...) when
                `system` is given, or (a0, b0, c0, s0, a1, ...) when it is None.
            index: which position to read.
            system: the system of a triple layout, or None for the quad layout.
        """
        if system is not None:
            start = index * 3
            return cls(array[start], array[start + 1], array[start + 2], system)
        start = index * 4
        return cls(array[start], array[start + 1], array[start + 2], int(array[start + 3]))

    @classmethod
    def from_array_many_xyz(cls, array: Union[Sequence[float], ndarray], index: int) -> "Position":
        """Read the Cartesian position at `index` from a flat array of triples."""
        return cls.from_array_many(array, index, CARTESIAN)

    #########
    # Dunder methods
    #

    def __add__(self, other: PositionLike) -> "Position":
        if not isinstance(other, (Position, Sequence, ndarray)):
            return NotImplemented
        return self.clone().add(other)

    def __radd__(self, other: PositionLike) -> "Position":
        if not isinstance(other, (Sequence, ndarray)):
            return NotImplemented
        return self.clone().add(other)

    def __sub__(self, other: PositionLike) -> "Position":
        if not isinstance(other, (Position, Sequence, ndarray)):
            return NotImplemented
        return self.clone().sub(other)

    def __rsub__(self, other: PositionLike) -> "Position":
        if not isinstance(other, (Sequence, ndarray)):
            return NotImplemented
        return _to_position(other).sub(self.clone())

    def __mul__(self, other: Union[float, PositionLike]) -> "Position":
        if isinstance(other, Real):
            return self.clone().scale(float(other))
        if isinstance(other, (Position, Sequence, ndarray)):
            return self.clone().mult(other)
        return NotImplemented

    def __rmul__(self, other: Union[float, PositionLike]) -> "Position":
        return self.__mul__(other)

    def __truediv__(self, other: Union[float, PositionLike]) -> "Position":
        if isinstance(other, Real):
            # division by zero gives inf/nan, as divi does
            with np.errstate(divide="ignore", invalid="ignore"):
                factor = float(np_float64(1.0) / float(other))
            return self.clone().scale(factor)
        if isinstance(other, (Position, Sequence, ndarray)):
            return self.clone().divi(other)
        return NotImplemented

    def __rtruediv__(self, other: PositionLike) -> "Position":
        if not isinstance(other, (Sequence, ndarray)):
            return NotImplemented
        return _to_position(other).divi(self.clone())

    def __neg__(self) -> "Position":
        return self.clone().flip()

    def __abs__(self) -> float:
        x, y, z = _peek_cartesian(self)
        return math.sqrt(x*x + y*y + z*z)

    def __iter__(self) -> Iterator[float]:
        return iter(_peek_cartesian(self))

    def __eq__(self, other: object) -> bool:
        """Approximate equality: the squared Cartesian distance is below EQUALS_ERROR_SQR."""
        if other is self:
            return True
        if not isinstance(other, Position):
            return NotImplemented
        sx, sy, sz = _peek_cartesian(self)
        ox, oy, oz = _peek_cartesian(other)
        dx, dy, dz = sx - ox, sy - oy, sz - oz
        return dx*dx + dy*dy + dz*dz < EQUALS_ERROR_SQR

    __hash__ = None

    def __repr__(self) -> str:
        system = "None" if self._system is None else f"CoordinateSystem.{self._system.name}"
        return f"{self.__class__.__name__}({self._a!r}, {self._b!r}, {self._c!r}, system={system})"

    def __str__(self) -> str:
        return self.__repr__()

    def __copy__(self) -> "Position":
        return self.clone()

    def __deepcopy__(self, memo) -> "Position":
        return self.clone()


def dist_sqr(p1: PositionLike, p2: PositionLike) -> float:
    """Squared Cartesian distance between two points. Neither is modified."""
    ax, ay, az = _peek_cartesian(p1)
    bx, by, bz = _peek_cartesian(p2)
    dx, dy, dz = ax - bx, ay - by, az - bz
    return dx*dx + dy*dy + dz*dz


def average(*positions: PositionLike) -> Position:
    """The Cartesian mean of the given points."""
    if not positions:
        raise ValueError("average() needs at least one position")
    total = Position.cartesian(0.0, 0.0, 0.0)
    for position in positions:
        total.add(_to_position(position))
    return total.scale(1.0 / len(positions))
