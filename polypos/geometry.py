# geometry.py
import math
import numpy as np
from numpy import ndarray
from typing import Tuple
from numba import njit

from numba.core.errors import NumbaPerformanceWarning
import warnings
warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


@njit(cache=True)
def spherical_to_cartesian(mag: float, ang1: float, ang2: float) -> Tuple[float, float, float]:
    """
    Convert spherical (magnitude, azimuth around Y, elevation from horizontal) to Cartesian.

    Returns:
        (x, y, z)
    """
    cos2 = math.cos(ang2)
    return (mag * math.sin(ang1) * cos2,
            mag * math.sin(ang2),
            mag * math.cos(ang1) * cos2)


@njit(cache=True)
def cylindrical_to_cartesian(mag: float, ang1: float, y: float) -> Tuple[float, float, float]:
    """
    Convert cylindrical (horizontal magnitude, azimuth around Y, height) to Cartesian.

    Returns:
        (x, y, z)
    """
    return mag * math.sin(ang1), y, mag * math.cos(ang1)


@njit(cache=True)
def cartesian_to_spherical(x: float, y: float, z: float) -> Tuple[float, float, float]:
    """
    Convert Cartesian to spherical.

    The azimuth is measured from +Z towards +X. A position on the vertical axis
    (x == z == 0) is given an elevation of pi/2, or -pi/2 below the origin.

    Returns:
        (mag, ang1, ang2)
    """
    mag = math.sqrt(x*x + y*y + z*z)
    ang1 = math.atan2(x, z)
    if x == 0.0 and z == 0.0:
        ang2 = -math.pi / 2 if y < 0.0 else math.pi / 2
    else:
        ang2 = math.atan(y / math.sqrt(x*x + z*z))
    return mag, ang1, ang2


@njit(cache=True)
def cylindrical_to_spherical(mag: float, ang1: float, y: float) -> Tuple[float, float, float]:
    """
    Convert cylindrical to spherical. The azimuth carries over unchanged.

    Returns:
        (mag, ang1, ang2)
    """
    ang2 = math.atan2(y, mag)
    return math.sqrt(mag*mag + y*y), ang1, ang2


@njit(cache=True)
def cartesian_to_cylindrical(x: float, y: float, z: float) -> Tuple[float, float, float]:
    """
    Convert Cartesian to cylindrical.

    Returns:
        (mag, ang1, y)
    """
    return math.sqrt(x*x + z*z), math.atan2(x, z), y


@njit(cache=True)
def spherical_to_cylindrical(mag: float, ang1: float, ang2: float) -> Tuple[float, float, float]:
    """
    Convert spherical to cylindrical. The azimuth carries over unchanged.

    Returns:
        (mag, ang1, y)
    """
    return mag * math.cos(ang2), ang1, mag * math.sin(ang2)


@njit(cache=True)
def rotate_in_plane(u: float, v: float, radians: float) -> Tuple[float, float]:
    """
    Rotate the planar point (u, v) counter-clockwise by `radians`, where the
    angle of the point is atan2(v, u).

    Returns:
        (u, v) after the rotation.
    """
    radius = math.sqrt(u*u + v*v)
    angle = math.atan2(v, u) + radians
    return radius * math.cos(angle), radius * math.sin(angle)


@njit(cache=True)
def dot3(ax: float, ay: float, az: float, bx: float, by: float, bz: float) -> float:
    return ax*bx + ay*by + az*bz


@njit(cache=True)
def cross3(ax: float, ay: float, az: float, bx: float, by: float, bz: float) -> Tuple[float, float, float]:
    return (ay*bz - az*by,
            az*bx - ax*bz,
            ax*by - ay*bx)


@njit(cache=True)
def matmul_into(a: ndarray, b: ndarray, out: ndarray) -> ndarray:
    """
    Multiply a @ b into the preallocated `out` buffer.

    Shapes are not checked here; callers validate them. `out` is overwritten,
    not accumulated into, and must not alias `a` or `b`.
    """
    height, inner = a.shape
    width = b.shape[1]
    for i in range(height):
        for j in range(width):
            total = 0.0
            for k in range(inner):
                total += a[i, k] * b[k, j]
            out[i, j] = total
    return out


@njit(cache=True)
def rotation_matrix_3d(axis: int, angle: float, padded: bool) -> ndarray:
    """
    Right-handed counter-clockwise rotation around the X (0), Y (1) or Z (2) axis.

    Parameters:
        axis (int): index of the rotation axis.
        angle (float): rotation angle in radians.
        padded (bool): if True, embed the rotation in a 4x4 homogeneous matrix.

    Returns:
        ndarray: a 3x3 (or 4x4 when padded) rotation matrix.
    """
    size = 4 if padded else 3
    R = np.eye(size, dtype=np.float64)
    c = math.cos(angle)
    s = math.sin(angle)
    if axis == 0:
        R[1, 1] = c
        R[1, 2] = -s
        R[2, 1] = s
        R[2, 2] = c
    elif axis == 1:
        R[0, 0] = c
        R[0, 2] = s
        R[2, 0] = -s
        R[2, 2] = c
    else:
        R[0, 0] = c
        R[0, 1] = -s
        R[1, 0] = s
        R[1, 1] = c
    return R


@njit(cache=True)
def rotation_matrix_2d(angle: float, padded: bool) -> ndarray:
    """Counter-clockwise planar rotation, optionally embedded in a 3x3 homogeneous matrix."""
    size = 3 if padded else 2
    R = np.eye(size, dtype=np.float64)
    c = math.cos(angle)
    s = math.sin(angle)
    R[0, 0] = c
    R[0, 1] = -s
    R[1, 0] = s
    R[1, 1] = c
    return R
