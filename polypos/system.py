# system.py
import numpy as np
from enum import Enum, IntEnum


class CoordinateSystem(IntEnum):
    CARTESIAN = 0
    SPHERICAL = 1
    CYLINDRICAL = 2


class Axis(Enum):
    X = 0
    Y = 1
    Z = 2


class Quadrant(IntEnum):
    """
    Octant of a position, named by the sign of each Cartesian component in XYZ order.
    N is negative, P is positive.
    """
    NNN = 0
    PNN = 1
    NPN = 2
    NNP = 3
    PPN = 4
    PNP = 5
    NPP = 6
    PPP = 7


# map each Axis to its positive unit-vector in the world frame
_AXIS_TO_VEC = {
    Axis.X: np.array([1, 0, 0], dtype=np.float64),
    Axis.Y: np.array([0, 1, 0], dtype=np.float64),
    Axis.Z: np.array([0, 0, 1], dtype=np.float64),
}

# map the (x >= 0, y >= 0, z >= 0) sign pattern to its Quadrant
_SIGNS_TO_QUADRANT = {
    (False, False, False): Quadrant.NNN,
    (True, False, False): Quadrant.PNN,
    (False, True, False): Quadrant.NPN,
    (False, False, True): Quadrant.NNP,
    (True, True, False): Quadrant.PPN,
    (True, False, True): Quadrant.PNP,
    (False, True, True): Quadrant.NPP,
    (True, True, True): Quadrant.PPP,
}
