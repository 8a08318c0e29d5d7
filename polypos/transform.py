# transform.py
import logging
import numpy as np
from numpy import float64 as np_float64
from numpy import array2string as np_array2string

from typing import Iterable, Iterator, List, Tuple, TYPE_CHECKING
from polypos.errors import ShapeMismatchError
from polypos.geometry import matmul_into
from polypos.matrix import Matrix
from polypos.system import CoordinateSystem

if TYPE_CHECKING:
    # Avoid circular import issues
    from polypos.position import Position

logger = logging.getLogger(__name__)

# preallocate the identity matrix for performance
_EYE4 = np.eye(4, dtype=np_float64)


class Transform3d:
    """
    An ordered composition of 4x4 homogeneous matrices, applied to positions in one step.

    The cumulative matrix is rebuilt whenever the sequence changes, starting
    from the identity and left-multiplying each matrix in insertion order, so
    the first matrix added is the first one applied to a position and the last
    one added is applied last.
    """
    __slots__ = ("_transforms", "_matrix", "_column", "_result")

    def __init__(self, *transforms: Matrix):
        self._transforms: List[Matrix] = []
        self._matrix = Matrix.from_unsafe(_EYE4.copy())
        # homogeneous column buffers reused by transform()
        self._column = np.zeros((4, 1), dtype=np_float64)
        self._column[3, 0] = 1.0
        self._result = np.zeros((4, 1), dtype=np_float64)
        if transforms:
            self.add_transforms(*transforms)

    @staticmethod
    def _check_transform(transform: Matrix) -> None:
        if not isinstance(transform, Matrix):
            raise TypeError(
                f"Transforms must be Matrix instances, got {type(transform).__name__}")
        if transform.shape != (4, 4):
            raise ShapeMismatchError(
                f"Transforms must be 4x4 homogeneous matrices, got {transform.shape}")

    ########
    # Composition
    #

    def add_transform(self, transform: Matrix, recalculate: bool = True) -> "Transform3d":
        """
        Append a transformation.

        Args:
            transform: a 4x4 Matrix. It is stored by reference.
            recalculate: if False, defer rebuilding the cumulative matrix; call
                `recalc_matrix()` once after a batch of additions.

        Returns:
            self
        """
        self._check_transform(transform)
        self._transforms.append(transform)
        return self.recalc_matrix() if recalculate else self

    def add_transforms(self, *transforms: Matrix) -> "Transform3d":
        """Append several transformations, in order, and rebuild the cumulative matrix once."""
        for transform in transforms:
            self.add_transform(transform, recalculate=False)
        return self.recalc_matrix()

    def remove_transform(self, transform: Matrix) -> "Transform3d":
        """
        Remove the first occurrence of `transform` and rebuild the cumulative matrix.

        The same object is looked for first, then an equal matrix. Removing a
        matrix that is not part of this composition leaves it unchanged.

        Returns:
            self
        """
        index = next((i for i, m in enumerate(self._transforms) if m is transform), None)
        if index is None:
            index = next((i for i, m in enumerate(self._transforms) if m == transform), None)
        if index is None:
            logger.debug("remove_transform: matrix not part of this Transform3d, nothing removed")
            return self
        del self._transforms[index]
        return self.recalc_matrix()

    def clear(self) -> "Transform3d":
        """Remove every transformation, leaving the identity."""
        self._transforms.clear()
        return self.recalc_matrix()

    def recalc_matrix(self) -> "Transform3d":
        """
        Rebuild the cumulative matrix from the stored transformations.

        Returns:
            self
        """
        acc = _EYE4.copy()
        scratch = np.empty((4, 4), dtype=np_float64)
        for transform in self._transforms:
            matmul_into(transform.matrix, acc, scratch)
            acc, scratch = scratch, acc
        self._matrix.matrix[:] = acc
        return self

    ########
    # Application
    #

    def transform(self, position: "Position") -> "Transform3d":
        """
        Apply the cumulative transformation to `position` in place.

        The position's Cartesian (x, y, z, 1) is multiplied by the cumulative
        matrix and the resulting (x, y, z) is written back; the position ends
        up in Cartesian.

        Returns:
            self
        """
        column = self._column
        x, y, z = position.to_cartesian().a, position.b, position.c
        column[0, 0] = x
        column[1, 0] = y
        column[2, 0] = z
        result = matmul_into(self._matrix.matrix, column, self._result)
        position.set_values(result[0, 0], result[1, 0], result[2, 0],
                            CoordinateSystem.CARTESIAN)
        return self

    def transform_many(self, positions: Iterable["Position"]) -> List["Position"]:
        """
        Apply the cumulative transformation to each position in place.

        Returns:
            The positions, as a list.
        """
        positions = list(positions)
        for position in positions:
            self.transform(position)
        return positions

    ########
    # Access
    #

    @property
    def matrix(self) -> Matrix:
        """The cumulative 4x4 transformation matrix."""
        return self._matrix

    @property
    def transforms(self) -> Tuple[Matrix, ...]:
        """The stored transformations, in insertion order."""
        return tuple(self._transforms)

    def copy(self) -> "Transform3d":
        """Return an independent copy; every stored matrix is copied."""
        return Transform3d(*(m.copy() for m in self._transforms))

    def __copy__(self) -> "Transform3d":
        return self.copy()

    def __deepcopy__(self, memo) -> "Transform3d":
        return self.copy()

    def __len__(self) -> int:
        return len(self._transforms)

    def __iter__(self) -> Iterator[Matrix]:
        return iter(self._transforms)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        mat = np_array2string(self._matrix.matrix, precision=6, separator=', ')
        return f"{cls}(transforms={len(self._transforms)}, matrix=\n{mat}\n)"
