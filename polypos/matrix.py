# matrix.py

from numpy import asarray as np_asarray
from numpy import array_equal as np_array_equal
from numpy import allclose as np_allclose
from numpy import array2string as np_array2string
from numpy import ascontiguousarray as np_ascontiguousarray
from numpy import float64 as np_float64
from numpy import ndarray
import numpy as np

from typing import Callable, Iterable, Optional, Tuple, Union
from polypos.errors import ShapeMismatchError, CoordinateSystemError
from polypos.geometry import matmul_into, rotation_matrix_2d, rotation_matrix_3d
from polypos.system import Axis


class Matrix:
    """
    A dense `height x width` grid of float64 values, indexed (row, column).

    The shape is fixed at creation; the contents are mutable. Most mutating
    methods return `self` so calls can be chained.

    Attributes:
        matrix (ndarray): the 2D backing array.
    """
    __slots__ = ("matrix",)
    # make numpy defer binary operators (ndarray @ Matrix) to this class
    __array_ufunc__ = None

    def __init__(self, matrix: Union[ndarray, Iterable[Iterable[float]]]):
        matrix = np_asarray(matrix, dtype=np_float64)
        if matrix.ndim != 2 or matrix.shape[0] == 0 or matrix.shape[1] == 0:
            raise ShapeMismatchError(
                f"Matrix must be a non-empty 2D grid, got shape {matrix.shape}")
        self.matrix = matrix

    @classmethod
    def from_unsafe(cls, matrix: ndarray) -> "Matrix":
        """Wrap a 2D float64 array without checking it. Useful on hot paths where the shape is known."""
        instance = object.__new__(cls)
        instance.matrix = matrix
        return instance

    @classmethod
    def zeros(cls, height: int, width: int) -> "Matrix":
        """
        Create a zero-filled Matrix.

        Args:
            height: number of rows.
            width: number of columns.

        Returns:
            A new Matrix of the given shape.
        """
        return cls(np.zeros((height, width), dtype=np_float64))

    @classmethod
    def identity(cls, n: int) -> "Matrix":
        """
        Create an `n x n` identity Matrix.

        Returns:
            A new identity Matrix.
        """
        return cls.from_unsafe(np.eye(n, dtype=np_float64))

    @classmethod
    def from_flat(cls, values: Iterable[float], width: int, height: int) -> "Matrix":
        """
        Fill a new Matrix left-to-right, top-to-bottom from a one-dimensional sequence.

        Args:
            values: at least `width * height` values.
            width: number of columns.
            height: number of rows.

        Returns:
            A new Matrix of shape (height, width).
        """
        flat = np_asarray(values, dtype=np_float64).ravel()
        if flat.shape[0] < width * height:
            raise ShapeMismatchError(
                f"Need {width * height} values for a {height}x{width} matrix, got {flat.shape[0]}")
        return cls(flat[:width * height].reshape((height, width)).copy())

    @classmethod
    def vector(cls, *values: float) -> "Matrix":
        """Create a column vector Matrix from the given values."""
        return cls(np_asarray(values, dtype=np_float64).reshape((len(values), 1)))

    @classmethod
    def translation(cls, dimensions: int, *offsets: float) -> "Matrix":
        """
        Create a homogeneous translation Matrix.

        Args:
            dimensions: number of spatial dimensions; the result is (dimensions + 1) square.
            offsets: one offset per dimension, placed in the last column.

        Returns:
            A new translation Matrix.
        """
        if len(offsets) != dimensions:
            raise ShapeMismatchError(
                f"Expected {dimensions} offsets, got {len(offsets)}")
        mat = np.eye(dimensions + 1, dtype=np_float64)
        mat[:dimensions, dimensions] = offsets
        return cls.from_unsafe(mat)

    @classmethod
    def scaling(cls, dimensions: int, *factors: float) -> "Matrix":
        """
        Create a homogeneous scaling Matrix.

        Args:
            dimensions: number of spatial dimensions; the result is (dimensions + 1) square.
            factors: one scale factor per dimension, placed on the diagonal.

        Returns:
            A new scaling Matrix.
        """
        if len(factors) != dimensions:
            raise ShapeMismatchError(
                f"Expected {dimensions} scale factors, got {len(factors)}")
        mat = np.eye(dimensions + 1, dtype=np_float64)
        mat[range(dimensions), range(dimensions)] = factors
        return cls.from_unsafe(mat)

    @classmethod
    def rotation_2d(cls, angle: float, padded: bool = False) -> "Matrix":
        """
        Create a counter-clockwise planar rotation Matrix.

        Args:
            angle: rotation in radians.
            padded: if True, return a 3x3 homogeneous matrix instead of a 2x2.
        """
        return cls.from_unsafe(rotation_matrix_2d(float(angle), bool(padded)))

    @classmethod
    def rotation_3d(cls, axis: Axis, angle: float, padded: bool = False) -> "Matrix":
        """
        Create a rotation Matrix around one of the coordinate axes.

        The rotation is counter-clockwise when the axis is viewed from its
        positive end looking towards the origin.

        Args:
            axis: the Axis to rotate around.
            angle: rotation in radians.
            padded: if True, return a 4x4 homogeneous matrix instead of a 3x3.
        """
        if not isinstance(axis, Axis):
            raise CoordinateSystemError(f"Unknown rotation axis: {axis!r}")
        return cls.from_unsafe(rotation_matrix_3d(axis.value, float(angle), bool(padded)))

    #########
    # Shape
    #

    @property
    def height(self) -> int:
        return self.matrix.shape[0]

    @property
    def width(self) -> int:
        return self.matrix.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    def _check_index(self, i: int, j: int) -> None:
        if not (0 <= i < self.matrix.shape[0] and 0 <= j < self.matrix.shape[1]):
            raise IndexError(
                f"Index ({i}, {j}) out of range for a {self.height}x{self.width} matrix")

    def _check_same_shape(self, other: "Matrix") -> None:
        if other.matrix.shape != self.matrix.shape:
            raise ShapeMismatchError(
                f"Shapes differ: {self.shape} and {other.shape}")

    #########
    # Element access
    #

    def get(self, i: int, j: int) -> float:
        """Return the value at (i, j)."""
        self._check_index(i, j)
        return float(self.matrix[i, j])

    def set(self, i: int, j: int, value: float) -> "Matrix":
        """Set the value at (i, j). Returns self."""
        self._check_index(i, j)
        self.matrix[i, j] = value
        return self

    def add_at(self, i: int, j: int, value: float) -> "Matrix":
        """Add `value` to the entry at (i, j). Returns self."""
        self._check_index(i, j)
        self.matrix[i, j] += value
        return self

    def mult_at(self, i: int, j: int, value: float) -> "Matrix":
        """Multiply the entry at (i, j) by `value`. Returns self."""
        self._check_index(i, j)
        self.matrix[i, j] *= value
        return self

    def __getitem__(self, index: Tuple[int, int]) -> float:
        i, j = index
        return self.get(i, j)

    def __setitem__(self, index: Tuple[int, int], value: float) -> None:
        i, j = index
        self.set(i, j, value)

    def operate(self, operation: Callable[[int, int], None]) -> "Matrix":
        """
        Call `operation(i, j)` for every cell, row by row.

        Returns:
            self
        """
        height, width = self.matrix.shape
        for i in range(height):
            for j in range(width):
                operation(i, j)
        return self

    #########
    # Whole-matrix arithmetic
    #

    def set_identity(self) -> "Matrix":
        """Overwrite this with the identity (ones on the main diagonal, zeros elsewhere)."""
        self.matrix[:] = 0.0
        n = min(self.matrix.shape)
        self.matrix[range(n), range(n)] = 1.0
        return self

    def set_to(self, source: "Matrix") -> "Matrix":
        """Copy the values of `source` into this. `source` must have the same shape."""
        self._check_same_shape(source)
        self.matrix[:] = source.matrix
        return self

    def add(self, other: "Matrix") -> "Matrix":
        """Add `other` element-wise into this. Does not alter `other`."""
        self._check_same_shape(other)
        self.matrix += other.matrix
        return self

    def sub(self, other: "Matrix") -> "Matrix":
        """Subtract `other` element-wise from this. Does not alter `other`."""
        self._check_same_shape(other)
        self.matrix -= other.matrix
        return self

    def scalar(self, scalar: float) -> "Matrix":
        """Scale every value of this by `scalar`."""
        self.matrix *= scalar
        return self

    def multiply(self, other: "Matrix", out: Optional["Matrix"] = None) -> "Matrix":
        """
        Matrix product `self @ other`.

        Args:
            other: right-hand operand; its height must equal this width.
            out: optional preallocated result of shape (self.height, other.width).
                It is overwritten. Reusing the same buffer avoids allocation in
                repeated multiplications.

        Returns:
            The result Matrix (`out` when given).

        Raises:
            ShapeMismatchError: if the inner dimensions or the output shape do not match.
        """
        if self.width != other.height:
            raise ShapeMismatchError(
                f"Cannot multiply {self.height}x{self.width} by {other.height}x{other.width}")
        if out is None:
            out = Matrix.from_unsafe(
                np.empty((self.height, other.width), dtype=np_float64))
        elif out.shape != (self.height, other.width):
            raise ShapeMismatchError(
                f"Invalid output matrix: expected {(self.height, other.width)}, got {out.shape}")

        if out is self or out is other:
            out.matrix[:] = matmul_into(
                self.matrix, other.matrix, np.empty(out.shape, dtype=np_float64))
        else:
            matmul_into(self.matrix, other.matrix, out.matrix)
        return out

    def transpose(self) -> "Matrix":
        """Return a new Matrix that is the transpose of this."""
        return Matrix.from_unsafe(np_ascontiguousarray(self.matrix.T))

    def copy(self) -> "Matrix":
        """Return an independent copy of this Matrix."""
        return Matrix.from_unsafe(self.matrix.copy())

    def allclose(self, other: Union["Matrix", ndarray], atol: float = 1e-9) -> bool:
        """True if `other` has the same shape and its values are within `atol` of this."""
        other_matrix = other.matrix if isinstance(other, Matrix) else np_asarray(other)
        if other_matrix.shape != self.matrix.shape:
            return False
        return bool(np_allclose(self.matrix, other_matrix, rtol=0.0, atol=atol))

    #########
    # Dunder methods
    #

    def __matmul__(self, other: Union["Matrix", ndarray]) -> "Matrix":
        if isinstance(other, Matrix):
            return self.multiply(other)
        if isinstance(other, ndarray):
            return self.multiply(Matrix(other))
        return NotImplemented

    def __rmatmul__(self, other: ndarray) -> "Matrix":
        if isinstance(other, ndarray):
            return Matrix(other).multiply(self)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Matrix):
            return bool(np_array_equal(self.matrix, other.matrix))
        if isinstance(other, ndarray):
            return bool(np_array_equal(self.matrix, other))
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        mat = np_array2string(self.matrix, precision=6, separator=', ')
        return f"{self.__class__.__name__}(matrix=\n{mat}\n)"

    def __str__(self) -> str:
        return self.__repr__()

    def __copy__(self) -> "Matrix":
        return self.copy()

    def __deepcopy__(self, memo) -> "Matrix":
        return self.copy()

    def __reduce__(self):
        return (self.__class__, (self.matrix.copy(),))
