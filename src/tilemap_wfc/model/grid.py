"""Provides the coordinate types and the bounded 2D buffer used for example and output grids."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Offset:
    """An integer 2D displacement between two cells."""

    x: int
    y: int

    def __add__(self, other: Offset) -> Offset:
        return Offset(self.x + other.x, self.y + other.y)

    def __neg__(self) -> Offset:
        return Offset(-self.x, -self.y)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"

    def is_zero(self) -> bool:
        """Returns True for the "self" offset (0, 0)."""
        return self.x == 0 and self.y == 0


@dataclass(frozen=True, slots=True)
class Coordinate:
    """An integer 2D position of a cell. Coordinates outside a grid are legal values, they just don't resolve."""

    x: int
    y: int

    def __add__(self, offset: Offset) -> Coordinate:
        return Coordinate(self.x + offset.x, self.y + offset.y)

    def __sub__(self, other: Coordinate) -> Offset:
        return Offset(self.x - other.x, self.y - other.y)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


class Grid(Generic[T]):
    """A rectangular buffer of width x height cells stored row-major.

    The cell at (x, y) lives at index y * width + x of the flat buffer. Every coordinate based accessor is bounds
    checked and reports out-of-bounds access as None (or False for writes) instead of raising, so neighbourhood
    sampling near the edges never has to special-case the border.

    Attributes:
        width: The number of columns.
        height: The number of rows.
        buf: The flat, row-major cell buffer. Its length is always width * height.
    """

    width: int
    height: int
    buf: list[T]

    def __init__(self, width: int, height: int, buf: Iterable[T]) -> None:
        """Creates a grid from a flat row-major buffer.

        Args:
            width: The number of columns.
            height: The number of rows.
            buf: The cell values in row-major order. Must contain exactly width * height values.

        Raises:
            ValueError: If a dimension is negative or the buffer length doesn't match the dimensions.
        """
        if width < 0 or height < 0:
            raise ValueError(f"grid dimensions must not be negative, got {width}x{height}")
        self.width = width
        self.height = height
        self.buf = list(buf)
        if len(self.buf) != width * height:
            raise ValueError(f"buffer holds {len(self.buf)} values, expected {width * height} for {width}x{height}")

    @classmethod
    def filled(cls, width: int, height: int, value: T) -> Grid[T]:
        """Creates a grid with every cell set to the same value."""
        return cls(width, height, [value] * (max(width, 0) * max(height, 0)))

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[T]]) -> Grid[T]:
        """Creates a grid from a list of rows (top row first).

        Raises:
            ValueError: If the rows have different lengths.
        """
        height = len(rows)
        width = len(rows[0]) if height else 0
        if any(len(row) != width for row in rows):
            raise ValueError("all rows must have the same length")
        return cls(width, height, [value for row in rows for value in row])

    @classmethod
    def from_array(cls, array: NDArray[Any]) -> Grid[Any]:
        """Creates a grid from a 2D array indexed as [row, col].

        Numpy scalars are converted to plain Python values so that cell values hash and compare like the values the
        caller put in.
        """
        if array.ndim != 2:
            raise ValueError(f"expected a 2D array, got {array.ndim} dimensions")
        height, width = array.shape
        return cls(width, height, array.ravel().tolist())

    def to_array(self, dtype: Any = None) -> NDArray[Any]:
        """Returns the grid as a 2D array indexed as [row, col]."""
        return np.array(self.buf, dtype=dtype).reshape((self.height, self.width))

    def to_rows(self) -> list[list[T]]:
        """Returns the grid as a list of rows (top row first)."""
        return [self.buf[y * self.width : (y + 1) * self.width] for y in range(self.height)]

    @property
    def size(self) -> tuple[int, int]:
        """The (width, height) of the grid."""
        return self.width, self.height

    def __len__(self) -> int:
        return len(self.buf)

    def __iter__(self) -> Iterator[T]:
        return iter(self.buf)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self.width == other.width and self.height == other.height and self.buf == other.buf

    def __repr__(self) -> str:
        return f"Grid({self.width}x{self.height})"

    def __str__(self) -> str:
        # Every column is padded to its widest entry so rows line up.
        cells = [[f"{value!r}, " for value in row] for row in self.to_rows()]
        widths = [max((len(row[x]) for row in cells), default=0) + 4 for x in range(self.width)]
        lines = ["\t" + "".join(cell.ljust(widths[x]) for x, cell in enumerate(row)) for row in cells]
        return "[\n" + "".join(line + "\n" for line in lines) + "]"

    def in_bounds(self, coord: Coordinate) -> bool:
        """Returns True if the coordinate addresses a cell of this grid."""
        return 0 <= coord.x < self.width and 0 <= coord.y < self.height

    def get(self, coord: Coordinate) -> T | None:
        """Returns the value at the coordinate, or None if it is out of bounds."""
        if not self.in_bounds(coord):
            return None
        return self.buf[coord.y * self.width + coord.x]

    def set(self, coord: Coordinate, value: T) -> bool:
        """Stores a value at the coordinate.

        Returns:
            True if the value was written, False if the coordinate is out of bounds.
        """
        if not self.in_bounds(coord):
            return False
        self.buf[coord.y * self.width + coord.x] = value
        return True

    def to_1d(self, coord: Coordinate) -> int | None:
        """Returns the flat buffer index of a coordinate, or None if it is out of bounds."""
        if not self.in_bounds(coord):
            return None
        return coord.y * self.width + coord.x

    def to_2d(self, index: int) -> Coordinate | None:
        """Returns the coordinate of a flat buffer index, or None if the index is out of bounds."""
        if not 0 <= index < len(self.buf):
            return None
        return Coordinate(index % self.width, index // self.width)

    def coordinates(self) -> Iterator[Coordinate]:
        """Yields every coordinate of the grid in buffer order."""
        for y in range(self.height):
            for x in range(self.width):
                yield Coordinate(x, y)

    def map(self, func: Callable[[T], U]) -> Grid[U]:
        """Returns a new grid of the same size with func applied to every value."""
        return Grid(self.width, self.height, [func(value) for value in self.buf])
