"""Holds the per-cell superpositions of an output grid and orders cells by entropy."""

from __future__ import annotations

import copy
import heapq
from typing import TYPE_CHECKING

import numpy as np

from tilemap_wfc.enums import ReduceOutcome
from tilemap_wfc.model.grid import Coordinate, Grid

if TYPE_CHECKING:
    import random

    from numpy.typing import NDArray


class EntropyHierarchy:
    """Buckets of cell indices keyed by the entropy they currently hold.

    Every cell with entropy >= 1 is a member of exactly one bucket. Collapsed cells (entropy 1) stay tracked but are
    never handed out as collapse targets; contradicted cells (entropy 0) are not tracked at all. Bucket membership is
    only changed through insert(), move() and discard(), which keeps it in line with the wave.
    """

    # Entropy level -> cells currently at that level.
    _buckets: dict[int, _Bucket]
    # Cell index -> the entropy level it is filed under.
    _levels: dict[int, int]
    # Min-heap of entropy levels > 1 that may be non-empty. Emptied levels are pruned lazily when they reach the top.
    _uncollapsed_levels: list[int]
    # Levels currently present in _uncollapsed_levels, so none is pushed twice.
    _queued_levels: set[int]

    def __init__(self) -> None:
        self._buckets = {}
        self._levels = {}
        self._uncollapsed_levels = []
        self._queued_levels = set()

    def __len__(self) -> int:
        return len(self._levels)

    def __contains__(self, cell: int) -> bool:
        return cell in self._levels

    def level_of(self, cell: int) -> int | None:
        """Returns the entropy level a cell is filed under, or None if the cell isn't tracked."""
        return self._levels.get(cell)

    def cells_at(self, level: int) -> list[int]:
        """Returns the cells at an entropy level, in bucket order."""
        bucket = self._buckets.get(level)
        return list(bucket.items) if bucket is not None else []

    def insert(self, cell: int, level: int) -> None:
        """Files a cell under an entropy level. Levels below 1 are not tracked."""
        if cell in self._levels:
            raise ValueError(f"cell {cell} is already tracked at entropy {self._levels[cell]}")
        if level < 1:
            return
        self._levels[cell] = level
        self._buckets.setdefault(level, _Bucket()).add(cell)
        if level > 1 and level not in self._queued_levels:
            heapq.heappush(self._uncollapsed_levels, level)
            self._queued_levels.add(level)

    def discard(self, cell: int) -> None:
        """Stops tracking a cell, if it is tracked."""
        level = self._levels.pop(cell, None)
        if level is not None:
            self._buckets[level].remove(cell)

    def move(self, cell: int, level: int) -> None:
        """Refiles a cell under a new entropy level (dropping it if the new level is below 1)."""
        self.discard(cell)
        self.insert(cell, level)

    def pick_lowest_uncollapsed(self, rng: random.Random) -> int | None:
        """Returns a random cell from the lowest non-empty entropy level above 1.

        Returns:
            The chosen cell index, or None if every tracked cell has entropy 1.
        """
        level = self._lowest_uncollapsed_level()
        if level is None:
            return None
        return self._buckets[level].choice(rng)

    def is_converged(self) -> bool:
        """Returns True if no tracked cell has entropy above 1."""
        return self._lowest_uncollapsed_level() is None

    def _lowest_uncollapsed_level(self) -> int | None:
        """Prunes emptied levels off the heap and returns the lowest remaining one."""
        while self._uncollapsed_levels:
            level = self._uncollapsed_levels[0]
            if self._buckets[level]:
                return level
            heapq.heappop(self._uncollapsed_levels)
            self._queued_levels.discard(level)
        return None


class _Bucket:
    """Ordered set of cell indices with O(1) add, remove and uniform random choice."""

    items: list[int]
    # Cell index -> its position in items.
    _positions: dict[int, int]

    def __init__(self) -> None:
        self.items = []
        self._positions = {}

    def __len__(self) -> int:
        return len(self.items)

    def add(self, cell: int) -> None:
        self._positions[cell] = len(self.items)
        self.items.append(cell)

    def remove(self, cell: int) -> None:
        # Swap the last item into the freed slot.
        position = self._positions.pop(cell)
        last = self.items.pop()
        if last != cell:
            self.items[position] = last
            self._positions[last] = position

    def choice(self, rng: random.Random) -> int:
        return self.items[rng.randrange(len(self.items))]


class WaveState:
    """The superposition of every output cell, plus the entropy hierarchy over them.

    Each cell holds a boolean vector over tile IDs flagging the tiles that are still admissible there. A cell's entropy
    is the number of admissible tiles: 1 means collapsed, 0 means contradicted. Sets only ever shrink, so every cell's
    entropy is non-increasing for the lifetime of the wave. Cells are addressed by their flat row-major index (y *
    width + x), the same layout Grid uses.

    Attributes:
        width: The output width in cells.
        height: The output height in cells.
        num_tiles: The size of the tile ID universe.
    """

    width: int
    height: int
    num_tiles: int

    # (num_cells, num_tiles) boolean array of admissible tiles per cell.
    _wave: NDArray[np.bool_]
    # The current entropy of every cell.
    _entropies: NDArray[np.int_]
    # Entropy buckets over all cells with entropy >= 1.
    _hierarchy: EntropyHierarchy
    # Indices of cells that became contradicted, in the order that happened.
    _contradicted: list[int]

    def __init__(self, width: int, height: int, num_tiles: int) -> None:
        """Creates a wave in full uncertainty: every cell admits every tile.

        Raises:
            ValueError: If a dimension or the tile count is negative.
        """
        if width < 0 or height < 0:
            raise ValueError(f"output dimensions must not be negative, got {width}x{height}")
        if num_tiles < 0:
            raise ValueError(f"tile count must not be negative, got {num_tiles}")

        self.width = width
        self.height = height
        self.num_tiles = num_tiles

        self._wave = np.full((width * height, num_tiles), True, dtype=bool)
        self._entropies = np.full(width * height, num_tiles, dtype=np.int_)
        self._hierarchy = EntropyHierarchy()
        self._contradicted = []

        for cell in range(self.num_cells):
            self._hierarchy.insert(cell, num_tiles)
            if num_tiles == 0:
                self._contradicted.append(cell)

    @property
    def num_cells(self) -> int:
        """The number of output cells."""
        return self.width * self.height

    @property
    def hierarchy(self) -> EntropyHierarchy:
        """The entropy buckets over this wave's cells."""
        return self._hierarchy

    def to_1d(self, coord: Coordinate) -> int | None:
        """Returns the cell index of an output coordinate, or None if it is out of bounds."""
        if not (0 <= coord.x < self.width and 0 <= coord.y < self.height):
            return None
        return coord.y * self.width + coord.x

    def to_2d(self, cell: int) -> Coordinate | None:
        """Returns the output coordinate of a cell index, or None if it is out of bounds."""
        if not 0 <= cell < self.num_cells:
            return None
        return Coordinate(cell % self.width, cell // self.width)

    def entropy(self, cell: int) -> int:
        """Returns the number of tiles still admissible at a cell."""
        return int(self._entropies[cell])

    def entropies(self) -> NDArray[np.int_]:
        """Returns a copy of every cell's entropy, in cell index order."""
        return self._entropies.copy()

    def entropy_grid(self) -> Grid[int]:
        """Returns every cell's entropy laid out as an output-sized grid."""
        return Grid(self.width, self.height, self._entropies.tolist())

    def admissible(self, cell: int) -> NDArray[np.bool_]:
        """Returns a copy of a cell's superposition as a boolean vector over tile IDs."""
        return self._wave[cell].copy()

    def tile_ids(self, cell: int) -> list[int]:
        """Returns the tile IDs still admissible at a cell, in ascending order."""
        return np.flatnonzero(self._wave[cell]).tolist()

    def is_admissible(self, cell: int, tile_id: int) -> bool:
        """Returns True if the tile is still admissible at the cell."""
        return bool(self._wave[cell, tile_id])

    def intersects(self, cell: int, tiles: NDArray[np.bool_]) -> bool:
        """Returns True if at least one of the flagged tiles is still admissible at the cell."""
        return bool(np.any(self._wave[cell] & tiles))

    def is_collapsed(self, cell: int) -> bool:
        """Returns True if exactly one tile is admissible at the cell."""
        return bool(self._entropies[cell] == 1)

    def is_contradicted(self, cell: int) -> bool:
        """Returns True if no tile is admissible at the cell."""
        return bool(self._entropies[cell] == 0)

    def is_converged(self) -> bool:
        """Returns True if no cell has more than one admissible tile."""
        return self._hierarchy.is_converged()

    def has_contradiction(self) -> bool:
        """Returns True if any cell has no admissible tile."""
        return bool(self._contradicted)

    def contradicted_cells(self) -> list[int]:
        """Returns the contradicted cells in the order they became contradicted."""
        return list(self._contradicted)

    def unresolved_cells(self) -> list[int]:
        """Returns the cells that still admit more than one tile, in cell index order."""
        return np.flatnonzero(self._entropies > 1).tolist()

    def pick_lowest_uncollapsed(self, rng: random.Random) -> int | None:
        """Returns a random cell among those with the lowest entropy above 1, or None if there is none."""
        return self._hierarchy.pick_lowest_uncollapsed(rng)

    def reduce(self, cell: int, allowed: NDArray[np.bool_]) -> ReduceOutcome:
        """Intersects a cell's superposition with a set of allowed tiles.

        Args:
            cell: The index of the cell to narrow.
            allowed: Boolean vector over tile IDs flagging the tiles that may remain.

        Returns:
            UNCHANGED if nothing was removed, CHANGED if the set shrank, CONTRADICTION if it became empty.
        """
        narrowed = self._wave[cell] & allowed
        return self._store(cell, narrowed, int(np.count_nonzero(narrowed)))

    def remove(self, cell: int, tile_id: int) -> ReduceOutcome:
        """Removes a single tile from a cell's superposition."""
        if not self._wave[cell, tile_id]:
            return ReduceOutcome.UNCHANGED
        narrowed = self._wave[cell].copy()
        narrowed[tile_id] = False
        return self._store(cell, narrowed, self.entropy(cell) - 1)

    def collapse_to(self, cell: int, tile_id: int) -> ReduceOutcome:
        """Narrows a cell's superposition down to the single given tile.

        Returns:
            UNCHANGED if the cell already held exactly that tile, CHANGED otherwise.

        Raises:
            ValueError: If the tile is not admissible at the cell, since superpositions may never grow.
        """
        if not self._wave[cell, tile_id]:
            raise ValueError(f"tile {tile_id} is not admissible at cell {cell}")
        singleton = np.full(self.num_tiles, False, dtype=bool)
        singleton[tile_id] = True
        return self._store(cell, singleton, 1)

    def snapshot(self) -> WaveState:
        """Returns an independent deep copy of the wave, for diagnostics."""
        return copy.deepcopy(self)

    def _store(self, cell: int, narrowed: NDArray[np.bool_], entropy: int) -> ReduceOutcome:
        """Writes a narrowed superposition and keeps the entropy hierarchy in line with it."""
        if entropy == self._entropies[cell]:
            return ReduceOutcome.UNCHANGED

        self._wave[cell] = narrowed
        self._entropies[cell] = entropy
        self._hierarchy.move(cell, entropy)

        if entropy == 0:
            self._contradicted.append(cell)
            return ReduceOutcome.CONTRADICTION
        return ReduceOutcome.CHANGED
