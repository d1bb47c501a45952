"""Extracts and canonicalizes the local neighbourhood patterns ("tiles") of an example grid."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Generic, TypeVar, TYPE_CHECKING

import numpy as np

from tilemap_wfc.errors import InvalidOffsetError
from tilemap_wfc.model.grid import Coordinate, Grid, Offset

if TYPE_CHECKING:
    from numpy.typing import NDArray

T = TypeVar("T")

class _OutsideExample:
    """Marker for a window offset that fell outside the example grid."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "OUTSIDE"

    def __reduce__(self) -> str:
        return "OUTSIDE"

    def __copy__(self) -> _OutsideExample:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _OutsideExample:
        return self


OUTSIDE = _OutsideExample()
"""Sample value of window offsets outside the example. Distinct from every cell value, None included."""

Tile = tuple[Any, ...]
"""The values sampled around one example cell, one entry per window offset (OUTSIDE where the sample fell outside)."""

logger = logging.getLogger(__name__)


def validate_offsets(offsets: Sequence[Offset], what: str = "neighbourhood") -> tuple[Offset, ...]:
    """Returns the offsets as a tuple, rejecting duplicates.

    Raises:
        ValueError: If an offset occurs more than once.
    """
    offsets = tuple(offsets)
    if len(set(offsets)) != len(offsets):
        raise ValueError(f"{what} offsets must be distinct, got {[str(offset) for offset in offsets]}")
    return offsets


class TileCatalog(Generic[T]):
    """Catalog of the distinct tiles found in an example grid.

    Every example cell is sampled through the pattern window, producing a tile. Structurally equal tiles share one
    dense tile ID (0 .. num_tiles - 1), assigned in the order the tiles are first met while scanning the example in
    buffer order. Tiles are grouped by hash first and then compared for true equality inside each hash bucket, so two
    different tiles that happen to collide are never merged.

    Attributes:
        example: The example grid the tiles were sampled from.
        window: The offsets sampled for every tile, in tile entry order.
        tiles: The canonical tiles, indexed by tile ID.
        frequencies: For each tile ID, how many example cells produced that tile.
    """

    example: Grid[T]
    window: tuple[Offset, ...]
    tiles: list[Tile]
    frequencies: NDArray[np.int_]

    # The tile ID of every example cell, in buffer order.
    _cell_tile_ids: list[int]
    # For each tile ID, the buffer indices of all example cells carrying it (first entry is the representative).
    _cells_by_tile: list[list[int]]
    # Hash buckets: tile hash -> tile IDs whose tiles produced that hash.
    _buckets: dict[int, list[int]]

    def __init__(
        self, example: Grid[T], neighbourhood: Sequence[Offset], pattern_window: Sequence[Offset] | None = None
    ) -> None:
        """Samples the example and builds the catalog.

        Args:
            example: The example grid to learn tiles from. An empty grid yields an empty catalog.
            neighbourhood: The neighbourhood of the run. Used as the pattern window unless one is given.
            pattern_window: The offsets sampled around each example cell to form its tile. Defaults to the
                neighbourhood.
        """
        self.example = example
        self.window = validate_offsets(neighbourhood if pattern_window is None else pattern_window, "pattern window")

        self._extract_tiles()
        self.frequencies = np.array([len(cells) for cells in self._cells_by_tile], dtype=np.int_)

        logger.debug(
            "Extracted %d distinct tiles from a %dx%d example using a %d-offset window",
            self.num_tiles,
            example.width,
            example.height,
            len(self.window),
        )

    @property
    def num_tiles(self) -> int:
        """The number of distinct tiles."""
        return len(self.tiles)

    def __len__(self) -> int:
        return len(self.tiles)

    def tile(self, tile_id: int) -> Tile:
        """Returns the canonical tile for a tile ID."""
        return self.tiles[tile_id]

    def tile_id_at(self, coord: Coordinate) -> int | None:
        """Returns the tile ID of an example cell, or None if the coordinate is outside the example."""
        index = self.example.to_1d(coord)
        if index is None:
            return None
        return self._cell_tile_ids[index]

    def tile_id_at_index(self, index: int) -> int:
        """Returns the tile ID of the example cell at a flat buffer index."""
        return self._cell_tile_ids[index]

    def representative(self, tile_id: int) -> Coordinate:
        """Returns the first example cell (in buffer order) that produced the tile."""
        coord = self.example.to_2d(self._cells_by_tile[tile_id][0])
        assert coord is not None
        return coord

    def cells_of(self, tile_id: int) -> list[Coordinate]:
        """Returns every example cell that produced the tile, in buffer order."""
        coords = [self.example.to_2d(index) for index in self._cells_by_tile[tile_id]]
        return [coord for coord in coords if coord is not None]

    def cell_indices_of(self, tile_id: int) -> list[int]:
        """Returns the flat buffer indices of every example cell that produced the tile."""
        return list(self._cells_by_tile[tile_id])

    def has_self_sample(self) -> bool:
        """Returns True if the window samples the cell itself."""
        return Offset(0, 0) in self.window

    def self_sample(self, tile_id: int) -> T:
        """Returns the tile's own value, i.e. its entry at the zero offset.

        Raises:
            InvalidOffsetError: If the window doesn't contain the zero offset.
        """
        zero = Offset(0, 0)
        if zero not in self.window:
            raise InvalidOffsetError(zero, "the pattern window has no zero offset, tiles carry no self sample")
        return self.tiles[tile_id][self.window.index(zero)]

    def sample(self, coord: Coordinate) -> Tile:
        """Builds the tile around an example cell by sampling every window offset.

        Offsets landing outside the example sample OUTSIDE, so an example cell holding None stays distinguishable
        from the example's edge.
        """
        samples = []
        for offset in self.window:
            neighbor = coord + offset
            samples.append(self.example.get(neighbor) if self.example.in_bounds(neighbor) else OUTSIDE)
        return tuple(samples)

    def _extract_tiles(self) -> None:
        """Samples every example cell and assigns dense tile IDs to distinct tiles."""
        self.tiles = []
        self._cell_tile_ids = []
        self._cells_by_tile = []
        self._buckets = {}

        for index, coord in enumerate(self.example.coordinates()):
            tile = self.sample(coord)
            bucket = self._buckets.setdefault(self._hash_tile(tile), [])

            tile_id = next((candidate for candidate in bucket if self.tiles[candidate] == tile), None)
            if tile_id is None:
                tile_id = len(self.tiles)
                self.tiles.append(tile)
                self._cells_by_tile.append([])
                bucket.append(tile_id)

            self._cell_tile_ids.append(tile_id)
            self._cells_by_tile[tile_id].append(index)

    def _hash_tile(self, tile: Tile) -> int:
        """Generates the bucket hash for a tile's sampled values."""
        return hash(tile)
