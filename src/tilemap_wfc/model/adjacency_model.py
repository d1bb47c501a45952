"""Compiles which tiles were observed next to which others in the example grid."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from tilemap_wfc.errors import InvalidOffsetError
from tilemap_wfc.model.tile_catalog import validate_offsets

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from tilemap_wfc.model.grid import Offset
    from tilemap_wfc.model.tile_catalog import TileCatalog

logger = logging.getLogger(__name__)


class AdjacencyModel:
    """Per-offset compatibility relation between tiles, learned purely from co-occurrence in the example.

    The relation is stored as one boolean tensor: rules[k, a, b] is True exactly if, somewhere in the example, a cell
    with tile b sits at offset neighbourhood[k] from a cell with tile a. Each row rules[k, a] is therefore the dense
    compatibility set of tile a at that offset. Offsets o and -o are compiled independently and are only mirror images
    of each other if the example data makes them so.

    Attributes:
        neighbourhood: The offsets the relation is compiled for, in the order of the tensor's first axis.
        num_tiles: The number of distinct tiles in the catalog.
    """

    neighbourhood: tuple[Offset, ...]
    num_tiles: int

    # The (num_offsets, num_tiles, num_tiles) boolean compatibility tensor (read-only once compiled).
    _rules: NDArray[np.bool_]
    # Maps each offset to its position in the neighbourhood.
    _offset_indices: dict[Offset, int]

    def __init__(self, catalog: TileCatalog, neighbourhood: Sequence[Offset]) -> None:
        """Scans the catalog's example grid and compiles the compatibility tensor.

        Args:
            catalog: The tile catalog of the example grid.
            neighbourhood: The offsets to compile compatibility for.
        """
        self.neighbourhood = validate_offsets(neighbourhood)
        self.num_tiles = catalog.num_tiles
        self._offset_indices = {offset: k for k, offset in enumerate(self.neighbourhood)}

        self._determine_adjacency_rules(catalog)

        logger.debug(
            "Compiled adjacency for %d tiles over %d offsets (%d allowed pairs)",
            self.num_tiles,
            len(self.neighbourhood),
            int(self._rules.sum()),
        )

    @property
    def rules(self) -> NDArray[np.bool_]:
        """The read-only (num_offsets, num_tiles, num_tiles) compatibility tensor."""
        return self._rules

    def offset_index(self, offset: Offset) -> int:
        """Returns the position of an offset in the neighbourhood.

        Raises:
            InvalidOffsetError: If the offset isn't part of the neighbourhood.
        """
        try:
            return self._offset_indices[offset]
        except KeyError:
            raise InvalidOffsetError(offset) from None

    def compatible(self, offset: Offset, tile_id: int) -> NDArray[np.bool_]:
        """Returns the set of tiles observed at the offset from the given tile, as a boolean vector over tile IDs.

        Raises:
            InvalidOffsetError: If the offset isn't part of the neighbourhood.
        """
        return self._rules[self.offset_index(offset), tile_id]

    def compatible_ids(self, offset: Offset, tile_id: int) -> list[int]:
        """Returns the tile IDs observed at the offset from the given tile."""
        return np.flatnonzero(self.compatible(offset, tile_id)).tolist()

    def is_compatible(self, offset: Offset, tile_id: int, other_tile_id: int) -> bool:
        """Returns True if other_tile_id may sit at the offset from tile_id."""
        return bool(self._rules[self.offset_index(offset), tile_id, other_tile_id])

    def compatible_union(self, offset: Offset, tiles: NDArray[np.bool_]) -> NDArray[np.bool_]:
        """Returns the union of the compatibility sets of every tile flagged in the given boolean vector.

        Raises:
            InvalidOffsetError: If the offset isn't part of the neighbourhood.
        """
        return self.union_at(self.offset_index(offset), tiles)

    def union_at(self, offset_index: int, tiles: NDArray[np.bool_]) -> NDArray[np.bool_]:
        """Same as compatible_union(), addressed by the offset's position in the neighbourhood."""
        return self._rules[offset_index][tiles].any(axis=0)

    def row_at(self, offset_index: int, tile_id: int) -> NDArray[np.bool_]:
        """Same as compatible(), addressed by the offset's position in the neighbourhood."""
        return self._rules[offset_index, tile_id]

    def _determine_adjacency_rules(self, catalog: TileCatalog) -> None:
        """Unions, per offset and tile, the tiles found next to every example cell carrying that tile."""
        example = catalog.example
        rules = np.full((len(self.neighbourhood), self.num_tiles, self.num_tiles), False, dtype=bool)

        for k, offset in enumerate(self.neighbourhood):
            for tile_id in range(self.num_tiles):
                for coord in catalog.cells_of(tile_id):
                    neighbor_tile_id = catalog.tile_id_at(coord + offset)
                    # Neighbors outside the example contribute nothing.
                    if neighbor_tile_id is not None:
                        rules[k, tile_id, neighbor_tile_id] = True

        rules.flags.writeable = False
        self._rules = rules
