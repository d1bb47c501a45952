"""Turns a finished wave back into concrete output values."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar, TYPE_CHECKING

from tilemap_wfc.enums import CellStatus, EngineState
from tilemap_wfc.errors import BudgetExhaustedError, Contradiction, ContradictionError
from tilemap_wfc.model.collapse_engine import CollapseOutcome
from tilemap_wfc.model.grid import Grid

if TYPE_CHECKING:
    from tilemap_wfc.model.grid import Coordinate
    from tilemap_wfc.model.tile_catalog import Tile, TileCatalog
    from tilemap_wfc.model.wave_state import WaveState

T = TypeVar("T")


@dataclass
class MaterializedResult(Generic[T]):
    """Output values of a run together with per-cell diagnostics.

    Attributes:
        grid: The output values. Cells that are not resolved hold None; check status to tell them apart from a
            resolved None value.
        status: The resolution status of every output cell.
        contradicted: Coordinates of cells left without any admissible tile, in the order they became contradicted.
        unresolved: Coordinates of cells still admitting more than one tile.
        state: The engine state of the run, if the result was built from a collapse outcome.
        contradiction: The engine's contradiction record, if the run was contradicted.
    """

    grid: Grid[T | None]
    status: Grid[CellStatus]
    contradicted: list[Coordinate] = field(default_factory=list)
    unresolved: list[Coordinate] = field(default_factory=list)
    state: EngineState | None = None
    contradiction: Contradiction | None = None

    @property
    def ok(self) -> bool:
        """True if every output cell has a concrete value."""
        return not self.contradicted and not self.unresolved

    def unwrap(self) -> Grid[T]:
        """Returns the finished output grid.

        Raises:
            ContradictionError: If any cell is contradicted.
            BudgetExhaustedError: If cells are unresolved but none is contradicted.
        """
        if self.contradicted:
            contradiction = self.contradiction or Contradiction(
                coordinates=list(self.contradicted), unresolved=list(self.unresolved)
            )
            raise ContradictionError(contradiction)
        if self.unresolved:
            raise BudgetExhaustedError(list(self.unresolved))
        return self.grid  # type: ignore[return-value]


class Materializer(Generic[T]):
    """Maps collapsed tile IDs to output values.

    A tile's value is its own sample (the entry at the zero offset) when the pattern window contains the zero offset.
    Otherwise the caller's projection is applied to the tile, and without a projection the value of the example cell
    the tile was first found at is used.
    """

    _catalog: TileCatalog[T]
    _projection: Callable[[Tile], T] | None
    # Value per tile ID, computed once.
    _values: list[T]

    def __init__(self, catalog: TileCatalog[T], projection: Callable[[Tile], T] | None = None) -> None:
        self._catalog = catalog
        self._projection = projection
        self._values = [self._determine_value(tile_id) for tile_id in range(catalog.num_tiles)]

    def value_of(self, tile_id: int) -> T:
        """Returns the output value a collapsed cell with this tile ID stands for."""
        return self._values[tile_id]

    def materialize(self, source: CollapseOutcome | WaveState) -> MaterializedResult[T]:
        """Reads every cell of a wave and builds the output grid plus diagnostics.

        Args:
            source: A collapse outcome, or a bare wave.

        Returns:
            The materialized result. Cells that aren't collapsed are reported, never filled with a default value.
        """
        if isinstance(source, CollapseOutcome):
            wave, state, contradiction = source.wave, source.state, source.contradiction
        else:
            wave, state, contradiction = source, None, None

        values: list[T | None] = []
        statuses: list[CellStatus] = []
        unresolved: list[Coordinate] = []

        for cell in range(wave.num_cells):
            entropy = wave.entropy(cell)
            if entropy == 1:
                values.append(self._values[wave.tile_ids(cell)[0]])
                statuses.append(CellStatus.RESOLVED)
            else:
                values.append(None)
                if entropy == 0:
                    statuses.append(CellStatus.CONTRADICTED)
                else:
                    statuses.append(CellStatus.UNRESOLVED)
                    coord = wave.to_2d(cell)
                    assert coord is not None
                    unresolved.append(coord)

        contradicted = [wave.to_2d(cell) for cell in wave.contradicted_cells()]

        return MaterializedResult(
            grid=Grid(wave.width, wave.height, values),
            status=Grid(wave.width, wave.height, statuses),
            contradicted=[coord for coord in contradicted if coord is not None],
            unresolved=unresolved,
            state=state,
            contradiction=contradiction,
        )

    def _determine_value(self, tile_id: int) -> T:
        """Picks the output value for a tile ID."""
        if self._catalog.has_self_sample():
            return self._catalog.self_sample(tile_id)
        if self._projection is not None:
            return self._projection(self._catalog.tile(tile_id))
        return self._catalog.example.buf[self._catalog.cell_indices_of(tile_id)[0]]
