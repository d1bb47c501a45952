"""Tests for turning waves back into output values."""

from __future__ import annotations

import random

import pytest

from tilemap_wfc.constants import CROSS_NEIGHBOURHOOD, SELF_WINDOW
from tilemap_wfc.enums import CellStatus, EngineState
from tilemap_wfc.errors import BudgetExhaustedError, ContradictionError
from tilemap_wfc.model.adjacency_model import AdjacencyModel
from tilemap_wfc.model.collapse_engine import CollapseEngine
from tilemap_wfc.model.grid import Coordinate, Grid, Offset
from tilemap_wfc.model.materializer import Materializer
from tilemap_wfc.model.tile_catalog import OUTSIDE, TileCatalog
from tilemap_wfc.model.wave_state import WaveState

# =============================================================================
# Value Projection
# =============================================================================


class TestValueProjection:
    """Tests for choosing the output value of a tile."""

    def test_self_sample_used_with_zero_offset(self, island_example: Grid[int]) -> None:
        """Windows containing the zero offset map tiles to their own value."""
        window = (Offset(0, 0), Offset(1, 0))
        catalog = TileCatalog(island_example, CROSS_NEIGHBOURHOOD, window)
        materializer = Materializer(catalog, projection=lambda tile: -1)

        for tile_id, tile in enumerate(catalog.tiles):
            assert materializer.value_of(tile_id) == tile[0]

    def test_projection_used_without_zero_offset(self, checkerboard_example: Grid[int]) -> None:
        """Without a self sample the caller's projection decides."""
        catalog = TileCatalog(checkerboard_example, CROSS_NEIGHBOURHOOD)
        materializer = Materializer(
            catalog, projection=lambda tile: sum(value for value in tile if value is not OUTSIDE)
        )

        assert materializer.value_of(0) == 2
        assert materializer.value_of(1) == 0

    def test_representative_value_by_default(self, checkerboard_example: Grid[int]) -> None:
        """Without self sample or projection the representative example cell's value is used."""
        catalog = TileCatalog(checkerboard_example, CROSS_NEIGHBOURHOOD)
        materializer = Materializer(catalog)

        assert [materializer.value_of(tile_id) for tile_id in range(4)] == [0, 1, 1, 0]


# =============================================================================
# Materialization
# =============================================================================


class TestMaterialize:
    """Tests for building output grids and diagnostics."""

    def test_converged_run(self, checkerboard_example: Grid[int]) -> None:
        """A converged wave becomes a complete grid."""
        catalog = TileCatalog(checkerboard_example, CROSS_NEIGHBOURHOOD, SELF_WINDOW)
        model = AdjacencyModel(catalog, CROSS_NEIGHBOURHOOD)
        engine = CollapseEngine(model, WaveState(4, 4, catalog.num_tiles), random.Random(3))

        result = Materializer(catalog).materialize(engine.run())

        assert result.ok
        assert result.state == EngineState.CONVERGED
        assert set(result.status) == {CellStatus.RESOLVED}
        grid = result.unwrap()
        top_left = grid.get(Coordinate(0, 0))
        for coord in grid.coordinates():
            expected = top_left if (coord.x + coord.y) % 2 == 0 else 1 - top_left
            assert grid.get(coord) == expected

    def test_contradicted_run(self, checkerboard_example: Grid[int]) -> None:
        """A contradicted wave reports the failing cells and never fills in defaults."""
        catalog = TileCatalog(checkerboard_example, CROSS_NEIGHBOURHOOD)
        model = AdjacencyModel(catalog, CROSS_NEIGHBOURHOOD)
        engine = CollapseEngine(model, WaveState(4, 4, catalog.num_tiles), random.Random(11))
        outcome = engine.run()

        result = Materializer(catalog).materialize(outcome)

        assert not result.ok
        assert result.state == EngineState.CONTRADICTED
        assert result.contradicted == outcome.contradiction.coordinates
        for coord in result.contradicted:
            assert result.status.get(coord) == CellStatus.CONTRADICTED
            assert result.grid.get(coord) is None
        for coord in result.unresolved:
            assert result.status.get(coord) == CellStatus.UNRESOLVED
            assert result.grid.get(coord) is None

        with pytest.raises(ContradictionError) as excinfo:
            result.unwrap()
        assert excinfo.value.contradiction is outcome.contradiction

    def test_untouched_wave_is_unresolved(self, island_example: Grid[int]) -> None:
        """A wave that was never collapsed has every cell unresolved."""
        catalog = TileCatalog(island_example, CROSS_NEIGHBOURHOOD, SELF_WINDOW)

        result = Materializer(catalog).materialize(WaveState(2, 2, catalog.num_tiles))

        assert result.state is None
        assert result.unresolved == [Coordinate(0, 0), Coordinate(1, 0), Coordinate(0, 1), Coordinate(1, 1)]
        assert result.contradicted == []
        with pytest.raises(BudgetExhaustedError, match="4 cells unresolved"):
            result.unwrap()

    def test_partially_collapsed_wave(self, island_example: Grid[int]) -> None:
        """Resolved cells keep their values next to unresolved ones."""
        catalog = TileCatalog(island_example, CROSS_NEIGHBOURHOOD, SELF_WINDOW)
        wave = WaveState(2, 1, catalog.num_tiles)
        wave.collapse_to(0, 2)

        result = Materializer(catalog).materialize(wave)

        assert result.grid.buf == [2, None]
        assert result.status.buf == [CellStatus.RESOLVED, CellStatus.UNRESOLVED]
