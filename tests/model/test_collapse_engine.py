"""Tests for the collapse-and-propagate state machine."""

from __future__ import annotations

import random

import numpy as np
import pytest

from tilemap_wfc.constants import CROSS_NEIGHBOURHOOD, SELF_WINDOW, SQUARE_NEIGHBOURHOOD
from tilemap_wfc.enums import CandidateWeighting, EngineState
from tilemap_wfc.errors import EmptyExampleError
from tilemap_wfc.model.adjacency_model import AdjacencyModel
from tilemap_wfc.model.collapse_engine import CollapseEngine
from tilemap_wfc.model.grid import Grid, Offset
from tilemap_wfc.model.tile_catalog import TileCatalog
from tilemap_wfc.model.wave_state import WaveState


def build_engine(
    example: Grid[int],
    size: tuple[int, int],
    seed: int,
    neighbourhood: tuple[Offset, ...] = CROSS_NEIGHBOURHOOD,
    window: tuple[Offset, ...] | None = SELF_WINDOW,
    weighting: CandidateWeighting = CandidateWeighting.UNIFORM,
) -> CollapseEngine:
    """Builds a ready-to-run engine for an example."""
    catalog = TileCatalog(example, neighbourhood, window)
    model = AdjacencyModel(catalog, neighbourhood)
    wave = WaveState(size[0], size[1], catalog.num_tiles)
    return CollapseEngine(model, wave, random.Random(seed), weighting, catalog.frequencies)


def collapsed_tile_ids(engine: CollapseEngine) -> list[int]:
    """Returns the single admissible tile of every cell of a converged engine."""
    wave = engine.wave
    return [wave.tile_ids(cell)[0] for cell in range(wave.num_cells)]


# =============================================================================
# Basic Runs
# =============================================================================


class TestEngineRuns:
    """Tests for complete runs."""

    def test_island_converges(self, island_example: Grid[int]) -> None:
        """Shore fits next to everything, so the island example always converges."""
        engine = build_engine(island_example, (12, 12), seed=42)
        outcome = engine.run()

        assert outcome.state == EngineState.CONVERGED
        assert outcome.contradiction is None
        assert outcome.wave.entropies().tolist() == [1] * 144

    def test_adjacency_soundness(self, island_example: Grid[int]) -> None:
        """Every collapsed neighbor pair is allowed by the compatibility relation."""
        engine = build_engine(island_example, (10, 8), seed=123)
        engine.run()
        assert engine.state == EngineState.CONVERGED

        model = engine._model
        wave = engine.wave
        tile_ids = collapsed_tile_ids(engine)
        for cell in range(wave.num_cells):
            coord = wave.to_2d(cell)
            for offset in model.neighbourhood:
                neighbor = wave.to_1d(coord + offset)
                if neighbor is None:
                    continue
                assert model.is_compatible(offset, tile_ids[cell], tile_ids[neighbor]), (
                    f"tile {tile_ids[neighbor]} at {coord + offset} not allowed at {offset} from tile {tile_ids[cell]}"
                )

    def test_water_and_mountain_never_touch(self, island_example: Grid[int]) -> None:
        """Tiles never observed side by side are never placed side by side."""
        engine = build_engine(island_example, (15, 15), seed=456)
        engine.run()

        grid = Grid(15, 15, collapsed_tile_ids(engine))
        for coord in grid.coordinates():
            if grid.get(coord) != 2:
                continue
            for offset in CROSS_NEIGHBOURHOOD:
                assert grid.get(coord + offset) != 0

    def test_square_neighbourhood(self, island_example: Grid[int]) -> None:
        """The engine works with the 8-connected neighbourhood as well."""
        engine = build_engine(island_example, (9, 9), seed=5, neighbourhood=SQUARE_NEIGHBOURHOOD)
        assert engine.run().state == EngineState.CONVERGED

    def test_frequency_weighting_converges(self, island_example: Grid[int]) -> None:
        """Frequency weighted draws still respect the relation."""
        engine = build_engine(island_example, (10, 10), seed=9, weighting=CandidateWeighting.FREQUENCY)
        assert engine.run().state == EngineState.CONVERGED

    def test_empty_output_converges_immediately(self, island_example: Grid[int]) -> None:
        """A zero-sized output has nothing to collapse."""
        engine = build_engine(island_example, (0, 0), seed=1)
        outcome = engine.run()
        assert outcome.state == EngineState.CONVERGED
        assert outcome.waves == 0


# =============================================================================
# Degenerate and Canonical Cases
# =============================================================================


class TestCanonicalCases:
    """Tests for the small examples every WFC implementation should get right."""

    def test_uniform_single_cell_example(self) -> None:
        """A single-valued example fills the whole output with that value's tile."""
        engine = build_engine(Grid.from_rows([[5]]), (3, 3), seed=0, window=None)
        outcome = engine.run()

        assert outcome.state == EngineState.CONVERGED
        assert outcome.waves == 0
        assert collapsed_tile_ids(engine) == [0] * 9

    def test_checkerboard(self, checkerboard_example: Grid[int]) -> None:
        """A checkerboard example yields a checkerboard of any size."""
        for seed in range(5):
            engine = build_engine(checkerboard_example, (4, 4), seed=seed)
            assert engine.run().state == EngineState.CONVERGED

            grid = Grid(4, 4, collapsed_tile_ids(engine))
            for coord in grid.coordinates():
                for offset in CROSS_NEIGHBOURHOOD:
                    neighbor = grid.get(coord + offset)
                    if neighbor is not None:
                        assert neighbor != grid.get(coord)

    def test_edge_sampled_checkerboard_contradicts(self, checkerboard_example: Grid[int]) -> None:
        """Sampling the 2x2 checkerboard through the cross leaves four corner tiles that can't tile a 4x4 output."""
        for seed in range(5):
            engine = build_engine(checkerboard_example, (4, 4), seed=seed, window=None)
            outcome = engine.run()

            assert outcome.state == EngineState.CONTRADICTED
            assert outcome.contradiction is not None
            first = outcome.contradiction.first
            assert first is not None
            assert 0 <= first.x < 4 and 0 <= first.y < 4
            assert outcome.wave.is_contradicted(outcome.wave.to_1d(first))
            assert outcome.contradiction.state is not outcome.wave


# =============================================================================
# Properties
# =============================================================================


class TestEngineProperties:
    """Tests for monotonicity, termination and determinism."""

    def test_entropy_is_monotonic(self, island_example: Grid[int]) -> None:
        """No cell's entropy ever grows from one wave to the next."""
        engine = build_engine(island_example, (8, 8), seed=77)
        previous = engine.wave.entropies()

        while not engine.state.is_terminal():
            engine.step()
            current = engine.wave.entropies()
            assert np.all(current <= previous)
            previous = current

    def test_terminates_within_bound(self, island_example: Grid[int]) -> None:
        """Each wave collapses a cell, so the run ends within the number of cells."""
        engine = build_engine(island_example, (11, 7), seed=3)
        engine.run()

        assert engine.state.is_terminal()
        assert engine.waves <= engine.wave.num_cells
        assert engine.waves <= engine.wave.num_cells * engine.wave.num_tiles

    def test_same_seed_same_output(self, island_example: Grid[int]) -> None:
        """Identical inputs and seed give identical outputs."""
        first = build_engine(island_example, (15, 15), seed=42424242)
        second = build_engine(island_example, (15, 15), seed=42424242)
        first.run()
        second.run()

        assert collapsed_tile_ids(first) == collapsed_tile_ids(second)
        assert first.waves == second.waves

    def test_same_seed_same_contradiction(self, checkerboard_example: Grid[int]) -> None:
        """Contradicted runs are just as reproducible."""
        outcomes = [build_engine(checkerboard_example, (6, 6), seed=99, window=None).run() for _ in range(2)]
        assert outcomes[0].contradiction.coordinates == outcomes[1].contradiction.coordinates

    def test_different_seeds_differ(self, island_example: Grid[int]) -> None:
        """Different seeds produce different outputs (with overwhelming probability)."""
        first = build_engine(island_example, (10, 10), seed=12345)
        second = build_engine(island_example, (10, 10), seed=67890)
        first.run()
        second.run()

        assert collapsed_tile_ids(first) != collapsed_tile_ids(second)


# =============================================================================
# Stepping and Preconditions
# =============================================================================


class TestEngineStepping:
    """Tests for driving the engine step by step."""

    def test_step_after_terminal_is_noop(self, island_example: Grid[int]) -> None:
        """Once terminal, step() changes nothing."""
        engine = build_engine(island_example, (4, 4), seed=8)
        engine.run()
        waves = engine.waves

        assert engine.step() == EngineState.CONVERGED
        assert engine.waves == waves

    def test_each_running_step_collapses_a_cell(self, island_example: Grid[int]) -> None:
        """A step that keeps the engine running leaves more collapsed cells than before."""
        engine = build_engine(island_example, (6, 6), seed=21)

        collapsed = 0
        while engine.step() == EngineState.RUNNING:
            now = int(np.count_nonzero(engine.wave.entropies() == 1))
            assert now > collapsed
            collapsed = now

    def test_empty_example_rejected(self) -> None:
        """An empty catalog can't fill a non-empty output."""
        catalog = TileCatalog(Grid(0, 0, []), CROSS_NEIGHBOURHOOD)
        model = AdjacencyModel(catalog, CROSS_NEIGHBOURHOOD)

        with pytest.raises(EmptyExampleError):
            CollapseEngine(model, WaveState(3, 3, 0), random.Random(0))

    def test_tile_count_mismatch_rejected(self, island_example: Grid[int]) -> None:
        """The wave must be built over the model's tiles."""
        catalog = TileCatalog(island_example, CROSS_NEIGHBOURHOOD, SELF_WINDOW)
        model = AdjacencyModel(catalog, CROSS_NEIGHBOURHOOD)

        with pytest.raises(ValueError):
            CollapseEngine(model, WaveState(3, 3, 5), random.Random(0))

    def test_frequency_weighting_needs_weights(self, island_example: Grid[int]) -> None:
        """Frequency weighting without weights is rejected."""
        catalog = TileCatalog(island_example, CROSS_NEIGHBOURHOOD, SELF_WINDOW)
        model = AdjacencyModel(catalog, CROSS_NEIGHBOURHOOD)

        with pytest.raises(ValueError):
            CollapseEngine(model, WaveState(3, 3, 3), random.Random(0), CandidateWeighting.FREQUENCY)
