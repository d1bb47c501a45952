"""Implements the collapse-and-propagate loop that drives a wave to convergence or contradiction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tilemap_wfc.enums import CandidateWeighting, EngineState, ReduceOutcome
from tilemap_wfc.errors import Contradiction, EmptyExampleError

if TYPE_CHECKING:
    import random

    import numpy as np
    from numpy.typing import NDArray

    from tilemap_wfc.model.adjacency_model import AdjacencyModel
    from tilemap_wfc.model.wave_state import WaveState

logger = logging.getLogger(__name__)


@dataclass
class CollapseOutcome:
    """Final (or current) result of a collapse run.

    Attributes:
        state: The engine state the run ended in.
        waves: The number of collapse steps performed.
        wave: The wave the engine worked on. For a contradicted run this is the live wave at the point of failure.
        contradiction: Where the run failed, with a wave snapshot. None unless the state is CONTRADICTED.
    """

    state: EngineState
    waves: int
    wave: WaveState
    contradiction: Contradiction | None = None


class CollapseEngine:
    """State machine running Wave Function Collapse on a wave, one collapse step ("wave") at a time.

    Each step picks a random cell of lowest entropy above 1, draws candidate tiles for it until one is consistent with
    all of its in-bounds neighbors (rejected candidates are removed from the cell for good), collapses the cell to that
    candidate, and then propagates the change outward with an explicit work stack until no further cell shrinks. A
    cell running out of tiles at any point ends the run in the CONTRADICTED state; the engine never backtracks. The run
    is fully determined by its inputs and the draws taken from the supplied random generator.

    The engine works in place on the wave it was given and can be driven with step() so that callers can impose their
    own wave or time budget, or with run() to go straight to a terminal state.
    """

    # The compiled compatibility relation of the example.
    _model: AdjacencyModel
    # The wave to collapse (mutated in place).
    _wave: WaveState
    # The caller-supplied random generator; every random draw of the run comes from it.
    _rng: random.Random
    # How candidate tiles are drawn for the cell being collapsed.
    _weighting: CandidateWeighting
    # Per-tile draw weights (only used for CandidateWeighting.FREQUENCY).
    _frequencies: list[int] | None

    # For every cell, the (offset index, neighbor cell) pairs of its in-bounds neighbors.
    _neighbors: list[list[tuple[int, int]]]

    _state: EngineState
    _waves: int
    _contradiction: Contradiction | None

    def __init__(
        self,
        model: AdjacencyModel,
        wave: WaveState,
        rng: random.Random,
        weighting: CandidateWeighting = CandidateWeighting.UNIFORM,
        frequencies: NDArray[np.int_] | None = None,
    ) -> None:
        """Validates the run's preconditions and prepares the neighbor table.

        Args:
            model: The compiled compatibility relation.
            wave: The wave to collapse, normally in full uncertainty.
            rng: The seeded random generator driving every choice of the run.
            weighting: How candidate tiles are drawn for the cell being collapsed.
            frequencies: Per-tile draw weights, required for CandidateWeighting.FREQUENCY.

        Raises:
            EmptyExampleError: If there are no tiles but the output has cells to fill.
            ValueError: If the model and wave disagree on the tile count, or frequency weighting lacks weights.
        """
        if model.num_tiles == 0 and wave.num_cells > 0:
            raise EmptyExampleError()
        if model.num_tiles != wave.num_tiles:
            raise ValueError(f"adjacency model has {model.num_tiles} tiles but the wave has {wave.num_tiles}")
        if weighting == CandidateWeighting.FREQUENCY:
            if frequencies is None or len(frequencies) != model.num_tiles:
                raise ValueError("frequency weighting needs one weight per tile")

        self._model = model
        self._wave = wave
        self._rng = rng
        self._weighting = weighting
        self._frequencies = [int(weight) for weight in frequencies] if frequencies is not None else None

        self._neighbors = [self._determine_neighbors(cell) for cell in range(wave.num_cells)]

        self._state = EngineState.RUNNING
        self._waves = 0
        self._contradiction = None

    @property
    def state(self) -> EngineState:
        """The current state of the state machine."""
        return self._state

    @property
    def waves(self) -> int:
        """The number of collapse steps performed so far."""
        return self._waves

    @property
    def wave(self) -> WaveState:
        """The wave being collapsed."""
        return self._wave

    @property
    def contradiction(self) -> Contradiction | None:
        """The contradiction that ended the run, if any."""
        return self._contradiction

    def outcome(self) -> CollapseOutcome:
        """Returns the run's result as of now."""
        return CollapseOutcome(self._state, self._waves, self._wave, self._contradiction)

    def run(self) -> CollapseOutcome:
        """Performs collapse steps until the engine converges or hits a contradiction."""
        while not self._state.is_terminal():
            self.step()
        return self.outcome()

    def step(self) -> EngineState:
        """Performs a single collapse step and returns the resulting state.

        Calling step() on an engine that already reached a terminal state does nothing.
        """
        if self._state.is_terminal():
            return self._state

        if self._wave.is_converged():
            self._state = EngineState.CONVERGED
            logger.debug("Converged after %d waves on a %dx%d wave", self._waves, self._wave.width, self._wave.height)
            return self._state

        cell = self._wave.pick_lowest_uncollapsed(self._rng)
        assert cell is not None
        self._waves += 1

        chosen = self._choose_candidate(cell)
        if chosen is None:
            self._fail()
            return self._state

        self._wave.collapse_to(cell, chosen)

        if not self._propagate(cell):
            self._fail()
        return self._state

    def _determine_neighbors(self, cell: int) -> list[tuple[int, int]]:
        """Lists the in-bounds neighbors of a cell along every neighbourhood offset."""
        coord = self._wave.to_2d(cell)
        assert coord is not None
        neighbors = []
        for offset_index, offset in enumerate(self._model.neighbourhood):
            neighbor = self._wave.to_1d(coord + offset)
            if neighbor is not None:
                neighbors.append((offset_index, neighbor))
        return neighbors

    def _choose_candidate(self, cell: int) -> int | None:
        """Draws candidates for a cell until one fits all of its neighbors.

        Every rejected candidate is removed from the cell's superposition.

        Returns:
            The chosen tile ID, or None if the cell ran out of candidates.
        """
        while True:
            candidates = self._wave.tile_ids(cell)
            if not candidates:
                return None

            candidate = self._draw(candidates)
            if self._is_consistent(cell, candidate):
                return candidate

            if self._wave.remove(cell, candidate) == ReduceOutcome.CONTRADICTION:
                return None

    def _draw(self, candidates: list[int]) -> int:
        """Randomly picks one of the candidate tile IDs according to the weighting."""
        if self._weighting == CandidateWeighting.UNIFORM or self._frequencies is None:
            return candidates[self._rng.randrange(len(candidates))]

        weights = [self._frequencies[candidate] for candidate in candidates]
        remaining = self._rng.randrange(sum(weights))
        for candidate, weight in zip(candidates, weights):
            if remaining < weight:
                return candidate
            remaining -= weight
        return candidates[-1]

    def _is_consistent(self, cell: int, candidate: int) -> bool:
        """Checks that every neighbor still admits at least one tile the candidate allows next to it."""
        for offset_index, neighbor in self._neighbors[cell]:
            if not self._wave.intersects(neighbor, self._model.row_at(offset_index, candidate)):
                return False
        return True

    def _propagate(self, origin: int) -> bool:
        """Narrows neighboring superpositions outward from a changed cell until nothing shrinks anymore.

        Returns:
            False if some cell was left without admissible tiles, True once the fixpoint is reached.
        """
        stack = [origin]
        pending = {origin}

        while stack:
            cell = stack.pop()
            pending.discard(cell)
            admissible = self._wave.admissible(cell)

            for offset_index, neighbor in self._neighbors[cell]:
                outcome = self._wave.reduce(neighbor, self._model.union_at(offset_index, admissible))

                if outcome == ReduceOutcome.CONTRADICTION:
                    return False
                if outcome == ReduceOutcome.CHANGED and neighbor not in pending:
                    stack.append(neighbor)
                    pending.add(neighbor)

        return True

    def _fail(self) -> None:
        """Moves the engine into the CONTRADICTED state and records where it happened."""
        contradicted = [self._wave.to_2d(cell) for cell in self._wave.contradicted_cells()]
        unresolved = [self._wave.to_2d(cell) for cell in self._wave.unresolved_cells()]
        self._contradiction = Contradiction(
            coordinates=[coord for coord in contradicted if coord is not None],
            state=self._wave.snapshot(),
            unresolved=[coord for coord in unresolved if coord is not None],
        )
        self._state = EngineState.CONTRADICTED
        logger.warning(
            "Contradiction at %s after %d waves",
            ", ".join(str(coord) for coord in self._contradiction.coordinates),
            self._waves,
        )
