"""Contains the caller-side orchestration that builds, runs and retries WFC generations."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar, TYPE_CHECKING

from tilemap_wfc import constants
from tilemap_wfc.enums import CandidateWeighting, EngineState, GenerationStatus
from tilemap_wfc.errors import BudgetExhaustedError, EmptyExampleError
from tilemap_wfc.model.adjacency_model import AdjacencyModel
from tilemap_wfc.model.collapse_engine import CollapseEngine
from tilemap_wfc.model.materializer import Materializer
from tilemap_wfc.model.tile_catalog import TileCatalog
from tilemap_wfc.model.wave_state import WaveState

if TYPE_CHECKING:
    from tilemap_wfc.model.grid import Grid, Offset
    from tilemap_wfc.model.materializer import MaterializedResult
    from tilemap_wfc.model.tile_catalog import Tile

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class GeneratorSettings:
    """Configuration of a generation.

    Attributes:
        neighbourhood: The offsets used as constraint edges (and as the pattern window unless one is given).
        pattern_window: The offsets sampled to form tiles. The default keys tiles on the example cell's own value.
            None samples the whole neighbourhood, which only generalizes when the output is not larger than the
            example.
        weighting: How candidate tiles are drawn when a cell is collapsed.
        max_attempts: How many independent runs to try, each with a fresh seed, before giving up.
        max_waves: The collapse step budget per attempt. None means unlimited.
        seed: Seed for the generator that hands out per-attempt seeds. Ignored if the caller passes its own RNG.
    """

    neighbourhood: Sequence[Offset] = constants.CROSS_NEIGHBOURHOOD
    pattern_window: Sequence[Offset] | None = constants.SELF_WINDOW
    weighting: CandidateWeighting = CandidateWeighting.UNIFORM
    max_attempts: int = constants.GENERATOR_MAX_ATTEMPTS_DEFAULT
    max_waves: int | None = None
    seed: int | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.max_attempts <= constants.GENERATOR_MAX_ATTEMPTS_MAX_LIMIT:
            raise ValueError(
                f"max_attempts must be between 1 and {constants.GENERATOR_MAX_ATTEMPTS_MAX_LIMIT}, "
                f"got {self.max_attempts}"
            )
        if self.max_waves is not None and self.max_waves < 0:
            raise ValueError(f"max_waves must not be negative, got {self.max_waves}")


@dataclass
class GenerationReport(Generic[T]):
    """Result of generate().

    Attributes:
        status: How the last attempt ended.
        result: The materialized output of the last attempt.
        attempts: The number of attempts made.
        seed: The engine seed of the last attempt. Running a CollapseEngine with random.Random(seed) on a fresh wave
            reproduces that attempt.
        waves: The number of collapse steps of the last attempt.
        catalog: The tile catalog learned from the example.
        model: The compiled adjacency model.
    """

    status: GenerationStatus
    result: MaterializedResult[T]
    attempts: int
    seed: int
    waves: int
    catalog: TileCatalog[T]
    model: AdjacencyModel

    @property
    def ok(self) -> bool:
        """True if the last attempt converged."""
        return self.status == GenerationStatus.CONVERGED

    @property
    def grid(self) -> Grid[T]:
        """The finished output grid.

        Raises:
            ContradictionError: If the last attempt was contradicted.
            BudgetExhaustedError: If the last attempt ran out of collapse steps.
        """
        if self.status == GenerationStatus.BUDGET_EXHAUSTED:
            raise BudgetExhaustedError(list(self.result.unresolved), self.waves)
        return self.result.unwrap()


def generate(
    example: Grid[T],
    output_size: tuple[int, int],
    settings: GeneratorSettings | None = None,
    rng: random.Random | None = None,
    projection: Callable[[Tile], T] | None = None,
) -> GenerationReport[T]:
    """Synthesizes an output grid whose local neighbourhoods follow those of the example.

    The tile catalog and adjacency model are built once. Each attempt then collapses a fresh wave with its own seed
    drawn from rng; an attempt that is contradicted or runs out of budget is followed by another one until an attempt
    converges or max_attempts is reached.

    Args:
        example: The example grid.
        output_size: The (width, height) of the output grid.
        settings: Generation settings. Defaults to GeneratorSettings().
        rng: Source of the per-attempt seeds. Defaults to random.Random(settings.seed).
        projection: Maps a tile to its output value when the pattern window lacks the zero offset.

    Returns:
        A report on the last attempt.

    Raises:
        EmptyExampleError: If the example has no cells but the output does.
        ValueError: If the output size is negative or the neighbourhood has duplicate offsets.
    """
    settings = settings or GeneratorSettings()
    width, height = output_size
    if width < 0 or height < 0:
        raise ValueError(f"output dimensions must not be negative, got {width}x{height}")

    catalog = TileCatalog(example, settings.neighbourhood, settings.pattern_window)
    if catalog.num_tiles == 0 and width * height > 0:
        raise EmptyExampleError()

    model = AdjacencyModel(catalog, settings.neighbourhood)
    materializer = Materializer(catalog, projection)
    seeder = rng if rng is not None else random.Random(settings.seed)

    for attempt in range(1, settings.max_attempts + 1):
        seed = seeder.randint(0, constants.RANDOM_SEED_MAX)
        engine = CollapseEngine(
            model,
            WaveState(width, height, catalog.num_tiles),
            random.Random(seed),
            settings.weighting,
            catalog.frequencies,
        )
        status = _run_with_budget(engine, settings.max_waves)
        result = materializer.materialize(engine.outcome())

        logger.info(
            "Attempt %d/%d (seed %d) ended %s after %d waves",
            attempt,
            settings.max_attempts,
            seed,
            status.value,
            engine.waves,
        )
        if status == GenerationStatus.CONVERGED:
            break

    return GenerationReport(
        status=status,
        result=result,
        attempts=attempt,
        seed=seed,
        waves=engine.waves,
        catalog=catalog,
        model=model,
    )


def _run_with_budget(engine: CollapseEngine, max_waves: int | None) -> GenerationStatus:
    """Steps the engine until it reaches a terminal state or uses up the wave budget."""
    while not engine.state.is_terminal():
        if max_waves is not None and engine.waves >= max_waves and not engine.wave.is_converged():
            return GenerationStatus.BUDGET_EXHAUSTED
        engine.step()

    if engine.state == EngineState.CONVERGED:
        return GenerationStatus.CONVERGED
    return GenerationStatus.CONTRADICTED
