"""Contains the exception hierarchy raised by the tilemap WFC core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tilemap_wfc.model.grid import Coordinate, Offset
    from tilemap_wfc.model.wave_state import WaveState


class WFCError(Exception):
    """Base class for all errors raised by this package."""


class EmptyExampleError(WFCError):
    """Raised when the example grid has no cells, so no tiles can be extracted."""

    def __init__(self, message: str = "example grid has no cells, the tile catalog is empty") -> None:
        super().__init__(message)


class InvalidOffsetError(WFCError):
    """Raised when an offset outside the configured neighbourhood is queried."""

    offset: Offset

    def __init__(self, offset: Offset, message: str | None = None) -> None:
        self.offset = offset
        super().__init__(message or f"offset {offset} is not part of the neighbourhood")


@dataclass
class Contradiction:
    """Diagnostic record describing where a run ran out of admissible tiles.

    Attributes:
        coordinates: The output coordinates whose superposition became empty, in the order they were found. The first
            entry is where the contradiction was first detected.
        state: A snapshot of the wave at the moment the run stopped.
        unresolved: The output coordinates that still admitted more than one tile when the run stopped.
    """

    coordinates: list[Coordinate] = field(default_factory=list)
    state: WaveState | None = None
    unresolved: list[Coordinate] = field(default_factory=list)

    @property
    def first(self) -> Coordinate | None:
        """Returns the coordinate where the contradiction was first detected."""
        return self.coordinates[0] if self.coordinates else None


class ContradictionError(WFCError):
    """Raised on request when a caller insists on a finished output grid but the run was contradicted."""

    contradiction: Contradiction

    def __init__(self, contradiction: Contradiction) -> None:
        self.contradiction = contradiction
        where = ", ".join(str(coord) for coord in contradiction.coordinates)
        super().__init__(f"wave function collapse hit a contradiction at {where}")


class BudgetExhaustedError(WFCError):
    """Raised on request when a run stopped with unresolved cells but no contradiction.

    The engine itself never stops early. This happens when the caller stops stepping it, usually because the collapse
    step budget ran out.
    """

    unresolved: list[Coordinate]
    waves: int | None

    def __init__(self, unresolved: list[Coordinate], waves: int | None = None) -> None:
        self.unresolved = unresolved
        self.waves = waves
        message = f"wave function collapse stopped with {len(unresolved)} cells unresolved"
        if waves is not None:
            message += f" after {waves} waves"
        super().__init__(message)
