"""Contains all global enumeration classes used throughout the project."""

from __future__ import annotations

from enum import Enum


class EngineState(Enum):
    """Defines the states of the collapse engine's state machine."""

    RUNNING = "Running"
    """At least one cell still has more than one admissible tile and no cell is contradicted."""
    CONVERGED = "Converged"
    """Every output cell holds exactly one admissible tile."""
    CONTRADICTED = "Contradicted"
    """Some output cell ran out of admissible tiles. Terminal for the run."""

    def is_terminal(self) -> bool:
        """Returns True if the engine cannot make any further progress."""
        return self != EngineState.RUNNING


class ReduceOutcome(Enum):
    """Defines the possible results of narrowing a cell's superposition."""

    UNCHANGED = 0
    """The cell's admissible set was already a subset of the constraint."""
    CHANGED = 1
    """The cell's admissible set shrank but is still non-empty."""
    CONTRADICTION = 2
    """The cell's admissible set became empty."""


class CellStatus(Enum):
    """Defines the per-cell status reported by the materializer."""

    RESOLVED = "Resolved"
    """Exactly one tile remains, so the cell has a concrete output value."""
    UNRESOLVED = "Unresolved"
    """More than one tile remains because the run stopped before this cell was collapsed."""
    CONTRADICTED = "Contradicted"
    """No tile remains for this cell."""


class CandidateWeighting(Enum):
    """Defines how the engine draws a candidate tile for the cell being collapsed."""

    UNIFORM = "Uniform (Default)"
    """Every admissible tile is equally likely."""
    FREQUENCY = "Frequency"
    """Tiles are weighted by how many example cells produced them."""


class GenerationStatus(Enum):
    """Defines how a single generation attempt ended."""

    CONVERGED = "Converged"
    """The attempt produced a complete output grid."""
    CONTRADICTED = "Contradicted"
    """The attempt ended in a contradiction."""
    BUDGET_EXHAUSTED = "Budget Exhausted"
    """The attempt was stopped by the caller's wave budget before reaching a terminal state."""
