"""Wave Function Collapse tilemap synthesis from a small example grid."""

import logging

from tilemap_wfc.constants import CROSS_NEIGHBOURHOOD, SELF_WINDOW, SQUARE_NEIGHBOURHOOD
from tilemap_wfc.enums import CandidateWeighting, CellStatus, EngineState, GenerationStatus
from tilemap_wfc.errors import (
    BudgetExhaustedError,
    ContradictionError,
    EmptyExampleError,
    InvalidOffsetError,
    WFCError,
)
from tilemap_wfc.generator import GenerationReport, GeneratorSettings, generate
from tilemap_wfc.model.grid import Coordinate, Grid, Offset
from tilemap_wfc.model.tile_catalog import OUTSIDE

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "CROSS_NEIGHBOURHOOD",
    "OUTSIDE",
    "SELF_WINDOW",
    "SQUARE_NEIGHBOURHOOD",
    "BudgetExhaustedError",
    "CandidateWeighting",
    "CellStatus",
    "ContradictionError",
    "Coordinate",
    "EmptyExampleError",
    "EngineState",
    "GenerationReport",
    "GenerationStatus",
    "GeneratorSettings",
    "Grid",
    "InvalidOffsetError",
    "Offset",
    "WFCError",
    "generate",
]
