from __future__ import annotations

import pytest

from tilemap_wfc.model.grid import Grid


@pytest.fixture
def island_example() -> Grid[int]:
    """A 5x5 example: water (0) surrounding a shore ring (1) around a single mountain (2).

    Water and mountain are never adjacent, and shore is allowed next to everything.
    """
    return Grid.from_rows(
        [
            [0, 0, 0, 0, 0],
            [0, 1, 1, 1, 0],
            [0, 1, 2, 1, 0],
            [0, 1, 1, 1, 0],
            [0, 0, 0, 0, 0],
        ]
    )


@pytest.fixture
def checkerboard_example() -> Grid[int]:
    """The 2x2 checkerboard [[0, 1], [1, 0]]."""
    return Grid.from_rows([[0, 1], [1, 0]])
