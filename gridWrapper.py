"""
Grid world for the maze MDP: cell kinds, actions, the transition and reward models.

    Parameters
    ----------
    cells : array
        Rectangular (rows, cols) matrix of CellKind codes. Copied on construction
        and stored read-only, so a grid never changes during a solve.

    Attributes
    ----------
    rows, cols : int
        Grid dimensions.
    start, goal : tuple
        The unique START / GOAL cell, or None if there is not exactly one.

    Methods
    -------
    in_bounds(cell)
        True if (row, col) lies inside the grid. Negative indices never wrap.
    kind(cell)
        CellKind at (row, col).
    toggle_obstacle(cell)
        New grid with an EMPTY cell turned into an OBSTACLE or vice versa.

    Module functions
    ----------------
    next_cell(grid, cell, action)
        Deterministic transition; blocked or out-of-bounds moves are self-loops.
    reward(grid, cell)
        +1 at the goal, a small step cost everywhere else.
    random_maze(size, density, seed)
        Square maze with start top-left, goal bottom-right and random obstacles.
"""
import logging
from enum import IntEnum
from typing import List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]  # (row, col)

GOAL_REWARD = 1.0
STEP_REWARD = -0.01


class CellKind(IntEnum):
    EMPTY = 0
    START = 1
    GOAL = 2
    OBSTACLE = 3


class Action(IntEnum):
    # Declaration order is the tie-breaking priority
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3
    STAY = 4

    @property
    def delta(self) -> Cell:
        return ACTION_DELTA[self]

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value) -> Optional["Action"]:
        """Action for an enum member, int code or label; None if unrecognized."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return _LABELS.get(value.strip().lower())
        if isinstance(value, (bool, np.bool_)):
            return None
        if isinstance(value, (int, np.integer)) and 0 <= int(value) < len(cls):
            return cls(int(value))
        return None


ACTION_DELTA = {
    Action.UP: (-1, 0),
    Action.RIGHT: (0, 1),
    Action.DOWN: (1, 0),
    Action.LEFT: (0, -1),
    Action.STAY: (0, 0),
}

_LABELS = {a.label: a for a in Action}
_LABELS["none"] = Action.STAY

_SYMBOLS = {
    '.': CellKind.EMPTY,
    'S': CellKind.START,
    'G': CellKind.GOAL,
    '#': CellKind.OBSTACLE,
}


class Grid():
    def __init__(self, cells):
        raw = np.asarray(cells)
        if raw.size and not np.issubdtype(raw.dtype, np.integer):
            raise ValueError(f"Grid cells must be integer CellKind codes, got dtype {raw.dtype}.")
        if raw.ndim != 2 or raw.shape[0] == 0 or raw.shape[1] == 0:
            raise ValueError("Grid must be a non-empty rectangular matrix.")
        # checked before the int8 cast so out-of-range codes cannot wrap onto a kind
        if not np.isin(raw, [k.value for k in CellKind]).all():
            raise ValueError("Grid contains unknown cell kinds.")
        cells = np.array(raw, dtype=np.int8)
        cells.setflags(write=False)
        self.cells = cells
        self.rows, self.cols = cells.shape

    @classmethod
    def from_lists(cls, rows):
        lengths = {len(r) for r in rows}
        if len(lengths) > 1:
            raise ValueError("Grid rows must all have the same length.")
        return cls(rows)

    @classmethod
    def from_strings(cls, lines):
        """Build a grid from lines like "S.#" using . S G # for empty/start/goal/obstacle."""
        try:
            rows = [[_SYMBOLS[ch] for ch in line.strip()] for line in lines if line.strip()]
        except KeyError as e:
            raise ValueError(f"Unknown grid symbol {e.args[0]!r}") from None
        return cls.from_lists(rows)

    @property
    def shape(self):
        return self.cells.shape

    def in_bounds(self, cell) -> bool:
        r, c = cell
        return 0 <= r < self.rows and 0 <= c < self.cols

    def kind(self, cell) -> CellKind:
        if not self.in_bounds(cell):
            raise IndexError(f"Cell {tuple(cell)} is outside the {self.rows}x{self.cols} grid")
        return CellKind(int(self.cells[cell[0], cell[1]]))

    def is_obstacle(self, cell) -> bool:
        return self.kind(cell) == CellKind.OBSTACLE

    def find(self, kind) -> List[Cell]:
        rs, cs = np.nonzero(self.cells == kind)
        return [(int(r), int(c)) for r, c in zip(rs, cs)]

    def _unique(self, kind):
        found = self.find(kind)
        return found[0] if len(found) == 1 else None

    @property
    def start(self) -> Optional[Cell]:
        return self._unique(CellKind.START)

    @property
    def goal(self) -> Optional[Cell]:
        return self._unique(CellKind.GOAL)

    def toggle_obstacle(self, cell) -> "Grid":
        kind = self.kind(cell)
        if kind in (CellKind.START, CellKind.GOAL):
            raise ValueError(f"Cannot toggle the {kind.name.lower()} cell {tuple(cell)}")
        cells = self.cells.copy()
        cells[cell[0], cell[1]] = CellKind.EMPTY if kind == CellKind.OBSTACLE else CellKind.OBSTACLE
        return Grid(cells)

    def to_lists(self):
        return self.cells.astype(int).tolist()

    def __eq__(self, other):
        return isinstance(other, Grid) and np.array_equal(self.cells, other.cells)

    def __repr__(self):
        return f"Grid({self.rows}x{self.cols})"


def next_cell(grid, cell, action) -> Cell:
    r, c = cell
    if not grid.in_bounds(cell):
        logger.error("Invalid current position [%d,%d] in next_cell", r, c)
        return (0, 0)

    dr, dc = ACTION_DELTA[Action(action)]
    new = (r + dr, c + dc)
    if grid.in_bounds(new) and not grid.is_obstacle(new):
        return new

    # blocked: stay in place
    return (r, c)


def reward(grid, cell) -> float:
    if not grid.in_bounds(cell):
        logger.error("Invalid position [%d,%d] in reward", cell[0], cell[1])
        return STEP_REWARD
    if grid.kind(cell) == CellKind.GOAL:
        return GOAL_REWARD
    return STEP_REWARD


def random_maze(size: int, density: float = 25, seed=None) -> Grid:
    """
    Square maze with START at (0, 0) and GOAL at (size-1, size-1).
    ``density`` is the percentage of the remaining cells turned into obstacles.
    """
    if size < 2:
        raise ValueError(f"Maze size must be at least 2, got {size}")
    if not 0 <= density <= 100:
        raise ValueError(f"Obstacle density must be in [0, 100], got {density}")

    rng = np.random.default_rng(seed)
    cells = np.full((size, size), CellKind.EMPTY, dtype=np.int8)
    cells[0, 0] = CellKind.START
    cells[size - 1, size - 1] = CellKind.GOAL

    n_obstacles = int((size * size - 2) * density // 100)
    free = np.flatnonzero(cells == CellKind.EMPTY)
    chosen = rng.choice(free, size=n_obstacles, replace=False)
    cells.flat[chosen] = CellKind.OBSTACLE

    return Grid(cells)
