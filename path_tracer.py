"""
Follow a policy from the start cell until the goal is reached or the walk fails.

The tracer never raises for a bad policy: a walk that stops early is returned
with the cells visited so far and a status saying why it stopped.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List

import numpy as np

from config import STEP_CAP_FACTOR
from errors import PreconditionFailure
from gridWrapper import ACTION_DELTA, Action, Cell, CellKind, Grid

logger = logging.getLogger(__name__)


class TraceStatus(Enum):
    FOLLOWING = "following"
    REACHED_GOAL = "reached_goal"
    BLOCKED = "blocked"
    CYCLE_DETECTED = "cycle_detected"
    STEP_CAP_EXCEEDED = "step_cap_exceeded"


@dataclass
class TraceResult:
    path: List[Cell] = field(default_factory=list)
    status: TraceStatus = TraceStatus.FOLLOWING
    reason: str = ""

    @property
    def reached_goal(self) -> bool:
        return self.status == TraceStatus.REACHED_GOAL

    @property
    def incomplete(self) -> bool:
        return not self.reached_goal

    def __len__(self):
        return len(self.path)


def _inside(shape, cell):
    return 0 <= cell[0] < shape[0] and 0 <= cell[1] < shape[1]


def trace(policy, start, goal, grid=None, step_cap_factor=STEP_CAP_FACTOR) -> TraceResult:
    """
    Walk the policy from ``start``.

    policy : (rows, cols) matrix of Action, int codes or labels ("up", ..., "stay")
    grid : optional Grid or CellKind matrix; when given, stepping onto an obstacle stops the walk.
    step_cap_factor : the walk stops after step_cap_factor * rows * cols steps.
    """
    policy = np.asarray(policy, dtype=object)
    if policy.ndim != 2 or policy.size == 0:
        raise ValueError("Policy must be a non-empty (rows, cols) matrix.")
    if grid is not None and not isinstance(grid, Grid):
        grid = Grid(grid)
    if grid is not None and grid.shape != policy.shape:
        raise ValueError(f"Policy has shape {policy.shape}, grid has shape {grid.shape}.")

    start = tuple(int(x) for x in start)
    goal = tuple(int(x) for x in goal)
    rows, cols = policy.shape
    if not _inside(policy.shape, start):
        raise PreconditionFailure("start_out_of_bounds", f"Start {start} is outside the grid")
    if not _inside(policy.shape, goal):
        raise PreconditionFailure("goal_out_of_bounds", f"Goal {goal} is outside the grid")

    result = TraceResult(path=[start])
    visited = {start}
    current = start
    max_steps = step_cap_factor * rows * cols

    steps = 0
    while result.status == TraceStatus.FOLLOWING:
        if current == goal:
            result.status = TraceStatus.REACHED_GOAL
            break
        if steps >= max_steps:
            result.status = TraceStatus.STEP_CAP_EXCEEDED
            result.reason = f"step cap of {max_steps} reached"
            break

        action = Action.parse(policy[current])
        if action is None:
            result.status = TraceStatus.BLOCKED
            result.reason = f"invalid action {policy[current]!r} at {current}"
            break

        dr, dc = ACTION_DELTA[action]
        nxt = (current[0] + dr, current[1] + dc)
        if not _inside(policy.shape, nxt):
            result.status = TraceStatus.BLOCKED
            result.reason = f"next position {nxt} is outside grid boundaries"
        elif grid is not None and grid.kind(nxt) == CellKind.OBSTACLE:
            result.status = TraceStatus.BLOCKED
            result.reason = f"next position {nxt} is an obstacle"
        elif nxt in visited:
            result.status = TraceStatus.CYCLE_DETECTED
            result.reason = f"cycle detected at {nxt}"
        else:
            current = nxt
            visited.add(nxt)
            result.path.append(nxt)
            steps += 1

    if result.incomplete:
        logger.warning("Could not find path to goal after %d steps: %s", steps, result.reason)
    return result
