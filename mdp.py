"""
Class for solving a grid maze as a deterministic Markov Decision Process.

    States are the non-obstacle cells of a ``gridWrapper.Grid``; actions are
    Up, Right, Down, Left and Stay. Moves that would leave the grid or enter
    an obstacle keep the agent in place.

    Parameters
    ----------
    grid : Grid
        The maze. Never modified.
    start, goal : tuple
        (row, col) of the start and goal cells. The goal must be the grid's only
        GOAL cell and the start must not be an obstacle.
    discount : float
        Discount factor ∈ (0, 1). The per time-step discount factor on future rewards.
    epsilon : float
        Stopping criterion for value iteration.
    max_iter : int
        Sweep cap. Reaching it without convergence raises ConvergenceFailure.

    Attributes
    ----------
    states : list
        Non-obstacle cells, in row-major order.
    successors : dict
        cell -> list of (action, next cell), obstacle destinations removed.
    V : array
        (rows, cols) value function of the last completed sweep.

    Methods
    -------
    Bellman_update(Vprev)
        One synchronous (Jacobi) sweep of the Bellman optimality update.
        Returns the new value function and the largest per-cell change.
    sweeps()
        Generator over (V, delta) for every sweep, so a caller can drive or
        abandon a solve between sweeps.
    value_iteration()
        Sweeps until delta <= epsilon. Returns values and the number of sweeps.
    extract_policy(V)
        Greedy policy for a value function.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from config import SolverConfig, DEFAULT_DISCOUNT, DEFAULT_THRESHOLD, MAX_SWEEPS
from errors import ConvergenceFailure, PreconditionFailure
from gridWrapper import Action, CellKind, Grid, next_cell, reward
from path_tracer import TraceResult, trace

logger = logging.getLogger(__name__)

OBSTACLE_VALUE = -100.0   # sentinel, never updated
ENCLOSED_VALUE = -1.0     # cell with no admissible action
OBSTACLE_GUARD = -50.0    # values below this are treated as obstacles by the policy


def _check_cells(grid, start, goal):
    if not grid.in_bounds(goal):
        raise PreconditionFailure("goal_out_of_bounds", f"Goal {tuple(goal)} is outside the grid")
    if not grid.in_bounds(start):
        raise PreconditionFailure("start_out_of_bounds", f"Start {tuple(start)} is outside the grid")
    if grid.kind(goal) != CellKind.GOAL:
        raise PreconditionFailure("goal_not_marked", "Goal position is not marked as a goal in the grid")

    n_goals = len(grid.find(CellKind.GOAL))
    if n_goals != 1:
        raise PreconditionFailure("goal_count", f"Grid must contain exactly one goal cell, found {n_goals}")
    if grid.kind(start) == CellKind.OBSTACLE:
        raise PreconditionFailure("start_blocked", f"Start {tuple(start)} is an obstacle")


class GridMDP():
    def __init__(self, grid, start, goal, discount=DEFAULT_DISCOUNT, epsilon=DEFAULT_THRESHOLD, max_iter=MAX_SWEEPS):
        # Hyperparameters, range-checked by SolverConfig
        SolverConfig(discount=discount, threshold=epsilon, max_sweeps=max_iter)
        self.gamma = float(discount)
        self.epsilon = float(epsilon)
        self.max_iter = int(max_iter)

        if not isinstance(grid, Grid):
            grid = Grid(grid)
        self.start = tuple(int(x) for x in start)
        self.goal = tuple(int(x) for x in goal)
        _check_cells(grid, self.start, self.goal)
        self.grid = grid

        # MDP dynamics
        self.states = [(r, c) for r in range(grid.rows) for c in range(grid.cols)
                       if grid.kind((r, c)) != CellKind.OBSTACLE]
        self.obstacles = grid.cells == CellKind.OBSTACLE
        self.successors = {}
        for s in self.states:
            moves = []
            for a in Action:
                s_new = next_cell(grid, s, a)
                if grid.is_obstacle(s_new):
                    continue
                moves.append((a, s_new))
            self.successors[s] = moves

        # the start is never an obstacle, so there is at least one state
        self._state_idx = tuple(np.array(self.states).T)

        self.V = self._initial_values()

    def _initial_values(self):
        V = np.zeros(self.grid.shape)
        V[self.obstacles] = OBSTACLE_VALUE
        return V

    def Bellman_update(self, Vprev):
        """
        One sweep of the value iteration update (Jacobi: reads only Vprev).
        Returns the new value function and delta = max |V - Vprev|.
        """
        if not isinstance(Vprev, np.ndarray):
            raise TypeError("V must be a numpy array.")
        if Vprev.shape != self.grid.shape:
            raise ValueError(f"V has shape {Vprev.shape}, expected {self.grid.shape}.")

        V = np.empty_like(Vprev, dtype=float)
        V[self.obstacles] = OBSTACLE_VALUE

        for s in self.states:
            r = reward(self.grid, s)
            if s == self.goal:
                V[s] = r
                continue

            q = [r + self.gamma * Vprev[s_new] for _, s_new in self.successors[s]]
            if q:
                V[s] = max(q)
            else:
                logger.warning("No admissible action at %s, using fallback value %s", s, ENCLOSED_VALUE)
                V[s] = ENCLOSED_VALUE

        delta = float(np.max(np.abs(V[self._state_idx] - Vprev[self._state_idx])))
        return V, delta

    def sweeps(self):
        """Yield (V, delta) after each sweep, starting from the zero value function."""
        V = self._initial_values()
        while True:
            V, delta = self.Bellman_update(V)
            yield V, delta

    def value_iteration(self):
        """
        Sweep until delta <= epsilon and return (V, number of sweeps).

        The count includes the converging sweep, and delta includes the goal
        cell, whose value jumps from 0 to the goal reward on the first sweep.
        Any epsilon < 1 therefore needs at least two sweeps. A 1x1 goal-only
        grid takes 2 and an open 2x2 grid takes 4 even for epsilon >= 0.01,
        where tracking only non-goal cells would stop after one.
        """
        delta = np.inf
        for i, (V, delta) in enumerate(self.sweeps(), start=1):
            self.V = V
            logger.debug("sweep %d: delta=%.6g", i, delta)
            if delta <= self.epsilon:
                logger.info("Value iteration converged in %d sweeps (delta=%.3g)", i, delta)
                return V.copy(), i
            if i >= self.max_iter:
                break

        raise ConvergenceFailure(self.max_iter, delta, self.epsilon)

    def extract_policy(self, V=None):
        if V is None:
            V = self.V
        return extract_policy(self.grid, V, self.gamma)


def extract_policy(grid, values, discount):
    """
    Greedy policy for a value function.

    Actions are tried in Action order and the first strictly best one wins.
    Blocked moves, moves into obstacles and moves onto cells valued below
    OBSTACLE_GUARD are not candidates. Obstacles and the goal get STAY, as does
    any cell left without a candidate.
    """
    if not isinstance(grid, Grid):
        grid = Grid(grid)
    values = np.asarray(values, dtype=float)
    if values.shape != grid.shape:
        raise ValueError(f"Values have shape {values.shape}, grid has shape {grid.shape}.")

    policy = np.full(grid.shape, Action.STAY, dtype=np.int32)
    for r in range(grid.rows):
        for c in range(grid.cols):
            s = (r, c)
            if grid.kind(s) in (CellKind.OBSTACLE, CellKind.GOAL):
                continue

            rew = reward(grid, s)
            best_a, best_q = None, -np.inf
            for a in Action:
                s_new = next_cell(grid, s, a)
                if grid.is_obstacle(s_new):
                    continue
                if s_new == s and a != Action.STAY:
                    continue
                v_new = values[s_new]
                if v_new < OBSTACLE_GUARD:
                    continue
                q = rew + discount * v_new
                if q > best_q:
                    best_a, best_q = a, q

            if best_a is None:
                logger.warning("No admissible action at %s, policy falls back to stay", s)
                best_a = Action.STAY
            policy[s] = best_a

    return policy


@dataclass
class SolveResult:
    values: np.ndarray
    iterations: int


def solve(grid, start, goal, discount=DEFAULT_DISCOUNT, threshold=DEFAULT_THRESHOLD, max_sweeps=MAX_SWEEPS):
    """
    Run value iteration on the maze.

    Raises PreconditionFailure if start/goal are unusable and ConvergenceFailure
    if the sweep cap is reached first.
    """
    mdp = GridMDP(grid, start, goal, discount=discount, epsilon=threshold, max_iter=max_sweeps)
    V, iterations = mdp.value_iteration()
    return SolveResult(values=V, iterations=iterations)


@dataclass
class Solution:
    grid: Grid
    start: tuple
    goal: tuple
    discount: float
    values: np.ndarray
    iterations: int
    policy: np.ndarray
    trace: TraceResult
    path: List[tuple] = field(init=False)

    def __post_init__(self):
        self.path = self.trace.path

    @property
    def reached_goal(self) -> bool:
        return self.trace.reached_goal

    def to_dict(self) -> dict:
        """Plain nested lists, ready for json.dumps."""
        return {
            "discount": self.discount,
            "iterations": self.iterations,
            "values": self.values.tolist(),
            "policy": [[Action(int(a)).label for a in row] for row in self.policy],
            "path": [[r, c] for r, c in self.path],
            "status": self.trace.status.value,
        }


def solve_maze(grid, config: Optional[SolverConfig] = None, start=None, goal=None) -> Solution:
    """Value iteration, policy extraction and path tracing in one go."""
    if config is None:
        config = SolverConfig()
    if not isinstance(grid, Grid):
        grid = Grid(grid)

    start = grid.start if start is None else start
    goal = grid.goal if goal is None else goal
    if start is None:
        raise PreconditionFailure("start_count", "Grid must contain exactly one start cell")
    if goal is None:
        raise PreconditionFailure("goal_count", "Grid must contain exactly one goal cell")

    result = solve(grid, start, goal, config.discount, config.threshold, config.max_sweeps)
    policy = extract_policy(grid, result.values, config.discount)
    traced = trace(policy, start, goal, grid, step_cap_factor=config.step_cap_factor)

    return Solution(grid=grid, start=tuple(start), goal=tuple(goal), discount=config.discount,
                    values=result.values, iterations=result.iterations,
                    policy=policy, trace=traced)
