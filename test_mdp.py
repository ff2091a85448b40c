import json
import logging

import numpy as np
import pytest

from config import SolverConfig
from errors import ConvergenceFailure, PreconditionFailure
from gridWrapper import ACTION_DELTA, Action, CellKind, Grid, random_maze
from mdp import OBSTACLE_VALUE, GridMDP, extract_policy, solve, solve_maze
from path_tracer import TraceStatus

MAZE = [
    "S..#.",
    ".#...",
    ".#.#.",
    "...#G",
]


def open_grid(n):
    cells = np.zeros((n, n), dtype=int)
    cells[0, 0] = CellKind.START
    cells[n - 1, n - 1] = CellKind.GOAL
    return Grid(cells)


def test_two_by_two_round_trip():
    grid = Grid.from_strings(["S.", ".G"])
    result = solve(grid, (0, 0), (1, 1), discount=0.9, threshold=0.001)

    assert result.values[1, 1] == 1.0
    assert result.values[0, 1] == pytest.approx(0.89)
    assert result.values[1, 0] == pytest.approx(0.89)
    assert result.values[0, 0] == pytest.approx(0.791)
    assert result.iterations == 4

    solution = solve_maze(grid, SolverConfig(discount=0.9, threshold=0.001))
    assert solution.reached_goal
    assert solution.path == [(0, 0), (0, 1), (1, 1)]


@pytest.mark.parametrize("n", [2, 3, 5, 8])
def test_open_grid_path_is_manhattan_shortest(n):
    solution = solve_maze(open_grid(n))
    assert solution.reached_goal
    assert len(solution.path) == 2 * (n - 1) + 1


def test_goal_fixpoint_and_obstacle_sentinel():
    grid = Grid.from_strings(MAZE)
    result = solve(grid, grid.start, grid.goal)

    assert result.values[grid.goal] == 1.0
    for cell in grid.find(CellKind.OBSTACLE):
        assert result.values[cell] == OBSTACLE_VALUE


def test_obstacles_never_updated_during_sweeps():
    grid = Grid.from_strings(MAZE)
    mdp = GridMDP(grid, grid.start, grid.goal)
    obstacles = grid.cells == CellKind.OBSTACLE

    for i, (V, delta) in enumerate(mdp.sweeps()):
        assert (V[obstacles] == OBSTACLE_VALUE).all()
        if delta <= mdp.epsilon or i > 50:
            break


def test_delta_contracts_by_discount():
    grid = Grid.from_strings(MAZE)
    mdp = GridMDP(grid, grid.start, grid.goal, discount=0.8, epsilon=1e-6)

    deltas = []
    for V, delta in mdp.sweeps():
        deltas.append(delta)
        if delta <= mdp.epsilon:
            break

    for prev, cur in zip(deltas, deltas[1:]):
        assert cur <= 0.8 * prev + 1e-12


def test_value_iteration_matches_manual_sweeps():
    grid = Grid.from_strings(MAZE)
    mdp = GridMDP(grid, grid.start, grid.goal)
    V, iterations = mdp.value_iteration()

    W = mdp._initial_values()
    for _ in range(iterations):
        W, _ = mdp.Bellman_update(W)
    assert np.array_equal(V, W)
    assert np.array_equal(mdp.extract_policy(), extract_policy(grid, W, mdp.gamma))


def test_solve_is_deterministic():
    grid = random_maze(7, 30, seed=11)
    first = solve_maze(grid)
    second = solve_maze(grid)

    assert np.array_equal(first.values, second.values)
    assert np.array_equal(first.policy, second.policy)
    assert first.iterations == second.iterations
    assert first.path == second.path


def test_path_is_valid():
    deltas = set(ACTION_DELTA.values())
    for seed in range(5):
        grid = random_maze(6, 25, seed=seed)
        path = solve_maze(grid).path

        assert path[0] == grid.start
        assert len(set(path)) == len(path)
        for a, b in zip(path, path[1:]):
            assert (b[0] - a[0], b[1] - a[1]) in deltas
        for cell in path:
            assert grid.kind(cell) != CellKind.OBSTACLE


def test_enclosed_start_is_trace_incomplete():
    grid = Grid.from_strings(["S#.", "#..", "..G"])
    solution = solve_maze(grid)

    assert solution.policy[0, 0] == Action.STAY
    assert solution.path == [(0, 0)]
    assert solution.path[-1] != grid.goal
    assert solution.trace.incomplete
    assert solution.trace.status == TraceStatus.CYCLE_DETECTED


def test_convergence_failure():
    grid = Grid.from_strings(["S#G"])
    with pytest.raises(ConvergenceFailure) as e:
        solve(grid, (0, 0), (0, 2), discount=0.9999, threshold=1e-6)
    assert e.value.iterations == 1000
    assert e.value.delta > 1e-6


def test_goal_counts_toward_delta():
    assert solve(Grid.from_strings(["G"]), (0, 0), (0, 0)).iterations == 2
    assert solve(Grid.from_strings(["S.", ".G"]), (0, 0), (1, 1), threshold=0.05).iterations == 4


def test_sweep_cap_is_configurable():
    grid = Grid.from_strings(["S.", ".G"])
    with pytest.raises(ConvergenceFailure) as e:
        solve(grid, (0, 0), (1, 1), max_sweeps=3)
    assert e.value.iterations == 3

    assert solve(grid, (0, 0), (1, 1), max_sweeps=4).iterations == 4


@pytest.mark.parametrize("rows, start, goal, condition", [
    (["S.", ".."], (0, 0), (1, 1), "goal_not_marked"),
    (["SG", ".G"], (0, 0), (0, 1), "goal_count"),
    (["S.", ".G"], (0, 0), (2, 1), "goal_out_of_bounds"),
    (["S.", ".G"], (-1, 0), (1, 1), "start_out_of_bounds"),
    (["S#", ".G"], (0, 1), (1, 1), "start_blocked"),
])
def test_preconditions(rows, start, goal, condition):
    grid = Grid.from_strings(rows)
    with pytest.raises(PreconditionFailure) as e:
        solve(grid, start, goal)
    assert e.value.condition == condition


def test_solve_maze_needs_start_and_goal():
    with pytest.raises(PreconditionFailure):
        solve_maze(Grid.from_strings(["..", ".G"]))
    with pytest.raises(PreconditionFailure):
        solve_maze(Grid.from_strings(["S.", ".."]))


@pytest.mark.parametrize("params", [
    {"discount": 1.0},
    {"discount": 0.0},
    {"threshold": 0.0},
    {"max_sweeps": 0},
])
def test_bad_hyperparameters(params):
    grid = Grid.from_strings(["S.", ".G"])
    with pytest.raises(ValueError):
        solve(grid, (0, 0), (1, 1), **params)


def test_bellman_update_checks_shape():
    grid = Grid.from_strings(["S.", ".G"])
    mdp = GridMDP(grid, (0, 0), (1, 1))
    with pytest.raises(ValueError):
        mdp.Bellman_update(np.zeros((3, 3)))
    with pytest.raises(TypeError):
        mdp.Bellman_update([[0, 0], [0, 0]])


def test_policy_tie_break_prefers_first_action():
    grid = Grid.from_strings(["S.", ".G"])
    values = solve(grid, (0, 0), (1, 1)).values
    policy = extract_policy(grid, values, 0.9)

    assert policy[0, 0] == Action.RIGHT
    assert policy[0, 1] == Action.DOWN
    assert policy[1, 0] == Action.RIGHT
    assert policy[1, 1] == Action.STAY


def test_policy_obstacles_and_goal_stay():
    grid = Grid.from_strings(MAZE)
    policy = solve_maze(grid).policy
    for cell in grid.find(CellKind.OBSTACLE) + [grid.goal]:
        assert policy[cell] == Action.STAY


def test_policy_skips_obstacle_like_values():
    grid = Grid.from_strings(["S.G"])
    policy = extract_policy(grid, [[0.0, -60.0, 1.0]], 0.9)
    assert policy[0, 0] == Action.STAY
    assert policy[0, 1] == Action.RIGHT


def test_policy_fallback_is_logged(caplog):
    grid = Grid.from_strings(["S#G"])
    with caplog.at_level(logging.WARNING):
        policy = extract_policy(grid, [[-60.0, -100.0, 1.0]], 0.9)
    assert policy[0, 0] == Action.STAY
    assert "No admissible action" in caplog.text


def test_policy_shape_mismatch():
    grid = Grid.from_strings(["S.", ".G"])
    with pytest.raises(ValueError):
        extract_policy(grid, np.zeros((2, 3)), 0.9)


def test_solution_to_dict_is_json_ready():
    grid = Grid.from_strings(["S.", ".G"])
    data = json.loads(json.dumps(solve_maze(grid).to_dict()))

    assert data["iterations"] == 4
    assert data["values"][1][1] == 1.0
    assert data["policy"] == [["right", "down"], ["right", "stay"]]
    assert data["path"] == [[0, 0], [0, 1], [1, 1]]
    assert data["status"] == "reached_goal"
