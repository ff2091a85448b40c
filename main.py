"""
Solve a grid maze with value iteration and print the values, policy and path.

Usage:
    python main.py [--size N] [--density PCT] [--seed SEED] [--maze FILE]
                   [--discount G] [--threshold EPS] [--max-sweeps N] [--json]

Examples:
    # Random 8x8 maze with 25% obstacles
    python main.py --size 8 --density 25 --seed 7

    # Maze from a text file (. S G # per cell), solution as JSON
    python main.py --maze maze.txt --json
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from config import SolverConfig, DEFAULT_DISCOUNT, DEFAULT_THRESHOLD, MAX_SWEEPS, STEP_CAP_FACTOR
from errors import MazeSolverError
from gridWrapper import Grid, random_maze
from mdp import solve_maze
from render import render_grid, render_solution

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Solve a grid maze as an MDP with value iteration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--maze", type=Path, default=None,
                        help="text file with one grid row per line using . S G # (default: random maze)")
    parser.add_argument("--size", type=int, default=5, help="random maze size (default: 5)")
    parser.add_argument("--density", type=float, default=25,
                        help="random maze obstacle percentage (default: 25)")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    parser.add_argument("--discount", type=float, default=DEFAULT_DISCOUNT,
                        help=f"discount factor (default: {DEFAULT_DISCOUNT})")
    parser.add_argument("--threshold", type=float, default=DEFAULT_THRESHOLD,
                        help=f"convergence threshold (default: {DEFAULT_THRESHOLD})")
    parser.add_argument("--max-sweeps", type=int, default=MAX_SWEEPS,
                        help=f"value iteration sweep cap (default: {MAX_SWEEPS})")
    parser.add_argument("--step-cap-factor", type=int, default=STEP_CAP_FACTOR,
                        help=f"path tracer gives up after FACTOR*rows*cols steps (default: {STEP_CAP_FACTOR})")
    parser.add_argument("--json", action="store_true", help="print the solution as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def load_grid(args) -> Grid:
    if args.maze is not None:
        return Grid.from_strings(args.maze.read_text().splitlines())
    return random_maze(args.size, args.density, seed=args.seed)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    grid = None
    try:
        config = SolverConfig(discount=args.discount, threshold=args.threshold,
                              max_sweeps=args.max_sweeps, step_cap_factor=args.step_cap_factor)
        grid = load_grid(args)
        solution = solve_maze(grid, config)
    except (MazeSolverError, ValueError, OSError) as e:
        logger.error("%s", e)
        if grid is not None:
            print(render_grid(grid))
        return 2

    if args.json:
        print(json.dumps(solution.to_dict()))
    else:
        print(render_solution(solution))

    return 0 if solution.reached_goal else 1


if __name__ == "__main__":
    sys.exit(main())
