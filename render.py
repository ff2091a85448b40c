"""
Plain-text rendering of a solved maze: value table, policy arrows and the traced path.
"""
from gridWrapper import Action, CellKind

ARROWS = {
    Action.UP: '↑',
    Action.RIGHT: '→',
    Action.DOWN: '↓',
    Action.LEFT: '←',
    Action.STAY: '·',
}


def render_grid(grid, path=None):
    on_path = set(path or [])
    symbols = {CellKind.EMPTY: '.', CellKind.START: 'S', CellKind.GOAL: 'G', CellKind.OBSTACLE: '#'}
    lines = []
    for r in range(grid.rows):
        row = []
        for c in range(grid.cols):
            kind = grid.kind((r, c))
            if kind == CellKind.EMPTY and (r, c) in on_path:
                row.append('*')
            else:
                row.append(symbols[kind])
        lines.append(" ".join(row))
    return "\n".join(lines)


def render_values(grid, values):
    lines = []
    for r in range(grid.rows):
        row = []
        for c in range(grid.cols):
            if grid.kind((r, c)) == CellKind.OBSTACLE:
                row.append(" #### ")
            else:
                row.append(f"{values[r, c]:6.2f}")
        lines.append(" ".join(row))
    return "\n".join(lines)


def render_policy(grid, policy):
    lines = []
    for r in range(grid.rows):
        row = []
        for c in range(grid.cols):
            kind = grid.kind((r, c))
            if kind == CellKind.OBSTACLE:
                row.append('#')
            elif kind == CellKind.GOAL:
                row.append('G')
            else:
                row.append(ARROWS[Action(int(policy[r, c]))])
        lines.append(" ".join(row))
    return "\n".join(lines)


def render_solution(solution):
    grid = solution.grid
    status = "reached goal" if solution.reached_goal else f"incomplete ({solution.trace.reason})"
    parts = [
        f"=== Converged in {solution.iterations} iteration(s), gamma={solution.discount} ===",
        "",
        "Values:",
        render_values(grid, solution.values),
        "",
        "Policy:",
        render_policy(grid, solution.policy),
        "",
        f"Path ({len(solution.path)} cells, {status}):",
        render_grid(grid, solution.path),
    ]
    return "\n".join(parts)
