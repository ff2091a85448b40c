"""
Solver hyperparameters.

    discount : float
        Discount factor in (0, 1). The per time-step discount on future rewards.
    threshold : float
        Stopping criterion for value iteration; the solve has converged once the
        largest per-sweep change is at most this value.
    max_sweeps : int
        Hard cap on value-iteration sweeps. Hitting it without converging is a
        ConvergenceFailure.
    step_cap_factor : int
        The path tracer gives up after ``step_cap_factor * rows * cols`` steps.
"""
from dataclasses import dataclass, asdict, fields

DEFAULT_DISCOUNT = 0.9
DEFAULT_THRESHOLD = 1e-3
MAX_SWEEPS = 1000
STEP_CAP_FACTOR = 2


@dataclass(frozen=True)
class SolverConfig:
    discount: float = DEFAULT_DISCOUNT
    threshold: float = DEFAULT_THRESHOLD
    max_sweeps: int = MAX_SWEEPS
    step_cap_factor: int = STEP_CAP_FACTOR

    def __post_init__(self) -> None:
        if not 0.0 < self.discount < 1.0:
            raise ValueError(f"discount must be in (0, 1), got {self.discount}")
        if not self.threshold > 0.0:
            raise ValueError(f"threshold must be positive, got {self.threshold}")
        if int(self.max_sweeps) != self.max_sweeps or self.max_sweeps < 1:
            raise ValueError(f"max_sweeps must be a positive integer, got {self.max_sweeps}")
        if int(self.step_cap_factor) != self.step_cap_factor or self.step_cap_factor < 1:
            raise ValueError(f"step_cap_factor must be a positive integer, got {self.step_cap_factor}")

    @classmethod
    def from_dict(cls, params: dict) -> "SolverConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise ValueError(f"Unknown solver parameters: {sorted(unknown)}")
        return cls(**params)

    def to_dict(self) -> dict:
        return asdict(self)
