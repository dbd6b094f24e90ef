"""
SceneScheduler — round-robin role-slot assignment.
Places every person into one (scene, role) slot per round with a purpose-built
backtracking engine, or with OR-Tools CP-SAT as an alternative backend.

Rules: partition, no-repeat, leadership, cardinality (always on);
coverage, priority ordering, symmetry reduction, gender balance (toggleable).
"""

__version__ = "1.0.0"

from .models import (  # noqa: E402
    AssignmentMatrix,
    ConfigurationError,
    SchedulerConfig,
    SolveResult,
)
from .search import solve  # noqa: E402

__all__ = [
    "AssignmentMatrix",
    "ConfigurationError",
    "SchedulerConfig",
    "SolveResult",
    "solve",
]
