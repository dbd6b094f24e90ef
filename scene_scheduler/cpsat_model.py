"""
OR-Tools CP-SAT formulation of the same rules.
Declarative twin of the hand-written engine: used to cross-check it and as
an alternative backend (run_scheduler.py solve --backend cpsat).
"""

from typing import Callable, Dict, Optional, Tuple

from ortools.sat.python import cp_model

from .models import (
    AssignmentMatrix,
    ConfigurationError,
    PROSECUTION,
    STATUS_FEASIBLE,
    STATUS_INFEASIBLE,
    STATUS_OPTIMAL,
    STATUS_UNKNOWN,
    SchedulerConfig,
    SolveResult,
    is_male,
    role_of,
    scene_of,
    slot_number,
)
from .propagators import symmetry_chains
from .validate import check_configuration


def build_model(config: SchedulerConfig):
    """
    Returns (model, x, penalty_terms).
    x[(ri, p, k)] = 1 iff person p holds slot k in round ri (0-based round).
    """
    model = cp_model.CpModel()
    n, r = config.n, config.r
    slots = range(1, config.slot_count + 1)
    persons = range(1, n + 1)
    lo, hi = config.bounds
    roles = config.roles

    x: Dict[Tuple[int, int, int], cp_model.IntVar] = {}
    for ri in range(r):
        for p in persons:
            for k in slots:
                x[(ri, p, k)] = model.NewBoolVar(f"x_{ri}_{p}_{k}")

    # ══════════════════════════════════════════════════════════
    # 1. PARTITION: one slot per person per round
    # ══════════════════════════════════════════════════════════
    for ri in range(r):
        for p in persons:
            model.AddExactlyOne([x[(ri, p, k)] for k in slots])

    # 2. CARDINALITY
    size = {}
    for ri in range(r):
        for k in slots:
            size[(ri, k)] = model.NewIntVar(lo, hi, f"size_{ri}_{k}")
            model.Add(size[(ri, k)] == sum(x[(ri, p, k)] for p in persons))

    # 3. LEADERSHIP
    for ri in range(r):
        for scene in range(1, config.scenes + 1):
            chief = config.leader(ri + 1, scene)
            model.Add(x[(ri, chief, slot_number(scene, PROSECUTION, roles))] == 1)

    # 4. NO-REPEAT
    for p in persons:
        for k in slots:
            model.AddAtMostOne([x[(ri, p, k)] for ri in range(r)])

    # ══════════════════════════════════════════════════════════
    # 5. COVERAGE (optional)
    # ══════════════════════════════════════════════════════════
    if config.is_active("coverage"):
        per_scene = r // config.scenes
        per_role = r // roles
        for p in persons:
            for scene in range(1, config.scenes + 1):
                if per_scene:
                    model.Add(sum(x[(ri, p, k)] for ri in range(r) for k in slots
                                  if scene_of(k, roles) == scene) >= per_scene)
            for role in range(1, roles + 1):
                if per_role:
                    model.Add(sum(x[(ri, p, k)] for ri in range(r) for k in slots
                                  if role_of(k, roles) == role) >= per_role)

    # 6. PRIORITY ORDERING (optional)
    if config.is_active("priority_ordering"):
        for ri in range(r):
            for scene in range(1, config.scenes + 1):
                ordered = [size[(ri, slot_number(scene, role, roles))] for role in range(1, roles + 1)]
                for a, b in zip(ordered, ordered[1:]):
                    model.Add(a <= b)

    # 7. SYMMETRY REDUCTION (optional, round 1)
    if config.is_active("symmetry_breaking"):
        for chain in symmetry_chains(config):
            first = [sum(k * x[(0, p, k)] for k in slots) for p in chain]
            for a, b in zip(first, first[1:]):
                model.Add(a <= b)

    # ══════════════════════════════════════════════════════════
    # 8. GENDER BALANCE: hard in satisfy mode, penalty in minimize mode
    # ══════════════════════════════════════════════════════════
    penalty_terms = []
    for ri in range(r):
        for k in slots:
            males = sum(x[(ri, p, k)] for p in persons if is_male(p))
            females = sum(x[(ri, p, k)] for p in persons if not is_male(p))
            if not config.minimize:
                if config.is_active("gender_balance"):
                    model.Add(males - females <= 1)
                    model.Add(females - males <= 1)
                continue
            diff = model.NewIntVar(-hi, hi, f"diff_{ri}_{k}")
            model.Add(diff == males - females)
            d = model.NewIntVar(0, hi, f"d_{ri}_{k}")
            model.AddAbsEquality(d, diff)
            half = model.NewIntVar(0, hi, f"half_{ri}_{k}")
            odd = model.NewBoolVar(f"odd_{ri}_{k}")
            model.Add(size[(ri, k)] == 2 * half + odd)
            small = model.NewBoolVar(f"small_{ri}_{k}")
            model.Add(d <= 1).OnlyEnforceIf(small)
            model.Add(d >= 2).OnlyEnforceIf(small.Not())
            waived = model.NewBoolVar(f"waived_{ri}_{k}")
            model.AddBoolAnd([small, odd]).OnlyEnforceIf(waived)
            model.AddBoolOr([small.Not(), odd.Not()]).OnlyEnforceIf(waived.Not())
            pen = model.NewIntVar(0, hi, f"pen_{ri}_{k}")
            model.Add(pen == 0).OnlyEnforceIf(waived)
            model.Add(pen == d).OnlyEnforceIf(waived.Not())
            penalty_terms.append(pen)

    if config.minimize:
        model.Minimize(sum(penalty_terms))
    return model, x, penalty_terms


class _SolutionCounter(cp_model.CpSolverSolutionCallback):
    def __init__(self, on_solution, minimize):
        cp_model.CpSolverSolutionCallback.__init__(self)
        self.__on_solution = on_solution
        self.__minimize = minimize
        self.count = 0

    def on_solution_callback(self):
        self.count += 1
        if self.__on_solution is not None:
            objective = int(self.ObjectiveValue()) if self.__minimize else None
            self.__on_solution(self.count, objective)


def solve_cpsat(
    config: SchedulerConfig,
    time_limit_seconds: Optional[float] = 60,
    workers: int = 8,
    seed: Optional[int] = None,
    on_solution: Optional[Callable[[int, Optional[int]], None]] = None,
) -> SolveResult:
    """Solve with CP-SAT; same result contract as search.solve."""
    ok, msgs = check_configuration(config)
    if not ok:
        raise ConfigurationError(msgs)

    model, x, _ = build_model(config)

    solver = cp_model.CpSolver()
    if time_limit_seconds is not None:
        solver.parameters.max_time_in_seconds = float(time_limit_seconds)
    solver.parameters.num_workers = workers
    if seed is not None:
        solver.parameters.random_seed = seed

    counter = _SolutionCounter(on_solution, config.minimize)
    status = solver.Solve(model, counter)

    if status in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        rows = []
        for ri in range(config.r):
            row = []
            for p in range(1, config.n + 1):
                row.append(next(k for k in range(1, config.slot_count + 1)
                                if solver.Value(x[(ri, p, k)])))
            rows.append(row)
        matrix = AssignmentMatrix.from_rows(rows, config.scenes, config.roles)
        if config.minimize:
            status_str = STATUS_OPTIMAL if status == cp_model.OPTIMAL else STATUS_FEASIBLE
            objective = int(solver.ObjectiveValue())
        else:
            status_str = STATUS_FEASIBLE
            objective = None
        return SolveResult(
            status=status_str,
            matrix=matrix,
            objective=objective,
            solutions=counter.count,
            elapsed_seconds=solver.WallTime(),
            backend="cpsat",
        )

    if status == cp_model.INFEASIBLE:
        status_str = STATUS_INFEASIBLE
        conflicts = [f"Solver status: {solver.StatusName(status)}"]
    else:
        status_str = STATUS_UNKNOWN
        conflicts = ["unknown, no solution found within budget"]
    return SolveResult(
        status=status_str,
        elapsed_seconds=solver.WallTime(),
        conflicts=conflicts,
        backend="cpsat",
    )
