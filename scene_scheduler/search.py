"""
Backtracking / branch-and-bound engine.

The tree is walked depth-first with an explicit stack. Every node owns its
own SearchState copy (copy-on-branch), so siblings never share partial state.
The undecided (round, person) with the fewest remaining slots is decided
next. A dive that exhausts its node cutoff is restarted from the root with
randomized tie-breaking and a larger cutoff; the cutoff keeps growing, so a
long enough dive still proves infeasibility or optimality.

Satisfy mode stops at the first complete state. Minimize mode keeps going,
pruning every node whose objective lower bound cannot beat the incumbent,
until the tree is exhausted (optimal) or a budget runs out (best found).
"""

import math
import random
import threading
import time
import concurrent.futures
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .models import (
    AssignmentMatrix,
    ConfigurationError,
    OPTIONAL_RULES,
    STATUS_FEASIBLE,
    STATUS_INFEASIBLE,
    STATUS_OPTIMAL,
    STATUS_UNKNOWN,
    SchedulerConfig,
    SolveResult,
    scene_of,
)
from .objective import lower_bound, total_penalty
from .propagators import (
    SearchState,
    active_propagators,
    iter_slots,
    popcount,
    propagate,
)
from .validate import check_configuration

VALUE_ORDERS = ("least_loaded", "ascending", "shuffled")

# node cutoff of the first dive; each restart multiplies it by RESTART_GROWTH
RESTART_BASE = 256
RESTART_GROWTH = 1.5


class Incumbent:
    """Best solution seen by any worker. Bound only ever improves."""

    def __init__(self):
        self._lock = threading.Lock()
        self.objective: Optional[int] = None
        self.matrix: Optional[AssignmentMatrix] = None
        self.count = 0

    def bound(self) -> float:
        with self._lock:
            return math.inf if self.objective is None else self.objective

    def offer(self, objective: int, matrix: AssignmentMatrix) -> bool:
        with self._lock:
            if self.objective is not None and objective >= self.objective:
                return False
            self.objective = objective
            self.matrix = matrix
            self.count += 1
            return True


@dataclass
class SearchOutcome:
    exhausted: bool
    nodes: int
    failures: int


class Searcher:
    """One depth-first worker over an independent copy of the tree."""

    def __init__(
        self,
        config: SchedulerConfig,
        incumbent: Incumbent,
        stop: threading.Event,
        value_order: str = "least_loaded",
        seed: Optional[int] = None,
        deadline: Optional[float] = None,
        node_limit: Optional[int] = None,
        on_solution: Optional[Callable[[int, Optional[int]], None]] = None,
        restarts: bool = True,
    ):
        if value_order not in VALUE_ORDERS:
            raise ValueError(f"Unknown value order: {value_order}")
        self.config = config
        self.incumbent = incumbent
        self.stop = stop
        self.value_order = value_order
        self.rng = random.Random(seed)
        self.deadline = deadline
        self.node_limit = node_limit
        self.on_solution = on_solution
        self.restarts = restarts
        self.propagators = active_propagators(config)
        self.nodes = 0
        self.failures = 0
        # ties are broken at random once the first dive has been cut off
        self.randomize = False

    # -- branching ---------------------------------------------------------
    def _select(self, state: SearchState) -> Optional[Tuple[int, int]]:
        """Undecided (round, person) with the fewest slots left; earlier rounds win ties."""
        best = None
        best_key = None
        for ri in range(self.config.r):
            for p in state.unassigned(ri):
                size = popcount(state.domains[ri][p])
                key = (size, ri, self.rng.random() if self.randomize else p)
                if best_key is None or key < best_key:
                    best, best_key = (ri, p), key
        return best

    def _values(self, state: SearchState, ri: int, person: int) -> List[int]:
        slots = list(iter_slots(state.domains[ri][person]))
        if self.value_order == "ascending":
            return slots
        if self.value_order == "shuffled":
            self.rng.shuffle(slots)
            return slots
        lo, _ = self.config.bounds
        roles = self.config.roles
        visited = {scene_of(state.assign[rj][person], roles)
                   for rj in range(self.config.r) if state.assign[rj][person]}
        # fill slots up to the minimum first, prefer scenes not yet visited
        return sorted(slots, key=lambda k: (
            len(state.members[ri][k]) >= lo,
            scene_of(k, roles) in visited,
            len(state.members[ri][k]),
            self.rng.random() if self.randomize else k,
        ))

    def _out_of_budget(self) -> bool:
        if self.stop.is_set():
            return True
        if self.node_limit is not None and self.nodes >= self.node_limit:
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    # -- main loop ---------------------------------------------------------
    def run(self) -> SearchOutcome:
        """
        Dive from the root until a dive finishes. With restarts on, a dive that
        uses up its node cutoff is abandoned and the next one starts over with
        randomized tie-breaking and a larger cutoff; the incumbent is kept.
        """
        cutoff = RESTART_BASE if self.restarts else None
        while True:
            outcome = self._dive(cutoff)
            if outcome is not None:
                return outcome
            self.randomize = True
            cutoff = int(cutoff * RESTART_GROWTH)

    def _dive(self, cutoff: Optional[int]) -> Optional[SearchOutcome]:
        """One depth-first pass; None when the node cutoff ends it early."""
        minimize = self.config.minimize
        stack = [SearchState(self.config)]
        first_node = self.nodes
        while stack:
            if self._out_of_budget():
                return SearchOutcome(False, self.nodes, self.failures)
            if cutoff is not None and self.nodes - first_node >= cutoff:
                return None
            state = stack.pop()
            self.nodes += 1

            if not propagate(state, self.propagators):
                self.failures += 1
                continue
            if minimize and lower_bound(state) >= self.incumbent.bound():
                self.failures += 1
                continue

            choice = self._select(state)
            if choice is None:
                self._record(state)
                if not minimize:
                    self.stop.set()
                    return SearchOutcome(False, self.nodes, self.failures)
                continue

            ri, person = choice
            for slot in reversed(self._values(state, ri, person)):
                child = state.copy()
                if child.decide(ri, person, slot):
                    stack.append(child)
                else:
                    self.failures += 1
        return SearchOutcome(True, self.nodes, self.failures)

    def _record(self, state: SearchState) -> None:
        matrix = state.to_matrix()
        objective = total_penalty(matrix) if self.config.minimize else 0
        if self.incumbent.offer(objective, matrix) and self.on_solution is not None:
            self.on_solution(self.incumbent.count, objective if self.config.minimize else None)


def _worker_orders(workers: int, value_order: str) -> List[str]:
    """Portfolio: the first worker keeps the requested order, the others vary it."""
    orders = [value_order]
    for name in ("least_loaded", "ascending"):
        if len(orders) < workers and name not in orders:
            orders.append(name)
    while len(orders) < workers:
        orders.append("shuffled")
    return orders


def _conflicts(config: SchedulerConfig, status: str) -> List[str]:
    if status == STATUS_UNKNOWN:
        return ["unknown, no solution found within budget"]
    if status != STATUS_INFEASIBLE:
        return []
    msgs = [f"Search status: {status}"]
    for rule in OPTIONAL_RULES:
        if config.is_active(rule):
            msgs.append(f"Optional rule active: {rule} (disable it to relax the model)")
    return msgs


def solve(
    config: SchedulerConfig,
    time_limit_seconds: Optional[float] = None,
    node_limit: Optional[int] = None,
    workers: int = 1,
    value_order: str = "least_loaded",
    seed: Optional[int] = None,
    on_solution: Optional[Callable[[int, Optional[int]], None]] = None,
    restarts: bool = True,
) -> SolveResult:
    """
    Run the hand-written engine.

    Raises ConfigurationError before searching when the parameters are invalid.
    node_limit applies to each worker separately; restarts=False keeps every
    worker on a single uninterrupted dive.
    """
    ok, msgs = check_configuration(config)
    if not ok:
        raise ConfigurationError(msgs)
    if workers < 1:
        raise ValueError("workers must be at least 1")

    started = time.monotonic()
    deadline = started + time_limit_seconds if time_limit_seconds is not None else None
    incumbent = Incumbent()
    stop = threading.Event()

    searchers = [
        Searcher(
            config, incumbent, stop,
            value_order=order,
            seed=None if seed is None else seed + i,
            deadline=deadline,
            node_limit=node_limit,
            on_solution=on_solution,
            restarts=restarts,
        )
        for i, order in enumerate(_worker_orders(workers, value_order))
    ]

    if workers == 1:
        outcomes = [searchers[0].run()]
    else:
        def run_worker(searcher: Searcher) -> SearchOutcome:
            outcome = searcher.run()
            if outcome.exhausted:
                # one exhausted tree settles the answer for everyone
                stop.set()
            return outcome

        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(run_worker, searchers))

    exhausted = any(o.exhausted for o in outcomes)
    found = incumbent.matrix is not None
    if config.minimize:
        if exhausted:
            status = STATUS_OPTIMAL if found else STATUS_INFEASIBLE
        else:
            status = STATUS_FEASIBLE if found else STATUS_UNKNOWN
    elif found:
        status = STATUS_FEASIBLE
    else:
        status = STATUS_INFEASIBLE if exhausted else STATUS_UNKNOWN

    return SolveResult(
        status=status,
        matrix=incumbent.matrix,
        objective=incumbent.objective if config.minimize else None,
        nodes=sum(o.nodes for o in outcomes),
        solutions=incumbent.count,
        elapsed_seconds=time.monotonic() - started,
        conflicts=_conflicts(config, status),
        backend="search",
    )
