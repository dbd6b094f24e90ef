"""
Propagator library for the backtracking engine.

A SearchState holds, for every (round, person), a bitmask of the slots the
person may still take (bit k-1 ↔ slot k), plus two channelled views of the
decided part: person → slot (assign) and slot → persons (members).

Each propagator takes a state, prunes domains in place and returns False as
soon as the state cannot be completed.
"""

from typing import Callable, Iterator, List, Optional, Tuple

from .models import (
    AssignmentMatrix,
    PROSECUTION,
    SchedulerConfig,
    is_male,
    role_of,
    scene_of,
    slot_number,
)


def iter_slots(mask: int) -> Iterator[int]:
    """Slots (1-based) present in a domain bitmask, ascending."""
    while mask:
        low = mask & -mask
        yield low.bit_length()
        mask ^= low


def popcount(mask: int) -> int:
    return bin(mask).count("1")


class SearchState:
    """Partial AssignmentMatrix owned by one search-tree node."""

    def __init__(self, config: SchedulerConfig):
        self.config = config
        self.slot_count = config.slot_count
        self.full_mask = (1 << self.slot_count) - 1
        n, r = config.n, config.r
        # index 0 unused so persons and slots keep their 1-based ids
        self.domains = [[self.full_mask] * (n + 1) for _ in range(r)]
        self.assign = [[0] * (n + 1) for _ in range(r)]
        self.members = [[set() for _ in range(self.slot_count + 1)] for _ in range(r)]
        self.changed = False
        self.failed_rule: Optional[str] = None

    def copy(self) -> "SearchState":
        clone = SearchState.__new__(SearchState)
        clone.config = self.config
        clone.slot_count = self.slot_count
        clone.full_mask = self.full_mask
        clone.domains = [row[:] for row in self.domains]
        clone.assign = [row[:] for row in self.assign]
        clone.members = [[set(s) for s in row] for row in self.members]
        clone.changed = False
        clone.failed_rule = None
        return clone

    # -- queries -----------------------------------------------------------
    def unassigned(self, ri: int) -> List[int]:
        return [p for p in range(1, self.config.n + 1) if not self.assign[ri][p]]

    def is_complete(self) -> bool:
        return all(self.assign[ri][p] for ri in range(self.config.r)
                   for p in range(1, self.config.n + 1))

    def support(self, ri: int) -> List[int]:
        """support[k] = undecided persons of round ri that can still take slot k."""
        counts = [0] * (self.slot_count + 1)
        for p in self.unassigned(ri):
            for k in iter_slots(self.domains[ri][p]):
                counts[k] += 1
        return counts

    # -- mutation ----------------------------------------------------------
    def _place(self, ri: int, person: int, slot: int) -> None:
        self.assign[ri][person] = slot
        self.members[ri][slot].add(person)

    def restrict(self, ri: int, person: int, mask: int) -> bool:
        """Intersect a domain with mask; a resulting singleton is channelled at once."""
        dom = self.domains[ri][person]
        new = dom & mask
        if new == dom:
            return True
        if not new:
            return False
        self.domains[ri][person] = new
        self.changed = True
        if new & (new - 1) == 0 and not self.assign[ri][person]:
            self._place(ri, person, new.bit_length())
        return True

    def remove(self, ri: int, person: int, slot: int) -> bool:
        return self.restrict(ri, person, self.full_mask & ~(1 << (slot - 1)))

    def decide(self, ri: int, person: int, slot: int) -> bool:
        return self.restrict(ri, person, 1 << (slot - 1))

    # -- conversion --------------------------------------------------------
    def to_matrix(self) -> AssignmentMatrix:
        rows = [tuple(self.assign[ri][1:]) for ri in range(self.config.r)]
        return AssignmentMatrix(tuple(rows), self.config.scenes, self.config.roles)

    @classmethod
    def from_matrix(cls, config: SchedulerConfig, matrix: AssignmentMatrix) -> "SearchState":
        state = cls(config)
        for ri in range(config.r):
            for p in range(1, config.n + 1):
                slot = matrix.slot_of(ri + 1, p)
                state.domains[ri][p] = 1 << (slot - 1)
                state._place(ri, p, slot)
        return state


# ══════════════════════════════════════════════════════════
# Masks
# ══════════════════════════════════════════════════════════
def scene_mask(config: SchedulerConfig, scene: int) -> int:
    mask = 0
    for role in range(1, config.roles + 1):
        mask |= 1 << (slot_number(scene, role, config.roles) - 1)
    return mask


def role_mask(config: SchedulerConfig, role: int) -> int:
    mask = 0
    for scene in range(1, config.scenes + 1):
        mask |= 1 << (slot_number(scene, role, config.roles) - 1)
    return mask


# ══════════════════════════════════════════════════════════
# 1. CHANNELING: person → slot and slot → persons agree
# ══════════════════════════════════════════════════════════
def channeling(state: SearchState) -> bool:
    cfg = state.config
    for ri in range(cfg.r):
        assign = state.assign[ri]
        members = state.members[ri]
        for p in range(1, cfg.n + 1):
            dom = state.domains[ri][p]
            if not dom:
                return False
            slot = assign[p]
            if slot:
                if p not in members[slot] or dom != 1 << (slot - 1):
                    return False
            elif dom & (dom - 1) == 0:
                state._place(ri, p, dom.bit_length())
                state.changed = True
        for slot in range(1, state.slot_count + 1):
            for p in members[slot]:
                if assign[p] != slot:
                    return False
    return True


# ══════════════════════════════════════════════════════════
# 2. PARTITION: every person in exactly one slot per round
# ══════════════════════════════════════════════════════════
def partition(state: SearchState) -> bool:
    cfg = state.config
    for ri in range(cfg.r):
        seen = set()
        placed = 0
        for slot in range(1, state.slot_count + 1):
            group = state.members[ri][slot]
            if seen & group:
                return False
            seen |= group
            placed += len(group)
        decided = sum(1 for p in range(1, cfg.n + 1) if state.assign[ri][p])
        if placed != decided:
            return False
        if not seen <= set(range(1, cfg.n + 1)):
            return False
    return True


# ══════════════════════════════════════════════════════════
# 3. LEADERSHIP: leader(round, scene) sits in that scene's Prosecution
# ══════════════════════════════════════════════════════════
def leadership(state: SearchState) -> bool:
    cfg = state.config
    for ri in range(cfg.r):
        for scene in range(1, cfg.scenes + 1):
            person = cfg.leader(ri + 1, scene)
            if person > cfg.n:
                return False
            slot = slot_number(scene, PROSECUTION, cfg.roles)
            if not state.restrict(ri, person, 1 << (slot - 1)):
                return False
    return True


# ══════════════════════════════════════════════════════════
# 4. CARDINALITY: every slot holds between min and max persons
# ══════════════════════════════════════════════════════════
def _round_matching_ok(state: SearchState, ri: int, lo: int, hi: int) -> bool:
    """
    Bipartite b-matching persons → slots. First fill every slot to lo, then
    raise capacities to hi and place the rest; slot loads only ever grow, so
    reaching all n persons proves a completion of the round exists.
    """
    n = state.config.n
    choices = [list(iter_slots(state.domains[ri][p])) if p else [] for p in range(n + 1)]
    occupants: List[List[int]] = [[] for _ in range(state.slot_count + 1)]

    def try_place(p: int, cap: int, seen: set) -> bool:
        for k in choices[p]:
            if k in seen:
                continue
            seen.add(k)
            if len(occupants[k]) < cap:
                occupants[k].append(p)
                return True
            for i, q in enumerate(occupants[k]):
                if try_place(q, cap, seen):
                    occupants[k][i] = p
                    return True
        return False

    waiting = []
    for p in range(1, n + 1):
        if not try_place(p, lo, set()):
            waiting.append(p)
    if any(len(occupants[k]) < lo for k in range(1, state.slot_count + 1)):
        return False
    for p in waiting:
        if not try_place(p, hi, set()):
            return False
    return True


def cardinality(state: SearchState) -> bool:
    cfg = state.config
    lo, hi = cfg.bounds
    for ri in range(cfg.r):
        for slot in range(1, state.slot_count + 1):
            size = len(state.members[ri][slot])
            if size > hi:
                return False
            # removals can channel a person into another slot, so re-read per slot
            open_persons = state.unassigned(ri)
            if size == hi:
                for p in open_persons:
                    if state.assign[ri][p]:
                        continue
                    if state.domains[ri][p] & (1 << (slot - 1)):
                        if not state.remove(ri, p, slot):
                            return False
            elif not open_persons and size < lo:
                return False
        if state.unassigned(ri) and not _round_matching_ok(state, ri, lo, hi):
            return False
    return True


# ══════════════════════════════════════════════════════════
# 5. NO-REPEAT: a person never holds the same slot twice
# ══════════════════════════════════════════════════════════
def no_repeat(state: SearchState) -> bool:
    cfg = state.config
    for p in range(1, cfg.n + 1):
        for ri in range(cfg.r):
            slot = state.assign[ri][p]
            if not slot:
                continue
            for rj in range(cfg.r):
                if rj != ri and not state.remove(rj, p, slot):
                    return False
    return True


# ══════════════════════════════════════════════════════════
# 6. COVERAGE: each scene ≥ r // scenes times, each role ≥ r // roles times
# ══════════════════════════════════════════════════════════
def _cover(state: SearchState, p: int, groups: List[Tuple[int, int]], required: int,
           group_of: Callable[[int], int]) -> bool:
    if required <= 0:
        return True
    cfg = state.config
    have = {g: 0 for g, _ in groups}
    open_rounds = []
    for ri in range(cfg.r):
        slot = state.assign[ri][p]
        if slot:
            have[group_of(slot)] += 1
        else:
            open_rounds.append(ri)
    needed_mask = 0
    needed = 0
    for g, mask in groups:
        if have[g] >= required:
            continue
        reachable = have[g] + sum(1 for ri in open_rounds if state.domains[ri][p] & mask)
        if reachable < required:
            return False
        needed += required - have[g]
        needed_mask |= mask
    if needed > len(open_rounds):
        return False
    if needed and needed == len(open_rounds):
        for ri in open_rounds:
            if not state.restrict(ri, p, needed_mask):
                return False
    return True


def coverage(state: SearchState) -> bool:
    cfg = state.config
    scenes = [(q, scene_mask(cfg, q)) for q in range(1, cfg.scenes + 1)]
    roles = [(role, role_mask(cfg, role)) for role in range(1, cfg.roles + 1)]
    per_scene = cfg.r // cfg.scenes
    per_role = cfg.r // cfg.roles
    for p in range(1, cfg.n + 1):
        if not _cover(state, p, scenes, per_scene, lambda k: scene_of(k, cfg.roles)):
            return False
        if not _cover(state, p, roles, per_role, lambda k: role_of(k, cfg.roles)):
            return False
    return True


# ══════════════════════════════════════════════════════════
# 7. PRIORITY ORDERING: |Prosecution| ≤ |Observer| ≤ |Public| within a scene
# ══════════════════════════════════════════════════════════
def priority_ordering(state: SearchState) -> bool:
    cfg = state.config
    lo, hi = cfg.bounds
    for ri in range(cfg.r):
        for scene in range(1, cfg.scenes + 1):
            support = state.support(ri)
            slots = [slot_number(scene, role, cfg.roles) for role in range(1, cfg.roles + 1)]
            sizes = [len(state.members[ri][k]) for k in slots]
            floor = 0
            for k, size in zip(slots, sizes):
                floor = max(floor, lo, size)
                if floor > min(hi, size + support[k]):
                    return False
            ceiling = hi
            for k, size in reversed(list(zip(slots, sizes))):
                ceiling = min(ceiling, size + support[k])
                if size == ceiling and support[k]:
                    for p in state.unassigned(ri):
                        if not state.remove(ri, p, k):
                            return False
                    # sizes and support are stale now; the fixpoint loop revisits
                    break
    return True


# ══════════════════════════════════════════════════════════
# 8. SYMMETRY REDUCTION: round-1 slots non-decreasing along person id,
#    per gender, among persons who never lead
# ══════════════════════════════════════════════════════════
def symmetry_chains(config: SchedulerConfig) -> List[List[int]]:
    free = [p for p in range(config.leader_count + 1, config.n + 1)]
    return [[p for p in free if is_male(p)], [p for p in free if not is_male(p)]]


def symmetry_breaking(state: SearchState) -> bool:
    full = state.full_mask
    for chain in symmetry_chains(state.config):
        low = 1
        for p in chain:
            if not state.restrict(0, p, full & ~((1 << (low - 1)) - 1)):
                return False
            low = (state.domains[0][p] & -state.domains[0][p]).bit_length()
        high = state.slot_count
        for p in reversed(chain):
            if not state.restrict(0, p, (1 << high) - 1):
                return False
            high = state.domains[0][p].bit_length()
    return True


# ══════════════════════════════════════════════════════════
# 9. GENDER BALANCE (hard): |male - female| ≤ 1 in every slot
# ══════════════════════════════════════════════════════════
def _slot_support(state: SearchState, ri: int, slot: int) -> List[int]:
    bit = 1 << (slot - 1)
    return [p for p in state.unassigned(ri) if state.domains[ri][p] & bit]


def gender_balance(state: SearchState) -> bool:
    cfg = state.config
    _, hi = cfg.bounds
    for ri in range(cfg.r):
        for slot in range(1, state.slot_count + 1):
            group = state.members[ri][slot]
            male = sum(1 for p in group if is_male(p))
            female = len(group) - male
            candidates = _slot_support(state, ri, slot)
            room = min(hi - len(group), len(candidates))
            if abs(male - female) > room + 1:
                return False
            for p in candidates:
                lead = male - female if is_male(p) else female - male
                if lead >= room and not state.remove(ri, p, slot):
                    return False
    return True


# Fixed propagation order
PROPAGATORS = [
    ("channeling", channeling),
    ("partition", partition),
    ("leadership", leadership),
    ("cardinality", cardinality),
    ("no_repeat", no_repeat),
    ("coverage", coverage),
    ("priority_ordering", priority_ordering),
    ("symmetry_breaking", symmetry_breaking),
    ("gender_balance", gender_balance),
]


def active_propagators(config: SchedulerConfig):
    """Propagators the configuration switches on, in propagation order."""
    chosen = []
    for name, fn in PROPAGATORS:
        if not config.is_active(name):
            continue
        # minimize mode scores gender balance instead of enforcing it
        if name == "gender_balance" and config.minimize:
            continue
        chosen.append((name, fn))
    return chosen


def propagate(state: SearchState, propagators=None) -> bool:
    """Run propagators to a fixpoint. Records the failing rule on the state."""
    if propagators is None:
        propagators = active_propagators(state.config)
    while True:
        state.changed = False
        for name, fn in propagators:
            if not fn(state):
                state.failed_rule = name
                return False
        if not state.changed:
            return True


def replay(config: SchedulerConfig, matrix: AssignmentMatrix) -> Tuple[bool, bool, Optional[str]]:
    """
    Run the propagator suite over a finished matrix.
    Returns (consistent, pruned, failed_rule); a valid matrix gives (True, False, None).
    """
    state = SearchState.from_matrix(config, matrix)
    propagators = active_propagators(config)
    pruned = False
    for name, fn in propagators:
        state.changed = False
        if not fn(state):
            return False, pruned, name
        pruned = pruned or state.changed
    return True, pruned, None
