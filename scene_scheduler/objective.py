"""
Gender-imbalance objective used by minimize mode.

Per (round, slot): d = |male - female|, t = male + female.
Penalty is d, except that an odd-sized slot with d <= 1 costs nothing
(it cannot be balanced any better).
"""

from typing import Dict, List

from .models import AssignmentMatrix, is_male, role_of, scene_of


def slot_penalty(male: int, female: int) -> int:
    d = abs(male - female)
    if d <= 1 and (male + female) % 2 == 1:
        return 0
    return d


def _gender_counts(persons) -> tuple:
    males = sum(1 for p in persons if is_male(p))
    return males, len(persons) - males


def total_penalty(matrix: AssignmentMatrix) -> int:
    """Objective value of a complete schedule."""
    total = 0
    for round_no in range(1, matrix.round_count + 1):
        for slot in range(1, matrix.slot_count + 1):
            total += slot_penalty(*_gender_counts(matrix.members(round_no, slot)))
    return total


def imbalance_rows(matrix: AssignmentMatrix) -> List[Dict]:
    """One row per (round, slot) with the gender split and its penalty."""
    rows = []
    for round_no in range(1, matrix.round_count + 1):
        for slot in range(1, matrix.slot_count + 1):
            male, female = _gender_counts(matrix.members(round_no, slot))
            rows.append({
                "round": round_no,
                "scene": scene_of(slot, matrix.roles),
                "role": role_of(slot, matrix.roles),
                "slot": slot,
                "male": male,
                "female": female,
                "penalty": slot_penalty(male, female),
            })
    return rows


def best_completion_penalty(male: int, female: int, size_min: int, size_max: int,
                            avail_male: int, avail_female: int) -> int:
    """
    Smallest penalty reachable by topping a slot up to a size in
    [size_min, size_max] with at most avail_male / avail_female newcomers.
    """
    current = male + female
    best = None
    for size in range(max(size_min, current), size_max + 1):
        extra = size - current
        for add_m in range(max(0, extra - avail_female), min(extra, avail_male) + 1):
            pen = slot_penalty(male + add_m, female + extra - add_m)
            if best is None or pen < best:
                best = pen
    if best is None:
        # Unreachable size window; the cardinality check rejects this node anyway.
        return slot_penalty(male, female)
    return best


def lower_bound(state) -> int:
    """Admissible bound on the objective of any completion of a search state."""
    lo, hi = state.config.bounds
    total = 0
    for ri in range(state.config.r):
        open_persons = state.unassigned(ri)
        for slot in range(1, state.slot_count + 1):
            male, female = _gender_counts(state.members[ri][slot])
            if not open_persons:
                total += slot_penalty(male, female)
                continue
            bit = 1 << (slot - 1)
            avail_m = avail_f = 0
            for p in open_persons:
                if state.domains[ri][p] & bit:
                    if is_male(p):
                        avail_m += 1
                    else:
                        avail_f += 1
            total += best_completion_penalty(male, female, lo, hi, avail_m, avail_f)
    return total
