"""
Pre-search configuration checks and post-schedule validation.
"""

from typing import List, Tuple

from .models import (
    ALL_RULES,
    AssignmentMatrix,
    MANDATORY_RULES,
    MODES,
    PROSECUTION,
    ROLE_COUNT,
    SchedulerConfig,
    is_male,
    role_of,
    scene_of,
    slot_label,
    slot_number,
)
from .propagators import replay, symmetry_chains


def check_configuration(config: SchedulerConfig) -> Tuple[bool, List[str]]:
    """
    Dry run: reject parameters that cannot describe a schedule.
    Returns (is_valid, list_of_messages).
    """
    msgs = []
    if config.n < 1:
        msgs.append(f"n = {config.n}: need at least one person")
    if config.r < 1:
        msgs.append(f"r = {config.r}: need at least one round")
    if config.scenes < 1:
        msgs.append(f"scenes = {config.scenes}: need at least one scene")
    if config.roles != ROLE_COUNT:
        msgs.append(f"roles = {config.roles}: exactly {ROLE_COUNT} roles are supported")
    if config.mode not in MODES:
        msgs.append(f"mode = {config.mode!r}: expected one of {', '.join(MODES)}")

    for rule, enabled in config.rule_flags.items():
        if rule not in ALL_RULES:
            msgs.append(f"Unknown rule: {rule}")
        elif rule in MANDATORY_RULES and not enabled:
            msgs.append(f"Rule {rule} is mandatory and cannot be disabled")

    if msgs:
        return False, msgs

    if config.r > config.slot_count:
        msgs.append(
            f"r = {config.r} exceeds {config.slot_count} slots: "
            f"no-repeat cannot hold")
    if config.n < config.leader_count:
        msgs.append(
            f"n = {config.n} < r * scenes = {config.leader_count}: "
            f"not enough persons for distinct leaders")
    return len(msgs) == 0, msgs


def validate_assignments(
    matrix: AssignmentMatrix,
    config: SchedulerConfig,
) -> Tuple[bool, List[str]]:
    """
    Validate a schedule against every active rule, independently of the engine.
    Returns (is_valid, list_of_violation_messages).
    """
    violations = []
    n, r = config.n, config.r
    lo, hi = config.bounds
    roles = config.roles

    if matrix.round_count != r or matrix.person_count != n:
        return False, [
            f"Matrix is {matrix.round_count} rounds x {matrix.person_count} persons "
            f"(expected {r} x {n})"]

    for round_no in range(1, r + 1):
        # Partition: every person in exactly one valid slot
        for p in range(1, n + 1):
            slot = matrix.slot_of(round_no, p)
            if not 1 <= slot <= config.slot_count:
                violations.append(f"Round {round_no}: person {p} has no slot ({slot})")

        for slot in range(1, config.slot_count + 1):
            group = matrix.members(round_no, slot)
            if not lo <= len(group) <= hi:
                violations.append(
                    f"Round {round_no}: {slot_label(slot, roles)} holds {len(group)} "
                    f"(bounds {lo}..{hi})")
            if config.is_active("gender_balance") and not config.minimize:
                male = sum(1 for p in group if is_male(p))
                if abs(male - (len(group) - male)) > 1:
                    violations.append(
                        f"Round {round_no}: {slot_label(slot, roles)} gender split "
                        f"{male}M/{len(group) - male}F")

        for scene in range(1, config.scenes + 1):
            chief = config.leader(round_no, scene)
            pros = slot_number(scene, PROSECUTION, roles)
            if matrix.slot_of(round_no, chief) != pros:
                violations.append(
                    f"Round {round_no}: leader {chief} not in S{scene} Prosecution")
            if config.is_active("priority_ordering"):
                sizes = [len(matrix.members(round_no, slot_number(scene, role, roles)))
                         for role in range(1, roles + 1)]
                if sizes != sorted(sizes):
                    violations.append(
                        f"Round {round_no}: S{scene} sizes {sizes} not non-decreasing")

    per_scene = r // config.scenes
    per_role = r // roles
    for p in range(1, n + 1):
        track = matrix.track(p)
        if len(set(track)) != len(track):
            violations.append(f"Person {p}: repeated slot in {list(track)}")
        if config.is_active("coverage"):
            for scene in range(1, config.scenes + 1):
                seen = sum(1 for k in track if scene_of(k, roles) == scene)
                if seen < per_scene:
                    violations.append(f"Person {p}: S{scene} {seen} times (min {per_scene})")
            for role in range(1, roles + 1):
                seen = sum(1 for k in track if role_of(k, roles) == role)
                if seen < per_role:
                    violations.append(f"Person {p}: role {role} {seen} times (min {per_role})")

    if config.is_active("symmetry_breaking"):
        for chain in symmetry_chains(config):
            firsts = [matrix.slot_of(1, p) for p in chain]
            if firsts != sorted(firsts):
                violations.append(f"Round 1: persons {chain} not in canonical slot order")

    return len(violations) == 0, violations


def check_idempotent(
    matrix: AssignmentMatrix,
    config: SchedulerConfig,
) -> Tuple[bool, List[str]]:
    """Re-run the propagator suite over a finished matrix; nothing may fail or prune."""
    consistent, pruned, failed_rule = replay(config, matrix)
    msgs = []
    if not consistent:
        msgs.append(f"Propagator {failed_rule} rejects the schedule")
    if pruned:
        msgs.append("Propagators still prune a finished schedule")
    return not msgs, msgs
