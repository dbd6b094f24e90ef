"""
Data models for the SceneScheduler system.
Persons, slots, leaders and bounds are plain integers; the helpers below are
the single place where their numbering is defined.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# ---------------------------------------------------------------------------
# Fixed vocabulary
# ---------------------------------------------------------------------------
ROLES = ["Prosecution", "Observer", "Public"]
ROLE_COUNT = len(ROLES)
PROSECUTION = 1
OBSERVER = 2
PUBLIC = 3
DEFAULT_SCENES = 4

MODE_SATISFY = "satisfy"
MODE_MINIMIZE = "minimize"
MODES = (MODE_SATISFY, MODE_MINIMIZE)

# Rules that no configuration may switch off
MANDATORY_RULES = ("channeling", "partition", "leadership", "cardinality", "no_repeat")
# Toggleable rules, all on by default
OPTIONAL_RULES = ("coverage", "priority_ordering", "symmetry_breaking", "gender_balance")
ALL_RULES = MANDATORY_RULES + OPTIONAL_RULES

STATUS_FEASIBLE = "FEASIBLE"
STATUS_OPTIMAL = "OPTIMAL"
STATUS_INFEASIBLE = "INFEASIBLE"
STATUS_UNKNOWN = "UNKNOWN"


class ConfigurationError(ValueError):
    """Raised before any search when the parameters cannot describe a valid schedule."""

    def __init__(self, messages):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


# ---------------------------------------------------------------------------
# Numbering helpers
# ---------------------------------------------------------------------------
def slot_number(scene: int, role: int, roles: int = ROLE_COUNT) -> int:
    """(scene, role), both 1-based → slot index 1..scenes*roles."""
    return (scene - 1) * roles + role


def scene_of(slot: int, roles: int = ROLE_COUNT) -> int:
    return (slot - 1) // roles + 1


def role_of(slot: int, roles: int = ROLE_COUNT) -> int:
    return (slot - 1) % roles + 1


def slot_label(slot: int, roles: int = ROLE_COUNT) -> str:
    return f"S{scene_of(slot, roles)} {ROLES[role_of(slot, roles) - 1]}"


def leader(round_no: int, scene: int, scenes: int = DEFAULT_SCENES) -> int:
    """Person who must sit in the Prosecution slot of (round, scene)."""
    return (round_no - 1) * scenes + scene


def is_male(person: int) -> bool:
    return person % 2 == 1


def cardinality_bounds(n: int, slot_count: int) -> Tuple[int, int]:
    """Per-slot (min, max) head count so that no slot differs by more than one."""
    return n // slot_count, math.ceil(n / slot_count)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
@dataclass
class SchedulerConfig:
    """Parameter set for one scheduling run."""
    n: int                                  # persons
    r: int                                  # rounds
    scenes: int = DEFAULT_SCENES
    roles: int = ROLE_COUNT
    rule_flags: Dict[str, bool] = field(default_factory=dict)
    mode: str = MODE_SATISFY

    @property
    def slot_count(self) -> int:
        return self.scenes * self.roles

    @property
    def bounds(self) -> Tuple[int, int]:
        return cardinality_bounds(self.n, self.slot_count)

    @property
    def leader_count(self) -> int:
        return self.r * self.scenes

    @property
    def minimize(self) -> bool:
        return self.mode == MODE_MINIMIZE

    def is_active(self, rule: str) -> bool:
        if rule in MANDATORY_RULES:
            return True
        return bool(self.rule_flags.get(rule, True))

    def active_rules(self) -> List[str]:
        return [rule for rule in ALL_RULES if self.is_active(rule)]

    def is_leader(self, person: int) -> bool:
        return person <= self.leader_count

    def leader(self, round_no: int, scene: int) -> int:
        return leader(round_no, scene, self.scenes)

    def to_dict(self) -> dict:
        """Plain mapping; explicit flags are kept as given so checks still see them."""
        flags = {rule: self.is_active(rule) for rule in OPTIONAL_RULES}
        flags.update(self.rule_flags)
        return {
            "n": self.n,
            "r": self.r,
            "scenes": self.scenes,
            "roles": self.roles,
            "mode": self.mode,
            "rule_flags": flags,
        }


# ---------------------------------------------------------------------------
# Solved artifact
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class AssignmentMatrix:
    """
    Complete schedule. slots[round-1][person-1] is the slot (1-based) the
    person holds in that round; the per-slot member sets are derived.
    """
    slots: Tuple[Tuple[int, ...], ...]
    scenes: int = DEFAULT_SCENES
    roles: int = ROLE_COUNT

    @classmethod
    def from_rows(cls, rows, scenes: int = DEFAULT_SCENES, roles: int = ROLE_COUNT) -> "AssignmentMatrix":
        return cls(tuple(tuple(int(v) for v in row) for row in rows), scenes, roles)

    @property
    def round_count(self) -> int:
        return len(self.slots)

    @property
    def person_count(self) -> int:
        return len(self.slots[0]) if self.slots else 0

    @property
    def slot_count(self) -> int:
        return self.scenes * self.roles

    def slot_of(self, round_no: int, person: int) -> int:
        return self.slots[round_no - 1][person - 1]

    def members(self, round_no: int, slot: int) -> Tuple[int, ...]:
        row = self.slots[round_no - 1]
        return tuple(p for p, v in enumerate(row, 1) if v == slot)

    def scene_members(self, round_no: int, scene: int) -> Dict[int, Tuple[int, ...]]:
        """role → persons for one (round, scene)."""
        return {
            role: self.members(round_no, slot_number(scene, role, self.roles))
            for role in range(1, self.roles + 1)
        }

    def track(self, person: int) -> Tuple[int, ...]:
        return tuple(row[person - 1] for row in self.slots)


@dataclass
class SolveResult:
    """What a backend hands to the formatter."""
    status: str
    matrix: Optional[AssignmentMatrix] = None
    objective: Optional[int] = None
    nodes: int = 0
    solutions: int = 0
    elapsed_seconds: float = 0.0
    conflicts: List[str] = field(default_factory=list)
    backend: str = "search"

    @property
    def found(self) -> bool:
        return self.matrix is not None

    @property
    def is_optimal(self) -> bool:
        return self.status == STATUS_OPTIMAL
