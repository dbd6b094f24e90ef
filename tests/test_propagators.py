from __future__ import annotations

from scene_scheduler.models import OBSERVER, PUBLIC, SchedulerConfig
from scene_scheduler.propagators import (
    SearchState,
    active_propagators,
    cardinality,
    coverage,
    gender_balance,
    iter_slots,
    leadership,
    no_repeat,
    popcount,
    priority_ordering,
    propagate,
    role_mask,
    symmetry_breaking,
    symmetry_chains,
)


def test_bit_helpers() -> None:
    assert list(iter_slots(0b1010)) == [2, 4]
    assert popcount(0b1011) == 3


def test_singleton_domain_is_channelled_immediately() -> None:
    state = SearchState(SchedulerConfig(n=16, r=4))
    assert state.decide(0, 13, 5)
    assert state.assign[0][13] == 5
    assert 13 in state.members[0][5]


def test_leadership_seats_every_leader() -> None:
    state = SearchState(SchedulerConfig(n=16, r=4))
    assert leadership(state)
    assert state.assign[0][1] == 1
    assert state.assign[1][5] == 1
    assert state.assign[3][16] == 10


def test_no_repeat_removes_a_held_slot_from_other_rounds() -> None:
    state = SearchState(SchedulerConfig(n=16, r=4))
    state.decide(0, 13, 5)
    assert no_repeat(state)
    for ri in (1, 2, 3):
        assert not state.domains[ri][13] & (1 << 4)


def test_cardinality_rejects_an_overfull_slot() -> None:
    state = SearchState(SchedulerConfig(n=12, r=1))
    state.decide(0, 5, 2)
    state.decide(0, 6, 2)
    assert not cardinality(state)


def test_cardinality_rejects_a_round_that_cannot_fill_every_slot() -> None:
    state = SearchState(SchedulerConfig(n=12, r=1))
    for p in range(5, 13):
        state.restrict(0, p, 0b110)
    assert not cardinality(state)


def test_coverage_forces_the_missing_roles() -> None:
    config = SchedulerConfig(n=12, r=3)
    state = SearchState(config)
    assert leadership(state)
    assert coverage(state)
    wanted = role_mask(config, OBSERVER) | role_mask(config, PUBLIC)
    assert state.domains[1][1] == wanted
    assert state.domains[2][1] == wanted


def test_priority_ordering_fails_when_observer_cannot_catch_up() -> None:
    state = SearchState(SchedulerConfig(n=4, r=1, scenes=1))
    state.decide(0, 1, 1)
    state.decide(0, 2, 1)
    state.decide(0, 3, 3)
    assert not priority_ordering(state)


def test_symmetry_chains_skip_leaders_and_split_by_gender() -> None:
    assert symmetry_chains(SchedulerConfig(n=6, r=2, scenes=1)) == [[3, 5], [4, 6]]
    assert symmetry_chains(SchedulerConfig(n=12, r=3)) == [[], []]


def test_symmetry_breaking_bounds_neighbours_in_a_chain() -> None:
    state = SearchState(SchedulerConfig(n=6, r=2, scenes=1))
    state.decide(0, 5, 2)
    assert symmetry_breaking(state)
    assert state.domains[0][3] == 0b011

    state.decide(0, 4, 3)
    assert symmetry_breaking(state)
    assert state.assign[0][6] == 3


def test_gender_balance_keeps_same_gender_out_of_a_half_full_pair() -> None:
    state = SearchState(SchedulerConfig(n=6, r=1, scenes=1))
    state.decide(0, 1, 1)
    assert gender_balance(state)
    assert not state.domains[0][3] & 1
    assert not state.domains[0][5] & 1
    assert state.domains[0][4] & 1


def test_minimize_mode_drops_the_hard_gender_propagator() -> None:
    names = [name for name, _ in active_propagators(SchedulerConfig(n=16, r=4))]
    assert names[-1] == "gender_balance"
    relaxed = SchedulerConfig(n=16, r=4, mode="minimize")
    assert "gender_balance" not in [name for name, _ in active_propagators(relaxed)]
    off = SchedulerConfig(n=16, r=4, rule_flags={"coverage": False})
    assert "coverage" not in [name for name, _ in active_propagators(off)]


def test_propagate_reaches_a_fixpoint_at_the_root() -> None:
    state = SearchState(SchedulerConfig(n=12, r=3))
    assert propagate(state)
    assert state.failed_rule is None
    assert [state.assign[0][p] for p in range(1, 5)] == [1, 4, 7, 10]


def test_propagate_names_the_failing_rule() -> None:
    state = SearchState(SchedulerConfig(n=12, r=1))
    state.decide(0, 5, 2)
    state.decide(0, 6, 2)
    assert not propagate(state)
    assert state.failed_rule == "cardinality"


def test_channelled_person_is_not_pruned_from_their_own_slot() -> None:
    # person 4 gets pushed into Public by gender_balance while it walks the slots
    state = SearchState(SchedulerConfig(n=4, r=1, scenes=1))
    state.decide(0, 2, 2)
    assert propagate(state)
    assert state.assign[0][4] == 3
    assert state.domains[0][3] == 0b110


def test_cardinality_keeps_a_member_placed_during_the_same_pass() -> None:
    state = SearchState(SchedulerConfig(n=3, r=1, scenes=1))
    state.decide(0, 1, 1)
    state.restrict(0, 2, 0b011)
    assert cardinality(state)
    assert state.assign[0][2] == 2
    assert state.assign[0][3] == 3
