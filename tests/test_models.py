from __future__ import annotations

import pytest

from scene_scheduler.models import (
    AssignmentMatrix,
    ConfigurationError,
    SchedulerConfig,
    cardinality_bounds,
    is_male,
    leader,
    role_of,
    scene_of,
    slot_label,
    slot_number,
)


def test_slot_numbering_round_trips() -> None:
    assert slot_number(1, 1) == 1
    assert slot_number(2, 1) == 4
    assert slot_number(4, 3) == 12
    for slot in range(1, 13):
        assert slot_number(scene_of(slot), role_of(slot)) == slot
    assert slot_label(6) == "S2 Public"


def test_leader_formula_walks_rounds_then_scenes() -> None:
    assert leader(1, 1) == 1
    assert leader(1, 4) == 4
    assert leader(2, 1) == 5
    assert leader(4, 4) == 16
    assert leader(3, 1, scenes=1) == 3


def test_gender_follows_parity() -> None:
    assert is_male(1) and is_male(7)
    assert not is_male(2)
    assert not is_male(4)


@pytest.mark.parametrize(
    "n, expected",
    [(12, (1, 1)), (16, (1, 2)), (24, (2, 2)), (5, (0, 1))],
)
def test_cardinality_bounds(n: int, expected: tuple) -> None:
    assert cardinality_bounds(n, 12) == expected


def test_twelve_persons_fill_every_slot_exactly_once() -> None:
    # n=12 over 4 scenes x 3 roles, independent of the round count
    assert SchedulerConfig(n=12, r=4).bounds == (1, 1)


def test_config_rule_flags_default_on_and_mandatory_stay_on() -> None:
    config = SchedulerConfig(n=16, r=4, rule_flags={"coverage": False, "no_repeat": False})
    assert not config.is_active("coverage")
    assert config.is_active("gender_balance")
    assert config.is_active("no_repeat")
    assert "coverage" not in config.active_rules()
    assert config.to_dict()["rule_flags"]["coverage"] is False


def test_matrix_views_agree() -> None:
    matrix = AssignmentMatrix.from_rows([[1, 2, 3, 3]], scenes=1)
    assert matrix.round_count == 1
    assert matrix.person_count == 4
    assert matrix.slot_of(1, 3) == 3
    assert matrix.members(1, 3) == (3, 4)
    assert matrix.scene_members(1, 1) == {1: (1,), 2: (2,), 3: (3, 4)}
    assert matrix.track(2) == (2,)


def test_configuration_error_keeps_messages() -> None:
    err = ConfigurationError(["a", "b"])
    assert err.messages == ["a", "b"]
    assert str(err) == "a; b"
    assert isinstance(err, ValueError)
