"""Shared fixtures for the scheduler tests."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scene_scheduler.models import MODE_MINIMIZE, SchedulerConfig  # noqa: E402


@pytest.fixture
def twelve_by_three() -> SchedulerConfig:
    """Every person leads once; one person per slot."""
    return SchedulerConfig(n=12, r=3)


@pytest.fixture
def single_scene_pairs() -> SchedulerConfig:
    """One scene, two persons per slot, four persons who never lead."""
    return SchedulerConfig(n=6, r=2, scenes=1)


@pytest.fixture
def ordering_conflict() -> SchedulerConfig:
    """Coverage + priority ordering leave person 4 without a Prosecution seat."""
    return SchedulerConfig(n=4, r=3, scenes=1)


@pytest.fixture
def tiny_minimize() -> SchedulerConfig:
    return SchedulerConfig(n=4, r=2, scenes=1, mode=MODE_MINIMIZE)
