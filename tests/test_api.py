from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

BACKEND = Path(__file__).resolve().parents[1] / "webapp" / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from main import app  # noqa: E402


@pytest.fixture(scope="module")
def client() -> TestClient:
    return TestClient(app)


def test_root(client) -> None:
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["docs"] == "/docs"


def test_check_valid(client) -> None:
    resp = client.post("/api/schedule/check", json={"n": 16, "r": 4})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "messages": [], "bounds": [1, 2]}


def test_check_invalid(client) -> None:
    body = client.post("/api/schedule/check", json={"n": 5, "r": 4}).json()
    assert body["ok"] is False
    assert any("distinct leaders" in m for m in body["messages"])


def test_solve(client) -> None:
    resp = client.post("/api/schedule/solve", json={"n": 12, "r": 3, "time_limit": 60})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "FEASIBLE"
    assert body["backend"] == "search"
    assert len(body["rows"]) == 12
    for row in body["rows"]:
        assert row["prosecution"] == [row["leader"]]


def test_solve_minimize_with_cpsat(client) -> None:
    resp = client.post("/api/schedule/solve", json={
        "n": 4, "r": 2, "scenes": 1, "mode": "minimize", "backend": "cpsat",
    })
    body = resp.json()
    assert body["status"] == "OPTIMAL"
    assert body["objective"] == 0


def test_solve_invalid_configuration_is_a_bad_request(client) -> None:
    resp = client.post("/api/schedule/solve", json={"n": 5, "r": 4})
    assert resp.status_code == 400
    assert "distinct leaders" in resp.json()["detail"]


def test_unknown_mode_fails_validation(client) -> None:
    resp = client.post("/api/schedule/solve", json={"n": 12, "r": 3, "mode": "fast"})
    assert resp.status_code == 422
