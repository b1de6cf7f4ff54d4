"""
Shared fixtures for the doubt solver tests.

Provides:
- scripted completion, in-memory history and a manual clock (see fakes.py)
- a solver wired to those fakes
- an app client with the solver and repository dependencies overridden
"""
import pytest
from fastapi.testclient import TestClient

from doubt_solver.services.cache import ResponseCache
from doubt_solver.services.solver import DoubtSolver
from fakes import BOLD_ANSWER, FakeClock, FakeCompletion, FakeHistory


@pytest.fixture
def bold_answer():
    return BOLD_ANSWER


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def history():
    return FakeHistory()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(ttl_seconds=30 * 60, clock=clock)


@pytest.fixture
def solver(completion, cache, history):
    return DoubtSolver(completion=completion, cache=cache, history=history)


@pytest.fixture
def client(solver, history):
    from doubt_solver.main import app
    from doubt_solver.routers.chat import get_history_repo, get_solver

    app.dependency_overrides[get_solver] = lambda: solver
    app.dependency_overrides[get_history_repo] = lambda: history
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
