"""Tests for logging context propagation."""

import threading

import pytest

from autoapply.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


def test_empty_context():
    assert get_log_context() == {}


def test_push_and_pop():
    token = push_log_context(run_id="run-1", candidate_id="cand-42")
    assert get_log_context() == {"run_id": "run-1", "candidate_id": "cand-42"}

    pop_log_context(token)
    assert get_log_context() == {}


def test_nested_push_pop():
    token1 = push_log_context(run_id="run-1")
    token2 = push_log_context(candidate_id="cand-42")
    assert get_log_context() == {"run_id": "run-1", "candidate_id": "cand-42"}

    pop_log_context(token2)
    assert get_log_context() == {"run_id": "run-1"}

    pop_log_context(token1)
    assert get_log_context() == {}


def test_context_override():
    """Pushing the same key shadows the outer value until popped."""
    token1 = push_log_context(candidate_id="cand-1")
    token2 = push_log_context(candidate_id="cand-2")
    assert get_log_context() == {"candidate_id": "cand-2"}

    pop_log_context(token2)
    assert get_log_context() == {"candidate_id": "cand-1"}
    pop_log_context(token1)


def test_context_manager_nested():
    with log_context(run_id="run-1"):
        with log_context(candidate_id="cand-42"):
            assert get_log_context() == {"run_id": "run-1", "candidate_id": "cand-42"}
        assert get_log_context() == {"run_id": "run-1"}

    assert get_log_context() == {}


def test_context_manager_restores_on_exception():
    with pytest.raises(ValueError):
        with log_context(run_id="run-1"):
            raise ValueError("boom")

    assert get_log_context() == {}


def test_clear_context():
    push_log_context(run_id="run-1")
    clear_log_context()
    assert get_log_context() == {}


def test_get_log_context_returns_copy():
    token = push_log_context(run_id="run-1")

    context = get_log_context()
    context["candidate_id"] = "modified"

    assert get_log_context() == {"run_id": "run-1"}
    pop_log_context(token)


def test_context_is_per_thread():
    seen = {}

    def worker():
        seen["worker"] = get_log_context()

    with log_context(run_id="run-1"):
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

    assert seen["worker"] == {}
