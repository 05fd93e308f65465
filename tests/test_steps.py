import pytest

from inventory_sync.errors import NothingToSync, WriteError
from inventory_sync.steps import StepRunner, run_with_retries


def test_completed_steps_are_not_repeated_on_retry():
    calls = {"fetch": 0, "write": 0}

    def fetch():
        calls["fetch"] += 1
        return ["row"]

    def write():
        calls["write"] += 1
        if calls["write"] == 1:
            raise WriteError.at("write", "sheet unavailable", attempted=1)
        return 1

    def job(step: StepRunner):
        rows = step.run("fetch", fetch)
        return step.run("write", write), rows

    step = StepRunner()
    assert run_with_retries(job, retries=3, step=step) == (1, ["row"])
    assert calls == {"fetch": 1, "write": 2}
    assert step.attempts == 2


def test_nothing_to_sync_does_not_consume_a_retry():
    attempts = {"count": 0}

    def job(step: StepRunner):
        attempts["count"] += 1
        raise NothingToSync.at("fetch-sheet-data", "No products to update")

    with pytest.raises(NothingToSync):
        run_with_retries(job, retries=3)
    assert attempts["count"] == 1


def test_retries_stop_at_the_ceiling():
    attempts = {"count": 0}

    def job(step: StepRunner):
        attempts["count"] += 1
        raise RuntimeError("database unavailable")

    with pytest.raises(RuntimeError):
        run_with_retries(job, retries=3)
    assert attempts["count"] == 4


def test_step_results_are_kept_by_name():
    step = StepRunner()

    assert step.run("a", lambda: 1) == 1
    assert step.run("a", lambda: 2) == 1
    assert step.results == {"a": 1}


def test_stage_error_context():
    error = WriteError.at("upsert-products", "boom", attempted=100, batch=3)

    assert error.error.to_dict() == {
        "stage": "upsert-products",
        "message": "boom",
        "attempted": 100,
        "details": {"batch": 3},
    }
    assert "upsert-products" in str(error)


def test_checkpoint_survives_a_failed_attempt():
    calls = {"count": 0}

    def job(step: StepRunner):
        committed = step.checkpoint("upsert")
        calls["count"] += 1
        if calls["count"] == 1:
            committed["A"] = 1
            raise WriteError.at("upsert", "batch 2 failed", attempted=1)
        return step.run("upsert", lambda: dict(committed, B=2))

    assert run_with_retries(job, retries=1) == {"A": 1, "B": 2}
