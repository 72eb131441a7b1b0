"""Saga steps, chaining and reverse-order compensation."""

import pytest
from kungfu import Error, LazyCoroResult, Ok

from conftest import err, ok
from storefront import saga as S


def returning(log, name, result):
    async def impl():
        log.append(f"do {name}")
        return result
    return LazyCoroResult(impl)


def undoing(log, name, result=Ok(None)):
    def make(value):
        async def impl():
            log.append(f"undo {name}({value})")
            return result
        return LazyCoroResult(impl)
    return S.undo(make)


class TestRun:
    def test_chain_passes_values_forward(self, run):
        log = []
        saga = S.step("reserve", returning(log, "reserve", Ok(2)), undoing(log, "reserve")).then(
            lambda qty: S.step("charge", returning(log, "charge", Ok(qty * 10)))
        )

        result = ok(run(lambda: S.run(saga)))
        assert result.value == 20
        assert result.steps_executed == 2
        assert result.compensators_recorded == 1
        assert log == ["do reserve", "do charge"]

    def test_failure_rolls_back_in_reverse(self, run):
        log = []
        saga = S.sequence([
            S.step("a", returning(log, "a", Ok(1)), undoing(log, "a")),
            S.step("b", returning(log, "b", Ok(2)), undoing(log, "b")),
            S.step("c", returning(log, "c", Error("boom")), undoing(log, "c")),
        ])

        failure = err(run(lambda: S.run(saga)))
        assert failure.error == "boom"
        assert failure.step_failed == "c"
        assert failure.steps_executed == 3
        assert failure.compensators_run == 2
        assert failure.rollback_complete
        assert log == ["do a", "do b", "do c", "undo b(2)", "undo a(1)"]

    def test_later_steps_do_not_run_after_failure(self, run):
        log = []
        saga = S.step("a", returning(log, "a", Error("nope"))).then(
            lambda _: S.step("b", returning(log, "b", Ok(None)))
        )

        failure = err(run(lambda: S.run(saga)))
        assert failure.step_failed == "a"
        assert failure.compensators_run == 0
        assert log == ["do a"]

    def test_failed_compensation_is_counted(self, run):
        log = []
        saga = S.sequence([
            S.step("a", returning(log, "a", Ok(1)), undoing(log, "a")),
            S.step("b", returning(log, "b", Ok(2)), undoing(log, "b", Error("undo failed"))),
            S.step("c", returning(log, "c", Error("boom"))),
        ])

        failure = err(run(lambda: S.run(saga)))
        assert failure.compensators_run == 1
        assert failure.compensators_failed == 1
        assert not failure.rollback_complete
        assert log[-2:] == ["undo b(2)", "undo a(1)"]

    def test_raising_compensator_does_not_stop_rollback(self, run):
        log = []

        async def explode(value):
            raise RuntimeError("connection lost")

        saga = S.sequence([
            S.step("a", returning(log, "a", Ok(1)), undoing(log, "a")),
            S.step("b", returning(log, "b", Ok(2)), explode),
            S.step("c", returning(log, "c", Error("boom"))),
        ])

        failure = err(run(lambda: S.run(saga)))
        assert failure.compensators_failed == 1
        assert log[-1] == "undo a(1)"

    def test_sequence_needs_steps(self):
        with pytest.raises(ValueError):
            S.sequence([])
