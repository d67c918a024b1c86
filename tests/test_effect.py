"""Tests for Effect and effect()."""

import logging
from types import SimpleNamespace

import pytest

from trackfx import Engine, FlushFailure, effect, reactive, use_engine


class TestEffect:
    def test_runs_immediately(self):
        state = reactive({"count": 0})
        log = []
        effect(lambda: log.append(state["count"]))
        assert log == [0]

    def test_reruns_on_change(self):
        state = reactive(SimpleNamespace(count=0))
        runs = []
        effect(lambda: runs.append(state.count))
        state.count = 1
        assert runs == [0, 1]  # initial + exactly one re-run

    def test_unrelated_key_does_not_rerun(self):
        state = reactive({"a": 1, "b": 2})
        log = []
        effect(lambda: log.append(state["a"]))
        state["b"] = 3
        assert log == [1]

    def test_same_value_does_not_rerun(self):
        state = reactive({"a": 1})
        log = []
        effect(lambda: log.append(state["a"]))
        state["a"] = 1
        assert log == [1]

    def test_nan_over_nan_does_not_rerun(self):
        state = reactive({"x": float("nan")})
        log = []
        effect(lambda: log.append(state["x"]))
        state["x"] = float("nan")
        assert len(log) == 1

    def test_branch_switching(self):
        state = reactive(SimpleNamespace(flag=False, a=1, b=2))
        log = []
        effect(lambda: log.append(state.a if state.flag else state.b))
        assert log == [2]

        state.a = 10  # not read on the current branch
        assert log == [2]

        state.b = 20
        assert log == [2, 20]

        state.flag = True
        assert log == [2, 20, 10]

        state.b = 30  # no longer read
        assert log == [2, 20, 10]

    def test_stop(self):
        state = reactive({"count": 0})
        log = []
        e = effect(lambda: log.append(state["count"]))
        e.stop()
        state["count"] = 1
        assert log == [0]
        assert not e.active
        assert e.deps == []

    def test_lazy(self):
        state = reactive({"count": 0})
        log = []
        e = effect(lambda: log.append(state["count"]), lazy=True)
        assert log == []
        e.run()
        assert log == [0]
        state["count"] = 1
        assert log == [0, 1]

    def test_run_returns_result(self):
        state = reactive({"count": 3})
        e = effect(lambda: state["count"] * 2, lazy=True)
        assert e.run() == 6

    def test_scheduler_receives_effect(self):
        state = reactive({"count": 0})
        log = []
        scheduled = []
        e = effect(lambda: log.append(state["count"]), scheduler=scheduled.append)
        state["count"] = 1
        assert log == [0]  # not re-run, handed to the scheduler instead
        assert scheduled == [e]
        e()
        assert log == [0, 1]

    def test_calling_stopped_effect_is_noop(self):
        state = reactive({"count": 0})
        log = []
        e = effect(lambda: log.append(state["count"]))
        e.stop()
        assert e() is None
        assert log == [0]

    def test_self_trigger_suppressed(self):
        state = reactive({"n": 0})

        def bump():
            state["n"] = state["n"] + 1

        effect(bump)
        assert state["n"] == 1

    def test_nested_effects(self):
        state = reactive({"outer": 0, "inner": 0})
        log = []

        def outer():
            log.append(("outer", state["outer"]))
            effect(lambda: log.append(("inner", state["inner"])))

        effect(outer)
        assert log == [("outer", 0), ("inner", 0)]

        state["inner"] = 1
        # Only the inner effect read "inner"; the stack restored the outer one.
        assert log[-1] == ("inner", 1)
        assert ("outer", 1) not in log

        state["outer"] = 1
        assert ("outer", 1) in log

    def test_list_mutation_inside_effects_does_not_loop(self):
        items = reactive([])
        effect(lambda: items.append(1))
        effect(lambda: items.append(2))
        assert list(items) == [1, 2]

    def test_repr(self):
        def render():
            pass

        e = effect(render)
        assert repr(e) == "Effect(render, active)"
        e.stop()
        assert repr(e) == "Effect(render, stopped)"


class TestEffectErrors:
    def test_first_run_propagates_and_restores_stack(self, engine):
        state = reactive({"a": 1})

        def boom():
            state["a"]
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            effect(boom)
        assert engine.active is None

        # Tracking works normally afterwards.
        log = []
        effect(lambda: log.append(state["a"]))
        state["a"] = 2
        assert log == [1, 2]

    def test_rerun_failure_is_isolated(self, caplog):
        state = reactive({"a": 1})
        calls = []
        log = []

        def fragile():
            calls.append(state["a"])
            if len(calls) > 1:
                raise RuntimeError("rerun failed")

        effect(fragile)
        effect(lambda: log.append(state["a"]))

        with caplog.at_level(logging.ERROR, logger="trackfx.engine"):
            state["a"] = 2  # does not raise

        assert calls == [1, 2]
        assert log == [1, 2]  # sibling still ran
        assert "Re-run of" in caplog.text

    def test_strict_engine_raises_after_batch(self):
        with use_engine(Engine(strict=True)):
            state = reactive({"a": 1})
            log = []

            def fragile():
                if state["a"] > 1:
                    raise RuntimeError("rerun failed")

            effect(fragile)
            effect(lambda: log.append(state["a"]))

            with pytest.raises(FlushFailure) as info:
                state["a"] = 2

            assert log == [1, 2]
            assert len(info.value.errors) == 1
            assert isinstance(info.value.errors[0], RuntimeError)
