"""Tests for Computed values."""

from trackfx import Computed, computed, effect, reactive, ref


class TestComputed:
    def test_lazy_eval(self):
        call_count = 0
        r = ref(5)

        def fn():
            nonlocal call_count
            call_count += 1
            return r.value * 2

        c = Computed(fn)
        assert call_count == 0  # not yet evaluated
        assert c.value == 10
        assert call_count == 1

    def test_caches_until_dirty(self):
        call_count = 0
        a = ref(1)
        b = ref(2)

        def fn():
            nonlocal call_count
            call_count += 1
            return a.value + b.value

        c = Computed(fn)
        assert c.value == 3
        assert c.value == 3
        assert call_count == 1  # cached, no re-eval

    def test_invalidation_is_lazy(self):
        call_count = 0
        r = ref(5)

        def fn():
            nonlocal call_count
            call_count += 1
            return r.value * 2

        c = Computed(fn)
        assert c.value == 10
        r.value = 10
        assert c.dirty
        assert call_count == 1  # marked dirty, not recomputed yet
        assert c.value == 20
        assert call_count == 2

    def test_dependency_tracking(self):
        """Computed tracks dependencies dynamically."""
        state = reactive({"flag": True, "a": 1, "b": 2})

        c = Computed(lambda: state["a"] if state["flag"] else state["b"])
        assert c.value == 1

        state["flag"] = False
        assert c.value == 2  # now depends on b, not a

        state["a"] = 100
        assert not c.dirty

    def test_chained_computed(self):
        r = ref(3)
        doubled = Computed(lambda: r.value * 2)
        quadrupled = Computed(lambda: doubled.value * 2)
        assert quadrupled.value == 12
        r.value = 5
        assert quadrupled.value == 20

    def test_stop(self):
        r = ref(5)
        c = Computed(lambda: r.value * 2)
        assert c.value == 10
        c.stop()
        r.value = 10
        # Stopped computeds re-evaluate untracked on every read.
        assert c.value == 20
        r.value = 11
        assert c.value == 22
        assert c.dirty

    def test_propagates_to_effects(self):
        """Computed invalidation propagates to downstream effects."""
        r = ref(5)
        c = Computed(lambda: r.value * 2)
        log = []
        effect(lambda: log.append(c.value))
        assert log == [10]
        r.value = 10
        assert log == [10, 20]

    def test_repeated_writes_before_read_notify_once(self):
        r = ref(1)
        c = Computed(lambda: r.value)
        scheduled = []
        effect(lambda: c.value, scheduler=scheduled.append)
        r.value = 2
        r.value = 3  # already dirty, readers were told once
        assert len(scheduled) == 1


class TestComputedDecorator:
    def test_decorator_factory(self):
        r = ref(7)

        @computed
        def doubled():
            return r.value * 2

        assert doubled.value == 14
        r.value = 3
        assert doubled.value == 6
