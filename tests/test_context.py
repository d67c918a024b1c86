"""Tests for RenderContext and patch_props."""

import logging
from types import SimpleNamespace

import pytest

from trackfx import Engine, MissingKey, RenderContext, effect, patch_props, reactive, to_raw, use_engine


class TestRenderContext:
    def test_resolves_sources_in_order(self):
        state = reactive({"title": "from state"})
        props = reactive({"title": "from props", "size": 3})
        ctx = RenderContext(state, props)
        assert ctx.title == "from state"
        assert ctx.size == 3

    def test_reads_are_tracked(self):
        props = reactive({"title": "a"})
        ctx = RenderContext(props)
        log = []
        effect(lambda: log.append(ctx.title))
        props["title"] = "b"
        assert log == ["a", "b"]

    def test_object_sources(self):
        setup_state = reactive(SimpleNamespace(count=1))
        ctx = RenderContext({"other": 0}, setup_state)
        assert ctx.count == 1
        ctx.count = 2
        assert to_raw(setup_state).count == 2

    def test_writes_go_to_owning_source(self):
        state = reactive({"a": 1})
        props = reactive({"b": 2})
        ctx = RenderContext(state, props)
        ctx.b = 20
        assert to_raw(props) == {"b": 20}
        assert to_raw(state) == {"a": 1}

    def test_missing_key_is_logged(self, caplog):
        ctx = RenderContext(reactive({}))
        with caplog.at_level(logging.WARNING, logger="trackfx.engine"):
            assert ctx.nope is None
            ctx.nope = 1
        assert "not defined on the render context" in caplog.text

    def test_missing_key_strict(self):
        with use_engine(Engine(strict=True)):
            ctx = RenderContext(reactive({}))
            with pytest.raises(MissingKey) as info:
                ctx.nope
        assert info.value.key == "nope"

    def test_contains(self):
        ctx = RenderContext({"a": 1}, None)
        assert "a" in ctx
        assert "b" not in ctx


class TestPatchProps:
    def test_dict_props(self):
        props = reactive({"a": 1, "b": 2})
        log = []
        effect(lambda: log.append(dict(props.items())))
        patch_props(props, {"a": 1, "c": 3})
        assert to_raw(props) == {"a": 1, "c": 3}
        assert log[-1] == {"a": 1, "c": 3}

    def test_unchanged_values_do_not_notify(self):
        props = reactive({"a": 1})
        log = []
        effect(lambda: log.append(props["a"]))
        patch_props(props, {"a": 1})
        assert log == [1]

    def test_object_props(self):
        props = reactive(SimpleNamespace(a=1, b=2))
        patch_props(props, {"a": 5})
        assert vars(to_raw(props)) == {"a": 5}
