"""Tests for the event emitter and in-memory text source."""

from intellipen.events import SUGGESTION_APPLIED, EventEmitter
from intellipen.text_source import InMemoryTextSource, TextSource


class TestEventEmitter:
    def test_emit_to_subscribers(self):
        emitter = EventEmitter()
        seen = []
        emitter.on(SUGGESTION_APPLIED, seen.append)

        emitter.emit(SUGGESTION_APPLIED, {"suggestion_id": "s1"})
        emitter.emit("other", {"suggestion_id": "s2"})

        assert seen == [{"suggestion_id": "s1"}]

    def test_off(self):
        emitter = EventEmitter()
        seen = []
        emitter.on(SUGGESTION_APPLIED, seen.append)
        emitter.off(SUGGESTION_APPLIED, seen.append)
        emitter.off("never-registered", seen.append)

        emitter.emit(SUGGESTION_APPLIED, {})

        assert seen == []

    def test_failing_handler_does_not_stop_others(self):
        emitter = EventEmitter()
        seen = []

        def broken(payload):
            raise RuntimeError("boom")

        emitter.on(SUGGESTION_APPLIED, broken)
        emitter.on(SUGGESTION_APPLIED, seen.append)

        emitter.emit(SUGGESTION_APPLIED, {"ok": True})

        assert seen == [{"ok": True}]


class TestInMemoryTextSource:
    def test_is_text_source(self):
        assert isinstance(InMemoryTextSource(), TextSource)

    def test_listeners_notified(self):
        source = InMemoryTextSource("a")
        seen = []
        source.add_listener(seen.append)

        source.set_text("b")
        source.remove_listener(seen.append)
        source.set_text("c")

        assert seen == ["b"]
        assert source.get_text() == "c"

    def test_failing_listener_isolated(self):
        source = InMemoryTextSource()
        seen = []
        source.add_listener(lambda text: 1 / 0)
        source.add_listener(seen.append)

        source.set_text("x")

        assert seen == ["x"]
