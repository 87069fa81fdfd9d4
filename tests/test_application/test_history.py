"""Tests for the bounded undo/redo history."""

from intellipen.application.history import HistoryStack


class TestHistoryStack:
    def test_empty(self):
        history = HistoryStack()
        assert history.current is None
        assert history.can_undo is False
        assert history.can_redo is False
        assert history.undo() is None
        assert history.redo() is None
        assert history.summary()["last_action"] == "none"

    def test_undo_redo_round_trip(self):
        history = HistoryStack()
        for i, text in enumerate(["a", "ab", "abc"]):
            history.record(text, f"step-{i}")

        assert history.undo().text == "ab"
        assert history.undo().text == "a"
        assert history.undo() is None
        assert history.redo().text == "ab"
        assert history.redo().text == "abc"
        assert history.redo() is None

    def test_record_after_undo_discards_redo(self):
        history = HistoryStack()
        history.record("a", "user-input")
        history.record("ab", "user-input")
        history.undo()

        history.record("ax", "user-input")

        assert [s.text for s in history.states] == ["a", "ax"]
        assert history.can_redo is False

    def test_duplicate_of_current_not_recorded(self):
        history = HistoryStack()
        assert history.record("a", "before-suggestion") is True
        assert history.record("a", "after-suggestion") is False
        assert len(history) == 1

    def test_bounded(self):
        history = HistoryStack(max_size=50)
        for i in range(120):
            history.record(f"text {i}", "user-input")

        assert len(history) == 50
        assert history.states[0].text == "text 70"
        assert history.current.text == "text 119"
        assert history.current_index == 49

    def test_undo_all_the_way_after_eviction(self):
        history = HistoryStack(max_size=3)
        for text in ["a", "b", "c", "d"]:
            history.record(text, "user-input")

        assert [history.undo().text, history.undo().text] == ["c", "b"]
        assert history.undo() is None

    def test_summary(self):
        history = HistoryStack()
        history.record("a", "start-tracking")
        history.record("b", "after-suggestion", {"suggestion_id": "s1"})

        assert history.summary() == {
            "total_states": 2,
            "current_index": 1,
            "can_undo": True,
            "can_redo": False,
            "last_action": "after-suggestion",
        }
        assert history.current.metadata == {"suggestion_id": "s1"}
