"""
Unit tests for the storage backends.

Tests:
- Set files: save, ordered cards, listing, deletion
- Session files: insert, update, read back
- High score only ever raised, owner checked
- Atomic writes leave no temp files behind
"""

import asyncio
import json

import pytest

from src.utils.errors import NotFound
from src.utils.persistence import InMemoryPersistence, JsonFilePersistence


def run(coro):
    return asyncio.run(coro)


def card(i, created_at):
    return {
        "id": f"card-{i}",
        "question": f"Q{i}?",
        "answer": f"A{i}",
        "difficulty": "easy",
        "created_at": created_at,
    }


@pytest.fixture
def store(tmp_path):
    return JsonFilePersistence(sets_dir=tmp_path / "sets", sessions_dir=tmp_path / "sessions")


class TestJsonSets:
    """Test suite for set files."""

    def test_save_and_read_back(self, store, tmp_path):
        set_id = run(
            store.save_set(
                {"id": "set-1", "user_id": "u1", "title": "T", "prompt": "P"},
                [card(0, "2026-01-01T00:00:00"), card(1, "2026-01-01T00:00:01")],
            )
        )
        assert set_id == "set-1"

        metadata = run(store.get_set_metadata("set-1"))
        assert metadata["title"] == "T"
        assert metadata["high_score"] == 0
        assert metadata["created_at"]

        data = json.loads((tmp_path / "sets" / "set-1.json").read_text(encoding="utf-8"))
        assert all(c["set_id"] == "set-1" for c in data["cards"])

    def test_cards_ordered_by_created_at(self, store):
        run(
            store.save_set(
                {"id": "set-1", "user_id": "u1"},
                [card(2, "2026-01-01T00:00:02"), card(0, "2026-01-01T00:00:00"), card(1, "2026-01-01T00:00:01")],
            )
        )
        cards = run(store.get_cards_for_set("set-1"))
        assert [c["id"] for c in cards] == ["card-0", "card-1", "card-2"]

    def test_unknown_set(self, store):
        with pytest.raises(NotFound):
            run(store.get_cards_for_set("set-missing"))
        with pytest.raises(NotFound):
            run(store.get_set_metadata("set-missing"))
        assert run(store.count_cards("set-missing")) == 0

    def test_list_sets_newest_first(self, store):
        run(store.save_set({"id": "set-old", "user_id": "u1", "created_at": "2026-01-01"}, []))
        run(store.save_set({"id": "set-new", "user_id": "u1", "created_at": "2026-03-01"}, []))
        run(store.save_set({"id": "set-other", "user_id": "u2", "created_at": "2026-02-01"}, []))

        rows = run(store.list_sets("u1"))
        assert [r["id"] for r in rows] == ["set-new", "set-old"]

    def test_delete_set(self, store):
        run(store.save_set({"id": "set-1", "user_id": "u1"}, [card(0, "a")]))
        assert run(store.count_cards("set-1")) == 1
        run(store.delete_set("set-1"))
        with pytest.raises(NotFound):
            run(store.get_set_metadata("set-1"))
        with pytest.raises(NotFound):
            run(store.delete_set("set-1"))

    def test_no_temp_files_left(self, store, tmp_path):
        run(store.save_set({"id": "set-1", "user_id": "u1"}, []))
        run(store.update_set_high_score("set-1", "u1", 3, "2026-01-02"))
        assert list((tmp_path / "sets").glob("*.tmp")) == []


class TestJsonSessions:
    """Test suite for session files and high scores."""

    def test_insert_update_get(self, store):
        session_id = run(
            store.insert_session(
                {"session_id": "qs-1", "user_id": "u1", "set_id": "set-1", "completed": False}
            )
        )
        run(store.update_session(session_id, {"correct_answers": 2, "completed": True}))

        row = run(store.get_session(session_id))
        assert row["correct_answers"] == 2
        assert row["completed"] is True
        assert row["user_id"] == "u1"

    def test_generated_session_id(self, store):
        session_id = run(store.insert_session({"user_id": "u1", "set_id": "set-1"}))
        assert session_id.startswith("qs-")

    def test_update_unknown_session(self, store):
        with pytest.raises(NotFound):
            run(store.update_session("qs-missing", {"completed": True}))
        assert run(store.get_session("qs-missing")) is None

    def test_best_completed_session(self, store):
        for i, (score, completed) in enumerate([(2, True), (5, False), (4, True)]):
            run(
                store.insert_session(
                    {
                        "session_id": f"qs-{i}",
                        "user_id": "u1",
                        "set_id": "set-1",
                        "correct_answers": score,
                        "completed": completed,
                    }
                )
            )
        assert run(store.query_best_completed_session("u1", "set-1")) == {"correct_answers": 4}
        assert run(store.query_best_completed_session("u2", "set-1")) is None

    def test_high_score_only_raised(self, store):
        run(store.save_set({"id": "set-1", "user_id": "u1"}, []))
        run(store.update_set_high_score("set-1", "u1", 5, "2026-01-02"))
        run(store.update_set_high_score("set-1", "u1", 3, "2026-01-03"))
        assert run(store.get_set_metadata("set-1"))["high_score"] == 5

    def test_high_score_requires_owner(self, store):
        run(store.save_set({"id": "set-1", "user_id": "u1"}, []))
        with pytest.raises(NotFound):
            run(store.update_set_high_score("set-1", "u2", 5, "2026-01-02"))


class TestInMemory:
    """Test suite for the in-memory backend."""

    def test_rows_are_copied(self):
        backend = InMemoryPersistence()
        run(backend.save_set({"id": "set-1", "user_id": "u1"}, [card(0, "a")]))
        cards = run(backend.get_cards_for_set("set-1"))
        cards[0]["question"] = "changed"
        assert run(backend.get_cards_for_set("set-1"))[0]["question"] == "Q0?"

    def test_equal_timestamps_keep_insertion_order(self):
        backend = InMemoryPersistence()
        run(backend.save_set({"id": "set-1"}, [card(1, "same"), card(0, "same")]))
        assert [c["id"] for c in run(backend.get_cards_for_set("set-1"))] == ["card-1", "card-0"]

    def test_high_score_only_raised(self):
        backend = InMemoryPersistence()
        run(backend.save_set({"id": "set-1", "user_id": "u1"}, []))
        run(backend.update_set_high_score("set-1", "u1", 4, "t1"))
        run(backend.update_set_high_score("set-1", "u1", 1, "t2"))
        assert backend.sets["set-1"]["high_score"] == 4
