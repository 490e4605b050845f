"""Tests for the in-memory session store."""
from __future__ import annotations

import logging

import pytest

from contract import ValidationReport, ValidationResult
from models import DisplayState, Key, Phase, SessionCreate, UnknownKeyError
from store import (
    SessionLimitError,
    SessionNotFoundError,
    SessionStateError,
    SessionStore,
)


class TestCreate:

    def test_create_returns_session_with_id(self, store):
        session = store.create()
        assert session.id
        assert session.state == DisplayState()
        assert session.key_count == 0

    def test_create_with_label(self, store):
        session = store.create(SessionCreate(label="kitchen"))
        assert session.label == "kitchen"

    def test_create_sets_timestamps(self, store):
        session = store.create()
        assert session.updated_at == session.created_at

    def test_create_increments_count(self, store):
        assert store.count() == 0
        store.create()
        store.create()
        assert store.count() == 2

    def test_create_beyond_limit_raises(self):
        store = SessionStore(max_sessions=2)
        store.create()
        store.create()
        with pytest.raises(SessionLimitError) as exc:
            store.create()
        assert exc.value.limit == 2

    def test_invalid_limit_rejected(self):
        with pytest.raises(ValueError):
            SessionStore(max_sessions=0)

    def test_create_logs(self, store, caplog):
        with caplog.at_level(logging.INFO, logger="calculator"):
            session = store.create()
        assert session.id in caplog.text


class TestGet:

    def test_get_returns_created_session(self, store):
        created = store.create()
        assert store.get(created.id).id == created.id

    def test_get_nonexistent_raises(self, store):
        with pytest.raises(SessionNotFoundError):
            store.get("nonexistent-id")


class TestList:

    def test_list_empty_store(self, store):
        assert store.list() == []

    def test_list_returns_all(self, store):
        store.create()
        store.create()
        assert len(store.list()) == 2

    def test_list_pagination(self, store):
        for _ in range(5):
            store.create()
        assert len(store.list(offset=2, limit=2)) == 2
        assert len(store.list(offset=4, limit=2)) == 1


class TestPress:

    def test_press_updates_state(self, store):
        session = store.create()
        state = store.press(session.id, "7")
        assert state.display == "7"
        assert store.get(session.id).state == state

    def test_press_counts_keys(self, store):
        session = store.create()
        store.press(session.id, Key.ONE)
        store.press_many(session.id, ["+", "2", "="])
        assert store.get(session.id).key_count == 4

    def test_press_advances_updated_at(self, store):
        session = store.create()
        store.press(session.id, "1")
        updated = store.get(session.id)
        assert updated.updated_at >= session.updated_at
        assert updated.created_at == session.created_at

    def test_press_many_computes(self, store):
        session = store.create()
        state = store.press_many(session.id, ["5", "+", "3", "="])
        assert state.display == "8"

    def test_sessions_are_independent(self, store):
        a = store.create()
        b = store.create()
        store.press_many(a.id, ["5", "÷", "0", "="])
        store.press(b.id, "4")
        assert store.get(a.id).state.phase is Phase.ERROR
        assert store.get(b.id).state.display == "4"

    def test_unknown_key_presses_nothing(self, store):
        session = store.create()
        store.press(session.id, "9")
        with pytest.raises(UnknownKeyError):
            store.press_many(session.id, ["+", "1", "sqrt"])
        after = store.get(session.id)
        assert after.state.display == "9"
        assert after.key_count == 1

    def test_press_nonexistent_raises(self, store):
        with pytest.raises(SessionNotFoundError):
            store.press("bad-id", "1")

    def test_invalid_state_raises(self, store, monkeypatch, caplog):
        import store as store_module

        failing = ValidationReport(results=[
            ValidationResult("ST-TEST", "forced", False, "forced failure"),
        ])
        monkeypatch.setattr(store_module, "validate_state", lambda state: failing)

        session = store.create()
        with caplog.at_level(logging.ERROR, logger="calculator"):
            with pytest.raises(SessionStateError) as exc:
                store.press(session.id, "1")
        assert exc.value.report is failing
        assert "ST-TEST" in str(exc.value)
        assert "invalid state" in caplog.text

    def test_invalid_state_rolls_back_evaluator(self, store, monkeypatch):
        import store as store_module

        session = store.create()
        store.press_many(session.id, ["1", "2"])

        failing = ValidationReport(results=[
            ValidationResult("ST-TEST", "forced", False, "forced failure"),
        ])
        passing = ValidationReport(results=[])
        calls = []

        def fail_on_second_key(state):
            calls.append(state)
            return failing if len(calls) == 2 else passing

        monkeypatch.setattr(store_module, "validate_state", fail_on_second_key)
        with pytest.raises(SessionStateError):
            store.press_many(session.id, ["+", "3", "="])
        monkeypatch.undo()

        committed = store.get(session.id)
        assert committed.state.display == "12"
        assert committed.key_count == 2
        state = store.press_many(session.id, ["+", "3", "="])
        assert state.display == "15"


class TestDelete:

    def test_delete_returns_deleted(self, store):
        created = store.create()
        assert store.delete(created.id).id == created.id

    def test_delete_removes_from_store(self, store):
        created = store.create()
        store.delete(created.id)
        assert store.count() == 0
        with pytest.raises(SessionNotFoundError):
            store.press(created.id, "1")

    def test_delete_nonexistent_raises(self, store):
        with pytest.raises(SessionNotFoundError):
            store.delete("bad-id")

    def test_delete_frees_capacity(self):
        store = SessionStore(max_sessions=1)
        first = store.create()
        store.delete(first.id)
        assert store.create().id != first.id


class TestClear:

    def test_clear_empties_store(self, store):
        store.create()
        store.create()
        store.clear()
        assert store.count() == 0
