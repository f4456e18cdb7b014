"""Tests for the EditSession interaction-mode state machine."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from todoapp.constants.constants import EditMode
from todoapp.core.exceptions import InvalidModeTransition
from todoapp.services.EditSession import EditSession


def _mock_service():
    service = AsyncMock()
    service.create.return_value = {"id": 7}
    return service


class TestTransitions:
    def test_starts_idle(self):
        assert EditSession(_mock_service()).mode is EditMode.idle

    def test_only_one_mode_at_a_time(self):
        session = EditSession(_mock_service())
        session.enter(EditMode.editing)
        with pytest.raises(InvalidModeTransition):
            session.enter(EditMode.reordering)
        assert session.mode is EditMode.editing

    def test_entering_idle_directly_is_invalid(self):
        with pytest.raises(InvalidModeTransition):
            EditSession(_mock_service()).enter("idle")

    def test_discard_returns_to_idle_without_calls(self):
        service = _mock_service()
        session = EditSession(service)
        session.enter("selecting_delete")
        session.discard()
        assert session.mode is EditMode.idle
        assert service.method_calls == []

    @pytest.mark.asyncio
    async def test_save_while_idle_is_invalid(self):
        with pytest.raises(InvalidModeTransition):
            await EditSession(_mock_service()).save()


class TestSave:
    @pytest.mark.asyncio
    async def test_creating_calls_create_and_returns_task(self):
        service = _mock_service()
        session = EditSession(service)
        session.enter(EditMode.creating)

        result = await session.save("  New task ")

        service.create.assert_awaited_once_with("New task")
        assert result == {"id": 7}
        assert session.mode is EditMode.idle

    @pytest.mark.asyncio
    async def test_creating_with_blank_text_saves_nothing(self):
        service = _mock_service()
        session = EditSession(service)
        session.enter(EditMode.creating)

        assert await session.save("   ") is None
        service.create.assert_not_awaited()
        assert session.mode is EditMode.idle

    @pytest.mark.asyncio
    async def test_reordering_sends_positions(self):
        service = _mock_service()
        session = EditSession(service)
        session.enter(EditMode.reordering)

        await session.save([30, 10, 20])

        items = service.update_sequence.await_args.args[0]
        assert [(i.id, i.sequence) for i in items] == [(30, 0), (10, 1), (20, 2)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode, method", [
        (EditMode.selecting_done, "toggle_done"),
        (EditMode.selecting_delete, "bulk_delete"),
    ])
    async def test_selection_modes(self, mode, method):
        service = _mock_service()
        session = EditSession(service)
        session.enter(mode)

        await session.save([1, 2])

        getattr(service, method).assert_awaited_once_with([1, 2])

    @pytest.mark.asyncio
    async def test_editing_sends_changed_texts(self):
        service = _mock_service()
        session = EditSession(service)
        session.enter(EditMode.editing)

        await session.save([{"id": 1, "text": "changed"}])

        service.update_texts.assert_awaited_once_with([{"id": 1, "text": "changed"}])

    @pytest.mark.asyncio
    async def test_failed_save_keeps_mode(self):
        service = _mock_service()
        service.toggle_done.side_effect = RuntimeError("db down")
        session = EditSession(service)
        session.enter(EditMode.selecting_done)

        with pytest.raises(RuntimeError):
            await session.save([1])

        assert session.mode is EditMode.selecting_done
        assert session.accepts_authoritative_state()


class TestReconciliationGuard:
    @pytest.mark.asyncio
    async def test_authoritative_state_is_held_back_while_saving(self):
        release = asyncio.Event()
        observed = []
        service = _mock_service()
        session = EditSession(service)

        async def slow_toggle(ids):
            observed.append(session.accepts_authoritative_state())
            await release.wait()

        service.toggle_done.side_effect = slow_toggle
        session.enter(EditMode.selecting_done)

        save = asyncio.create_task(session.save([1]))
        await asyncio.sleep(0)
        assert session.is_saving
        with pytest.raises(InvalidModeTransition):
            session.discard()

        release.set()
        await save

        assert observed == [False]
        assert session.accepts_authoritative_state()
        assert session.mode is EditMode.idle
