# Tests for the entry service (add reminder/note, delete).

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

import remindnotes.core.entries as entries
from remindnotes.channels.base import NotificationSink, configure_sink
from remindnotes.datamodel import ItemType, Note, Reminder
from remindnotes.errors import ValidationError
from remindnotes.events import E, bus
from remindnotes.metrics import runtime_metrics


@pytest.fixture
def events():
    seen = []
    created = bus.on(E.ITEM_CREATED, lambda item: seen.append(("created", item.id)))
    deleted = bus.on(E.ITEM_DELETED, lambda item: seen.append(("deleted", item.id)))
    yield seen
    bus.remove_listener(E.ITEM_CREATED, created)
    bus.remove_listener(E.ITEM_DELETED, deleted)


class TestAddReminder:
    """Tests for entries.add_reminder()."""

    async def test_persists_and_announces(self, store, sink, events):
        configure_sink(sink)

        reminder = await entries.add_reminder("Call Bob", date="2024-01-01", time="09:00")

        assert isinstance(reminder, Reminder)
        assert [i.id for i in await store.load_items()] == [reminder.id]
        assert events == [("created", reminder.id)]
        sink.notify.assert_called_once_with("Reminder Added", "Call Bob", 5000)

    async def test_validation_error_not_admitted(self, store, sink, events):
        configure_sink(sink)

        with pytest.raises(ValidationError):
            await entries.add_reminder("Call Bob", date="2024-01-01", time="9.00")

        assert store.get_items() == []
        assert events == []
        sink.notify.assert_not_called()

    async def test_toast_failure_does_not_undo(self, store, sink):
        sink.notify.side_effect = RuntimeError("no display")
        configure_sink(sink)

        reminder = await entries.add_reminder("Call Bob", date="2024-01-01", time="09:00")

        assert store.find_item(reminder.id) == reminder

    async def test_async_toast_is_delivered(self, store):
        sink = MagicMock(spec=NotificationSink)
        sink.notify = AsyncMock(return_value=None)
        configure_sink(sink)

        await entries.add_reminder("Call Bob", date="2024-01-01", time="09:00")
        await asyncio.sleep(0.01)

        sink.notify.assert_awaited_once_with("Reminder Added", "Call Bob", 5000)

    async def test_async_toast_failure_counted(self, store):
        sink = MagicMock(spec=NotificationSink)
        sink.notify = AsyncMock(side_effect=RuntimeError("no display"))
        configure_sink(sink)
        failures = runtime_metrics.sink_failure_count

        reminder = await entries.add_reminder("Call Bob", date="2024-01-01", time="09:00")
        await asyncio.sleep(0.01)

        assert store.find_item(reminder.id) == reminder
        assert runtime_metrics.sink_failure_count == failures + 1

    async def test_failing_listener_does_not_undo(self, store):
        def broken(item):
            raise RuntimeError("listener bug")

        bus.on(E.ITEM_CREATED, broken)
        try:
            reminder = await entries.add_reminder("Call Bob", date="2024-01-01", time="09:00")
        finally:
            bus.remove_listener(E.ITEM_CREATED, broken)

        assert store.get_items() == [reminder]

    async def test_works_without_sink(self, store):
        reminder = await entries.add_reminder("Quiet", "bill-reminders")
        assert store.get_items() == [reminder]


class TestAddNote:
    """Tests for entries.add_note()."""

    async def test_add_note(self, store, sink):
        configure_sink(sink)

        note = await entries.add_note("Groceries", "personal-notes")

        assert isinstance(note, Note)
        sink.notify.assert_called_once_with("Note Added", "Groceries", 5000)


class TestDeleteAndList:
    """Tests for entries.delete_item() and entries.list_items()."""

    async def test_delete_existing(self, store, sink, events):
        configure_sink(sink)
        note = await entries.add_note("Groceries")
        sink.reset_mock()

        assert await entries.delete_item(note.id) is True
        assert store.get_items() == []
        assert events[-1] == ("deleted", note.id)
        sink.notify.assert_called_once_with("Item Deleted", "Groceries", 5000)

    async def test_delete_unknown(self, store):
        assert await entries.delete_item("nope") is False

    async def test_list_by_kind(self, store):
        reminder = await entries.add_reminder("Call Bob", date="2024-01-01", time="09:00")
        note = await entries.add_note("Groceries")

        assert entries.list_items() == [reminder, note]
        assert entries.list_items("reminder") == [reminder]
        assert entries.list_items(ItemType.NOTE) == [note]

    async def test_list_unknown_kind(self, store):
        with pytest.raises(ValueError):
            entries.list_items("task")
