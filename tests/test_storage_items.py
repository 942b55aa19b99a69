# Tests for the SQLite-backed item store.

import json
from dataclasses import replace

import pytest

import remindnotes.storage.db_config as db_config
from remindnotes.datamodel import Note, Reminder, create_note, create_reminder
from remindnotes.errors import ValidationError
from remindnotes.storage.items import STORAGE_KEY, item_from_dict, item_to_dict


async def _raw_value(key=STORAGE_KEY):
    async with db_config.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
        row = await cursor.fetchone()
    return None if row is None else row[0]


async def _put_raw(value, key=STORAGE_KEY):
    await db_config.conn.execute(
        "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)", (key, value)
    )
    await db_config.conn.commit()


class TestLoadSave:
    """Tests for load_items()/save_items()."""

    async def test_load_without_data_is_empty(self, store):
        assert await store.load_items() == []
        assert store.get_items() == []

    async def test_round_trip_preserves_order_and_fields(self, store):
        items = [
            create_reminder("Call Bob", date="2024-01-01", time="09:00"),
            create_note("Groceries", "personal-notes"),
            create_reminder("Pay rent", "bill-reminders"),
            Reminder(
                id="legacy-1",
                title="Old",
                category="general-reminders",
                created_at="2023-01-01T00:00:00.000Z",
                date="2023-01-01",
                time="08:00",
                alarm_sent=True,
            ),
        ]
        await store.save_items(items)

        loaded = await store.load_items()
        assert loaded == items

        await store.save_items(loaded)
        assert await store.load_items() == items

    async def test_persisted_layout(self, store):
        reminder = create_reminder("Call Bob", date="2024-01-01", time="09:00")
        note = create_note("Groceries")
        await store.save_items([reminder, note])

        records = json.loads(await _raw_value())
        assert records[0] == {
            "id": reminder.id,
            "type": "reminder",
            "title": "Call Bob",
            "category": "general-reminders",
            "date": "2024-01-01",
            "time": "09:00",
            "createdAt": reminder.created_at,
            "alarmSent": False,
        }
        assert records[1]["type"] == "note"
        assert "alarmSent" not in records[1]
        assert "date" not in records[1]

    async def test_save_is_idempotent(self, store):
        items = [create_note("A"), create_note("B")]
        await store.save_items(items)
        first = await _raw_value()
        await store.save_items(items)
        assert await _raw_value() == first

    async def test_missing_optional_fields_tolerated(self, store):
        await _put_raw(json.dumps([
            {"id": "1", "type": "reminder", "title": "Old reminder", "category": "general-reminders"},
            {"id": "2", "type": "note", "title": "Old note", "extra": "ignored"},
        ]))

        loaded = await store.load_items()
        assert loaded[0] == Reminder(
            id="1", title="Old reminder", category="general-reminders", created_at="",
        )
        assert isinstance(loaded[1], Note)
        assert loaded[1].category == ""

    async def test_undecodable_records_are_kept_verbatim(self, store):
        bogus = {"id": "x", "type": "task", "title": "Unknown kind"}
        no_id = {"type": "note", "title": "No id"}
        await _put_raw(json.dumps([bogus, {"id": "1", "type": "note", "title": "ok"}, no_id]))

        loaded = await store.load_items()
        assert [i.id for i in loaded] == ["1"]

        await store.save_items(loaded)
        records = json.loads(await _raw_value())
        assert records == [bogus, item_to_dict(loaded[0]), no_id]

    async def test_undecodable_records_stay_in_place_after_changes(self, store):
        bogus = {"id": "x", "type": "task", "title": "Unknown kind"}
        await _put_raw(json.dumps([
            {"id": "1", "type": "note", "title": "a"},
            bogus,
            {"id": "2", "type": "note", "title": "b"},
        ]))
        loaded = await store.load_items()

        await store.delete_item("2")
        records = json.loads(await _raw_value())
        assert records == [item_to_dict(loaded[0]), bogus]

    async def test_duplicate_ids_keep_first(self, store):
        await _put_raw(json.dumps([
            {"id": "1", "type": "note", "title": "first"},
            {"id": "1", "type": "note", "title": "second"},
        ]))
        loaded = await store.load_items()
        assert [i.title for i in loaded] == ["first"]

        await store.save_items(loaded)
        records = json.loads(await _raw_value())
        assert [r["title"] for r in records] == ["first", "second"]

    async def test_corrupt_blob_is_backed_up(self, store):
        await _put_raw("{not json")

        assert await store.load_items() == []

        async with db_config.conn.execute(
            "SELECT value FROM kv_store WHERE key LIKE ?", (f"{STORAGE_KEY}.corrupt.%",)
        ) as cursor:
            rows = await cursor.fetchall()
        assert [r[0] for r in rows] == ["{not json"]

    async def test_failed_write_keeps_previous_state(self, store, monkeypatch):
        original = [create_note("keep me")]
        await store.save_items(original)

        async def broken_write(items):
            raise RuntimeError("disk full")

        monkeypatch.setattr(store, "_write", broken_write)
        with pytest.raises(RuntimeError):
            await store.save_items([create_note("lost")])

        assert store.get_items() == original

    async def test_requires_init(self, store):
        await db_config.close_db()
        with pytest.raises(RuntimeError):
            await store.load_items()


class TestMutations:
    """Tests for add/delete/mark_alarm_sent."""

    async def test_add_and_find(self, store):
        note = await store.add_item(create_note("A"))
        assert store.find_item(note.id) == note
        assert [i.id for i in await store.load_items()] == [note.id]

    async def test_add_duplicate_id_rejected(self, store):
        note = await store.add_item(create_note("A"))
        with pytest.raises(ValidationError):
            await store.add_item(replace(note, title="B"))
        assert len(store.get_items()) == 1

    async def test_delete(self, store):
        a = await store.add_item(create_note("A"))
        b = await store.add_item(create_note("B"))

        removed = await store.delete_item(a.id)
        assert removed == a
        assert store.get_items() == [b]
        assert await store.delete_item("missing") is None

    async def test_get_items_returns_copy(self, store):
        await store.add_item(create_note("A"))
        snapshot = store.get_items()
        snapshot.clear()
        assert len(store.get_items()) == 1

    async def test_mark_alarm_sent_preserves_order_and_others(self, store):
        before = create_note("before")
        target = create_reminder("Call Bob", date="2024-01-01", time="09:00")
        after = create_reminder("Later", date="2024-01-02", time="10:00")
        await store.save_items([before, target, after])

        updated = await store.mark_alarm_sent([target])

        assert updated == [replace(target, alarm_sent=True)]
        items = await store.load_items()
        assert items == [before, replace(target, alarm_sent=True), after]

    async def test_mark_alarm_sent_does_not_resurrect_deleted(self, store):
        target = create_reminder("Call Bob", date="2024-01-01", time="09:00")
        await store.save_items([target])
        snapshot = store.get_items()

        await store.delete_item(target.id)
        updated = await store.mark_alarm_sent(snapshot)

        assert updated == []
        assert store.get_items() == []
        assert await store.load_items() == []

    async def test_mark_alarm_sent_skips_concurrently_replaced_item(self, store):
        target = create_reminder("Call Bob", date="2024-01-01", time="09:00")
        await store.save_items([target])

        edited = replace(target, time="10:00")
        await store.save_items([edited])
        updated = await store.mark_alarm_sent([target])

        assert updated == []
        assert store.get_items() == [edited]

    async def test_mark_alarm_sent_keeps_flag_when_write_fails(self, store, monkeypatch):
        target = create_reminder("Call Bob", date="2024-01-01", time="09:00")
        await store.save_items([target])

        async def broken_write(items):
            raise RuntimeError("disk full")

        monkeypatch.setattr(store, "_write", broken_write)
        updated = await store.mark_alarm_sent([target])

        assert updated[0].alarm_sent is True
        assert store.get_items()[0].alarm_sent is True


class TestCodec:
    """Tests for item_to_dict()/item_from_dict()."""

    def test_alarm_sent_only_true_when_true(self):
        item = item_from_dict({"id": "1", "type": "reminder", "title": "t", "alarmSent": "yes"})
        assert item.alarm_sent is False

    def test_note_ignores_alarm_sent(self):
        item = item_from_dict({"id": "1", "type": "note", "title": "t", "alarmSent": True})
        assert isinstance(item, Note)
        assert "alarmSent" not in item_to_dict(item)
