# Shared fixtures for remindnotes tests.

from unittest.mock import MagicMock

import pytest

import remindnotes.storage.db_config as db_config
import remindnotes.storage.items as item_storage
from remindnotes.channels.base import NotificationSink, configure_sink
from remindnotes.world.reminder import configure_scheduler


@pytest.fixture(autouse=True)
def reset_process_handles():
    """Each test starts without a process-wide sink or scheduler."""
    configure_sink(None)
    configure_scheduler(None)
    yield
    configure_sink(None)
    configure_scheduler(None)


@pytest.fixture
async def store(tmp_path):
    """Fresh SQLite-backed item store, loaded and empty."""
    await db_config.init_db(str(tmp_path / "data" / "test.db"))
    await item_storage.load_items()
    yield item_storage
    await db_config.close_db()


@pytest.fixture
def sink():
    mock = MagicMock(spec=NotificationSink)
    mock.notify.return_value = None
    return mock
