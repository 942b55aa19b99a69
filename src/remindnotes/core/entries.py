"""条目录入服务

新增提醒/笔记、删除条目。每次修改都会持久化、在事件总线上广播，并发出一条提示。
提示发送失败只记录日志，不会撤销已经完成的修改。
"""

from __future__ import annotations

from datetime import date as _date
from functools import partial
from typing import Optional, Union

import remindnotes.storage.items as item_storage
from remindnotes.channels.base import get_sink, schedule_delivery
from remindnotes.config.settings import ENTRY_TOAST_DURATION_MS
from remindnotes.datamodel import *
from remindnotes.events import E, bus
from remindnotes.logger import get_logger
from remindnotes.metrics import runtime_metrics

logger = get_logger("entries")

__all__ = ["add_reminder", "add_note", "delete_item", "list_items"]


def _toast_failed(title: str, exc: BaseException) -> None:
    runtime_metrics.record_sink_failure()
    logger.warning(f"提示发送失败: title={title}, error={exc}")


def _toast(title: str, message: str) -> None:
    sink = get_sink()
    if sink is None:
        return
    try:
        schedule_delivery(
            sink.notify(title, message, ENTRY_TOAST_DURATION_MS),
            partial(_toast_failed, title),
        )
    except Exception as e:
        _toast_failed(title, e)


async def _admit(item: Item, toast_title: str) -> Item:
    await item_storage.add_item(item)
    runtime_metrics.record_item_added()
    bus.emit(E.ITEM_CREATED, item)
    logger.info(f"新增{item.type.value}: id={item.id}, title={item.title}")
    _toast(toast_title, item.title)
    return item


async def add_reminder(
    title: str,
    category: Union[str, ReminderCategory] = ReminderCategory.GENERAL,
    date: Union[str, _date, None] = None,
    time: Optional[str] = None,
) -> Reminder:
    """校验并保存新提醒，校验失败抛出 ValidationError，条目不会进入存储"""
    reminder = create_reminder(title=title, category=category, date=date, time=time)
    return await _admit(reminder, "Reminder Added")


async def add_note(
    title: str,
    category: Union[str, NoteCategory] = NoteCategory.GENERAL,
    date: Union[str, _date, None] = None,
    time: Optional[str] = None,
) -> Note:
    note = create_note(title=title, category=category, date=date, time=time)
    return await _admit(note, "Note Added")


async def delete_item(item_id: str) -> bool:
    removed = await item_storage.delete_item(item_id)
    if removed is None:
        logger.debug(f"删除的条目不存在: id={item_id}")
        return False
    runtime_metrics.record_item_deleted()
    bus.emit(E.ITEM_DELETED, removed)
    logger.info(f"删除{removed.type.value}: id={removed.id}, title={removed.title}")
    _toast("Item Deleted", removed.title)
    return True


def list_items(kind: Union[str, ItemType, None] = None) -> list[Item]:
    items = item_storage.get_items()
    if kind is None:
        return items
    kind = ItemType(kind)
    return [item for item in items if item.type == kind]
