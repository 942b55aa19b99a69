"""
到期判定

提醒的目标时刻 = date + HH:MM:00 (主机本地时间，不做时区换算)。
判定条件: 0 <= now - target < tolerance
- now 早于 target 时不触发(不提前响铃)
- now 晚于 target 超过容差时不触发: 包括任何更早日期的提醒，进程休眠或重启后不会补发积压的闹钟
"""

from __future__ import annotations

from datetime import datetime, timedelta

from remindnotes.datamodel import Item, Reminder
from remindnotes.errors import ParseWarning
from remindnotes.utils import combine_local, to_local_naive

__all__ = [
    "DEFAULT_TOLERANCE", "ItemStatus",
    "is_alarm_eligible", "reminder_target", "check_due", "is_due", "describe_status",
]

DEFAULT_TOLERANCE = timedelta(seconds=60)


class ItemStatus:
    NOTE = "note"
    UNSCHEDULED = "unscheduled"
    INVALID = "invalid"
    NOTIFIED = "notified"
    PENDING = "pending"
    DUE = "due"
    MISSED = "missed"


def is_alarm_eligible(item: Item) -> bool:
    """只有 general-reminders 类、带 date/time、尚未通知过的提醒才参与判定"""
    return isinstance(item, Reminder) and item.alarm_eligible and not item.alarm_sent


def reminder_target(item: Reminder) -> datetime:
    try:
        return combine_local(item.date, item.time)
    except (TypeError, ValueError) as e:
        raise ParseWarning(
            f"无法解析提醒时间: id={item.id}, date={item.date!r}, time={item.time!r}: {e}",
            item_id=item.id,
        ) from e


def check_due(item: Item, now: datetime, tolerance: timedelta = DEFAULT_TOLERANCE) -> bool:
    """
    判断条目在 now 时刻是否到期。

    不满足闹钟条件的条目直接返回 False；date/time 无法解析时抛出 ParseWarning。
    """
    if not is_alarm_eligible(item):
        return False
    target = reminder_target(item)
    lag = to_local_naive(now) - target
    return timedelta(0) <= lag < tolerance


def is_due(item: Item, now: datetime, tolerance: timedelta = DEFAULT_TOLERANCE) -> bool:
    """check_due 的纯函数版本，无法解析的时间视为未到期"""
    try:
        return check_due(item, now, tolerance)
    except ParseWarning:
        return False


def describe_status(item: Item, now: datetime, tolerance: timedelta = DEFAULT_TOLERANCE) -> str:
    if not isinstance(item, Reminder):
        return ItemStatus.NOTE
    if not item.alarm_eligible:
        return ItemStatus.UNSCHEDULED
    if item.alarm_sent:
        return ItemStatus.NOTIFIED
    try:
        target = reminder_target(item)
    except ParseWarning:
        return ItemStatus.INVALID
    lag = to_local_naive(now) - target
    if lag < timedelta(0):
        return ItemStatus.PENDING
    if lag < tolerance:
        return ItemStatus.DUE
    return ItemStatus.MISSED
