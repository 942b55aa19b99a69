from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date as _date
from enum import Enum
from typing import Optional, Union

from ulid import ULID

from remindnotes.errors import ValidationError
from remindnotes.utils import now_utc_iso, parse_hhmm, parse_iso_date

__all__ = [
    "ItemType", "ReminderCategory", "NoteCategory",
    "Reminder", "Note", "Item",
    "create_reminder", "create_note",
]


class ItemType(str, Enum):
    REMINDER = "reminder"
    NOTE = "note"


class ReminderCategory(str, Enum):
    GENERAL = "general-reminders"  # 唯一会触发闹钟的分类
    APPOINTMENT = "appointment-reminders"
    MEDICATION = "medication-reminders"
    BILL = "bill-reminders"


class NoteCategory(str, Enum):
    GENERAL = "general-notes"
    PERSONAL = "personal-notes"
    WORK = "work-notes"
    IDEAS = "ideas"


# ----------------- 条目数据模型 ----------------
@dataclass(frozen=True)
class Reminder:
    id: str
    title: str
    category: str
    created_at: str  # ISO-8601 UTC
    date: Optional[str] = None  # 格式: "YYYY-MM-DD"
    time: Optional[str] = None  # 格式: "HH:MM"
    alarm_sent: bool = False

    @property
    def type(self) -> ItemType:
        return ItemType.REMINDER

    @property
    def alarm_eligible(self) -> bool:
        return (
            self.category == ReminderCategory.GENERAL
            and bool(self.date)
            and bool(self.time)
        )

    def mark_alarm_sent(self) -> "Reminder":
        """返回 alarm_sent=True 的新副本，只允许 False -> True"""
        if not self.alarm_eligible:
            raise ValueError(f"提醒不满足闹钟条件, 不能标记 alarm_sent: id={self.id}")
        if self.alarm_sent:
            return self
        return replace(self, alarm_sent=True)


@dataclass(frozen=True)
class Note:
    id: str
    title: str
    category: str
    created_at: str
    date: Optional[str] = None
    time: Optional[str] = None

    @property
    def type(self) -> ItemType:
        return ItemType.NOTE


Item = Union[Reminder, Note]


# ----------------- 创建与校验 ----------------
def _check_title(title: str) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("标题不能为空", field="title")
    return title.strip()


def _check_category(category: str, allowed: type[Enum]) -> str:
    values = {c.value for c in allowed}
    value = category.value if isinstance(category, Enum) else category
    if value not in values:
        raise ValidationError(f"未知分类: {category!r}, 可选: {sorted(values)}", field="category")
    return value


def _normalize_date(value: Union[str, _date, None]) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, _date):
        return value.isoformat()
    try:
        return parse_iso_date(value).isoformat()
    except ValueError:
        raise ValidationError(f"日期格式非法, 预期 YYYY-MM-DD: {value!r}", field="date")


def _normalize_time(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        return parse_hhmm(value).strftime("%H:%M")
    except ValueError:
        raise ValidationError(f"时间格式非法, 预期 HH:MM (00-23:00-59): {value!r}", field="time")


def create_reminder(
    title: str,
    category: Union[str, ReminderCategory] = ReminderCategory.GENERAL,
    date: Union[str, _date, None] = None,
    time: Optional[str] = None,
) -> Reminder:
    """创建新提醒，id 与 created_at 由系统分配"""
    title = _check_title(title)
    category = _check_category(category, ReminderCategory)
    day = _normalize_date(date)
    hhmm = _normalize_time(time)

    if category == ReminderCategory.GENERAL and (day is None or hhmm is None):
        missing = "date" if day is None else "time"
        raise ValidationError(f"{category} 类提醒必须同时提供 date 和 time", field=missing)

    return Reminder(
        id=str(ULID()),
        title=title,
        category=category,
        created_at=now_utc_iso(),
        date=day,
        time=hhmm,
        alarm_sent=False,
    )


def create_note(
    title: str,
    category: Union[str, NoteCategory] = NoteCategory.GENERAL,
    date: Union[str, _date, None] = None,
    time: Optional[str] = None,
) -> Note:
    """创建新笔记；笔记不参与闹钟逻辑，date/time 原样保存"""
    title = _check_title(title)
    category = _check_category(category, NoteCategory)
    if isinstance(date, _date):
        date = date.isoformat()

    return Note(
        id=str(ULID()),
        title=title,
        category=category,
        created_at=now_utc_iso(),
        date=date or None,
        time=time or None,
    )
