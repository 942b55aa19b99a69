"""条目存储

所有条目序列化为一个 JSON 数组，保存在 kv_store 表的 reminders_notes 键下。
内存中的 _items 是权威快照：每次修改先同步替换快照，再写入数据库，
这样同一事件循环里后发生的修改总能看到前一次修改的结果。
"""

from __future__ import annotations

import json
import time
from typing import Any, Iterable, Sequence

import remindnotes.storage.db_config as db_config
from remindnotes.datamodel import Item, Note, Reminder
from remindnotes.errors import ParseWarning, ValidationError
from remindnotes.logger import get_logger

logger = get_logger("store")

STORAGE_KEY = "reminders_notes"

_items: list[Item] = []
_unparsed: list[tuple[int, Any]] = []  # (原数组下标, 原始记录)，保存时原样写回原位置


def _ensure_conn():
    if db_config.conn is None:
        raise RuntimeError("数据库未初始化，请先调用 init_db()")


# ----------------- 编解码 ----------------
def item_to_dict(item: Item) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": item.id,
        "type": item.type.value,
        "title": item.title,
        "category": item.category,
    }
    if item.date is not None:
        record["date"] = item.date
    if item.time is not None:
        record["time"] = item.time
    record["createdAt"] = item.created_at
    if isinstance(item, Reminder):
        record["alarmSent"] = item.alarm_sent
    return record


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def item_from_dict(raw: Any) -> Item:
    """解码单条记录；缺失的可选字段按默认值处理，未知字段忽略"""
    if not isinstance(raw, dict):
        raise ParseWarning(f"记录不是对象: {raw!r}")

    item_id = raw.get("id")
    if item_id is None or item_id == "":
        raise ParseWarning(f"记录缺少 id: {raw!r}")

    common = dict(
        id=str(item_id),
        title=str(raw.get("title") or ""),
        category=str(raw.get("category") or ""),
        created_at=str(raw.get("createdAt") or ""),
        date=_optional_str(raw.get("date")),
        time=_optional_str(raw.get("time")),
    )

    item_type = raw.get("type")
    if item_type == "reminder":
        return Reminder(**common, alarm_sent=raw.get("alarmSent") is True)
    if item_type == "note":
        return Note(**common)
    raise ParseWarning(f"未知条目类型: type={item_type!r}", item_id=str(item_id))


# ----------------- 读写 ----------------
async def _backup_corrupt(value: str) -> str:
    backup_key = f"{STORAGE_KEY}.corrupt.{int(time.time())}"
    await db_config.conn.execute(
        "INSERT OR REPLACE INTO kv_store (key, value, updated_at_utc) VALUES (?, ?, CURRENT_TIMESTAMP)",
        (backup_key, value),
    )
    await db_config.conn.commit()
    return backup_key


async def load_items() -> list[Item]:
    """从数据库加载全部条目；没有存储数据时返回空列表"""
    global _items, _unparsed
    _ensure_conn()
    async with db_config.conn.execute(
        "SELECT value FROM kv_store WHERE key = ?", (STORAGE_KEY,)
    ) as cursor:
        row = await cursor.fetchone()

    items: list[Item] = []
    unparsed: list[tuple[int, Any]] = []
    if row is not None:
        try:
            records = json.loads(row[0])
            if not isinstance(records, list):
                raise ValueError(f"顶层结构不是数组: {type(records).__name__}")
        except ValueError as e:
            backup_key = await _backup_corrupt(row[0])
            logger.error(f"条目数据无法解析, 已备份到 {backup_key} 并按空集合处理: {e}")
            records = []

        seen_ids: set[str] = set()
        for index, raw in enumerate(records):
            try:
                item = item_from_dict(raw)
            except ParseWarning as w:
                logger.warning(f"跳过无法解码的记录(保存时原样保留): {w}")
                unparsed.append((index, raw))
                continue
            if item.id in seen_ids:
                logger.warning(f"跳过重复 id 的记录(保存时原样保留): id={item.id}")
                unparsed.append((index, raw))
                continue
            seen_ids.add(item.id)
            items.append(item)

    _items = items
    _unparsed = unparsed
    logger.info(f"已加载条目: count={len(items)}, unparsed={len(unparsed)}")
    return list(items)


def _merge_unparsed(records: list[Any]) -> list[Any]:
    # 按原下标升序插回；条目未变时得到与加载前完全相同的数组
    for index, raw in _unparsed:
        records.insert(min(index, len(records)), raw)
    return records


async def _write(items: Sequence[Item]) -> None:
    _ensure_conn()
    payload = json.dumps(
        _merge_unparsed([item_to_dict(item) for item in items]),
        ensure_ascii=False,
    )
    try:
        await db_config.conn.execute(
            "INSERT INTO kv_store (key, value, updated_at_utc) VALUES (?, ?, CURRENT_TIMESTAMP) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at_utc = CURRENT_TIMESTAMP",
            (STORAGE_KEY, payload),
        )
        await db_config.conn.commit()
    except Exception:
        await db_config.conn.rollback()
        raise
    logger.trace(f"条目已保存: count={len(items)}")


async def _commit(new_items: list[Item], *, rollback: bool = True) -> None:
    global _items
    previous = _items
    _items = new_items
    try:
        await _write(new_items)
    except Exception as e:
        # 写入失败时回退快照，前提是期间没有别的修改覆盖它
        if rollback and _items is new_items:
            _items = previous
        logger.opt(exception=e).error(f"保存条目失败: {e}")
        raise


async def save_items(items: Iterable[Item]) -> None:
    """整体替换并持久化条目集合；要么全部写入，要么保持原状态"""
    await _commit(list(items))


def get_items() -> list[Item]:
    """返回当前已提交状态的副本"""
    return list(_items)


def find_item(item_id: str) -> Item | None:
    for item in _items:
        if item.id == item_id:
            return item
    return None


async def add_item(item: Item) -> Item:
    if find_item(item.id) is not None:
        raise ValidationError(f"id 已存在: {item.id}", field="id")
    await _commit([*_items, item])
    logger.trace(f"新增条目: id={item.id}, type={item.type.value}, title={item.title}")
    return item


async def delete_item(item_id: str) -> Item | None:
    """按 id 删除条目，返回被删除的条目；不存在时返回 None"""
    target = find_item(item_id)
    if target is None:
        return None
    await _commit([item for item in _items if item.id != item_id])
    logger.trace(f"删除条目: id={item_id}")
    return target


async def mark_alarm_sent(fired: Sequence[Reminder]) -> list[Reminder]:
    """
    把本次 tick 触发的提醒标记为 alarm_sent=True。

    按 id 与当前状态合并：只更新仍然存在、且与 tick 读取时一致的条目，
    期间被删除的条目不会被写回，被修改的条目保持修改后的内容。

    Returns:
        实际被更新的提醒。
    """
    seen_by_id = {r.id: r for r in fired}
    updated: list[Reminder] = []
    new_items: list[Item] = []
    for item in _items:
        seen = seen_by_id.get(item.id)
        if isinstance(item, Reminder) and seen is not None and item == seen and not item.alarm_sent:
            item = item.mark_alarm_sent()
            updated.append(item)
        new_items.append(item)

    skipped = set(seen_by_id) - {r.id for r in updated}
    if skipped:
        logger.debug(f"以下提醒在 tick 期间已被删除或修改, 未回写 alarm_sent: {sorted(skipped)}")

    if updated:
        try:
            await _commit(new_items, rollback=False)
        except Exception:
            # 通知已经发出，内存中的 alarm_sent 不回退，下次保存时一并写入
            logger.warning(f"alarm_sent 暂未持久化, 将随下次保存写入: {[r.id for r in updated]}")
    return updated


__all__ = [
    "STORAGE_KEY", "item_to_dict", "item_from_dict",
    "load_items", "save_items", "get_items", "find_item",
    "add_item", "delete_item", "mark_alarm_sent",
]
