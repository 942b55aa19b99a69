"""读取 loguru 写出的日志文件，供管理 API 查询

日志行格式见 remindnotes.logger.FILE_FORMAT:
    <时间> | <级别> | <组件> | <位置> - <消息>
"""

from __future__ import annotations

import re
from collections import deque
from pathlib import Path
from typing import Iterable

__all__ = ["LOG_LEVELS", "parse_levels", "read_log_tail"]

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")

_LINE_RE = re.compile(r"^[^|]+\|\s*(?P<level>[A-Z]+)\s*\|\s*(?P<component>[\w-]+)\s*\|")


def parse_levels(raw: str | None) -> set[str]:
    """'warning,error' -> {'WARNING', 'ERROR'}，未知级别忽略"""
    if not raw:
        return set()
    wanted = {part.strip().upper() for part in raw.split(",")}
    return wanted & set(LOG_LEVELS)


def _matches(line: str, levels: set[str], component: str | None, keyword: str) -> bool:
    if levels or component:
        m = _LINE_RE.match(line)
        # 续行(如异常堆栈)没有级别列，按条件过滤时一并丢弃
        if m is None:
            return False
        if levels and m.group("level") not in levels:
            return False
        if component and m.group("component") != component:
            return False
    return not keyword or keyword in line.lower()


def read_log_tail(
    path: Path,
    limit: int,
    *,
    levels: Iterable[str] = (),
    component: str | None = None,
    keyword: str | None = None,
) -> list[str]:
    """返回文件末尾最多 limit 条满足条件的行；文件不存在时返回空列表"""
    if not path.exists():
        return []
    level_set = set(levels)
    needle = (keyword or "").strip().lower()
    tail: deque[str] = deque(maxlen=limit)
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.rstrip("\n")
            if _matches(line, level_set, component, needle):
                tail.append(line)
    return list(tail)
