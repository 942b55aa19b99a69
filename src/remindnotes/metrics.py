"""
一个简单的运行时指标收集类，用于统计 tick 次数、触发的提醒、通知失败等信息，方便后续扩展和监控。
"""

from __future__ import annotations

import time
from dataclasses import dataclass


@dataclass
class RuntimeMetrics:
    tick_count: int = 0
    reminder_triggered_count: int = 0
    sink_failure_count: int = 0
    parse_warning_count: int = 0
    item_added_count: int = 0
    item_deleted_count: int = 0
    last_tick_at: float | None = None

    def record_tick(self) -> None:
        self.tick_count += 1
        self.last_tick_at = time.time()

    def record_reminder_triggered(self) -> None:
        self.reminder_triggered_count += 1

    def record_sink_failure(self) -> None:
        self.sink_failure_count += 1

    def record_parse_warning(self) -> None:
        self.parse_warning_count += 1

    def record_item_added(self) -> None:
        self.item_added_count += 1

    def record_item_deleted(self) -> None:
        self.item_deleted_count += 1

    def snapshot(self) -> dict:
        return {
            "tick_count": self.tick_count,
            "reminder_triggered_count": self.reminder_triggered_count,
            "sink_failure_count": self.sink_failure_count,
            "parse_warning_count": self.parse_warning_count,
            "item_added_count": self.item_added_count,
            "item_deleted_count": self.item_deleted_count,
            "last_tick_at_epoch": self.last_tick_at,
            "last_tick_at_utc": (
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.last_tick_at))
                if self.last_tick_at is not None
                else None
            ),
        }


runtime_metrics = RuntimeMetrics()


__all__ = ["RuntimeMetrics", "runtime_metrics"]
