"""
闹钟调度器

每隔 interval 秒执行一次 tick:
1. 取一次 now，整轮 tick 共用;
2. 读取存储的最新快照(不缓存)，逐条做到期判定;
3. 到期的提醒通知一次，并把 alarm_sent 置为 True 后按 id 合并回存储。

同一时刻只有一个 tick 在执行；alarm_sent 只会从 False 变为 True，因此每条提醒至多通知一次。
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from functools import partial
from typing import AsyncIterator, Callable

import remindnotes.storage.items as item_storage
from remindnotes.channels.base import NotificationSink, get_sink, schedule_delivery
from remindnotes.config.settings import (
    ALARM_CHECK_INTERVAL_SECONDS,
    ALARM_MESSAGE_TEMPLATE,
    ALARM_TOAST_DURATION_MS,
    ALARM_TOLERANCE_SECONDS,
)
from remindnotes.datamodel import Item, Reminder
from remindnotes.errors import ParseWarning, SinkFailure
from remindnotes.events import E, bus
from remindnotes.logger import get_logger
from remindnotes.metrics import runtime_metrics
from remindnotes.utils import now_local
from remindnotes.world.due import check_due

logger = get_logger("scheduler")

__all__ = [
    "AlarmScheduler", "configure_scheduler", "require_scheduler", "get_status",
    "alarm_scheduler_running", "main_loop",
]


class AlarmScheduler:
    def __init__(
        self,
        sink: NotificationSink | None = None,
        *,
        interval_seconds: float = ALARM_CHECK_INTERVAL_SECONDS,
        tolerance_seconds: float = ALARM_TOLERANCE_SECONDS,
        toast_duration_ms: int = ALARM_TOAST_DURATION_MS,
        message_template: str = ALARM_MESSAGE_TEMPLATE,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds 必须大于 0: {interval_seconds}")
        if tolerance_seconds <= 0:
            raise ValueError(f"tolerance_seconds 必须大于 0: {tolerance_seconds}")

        self._sink = sink
        self.interval_seconds = float(interval_seconds)
        self.tolerance = timedelta(seconds=tolerance_seconds)
        self.toast_duration_ms = int(toast_duration_ms)
        self.message_template = message_template
        self._clock = clock

        self._task: asyncio.Task[None] | None = None
        self._tick_lock = asyncio.Lock()
        self._inflight_tick: asyncio.Future | None = None
        self._reported_parse_errors: set[tuple[str, str | None, str | None]] = set()

        self.tick_count = 0
        self.fired_count = 0
        self.last_tick_at: datetime | None = None

    # ----------------- 生命周期 ----------------
    @property
    def sink(self) -> NotificationSink | None:
        # 未单独指定时使用进程级通道，更换通道无需重启调度器
        return self._sink if self._sink is not None else get_sink()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        """启动定时器；已有定时器时先取消再替换"""
        self._cancel_task()
        self._task = asyncio.create_task(self._runner(), name="alarm-scheduler")
        return self._task

    def _cancel_task(self) -> asyncio.Task[None] | None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        return task

    async def stop(self) -> None:
        """取消定时器并等待其退出；正在执行的 tick 会先完成(包括 alarm_sent 的写回)"""
        task = self._cancel_task()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

        inflight, self._inflight_tick = self._inflight_tick, None
        if inflight is not None:
            if not inflight.done():
                logger.info("等待进行中的 tick 完成...")
            try:
                await inflight
            except Exception as e:
                logger.exception(f"闹钟 tick 失败: {e}")
        logger.info("闹钟调度器已停止")

    async def _runner(self) -> None:
        logger.info(
            f"闹钟调度器已启动: interval={self.interval_seconds}s, "
            f"tolerance={self.tolerance.total_seconds()}s"
        )
        while True:
            # 与 setInterval 一致，先等待一个间隔再执行第一次 tick
            await asyncio.sleep(self.interval_seconds)
            # tick 已经发出通知后不能被取消打断，否则 alarm_sent 来不及写回；stop() 会等待它完成
            self._inflight_tick = asyncio.ensure_future(self.tick())
            try:
                await asyncio.shield(self._inflight_tick)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"闹钟 tick 失败, 下个周期继续: {e}")
            self._inflight_tick = None

    # ----------------- tick ----------------
    async def tick(self, now: datetime | None = None) -> list[Reminder]:
        """
        执行一轮到期检查。

        Args:
            now: 本轮使用的参考时刻，缺省时读取时钟。

        Returns:
            本轮被标记为 alarm_sent 的提醒(更新后的副本)。
        """
        async with self._tick_lock:
            now = now if now is not None else self._clock()
            snapshot = item_storage.get_items()

            fired: list[Reminder] = []
            for item in snapshot:
                try:
                    due = check_due(item, now, self.tolerance)
                except ParseWarning as w:
                    self._report_parse_warning(item, w)
                    continue
                if due:
                    self._notify(item)
                    fired.append(item)

            self.tick_count += 1
            self.last_tick_at = now
            runtime_metrics.record_tick()

            if not fired:
                logger.trace(f"tick 完成: now={now.isoformat(timespec='seconds')}, items={len(snapshot)}, fired=0")
                return []

            self.fired_count += len(fired)
            updated = await item_storage.mark_alarm_sent(fired)
            for reminder in updated:
                bus.emit(E.REMINDER_TRIGGERED, reminder)

            logger.info(
                f"tick 完成: now={now.isoformat(timespec='seconds')}, "
                f"fired={len(fired)}, committed={len(updated)}"
            )
            return updated

    def _notify(self, reminder: Reminder) -> None:
        runtime_metrics.record_reminder_triggered()
        try:
            sink = self.sink
            if sink is None:
                raise SinkFailure("未配置通知通道")
            message = self.message_template.format(title=reminder.title)
            schedule_delivery(
                sink.notify(reminder.title, message, self.toast_duration_ms),
                partial(self._record_sink_failure, reminder),
            )
        except Exception as e:
            self._record_sink_failure(reminder, e)

    def _record_sink_failure(self, reminder: Reminder, exc: BaseException) -> None:
        # 通知失败不重试，alarm_sent 照常写回
        runtime_metrics.record_sink_failure()
        logger.opt(exception=exc).error(f"提醒通知失败: id={reminder.id}, title={reminder.title}, error={exc}")

    def _report_parse_warning(self, item: Item, warning: ParseWarning) -> None:
        key = (item.id, item.date, item.time)
        if key in self._reported_parse_errors:
            return
        self._reported_parse_errors.add(key)
        runtime_metrics.record_parse_warning()
        logger.warning(f"{warning}; 该提醒将被跳过")

    def get_status(self) -> dict[str, object]:
        return {
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "tolerance_seconds": self.tolerance.total_seconds(),
            "tick_count": self.tick_count,
            "fired_count": self.fired_count,
            "last_tick_at": self.last_tick_at.isoformat(timespec="seconds") if self.last_tick_at else None,
        }


# ----------------- 进程级句柄 ----------------
_scheduler: AlarmScheduler | None = None


def configure_scheduler(scheduler: AlarmScheduler | None) -> None:
    global _scheduler
    if _scheduler is not None and _scheduler is not scheduler:
        _scheduler._cancel_task()
    _scheduler = scheduler


def require_scheduler() -> AlarmScheduler:
    if _scheduler is None:
        raise RuntimeError("闹钟调度器尚未配置，请先调用 configure_scheduler()")
    return _scheduler


def get_status() -> dict[str, object]:
    if _scheduler is None:
        return {"configured": False, "running": False, "last_tick_at": None}
    return {"configured": True, **_scheduler.get_status()}


@asynccontextmanager
async def alarm_scheduler_running(scheduler: AlarmScheduler) -> AsyncIterator[AlarmScheduler]:
    """启动调度器，并保证任何退出路径上都会停止它"""
    scheduler.start()
    try:
        yield scheduler
    finally:
        await scheduler.stop()


async def main_loop(shutdown_event: asyncio.Event, scheduler: AlarmScheduler | None = None) -> None:
    scheduler = scheduler or require_scheduler()
    logger.info("Reminder 主循环已启动")
    async with alarm_scheduler_running(scheduler):
        await shutdown_event.wait()
    logger.info("Reminder 主循环已关闭")
