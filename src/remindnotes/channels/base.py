import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from remindnotes.errors import SinkFailure
from remindnotes.logger import get_logger

logger = get_logger("notify")

__all__ = [
    "NotificationSink", "FanoutSink", "schedule_delivery",
    "configure_sink", "require_sink", "get_sink",
]


class NotificationSink(ABC):
    """应用内提示(toast)的输出通道。可以同步完成，也可以返回 awaitable；失败不会重试。"""

    @abstractmethod
    def notify(self, title: str, message: str, visibility_duration_ms: int) -> Optional[Awaitable[None]]:
        pass


# 后台投递中的通知，持有引用直到完成
_in_flight: set[asyncio.Future] = set()


def schedule_delivery(
    result: Any,
    on_error: Callable[[BaseException], None],
) -> Optional[asyncio.Future]:
    """
    notify 返回 awaitable 时把它放到后台执行，不等待结果。

    失败(不含取消)时调用 on_error；同步返回时什么都不做。
    """
    if not inspect.isawaitable(result):
        return None
    future = asyncio.ensure_future(result)
    _in_flight.add(future)

    def _done(f: asyncio.Future) -> None:
        _in_flight.discard(f)
        if f.cancelled():
            return
        exc = f.exception()
        if exc is not None:
            on_error(exc)

    future.add_done_callback(_done)
    return future


class FanoutSink(NotificationSink):
    """
    把同一条提示分发给多个通道，单个通道失败不影响其他通道。

    同步通道失败时抛出 SinkFailure；有异步通道时返回一个协程，
    等待全部异步通道完成，任一失败同样抛出 SinkFailure。
    """

    def __init__(self, sinks: Iterable[NotificationSink]) -> None:
        self.sinks = list(sinks)

    def notify(self, title: str, message: str, visibility_duration_ms: int) -> Optional[Awaitable[None]]:
        failures: list[str] = []
        pending: list[tuple[str, asyncio.Future]] = []
        for sink in self.sinks:
            name = sink.__class__.__name__
            try:
                future = schedule_delivery(
                    sink.notify(title, message, visibility_duration_ms),
                    lambda exc, name=name: logger.warning(f"通知通道 {name} 失败: {exc}"),
                )
            except Exception as e:
                logger.warning(f"通知通道 {name} 失败: {e}")
                failures.append(f"{name}: {e}")
                continue
            if future is not None:
                pending.append((name, future))

        if failures:
            raise SinkFailure("; ".join(failures))
        if pending:
            return self._join(pending)
        return None

    @staticmethod
    async def _join(pending: list[tuple[str, asyncio.Future]]) -> None:
        results = await asyncio.gather(*(f for _, f in pending), return_exceptions=True)
        failures = [
            f"{name}: {result}"
            for (name, _), result in zip(pending, results)
            if isinstance(result, Exception)
        ]
        if failures:
            raise SinkFailure("; ".join(failures))


_sink: Union[NotificationSink, None] = None


def configure_sink(sink: Union[NotificationSink, None]) -> None:
    global _sink
    _sink = sink


def get_sink() -> Union[NotificationSink, None]:
    return _sink


def require_sink() -> NotificationSink:
    if _sink is None:
        raise RuntimeError("通知通道尚未配置，请先调用 configure_sink()")
    return _sink
