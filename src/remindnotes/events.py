"""事件总线模块，定义了事件总线类 Bus 及事件名集合 E

事件均为普通事件，允许多个处理器注册。处理器既可以是普通函数也可以是协程函数；
协程处理器需要在事件循环运行时触发。
"""

from __future__ import annotations
from pyee.asyncio import AsyncIOEventEmitter
from typing import Awaitable, Callable, Union

from remindnotes.logger import get_logger

logger = get_logger("events")

Handler = Callable[..., Union[Awaitable[None], None]]


# 事件名集中定义
class E:
    ITEM_CREATED = "item.created"
    ITEM_DELETED = "item.deleted"
    REMINDER_TRIGGERED = "reminder.triggered"
    TOAST_SHOWN = "toast.shown"


class Bus(AsyncIOEventEmitter):
    def on(self, event: str, f: Handler | None = None):
        """注册事件处理器，可作为装饰器使用"""
        if f is not None:
            logger.debug(f"注册事件处理器: {event} -> {getattr(f, '__name__', f)}")
            return super().on(event, f)

        def decorator(handler: Handler) -> Handler:
            logger.debug(f"注册事件处理器: {event} -> {handler.__name__}")
            super(Bus, self).on(event, handler)
            return handler

        return decorator


bus = Bus()


@bus.on("error")
def _log_handler_error(exc: BaseException) -> None:
    # 处理器抛出的异常由 pyee 转发到 error 事件，只记录日志，不影响触发方
    logger.opt(exception=exc).error(f"事件处理器异常: {exc}")


__all__ = ["bus", "E", "Bus"]
