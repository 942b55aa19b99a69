from remindnotes.logger import setup_logging, logger
from remindnotes.config.settings import *

import asyncio
import signal
from typing import Awaitable

import remindnotes.storage.db_config as db_config
import remindnotes.storage.items as item_storage
import remindnotes.world.reminder as reminder_world
from remindnotes.admin.http_server import main_loop as admin_http_main
from remindnotes.channels.base import FanoutSink, configure_sink
from remindnotes.channels.console import LoggerSink
from remindnotes.channels.toast import ToastFeed
from remindnotes.world.reminder import AlarmScheduler, configure_scheduler

shutdown_event = asyncio.Event()


def signal_handler(sig, frame):
    """处理 SIGINT / SIGTERM 信号"""
    logger.info("收到中断信号,正在依次关闭组件...")
    shutdown_event.set()


async def _supervise(name: str, component: Awaitable[None], shutdown_event: asyncio.Event) -> None:
    try:
        await component
    except Exception as e:
        logger.exception(f"组件 {name} 异常退出: {e}")
        raise
    finally:
        # 任一组件退出都触发整体关闭，其余组件在 shutdown_event 置位后自行收尾
        shutdown_event.set()


async def run_components(shutdown_event: asyncio.Event, components: dict[str, Awaitable[None]]) -> list[BaseException]:
    """
    并发运行各组件，直到全部退出。

    某个组件失败不会打断其他组件的收尾(例如调度器写回 alarm_sent)，
    返回收集到的异常，由调用方在收尾完成后处理。
    """
    results = await asyncio.gather(
        *(_supervise(name, component, shutdown_event) for name, component in components.items()),
        return_exceptions=True,
    )
    return [r for r in results if isinstance(r, BaseException)]


async def main():
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    await db_config.init_db(STORE_DB_PATH)

    try:
        await item_storage.load_items()

        toast_feed = ToastFeed(maxlen=TOAST_FEED_SIZE)
        configure_sink(FanoutSink([LoggerSink(), toast_feed]))
        scheduler = AlarmScheduler()
        configure_scheduler(scheduler)

        components = {"reminder": reminder_world.main_loop(shutdown_event, scheduler)}
        if ENABLE_ADMIN_HTTP:
            components["admin_http"] = admin_http_main(shutdown_event, toast_feed)
        else:
            logger.warning("Admin HTTP 服务已禁用")

        errors = await run_components(shutdown_event, components)
        if errors:
            raise errors[0]
    finally:
        logger.info("关闭 Remindnotes...")
        shutdown_event.set()
        configure_scheduler(None)
        configure_sink(None)

        logger.info("关闭数据库连接...")
        await db_config.close_db()
        logger.info("Remindnotes 已关闭")


def run() -> None:
    setup_logging(
        log_level=LOG_LEVEL,
        log_file=LOG_FILE,
        console_level=CONSOLE_LOG_LEVEL,
        rotation=LOG_ROTATION,
        retention_days=LOG_RETENTION_DAYS,
    )
    logger.info("启动 Remindnotes...")
    asyncio.run(main())


if __name__ == "__main__":
    run()
