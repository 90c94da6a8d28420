"""Git Clone MCP 应用入口。

包含服务器生命周期管理和主入口点。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys

from mcp.server.stdio import stdio_server

from .config import get_config
from .orchestrator import RequestRegistry
from .server import create_server
from .signal_manager import SignalManager

__all__ = ["run_server", "main", "configure_logging"]

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


async def run_server() -> None:
    """运行 MCP Server（stdio 传输）。

    - SIGINT: 取消进行中的克隆（git 进程树随之被杀掉）
    - SIGTERM: 取消所有克隆并退出

    server_task 运行 MCP 会话，shutdown_watcher 在收到关闭请求后取消它。
    """
    config = get_config()
    logger.info(f"Starting Git Clone MCP Server: {config}")

    registry = RequestRegistry()
    server_task: asyncio.Task | None = None
    shutdown_watcher: asyncio.Task | None = None

    def on_shutdown() -> None:
        # 关闭 stdin 以中断 stdio_server 的阻塞读取
        try:
            sys.stdin.close()
            logger.debug("stdin closed to unblock stdio_server")
        except Exception as e:
            logger.debug(f"Error closing stdin: {e}")

    signal_manager = SignalManager(registry=registry, on_shutdown=on_shutdown)
    server = create_server(registry)

    async def _run_server_impl() -> None:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
        logger.debug("MCP server completed normally")

    async def _watch_shutdown() -> None:
        await signal_manager.wait_for_shutdown()
        logger.info("Shutdown signal received, cancelling server task...")
        if server_task and not server_task.done():
            server_task.cancel()

    try:
        await signal_manager.start()
        logger.info(
            f"Signal manager started (mode={signal_manager.sigint_mode.value}, "
            f"double_tap_window={signal_manager.double_tap_window}s)"
        )

        server_task = asyncio.create_task(_run_server_impl(), name="mcp-server")
        shutdown_watcher = asyncio.create_task(_watch_shutdown(), name="shutdown-watcher")

        try:
            await server_task
        except asyncio.CancelledError:
            logger.info("Server task cancelled by shutdown signal")

    finally:
        if shutdown_watcher and not shutdown_watcher.done():
            shutdown_watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await shutdown_watcher

        await signal_manager.stop()
        logger.info("run_server: cleanup completed")

        if signal_manager.is_force_exit:
            logger.warning("Force exit requested, terminating with exit code 130")
            sys.exit(130)  # 128 + SIGINT(2)


def configure_logging() -> None:
    """配置日志：默认 stderr/INFO，GCM_LOG_DEBUG 时写入临时文件/DEBUG。

    stdout 是 MCP 的传输通道，日志绝不能写到 stdout。
    """
    config = get_config()

    if config.log_debug and config.log_file:
        handler: logging.Handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        handler = logging.StreamHandler(sys.stderr)
        log_level = logging.INFO
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # root logger（第三方库）保持 WARNING
    logging.basicConfig(level=logging.WARNING, handlers=[handler])
    logging.getLogger("git_clone_mcp").setLevel(log_level)


def main() -> None:
    """主入口点。"""
    configure_logging()
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
