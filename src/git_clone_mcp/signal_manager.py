"""信号管理模块。

把 OS 信号转换为对进行中克隆请求的操作：
- SIGINT: 按 GCM_SIGINT_MODE 取消克隆或退出
- SIGTERM: 取消所有克隆并优雅退出

被取消的请求由 RepositoryInstaller 杀掉 git 进程树，这里只负责取消 Task。

SIGINT 模式：
- cancel: 有克隆时取消它们，没有时退出
- exit: 直接退出
- cancel_then_exit: 先取消，窗口内再按一次 Ctrl+C 强制退出
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from typing import Callable

from .config import SigintMode, get_config
from .orchestrator import RequestRegistry

__all__ = ["SignalManager", "SigintMode"]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


class SignalManager:
    """SIGINT/SIGTERM 处理器。

    Example:
        ```python
        registry = RequestRegistry()
        signal_manager = SignalManager(registry, on_shutdown=close_stdin)

        await signal_manager.start()
        try:
            await serve()
        finally:
            await signal_manager.stop()
        ```
    """

    def __init__(
        self,
        registry: RequestRegistry,
        sigint_mode: SigintMode | None = None,
        double_tap_window: float | None = None,
        on_shutdown: Callable[[], None] | None = None,
    ) -> None:
        """初始化。

        Args:
            registry: 活动请求注册表
            sigint_mode: SIGINT 模式（None 时读取 GCM_SIGINT_MODE）
            double_tap_window: 强制退出窗口秒数（None 时读取 GCM_SIGINT_DOUBLE_TAP_WINDOW）
            on_shutdown: 关闭请求发出时同步调用（例如关闭 stdin）
        """
        config = get_config()
        self.registry = registry
        self.sigint_mode = config.sigint_mode if sigint_mode is None else sigint_mode
        self.double_tap_window = (
            config.sigint_double_tap_window if double_tap_window is None else double_tap_window
        )
        self._on_shutdown = on_shutdown

        self._loop: asyncio.AbstractEventLoop | None = None
        self._shutdown_event: asyncio.Event | None = None
        self._previous_sigint = None
        self._running = False

        self._last_sigint_time = 0.0
        self._shutdown_requested = False
        self._force_exit = False

    @property
    def is_shutdown_requested(self) -> bool:
        return self._shutdown_requested

    @property
    def is_force_exit(self) -> bool:
        return self._force_exit

    # =========================================================================
    # 生命周期
    # =========================================================================

    async def start(self) -> None:
        """在当前事件循环上安装信号处理器。"""
        if self._running:
            logger.warning("SignalManager already running")
            return

        self._loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()
        self._install_handlers()
        self._running = True
        logger.debug(
            f"Signal handlers installed (mode={self.sigint_mode.value}, "
            f"double_tap_window={self.double_tap_window}s)"
        )

    async def stop(self) -> None:
        """恢复原有的信号处理。"""
        if not self._running:
            return
        self._running = False
        try:
            self._remove_handlers()
        except (OSError, ValueError, RuntimeError) as e:
            logger.debug(f"Error removing signal handlers: {e}")
        logger.debug("Signal handlers removed")

    async def wait_for_shutdown(self) -> None:
        if self._shutdown_event is not None:
            await self._shutdown_event.wait()

    def request_graceful_shutdown(self) -> None:
        """取消所有克隆并请求关闭。"""
        self._cancel_clones("shutdown")
        self._request_shutdown()

    def _install_handlers(self) -> None:
        loop = self._loop
        if IS_WINDOWS:
            # Windows 的事件循环没有 add_signal_handler
            self._previous_sigint = signal.signal(
                signal.SIGINT,
                lambda signum, frame: loop.call_soon_threadsafe(self._handle_sigint),
            )
            return
        loop.add_signal_handler(signal.SIGINT, self._handle_sigint)
        loop.add_signal_handler(signal.SIGTERM, self._handle_sigterm)

    def _remove_handlers(self) -> None:
        if IS_WINDOWS:
            if self._previous_sigint is not None:
                signal.signal(signal.SIGINT, self._previous_sigint)
            return
        if self._loop is not None:
            self._loop.remove_signal_handler(signal.SIGINT)
            self._loop.remove_signal_handler(signal.SIGTERM)

    # =========================================================================
    # 信号处理
    # =========================================================================

    def _handle_sigint(self) -> None:
        now = time.monotonic()
        double_tap = self._shutdown_requested and (now - self._last_sigint_time) < self.double_tap_window
        self._last_sigint_time = now

        if double_tap:
            logger.warning("Second SIGINT within window, forcing exit")
            self._force_exit = True
            self._cancel_clones("force exit")
            self._request_shutdown()
            return

        if self.sigint_mode is SigintMode.EXIT:
            logger.info("SIGINT received (mode=exit), shutting down")
            self._request_shutdown()
            return

        if not self.registry.has_active_requests():
            logger.info(f"SIGINT received (mode={self.sigint_mode.value}), no clone running, shutting down")
            self._request_shutdown()
            return

        count = self._cancel_clones("SIGINT")
        if self.sigint_mode is SigintMode.CANCEL_THEN_EXIT:
            # 只标记，不触发关闭事件；窗口内的下一次 SIGINT 强制退出
            self._shutdown_requested = True
            logger.info(
                f"Cancelled {count} clone request(s). "
                f"Press Ctrl+C again within {self.double_tap_window}s to exit."
            )

    def _handle_sigterm(self) -> None:
        logger.info("SIGTERM received, shutting down")
        self.request_graceful_shutdown()

    def _cancel_clones(self, reason: str) -> int:
        if not self.registry.has_active_requests():
            return 0
        for info in self.registry.list_active():
            logger.info(f"Cancelling {info.tool_name} '{info.label or info.request_id}' ({reason})")
        return self.registry.cancel_all()

    def _request_shutdown(self) -> None:
        self._shutdown_requested = True
        if self._on_shutdown is not None:
            try:
                self._on_shutdown()
            except Exception as e:
                logger.warning(f"Error in shutdown callback: {e}")
        if self._shutdown_event is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(self._shutdown_event.set)
