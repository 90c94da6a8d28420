"""克隆日志与通知。

CloneLogger 把克隆过程中的原始输出写入标准 logging，
*_notify 方法额外把消息推给一个可选的通知回调（例如 MCP 日志通知）。

所有方法都是 fire-and-forget：通知回调抛出的异常只记录，不向上传播。
"""

from __future__ import annotations

import logging
from typing import Callable, Literal

__all__ = [
    "CloneLogger",
    "NullCloneLogger",
    "NotifyCallback",
]

# 通知回调：(级别, 文本)
NotifyCallback = Callable[[Literal["info", "error"], str], None]

logger = logging.getLogger(__name__)


class CloneLogger:
    """基于 logging 的克隆日志协作者。

    Example:
        ```python
        clone_logger = CloneLogger(notify=lambda level, text: print(level, text))
        clone_logger.info("Cloning into 'esp-idf'...", "Cloning")
        clone_logger.info_notify("ESP-IDF has been installed", "Installer")
        ```
    """

    def __init__(
        self,
        log: logging.Logger | None = None,
        notify: NotifyCallback | None = None,
    ) -> None:
        """初始化。

        Args:
            log: 目标 logger（默认 git_clone_mcp.clone）
            notify: 用户可见通知的回调
        """
        self._log = log if log is not None else logging.getLogger("git_clone_mcp.clone")
        self._notify = notify

    def info(self, text: str, tag: str) -> None:
        """记录原始文本（不做任何改写）。"""
        self._log.info(f"[{tag}] {text}")

    def info_notify(self, text: str, tag: str) -> None:
        """记录并通知一条普通消息。"""
        self._log.info(f"[{tag}] {text}")
        self._send("info", text)

    def error_notify(self, text: str, error: BaseException, tag: str) -> None:
        """记录并通知一条错误消息，附带异常信息。"""
        self._log.error(
            f"[{tag}] {text}: {type(error).__name__}: {error}",
            exc_info=error if error.__traceback__ is not None else None,
        )
        self._send("error", text)

    def _send(self, level: Literal["info", "error"], text: str) -> None:
        if self._notify is None:
            return
        try:
            self._notify(level, text)
        except Exception as e:
            logger.debug(f"Notify callback failed: {e}")


class NullCloneLogger:
    """丢弃一切的日志协作者。"""

    def info(self, text: str, tag: str) -> None:
        return None

    def info_notify(self, text: str, tag: str) -> None:
        return None

    def error_notify(self, text: str, error: BaseException, tag: str) -> None:
        return None
