"""Tool Handler 基础抽象。

定义工具处理器的协议和上下文。
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Coroutine

from mcp.types import TextContent

if TYPE_CHECKING:
    from mcp.server.session import ServerSession

    from ..config import Config
    from ..orchestrator import RequestRegistry

__all__ = [
    "ToolContext",
    "ToolHandler",
]

logger = logging.getLogger(__name__)


@dataclass
class ToolContext:
    """工具执行上下文。

    封装工具执行所需的依赖以及当前 MCP 请求的会话信息。
    session 为 None 时（例如单元测试）所有通知都被跳过。
    """

    config: "Config"
    registry: "RequestRegistry | None" = None
    session: "ServerSession | None" = None
    request_id: str | int | None = None
    progress_token: str | int | None = None
    _pending: set[asyncio.Task] = field(default_factory=set, repr=False)

    def resolve_debug(self, arguments: dict[str, Any]) -> bool:
        """统一解析 debug 开关。"""
        if "debug" in arguments:
            return bool(arguments["debug"])
        return self.config.log_debug

    def has_progress_token(self) -> bool:
        return self.session is not None and self.progress_token is not None

    async def report_progress_safe(
        self,
        progress: float,
        total: float | None = None,
        message: str | None = None,
    ) -> None:
        """发送进度通知（best-effort，失败只记录）。"""
        if not self.has_progress_token():
            return
        try:
            await self.session.send_progress_notification(
                self.progress_token,
                progress,
                total=total,
                message=message,
                related_request_id=self.request_id,
            )
        except Exception as e:
            logger.debug(f"Failed to send progress notification: {e}")

    async def log_message_safe(self, level: str, text: str) -> None:
        """发送 MCP 日志通知（best-effort）。"""
        if self.session is None:
            return
        try:
            await self.session.send_log_message(
                level,
                text,
                logger="git-clone-mcp",
                related_request_id=self.request_id,
            )
        except Exception as e:
            logger.debug(f"Failed to send log message: {e}")

    def spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        """在当前事件循环上调度一个通知协程，不等待其完成。"""
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """等待已调度的通知发送完成。"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class ToolHandler(ABC):
    """工具处理器协议。"""

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def description(self) -> str:
        from ..tool_schema import TOOL_DESCRIPTIONS
        return TOOL_DESCRIPTIONS.get(self.name, "")

    def get_input_schema(self) -> dict[str, Any]:
        from ..tool_schema import create_tool_schema
        return create_tool_schema(self.name)

    @abstractmethod
    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> list[TextContent]:
        """处理工具调用。

        Args:
            arguments: 工具参数
            ctx: 执行上下文

        Returns:
            TextContent 列表
        """
        ...

    def validate(self, arguments: dict[str, Any]) -> str | None:
        """验证参数，返回错误消息或 None。"""
        return None
