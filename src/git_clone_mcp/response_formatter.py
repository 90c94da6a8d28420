"""MCP 响应格式化器。

使用 XML 包装的纯文本，对 LLM 友好。

格式说明:
    - <status>: 安装结果（installed/existing/conflict/aborted/failed/cancelled）
    - <path>: 仓库路径
    - <message>: 给用户的消息
    - <error>: 失败原因
    - <debug_info>: 调试信息（debug=True 时输出）
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcp.types import TextContent

    from .installer import InstallOutcome

__all__ = [
    "ResponseData",
    "DebugInfo",
    "ResponseFormatter",
    "get_formatter",
    "format_error_response",
    "format_outcome_response",
    "format_setting_response",
    "format_cancelled_response",
]


@dataclass
class DebugInfo:
    """调试信息。"""

    duration_sec: float = 0.0
    git_path: str | None = None
    configuration_id: str | None = None
    log_file: str | None = None


@dataclass
class ResponseData:
    """响应数据。"""

    status: str
    path: str | None = None
    message: str = ""
    error: str | None = None
    debug_info: DebugInfo | None = None

    @property
    def success(self) -> bool:
        return self.error is None


class ResponseFormatter:
    """MCP 响应格式化器。

    Example:
        >>> formatter = ResponseFormatter()
        >>> data = ResponseData(
        ...     status="installed",
        ...     path="/opt/esp/esp-idf",
        ...     message="ESP-IDF has been installed",
        ... )
        >>> output = formatter.format(data)
    """

    def format(self, data: ResponseData, *, debug: bool = False) -> str:
        parts = ["<response>"]
        if data.error is not None:
            parts.append(f"  <error>{data.error}</error>")
        parts.append(f"  <status>{data.status}</status>")
        if data.path:
            parts.append(f"  <path>{data.path}</path>")
        if data.message and data.message != data.error:
            parts.append(f"  <message>{data.message}</message>")
        if debug and data.debug_info:
            parts.append(self._format_debug_info(data.debug_info))
        parts.append("</response>")
        return "\n".join(parts)

    def _format_debug_info(self, debug_info: DebugInfo) -> str:
        lines = ["  <debug_info>"]
        lines.append(f"    <duration_sec>{debug_info.duration_sec:.3f}</duration_sec>")
        if debug_info.git_path:
            lines.append(f"    <git_path>{debug_info.git_path}</git_path>")
        if debug_info.configuration_id:
            lines.append(f"    <configuration_id>{debug_info.configuration_id}</configuration_id>")
        if debug_info.log_file:
            lines.append(f"    <log_file>{debug_info.log_file}</log_file>")
        lines.append("  </debug_info>")
        return "\n".join(lines)


# 全局实例
_formatter: ResponseFormatter | None = None


def get_formatter() -> ResponseFormatter:
    global _formatter
    if _formatter is None:
        _formatter = ResponseFormatter()
    return _formatter


def format_error_response(error: str) -> list[TextContent]:
    """统一的错误响应，保证以 <response><error>...</error> 开头。"""
    from mcp.types import TextContent

    text = get_formatter().format(ResponseData(status="failed", error=error))
    return [TextContent(type="text", text=text)]


def format_outcome_response(
    outcome: InstallOutcome,
    *,
    debug_info: DebugInfo | None = None,
) -> list[TextContent]:
    """把安装结果转换为 MCP 响应。"""
    from mcp.types import TextContent

    error: str | None = None
    if outcome.error is not None and not outcome.success:
        error = outcome.message or str(outcome.error)

    data = ResponseData(
        status=outcome.status.value,
        path=str(outcome.path) if outcome.path is not None else None,
        message=outcome.message,
        error=error,
        debug_info=debug_info,
    )
    text = get_formatter().format(data, debug=debug_info is not None)
    return [TextContent(type="text", text=text)]


def format_setting_response(key: str, value: Any) -> list[TextContent]:
    """格式化配置读取结果。"""
    from mcp.types import TextContent

    lines = ["<response>", f"  <key>{key}</key>"]
    if value is None:
        lines.append("  <value/>")
    else:
        lines.append(f"  <value>{value}</value>")
    lines.append("</response>")
    return [TextContent(type="text", text="\n".join(lines))]


def format_cancelled_response(message: str) -> list[TextContent]:
    """被 SIGINT 取消的请求的响应。"""
    from mcp.types import TextContent

    from .installer import InstallStatus

    text = get_formatter().format(
        ResponseData(status=InstallStatus.CANCELLED.value, message=message)
    )
    return [TextContent(type="text", text=text)]
