"""Git Clone MCP Server。

以 MCP 工具的形式提供受管的 git clone：
- clone_repository: 克隆（或登记已有）仓库并保存其路径
- get_setting: 读取保存的配置

用法:
    uvx git-clone-mcp
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from mcp.server import Server
from mcp.types import TextContent, Tool

from .config import get_config
from .handlers import CloneHandler, SettingHandler, ToolContext, ToolHandler
from .orchestrator import RequestRegistry
from .response_formatter import format_cancelled_response, format_error_response
from .tool_schema import CLONE_TOOL, SUPPORTED_TOOLS

__all__ = ["create_server", "SERVER_NAME"]

logger = logging.getLogger(__name__)

SERVER_NAME = "git-clone-mcp"


def _create_handler(name: str) -> ToolHandler:
    if name == CLONE_TOOL:
        return CloneHandler()
    return SettingHandler()


def create_server(registry: RequestRegistry | None = None) -> Server:
    """创建 MCP Server 实例。

    Args:
        registry: 请求注册表（可选，用于 SIGINT 取消进行中的克隆）
    """
    config = get_config()
    server = Server(SERVER_NAME)

    def build_context() -> ToolContext:
        try:
            request_ctx = server.request_context
        except LookupError:
            return ToolContext(config=config, registry=registry)

        meta = request_ctx.meta
        return ToolContext(
            config=config,
            registry=registry,
            session=request_ctx.session,
            request_id=request_ctx.request_id,
            progress_token=meta.progressToken if meta is not None else None,
        )

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """列出可用工具。"""
        tools = []
        for handler in (CloneHandler(), SettingHandler()):
            tools.append(
                Tool(
                    name=handler.name,
                    description=handler.description,
                    inputSchema=handler.get_input_schema(),
                )
            )
        logger.debug(f"[MCP] list_tools called, returning {[t.name for t in tools]}")
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """调用工具。"""
        logger.debug(
            f"[MCP] call_tool request:\n"
            f"  Tool: {name}\n"
            f"  Arguments: {json.dumps(arguments, ensure_ascii=False, default=str)}"
        )

        if name not in SUPPORTED_TOOLS:
            return format_error_response(f"Unknown tool '{name}'")

        request_id = None
        current_task = asyncio.current_task()
        if registry is not None and current_task is not None:
            request_id = registry.generate_request_id()
            registry.register(request_id, name, current_task, str(arguments.get("name", "")))

        try:
            handler = _create_handler(name)
            return await handler.handle(arguments, build_context())

        except asyncio.CancelledError:
            info = registry.get(request_id) if registry and request_id else None
            # 只吞掉注册表（SIGINT）发起的那一次取消；客户端取消照常传播
            if info is not None and info.cancel_requested and current_task.cancelling() == 1:
                current_task.uncancel()
                logger.info(f"Tool '{name}' cancelled by signal")
                label = info.label or name
                return format_cancelled_response(f"{label} clone was cancelled")
            logger.info(f"Tool '{name}' cancelled")
            raise

        except Exception as e:
            logger.error(f"Tool '{name}' failed: {type(e).__name__}: {e}", exc_info=True)
            return format_error_response(str(e))

        finally:
            if registry and request_id:
                registry.unregister(request_id)

    return server
