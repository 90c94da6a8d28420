"""配置读取工具处理器。"""

from __future__ import annotations

import logging
from typing import Any

from mcp.types import TextContent

from ..errors import SettingsError
from ..response_formatter import format_error_response, format_setting_response
from ..tool_schema import SETTING_TOOL
from .base import ToolContext, ToolHandler
from .clone import build_settings_store, resolve_path

__all__ = ["SettingHandler"]

logger = logging.getLogger(__name__)


class SettingHandler(ToolHandler):
    """get_setting 工具处理器。"""

    @property
    def name(self) -> str:
        return SETTING_TOOL

    def validate(self, arguments: dict[str, Any]) -> str | None:
        key = arguments.get("key")
        if not isinstance(key, str) or not key.strip():
            return "Missing required argument: 'key'"
        return None

    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> list[TextContent]:
        error = self.validate(arguments)
        if error:
            return format_error_response(error)

        key = arguments["key"].strip()
        workspace = resolve_path(arguments.get("workspace"), None)
        try:
            value = build_settings_store(ctx).read_parameter(key, workspace)
        except SettingsError as e:
            logger.warning(f"Tool '{self.name}' error: {e}")
            return format_error_response(str(e))

        return format_setting_response(key, value)
