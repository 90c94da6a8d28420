"""Tool Handlers 模块。

提供工具处理器抽象和具体实现。
"""

from .base import ToolContext, ToolHandler
from .clone import CloneHandler, McpProgressSink
from .setting import SettingHandler

__all__ = [
    "ToolContext",
    "ToolHandler",
    "CloneHandler",
    "McpProgressSink",
    "SettingHandler",
]
