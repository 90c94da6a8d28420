"""Tool Schema 定义。

包含工具描述、参数 schema 和 schema 创建函数。
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "SUPPORTED_TOOLS",
    "TOOL_DESCRIPTIONS",
    "create_tool_schema",
]

CLONE_TOOL = "clone_repository"
SETTING_TOOL = "get_setting"

# 支持的工具列表（用于校验）
SUPPORTED_TOOLS = {CLONE_TOOL, SETTING_TOOL}

# 工具描述
TOOL_DESCRIPTIONS = {
    CLONE_TOOL: """Install a git repository by cloning it (recursively, with submodules) into a tools directory.

TARGETS:
- current: clone into the configured tools directory (setting 'toolsPath').
- another: clone into the directory given in 'path'.
- existing: register the already-cloned repository at 'path'; nothing is downloaded.

BEHAVIOR:
- The clone lands in <directory>/<repository name without .git>.
- If that folder already exists the tool refuses to clone and reports status 'conflict'.
- Progress ("Downloading NN%") is streamed as MCP progress notifications when a progressToken is given.
- On success the resulting path is saved under 'configuration_id' (scope from setting 'saveScope').
- Cancelling the request kills git and all of its child processes.

RESPONSE FORMAT:
- <response> with <status>, <path>, <message>, and <error> on failure.""",

    SETTING_TOOL: """Read a saved setting (for example a 'configuration_id' written by clone_repository, or 'toolsPath').

Workspace settings (<workspace>/.git-clone-mcp.json) override global settings.""",
}

WORKSPACE_PROPERTY = {
    "type": "string",
    "description": (
        "Workspace directory. Settings are read from <workspace>/.git-clone-mcp.json first "
        "and written there when 'saveScope' is 'workspace'."
    ),
}

CLONE_PROPERTIES = {
    # === 必填参数 ===
    "name": {
        "type": "string",
        "description": "Human readable name of the tool being installed (e.g., 'ESP-IDF'). Used in messages.",
    },
    "repository": {
        "type": "string",
        "description": "Repository address passed to git clone (e.g., 'https://github.com/espressif/esp-idf.git').",
    },
    "branch": {
        "type": "string",
        "description": "Branch or tag to check out (git clone -b).",
    },
    "configuration_id": {
        "type": "string",
        "description": "Setting key under which the installed path is saved (e.g., 'espIdfPath').",
    },
    # === 常用参数 ===
    "target": {
        "type": "string",
        "enum": ["current", "another", "existing"],
        "default": "current",
        "description": (
            "Where to install: "
            "'current' (configured tools directory), "
            "'another' (clone inside 'path'), "
            "'existing' (use the repository already at 'path'). "
            "Default: 'current'."
        ),
    },
    "path": {
        "type": "string",
        "description": "Directory for target 'another' or 'existing'. Absolute or relative to workspace.",
    },
    "workspace": WORKSPACE_PROPERTY,
    # === 末尾参数 ===
    "debug": {
        "type": "boolean",
        "description": "Include timing and configuration details in the response. Defaults to GCM_LOG_DEBUG.",
    },
}

SETTING_PROPERTIES = {
    "key": {
        "type": "string",
        "description": "Setting key (e.g., 'espIdfPath', 'toolsPath', 'saveScope').",
    },
    "workspace": WORKSPACE_PROPERTY,
}


def create_tool_schema(tool_name: str) -> dict[str, Any]:
    """创建工具的 JSON Schema。"""
    if tool_name == CLONE_TOOL:
        return {
            "type": "object",
            "properties": dict(CLONE_PROPERTIES),
            "required": ["name", "repository", "branch", "configuration_id"],
        }

    if tool_name == SETTING_TOOL:
        return {
            "type": "object",
            "properties": dict(SETTING_PROPERTIES),
            "required": ["key"],
        }

    raise ValueError(f"Unknown tool: {tool_name}")
