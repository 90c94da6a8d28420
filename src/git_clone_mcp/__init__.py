"""Git Clone MCP - 受管的 git clone 进程与安装编排。

环境变量:
    GCM_GIT_PATH: git 可执行文件 (默认 git)
    GCM_SETTINGS_FILE: 全局配置文件
    GCM_TOOLS_PATH: 默认工具目录
    GCM_TERMINATE_ON_ERROR: 输出出现 Error 时终止 git (默认 true)

用法:
    uvx git-clone-mcp
"""

__version__ = "0.1.0"

from .app import main

__all__ = ["__version__", "main"]
