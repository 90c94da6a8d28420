"""GCM 环境变量配置管理。

环境变量:
    GCM_GIT_PATH: git 可执行文件
        - 默认 "git"（从 PATH 查找）
        - 也可以是绝对路径
        - 配置文件中的 gitPath 优先

    GCM_SETTINGS_FILE: 全局配置文件路径
        - 默认 ~/.config/git-clone-mcp/settings.json

    GCM_TOOLS_PATH: "current" 目标使用的默认工具目录
        - 仅当配置文件中没有 toolsPath 时生效
        - 默认 ~/.git-clone-mcp/tools

    GCM_TERMINATE_ON_ERROR: 输出中出现 "Error" 时是否立即终止 git 进程树
        - true/1/yes/on = 终止 (默认)
        - 其他值 = 只标记失败，等待 git 自行退出

    GCM_LOG_DEBUG: 日志调试模式
        - true/1/yes/on = DEBUG 日志写入临时目录下的 gcm_debug_*.log
        - 默认关闭，INFO 日志输出到 stderr

    GCM_SIGINT_MODE: SIGINT (Ctrl+C) 处理模式
        - cancel = 取消进行中的克隆（无活动克隆则退出）(默认)
        - exit = 直接退出进程
        - cancel_then_exit = 先取消克隆，第二次才退出

    GCM_SIGINT_DOUBLE_TAP_WINDOW: 强制退出窗口（秒）
        - 默认 1.0，限制在 0.1 到 10 之间
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from .types import DEFAULT_GIT_PATH

__all__ = [
    "Config",
    "SigintMode",
    "load_config",
    "get_config",
    "reload_config",
    "DEFAULT_SETTINGS_FILE",
    "DEFAULT_TOOLS_PATH",
]

DEFAULT_SETTINGS_FILE = Path.home() / ".config" / "git-clone-mcp" / "settings.json"
DEFAULT_TOOLS_PATH = Path.home() / ".git-clone-mcp" / "tools"

DEFAULT_DOUBLE_TAP_WINDOW = 1.0
DOUBLE_TAP_RANGE = (0.1, 10.0)

_TRUTHY = frozenset({"true", "1", "yes", "on"})


class SigintMode(Enum):
    """SIGINT 处理模式。

    - CANCEL: 取消活动克隆；没有活动克隆时退出
    - EXIT: 直接退出进程
    - CANCEL_THEN_EXIT: 先取消克隆，窗口内第二次 SIGINT 强制退出
    """

    CANCEL = "cancel"
    EXIT = "exit"
    CANCEL_THEN_EXIT = "cancel_then_exit"

    @classmethod
    def from_string(cls, value: str | None) -> "SigintMode":
        """解析模式字符串，空值或无效值返回 CANCEL。"""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.CANCEL


@dataclass
class Config:
    """GCM 配置。

    Attributes:
        git_path: git 可执行文件
        settings_file: 全局配置文件路径
        tools_path: 默认工具目录
        terminate_on_error: 检测到 "Error" 时终止进程树
        log_debug: 日志调试模式
        log_file: 调试日志文件（仅 log_debug 时设置）
        sigint_mode: SIGINT 处理模式
        sigint_double_tap_window: 强制退出窗口（秒）
    """

    git_path: str = DEFAULT_GIT_PATH
    settings_file: Path = DEFAULT_SETTINGS_FILE
    tools_path: Path = DEFAULT_TOOLS_PATH
    terminate_on_error: bool = True
    log_debug: bool = False
    log_file: str | None = None
    sigint_mode: SigintMode = SigintMode.CANCEL
    sigint_double_tap_window: float = DEFAULT_DOUBLE_TAP_WINDOW

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{name}={value}"
            for name, value in (
                ("git_path", self.git_path),
                ("settings_file", self.settings_file),
                ("tools_path", self.tools_path),
                ("terminate_on_error", self.terminate_on_error),
                ("log_debug", self.log_debug),
                ("log_file", self.log_file),
                ("sigint_mode", self.sigint_mode.value),
                ("sigint_double_tap_window", self.sigint_double_tap_window),
            )
        )
        return f"Config({fields})"


def _env(name: str) -> str | None:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip()


def _env_flag(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in _TRUTHY


def _env_path(name: str, default: Path) -> Path:
    value = _env(name)
    return Path(value).expanduser() if value else default


def _env_window(name: str) -> float:
    try:
        window = float(_env(name) or DEFAULT_DOUBLE_TAP_WINDOW)
    except ValueError:
        return DEFAULT_DOUBLE_TAP_WINDOW
    low, high = DOUBLE_TAP_RANGE
    return max(low, min(window, high))


def _debug_log_path() -> str:
    """临时目录下带时间戳的调试日志路径（目录会被创建）。"""
    log_dir = Path(tempfile.gettempdir()) / "git-clone-mcp"
    log_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return str((log_dir / f"gcm_debug_{stamp}.log").resolve())


def load_config() -> Config:
    """从 GCM_* 环境变量构建配置。"""
    log_debug = _env_flag("GCM_LOG_DEBUG", default=False)

    return Config(
        git_path=_env("GCM_GIT_PATH") or DEFAULT_GIT_PATH,
        settings_file=_env_path("GCM_SETTINGS_FILE", DEFAULT_SETTINGS_FILE),
        tools_path=_env_path("GCM_TOOLS_PATH", DEFAULT_TOOLS_PATH),
        terminate_on_error=_env_flag("GCM_TERMINATE_ON_ERROR", default=True),
        log_debug=log_debug,
        log_file=_debug_log_path() if log_debug else None,
        sigint_mode=SigintMode.from_string(_env("GCM_SIGINT_MODE")),
        sigint_double_tap_window=_env_window("GCM_SIGINT_DOUBLE_TAP_WINDOW"),
    )


_config: Config | None = None


def get_config() -> Config:
    """进程级配置（首次调用时加载）。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新读取环境变量（测试中使用）。"""
    global _config
    _config = load_config()
    return _config
