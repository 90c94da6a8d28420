"""配置持久化。

以 JSON 文件保存安装结果等参数，支持两个作用域：
- global: 用户级文件（GCM_SETTINGS_FILE）
- workspace: <workspace>/.git-clone-mcp.json

读取时 workspace 覆盖 global，二者都没有时使用默认值。
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Protocol

from .errors import SettingsError
from .types import SaveScope

__all__ = [
    "SettingsStore",
    "JsonSettingsStore",
    "TOOLS_PATH_KEY",
    "SAVE_SCOPE_KEY",
    "GIT_PATH_KEY",
    "WORKSPACE_SETTINGS_NAME",
]

logger = logging.getLogger(__name__)

TOOLS_PATH_KEY = "toolsPath"
SAVE_SCOPE_KEY = "saveScope"
GIT_PATH_KEY = "gitPath"

WORKSPACE_SETTINGS_NAME = ".git-clone-mcp.json"


class SettingsStore(Protocol):
    """配置协作者协议。"""

    def read_parameter(self, key: str, workspace: Path | None = None) -> Any:
        ...

    def write_parameter(
        self,
        key: str,
        value: Any,
        scope: SaveScope | str,
        workspace: Path | None = None,
    ) -> None:
        ...


class JsonSettingsStore:
    """JSON 文件实现的配置存储。

    Example:
        ```python
        store = JsonSettingsStore(Path("~/.config/git-clone-mcp/settings.json").expanduser())
        tools_dir = store.read_parameter("toolsPath")
        store.write_parameter("espIdfPath", "/opt/esp/esp-idf", SaveScope.GLOBAL)
        ```
    """

    def __init__(
        self,
        global_file: Path,
        defaults: Mapping[str, Any] | None = None,
    ) -> None:
        """初始化。

        Args:
            global_file: 全局配置文件路径（不存在时按空配置处理）
            defaults: 两个作用域都未设置时的默认值
        """
        self.global_file = Path(global_file)
        self._defaults = dict(defaults or {})

    @staticmethod
    def workspace_file(workspace: Path) -> Path:
        """返回工作区配置文件路径。"""
        return Path(workspace) / WORKSPACE_SETTINGS_NAME

    def read_parameter(self, key: str, workspace: Path | None = None) -> Any:
        """读取参数。

        Args:
            key: 参数名
            workspace: 工作区目录（可选，提供时优先读取工作区配置）

        Returns:
            参数值，未设置时返回默认值（可能为 None）

        Raises:
            SettingsError: 配置文件损坏
        """
        if workspace is not None:
            data = self._load(self.workspace_file(workspace))
            if key in data:
                return data[key]

        data = self._load(self.global_file)
        if key in data:
            return data[key]

        return self._defaults.get(key)

    def write_parameter(
        self,
        key: str,
        value: Any,
        scope: SaveScope | str,
        workspace: Path | None = None,
    ) -> None:
        """写入参数。

        Args:
            key: 参数名
            value: 参数值（Path 会被转换为字符串）
            scope: 作用域
            workspace: 工作区目录（scope=workspace 时必需）

        Raises:
            SettingsError: 缺少工作区或写入失败
        """
        if not isinstance(scope, SaveScope):
            scope = SaveScope.from_string(scope)

        if scope is SaveScope.WORKSPACE:
            if workspace is None:
                raise SettingsError("Workspace scope requires a workspace directory")
            path = self.workspace_file(workspace)
        else:
            path = self.global_file

        if isinstance(value, Path):
            value = str(value)

        data = self._load(path)
        data[key] = value
        self._dump(path, data)
        logger.debug(f"Wrote setting {key}={value!r} to {path} ({scope.value})")

    def _load(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SettingsError(f"Invalid settings file {path}: {e}") from e
        except OSError as e:
            raise SettingsError(f"Cannot read settings file {path}: {e}") from e

        if not isinstance(data, dict):
            raise SettingsError(f"Invalid settings file {path}: expected a JSON object")
        return data

    def _dump(self, path: Path, data: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise SettingsError(f"Cannot write settings file {path}: {e}") from e
