"""安装目录选择。

交互式目录选择器不属于本项目；这里只定义协议，
并提供一个由调用参数直接给出结果的静态实现（MCP 工具使用）。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

__all__ = [
    "DirectoryTarget",
    "DirectoryChoice",
    "DirectorySelector",
    "StaticDirectorySelector",
]


class DirectoryTarget(str, Enum):
    """目录选择结果的类型。

    - CURRENT: 使用配置中的当前工具目录
    - ANOTHER: 选择一个容器目录，在其中克隆
    - EXISTING: 使用已有仓库，不克隆
    """

    CURRENT = "current"
    ANOTHER = "another"
    EXISTING = "existing"


@dataclass(frozen=True)
class DirectoryChoice:
    """选择结果。

    Attributes:
        target: 选择类型
        path: ANOTHER/EXISTING 时用户选择的目录；CURRENT 时为 None
    """

    target: DirectoryTarget
    path: Path | None = None


class DirectorySelector(Protocol):
    """目录选择器协议。返回 None 表示用户放弃。"""

    async def select(self, name: str, tools_dir: str | None) -> DirectoryChoice | None:
        ...


class StaticDirectorySelector:
    """直接返回预先给定的选择。"""

    def __init__(self, target: DirectoryTarget | str, path: Path | str | None = None) -> None:
        self._choice = DirectoryChoice(
            target=DirectoryTarget(target),
            path=Path(path).expanduser() if path else None,
        )

    async def select(self, name: str, tools_dir: str | None) -> DirectoryChoice | None:
        if self._choice.target is not DirectoryTarget.CURRENT and self._choice.path is None:
            return None
        return self._choice
