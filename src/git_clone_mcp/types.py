"""克隆任务类型定义。

定义克隆任务、进度汇报和日志协作者的协议。
协作者都通过构造参数显式注入，便于在测试中替换。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Protocol, runtime_checkable

__all__ = [
    "CloneTask",
    "SaveScope",
    "ProgressSink",
    "CloneLoggerProtocol",
    "NullProgressSink",
    "DEFAULT_GIT_PATH",
]

DEFAULT_GIT_PATH = "git"


class SaveScope(str, Enum):
    """配置持久化的作用域。

    - GLOBAL: 用户级配置文件
    - WORKSPACE: 工作区目录下的配置文件
    """

    GLOBAL = "global"
    WORKSPACE = "workspace"

    @classmethod
    def from_string(cls, value: str | None) -> "SaveScope":
        """解析作用域字符串，无效值返回 GLOBAL。"""
        if not value:
            return cls.GLOBAL
        value = str(value).lower().strip()
        for scope in cls:
            if scope.value == value:
                return scope
        return cls.GLOBAL


@dataclass(frozen=True)
class CloneTask:
    """一次克隆尝试。

    Attributes:
        name: 逻辑名称，用于消息和日志（如 "ESP-IDF"）
        repository: 源仓库地址
        branch: 要检出的分支或 ref
        install_dir: 执行 git clone 的工作目录
        git_path: git 可执行文件路径
    """

    name: str
    repository: str
    branch: str
    install_dir: Path
    git_path: str = DEFAULT_GIT_PATH

    def __post_init__(self) -> None:
        if isinstance(self.install_dir, str):
            object.__setattr__(self, "install_dir", Path(self.install_dir))

    @property
    def result_folder(self) -> str:
        """git 默认创建的目录名（仓库地址的 basename，去掉 .git）。"""
        base = PurePosixPath(self.repository.rstrip("/").replace("\\", "/")).name
        return base.replace(".git", "", 1)

    @property
    def resulting_path(self) -> Path:
        """克隆完成后的仓库路径。"""
        return self.install_dir / self.result_folder

    def build_argv(self) -> list[str]:
        """构建 git clone 命令行。"""
        return [
            self.git_path,
            "clone",
            "--recursive",
            "--progress",
            "-b",
            self.branch,
            self.repository,
        ]


@runtime_checkable
class ProgressSink(Protocol):
    """进度接收方。

    report() 在每次克隆中可能被调用零次或多次，
    结果确定之后不会再被调用。实现不得阻塞。
    """

    def report(self, message: str, detail: str | None = None) -> None:
        ...


class CloneLoggerProtocol(Protocol):
    """日志与通知协作者。所有调用都是 fire-and-forget。"""

    def info(self, text: str, tag: str) -> None:
        ...

    def info_notify(self, text: str, tag: str) -> None:
        ...

    def error_notify(self, text: str, error: BaseException, tag: str) -> None:
        ...


class NullProgressSink:
    """不做任何事的 ProgressSink。"""

    def report(self, message: str, detail: str | None = None) -> None:
        return None
