"""克隆流程异常类。

git-clone-mcp errors v0.1.0

取消不属于这里的异常体系：取消始终以 asyncio.CancelledError 传播，
与克隆失败走不同的通道。
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "CloneError",
    "ToolUnavailableError",
    "ProcessSpawnError",
    "RemoteOrToolError",
    "NonZeroExitError",
    "CloneInProgressError",
    "DestinationExistsError",
    "SettingsError",
]


class CloneError(RuntimeError):
    """克隆流程基础异常。"""
    pass


class ToolUnavailableError(CloneError):
    """git 可执行文件无法定位或无法执行（在启动进程之前抛出）。"""
    pass


class ProcessSpawnError(CloneError):
    """操作系统层面无法创建子进程。

    Attributes:
        argv: 尝试执行的命令行
    """

    def __init__(self, message: str, argv: list[str] | None = None) -> None:
        self.argv = list(argv or [])
        super().__init__(message)


class RemoteOrToolError(CloneError):
    """输出流中出现了 "Error" 标记。

    Attributes:
        raw_text: 触发检测的原始输出块（原样保留）
    """

    def __init__(self, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__(raw_text)


class NonZeroExitError(CloneError):
    """git 以非零状态退出，且此前没有识别到文本错误。

    Attributes:
        task_name: 任务名称
        returncode: 退出码（被外部信号终止时为负数）
    """

    def __init__(self, task_name: str, returncode: int) -> None:
        self.task_name = task_name
        self.returncode = returncode
        super().__init__(f"{task_name} clone has exited with code {returncode}")


class CloneInProgressError(CloneError):
    """同一个 ProcessRunner 上已有克隆在运行。"""
    pass


class DestinationExistsError(CloneError):
    """目标目录已存在，拒绝覆盖。

    Attributes:
        path: 冲突的目标路径
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path} already exist.")


class SettingsError(CloneError):
    """配置文件读写失败。"""
    pass
