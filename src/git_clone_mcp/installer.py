"""仓库安装流程编排。

按顺序执行：选择目录 → 检查冲突 → 校验 git → 运行克隆 → 持久化结果或报告错误。

取消与错误走不同的通道：
- 克隆失败（CloneError 等）被捕获、通知，并以 InstallOutcome(status=failed) 返回
- 取消以 asyncio.CancelledError 传播给发起者；这里只负责杀掉进程树
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .errors import DestinationExistsError, ToolUnavailableError
from .git_tools import GIT_NOT_FOUND, check_git_exists
from .notifier import NullCloneLogger
from .runtime import ProcessRunner
from .selector import DirectorySelector, DirectoryTarget
from .settings_store import SAVE_SCOPE_KEY, TOOLS_PATH_KEY, SettingsStore
from .types import (
    DEFAULT_GIT_PATH,
    CloneLoggerProtocol,
    CloneTask,
    ProgressSink,
    SaveScope,
)

__all__ = [
    "InstallStatus",
    "InstallOutcome",
    "RepositoryInstaller",
]

logger = logging.getLogger(__name__)

LOG_TAG = "Installer"


class InstallStatus(str, Enum):
    """安装结果。"""

    INSTALLED = "installed"
    EXISTING = "existing"
    CONFLICT = "conflict"
    ABORTED = "aborted"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class InstallOutcome:
    """一次安装尝试的结果。

    Attributes:
        status: 结果类型
        path: 最终（或冲突的）仓库路径
        message: 给用户的消息
        error: 失败时的异常
    """

    status: InstallStatus
    path: Path | None = None
    message: str = ""
    error: BaseException | None = None

    @property
    def success(self) -> bool:
        return self.status in (InstallStatus.INSTALLED, InstallStatus.EXISTING)


class RepositoryInstaller:
    """单个仓库的安装器。

    Example:
        ```python
        installer = RepositoryInstaller(
            name="ESP-IDF",
            repository="https://github.com/espressif/esp-idf.git",
            branch="release/v5.0",
            settings=JsonSettingsStore(settings_file),
            logger=CloneLogger(),
        )
        outcome = await installer.get_repository(
            "espIdfPath",
            StaticDirectorySelector("another", "/opt/esp"),
        )
        ```
    """

    def __init__(
        self,
        name: str,
        repository: str,
        branch: str,
        settings: SettingsStore,
        *,
        git_path: str = DEFAULT_GIT_PATH,
        logger: CloneLoggerProtocol | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.name = name
        self.repository = repository
        self.branch = branch
        self.git_path = git_path
        self._settings = settings
        self._logger: CloneLoggerProtocol = logger if logger is not None else NullCloneLogger()
        self.runner = runner if runner is not None else ProcessRunner(logger=self._logger)

    def build_task(self, install_dir: Path) -> CloneTask:
        return CloneTask(
            name=self.name,
            repository=self.repository,
            branch=self.branch,
            install_dir=Path(install_dir),
            git_path=self.git_path,
        )

    def cancel(self) -> None:
        """取消进行中的克隆（幂等）。"""
        self.runner.cancel()

    async def get_repository(
        self,
        configuration_id: str,
        selector: DirectorySelector,
        *,
        workspace: Path | None = None,
        sink: ProgressSink | None = None,
    ) -> InstallOutcome:
        """选择目录并安装仓库，结果写入 configuration_id。

        Args:
            configuration_id: 保存安装路径的参数名
            selector: 目录选择器
            workspace: 工作区目录（读取/写入工作区作用域配置）
            sink: 进度接收方

        Returns:
            安装结果（失败不会抛出）

        Raises:
            asyncio.CancelledError: 克隆被取消
        """
        try:
            tools_dir = self._settings.read_parameter(TOOLS_PATH_KEY, workspace)
        except Exception as e:
            return self._fail(e)

        choice = await selector.select(self.name, str(tools_dir) if tools_dir else None)
        if choice is None:
            logger.info(f"{self.name}: directory selection aborted")
            return InstallOutcome(status=InstallStatus.ABORTED)

        if choice.target is DirectoryTarget.CURRENT:
            if not tools_dir or not Path(tools_dir).is_dir():
                message = f"{tools_dir} doesn't exist."
                self._logger.info_notify(message, LOG_TAG)
                return InstallOutcome(status=InstallStatus.ABORTED, message=message)
            install_dir = Path(tools_dir)
        else:
            install_dir = Path(choice.path) if choice.path else None
            if install_dir is None:
                return InstallOutcome(status=InstallStatus.ABORTED)

        if choice.target is DirectoryTarget.EXISTING:
            try:
                self._persist(configuration_id, install_dir, workspace)
            except Exception as e:
                return self._fail(e)
            message = f"{self.name} has been installed"
            self._logger.info_notify(message, LOG_TAG)
            return InstallOutcome(status=InstallStatus.EXISTING, path=install_dir, message=message)

        return await self.clone_into(
            install_dir,
            configuration_id,
            workspace=workspace,
            sink=sink,
        )

    async def clone_into(
        self,
        install_dir: Path,
        configuration_id: str,
        *,
        workspace: Path | None = None,
        sink: ProgressSink | None = None,
    ) -> InstallOutcome:
        """在 install_dir 中克隆仓库并持久化结果路径。

        Raises:
            asyncio.CancelledError: 克隆被取消
        """
        task = self.build_task(install_dir)
        resulting_path = task.resulting_path

        if resulting_path.exists():
            conflict = DestinationExistsError(resulting_path)
            self._logger.info_notify(str(conflict), LOG_TAG)
            return InstallOutcome(
                status=InstallStatus.CONFLICT,
                path=resulting_path,
                message=str(conflict),
                error=conflict,
            )

        try:
            git_version = await check_git_exists(task.install_dir, task.git_path)
            if not git_version or git_version == GIT_NOT_FOUND:
                raise ToolUnavailableError("Git is not found in gitPath or PATH")
            logger.debug(f"Using git {git_version} ({task.git_path})")

            await self._run_clone(task, sink)

            self._persist(configuration_id, resulting_path, workspace)
        except asyncio.CancelledError:
            logger.info(f"{self.name} clone cancelled")
            raise
        except Exception as e:
            return self._fail(e)

        message = f"{self.name} has been installed"
        self._logger.info_notify(message, LOG_TAG)
        return InstallOutcome(status=InstallStatus.INSTALLED, path=resulting_path, message=message)

    async def _run_clone(self, task: CloneTask, sink: ProgressSink | None) -> None:
        """启动克隆并等待结果；等待方被取消时杀掉进程树。"""
        completion = self.runner.start_clone(task, sink)
        try:
            # 取消只作用于等待方，completion 由 runner 结算
            await asyncio.shield(completion)
        except asyncio.CancelledError:
            self.runner.cancel()
            raise

    def _persist(self, configuration_id: str, path: Path, workspace: Path | None) -> None:
        scope = SaveScope.from_string(self._settings.read_parameter(SAVE_SCOPE_KEY, workspace))
        if scope is SaveScope.WORKSPACE and workspace is None:
            scope = SaveScope.GLOBAL
        self._settings.write_parameter(configuration_id, str(path), scope, workspace)

    def _fail(self, error: Exception) -> InstallOutcome:
        message = str(error) or type(error).__name__
        self._logger.error_notify(message, error, LOG_TAG)
        return InstallOutcome(status=InstallStatus.FAILED, message=message, error=error)
