"""克隆工具处理器。

处理 clone_repository 工具调用：把参数转换为 RepositoryInstaller 调用，
把克隆进度转发为 MCP 进度通知，把用户通知转发为 MCP 日志消息。
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

import anyio
from mcp.types import TextContent

from ..installer import RepositoryInstaller
from ..notifier import CloneLogger
from ..response_formatter import (
    DebugInfo,
    format_error_response,
    format_outcome_response,
)
from ..runtime import ProcessRunner
from ..selector import DirectoryTarget, StaticDirectorySelector
from ..settings_store import (
    GIT_PATH_KEY,
    SAVE_SCOPE_KEY,
    TOOLS_PATH_KEY,
    JsonSettingsStore,
)
from ..tool_schema import CLONE_TOOL
from ..types import SaveScope
from .base import ToolContext, ToolHandler

__all__ = ["CloneHandler", "McpProgressSink", "build_settings_store", "resolve_path"]

logger = logging.getLogger(__name__)


def resolve_path(value: Any, workspace: Path | None) -> Path | None:
    """把路径参数归一化为绝对路径；相对路径以 workspace 为基准。"""
    if not isinstance(value, str) or not value.strip():
        return None
    path = Path(value.strip()).expanduser()
    if not path.is_absolute():
        path = (workspace or Path.cwd()) / path
    return path.resolve()


def build_settings_store(ctx: ToolContext) -> JsonSettingsStore:
    """用 GCM_* 配置作为默认值创建配置存储。"""
    return JsonSettingsStore(
        ctx.config.settings_file,
        defaults={
            TOOLS_PATH_KEY: str(ctx.config.tools_path),
            GIT_PATH_KEY: ctx.config.git_path,
            SAVE_SCOPE_KEY: SaveScope.GLOBAL.value,
        },
    )


class McpProgressSink:
    """把克隆进度转发为 MCP 进度通知。

    git 的各个阶段各自从 0% 数到 100%，而 MCP 要求 progress 单调递增，
    因此 progress 使用报告计数，百分比放在 message 中。
    """

    def __init__(self, ctx: ToolContext) -> None:
        self._ctx = ctx
        self._count = 0
        self.last_message: str | None = None

    def report(self, message: str, detail: str | None = None) -> None:
        self._count += 1
        self.last_message = message
        if self._ctx.has_progress_token():
            self._ctx.spawn(
                self._ctx.report_progress_safe(progress=self._count, message=message.strip())
            )


class CloneHandler(ToolHandler):
    """clone_repository 工具处理器。"""

    @property
    def name(self) -> str:
        return CLONE_TOOL

    def validate(self, arguments: dict[str, Any]) -> str | None:
        for key in ("name", "repository", "branch", "configuration_id"):
            value = arguments.get(key)
            if not isinstance(value, str) or not value.strip():
                return f"Missing required argument: '{key}'"

        target = arguments.get("target") or DirectoryTarget.CURRENT.value
        try:
            target = DirectoryTarget(target)
        except ValueError:
            return f"Invalid target: '{target}' (expected current, another or existing)"

        if target is not DirectoryTarget.CURRENT and not arguments.get("path"):
            return f"Missing required argument: 'path' (required for target '{target.value}')"
        return None

    def build_installer(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
        settings: JsonSettingsStore,
        workspace: Path | None,
    ) -> RepositoryInstaller:
        clone_logger = CloneLogger(
            notify=lambda level, text: ctx.spawn(ctx.log_message_safe(level, text)),
        )
        git_path = settings.read_parameter(GIT_PATH_KEY, workspace) or ctx.config.git_path
        runner = ProcessRunner(
            logger=clone_logger,
            terminate_on_error=ctx.config.terminate_on_error,
        )
        return RepositoryInstaller(
            name=arguments["name"].strip(),
            repository=arguments["repository"].strip(),
            branch=arguments["branch"].strip(),
            settings=settings,
            git_path=str(git_path),
            logger=clone_logger,
            runner=runner,
        )

    async def handle(
        self,
        arguments: dict[str, Any],
        ctx: ToolContext,
    ) -> list[TextContent]:
        error = self.validate(arguments)
        if error:
            return format_error_response(error)

        workspace = resolve_path(arguments.get("workspace"), None)
        target = DirectoryTarget(arguments.get("target") or DirectoryTarget.CURRENT.value)
        path = resolve_path(arguments.get("path"), workspace)
        configuration_id = arguments["configuration_id"].strip()

        settings = build_settings_store(ctx)
        installer = self.build_installer(arguments, ctx, settings, workspace)
        sink = McpProgressSink(ctx)

        started = time.monotonic()
        try:
            outcome = await installer.get_repository(
                configuration_id,
                StaticDirectorySelector(target, path),
                workspace=workspace,
                sink=sink,
            )
        except (anyio.get_cancelled_exc_class(), asyncio.CancelledError) as e:
            # installer 已经杀掉了 git 进程树
            logger.info(f"Tool '{self.name}' cancelled (type={type(e).__name__})")
            raise
        except Exception as e:
            logger.error(f"Tool '{self.name}' error: {e}", exc_info=True)
            return format_error_response(str(e))

        debug_info = None
        if ctx.resolve_debug(arguments):
            debug_info = DebugInfo(
                duration_sec=time.monotonic() - started,
                git_path=installer.git_path,
                configuration_id=configuration_id,
                log_file=ctx.config.log_file if ctx.config.log_debug else None,
            )

        logger.debug(
            f"[MCP] {self.name} finished: status={outcome.status.value}, "
            f"path={outcome.path}, last_progress={sink.last_message!r}"
        )

        await ctx.drain()
        return format_outcome_response(outcome, debug_info=debug_info)
