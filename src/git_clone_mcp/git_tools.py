"""git 可用性检查。"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from pathlib import Path

__all__ = [
    "GIT_NOT_FOUND",
    "check_git_exists",
    "resolve_git_executable",
]

logger = logging.getLogger(__name__)

GIT_NOT_FOUND = "Not found"

# 版本检查超时（秒）
VERSION_TIMEOUT = 10.0

_VERSION_PATTERN = re.compile(r"git version (\S+)")


def resolve_git_executable(git_path: str) -> str | None:
    """把 git_path 解析为可执行文件的绝对路径。

    git_path 可以是命令名（从 PATH 查找）或路径。
    """
    candidate = Path(git_path).expanduser()
    if candidate.is_absolute() or len(candidate.parts) > 1:
        if candidate.is_file():
            return str(candidate)
        return None
    return shutil.which(git_path)


async def check_git_exists(work_dir: Path, git_path: str = "git") -> str:
    """运行 ``git --version`` 并返回版本号。

    Args:
        work_dir: 执行检查的目录
        git_path: git 可执行文件

    Returns:
        版本号字符串（如 "2.43.0"），不可用时返回 GIT_NOT_FOUND
    """
    executable = resolve_git_executable(git_path)
    if executable is None:
        logger.debug(f"git executable not resolvable: {git_path}")
        return GIT_NOT_FOUND

    try:
        process = await asyncio.create_subprocess_exec(
            executable,
            "--version",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=work_dir,
        )
    except OSError as e:
        logger.debug(f"Failed to run {executable} --version: {e}")
        return GIT_NOT_FOUND

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=VERSION_TIMEOUT)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        logger.warning(f"{executable} --version timed out")
        return GIT_NOT_FOUND

    if process.returncode != 0:
        return GIT_NOT_FOUND

    match = _VERSION_PATTERN.search(stdout.decode("utf-8", errors="replace"))
    if not match:
        return GIT_NOT_FOUND
    return match.group(1)
