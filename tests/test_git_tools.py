"""git 可用性检查测试。"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

import pytest

from git_clone_mcp.git_tools import GIT_NOT_FOUND, check_git_exists, resolve_git_executable


class TestResolveGitExecutable:
    """git_path 解析。"""

    def test_missing_path(self, tmp_path: Path):
        assert resolve_git_executable(str(tmp_path / "nope" / "git")) is None

    def test_existing_file(self, tmp_path: Path):
        git = tmp_path / "git"
        git.write_text("", encoding="utf-8")
        assert resolve_git_executable(str(git)) == str(git)

    def test_directory_is_not_executable(self, tmp_path: Path):
        assert resolve_git_executable(str(tmp_path)) is None

    def test_command_name_uses_path_lookup(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(shutil, "which", lambda name: f"/usr/local/bin/{name}")
        assert resolve_git_executable("git") == "/usr/local/bin/git"


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX fake git wrapper")
class TestCheckGitExists:
    """check_git_exists()。"""

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_reports_version(self, fake_git, tmp_path):
        assert await check_git_exists(tmp_path, fake_git) == "2.99.0.fake"

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_failing_version_is_not_found(self, fake_git, fake_git_mode, tmp_path):
        fake_git_mode("success", FAKE_GIT_VERSION_FAIL="1")
        assert await check_git_exists(tmp_path, fake_git) == GIT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        assert await check_git_exists(tmp_path, str(tmp_path / "git")) == GIT_NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_unparsable_output_is_not_found(self, tmp_path):
        script = tmp_path / "not-git"
        script.write_text("#!/bin/sh\necho hello\n", encoding="utf-8")
        script.chmod(0o755)
        assert await check_git_exists(tmp_path, str(script)) == GIT_NOT_FOUND
