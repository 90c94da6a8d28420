"""RepositoryInstaller 测试。

覆盖目录选择的三种目标、目标冲突、git 不可用、克隆失败与成功后的配置持久化。
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest import mock

import pytest

from git_clone_mcp.errors import NonZeroExitError, ToolUnavailableError
from git_clone_mcp.installer import InstallStatus, RepositoryInstaller
from git_clone_mcp.runtime import ProcessRunner
from git_clone_mcp.selector import DirectoryTarget, StaticDirectorySelector
from git_clone_mcp.settings_store import JsonSettingsStore
from git_clone_mcp.types import CloneTask

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX fake git wrapper")

ESP_IDF_REPOSITORY = "https://github.com/espressif/esp-idf.git"


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    return tmp_path / "config" / "settings.json"


@pytest.fixture
def settings(settings_file: Path, tmp_path: Path) -> JsonSettingsStore:
    return JsonSettingsStore(settings_file, defaults={"toolsPath": str(tmp_path / "tools")})


def make_installer(settings, git_path, clone_logger, runner=None) -> RepositoryInstaller:
    return RepositoryInstaller(
        name="ESP-IDF",
        repository=ESP_IDF_REPOSITORY,
        branch="release/v5.0",
        settings=settings,
        git_path=git_path,
        logger=clone_logger,
        runner=runner,
    )


class TestCloneTask:
    """测试 CloneTask 派生属性。"""

    def test_result_folder_strips_git_suffix(self, tmp_path):
        task = CloneTask("ESP-IDF", ESP_IDF_REPOSITORY, "release/v5.0", tmp_path)
        assert task.result_folder == "esp-idf"
        assert task.resulting_path == tmp_path / "esp-idf"

    def test_only_first_git_is_removed(self, tmp_path):
        task = CloneTask("x", "https://host/foo.github.git", "main", tmp_path)
        assert task.result_folder == "foohub.git"

    def test_build_argv(self, tmp_path):
        task = CloneTask("ESP-IDF", ESP_IDF_REPOSITORY, "release/v5.0", tmp_path, git_path="/usr/bin/git")
        assert task.build_argv() == [
            "/usr/bin/git",
            "clone",
            "--recursive",
            "--progress",
            "-b",
            "release/v5.0",
            ESP_IDF_REPOSITORY,
        ]

    def test_install_dir_coerced_to_path(self, tmp_path):
        task = CloneTask("x", "repo.git", "main", str(tmp_path))
        assert isinstance(task.install_dir, Path)


class TestCloneInto:
    """测试 clone_into()。"""

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_success_persists_path_and_notifies(
        self, settings, settings_file, fake_git, fake_git_mode, install_dir, clone_logger, sink
    ):
        fake_git_mode("progress")
        installer = make_installer(settings, fake_git, clone_logger)

        outcome = await installer.clone_into(install_dir, "espIdfPath", sink=sink)

        assert outcome.status is InstallStatus.INSTALLED
        assert outcome.success
        assert outcome.path == install_dir / "esp-idf"
        assert outcome.message == "ESP-IDF has been installed"
        assert ("ESP-IDF has been installed", "Installer") in clone_logger.info_notifies

        saved = json.loads(settings_file.read_text(encoding="utf-8"))
        assert saved["espIdfPath"] == str(install_dir / "esp-idf")
        assert sink.reports

    @pytest.mark.asyncio
    async def test_existing_destination_is_refused_without_spawn(
        self, settings, install_dir, clone_logger
    ):
        (install_dir / "esp-idf").mkdir()
        runner = mock.MagicMock(spec=ProcessRunner)
        installer = make_installer(settings, "git", clone_logger, runner=runner)

        outcome = await installer.clone_into(install_dir, "espIdfPath")

        assert outcome.status is InstallStatus.CONFLICT
        assert outcome.path == install_dir / "esp-idf"
        assert outcome.message == f"{install_dir / 'esp-idf'} already exist."
        assert clone_logger.info_notifies == [(outcome.message, "Installer")]
        runner.start_clone.assert_not_called()
        assert settings.read_parameter("espIdfPath") is None

    @pytest.mark.asyncio
    async def test_missing_git_fails_fast_without_spawn(
        self, settings, install_dir, clone_logger, tmp_path
    ):
        runner = mock.MagicMock(spec=ProcessRunner)
        installer = make_installer(settings, str(tmp_path / "no-git"), clone_logger, runner=runner)

        outcome = await installer.clone_into(install_dir, "espIdfPath")

        assert outcome.status is InstallStatus.FAILED
        assert isinstance(outcome.error, ToolUnavailableError)
        assert outcome.message == "Git is not found in gitPath or PATH"
        runner.start_clone.assert_not_called()

        assert len(clone_logger.error_notifies) == 1
        text, error, _ = clone_logger.error_notifies[0]
        assert text == outcome.message
        assert error is outcome.error

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_git_version_failure_counts_as_missing(
        self, settings, fake_git, fake_git_mode, install_dir, clone_logger
    ):
        fake_git_mode("success", FAKE_GIT_VERSION_FAIL="1")
        runner = mock.MagicMock(spec=ProcessRunner)
        installer = make_installer(settings, fake_git, clone_logger, runner=runner)

        outcome = await installer.clone_into(install_dir, "espIdfPath")

        assert isinstance(outcome.error, ToolUnavailableError)
        runner.start_clone.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_clone_failure_is_reported_not_raised(
        self, settings, fake_git, fake_git_mode, install_dir, clone_logger
    ):
        fake_git_mode("exit", FAKE_GIT_EXIT_CODE="7")
        installer = make_installer(settings, fake_git, clone_logger)

        outcome = await installer.clone_into(install_dir, "espIdfPath")

        assert outcome.status is InstallStatus.FAILED
        assert isinstance(outcome.error, NonZeroExitError)
        assert outcome.message == "ESP-IDF clone has exited with code 7"
        assert settings.read_parameter("espIdfPath") is None
        notified = [text for text, _, _ in clone_logger.error_notifies]
        assert "ESP-IDF clone has exited with code 7" in notified

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_workspace_scope(
        self, settings, settings_file, fake_git, fake_git_mode, install_dir, clone_logger, tmp_path
    ):
        fake_git_mode("success")
        workspace = tmp_path / "project"
        workspace.mkdir()
        settings.write_parameter("saveScope", "workspace", "global")
        installer = make_installer(settings, fake_git, clone_logger)

        outcome = await installer.clone_into(install_dir, "espIdfPath", workspace=workspace)

        assert outcome.status is InstallStatus.INSTALLED
        workspace_data = json.loads((workspace / ".git-clone-mcp.json").read_text(encoding="utf-8"))
        assert workspace_data["espIdfPath"] == str(install_dir / "esp-idf")
        assert "espIdfPath" not in json.loads(settings_file.read_text(encoding="utf-8"))


class TestGetRepository:
    """测试 get_repository() 的目录选择流程。"""

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_another_directory(self, settings, fake_git, fake_git_mode, install_dir, clone_logger):
        fake_git_mode("success")
        installer = make_installer(settings, fake_git, clone_logger)

        outcome = await installer.get_repository(
            "espIdfPath", StaticDirectorySelector("another", install_dir)
        )

        assert outcome.status is InstallStatus.INSTALLED
        assert settings.read_parameter("espIdfPath") == str(install_dir / "esp-idf")

    @pytest.mark.asyncio
    @pytest.mark.timeout(20)
    async def test_current_uses_tools_path(
        self, settings, fake_git, fake_git_mode, clone_logger, tmp_path
    ):
        fake_git_mode("success")
        tools_dir = tmp_path / "tools"
        tools_dir.mkdir()
        installer = make_installer(settings, fake_git, clone_logger)

        outcome = await installer.get_repository("espIdfPath", StaticDirectorySelector("current"))

        assert outcome.status is InstallStatus.INSTALLED
        assert outcome.path == tools_dir / "esp-idf"

    @pytest.mark.asyncio
    async def test_current_missing_tools_dir_aborts(self, settings, clone_logger, tmp_path):
        runner = mock.MagicMock(spec=ProcessRunner)
        installer = make_installer(settings, "git", clone_logger, runner=runner)

        outcome = await installer.get_repository("espIdfPath", StaticDirectorySelector("current"))

        assert outcome.status is InstallStatus.ABORTED
        assert outcome.message == f"{tmp_path / 'tools'} doesn't exist."
        assert clone_logger.info_notifies == [(outcome.message, "Installer")]
        runner.start_clone.assert_not_called()

    @pytest.mark.asyncio
    async def test_existing_repository_is_registered(self, settings, clone_logger, tmp_path):
        existing = tmp_path / "opt" / "esp-idf"
        existing.mkdir(parents=True)
        runner = mock.MagicMock(spec=ProcessRunner)
        installer = make_installer(settings, "git", clone_logger, runner=runner)

        outcome = await installer.get_repository(
            "espIdfPath", StaticDirectorySelector(DirectoryTarget.EXISTING, existing)
        )

        assert outcome.status is InstallStatus.EXISTING
        assert outcome.success
        assert settings.read_parameter("espIdfPath") == str(existing)
        assert clone_logger.info_notifies == [("ESP-IDF has been installed", "Installer")]
        runner.start_clone.assert_not_called()

    @pytest.mark.asyncio
    async def test_selection_aborted(self, settings, clone_logger):
        runner = mock.MagicMock(spec=ProcessRunner)
        installer = make_installer(settings, "git", clone_logger, runner=runner)

        # "another" without a path is treated as a dismissed selection
        outcome = await installer.get_repository("espIdfPath", StaticDirectorySelector("another"))

        assert outcome.status is InstallStatus.ABORTED
        runner.start_clone.assert_not_called()

    @pytest.mark.asyncio
    async def test_selector_receives_name_and_tools_dir(self, settings, clone_logger, tmp_path):
        selector = mock.AsyncMock()
        selector.select.return_value = None
        installer = make_installer(settings, "git", clone_logger)

        await installer.get_repository("espIdfPath", selector)

        selector.select.assert_awaited_once_with("ESP-IDF", str(tmp_path / "tools"))

    @pytest.mark.asyncio
    async def test_corrupt_settings_reported(self, settings, settings_file, clone_logger):
        settings_file.parent.mkdir(parents=True)
        settings_file.write_text("{not json", encoding="utf-8")
        installer = make_installer(settings, "git", clone_logger)

        outcome = await installer.get_repository(
            "espIdfPath", StaticDirectorySelector("current")
        )

        assert outcome.status is InstallStatus.FAILED
        assert len(clone_logger.error_notifies) == 1
