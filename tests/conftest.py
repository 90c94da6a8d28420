"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = Path(__file__).parent / "fixtures"
FAKE_GIT_SCRIPT = FIXTURES_DIR / "fake_git.py"

ESP_IDF_REPOSITORY = "https://github.com/espressif/esp-idf.git"


class RecordingSink:
    """记录所有进度报告。"""

    def __init__(self) -> None:
        self.reports: list[tuple[str, str | None]] = []

    def report(self, message: str, detail: str | None = None) -> None:
        self.reports.append((message, detail))

    @property
    def messages(self) -> list[str]:
        return [message for message, _ in self.reports]


class RecordingCloneLogger:
    """记录 info / info_notify / error_notify 调用。"""

    def __init__(self) -> None:
        self.infos: list[tuple[str, str]] = []
        self.info_notifies: list[tuple[str, str]] = []
        self.error_notifies: list[tuple[str, BaseException, str]] = []

    def info(self, text: str, tag: str) -> None:
        self.infos.append((text, tag))

    def info_notify(self, text: str, tag: str) -> None:
        self.info_notifies.append((text, tag))

    def error_notify(self, text: str, error: BaseException, tag: str) -> None:
        self.error_notifies.append((text, error, tag))

    @property
    def logged_text(self) -> str:
        return "".join(text for text, _ in self.infos)


@pytest.fixture
def project_root() -> Path:
    """项目根目录。"""
    return PROJECT_ROOT


@pytest.fixture
def fake_git(tmp_path: Path) -> str:
    """可执行的 fake git 包装脚本路径（POSIX）。"""
    if sys.platform == "win32":
        pytest.skip("fake git wrapper requires a POSIX shell")

    wrapper = tmp_path / "bin" / "git"
    wrapper.parent.mkdir()
    wrapper.write_text(
        f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_GIT_SCRIPT}" "$@"\n',
        encoding="utf-8",
    )
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(wrapper)


@pytest.fixture
def fake_git_mode(monkeypatch: pytest.MonkeyPatch):
    """设置 fake git 的行为模式。"""

    def _set(mode: str, **env: str) -> None:
        monkeypatch.setenv("FAKE_GIT_MODE", mode)
        for key, value in env.items():
            monkeypatch.setenv(key, value)

    return _set


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    """克隆的工作目录。"""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def clone_logger() -> RecordingCloneLogger:
    return RecordingCloneLogger()


@pytest.fixture(autouse=True)
def _isolated_gcm_env(monkeypatch: pytest.MonkeyPatch):
    """清除 GCM_* 环境变量，避免影响配置相关测试。"""
    for key in list(os.environ):
        if key.startswith("GCM_") or key.startswith("FAKE_GIT_"):
            monkeypatch.delenv(key, raising=False)
