"""响应格式化与克隆日志测试。"""

from __future__ import annotations

import logging
from pathlib import Path

from git_clone_mcp.errors import DestinationExistsError, NonZeroExitError
from git_clone_mcp.installer import InstallOutcome, InstallStatus
from git_clone_mcp.notifier import CloneLogger
from git_clone_mcp.response_formatter import (
    DebugInfo,
    ResponseData,
    ResponseFormatter,
    format_cancelled_response,
    format_error_response,
    format_outcome_response,
    format_setting_response,
)


class TestResponseFormatter:
    """ResponseFormatter.format()。"""

    def test_success(self):
        text = ResponseFormatter().format(
            ResponseData(status="installed", path="/opt/esp-idf", message="ESP-IDF has been installed")
        )
        assert text == (
            "<response>\n"
            "  <status>installed</status>\n"
            "  <path>/opt/esp-idf</path>\n"
            "  <message>ESP-IDF has been installed</message>\n"
            "</response>"
        )

    def test_error_comes_first_and_is_not_repeated(self):
        text = ResponseFormatter().format(
            ResponseData(status="failed", message="boom", error="boom")
        )
        assert text.startswith("<response>\n  <error>boom</error>")
        assert "<message>" not in text

    def test_debug_info_only_when_requested(self):
        data = ResponseData(
            status="installed",
            debug_info=DebugInfo(duration_sec=1.23456, git_path="/usr/bin/git", configuration_id="espIdfPath"),
        )
        assert "<debug_info>" not in ResponseFormatter().format(data)

        text = ResponseFormatter().format(data, debug=True)
        assert "<duration_sec>1.235</duration_sec>" in text
        assert "<git_path>/usr/bin/git</git_path>" in text
        assert "<log_file>" not in text


class TestResponseHelpers:
    """format_* 辅助函数。"""

    def test_error_response(self):
        [content] = format_error_response("Unknown tool 'x'")
        assert content.type == "text"
        assert "<status>failed</status>" in content.text

    def test_outcome_failure_uses_message_as_error(self):
        outcome = InstallOutcome(
            status=InstallStatus.FAILED,
            message="ESP-IDF clone has exited with code 7",
            error=NonZeroExitError("ESP-IDF", 7),
        )
        [content] = format_outcome_response(outcome)
        assert "<error>ESP-IDF clone has exited with code 7</error>" in content.text
        assert "<path>" not in content.text

    def test_outcome_conflict(self):
        path = Path("/opt/esp-idf")
        error = DestinationExistsError(path)
        outcome = InstallOutcome(
            status=InstallStatus.CONFLICT, path=path, message=str(error), error=error
        )
        [content] = format_outcome_response(outcome)
        assert "<status>conflict</status>" in content.text
        assert f"<path>{path}</path>" in content.text

    def test_outcome_with_debug_info(self):
        outcome = InstallOutcome(status=InstallStatus.EXISTING, path=Path("/opt/esp-idf"))
        [content] = format_outcome_response(outcome, debug_info=DebugInfo(duration_sec=0.5))
        assert "<debug_info>" in content.text
        assert "<error>" not in content.text

    def test_setting_response(self):
        [content] = format_setting_response("saveScope", "global")
        assert content.text == "<response>\n  <key>saveScope</key>\n  <value>global</value>\n</response>"

    def test_setting_response_without_value(self):
        [content] = format_setting_response("espIdfPath", None)
        assert "<value/>" in content.text

    def test_cancelled_response(self):
        [content] = format_cancelled_response("ESP-IDF clone was cancelled")
        assert "<status>cancelled</status>" in content.text
        assert "<message>ESP-IDF clone was cancelled</message>" in content.text


class TestCloneLogger:
    """CloneLogger 转发到 logging 与通知回调。"""

    def test_info_is_logged_verbatim_without_notify(self, caplog):
        notified = []
        clone_logger = CloneLogger(notify=lambda level, text: notified.append((level, text)))

        with caplog.at_level(logging.INFO, logger="git_clone_mcp.clone"):
            clone_logger.info("Receiving objects: 45%\r", "ESP-IDF Cloning")

        assert "[ESP-IDF Cloning] Receiving objects: 45%\r" in caplog.text
        assert notified == []

    def test_notify_levels(self):
        notified = []
        clone_logger = CloneLogger(notify=lambda level, text: notified.append((level, text)))

        clone_logger.info_notify("ESP-IDF has been installed", "Installer")
        clone_logger.error_notify("Cloning error", NonZeroExitError("ESP-IDF", 1), "Installer")

        assert notified == [
            ("info", "ESP-IDF has been installed"),
            ("error", "Cloning error"),
        ]

    def test_failing_notify_is_swallowed(self, caplog):
        def explode(level, text):
            raise RuntimeError("transport closed")

        with caplog.at_level(logging.ERROR, logger="git_clone_mcp.clone"):
            CloneLogger(notify=explode).error_notify("Cloning error", ValueError("x"), "Installer")

        assert "Cloning error: ValueError: x" in caplog.text
