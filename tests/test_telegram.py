"""Tests for the alert channels."""

import json
import pytest
from unittest.mock import patch
import httpx

from mailtriage.logging.config import setup_logging
from mailtriage.notify.telegram import AlertError, LogAlertChannel, TelegramAlertChannel


@pytest.fixture(autouse=True)
def init_logging():
    setup_logging("debug")


@pytest.fixture
def channel() -> TelegramAlertChannel:
    return TelegramAlertChannel(bot_token="123:secret", chat_id="42")


class TestTelegram:
    def test_send(self, channel):
        mock_response = httpx.Response(
            200, json={"ok": True}, request=httpx.Request("POST", "https://api.telegram.org")
        )

        with patch.object(channel._http, "post", return_value=mock_response) as mock_post:
            channel.send("🚨 *FRAUD-ALERT REQUIRED*", urgency=9, category="banking/fraud-alert")

        assert mock_post.call_args[0][0] == "https://api.telegram.org/bot123:secret/sendMessage"
        payload = mock_post.call_args[1]["json"]
        assert payload["chat_id"] == "42"
        assert payload["text"] == "🚨 *FRAUD-ALERT REQUIRED*"
        assert payload["parse_mode"] == "Markdown"
        assert payload["disable_web_page_preview"] is True

    def test_rejected_raises(self, channel):
        mock_response = httpx.Response(
            400, json={"ok": False}, request=httpx.Request("POST", "https://api.telegram.org")
        )

        with patch.object(channel._http, "post", return_value=mock_response):
            with pytest.raises(AlertError, match="status 400"):
                channel.send("text", urgency=5, category="banking/fraud-alert")

    def test_unreachable_raises(self, channel):
        with patch.object(channel._http, "post", side_effect=httpx.ConnectError("no route")):
            with pytest.raises(AlertError):
                channel.send("text", urgency=5, category="banking/fraud-alert")

    def test_token_never_logged(self, channel, capsys):
        setup_logging("debug")
        mock_response = httpx.Response(
            401, json={"ok": False}, request=httpx.Request("POST", "https://api.telegram.org/bot123:secret/sendMessage")
        )

        with patch.object(channel._http, "post", return_value=mock_response):
            with pytest.raises(AlertError) as excinfo:
                channel.send("text", urgency=5, category="banking/fraud-alert")

        assert "123:secret" not in capsys.readouterr().out
        assert "123:secret" not in str(excinfo.value)


class TestLogAlertChannel:
    def test_logs_alert_text(self, capsys):
        setup_logging("debug")
        LogAlertChannel().send("📋 *BILL-DUE REQUIRED*", urgency=4, category="utilities/bill-due")

        log = json.loads(capsys.readouterr().out.strip())
        assert log["level"] == "warning"
        assert log["logger"] == "mailtriage.alerts"
        assert log["message"] == "📋 *BILL-DUE REQUIRED*"
        assert log["action"] == "alert.logged"
        assert log["urgency"] == 4
