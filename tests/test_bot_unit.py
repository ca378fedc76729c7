"""Unit tests for the polling loop and process wiring."""

import http.client
import json
import logging
import os
from concurrent.futures import Future
from unittest.mock import MagicMock, Mock, patch

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from botocore.exceptions import ClientError

from news_relay_bot.bot import NewsRelayBot, build_bot, get_telegram_token
from news_relay_bot.config import Config, TelegramConfig
from news_relay_bot.digest import DIGEST_JOB_ID
from news_relay_bot.models import InboundMessage
from news_relay_bot.telegram import RecipientUnreachableError, TelegramGateway


class TestNewsRelayBotUnit:
    """Unit tests for NewsRelayBot polling."""

    def setup_method(self):
        self.gateway = Mock()
        self.dispatcher = Mock()
        self.bot = NewsRelayBot(self.gateway, self.dispatcher, poll_interval=0)

    def teardown_method(self):
        self.bot.stop()

    def test_poll_once_dispatches_messages(self):
        self.gateway.get_updates.return_value = [
            {"update_id": 10, "message": {"from": {"id": 1}, "chat": {"id": 5}, "text": "tech"}},
            {"update_id": 11, "channel_post": {"chat": {"id": 6}}},
            {"update_id": 12, "message": {"chat": {"id": 7}, "sticker": {}}},
        ]

        assert self.bot.poll_once() == 3
        self.bot.executor.shutdown(wait=True)

        self.gateway.get_updates.assert_called_once_with(None)
        assert self.bot.offset == 13
        handled = [call.args[0] for call in self.dispatcher.handle.call_args_list]
        assert InboundMessage(sender_id=1, chat_id=5, text="tech") in handled
        assert InboundMessage(sender_id=None, chat_id=7, text=None) in handled
        assert len(handled) == 2

    def test_offset_advances(self):
        self.gateway.get_updates.return_value = [{"update_id": 3}]
        self.bot.poll_once()
        self.gateway.get_updates.return_value = []
        self.bot.poll_once()

        assert self.gateway.get_updates.call_args.args == (4,)

    def test_unreachable_failures_not_logged(self, caplog):
        future = Future()
        future.set_exception(RecipientUnreachableError("Forbidden", 403))

        with caplog.at_level(logging.INFO, logger="news_relay_bot"):
            self.bot._report_failure(future)

        assert not caplog.records

    def test_other_failures_logged(self, caplog):
        future = Future()
        future.set_exception(ValueError("bad state"))

        with caplog.at_level(logging.INFO, logger="news_relay_bot"):
            self.bot._report_failure(future)

        assert len(caplog.records) == 1
        assert caplog.records[0].levelno == logging.ERROR
        assert "bad state" in caplog.records[0].getMessage()

    def test_dropped_connections_keep_polling(self, caplog):
        gateway = TelegramGateway(TelegramConfig(bot_token="t"))
        bot = NewsRelayBot(gateway, self.dispatcher, poll_interval=0)
        failures = [
            http.client.RemoteDisconnected("Remote end closed connection without response"),
            ConnectionResetError(104, "Connection reset by peer"),
        ]

        def urlopen(request, timeout):
            if failures:
                raise failures.pop(0)
            bot.stop()
            response = MagicMock()
            response.read.return_value = b'{"ok": true, "result": []}'
            context = MagicMock()
            context.__enter__.return_value = response
            return context

        with (
            patch("urllib.request.urlopen", side_effect=urlopen) as mock_urlopen,
            patch("time.sleep") as mock_sleep,
            caplog.at_level(logging.INFO, logger="news_relay_bot"),
        ):
            bot.run_forever()

        assert mock_urlopen.call_count == 3
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 2
        assert all("Polling error" in r.getMessage() for r in warnings)
        assert mock_sleep.call_args_list[0].args == (1.0,)

    def test_unexpected_polling_error_logged(self, caplog):
        calls = []

        def get_updates(offset):
            calls.append(offset)
            if len(calls) == 1:
                raise RuntimeError("socket went away")
            self.bot.stop()
            return []

        self.gateway.get_updates.side_effect = get_updates

        with (
            patch("time.sleep"),
            caplog.at_level(logging.INFO, logger="news_relay_bot"),
        ):
            self.bot.run_forever()

        assert len(calls) == 2
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "socket went away" in errors[0].getMessage()
        assert errors[0].exc_info is not None


class TestTelegramTokenUnit:
    """Unit tests for get_telegram_token."""

    def test_environment_token_wins(self):
        with patch.dict(os.environ, {"TELEGRAM_BOT_TOKEN": " 123:abc ", "TELEGRAM_SECRET_NAME": "s"}, clear=True):
            config = Config()

        with patch("news_relay_bot.bot.boto3.client") as mock_client:
            assert get_telegram_token(config) == "123:abc"
        mock_client.assert_not_called()

    def test_missing_token(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config()

        with pytest.raises(ValueError):
            get_telegram_token(config)

    def test_plain_secret(self):
        with patch.dict(os.environ, {"TELEGRAM_SECRET_NAME": "bot-token"}, clear=True):
            config = Config()

        with patch("news_relay_bot.bot.boto3.client") as mock_client:
            mock_client.return_value.get_secret_value.return_value = {"SecretString": "plain-token\n"}
            assert get_telegram_token(config) == "plain-token"

        mock_client.assert_called_once_with("secretsmanager", region_name="us-east-1")

    def test_json_secret(self):
        with patch.dict(os.environ, {"TELEGRAM_SECRET_NAME": "bot-token"}, clear=True):
            config = Config()

        with patch("news_relay_bot.bot.boto3.client") as mock_client:
            mock_client.return_value.get_secret_value.return_value = {
                "SecretString": json.dumps({"bot_token": "json-token"})
            }
            assert get_telegram_token(config) == "json-token"

    def test_secret_errors(self):
        with patch.dict(os.environ, {"TELEGRAM_SECRET_NAME": "bot-token"}, clear=True):
            config = Config()

        error = ClientError(
            {"Error": {"Code": "ResourceNotFoundException", "Message": "missing"}},
            "GetSecretValue",
        )
        with patch("news_relay_bot.bot.boto3.client") as mock_client:
            mock_client.return_value.get_secret_value.side_effect = error
            with pytest.raises(RuntimeError):
                get_telegram_token(config)


class TestBuildBotUnit:
    """Unit tests for build_bot wiring."""

    def test_build_registers_digest(self, tmp_path):
        env = {"TELEGRAM_BOT_TOKEN": "t", "FEEDS_FILE": str(tmp_path / "none.json")}
        with patch.dict(os.environ, env, clear=True):
            config = Config()
        scheduler = BackgroundScheduler()

        bot = build_bot(config, scheduler)
        try:
            assert isinstance(bot, NewsRelayBot)
            assert scheduler.get_job(DIGEST_JOB_ID) is not None
            assert bot.gateway.base_url.endswith("/bott")
        finally:
            bot.stop()

    def test_unknown_digest_category(self, tmp_path):
        env = {
            "TELEGRAM_BOT_TOKEN": "t",
            "DIGEST_CATEGORY": "crypto",
            "FEEDS_FILE": str(tmp_path / "none.json"),
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config()

        with pytest.raises(ValueError, match="crypto"):
            build_bot(config, BackgroundScheduler())
