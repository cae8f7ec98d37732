"""
Tests for Delivery

Slack formatting, posting and event handling; webhook fan-out; session logs.
"""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from unittest.mock import Mock

import httpx
import pytest

from pathfinder.common.config import Credentials, SlackSettings
from pathfinder.common.errors import LoggingError
from pathfinder.common.schemas import SESSION_LOG_COLUMNS, SessionRecord
from pathfinder.common.sheets_client import SheetsClient, SheetsError
from pathfinder.delivery import (
    ConsoleSessionLogger,
    SlackClient,
    SlackDelivery,
    SlackEventHandler,
    SpreadsheetSessionLogger,
    WebhookDispatcher,
    build_envelope,
    create_session_logger,
    to_slack_mrkdwn,
)
from pathfinder.tests.helpers import make_config

NOW = 1_700_000_000


def mock_http(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def sign(secret, timestamp, body):
    basestring = f"v0:{timestamp}:{body.decode('utf-8')}"
    return "v0=" + hmac.new(secret.encode(), basestring.encode(), hashlib.sha256).hexdigest()


def record(**overrides):
    values = dict(
        session_id="sess_20260314093000_abcdef123456",
        user_input="Find programming training",
        intent="search_by_category",
        timestamp=datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return SessionRecord(**values)


class TestSlackMrkdwn:
    @pytest.mark.parametrize("markdown,expected", [
        ("**bold**", "*bold*"),
        ("__underline__", "_underline_"),
        ("[docs](https://example.com/a)", "<https://example.com/a|docs>"),
        ("# Heading", "*Heading*"),
        ("## Results ##", "*Results*"),
        ("plain *already* mrkdwn", "plain *already* mrkdwn"),
    ])
    def test_conversions(self, markdown, expected):
        assert to_slack_mrkdwn(markdown) == expected

    def test_multiline(self):
        text = "# Found 2\n1. **Python**\n2. **SQL**"
        assert to_slack_mrkdwn(text) == "*Found 2*\n1. *Python*\n2. *SQL*"

    def test_empty(self):
        assert to_slack_mrkdwn("") == ""


class TestSlackClient:
    def test_post_message(self):
        def handler(request):
            assert request.url.path == "/api/chat.postMessage"
            assert request.headers["Authorization"] == "Bearer xoxb-1"
            assert json.loads(request.content) == {"channel": "C1", "text": "hi", "thread_ts": "111.222"}
            return httpx.Response(200, json={"ok": True, "ts": "333.444"})

        client = SlackClient("xoxb-1", http_client=mock_http(handler))
        assert client.post_message("C1", "hi", thread_ref="111.222") == {"ok": True, "ts": "333.444", "error": None}

    def test_api_error(self):
        client = SlackClient("xoxb-1", http_client=mock_http(lambda r: httpx.Response(200, json={"ok": False, "error": "channel_not_found"})))
        result = client.post_message("C1", "hi")
        assert result["ok"] is False
        assert result["error"] == "channel_not_found"

    def test_http_status_error(self):
        client = SlackClient("xoxb-1", http_client=mock_http(lambda r: httpx.Response(503)))
        assert client.post_message("C1", "hi")["error"] == "HTTP 503"

    def test_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        result = SlackClient("xoxb-1", http_client=mock_http(handler)).post_message("C1", "hi")
        assert result["ok"] is False
        assert "slow" in result["error"]


class TestSlackDelivery:
    @pytest.fixture
    def client(self):
        client = Mock(spec=SlackClient)
        client.post_message.return_value = {"ok": True, "ts": "9.9", "error": None}
        return client

    def test_mention_and_thread(self, client):
        settings = SlackSettings(enabled=True, channel="#training", mention_user=True)
        outcome = SlackDelivery(client).deliver("Found 1", settings, thread_ref="1.1", user="U123")

        client.post_message.assert_called_once_with("#training", "<@U123> Found 1", thread_ref="1.1")
        assert outcome.success
        assert outcome.reference == "9.9"
        assert outcome.target == "slack"

    def test_threads_disabled(self, client):
        settings = SlackSettings(channel="#training", use_threads=False)
        SlackDelivery(client).deliver("x", settings, thread_ref="1.1", user="U123")
        client.post_message.assert_called_once_with("#training", "x", thread_ref=None)

    def test_channel_override(self, client):
        SlackDelivery(client).deliver("x", SlackSettings(channel="#default"), channel="C42")
        assert client.post_message.call_args.args[0] == "C42"

    def test_markdown_rewritten_to_mrkdwn(self, client):
        SlackDelivery(client).deliver("**Found 1**\n[docs](https://example.com)", SlackSettings(channel="#c"))
        assert client.post_message.call_args.args[1] == "*Found 1*\n<https://example.com|docs>"

    def test_markup_kept_when_formatting_off(self, client):
        SlackDelivery(client).deliver("**Found 1**", SlackSettings(channel="#c", format_markup=False))
        assert client.post_message.call_args.args[1] == "**Found 1**"

    def test_no_channel(self, client):
        outcome = SlackDelivery(client).deliver("x", SlackSettings())
        assert not outcome.success
        client.post_message.assert_not_called()

    def test_failure_is_reported(self, client, caplog):
        client.post_message.return_value = {"ok": False, "ts": None, "error": "not_in_channel"}
        outcome = SlackDelivery(client).deliver("x", SlackSettings(channel="#c"))
        assert not outcome.success
        assert outcome.error == "not_in_channel"
        assert "not_in_channel" in caplog.text


class TestSlackEventHandler:
    SECRET = "signing-secret"

    @pytest.fixture
    def handler(self):
        return SlackEventHandler(signing_secret=self.SECRET, clock=lambda: NOW)

    def test_valid_signature(self, handler):
        body = b'{"type": "event_callback"}'
        assert handler.verify_signature(body, sign(self.SECRET, NOW, body), str(NOW))

    def test_wrong_signature(self, handler):
        body = b'{"type": "event_callback"}'
        assert not handler.verify_signature(body, sign("other", NOW, body), str(NOW))

    def test_stale_timestamp(self, handler):
        body = b"{}"
        old = NOW - 301
        assert not handler.verify_signature(body, sign(self.SECRET, old, body), str(old))

    def test_missing_headers(self, handler):
        assert not handler.verify_signature(b"{}", "", "")
        assert not handler.verify_signature(b"{}", "v0=abc", "not-a-number")

    def test_non_utf8_body_is_rejected(self, handler):
        assert not handler.verify_signature(b"\xff\xfe\x00", "v0=abc", str(NOW))

    def test_signature_over_raw_bytes(self, handler):
        body = b"payload=\xe9"
        basestring = b"v0:" + str(NOW).encode() + b":" + body
        signature = "v0=" + hmac.new(self.SECRET.encode(), basestring, hashlib.sha256).hexdigest()
        assert handler.verify_signature(body, signature, str(NOW))

    def test_no_secret_skips_verification(self):
        assert SlackEventHandler().verify_signature(b"{}", "", "")

    def test_url_verification(self, handler):
        data = {"type": "url_verification", "challenge": "abc"}
        assert handler.is_url_verification(data)
        assert handler.get_challenge(data) == "abc"

    def test_app_mention(self, handler):
        event = handler.parse_event({
            "type": "event_callback",
            "event": {
                "type": "app_mention",
                "text": "<@U0BOT> find   programming training",
                "user": "U123",
                "channel": "C1",
                "ts": "100.1",
            },
        })
        assert event.text == "find programming training"
        assert event.user == "U123"
        assert event.thread_ref == "100.1"
        assert not event.is_thread_reply

    def test_mention_in_thread(self, handler):
        event = handler.parse_event({
            "type": "event_callback",
            "event": {"type": "app_mention", "text": "<@U0BOT> help", "user": "U1", "channel": "C1",
                      "ts": "100.5", "thread_ts": "100.1"},
        })
        assert event.thread_ref == "100.1"
        assert event.is_thread_reply

    def test_direct_message(self, handler):
        event = handler.parse_event({
            "type": "event_callback",
            "event": {"type": "message", "channel_type": "im", "text": "help", "user": "U1", "channel": "D1", "ts": "1.0"},
        })
        assert event.text == "help"
        assert event.event_type == "message"

    @pytest.mark.parametrize("event", [
        {"type": "message", "channel_type": "channel", "text": "hello", "user": "U1", "ts": "1"},
        {"type": "app_mention", "text": "hi", "bot_id": "B1", "ts": "1"},
        {"type": "message", "channel_type": "im", "subtype": "message_changed", "ts": "1"},
        {"type": "app_mention", "text": "<@U0BOT>", "user": "U1", "ts": "1"},
        {"type": "reaction_added", "user": "U1"},
    ])
    def test_ignored_events(self, handler, event):
        assert handler.parse_event({"type": "event_callback", "event": event}) is None

    def test_non_callback_ignored(self, handler):
        assert handler.parse_event({"type": "url_verification", "challenge": "x"}) is None


class TestWebhookDispatcher:
    def test_envelope_has_every_field(self):
        envelope = build_envelope(session_id="s", input="hi", agent="Pathfinder")
        assert set(envelope) == {"session_id", "input", "intent", "response", "timestamp", "user", "channel", "agent"}
        assert envelope["intent"] is None

    def test_partial_success(self, caplog):
        received = []

        def handler(request):
            received.append(str(request.url))
            if "bad" in str(request.url):
                return httpx.Response(500)
            return httpx.Response(204)

        dispatcher = WebhookDispatcher(
            ["https://bad.example.com/hook", "https://good.example.com/hook"],
            http_client=mock_http(handler),
        )
        outcome = dispatcher.dispatch(build_envelope(session_id="s"))

        assert len(received) == 2
        assert outcome.success
        assert outcome.reference == "1/2"
        assert "HTTP 500" in outcome.error
        assert "bad.example.com" in caplog.text

    def test_all_fail(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        outcome = WebhookDispatcher(["https://a.example.com"], http_client=mock_http(handler)).dispatch({})
        assert not outcome.success
        assert "refused" in outcome.error

    def test_posts_envelope_as_json(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200)

        envelope = build_envelope(session_id="s1", response="Found 1")
        WebhookDispatcher(["https://a.example.com"], http_client=mock_http(handler)).dispatch(envelope)
        assert bodies == [envelope]

    def test_no_urls(self):
        assert not WebhookDispatcher([]).dispatch({}).success


class TestSessionLoggers:
    def test_spreadsheet_logger_creates_sheet_once(self):
        client = Mock(spec=SheetsClient)
        logger = SpreadsheetSessionLogger(client, sheet_name="Log")

        logger.log(record())
        logger.log(record(session_id="sess_2"))

        client.ensure_sheet.assert_called_once_with("Log", SESSION_LOG_COLUMNS)
        assert client.append_row.call_count == 2
        assert client.append_row.call_args.args[1][1] == "sess_2"

    def test_spreadsheet_failure_is_logging_error(self):
        client = Mock(spec=SheetsClient)
        client.append_row.side_effect = SheetsError("quota exceeded")
        with pytest.raises(LoggingError, match="quota exceeded"):
            SpreadsheetSessionLogger(client).log(record())

    def test_console_logger_emits_json(self, caplog):
        with caplog.at_level(logging.INFO, logger="pathfinder.sessions"):
            ConsoleSessionLogger().log(record())
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["session_id"] == "sess_20260314093000_abcdef123456"
        assert payload["intent"] == "search_by_category"

    def test_factory_prefers_spreadsheet(self):
        logger = create_session_logger(make_config(), Credentials(storage_id="sheet-1", storage_token="t"))
        assert isinstance(logger, SpreadsheetSessionLogger)
        assert logger.sheet_name == "SessionLog"

    def test_factory_console_without_storage(self):
        assert isinstance(create_session_logger(make_config(), Credentials()), ConsoleSessionLogger)

    def test_factory_disabled(self):
        config = make_config({"logging": {"enabled": False}})
        assert create_session_logger(config, Credentials(storage_id="sheet-1")) is None
