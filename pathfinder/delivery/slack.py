"""
Slack Delivery

Posts responses through Slack's Web API and turns Slack Events API
callbacks into pipeline input.

- to_slack_mrkdwn: Markdown -> Slack mrkdwn
- SlackClient: chat.postMessage over httpx
- SlackDelivery: mention prefix + thread continuation, returns DeliveryOutcome
- SlackEventHandler: signature verification and event parsing
"""

import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from ..common.schemas import DeliveryOutcome

logger = logging.getLogger("pathfinder.delivery.slack")

SLACK_API_BASE = "https://slack.com/api"

# Requests older than this are rejected (replay protection)
SIGNATURE_MAX_AGE_SECONDS = 300

_MENTION_RE = re.compile(r"<@[UW][A-Z0-9]+(?:\|[^>]*)?>")
_LINK_RE = re.compile(r"\[([^\]]+)\]\((\S+?)\)")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_UNDERLINE_RE = re.compile(r"__(.+?)__")
_HEADING_RE = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)


def to_slack_mrkdwn(text: str) -> str:
    """
    Convert common Markdown to Slack mrkdwn.

    **bold** -> *bold*, __text__ -> _text_, [label](url) -> <url|label>,
    and "# Heading" lines -> *Heading*.
    """
    if not text:
        return text
    text = _LINK_RE.sub(lambda m: f"<{m.group(2)}|{m.group(1)}>", text)
    text = _HEADING_RE.sub(lambda m: f"*{m.group(1)}*", text)
    text = _BOLD_RE.sub(lambda m: f"*{m.group(1)}*", text)
    text = _UNDERLINE_RE.sub(lambda m: f"_{m.group(1)}_", text)
    return text


def strip_mentions(text: str) -> str:
    return re.sub(r"\s{2,}", " ", _MENTION_RE.sub("", text or "")).strip()


class SlackClient:
    """Minimal Slack Web API client (chat.postMessage only)."""

    def __init__(
        self,
        bot_token: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            bot_token: Bot user OAuth token (xoxb-...)
            timeout: Per-request timeout in seconds
            http_client: Preconfigured httpx client (tests inject a mock transport)
        """
        self._token = bot_token
        self._client = http_client or httpx.Client(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self._token)

    def post_message(self, channel: str, text: str, thread_ref: Optional[str] = None) -> Dict[str, Any]:
        """
        Post a message.

        Returns:
            {"ok": bool, "ts": message timestamp or None, "error": str or None}
        """
        payload: Dict[str, Any] = {"channel": channel, "text": text}
        if thread_ref:
            payload["thread_ts"] = thread_ref

        try:
            response = self._client.post(
                f"{SLACK_API_BASE}/chat.postMessage",
                json=payload,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.HTTPError as e:
            return {"ok": False, "ts": None, "error": f"transport error: {e}"}

        if response.status_code >= 400:
            return {"ok": False, "ts": None, "error": f"HTTP {response.status_code}"}

        try:
            body = response.json()
        except ValueError:
            return {"ok": False, "ts": None, "error": "invalid JSON from Slack"}

        if not body.get("ok"):
            return {"ok": False, "ts": None, "error": body.get("error", "unknown_error")}
        return {"ok": True, "ts": body.get("ts"), "error": None}

    def close(self) -> None:
        self._client.close()


class SlackDelivery:
    """Posts a pipeline response to Slack according to SlackSettings."""

    target = "slack"

    def __init__(self, client: SlackClient):
        self._client = client

    def deliver(
        self,
        text: str,
        settings,
        channel: Optional[str] = None,
        thread_ref: Optional[str] = None,
        user: Optional[str] = None,
    ) -> DeliveryOutcome:
        """
        Args:
            text: Response content; Markdown is rewritten to mrkdwn when
                settings.format_markup is on
            settings: SlackSettings
            channel: Overrides settings.channel
            thread_ref: Parent message ts to reply under
            user: Slack user id to mention
        """
        channel = channel or settings.channel
        if not channel:
            return DeliveryOutcome(target=self.target, success=False, error="no channel configured")

        if settings.format_markup:
            text = to_slack_mrkdwn(text)
        if settings.mention_user and user:
            text = f"<@{user}> {text}"
        thread = thread_ref if settings.use_threads else None

        result = self._client.post_message(channel, text, thread_ref=thread)
        if not result["ok"]:
            logger.warning("Slack delivery to %s failed: %s", channel, result["error"])
            return DeliveryOutcome(target=self.target, success=False, error=result["error"])

        logger.info("Posted response to Slack channel %s (ts=%s)", channel, result["ts"])
        return DeliveryOutcome(target=self.target, success=True, reference=result["ts"])


@dataclass
class SlackEvent:
    """A user request extracted from a Slack event callback"""
    text: str
    user: str
    channel: str
    ts: str
    thread_ts: Optional[str] = None
    event_type: str = "app_mention"

    @property
    def thread_ref(self) -> str:
        """Reply in the existing thread, or start one under the request."""
        return self.thread_ts or self.ts

    @property
    def is_thread_reply(self) -> bool:
        return self.thread_ts is not None and self.thread_ts != self.ts


class SlackEventHandler:
    """
    Handler for Slack Events API callbacks.

    Processes:
    - app_mention events (the bot was @-mentioned in a channel)
    - message events in direct messages

    Ignores:
    - Bot messages and message subtypes (edits, joins, deletions)
    - Mentions with no text besides the mention itself
    """

    def __init__(self, signing_secret: str = "", clock: Callable[[], float] = time.time):
        """
        Args:
            signing_secret: Slack signing secret; empty disables verification
            clock: Returns the current UNIX time
        """
        self._signing_secret = signing_secret
        self._clock = clock

    def verify_signature(self, body: bytes, signature: str, timestamp: str) -> bool:
        """
        Verify a request's X-Slack-Signature.

        Args:
            body: Raw request body
            signature: X-Slack-Signature header
            timestamp: X-Slack-Request-Timestamp header
        """
        if not self._signing_secret:
            return True

        if not signature or not timestamp:
            return False

        try:
            ts = int(timestamp)
        except ValueError:
            return False
        if abs(self._clock() - ts) > SIGNATURE_MAX_AGE_SECONDS:
            return False

        basestring = b"v0:" + timestamp.encode("utf-8") + b":" + body
        expected = "v0=" + hmac.new(
            self._signing_secret.encode("utf-8"),
            basestring,
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))

    def is_url_verification(self, raw_data: Dict[str, Any]) -> bool:
        return raw_data.get("type") == "url_verification"

    def get_challenge(self, raw_data: Dict[str, Any]) -> Optional[str]:
        if self.is_url_verification(raw_data):
            return raw_data.get("challenge")
        return None

    def parse_event(self, raw_data: Dict[str, Any]) -> Optional[SlackEvent]:
        """
        Extract the user's request from an event callback.

        Returns:
            SlackEvent, or None if the event should be ignored
        """
        if raw_data.get("type") != "event_callback":
            return None

        event = raw_data.get("event") or {}
        event_type = event.get("type", "")

        if event.get("bot_id") or event.get("subtype"):
            return None

        # In channels Slack sends both app_mention and message; answer the mention only
        if event_type == "message" and event.get("channel_type") != "im":
            return None
        if event_type not in ("app_mention", "message"):
            return None

        text = strip_mentions(event.get("text", ""))
        if not text:
            return None

        return SlackEvent(
            text=text,
            user=event.get("user", ""),
            channel=event.get("channel", ""),
            ts=event.get("ts", ""),
            thread_ts=event.get("thread_ts"),
            event_type=event_type,
        )
