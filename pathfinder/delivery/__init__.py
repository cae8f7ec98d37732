"""
Delivery Module

Where a finished response goes after the pipeline: Slack, webhooks and the
session log.
"""

from .session_log import ConsoleSessionLogger, SpreadsheetSessionLogger, create_session_logger
from .slack import SlackClient, SlackDelivery, SlackEvent, SlackEventHandler, to_slack_mrkdwn
from .webhooks import WebhookDispatcher, build_envelope

__all__ = [
    "ConsoleSessionLogger",
    "SpreadsheetSessionLogger",
    "create_session_logger",
    "SlackClient",
    "SlackDelivery",
    "SlackEvent",
    "SlackEventHandler",
    "to_slack_mrkdwn",
    "WebhookDispatcher",
    "build_envelope",
]
