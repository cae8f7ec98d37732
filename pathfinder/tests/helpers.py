"""Test helpers shared across test modules."""

import json
from datetime import datetime, timezone

from pathfinder.common.config import ConfigBuilder

FIXED_NOW = datetime(2026, 3, 14, 9, 30, 0, tzinfo=timezone.utc)


def classifier_reply(intent, parameters=None, confidence=0.9, language="en"):
    """JSON reply in the shape the classifier is instructed to produce."""
    return json.dumps({
        "intent": intent,
        "parameters": parameters or {},
        "confidence": confidence,
        "language": language,
    })


def make_config(overrides=None):
    return ConfigBuilder().with_defaults().with_overrides(overrides or {}).build()
