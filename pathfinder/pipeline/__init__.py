"""
Request Pipeline

Turns a user utterance into a delivered, logged response.

Key Components:
- IntentParser: Classifies the request against the intent catalog
- ContentRetriever: Loads and filters content from a data provider
- ResponseGenerator: Renders the response from templates (or an LLM)
- Orchestrator: Runs the stages with a uniform fallback contract

Pipeline:
1. Parse intent and parameters
2. Retrieve matching content items (skipped for help)
3. Generate the response
4. Deliver to Slack / webhooks
5. Log the session record
"""

from .content_retriever import ContentRetriever, apply_filters
from .intent_parser import IntentParser
from .orchestrator import (
    Orchestrator,
    RunOptions,
    RunResult,
    build_fallback_response,
    generate_session_id,
)
from .response_generator import ResponseGenerator, decide_response_type

__all__ = [
    "ContentRetriever",
    "apply_filters",
    "IntentParser",
    "Orchestrator",
    "RunOptions",
    "RunResult",
    "build_fallback_response",
    "generate_session_id",
    "ResponseGenerator",
    "decide_response_type",
]
