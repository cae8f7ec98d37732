"""
Pathfinder Agents

A conversational content-discovery assistant: a request in plain language
is classified into an intent, matched against a content catalog, and
answered in the user's language.

Philosophy:
- Every stage is replaceable and testable on its own
- A request always gets an answer, even when a stage fails
- Templates first; the LLM only embellishes result lists

Usage:
    from pathfinder.common import load_config, create_llm_client
    from pathfinder.common.schemas import IntentCatalog, default_template_set
    from pathfinder.providers import SampleProvider
    from pathfinder.pipeline import Orchestrator, IntentParser, ContentRetriever, ResponseGenerator
"""

__version__ = "0.1.0"
