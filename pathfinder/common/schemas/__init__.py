"""
Pathfinder Pipeline Schemas

Data model shared by the intent parser, retriever, generator and orchestrator.
"""

from .models import (
    DEFAULT_INTENTS,
    ContentItem,
    DeliveryOutcome,
    GeneratedResponse,
    IntentCatalog,
    IntentDefinition,
    ParsedIntent,
    ResponseType,
    SearchResult,
    SessionRecord,
    SESSION_LOG_COLUMNS,
    default_intent_catalog,
)
from .templates import (
    BUILTIN_TEMPLATES,
    DEFAULT_TEMPLATES,
    ResponseTemplate,
    TemplateSet,
    default_template_set,
    fill_placeholders,
)

__all__ = [
    "DEFAULT_INTENTS",
    "ContentItem",
    "DeliveryOutcome",
    "GeneratedResponse",
    "IntentCatalog",
    "IntentDefinition",
    "ParsedIntent",
    "ResponseType",
    "SearchResult",
    "SessionRecord",
    "SESSION_LOG_COLUMNS",
    "default_intent_catalog",
    "BUILTIN_TEMPLATES",
    "DEFAULT_TEMPLATES",
    "ResponseTemplate",
    "TemplateSet",
    "default_template_set",
    "fill_placeholders",
]
