"""
Pipeline Data Model

Intent catalog, parsed intent, search result, generated response and the
session record written once per completed run.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# One retrievable unit: field name -> value. Only "title" is required.
ContentItem = Dict[str, Any]


# ============================================================================
# Enums
# ============================================================================

class ResponseType(str, Enum):
    """Closed set of response kinds the generator can produce"""
    RESULTS_FOUND = "results_found"
    NO_RESULTS = "no_results"
    HELP = "help"
    ERROR = "error"
    FALLBACK = "fallback"


# ============================================================================
# Intent catalog
# ============================================================================

class IntentDefinition(BaseModel):
    """One entry of the intent catalog"""
    description: str = ""
    parameters: List[str] = Field(default_factory=list)
    examples: List[str] = Field(default_factory=list)


class IntentCatalog(BaseModel):
    """
    Closed set of valid intents for an agent instance.

    Accepts the plain mapping shape used in agent definitions:
        IntentCatalog.from_dict({
            "search_by_category": {
                "description": "Find training in a category",
                "parameters": ["category"],
                "examples": ["Show me programming courses"],
            },
        })
    """
    intents: Dict[str, IntentDefinition] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "IntentCatalog":
        return cls(intents={name: IntentDefinition(**(spec or {})) for name, spec in raw.items()})

    def __contains__(self, name: object) -> bool:
        return name in self.intents

    def __len__(self) -> int:
        return len(self.intents)

    def names(self) -> List[str]:
        return list(self.intents)

    def get(self, name: str) -> Optional[IntentDefinition]:
        return self.intents.get(name)

    def all_examples(self) -> List[str]:
        examples = []
        for definition in self.intents.values():
            examples.extend(definition.examples)
        return examples


DEFAULT_INTENTS: Dict[str, Dict[str, Any]] = {
    "search_by_category": {
        "description": "Find training in a subject area",
        "parameters": ["category", "keywords", "level", "type", "limit"],
        "examples": ["Find programming training", "Show me security courses"],
    },
    "search_by_role": {
        "description": "Find training aimed at a job role",
        "parameters": ["role", "category", "level", "keywords"],
        "examples": ["What training is there for managers?"],
    },
    "search_by_keyword": {
        "description": "Free-text search over titles, descriptions and tags",
        "parameters": ["keywords", "level", "type", "sort_by", "sort_order", "limit"],
        "examples": ["Anything about spreadsheets?"],
    },
    "help": {
        "description": "Explain what the assistant can do",
        "parameters": [],
        "examples": ["help", "What can you do?"],
    },
}


def default_intent_catalog() -> IntentCatalog:
    """Built-in catalog for the training-discovery agent."""
    return IntentCatalog.from_dict(DEFAULT_INTENTS)


class ParsedIntent(BaseModel):
    """Classifier output after validation against the catalog"""
    intent: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0, default=0.8)
    language: str = "en"
    original: str = ""


# ============================================================================
# Retrieval and response
# ============================================================================

@dataclass
class SearchResult:
    """Filtered, sorted and bounded items for one request"""
    items: List[ContentItem]
    intent: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    total_matches: int = 0

    @property
    def count(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @classmethod
    def empty(cls, intent: str, parameters: Optional[Dict[str, Any]] = None) -> "SearchResult":
        return cls(items=[], intent=intent, parameters=dict(parameters or {}), total_matches=0)


@dataclass
class GeneratedResponse:
    """Rendered response text and how it was produced"""
    content: str
    response_type: ResponseType
    language: str = "en"
    generated_by: str = "template"  # "template" or "llm"


@dataclass
class DeliveryOutcome:
    """Result of one delivery attempt (Slack post or webhook fan-out)"""
    target: str
    success: bool
    reference: Optional[str] = None
    error: Optional[str] = None


# ============================================================================
# Session record
# ============================================================================

SESSION_LOG_COLUMNS = [
    "timestamp",
    "session_id",
    "user_input",
    "intent",
    "parameters",
    "confidence",
    "language",
    "result_count",
    "response_type",
    "response",
    "timings_ms",
    "deliveries",
    "success",
    "error",
]


class SessionRecord(BaseModel):
    """Append-only record of one completed pipeline run"""
    model_config = ConfigDict(frozen=True)

    session_id: str
    user_input: str
    intent: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    confidence: Optional[float] = None
    language: Optional[str] = None
    result_count: int = 0
    response_type: Optional[ResponseType] = None
    response: str = ""
    timings: Dict[str, float] = Field(default_factory=dict)
    deliveries: List[Dict[str, Any]] = Field(default_factory=list)
    success: bool = True
    error: Optional[str] = None
    timestamp: datetime

    def to_row(self) -> List[Any]:
        """Flatten to spreadsheet cells in SESSION_LOG_COLUMNS order"""
        return [
            self.timestamp.isoformat(),
            self.session_id,
            self.user_input,
            self.intent or "",
            json.dumps(self.parameters, ensure_ascii=False, sort_keys=True, default=str),
            "" if self.confidence is None else self.confidence,
            self.language or "",
            self.result_count,
            self.response_type.value if self.response_type else "",
            self.response,
            json.dumps(self.timings, sort_keys=True),
            json.dumps(self.deliveries, ensure_ascii=False, default=str),
            "TRUE" if self.success else "FALSE",
            self.error or "",
        ]
