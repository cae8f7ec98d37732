"""
Static and Sample Providers

In-memory providers: a caller-supplied item list, and the built-in sample
catalog used for demos and tests.
"""

import copy
from typing import Any, Dict, List, Optional

from ..common.schemas import ContentItem
from .base import BaseProvider, ProviderResult


class StaticProvider(BaseProvider):
    """Serves a fixed list of items. Each load returns fresh copies."""

    def __init__(self, items: List[ContentItem], source_name: str = "static"):
        super().__init__(source_name)
        self._items = list(items or [])

    def load_data(self, config) -> ProviderResult:
        if not isinstance(self._items, list):
            return ProviderResult.failed("static data is not a list")
        return ProviderResult.ok(copy.deepcopy(self._items), count=len(self._items))

    def get_metadata(self) -> Dict[str, Any]:
        meta = super().get_metadata()
        meta["item_count"] = len(self._items)
        return meta


SAMPLE_ITEMS: List[ContentItem] = [
    {
        "id": "trn-001",
        "title": "Python Fundamentals",
        "description": "Hands-on introduction to Python syntax, data structures and testing.",
        "category": "Programming",
        "role": "Developer",
        "level": "Beginner",
        "type": "Online",
        "duration": "4 weeks",
        "tags": "python, coding, fundamentals",
    },
    {
        "id": "trn-002",
        "title": "Leading High-Performing Teams",
        "description": "Coaching, feedback and delegation for first-time team leads.",
        "category": "Management",
        "role": "Manager",
        "level": "Intermediate",
        "type": "In-person",
        "duration": "2 days",
        "tags": ["leadership", "coaching", "feedback"],
    },
    {
        "id": "trn-003",
        "title": "Secure Coding Practices",
        "description": "Threat modelling, OWASP Top 10 and secure code review.",
        "category": "Security",
        "role": "Engineer",
        "level": "Advanced",
        "type": "Workshop",
        "duration": "1 day",
        "tags": ["security", "owasp", "code review"],
    },
    {
        "id": "trn-004",
        "title": "Data Analysis with Spreadsheets",
        "description": "Pivot tables, lookups and charts for everyday reporting.",
        "category": "Data",
        "role": "Analyst",
        "level": "Beginner",
        "type": "Online",
        "duration": "3 hours",
        "tags": "excel, reporting, charts",
    },
    {
        "id": "trn-005",
        "title": "Effective Presentations",
        "description": "Structure a story, design clear slides and handle questions.",
        "category": "Communication",
        "role": "All staff",
        "level": "Intermediate",
        "type": "Webinar",
        "duration": "90 minutes",
        "tags": ["presenting", "storytelling"],
    },
]


class SampleProvider(StaticProvider):
    """Built-in sample training catalog."""

    def __init__(self, items: Optional[List[ContentItem]] = None):
        super().__init__(items if items is not None else SAMPLE_ITEMS, source_name="sample")
