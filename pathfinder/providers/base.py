"""
Base Provider

Abstract base class for content data providers.
Every variant loads an unordered collection of content items from its
backing store and reports the outcome as a ProviderResult.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..common.schemas import ContentItem


@dataclass
class ProviderResult:
    """Outcome of a load_data call"""
    success: bool
    data: List[ContentItem] = field(default_factory=list)
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: List[ContentItem], **metadata) -> "ProviderResult":
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def failed(cls, error: str, **metadata) -> "ProviderResult":
        return cls(success=False, error=error, metadata=metadata)


@dataclass
class ValidationReport:
    """Outcome of validate_data"""
    valid: bool
    errors: List[str] = field(default_factory=list)


class BaseProvider(ABC):
    """
    Abstract base class for data providers.

    Each provider must implement:
    - load_data: Fetch the full item collection

    Providers may override:
    - validate_data: Check loaded items against the content contract
    - get_metadata: Describe the provider for diagnostics and logs
    """

    def __init__(self, source_name: str):
        """
        Initialize provider.

        Args:
            source_name: Name of the backing source (e.g., "sheets", "sample")
        """
        self.source_name = source_name

    @abstractmethod
    def load_data(self, config) -> ProviderResult:
        """
        Load every content item.

        Args:
            config: AgentConfiguration for the current run

        Returns:
            ProviderResult; failures are reported, not raised
        """
        pass

    def validate_data(self, data: List[ContentItem]) -> ValidationReport:
        """
        Check that every item is a mapping with a non-empty title.

        Override in subclass for source-specific checks.
        """
        errors = []
        if not isinstance(data, list):
            return ValidationReport(valid=False, errors=["data is not a list"])

        for i, item in enumerate(data):
            if not isinstance(item, dict):
                errors.append(f"item {i} is not a mapping")
                continue
            title = item.get("title")
            if not title or not str(title).strip():
                errors.append(f"item {i} has no title")

        return ValidationReport(valid=not errors, errors=errors)

    def get_metadata(self) -> Dict[str, Any]:
        """Describe this provider"""
        return {"source": self.source_name, "type": type(self).__name__}


def check_data(provider, data: List[ContentItem], log: logging.Logger) -> Optional[ValidationReport]:
    """
    Run the provider's validate_data when it offers one.

    Validation is advisory: a missing method or one that raises is logged
    and yields None.
    """
    validate = getattr(provider, "validate_data", None)
    if not callable(validate):
        return None
    try:
        report = validate(data)
    except Exception as e:
        log.warning("Validation by %s raised: %s", type(provider).__name__, e)
        return None
    if report is not None and not report.valid:
        log.warning(
            "Source %s returned %d problem(s): %s",
            getattr(provider, "source_name", type(provider).__name__), len(report.errors), report.errors[:3],
        )
    return report
