"""
Multi-Source Provider

Fans in several providers, sequentially and in order. Individual failures
are logged and skipped; the aggregate fails only when no source succeeds.
"""

import logging
from typing import Any, Dict, List

from .base import BaseProvider, ProviderResult, check_data

logger = logging.getLogger("pathfinder.providers.multi_source")


class MultiSourceProvider(BaseProvider):
    """Concatenates the data of an ordered list of inner providers."""

    def __init__(self, providers: List[BaseProvider], tag_items: bool = True):
        """
        Args:
            providers: Inner providers, loaded in list order
            tag_items: Stamp each item with the inner provider's source name
        """
        super().__init__("multi")
        self._providers = list(providers)
        self._tag_items = tag_items

    def load_data(self, config) -> ProviderResult:
        if not self._providers:
            return ProviderResult.failed("No data sources configured")

        data = []
        sources = []
        errors = []

        for provider in self._providers:
            name = getattr(provider, "source_name", None) or type(provider).__name__
            try:
                result = provider.load_data(config)
            except Exception as e:
                logger.error("Source %s raised during load: %s", name, e, exc_info=True)
                result = ProviderResult.failed(str(e))

            if not result.success:
                logger.warning("Source %s failed: %s", name, result.error)
                errors.append(f"{name}: {result.error}")
                sources.append({"source": name, "success": False, "error": result.error})
                continue

            if not isinstance(result.data, list):
                errors.append(f"{name}: data is not a list")
                sources.append({"source": name, "success": False, "error": "data is not a list"})
                continue

            check_data(provider, result.data, logger)

            for item in result.data:
                if self._tag_items and isinstance(item, dict):
                    item = {**item, "_provider": name}
                data.append(item)
            sources.append({"source": name, "success": True, "count": len(result.data)})

        if len(errors) == len(self._providers):
            return ProviderResult.failed("All data sources failed: " + "; ".join(errors), sources=sources)

        return ProviderResult.ok(data, sources=sources, errors=errors)

    def get_metadata(self) -> Dict[str, Any]:
        meta = super().get_metadata()
        meta["providers"] = [
            p.get_metadata() if hasattr(p, "get_metadata") else {"type": type(p).__name__}
            for p in self._providers
        ]
        return meta
