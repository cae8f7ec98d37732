"""
Data Providers

Pluggable sources of content items. Every provider implements the
BaseProvider contract (load_data, validate_data, get_metadata).

Available Providers:
- StaticProvider: Fixed in-memory item list
- SampleProvider: Built-in sample training catalog
- SpreadsheetProvider: Google Sheets range (header row + records)
- RemoteProvider: HTTP JSON API with auth and envelope paths
- MultiSourceProvider: Ordered fan-in of other providers
"""

from .base import BaseProvider, ProviderResult, ValidationReport
from .multi_source import MultiSourceProvider
from .remote import RemoteProvider
from .spreadsheet import SpreadsheetProvider
from .static import SAMPLE_ITEMS, SampleProvider, StaticProvider

__all__ = [
    "BaseProvider",
    "ProviderResult",
    "ValidationReport",
    "MultiSourceProvider",
    "RemoteProvider",
    "SpreadsheetProvider",
    "SAMPLE_ITEMS",
    "SampleProvider",
    "StaticProvider",
]
