"""
Pathfinder Common Module

Shared infrastructure for the pipeline stages and their collaborators.
"""

from .config import AgentConfiguration, ConfigBuilder, Credentials, get_credentials, load_config
from .llm_client import LLMClient, create_llm_client
from .sheets_client import SheetsClient, SheetsError

__all__ = [
    "AgentConfiguration",
    "ConfigBuilder",
    "Credentials",
    "get_credentials",
    "load_config",
    "LLMClient",
    "create_llm_client",
    "SheetsClient",
    "SheetsError",
]
