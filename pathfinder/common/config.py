"""
Configuration Management for Pathfinder Agents

Builds one immutable AgentConfiguration per run from layered sources:
built-in defaults, ~/.pathfinder/config.json (global agent section overlaid by
the named agent's section), explicit overrides, and environment variables.
Credentials are looked up separately and never stored on the configuration.
"""

import os
import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger("pathfinder.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".pathfinder"
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass(frozen=True)
class ClassifierSettings:
    """Intent classification backend settings"""
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 500
    temperature: float = 0.1
    max_input_length: int = 1000


@dataclass(frozen=True)
class GenerationSettings:
    """Generative response backend settings"""
    enabled: bool = False
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024
    temperature: float = 0.7
    sample_size: int = 5


@dataclass(frozen=True)
class SlackSettings:
    """Slack delivery settings"""
    enabled: bool = False
    channel: str = ""
    mention_user: bool = False
    use_threads: bool = True
    format_markup: bool = True
    signing_secret: str = ""


@dataclass(frozen=True)
class WebhookSettings:
    """Webhook fan-out settings"""
    enabled: bool = False
    urls: Tuple[str, ...] = ()
    timeout: float = 10.0


@dataclass(frozen=True)
class LoggingSettings:
    """Session logging settings"""
    enabled: bool = True
    sheet_name: str = "SessionLog"
    log_errors: bool = True


@dataclass(frozen=True)
class ProcessingSettings:
    """Result processing limits and error policy"""
    max_display_results: int = 5
    sort_field: str = ""
    sort_direction: str = "asc"
    add_provenance: bool = False
    source_name: str = ""
    error_mode: str = "friendly"  # "friendly" or "technical"
    help_intents: Tuple[str, ...] = ("help",)


@dataclass(frozen=True)
class RetrievalSettings:
    """Domain-specific filtering maps and field lists"""
    category_aliases: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    role_aliases: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    level_aliases: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    role_fields: Tuple[str, ...] = ("role", "target_role", "audience")
    role_fallback_fields: Tuple[str, ...] = ("title", "description", "tags")
    searchable_fields: Tuple[str, ...] = ("title", "description", "tags", "category")
    type_fields: Tuple[str, ...] = ("type", "format")
    generic_keywords: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AgentConfiguration:
    """Fully resolved configuration for one pipeline run"""
    name: str = "Pathfinder"
    description: str = "Finds training content for your team."
    default_language: str = "en"
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    slack: SlackSettings = field(default_factory=SlackSettings)
    webhooks: WebhookSettings = field(default_factory=WebhookSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    processing: ProcessingSettings = field(default_factory=ProcessingSettings)
    retrieval: RetrievalSettings = field(default_factory=RetrievalSettings)


@dataclass(frozen=True)
class Credentials:
    """Secrets for the external collaborators of one agent"""
    classifier_api_key: str = ""
    delivery_bot_token: str = ""
    storage_id: str = ""
    storage_token: str = ""


DEFAULT_LAYER: Dict[str, Any] = {
    "retrieval": {
        "category_aliases": {
            "coding": ["programming"],
            "software": ["programming"],
            "development": ["programming"],
            "leadership": ["management"],
            "people management": ["management"],
            "infosec": ["security"],
            "cybersecurity": ["security"],
        },
        "role_aliases": {
            "developer": ["engineer", "programmer"],
            "engineer": ["developer"],
            "manager": ["lead", "supervisor"],
        },
        "level_aliases": {
            "beginner": ["basic", "introductory", "entry", "foundation"],
            "intermediate": ["medium"],
            "advanced": ["expert"],
        },
        "generic_keywords": [
            "training", "trainings", "course", "courses", "class", "classes",
            "learning", "workshop", "workshops", "session", "sessions",
            "find", "show", "search",
        ],
    },
}

_SECTIONS = {
    "classifier": ClassifierSettings,
    "generation": GenerationSettings,
    "slack": SlackSettings,
    "webhooks": WebhookSettings,
    "logging": LoggingSettings,
    "processing": ProcessingSettings,
    "retrieval": RetrievalSettings,
}

_ALIAS_FIELDS = {"category_aliases", "role_aliases", "level_aliases"}

# Environment variable -> (section, key); section None means top level
_ENV_MAP = {
    "PATHFINDER_AGENT_NAME": (None, "name"),
    "PATHFINDER_DEFAULT_LANGUAGE": (None, "default_language"),
    "PATHFINDER_LLM_PROVIDER": ("classifier", "provider"),
    "PATHFINDER_CLASSIFIER_MODEL": ("classifier", "model"),
    "PATHFINDER_GENERATION_MODEL": ("generation", "model"),
    "PATHFINDER_ERROR_MODE": ("processing", "error_mode"),
    "SLACK_CHANNEL": ("slack", "channel"),
    "SLACK_SIGNING_SECRET": ("slack", "signing_secret"),
}

_PROVIDER_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
}


def merge_layers(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively overlay one mapping on another, returning a new dict.

    Neither input is modified. Nested mappings are merged; every other value
    in ``overlay`` replaces the one in ``base``.
    """
    merged: Dict[str, Any] = {}
    for key, value in base.items():
        merged[key] = merge_layers(value, {}) if isinstance(value, Mapping) else value
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_layers(merged[key], value)
        elif isinstance(value, Mapping):
            merged[key] = merge_layers(value, {})
        else:
            merged[key] = value
    return merged


def _freeze_aliases(raw: Any) -> Mapping[str, Tuple[str, ...]]:
    """Lower-case alias keys and values and make them read-only."""
    aliases: Dict[str, Tuple[str, ...]] = {}
    for key, values in (raw or {}).items():
        if isinstance(values, str):
            values = [values]
        aliases[str(key).strip().lower()] = tuple(str(v).strip().lower() for v in values)
    return MappingProxyType(aliases)


def _build_section(cls, raw: Optional[Mapping[str, Any]]):
    """Instantiate a frozen settings dataclass from a raw mapping."""
    raw = raw or {}
    kwargs = {}
    known = {f.name for f in fields(cls)}
    for key, value in raw.items():
        if key not in known:
            logger.debug("Ignoring unknown %s setting: %s", cls.__name__, key)
            continue
        if key in _ALIAS_FIELDS:
            value = _freeze_aliases(value)
        elif isinstance(value, list):
            value = tuple(value)
        kwargs[key] = value
    for name in _ALIAS_FIELDS & known:
        kwargs.setdefault(name, MappingProxyType({}))
    return cls(**kwargs)


class ConfigBuilder:
    """
    Layered configuration builder.

    Layers are applied in the order they are added; later layers win.
    ``build()`` resolves them into one frozen AgentConfiguration.

    Usage:
        config = (
            ConfigBuilder()
            .with_defaults()
            .with_file(CONFIG_PATH, agent_name="training-bot")
            .with_overrides({"processing": {"error_mode": "technical"}})
            .with_env()
            .build()
        )
    """

    def __init__(self):
        self._layers = []

    def with_defaults(self) -> "ConfigBuilder":
        self._layers.append(DEFAULT_LAYER)
        return self

    def with_overrides(self, overrides: Mapping[str, Any]) -> "ConfigBuilder":
        if overrides:
            self._layers.append(overrides)
        return self

    def with_file(self, path: Path = None, agent_name: Optional[str] = None) -> "ConfigBuilder":
        """Add the global ``agent`` section and then the named agent's section."""
        path = Path(path) if path else CONFIG_PATH
        data = _read_config_file(path)
        if data.get("agent"):
            self._layers.append(data["agent"])
        if agent_name:
            agent_data = data.get("agents", {}).get(agent_name)
            if agent_data:
                self._layers.append(agent_data)
            else:
                logger.info("No agent section for %s in %s", agent_name, path)
        return self

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "ConfigBuilder":
        environ = os.environ if environ is None else environ
        layer: Dict[str, Any] = {}
        for env_var, (section, key) in _ENV_MAP.items():
            val = environ.get(env_var)
            if not val:
                continue
            if section is None:
                layer[key] = val
            else:
                layer.setdefault(section, {})[key] = val
        if layer:
            self._layers.append(layer)
        return self

    def build(self) -> AgentConfiguration:
        data: Dict[str, Any] = {}
        for layer in self._layers:
            data = merge_layers(data, layer)

        sections = {name: _build_section(cls, data.get(name)) for name, cls in _SECTIONS.items()}
        top_level = {
            key: data[key]
            for key in ("name", "description", "default_language")
            if data.get(key)
        }
        if "default_language" in top_level:
            top_level["default_language"] = str(top_level["default_language"]).lower()
        return AgentConfiguration(**top_level, **sections)


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning("Failed to load config file %s: %s", path, e)
        return {}


def load_config(
    agent_name: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    path: Optional[Path] = None,
) -> AgentConfiguration:
    """
    Load configuration for one agent.

    Priority (highest to lowest):
    1. Environment variables
    2. Explicit overrides
    3. Agent section of the config file
    4. Global agent section of the config file
    5. Default values
    """
    return (
        ConfigBuilder()
        .with_defaults()
        .with_file(path, agent_name=agent_name)
        .with_overrides(overrides or {})
        .with_env()
        .build()
    )


def get_credentials(
    agent_name: Optional[str] = None,
    provider: str = "anthropic",
    path: Optional[Path] = None,
) -> Credentials:
    """
    Look up credentials for an agent.

    Agent-scoped entries under ``credentials.agents.<name>`` override
    ``credentials.global``; environment variables fill anything still empty.
    """
    data = _read_config_file(Path(path) if path else CONFIG_PATH).get("credentials", {})
    resolved = dict(data.get("global", {}))
    if agent_name:
        resolved.update(data.get("agents", {}).get(agent_name, {}))

    env_fallbacks = {
        "classifier_api_key": _PROVIDER_KEY_ENV.get(provider.lower(), "ANTHROPIC_API_KEY"),
        "delivery_bot_token": "SLACK_BOT_TOKEN",
        "storage_id": "SHEETS_SPREADSHEET_ID",
        "storage_token": "SHEETS_ACCESS_TOKEN",
    }
    for attr, env_var in env_fallbacks.items():
        if not resolved.get(attr) and os.getenv(env_var):
            resolved[attr] = os.getenv(env_var)

    return Credentials(**{f.name: resolved.get(f.name, "") or "" for f in fields(Credentials)})
