"""
Content Retriever

Loads the full item collection from a data provider once, then narrows it
with pure filter functions applied in a fixed order:

    category -> role -> keyword -> level -> type

Only filters whose parameter is present run. The survivors are sorted,
truncated and normalized into a SearchResult.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from ..common.errors import DataLoadError
from ..common.schemas import ContentItem, ParsedIntent, SearchResult
from ..providers.base import check_data

logger = logging.getLogger("pathfinder.pipeline.content_retriever")

UNTITLED = "Untitled"
NO_DESCRIPTION = "No description available"


# ============================================================================
# Field helpers
# ============================================================================

def _text(value: Any) -> str:
    """Flatten a field value to text; lists are joined with spaces."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(_text(v) for v in value)
    return str(value)


def _values(value: Any) -> List[str]:
    """Field value as a list of lower-cased strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip().lower() for v in value if v is not None]
    return [str(value).strip().lower()]


def _field_texts(item: ContentItem, field_names: Iterable[str]) -> List[str]:
    return [_text(item.get(name)).lower() for name in field_names if item.get(name) is not None]


def _contains_any(texts: List[str], terms: Set[str]) -> bool:
    return any(term in text for text in texts for term in terms if term)


def _expand(value: Any, aliases: Mapping[str, Iterable[str]]) -> Set[str]:
    """The value itself plus its configured aliases, lower-cased."""
    key = _text(value).strip().lower()
    return {key, *aliases.get(key, ())} - {""}


def _equivalents(value: str, mapping: Mapping[str, Iterable[str]]) -> Set[str]:
    """Equivalence group of a value: its own aliases, or the group it belongs to."""
    group = _expand(value, mapping)
    for key, members in mapping.items():
        if value in members:
            group.add(key)
            group.update(members)
    return group


# ============================================================================
# Filters (pure functions over the candidate list)
# ============================================================================

def filter_by_category(items: List[ContentItem], category: Any, settings) -> List[ContentItem]:
    """
    Exact case-insensitive match, or a shared canonical category.

    With alias A -> [C], both "A" and "C" resolve to C, so filtering by
    either yields the same items.
    """
    wanted = _text(category).strip().lower()
    wanted_group = _expand(wanted, settings.category_aliases)

    matched = []
    for item in items:
        for value in _values(item.get("category")):
            if value == wanted or _expand(value, settings.category_aliases) & wanted_group:
                matched.append(item)
                break
    return matched


def filter_by_role(items: List[ContentItem], role: Any, settings) -> List[ContentItem]:
    """
    Substring match of the role (and its aliases) on the role fields.

    When no item matches on a role field, the same terms are searched in the
    secondary fields instead.
    """
    terms = _expand(role, settings.role_aliases)
    direct = [i for i in items if _contains_any(_field_texts(i, settings.role_fields), terms)]
    if direct:
        return direct
    return [i for i in items if _contains_any(_field_texts(i, settings.role_fallback_fields), terms)]


def split_keywords(value: Any) -> List[str]:
    """Keywords as a list; strings are split on commas and whitespace."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip().lower() for v in value if v is not None and str(v).strip()]
    return [k for k in re.split(r"[,\s]+", str(value).strip().lower()) if k]


def strip_generic_keywords(keywords: List[str], generic: Iterable[str]) -> List[str]:
    stop = {g.lower() for g in generic}
    return [k for k in keywords if k not in stop]


def filter_by_keywords(items: List[ContentItem], keywords: Any, settings) -> List[ContentItem]:
    """
    Any remaining keyword as a substring of any searchable field.

    Keywords made only of generic terms ("training", "course", ...) leave
    the candidates untouched instead of excluding everything.
    """
    remaining = set(strip_generic_keywords(split_keywords(keywords), settings.generic_keywords))
    if not remaining:
        return list(items)
    return [i for i in items if _contains_any(_field_texts(i, settings.searchable_fields), remaining)]


def filter_by_level(items: List[ContentItem], level: Any, settings) -> List[ContentItem]:
    wanted = _text(level).strip().lower()
    group = _equivalents(wanted, settings.level_aliases)
    return [i for i in items if any(v in group for v in _values(i.get("level")))]


def filter_by_type(items: List[ContentItem], content_type: Any, settings) -> List[ContentItem]:
    wanted = {_text(content_type).strip().lower()}
    return [i for i in items if _contains_any(_field_texts(i, settings.type_fields), wanted)]


def _keyword_param(parameters: Mapping[str, Any]) -> Any:
    if parameters.get("keywords") not in (None, "", []):
        return parameters["keywords"]
    return parameters.get("keyword")


# (name, parameter getter, filter) in the fixed application order
FILTER_PIPELINE = [
    ("category", lambda p: p.get("category"), filter_by_category),
    ("role", lambda p: p.get("role"), filter_by_role),
    ("keyword", _keyword_param, filter_by_keywords),
    ("level", lambda p: p.get("level"), filter_by_level),
    ("type", lambda p: p.get("type"), filter_by_type),
]


def apply_filters(items: List[ContentItem], parameters: Mapping[str, Any], settings) -> List[ContentItem]:
    """Run every filter whose parameter is present, in pipeline order."""
    candidates = list(items)
    for name, getter, filter_fn in FILTER_PIPELINE:
        value = getter(parameters)
        if value is None or (isinstance(value, (str, list, tuple)) and not value):
            continue
        before = len(candidates)
        candidates = filter_fn(candidates, value, settings)
        logger.debug("Filter %s=%r: %d -> %d items", name, value, before, len(candidates))
    return candidates


# ============================================================================
# Sort, limit, normalize
# ============================================================================

def sort_items(items: List[ContentItem], field: str, direction: str = "asc") -> List[ContentItem]:
    """Stable, case-insensitive lexicographic sort; missing fields sort as ''."""
    if not field:
        return list(items)
    reverse = str(direction).lower() in ("desc", "descending")
    return sorted(items, key=lambda item: _text(item.get(field)).lower(), reverse=reverse)


def _parse_limit(value: Any) -> Optional[int]:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return None
    return limit if limit > 0 else None


def normalize_tags(tags: Any) -> List[str]:
    if tags is None:
        return []
    if isinstance(tags, (list, tuple)):
        return [str(t).strip() for t in tags if t is not None and str(t).strip()]
    return [t.strip() for t in str(tags).split(",") if t.strip()]


def normalize_item(item: ContentItem, provenance: Optional[Dict[str, str]] = None) -> ContentItem:
    """Copy of the item with title/description backfilled and list tags."""
    normalized = dict(item)
    if not _text(normalized.get("title")).strip():
        normalized["title"] = UNTITLED
    if not _text(normalized.get("description")).strip():
        normalized["description"] = NO_DESCRIPTION
    normalized["tags"] = normalize_tags(normalized.get("tags"))
    if provenance:
        normalized.update(provenance)
    return normalized


class ContentRetriever:
    """
    Produces a SearchResult for one request.

    Features:
    - Single load per request, no re-query between filters
    - Alias-aware category, role and level filters
    - Generic-keyword stripping
    - Optional sort, limit and provenance stamping
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            clock: Returns the current time; used for provenance stamps
        """
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def retrieve(
        self,
        intent,
        parameters: Mapping[str, Any],
        config,
        provider,
    ) -> SearchResult:
        """
        Load, filter, sort, limit and normalize content.

        Args:
            intent: Intent name or ParsedIntent
            parameters: Extracted parameters
            config: AgentConfiguration
            provider: BaseProvider implementation

        Raises:
            DataLoadError: provider reported or raised a failure
        """
        intent_name = intent.intent if isinstance(intent, ParsedIntent) else str(intent)
        parameters = dict(parameters or {})

        items = self._load(provider, config)
        matched = apply_filters(items, parameters, config.retrieval)

        processing = config.processing
        sort_field = parameters.get("sort_by") or processing.sort_field
        sort_direction = parameters.get("sort_order") or processing.sort_direction
        matched = sort_items(matched, sort_field, sort_direction)

        total = len(matched)
        limit = _parse_limit(parameters.get("limit"))
        if limit is not None:
            matched = matched[:limit]

        provenance = None
        if processing.add_provenance:
            provenance = {
                "_source": processing.source_name or provider.source_name,
                "_retrieved_at": self._clock().isoformat(),
            }

        results = [normalize_item(item, provenance) for item in matched]
        logger.info(
            "Retrieved %d of %d items for intent=%s (%d matched before limit)",
            len(results), len(items), intent_name, total,
        )
        return SearchResult(items=results, intent=intent_name, parameters=parameters, total_matches=total)

    def _load(self, provider, config) -> List[ContentItem]:
        try:
            result = provider.load_data(config)
        except Exception as e:
            logger.error("Data provider raised: %s", e, exc_info=True)
            raise DataLoadError(str(e), stage="retrieve") from e

        if not result.success:
            raise DataLoadError(result.error or "Data provider failed", stage="retrieve")
        if not isinstance(result.data, list):
            raise DataLoadError("Data provider returned a non-list collection", stage="retrieve")

        check_data(provider, result.data, logger)
        return [item for item in result.data if isinstance(item, dict)]
