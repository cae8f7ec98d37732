"""
Response Generator

Decides what kind of response a request gets and renders it.

Response type, first match wins:
1. help-designated intent -> help
2. no results            -> no_results
3. results               -> results_found
4. anything else         -> fallback

Only results_found may be written by the LLM; every other type, and every
LLM failure, is rendered from templates.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from ..common.errors import ResponseRenderError
from ..common.llm_utils import parse_llm_json, strip_code_fences
from ..common.schemas import (
    ContentItem,
    GeneratedResponse,
    IntentCatalog,
    ParsedIntent,
    ResponseTemplate,
    ResponseType,
    SearchResult,
    TemplateSet,
    fill_placeholders,
)
from ..delivery.slack import to_slack_mrkdwn

logger = logging.getLogger("pathfinder.pipeline.response_generator")

# Hard ceiling on sample items sent to the generative backend
MAX_LLM_SAMPLES = 5

ITEM_PLACEHOLDERS = ("title", "description", "category", "tags", "duration", "level", "type")

GENERATION_PROMPT = """You are {agent_name}. {agent_description}

Write a reply to the user's request using ONLY the results listed below.
Do not invent courses, dates or links. Mention that there are {count} result(s) in total
even if fewer are listed. Keep it short and easy to scan.
Reply in plain text or Markdown, never JSON.
{language_instruction}

Match the tone and structure of this response template:
{template_shape}

User request: {query}
Intent: {intent}
Parameters: {parameters}
Total results: {count}

Sample results:
{samples}

Your reply:"""


@dataclass
class RenderContext:
    """Everything a template render function may substitute"""
    query: str
    intent: str
    template: ResponseTemplate
    config: Any
    results: SearchResult
    language: str = "en"
    parameters: Dict[str, Any] = field(default_factory=dict)
    examples: List[str] = field(default_factory=list)
    error: str = ""

    def values(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "intent": self.intent,
            "agent_name": self.config.name,
            "agent_description": self.config.description,
            "count": self.results.count,
            "total": self.results.total_matches,
            "error": self.error,
        }


def decide_response_type(
    intent: str,
    results: Optional[SearchResult],
    help_intents: Iterable[str],
) -> ResponseType:
    if intent in set(help_intents):
        return ResponseType.HELP
    if results is not None and results.is_empty:
        return ResponseType.NO_RESULTS
    if results is not None and not results.is_empty:
        return ResponseType.RESULTS_FOUND
    return ResponseType.FALLBACK


# ============================================================================
# Template renderers (one pure function per response type)
# ============================================================================

def item_values(item: ContentItem, index: int) -> Dict[str, Any]:
    """Placeholder values for one result item; standard fields default to ''."""
    values: Dict[str, Any] = {name: "" for name in ITEM_PLACEHOLDERS}
    values.update({k: v for k, v in item.items() if v is not None})
    values["index"] = index
    return values


def _message_with_list(template: ResponseTemplate, values: Mapping[str, Any], entries: List[str]) -> str:
    text = fill_placeholders(template.get("message", ""), values)
    lines = [fill_placeholders(str(e), values) for e in entries if e]
    if lines:
        text = text.rstrip() + "\n" + "\n".join(f"• {line}" for line in lines)
    return text


def render_results(ctx: RenderContext) -> str:
    template = ctx.template
    items = ctx.results.items
    cap = max(1, int(ctx.config.processing.max_display_results))
    values = ctx.values()

    sections = [fill_placeholders(template.get("header", ""), values).strip("\n")]
    result_format = template.get("result_format", "{index}. {title}")
    for index, item in enumerate(items[:cap], 1):
        sections.append(fill_placeholders(result_format, item_values(item, index)).strip("\n"))

    if len(items) > cap and template.get("footer"):
        footer_values = {**values, "remaining": len(items) - cap, "shown": cap}
        sections.append(fill_placeholders(template["footer"], footer_values).strip("\n"))

    return "\n\n".join(s for s in sections if s)


def render_no_results(ctx: RenderContext) -> str:
    return _message_with_list(ctx.template, ctx.values(), list(ctx.template.get("suggestions") or []))


def render_help(ctx: RenderContext) -> str:
    examples = list(ctx.template.get("examples") or []) or ctx.examples
    return _message_with_list(ctx.template, ctx.values(), examples)


def render_error(ctx: RenderContext) -> str:
    return _message_with_list(ctx.template, ctx.values(), list(ctx.template.get("suggestions") or []))


def render_fallback(ctx: RenderContext) -> str:
    return _message_with_list(ctx.template, ctx.values(), list(ctx.template.get("suggestions") or []))


RENDERERS: Dict[ResponseType, Callable[[RenderContext], str]] = {
    ResponseType.RESULTS_FOUND: render_results,
    ResponseType.NO_RESULTS: render_no_results,
    ResponseType.HELP: render_help,
    ResponseType.ERROR: render_error,
    ResponseType.FALLBACK: render_fallback,
}


def check_renderers(renderers: Mapping[ResponseType, Callable[[RenderContext], str]]) -> None:
    """Raise unless every ResponseType has a render function."""
    missing = set(ResponseType) - set(renderers)
    if missing:
        raise RuntimeError("No renderer for response type(s): " + ", ".join(sorted(t.value for t in missing)))


check_renderers(RENDERERS)


def lookup_template(templates: TemplateSet, response_type: ResponseType, language: str) -> ResponseTemplate:
    template = templates.lookup(response_type, language)
    if template is None:
        raise ResponseRenderError(
            f"No template for {response_type.value} ({language})",
            stage="generate",
        )
    return template


def render_template_response(response_type: ResponseType, ctx: RenderContext) -> str:
    return RENDERERS[response_type](ctx)


def adapt_for_platform(text: str, config) -> str:
    """Rewrite Markdown into the delivery target's syntax when enabled."""
    if config.slack.enabled and config.slack.format_markup:
        return to_slack_mrkdwn(text)
    return text


class ResponseGenerator:
    """
    Renders responses from templates, optionally via an LLM for result lists.

    Falls back to template rendering whenever the LLM is disabled,
    unavailable, raises, or returns an unusable reply.
    """

    def __init__(self, llm_client=None):
        """
        Args:
            llm_client: Generative backend (LLMClient); optional
        """
        self._llm = llm_client

    @property
    def has_llm(self) -> bool:
        return self._llm is not None and getattr(self._llm, "is_available", False)

    def generate(
        self,
        intent,
        parameters: Mapping[str, Any],
        search_result: SearchResult,
        original_input: str,
        config,
        templates: TemplateSet,
        catalog: Optional[IntentCatalog] = None,
        language: Optional[str] = None,
    ) -> GeneratedResponse:
        """
        Produce the user-facing response.

        Args:
            intent: Intent name or ParsedIntent
            parameters: Extracted parameters
            search_result: Output of the ContentRetriever
            original_input: The user's own words, echoed in templates
            config: AgentConfiguration
            templates: TemplateSet to render from
            catalog: Source of help examples when the help template has none
            language: Response language; defaults to the parsed language

        Raises:
            ResponseRenderError: no template exists for the chosen type
        """
        if isinstance(intent, ParsedIntent):
            language = language or intent.language
            intent = intent.intent
        language = (language or config.default_language).lower()

        response_type = decide_response_type(intent, search_result, config.processing.help_intents)
        template = lookup_template(templates, response_type, language)
        ctx = RenderContext(
            query=original_input,
            intent=intent,
            template=template,
            config=config,
            results=search_result if search_result is not None else SearchResult.empty(intent),
            language=language,
            parameters=dict(parameters or {}),
            examples=catalog.all_examples() if catalog is not None else [],
        )

        content = None
        generated_by = "template"
        if response_type == ResponseType.RESULTS_FOUND and config.generation.enabled and self.has_llm:
            content = self._generate_with_llm(ctx)
            if content is not None:
                generated_by = "llm"

        if content is None:
            content = render_template_response(response_type, ctx)

        logger.info("Generated %s response via %s (%s)", response_type.value, generated_by, language)
        return GeneratedResponse(
            content=adapt_for_platform(content, config),
            response_type=response_type,
            language=language,
            generated_by=generated_by,
        )

    def build_generation_prompt(self, ctx: RenderContext) -> str:
        sample_size = min(MAX_LLM_SAMPLES, max(1, int(ctx.config.generation.sample_size)))
        samples = ctx.results.items[:sample_size]

        if ctx.language != "en":
            language_instruction = f"Respond in the same language as the user request ({ctx.language})."
        else:
            language_instruction = "Respond in English."

        template_shape = "\n".join(
            f"{slot}: {value}" for slot, value in ctx.template.items() if isinstance(value, str)
        )
        return GENERATION_PROMPT.format(
            agent_name=ctx.config.name,
            agent_description=ctx.config.description,
            language_instruction=language_instruction,
            template_shape=template_shape,
            query=ctx.query,
            intent=ctx.intent,
            parameters=json.dumps(ctx.parameters, ensure_ascii=False, default=str),
            count=ctx.results.count,
            samples=json.dumps(samples, ensure_ascii=False, indent=2, default=str),
        )

    def _generate_with_llm(self, ctx: RenderContext) -> Optional[str]:
        """LLM-written result summary, or None to fall back to templates."""
        settings = ctx.config.generation
        try:
            reply = self._llm.generate(
                self.build_generation_prompt(ctx),
                max_tokens=settings.max_tokens,
                temperature=settings.temperature,
            )
        except Exception as e:
            logger.warning("LLM response generation failed: %s", e)
            return None

        if not isinstance(reply, str) or not reply.strip():
            logger.warning("LLM returned an empty reply, using template")
            return None

        reply = reply.strip()
        if strip_code_fences(reply).startswith("{") and parse_llm_json(reply):
            logger.warning("LLM returned a JSON object instead of prose, using template")
            return None
        return reply
