"""
Orchestrator

Runs one request through the pipeline:

    parse -> retrieve -> generate -> deliver -> log

Every stage is wrapped into a StageResult. The first failing stage ends the
core pipeline and its error is turned into a fallback response by a pure
function; delivery and logging still run and never change the outcome.
"""

import logging
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type

from ..common.config import AgentConfiguration
from ..common.errors import (
    ClassificationOutputError,
    DataLoadError,
    InputValidationError,
    PipelineError,
    ResponseRenderError,
    StageResult,
)
from ..common.language import resolve_language
from ..common.schemas import (
    DeliveryOutcome,
    GeneratedResponse,
    IntentCatalog,
    ParsedIntent,
    ResponseType,
    SearchResult,
    SessionRecord,
    TemplateSet,
    default_template_set,
)
from ..delivery.webhooks import build_envelope
from .content_retriever import ContentRetriever
from .intent_parser import IntentParser
from .response_generator import RenderContext, adapt_for_platform, render_template_response

logger = logging.getLogger("pathfinder.pipeline.orchestrator")

# Used when not even the default template set can render the error
LAST_RESORT_MESSAGE = "Sorry, something went wrong while handling your request."


def generate_session_id(now: datetime, id_generator: Optional[Callable[[], str]] = None) -> str:
    """sess_<YYYYmmddHHMMSS>_<12 hex chars>"""
    token = id_generator() if id_generator else uuid.uuid4().hex
    return f"sess_{now.strftime('%Y%m%d%H%M%S')}_{token[:12]}"


@dataclass
class RunOptions:
    """Per-run switches and delivery context"""
    deliver: Optional[bool] = None  # None: follow config
    log: Optional[bool] = None  # None: follow config
    channel: Optional[str] = None
    thread_ref: Optional[str] = None
    user: Optional[str] = None
    context: Optional[str] = None  # previous turn, for follow-up requests


@dataclass
class RunResult:
    """Structured outcome of Orchestrator.run"""
    success: bool
    session_id: str
    response: str
    response_type: Optional[ResponseType] = None
    intent: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    result_count: int = 0
    deliveries: List[DeliveryOutcome] = field(default_factory=list)
    timings: Dict[str, float] = field(default_factory=dict)
    error_category: Optional[str] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["response_type"] = self.response_type.value if self.response_type else None
        return data


def build_fallback_response(
    error: PipelineError,
    user_input: str,
    config: Optional[AgentConfiguration],
    templates: Optional[TemplateSet],
    language: Optional[str] = None,
) -> GeneratedResponse:
    """
    Map a pipeline error to the user-facing text. Pure; never raises.

    technical mode: the error template with "<Category>: <message>".
    friendly mode: the fallback template with the agent name and the input.
    """
    config = config or AgentConfiguration()
    templates = templates or default_template_set(config.default_language)
    query = user_input if isinstance(user_input, str) else ""
    if not language:
        language = resolve_language(query, templates.languages, config.default_language)

    technical = config.processing.error_mode == "technical"
    response_type = ResponseType.ERROR if technical else ResponseType.FALLBACK

    template = templates.lookup(response_type, language)
    if template is None:
        return GeneratedResponse(content=LAST_RESORT_MESSAGE, response_type=response_type, language=language)

    ctx = RenderContext(
        query=query,
        intent="",
        template=template,
        config=config,
        results=SearchResult.empty(""),
        language=language,
        error=error.describe(),
    )
    content = render_template_response(response_type, ctx)
    return GeneratedResponse(
        content=adapt_for_platform(content, config),
        response_type=response_type,
        language=language,
    )


class Orchestrator:
    """
    Sequences the Intent Parser, Content Retriever and Response Generator.

    Collaborators for delivery and logging are optional; a missing one is the
    same as its feature being disabled.
    """

    def __init__(
        self,
        intent_parser: IntentParser,
        content_retriever: ContentRetriever,
        response_generator,
        slack_delivery=None,
        webhooks=None,
        session_logger=None,
        clock: Optional[Callable[[], datetime]] = None,
        id_generator: Optional[Callable[[], str]] = None,
    ):
        """
        Args:
            intent_parser: IntentParser
            content_retriever: ContentRetriever
            response_generator: ResponseGenerator
            slack_delivery: SlackDelivery
            webhooks: WebhookDispatcher
            session_logger: Object with ``log(record)``
            clock: Returns the current time (timestamps and session ids)
            id_generator: Returns a random hex string for session ids
        """
        self._parser = intent_parser
        self._retriever = content_retriever
        self._generator = response_generator
        self._slack = slack_delivery
        self._webhooks = webhooks
        self._session_logger = session_logger
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._id_generator = id_generator or (lambda: uuid.uuid4().hex)

    def run(
        self,
        user_input: str,
        config: AgentConfiguration,
        catalog: IntentCatalog,
        provider,
        templates: TemplateSet,
        options: Optional[RunOptions] = None,
    ) -> RunResult:
        """
        Process one request end to end.

        Returns:
            RunResult; success is False when parsing, retrieval or
            generation failed (the response is then the fallback text)
        """
        options = options or RunOptions()
        started_at = self._clock()
        session_id = generate_session_id(started_at, self._id_generator)
        total_start = time.perf_counter()
        timings: Dict[str, float] = {}

        parsed: Optional[ParsedIntent] = None
        search: Optional[SearchResult] = None
        response: Optional[GeneratedResponse] = None
        error: Optional[PipelineError] = self._check_inputs(user_input, config, catalog, provider, templates)

        if error is None:
            stage = self._run_stage(
                "parse",
                lambda: self._parser.parse(user_input, config, catalog, context=options.context),
                ClassificationOutputError,
            )
            timings["parse"] = stage.elapsed_ms
            parsed, error = stage.value, stage.error

        if error is None:
            if parsed.intent in config.processing.help_intents:
                search = SearchResult.empty(parsed.intent, parsed.parameters)
                timings["retrieve"] = 0.0
                logger.info("Help intent %s: retrieval skipped", parsed.intent)
            else:
                stage = self._run_stage(
                    "retrieve",
                    lambda: self._retriever.retrieve(parsed, parsed.parameters, config, provider),
                    DataLoadError,
                )
                timings["retrieve"] = stage.elapsed_ms
                search, error = stage.value, stage.error

        if error is None:
            stage = self._run_stage(
                "generate",
                lambda: self._generator.generate(
                    parsed, parsed.parameters, search, user_input, config, templates, catalog=catalog,
                ),
                ResponseRenderError,
            )
            timings["generate"] = stage.elapsed_ms
            response, error = stage.value, stage.error

        success = error is None
        if not success:
            logger.warning("Run %s failed at %s: %s", session_id, error.stage, error.describe())
            language = parsed.language if parsed is not None else None
            response = build_fallback_response(error, user_input, config, templates, language)

        deliveries: List[DeliveryOutcome] = []
        if config is not None:
            start = time.perf_counter()
            deliveries = self._deliver(session_id, started_at, user_input, parsed, response, config, options)
            timings["deliver"] = _elapsed_ms(start)

        result = RunResult(
            success=success,
            session_id=session_id,
            response=response.content,
            response_type=response.response_type,
            intent=parsed.intent if parsed else None,
            parameters=dict(parsed.parameters) if parsed else {},
            result_count=search.count if search is not None else 0,
            deliveries=deliveries,
            timings=timings,
            error_category=error.category if error else None,
            error_message=error.message if error else None,
        )

        if config is not None:
            start = time.perf_counter()
            self._log_session(result, started_at, user_input, parsed, config, options)
            timings["log"] = _elapsed_ms(start)

        timings["total"] = _elapsed_ms(total_start)
        logger.info(
            "Run %s finished: success=%s type=%s results=%d total=%.1fms",
            session_id, success, result.response_type.value, result.result_count, timings["total"],
        )
        return result

    @staticmethod
    def _check_inputs(user_input, config, catalog, provider, templates) -> Optional[PipelineError]:
        if not isinstance(user_input, str) or not user_input.strip():
            return InputValidationError("Input is empty", stage="input")
        missing = [
            name for name, value in (
                ("configuration", config),
                ("intent catalog", catalog),
                ("data provider", provider),
                ("templates", templates),
            ) if value is None
        ]
        if missing:
            return InputValidationError("Missing " + ", ".join(missing), stage="input")
        return None

    @staticmethod
    def _run_stage(name: str, fn: Callable[[], Any], wrap: Type[PipelineError]) -> StageResult:
        """Call a stage, converting any exception into a failed StageResult."""
        start = time.perf_counter()
        try:
            value = fn()
        except PipelineError as e:
            if e.stage is None:
                e.stage = name
            return StageResult.failure(e, _elapsed_ms(start))
        except Exception as e:
            logger.error("Unexpected error in %s stage: %s", name, e, exc_info=True)
            return StageResult.failure(wrap(f"Unexpected error: {e}", stage=name), _elapsed_ms(start))
        return StageResult.success(value, _elapsed_ms(start))

    def _deliver(
        self,
        session_id: str,
        started_at: datetime,
        user_input: str,
        parsed: Optional[ParsedIntent],
        response: GeneratedResponse,
        config: AgentConfiguration,
        options: RunOptions,
    ) -> List[DeliveryOutcome]:
        if options.deliver is False:
            return []

        outcomes = []
        if self._slack is not None and (config.slack.enabled or options.deliver):
            outcomes.append(self._attempt(
                "slack",
                lambda: self._slack.deliver(
                    response.content,
                    config.slack,
                    channel=options.channel,
                    thread_ref=options.thread_ref,
                    user=options.user,
                ),
            ))

        if self._webhooks is not None and (config.webhooks.enabled or options.deliver):
            envelope = build_envelope(
                session_id=session_id,
                input=user_input,
                intent=parsed.intent if parsed else None,
                response=response.content,
                timestamp=started_at.isoformat(),
                user=options.user,
                channel=options.channel or config.slack.channel or None,
                agent=config.name,
            )
            outcomes.append(self._attempt("webhooks", lambda: self._webhooks.dispatch(envelope)))

        return outcomes

    @staticmethod
    def _attempt(target: str, send: Callable[[], DeliveryOutcome]) -> DeliveryOutcome:
        try:
            return send()
        except Exception as e:
            logger.warning("Delivery to %s raised: %s", target, e)
            return DeliveryOutcome(target=target, success=False, error=str(e))

    def _log_session(
        self,
        result: RunResult,
        started_at: datetime,
        user_input: str,
        parsed: Optional[ParsedIntent],
        config: AgentConfiguration,
        options: RunOptions,
    ) -> None:
        if self._session_logger is None:
            return
        enabled = config.logging.enabled if options.log is None else options.log
        if not enabled:
            return
        if not result.success and not config.logging.log_errors:
            return

        try:
            record = SessionRecord(
                session_id=result.session_id,
                user_input=user_input if isinstance(user_input, str) else "",
                intent=result.intent,
                parameters=result.parameters,
                confidence=parsed.confidence if parsed else None,
                language=parsed.language if parsed else None,
                result_count=result.result_count,
                response_type=result.response_type,
                response=result.response,
                timings=dict(result.timings),
                deliveries=[asdict(d) for d in result.deliveries],
                success=result.success,
                error=f"{result.error_category}: {result.error_message}" if result.error_category else None,
                timestamp=started_at,
            )
            self._session_logger.log(record)
        except Exception as e:
            logger.warning("Session logging failed for %s: %s", result.session_id, e)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)
