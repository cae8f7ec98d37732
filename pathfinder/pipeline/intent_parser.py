"""
Intent Parser

Classifies a free-text request against the agent's intent catalog using the
configured LLM backend, and validates the structured reply.

Input checks (empty, too long) run before any network call. The reply must
name a catalog intent; confidence and language are defaulted when absent.
"""

import logging
from typing import Any, Dict, Optional

from ..common.errors import (
    ClassificationBackendError,
    ClassificationOutputError,
    InputTooLongError,
    InputValidationError,
    IntentValidationError,
)
from ..common.language import normalize_language
from ..common.llm_utils import parse_llm_json
from ..common.schemas import IntentCatalog, ParsedIntent

logger = logging.getLogger("pathfinder.pipeline.intent_parser")

DEFAULT_CONFIDENCE = 0.8

# Phrases that carry no search meaning, per language
FILLER_PHRASES = {
    "en": [
        "please", "can you", "could you", "i want to", "i'd like to",
        "show me", "find me", "help me find", "i'm looking for", "are there any",
    ],
    "ko": ["좀", "주세요", "알려줘", "찾아줘", "보여줘", "부탁해", "있어?"],
    "ja": ["ください", "お願いします", "教えて", "探して", "見せて", "ありますか"],
}

CLASSIFICATION_PROMPT = """You classify requests sent to {agent_name}. {agent_description}

Choose exactly one intent from this catalog:
{intent_block}
{examples_block}
Ignore filler phrases that carry no meaning, such as:
{filler_block}

Follow-up handling:
- Input may have the shape "Context: <previous request>" followed by "Follow-up: <new message>".
- Classify the Follow-up. Use the Context only to fill parameters the Follow-up leaves implicit
  (e.g. "what about advanced ones?" keeps the category from the Context).
- If the Follow-up starts an unrelated request, ignore the Context.

Rules:
- Use only parameter names listed for the chosen intent; omit parameters the request does not mention.
- "keywords" is a list of meaningful search terms in the request's own language.
- confidence is a number between 0 and 1.
- language is the ISO 639-1 code of the request (e.g. "en", "ko", "ja").

Respond with a valid JSON object only:
{{"intent": "<intent name>", "parameters": {{}}, "confidence": 0.0, "language": "en"}}"""


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


class IntentParser:
    """
    Turns raw user text into a validated ParsedIntent.

    Responsibilities:
    1. Reject empty or oversized input before calling the backend
    2. Build the classification instruction from the catalog
    3. Dispatch to the classification backend (LLMClient)
    4. Parse and validate the structured reply
    """

    def __init__(self, llm_client):
        """
        Args:
            llm_client: Object with ``is_available`` and
                ``generate(prompt, *, system, max_tokens, temperature)``
        """
        self._llm = llm_client

    def parse(
        self,
        user_input: str,
        config,
        catalog: IntentCatalog,
        context: Optional[str] = None,
    ) -> ParsedIntent:
        """
        Classify one request.

        Args:
            user_input: Raw user text
            config: AgentConfiguration
            catalog: Valid intents for this agent
            context: Previous request in the same conversation, if any

        Returns:
            ParsedIntent whose intent is a catalog key

        Raises:
            InputValidationError, InputTooLongError: before any backend call
            ClassificationOutputError: reply is not the mandated JSON shape
            IntentValidationError: unknown intent or bad confidence
        """
        text = self.check_input(user_input, config)
        instruction = self.build_instruction(config, catalog)

        message = text
        if context and context.strip():
            message = f"Context: {context.strip()}\nFollow-up: {text}"

        raw = self._classify(message, instruction, config)
        parsed = self._to_parsed_intent(raw, text, config, catalog)
        logger.info(
            "Classified intent=%s confidence=%.2f language=%s",
            parsed.intent, parsed.confidence, parsed.language,
        )
        return parsed

    def check_input(self, user_input: Any, config) -> str:
        if not isinstance(user_input, str) or not user_input.strip():
            raise InputValidationError("Input is empty", stage="parse")

        text = user_input.strip()
        limit = config.classifier.max_input_length
        if len(text) > limit:
            raise InputTooLongError(
                f"Input is {len(text)} characters; the limit is {limit}",
                stage="parse",
            )
        return text

    def build_instruction(self, config, catalog: IntentCatalog) -> str:
        """Render the classification instruction for this catalog."""
        intent_lines = []
        example_lines = []
        for name, definition in catalog.intents.items():
            params = ", ".join(definition.parameters) if definition.parameters else "(none)"
            intent_lines.append(f"- {name}: {definition.description or name} | parameters: {params}")
            for example in definition.examples:
                example_lines.append(f'- "{example}" -> {name}')

        examples_block = ""
        if example_lines:
            examples_block = "\nExamples:\n" + "\n".join(example_lines) + "\n"

        filler_lines = []
        for lang, phrases in FILLER_PHRASES.items():
            filler_lines.append(f"- {lang}: " + ", ".join(f'"{p}"' for p in phrases))

        return CLASSIFICATION_PROMPT.format(
            agent_name=config.name,
            agent_description=config.description,
            intent_block="\n".join(intent_lines),
            examples_block=examples_block,
            filler_block="\n".join(filler_lines),
        )

    def _classify(self, message: str, instruction: str, config) -> str:
        if self._llm is None or not getattr(self._llm, "is_available", False):
            raise ClassificationBackendError("Classification backend is not available", stage="parse")

        settings = config.classifier
        try:
            return self._llm.generate(
                message,
                system=instruction,
                max_tokens=settings.max_tokens,
                temperature=settings.temperature,
            )
        except Exception as e:
            logger.warning("Classification call failed: %s", e)
            raise ClassificationBackendError(f"Classification call failed: {e}", stage="parse") from e

    def _to_parsed_intent(
        self,
        raw: Any,
        text: str,
        config,
        catalog: IntentCatalog,
    ) -> ParsedIntent:
        data = parse_llm_json(raw) if isinstance(raw, str) else {}
        if not data:
            raise ClassificationOutputError("Classifier reply is not a JSON object", stage="parse")

        intent = data.get("intent")
        if not isinstance(intent, str) or not intent.strip():
            raise ClassificationOutputError("Classifier reply has no intent", stage="parse")
        intent = intent.strip()

        parameters = data.get("parameters") or {}
        if not isinstance(parameters, dict):
            raise ClassificationOutputError("Classifier parameters are not an object", stage="parse")

        if intent not in catalog:
            raise IntentValidationError(f"Unknown intent '{intent}'", stage="parse")

        confidence = self._validate_confidence(data.get("confidence"))
        language = normalize_language(data.get("language"), config.default_language)

        return ParsedIntent(
            intent=intent,
            parameters=self._clean_parameters(parameters),
            confidence=confidence,
            language=language,
            original=text,
        )

    @staticmethod
    def _validate_confidence(value: Any) -> float:
        if value is None:
            return DEFAULT_CONFIDENCE
        if isinstance(value, bool):
            raise IntentValidationError("Confidence is not a number", stage="parse")
        try:
            confidence = float(value)
        except (TypeError, ValueError):
            raise IntentValidationError(f"Confidence '{value}' is not a number", stage="parse")
        if not 0.0 <= confidence <= 1.0:
            raise IntentValidationError(f"Confidence {confidence} is outside [0, 1]", stage="parse")
        return confidence

    @staticmethod
    def _clean_parameters(parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Drop parameters the classifier left empty."""
        return {str(k): v for k, v in parameters.items() if _is_present(v)}
