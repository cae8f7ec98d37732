"""
Provider-agnostic LLM client for Pathfinder pipelines.

One text-generation interface over Anthropic, OpenAI and Google Gemini. The
same class backs intent classification and the optional generative response
path; each is configured with its own provider, model and key.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("pathfinder.common.llm_client")

# provider -> distribution that provides its SDK
SUPPORTED_PROVIDERS = {
    "anthropic": "anthropic",
    "openai": "openai",
    "google": "google-generativeai",
}


def _build_anthropic(api_key: str) -> Any:
    import anthropic

    return anthropic.Anthropic(api_key=api_key)


def _build_openai(api_key: str) -> Any:
    from openai import OpenAI

    return OpenAI(api_key=api_key)


def _build_google(api_key: str) -> Any:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    return genai


_BUILDERS: Dict[str, Callable[[str], Any]] = {
    "anthropic": _build_anthropic,
    "openai": _build_openai,
    "google": _build_google,
}


class LLMClient:
    """Unified text generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "anthropic",
        model: str = "",
        api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "anthropic").lower()
        self.model = model
        self._client = None
        # Gemini binds the system instruction to the model object
        self._google_models: Dict[str, Any] = {}

        if not api_key:
            logger.info("%s API key not provided, LLM client unavailable", self.provider)
            return

        builder = _BUILDERS.get(self.provider)
        if builder is None:
            logger.warning("Unsupported LLM provider: %s", self.provider)
            return

        try:
            self._client = builder(api_key)
        except ImportError:
            logger.warning("%s package not installed", SUPPORTED_PROVIDERS[self.provider])
        except Exception as e:
            logger.warning("Failed to initialize %s client: %s", self.provider, e)

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        max_tokens: int = 512,
        temperature: float = 0.0,
        timeout: float = 30.0,
    ) -> str:
        """
        Single-turn completion.

        Returns:
            The reply text, stripped

        Raises:
            RuntimeError: client unavailable or provider unsupported
            Any SDK exception from the underlying call
        """
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        call = getattr(self, f"_generate_{self.provider}", None)
        if call is None:
            raise RuntimeError(f"Unsupported LLM provider: {self.provider}")
        return call(prompt, system, max_tokens, temperature, timeout).strip()

    def _generate_anthropic(self, prompt, system, max_tokens, temperature, timeout) -> str:
        extra = {"system": system} if system else {}
        response = self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            timeout=timeout,
            **extra,
        )
        return response.content[0].text

    def _generate_openai(self, prompt, system, max_tokens, temperature, timeout) -> str:
        messages = [{"role": "system", "content": system}] if system else []
        messages.append({"role": "user", "content": prompt})
        response = self._client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=messages,
            timeout=timeout,
        )
        return response.choices[0].message.content or ""

    def _generate_google(self, prompt, system, max_tokens, temperature, timeout) -> str:
        key = hashlib.md5((system or "").encode()).hexdigest()
        model = self._google_models.get(key)
        if model is None:
            options = {"model_name": self.model}
            if system:
                options["system_instruction"] = system
            model = self._google_models[key] = self._client.GenerativeModel(**options)

        response = model.generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
            request_options={"timeout": timeout},
        )
        return response.text


def create_llm_client(settings, api_key: Optional[str]) -> LLMClient:
    """Build a client from ClassifierSettings or GenerationSettings."""
    return LLMClient(provider=settings.provider, model=settings.model, api_key=api_key)
