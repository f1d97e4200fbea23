"""Adapters for the text-generation collaborator.

Every adapter exposes ``generate(prompt) -> str`` and raises
:class:`~thinkforge.errors.NetworkError` when the endpoint cannot be reached,
answers with a non-2xx status, or returns no text at all.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests
from openai import OpenAIError

from .config import InferenceConfig
from .core.ai import load_client as load_openai_client
from .errors import NetworkError

__all__ = [
    "InferenceClient",
    "OllamaClient",
    "OpenAIInferenceClient",
    "build_inference_client",
]

LOGGER = logging.getLogger(__name__)


class InferenceClient(Protocol):
    """Protocol satisfied by model adapters."""

    def generate(self, prompt: str) -> str:
        """Return the model's text reply for ``prompt``."""


class OllamaClient:
    """Client for an Ollama-style ``/api/generate`` endpoint."""

    def __init__(
        self,
        *,
        endpoint: str,
        model: str,
        request_timeout: int,
        session: Any | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._model = model
        self._timeout = request_timeout
        self._session = session if session is not None else requests.Session()
        self._logger = logger or LOGGER

    def generate(self, prompt: str) -> str:
        body = {"model": self._model, "prompt": prompt, "stream": False}
        try:
            response = self._session.post(
                self._endpoint, json=body, timeout=self._timeout
            )
        except requests.RequestException as exc:
            self._logger.error(
                "Inference endpoint unreachable",
                extra={"endpoint": self._endpoint, "error": str(exc)},
            )
            raise NetworkError(
                f"Failed to connect to model endpoint {self._endpoint}"
            ) from exc
        if not 200 <= response.status_code < 300:
            raise NetworkError(
                f"Model endpoint answered with HTTP {response.status_code}",
                status=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise NetworkError("Model endpoint returned invalid JSON") from exc
        text = payload.get("response") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise NetworkError("Model endpoint returned no response text")
        return text.strip()


class OpenAIInferenceClient:
    """Adapter for OpenAI chat completions."""

    def __init__(
        self,
        *,
        model: str,
        temperature: float,
        max_output_tokens: int,
        request_timeout: int,
        api_base: str | None = None,
        client: Any | None = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._timeout = request_timeout
        if client is not None:
            self._client = client
        else:
            self._client = load_openai_client(
                api_base=api_base, timeout=request_timeout
            )

    def generate(self, prompt: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self._temperature,
                max_tokens=self._max_output_tokens,
                timeout=self._timeout,
            )
        except OpenAIError as exc:
            raise NetworkError(f"OpenAI request failed: {exc}") from exc
        if not response.choices:
            raise NetworkError("OpenAI returned no completion choices")
        content = response.choices[0].message.content
        if not content:
            raise NetworkError("OpenAI returned an empty completion")
        return content.strip()


def build_inference_client(
    config: InferenceConfig, *, logger: logging.Logger | None = None
) -> InferenceClient:
    """Return the adapter selected by ``inference.provider``."""

    if config.provider == "openai":
        try:
            return OpenAIInferenceClient(
                model=config.model,
                temperature=config.temperature,
                max_output_tokens=config.max_output_tokens,
                request_timeout=config.request_timeout_seconds,
                api_base=config.api_base,
            )
        except RuntimeError as exc:
            raise NetworkError(str(exc)) from exc
    return OllamaClient(
        endpoint=config.endpoint,
        model=config.model,
        request_timeout=config.request_timeout_seconds,
        logger=logger,
    )
