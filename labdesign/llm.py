"""
Model Gateway

Uniform invocation of a named text-generation backend, independent of which
SDK implements it:

    gateway = ModelGateway(GatewayConfig.from_env())
    text = gateway.invoke("claude-sonnet", system_role, task_prompt, temperature=0.2)
    for chunk in gateway.invoke("claude-sonnet", system_role, task_prompt, streaming=True):
        ...

Backends:
- OpenAIBackend: the openai SDK. Also serves Poe and Google through their
  OpenAI-compatible endpoints (base_url).
- AnthropicBackend: the anthropic SDK.

SDKs are imported inside the backend so that tests can inject fake backends
without the packages or any API key.

This layer does no retries. Configuration problems raise ConfigurationError
before any network attempt; anything the SDK raises during the call becomes a
TransportError with the original message and the original exception chained.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Protocol

from .config import GatewayConfig, ModelConfig, Provider
from .errors import ConfigurationError, DesignPipelineError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096


@dataclass(frozen=True)
class StreamChunk:
    """
    One element of a streaming response.

    The final chunk of every stream has done=True and empty text; it is the
    completion signal.
    """
    text: str
    done: bool = False
    finish_reason: str | None = None


class TextBackend(Protocol):
    """What the gateway needs from a backend implementation."""

    def complete(self, model: ModelConfig, system_role: str, task_prompt: str,
                 temperature: float) -> str: ...

    def stream(self, model: ModelConfig, system_role: str, task_prompt: str,
               temperature: float) -> Iterator[str]: ...


class OpenAIBackend:
    """Chat-completions backend for OpenAI and OpenAI-compatible endpoints."""

    def __init__(self, api_key: str, base_url: str | None = None):
        self._api_key = api_key
        self._base_url = base_url
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                from openai import OpenAI
            except ImportError as exc:
                raise ConfigurationError(
                    "openai package is not installed. Install it to use OpenAI-compatible backends."
                ) from exc
            self._client = OpenAI(api_key=self._api_key, base_url=self._base_url)
        return self._client

    def _messages(self, system_role: str, task_prompt: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_role},
            {"role": "user", "content": task_prompt},
        ]

    def complete(self, model: ModelConfig, system_role: str, task_prompt: str,
                 temperature: float) -> str:
        client = self._get_client()
        response = client.chat.completions.create(
            model=model.id,
            messages=self._messages(system_role, task_prompt),
            temperature=temperature,
            max_tokens=model.max_tokens or DEFAULT_MAX_TOKENS,
        )
        content = response.choices[0].message.content
        if content is None:
            logger.warning("empty completion from %s", model.key)
            return ""
        return content

    def stream(self, model: ModelConfig, system_role: str, task_prompt: str,
               temperature: float) -> Iterator[str]:
        client = self._get_client()
        response = client.chat.completions.create(
            model=model.id,
            messages=self._messages(system_role, task_prompt),
            temperature=temperature,
            max_tokens=model.max_tokens or DEFAULT_MAX_TOKENS,
            stream=True,
        )
        try:
            for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        finally:
            # Releases the HTTP connection when the consumer stops early
            response.close()


class AnthropicBackend:
    """Messages-API backend for Claude models."""

    def __init__(self, api_key: str):
        self._api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            try:
                import anthropic
            except ImportError as exc:
                raise ConfigurationError(
                    "anthropic package is not installed. Install it to use Claude backends."
                ) from exc
            self._client = anthropic.Anthropic(api_key=self._api_key)
        return self._client

    def complete(self, model: ModelConfig, system_role: str, task_prompt: str,
                 temperature: float) -> str:
        client = self._get_client()
        response = client.messages.create(
            model=model.id,
            max_tokens=model.max_tokens or DEFAULT_MAX_TOKENS,
            temperature=temperature,
            system=system_role,
            messages=[{"role": "user", "content": task_prompt}],
        )
        content = ""
        for block in response.content:
            if hasattr(block, "text"):
                content += block.text
        return content

    def stream(self, model: ModelConfig, system_role: str, task_prompt: str,
               temperature: float) -> Iterator[str]:
        client = self._get_client()
        with client.messages.stream(
            model=model.id,
            max_tokens=model.max_tokens or DEFAULT_MAX_TOKENS,
            temperature=temperature,
            system=system_role,
            messages=[{"role": "user", "content": task_prompt}],
        ) as stream:
            for text in stream.text_stream:
                yield text


class ModelGateway:
    """
    Resolves backend keys against a GatewayConfig and dispatches calls.

    Args:
        config: Explicit configuration. Defaults to GatewayConfig.from_env().
        backends: Optional provider -> backend overrides. Injected backends skip
            credential lookup; this is how tests supply fakes.
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        backends: Mapping[Provider, TextBackend] | None = None,
    ):
        self.config = config if config is not None else GatewayConfig.from_env()
        self._backends: dict[Provider, TextBackend] = dict(backends or {})
        self._lock = threading.Lock()

    def _backend_for(self, model: ModelConfig) -> TextBackend:
        with self._lock:
            backend = self._backends.get(model.provider)
            if backend is not None:
                return backend

            api_key = self.config.credential_for(model.provider)
            if model.provider == Provider.ANTHROPIC:
                backend = AnthropicBackend(api_key)
            elif model.provider in (Provider.OPENAI, Provider.POE, Provider.GOOGLE):
                backend = OpenAIBackend(api_key, self.config.base_url_for(model.provider))
            else:
                raise ConfigurationError(
                    f"Provider {model.provider.value} does not support text generation",
                    {"provider": model.provider.value},
                )
            self._backends[model.provider] = backend
            return backend

    def invoke(
        self,
        backend_key: str,
        system_role: str,
        task_prompt: str,
        *,
        temperature: float = 0.7,
        streaming: bool = False,
    ) -> str | Iterator[StreamChunk]:
        """
        Invoke a text backend.

        Args:
            backend_key: Registry key, e.g. 'claude-sonnet'.
            system_role: System prompt establishing the agent's role.
            task_prompt: The task itself.
            temperature: Sampling temperature.
            streaming: If True, return an iterator of StreamChunk instead of text.

        Returns:
            The complete generated text, or a single-consumer chunk iterator
            whose last element has done=True.

        Raises:
            ConfigurationError: unknown key, non-text model, or missing credential.
                Always raised here, before any network call, even when streaming.
            TransportError: the backend call failed.
        """
        model = self.config.resolve_text_model(backend_key)
        backend = self._backend_for(model)

        if streaming:
            logger.info("streaming from %s (%s) temperature=%.2f",
                        backend_key, model.provider.value, temperature)
            return self._stream(backend_key, model, backend, system_role, task_prompt, temperature)

        logger.info("calling %s (%s) temperature=%.2f", backend_key, model.provider.value, temperature)
        start_time = time.time()
        try:
            text = backend.complete(model, system_role, task_prompt, temperature)
        except DesignPipelineError:
            raise
        except Exception as exc:
            logger.exception("backend call to %s failed", backend_key)
            raise TransportError(str(exc), backend_key=backend_key) from exc

        latency_ms = int((time.time() - start_time) * 1000)
        logger.debug("%s returned %d chars in %d ms", backend_key, len(text), latency_ms)
        return text

    def _stream(
        self,
        backend_key: str,
        model: ModelConfig,
        backend: TextBackend,
        system_role: str,
        task_prompt: str,
        temperature: float,
    ) -> Iterator[StreamChunk]:
        chunks = backend.stream(model, system_role, task_prompt, temperature)
        total_chars = 0
        try:
            for text in chunks:
                total_chars += len(text)
                yield StreamChunk(text=text)
        except DesignPipelineError:
            raise
        except Exception as exc:
            logger.exception("stream from %s failed", backend_key)
            raise TransportError(str(exc), backend_key=backend_key) from exc
        finally:
            close = getattr(chunks, "close", None)
            if close is not None:
                close()

        logger.debug("%s stream finished after %d chars", backend_key, total_chars)
        yield StreamChunk(text="", done=True, finish_reason="stop")


def collect_stream(chunks: Iterable[StreamChunk]) -> str:
    """Accumulate a stream into one string. Extraction must run on the whole text."""
    parts = []
    for chunk in chunks:
        if chunk.done:
            break
        parts.append(chunk.text)
    return "".join(parts)
