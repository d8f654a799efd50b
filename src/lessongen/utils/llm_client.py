"""Completion clients for the lesson pipeline.

``CompletionClient`` is the only surface the pipeline talks to. ``LLMClient``
implements it with Instructor-patched async OpenAI/Anthropic clients for
structured output, plus request/response logging and token accounting.

Clients never retry: retry policy belongs to the caller (see UnitExecutor).
Failures are reported as ``ValidationError`` (output does not fit the schema)
or ``TransportError`` (the call itself failed).
"""

import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Type, TypeVar

import anthropic
import httpx
import instructor
import openai
from instructor.core import InstructorRetryException
from langfuse import observe
from openai import AsyncOpenAI
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from lessongen import constants
from lessongen.exceptions import CompletionError, TransportError, ValidationError

T = TypeVar("T", bound=BaseModel)

logger = logging.getLogger(__name__)

# Failures of the call itself, whatever Instructor wraps them in
TRANSPORT_ERRORS = (openai.APIError, anthropic.APIError, httpx.HTTPError, TimeoutError, OSError)

# Output that arrived but does not fit the response model
SCHEMA_ERRORS = (PydanticValidationError, json.JSONDecodeError)


def _error_chain(error: BaseException) -> List[BaseException]:
    """The error plus everything it wraps: causes, contexts and Instructor's failed attempts."""
    chain: List[BaseException] = []
    pending: List[Optional[BaseException]] = [error]
    while pending:
        current = pending.pop()
        if current is None or any(current is seen for seen in chain):
            continue
        chain.append(current)
        pending.extend([current.__cause__, current.__context__])
        for attempt in getattr(current, "failed_attempts", None) or []:
            pending.append(attempt.exception)
    return chain


def classify_completion_error(error: BaseException) -> Type[CompletionError]:
    """Map an exception raised by a structured call to ValidationError or TransportError.

    Transport failures win over schema failures when both appear in the chain,
    and anything unrecognised counts as a transport failure.
    """
    chain = _error_chain(error)
    if any(isinstance(e, TRANSPORT_ERRORS) for e in chain):
        return TransportError
    if any(isinstance(e, SCHEMA_ERRORS) for e in chain):
        return ValidationError
    # Instructor only records failed attempts for responses it could not parse
    if any(
        isinstance(e, InstructorRetryException) and getattr(e, "failed_attempts", None)
        for e in chain
    ):
        return ValidationError
    return TransportError


class TokenUsage(BaseModel):
    """Token usage statistics."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cached_tokens: int = 0  # Prompt cache hits


# ============================================================================
# Interface
# ============================================================================


class CompletionClient(ABC):
    """Send a prompt, get free text or a schema-validated model back."""

    @abstractmethod
    async def complete_free_text(self, prompt: str) -> str:
        """Return the model's unstructured text answer.

        Raises:
            TransportError: If the underlying call fails
        """

    @abstractmethod
    async def complete_structured(self, prompt: str, schema: Type[T]) -> T:
        """Return the model's answer validated against ``schema``.

        Raises:
            ValidationError: If the output cannot be coerced to ``schema``
            TransportError: If the underlying call fails
        """


# ============================================================================
# Instructor-backed client
# ============================================================================


class LLMClient(CompletionClient):
    """Instructor-wrapped OpenAI/Anthropic client.

    Features:
    - Structured responses validated against pydantic models
    - Free-text completions (for explanation units)
    - Token usage tracking and cost estimation
    - Request/response logging (prompt hash, tokens, latency)
    - Langfuse tracing for observability
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        enable_langfuse: Optional[bool] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize LLM client with Instructor.

        Args:
            api_key: API key for the provider (if None, the SDK reads its own env var)
            model: Model to use (default: LLM_MODEL env var)
                   Supports: gpt-*, o*, claude-*
            temperature: Sampling temperature (default: LLM_TEMPERATURE env var)
            max_tokens: Maximum tokens to generate (default: LLM_MAX_TOKENS env var)
            timeout: Per-request timeout in seconds (default: LLM_TIMEOUT_SECONDS env var)
            enable_langfuse: Use the Langfuse-wrapped OpenAI client (default: ENABLE_LANGFUSE env var)
            http_client: httpx client handed to the provider SDK (default: the SDK's own)
        """
        self.model = model or constants.LLM_MODEL
        self.temperature = constants.LLM_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or constants.LLM_MAX_TOKENS
        self.timeout = timeout or constants.LLM_TIMEOUT_SECONDS
        self.enable_langfuse = (
            constants.ENABLE_LANGFUSE if enable_langfuse is None else enable_langfuse
        )

        self.total_usage = TokenUsage()
        self.provider = self._detect_provider(self.model)

        # SDK-level retries are disabled; the unit executor owns retry policy
        if self.provider == "openai":
            if self.enable_langfuse:
                from langfuse.openai import AsyncOpenAI as TracedAsyncOpenAI

                raw_client = TracedAsyncOpenAI(
                    api_key=api_key, max_retries=0, timeout=self.timeout, http_client=http_client
                )
                logger.info("Langfuse tracing enabled for OpenAI")
            else:
                raw_client = AsyncOpenAI(
                    api_key=api_key, max_retries=0, timeout=self.timeout, http_client=http_client
                )
            self.raw_client = raw_client
            self.client = instructor.from_openai(raw_client)
        else:
            from anthropic import AsyncAnthropic

            raw_client = AsyncAnthropic(
                api_key=api_key, max_retries=0, timeout=self.timeout, http_client=http_client
            )
            self.raw_client = raw_client
            self.client = instructor.from_anthropic(raw_client)

        logger.info(
            f"LLMClient initialized with provider={self.provider}, model={self.model}"
        )

    def _detect_provider(self, model: str) -> str:
        """Detect LLM provider from model name.

        Args:
            model: Model name

        Returns:
            Provider name: 'openai' or 'anthropic'
        """
        model_lower = model.lower()
        if model_lower.startswith("claude"):
            return "anthropic"
        if not model_lower.startswith(("gpt", "o1", "o3", "o4")):
            logger.warning(f"Unknown model prefix '{model}', defaulting to OpenAI provider")
        return "openai"

    def _messages(self, prompt: str) -> List[Dict[str, str]]:
        return [{"role": "user", "content": prompt}]

    @observe(as_type="generation")
    async def complete_structured(self, prompt: str, schema: Type[T]) -> T:
        prompt_hash = self._hash_prompt(prompt)
        logger.debug(
            f"Generating structured response: model={self.model}, "
            f"response_model={schema.__name__}, prompt_hash={prompt_hash}"
        )

        start_time = time.perf_counter()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                response_model=schema,
                max_retries=0,
                **self._sampling_params(),
            )
        except CompletionError:
            raise
        except Exception as e:
            self._log_response(prompt_hash, schema.__name__, start_time, success=False, error=str(e))
            if classify_completion_error(e) is ValidationError:
                raise ValidationError(
                    f"Output did not match {schema.__name__}: {str(e)[:500]}",
                    schema_name=schema.__name__,
                ) from e
            raise TransportError(f"Completion call failed: {e}") from e

        usage = self._extract_usage(getattr(response, "_raw_response", None))
        self._update_total_usage(usage)
        self._log_response(prompt_hash, schema.__name__, start_time, success=True, usage=usage)
        return response

    @observe(as_type="generation")
    async def complete_free_text(self, prompt: str) -> str:
        prompt_hash = self._hash_prompt(prompt)
        logger.debug(f"Generating free text: model={self.model}, prompt_hash={prompt_hash}")

        start_time = time.perf_counter()
        try:
            if self.provider == "anthropic":
                raw = await self.raw_client.messages.create(
                    model=self.model,
                    messages=self._messages(prompt),
                    **self._sampling_params(),
                )
                text = "".join(
                    block.text for block in raw.content if getattr(block, "type", "") == "text"
                )
            else:
                raw = await self.raw_client.chat.completions.create(
                    model=self.model,
                    messages=self._messages(prompt),
                    **self._sampling_params(),
                )
                text = raw.choices[0].message.content or ""
        except Exception as e:
            self._log_response(prompt_hash, "text", start_time, success=False, error=str(e))
            raise TransportError(f"Completion call failed: {e}") from e

        usage = self._extract_usage(raw)
        self._update_total_usage(usage)
        self._log_response(prompt_hash, "text", start_time, success=True, usage=usage)
        return text

    def _sampling_params(self) -> Dict[str, Any]:
        # Reasoning models take max_completion_tokens and only the default temperature
        if self.provider == "openai" and self.model.startswith(("gpt-5", "o")):
            return {"max_completion_tokens": self.max_tokens}
        return {"max_tokens": self.max_tokens, "temperature": self.temperature}

    def _extract_usage(self, raw_response: Any) -> TokenUsage:
        """Extract token usage from a raw provider response.

        Args:
            raw_response: Provider response object (may be None)

        Returns:
            TokenUsage object with token counts
        """
        usage = TokenUsage()
        raw_usage = getattr(raw_response, "usage", None)
        if raw_usage is None:
            return usage

        if self.provider == "anthropic":
            usage.prompt_tokens = getattr(raw_usage, "input_tokens", 0) or 0
            usage.completion_tokens = getattr(raw_usage, "output_tokens", 0) or 0
            usage.total_tokens = usage.prompt_tokens + usage.completion_tokens
            usage.cached_tokens = getattr(raw_usage, "cache_read_input_tokens", 0) or 0
        else:
            usage.prompt_tokens = getattr(raw_usage, "prompt_tokens", 0) or 0
            usage.completion_tokens = getattr(raw_usage, "completion_tokens", 0) or 0
            usage.total_tokens = getattr(raw_usage, "total_tokens", 0) or 0
            details = getattr(raw_usage, "prompt_tokens_details", None)
            usage.cached_tokens = getattr(details, "cached_tokens", 0) or 0

        return usage

    def _update_total_usage(self, usage: TokenUsage) -> None:
        self.total_usage.prompt_tokens += usage.prompt_tokens
        self.total_usage.completion_tokens += usage.completion_tokens
        self.total_usage.total_tokens += usage.total_tokens
        self.total_usage.cached_tokens += usage.cached_tokens

    def get_usage_summary(self) -> dict:
        """Get summary of total token usage.

        Returns:
            Dictionary with usage stats and cost estimates
        """
        # Cost estimates (per 1M tokens)
        costs = {
            "gpt-4o-mini": {"input": 0.15, "output": 0.60, "cached": 0.075},
            "gpt-4.1-mini": {"input": 0.4, "output": 1.6, "cached": 0.1},
            "gpt-4.1": {"input": 2, "output": 8, "cached": 0.5},
            "gpt-5-mini": {"input": 0.25, "output": 2, "cached": 0.025},
            "claude-haiku-4-5": {"input": 1, "output": 5, "cached": 0.1},
            "claude-sonnet-4-5": {"input": 3, "output": 15, "cached": 0.3},
        }

        model_cost = costs.get(self.model, costs["gpt-4.1-mini"])

        uncached_prompt = self.total_usage.prompt_tokens - self.total_usage.cached_tokens
        input_cost = (
            uncached_prompt * model_cost["input"]
            + self.total_usage.cached_tokens * model_cost["cached"]
        ) / 1_000_000
        output_cost = self.total_usage.completion_tokens * model_cost["output"] / 1_000_000

        return {
            "model": self.model,
            "prompt_tokens": self.total_usage.prompt_tokens,
            "completion_tokens": self.total_usage.completion_tokens,
            "total_tokens": self.total_usage.total_tokens,
            "cached_tokens": self.total_usage.cached_tokens,
            "cache_hit_rate": (
                f"{self.total_usage.cached_tokens / self.total_usage.prompt_tokens * 100:.1f}%"
                if self.total_usage.prompt_tokens > 0
                else "0.0%"
            ),
            "estimated_cost_usd": round(input_cost + output_cost, 4),
            "input_cost_usd": round(input_cost, 4),
            "output_cost_usd": round(output_cost, 4),
        }

    def reset_usage(self) -> None:
        """Reset token usage counters."""
        self.total_usage = TokenUsage()

    def _hash_prompt(self, prompt: str) -> str:
        """First 16 characters of the prompt's SHA256, for log correlation."""
        return hashlib.sha256(prompt.encode()).hexdigest()[:16]

    def _log_response(
        self,
        prompt_hash: str,
        response_model: str,
        start_time: float,
        success: bool,
        usage: Optional[TokenUsage] = None,
        error: Optional[str] = None,
    ) -> None:
        """Log request metadata (hash, latency, tokens, error)."""
        log_data: Dict[str, Any] = {
            "prompt_hash": prompt_hash,
            "response_model": response_model,
            "model": self.model,
            "latency_ms": round((time.perf_counter() - start_time) * 1000, 2),
            "success": success,
        }

        if usage:
            log_data["tokens"] = {
                "prompt": usage.prompt_tokens,
                "completion": usage.completion_tokens,
                "total": usage.total_tokens,
                "cached": usage.cached_tokens,
            }

        if error:
            log_data["error"] = error[:200]

        if success:
            logger.info(f"LLM response: {log_data}")
        else:
            logger.warning(f"LLM response failed: {log_data}")
