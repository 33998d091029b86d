"""OpenAI chat-completions adapter used by every AI call site."""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, List, Optional

import openai

from fitplan.core.errors import AiError, AiErrorKind
from fitplan.observability.metrics import log_metric
from fitplan.observability.tracing import trace
from fitplan.services.ai.rate_limiter import RateLimiter
from fitplan.services.ai.retry import RetryPolicy

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are FitPlan Coach, an expert personal trainer and nutritionist. "
    "You create safe, personalized fitness and nutrition plans and you always "
    "answer in the exact JSON format requested."
)
CHAT_SYSTEM_PROMPT = (
    "You are FitPlan Coach, a friendly personal trainer and nutritionist. "
    "Answer briefly and concretely, and never give medical diagnoses."
)


def map_openai_error(exc: Exception) -> AiError:
    """Translate an OpenAI SDK exception into the ``AiError`` taxonomy."""
    # APITimeoutError subclasses APIConnectionError, so it must be checked first.
    if isinstance(exc, openai.APITimeoutError):
        return AiError(AiErrorKind.TIMEOUT, f"AI request timed out: {exc}")
    if isinstance(exc, openai.RateLimitError):
        return AiError(AiErrorKind.RATE_LIMITED, f"AI provider rate limit: {exc}")
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AiError(AiErrorKind.INVALID_API_KEY, f"AI provider rejected credentials: {exc}")
    if isinstance(exc, openai.APIConnectionError):
        return AiError(AiErrorKind.NETWORK_ERROR, f"AI provider unreachable: {exc}")
    if isinstance(exc, openai.InternalServerError):
        return AiError(AiErrorKind.NETWORK_ERROR, f"AI provider server error: {exc}")
    if isinstance(exc, openai.BadRequestError):
        if getattr(exc, "code", None) == "content_policy_violation":
            return AiError(AiErrorKind.CONTENT_FILTERED, f"AI provider blocked the request: {exc}")
        return AiError(AiErrorKind.UNKNOWN, f"AI provider rejected the request: {exc}")
    return AiError(AiErrorKind.UNKNOWN, f"Unexpected AI failure: {exc}")


class AiClient:
    """Issue one rate-limited, time-bounded completion and return its raw text.

    ``client`` is an ``openai.OpenAI`` instance (or anything exposing the same
    ``with_options(...).chat.completions.create`` surface). The SDK's own
    retries are disabled; ``retry_policy`` wraps each logical call instead and
    every attempt takes its own rate limiter slot.
    """

    def __init__(
        self,
        client: Any,
        *,
        rate_limiter: RateLimiter,
        retry_policy: RetryPolicy,
        model: str = "gpt-4o",
        temperature: float = 0.7,
        max_output_tokens: int = 8192,
        generation_timeout: float = 60.0,
        chat_timeout: float = 30.0,
    ) -> None:
        self._client = client
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.generation_timeout = generation_timeout
        self.chat_timeout = chat_timeout

    def generate(self, prompt: str, *, operation: str = "ai.generate") -> str:
        """JSON-mode call bounded by the generation timeout."""
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        return self._call(messages, timeout=self.generation_timeout, json_mode=True, operation=operation)

    def chat(self, prompt: str, *, operation: str = "ai.chat") -> str:
        """Free-text conversational call bounded by the chat timeout."""
        messages = [
            {"role": "system", "content": CHAT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        return self._call(messages, timeout=self.chat_timeout, json_mode=False, operation=operation)

    def _call(
        self,
        messages: List[Dict[str, str]],
        *,
        timeout: float,
        json_mode: bool,
        operation: str,
    ) -> str:
        if self._client is None:
            raise AiError(AiErrorKind.INVALID_API_KEY, "OPENAI_API_KEY is not configured")

        metadata = {"model": self.model, "operation": operation, "timeout_s": timeout}
        with trace(operation, metadata=metadata):
            return self.retry_policy.run(
                lambda: self._attempt(messages, timeout=timeout, json_mode=json_mode, operation=operation),
                operation_name=operation,
            )

    def _attempt(
        self,
        messages: List[Dict[str, str]],
        *,
        timeout: float,
        json_mode: bool,
        operation: str,
    ) -> str:
        waited = self.rate_limiter.acquire()
        request: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        start = perf_counter()
        try:
            completion = self._client.with_options(timeout=timeout, max_retries=0).chat.completions.create(**request)
        except openai.OpenAIError as exc:
            error = map_openai_error(exc)
            logger.warning("%s failed (%s): %s", operation, error.kind.value, exc)
            raise error from exc
        latency_ms = (perf_counter() - start) * 1000

        text = _extract_text(completion)
        log_metric(
            "ai.call.latency_ms",
            latency_ms,
            metadata={"operation": operation, "rate_limit_wait_s": round(waited, 2)},
        )
        logger.info("%s completed in %.0fms (%s chars)", operation, latency_ms, len(text))
        return text


def _extract_text(completion: Any) -> str:
    choices = getattr(completion, "choices", None) or []
    if not choices:
        raise AiError(AiErrorKind.CONTENT_FILTERED, "AI returned no candidates")
    choice = choices[0]
    if getattr(choice, "finish_reason", None) == "content_filter":
        raise AiError(AiErrorKind.CONTENT_FILTERED, "AI response was blocked by the safety filter")
    message = getattr(choice, "message", None)
    content: Optional[str] = getattr(message, "content", None) if message is not None else None
    if not content or not content.strip():
        raise AiError(AiErrorKind.INVALID_RESPONSE, "AI returned an empty response")
    return content
