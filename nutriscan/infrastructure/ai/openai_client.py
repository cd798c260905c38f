"""
OpenAI model client - implements the IModelClient port.

Key Features:
- Vision input as a base64 data-URL image part
- JSON object response mode
- Circuit breaker (5 failures -> 60s open), one breaker per client
- Transport errors surface as ModelUnavailableError
- Optional retry wrapper (tenacity) for callers that want one
"""

from __future__ import annotations

import base64
import os
from typing import Any, Dict, List, Optional

import structlog
from circuitbreaker import CircuitBreakerError, circuit
from openai import AsyncOpenAI, OpenAIError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from nutriscan.domain.analysis.models import ImageSourceData
from nutriscan.domain.analysis.ports import IModelClient
from nutriscan.domain.shared.errors import ModelUnavailableError

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_VISION_MODEL = "gpt-4o"


def image_data_url(image: ImageSourceData) -> str:
    """data:<mime>;base64,<payload> URL for a vision content part."""
    encoded = base64.b64encode(image.image).decode("ascii")
    return f"data:{image.mime_type};base64,{encoded}"


def build_messages(
    prompt: str,
    *,
    system: Optional[str] = None,
    image: Optional[ImageSourceData] = None,
) -> List[Dict[str, Any]]:
    """
    Build chat messages (system + user, with image part for vision).

    Example:
        >>> messages = build_messages("Analizza", system="Rispondi in JSON")
        >>> [m["role"] for m in messages]
        ['system', 'user']
    """
    messages: List[Dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})
    if image is None:
        messages.append({"role": "user", "content": prompt})
    else:
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_data_url(image)}},
                ],
            }
        )
    return messages


class OpenAIModelClient:
    """
    Async OpenAI client implementing IModelClient.

    Example:
        >>> async with OpenAIModelClient(api_key="sk-...") as client:
        ...     text = await client.generate("Analizza questo prodotto", system="...")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        vision_model: str = DEFAULT_VISION_MODEL,
        temperature: float = 0.1,
        max_tokens: int = 2048,
        timeout: float = 15.0,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (reads OPENAI_API_KEY if None)
            model: Model for text prompts
            vision_model: Model for prompts with an image
            temperature: Sampling temperature (low for consistency)
            max_tokens: Default output cap
            timeout: Request timeout in seconds
            failure_threshold: Consecutive failures before the circuit opens
            recovery_timeout: Seconds the circuit stays open
            client: Optional pre-configured AsyncOpenAI client (for testing)

        Raises:
            ValueError: If API key not found and client not provided
        """
        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("OPENAI_API_KEY")
            if not resolved_key:
                raise ValueError(
                    "OPENAI_API_KEY not found in environment. "
                    "Set it in .env file or pass as parameter."
                )
            # No SDK-level retries: one call per generate(), callers decide.
            self._client = AsyncOpenAI(api_key=resolved_key, timeout=timeout, max_retries=0)

        self.model = model
        self.vision_model = vision_model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._guarded_create = circuit(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            expected_exception=(OpenAIError, TimeoutError, ConnectionError),
            name=f"openai_model_{id(self)}",
        )(self._create)

    async def __aenter__(self) -> OpenAIModelClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    async def _create(self, **params: Any) -> Any:
        return await self._client.chat.completions.create(**params)

    async def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        image: Optional[ImageSourceData] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send one prompt and return the raw response text.

        Raises:
            ModelUnavailableError: On API/transport failure or open circuit
        """
        model = self.vision_model if image is not None else self.model
        params: Dict[str, Any] = {
            "model": model,
            "messages": build_messages(prompt, system=system, image=image),
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
            "response_format": {"type": "json_object"},
        }

        logger.info("Calling model", model=model, vision=image is not None)
        try:
            completion = await self._guarded_create(**params)
        except CircuitBreakerError as e:
            logger.error("Model circuit open", model=model)
            raise ModelUnavailableError(f"OpenAI circuit open: {e}") from e
        except (OpenAIError, TimeoutError, ConnectionError) as e:
            logger.error("Model call failed", model=model, error=str(e), error_type=type(e).__name__)
            raise ModelUnavailableError(f"OpenAI API failed: {e}") from e

        choice = completion.choices[0]
        content = choice.message.content or ""
        usage = completion.usage
        logger.info(
            "Model call complete",
            model=model,
            finish_reason=choice.finish_reason,
            total_tokens=usage.total_tokens if usage else 0,
        )
        return content


class RetryingModelClient:
    """
    IModelClient decorator that retries ModelUnavailableError.

    The orchestrator never retries by itself; wrap the client with this
    when a caller wants automatic backoff.

    Example:
        >>> client = RetryingModelClient(OpenAIModelClient(), max_attempts=3)
    """

    def __init__(
        self,
        inner: IModelClient,
        max_attempts: int = 3,
        min_wait: float = 2.0,
        max_wait: float = 10.0,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._inner = inner
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait

    async def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        image: Optional[ImageSourceData] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=1, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(ModelUnavailableError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying model call",
                        attempt=attempt.retry_state.attempt_number,
                        max_attempts=self.max_attempts,
                    )
                return await self._inner.generate(
                    prompt, system=system, image=image, max_tokens=max_tokens
                )
        raise ModelUnavailableError("Model call not attempted")  # pragma: no cover
