"""
LLM service for free-form answers.
Implements timeout, rate limiting, retry and an availability probe around a LangChain chat model.
"""

import time
import asyncio
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_core.runnables import Runnable
from langchain_openai import ChatOpenAI
from langchain_google_genai import ChatGoogleGenerativeAI

from clinic_assistant.utils.logger import get_logger
from clinic_assistant.utils.metrics import record_model_call

logger = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class LLMTimeoutError(Exception):
    """Raised when LLM call exceeds timeout threshold."""


class LLMError(Exception):
    """Base exception for LLM-related errors."""


def create_llm(
    model_name: str,
    api_key: Optional[str],
    temperature: float = 0,
    max_tokens: Optional[int] = None,
    base_url: str = GROQ_BASE_URL,
) -> BaseChatModel:
    """
    Factory function to create chat model instances.

    ``gpt*`` models use OpenAI, ``gemini*`` models use Google and any other
    name (``llama-3.1-8b-instant``...) goes to Groq's OpenAI-compatible API.
    SDK-level retries are off; LLMService decides how many attempts are made.

    Args:
        model_name: Model identifier
        api_key: API key for the provider
        temperature: Sampling temperature
        max_tokens: Reply length limit
        base_url: Endpoint for OpenAI-compatible providers

    Returns:
        Configured chat model instance

    Raises:
        ValueError: If no model name or API key is given
    """
    if not model_name:
        raise ValueError("A chat model name is required")
    if not api_key:
        raise ValueError(f"Missing API key for model {model_name}")

    if "gemini" in model_name:
        return ChatGoogleGenerativeAI(
            google_api_key=api_key,
            model=model_name,
            temperature=temperature,
            max_output_tokens=max_tokens,
            max_retries=0,
        )
    elif "gpt" in model_name:
        return ChatOpenAI(
            api_key=api_key,
            model=model_name,
            temperature=temperature,
            max_tokens=max_tokens,
            max_retries=0,
        )
    return ChatOpenAI(
        api_key=api_key,
        model=model_name,
        temperature=temperature,
        max_tokens=max_tokens,
        base_url=base_url,
        max_retries=0,
    )


class LLMService:
    """
    Async wrapper around a chat model with timeout, rate limiting and retries.
    """

    def __init__(
        self,
        model: BaseChatModel,
        max_retries: int = 1,
        timeout: int = 10,
        rate_limit: int = 3,
        probe_url: Optional[str] = None,
        api_key: Optional[str] = None,
        probe_timeout: float = 3.0,
    ):
        """
        Initialize async LLM service.

        Args:
            model: Configured chat model instance
            max_retries: Attempts per call (1 means a single attempt)
            timeout: Timeout in seconds for each LLM call
            rate_limit: Maximum concurrent LLM requests (Semaphore)
            probe_url: Provider models endpoint checked before generating
            api_key: Bearer token for the probe
            probe_timeout: Timeout in seconds for the probe
        """
        self.model = model
        self.max_retries = max_retries
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(rate_limit)
        self.probe_url = probe_url
        self.api_key = api_key
        self.probe_timeout = probe_timeout

    async def is_available(self) -> bool:
        """
        Cheap reachability check of the provider.

        Returns True when no probe endpoint is configured.

        Returns:
            Whether the provider answered the probe with a success status
        """
        if not self.probe_url:
            return True
        if not self.api_key:
            logger.warning("llm_probe_skipped", reason="missing_api_key")
            return False

        try:
            async with httpx.AsyncClient(timeout=self.probe_timeout) as client:
                response = await client.get(
                    self.probe_url, headers={"Authorization": f"Bearer {self.api_key}"}
                )
        except httpx.HTTPError as e:
            logger.warning("llm_probe_failed", error=str(e), url=self.probe_url)
            return False

        available = response.is_success
        logger.info("llm_probe_completed", available=available, status=response.status_code)
        return available

    async def invoke_with_retry(
        self,
        messages: list[BaseMessage] | str,
        timeout: Optional[int] = None,
        runnable: Optional[Runnable] = None,
    ) -> BaseMessage:
        """
        Invokes LLM with async retry, timeout, and rate limiting.

        Args:
            messages: Input messages or single prompt string
            timeout: Override default timeout (seconds)
            runnable: Model variant to call (defaults to the configured model)

        Returns:
            LLM response as BaseMessage

        Raises:
            LLMTimeoutError: If call exceeds timeout
            LLMError: If call fails after all retries
        """
        timeout = timeout or self.timeout
        runnable = runnable or self.model
        start_time = time.time()

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=5),
            retry=retry_if_exception_type((LLMError, LLMTimeoutError)),
            reraise=True,
        ):
            with attempt:
                try:
                    logger.info(
                        "llm_call_started",
                        attempt=attempt.retry_state.attempt_number,
                        timeout=timeout,
                        model=getattr(self.model, "model_name", "unknown"),
                    )
                    record_model_call()

                    async with self.semaphore:
                        response = await asyncio.wait_for(
                            runnable.ainvoke(messages), timeout=timeout
                        )

                    elapsed = time.time() - start_time
                    self._log_usage(response, elapsed)
                    return response

                except asyncio.TimeoutError as e:
                    elapsed = time.time() - start_time
                    logger.error(
                        "llm_call_timeout",
                        elapsed=elapsed,
                        timeout=timeout,
                        attempt=attempt.retry_state.attempt_number,
                    )
                    raise LLMTimeoutError(
                        f"LLM call exceeded timeout of {timeout}s"
                    ) from e
                except Exception as e:
                    elapsed = time.time() - start_time
                    logger.error(
                        "llm_call_failed",
                        exc_info=True,
                        elapsed=elapsed,
                        attempt=attempt.retry_state.attempt_number,
                        error=str(e),
                    )
                    raise LLMError(f"LLM invocation failed: {e}") from e

    async def generate(
        self,
        prompt: str,
        system_instructions: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Generates a text reply.

        Args:
            prompt: Conversation excerpt plus the current question
            system_instructions: Persona and any data found for this turn
            max_tokens: Override reply length limit
            temperature: Override sampling temperature

        Returns:
            Reply text, stripped

        Raises:
            LLMTimeoutError: If the call exceeds the timeout
            LLMError: If the call fails or the reply is empty
        """
        overrides = {}
        if max_tokens is not None:
            overrides["max_tokens"] = max_tokens
        if temperature is not None:
            overrides["temperature"] = temperature
        runnable = self.model.bind(**overrides) if overrides else self.model

        messages = [SystemMessage(content=system_instructions), HumanMessage(content=prompt)]
        response = await self.invoke_with_retry(messages, runnable=runnable)

        text = response.content if isinstance(response.content, str) else str(response.content)
        text = text.strip()
        if not text:
            raise LLMError("Model returned an empty reply")
        return text

    def _log_usage(self, response: BaseMessage, elapsed: float) -> None:
        """
        Logs token usage information.

        Args:
            response: LLM response message
            elapsed: Elapsed time in seconds
        """
        usage = getattr(response, "usage_metadata", None)
        if usage:
            logger.info(
                "llm_usage",
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
                elapsed=elapsed,
            )
        else:
            logger.info("llm_call_completed", elapsed=elapsed)
