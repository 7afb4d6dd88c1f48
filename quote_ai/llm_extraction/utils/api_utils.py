"""
API Utilities Module
Handles LLM chat-completion calls against any OpenAI-compatible endpoint,
with client-side rate limiting and classified errors.

Calls are never retried here; retry policy belongs to the caller.
"""

import time
import random
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

import openai
from openai import OpenAI

# Configure logging
logger = logging.getLogger(__name__)


class LLMCallError(Exception):
    """Base class for classified LLM call failures."""

    description = "The AI service call failed"

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        self.status_code = status_code
        detail = f"{self.description}: {message}" if message else self.description
        super().__init__(detail)


class LLMTimeoutError(LLMCallError):
    description = "The AI service did not respond in time; the document may be too large"


class LLMAuthError(LLMCallError):
    description = "The AI service rejected the API key; check the configured credentials"


class LLMRateLimitError(LLMCallError):
    description = "The AI service rate limit was reached; try again later"


class LLMServerError(LLMCallError):
    description = "The AI service reported an internal error"


class LLMBadRequestError(LLMCallError):
    description = "The AI service rejected the request parameters"


class LLMResponseFormatError(LLMCallError):
    description = "The AI service returned a response with no usable content"


@dataclass
class LLMRequest:
    """One chat-completion request."""
    prompt: str
    model_id: str
    temperature: float = 0.3
    max_tokens: int = 6000
    timeout_s: float = 300.0
    system_prompt: Optional[str] = None


class APIManager:
    """Manages LLM interactions with rate limiting and error classification."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_rpm: int = 100,
        client: Optional[Any] = None,
    ):
        """Initialize the API manager.

        Args:
            api_key: API key for the endpoint
            base_url: OpenAI-compatible endpoint URL (None for the OpenAI default)
            max_rpm: Maximum requests per minute
            client: Pre-built client exposing ``chat.completions.create``
        """
        if client is None:
            if not api_key or not isinstance(api_key, str):
                raise ValueError("API key must be a non-empty string")
            client = OpenAI(api_key=api_key, base_url=base_url, max_retries=0)

        self.client = client
        self.base_url = base_url
        self.max_rpm = max_rpm

        # Rate limiting
        self.request_times = []
        self._lock = threading.RLock()

    def enforce_rate_limit(self) -> None:
        """Enforce API rate limits to prevent 429 errors."""
        current_time = time.time()

        with self._lock:
            # Remove requests older than 1 minute
            self.request_times = [t for t in self.request_times if current_time - t < 60]

            # If we're at the limit, wait
            if len(self.request_times) >= self.max_rpm:
                sleep_time = max(0, 60 - (current_time - self.request_times[0])) + random.uniform(0.5, 1.5)
                logger.info(f"Rate limit reached, sleeping for {sleep_time:.2f} seconds")
                # Release lock during sleep to prevent blocking other threads
                self._lock.release()
                try:
                    time.sleep(sleep_time)
                finally:
                    self._lock.acquire()
                current_time = time.time()

            self.request_times.append(current_time)

    def complete(self, request: LLMRequest) -> str:
        """Send one chat completion and return the first choice's message text.

        Args:
            request: Prompt and sampling parameters

        Returns:
            str: The message text of the first choice

        Raises:
            LLMCallError: A classified subclass describing the failure cause
        """
        if not request.prompt or not isinstance(request.prompt, str):
            raise ValueError("prompt must be a non-empty string")

        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        self.enforce_rate_limit()
        started = time.time()
        try:
            response = self.client.chat.completions.create(
                model=request.model_id,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                timeout=request.timeout_s,
            )
        except Exception as e:
            error = classify_error(e)
            logger.error(f"LLM call to {request.model_id} failed: {error}")
            raise error from e

        elapsed = time.time() - started
        choices = getattr(response, 'choices', None)
        if not choices:
            raise LLMResponseFormatError("response contained no choices")
        message = getattr(choices[0], 'message', None)
        content = getattr(message, 'content', None)
        if not content or not content.strip():
            raise LLMResponseFormatError("first choice has no message content")

        logger.info(f"LLM call to {request.model_id} returned {len(content)} chars in {elapsed:.1f}s")
        return content.strip()

    def get_provider_info(self) -> Dict[str, Any]:
        """Get information about the current endpoint configuration."""
        return {
            "base_url": self.base_url,
            "max_rpm": self.max_rpm,
        }


def classify_error(error: Exception) -> LLMCallError:
    """Map an SDK or transport exception onto an LLMCallError subclass."""
    if isinstance(error, LLMCallError):
        return error
    if isinstance(error, (openai.APITimeoutError, TimeoutError)):
        return LLMTimeoutError(str(error))
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return LLMAuthError(str(error), status_code=error.status_code)
    if isinstance(error, openai.RateLimitError):
        return LLMRateLimitError(str(error), status_code=error.status_code)
    if isinstance(error, (openai.BadRequestError, openai.UnprocessableEntityError, openai.NotFoundError)):
        return LLMBadRequestError(str(error), status_code=error.status_code)
    if isinstance(error, openai.APIStatusError):
        status = error.status_code
        if status >= 500:
            return LLMServerError(str(error), status_code=status)
        if status == 401:
            return LLMAuthError(str(error), status_code=status)
        if status == 429:
            return LLMRateLimitError(str(error), status_code=status)
        return LLMBadRequestError(str(error), status_code=status)
    if isinstance(error, openai.APIConnectionError):
        return LLMServerError(f"connection failed: {error}")
    return LLMCallError(f"{type(error).__name__}: {error}")
