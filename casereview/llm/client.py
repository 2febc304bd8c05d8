# casereview/llm/client.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Dict, Optional

import openai
from openai import AsyncOpenAI

from casereview.config import Settings, get_settings
from casereview.errors import TransportError

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """
    Simple abstraction so we can swap providers if needed.
    """

    @abstractmethod
    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.2,
        model: Optional[str] = None,
        json_response: bool = False,
    ) -> str:
        """
        messages: list of {"role": "system"|"user"|"assistant", "content": "..."}
        json_response: ask the provider to constrain the output to a JSON object
        returns: assistant content as a string
        raises: TransportError when the endpoint cannot be reached
        """
        ...

    async def ping(self) -> None:
        """
        Lightweight availability check. Raises on failure.
        """
        return None


class OpenAILLMClient(LLMClient):
    """
    OpenAI-compatible implementation using the official async Python client.
    Works against any provider exposing the chat-completions convention.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        settings: Optional[Settings] = None,
        client: Optional[Any] = None,
    ):
        settings = settings or get_settings()
        if client is None:
            if not settings.openai_api_key:
                raise RuntimeError(
                    "OPENAI_API_KEY is not set in environment (.env)."
                )
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.request_timeout,
                max_retries=settings.max_retries,
            )

        self.client = client
        self.default_model = model or settings.llm_model
        self._consecutive_failures = 0

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.2,
        model: Optional[str] = None,
        json_response: bool = False,
    ) -> str:
        kwargs: Dict[str, Any] = {
            "model": model or self.default_model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_response:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            completion = await self.client.chat.completions.create(**kwargs)
        except openai.APIError as e:
            raise self._translate(e) from e

        self._consecutive_failures = 0
        content = completion.choices[0].message.content
        return content or ""

    async def ping(self) -> None:
        try:
            await self.client.models.list()
        except openai.APIError as e:
            raise self._translate(e) from e

    def _translate(self, exc: openai.APIError) -> TransportError:
        self._consecutive_failures += 1
        status_code = getattr(exc, "status_code", None)
        if isinstance(exc, openai.APITimeoutError):
            message = "Completion endpoint timed out"
        elif isinstance(exc, openai.APIConnectionError):
            message = "Could not connect to completion endpoint"
        elif status_code is not None:
            message = f"Completion endpoint returned HTTP {status_code}"
        else:
            message = f"Completion endpoint error: {exc}"

        logger.warning(
            "LLM transport failure (%d in a row): %s", self._consecutive_failures, message
        )
        return TransportError(
            message,
            status_code=status_code,
            repeated=self._consecutive_failures > 1,
        )
