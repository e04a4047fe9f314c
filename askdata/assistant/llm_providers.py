"""
LLM Provider Abstraction Layer
Supports the bearer-authenticated chat gateway and OpenAI chat completions
"""
import httpx
from typing import Optional, Dict, Any, List
from abc import ABC, abstractmethod

from askdata.core.logger import get_logger, timeit

from .config import llm_config
from .credentials import CredentialStore
from .errors import LLMProviderError, ServiceUnavailable

logger = get_logger(__name__)

Message = Dict[str, str]


class LLMProvider(ABC):
    """Base class for LLM providers"""

    name: str = "llm"

    @property
    @abstractmethod
    def available(self) -> bool:
        """Whether a credential is configured for this provider"""
        raise NotImplementedError

    @abstractmethod
    async def chat(
        self,
        messages: List[Message],
        *,
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        """Send role-tagged messages and return the chat completion payload"""
        raise NotImplementedError

    @staticmethod
    def extract_content(completion: Dict[str, Any]) -> str:
        """Return the first choice's message text from a chat completion."""
        try:
            content = completion["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise LLMProviderError("Chat completion did not contain a message")
        if not isinstance(content, str):
            raise LLMProviderError("Chat completion message was not text")
        return content

    async def _post(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport],
    ) -> Dict[str, Any]:
        try:
            with timeit(
                f"{self.name} chat request",
                logger=logger,
                unit="calls",
                total=1,
                slow_after=timeout / 2,
            ):
                async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
                    response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"{self.name} API error: {str(e)}")
            raise LLMProviderError(f"{self.name} API request failed: {str(e)}") from e

        if response.is_error:
            message = self._error_message(response)
            logger.error(f"{self.name} API returned {response.status_code}: {message}")
            raise LLMProviderError(message)

        try:
            return response.json()
        except ValueError as e:
            raise LLMProviderError(f"{self.name} API returned a non-JSON body") from e

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                error = error.get("message")
            message = body.get("message") or error
            if isinstance(message, str) and message:
                return message
        return f"{self.name} API request failed"


class GatewayChatProvider(LLMProvider):
    """Chat gateway authenticated with a rotating bearer credential"""

    name = "gateway"

    def __init__(
        self,
        credentials: CredentialStore,
        api_base: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials
        self.api_base = (api_base or llm_config.api_base).rstrip("/")
        self.model = model or llm_config.model
        self.timeout = timeout or llm_config.timeout_seconds
        self.transport = transport

    @property
    def available(self) -> bool:
        return self.credentials.available

    async def chat(
        self,
        messages: List[Message],
        *,
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        """Query the chat gateway"""

        # Captured once; a concurrent refresh does not affect this request.
        credential = self.credentials.current()
        if not credential:
            raise ServiceUnavailable("LLM API service not available")

        payload = {
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "model": self.model,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credential}",
        }
        return await self._post(
            f"{self.api_base}/text/chats", headers, payload, self.timeout, self.transport
        )


class OpenAIChatProvider(LLMProvider):
    """OpenAI Chat Completions provider"""

    name = "openai"
    endpoint = "https://api.openai.com/v1/chat/completions"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else llm_config.openai_api_key
        self.model = model or llm_config.openai_model
        self.timeout = timeout or llm_config.timeout_seconds
        self.transport = transport

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def chat(
        self,
        messages: List[Message],
        *,
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        """Query OpenAI Chat Completions"""

        if not self.api_key:
            raise ServiceUnavailable("OpenAI API key not configured. Set OPENAI_API_KEY.")

        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        return await self._post(self.endpoint, headers, payload, self.timeout, self.transport)


class LLMProviderFactory:
    """Factory to create appropriate LLM provider"""

    @staticmethod
    def create(
        provider_name: Optional[str] = None,
        credentials: Optional[CredentialStore] = None,
    ) -> LLMProvider:
        """
        Create LLM provider instance

        Args:
            provider_name: 'gateway' or 'openai' (config default if None)
            credentials: Credential cell used by the gateway provider

        Returns:
            Configured LLM provider instance
        """
        normalized = (provider_name or llm_config.provider or "").strip().lower()

        if normalized in {"", "gateway"}:
            return GatewayChatProvider(credentials or CredentialStore())
        if normalized in {"openai", "chatgpt"}:
            return OpenAIChatProvider()

        raise ValueError(f"Unknown LLM provider: {provider_name}")
