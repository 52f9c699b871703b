"""
OpenRouter Client

Chat completions over HTTP with bearer authentication. The client is inert
when no API key is configured: every call raises UpstreamUnavailableError.
"""

import json
import re
import time
from typing import Any, Dict, List, Optional, Union

import httpx
import structlog

from authorstack.config.settings import AISettings
from authorstack.errors import (
    ModelOutputError,
    RateLimitedError,
    UpstreamUnavailableError,
)

logger = structlog.get_logger(__name__)

JSON_SYSTEM_PROMPT = (
    "You are a helpful assistant. Always respond with valid JSON only, "
    "no additional text or markdown."
)

# First JSON object or array in a response, allowing surrounding prose or fences
_JSON_BLOCK = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")

Messages = List[Dict[str, str]]


def create_messages(system_prompt: str, user_prompt: str) -> Messages:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


def extract_json(text: str) -> Any:
    """
    Parse the JSON payload of a model response.

    Raises:
        ModelOutputError: no parseable JSON in the response
    """
    match = _JSON_BLOCK.search(text)
    candidate = match.group(0) if match else text
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ModelOutputError(
            "Invalid AI response format",
            field_errors={"__root__": f"not valid JSON: {e.msg}"},
        ) from e


class OpenRouterClient:
    """
    Async OpenRouter chat client.

    Example:
        client = OpenRouterClient(settings.ai)
        text = await client.chat("Summarize my sales")
    """

    def __init__(self, settings: AISettings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http = http_client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
        )

    def is_configured(self) -> bool:
        return self.settings.is_configured

    def _require_configured(self) -> str:
        if not self.is_configured():
            raise UpstreamUnavailableError("AI service not configured", code="AI_NOT_CONFIGURED")
        return self.settings.api_key.get_secret_value()

    async def close(self) -> None:
        await self._http.aclose()

    async def chat(
        self,
        prompt: Union[str, Messages],
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Send a chat completion request and return the first choice's text.

        When no model is requested and the default model fails with a provider
        error, the request is retried once on the fallback model.

        Raises:
            UpstreamUnavailableError: not configured, auth failure or provider error
            RateLimitedError: the provider throttled the request
        """
        api_key = self._require_configured()
        messages = [{"role": "user", "content": prompt}] if isinstance(prompt, str) else prompt
        body = {
            "messages": messages,
            "max_tokens": max_tokens or self.settings.max_tokens,
            "temperature": self.settings.temperature if temperature is None else temperature,
        }

        if model:
            return await self._complete(api_key, model, body)

        fallback = self.settings.fallback_model
        try:
            return await self._complete(api_key, self.settings.model, body)
        except UpstreamUnavailableError as e:
            if e.code != "AI_ERROR" or not fallback or fallback == self.settings.model:
                raise
            logger.warning("Retrying on fallback model", model=self.settings.model, fallback=fallback)
        return await self._complete(api_key, fallback, body)

    async def _complete(self, api_key: str, model: str, body: Dict[str, Any]) -> str:
        start = time.perf_counter()
        try:
            response = await self._http.post(
                "/chat/completions",
                json={"model": model, **body},
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "HTTP-Referer": self.settings.app_url,
                    "X-Title": "AuthorStack",
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            duration_ms = (time.perf_counter() - start) * 1000
            status = e.response.status_code
            logger.error("OpenRouter API error", model=model, status=status, duration_ms=round(duration_ms, 2))
            if status == 429:
                raise RateLimitedError("AI rate limit exceeded", code="AI_RATE_LIMITED") from e
            if status == 401:
                raise UpstreamUnavailableError(
                    "AI service authentication failed", code="AI_AUTH_FAILED"
                ) from e
            raise UpstreamUnavailableError("AI service error", code="AI_ERROR") from e
        except httpx.HTTPError as e:
            logger.error("OpenRouter request failed", model=model, error=str(e))
            raise UpstreamUnavailableError("AI service unreachable", code="AI_ERROR") from e

        payload = response.json()
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "External call completed",
            service="openrouter",
            method="chat",
            model=model,
            duration_ms=round(duration_ms, 2),
            tokens=(payload.get("usage") or {}).get("total_tokens"),
        )

        choices = payload.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

    async def chat_json(self, prompt: Union[str, Messages], **options) -> Any:
        """Chat with a JSON-only system prompt and parse the response"""
        system = {"role": "system", "content": JSON_SYSTEM_PROMPT}
        messages = [system, {"role": "user", "content": prompt}] if isinstance(prompt, str) else [system, *prompt]

        options.setdefault("temperature", 0.3)
        text = await self.chat(messages, **options)
        try:
            return extract_json(text)
        except ModelOutputError:
            logger.warning("Failed to parse AI JSON response", response=text[:200])
            raise
