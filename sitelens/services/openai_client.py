# sitelens/services/openai_client.py
# -----------------------------------------------------------------------------
# OpenAI chat completions over plain httpx
# - any failure surfaces as UpstreamError so callers can fall back
# -----------------------------------------------------------------------------
from __future__ import annotations

from typing import Optional

import httpx

from sitelens.core.config import settings
from sitelens.core.errors import UpstreamError


class OpenAIClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self.base_url = base_url or settings.OPENAI_BASE_URL
        self.timeout = timeout or httpx.Timeout(
            settings.LLM_READ_TIMEOUT, connect=settings.HTTP_CONNECT_TIMEOUT
        )
        self.transport = transport

    async def complete(
        self,
        system: str,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """
        Single chat completion; returns the assistant message text.

        POST /v1/chat/completions
        """
        if not self.api_key:
            raise UpstreamError("OPENAI_API_KEY is not configured")

        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post("/chat/completions", headers=headers, json=body)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"OpenAI request failed: {e}") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamError("OpenAI response had no choices") from e

        if not content or not str(content).strip():
            raise UpstreamError("No response from OpenAI")
        return str(content)
