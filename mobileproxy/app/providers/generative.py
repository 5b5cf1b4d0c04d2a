"""Generative-text upstream clients.

``StudioProvider`` talks to a Google AI Studio ``generateContent`` endpoint.
``MockGenerativeProvider`` answers locally and is used when
``MOBILEPROXY_MOCK_UPSTREAMS=true``.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from mobileproxy.app.providers.base import BaseUpstream
from mobileproxy.app.exceptions import UpstreamError

FALLBACK_REPLY = "Sorry, I could not generate a response. Please try again."

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
SAFETY_THRESHOLD = "BLOCK_MEDIUM_AND_ABOVE"


def build_generate_payload(
    message: str,
    max_output_tokens: int = 500,
    temperature: float = 0.7,
) -> Dict[str, Any]:
    """Build a ``generateContent`` request body for a single user turn."""
    return {
        "contents": [
            {
                "role": "user",
                "parts": [{"text": message}],
            }
        ],
        "generationConfig": {
            "maxOutputTokens": max_output_tokens,
            "temperature": temperature,
        },
        "safetySettings": [
            {"category": category, "threshold": SAFETY_THRESHOLD}
            for category in SAFETY_CATEGORIES
        ],
    }


def extract_reply(data: Any) -> str:
    """Return the first candidate's first text part, or the fallback reply."""
    if not isinstance(data, dict):
        return FALLBACK_REPLY
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return FALLBACK_REPLY
    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    if not parts or not isinstance(parts[0], dict):
        return FALLBACK_REPLY
    text = parts[0].get("text")
    if not isinstance(text, str) or not text:
        return FALLBACK_REPLY
    return text


class GenerativeProvider(ABC):
    """Interface of a generative-text upstream."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials for the upstream are present."""
        pass

    @abstractmethod
    async def generate(self, message: str) -> str:
        """Generate a reply for ``message``.

        Raises:
            UpstreamError: If the upstream call fails
        """
        pass


class StudioProvider(BaseUpstream, GenerativeProvider):
    """Google AI Studio (Gemini) ``generateContent`` client."""

    name = "generative"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
        max_output_tokens: int = 500,
        temperature: float = 0.7,
    ):
        super().__init__(http_client, timeout)
        self.api_url = api_url
        self.api_key = api_key
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    async def generate(self, message: str) -> str:
        payload = build_generate_payload(
            message,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )
        data = await self._send_json(
            "POST",
            self.api_url,
            params={"key": self.api_key},
            json=payload,
        )
        return extract_reply(data)


class MockGenerativeProvider(GenerativeProvider):
    """Generative provider that never leaves the process.

    Useful for local development of the mobile client and for tests that
    need to count upstream calls.
    """

    def __init__(self, reply: Optional[str] = None, fail: bool = False):
        self.reply = reply
        self.fail = fail
        self.calls: list[str] = []

    @property
    def is_configured(self) -> bool:
        return True

    async def generate(self, message: str) -> str:
        self.calls.append(message)
        if self.fail:
            raise UpstreamError("generative", "mock provider failure")
        return self.reply if self.reply is not None else f"[mock] {message}"
