from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from .errors import GenerationError


DEFAULT_BASE_URL = "https://api.x.ai/v1"


class GrokError(GenerationError):
    """Base error for the Grok client."""


class GrokApiError(GrokError):
    """API returned an error status or an unexpected envelope."""


class ChatMessage(BaseModel):
    role: str = "assistant"
    content: Optional[str] = None


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatCompletion(BaseModel):
    id: Optional[str] = None
    model: Optional[str] = None
    choices: List[ChatChoice]


class GrokClient:
    """
    Minimal x.ai chat completions client.

    Notes
    - OpenAI-compatible `POST /chat/completions` with bearer auth.
    - The response envelope is validated with pydantic; anything that does not
      fit raises GrokApiError.
    - Generation can be slow, so the default timeout is generous.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key or ""
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self._timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "GrokClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def chat(
        self,
        prompt: str,
        *,
        model: str,
        temperature: Optional[float] = None,
        json_object: bool = False,
    ) -> ChatCompletion:
        """Send a single user-role message and return the parsed completion."""
        if not self._api_key:
            raise GrokError("Grok API key is not configured")

        body: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if temperature is not None:
            body["temperature"] = temperature
        if json_object:
            body["response_format"] = {"type": "json_object"}

        data = self._request("chat/completions", body)
        try:
            return ChatCompletion.model_validate(data)
        except ValidationError as ve:
            raise GrokApiError(f"Unexpected chat completion payload: {ve}") from ve

    def first_content(self, completion: ChatCompletion) -> str:
        """Return the first choice's message content or raise GrokApiError."""
        if not completion.choices:
            raise GrokApiError("Chat completion returned no choices")
        content = completion.choices[0].message.content
        if not content:
            raise GrokApiError("Chat completion returned empty content")
        return content

    # --------------- Internal ---------------
    def _request(self, path: str, json_body: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            resp = self._client.post(f"{self._base_url}/{path}", json=json_body, headers=headers)
        except httpx.HTTPError as exc:
            raise GrokError(f"Grok request failed: {exc}") from exc

        if resp.status_code != 200:
            raise GrokApiError(f"HTTP {resp.status_code} from Grok: {resp.text[:200]}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise GrokApiError("Failed to parse JSON from Grok API") from exc
        if not isinstance(payload, dict):
            raise GrokApiError("Malformed response from Grok API")
        return payload


__all__ = [
    "ChatChoice",
    "ChatCompletion",
    "ChatMessage",
    "GrokClient",
    "GrokError",
    "GrokApiError",
]
