from __future__ import annotations

from typing import Any, Dict, Optional, Union

import httpx

from .errors import NotificationError


DEFAULT_API_BASE = "https://api.telegram.org"


class TelegramError(NotificationError):
    """Base error for Telegram client."""


class TelegramApiError(TelegramError):
    """API returned an error payload or unexpected structure."""


class TelegramClient:
    """
    Minimal Telegram Bot API client focused on sendMessage.

    Notes
    - Uses JSON for request bodies (per Telegram Bot API docs; not for file uploads).
    - Single attempt per call: transport errors and non-200 statuses raise immediately.
    - An empty token is accepted at construction so that a missing credential
      surfaces as a failed send rather than a startup error.
    """

    def __init__(
        self,
        token: Optional[str],
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._token = token or ""
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=self._timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "TelegramClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def send_message(
        self,
        chat_id: Union[int, str, None],
        text: str,
        *,
        parse_mode: Optional[str] = None,
        disable_web_page_preview: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Send a text message via Telegram `sendMessage`.

        Returns the Message object (as dict) on success.
        Raises TelegramApiError on API errors and TelegramError on transport failures.
        """
        if not self._token:
            raise TelegramError("Telegram bot token is not configured")
        if chat_id is None or chat_id == "":
            raise TelegramError("Telegram chat id is not configured")

        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode is not None:
            payload["parse_mode"] = parse_mode
        if disable_web_page_preview is not None:
            payload["disable_web_page_preview"] = disable_web_page_preview

        data = self._request("sendMessage", payload)
        # Expect Telegram's envelope: { ok: bool, result?: {...}, description?: str }
        if not isinstance(data, dict) or "ok" not in data:
            raise TelegramApiError("Malformed response from Telegram Bot API")
        if data.get("ok") is True and isinstance(data.get("result"), dict):
            return data["result"]  # type: ignore[return-value]
        desc = data.get("description") or "Telegram API error"
        code = data.get("error_code")
        raise TelegramApiError(f"{desc} (code={code})")

    # --------------- Internal ---------------
    def _request(self, method: str, json_body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._api_base}/bot{self._token}/{method}"
        try:
            resp = self._client.post(url, json=json_body)
        except httpx.HTTPError as exc:
            # The URL embeds the token; keep it out of the message
            raise TelegramError(f"Telegram {method} request failed: {type(exc).__name__}") from exc

        if resp.status_code == 200:
            try:
                return resp.json()
            except ValueError as exc:
                raise TelegramApiError("Failed to parse JSON from Telegram API") from exc

        # Error bodies still follow the envelope; prefer its description
        desc = None
        try:
            body = resp.json()
            if isinstance(body, dict):
                desc = body.get("description")
        except ValueError:
            pass
        if desc:
            raise TelegramApiError(f"{desc} (code={resp.status_code})")
        raise TelegramApiError(f"HTTP {resp.status_code} from Telegram: {resp.text[:200]}")


__all__ = [
    "TelegramClient",
    "TelegramError",
    "TelegramApiError",
]
