from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

import httpx

from .errors import NotificationError


DEFAULT_BASE_URL = "https://api.resend.com"


class ResendError(NotificationError):
    """Email could not be handed to Resend."""


class ResendClient:
    """
    Minimal Resend client for transactional email.

    Notes
    - One `POST /emails` per message; no retries.
    - Resend answers 200 with `{"id": ...}` on success and a JSON error object
      (`{"statusCode", "name", "message"}`) otherwise.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
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

    def __enter__(self) -> "ResendClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def send_email(
        self,
        *,
        sender: str,
        to: Union[str, List[str]],
        subject: str,
        html: str,
    ) -> str:
        """Send one email and return the provider message id."""
        if not self._api_key:
            raise ResendError("Resend API key is not configured")

        payload: Dict[str, Any] = {
            "from": sender,
            "to": to if isinstance(to, list) else [to],
            "subject": subject,
            "html": html,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            resp = self._client.post(f"{self._base_url}/emails", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ResendError(f"Resend request failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.status_code in (200, 201) and isinstance(body, dict) and body.get("id"):
            return str(body["id"])

        message = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("name")
        if message:
            raise ResendError(f"{message} (status={resp.status_code})")
        raise ResendError(f"HTTP {resp.status_code} from Resend: {resp.text[:200]}")


__all__ = ["ResendClient", "ResendError"]
