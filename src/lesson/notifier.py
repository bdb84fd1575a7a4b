from __future__ import annotations

import logging
from typing import Union

from common.resend import ResendClient
from common.telegram import TelegramClient


logger = logging.getLogger(__name__)


class Notifier:
    """
    Delivers a lesson over email (Resend) and Telegram.

    The two channels are independent calls. Either one failing raises a
    NotificationError subclass (ResendError / TelegramError); nothing is
    retried and a delivered message is never recalled.
    """

    def __init__(self, email: ResendClient, chat: TelegramClient, *, sender: str) -> None:
        self._email = email
        self._chat = chat
        self._sender = sender

    def send_email(self, to: str, subject: str, html: str) -> str:
        message_id = self._email.send_email(sender=self._sender, to=to, subject=subject, html=html)
        logger.info("Email sent (id=%s)", message_id)
        return message_id

    def send_chat_message(self, chat_id: Union[int, str, None], text: str) -> None:
        self._chat.send_message(
            chat_id,
            text,
            parse_mode="Markdown",
            disable_web_page_preview=True,
        )
        logger.info("Chat message sent to %s", chat_id)


__all__ = ["Notifier"]
