"""
Common utilities for the daily lesson bot.

Modules:
- errors: error taxonomy shared by every client
- grok: x.ai chat completions client
- resend: Resend transactional email client
- telegram: Telegram Bot API client (sendMessage)
- messages: subject and chat text formatting
"""

__all__ = [
    "errors",
    "grok",
    "messages",
    "resend",
    "telegram",
]
