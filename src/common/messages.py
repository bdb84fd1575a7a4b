from __future__ import annotations

import re


_TAG_RE = re.compile(r"<[^>]*>")


def strip_tags(html: str) -> str:
    """Remove every `<...>` tag. Entities such as `&amp;` are left as-is."""
    return _TAG_RE.sub("", html)


def format_email_subject(reference: str) -> str:
    return f"Daily Insight: {reference}"


def format_chat_message(reference: str, lesson_html: str) -> str:
    """Return the Markdown chat text: bold title, blank line, plain-text lesson."""
    return f"*{format_email_subject(reference)}*\n\n{strip_tags(lesson_html)}"


__all__ = [
    "format_chat_message",
    "format_email_subject",
    "strip_tags",
]
