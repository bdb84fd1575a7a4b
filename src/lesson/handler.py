from __future__ import annotations

import json
import logging
import os
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from common.errors import error_kind
from common.grok import GrokClient
from common.messages import format_chat_message, format_email_subject
from common.resend import ResendClient
from common.telegram import TelegramClient
from state.github_store import GitHubStateStore
from .config import Settings, load_settings
from .generator import GeneratedLesson, LessonGenerator
from .notifier import Notifier


logger = logging.getLogger(__name__)

ENV_LOG_LEVEL = "LOG_LEVEL"

PACKAGE_LOGGERS = ("common", "state", "lesson")
QUIET_LOGGERS = ("httpx", "httpcore")


class Stage(str, Enum):
    FETCHING = "fetching"
    GENERATING = "generating"
    NOTIFYING_EMAIL = "notifying_email"
    NOTIFYING_CHAT = "notifying_chat"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


def _utc_today() -> date:
    return datetime.now(UTC).date()


class LessonRun:
    """
    One pass of the daily workflow: fetch, generate, email, chat, persist.

    Stages run strictly in order. A failure in any stage propagates
    unchanged, so the state file is only written once generation and both
    notifications have succeeded. `stage` ends as DONE or FAILED, and
    `failed_at` records where a failed run stopped.

    Known hazard: if the chat send or the conditional write fails after the
    email went out, a retry sends the email again.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: GitHubStateStore,
        generator: LessonGenerator,
        notifier: Notifier,
        today: Optional[date] = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._generator = generator
        self._notifier = notifier
        self._today = today
        self.stage: Optional[Stage] = None
        self.failed_at: Optional[Stage] = None

    def _enter(self, stage: Stage) -> None:
        self.stage = stage
        logger.info("Stage: %s", stage.value)

    def execute(self) -> GeneratedLesson:
        try:
            self._enter(Stage.FETCHING)
            state, sha = self._store.read()

            self._enter(Stage.GENERATING)
            lesson = self._generator.generate(state.completed_passages)
            if state.has_passage(lesson.reference):
                logger.warning("Model repeated a completed passage: %s", lesson.reference)

            self._enter(Stage.NOTIFYING_EMAIL)
            self._notifier.send_email(
                state.preferences.email,
                format_email_subject(lesson.reference),
                lesson.lesson_html,
            )

            self._enter(Stage.NOTIFYING_CHAT)
            self._notifier.send_chat_message(
                self._settings.telegram_chat_id,
                format_chat_message(lesson.reference, lesson.lesson_html),
            )

            self._enter(Stage.PERSISTING)
            state.record_lesson(lesson.reference, on=self._today or _utc_today())
            self._store.write(state, message=f"Lesson: {lesson.reference}", if_match=sha)

            self._enter(Stage.DONE)
            return lesson
        finally:
            if self.stage is not Stage.DONE:
                self.failed_at = self.stage
                self.stage = Stage.FAILED


def run_once(settings: Settings, *, today: Optional[date] = None) -> Dict[str, Any]:
    """Open every client for this invocation, run the workflow, close them.

    Returns {"success": True, "reference": ...}. Any failure propagates.
    """
    with GitHubStateStore(
        owner=settings.repo_owner,
        repo=settings.repo_name,
        path=settings.state_path,
        token=settings.github_token,
        branch=settings.state_branch,
    ) as store, GrokClient(settings.grok_api_key) as grok, ResendClient(
        settings.resend_api_key
    ) as mail, TelegramClient(settings.telegram_token) as tg:
        run = LessonRun(
            settings,
            store=store,
            generator=LessonGenerator(grok, model=settings.grok_model),
            notifier=Notifier(mail, tg, sender=settings.email_from),
            today=today,
        )
        try:
            lesson = run.execute()
        finally:
            if run.failed_at is not None:
                logger.error("Lesson run for %s stopped during %s", store.location, run.failed_at.value)

    return {"success": True, "reference": lesson.reference}


def _configure_logging() -> None:
    level = (os.environ.get(ENV_LOG_LEVEL) or "INFO").upper()
    # No-op under Lambda, whose runtime already installs a root handler
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s %(message)s")
    if isinstance(logging.getLevelName(level), int):
        for name in PACKAGE_LOGGERS:
            logging.getLogger(name).setLevel(level)
    # httpx logs full request URLs at INFO; the Telegram URL carries the bot token
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _response(status: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """AWS Lambda entry for the daily lesson (function URL or scheduled rule).

    The event body is ignored. Every failure, whatever its kind, becomes a
    500 response carrying only the error message.
    """
    _configure_logging()
    try:
        result = run_once(load_settings())
    except Exception as exc:
        logger.exception("Daily lesson failed (kind=%s)", error_kind(exc))
        return _response(500, {"error": str(exc)})
    return _response(200, result)
