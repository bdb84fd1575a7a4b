from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Union

import boto3
from botocore.exceptions import ClientError

from common.errors import ConfigurationError


# Environment variable names
ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
ENV_GROK_API_KEY = "GROK_API_KEY"
ENV_RESEND_API_KEY = "RESEND_API_KEY"
ENV_TELEGRAM_TOKEN = "TELEGRAM_TOKEN"
ENV_TELEGRAM_CHAT_ID = "TELEGRAM_CHAT_ID"
ENV_REPO_OWNER = "LESSON_REPO_OWNER"
ENV_REPO_NAME = "LESSON_REPO_NAME"
ENV_STATE_PATH = "LESSON_STATE_PATH"  # optional; defaults to "progress.json"
ENV_STATE_BRANCH = "LESSON_STATE_BRANCH"  # optional; repository default branch when unset
ENV_EMAIL_FROM = "LESSON_EMAIL_FROM"
ENV_GROK_MODEL = "GROK_MODEL"
ENV_PARAM_PREFIX = "PARAM_PREFIX"  # optional SSM prefix for secrets

DEFAULT_STATE_PATH = "progress.json"
DEFAULT_EMAIL_FROM = "Bible Lessons <no-reply@yourdomain.com>"
DEFAULT_MODEL = "grok-3"

# SSM parameter name (under PARAM_PREFIX) -> environment variable it backs
SSM_SECRETS: Dict[str, str] = {
    "github_token": ENV_GITHUB_TOKEN,
    "grok_api_key": ENV_GROK_API_KEY,
    "resend_api_key": ENV_RESEND_API_KEY,
    "telegram_bot_token": ENV_TELEGRAM_TOKEN,
    "telegram_chat_id": ENV_TELEGRAM_CHAT_ID,
}


@dataclass(frozen=True)
class Settings:
    """Everything one run needs, resolved up front and passed in explicitly.

    Credentials may be None: a missing credential is reported by the client
    that needs it, when it is called.
    """

    repo_owner: str
    repo_name: str
    state_path: str = DEFAULT_STATE_PATH
    state_branch: Optional[str] = None
    github_token: Optional[str] = None
    grok_api_key: Optional[str] = None
    grok_model: str = DEFAULT_MODEL
    resend_api_key: Optional[str] = None
    email_from: str = DEFAULT_EMAIL_FROM
    telegram_token: Optional[str] = None
    telegram_chat_id: Union[int, str, None] = None


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise ConfigurationError(f"Missing required configuration: {what}")
    return v


def _load_ssm_params(prefix: str, names: Iterable[str]) -> Dict[str, Optional[str]]:
    ssm = boto3.client("ssm")
    out: Dict[str, Optional[str]] = {k: None for k in names}
    for name in names:
        full = f"{prefix}{name}"
        try:
            resp = ssm.get_parameter(Name=full, WithDecryption=True)
        except ClientError as e:
            # Leave as None if parameter missing or access denied
            code = e.response.get("Error", {}).get("Code")
            if code in ("ParameterNotFound", "AccessDeniedException"):
                continue
            raise
        val = resp.get("Parameter", {}).get("Value")
        out[name] = val if isinstance(val, str) and val != "" else None
    return out


def _coerce_chat_id(raw: Optional[str]) -> Union[int, str, None]:
    # Numeric ids (including negative group ids) go out as ints; @channel handles stay strings
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return raw


def load_settings() -> Settings:
    """Resolve Settings from the environment, with SSM as fallback for secrets.

    When `PARAM_PREFIX` is set, each secret missing from the environment is
    looked up as `{PARAM_PREFIX}{name}` in SSM Parameter Store.
    """
    owner = _require(_getenv(ENV_REPO_OWNER), ENV_REPO_OWNER)
    repo = _require(_getenv(ENV_REPO_NAME), ENV_REPO_NAME)

    secrets: Dict[str, Optional[str]] = {env: _getenv(env) for env in SSM_SECRETS.values()}
    prefix = _getenv(ENV_PARAM_PREFIX)
    if prefix:
        missing = [name for name, env in SSM_SECRETS.items() if secrets[env] is None]
        if missing:
            params = _load_ssm_params(prefix, missing)
            for name in missing:
                secrets[SSM_SECRETS[name]] = params.get(name)

    return Settings(
        repo_owner=owner,
        repo_name=repo,
        state_path=_getenv(ENV_STATE_PATH, DEFAULT_STATE_PATH) or DEFAULT_STATE_PATH,
        state_branch=_getenv(ENV_STATE_BRANCH),
        github_token=secrets[ENV_GITHUB_TOKEN],
        grok_api_key=secrets[ENV_GROK_API_KEY],
        grok_model=_getenv(ENV_GROK_MODEL, DEFAULT_MODEL) or DEFAULT_MODEL,
        resend_api_key=secrets[ENV_RESEND_API_KEY],
        email_from=_getenv(ENV_EMAIL_FROM, DEFAULT_EMAIL_FROM) or DEFAULT_EMAIL_FROM,
        telegram_token=secrets[ENV_TELEGRAM_TOKEN],
        telegram_chat_id=_coerce_chat_id(secrets[ENV_TELEGRAM_CHAT_ID]),
    )


__all__ = ["Settings", "load_settings"]
