from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from common.errors import ConflictError, DecodeError, NotFoundError, StateStoreError
from .models import ProgressState


logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.github.com"
DEFAULT_STATE_PATH = "progress.json"


def _dump_state_json(state: ProgressState) -> bytes:
    # Indented so commits to the state file produce readable diffs
    return json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False).encode("utf-8")


def _load_state_json(data: bytes) -> ProgressState:
    raw = json.loads(data.decode("utf-8"))
    return ProgressState.model_validate(raw)


@dataclass
class RepoFileRef:
    owner: str
    repo: str
    path: str

    def url_path(self) -> str:
        return f"/repos/{quote(self.owner)}/{quote(self.repo)}/contents/{quote(self.path.lstrip('/'), safe='/')}"

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}:{self.path}"


class GitHubStateStore:
    """
    GitHub-backed persistence for `ProgressState` via the repository contents API.

    Usage
    - `read()` returns a `(state, sha)` pair. The sha is the revision token.
    - `write(state, message=..., if_match=sha)` commits the file and returns the
      new sha. GitHub rejects the update with 409 when `sha` no longer matches
      the file's current blob, which is raised as `ConflictError`.
    """

    def __init__(
        self,
        *,
        owner: str,
        repo: str,
        path: str = DEFAULT_STATE_PATH,
        token: Optional[str] = None,
        branch: Optional[str] = None,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._file = RepoFileRef(owner=owner, repo=repo, path=path)
        self._branch = branch
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._headers = headers
        self._api_base = api_base.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "GitHubStateStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def location(self) -> str:
        return str(self._file)

    # -------- Core operations --------
    def read(self) -> Tuple[ProgressState, str]:
        """Fetch, decode and validate the state file.

        Returns: (state, sha)
        Raises:
        - NotFoundError if the path does not exist or is not a file.
        - DecodeError if content is not base64, not JSON, or fails validation.
        - StateStoreError for any other API or transport failure.
        """
        params = {"ref": self._branch} if self._branch else None
        resp = self._send("GET", params=params)
        if resp.status_code == 404:
            raise NotFoundError(f"State file not found: {self._file}")
        self._raise_for_status(resp, "read")

        data = self._json(resp)
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise NotFoundError(f"State path is not a file: {self._file}")
        content = data.get("content")
        sha = data.get("sha")
        if not isinstance(content, str) or not isinstance(sha, str):
            raise DecodeError(f"Contents response for {self._file} lacks content or sha")

        try:
            # GitHub wraps base64 at 60 columns; anything else outside the alphabet is an error
            raw = base64.b64decode("".join(content.split()), validate=True)
        except (binascii.Error, ValueError) as ex:
            raise DecodeError(f"State file {self._file} is not valid base64") from ex

        try:
            state = _load_state_json(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as ex:
            raise DecodeError(f"State file {self._file} is not valid JSON: {ex}") from ex
        except ValidationError as ex:
            raise DecodeError(f"State file {self._file} does not match schema: {ex}") from ex

        logger.debug("Read state from %s at sha=%s", self._file, sha)
        return (state, sha)

    def write(self, state: ProgressState, *, message: str, if_match: Optional[str] = None) -> str:
        """Commit `state` to the repository; returns the new sha.

        Args:
        - state: the ProgressState to persist.
        - message: commit message.
        - if_match: sha read earlier. When given, GitHub only accepts the update
          if the file still has this blob sha; otherwise `ConflictError` is raised.
          When None the file is created (and GitHub rejects the call if it exists).
        """
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(_dump_state_json(state)).decode("ascii"),
        }
        if if_match is not None:
            body["sha"] = if_match
        if self._branch:
            body["branch"] = self._branch

        resp = self._send("PUT", json_body=body)
        if resp.status_code == 409:
            raise ConflictError(f"Revision mismatch for {self._file} (expected sha={if_match})")
        if resp.status_code == 404:
            raise NotFoundError(f"Repository or branch not found for {self._file}")
        self._raise_for_status(resp, "write")

        data = self._json(resp)
        content = data.get("content") if isinstance(data, dict) else None
        new_sha = content.get("sha") if isinstance(content, dict) else None
        if not isinstance(new_sha, str):
            raise StateStoreError(f"Write response for {self._file} lacks the new sha")
        logger.debug("Wrote state to %s, sha %s -> %s", self._file, if_match, new_sha)
        return new_sha

    # -------- Internal --------
    def _send(
        self,
        method: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        try:
            return self._client.request(
                method,
                self._api_base + self._file.url_path(),
                params=params,
                json=json_body,
                headers=self._headers,
            )
        except httpx.HTTPError as exc:
            raise StateStoreError(f"GitHub request failed for {self._file}: {exc}") from exc

    def _raise_for_status(self, resp: httpx.Response, action: str) -> None:
        if resp.status_code in (200, 201):
            return
        detail = None
        try:
            body = resp.json()
            if isinstance(body, dict):
                detail = body.get("message")
        except ValueError:
            pass
        raise StateStoreError(
            f"GitHub {action} of {self._file} failed: HTTP {resp.status_code}"
            + (f" ({detail})" if detail else "")
        )

    def _json(self, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise StateStoreError(f"GitHub returned non-JSON body for {self._file}") from exc


# -------- Convenience top-level helpers --------
def fetch_state(
    path: str,
    *,
    owner: str,
    repo: str,
    token: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Tuple[ProgressState, str]:
    with GitHubStateStore(owner=owner, repo=repo, path=path, token=token, client=client) as store:
        return store.read()


def write_state(
    path: str,
    state: ProgressState,
    message: str,
    revision_token: Optional[str],
    *,
    owner: str,
    repo: str,
    token: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> str:
    with GitHubStateStore(owner=owner, repo=repo, path=path, token=token, client=client) as store:
        return store.write(state, message=message, if_match=revision_token)


__all__ = [
    "GitHubStateStore",
    "RepoFileRef",
    "fetch_state",
    "write_state",
]
