from __future__ import annotations

import base64
import hashlib
import json
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
import pytest

from common.errors import ConflictError, DecodeError, NotFoundError, StateStoreError
from state.github_store import GitHubStateStore, fetch_state, write_state
from state.models import Preferences, ProgressState


def _state_doc(**overrides: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "plan": "Whole Bible, random order",
        "completed_passages": ["John 3:16-18"],
        "total_lessons": 1,
        "last_generated": "2025-01-01",
        "preferences": {
            "email": "reader@example.com",
            "verses_per_lesson": "1-5",
            "focus_themes": ["grace"],
        },
    }
    doc.update(overrides)
    return doc


class _FakeGitHub:
    """In-memory contents API for a single repository."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.requests: List[httpx.Request] = []
        self.commits: List[str] = []

    @staticmethod
    def sha_of(data: bytes) -> str:
        return hashlib.sha1(data).hexdigest()

    def seed(self, path: str, data: bytes) -> str:
        self.files[path] = data
        return self.sha_of(data)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        prefix = "/repos/owner/repo/contents/"
        if not request.url.path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})
        path = request.url.path[len(prefix):]

        if request.method == "GET":
            data = self.files.get(path)
            if data is None:
                return httpx.Response(404, json={"message": "Not Found"})
            encoded = base64.b64encode(data).decode("ascii")
            # GitHub wraps the payload every 60 characters
            wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
            return httpx.Response(
                200,
                json={"type": "file", "encoding": "base64", "content": wrapped, "sha": self.sha_of(data)},
            )

        if request.method == "PUT":
            body = json.loads(request.content)
            current = self.files.get(path)
            if current is not None and body.get("sha") != self.sha_of(current):
                return httpx.Response(409, json={"message": f"{path} does not match"})
            data = base64.b64decode(body["content"])
            self.files[path] = data
            self.commits.append(body["message"])
            return httpx.Response(
                201 if current is None else 200,
                json={"content": {"sha": self.sha_of(data)}, "commit": {"message": body["message"]}},
            )

        return httpx.Response(405)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


def _store(gh: _FakeGitHub, **kwargs: Any) -> GitHubStateStore:
    return GitHubStateStore(owner="owner", repo="repo", path="progress.json", client=gh.client(), **kwargs)


def test_read_decodes_and_validates_state():
    gh = _FakeGitHub()
    sha = gh.seed("progress.json", json.dumps(_state_doc()).encode("utf-8"))

    state, token = _store(gh, token="TKN").read()

    assert token == sha
    assert state.completed_passages == ["John 3:16-18"]
    assert state.total_lessons == 1
    assert state.last_generated == date(2025, 1, 1)
    assert state.preferences.email == "reader@example.com"

    req = gh.requests[-1]
    assert req.headers["Authorization"] == "Bearer TKN"
    assert req.headers["Accept"] == "application/vnd.github+json"


def test_read_missing_file_raises_not_found():
    gh = _FakeGitHub()
    with pytest.raises(NotFoundError):
        _store(gh).read()


def test_read_directory_listing_raises_not_found():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"type": "file", "name": "progress.json"}])

    store = GitHubStateStore(
        owner="owner", repo="repo", path="lessons", client=httpx.Client(transport=httpx.MockTransport(handler))
    )
    with pytest.raises(NotFoundError):
        store.read()


def test_read_invalid_json_raises_decode_error():
    gh = _FakeGitHub()
    gh.seed("progress.json", b"{not json")
    with pytest.raises(DecodeError):
        _store(gh).read()


@pytest.mark.parametrize("content", ["abc", "eyJwbGFu*IjoiIn0="])
def test_read_invalid_base64_raises_decode_error(content: str):
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"type": "file", "content": content, "sha": "abc123"})

    store = GitHubStateStore(owner="owner", repo="repo", client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(DecodeError):
        store.read()


def test_read_schema_mismatch_raises_decode_error():
    gh = _FakeGitHub()
    doc = _state_doc()
    del doc["preferences"]
    gh.seed("progress.json", json.dumps(doc).encode("utf-8"))
    with pytest.raises(DecodeError):
        _store(gh).read()


def test_read_unauthorized_raises_state_store_error():
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Bad credentials"})

    store = GitHubStateStore(owner="owner", repo="repo", client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(StateStoreError) as ei:
        store.read()
    assert "Bad credentials" in str(ei.value)
    assert not isinstance(ei.value, (NotFoundError, ConflictError))


def test_write_with_matching_sha_commits_and_returns_new_sha():
    gh = _FakeGitHub()
    gh.seed("progress.json", json.dumps(_state_doc()).encode("utf-8"))
    store = _store(gh)

    state, sha = store.read()
    state.record_lesson("Psalm 23:1-3", on=date(2025, 1, 2))
    new_sha = store.write(state, message="Lesson: Psalm 23:1-3", if_match=sha)

    assert new_sha != sha
    assert gh.commits == ["Lesson: Psalm 23:1-3"]
    written = gh.files["progress.json"].decode("utf-8")
    # Human-readable, indented JSON
    assert '\n  "completed_passages"' in written
    doc = json.loads(written)
    assert doc["completed_passages"] == ["John 3:16-18", "Psalm 23:1-3"]
    assert doc["total_lessons"] == 2
    assert doc["last_generated"] == "2025-01-02"

    again, read_sha = store.read()
    assert read_sha == new_sha
    assert again == state


def test_write_with_stale_sha_raises_conflict():
    gh = _FakeGitHub()
    gh.seed("progress.json", json.dumps(_state_doc()).encode("utf-8"))
    first = _store(gh)
    second = _store(gh)

    state1, sha = first.read()
    state2, _ = second.read()

    state1.record_lesson("Psalm 23:1-3", on=date(2025, 1, 2))
    first.write(state1, message="Lesson: Psalm 23:1-3", if_match=sha)

    state2.record_lesson("Romans 8:28", on=date(2025, 1, 2))
    with pytest.raises(ConflictError):
        second.write(state2, message="Lesson: Romans 8:28", if_match=sha)

    # Winner's content is intact
    doc = json.loads(gh.files["progress.json"])
    assert doc["completed_passages"][-1] == "Psalm 23:1-3"


def test_unknown_fields_survive_roundtrip():
    gh = _FakeGitHub()
    gh.seed("progress.json", json.dumps(_state_doc(notes="keep me")).encode("utf-8"))
    store = _store(gh)

    state, sha = store.read()
    store.write(state, message="touch", if_match=sha)

    assert json.loads(gh.files["progress.json"])["notes"] == "keep me"


def test_transport_error_raises_state_store_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    store = GitHubStateStore(owner="owner", repo="repo", client=httpx.Client(transport=httpx.MockTransport(handler)))
    with pytest.raises(StateStoreError):
        store.read()


def test_branch_is_passed_on_read_and_write():
    gh = _FakeGitHub()
    gh.seed("progress.json", json.dumps(_state_doc()).encode("utf-8"))
    store = _store(gh, branch="state")

    state, sha = store.read()
    store.write(state, message="m", if_match=sha)

    get_req, put_req = gh.requests
    assert get_req.url.params.get("ref") == "state"
    assert json.loads(put_req.content)["branch"] == "state"


def test_top_level_helpers_fetch_and_write():
    gh = _FakeGitHub()
    gh.seed("data/progress.json", json.dumps(_state_doc()).encode("utf-8"))

    state, sha = fetch_state("data/progress.json", owner="owner", repo="repo", client=gh.client())
    state.record_lesson("Micah 6:8", on=date(2025, 2, 1))
    new_sha: Optional[str] = write_state(
        "data/progress.json", state, "Lesson: Micah 6:8", sha, owner="owner", repo="repo", client=gh.client()
    )

    assert new_sha == _FakeGitHub.sha_of(gh.files["data/progress.json"])
    assert gh.commits == ["Lesson: Micah 6:8"]


def test_record_lesson_keeps_total_in_sync():
    state = ProgressState(plan="p", preferences=Preferences(email="a@b.c"))
    for i, ref in enumerate(["Gen 1:1", "Ex 3:14", "Ps 1:1"], start=1):
        state.record_lesson(ref, on=date(2025, 3, i))
        assert state.total_lessons == len(state.completed_passages) == i
    assert state.completed_passages == ["Gen 1:1", "Ex 3:14", "Ps 1:1"]
    assert state.last_generated == date(2025, 3, 3)
