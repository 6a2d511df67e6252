# tests/conftest.py — v1
"""Shared test fixtures for all unit tests.

Provides an in-memory GitHub (git objects, contents, releases, Actions
runs) served through httpx.MockTransport, plus transports and settings
bound to it. No network access.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Callable
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio

from playlist_publisher.config.settings import Settings
from playlist_publisher.transport.github_transport import GitHubTransport
from playlist_publisher.transport.retry import RetryConfig

OWNER = "acme"
REPO = "signage"
TOKEN = "good-token"


@dataclass
class FailureRule:
    """Injected failure: first matching request gets ``status``."""

    method: str
    path_part: str
    status: int
    message: str
    times: int | None = 1
    before: Callable[[], None] | None = None


@dataclass
class FakeGitHub:
    """Minimal stateful subset of the GitHub REST API."""

    branch: str = "main"
    blobs: dict[str, bytes] = field(default_factory=dict)
    trees: dict[str, dict[str, str]] = field(default_factory=dict)
    commits: dict[str, dict[str, Any]] = field(default_factory=dict)
    refs: dict[str, str] = field(default_factory=dict)
    releases: dict[str, dict[str, Any]] = field(default_factory=dict)
    assets: dict[int, list[dict[str, Any]]] = field(default_factory=dict)
    run_pages: list[Any] = field(default_factory=list)
    calls: list[tuple[str, str]] = field(default_factory=list)
    rules: list[FailureRule] = field(default_factory=list)
    hooks: list[FailureRule] = field(default_factory=list)
    _counter: int = 0

    def __post_init__(self) -> None:
        self.trees["t0"] = {}
        self.commits["c0" * 20] = {"sha": "c0" * 20, "tree": "t0", "parents": [], "message": "init"}
        self.refs[self.branch] = "c0" * 20

    # --- Test helpers ---

    def mock_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def fail(self, method: str, path_part: str, status: int = 422,
             message: str = "Injected failure", times: int | None = 1) -> None:
        self.rules.append(FailureRule(method, path_part, status, message, times))

    def before(self, method: str, path_part: str, action: Callable[[], None]) -> None:
        """Run ``action`` just before the first matching request is served."""
        self.hooks.append(FailureRule(method, path_part, 0, "", 1, action))

    @property
    def tip(self) -> str:
        return self.refs[self.branch]

    def files(self, ref: str | None = None) -> dict[str, str]:
        commit = self.commits[ref or self.tip]
        return dict(self.trees[commit["tree"]])

    def file_bytes(self, path: str) -> bytes:
        return self.blobs[self.files()[path]]

    def commit_file(self, path: str, payload: bytes, message: str = "external") -> str:
        """Another writer commits directly (advances the branch)."""
        blob = self._store_blob(payload)
        tree = self._store_tree(self.files(), {path: blob})
        return self._advance(tree, message)

    def put_manifest(self, entries: Any, path: str = "videos.json") -> str:
        return self.commit_file(path, (json.dumps(entries, indent=2) + "\n").encode())

    def history(self) -> list[str]:
        shas, sha = [], self.tip
        while sha:
            shas.append(sha)
            parents = self.commits[sha]["parents"]
            sha = parents[0] if parents else None
        return shas

    def add_release(self, tag: str, assets: list[tuple[str, int]] = ()) -> dict[str, Any]:
        release = {"id": len(self.releases) + 1, "tag_name": tag, "name": tag}
        self.releases[tag] = release
        self.assets[release["id"]] = [
            self._asset(name, size) for name, size in assets
        ]
        return release

    # --- Internals ---

    def _next(self, kind: str) -> str:
        self._counter += 1
        return hashlib.sha1(f"{kind}-{self._counter}".encode()).hexdigest()

    def _store_blob(self, payload: bytes) -> str:
        sha = hashlib.sha1(f"blob {len(payload)}\0".encode() + payload).hexdigest()
        self.blobs[sha] = payload
        return sha

    def _store_tree(self, base: dict[str, str], overlay: dict[str, str]) -> str:
        sha = self._next("tree")
        self.trees[sha] = {**base, **overlay}
        return sha

    def _store_commit(self, tree: str, parent: str, message: str) -> str:
        sha = self._next("commit")
        self.commits[sha] = {"sha": sha, "tree": tree, "parents": [parent], "message": message}
        return sha

    def _advance(self, tree: str, message: str) -> str:
        sha = self._store_commit(tree, self.tip, message)
        self.refs[self.branch] = sha
        return sha

    def _asset(self, name: str, size: int) -> dict[str, Any]:
        self._counter += 1
        return {
            "id": 1000 + self._counter,
            "name": name,
            "size": size,
            "content_type": "video/mp4",
        }

    def _match(self, rules: list[FailureRule], method: str, path: str) -> FailureRule | None:
        for rule in rules:
            if rule.method == method and rule.path_part in path and rule.times != 0:
                if rule.times is not None:
                    rule.times -= 1
                return rule
        return None

    # --- Routing ---

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        self.calls.append((method, path))

        if request.headers.get("Authorization") != f"Bearer {TOKEN}":
            return _json(401, {"message": "Bad credentials"})

        hook = self._match(self.hooks, method, path)
        if hook is not None and hook.before is not None:
            hook.before()
        rule = self._match(self.rules, method, path)
        if rule is not None:
            return _json(rule.status, {"message": rule.message})

        prefix = f"/repos/{OWNER}/{REPO}"
        if not path.startswith(prefix):
            return _json(404, {"message": "Not Found"})
        rest = path[len(prefix):]
        body = None
        if request.content and not (method == "POST" and rest.endswith("/assets")):
            body = json.loads(request.content)
        query = {k: v[0] for k, v in parse_qs(request.url.query.decode()).items()}

        if rest == "" and method == "GET":
            return _json(200, {"full_name": f"{OWNER}/{REPO}", "default_branch": self.branch})
        if rest.startswith("/git/"):
            return self._git(method, rest[len("/git/"):], body)
        if rest.startswith("/contents/"):
            return self._contents(method, rest[len("/contents/"):], body, query)
        if rest.startswith("/releases"):
            return self._releases(method, rest[len("/releases"):], body, query, request)
        if rest == "/actions/runs" and method == "GET":
            return self._runs()
        return _json(404, {"message": "Not Found"})

    def _git(self, method: str, rest: str, body: Any) -> httpx.Response:
        if method == "GET" and rest.startswith("ref/heads/"):
            branch = rest[len("ref/heads/"):]
            if branch not in self.refs:
                return _json(404, {"message": "Not Found"})
            return _json(200, {"ref": f"refs/heads/{branch}", "object": {"sha": self.refs[branch]}})
        if method == "GET" and rest.startswith("commits/"):
            commit = self.commits.get(rest[len("commits/"):])
            if commit is None:
                return _json(404, {"message": "Not Found"})
            return _json(200, {"sha": commit["sha"], "tree": {"sha": commit["tree"]}})
        if method == "POST" and rest == "blobs":
            return _json(201, {"sha": self._store_blob(base64.b64decode(body["content"]))})
        if method == "POST" and rest == "trees":
            overlay = {item["path"]: item["sha"] for item in body["tree"]}
            return _json(201, {"sha": self._store_tree(self.trees[body["base_tree"]], overlay)})
        if method == "POST" and rest == "commits":
            return _json(201, {"sha": self._store_commit(body["tree"], body["parents"][0], body["message"])})
        if method == "PATCH" and rest.startswith("refs/heads/"):
            branch = rest[len("refs/heads/"):]
            new = body["sha"]
            if not body.get("force") and self.commits[new]["parents"][0] != self.refs[branch]:
                return _json(422, {"message": "Update is not a fast forward"})
            self.refs[branch] = new
            return _json(200, {"object": {"sha": new}})
        return _json(404, {"message": "Not Found"})

    def _contents(self, method: str, path: str, body: Any, query: dict[str, str]) -> httpx.Response:
        files = self.files()
        if method == "GET":
            if path in files:
                blob = files[path]
                return _json(200, {
                    "type": "file", "name": path.rsplit("/", 1)[-1], "path": path, "sha": blob,
                    "content": base64.encodebytes(self.blobs[blob]).decode(),
                    "encoding": "base64",
                })
            children = [
                {"type": "file", "name": p[len(path) + 1:], "path": p, "sha": s,
                 "size": len(self.blobs[s])}
                for p, s in sorted(files.items())
                if p.startswith(path + "/") and "/" not in p[len(path) + 1:]
            ]
            if not children:
                return _json(404, {"message": "Not Found"})
            return _json(200, children)

        if method == "PUT":
            existing = files.get(path)
            if existing and not body.get("sha"):
                return _json(422, {"message": '"sha" wasn\'t supplied.'})
            if existing and body["sha"] != existing:
                return _json(409, {"message": f"{path} does not match {body['sha']}"})
            blob = self._store_blob(base64.b64decode(body["content"]))
            commit = self._advance(self._store_tree(files, {path: blob}), body["message"])
            return _json(200 if existing else 201, {"content": {"sha": blob, "path": path},
                                                    "commit": {"sha": commit}})

        if method == "DELETE":
            existing = files.get(path)
            if existing is None:
                return _json(404, {"message": "Not Found"})
            if body.get("sha") != existing:
                return _json(409, {"message": f"{path} does not match {body.get('sha')}"})
            remaining = {p: s for p, s in files.items() if p != path}
            tree = self._next("tree")
            self.trees[tree] = remaining
            commit = self._advance(tree, body["message"])
            return _json(200, {"content": None, "commit": {"sha": commit}})
        return _json(404, {"message": "Not Found"})

    def _releases(self, method: str, rest: str, body: Any, query: dict[str, str],
                  request: httpx.Request) -> httpx.Response:
        if method == "GET" and rest.startswith("/tags/"):
            release = self.releases.get(rest[len("/tags/"):])
            return _json(200, release) if release else _json(404, {"message": "Not Found"})
        if method == "POST" and rest == "":
            release = self.add_release(body["tag_name"])
            return _json(201, release)
        if method == "DELETE" and rest.startswith("/assets/"):
            asset_id = int(rest[len("/assets/"):])
            for assets in self.assets.values():
                for asset in assets:
                    if asset["id"] == asset_id:
                        assets.remove(asset)
                        return httpx.Response(204)
            return _json(404, {"message": "Not Found"})
        parts = rest.strip("/").split("/")
        if len(parts) == 2 and parts[1] == "assets":
            release_id = int(parts[0])
            assets = self.assets.setdefault(release_id, [])
            if method == "GET":
                per_page = int(query.get("per_page", 30))
                page = int(query.get("page", 1))
                return _json(200, assets[(page - 1) * per_page: page * per_page])
            if method == "POST":
                name = query["name"]
                if any(a["name"] == name for a in assets):
                    return _json(422, {"message": "Validation Failed: already_exists"})
                asset = self._asset(name, len(request.content))
                asset["content_type"] = request.headers.get("Content-Type")
                assets.append(asset)
                return _json(201, asset)
        return _json(404, {"message": "Not Found"})

    def _runs(self) -> httpx.Response:
        if not self.run_pages:
            return _json(200, {"total_count": 0, "workflow_runs": []})
        page = self.run_pages.pop(0) if len(self.run_pages) > 1 else self.run_pages[0]
        if isinstance(page, int):
            return _json(page, {"message": "Resource not accessible by personal access token"})
        return _json(200, {"total_count": len(page), "workflow_runs": page})


def _json(status: int, data: Any) -> httpx.Response:
    return httpx.Response(status, json=data)


def make_run(head_sha: str, status: str = "queued", conclusion: str | None = None,
             run_id: int = 7, name: str = "Deploy") -> dict[str, Any]:
    return {
        "id": run_id,
        "name": name,
        "head_sha": head_sha,
        "status": status,
        "conclusion": conclusion,
        "html_url": f"https://github.com/{OWNER}/{REPO}/actions/runs/{run_id}",
    }


# === FIXTURES ===


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest_asyncio.fixture
async def transport(fake_github: FakeGitHub):
    client = GitHubTransport(
        TOKEN,
        retry=RetryConfig(max_retries=0),
        http_transport=fake_github.mock_transport(),
    )
    yield client
    await client.aclose()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        github_token=TOKEN,
        github_owner=OWNER,
        github_repo=REPO,
        http_max_retries=0,
        poll_interval_s=0.01,
        poll_timeout_s=1.0,
    )


@pytest.fixture
def no_sleep():
    """Async sleep replacement that records requested delays."""
    delays: list[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep
