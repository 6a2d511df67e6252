# src/ci/status_poller.py — v1
"""Watch GitHub Actions for the run triggered by one commit.

States::

    idle -> searching -> running -> completed-success
                      \\          \\-> completed-failure
                       \\-> unavailable | timed-out

Each call to :meth:`CIStatusPoller.poll` is one session with a fresh,
monotonically increasing id. Only the newest session may publish to the
visible status; older sessions run out their own budget and their
updates are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from playlist_publisher.core.errors import PublisherError
from playlist_publisher.core.models import RunPhase, RunStatus
from playlist_publisher.core.progress import safe_progress
from playlist_publisher.logging.context import set_poll_context
from playlist_publisher.transport.github_transport import GitHubTransport

logger = logging.getLogger(__name__)

StatusListener = Callable[[RunStatus], None]


class CIStatusPoller:
    """Polls the run list of one repository."""

    def __init__(
        self,
        transport: GitHubTransport,
        owner: str,
        repo: str,
        interval_s: float = 3.0,
        timeout_s: float = 180.0,
        runs_per_page: int = 20,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._runs_url = f"/repos/{owner}/{repo}/actions/runs"
        self._interval_s = interval_s
        self._timeout_s = timeout_s
        self._runs_per_page = runs_per_page
        self._clock = clock
        self._sleep = sleep
        self._session_id = 0
        self._latest: RunStatus | None = None

    @property
    def current_session(self) -> int:
        return self._session_id

    @property
    def latest(self) -> RunStatus | None:
        """Last status published by the newest session."""
        return self._latest

    def is_current(self, session_id: int) -> bool:
        return session_id == self._session_id

    async def find_run(self, commit_id: str) -> dict[str, Any] | None:
        """First run (in API order) whose head commit is ``commit_id``.

        One request per call: a failed query is reported, not retried.
        """
        data = await self._transport.request(
            "GET", self._runs_url, params={"per_page": self._runs_per_page},
        )
        runs = (data or {}).get("workflow_runs") or []
        for run in runs:
            if run.get("head_sha") == commit_id:
                return run
        return None

    async def poll(
        self,
        commit_id: str | None,
        on_status: StatusListener | None = None,
    ) -> RunStatus:
        """Run one session to its terminal state and return that state.

        Query errors end the session as ``unavailable`` and are never
        retried here; exceeding the budget ends it as ``timed-out``.
        """
        self._session_id += 1
        session_id = self._session_id
        set_poll_context(session_id)
        listener = safe_progress(on_status)

        def publish(phase: RunPhase, run: dict[str, Any] | None = None, **fields: Any) -> RunStatus:
            status = _build_status(commit_id, session_id, phase, run, **fields)
            if self.is_current(session_id):
                self._latest = status
                listener(status)
            else:
                logger.debug("Dropping %s from superseded session", phase.value)
            return status

        if not commit_id:
            return publish(RunPhase.IDLE, notes="No commit SHA returned by API.")

        start = self._clock()
        publish(
            RunPhase.SEARCHING,
            run_text="Waiting for run to appear...",
            notes="If Actions is disabled or the token lacks Actions: read, "
                  "polling will fail gracefully.",
        )

        while self._clock() - start < self._timeout_s:
            try:
                run = await self.find_run(commit_id)
            except PublisherError as exc:
                logger.warning("Actions polling unavailable: %s", exc)
                return publish(
                    RunPhase.UNAVAILABLE,
                    notes=f"Actions polling unavailable: {exc}",
                )

            if run is None:
                publish(
                    RunPhase.SEARCHING,
                    run_text="No run yet - retrying...",
                    notes="GitHub may take a few seconds to register the workflow run.",
                )
                await self._sleep(self._interval_s)
                continue

            if run.get("status") != "completed":
                publish(RunPhase.RUNNING, run, notes="Workflow still in progress...")
                await self._sleep(self._interval_s)
                continue

            if run.get("conclusion") == "success":
                logger.info("Run %s succeeded", run.get("id"))
                return publish(RunPhase.COMPLETED_SUCCESS, run, notes="Deployment/build succeeded.")

            logger.warning("Run %s finished: %s", run.get("id"), run.get("conclusion"))
            return publish(
                RunPhase.COMPLETED_FAILURE, run,
                notes="Workflow finished but not successful - open the run for logs.",
            )

        logger.warning("Timed out waiting for a workflow run for %s", commit_id[:7])
        return publish(
            RunPhase.TIMED_OUT,
            notes="Timed out waiting for a workflow run. You can check Actions manually.",
        )


def format_run(run: dict[str, Any]) -> str:
    """``status`` or ``status / conclusion``."""
    status = run.get("status") or "unknown"
    conclusion = run.get("conclusion")
    return f"{status} / {conclusion}" if conclusion else status


def _build_status(
    commit_id: str | None,
    session_id: int,
    phase: RunPhase,
    run: dict[str, Any] | None,
    **fields: Any,
) -> RunStatus:
    if run is not None:
        fields.setdefault("external_run_handle", run.get("id"))
        fields.setdefault("workflow_name", str(run.get("name") or run.get("workflow_id") or "Workflow"))
        fields.setdefault("run_url", run.get("html_url"))
        fields.setdefault("run_text", format_run(run))
    return RunStatus(commit_id=commit_id, phase=phase, session_id=session_id, **fields)
