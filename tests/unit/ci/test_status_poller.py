# tests/unit/ci/test_status_poller.py — v1
"""Tests for ci/status_poller.py — run discovery and session supersession."""

from __future__ import annotations

import asyncio

import pytest

from playlist_publisher.ci.status_poller import CIStatusPoller, format_run
from playlist_publisher.core.errors import PollingUnavailable, PollTimeout
from playlist_publisher.core.models import RunPhase
from playlist_publisher.transport.github_transport import GitHubTransport
from playlist_publisher.transport.retry import RetryConfig
from tests.conftest import OWNER, REPO, TOKEN, make_run

SHA = "ab" * 20


class FakeClock:
    """Monotonic clock that only moves when the poller sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.delays: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def poller(transport, clock) -> CIStatusPoller:
    return CIStatusPoller(
        transport, OWNER, REPO, interval_s=3, timeout_s=10,
        clock=clock, sleep=clock.sleep,
    )


def _run_calls(fake_github) -> int:
    return sum(1 for _, path in fake_github.calls if path.endswith("/actions/runs"))


class TestPoll:
    @pytest.mark.asyncio
    async def test_queued_running_success(self, poller, fake_github):
        fake_github.run_pages = [
            [make_run(SHA, "queued")],
            [make_run(SHA, "in_progress")],
            [make_run(SHA, "completed", "success")],
        ]
        seen = []

        status = await poller.poll(SHA, on_status=seen.append)

        assert status.phase is RunPhase.COMPLETED_SUCCESS
        assert status.external_run_handle == 7
        assert status.workflow_name == "Deploy"
        assert status.run_text == "completed / success"
        assert status.run_url.endswith("/actions/runs/7")
        assert [s.phase for s in seen] == [
            RunPhase.SEARCHING, RunPhase.RUNNING, RunPhase.RUNNING, RunPhase.COMPLETED_SUCCESS,
        ]
        assert _run_calls(fake_github) == 3
        assert poller.latest == status

    @pytest.mark.asyncio
    async def test_failed_conclusion(self, poller, fake_github):
        fake_github.run_pages = [[make_run(SHA, "completed", "failure")]]
        status = await poller.poll(SHA)
        assert status.phase is RunPhase.COMPLETED_FAILURE
        assert status.run_text == "completed / failure"
        status.raise_for_phase()

    @pytest.mark.asyncio
    async def test_error_ends_session_unavailable(self, poller, fake_github, clock):
        fake_github.run_pages = [403]
        status = await poller.poll(SHA)
        assert status.phase is RunPhase.UNAVAILABLE
        assert "Resource not accessible" in status.notes
        assert _run_calls(fake_github) == 1
        assert clock.delays == []
        with pytest.raises(PollingUnavailable):
            status.raise_for_phase()

    @pytest.mark.asyncio
    async def test_transient_error_not_retried(self, fake_github, clock):
        fake_github.run_pages = [503, [make_run(SHA, "completed", "success")]]
        async with GitHubTransport(
            TOKEN, retry=RetryConfig(base_delay_s=0.0),
            http_transport=fake_github.mock_transport(),
        ) as transport:
            poller = CIStatusPoller(
                transport, OWNER, REPO, interval_s=3, timeout_s=10,
                clock=clock, sleep=clock.sleep,
            )
            status = await poller.poll(SHA)

        assert status.phase is RunPhase.UNAVAILABLE
        assert _run_calls(fake_github) == 1
        assert clock.delays == []

    @pytest.mark.asyncio
    async def test_times_out_when_no_run_appears(self, poller, fake_github, clock):
        fake_github.run_pages = [[make_run("ff" * 20, "completed", "success")]]
        seen = []

        status = await poller.poll(SHA, on_status=seen.append)

        assert status.phase is RunPhase.TIMED_OUT
        assert _run_calls(fake_github) == 4
        assert clock.delays == [3, 3, 3, 3]
        assert all(s.waiting_for_run for s in seen[:-1])
        with pytest.raises(PollTimeout):
            status.raise_for_phase()

    @pytest.mark.asyncio
    async def test_no_commit_is_idle(self, poller, fake_github):
        status = await poller.poll(None)
        assert status.phase is RunPhase.IDLE
        assert status.notes == "No commit SHA returned by API."
        assert _run_calls(fake_github) == 0

    @pytest.mark.asyncio
    async def test_first_matching_run_wins(self, poller, fake_github):
        fake_github.run_pages = [[
            make_run("00" * 20, "completed", "failure", run_id=1),
            make_run(SHA, "completed", "success", run_id=2),
            make_run(SHA, "completed", "failure", run_id=3),
        ]]
        status = await poller.poll(SHA)
        assert status.external_run_handle == 2

    @pytest.mark.asyncio
    async def test_raising_listener_ignored(self, poller, fake_github):
        fake_github.run_pages = [[make_run(SHA, "completed", "success")]]

        def explode(status):
            raise RuntimeError("listener bug")

        status = await poller.poll(SHA, on_status=explode)
        assert status.phase is RunPhase.COMPLETED_SUCCESS


class TestSupersession:
    @pytest.mark.asyncio
    async def test_newer_session_owns_status(self, transport, fake_github):
        clock = FakeClock()
        gate = asyncio.Event()

        async def gated_sleep(seconds: float) -> None:
            await gate.wait()
            await clock.sleep(seconds)

        poller = CIStatusPoller(
            transport, OWNER, REPO, interval_s=1, timeout_s=5,
            clock=clock, sleep=gated_sleep,
        )
        seen = []
        old = asyncio.create_task(poller.poll("aa" * 20, on_status=seen.append))
        while not any(s.run_text == "No run yet - retrying..." for s in seen):
            await asyncio.sleep(0)

        fake_github.run_pages = [[make_run("bb" * 20, "completed", "success")]]
        new = await poller.poll("bb" * 20, on_status=seen.append)
        published = len(seen)
        gate.set()
        old_final = await old

        assert new.phase is RunPhase.COMPLETED_SUCCESS
        assert old_final.phase is RunPhase.TIMED_OUT
        assert old_final.session_id == 1
        assert len(seen) == published
        assert poller.latest == new
        assert poller.current_session == 2
        assert not poller.is_current(1)


class TestFormatRun:
    def test_without_conclusion(self):
        assert format_run({"status": "queued", "conclusion": None}) == "queued"

    def test_unknown(self):
        assert format_run({}) == "unknown"
