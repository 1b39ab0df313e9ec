"""
Integration tests for the remote (satellite) pipeline.

``rsync`` and ``ssh`` are replaced on PATH by shell scripts (see the
fake_remote_bin fixture), so the sync, pre-flight, build, cancel and
recovery paths run for real against a scripted remote host.
"""

import asyncio
import signal
import sys
from unittest.mock import MagicMock, patch

import pytest

from hyperzenith.models import BuildRequest, BuildStatus, BuildTarget, Platform, RemoteState
from hyperzenith.orchestration import BuildOrchestrationEngine
from hyperzenith.remote import FAILURE_SENTINEL, SUCCESS_SENTINEL
from hyperzenith.remote.satellite import SENTINEL_GRACE_SECONDS, spawn_client
from hyperzenith.validation import (
    AlreadyRunningError,
    ProjectNotFoundError,
    RemoteExecutionError,
    SyncError,
    ValidationError,
)

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(sys.platform == "win32", reason="fake clients are POSIX shell scripts"),
]


@pytest.fixture
def engine(engine_config, fixed_profile):
    profiler = MagicMock()
    profiler.profile.return_value = fixed_profile
    return BuildOrchestrationEngine(engine_config, profiler=profiler)


def ios_request(project, target, build_target=BuildTarget.SIMULATOR):
    return BuildRequest(
        working_dir=project,
        target=build_target,
        platform=Platform.REMOTE,
        remote=target,
    )


async def run_to_end(handle):
    lines = [line async for line in handle]
    return lines, await handle.wait()


async def wait_until(predicate, timeout=5.0):
    for _ in range(int(timeout / 0.05)):
        if predicate():
            return
        await asyncio.sleep(0.05)
    raise AssertionError("condition not reached")


@pytest.mark.asyncio
async def test_successful_remote_build(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["set_ssh_output"](
        ">> Initializing Pods...\n"
        "CompileC AppDelegate.o\n"
        "** BUILD SUCCEEDED **\n"
        f"{SUCCESS_SENTINEL}\n"
    )

    lines, result = await run_to_end(await engine.request_build(ios_request(remote_project, remote_target)))

    assert result.status is BuildStatus.SUCCESS
    assert result.artifact is None
    assert result.progress == 100.0

    texts = [line.text for line in lines]
    assert "** BUILD SUCCEEDED **" in texts
    assert not any(SUCCESS_SENTINEL in text for text in texts)
    assert "sending incremental file list" not in texts
    assert any(line.source == "engine" and "Pre-flight passed" in line.text for line in lines)
    assert all(line.source in ("remote", "engine") for line in lines)

    calls = fake_remote_bin["ssh_calls"]()
    assert "which xcodebuild" in calls
    assert "platform=iOS Simulator,name=iPhone 15" in calls
    assert engine.satellite.state is RemoteState.IDLE
    assert engine.status().active is False


@pytest.mark.asyncio
async def test_device_build_uses_generic_destination(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["set_ssh_output"](f"{SUCCESS_SENTINEL}\n")

    _, result = await run_to_end(
        await engine.request_build(ios_request(remote_project, remote_target, BuildTarget.DEVICE))
    )

    assert result.succeeded
    assert "generic/platform=iOS" in fake_remote_bin["ssh_calls"]()


@pytest.mark.asyncio
async def test_sync_failure_stops_before_execution(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["monkeypatch"].setenv("FAKE_RSYNC_EXIT", "255")

    _, result = await run_to_end(await engine.request_build(ios_request(remote_project, remote_target)))

    assert result.status is BuildStatus.FAILURE
    assert isinstance(result.error, SyncError)
    assert "255" in result.message
    assert "Connection timed out" in result.message
    assert fake_remote_bin["ssh_calls"]() == ""
    assert result.diagnostic_log_path.name.startswith("ios_build_fail_")


@pytest.mark.asyncio
async def test_failure_sentinel_carries_exit_status(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["set_ssh_output"](
        "error: Signing for \"App\" requires a development team.\n"
        "** BUILD FAILED **\n"
        f"{FAILURE_SENTINEL} 65\n"
    )

    _, result = await run_to_end(await engine.request_build(ios_request(remote_project, remote_target)))

    assert result.status is BuildStatus.FAILURE
    assert isinstance(result.error, RemoteExecutionError)
    assert result.error.exit_status == 65
    assert result.progress < 100.0
    content = result.diagnostic_log_path.read_text()
    assert "requires a development team" in content
    assert "Exit Code: 65" in content


@pytest.mark.asyncio
async def test_missing_sentinel_is_a_failure(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["set_ssh_output"]("Connection to mac.local closed by remote host.\n")
    fake_remote_bin["monkeypatch"].setenv("FAKE_SSH_EXIT", "255")

    _, result = await run_to_end(await engine.request_build(ios_request(remote_project, remote_target)))

    assert result.status is BuildStatus.FAILURE
    assert isinstance(result.error, RemoteExecutionError)
    assert result.error.exit_status == 255


@pytest.mark.asyncio
async def test_missing_xcode_fails_preflight(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["monkeypatch"].setenv("FAKE_XCODE", "missing")
    fake_remote_bin["set_ssh_output"](f"{SUCCESS_SENTINEL}\n")

    _, result = await run_to_end(await engine.request_build(ios_request(remote_project, remote_target)))

    assert result.status is BuildStatus.FAILURE
    assert "xcodebuild" in result.message
    assert "xcodebuild -workspace" not in fake_remote_bin["ssh_calls"]()


@pytest.mark.asyncio
async def test_cancel_during_execution_kills_remote_tree(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["set_ssh_output"]("Building...\n")
    fake_remote_bin["monkeypatch"].setenv("FAKE_SSH_SLEEP", "30")
    handle = await engine.request_build(ios_request(remote_project, remote_target))

    await wait_until(lambda: "xcodebuild -workspace" in fake_remote_bin["ssh_calls"]())
    assert engine.status().remote_state is RemoteState.EXECUTING

    assert engine.abort() is True
    assert engine.status().active is False

    _, result = await asyncio.wait_for(run_to_end(handle), timeout=5)
    assert result.status is BuildStatus.CANCELLED
    await wait_until(lambda: "killtree" in fake_remote_bin["ssh_calls"]())


@pytest.mark.asyncio
async def test_result_resolves_from_sentinel_while_session_stays_open(
    engine, fake_remote_bin, remote_project, remote_target
):
    fake_remote_bin["set_ssh_output"](f"Building...\n{SUCCESS_SENTINEL}\n")
    fake_remote_bin["monkeypatch"].setenv("FAKE_SSH_SLEEP", "30")
    loop = asyncio.get_running_loop()
    started = loop.time()

    lines, result = await asyncio.wait_for(
        run_to_end(await engine.request_build(ios_request(remote_project, remote_target))),
        timeout=SENTINEL_GRACE_SECONDS + 8,
    )

    assert result.status is BuildStatus.SUCCESS
    assert loop.time() - started < SENTINEL_GRACE_SECONDS + 5
    assert [line.text for line in lines if line.source == "remote"] == ["Building..."]
    assert engine.status().active is False


@pytest.mark.asyncio
async def test_cancel_before_sync_starts_runs_nothing(engine, fake_remote_bin, remote_project, remote_target):
    handle = await engine.request_build(ios_request(remote_project, remote_target))

    assert engine.abort() is True
    assert engine.status().active is False

    _, result = await asyncio.wait_for(run_to_end(handle), timeout=5)
    assert result.status is BuildStatus.CANCELLED

    await asyncio.sleep(0.5)
    assert fake_remote_bin["rsync_call_count"]() == 0
    assert fake_remote_bin["ssh_calls"]() == ""


@pytest.mark.asyncio
async def test_cancel_during_sync_kills_rsync(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["monkeypatch"].setenv("FAKE_RSYNC_SLEEP", "30")
    handle = await engine.request_build(ios_request(remote_project, remote_target))

    await wait_until(
        lambda: fake_remote_bin["rsync_call_count"]() == 1 and engine.satellite.session.process is not None
    )
    assert engine.status().remote_state is RemoteState.SYNCING
    rsync = engine.satellite.session.process

    assert engine.abort() is True
    assert engine.status().active is False

    _, result = await asyncio.wait_for(run_to_end(handle), timeout=5)
    assert result.status is BuildStatus.CANCELLED
    assert await asyncio.wait_for(rsync.wait(), timeout=5) == -signal.SIGKILL

    await asyncio.sleep(0.3)
    assert fake_remote_bin["ssh_calls"]() == ""


@pytest.mark.asyncio
async def test_client_spawned_after_cancel_is_killed(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["monkeypatch"].setenv("FAKE_PREFLIGHT_SLEEP", "30")
    entered = asyncio.Event()
    release = asyncio.Event()
    preflight = []

    async def slow_preflight_spawn(argv, *args, **kwargs):
        if "which xcodebuild" not in " ".join(argv):
            return await spawn_client(argv, *args, **kwargs)
        entered.set()
        await release.wait()
        process = await spawn_client(argv, *args, **kwargs)
        preflight.append(process)
        return process

    with patch("hyperzenith.remote.satellite.spawn_client", slow_preflight_spawn):
        handle = await engine.request_build(ios_request(remote_project, remote_target))
        await asyncio.wait_for(entered.wait(), timeout=5)

        assert engine.abort() is True
        assert engine.status().active is False
        release.set()

        _, result = await asyncio.wait_for(run_to_end(handle), timeout=5)
        await wait_until(lambda: bool(preflight))
        assert await asyncio.wait_for(preflight[0].wait(), timeout=5) == -signal.SIGKILL

    assert result.status is BuildStatus.CANCELLED
    await asyncio.sleep(0.3)
    assert "xcodebuild -workspace" not in fake_remote_bin["ssh_calls"]()


@pytest.mark.asyncio
async def test_request_validation(engine, remote_project, remote_target, temp_dir):
    with pytest.raises(ValidationError):
        await engine.request_build(ios_request(remote_project, None))

    with pytest.raises(ValidationError):
        await engine.request_build(ios_request(remote_project, remote_target, BuildTarget.APK))

    empty = temp_dir / "empty"
    empty.mkdir()
    with pytest.raises(ProjectNotFoundError):
        await engine.request_build(ios_request(empty, remote_target))

    assert engine.status().active is False


@pytest.mark.asyncio
async def test_nuclear_reset_continues_past_failed_steps(engine, fake_remote_bin, remote_target):
    fake_remote_bin["set_ssh_output"](
        "Step 1: Killing Xcode processes...\n"
        "STEP_OK kill_processes\n"
        "Step 5: Resetting simulators...\n"
        "STEP_FAILED reset_simulators\n"
        "STEP_OK reinstall_pods\n"
        "RESET_COMPLETE\n"
    )
    seen = []

    report = await engine.remote_reset(remote_target, on_line=seen.append)

    assert report.steps_run == ["kill_processes", "reset_simulators", "reinstall_pods"]
    assert report.steps_failed == ["reset_simulators"]
    assert not report.clean
    assert seen[-1] == "RESET_COMPLETE"
    assert "STEP_FAILED reset_simulators" in seen


@pytest.mark.asyncio
async def test_nuclear_reset_interrupted(engine, fake_remote_bin, remote_target):
    fake_remote_bin["set_ssh_output"]("STEP_OK kill_processes\n")
    fake_remote_bin["monkeypatch"].setenv("FAKE_SSH_EXIT", "255")

    with pytest.raises(RemoteExecutionError) as exc_info:
        await engine.remote_reset(remote_target)

    assert exc_info.value.exit_status == 255


@pytest.mark.asyncio
async def test_reset_refused_during_build(engine, fake_remote_bin, remote_project, remote_target):
    fake_remote_bin["monkeypatch"].setenv("FAKE_SSH_SLEEP", "30")
    handle = await engine.request_build(ios_request(remote_project, remote_target))

    with pytest.raises(AlreadyRunningError):
        await engine.remote_reset(remote_target)

    engine.abort()
    await handle.wait()
