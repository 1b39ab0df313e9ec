"""
Pytest configuration and shared fixtures for the HyperZenith test suite.

This module provides common fixtures, fake toolchains and configuration
helpers for all test modules in the HyperZenith project.
"""

import os
import shutil
import stat
import sys
import tempfile
from pathlib import Path
from typing import Optional

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def engine_config():
    """Engine configuration that launches the toolchain directly."""
    from hyperzenith.models import EngineConfig

    return EngineConfig(launcher="direct", ssh_connect_timeout=5, rsync_timeout=10, cancel_timeout=2.0)


@pytest.fixture
def sample_config_data():
    """Sample [engine] configuration data for testing."""
    return {
        "paths": {
            "managed_builds_dir": "my_builds",
            "logs_dir": "my_logs",
        },
        "output": {
            "max_line_length": 80,
        },
        "progress": {
            "idle_increment": 0.1,
            "idle_cap": 90.0,
        },
        "local": {
            "launcher": "direct",
            "android_sdk_path": "/opt/android-sdk",
            "artifact_fresh_seconds": 60.0,
            "write_success_logs": True,
        },
        "remote": {
            "ssh_connect_timeout": 10,
            "rsync_timeout": 60,
            "simulator_name": "iPhone 15 Pro",
            "sync_excludes": ["node_modules", ".git"],
            "cancel_timeout": 5.0,
        },
    }


@pytest.fixture
def config_files(temp_dir, sample_config_data):
    """Create a temporary config.toml for testing."""
    import toml

    config_file = temp_dir / "config.toml"
    with open(config_file, "w") as f:
        toml.dump({"engine": sample_config_data}, f)

    return {"config": config_file, "dir": temp_dir}


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically clear configuration cache after each test."""
    original_config_path = Path(__file__).parent.parent / "conf" / "config.toml"

    yield

    from hyperzenith.config import clear_config_cache, set_config_path

    clear_config_cache()
    set_config_path(original_config_path)


# ============================================================================
# Fake Toolchain Fixtures
# ============================================================================


def write_executable(path: Path, content: str) -> Path:
    """Write a shell script and mark it executable."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeProject:
    """An Android project whose Gradle wrapper is a shell script."""

    def __init__(self, root: Path):
        self.root = root
        self.android_dir = root / "android"
        self.android_dir.mkdir(parents=True, exist_ok=True)
        (self.android_dir / "build.gradle").write_text("// fake\n")
        (root / "package.json").write_text('{"name": "fake-app"}\n')
        self.set_gradlew(success=True)

    @property
    def args_file(self) -> Path:
        return self.root / "gradlew_args.txt"

    def set_gradlew(
        self,
        success: bool = True,
        lines: Optional[list] = None,
        sleep: float = 0.0,
        produce_artifact: bool = True,
    ) -> None:
        """Rewrite the fake wrapper: echo ``lines``, optionally sleep, then exit."""
        if lines is None:
            lines = [
                "Starting a Gradle Daemon",
                "> Configuring project :app",
                "> Task :app:compileDebugKotlin",
                "> Task :app:mergeDebugResources",
                "> Task :app:packageDebug",
                "> Task :app:assembleDebug",
                "BUILD SUCCESSFUL in 3s" if success else "BUILD FAILED in 3s",
            ]
        body = [
            "#!/bin/sh",
            f'echo "$@" > "{self.args_file}"',
        ]
        body.extend(f"echo '{line}'" for line in lines)
        if sleep:
            body.append(f"sleep {sleep}")
        if success and produce_artifact:
            body.append("mkdir -p app/build/outputs/apk/debug app/build/outputs/bundle/debug")
            body.append("echo apk > app/build/outputs/apk/debug/app-debug.apk")
            body.append("echo aab > app/build/outputs/bundle/debug/app-debug.aab")
        body.append("exit 0" if success else "echo 'FAILURE: Build failed with an exception.' >&2; exit 1")
        write_executable(self.android_dir / "gradlew", "\n".join(body) + "\n")

    def recorded_args(self) -> str:
        return self.args_file.read_text().strip() if self.args_file.exists() else ""


@pytest.fixture
def fake_project(temp_dir):
    """Android project with a scriptable fake Gradle wrapper."""
    return FakeProject(temp_dir / "MyApp")


@pytest.fixture
def fake_remote_bin(temp_dir, monkeypatch):
    """
    Fake ``rsync`` and ``ssh`` clients on PATH.

    Behaviour is driven by environment variables:
        FAKE_RSYNC_EXIT   exit code of rsync (default 0)
        FAKE_RSYNC_SLEEP  seconds rsync sleeps before exiting
        FAKE_SSH_OUTPUT   file whose content ssh prints for build/reset scripts
        FAKE_SSH_EXIT     exit code of ssh for build/reset scripts (default 0)
        FAKE_XCODE        set to "missing" to fail the pre-flight probe
        FAKE_PREFLIGHT_SLEEP  seconds the pre-flight probe sleeps first
        FAKE_SSH_SLEEP    seconds ssh sleeps after printing
    Every ssh invocation appends its last argument to ``ssh_calls.log``;
    every rsync invocation appends a line to ``rsync_calls.log``.
    """
    bin_dir = temp_dir / "fakebin"
    calls = temp_dir / "ssh_calls.log"
    rsync_calls = temp_dir / "rsync_calls.log"

    write_executable(
        bin_dir / "rsync",
        "#!/bin/sh\n"
        f'echo "$$" >> "{rsync_calls}"\n'
        'echo "sending incremental file list"\n'
        'if [ -n "$FAKE_RSYNC_SLEEP" ]; then sleep "$FAKE_RSYNC_SLEEP"; fi\n'
        'if [ "${FAKE_RSYNC_EXIT:-0}" -ne 0 ]; then\n'
        '  echo "ssh: connect to host 10.255.255.1 port 22: Connection timed out" >&2\n'
        '  echo "rsync: connection unexpectedly closed (0 bytes received so far) [sender]" >&2\n'
        "fi\n"
        'exit "${FAKE_RSYNC_EXIT:-0}"\n',
    )
    write_executable(
        bin_dir / "ssh",
        "#!/bin/sh\n"
        "for last; do :; done\n"
        f'printf "%s\\n---\\n" "$last" >> "{calls}"\n'
        'case "$last" in\n'
        '  *"which xcodebuild"*)\n'
        '    if [ -n "$FAKE_PREFLIGHT_SLEEP" ]; then sleep "$FAKE_PREFLIGHT_SLEEP"; fi\n'
        '    if [ "$FAKE_XCODE" = "missing" ]; then echo "XCODE_NOT_FOUND"; else echo "/usr/bin/xcodebuild"; fi\n'
        "    exit 0 ;;\n"
        '  *killtree*)\n'
        "    exit 0 ;;\n"
        "esac\n"
        'if [ -n "$FAKE_SSH_OUTPUT" ]; then cat "$FAKE_SSH_OUTPUT"; fi\n'
        'if [ -n "$FAKE_SSH_SLEEP" ]; then sleep "$FAKE_SSH_SLEEP"; fi\n'
        'exit "${FAKE_SSH_EXIT:-0}"\n',
    )

    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    for name in (
        "FAKE_RSYNC_EXIT",
        "FAKE_RSYNC_SLEEP",
        "FAKE_SSH_OUTPUT",
        "FAKE_SSH_EXIT",
        "FAKE_XCODE",
        "FAKE_SSH_SLEEP",
        "FAKE_PREFLIGHT_SLEEP",
    ):
        monkeypatch.delenv(name, raising=False)

    def set_ssh_output(text: str) -> Path:
        output = temp_dir / "ssh_output.txt"
        output.write_text(text)
        monkeypatch.setenv("FAKE_SSH_OUTPUT", str(output))
        return output

    def ssh_calls() -> str:
        return calls.read_text() if calls.exists() else ""

    def rsync_call_count() -> int:
        return len(rsync_calls.read_text().split()) if rsync_calls.exists() else 0

    return {
        "bin": bin_dir,
        "set_ssh_output": set_ssh_output,
        "ssh_calls": ssh_calls,
        "rsync_call_count": rsync_call_count,
        "monkeypatch": monkeypatch,
    }


@pytest.fixture
def remote_project(temp_dir):
    """React Native project layout for remote builds."""
    root = temp_dir / "MyIosApp"
    (root / "ios").mkdir(parents=True)
    (root / "package.json").write_text('{"name": "my-ios-app"}\n')
    return root


@pytest.fixture
def remote_target():
    """Key-authenticated remote target."""
    from hyperzenith.models import RemoteCredential, RemoteTarget

    return RemoteTarget(
        host="mac.local:2222",
        user="builder",
        credential=RemoteCredential(key_path="/home/dev/.ssh/id_ed25519"),
        remote_project_path="/Users/builder/MyIosApp",
        scheme="MyIosApp",
    )


@pytest.fixture
def password_target():
    """Password-authenticated remote target."""
    from hyperzenith.models import RemoteCredential, RemoteTarget

    return RemoteTarget(
        host="10.0.0.5",
        user="builder",
        credential=RemoteCredential(password="s3cret-pass"),
        remote_project_path="/Users/builder/MyIosApp",
    )


@pytest.fixture
def fixed_profile():
    """8 cores / 16 GiB host profile."""
    from hyperzenith.system import calculate_profile
    from hyperzenith.models import GIB

    return calculate_profile(8, 16 * GIB)
