"""
Unit tests for launcher selection and command wrapping.
"""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from hyperzenith.system.commands import (
    build_launch_spec,
    gradle_wrapper_command,
    resolve_launcher,
    windows_to_wsl_path,
)
from hyperzenith.validation import ProcessSpawnError


@pytest.mark.unit
class TestLauncherResolution:

    def test_auto_on_windows_is_wsl(self):
        with patch.object(sys, "platform", "win32"):
            assert resolve_launcher("auto") == "wsl"

    def test_auto_elsewhere_is_direct(self):
        with patch.object(sys, "platform", "linux"):
            assert resolve_launcher("auto") == "direct"

    def test_explicit_launcher_kept(self):
        assert resolve_launcher("WSL") == "wsl"
        assert resolve_launcher("direct") == "direct"

    @pytest.mark.parametrize(
        "windows_path,expected",
        [
            ("C:\\Users\\Game\\MyApp", "/mnt/c/Users/Game/MyApp"),
            ("D:/Projects/App", "/mnt/d/Projects/App"),
            ("e:\\work", "/mnt/e/work"),
            ("/already/posix", "/already/posix"),
        ],
    )
    def test_windows_to_wsl_path(self, windows_path, expected):
        assert windows_to_wsl_path(windows_path) == expected


@pytest.mark.unit
class TestGradleWrapperCommand:

    def test_runs_wrapper_through_sh(self, fake_project):
        assert gradle_wrapper_command(fake_project.android_dir, "direct") == ["sh", "./gradlew"]

    def test_missing_wrapper_raises(self, temp_dir):
        (temp_dir / "android").mkdir()
        with pytest.raises(ProcessSpawnError):
            gradle_wrapper_command(temp_dir / "android", "direct")


@pytest.mark.unit
class TestBuildLaunchSpec:

    def test_direct_exports_overrides(self, temp_dir):
        spec = build_launch_spec(["sh", "./gradlew", "assembleDebug"], temp_dir, "direct", {"ANDROID_HOME": "/sdk"})

        assert spec.argv == ["sh", "./gradlew", "assembleDebug"]
        assert spec.cwd == temp_dir
        assert spec.env["ANDROID_HOME"] == "/sdk"

    def test_wsl_keeps_secrets_out_of_argv(self, temp_dir):
        with patch("hyperzenith.system.commands.check_tool_available", return_value=True):
            spec = build_launch_spec(["rsync", "-az"], temp_dir, "wsl", {"SSHPASS": "hunter2"})

        assert spec.argv[:2] == ["wsl", "--cd"]
        assert spec.argv[-2:] == ["rsync", "-az"]
        assert not any("hunter2" in part for part in spec.argv)
        assert spec.env["SSHPASS"] == "hunter2"
        assert "SSHPASS" in spec.env["WSLENV"].split(":")

    def test_wsl_missing_raises(self, temp_dir):
        with patch("hyperzenith.system.commands.check_tool_available", return_value=False):
            with pytest.raises(ProcessSpawnError):
                build_launch_spec(["sh", "./gradlew"], temp_dir, "wsl")

    def test_unknown_launcher_raises(self, temp_dir):
        with pytest.raises(ProcessSpawnError):
            build_launch_spec(["sh", "./gradlew"], Path(temp_dir), "docker")
