"""
Unit tests for the artifact archive and diagnostic logs.

Tests output directory resolution, timestamped copies, clearing and the
diagnostic log writer.
"""

import os
import re
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from hyperzenith.archive import ArtifactArchive, DiagnosticLogManager, build_output_path
from hyperzenith.models import BuildRequest, BuildTarget, Platform
from hyperzenith.models.runtime import BuildSession
from hyperzenith.validation import ArchiveIOError


@pytest.fixture
def archive():
    return ArtifactArchive("hyperzenith_builds", fresh_seconds=120.0)


@pytest.fixture
def built_apk(temp_dir):
    apk = temp_dir / "project" / "android/app/build/outputs/apk/debug/app-debug.apk"
    apk.parent.mkdir(parents=True)
    apk.write_bytes(b"PK\x03\x04apk")
    return apk


@pytest.mark.unit
class TestResolveOutputDir:

    def test_existing_custom_root_returned_unmodified(self, archive, temp_dir):
        custom = temp_dir / "custom"
        custom.mkdir()

        assert archive.resolve_output_dir(temp_dir / "project", custom) == custom

    def test_default_created_when_missing(self, archive, temp_dir):
        project = temp_dir / "project"
        project.mkdir()

        resolved = archive.resolve_output_dir(project)

        assert resolved == project / "hyperzenith_builds"
        assert resolved.is_dir()

    def test_missing_custom_root_falls_back_to_default(self, archive, temp_dir):
        project = temp_dir / "project"
        project.mkdir()

        resolved = archive.resolve_output_dir(project, temp_dir / "nope")

        assert resolved == project / "hyperzenith_builds"


@pytest.mark.unit
class TestArchive:

    def test_copies_with_timestamped_name(self, archive, built_apk, temp_dir):
        project = temp_dir / "project"

        artifact = archive.archive(built_apk, project)

        assert artifact.archive_root == project / "hyperzenith_builds"
        assert re.fullmatch(r"app-debug_\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}\.apk", artifact.final_path.name)
        assert artifact.final_path.read_bytes() == built_apk.read_bytes()
        assert built_apk.exists()
        assert artifact.fresh is True

    def test_same_timestamp_does_not_overwrite(self, archive, built_apk, temp_dir):
        project = temp_dir / "project"

        first = archive.archive(built_apk, project, timestamp="2024-01-01_10-00-00")
        second = archive.archive(built_apk, project, timestamp="2024-01-01_10-00-00")

        assert first.final_path != second.final_path
        assert first.final_path.exists() and second.final_path.exists()

    def test_stale_output_is_not_fresh(self, archive, built_apk, temp_dir):
        old = time.time() - 3600
        os.utime(built_apk, (old, old))

        artifact = archive.archive(built_apk, temp_dir / "project")

        assert artifact.fresh is False

    def test_missing_source_raises(self, archive, temp_dir):
        with pytest.raises(ArchiveIOError):
            archive.archive(temp_dir / "missing.apk", temp_dir)

    def test_copy_failure_raises(self, archive, built_apk, temp_dir):
        with patch("hyperzenith.archive.artifacts.shutil.copy2", side_effect=PermissionError("denied")):
            with pytest.raises(ArchiveIOError):
                archive.archive(built_apk, temp_dir / "project")

    def test_build_output_path(self):
        assert build_output_path("/p", BuildTarget.AAB) == Path("/p/android/app/build/outputs/bundle/debug/app-debug.aab")


@pytest.mark.unit
class TestClear:

    def test_nonexistent_directory_returns_zero(self, archive, temp_dir):
        assert archive.clear(temp_dir / "nothing-here") == 0

    def test_empty_directory_returns_zero(self, archive, temp_dir):
        assert archive.clear(temp_dir) == 0

    def test_removes_only_artifacts(self, archive, temp_dir):
        for name in ("a.apk", "b.AAB", "c.ipa", "notes.txt"):
            (temp_dir / name).write_text("x")
        (temp_dir / "MyApp.app").mkdir()
        (temp_dir / "MyApp.app" / "Info.plist").write_text("x")

        removed = archive.clear(temp_dir)

        assert removed == 4
        assert [p.name for p in temp_dir.iterdir()] == ["notes.txt"]

    def test_list_artifacts_newest_first(self, archive, temp_dir):
        older = temp_dir / "old.apk"
        newer = temp_dir / "new.apk"
        older.write_text("x")
        newer.write_text("x")
        os.utime(older, (time.time() - 100, time.time() - 100))

        assert archive.list_artifacts(temp_dir) == [newer, older]


@pytest.mark.unit
class TestDiagnosticLogManager:

    def make_session(self, temp_dir, platform=Platform.LOCAL):
        request = BuildRequest(working_dir=temp_dir, platform=platform)
        session = BuildSession(request=request)
        session.captured.extend(["line one", "x" * 500, "line three"])
        return session

    def test_failure_log_holds_full_output(self, temp_dir):
        session = self.make_session(temp_dir)

        path = DiagnosticLogManager("logs").write_failure_log(temp_dir, session, exit_code=1)

        assert path.parent == temp_dir / "logs"
        assert path.name.startswith("android_build_fail_")
        content = path.read_text()
        assert "Exit Code: 1" in content
        assert "x" * 500 in content
        assert content.endswith("line three\n")

    def test_remote_prefix(self, temp_dir):
        session = self.make_session(temp_dir, Platform.REMOTE)

        path = DiagnosticLogManager("logs").write_failure_log(temp_dir, session, exit_code=65)

        assert path.name.startswith("ios_build_fail_")

    def test_success_log_is_opt_in(self, temp_dir):
        session = self.make_session(temp_dir)

        assert DiagnosticLogManager("logs").write_success_log(temp_dir, session) is None
        path = DiagnosticLogManager("logs", write_success_logs=True).write_success_log(temp_dir, session)
        assert path.name.startswith("android_build_success_")

    def test_unwritable_log_returns_none(self, temp_dir):
        session = self.make_session(temp_dir)
        (temp_dir / "logs").write_text("a file, not a directory")

        assert DiagnosticLogManager("logs").write_failure_log(temp_dir, session, exit_code=1) is None
