"""
Property-based tests for Permission Detector module.

Uses Hypothesis for property-based testing to verify that capability probes
degrade the reported status instead of raising, and that platform
instructions are complete.
"""

import asyncio
import tempfile
import time
from pathlib import Path
from typing import Optional
from unittest.mock import patch

import psutil
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from focus_blocker.config import DEFAULT_HOSTS_FILE, WINDOWS_HOSTS_FILE, EngineConfig, ProbeConfig
from focus_blocker.enums import OverallPermissionStatus
from focus_blocker.exceptions import ValidationError
from focus_blocker.permissions import (
    PermissionDetector,
    overall_status,
    probe_hosts_file,
    probe_process_monitoring,
    probe_process_termination,
)


def passing_probe():
    return True, None


def failing_probe():
    return False, "denied"


def raising_probe():
    raise RuntimeError("probe crashed")


def hanging_probe():
    time.sleep(1.0)
    return True, None


PROBES = {
    "pass": passing_probe,
    "fail": failing_probe,
    "raise": raising_probe,
}


class TestOverallStatusProperty:
    """Overall status summarizes the individual probes."""

    @given(results=st.lists(st.booleans(), min_size=3, max_size=3))
    @settings(max_examples=50)
    def test_overall_status_from_probe_results(self, results: list[bool]) -> None:
        status = overall_status(results)

        if all(results):
            assert status is OverallPermissionStatus.FULLY_FUNCTIONAL
        elif not any(results):
            assert status is OverallPermissionStatus.NON_FUNCTIONAL
        else:
            assert status is OverallPermissionStatus.DEGRADED


class TestPermissionCheckProperty:
    """Probe failures of any kind degrade the status and never propagate."""

    @given(
        hosts=st.sampled_from(sorted(PROBES)),
        monitoring=st.sampled_from(sorted(PROBES)),
        termination=st.sampled_from(sorted(PROBES)),
    )
    @settings(max_examples=30, deadline=None)
    def test_probe_outcomes_are_reported(self, hosts: str, monitoring: str, termination: str) -> None:
        detector = PermissionDetector(
            probe_config=ProbeConfig(hosts_file_path="/tmp/hosts", timeout_seconds=2.0),
            hosts_probe=PROBES[hosts],
            monitoring_probe=PROBES[monitoring],
            termination_probe=PROBES[termination],
        )

        status = asyncio.run(detector.check_permissions())

        assert status.hosts_file_writable == (hosts == "pass")
        assert status.process_monitoring_available == (monitoring == "pass")
        assert status.process_termination_available == (termination == "pass")
        assert (status.hosts_file_error is None) == (hosts == "pass")
        assert status.hosts_file_path == "/tmp/hosts"
        assert status.overall_status is overall_status(
            [hosts == "pass", monitoring == "pass", termination == "pass"]
        )
        assert bool(status.recommendations) == (
            status.overall_status is not OverallPermissionStatus.FULLY_FUNCTIONAL
        )

    @given(
        system=st.sampled_from(["Windows", "Linux", "Darwin"]),
        configured=st.sampled_from([None, "/srv/hosts"]),
    )
    @settings(max_examples=20, deadline=None)
    def test_engine_default_probes_platform_hosts_file(
        self, system: str, configured: Optional[str]
    ) -> None:
        config = EngineConfig()
        config.probes.hosts_file_path = configured
        probed: list[str] = []

        def record_hosts_probe(path: str):
            probed.append(path)
            return True, None

        with patch("platform.system", return_value=system), patch(
            "focus_blocker.permissions.probe_hosts_file", side_effect=record_hosts_probe
        ):
            detector = PermissionDetector(
                probe_config=config.probes,
                monitoring_probe=passing_probe,
                termination_probe=passing_probe,
            )
            status = asyncio.run(detector.check_permissions())

        if configured is not None:
            expected = configured
        elif system == "Windows":
            expected = WINDOWS_HOSTS_FILE
        else:
            expected = DEFAULT_HOSTS_FILE
        assert probed == [expected]
        assert status.hosts_file_path == expected

    def test_raising_probe_error_is_captured(self) -> None:
        detector = PermissionDetector(
            hosts_probe=raising_probe,
            monitoring_probe=passing_probe,
            termination_probe=passing_probe,
        )
        status = asyncio.run(detector.check_permissions())

        assert "probe crashed" in status.hosts_file_error
        assert status.overall_status is OverallPermissionStatus.DEGRADED

    def test_hanging_probe_times_out(self) -> None:
        detector = PermissionDetector(
            probe_config=ProbeConfig(timeout_seconds=0.1),
            hosts_probe=passing_probe,
            monitoring_probe=hanging_probe,
            termination_probe=passing_probe,
        )

        started = time.perf_counter()
        status = asyncio.run(detector.check_permissions())

        assert time.perf_counter() - started < 1.0
        assert not status.process_monitoring_available
        assert "timed out" in status.process_monitoring_error

    def test_non_functional_recommends_fallback(self) -> None:
        detector = PermissionDetector(
            hosts_probe=failing_probe,
            monitoring_probe=failing_probe,
            termination_probe=failing_probe,
        )
        status = asyncio.run(detector.check_permissions())

        assert status.overall_status is OverallPermissionStatus.NON_FUNCTIONAL
        assert any("hosts file" in r for r in status.recommendations)
        assert any("app blocking" in r for r in status.recommendations)
        assert any("fallback" in r for r in status.recommendations)


class TestDefaultProbes:
    """The built-in probes against a real file and the real process table."""

    def test_hosts_probe_on_writable_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            hosts = Path(tmpdir) / "hosts"
            hosts.write_text("127.0.0.1 localhost\n", encoding="utf-8")

            assert probe_hosts_file(str(hosts)) == (True, None)
            # The probe never changes the file
            assert hosts.read_text(encoding="utf-8") == "127.0.0.1 localhost\n"

    def test_hosts_probe_on_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            success, error = probe_hosts_file(str(Path(tmpdir) / "missing"))

        assert not success
        assert "not found" in error

    def test_process_probes_on_this_machine(self) -> None:
        assert probe_process_monitoring() == (True, None)
        assert probe_process_termination() == (True, None)

    def test_process_probes_when_access_denied(self) -> None:
        with patch("psutil.process_iter", side_effect=psutil.AccessDenied()):
            monitoring_ok, monitoring_error = probe_process_monitoring()
            termination_ok, termination_error = probe_process_termination()

        assert not monitoring_ok and "enumeration failed" in monitoring_error
        assert not termination_ok and "Cannot enumerate" in termination_error

    def test_default_detector_uses_configured_hosts_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            hosts = Path(tmpdir) / "hosts"
            hosts.write_text("", encoding="utf-8")
            detector = PermissionDetector(probe_config=ProbeConfig(hosts_file_path=str(hosts)))

            status = asyncio.run(detector.check_permissions())

        assert status.hosts_file_writable
        assert status.hosts_file_path == str(hosts)


class TestPlatformInstructionsProperty:
    """Every supported platform has actionable instructions."""

    @pytest.mark.parametrize("platform,expected", [
        ("macos", "macOS"),
        ("darwin", "macOS"),
        ("MacOS", "macOS"),
        ("windows", "Windows"),
        ("linux", "Linux"),
    ])
    def test_supported_platforms(self, platform: str, expected: str) -> None:
        instructions = PermissionDetector().get_permission_instructions(platform)

        assert instructions.platform == expected
        assert instructions.primary_method.is_recommended
        assert instructions.primary_method.steps
        assert instructions.alternative_methods
        assert all(not m.is_recommended for m in instructions.alternative_methods)
        assert instructions.security_notes

    def test_linux_does_not_require_restart(self) -> None:
        detector = PermissionDetector()
        assert not detector.get_permission_instructions("linux").requires_restart
        assert detector.get_permission_instructions("windows").requires_restart

    @pytest.mark.parametrize("platform", ["freebsd", "android", "win32"])
    def test_unsupported_platform_rejected(self, platform: str) -> None:
        try:
            PermissionDetector().get_permission_instructions(platform)
            assert False, f"Expected ValidationError for {platform}"
        except ValidationError as e:
            assert e.field == "platform"

    def test_detected_platform_used_when_blank(self) -> None:
        with patch("platform.system", return_value="Linux"):
            instructions = PermissionDetector().get_permission_instructions("")
        assert instructions.platform == "Linux"

        with patch("platform.system", return_value="SunOS"):
            with pytest.raises(ValidationError):
                PermissionDetector().get_permission_instructions()
