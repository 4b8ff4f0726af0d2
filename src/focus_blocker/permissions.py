"""
Permission/Capability Detector for the focus blocker engine.

Probes whether the host environment lets an enforcer edit the hosts file,
enumerate processes and terminate them, and provides platform-specific
instructions for granting the missing rights.

Every probe runs in a worker thread under a timeout. A probe that hangs,
raises or reports failure degrades the returned PermissionStatus; it never
propagates to the caller.
"""

import asyncio
import os
import platform as platform_module
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

import psutil

from .audit_logger import AuditLogger
from .config import DEFAULT_HOSTS_FILE, WINDOWS_HOSTS_FILE, ProbeConfig
from .enums import LogLevel, OverallPermissionStatus
from .exceptions import ValidationError
from .models import PermissionMethod, PermissionStatus, PlatformInstructions, ProbeResult


# A probe returns (success, error message)
Probe = Callable[[], tuple[bool, Optional[str]]]


def default_hosts_path() -> str:
    if platform_module.system() == "Windows":
        return WINDOWS_HOSTS_FILE
    return DEFAULT_HOSTS_FILE


def detect_platform() -> str:
    """Display name of the running platform: 'macOS', 'Windows', 'Linux' or 'Unknown'."""
    system = platform_module.system()
    if system == "Darwin":
        return "macOS"
    if system in ("Windows", "Linux"):
        return system
    return "Unknown"


def probe_hosts_file(hosts_path: str) -> tuple[bool, Optional[str]]:
    """
    Check that the hosts file exists, is readable and can be opened for writing.

    The write side is an append of zero bytes, which leaves the file untouched.
    """
    path = Path(hosts_path)
    if not path.exists():
        return False, f"Hosts file not found at {hosts_path}"

    try:
        path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        return False, f"Cannot read hosts file: {e}"

    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write("")
            f.flush()
    except PermissionError:
        return False, "Permission denied. Elevated privileges required."
    except FileNotFoundError:
        return False, "File not found after existence check"
    except OSError as e:
        return False, f"Unexpected error: {e}"

    return True, None


def probe_process_monitoring() -> tuple[bool, Optional[str]]:
    """Check that the process table can be enumerated."""
    try:
        count = sum(1 for _ in psutil.process_iter(["pid", "name"]))
    except psutil.Error as e:
        return False, f"Process enumeration failed: {e}"

    if count == 0:
        return False, "Process list is empty (unexpected)"
    return True, None


def probe_process_termination() -> tuple[bool, Optional[str]]:
    """
    Check process termination capability without terminating anything.

    Enumeration plus inspection of our own process stands in for the real
    capability; system processes may still need elevation at runtime.
    """
    can_monitor, monitor_error = probe_process_monitoring()
    if not can_monitor:
        return False, f"Cannot enumerate processes: {monitor_error or 'Unknown error'}"

    try:
        own = psutil.Process(os.getpid())
        own.status()
    except psutil.Error as e:
        return False, f"Cannot inspect processes: {e}"
    return True, None


class PermissionDetector:
    """
    Read-only probe of enforcement capabilities.

    Independent of every other component; probes can be replaced for
    testing or for platforms with a different enforcement mechanism.
    """

    def __init__(
        self,
        probe_config: Optional[ProbeConfig] = None,
        logger: Optional[AuditLogger] = None,
        hosts_probe: Optional[Probe] = None,
        monitoring_probe: Optional[Probe] = None,
        termination_probe: Optional[Probe] = None,
    ) -> None:
        """
        Initialize the detector.

        Args:
            probe_config: Hosts file path and per-probe timeout
            logger: Optional audit logger
            hosts_probe: Replacement for the hosts file probe
            monitoring_probe: Replacement for the process monitoring probe
            termination_probe: Replacement for the process termination probe
        """
        self._config = probe_config or ProbeConfig()
        self._hosts_path = self._config.hosts_file_path or default_hosts_path()
        self._logger = logger
        self._hosts_probe = hosts_probe or (lambda: probe_hosts_file(self._hosts_path))
        self._monitoring_probe = monitoring_probe or probe_process_monitoring
        self._termination_probe = termination_probe or probe_process_termination

    async def check_permissions(self) -> PermissionStatus:
        """
        Run all capability probes concurrently.

        Returns:
            PermissionStatus with per-probe results, overall status and
            recommendations
        """
        executor = ThreadPoolExecutor(max_workers=3, thread_name_prefix="permission-probe")
        try:
            hosts, monitoring, termination = await asyncio.gather(
                self._run_probe("hosts_file", self._hosts_probe, executor),
                self._run_probe("process_monitoring", self._monitoring_probe, executor),
                self._run_probe("process_termination", self._termination_probe, executor),
            )
        finally:
            # A hung probe must not block shutdown
            executor.shutdown(wait=False)

        overall = overall_status(
            [hosts.success, monitoring.success, termination.success]
        )
        platform_name = detect_platform()

        status = PermissionStatus(
            hosts_file_writable=hosts.success,
            hosts_file_error=hosts.error,
            hosts_file_path=self._hosts_path,
            process_monitoring_available=monitoring.success,
            process_monitoring_error=monitoring.error,
            process_termination_available=termination.success,
            process_termination_error=termination.error,
            overall_status=overall,
            recommendations=build_recommendations(
                hosts.success, monitoring.success, overall, platform_name
            ),
            platform=platform_name,
        )

        self._log(
            LogLevel.INFO,
            "Permission check complete",
            {
                "overall_status": overall.value,
                "hosts_file_writable": hosts.success,
                "process_monitoring_available": monitoring.success,
                "process_termination_available": termination.success,
            },
        )
        return status

    async def _run_probe(
        self,
        name: str,
        probe: Probe,
        executor: ThreadPoolExecutor,
    ) -> ProbeResult:
        start_time = time.perf_counter()
        loop = asyncio.get_running_loop()
        timeout = self._config.timeout_seconds

        try:
            success, error = await asyncio.wait_for(
                loop.run_in_executor(executor, probe),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            success, error = False, f"Probe timed out after {timeout}s"
        except Exception as e:
            success, error = False, f"Probe failed: {e}"

        result = ProbeResult(
            success=bool(success),
            error=None if success else (error or "Unknown error"),
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )
        if not result.success:
            self._log(
                LogLevel.WARN,
                "Capability probe failed",
                {"probe": name, "error": result.error},
            )
        return result

    def get_permission_instructions(self, platform: str = "") -> PlatformInstructions:
        """
        Remediation steps for a platform.

        Args:
            platform: 'macos' (or 'darwin'), 'windows', 'linux', or '' to
                detect the running platform

        Raises:
            ValidationError: For any other platform string, or when detection
                finds an unsupported platform
        """
        key = (platform or "").strip().lower()
        if not key:
            key = detect_platform().lower()
            if key not in _INSTRUCTION_BUILDERS:
                raise ValidationError(
                    "platform",
                    f"Unsupported platform: {platform_module.system()}",
                )
        elif key == "darwin":
            key = "macos"

        builder = _INSTRUCTION_BUILDERS.get(key)
        if builder is None:
            raise ValidationError(
                "platform",
                f"Unsupported platform: {platform}",
                {"supported": sorted(_INSTRUCTION_BUILDERS)},
            )

        instructions = builder()
        self._log(
            LogLevel.DEBUG,
            "Providing permission instructions",
            {"platform": instructions.platform},
        )
        return instructions

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "PermissionDetector", message, data)


def overall_status(probe_successes: list[bool]) -> OverallPermissionStatus:
    """All probes pass: fully functional; all fail: non functional; else degraded."""
    if all(probe_successes):
        return OverallPermissionStatus.FULLY_FUNCTIONAL
    if not any(probe_successes):
        return OverallPermissionStatus.NON_FUNCTIONAL
    return OverallPermissionStatus.DEGRADED


def build_recommendations(
    hosts_writable: bool,
    monitoring_available: bool,
    overall: OverallPermissionStatus,
    platform_name: str,
) -> list[str]:
    recommendations: list[str] = []

    if not hosts_writable:
        recommendations.append(
            "Grant file system permissions to enable website blocking through hosts file."
        )
    if not monitoring_available:
        recommendations.append(
            "Grant process monitoring permissions to enable app blocking."
        )
    if overall is OverallPermissionStatus.NON_FUNCTIONAL:
        recommendations.append(
            "Consider using frontend-based blocking as a temporary fallback."
        )
    if overall is not OverallPermissionStatus.FULLY_FUNCTIONAL:
        recommendations.append(
            f"See detailed setup instructions for {platform_name} "
            "to enable full blocking capabilities."
        )

    return recommendations


def _macos_instructions() -> PlatformInstructions:
    primary = PermissionMethod(
        name="Grant Full Disk Access",
        steps=[
            "Open System Settings (or System Preferences on older macOS)",
            "Navigate to Privacy & Security > Full Disk Access",
            "Click the lock icon in the bottom left and authenticate",
            "Click the '+' button to add an application",
            "Select the application or terminal that runs focus-blocker",
            "Ensure its checkbox is enabled",
            "Close System Settings and restart focus-blocker",
        ],
        is_permanent=True,
        is_recommended=True,
        grants=[
            "Read/write access to /etc/hosts for website blocking",
            "Process monitoring and termination capabilities",
        ],
    )
    sudo_method = PermissionMethod(
        name="Run with sudo (Temporary)",
        steps=[
            "Stop focus-blocker if it's currently running",
            "Open the Terminal application",
            "Run: sudo focus-blocker run",
            "Enter your password when prompted",
            "Note: This grants temporary permissions for this session only",
        ],
        is_permanent=False,
        is_recommended=False,
        grants=["Temporary elevated access for this session"],
    )
    return PlatformInstructions(
        platform="macOS",
        primary_method=primary,
        alternative_methods=[sudo_method],
        requires_restart=True,
        security_notes=[
            "Full Disk Access allows modification of system files like /etc/hosts",
            "focus-blocker only modifies the hosts file and does not access other system files",
            "This permission is required by all effective website blockers on macOS",
            "You can revoke this permission at any time from System Settings",
        ],
    )


def _windows_instructions() -> PlatformInstructions:
    primary = PermissionMethod(
        name="Set to Always Run as Administrator",
        steps=[
            "Stop focus-blocker if it's currently running",
            "Right-click the shortcut that starts focus-blocker",
            "Select 'Properties' from the context menu",
            "Navigate to the 'Compatibility' tab",
            "Check the box 'Run this program as an administrator'",
            "Click 'Apply' and then 'OK'",
            "Start focus-blocker - you may see a UAC prompt, click 'Yes'",
        ],
        is_permanent=True,
        is_recommended=True,
        grants=[
            f"Administrator access to modify {WINDOWS_HOSTS_FILE}",
            "Process monitoring and termination capabilities",
        ],
    )
    temp_method = PermissionMethod(
        name="Run as Administrator (One Time)",
        steps=[
            "Right-click the shortcut that starts focus-blocker",
            "Select 'Run as administrator'",
            "Click 'Yes' on the User Account Control (UAC) prompt",
            "Note: This grants temporary permissions for this session only",
        ],
        is_permanent=False,
        is_recommended=False,
        grants=["Temporary administrator access for this session"],
    )
    return PlatformInstructions(
        platform="Windows",
        primary_method=primary,
        alternative_methods=[temp_method],
        requires_restart=True,
        security_notes=[
            "Administrator access is required to modify the Windows hosts file",
            f"The hosts file is located at {WINDOWS_HOSTS_FILE}",
            "focus-blocker only modifies the hosts file for website blocking purposes",
            "Windows will show a UAC prompt each time focus-blocker starts (this is normal)",
        ],
    )


def _linux_instructions() -> PlatformInstructions:
    primary = PermissionMethod(
        name="Create sudoers rule (Recommended)",
        steps=[
            "Open a terminal",
            "Run: sudo visudo",
            "Add this line at the end (replace 'username' with your username):",
            "  username ALL=(ALL) NOPASSWD: /usr/bin/tee /etc/hosts",
            "Save and exit (Ctrl+X, then Y, then Enter in nano)",
            "Restart focus-blocker",
        ],
        is_permanent=True,
        is_recommended=True,
        grants=[
            "Passwordless sudo access for modifying /etc/hosts",
            "Process monitoring and termination capabilities",
        ],
    )
    sudo_method = PermissionMethod(
        name="Run with sudo",
        steps=[
            "Open a terminal",
            "Run: sudo focus-blocker run",
            "Enter your password when prompted",
            "Note: You'll need to do this every time you start focus-blocker",
        ],
        is_permanent=False,
        is_recommended=False,
        grants=["Temporary root access for this session"],
    )
    chmod_method = PermissionMethod(
        name="Make hosts file world-writable (Not Recommended)",
        steps=[
            "Open a terminal",
            "Run: sudo chmod 666 /etc/hosts",
            "Warning: This is a security risk as any program can modify your hosts file",
            "Only use this if you understand the security implications",
        ],
        is_permanent=True,
        is_recommended=False,
        grants=["Write access to /etc/hosts for all users (security risk)"],
    )
    return PlatformInstructions(
        platform="Linux",
        primary_method=primary,
        alternative_methods=[sudo_method, chmod_method],
        requires_restart=False,
        security_notes=[
            "Root access is required to modify /etc/hosts on Linux",
            "The sudoers rule option is the most secure approach",
            "Making /etc/hosts world-writable is NOT recommended for security reasons",
            "focus-blocker only modifies the hosts file for website blocking",
            "Different Linux distributions may have different DNS caching mechanisms",
        ],
    )


_INSTRUCTION_BUILDERS: dict[str, Callable[[], PlatformInstructions]] = {
    "macos": _macos_instructions,
    "windows": _windows_instructions,
    "linux": _linux_instructions,
}
