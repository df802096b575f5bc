"""
Installation Orchestrator

Installs registry tools through the host's package managers:
- package manager selection (forced, preference order, any available)
- permission and disk space preconditions
- caller-supplied confirmation
- install with timeout, verification by re-detection, best-effort rollback
- append-only installation log
"""

import logging
import re
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from .cache import StatusCache, ToolStatus, STATUS_INSTALLED
from .common.utils import backup_stamp, format_size, parse_size, timestamp
from .detection import DetectionEngine
from .errors import (
    DependencyError, InstallFailed, InstallTimeout, NoSuitableManager,
    PermissionDenied, ToolNotInRegistry,
)
from .platform_utils import PlatformUtils
from .registry import ToolDescriptor, ToolRegistry

logger = logging.getLogger(__name__)

RESULT_SUCCESS = 'success'
RESULT_FAILED = 'failed'
RESULT_CANCELLED = 'cancelled'

INSTALL_RESULTS = (RESULT_SUCCESS, RESULT_FAILED, RESULT_CANCELLED)

DEFAULT_PREFERENCE = ('apt', 'snap', 'flatpak')

# confirm(descriptor, manager, package) -> bool
ConfirmCallback = Callable[[ToolDescriptor, str, str], bool]

# Escapes written by to_line: '\\' for a backslash, '\n' for a newline
ESCAPE_PATTERN = re.compile(r'\\(.)')


def _unescape(match) -> str:
    return '\n' if match.group(1) == 'n' else match.group(1)


@dataclass(frozen=True)
class InstallationRecord:
    """Outcome of one installation attempt"""
    timestamp: str
    tool: str
    package_manager: str
    package_name: str
    status: str
    duration: float
    details: str = ''

    def __post_init__(self):
        if self.status not in INSTALL_RESULTS:
            raise ValueError(f"Unknown installation result: {self.status}")

    @property
    def succeeded(self) -> bool:
        return self.status == RESULT_SUCCESS

    def to_line(self) -> str:
        """timestamp|tool|package_manager|package_name|status|duration_seconds|details"""
        details = self.details.replace('\\', '\\\\').replace('\r', '').replace('\n', '\\n')
        return '|'.join([
            self.timestamp, self.tool, self.package_manager, self.package_name,
            self.status, f"{self.duration:.1f}", details,
        ])

    @classmethod
    def from_line(cls, line: str) -> 'InstallationRecord':
        fields = line.rstrip('\n').split('|', 6)
        if len(fields) != 7:
            raise ValueError(f"Malformed installation log line: {line!r}")
        stamp, tool, manager, package, status, duration, details = fields
        details = ESCAPE_PATTERN.sub(_unescape, details)
        return cls(stamp, tool, manager, package, status, float(duration), details)


class InstallationLog:
    """Append-only installation history file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, record: InstallationRecord) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(record.to_line() + '\n')

    def records(self) -> List[InstallationRecord]:
        if not self.path.exists():
            return []
        records = []
        with open(self.path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                if not line.strip() or line.startswith('#'):
                    continue
                try:
                    records.append(InstallationRecord.from_line(line))
                except ValueError as e:
                    logger.debug(f"Skipping installation log line: {e}")
        return records

    def history(self, limit: int = 20) -> List[InstallationRecord]:
        """Most recent records first"""
        return list(reversed(self.records()))[:limit]


def installation_summary(records: Iterable[InstallationRecord]) -> Dict[str, object]:
    records = list(records)
    summary = {result: [] for result in INSTALL_RESULTS}
    for record in records:
        summary[record.status].append(record.tool)
    return {
        'total': len(records),
        'succeeded': summary[RESULT_SUCCESS],
        'failed': summary[RESULT_FAILED],
        'cancelled': summary[RESULT_CANCELLED],
        'duration': round(sum(record.duration for record in records), 1),
    }


class InstallationOrchestrator:
    """Selects a package manager and installs tools with it"""

    def __init__(self, registry: ToolRegistry, cache: StatusCache,
                 detection: DetectionEngine, log: InstallationLog,
                 platform=PlatformUtils,
                 preference: Iterable[str] = DEFAULT_PREFERENCE,
                 forced_manager: Optional[str] = None,
                 timeout: int = 300,
                 backup_dir: Optional[Union[str, Path]] = None,
                 backup_before_install: bool = False,
                 min_disk_space: Optional[str] = None,
                 auto_confirm: bool = False):
        self.registry = registry
        self.cache = cache
        self.detection = detection
        self.log = log
        self.platform = platform
        self.preference = list(preference)
        self.forced_manager = forced_manager or None
        self.timeout = timeout
        self.backup_dir = Path(backup_dir) if backup_dir else None
        self.backup_before_install = backup_before_install and self.backup_dir is not None
        self.min_disk_space = min_disk_space
        self.auto_confirm = auto_confirm
        self.session_records: List[InstallationRecord] = []

    # Manager selection

    def available_managers(self) -> List[str]:
        return self.platform.detect_available_package_managers()

    def select_manager(self, tool: str) -> str:
        """
        Choose the package manager for tool

        Order: the forced manager, then the preference list, then any
        available manager; each must be present and declare a package.

        Raises:
            NoSuitableManager: no candidate satisfies both conditions
        """
        descriptor = self.registry.get(tool)
        available = self.available_managers()

        if not available:
            raise NoSuitableManager(tool, "no supported package manager found on this system")

        def usable(manager: str) -> bool:
            return manager in available and bool(descriptor.package_for(manager))

        if self.forced_manager:
            if usable(self.forced_manager):
                return self.forced_manager
            logger.debug(f"Forced package manager {self.forced_manager} cannot provide {tool}")

        for manager in self.preference:
            if usable(manager):
                return manager

        for manager in PlatformUtils.PACKAGE_MANAGERS:
            if usable(manager):
                return manager

        declared = ', '.join(sorted(descriptor.packages)) or 'none'
        raise NoSuitableManager(
            tool, f"no available package manager declares it "
                  f"(declared: {declared}; available: {', '.join(available)})"
        )

    def check_permissions(self, manager: str) -> None:
        """
        Raises:
            PermissionDenied: system-level manager without root or sudo
        """
        if not self.platform.requires_privileges(manager):
            return
        if self.platform.is_root() or self.platform.has_sudo():
            return
        raise PermissionDenied(manager)

    def can_install(self, tool: str, force: bool = False) -> Tuple[bool, str]:
        """
        Returns:
            (installable, reason)
        """
        if not self.registry.exists(tool):
            return False, str(ToolNotInRegistry(tool))

        status = self.cache.get(tool)
        if status is not None and status.is_installed and not force:
            return False, f"{tool} is already installed"

        try:
            manager = self.select_manager(tool)
            self.check_permissions(manager)
        except DependencyError as e:
            return False, str(e)

        return True, f"can be installed with {manager}"

    # Installation

    def install(self, tool: str, force: bool = False, skip_confirm: bool = False,
                confirm: Optional[ConfirmCallback] = None) -> InstallationRecord:
        """
        Install a tool

        Args:
            tool: Registry tool name
            force: Install even if already installed
            skip_confirm: Do not require confirmation
            confirm: Callable deciding whether to proceed; without it (and
                     without skip_confirm) the attempt is cancelled

        Returns:
            InstallationRecord of the attempt

        Raises:
            ToolNotInRegistry, NoSuitableManager, PermissionDenied
        """
        descriptor = self.registry.get(tool)
        started = time.time()

        if not force:
            current = self.cache.get(tool) or self.detection.detect_tool(tool)
            if current.is_installed:
                logger.info(f"✅ {tool} is already installed ({current.version or 'unknown version'})")
                return InstallationRecord(timestamp(), tool, current.install_method or '', '',
                                          RESULT_SUCCESS, 0.0, 'already installed')

        try:
            manager = self.select_manager(tool)
            self.check_permissions(manager)
        except NoSuitableManager as e:
            self._finish(tool, '', '', RESULT_FAILED, started, str(e))
            logger.error(f"❌ {e}")
            raise
        except PermissionDenied as e:
            self._finish(tool, e.manager, descriptor.package_for(e.manager) or '',
                         RESULT_FAILED, started, str(e))
            logger.error(f"❌ {e}")
            raise

        package = descriptor.package_for(manager)

        skip_confirm = skip_confirm or self.auto_confirm
        if not skip_confirm and not (confirm is not None and confirm(descriptor, manager, package)):
            logger.info(f"Installation of {tool} cancelled")
            return self._finish(tool, manager, package, RESULT_CANCELLED, started, 'declined by user')

        try:
            self._check_disk_space(tool)
        except InstallFailed as e:
            logger.error(f"❌ {e}")
            return self._finish(tool, manager, package, RESULT_FAILED, started, str(e))

        if self.backup_before_install:
            self.create_backup(tool, manager)

        logger.info(f"📦 Installing {tool} ({package}) with {manager}...")
        try:
            output = self._run_install(tool, manager, package)
        except (InstallFailed, InstallTimeout) as e:
            output = getattr(e, 'output', '') or str(e)
            logger.error(f"❌ {e}")
            record = self._finish(tool, manager, package, RESULT_FAILED, started, output)
            self.rollback(tool, manager, package)
            return record

        self.cache.put(ToolStatus(tool, STATUS_INSTALLED, install_method=manager,
                                  last_checked=self.cache.clock()))
        record = self._finish(tool, manager, package, RESULT_SUCCESS, started,
                              _last_line(output) or 'installed')
        logger.info(f"✅ Installed {tool} with {manager}")

        self.verify_installation(tool)
        return record

    def _check_disk_space(self, tool: str) -> None:
        if not self.min_disk_space:
            return
        required = parse_size(self.min_disk_space)
        free = self.platform.get_free_disk_space('/')
        if free < required:
            raise InstallFailed(
                tool, f"insufficient disk space: {format_size(free)} free, "
                      f"{format_size(required)} required"
            )

    def _run_install(self, tool: str, manager: str, package: str) -> str:
        command = self.platform.build_command(manager, 'install', package)
        logger.debug(f"📋 Running: {' '.join(command)} (timeout: {self.timeout}s)")
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired:
            raise InstallTimeout(tool, self.timeout)
        except OSError as e:
            raise InstallFailed(tool, str(e))

        output = result.stdout or ''
        if result.returncode != 0:
            raise InstallFailed(tool, output or f"exit code {result.returncode}")
        return output

    def _finish(self, tool: str, manager: str, package: str, status: str,
                started: float, details: str) -> InstallationRecord:
        record = InstallationRecord(timestamp(), tool, manager, package, status,
                                    round(time.time() - started, 1), details)
        try:
            self.log.append(record)
        except OSError as e:
            logger.warning(f"⚠️  Could not write installation log: {e}")
        self.session_records.append(record)
        return record

    def verify_installation(self, tool: str) -> bool:
        """Re-detect tool; detection, not the installer's exit code, is authoritative"""
        status = self.detection.detect_tool(tool, force=True, save=True)
        if not status.is_present:
            logger.warning(f"⚠️  {tool} reported installed but was not detected afterwards")
            return False
        self.test_functionality(tool)
        return True

    def test_functionality(self, tool: str) -> bool:
        """Run the installed executable with --version (or --help)"""
        for executable in self.registry.get(tool).executables:
            path = self.platform.which(executable)
            if not path:
                continue
            for flag in ('--version', '--help'):
                success, _, _ = self.platform.run_command([path, flag], timeout=10)
                if success:
                    logger.debug(f"✅ Functionality test passed for {tool} ({path} {flag})")
                    return True
            logger.warning(f"⚠️  {path} did not respond to --version or --help")
            return False

        logger.warning(f"⚠️  Functionality test failed for {tool}: executable not found")
        return False

    def rollback(self, tool: str, manager: str, package: str) -> None:
        """Best-effort removal after a failed install; never raises"""
        logger.info(f"↩️  Attempting rollback for {tool}")
        try:
            command = self.platform.build_command(manager, 'remove', package)
            success, _, stderr = self.platform.run_command(command, timeout=self.timeout)
            if success:
                logger.info(f"Rollback completed for {tool}")
            else:
                logger.debug(f"Rollback for {tool} had no effect: {stderr.strip()}")
        except Exception as e:
            logger.warning(f"⚠️  Rollback for {tool} failed: {e}")

    def create_backup(self, tool: str, manager: str) -> Optional[Path]:
        """Snapshot of the installed package list before installing tool"""
        if self.backup_dir is None:
            return None

        backup_path = self.backup_dir / f"{backup_stamp()}_{tool}"
        try:
            backup_path.mkdir(parents=True, exist_ok=True)
            packages = ''
            for command in (['dpkg', '-l'], ['rpm', '-qa']):
                if self.platform.command_exists(command[0]):
                    success, stdout, _ = self.platform.run_command(command, timeout=60)
                    if success:
                        packages = stdout
                        break

            state_file = backup_path / 'system_state.txt'
            with open(state_file, 'w', encoding='utf-8') as f:
                f.write(f"backup_time:{timestamp()}\n")
                f.write(f"tool_name:{tool}\n")
                f.write(f"package_manager:{manager}\n")
                f.write(f"backup_dir:{backup_path}\n")
                f.write(packages)
        except OSError as e:
            logger.warning(f"⚠️  Could not create installation backup for {tool}: {e}")
            return None

        logger.debug(f"💾 Installation backup created: {backup_path}")
        return backup_path

    def install_many(self, tools: Iterable[str], force: bool = False,
                     skip_confirm: bool = False,
                     confirm: Optional[ConfirmCallback] = None) -> List[InstallationRecord]:
        """Install several tools; a failure on one does not stop the rest"""
        records = []
        for tool in tools:
            written = len(self.session_records)
            try:
                records.append(self.install(tool, force=force, skip_confirm=skip_confirm,
                                            confirm=confirm))
            except DependencyError as e:
                logger.error(f"❌ {tool}: {e}")
                if len(self.session_records) > written:
                    records.append(self.session_records[-1])
                else:
                    records.append(self._finish(tool, '', '', RESULT_FAILED, time.time(), str(e)))

        summary = installation_summary(records)
        logger.info(f"📦 Installed {len(summary['succeeded'])}/{summary['total']} tools"
                    + (f", failed: {', '.join(summary['failed'])}" if summary['failed'] else ''))
        return records

    def history(self, limit: int = 20) -> List[InstallationRecord]:
        return self.log.history(limit)


def _last_line(output: str) -> str:
    lines = [line.strip() for line in (output or '').splitlines() if line.strip()]
    return lines[-1] if lines else ''
