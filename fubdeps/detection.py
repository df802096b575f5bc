"""
Detection Engine

Determines the status of registry tools on this host and records it in
the status cache:

    unknown -> checking -> installed | not_installed
    installed -> installed (compatible) | incompatible | outdated

Batch detection runs sequentially or on a bounded thread pool. Workers
only compute statuses; the cache file is written once by the caller after
every tool has been attempted.
"""

import logging
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, Iterable, List, Optional

from .cache import (
    StatusCache, ToolStatus,
    STATUS_INSTALLED, STATUS_INCOMPATIBLE, STATUS_NOT_INSTALLED,
    STATUS_OUTDATED, STATUS_UNKNOWN,
)
from .errors import DependencyError, InvalidOperator, VersionUnparseable
from .platform_utils import PlatformUtils
from .registry import ToolRegistry
from .version import VersionDetector, compare, is_compatible

logger = logging.getLogger(__name__)

CANDIDATE_PATTERN = re.compile(r'^\s*Candidate:\s*(\S+)', re.MULTILINE)
DEBIAN_VERSION_PATTERN = re.compile(r'(?:\d+:)?(\d+(?:\.\d+){0,2})')

# Path prefix -> install method, checked after querying package managers
PATH_INSTALL_METHODS = (
    ('/usr/local/', 'local'),
    ('/snap/', 'snap'),
    ('/var/lib/flatpak/', 'flatpak'),
)


class DetectionEngine:
    """Detects tool presence, version and compatibility"""

    def __init__(self, registry: ToolRegistry, cache: StatusCache,
                 platform=PlatformUtils, detector: Optional[VersionDetector] = None,
                 parallel: bool = True, max_workers: int = 4,
                 check_outdated: bool = True, skip_tools: Iterable[str] = (),
                 only_category: Optional[str] = None):
        self.registry = registry
        self.cache = cache
        self.platform = platform
        self.detector = detector or VersionDetector(runner=platform.run_command)
        self.parallel = parallel
        self.max_workers = max(1, min(int(max_workers), 10))
        self.check_outdated = check_outdated
        self.skip_tools = set(skip_tools)
        self.only_category = only_category or None

    # Single tool

    def find_executable(self, tool: str) -> Optional[str]:
        """First candidate executable that resolves to an executable file"""
        for executable in self.registry.get(tool).executables:
            path = self.platform.which(executable)
            if path and os.access(path, os.X_OK):
                return path
        return None

    def detect_tool(self, tool: str, force: bool = False, save: bool = False) -> ToolStatus:
        """
        Detect a single tool

        Args:
            tool: Registry tool name
            force: Ignore a fresh cache entry
            save: Persist the cache afterwards

        Returns:
            The tool's new (or cached) status

        Raises:
            ToolNotInRegistry: unknown tool
        """
        descriptor = self.registry.get(tool)

        if not force:
            cached = self.cache.get(tool)
            if cached is not None:
                logger.debug(f"📋 Using cached status for {tool}: {cached.status}")
                return cached

        logger.debug(f"🔍 Inspecting {tool}")
        status = self._inspect(descriptor.name)
        self.cache.put(status)
        if save:
            self.cache.save()
        return status

    def _inspect(self, tool: str) -> ToolStatus:
        descriptor = self.registry.get(tool)
        now = self.cache.clock()

        path = self.find_executable(tool)
        if path is None:
            logger.debug(f"❌ {tool} not found")
            return ToolStatus(tool, STATUS_NOT_INSTALLED, last_checked=now)

        version = self.detector.detect(path)
        install_method = self.detect_install_method(tool, path)
        status = STATUS_INSTALLED

        if version is None:
            # Many tools have no parseable version output; presence is enough
            logger.debug(f"⚠️  {tool} found at {path} without a parseable version")
        else:
            try:
                compatible = is_compatible(version, descriptor.min_version, descriptor.max_version)
            except (InvalidOperator, VersionUnparseable) as e:
                logger.warning(f"⚠️  Cannot check version bounds for {tool}: {e}")
                return ToolStatus(tool, STATUS_UNKNOWN, version=version, path=path,
                                  install_method=install_method, last_checked=now)

            if not compatible:
                status = STATUS_INCOMPATIBLE
                logger.debug(f"❌ {tool} {version} outside bounds "
                             f"(min: {descriptor.min_version}, max: {descriptor.max_version})")
            elif self.check_outdated and self.is_outdated(tool, version):
                status = STATUS_OUTDATED

        logger.debug(f"✅ {tool}: {status} {version or ''} ({path}, {install_method})")
        return ToolStatus(tool, status, version=version, path=path,
                          install_method=install_method, last_checked=now)

    def detect_install_method(self, tool: str, path: str) -> str:
        """Package manager (or location) that provided the executable"""
        name = os.path.basename(path)

        if self.platform.command_exists('dpkg'):
            success, _, _ = self.platform.run_command(['dpkg', '-S', path], timeout=10)
            if success:
                return 'apt'

        if self.platform.command_exists('rpm'):
            success, _, _ = self.platform.run_command(['rpm', '-qf', path], timeout=10)
            if success:
                return 'rpm'

        for manager in ('snap', 'flatpak', 'brew'):
            if not self.platform.command_exists(manager):
                continue
            success, stdout, _ = self.platform.run_command([manager, 'list'], timeout=10)
            if success and self._listed(stdout, {name, tool}):
                return manager

        for prefix, method in PATH_INSTALL_METHODS:
            if path.startswith(prefix):
                return method

        return 'unknown'

    @staticmethod
    def _listed(output: str, names: set) -> bool:
        for line in output.splitlines():
            for field in line.split():
                if field in names:
                    return True
        return False

    def is_outdated(self, tool: str, version: str) -> bool:
        """
        Best-effort comparison against the apt candidate version

        Any failure (no apt, no package mapping, unparseable output) means
        not outdated.
        """
        package = self.registry.get(tool).package_for('apt')
        if not package or not self.platform.command_exists('apt-cache'):
            return False

        success, stdout, _ = self.platform.run_command(['apt-cache', 'policy', package], timeout=10)
        if not success:
            return False

        match = CANDIDATE_PATTERN.search(stdout)
        if not match or match.group(1) == '(none)':
            return False

        # Debian versions carry an optional epoch and a revision: 1:0.13.0-1
        upstream = DEBIAN_VERSION_PATTERN.match(match.group(1))
        if not upstream:
            return False
        try:
            return compare(version, '<', upstream.group(1))
        except DependencyError:
            return False

    # Batch

    def _detect_isolated(self, tool: str, force: bool) -> ToolStatus:
        """detect_tool that never raises, failures become 'unknown'"""
        try:
            return self.detect_tool(tool, force=force)
        except Exception as e:
            logger.error(f"❌ Detection failed for {tool}: {e}")
            status = ToolStatus(tool, STATUS_UNKNOWN, last_checked=self.cache.clock())
            self.cache.put(status)
            return status

    def _in_scope(self, name: str) -> bool:
        if name in self.skip_tools:
            return False
        if self.only_category is None or not self.registry.exists(name):
            return True
        return self.registry.get(name).category == self.only_category

    def _tool_list(self, tools: Optional[Iterable[str]]) -> List[str]:
        names = list(tools) if tools is not None else self.registry.names()
        return [name for name in names if self._in_scope(name)]

    def detect_all(self, force: bool = False, tools: Optional[Iterable[str]] = None,
                   parallel: Optional[bool] = None,
                   max_workers: Optional[int] = None) -> Dict[str, ToolStatus]:
        """
        Detect every tool (or the given subset)

        Returns:
            Mapping of tool name to status, in registry order
        """
        names = self._tool_list(tools)
        parallel = self.parallel if parallel is None else parallel
        workers = self.max_workers if max_workers is None else max(1, min(int(max_workers), 10))

        started = time.time()
        if parallel and workers > 1 and len(names) > 1:
            logger.info(f"🔍 Detecting {len(names)} tools with {workers} workers")
            results = self._detect_parallel(names, force, workers)
        else:
            logger.info(f"🔍 Detecting {len(names)} tools")
            results = {name: self._detect_isolated(name, force) for name in names}

        self.cache.save()
        logger.info(f"✅ Detection finished in {time.time() - started:.1f}s")
        return {name: results[name] for name in names}

    def _detect_parallel(self, names: List[str], force: bool, workers: int) -> Dict[str, ToolStatus]:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='fubdeps-detect') as executor:
            futures = {executor.submit(self._detect_isolated, name, force): name for name in names}
            # Barrier: return only once every tool has been attempted
            wait(futures)
        return {futures[future]: future.result() for future in futures}

    def detect_by_capability(self, capability: str, force: bool = False) -> Dict[str, ToolStatus]:
        tools = [tool.name for tool in self.registry.with_capability(capability)]
        if not tools:
            logger.warning(f"⚠️  No tools provide capability: {capability}")
            return {}
        return self.detect_all(force=force, tools=tools)

    def summary(self) -> Dict[str, object]:
        """Counts per status plus a health score over the registry"""
        counts = {
            STATUS_INSTALLED: 0,
            STATUS_OUTDATED: 0,
            STATUS_NOT_INSTALLED: 0,
            STATUS_INCOMPATIBLE: 0,
            STATUS_UNKNOWN: 0,
        }
        for name in self._tool_list(None):
            counts[self.cache.status_of(name)] += 1

        total = sum(counts.values())
        healthy = counts[STATUS_INSTALLED] + counts[STATUS_OUTDATED]
        return {
            'total': total,
            'installed': counts[STATUS_INSTALLED],
            'outdated': counts[STATUS_OUTDATED],
            'missing': counts[STATUS_NOT_INSTALLED],
            'incompatible': counts[STATUS_INCOMPATIBLE],
            'unknown': counts[STATUS_UNKNOWN],
            'health_score': round(healthy * 100 / total) if total else 0,
        }
