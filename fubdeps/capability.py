"""
Capability Resolver

Maps capability names to the tools that provide them and decides, against
the live environment, whether each binding is usable right now. Predicate
results are never cached; installed/not-installed classification comes
from the status cache.
"""

import logging
import os
import sys
from typing import Callable, Dict, List, Optional

from .cache import StatusCache, ToolStatus
from .platform_utils import PlatformUtils
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


class Environment:
    """Live view of the host used by capability predicates"""

    def __init__(self, platform=PlatformUtils):
        self.platform = platform

    def stdin_is_tty(self) -> bool:
        return sys.stdin is not None and sys.stdin.isatty()

    def stdout_is_tty(self) -> bool:
        return sys.stdout is not None and sys.stdout.isatty()

    def is_readable(self, path: str) -> bool:
        return os.access(path, os.R_OK)

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def has_command(self, command: str) -> bool:
        return self.platform.command_exists(command)

    def getenv(self, name: str) -> Optional[str]:
        return os.environ.get(name)

    def is_root(self) -> bool:
        return self.platform.is_root()

    def has_sudo(self) -> bool:
        return self.platform.has_sudo()

    def run(self, command: List[str], timeout: int = 5):
        return self.platform.run_command(command, timeout=timeout)

    def package_managers(self) -> List[str]:
        return self.platform.detect_available_package_managers()

    def load_average(self) -> float:
        try:
            return float(self.platform.get_load_average())
        except OSError:
            return 0.0


Predicate = Callable[[Environment], bool]


def _readable(*paths: str) -> Predicate:
    return lambda env: all(env.is_readable(path) for path in paths)


def _any_command(*commands: str) -> Predicate:
    return lambda env: any(env.has_command(command) for command in commands)


# Environment requirements per capability, on top of the tool being installed
CAPABILITY_PREDICATES: Dict[str, Predicate] = {
    'interactive-ui': lambda env: env.stdin_is_tty() and env.stdout_is_tty(),
    'monitoring': _readable('/proc/meminfo', '/proc/cpuinfo'),
    'system-stats': _readable('/proc/stat', '/proc/meminfo'),
    'resource-usage': lambda env: env.has_command('ps') and env.is_readable('/proc'),
    'file-search': _any_command('find'),
    'text-search': _any_command('grep'),
    'syntax-highlighting': _any_command('pygmentize', 'highlight', 'source-highlight'),
    'git': _any_command('git'),
    'git-ui': lambda env: env.has_command('git') and env.stdout_is_tty(),
    'containers': _any_command('docker', 'podman'),
    'containerization': _any_command('docker', 'podman'),
    'fuzzy-finder': _any_command('fzf'),
    'disk-usage': _any_command('du'),
    'system-info': lambda env: env.is_readable('/etc/os-release') or env.is_readable('/proc/version'),
}

PREDICATE_DESCRIPTIONS = {
    'interactive-ui': 'requires an interactive terminal (stdin and stdout)',
    'monitoring': 'requires readable /proc/meminfo and /proc/cpuinfo',
    'system-stats': 'requires readable /proc/stat and /proc/meminfo',
    'resource-usage': 'requires ps and a readable /proc',
    'file-search': 'requires find',
    'text-search': 'requires grep',
    'syntax-highlighting': 'requires pygmentize, highlight or source-highlight',
    'git': 'requires git',
    'git-ui': 'requires git and an interactive terminal',
    'containers': 'requires docker or podman',
    'containerization': 'requires docker or podman',
    'fuzzy-finder': 'requires fzf',
    'disk-usage': 'requires du',
    'system-info': 'requires readable /etc/os-release or /proc/version',
}


class CapabilityResolver:
    """Resolves capabilities to usable tools"""

    def __init__(self, registry: ToolRegistry, cache: StatusCache,
                 environment: Optional[Environment] = None,
                 predicates: Optional[Dict[str, Predicate]] = None):
        self.registry = registry
        self.cache = cache
        self.environment = environment or Environment()
        self.predicates = dict(CAPABILITY_PREDICATES)
        if predicates:
            self.predicates.update(predicates)

    def _status(self, tool: str) -> Optional[ToolStatus]:
        return self.cache.get(tool)

    def is_available(self, tool: str, capability: str) -> bool:
        """
        True if tool advertises capability, is installed, and the live
        environment satisfies the capability's predicate
        """
        descriptor = self.registry.get(tool)
        if capability not in descriptor.capabilities:
            return False

        status = self._status(tool)
        if status is None or not status.is_usable:
            return False

        predicate = self.predicates.get(capability)
        if predicate is None:
            return True

        try:
            return bool(predicate(self.environment))
        except OSError as e:
            logger.debug(f"Capability check {capability} for {tool} failed: {e}")
            return False

    def resolve(self, capability: str) -> List[str]:
        """Tools that advertise capability and can provide it right now"""
        return [tool.name for tool in self.registry.with_capability(capability)
                if self.is_available(tool.name, capability)]

    def tools_for(self, capability: str) -> List[str]:
        """Tools advertising capability, regardless of availability"""
        return [tool.name for tool in self.registry.with_capability(capability)]

    def analyze_tool(self, tool: str) -> Dict[str, bool]:
        """Availability of each capability advertised by tool"""
        descriptor = self.registry.get(tool)
        return {capability: self.is_available(tool, capability)
                for capability in sorted(descriptor.capabilities)}

    def capability_details(self, capability: str) -> Dict[str, object]:
        return {
            'capability': capability,
            'requirement': PREDICATE_DESCRIPTIONS.get(capability, 'requires the tool to be installed'),
            'providers': self.tools_for(capability),
            'available': self.resolve(capability),
        }

    def capability_matrix(self) -> Dict[str, Dict[str, bool]]:
        """tool -> {capability -> available}"""
        return {tool.name: self.analyze_tool(tool.name) for tool in self.registry}

    def all_capabilities(self) -> List[str]:
        return sorted({capability for tool in self.registry for capability in tool.capabilities})

    def detect_system_capabilities(self) -> Dict[str, str]:
        """
        Capabilities of the host itself, independent of registry tools

        Returns:
            Mapping of capability name to a short value ('true', a manager
            name, a virtualization type, a color count)
        """
        env = self.environment
        capabilities: Dict[str, str] = {}

        if env.exists('/sys/class/dmi'):
            capabilities['hardware-info'] = 'true'

        if env.getenv('DISPLAY') or env.getenv('WAYLAND_DISPLAY'):
            capabilities['graphical-display'] = 'true'

        if env.exists('/.dockerenv') or env.exists('/run/.containerenv'):
            capabilities['container-environment'] = 'true'

        if env.has_command('systemd-detect-virt'):
            success, stdout, _ = env.run(['systemd-detect-virt'])
            virt = stdout.strip()
            if success and virt and virt != 'none':
                capabilities['virtualization'] = virt

        privileged = None
        for manager in env.package_managers():
            capabilities[f'package-manager:{manager}'] = 'true'
            if PlatformUtils.requires_privileges(manager):
                if privileged is None:
                    privileged = env.is_root() or env.has_sudo()
                if not privileged:
                    continue
            capabilities[f'package-install:{manager}'] = 'true'

        if env.has_command('git'):
            capabilities['version-control'] = 'git'

        for runtime in ('docker', 'podman'):
            if env.has_command(runtime):
                capabilities['container-runtime'] = runtime
                break

        if env.stdin_is_tty() and env.stdout_is_tty():
            capabilities['interactive-terminal'] = 'true'
            if env.has_command('tput'):
                success, stdout, _ = env.run(['tput', 'colors'])
                if success and stdout.strip().isdigit():
                    capabilities['terminal-colors'] = stdout.strip()

        logger.debug(f"🔍 Detected {len(capabilities)} system capabilities")
        return capabilities

    def has_system_capability(self, name: str) -> bool:
        return name in self.detect_system_capabilities()
