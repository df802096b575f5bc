"""
Tool Recommendations

Suggests registry tools that are not usable yet:
- by the kind of work the host appears to be used for (contexts)
- by priority
- by a requested capability
- as complements of a tool the user already has
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .cache import StatusCache
from .capability import Environment
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

CONTEXT_DEVELOPMENT = 'development'
CONTEXT_SYSTEM = 'system'
CONTEXT_PRODUCTIVITY = 'productivity'
CONTEXT_MONITORING = 'monitoring'
CONTEXT_CONTAINER = 'container'

CONTEXTS = (
    CONTEXT_DEVELOPMENT,
    CONTEXT_SYSTEM,
    CONTEXT_PRODUCTIVITY,
    CONTEXT_MONITORING,
    CONTEXT_CONTAINER,
)

# Candidates per context, most useful first; names outside the registry are ignored
CONTEXT_TOOLS: Dict[str, tuple] = {
    CONTEXT_DEVELOPMENT: ('lazygit', 'git-delta', 'tig', 'bat', 'exa', 'fd', 'ripgrep'),
    CONTEXT_SYSTEM: ('btop', 'dust', 'duf', 'procs', 'neofetch', 'hwinfo'),
    CONTEXT_PRODUCTIVITY: ('gum', 'fzf', 'bat', 'exa', 'fd', 'ripgrep'),
    CONTEXT_MONITORING: ('btop', 'dust', 'duf', 'procs'),
    CONTEXT_CONTAINER: ('lazydocker', 'docker', 'podman'),
}

DEVELOPMENT_DIRS = ('projects', 'dev', 'src', 'code', 'workspace')
DEVELOPMENT_COMMANDS = ('git', 'node', 'python3', 'npm', 'yarn', 'docker', 'kubectl')
ADMIN_COMMANDS = ('htop', 'iotop', 'nethogs', 'ss', 'iptables', 'ufw', 'systemctl', 'journalctl')
ADMIN_PATHS = ('/etc', '/var/log', '/sys', '/proc')
PRODUCTIVITY_COMMANDS = ('vim', 'nano', 'emacs', 'code', 'libreoffice', 'openoffice', 'evince')
PRODUCTIVITY_DIRS = ('Documents', 'Desktop', 'Downloads')
MONITORING_COMMANDS = ('top', 'ps', 'htop', 'glances', 'iostat', 'vmstat', 'netstat')
CONTAINER_MARKERS = ('/.dockerenv', '/run/.containerenv')
CONTAINER_COMMANDS = ('docker', 'podman', 'kubectl', 'minikube')

BUSY_LOAD_AVERAGE = 0.5


@dataclass(frozen=True)
class Recommendation:
    """A tool worth installing and why"""
    tool: str
    reason: str
    priority: int
    benefit: str = ''


class RecommendationEngine:
    """Context-aware suggestions built on the registry and status cache"""

    def __init__(self, registry: ToolRegistry, cache: StatusCache,
                 environment: Optional[Environment] = None,
                 home: Optional[str] = None):
        self.registry = registry
        self.cache = cache
        self.environment = environment or Environment()
        self.home = home

    # Context detection

    def _home_dir(self) -> str:
        return self.home or self.environment.getenv('HOME') or os.path.expanduser('~')

    def _count_commands(self, commands: Iterable[str]) -> int:
        return sum(1 for command in commands if self.environment.has_command(command))

    def _count_home_dirs(self, names: Iterable[str]) -> int:
        home = self._home_dir()
        return sum(1 for name in names if self.environment.exists(os.path.join(home, name)))

    def is_development_environment(self) -> bool:
        indicators = (self._count_home_dirs(DEVELOPMENT_DIRS)
                      + self._count_commands(DEVELOPMENT_COMMANDS))
        return indicators >= 3

    def is_system_administration_environment(self) -> bool:
        indicators = self._count_commands(ADMIN_COMMANDS)
        indicators += sum(1 for path in ADMIN_PATHS if self.environment.is_readable(path))
        if self.environment.is_root() or self.environment.has_sudo():
            indicators += 1
        return indicators >= 3

    def is_productivity_environment(self) -> bool:
        indicators = (self._count_commands(PRODUCTIVITY_COMMANDS)
                      + self._count_home_dirs(PRODUCTIVITY_DIRS))
        return indicators >= 2

    def is_monitoring_environment(self) -> bool:
        indicators = self._count_commands(MONITORING_COMMANDS)
        if self.environment.is_readable('/var/log'):
            indicators += 1
        if self.environment.load_average() > BUSY_LOAD_AVERAGE:
            indicators += 1
        return indicators >= 2

    def is_container_environment(self) -> bool:
        if any(self.environment.exists(marker) for marker in CONTAINER_MARKERS):
            return True
        return self._count_commands(CONTAINER_COMMANDS) >= 2

    def detect_contexts(self) -> List[str]:
        """Contexts that apply to this host; productivity when none does"""
        checks = (
            (CONTEXT_DEVELOPMENT, self.is_development_environment),
            (CONTEXT_SYSTEM, self.is_system_administration_environment),
            (CONTEXT_PRODUCTIVITY, self.is_productivity_environment),
            (CONTEXT_MONITORING, self.is_monitoring_environment),
            (CONTEXT_CONTAINER, self.is_container_environment),
        )
        contexts = [name for name, check in checks if check()]
        logger.debug(f"🔍 Detected user contexts: {', '.join(contexts) or 'none'}")
        return contexts or [CONTEXT_PRODUCTIVITY]

    # Recommendations

    def _wanted(self, tool: str) -> bool:
        if not self.registry.exists(tool):
            return False
        status = self.cache.peek(tool)
        return status is None or not status.is_usable

    def _by_priority(self, tools: Iterable[str], limit: int) -> List[str]:
        unique = list(dict.fromkeys(tool for tool in tools if self._wanted(tool)))
        ranked = sorted(unique, key=lambda name: -self.registry.get(name).priority)
        return ranked[:limit] if limit > 0 else ranked

    def context_recommendations(self, context: str, limit: int = 10) -> List[str]:
        """
        Missing tools suited to context, in the context's own order

        Raises:
            ValueError: unknown context
        """
        if context not in CONTEXT_TOOLS:
            raise ValueError(f"Unknown recommendation context: {context}")
        tools = [tool for tool in CONTEXT_TOOLS[context] if self._wanted(tool)]
        return tools[:limit] if limit > 0 else tools

    def priority_recommendations(self, min_priority: int = 80, limit: int = 5) -> List[str]:
        return self._by_priority(
            (tool.name for tool in self.registry.by_priority(min_priority)), limit)

    def capability_recommendations(self, capability: str, limit: int = 5) -> List[str]:
        return self._by_priority(
            (tool.name for tool in self.registry.with_capability(capability)), limit)

    def complementary_recommendations(self, tool: str, limit: int = 3) -> List[str]:
        """
        Missing tools sharing a capability or the category of tool

        Raises:
            ToolNotInRegistry: unknown tool
        """
        base = self.registry.get(tool)
        candidates = []
        for capability in sorted(base.capabilities):
            candidates.extend(other.name for other in self.registry.with_capability(capability))
        candidates.extend(other.name for other in self.registry.by_category(base.category))
        return self._by_priority((name for name in candidates if name != base.name), limit)

    def recommend(self, limit: int = 10) -> List[Recommendation]:
        """Context recommendations first, then high priority tools"""
        reasons: Dict[str, str] = {}
        for context in self.detect_contexts():
            for tool in self.context_recommendations(context, limit=0):
                reasons.setdefault(tool, f"useful for {context} work")
        for tool in self.priority_recommendations(limit=0):
            reasons.setdefault(tool, 'high priority tool')

        recommendations = []
        for tool, reason in reasons.items():
            descriptor = self.registry.get(tool)
            recommendations.append(Recommendation(tool, reason, descriptor.priority, descriptor.benefit))
        return recommendations[:limit] if limit > 0 else recommendations

    def report(self) -> Dict[str, object]:
        contexts = self.detect_contexts()
        return {
            'contexts': contexts,
            'context_recommendations': {
                context: self.context_recommendations(context) for context in contexts
            },
            'priority_recommendations': self.priority_recommendations(),
        }
