"""
Tool Registry

Immutable catalog of optional command line tools. The registry is built
once at startup from the built-in table below, optionally overridden or
extended by a YAML registry file, and then passed explicitly to every
component that needs it.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from .errors import InvalidOperator, RegistryLoadError, ToolNotInRegistry
from .version import validate_bound

logger = logging.getLogger(__name__)

CATEGORY_CORE = 'core'
CATEGORY_ENHANCED = 'enhanced'
CATEGORY_DEVELOPMENT = 'development'
CATEGORY_SYSTEM = 'system'
CATEGORY_OPTIONAL = 'optional'

CATEGORIES = (
    CATEGORY_CORE,
    CATEGORY_ENHANCED,
    CATEGORY_DEVELOPMENT,
    CATEGORY_SYSTEM,
    CATEGORY_OPTIONAL,
)


@dataclass(frozen=True)
class ToolDescriptor:
    """Static description of one optional tool"""
    name: str
    category: str
    description: str = ''
    packages: Mapping[str, str] = field(default_factory=dict)
    executables: Tuple[str, ...] = ()
    capabilities: FrozenSet[str] = frozenset()
    min_version: Optional[str] = None
    max_version: Optional[str] = None
    priority: int = 50
    size: str = ''
    benefit: str = ''

    def __post_init__(self):
        if not self.name:
            raise ValueError("Tool name must not be empty")
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown category '{self.category}' for tool '{self.name}'")
        if not 0 <= self.priority <= 100:
            raise ValueError(f"Priority for '{self.name}' must be within 0-100")
        for bound in (self.min_version, self.max_version):
            if bound is not None:
                try:
                    validate_bound(bound)
                except InvalidOperator:
                    raise ValueError(f"Malformed version bound {bound!r} for tool '{self.name}'") from None
        # Read-only copy; the descriptor stays immutable
        object.__setattr__(self, 'packages', MappingProxyType(dict(self.packages)))
        if not self.executables:
            object.__setattr__(self, 'executables', (self.name,))

    def package_for(self, manager: str) -> Optional[str]:
        return self.packages.get(manager)

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ToolDescriptor':
        """
        Build a descriptor from a registry row.

        List-valued fields accept either YAML lists or comma separated
        strings, and ``packages`` accepts either a mapping or the compact
        ``"apt:gum,snap:gum"`` form.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"registry row must be a mapping, got {type(data).__name__}")
        packages = data.get('packages') or {}
        if isinstance(packages, str):
            packages = dict(
                item.split(':', 1) for item in _split_csv(packages) if ':' in item
            )
        elif not isinstance(packages, Mapping):
            raise TypeError(f"'packages' must be a mapping or 'manager:package' string, "
                            f"got {type(packages).__name__}")

        return cls(
            name=str(data['name']),
            category=str(data.get('category', CATEGORY_OPTIONAL)),
            description=str(data.get('description') or ''),
            packages={str(k): str(v) for k, v in packages.items()},
            executables=tuple(_as_list(data.get('executables'))),
            capabilities=frozenset(_as_list(data.get('capabilities'))),
            min_version=_optional_str(data.get('min_version')),
            max_version=_optional_str(data.get('max_version')),
            priority=int(data.get('priority', 50)),
            size=str(data.get('size') or ''),
            benefit=str(data.get('benefit') or ''),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'name': self.name,
            'category': self.category,
            'description': self.description,
            'packages': dict(self.packages),
            'executables': list(self.executables),
            'capabilities': sorted(self.capabilities),
            'priority': self.priority,
            'size': self.size,
            'benefit': self.benefit,
        }
        if self.min_version:
            data['min_version'] = self.min_version
        if self.max_version:
            data['max_version'] = self.max_version
        return data


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def _as_list(value: Union[None, str, List[Any]]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return _split_csv(value)
    return [str(item) for item in value]


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    return str(value)


def _packages(apt: str, snap: Optional[str] = None, brew: Optional[str] = None) -> Dict[str, str]:
    return {'apt': apt, 'snap': snap or apt, 'brew': brew or apt}


BUILTIN_TOOLS: List[Dict[str, Any]] = [
    # Core tools
    {
        'name': 'gum', 'category': CATEGORY_CORE,
        'description': 'Interactive terminal UI for shell scripts',
        'packages': _packages('gum'), 'min_version': '0.8.0',
        'executables': ['gum'],
        'capabilities': ['interactive-ui', 'tui', 'dialogs', 'forms'],
        'benefit': 'Enhanced interactive experiences with beautiful dialogs, forms, and menus',
        'priority': 95, 'size': '15MB',
    },
    {
        'name': 'btop', 'category': CATEGORY_CORE,
        'description': 'Advanced system resource monitor',
        'packages': _packages('btop'), 'min_version': '1.2.0',
        'executables': ['btop'],
        'capabilities': ['monitoring', 'system-stats', 'resource-usage'],
        'benefit': 'Beautiful real-time system monitoring with detailed resource usage',
        'priority': 90, 'size': '2MB',
    },
    {
        'name': 'fd', 'category': CATEGORY_CORE,
        'description': 'Simple, fast and user-friendly alternative to find',
        'packages': _packages('fd-find', 'fd', 'fd'), 'min_version': '8.0.0',
        'executables': ['fd', 'fdfind', 'fd-find'],
        'capabilities': ['file-search', 'find-alternative', 'search'],
        'benefit': 'Intuitive file finding with smart defaults and syntax highlighting',
        'priority': 85, 'size': '5MB',
    },
    {
        'name': 'ripgrep', 'category': CATEGORY_CORE,
        'description': 'Fast search tool that recursively searches directories',
        'packages': _packages('ripgrep'), 'min_version': '13.0.0',
        'executables': ['rg', 'ripgrep'],
        'capabilities': ['search', 'grep-alternative', 'text-search'],
        'benefit': 'Blazing fast text search with ripgrep for instant results',
        'priority': 85, 'size': '8MB',
    },
    # Enhanced tools
    {
        'name': 'dust', 'category': CATEGORY_ENHANCED,
        'description': 'More intuitive version of du in rust',
        'packages': _packages('dust'), 'min_version': '0.8.0',
        'executables': ['dust'],
        'capabilities': ['disk-usage', 'du-alternative', 'storage-analysis'],
        'benefit': 'Visual disk usage analysis with intuitive tree display',
        'priority': 70, 'size': '3MB',
    },
    {
        'name': 'duf', 'category': CATEGORY_ENHANCED,
        'description': "Disk Usage/Free Utility - a better 'df' alternative",
        'packages': _packages('duf'), 'min_version': '0.8.0',
        'executables': ['duf'],
        'capabilities': ['disk-space', 'df-alternative', 'mount-points'],
        'benefit': 'Beautiful disk usage display across all mount points',
        'priority': 70, 'size': '4MB',
    },
    {
        'name': 'procs', 'category': CATEGORY_ENHANCED,
        'description': 'Modern replacement for ps',
        'packages': _packages('procs'), 'min_version': '0.13.0',
        'executables': ['procs'],
        'capabilities': ['process-management', 'ps-alternative', 'process-list'],
        'benefit': 'Modern process viewer with search, sorting, and visual indicators',
        'priority': 65, 'size': '6MB',
    },
    {
        'name': 'bat', 'category': CATEGORY_ENHANCED,
        'description': 'A cat clone with wings',
        'packages': _packages('bat'), 'min_version': '0.22.0',
        'executables': ['bat', 'batcat'],
        'capabilities': ['cat-alternative', 'file-viewer', 'syntax-highlighting'],
        'benefit': 'Enhanced file viewing with syntax highlighting and git integration',
        'priority': 75, 'size': '10MB',
    },
    {
        'name': 'exa', 'category': CATEGORY_ENHANCED,
        'description': 'A modern replacement for ls',
        'packages': _packages('exa'), 'min_version': '0.10.0',
        'executables': ['exa'],
        'capabilities': ['ls-alternative', 'file-listing', 'directory-browser'],
        'benefit': 'Modern directory listing with colors, icons, and git integration',
        'priority': 75, 'size': '8MB',
    },
    # Development tools
    {
        'name': 'git-delta', 'category': CATEGORY_DEVELOPMENT,
        'description': 'Syntax-highlighting pager for git and diff output',
        'packages': _packages('git-delta'), 'min_version': '0.15.0',
        'executables': ['delta'],
        'capabilities': ['git', 'diff', 'pager', 'syntax-highlighting'],
        'benefit': 'Beautiful diff display with syntax highlighting and improved readability',
        'priority': 80, 'size': '12MB',
    },
    {
        'name': 'lazygit', 'category': CATEGORY_DEVELOPMENT,
        'description': 'Simple terminal UI for git commands',
        'packages': _packages('lazygit'), 'min_version': '0.35.0',
        'executables': ['lazygit'],
        'capabilities': ['git', 'git-ui', 'version-control'],
        'benefit': 'Intuitive git interface with visual commit history and branch management',
        'priority': 85, 'size': '20MB',
    },
    {
        'name': 'tig', 'category': CATEGORY_DEVELOPMENT,
        'description': 'Text-mode interface for git',
        'packages': _packages('tig'), 'min_version': '2.5.0',
        'executables': ['tig'],
        'capabilities': ['git', 'git-ui', 'text-interface'],
        'benefit': 'Powerful text-mode git repository browser and interface',
        'priority': 70, 'size': '5MB',
    },
    # System tools
    {
        'name': 'neofetch', 'category': CATEGORY_SYSTEM,
        'description': 'Fast, highly customizable system info script',
        'packages': _packages('neofetch'), 'min_version': '7.1.0',
        'executables': ['neofetch'],
        'capabilities': ['system-info', 'system-display', 'ascii-art'],
        'benefit': 'Beautiful system information display with ASCII art logos',
        'priority': 60, 'size': '2MB',
    },
    {
        'name': 'screenfetch', 'category': CATEGORY_SYSTEM,
        'description': 'Fetches system theme information',
        'packages': _packages('screenfetch'), 'min_version': '3.9.0',
        'executables': ['screenfetch'],
        'capabilities': ['system-info', 'theme-info', 'screenshot-info'],
        'benefit': 'System information and theme display for screenshots',
        'priority': 55, 'size': '1MB',
    },
    {
        'name': 'hwinfo', 'category': CATEGORY_SYSTEM,
        'description': 'Hardware information tool',
        'packages': _packages('hwinfo'), 'min_version': '21.70.0',
        'executables': ['hwinfo'],
        'capabilities': ['hardware-info', 'system-inspection', 'device-info'],
        'benefit': 'Comprehensive hardware information and inspection utility',
        'priority': 65, 'size': '8MB',
    },
    # Optional tools
    {
        'name': 'docker', 'category': CATEGORY_OPTIONAL,
        'description': 'Platform for developing, shipping, and running applications',
        'packages': _packages('docker.io', 'docker', 'docker'), 'min_version': '20.10.0',
        'executables': ['docker'],
        'capabilities': ['containers', 'virtualization', 'containerization'],
        'benefit': 'Industry-standard container platform for application development',
        'priority': 40, 'size': '200MB',
    },
    {
        'name': 'podman', 'category': CATEGORY_OPTIONAL,
        'description': 'Daemonless container engine',
        'packages': _packages('podman'), 'min_version': '4.0.0',
        'executables': ['podman'],
        'capabilities': ['containers', 'virtualization', 'containerization'],
        'benefit': 'Daemonless container engine for secure container management',
        'priority': 40, 'size': '150MB',
    },
    {
        'name': 'lazydocker', 'category': CATEGORY_OPTIONAL,
        'description': 'The lazier way to manage everything docker',
        'packages': _packages('lazydocker'), 'min_version': '0.20.0',
        'executables': ['lazydocker'],
        'capabilities': ['docker-management', 'docker-ui', 'containers'],
        'benefit': 'Intuitive terminal UI for docker and docker-compose management',
        'priority': 35, 'size': '25MB',
    },
    {
        'name': 'fzf', 'category': CATEGORY_OPTIONAL,
        'description': 'Command-line fuzzy finder',
        'packages': _packages('fzf'), 'min_version': '0.40.0',
        'executables': ['fzf'],
        'capabilities': ['fuzzy-finder', 'search', 'interactive-search'],
        'benefit': 'Powerful command-line fuzzy finder for interactive filtering',
        'priority': 75, 'size': '6MB',
    },
]


def format_priority(priority: int) -> str:
    """Human-readable priority band"""
    if priority >= 80:
        return 'Critical'
    if priority >= 60:
        return 'High'
    if priority >= 40:
        return 'Medium'
    if priority >= 20:
        return 'Low'
    return 'Optional'


class ToolRegistry:
    """Read-only collection of tool descriptors keyed by name"""

    def __init__(self, tools: List[ToolDescriptor]):
        self._tools: Dict[str, ToolDescriptor] = {}
        for tool in tools:
            if tool.name in self._tools:
                logger.debug(f"Registry entry for {tool.name} replaced")
            self._tools[tool.name] = tool

    @classmethod
    def builtin(cls) -> 'ToolRegistry':
        """Registry containing only the built-in tool table"""
        return cls([ToolDescriptor.from_dict(row) for row in BUILTIN_TOOLS])

    @classmethod
    def from_file(cls, path: Union[str, Path], include_builtin: bool = True) -> 'ToolRegistry':
        """
        Load a registry from a YAML file

        The file holds a top-level ``tools`` list. Entries whose name matches
        a built-in tool replace it; new names extend the catalog.

        Raises:
            RegistryLoadError: file missing, unreadable or malformed
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise RegistryLoadError(f"Cannot read registry file {path}: {e}")

        rows = data.get('tools') if isinstance(data, dict) else None
        if not isinstance(rows, list):
            raise RegistryLoadError(f"Registry file {path} must contain a 'tools' list")

        tools = [ToolDescriptor.from_dict(row) for row in BUILTIN_TOOLS] if include_builtin else []
        for index, row in enumerate(rows):
            try:
                tools.append(ToolDescriptor.from_dict(row))
            except (KeyError, TypeError, ValueError) as e:
                raise RegistryLoadError(f"Invalid registry entry #{index + 1} in {path}: {e}")

        registry = cls(tools)
        logger.debug(f"📋 Loaded {len(rows)} registry entries from {path} ({len(registry)} tools total)")
        return registry

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def exists(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> ToolDescriptor:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotInRegistry(name) from None

    def names(self) -> List[str]:
        return list(self._tools)

    def by_category(self, category: str) -> List[ToolDescriptor]:
        return [tool for tool in self._tools.values() if tool.category == category]

    def categories(self) -> List[str]:
        present = {tool.category for tool in self._tools.values()}
        return [category for category in CATEGORIES if category in present]

    def by_priority(self, min_priority: int = 0) -> List[ToolDescriptor]:
        """Tools at or above min_priority, highest priority first"""
        tools = [tool for tool in self._tools.values() if tool.priority >= min_priority]
        return sorted(tools, key=lambda tool: (-tool.priority, tool.name))

    def with_capability(self, capability: str) -> List[ToolDescriptor]:
        return [tool for tool in self._tools.values() if capability in tool.capabilities]

    def search(self, query: str) -> List[ToolDescriptor]:
        """Case-insensitive search over name, description and capabilities"""
        needle = query.lower()
        results = []
        for tool in self._tools.values():
            haystack = [tool.name, tool.description] + list(tool.capabilities)
            if any(needle in text.lower() for text in haystack):
                results.append(tool)
        return results

    def package_name(self, tool: str, manager: str) -> Optional[str]:
        return self.get(tool).package_for(manager)

    def info(self) -> Dict[str, Any]:
        """Summary of the registry contents"""
        return {
            'total': len(self),
            'categories': {category: len(self.by_category(category)) for category in self.categories()},
            'capabilities': len({cap for tool in self for cap in tool.capabilities}),
        }


def write_default_registry(path: Union[str, Path], registry: Optional[ToolRegistry] = None) -> Path:
    """Dump a registry to YAML so it can be edited and loaded back"""
    registry = registry or ToolRegistry.builtin()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump({'tools': [tool.to_dict() for tool in registry]}, f,
                       default_flow_style=False, sort_keys=False, allow_unicode=True)
    return path
