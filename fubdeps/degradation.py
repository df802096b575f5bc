"""
Degradation Manager

Derives a system-wide degradation mode from the status cache and provides
baseline fallbacks for a fixed set of features.

Each feature exposes named actions. An action has a primary implementation
that drives the optional tool and a fallback built from standard OS
utilities; callers ask the manager for an action and get whichever one is
usable right now. Command-style actions return argument lists for the
caller to execute. The interactive ``confirm``/``choose`` actions return
the answer directly.
"""

import functools
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from .cache import StatusCache
from .registry import ToolRegistry, CATEGORY_CORE, CATEGORY_ENHANCED

logger = logging.getLogger(__name__)

MODE_FULL = 'full'
MODE_REDUCED = 'reduced'
MODE_MINIMAL = 'minimal'
MODE_CORE_ONLY = 'core-only'

CORE_THRESHOLD = 0.8
FULL_THRESHOLD = 0.6
REDUCED_THRESHOLD = 0.3

LEVEL_FULL = 'full'
LEVEL_BASIC = 'basic'
LEVEL_UNAVAILABLE = 'unavailable'


def compute_mode(core_ratio: float, enhanced_ratio: float) -> str:
    """Degradation mode for the given installed ratios (0.0 - 1.0)"""
    if core_ratio < CORE_THRESHOLD:
        return MODE_CORE_ONLY
    if enhanced_ratio >= FULL_THRESHOLD:
        return MODE_FULL
    if enhanced_ratio >= REDUCED_THRESHOLD:
        return MODE_REDUCED
    return MODE_MINIMAL


# Interactive UI

def gum_confirm(executable: str, prompt: str) -> bool:
    result = subprocess.run([executable, 'confirm', prompt], check=False)
    return result.returncode == 0


def text_confirm(prompt: str, input_func: Callable[[str], str] = input) -> bool:
    """Plain y/N prompt, defaults to no"""
    try:
        answer = input_func(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ('y', 'yes')


def gum_choose(executable: str, options: Sequence[str]) -> Optional[str]:
    result = subprocess.run([executable, 'choose', *options],
                            stdout=subprocess.PIPE, text=True, check=False)
    choice = result.stdout.strip()
    return choice if result.returncode == 0 and choice else None


def first_choice(options: Sequence[str]) -> Optional[str]:
    return options[0] if options else None


# Command builders: primary takes the resolved executable first

def tool_command(executable: str, *args: str) -> List[str]:
    return [executable, *args]


def find_command(pattern: str, path: str = '.') -> List[str]:
    return ['find', path, '-name', f'*{pattern}*']


def grep_command(pattern: str, path: str = '.') -> List[str]:
    return ['grep', '-r', pattern, path]


@dataclass(frozen=True)
class FeatureAction:
    """One operation of a feature with its primary and fallback implementations"""
    tool: str
    primary: Callable
    fallback: Callable


@dataclass(frozen=True)
class Feature:
    name: str
    tools: Tuple[str, ...]
    fallback_id: str
    actions: Mapping[str, FeatureAction] = field(default_factory=dict)


def _action(tool: str, primary: Callable, fallback: Callable) -> FeatureAction:
    return FeatureAction(tool, primary, fallback)


WATCHED_FEATURES: Tuple[Feature, ...] = (
    Feature('interactive-ui', ('gum',), 'interactive-ui:basic', {
        'confirm': _action('gum', gum_confirm, text_confirm),
        'choose': _action('gum', gum_choose, first_choice),
    }),
    Feature('advanced-monitoring', ('btop',), 'monitoring:basic', {
        'monitor': _action('btop', tool_command, lambda: ['top', '-b', '-n', '1']),
    }),
    Feature('advanced-search', ('fd', 'ripgrep'), 'search:basic', {
        'find_files': _action('fd', lambda exe, pattern, path='.': [exe, pattern, path], find_command),
        'search_text': _action('ripgrep', lambda exe, pattern, path='.': [exe, pattern, path], grep_command),
    }),
    Feature('advanced-storage-analysis', ('dust', 'duf'), 'storage:basic', {
        'disk_usage': _action('dust', lambda exe, path='.': [exe, path],
                              lambda path='.': ['du', '-sh', path]),
        'disk_free': _action('duf', tool_command, lambda: ['df', '-h']),
    }),
    Feature('enhanced-file-viewing', ('bat', 'exa'), 'file-viewing:basic', {
        'view_file': _action('bat', lambda exe, path: [exe, path], lambda path: ['cat', path]),
        'list_directory': _action('exa', lambda exe, path='.': [exe, '-la', path],
                                  lambda path='.': ['ls', '-la', path]),
    }),
    Feature('advanced-git-ui', ('lazygit',), 'git-ui:basic', {
        'git_ui': _action('lazygit', lambda exe, path='.': [exe, '-p', path],
                          lambda path='.': ['git', '-C', path, 'status']),
    }),
)


@dataclass(frozen=True)
class DegradationState:
    mode: str
    core_ratio: float
    enhanced_ratio: float
    missing_capabilities: FrozenSet[str]
    active_fallbacks: FrozenSet[str]


class DegradationManager:
    """Computes degradation mode and hands out primary/fallback implementations"""

    def __init__(self, registry: ToolRegistry, cache: StatusCache,
                 features: Sequence[Feature] = WATCHED_FEATURES):
        self.registry = registry
        self.cache = cache
        self.features: Dict[str, Feature] = {feature.name: feature for feature in features}
        self._active: Dict[str, str] = {}

    def _usable(self, tool: str, snapshot: Optional[Mapping] = None) -> bool:
        status = snapshot.get(tool) if snapshot is not None else self.cache.get(tool)
        return bool(status and status.is_usable)

    def _ratio(self, category: str, snapshot: Mapping) -> float:
        tools = self.registry.by_category(category)
        if not tools:
            return 1.0
        installed = sum(1 for tool in tools if self._usable(tool.name, snapshot))
        return installed / len(tools)

    def _missing(self, snapshot: Mapping) -> List[Feature]:
        """Watched features with none of their tools usable"""
        return [feature for feature in self.features.values()
                if not any(self._usable(tool, snapshot) for tool in feature.tools)]

    def analyze(self) -> DegradationState:
        """Degradation state derived from the current cache contents"""
        snapshot = self.cache.snapshot()
        core_ratio = self._ratio(CATEGORY_CORE, snapshot)
        enhanced_ratio = self._ratio(CATEGORY_ENHANCED, snapshot)
        missing = self._missing(snapshot)

        state = DegradationState(
            mode=compute_mode(core_ratio, enhanced_ratio),
            core_ratio=core_ratio,
            enhanced_ratio=enhanced_ratio,
            missing_capabilities=frozenset(feature.name for feature in missing),
            active_fallbacks=frozenset(feature.fallback_id for feature in missing),
        )
        logger.debug(f"Degradation analysis: core={core_ratio:.0%}, "
                     f"enhanced={enhanced_ratio:.0%}, mode={state.mode}")
        return state

    def degradation_state(self) -> DegradationState:
        return self.analyze()

    def activate_fallbacks(self) -> FrozenSet[str]:
        """
        Arm fallbacks for missing features and disarm those whose primary
        tool is back. Calling it repeatedly yields the same set.
        """
        state = self.analyze()
        active = {}
        for name in sorted(state.missing_capabilities):
            feature = self.features[name]
            if name not in self._active:
                logger.info(f"⚠️  {name} unavailable, using {feature.fallback_id}")
            active[name] = feature.fallback_id
        self._active = active
        return frozenset(active.values())

    @property
    def active_fallbacks(self) -> FrozenSet[str]:
        return frozenset(self._active.values())

    def implementation(self, feature: str, action: str) -> Callable:
        """
        Callable for feature.action: the primary when its tool is usable,
        the fallback otherwise

        Raises:
            KeyError: unknown feature or action
        """
        entry = self.features[feature].actions[action]
        status = self.cache.get(entry.tool)
        if status is not None and status.is_usable:
            executable = status.path or self.registry.get(entry.tool).executables[0]
            return functools.partial(entry.primary, executable)
        return entry.fallback

    def uses_fallback(self, feature: str, action: str) -> bool:
        entry = self.features[feature].actions[action]
        return not self._usable(entry.tool)

    def is_feature_available(self, feature: str) -> bool:
        """Primary implementation usable for a watched feature; other
        features are available unless the system is core-only"""
        if feature in self.features:
            return any(self._usable(tool) for tool in self.features[feature].tools)
        return self.analyze().mode != MODE_CORE_ONLY

    def feature_level(self, feature: str) -> str:
        if self.is_feature_available(feature):
            return LEVEL_FULL
        if feature in self.features:
            return LEVEL_BASIC
        return LEVEL_UNAVAILABLE

    def improvement_suggestions(self) -> List[Tuple[str, str]]:
        """(tool, benefit) for missing core and enhanced tools, highest priority first"""
        suggestions = []
        for tool in self.registry.by_priority():
            if tool.category not in (CATEGORY_CORE, CATEGORY_ENHANCED):
                continue
            if self._usable(tool.name):
                continue
            suggestions.append((tool.name, tool.benefit or tool.description))
        return suggestions

    def summary(self) -> Dict[str, object]:
        state = self.analyze()
        return {
            'mode': state.mode,
            'core_ratio': round(state.core_ratio * 100),
            'enhanced_ratio': round(state.enhanced_ratio * 100),
            'missing_capabilities': sorted(state.missing_capabilities),
            'active_fallbacks': sorted(state.active_fallbacks),
        }
