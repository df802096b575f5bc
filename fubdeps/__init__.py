"""
fubdeps - optional CLI tool dependency engine

This package contains:
- Tool registry and version compatibility checks
- Detection engine with a TTL status cache
- Capability resolution and degradation fallbacks
- Package manager based installation
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .cache import StatusCache, ToolStatus
from .capability import CapabilityResolver, Environment
from .common.logger import apply_verbosity, get_logger, setup_logging
from .config_manager import ConfigManager
from .degradation import DegradationManager, DegradationState
from .detection import DetectionEngine
from .env import env
from .errors import NoSuitableManager
from .installer import InstallationLog, InstallationOrchestrator, InstallationRecord
from .alternatives import ToolAlternatives
from .platform_utils import PlatformUtils
from .recommendations import Recommendation, RecommendationEngine
from .registry import ToolRegistry
from .version import VersionDetector

__version__ = "0.1.0"
__all__ = [
    'DependencySystem',
    'ConfigManager',
    'ToolRegistry',
    'StatusCache',
    'ToolStatus',
    'DetectionEngine',
    'CapabilityResolver',
    'InstallationOrchestrator',
    'InstallationRecord',
    'DegradationManager',
    'DegradationState',
    'RecommendationEngine',
    'PlatformUtils',
]


class DependencySystem:
    """Wires the dependency components together from configuration"""

    def __init__(self, config: Optional[ConfigManager] = None,
                 registry: Optional[ToolRegistry] = None,
                 cache_dir: Optional[Union[str, Path]] = None,
                 platform=PlatformUtils,
                 environment: Optional[Environment] = None):
        setup_logging()
        self.logger = get_logger('fubdeps')

        self.config = config or ConfigManager()
        apply_verbosity(self.config.get('silent_mode'), self.config.get('verbose_mode'))

        self.platform = platform
        self.cache_dir = Path(cache_dir) if cache_dir else Path(env.cache_dir)

        if registry is None:
            registry_file = self.config.get('registry_file')
            registry = ToolRegistry.from_file(registry_file) if registry_file else ToolRegistry.builtin()
        self.registry = registry

        self.cache = StatusCache(self.cache_dir, ttl=self.config.cache_ttl,
                                 platform_id=platform.get_platform_id())
        self.cache.load()

        self.detection = DetectionEngine(
            self.registry, self.cache, platform=platform,
            detector=VersionDetector(runner=platform.run_command),
            parallel=self.config.parallel_checks,
            max_workers=self.config.max_parallel,
            skip_tools=self.config.skip_tools(),
            only_category=self.config.only_category,
        )
        self.resolver = CapabilityResolver(self.registry, self.cache,
                                           environment or Environment(platform))
        self.installer = InstallationOrchestrator(
            self.registry, self.cache, self.detection,
            InstallationLog(self.cache_dir / 'installation.log'),
            platform=platform,
            preference=self.config.preference_order(),
            forced_manager=self.config.forced_package_manager,
            timeout=self.config.install_timeout,
            backup_dir=self.cache_dir / 'backups',
            backup_before_install=bool(self.config.get('backup_before_install')),
            min_disk_space=self.config.get('min_disk_space'),
            auto_confirm=self.config.auto_install,
        )
        self.degradation = DegradationManager(self.registry, self.cache)
        self.alternatives = ToolAlternatives(self.cache, platform)
        self.recommender = RecommendationEngine(self.registry, self.cache, self.resolver.environment)

        if self.config.auto_check:
            self.refresh()

    def ensure_package_manager(self) -> None:
        """
        Raises:
            NoSuitableManager: the host has no supported package manager at all
        """
        if not self.platform.detect_available_package_managers():
            raise NoSuitableManager('*', "no supported package manager found on this system")

    def refresh(self, force: bool = False) -> Dict[str, ToolStatus]:
        """Detect all tools, then recompute fallbacks"""
        results = self.detection.detect_all(force=force)
        self.degradation.activate_fallbacks()
        return results

    # Capability API

    def resolve(self, capability: str):
        return self.resolver.resolve(capability)

    def is_available(self, tool: str, capability: str) -> bool:
        return self.resolver.is_available(tool, capability)

    def degradation_state(self) -> DegradationState:
        return self.degradation.analyze()

    # Installation API

    def can_install(self, tool: str) -> Tuple[bool, str]:
        return self.installer.can_install(tool)

    def install(self, tool: str, force: bool = False, skip_confirm: bool = False,
                confirm=None) -> InstallationRecord:
        record = self.installer.install(tool, force=force, skip_confirm=skip_confirm, confirm=confirm)
        self.degradation.activate_fallbacks()
        return record

    # Recommendations

    def recommendations(self, limit: int = 10) -> List[Recommendation]:
        """Suggested tools, empty when recommendations are switched off"""
        if not self.config.show_recommendations:
            return []
        return self.recommender.recommend(limit)

    def install_recommended(self, limit: int = 10, confirm=None) -> List[InstallationRecord]:
        """
        Install the current recommendations

        With install_all_recommended set no confirmation is asked.
        """
        tools = [item.tool for item in self.recommender.recommend(limit)]
        records = self.installer.install_many(
            tools, skip_confirm=self.config.install_all_recommended, confirm=confirm)
        self.degradation.activate_fallbacks()
        return records
