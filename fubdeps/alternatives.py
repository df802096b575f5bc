"""
Tool Alternatives

Baseline commands that can stand in for a registry tool when it is not
installed.
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple

from .cache import StatusCache
from .platform_utils import PlatformUtils

logger = logging.getLogger(__name__)

TOOL_ALTERNATIVES: Mapping[str, Tuple[str, ...]] = {
    'gum': ('dialog', 'whiptail'),
    'btop': ('htop', 'top', 'glances'),
    'fd': ('find',),
    'ripgrep': ('grep', 'ag'),
    'dust': ('du', 'ncdu'),
    'duf': ('df',),
    'bat': ('cat', 'less', 'more'),
    'exa': ('ls', 'tree'),
    'procs': ('ps', 'htop', 'top'),
    'lazygit': ('tig', 'git'),
    'neofetch': ('screenfetch', 'uname'),
    'lazydocker': ('docker', 'podman'),
    'fzf': ('select-menu',),
}


class ToolAlternatives:
    """Looks up available stand-ins for missing tools"""

    def __init__(self, cache: StatusCache, platform=PlatformUtils,
                 table: Optional[Mapping[str, Tuple[str, ...]]] = None):
        self.cache = cache
        self.platform = platform
        self.table = dict(table if table is not None else TOOL_ALTERNATIVES)

    def alternatives(self, tool: str) -> List[str]:
        return list(self.table.get(tool, ()))

    def available_alternative(self, tool: str) -> Optional[str]:
        """First alternative command present on the system"""
        for command in self.table.get(tool, ()):
            if self.platform.command_exists(command):
                return command
        return None

    def has_alternative(self, tool: str) -> bool:
        return self.available_alternative(tool) is not None

    def status(self) -> Dict[str, Dict[str, object]]:
        """
        Per tool: whether the primary is usable, and which alternatives
        are present
        """
        report = {}
        for tool, commands in self.table.items():
            status = self.cache.get(tool)
            report[tool] = {
                'installed': bool(status and status.is_usable),
                'alternatives': {command: self.platform.command_exists(command) for command in commands},
            }
        return report
