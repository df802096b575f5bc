"""Test utilities and helpers for the fubdeps test suite"""

import os
import stat
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from fubdeps.cache import ToolStatus
from fubdeps.platform_utils import PlatformUtils
from fubdeps.registry import ToolDescriptor, ToolRegistry

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE_DIR = PROJECT_ROOT / 'fubdeps'

BASE_TIME = 1_700_000_000.0


class FakeClock:
    """Controllable replacement for time.time"""

    def __init__(self, now: float = BASE_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePlatform:
    """
    Stand-in for PlatformUtils

    Executables are real files in a temporary bin directory so that
    os.access checks behave as on a real host. Command results are
    scripted per argument list.
    """

    def __init__(self, bin_dir: Path, managers: Iterable[str] = ('apt',),
                 root: bool = True, sudo: bool = False,
                 free_disk: int = 10 * 1024 ** 3, platform_id: str = 'ubuntu_22.04_x86_64'):
        self.bin_dir = Path(bin_dir)
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        self.managers = list(managers)
        self.root = root
        self.sudo = sudo
        self.free_disk = free_disk
        self.load_average = 0.0
        self.platform_id = platform_id
        self.commands: Dict[str, str] = {}
        self.responses: Dict[Tuple[str, ...], Tuple[bool, str, str]] = {}
        self.calls: List[List[str]] = []

    # Scripting helpers

    def add_executable(self, name: str, version_output: Optional[str] = None,
                       flag: str = '--version') -> str:
        path = self.bin_dir / name
        path.write_text('#!/bin/sh\nexit 0\n')
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        self.commands[name] = str(path)
        if version_output is not None:
            self.respond([str(path), flag], stdout=version_output)
        return str(path)

    def add_command(self, name: str) -> None:
        """Command present on PATH without a backing file (find, grep, ...)"""
        self.commands[name] = f"/usr/bin/{name}"

    def remove_executable(self, name: str) -> None:
        path = self.commands.pop(name, None)
        if path and os.path.exists(path):
            os.remove(path)

    def respond(self, command: List[str], success: bool = True,
                stdout: str = '', stderr: str = '') -> None:
        self.responses[tuple(command)] = (success, stdout, stderr)

    # PlatformUtils interface

    def which(self, command: str) -> Optional[str]:
        return self.commands.get(command)

    def command_exists(self, command: str) -> bool:
        return command in self.commands

    def run_command(self, command: List[str], timeout: int = 30,
                    capture_output: bool = True) -> Tuple[bool, str, str]:
        self.calls.append(list(command))
        return self.responses.get(tuple(command), (False, '', f"Command not found: {command[0]}"))

    def is_root(self) -> bool:
        return self.root

    def has_sudo(self) -> bool:
        return self.sudo

    def requires_privileges(self, manager: str) -> bool:
        return PlatformUtils.requires_privileges(manager)

    def detect_available_package_managers(self, refresh: bool = False) -> List[str]:
        return list(self.managers)

    def build_command(self, manager: str, action: str, package: Optional[str] = None,
                      as_root: Optional[bool] = None) -> List[str]:
        return PlatformUtils.build_command(manager, action, package,
                                           as_root=self.root if as_root is None else as_root)

    def get_free_disk_space(self, path: str = '/') -> int:
        return self.free_disk

    def get_load_average(self) -> float:
        return self.load_average

    def get_platform_id(self) -> str:
        return self.platform_id


def make_tool(name: str, category: str = 'core', **kwargs) -> ToolDescriptor:
    kwargs.setdefault('packages', {'apt': name})
    return ToolDescriptor(name=name, category=category, **kwargs)


def make_registry(*tools: ToolDescriptor) -> ToolRegistry:
    return ToolRegistry(list(tools))


def make_status(tool: str, status: str = 'installed', checked: float = BASE_TIME,
                **kwargs) -> ToolStatus:
    return ToolStatus(tool, status, last_checked=checked, **kwargs)


def sample_tools() -> List[ToolDescriptor]:
    """Small registry covering every category used by degradation"""
    return [
        make_tool('gum', 'core', packages={'apt': 'gum', 'snap': 'gum'}, min_version='0.8.0',
                  capabilities=frozenset({'interactive-ui', 'tui'}), priority=95,
                  benefit='Beautiful dialogs'),
        make_tool('fd', 'core', packages={'apt': 'fd-find', 'snap': 'fd'},
                  executables=('fd', 'fdfind'), min_version='8.0.0',
                  capabilities=frozenset({'file-search', 'search'}), priority=85),
        make_tool('ripgrep', 'core', executables=('rg',), min_version='13.0.0',
                  capabilities=frozenset({'search', 'text-search'}), priority=85),
        make_tool('btop', 'core', min_version='1.2.0',
                  capabilities=frozenset({'monitoring'}), priority=90),
        make_tool('bat', 'enhanced', executables=('bat', 'batcat'),
                  capabilities=frozenset({'file-viewer', 'syntax-highlighting'}), priority=75),
        make_tool('exa', 'enhanced', capabilities=frozenset({'ls-alternative'}), priority=75),
        make_tool('dust', 'enhanced', capabilities=frozenset({'disk-usage'}), priority=70),
        make_tool('duf', 'enhanced', capabilities=frozenset({'disk-space'}), priority=70),
        make_tool('procs', 'enhanced', capabilities=frozenset({'process-list'}), priority=65),
        make_tool('lazygit', 'development', capabilities=frozenset({'git', 'git-ui'}), priority=85),
        make_tool('docker', 'optional', packages={'apt': 'docker.io'}, min_version='20.10.0',
                  capabilities=frozenset({'containers'}), priority=40),
    ]
