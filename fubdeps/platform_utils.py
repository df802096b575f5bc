"""
Platform Utilities Module

Provides host inspection utilities used by detection and installation:
- OS and distribution detection
- Package manager detection and command construction
- System command execution (argument lists only, never shell strings)
- Privilege and disk space checks
"""

import os
import sys
import platform
import subprocess
import shutil
from typing import Dict, List, Optional, Tuple

import distro
import psutil


class PlatformUtils:
    """Platform-specific utility functions"""

    # Package managers supported for tool installation, in fallback order.
    # '{package}' in a template is replaced by the package name.
    PACKAGE_MANAGERS = {
        'apt': {
            'check': ['apt-get', '--version'],
            'install': ['apt-get', 'install', '-y', '{package}'],
            'remove': ['apt-get', 'remove', '-y', '{package}'],
            'is_installed': ['dpkg', '-s', '{package}'],
            'list': ['dpkg', '-l'],
            'privileged': True,
        },
        'snap': {
            'check': ['snap', '--version'],
            'install': ['snap', 'install', '{package}'],
            'remove': ['snap', 'remove', '{package}'],
            'is_installed': ['snap', 'list', '{package}'],
            'list': ['snap', 'list'],
            'privileged': False,
        },
        'flatpak': {
            'check': ['flatpak', '--version'],
            'install': ['flatpak', 'install', '-y', '{package}'],
            'remove': ['flatpak', 'uninstall', '-y', '{package}'],
            'is_installed': ['flatpak', 'info', '{package}'],
            'list': ['flatpak', 'list'],
            'privileged': False,
        },
        'brew': {
            'check': ['brew', '--version'],
            'install': ['brew', 'install', '{package}'],
            'remove': ['brew', 'uninstall', '{package}'],
            'is_installed': ['brew', 'list', '--versions', '{package}'],
            'list': ['brew', 'list'],
            'privileged': False,
        },
        'pacman': {
            'check': ['pacman', '--version'],
            'install': ['pacman', '-S', '--noconfirm', '{package}'],
            'remove': ['pacman', '-R', '--noconfirm', '{package}'],
            'is_installed': ['pacman', '-Q', '{package}'],
            'list': ['pacman', '-Q'],
            'privileged': True,
        },
        'yum': {
            'check': ['yum', '--version'],
            'install': ['yum', 'install', '-y', '{package}'],
            'remove': ['yum', 'remove', '-y', '{package}'],
            'is_installed': ['rpm', '-q', '{package}'],
            'list': ['rpm', '-qa'],
            'privileged': True,
        },
        'dnf': {
            'check': ['dnf', '--version'],
            'install': ['dnf', 'install', '-y', '{package}'],
            'remove': ['dnf', 'remove', '-y', '{package}'],
            'is_installed': ['rpm', '-q', '{package}'],
            'list': ['rpm', '-qa'],
            'privileged': True,
        },
    }

    _available_managers: Optional[List[str]] = None

    @classmethod
    def get_platform_info(cls) -> str:
        """Get detailed platform information"""
        try:
            system = platform.system()
            machine = platform.machine()

            if system == 'Linux':
                return f"{distro.name()} {distro.version()} ({machine})"
            elif system == 'Darwin':
                return f"macOS {platform.mac_ver()[0]} ({machine})"
            return f"{system} ({machine})"
        except Exception:
            return "Unknown platform"

    @classmethod
    def get_os_type(cls) -> str:
        """Get normalized OS type"""
        return platform.system().lower()

    @classmethod
    def get_linux_distribution(cls) -> Optional[str]:
        """Get Linux distribution id (e.g. 'ubuntu')"""
        if platform.system() != 'Linux':
            return None
        return distro.id().lower() or None

    @classmethod
    def get_platform_id(cls) -> str:
        """
        Identifier of the host platform used to invalidate cached detection
        results when the system changes underneath them (release upgrade,
        copied home directory, different machine).
        """
        os_type = cls.get_os_type()
        if os_type == 'linux':
            return f"{distro.id() or 'linux'}_{distro.version() or 'unknown'}_{platform.machine()}"
        return f"{os_type}_{platform.release()}_{platform.machine()}"

    @classmethod
    def command_exists(cls, command: str) -> bool:
        """Check if a command exists in system PATH"""
        return shutil.which(command) is not None

    @classmethod
    def which(cls, command: str) -> Optional[str]:
        """Resolve a command to an executable path"""
        return shutil.which(command)

    @classmethod
    def run_command(cls, command: List[str], timeout: int = 30,
                    capture_output: bool = True) -> Tuple[bool, str, str]:
        """
        Run a system command

        Returns:
            Tuple of (success, stdout, stderr)
        """
        try:
            result = subprocess.run(
                command,
                capture_output=capture_output,
                text=True,
                timeout=timeout,
                check=False
            )
            return (
                result.returncode == 0,
                result.stdout if capture_output else "",
                result.stderr if capture_output else ""
            )
        except subprocess.TimeoutExpired:
            return (False, "", f"Command timed out after {timeout} seconds")
        except FileNotFoundError:
            return (False, "", f"Command not found: {command[0]}")
        except OSError as e:
            return (False, "", str(e))

    @classmethod
    def is_root(cls) -> bool:
        return os.geteuid() == 0

    @classmethod
    def has_sudo(cls) -> bool:
        """True if sudo can be used without an interactive password prompt"""
        if not cls.command_exists('sudo'):
            return False
        success, _, _ = cls.run_command(['sudo', '-n', 'true'], timeout=5)
        return success

    @classmethod
    def requires_privileges(cls, manager: str) -> bool:
        """System-level managers (apt, yum, dnf, pacman) need root or sudo"""
        return cls.PACKAGE_MANAGERS.get(manager, {}).get('privileged', False)

    @classmethod
    def detect_available_package_managers(cls, refresh: bool = False) -> List[str]:
        """Detect available package managers on the system"""
        if cls._available_managers is not None and not refresh:
            return list(cls._available_managers)

        available = []
        for manager_name, manager_config in cls.PACKAGE_MANAGERS.items():
            check_command = manager_config['check']
            if cls.command_exists(check_command[0]):
                # Verify the manager actually works
                success, _, _ = cls.run_command(check_command, timeout=5)
                if success:
                    available.append(manager_name)

        cls._available_managers = available
        return list(available)

    @classmethod
    def build_command(cls, manager: str, action: str, package: Optional[str] = None,
                      as_root: Optional[bool] = None) -> List[str]:
        """
        Build an argument list for a package manager action

        Args:
            manager: Package manager name (apt, snap, ...)
            action: Template key ('install', 'remove', 'is_installed', 'list')
            package: Package name substituted into the template
            as_root: Whether the caller is root; privileged managers get a
                     'sudo' prefix when not (auto-detected if None)

        Returns:
            Command as a list of arguments
        """
        manager_config = cls.PACKAGE_MANAGERS.get(manager)
        if not manager_config or action not in manager_config:
            raise ValueError(f"Unsupported package manager action: {manager} {action}")

        command = [part.replace('{package}', package or '') for part in manager_config[action]]

        if action in ('install', 'remove') and manager_config['privileged']:
            if as_root is None:
                as_root = cls.is_root()
            if not as_root:
                command = ['sudo'] + command

        return command

    @classmethod
    def is_package_installed(cls, package_name: str, package_manager: str) -> bool:
        """Check if a package is installed using the given package manager"""
        try:
            command = cls.build_command(package_manager, 'is_installed', package_name)
        except ValueError:
            return False
        success, _, _ = cls.run_command(command, timeout=10)
        return success

    @classmethod
    def get_free_disk_space(cls, path: str = '/') -> int:
        """Free bytes on the filesystem holding path"""
        return psutil.disk_usage(path).free

    @classmethod
    def get_load_average(cls) -> float:
        """One minute load average"""
        return psutil.getloadavg()[0]

    @classmethod
    def get_system_info(cls) -> Dict[str, str]:
        """Get comprehensive system information"""
        info = {
            'platform': cls.get_platform_info(),
            'platform_id': cls.get_platform_id(),
            'os_type': cls.get_os_type(),
            'python_version': f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        }

        if cls.get_os_type() == 'linux':
            info['distribution'] = cls.get_linux_distribution() or 'unknown'

        info['package_managers'] = ', '.join(cls.detect_available_package_managers())

        try:
            info['cpu_count'] = str(psutil.cpu_count())
            info['memory_gb'] = f"{psutil.virtual_memory().total / (1024**3):.1f}"
            info['disk_free_gb'] = f"{psutil.disk_usage('/').free / (1024**3):.1f}"
        except (OSError, psutil.Error):
            pass

        return info
