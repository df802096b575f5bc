"""Tests for fubdeps/platform_utils.py"""

import pytest
import subprocess
from unittest.mock import Mock, patch

from fubdeps.platform_utils import PlatformUtils


class TestPlatformUtils:
    """Test cases for PlatformUtils"""

    def test_get_platform_info_darwin(self):
        """Test platform info detection on macOS"""
        with patch('platform.system', return_value='Darwin'), \
             patch('platform.machine', return_value='arm64'), \
             patch('platform.mac_ver', return_value=('13.4.1', ('', '', ''), 'arm64')):

            result = PlatformUtils.get_platform_info()
            assert "macOS 13.4.1 (arm64)" == result

    def test_get_platform_info_linux(self):
        """Test platform info detection on Linux"""
        with patch('platform.system', return_value='Linux'), \
             patch('platform.machine', return_value='x86_64'), \
             patch('fubdeps.platform_utils.distro') as mock_distro:

            mock_distro.name.return_value = 'Ubuntu'
            mock_distro.version.return_value = '22.04'

            result = PlatformUtils.get_platform_info()
            assert "Ubuntu 22.04 (x86_64)" == result

    def test_get_os_type_linux(self):
        """Test OS type detection for Linux"""
        with patch('platform.system', return_value='Linux'):
            assert PlatformUtils.get_os_type() == 'linux'

    def test_get_linux_distribution(self):
        """Test Linux distribution detection"""
        with patch('platform.system', return_value='Linux'), \
             patch('fubdeps.platform_utils.distro') as mock_distro:

            mock_distro.id.return_value = 'Ubuntu'
            assert PlatformUtils.get_linux_distribution() == 'ubuntu'

    def test_get_linux_distribution_non_linux(self):
        """Test Linux distribution detection on non-Linux system"""
        with patch('platform.system', return_value='Darwin'):
            assert PlatformUtils.get_linux_distribution() is None

    def test_get_platform_id_linux(self):
        """Test platform id combines distribution, release and architecture"""
        with patch('platform.system', return_value='Linux'), \
             patch('platform.machine', return_value='x86_64'), \
             patch('fubdeps.platform_utils.distro') as mock_distro:

            mock_distro.id.return_value = 'ubuntu'
            mock_distro.version.return_value = '22.04'
            assert PlatformUtils.get_platform_id() == 'ubuntu_22.04_x86_64'

    def test_command_exists(self):
        """Test command existence check"""
        with patch('shutil.which', return_value='/usr/bin/ls'):
            assert PlatformUtils.command_exists('ls') is True
        with patch('shutil.which', return_value=None):
            assert PlatformUtils.command_exists('nonexistent-command') is False

    @patch('subprocess.run')
    def test_run_command_success(self, mock_subprocess):
        """Test successful command execution"""
        mock_result = Mock()
        mock_result.returncode = 0
        mock_result.stdout = "Success output"
        mock_result.stderr = ""
        mock_subprocess.return_value = mock_result

        success, stdout, stderr = PlatformUtils.run_command(['echo', 'test'])

        assert success is True
        assert stdout == "Success output"
        assert stderr == ""
        assert mock_subprocess.call_args[0][0] == ['echo', 'test']

    @patch('subprocess.run')
    def test_run_command_failure(self, mock_subprocess):
        """Test failed command execution"""
        mock_result = Mock()
        mock_result.returncode = 1
        mock_result.stdout = ""
        mock_result.stderr = "Error occurred"
        mock_subprocess.return_value = mock_result

        success, stdout, stderr = PlatformUtils.run_command(['false'])

        assert success is False
        assert stderr == "Error occurred"

    @patch('subprocess.run')
    def test_run_command_timeout(self, mock_subprocess):
        """Test command execution timeout"""
        mock_subprocess.side_effect = subprocess.TimeoutExpired(['sleep', '10'], 5)

        success, stdout, stderr = PlatformUtils.run_command(['sleep', '10'], timeout=5)

        assert success is False
        assert "timed out" in stderr

    @patch('subprocess.run')
    def test_run_command_not_found(self, mock_subprocess):
        """Test command execution with non-existent command"""
        mock_subprocess.side_effect = FileNotFoundError()

        success, stdout, stderr = PlatformUtils.run_command(['nonexistent-command'])

        assert success is False
        assert "Command not found" in stderr

    def test_detect_available_package_managers(self):
        """Test package manager detection verifies each manager runs"""
        with patch.object(PlatformUtils, 'command_exists') as mock_exists, \
             patch.object(PlatformUtils, 'run_command') as mock_run:

            mock_exists.side_effect = lambda cmd: cmd in ('apt-get', 'snap')
            mock_run.side_effect = lambda cmd, timeout=30: (cmd[0] == 'apt-get', '', '')

            result = PlatformUtils.detect_available_package_managers(refresh=True)
            assert result == ['apt']

    def test_detect_available_package_managers_memoized(self):
        """Test detection result is reused until refreshed"""
        with patch.object(PlatformUtils, 'command_exists', return_value=False) as mock_exists:
            assert PlatformUtils.detect_available_package_managers(refresh=True) == []
            calls = mock_exists.call_count
            PlatformUtils.detect_available_package_managers()
            assert mock_exists.call_count == calls

    def test_build_command_install_as_root(self):
        """Test install command for a root user"""
        command = PlatformUtils.build_command('apt', 'install', 'fd-find', as_root=True)
        assert command == ['apt-get', 'install', '-y', 'fd-find']

    def test_build_command_sudo_prefix(self):
        """Test privileged managers get sudo for non-root users"""
        command = PlatformUtils.build_command('apt', 'remove', 'gum', as_root=False)
        assert command == ['sudo', 'apt-get', 'remove', '-y', 'gum']

    def test_build_command_unprivileged_manager(self):
        """Test user-level managers never get sudo"""
        command = PlatformUtils.build_command('snap', 'install', 'gum', as_root=False)
        assert command == ['snap', 'install', 'gum']

    def test_build_command_keeps_package_as_single_argument(self):
        """Test package names are never split or interpreted by a shell"""
        command = PlatformUtils.build_command('apt', 'install', 'gum; rm -rf /', as_root=True)
        assert command[-1] == 'gum; rm -rf /'

    def test_build_command_unknown(self):
        """Test unknown manager or action"""
        with pytest.raises(ValueError):
            PlatformUtils.build_command('zypper', 'install', 'gum')
        with pytest.raises(ValueError):
            PlatformUtils.build_command('apt', 'upgrade', 'gum')

    def test_requires_privileges(self):
        """Test privilege requirements per manager"""
        assert PlatformUtils.requires_privileges('apt') is True
        assert PlatformUtils.requires_privileges('snap') is False
        assert PlatformUtils.requires_privileges('unknown') is False

    def test_has_sudo(self):
        """Test non-interactive sudo check"""
        with patch.object(PlatformUtils, 'command_exists', return_value=True), \
             patch.object(PlatformUtils, 'run_command', return_value=(True, '', '')) as mock_run:
            assert PlatformUtils.has_sudo() is True
            mock_run.assert_called_once_with(['sudo', '-n', 'true'], timeout=5)

        with patch.object(PlatformUtils, 'command_exists', return_value=False):
            assert PlatformUtils.has_sudo() is False

    def test_is_package_installed(self):
        """Test package query uses the manager's is_installed command"""
        with patch.object(PlatformUtils, 'run_command', return_value=(True, '', '')) as mock_run:
            assert PlatformUtils.is_package_installed('gum', 'apt') is True
            mock_run.assert_called_once_with(['dpkg', '-s', 'gum'], timeout=10)

        assert PlatformUtils.is_package_installed('gum', 'unknown') is False

    def test_get_free_disk_space(self):
        """Test free disk space comes from psutil"""
        with patch('fubdeps.platform_utils.psutil.disk_usage') as mock_usage:
            mock_usage.return_value = Mock(free=1024)
            assert PlatformUtils.get_free_disk_space('/') == 1024

    def test_get_load_average(self):
        """Test the one minute load average comes from psutil"""
        with patch('fubdeps.platform_utils.psutil.getloadavg', return_value=(1.5, 1.0, 0.5)):
            assert PlatformUtils.get_load_average() == 1.5

    def test_get_system_info_basic(self):
        """Test getting basic system information"""
        with patch.object(PlatformUtils, 'get_platform_info', return_value='Ubuntu 22.04 (x86_64)'), \
             patch.object(PlatformUtils, 'get_platform_id', return_value='ubuntu_22.04_x86_64'), \
             patch.object(PlatformUtils, 'get_os_type', return_value='linux'), \
             patch.object(PlatformUtils, 'get_linux_distribution', return_value='ubuntu'), \
             patch.object(PlatformUtils, 'detect_available_package_managers', return_value=['apt']):

            info = PlatformUtils.get_system_info()

            assert info['platform'] == 'Ubuntu 22.04 (x86_64)'
            assert info['distribution'] == 'ubuntu'
            assert info['package_managers'] == 'apt'
