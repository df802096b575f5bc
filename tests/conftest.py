"""Test configuration and fixtures for the fubdeps test suite"""

import os
import sys
import pytest
from pathlib import Path
from unittest.mock import Mock, patch

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fubdeps.cache import StatusCache
from fubdeps.common.logger import DepsLogger
from fubdeps.detection import DetectionEngine
from fubdeps.installer import InstallationLog, InstallationOrchestrator
from fubdeps.platform_utils import PlatformUtils
from fubdeps.version import VersionDetector
from tests.utils import FakeClock, FakePlatform, make_registry, sample_tools


@pytest.fixture
def project_root():
    """Fixture providing path to project root directory"""
    return PROJECT_ROOT


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Point every FUB_DEPS_* location at a temporary directory"""
    for key in list(os.environ):
        if key.startswith('FUB_DEPS_'):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv('FUB_DEPS_CONFIG_DIR', str(tmp_path / 'config'))
    monkeypatch.setenv('FUB_DEPS_CACHE_DIR', str(tmp_path / 'cache'))
    monkeypatch.setenv('FUB_DEPS_LOGS_DIR', str(tmp_path / 'logs'))
    monkeypatch.setattr(PlatformUtils, '_available_managers', None)
    DepsLogger.reset()
    yield tmp_path
    DepsLogger.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_platform(tmp_path):
    """Ubuntu-like host running as root with apt available"""
    return FakePlatform(tmp_path / 'bin')


@pytest.fixture
def registry():
    return make_registry(*sample_tools())


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / 'cache'


@pytest.fixture
def cache(cache_dir, clock, fake_platform):
    return StatusCache(cache_dir, platform_id=fake_platform.get_platform_id(), clock=clock)


@pytest.fixture
def detection(registry, cache, fake_platform):
    return DetectionEngine(
        registry, cache, platform=fake_platform,
        detector=VersionDetector(runner=fake_platform.run_command),
        parallel=False, check_outdated=False,
    )


@pytest.fixture
def installation_log(tmp_path):
    return InstallationLog(tmp_path / 'installation.log')


@pytest.fixture
def installer(registry, cache, detection, installation_log, fake_platform):
    return InstallationOrchestrator(
        registry, cache, detection, installation_log,
        platform=fake_platform, timeout=60,
    )


@pytest.fixture
def mock_subprocess():
    """Mock subprocess for testing system commands"""
    with patch('subprocess.run') as mock_run:
        mock_result = Mock()
        mock_result.returncode = 0
        mock_result.stdout = "success"
        mock_result.stderr = ""
        mock_run.return_value = mock_result
        yield mock_run


# Pytest hooks for better test organization
def pytest_configure(config):
    """Configure pytest with custom markers and settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "core: Core module tests")
    config.addinivalue_line("markers", "common: Common library tests")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically"""
    for item in items:
        path = str(item.fspath)
        # Add markers based on test file location
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        if "core" in path:
            item.add_marker(pytest.mark.core)
        elif "common" in path:
            item.add_marker(pytest.mark.common)
