"""
Environment Management Module

Uses python-dotenv for environment variable management.

Usage:
    from fubdeps.env import env

    print(env.cache_dir)
    print(env.logs_dir)
    print(env.log_level)
"""

import os
from pathlib import Path
from dotenv import load_dotenv


# Global constants
FUBDEPS_VERSION = '0.1.0'

home_dir = Path.home()
default_config_dir = Path(os.getenv('XDG_CONFIG_HOME', home_dir / '.config')) / 'fub' / 'dependencies'
default_cache_dir = Path(os.getenv('XDG_CACHE_HOME', home_dir / '.cache')) / 'fub' / 'dependencies'
default_logs_dir = Path(os.getenv('XDG_STATE_HOME', home_dir / '.local' / 'state')) / 'fub' / 'logs'


def get_env_file() -> Path:
    """Location of the .env file (FUB_DEPS_ENV_FILE wins)"""
    override = os.getenv('FUB_DEPS_ENV_FILE')
    if override:
        return Path(override)
    return default_config_dir / '.env'


def load_env_file(override: bool = False) -> bool:
    """Load variables from the .env file, returns True when a file was read"""
    env_file = get_env_file()
    if env_file.exists():
        load_dotenv(env_file, override=override)
        return True
    return False


# Load environment variables
load_env_file()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class EnvConfig:
    """Environment configuration object"""

    @property
    def config_dir(self) -> str:
        return os.getenv('FUB_DEPS_CONFIG_DIR', str(default_config_dir))

    @property
    def cache_dir(self) -> str:
        return os.getenv('FUB_DEPS_CACHE_DIR', str(default_cache_dir))

    @property
    def logs_dir(self) -> str:
        return os.getenv('FUB_DEPS_LOGS_DIR', str(default_logs_dir))

    @property
    def log_level(self) -> str:
        return os.getenv('FUB_DEPS_LOGGING_CONSOLE_LEVEL', 'INFO')

    @property
    def log_file_enabled(self) -> bool:
        return _as_bool(os.getenv('FUB_DEPS_LOGGING_FILE_ENABLED', 'false'))

    @property
    def log_file_level(self) -> str:
        return os.getenv('FUB_DEPS_LOGGING_FILE_LEVEL', 'DEBUG')

    @property
    def log_simple_format(self) -> bool:
        return _as_bool(os.getenv('FUB_DEPS_LOGGING_CONSOLE_SIMPLE_FORMAT', 'true'))

    @property
    def log_max_files(self) -> int:
        return int(os.getenv('FUB_DEPS_LOGGING_MAX_FILES', '5'))

    @property
    def log_max_size(self) -> str:
        return os.getenv('FUB_DEPS_LOGGING_MAX_SIZE', '10MB')

    @property
    def version(self) -> str:
        return FUBDEPS_VERSION


# Global env object
env = EnvConfig()


def get_config_summary() -> dict:
    """Get environment summary"""
    fub_vars = {k: v for k, v in os.environ.items() if k.startswith('FUB_DEPS_')}

    return {
        'env_file': str(get_env_file()),
        'env_file_exists': get_env_file().exists(),
        'overrides_count': len(fub_vars),
        'paths': {
            'config_dir': env.config_dir,
            'cache_dir': env.cache_dir,
            'logs_dir': env.logs_dir
        }
    }
