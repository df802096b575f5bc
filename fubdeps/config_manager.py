"""
Configuration Management Module

Handles the dependency engine configuration:
- YAML configuration file with defaults
- Schema validation (types, choices, ranges, formats)
- Environment variable overrides (FUB_DEPS_*)
"""

import os
import re
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .env import env
from .errors import ConfigurationError
from .platform_utils import PlatformUtils

logger = logging.getLogger(__name__)


@dataclass
class ConfigSchema:
    """Configuration schema definition"""
    name: str
    type: str  # 'string', 'integer', 'boolean'
    default: Any
    description: str
    required: bool = False
    choices: Optional[List[str]] = None
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    pattern: Optional[str] = None


CONFIG_SCHEMA: List[ConfigSchema] = [
    ConfigSchema('auto_check', 'boolean', True, 'Check tool status automatically at startup'),
    ConfigSchema('auto_install', 'boolean', False, 'Install without asking for confirmation'),
    ConfigSchema('show_recommendations', 'boolean', True, 'Show tool recommendations'),
    ConfigSchema('cache_ttl', 'integer', 86400, 'Seconds a detection result stays valid',
                 min_value=60, max_value=7 * 86400),
    ConfigSchema('parallel_checks', 'boolean', True, 'Detect tools with a worker pool'),
    ConfigSchema('max_parallel', 'integer', 4, 'Maximum detection workers',
                 min_value=1, max_value=10),
    ConfigSchema('package_manager_preference', 'string', 'apt,snap,flatpak',
                 'Comma separated package manager preference order'),
    ConfigSchema('preferred_package_manager', 'string', '',
                 'Force a specific package manager (empty for automatic)',
                 choices=[''] + list(PlatformUtils.PACKAGE_MANAGERS)),
    ConfigSchema('install_timeout', 'integer', 300, 'Installation timeout in seconds',
                 min_value=30, max_value=1800),
    ConfigSchema('backup_before_install', 'boolean', True, 'Snapshot package state before installing'),
    ConfigSchema('min_disk_space', 'string', '100MB', 'Free disk space required before installing',
                 pattern=r'^[0-9]+[KMGT]?B?$'),
    ConfigSchema('silent_mode', 'boolean', False, 'Only log warnings and errors'),
    ConfigSchema('verbose_mode', 'boolean', False, 'Log debug details'),
    ConfigSchema('skip_tools', 'string', '', 'Comma separated tools to ignore'),
    ConfigSchema('only_category', 'string', '', 'Only detect tools in this category',
                 choices=['', 'core', 'enhanced', 'development', 'system', 'optional']),
    ConfigSchema('install_all_recommended', 'boolean', False, 'Install every recommended tool'),
    ConfigSchema('registry_file', 'string', '', 'Optional YAML registry overriding the built-in tools'),
]

SCHEMA_BY_NAME = {field.name: field for field in CONFIG_SCHEMA}

# Environment variable -> configuration key
ENV_OVERRIDES = {
    'FUB_DEPS_AUTO_CHECK': 'auto_check',
    'FUB_DEPS_AUTO_INSTALL': 'auto_install',
    'FUB_DEPS_SILENT': 'silent_mode',
    'FUB_DEPS_VERBOSE': 'verbose_mode',
    'FUB_DEPS_PACKAGE_MANAGER': 'preferred_package_manager',
}


def default_config() -> Dict[str, Any]:
    return {field.name: field.default for field in CONFIG_SCHEMA}


def _coerce(field: ConfigSchema, value: Any) -> Any:
    """Convert string input (env vars, CLI) to the schema type"""
    if not isinstance(value, str):
        return value
    if field.type == 'boolean':
        lowered = value.strip().lower()
        if lowered in ('1', 'true', 'yes', 'on'):
            return True
        if lowered in ('0', 'false', 'no', 'off'):
            return False
        raise ConfigurationError(f"Field '{field.name}' must be a boolean, got {value!r}")
    if field.type == 'integer':
        try:
            return int(value.strip())
        except ValueError:
            raise ConfigurationError(f"Field '{field.name}' must be an integer, got {value!r}")
    return value


def validate_config_schema(config: Dict[str, Any],
                           schema: List[ConfigSchema] = CONFIG_SCHEMA) -> List[str]:
    """
    Validate configuration against schema

    Returns:
        List of validation error messages
    """
    errors = []

    for field in schema:
        value = config.get(field.name)

        if field.required and value is None:
            errors.append(f"Required field '{field.name}' is missing")
            continue

        if value is None:
            continue

        # bool is a subclass of int, check it explicitly
        if field.type == 'string' and not isinstance(value, str):
            errors.append(f"Field '{field.name}' must be a string")
            continue
        elif field.type == 'integer' and (not isinstance(value, int) or isinstance(value, bool)):
            errors.append(f"Field '{field.name}' must be an integer")
            continue
        elif field.type == 'boolean' and not isinstance(value, bool):
            errors.append(f"Field '{field.name}' must be a boolean")
            continue

        if field.choices and value not in field.choices:
            errors.append(f"Field '{field.name}' must be one of: {field.choices}")

        if field.type == 'integer':
            if field.min_value is not None and value < field.min_value:
                errors.append(f"Field '{field.name}' must be >= {field.min_value}")
            if field.max_value is not None and value > field.max_value:
                errors.append(f"Field '{field.name}' must be <= {field.max_value}")

        if field.pattern and not re.match(field.pattern, value):
            errors.append(f"Field '{field.name}' has invalid format: {value!r}")

    return errors


class ConfigManager:
    """Configuration management system"""

    def __init__(self, config_dir: Optional[Union[str, Path]] = None,
                 apply_env: bool = True):
        """
        Args:
            config_dir: Directory holding config.yaml (defaults to env.config_dir)
            apply_env: Apply FUB_DEPS_* environment overrides after loading
        """
        self.config_dir = Path(config_dir) if config_dir else Path(env.config_dir)
        self.config_file = self.config_dir / 'config.yaml'
        self.config = self._load_config()
        if apply_env:
            self._apply_env_overrides()

        errors = validate_config_schema(self.config)
        if errors:
            raise ConfigurationError(f"Invalid configuration in {self.config_file}: {'; '.join(errors)}")

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """Load and parse a YAML file"""
        try:
            if file_path.exists():
                with open(file_path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f) or {}
                if not isinstance(data, dict):
                    raise ConfigurationError(f"Config file {file_path} must contain a mapping")
                return data
            return {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {file_path}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading config file {file_path}: {e}")

    def _save_yaml_file(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Save data to a YAML file"""
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                yaml.dump(data, f, default_flow_style=False, indent=2,
                          allow_unicode=True, sort_keys=False)
        except OSError as e:
            raise ConfigurationError(f"Error saving config file {file_path}: {e}")

    def _load_config(self) -> Dict[str, Any]:
        """Defaults overlaid with the user's file; unknown keys are ignored"""
        config = default_config()

        if not self.config_file.exists():
            logger.debug(f"Config not found, writing defaults: {self.config_file}")
            self._save_yaml_file(self.config_file, config)
            return config

        user_config = self._load_yaml_file(self.config_file)
        for key, value in user_config.items():
            if key in SCHEMA_BY_NAME:
                config[key] = _coerce(SCHEMA_BY_NAME[key], value)
            else:
                logger.warning(f"⚠️  Unknown configuration key ignored: {key}")
        return config

    def _apply_env_overrides(self) -> None:
        for variable, key in ENV_OVERRIDES.items():
            value = os.environ.get(variable)
            if value is not None:
                self.config[key] = _coerce(SCHEMA_BY_NAME[key], value)
                logger.debug(f"Config {key} overridden by {variable}")

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    def set(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set a configuration value after validating it

        Raises:
            ConfigurationError: unknown key or invalid value
        """
        field = SCHEMA_BY_NAME.get(key)
        if field is None:
            raise ConfigurationError(f"Unknown configuration key: {key}")

        value = _coerce(field, value)
        errors = validate_config_schema({key: value}, [field])
        if errors:
            raise ConfigurationError('; '.join(errors))

        self.config[key] = value
        if save:
            self.save()

    def save(self) -> None:
        self._save_yaml_file(self.config_file, self.config)

    def validate(self) -> List[str]:
        return validate_config_schema(self.config)

    def reset(self) -> None:
        """Reset configuration to defaults"""
        self.config = default_config()
        self.save()

    def export(self, export_path: Union[str, Path]) -> None:
        """Export configuration to a YAML or JSON file"""
        export_path = Path(export_path)
        if export_path.suffix.lower() == '.json':
            with open(export_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=2, ensure_ascii=False)
        else:
            self._save_yaml_file(export_path, self.config)

    # Typed accessors

    @property
    def parallel_checks(self) -> bool:
        return bool(self.config['parallel_checks'])

    @property
    def max_parallel(self) -> int:
        return int(self.config['max_parallel'])

    @property
    def install_timeout(self) -> int:
        return int(self.config['install_timeout'])

    @property
    def cache_ttl(self) -> int:
        return int(self.config['cache_ttl'])

    @property
    def forced_package_manager(self) -> Optional[str]:
        return self.config['preferred_package_manager'] or None

    @property
    def auto_check(self) -> bool:
        return bool(self.config['auto_check'])

    @property
    def auto_install(self) -> bool:
        return bool(self.config['auto_install'])

    @property
    def show_recommendations(self) -> bool:
        return bool(self.config['show_recommendations'])

    @property
    def install_all_recommended(self) -> bool:
        return bool(self.config['install_all_recommended'])

    @property
    def only_category(self) -> Optional[str]:
        return self.config['only_category'] or None

    def preference_order(self) -> List[str]:
        value = self.config['package_manager_preference'] or ''
        return [item.strip() for item in value.split(',') if item.strip()]

    def skip_tools(self) -> List[str]:
        value = self.config['skip_tools'] or ''
        return [item.strip() for item in value.split(',') if item.strip()]

    def get_config_summary(self) -> Dict[str, Any]:
        return {
            'config_file': str(self.config_file),
            'config_exists': self.config_file.exists(),
            'parallel_checks': self.parallel_checks,
            'max_parallel': self.max_parallel,
            'package_managers': self.preference_order(),
            'forced_package_manager': self.forced_package_manager,
            'install_timeout': self.install_timeout,
        }
