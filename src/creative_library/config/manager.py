"""
Configuration manager for Creative Library.

Settings are resolved in three layers, later layers winning:
built-in defaults -> general (site-wide) file -> user file.

The general file is authoritative and any problem with it aborts the load.
The user file is advisory: when it cannot be read or fails validation it is
skipped with a warning and the library keeps running on the lower layers.
"""

import json
import logging
import os
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional

from .defaults import DEFAULT_CONFIG
from .schemas import ConfigSchema, ConfigValidationError, validate_user_config


logger = logging.getLogger(__name__)

# Directories the library writes into; created on every load
MANAGED_DIRECTORIES = (
    'paths.data_directory',
    'paths.vault_directory',
    'paths.log_directory',
    'thumbnails.cache_directory',
)


def _lookup(config: Dict[str, Any], key: str, default: Any = None) -> Any:
    node = config
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def _assign(config: Dict[str, Any], key: str, value: Any) -> None:
    *parents, leaf = key.split('.')
    node = config
    for part in parents:
        child = node.get(part)
        if not isinstance(child, dict):
            child = node[part] = {}
        node = child
    node[leaf] = value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Merge ``override`` into ``base`` in place; nested sections merge key by key."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = deepcopy(value)


def _read_json_object(config_path: Path) -> Dict[str, Any]:
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigValidationError(f"Invalid JSON in config file {config_path}: {e}")
    except OSError as e:
        raise ConfigValidationError(f"Cannot read config file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigValidationError(f"Configuration file must contain a JSON object: {config_path}")
    return data


class ConfigurationManager:
    """Layered settings with dot-notation access."""

    # Preferences owned by the user; only these are written back to the user file
    USER_SPECIFIC_KEYS = (
        'library.default_sort_by',
        'library.default_sort_order',
        'thumbnails.size',
        'logging.level',
    )

    def __init__(self):
        self._config: Dict[str, Any] = {}
        self._config_paths: Dict[str, Path] = {}
        self._loaded = False

    def load_configuration(
        self,
        general_config_path: Optional[str] = None,
        user_config_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Build the effective configuration from all three layers.

        Args:
            general_config_path: Site-wide settings file, optional
            user_config_path: Per-user settings file, optional. It is also the
                target of persisted ``set`` calls.

        Returns:
            The merged configuration dictionary

        Raises:
            ConfigValidationError: The general file is unreadable or the merged
                result is out of range
        """
        logger.info("Loading configuration files...")

        config = deepcopy(DEFAULT_CONFIG)
        paths = {}
        if general_config_path:
            paths['general'] = Path(general_config_path)
        if user_config_path:
            paths['user'] = Path(user_config_path)

        general = paths.get('general')
        if general is not None and general.exists():
            _deep_merge(config, _read_json_object(general))
            logger.info(f"Loaded general configuration from: {general}")

        user = paths.get('user')
        if user is not None and user.exists():
            try:
                user_layer = _read_json_object(user)
                validate_user_config(user_layer)
            except ConfigValidationError as e:
                logger.warning(f"Failed to load user config: {e}")
            else:
                _deep_merge(config, user_layer)
                logger.info(f"Loaded user configuration from: {user}")

        try:
            ConfigSchema.validate_config(config)
        except ConfigValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

        self._config = config
        self._config_paths = paths
        self._loaded = True

        self._ensure_directories()
        self.ensure_config_files_exist()

        logger.info("Configuration loading completed successfully")
        return self._config

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("Configuration not loaded. Call load_configuration() first.")

    def _ensure_directories(self) -> None:
        for key in MANAGED_DIRECTORIES:
            directory = self.get(key)
            if not directory:
                continue
            try:
                Path(directory).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Cannot create directory {directory}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a setting by dotted key, e.g. ``'thumbnails.size'``.

        Raises:
            RuntimeError: If configuration not loaded
        """
        self._require_loaded()
        return _lookup(self._config, key, default)

    def set(self, key: str, value: Any, persist: bool = True) -> None:
        """
        Change a setting in memory.

        With ``persist`` the user-owned preferences are written to the user
        file as well; site-wide settings never leave memory.
        """
        self._require_loaded()
        _assign(self._config, key, value)
        logger.debug(f"Set configuration: {key} = {value}")

        if persist and 'user' in self._config_paths:
            self._save_user_config()

    def save_user_config(self) -> None:
        if 'user' not in self._config_paths:
            logger.warning("No user config path available for saving")
            return
        self._save_user_config()

    def _save_user_config(self) -> None:
        user_config_path = self._config_paths['user']

        # Keep whatever else the user put in the file
        saved: Dict[str, Any] = {}
        if user_config_path.exists():
            try:
                saved = _read_json_object(user_config_path)
            except ConfigValidationError as e:
                logger.warning(f"Replacing unreadable user config: {e}")

        for key in self.USER_SPECIFIC_KEYS:
            value = _lookup(self._config, key, None)
            if value is not None:
                _assign(saved, key, deepcopy(value))

        user_config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(user_config_path, 'w', encoding='utf-8') as f:
            json.dump(saved, f, indent=2, ensure_ascii=False)
        logger.info(f"Saved user configuration to: {user_config_path}")

    def reload_configuration(self) -> None:
        """Re-read the same files that were used by the last load."""
        if not self._loaded:
            logger.warning("Cannot reload configuration - not initially loaded")
            return

        general = self._config_paths.get('general')
        user = self._config_paths.get('user')
        self.load_configuration(
            general_config_path=str(general) if general else None,
            user_config_path=str(user) if user else None,
        )

    def get_config_info(self) -> Dict[str, Any]:
        def count_leaves(node: Dict[str, Any]) -> int:
            return sum(count_leaves(v) if isinstance(v, dict) else 1 for v in node.values())

        return {
            'loaded': self._loaded,
            'config_paths': {name: str(path) for name, path in self._config_paths.items()},
            'version': self._config.get('version'),
            'total_keys': count_leaves(self._config),
        }

    def ensure_config_files_exist(self) -> None:
        """Write a starter user file when none exists and auto-creation is on."""
        settings = self.get('config_files', {})
        user_config_path = self._config_paths.get('user')
        if not settings.get('auto_create', True) or user_config_path is None:
            return
        if user_config_path.exists():
            return

        logger.info(f"Creating user configuration file: {user_config_path}")
        try:
            self._write_starter_user_config(user_config_path, settings)
        except OSError as e:
            logger.error(f"Failed to create default user config: {e}")

    def _write_starter_user_config(self, user_config_path: Path, settings: Dict[str, Any]) -> None:
        if settings.get('create_directories', True):
            user_config_path.parent.mkdir(parents=True, exist_ok=True)
            self._chmod(user_config_path.parent, settings.get('directory_permissions', 0o755))

        starter = {
            "user_id": "default_user",
            "library": {
                "default_sort_by": self.get('library.default_sort_by'),
                "default_sort_order": self.get('library.default_sort_order'),
            },
        }
        with open(user_config_path, 'w', encoding='utf-8') as f:
            json.dump(starter, f, indent=2, ensure_ascii=False)
        self._chmod(user_config_path, settings.get('file_permissions', 0o644))

    @staticmethod
    def _chmod(path: Path, mode: int) -> None:
        # Windows ignores POSIX modes
        if os.name == 'nt':
            return
        try:
            os.chmod(path, mode)
        except OSError:
            logger.debug(f"Could not set permissions on {path}")
