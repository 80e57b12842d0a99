"""
Configuration module for the effect orchestrator client
Centralizes endpoints, timeouts, reset policy and logging settings with validation
"""

import os
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Any, Optional, Union

# Values accepted for EFFECTS_RESET_POLICY (see models.enums.ResetPolicy)
RESET_POLICIES = ('before_submit', 'after_submit')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigError(Exception):
    """Configuration validation error"""
    pass


def _safe_int_env(name: str, default: int, min_val: int = None, max_val: int = None) -> int:
    """Integer from the environment, clamped to [min_val, max_val]; default if unparsable"""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(f"{name}={raw!r} is not an integer, using {default}")
        return default
    if min_val is not None and value < min_val:
        value = min_val
    if max_val is not None and value > max_val:
        value = max_val
    return value


def _optional_int_env(name: str) -> Optional[int]:
    """Integer id from the environment; None if unset or unparsable"""
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(f"{name}={raw!r} is not an integer, ignoring it")
        return None


class Config:
    """
    Configuration management with:
    - Environment variable overrides, read when a section is accessed
    - JSON file overrides (including per-effect endpoint templates)
    - Validation that reports every problem at once
    """

    # ========== Network Settings ==========
    @classmethod
    def get_network_config(cls) -> dict:
        """Get network configuration from the environment"""
        return {
            'api_base_url': os.getenv('EFFECTS_API_BASE_URL', 'http://localhost:8000'),
            'ws_url': os.getenv('EFFECTS_WS_URL', 'ws://localhost:8000/ws/:gameId'),
            'http_timeout': _safe_int_env('EFFECTS_HTTP_TIMEOUT', 10, 1, 120),
            'reconnect_delay': 1.0,
            'max_reconnect_delay': 30.0,
            'reconnect_multiplier': 1.5,
        }

    NETWORK = property(lambda self: self.get_network_config())

    # ========== Effect Orchestration ==========
    @classmethod
    def get_effects_config(cls) -> dict:
        """Get effect orchestration configuration from the environment"""
        return {
            'reset_policy': os.getenv('EFFECTS_RESET_POLICY', 'before_submit').lower(),
            'game_id': os.getenv('EFFECTS_GAME_ID') or None,
            'player_id': _optional_int_env('EFFECTS_PLAYER_ID'),
            # event name -> endpoint template; null disables the effect's POST,
            # a template enables kinds without a default route (selectSet)
            'endpoints': {},
        }

    EFFECTS = property(lambda self: self.get_effects_config())

    # ========== Logging Settings ==========
    @classmethod
    def get_logging_config(cls) -> dict:
        return {
            'level': os.getenv('LOG_LEVEL', 'INFO'),
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'date_format': '%Y-%m-%d %H:%M:%S',
            'max_bytes': 5 * 1024 * 1024,
            'backup_count': 3,
        }

    LOGGING = property(lambda self: self.get_logging_config())

    # ========== File Settings ==========
    @classmethod
    def get_files_config(cls) -> dict:
        """Directories for config and logs (resolved lazily through FILES)"""
        config_dir = Path(os.getenv('EFFECTS_CONFIG_DIR', str(Path.home() / '.effect_client')))
        return {
            'config_dir': config_dir,
            'log_dir': Path(os.getenv('EFFECTS_LOG_DIR', str(config_dir / 'logs'))),
        }

    def __init__(
        self,
        config_file: Optional[str] = None,
        validate: bool = True,
        ensure_directories: bool = True,
    ):
        """
        Args:
            config_file: JSON file merged over the environment defaults
            validate: Run validate() once everything is loaded
            ensure_directories: Create config_dir and log_dir up front
        """
        self._lock = threading.RLock()
        self._files_config: Optional[dict] = None
        self.config_file = config_file
        self._custom_settings: Dict[str, dict] = {}
        self._logger = logging.getLogger(__name__)

        if ensure_directories:
            self.ensure_directories()

        if config_file:
            self.load_from_file(config_file)

        if validate:
            self.validate()

    @property
    def FILES(self) -> dict:
        """Directory layout, resolved once per instance"""
        with self._lock:
            if self._files_config is None:
                self._files_config = self.get_files_config()
            return self._files_config

    def ensure_directories(self) -> Dict[str, bool]:
        """Create config_dir and log_dir; validate() reports any that failed"""
        status: Dict[str, bool] = {}
        for key in ('config_dir', 'log_dir'):
            path = self.FILES[key]
            try:
                path.mkdir(parents=True, exist_ok=True)
                status[key] = path.is_dir()
            except OSError as e:
                self._logger.warning(f"Could not create {key}: {e}")
                status[key] = False
        self._directory_status = status
        return status

    def validate(self):
        """
        Check every section and report all problems together

        Raises:
            ConfigError: One message listing each invalid setting
        """
        errors = []

        # Network
        api_base_url = str(self.get('network', 'api_base_url', ''))
        if not api_base_url.startswith(('http://', 'https://')):
            errors.append(f"api_base_url must be an http(s) URL: {api_base_url!r}")
        ws_url = str(self.get('network', 'ws_url', ''))
        if not ws_url.startswith(('ws://', 'wss://')):
            errors.append(f"ws_url must be a ws(s) URL: {ws_url!r}")
        timeout = self.get('network', 'http_timeout', 0)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            errors.append("http_timeout must be positive")
        if self.get('network', 'reconnect_delay', 0) <= 0:
            errors.append("reconnect_delay must be positive")
        if self.get('network', 'max_reconnect_delay', 0) < self.get('network', 'reconnect_delay', 0):
            errors.append("max_reconnect_delay must not be below reconnect_delay")

        # Effects
        reset_policy = self.get('effects', 'reset_policy')
        if reset_policy not in RESET_POLICIES:
            errors.append(f"Invalid reset policy: {reset_policy}")
        endpoints = self.get('effects', 'endpoints', {})
        if not isinstance(endpoints, dict):
            errors.append("effects.endpoints must be an object")
        else:
            from models.enums import EffectKind

            for event, template in endpoints.items():
                if EffectKind.from_event(event) is None:
                    errors.append(f"Endpoint override for unknown effect: {event}")
                if template is not None and not isinstance(template, str):
                    errors.append(f"Endpoint template for {event} must be a string or null")
        player_id = self.get('effects', 'player_id')
        if player_id is not None and (
            isinstance(player_id, bool) or not isinstance(player_id, int)
        ):
            errors.append(f"player_id must be an integer: {player_id!r}")

        # Logging
        level = str(self.get('logging', 'level', 'INFO'))
        if level.upper() not in LOG_LEVELS:
            errors.append(f"Invalid log level: {level}")

        # Directories (only known after ensure_directories())
        if hasattr(self, '_directory_status'):
            for key, success in self._directory_status.items():
                if not success:
                    errors.append(f"Required directory {key} could not be created")

        if errors:
            raise ConfigError("Configuration validation failed:\n" + "\n".join(errors))

    def load_from_file(self, filepath: Union[str, Path]):
        """
        Merge overrides from a JSON file into the sections

        Top-level keys are section names, e.g.
            {"network": {"api_base_url": "https://api.example"},
             "effects": {"reset_policy": "after_submit",
                         "endpoints": {"selectSet": "/play/:gameId/actions/select-set"}}}

        A missing file is only a warning; an unreadable or malformed one is
        a ConfigError.
        """
        filepath = Path(filepath)
        if not filepath.exists():
            self._logger.warning(f"Config file not found: {filepath}")
            return

        try:
            data = json.loads(filepath.read_text())
        except json.JSONDecodeError as e:
            self._logger.error(f"Invalid JSON in {filepath}: {e}")
            raise ConfigError(f"Invalid JSON in config file {filepath}: {e}")
        except OSError as e:
            self._logger.error(f"Cannot read {filepath}: {e}")
            raise ConfigError(f"Cannot read config file {filepath}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a JSON object: {filepath}")
        bad_sections = [name for name, values in data.items() if not isinstance(values, dict)]
        if bad_sections:
            raise ConfigError(f"Config sections must be objects: {', '.join(bad_sections)}")

        with self._lock:
            for name, values in data.items():
                self._overrides(name).update(values)
        self._logger.info(f"Loaded configuration from {filepath}")

    def _overrides(self, section: str) -> dict:
        return self._custom_settings.setdefault(section.lower(), {})

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Look a value up: file/CLI overrides first, then the section defaults

        Args:
            section: Section name, any case ('network', 'EFFECTS', ...)
            key: Key inside the section
            default: Returned when neither layer has the key
        """
        with self._lock:
            overrides = self._custom_settings.get(section.lower(), {})
            if key in overrides:
                return overrides[key]

            defaults = getattr(self, section.upper(), None)
            if isinstance(defaults, dict):
                return defaults.get(key, default)
        return default

    def set(self, section: str, key: str, value: Any):
        """Override one value for the lifetime of this instance"""
        with self._lock:
            self._overrides(section)[key] = value

    def endpoint_overrides(self) -> Dict[str, Optional[str]]:
        """Per-effect endpoint templates that replace the built-in defaults"""
        endpoints = self.get('effects', 'endpoints', {})
        return dict(endpoints) if isinstance(endpoints, dict) else {}

    def to_dict(self) -> dict:
        """Snapshot of every section plus the active overrides"""
        with self._lock:
            overrides = {name: dict(values) for name, values in self._custom_settings.items()}

        return {
            'network': self.NETWORK,
            'effects': self.EFFECTS,
            'logging': self.LOGGING,
            'files': {name: str(path) for name, path in self.FILES.items()},
            'custom': overrides,
        }


# Module-level instance shared by the application.
#
# Importing this module must not touch the filesystem or validate anything:
# main.Application creates directories and validates explicitly at startup.
config = Config(validate=False, ensure_directories=False)
