"""
Configuration loader for the CMS link client
Features: JSON config, environment overrides, validation, reload, default file generation
"""
import os
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Config file path (CMS_CONFIG_FILE overrides)
CONFIG_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.json')

# Cache for loaded config
_config_cache: Optional[Dict[str, Any]] = None

_TRUE_STRINGS = ('true', '1', 'yes', 'on')


def _as_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_STRINGS


# Environment variable -> (section, key, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    'CMS_SERVER_URL': ('server', 'server_url', str),
    'CMS_API_PORT': ('server', 'api_port', int),
    'CMS_RTMP_PORT': ('server', 'rtmp_port', int),
    'CMS_RTSP_PORT': ('server', 'rtsp_port', int),
    'CMS_HLS_PORT': ('server', 'hls_port', int),
    'CMS_ACCOUNT': ('credentials', 'account', str),
    'CMS_PASSWORD': ('credentials', 'password', str),
    'ALARM_POLL_INTERVAL': ('polling', 'alarm_interval_seconds', float),
    'LOG_LEVEL': ('logging', 'level', str.upper),
    'LOG_FILE': ('logging', 'log_file', str),
    'LOG_JSON': ('logging', 'json_format', _as_bool),
}

PORT_KEYS = ('api_port', 'rtmp_port', 'rtsp_port', 'hls_port')


def _config_path() -> str:
    return os.getenv('CMS_CONFIG_FILE') or CONFIG_FILE


class Config:
    """Configuration loader with environment variable overrides and validation"""

    @staticmethod
    def load() -> Dict[str, Any]:
        """Load configuration from config.json with environment variable overrides"""
        global _config_cache

        if _config_cache is not None:
            return _config_cache

        config = Config._merge_with_defaults(Config._load_from_file())
        config = Config._apply_env_overrides(config)
        Config._validate(config)

        _config_cache = config
        return config

    @staticmethod
    def reload() -> Dict[str, Any]:
        """Drop the cached configuration and load it again."""
        global _config_cache
        _config_cache = None
        logger.info("Configuration cache cleared, reloading...")
        return Config.load()

    @staticmethod
    def _load_from_file() -> Dict[str, Any]:
        """Read the JSON file; a missing or unreadable file yields {} (defaults)."""
        path = _config_path()
        if not os.path.exists(path):
            logger.debug(f"Config file not found: {path}, using defaults")
            return {}

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file {path}: {e}")
            return {}
        except OSError as e:
            logger.error(f"Error reading config file {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Config file {path} must contain a JSON object")
            return {}

        logger.debug(f"Loaded config from {path}")
        return data

    @staticmethod
    def _get_defaults() -> Dict[str, Any]:
        """Default configuration values"""
        return {
            "server": {
                "server_url": "https://cloud.example.tld",
                "api_port": 443,
                "rtmp_port": 1935,
                "rtsp_port": 6604,
                "hls_port": 16604
            },
            "credentials": {
                "account": None,
                "password": None
            },
            "polling": {
                "alarm_interval_seconds": 5.0,
                "coord_system": 0,
                "alarm_log_file": "alarms.log"
            },
            "logging": {
                "level": "INFO",
                "log_file": None,
                "json_format": False,
                "max_bytes": 10485760,
                "backup_count": 5
            }
        }

    @staticmethod
    def _merge_with_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay file values on the defaults, one section at a time"""
        result = Config._get_defaults()
        for section, values in config.items():
            if isinstance(result.get(section), dict) and isinstance(values, dict):
                result[section].update(values)
            else:
                result[section] = values
        return result

    @staticmethod
    def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply ENV_OVERRIDES; unset or empty variables are ignored."""
        for env_name, (section, key, convert) in ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            try:
                config.setdefault(section, {})[key] = convert(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {env_name}: {raw!r}") from None
        return config

    @staticmethod
    def _validate(config: Dict[str, Any]):
        """Validate configuration"""
        errors = []
        warnings = []

        server = config.get('server')
        if not isinstance(server, dict):
            errors.append("Missing required section: server")
            server = {}

        server_url = server.get('server_url') or ''
        if not server_url:
            errors.append("server.server_url is not configured")
        elif not server_url.startswith(('http://', 'https://')):
            errors.append(f"server.server_url must start with http:// or https://: {server_url}")

        for port_key in PORT_KEYS:
            try:
                port = int(server.get(port_key, 0))
            except (ValueError, TypeError):
                errors.append(f"server.{port_key} is not an integer")
                continue
            if not 0 < port < 65536:
                errors.append(f"server.{port_key} out of range: {port}")

        polling = config.get('polling') or {}
        try:
            interval = float(polling.get('alarm_interval_seconds', 5.0))
        except (ValueError, TypeError):
            errors.append("polling.alarm_interval_seconds is not a number")
        else:
            if interval <= 0:
                errors.append("polling.alarm_interval_seconds must be positive")
            elif interval < 2:
                warnings.append("Alarm poll interval is very low (<2s), may cause API rate limiting")

        if polling.get('coord_system', 0) not in (0, 1, 2):
            errors.append("polling.coord_system must be 0 (WGS84), 1 (Google) or 2 (Baidu)")

        credentials = config.get('credentials') or {}
        if credentials.get('password') and server_url.startswith('http://'):
            warnings.append("Password will be sent over plain HTTP")

        for error in errors:
            logger.error(f"Config error: {error}")
        for warning in warnings:
            logger.warning(f"Config warning: {warning}")

        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

    @staticmethod
    def get(key: str, default=None):
        """Get config value using dot notation (e.g., 'server.rtsp_port')"""
        value: Any = Config.load()
        for part in key.split('.'):
            if not isinstance(value, dict) or value.get(part) is None:
                return default
            value = value[part]
        return value

    @staticmethod
    def _typed(key: str, default: Any, convert: Callable[[Any], Any]) -> Any:
        value = Config.get(key)
        if value is None:
            return default
        try:
            return convert(value)
        except (ValueError, TypeError):
            logger.warning(f"Config value {key}={value!r} is not valid, using {default!r}")
            return default

    @staticmethod
    def get_int(key: str, default: int = 0) -> int:
        return Config._typed(key, default, int)

    @staticmethod
    def get_float(key: str, default: float = 0.0) -> float:
        return Config._typed(key, default, float)

    @staticmethod
    def get_bool(key: str, default: bool = False) -> bool:
        return Config._typed(key, default, lambda v: _as_bool(v) if isinstance(v, str) else bool(v))

    @staticmethod
    def write_default(path: Optional[str] = None, overwrite: bool = False) -> str:
        """
        Write the default configuration to a JSON file.

        Credentials are left empty; supply them via CMS_ACCOUNT/CMS_PASSWORD
        or edit the file.

        Returns:
            Path of the written file

        Raises:
            FileExistsError: file exists and overwrite is False
        """
        path = path or _config_path()
        if os.path.exists(path) and not overwrite:
            raise FileExistsError(f"Config file already exists: {path}")

        with open(path, 'w', encoding='utf-8') as f:
            json.dump(Config._get_defaults(), f, indent=2)
            f.write('\n')

        logger.info(f"Wrote default config to {path}")
        if os.path.abspath(path) == os.path.abspath(_config_path()):
            Config.reload()
        return path
