"""Application configuration settings.

This module centralizes all configuration values loaded from:
1. config.base.yaml (shared defaults)
2. config.{env}.yaml (environment-specific: dev, staging, prod)
3. config.local.yaml (local overrides, git-ignored)
4. Environment variables (highest priority)

Default environment is 'development' (DEV).

Usage:
    from config.settings import config

    secret = config.JWT_SECRET
    page_size = config.MESSAGES_DEFAULT_PAGE_SIZE
"""
import os
from pathlib import Path
from typing import Optional, Any, Dict
import yaml


# Environment name mappings
ENV_ALIASES = {
    'dev': 'development',
    'development': 'development',
    'staging': 'staging',
    'stage': 'staging',
    'prod': 'production',
    'production': 'production',
}

# Default environment
DEFAULT_ENV = 'development'

ENV_CONFIG_FILES = {
    'development': 'config.dev.yaml',
    'staging': 'config.staging.yaml',
    'production': 'config.prod.yaml',
}


def _env_bool(name: str) -> Optional[bool]:
    value = os.getenv(name, '').lower()
    if not value:
        return None
    return value in ('1', 'true', 'yes')


def _env_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if not value:
        return None
    return int(value)


class Config:
    """Centralized application configuration.

    Priority (highest to lowest):
    1. Environment variables
    2. config.local.yaml
    3. config.{env}.yaml
    4. config.base.yaml

    Environment is determined by FLASK_ENV, then APP_ENV, then 'development'.
    """

    _config_data: Dict[str, Any] = {}
    _loaded: bool = False
    _current_env: str = DEFAULT_ENV

    def __init__(self):
        if not Config._loaded:
            self._load_config()

    @classmethod
    def _get_environment(cls) -> str:
        """Determine current environment from env vars or default to dev."""
        env = os.getenv('FLASK_ENV') or os.getenv('APP_ENV') or DEFAULT_ENV
        env = env.lower().strip()
        return ENV_ALIASES.get(env, DEFAULT_ENV)

    def _load_config(self):
        """Load configuration from YAML files based on environment."""
        config_dir = Path(__file__).parent
        Config._current_env = self._get_environment()
        Config._config_data = {}

        for file_name in ('config.base.yaml', ENV_CONFIG_FILES[Config._current_env], 'config.local.yaml'):
            path = config_dir / file_name
            if path.exists():
                with open(path, 'r') as f:
                    Config._config_data = self._deep_merge(Config._config_data, yaml.safe_load(f) or {})

        Config._loaded = True

    def _deep_merge(self, base: dict, override: dict) -> dict:
        """Deep merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _get_yaml_value(self, *keys, default=None) -> Any:
        """Get a nested value from YAML config."""
        value = Config._config_data
        for key in keys:
            if isinstance(value, dict):
                value = value.get(key)
            else:
                return default
            if value is None:
                return default
        return value

    @classmethod
    def reload(cls):
        """Reload configuration (useful for testing)."""
        cls._loaded = False
        cls._config_data = {}
        return cls()

    # ==========================================================================
    # Environment Info
    # ==========================================================================

    @property
    def ENV(self) -> str:
        """Application environment (development, staging, production)."""
        return Config._current_env

    @property
    def IS_DEV(self) -> bool:
        return Config._current_env == 'development'

    @property
    def IS_PROD(self) -> bool:
        return Config._current_env == 'production'

    # ==========================================================================
    # Application Settings
    # ==========================================================================

    @property
    def DEBUG(self) -> bool:
        """Flask debug mode."""
        env_val = _env_bool('FLASK_DEBUG')
        if env_val is not None:
            return env_val
        return self._get_yaml_value('app', 'debug', default=False)

    @property
    def PORT(self) -> int:
        """Server port."""
        env_val = _env_int('PORT')
        if env_val is not None:
            return env_val
        return self._get_yaml_value('app', 'port', default=5000)

    @property
    def APP_NAME(self) -> str:
        return os.getenv('APP_NAME') or self._get_yaml_value('app', 'name', default='Beat Engine API')

    # ==========================================================================
    # Security Settings
    # ==========================================================================

    @property
    def JWT_SECRET(self) -> Optional[str]:
        """JWT secret key for token verification. Required in production."""
        return os.getenv('JWT_SECRET') or self._get_yaml_value('security', 'jwt', 'secret')

    @property
    def JWT_ALGORITHM(self) -> str:
        """JWT algorithm (default: HS256)."""
        return os.getenv('JWT_ALGORITHM') or self._get_yaml_value('security', 'jwt', 'algorithm', default='HS256')

    @property
    def ACCESS_TOKEN_EXPIRE_MINUTES(self) -> int:
        """Access token expiry in minutes."""
        env_val = _env_int('ACCESS_TOKEN_MINUTES')
        if env_val is not None:
            return env_val
        return self._get_yaml_value('security', 'jwt', 'access_token_expire_minutes', default=10080)

    # ==========================================================================
    # Database Settings
    # ==========================================================================

    @property
    def MONGO_URI(self) -> str:
        """MongoDB connection URI."""
        return os.getenv('MONGO_URI') or self._get_yaml_value('database', 'mongo_uri', default='mongodb://localhost:27017')

    @property
    def MONGO_DB(self) -> str:
        """Database holding users, conversations and chat_messages."""
        return os.getenv('MONGO_DB') or self._get_yaml_value('database', 'name', default='beat_db')

    # ==========================================================================
    # CORS Settings
    # ==========================================================================

    @property
    def CORS_ORIGINS(self) -> str:
        """Allowed CORS origins."""
        return os.getenv('CORS_ORIGINS') or self._get_yaml_value('cors', 'origins', default='*')

    @property
    def CORS_ORIGINS_LIST(self) -> list:
        """Get CORS origins as a list."""
        origins = self.CORS_ORIGINS
        if origins == '*':
            return ['*']
        return [o.strip() for o in origins.split(',') if o.strip()]

    # ==========================================================================
    # Socket.IO Settings
    # ==========================================================================

    @property
    def SOCKETIO_ASYNC_MODE(self) -> str:
        """threading, eventlet or gevent."""
        return os.getenv('SOCKETIO_ASYNC_MODE') or self._get_yaml_value('socketio', 'async_mode', default='threading')

    @property
    def SOCKETIO_PING_TIMEOUT(self) -> int:
        env_val = _env_int('SOCKETIO_PING_TIMEOUT')
        if env_val is not None:
            return env_val
        return self._get_yaml_value('socketio', 'ping_timeout', default=60)

    @property
    def SOCKETIO_PING_INTERVAL(self) -> int:
        env_val = _env_int('SOCKETIO_PING_INTERVAL')
        if env_val is not None:
            return env_val
        return self._get_yaml_value('socketio', 'ping_interval', default=25)

    # ==========================================================================
    # Messaging Settings
    # ==========================================================================

    @property
    def MESSAGES_DEFAULT_PAGE_SIZE(self) -> int:
        env_val = _env_int('MESSAGES_DEFAULT_PAGE_SIZE')
        if env_val is not None:
            return env_val
        return self._get_yaml_value('messaging', 'default_page_size', default=50)

    @property
    def MESSAGES_MAX_PAGE_SIZE(self) -> int:
        env_val = _env_int('MESSAGES_MAX_PAGE_SIZE')
        if env_val is not None:
            return env_val
        return self._get_yaml_value('messaging', 'max_page_size', default=100)

    # ==========================================================================
    # Logging Settings
    # ==========================================================================

    @property
    def LOG_LEVEL(self) -> str:
        """Logging level."""
        env_val = os.getenv('LOG_LEVEL')
        if env_val:
            return env_val.upper()
        return str(self._get_yaml_value('logging', 'level', default='INFO')).upper()

    @property
    def LOG_FORMAT(self) -> str:
        """Log format pattern."""
        return os.getenv('LOG_PATTERN') or self._get_yaml_value(
            'logging', 'pattern', default='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # ==========================================================================
    # Validation Methods
    # ==========================================================================

    def validate_required(self) -> None:
        """Validate that required configuration values are set.

        Raises RuntimeError if required values are missing in production.
        """
        errors = []

        if self.IS_PROD:
            if not self.JWT_SECRET:
                errors.append('JWT_SECRET environment variable is required in production')
            if self.CORS_ORIGINS == '*':
                errors.append('CORS_ORIGINS should not be "*" in production')

        if errors:
            raise RuntimeError('Configuration errors:\n' + '\n'.join(f'  - {e}' for e in errors))

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as dictionary (for debugging)."""
        return {
            'environment': self.ENV,
            'app': {'name': self.APP_NAME, 'debug': self.DEBUG, 'port': self.PORT},
            'security': {
                'jwt_secret': '***' if self.JWT_SECRET else None,
                'jwt_algorithm': self.JWT_ALGORITHM,
            },
            'database': {
                'mongo_uri': '***' if self.MONGO_URI else None,
                'name': self.MONGO_DB,
            },
            'cors': {'origins': self.CORS_ORIGINS},
            'socketio': {
                'async_mode': self.SOCKETIO_ASYNC_MODE,
                'ping_timeout': self.SOCKETIO_PING_TIMEOUT,
                'ping_interval': self.SOCKETIO_PING_INTERVAL,
            },
            'messaging': {
                'default_page_size': self.MESSAGES_DEFAULT_PAGE_SIZE,
                'max_page_size': self.MESSAGES_MAX_PAGE_SIZE,
            },
            'logging': {'level': self.LOG_LEVEL},
        }


# Singleton config instance
config = Config()


# =============================================================================
# Convenience exports
# =============================================================================

def get_env() -> str:
    return config.ENV

def is_dev() -> bool:
    return config.IS_DEV

def is_prod() -> bool:
    return config.IS_PROD
