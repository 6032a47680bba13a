import os
import logging
import threading
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Optional, Tuple

from dotenv import load_dotenv

from .constants import (
    DEFAULT_LAYER,
    DEFAULT_LOGIN_URL,
    DEFAULT_RATE_LIMIT_WINDOW_MS,
    SENSITIVE_FIELDS,
)

load_dotenv()

logger = logging.getLogger('contractguard.config')


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _get_database_url() -> Optional[str]:
    """
    DATABASE_URL for the SQL audit sink and resource lookup, or None.

    Render/Heroku style postgres:// URLs are rewritten to postgresql://
    since SQLAlchemy rejects the short scheme.
    """
    database_url = os.getenv('DATABASE_URL')
    if not database_url:
        return None
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


class Config:
    JWT_SECRET = os.getenv('JWT_SECRET', os.getenv('SECRET_KEY', 'dev-jwt-secret-key-change-me-in-production'))
    JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
    JWT_EXPIRATION_HOURS = int(os.getenv('JWT_EXPIRATION_HOURS', '24'))

    # Where presentation-layer authentication failures redirect to
    LOGIN_URL = os.getenv('LOGIN_URL', DEFAULT_LOGIN_URL)

    # Rate counter storage: Redis in production, memory for dev
    RATE_LIMIT_STORAGE_URI = os.getenv(
        'RATE_LIMIT_STORAGE_URI', os.getenv('REDIS_URL', 'memory://')
    )
    DEFAULT_RATE_LIMIT_WINDOW_MS = int(
        os.getenv('DEFAULT_RATE_LIMIT_WINDOW_MS', str(DEFAULT_RATE_LIMIT_WINDOW_MS))
    )

    CONTRACT_DEFAULT_LAYER = os.getenv('CONTRACT_DEFAULT_LAYER', DEFAULT_LAYER)
    AUDIT_LOG_ENABLED = _env_bool('AUDIT_LOG_ENABLED', 'true')

    DATABASE_URL = _get_database_url()


@dataclass
class ContractConfig:
    """
    Runtime collaborators and defaults for the contract engine.

    Built from Config (environment) at first use. Collaborators left as None
    are created lazily by the code that needs them (e.g. the rate store).
    """
    default_layer: str = Config.CONTRACT_DEFAULT_LAYER
    login_url: Optional[str] = Config.LOGIN_URL
    rate_limit_storage_uri: str = Config.RATE_LIMIT_STORAGE_URI
    default_rate_limit_window_ms: int = Config.DEFAULT_RATE_LIMIT_WINDOW_MS
    audit_enabled: bool = Config.AUDIT_LOG_ENABLED
    sensitive_fields: Tuple[str, ...] = SENSITIVE_FIELDS

    # Collaborators
    session_provider: Optional[Callable[[], Any]] = None
    resource_lookup: Optional[Callable[[str], Any]] = None
    rate_store: Any = None
    audit_sink: Any = None
    schema_validator: Optional[Callable[[Any, Any], Any]] = None
    # Exceptions from the schema validator that count as validation failures
    validation_error_types: Tuple[type, ...] = (ValueError, TypeError)

    def validate(self) -> None:
        """Raise ContractConfigurationError if any option is unusable."""
        from .contracts.errors import ContractConfigurationError

        if not isinstance(self.default_layer, str) or not self.default_layer.strip():
            raise ContractConfigurationError("default_layer must be a non-empty string")
        if not isinstance(self.default_rate_limit_window_ms, int) or self.default_rate_limit_window_ms <= 0:
            raise ContractConfigurationError("default_rate_limit_window_ms must be a positive integer")
        if not self.rate_limit_storage_uri:
            raise ContractConfigurationError("rate_limit_storage_uri must not be empty")
        if isinstance(self.sensitive_fields, str):
            raise ContractConfigurationError("sensitive_fields must be a sequence of field names")
        for name in ('session_provider', 'resource_lookup', 'schema_validator'):
            value = getattr(self, name)
            if value is not None and not callable(value):
                raise ContractConfigurationError(f"{name} must be callable")
        if self.audit_sink is not None and not hasattr(self.audit_sink, 'submit'):
            raise ContractConfigurationError("audit_sink must provide submit(record)")
        if not isinstance(self.validation_error_types, tuple) or not all(
            isinstance(t, type) and issubclass(t, Exception) for t in self.validation_error_types
        ):
            raise ContractConfigurationError("validation_error_types must be a tuple of exception classes")


# Named option sets; applied before explicit keyword overrides
PRESETS: Dict[str, Dict[str, Any]] = {
    "development": {
        "audit_enabled": True,
        "rate_limit_storage_uri": "memory://",
    },
    "production": {
        "audit_enabled": True,
    },
    "testing": {
        "audit_enabled": False,
        "rate_limit_storage_uri": "memory://",
        "default_rate_limit_window_ms": 1000,
    },
}

_CONFIG_FIELDS = {f.name for f in fields(ContractConfig)}

_config: Optional[ContractConfig] = None
_config_lock = threading.Lock()


def get_config() -> ContractConfig:
    """Return the process-wide ContractConfig, creating it from the environment."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = ContractConfig()
    return _config


def configure(preset: Optional[str] = None, **options) -> ContractConfig:
    """
    Update the process-wide ContractConfig.

    Args:
        preset: Optional preset name ("development", "production", "testing")
        **options: ContractConfig fields to override

    Raises:
        ContractConfigurationError: Unknown preset/option or invalid value.
            The previous configuration is kept when validation fails.

    Example:
        configure(preset="testing", resource_lookup=lookup_document)
    """
    global _config
    from .contracts.errors import ContractConfigurationError

    merged: Dict[str, Any] = {}
    if preset is not None:
        if preset not in PRESETS:
            raise ContractConfigurationError(
                f"Unknown preset '{preset}'. Available: {', '.join(sorted(PRESETS))}"
            )
        merged.update(PRESETS[preset])
    merged.update(options)

    unknown = sorted(set(merged) - _CONFIG_FIELDS)
    if unknown:
        raise ContractConfigurationError(f"Unknown configuration options: {', '.join(unknown)}")

    if 'sensitive_fields' in merged and merged['sensitive_fields'] is not None \
            and not isinstance(merged['sensitive_fields'], str):
        merged['sensitive_fields'] = tuple(merged['sensitive_fields'])

    with _config_lock:
        candidate = replace(_config or ContractConfig(), **merged)
        candidate.validate()
        _config = candidate

    logger.info(
        f"Contract configuration updated (preset={preset}, options={sorted(options)})",
        extra={"event": "contract_config_updated", "preset": preset},
    )
    return candidate


def reset_config() -> None:
    """
    Restore defaults and clear process-wide state.

    Drops every collaborator (session provider included) and clears the
    adapter registry, so tests never see each other's setup.
    """
    global _config
    from .adapters.base import adapter_registry

    with _config_lock:
        _config = None
    adapter_registry.clear()
