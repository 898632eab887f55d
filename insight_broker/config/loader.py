"""
Configuration management and loading.

Handles gateway, quota and storage settings for the generation pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


DEFAULT_TOKENS_LIMIT = 5000
DEFAULT_ENDPOINT = "https://norch-project.gleeze.com/api/Gpt4.1nano"
DEFAULT_DB_PATH = "insight_broker.db"


class GatewayProvider(Enum):
    """Transports available for reaching the generation service."""
    HTTP = "http"
    OPENAI = "openai"


class BreachAction(Enum):
    """Actions to take when a charge lands on an exhausted quota."""
    WARN = "warn"
    BLOCK = "block"


@dataclass(frozen=True)
class GatewayConfig:
    """Settings for the outbound generation call."""
    provider: GatewayProvider = GatewayProvider.HTTP
    endpoint: Optional[str] = DEFAULT_ENDPOINT
    prompt_param: str = "text"
    attachment_param: str = "imageUrl"
    model: str = "gpt-4o-mini"

    def __post_init__(self):
        """Validate the provider has what it needs."""
        if self.provider == GatewayProvider.HTTP and not self.endpoint:
            raise ValueError("endpoint is required for the http provider")
        if not self.prompt_param:
            raise ValueError("prompt_param cannot be empty")
        if not self.attachment_param:
            raise ValueError("attachment_param cannot be empty")


@dataclass(frozen=True)
class QuotaConfig:
    """Entitlement settings."""
    default_tokens_limit: int = DEFAULT_TOKENS_LIMIT
    on_overshoot: BreachAction = BreachAction.WARN

    def __post_init__(self):
        """Validate the default ceiling is positive."""
        if self.default_tokens_limit <= 0:
            raise ValueError("default_tokens_limit must be > 0")


@dataclass(frozen=True)
class StorageConfig:
    """Persistence settings."""
    db_path: str = DEFAULT_DB_PATH


@dataclass(frozen=True)
class BrokerConfig:
    """Complete broker configuration."""
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def default_config() -> BrokerConfig:
    """Return the built-in configuration."""
    return BrokerConfig()


def load_broker_config(path: str) -> BrokerConfig:
    """Load and validate broker configuration from YAML file.

    Every section is optional; omitted values keep their defaults. Unknown
    keys are rejected so that a typo never silently disables a setting.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated BrokerConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Broker config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'gateway', 'quota', 'storage'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return BrokerConfig(
        gateway=_parse_gateway_config(_section(raw_config, 'gateway')),
        quota=_parse_quota_config(_section(raw_config, 'quota')),
        storage=_parse_storage_config(_section(raw_config, 'storage')),
    )


def _section(raw_config: Dict, name: str) -> Dict[str, Any]:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict, allowed_keys: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _require_string(data: Dict, key: str, path: str) -> Optional[str]:
    if key not in data:
        return None
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' in {path} must be a non-empty string")
    return value.strip()


def _parse_gateway_config(data: Dict) -> GatewayConfig:
    """Parse and validate the gateway section.

    Args:
        data: Gateway configuration data

    Returns:
        Validated GatewayConfig

    Raises:
        ValueError: If configuration is invalid
    """
    _check_keys(
        data,
        {'provider', 'endpoint', 'prompt_param', 'attachment_param', 'model'},
        "gateway",
    )

    kwargs: Dict[str, Any] = {}
    provider_str = _require_string(data, 'provider', "gateway")
    if provider_str is not None:
        try:
            kwargs['provider'] = GatewayProvider(provider_str.lower())
        except ValueError:
            valid = [provider.value for provider in GatewayProvider]
            raise ValueError(f"'provider' in gateway must be one of: {valid}")

    for key in ('endpoint', 'prompt_param', 'attachment_param', 'model'):
        value = _require_string(data, key, "gateway")
        if value is not None:
            kwargs[key] = value

    return GatewayConfig(**kwargs)


def _parse_quota_config(data: Dict) -> QuotaConfig:
    """Parse and validate the quota section."""
    _check_keys(data, {'default_tokens_limit', 'on_overshoot'}, "quota")

    kwargs: Dict[str, Any] = {}
    if 'default_tokens_limit' in data:
        limit = data['default_tokens_limit']
        # bool is an int subclass
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValueError("'default_tokens_limit' in quota must be a positive integer")
        kwargs['default_tokens_limit'] = limit

    action_str = _require_string(data, 'on_overshoot', "quota")
    if action_str is not None:
        try:
            kwargs['on_overshoot'] = BreachAction(action_str.lower())
        except ValueError:
            valid_actions = [action.value for action in BreachAction]
            raise ValueError(f"'on_overshoot' in quota must be one of: {valid_actions}")

    return QuotaConfig(**kwargs)


def _parse_storage_config(data: Dict) -> StorageConfig:
    """Parse and validate the storage section."""
    _check_keys(data, {'db_path'}, "storage")
    db_path = _require_string(data, 'db_path', "storage")
    if db_path is None:
        return StorageConfig()
    return StorageConfig(db_path=db_path)
