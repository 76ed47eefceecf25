"""
Configuration loading and persistence for ai-router.

The configuration lives in a JSON file (camelCase keys). Values are
resolved with the following precedence:

1. Environment overrides (e.g. AI_ROUTER_DEFAULT_PROVIDER)
2. The config file at $AI_ROUTER_CONFIG or ~/.config/ai-router/config.json
3. Built-in defaults

String values may reference environment variables as ``${NAME}``. They are
substituted when the config is loaded for use, but the file itself keeps the
placeholders, so saving never writes resolved secrets back to disk.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, ValidationError

from airouter.errors import ConfigError
from airouter.pricing.cache import PricingCache
from airouter.providers.interfaces import CamelModel, ModelDefaults, ProviderConfig

__all__ = [
    "ConfigError",
    "ConfigStore",
    "CostConfig",
    "LoggingConfig",
    "OutputConfig",
    "RouterConfig",
    "default_config_path",
    "resolve_env_placeholders",
]

CONFIG_PATH_ENV = "AI_ROUTER_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/ai-router/config.json")

_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class OutputConfig(CamelModel):
    """Where generated media goes and how results are printed."""

    format: Literal["json", "text", "pretty"] = "json"
    directory: str = "./output"
    filename_pattern: str = Field("{type}_{timestamp}", min_length=1)


class LoggingConfig(CamelModel):
    level: str = "warning"
    format: Literal["console", "json"] = "console"
    file: Optional[str] = None


class CostConfig(CamelModel):
    """Cost guard defaults. A max of 0 disables the guard."""

    max_cost_per_query: float = Field(0.10, ge=0)
    warn_threshold: float = Field(0.05, ge=0)


def _default_providers() -> Dict[str, ProviderConfig]:
    return {
        "openai": ProviderConfig(
            api_key="${OPENAI_API_KEY}",
            models=ModelDefaults(text="gpt-4o", image="dall-e-3", tts="tts-1"),
        ),
        "google": ProviderConfig(
            api_key="${GOOGLE_API_KEY}",
            models=ModelDefaults(
                text="gemini-1.5-pro",
                image="imagen-3.0-generate-001",
                video="veo-2.0-generate-001",
            ),
        ),
        "openrouter": ProviderConfig(
            api_key="${OPENROUTER_API_KEY}",
            models=ModelDefaults(
                text="anthropic/claude-sonnet-4",
                image="google/gemini-2.5-flash-image",
            ),
        ),
    }


class RouterConfig(CamelModel):
    """Top-level configuration object."""

    version: str = "1.0"
    default_provider: str = Field("openai", min_length=1)
    providers: Dict[str, ProviderConfig] = Field(default_factory=_default_providers)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    cost: CostConfig = Field(default_factory=CostConfig)
    pricing: Optional[PricingCache] = None

    def provider(self, provider_id: str) -> ProviderConfig:
        """
        Configuration for ``provider_id``.

        Raises:
            ConfigError: If the provider has no configuration entry
        """
        config = self.providers.get(provider_id)
        if config is None:
            raise ConfigError(f"Provider '{provider_id}' not configured")
        return config

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def default_config_path() -> Path:
    env_path = os.getenv(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def resolve_env_placeholders(value: Any) -> Any:
    """Recursively replace ``${NAME}`` with the environment value (or '')."""
    if isinstance(value, str):
        return _PLACEHOLDER_RE.sub(lambda m: os.getenv(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: resolve_env_placeholders(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_env_placeholders(v) for v in value]
    return value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_or_value(env_var: str, value: Any, default: Any) -> str:
    """Return environment variable value if set, otherwise the provided/default value."""
    env_value = os.getenv(env_var)
    if env_value is not None:
        return env_value
    if value is not None:
        return str(value)
    return str(default)


def _parse_cli_value(raw: str) -> List[Any]:
    """Candidate typed values for a CLI string, most specific first."""
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return [raw]
    return [parsed, raw] if parsed != raw else [raw]


class ConfigStore:
    """
    Reads and writes the JSON config file.

    Example:
        >>> store = ConfigStore()
        >>> config = store.load()
        >>> config.provider("openai").api_key
    """

    def __init__(self, path: Optional[Path | str] = None):
        self.path = Path(path).expanduser() if path else default_config_path()

    def exists(self) -> bool:
        return self.path.exists()

    def _read_file(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {self.path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be an object: {self.path}")
        return data

    def _raw_data(self) -> Dict[str, Any]:
        return _deep_merge(RouterConfig().to_json_dict(), self._read_file())

    @staticmethod
    def _validate(data: Dict[str, Any]) -> RouterConfig:
        try:
            return RouterConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def load_raw(self) -> RouterConfig:
        """File merged over defaults, placeholders left untouched."""
        return self._validate(self._raw_data())

    def load(self) -> RouterConfig:
        """Config ready for use: placeholders resolved and env overrides applied."""
        data = resolve_env_placeholders(self._raw_data())
        data["defaultProvider"] = _env_or_value(
            "AI_ROUTER_DEFAULT_PROVIDER", data.get("defaultProvider"), "openai"
        )
        logging_data = data.setdefault("logging", {})
        logging_data["level"] = _env_or_value(
            "AI_ROUTER_LOG_LEVEL", logging_data.get("level"), "warning"
        )
        output_data = data.setdefault("output", {})
        output_data["directory"] = _env_or_value(
            "AI_ROUTER_OUTPUT_DIR", output_data.get("directory"), "./output"
        )
        return self._validate(data)

    def save(self, config: RouterConfig) -> Path:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(config.to_json_dict(), indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot write {self.path}: {e}") from e
        return self.path

    def init(self, force: bool = False) -> Path:
        """Write the default configuration file."""
        if self.exists() and not force:
            raise ConfigError(f"Configuration already exists at {self.path}")
        return self.save(RouterConfig())

    def set_value(self, key: str, value: str) -> RouterConfig:
        """
        Set a dotted key (e.g. ``openai.apiKey`` or ``cost.maxCostPerQuery``)
        and persist the file.

        A leading provider id is shorthand for ``providers.<id>``. The value
        is parsed as JSON when possible (numbers, booleans) and kept as a
        string otherwise.

        Raises:
            ConfigError: If the key is unknown or the value is invalid
        """
        data = self._raw_data()
        segments = [s for s in key.split(".") if s]
        if not segments:
            raise ConfigError("Configuration key must not be empty")
        if segments[0] in data.get("providers", {}):
            segments = ["providers"] + segments

        candidates = _parse_cli_value(value)
        for index, candidate in enumerate(candidates):
            updated = json.loads(json.dumps(data))
            node = updated
            for segment in segments[:-1]:
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    node[segment] = child
                node = child
            node[segments[-1]] = candidate
            try:
                config = self._validate(updated)
            except ConfigError:
                # The raw string is the last candidate; its error is the one reported
                if index == len(candidates) - 1:
                    raise
                continue
            if not self._has_key(config.to_json_dict(), segments):
                raise ConfigError(f"Unknown configuration key: {key}")
            self.save(config)
            return config

        raise ConfigError(f"No value given for configuration key: {key}")

    @staticmethod
    def _has_key(data: Dict[str, Any], segments: List[str]) -> bool:
        node: Any = data
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return False
            node = node[segment]
        return True

    def persist_pricing(self, cache: PricingCache) -> None:
        """Replace the stored pricing cache, keeping everything else as written."""
        config = self.load_raw()
        config.pricing = cache
        self.save(config)
