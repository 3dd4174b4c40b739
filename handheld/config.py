"""
HANDHELD Configuration System

Unified configuration management with YAML files, environment variables,
schema validation, and runtime updates.

Configuration Sources (in order of precedence):
    1. Environment variables (HANDHELD_*)
    2. Runtime overrides and explicitly loaded files
    3. User config file (~/.handheld/config.yaml)
    4. Project config file (./handheld.yaml)
    5. Default values

Files are validated against the JSON Schema produced by
``ConfigManager.export_schema()`` before any value is applied.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar, Union

import yaml
from jsonschema import Draft202012Validator

from handheld.observability import Layer, get_logger

logger = get_logger("manager", Layer.CONFIG)

T = TypeVar("T")

_JSON_TYPES = {bool: "boolean", int: "integer", float: "number", str: "string"}


class ConfigError(Exception):
    """Configuration error."""
    pass


class ValidationError(ConfigError):
    """Configuration validation error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding,
    validation, and change callbacks.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    choices: Optional[Tuple[T, ...]] = None
    minimum: Optional[int] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[Optional[T], T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            return self.coerce(os.environ[self.env_var])
        return self._value if self._value is not None else self.default

    def set(self, value: Any) -> None:
        """Set the value with coercion and validation."""
        if isinstance(value, str) and not isinstance(self.default, str):
            value = self.coerce(value)
        if not self.is_valid(value):
            raise ValidationError(f"Invalid value for config: {value!r}")

        old_value = self._value
        self._value = value

        for callback in self._callbacks:
            callback(old_value, value)

    def reset(self) -> None:
        self._value = None

    def is_valid(self, value: Any) -> bool:
        target_type = type(self.default)
        if target_type is int and (isinstance(value, bool) or not isinstance(value, int)):
            return False
        if not isinstance(value, target_type):
            return False
        if self.choices is not None and value not in self.choices:
            return False
        if self.minimum is not None and value < self.minimum:
            return False
        return True

    def coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.strip().lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            try:
                return int(value)  # type: ignore
            except ValueError:
                raise ValidationError(f"Expected an integer, got {value!r}") from None
        elif target_type == str:
            return value.strip().lower()  # type: ignore
        return value  # type: ignore

    def on_change(self, callback: Callable[[Optional[T], T], None]) -> None:
        """Register a change callback."""
        self._callbacks.append(callback)

    def json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {
            "type": _JSON_TYPES[type(self.default)],
            "default": self.default,
            "description": self.description,
        }
        if self.choices is not None:
            schema["enum"] = list(self.choices)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.env_var:
            schema["x-env-var"] = self.env_var
        return schema


@dataclass
class VMConfig:
    """Configuration for the virtual machine."""
    record_trace: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="HANDHELD_VM_TRACE",
        description="Record every state entered during execution",
    ))


@dataclass
class RepairConfig:
    """Configuration for the repair search."""
    workers: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=1,
        env_var="HANDHELD_REPAIR_WORKERS",
        description="Threads used to evaluate candidate mutations (1 = sequential)",
        minimum=1,
    ))
    require_nontermination: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="HANDHELD_REPAIR_REQUIRE_LOOP",
        description="Refuse to search when the unmodified program already terminates",
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for logging."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="warning",
        env_var="HANDHELD_LOG_LEVEL",
        description="Log level (debug, info, warning, error, critical)",
        choices=("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="HANDHELD_LOG_FORMAT",
        description="Log format (json, text)",
        choices=("json", "text"),
    ))


def _walk(obj: Any, path: str = ""):
    """Yield (dotted path, ConfigValue) pairs of a config tree."""
    if isinstance(obj, ConfigValue):
        yield path, obj
    elif hasattr(obj, "__dataclass_fields__"):
        for field_name in obj.__dataclass_fields__:
            field_path = f"{path}.{field_name}" if path else field_name
            yield from _walk(getattr(obj, field_name), field_path)


@dataclass
class HandheldConfig:
    """
    Root configuration for the console.

    Aggregates all component configurations.
    """
    vm: VMConfig = field(default_factory=VMConfig)
    repair: RepairConfig = field(default_factory=RepairConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = HandheldConfig()
        self._config_paths: List[Path] = []
        self._watchers: List[Callable[[HandheldConfig], None]] = []
        self._initialized = True

    @property
    def config(self) -> HandheldConfig:
        """Get the current configuration."""
        return self._config

    def reset(self) -> None:
        """Drop overrides, loaded files and watchers, returning to defaults."""
        self._config = HandheldConfig()
        self._config_paths = []
        self._watchers = []

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data is None:
            logger.debug("Empty configuration file", operation="load", path=str(path))
            return

        errors = self.validate_document(data)
        if errors:
            logger.debug(
                "Configuration file rejected",
                operation="load",
                path=str(path),
                errors=errors,
            )
            raise ValidationError(f"{path}: " + "; ".join(errors))

        self._apply_dict(data)
        if path not in self._config_paths:
            self._config_paths.append(path)
        logger.debug("Loaded configuration file", operation="load", path=str(path))

    def load_defaults(self) -> None:
        """Load default configuration files if they exist."""
        default_paths = [
            Path.home() / ".handheld" / "config.yaml",
            Path("handheld.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                self.load_from_file(path)

    def validate_document(self, data: Any) -> List[str]:
        """Validate a configuration document; returns error messages (empty if valid)."""
        validator = Draft202012Validator(self.export_schema())
        return [
            f"{error.json_path}: {error.message}"
            for error in sorted(validator.iter_errors(data), key=lambda e: e.json_path)
        ]

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary values to configuration."""
        def apply_to_config(config_obj: Any, values: Dict[str, Any]) -> None:
            for key, value in values.items():
                if hasattr(config_obj, key):
                    attr = getattr(config_obj, key)
                    if isinstance(attr, ConfigValue):
                        attr.set(value)
                    elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                        apply_to_config(attr, value)

        apply_to_config(self._config, data)

    def _lookup(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if (
                part.startswith("_")
                or isinstance(obj, ConfigValue)
                or not hasattr(obj, "__dataclass_fields__")
                or not hasattr(obj, part)
            ):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("repair.workers", 4)
        """
        attr = self._lookup(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

        for watcher in self._watchers:
            watcher(self._config)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: config.get("vm.record_trace")
        """
        obj = self._lookup(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        return HandheldConfig.to_dict(obj) if hasattr(obj, "__dataclass_fields__") else obj

    def watch(self, callback: Callable[[HandheldConfig], None]) -> None:
        """Register a callback for configuration changes."""
        self._watchers.append(callback)

    def reload(self) -> None:
        """Reload configuration from all loaded files."""
        for path in list(self._config_paths):
            if path.exists():
                self.load_from_file(path)

        for watcher in self._watchers:
            watcher(self._config)

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []
        for path, value in _walk(self._config):
            try:
                current = value.get()
            except ConfigError as e:
                errors.append(f"{path}: {e}")
                continue
            if not value.is_valid(current):
                errors.append(f"{path}: validation failed for value {current!r}")
        return errors

    def export_schema(self) -> Dict[str, Any]:
        """Export configuration JSON Schema (draft 2020-12)."""
        def extract_schema(obj: Any) -> Dict[str, Any]:
            if isinstance(obj, ConfigValue):
                return obj.json_schema()
            return {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    name: extract_schema(getattr(obj, name))
                    for name in obj.__dataclass_fields__
                },
            }

        schema = extract_schema(self._config)
        schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
        schema["title"] = "handheld configuration"
        return schema


def get_config() -> HandheldConfig:
    """Get the current configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()
