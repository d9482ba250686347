"""Configuration loading and management for Trace Doctor.

This module provides configuration discovery and validation. Configuration
sources are merged in priority order:
    1. Defaults (defined in AnalysisConfig)
    2. Global config (~/.trace-doctor.toml)
    3. Project config (./trace-doctor.toml)
    4. Explicit config file
    5. Environment variables (TRACE_DOCTOR_* prefix)
    6. Keyword overrides

Example:
    >>> config = load_config(verbose=True, mapping_timeout_seconds=2.0)
    >>> config.verbosity
    'verbose'
    >>> config.thresholds.loop_threshold
    10
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError

Verbosity = Literal["quiet", "normal", "verbose"]

_ENV_PREFIX = "TRACE_DOCTOR_"


@dataclass(frozen=True)
class DetectorThresholds:
    """Detector thresholds and tuning parameters.

    The loop and flush values are heuristics observed on real ORM traffic,
    exposed here so they can be tuned per project rather than hard-coded.

    Attributes:
        Sequential loads:
            loop_threshold: Minimum group size before a key lookup group is examined
            loop_gap_window: Maximum average index gap (inclusive) for a tight loop
            loop_critical_threshold: Group size at which a loop becomes critical

        JOIN shape:
            max_joins_recommended: JOIN count above which a statement is flagged
            max_joins_critical: JOIN count above which the flag is critical

        Transactions:
            flush_warning_count: Write count inside one transaction that warns
            long_transaction_ms: Accumulated duration above which a transaction is long

        Slow statements:
            slow_query_ms: Duration above which a statement is slow
            slow_query_critical_ms: Duration at which a slow statement is critical
    """

    # === Sequential loads (N+1) ===
    loop_threshold: int = 10
    loop_gap_window: float = 5.0
    loop_critical_threshold: int = 50

    # === JOIN shape ===
    max_joins_recommended: int = 5
    max_joins_critical: int = 8

    # === Transactions ===
    flush_warning_count: int = 2
    long_transaction_ms: float = 1000.0

    # === Slow statements ===
    slow_query_ms: float = 100.0
    slow_query_critical_ms: float = 1000.0

    def __post_init__(self) -> None:
        """Validate threshold configuration."""
        if self.loop_threshold < 2:
            raise ValueError("loop_threshold must be at least 2")
        if self.loop_gap_window < 1.0:
            raise ValueError("loop_gap_window must be at least 1.0")
        if self.loop_critical_threshold < self.loop_threshold:
            raise ValueError("loop_critical_threshold must not be below loop_threshold")

        if self.max_joins_recommended < 1:
            raise ValueError("max_joins_recommended must be at least 1")
        if self.max_joins_critical < self.max_joins_recommended:
            raise ValueError("max_joins_critical must not be below max_joins_recommended")

        if self.flush_warning_count < 2:
            raise ValueError("flush_warning_count must be at least 2")
        if self.long_transaction_ms <= 0:
            raise ValueError("long_transaction_ms must be positive")

        if self.slow_query_ms <= 0:
            raise ValueError("slow_query_ms must be positive")
        if self.slow_query_critical_ms < self.slow_query_ms:
            raise ValueError("slow_query_critical_ms must not be below slow_query_ms")


DEFAULT_THRESHOLDS = DetectorThresholds()


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for one analysis run.

    Attributes:
        detectors: Names of the detectors to run (None = every detector)
        mapping_timeout_seconds: Upper bound for loading mapping metadata
        verbosity: Logging verbosity level
        thresholds: Detector tuning parameters
    """

    detectors: Optional[list[str]] = None
    mapping_timeout_seconds: float = 5.0
    verbosity: Verbosity = "normal"

    thresholds: DetectorThresholds = field(default_factory=DetectorThresholds)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.mapping_timeout_seconds <= 0:
            raise ValueError("mapping_timeout_seconds must be positive")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise ValueError(f"verbosity must be quiet, normal or verbose, got {self.verbosity!r}")
        if self.detectors is not None and not self.detectors:
            raise ValueError("detectors must name at least one detector when set")


def load_config(config_file: Optional[Path] = None, **overrides) -> AnalysisConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (field names of AnalysisConfig, plus
            ``verbose``/``quiet`` booleans)

    Returns:
        Validated AnalysisConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing, or a
            merged value fails validation
    """
    merged: dict = {}

    global_config = Path.home() / ".trace-doctor.toml"
    if global_config.exists():
        try:
            merged.update(_load_toml_file(global_config))
        except Exception as e:
            raise ConfigurationError(f"Invalid global config '{global_config}': {e}")

    project_config = Path.cwd() / "trace-doctor.toml"
    if project_config.exists():
        try:
            merged.update(_load_toml_file(project_config))
        except Exception as e:
            raise ConfigurationError(f"Invalid project config '{project_config}': {e}")

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        try:
            merged.update(_load_toml_file(config_file))
        except Exception as e:
            raise ConfigurationError(f"Invalid config file '{config_file}': {e}")

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update(overrides)

    # [thresholds] table from TOML
    thresholds = merged.pop("thresholds", None)
    if thresholds is not None:
        if isinstance(thresholds, dict):
            try:
                merged["thresholds"] = DetectorThresholds(**thresholds)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid [thresholds] config: {e}")
        elif isinstance(thresholds, DetectorThresholds):
            merged["thresholds"] = thresholds

    try:
        return AnalysisConfig(**merged)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from TRACE_DOCTOR_* environment variables.

    Supported environment variables:
        TRACE_DOCTOR_MAPPING_TIMEOUT_SECONDS: float
        TRACE_DOCTOR_VERBOSITY: quiet/normal/verbose
        TRACE_DOCTOR_DETECTORS: comma-separated detector names

    Returns:
        Dict of field_name -> parsed_value for any TRACE_DOCTOR_* vars found.
    """
    type_hints = get_type_hints(AnalysisConfig)

    result: dict[str, Any] = {}

    for field_name in AnalysisConfig.__dataclass_fields__:
        env_key = f"{_ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint, field_name)
            if parsed is not None:
                result[field_name] = parsed
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")

    return result


def _parse_env_value(value: str, type_hint: Any, field_name: str) -> Any:
    """Parse environment variable string to the correct type.

    Returns:
        Parsed value or None if the field can't be set from the environment

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    # Optional[X] is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if origin is list:
        names = [part.strip() for part in value.split(",") if part.strip()]
        if not names:
            raise ValueError(f"expected a comma-separated list for {field_name}")
        return names

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict."""
    try:
        import tomllib
    except ModuleNotFoundError:
        # tomli provides the same API before Python 3.11
        import tomli as tomllib  # type: ignore

    with open(path, "rb") as f:
        return tomllib.load(f)
