"""Configuration manager for Specter using a per-project TOML file."""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict

import toml

from .config import CONFIG_FILE_NAME

logger = logging.getLogger(__name__)

RISK_FACTORS = (
    "filesChanged",
    "linesChanged",
    "complexityTouched",
    "dependentImpact",
    "busFactorRisk",
    "testCoverage",
)

DEFAULT_CONFIG: Dict[str, Any] = {
    "complexity": {
        "low": 5,
        "medium": 10,
        "high": 20,
    },
    "risk": {
        "weights": {
            "filesChanged": 0.15,
            "linesChanged": 0.15,
            "complexityTouched": 0.25,
            "dependentImpact": 0.25,
            "busFactorRisk": 0.10,
            "testCoverage": 0.10,
        },
        "levels": {
            "low": 25,
            "medium": 50,
            "high": 75,
        },
    },
    "history": {
        "maxSnapshots": 100,
    },
    "git": {
        "maxCommitsPerFile": 50,
        "maxCommitsForCoupling": 200,
        "minCouplingStrength": 0.3,
        "hotFileThreshold": 10,
        "batchSize": 10,
    },
    "health": {
        "complexityMultiplier": 5,
        "grades": {"A": 90, "B": 80, "C": 70, "D": 60},
        "trendChangeThreshold": 2,
    },
    "limits": {
        "defaultHotspotsLimit": 10,
        "maxReportHotspots": 20,
        "maxRiskFactorItems": 5,
    },
}


class ConfigError(ValueError):
    """Raised when a configuration file holds inconsistent values."""


def config_path(root: Path) -> Path:
    return Path(root) / CONFIG_FILE_NAME


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def default_config() -> Dict[str, Any]:
    """Return a fresh copy of the built-in defaults."""
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config(root: Path) -> Dict[str, Any]:
    """Load configuration for a project root.

    Returns:
        The defaults deep-merged with ``specter.toml`` from the project root.
        Falls back to defaults if the file doesn't exist or can't be parsed.
    """
    path = config_path(root)
    if not path.exists():
        return default_config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            user_config = toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Failed to load %s: %s. Using defaults.", path, exc)
        return default_config()

    config = _deep_merge(DEFAULT_CONFIG, user_config)
    try:
        validate_config(config)
    except ConfigError as exc:
        logger.warning("Invalid configuration in %s: %s. Using defaults.", path, exc)
        return default_config()
    return config


def save_config(root: Path, config: Dict[str, Any]) -> Path:
    """Validate and write configuration to ``specter.toml``."""
    validate_config(config)
    path = config_path(root)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(config, f)
    return path


def validate_weights(weights: Dict[str, Any]) -> None:
    """Raise ConfigError unless all six risk factor weights are present and sum to 1.0."""
    missing = [name for name in RISK_FACTORS if name not in weights]
    if missing:
        raise ConfigError(f"Missing risk weights: {', '.join(missing)}")
    total = sum(float(weights[name]) for name in RISK_FACTORS)
    if abs(total - 1.0) > 1e-6:
        raise ConfigError(f"Risk weights must sum to 1.0 (got {total:.4f})")


def validate_config(config: Dict[str, Any]) -> None:
    """Check cross-field invariants.

    Raises:
        ConfigError: if risk weights do not sum to 1.0 or a threshold ladder is not increasing.
    """
    validate_weights(config["risk"]["weights"])

    complexity = config["complexity"]
    if not complexity["low"] < complexity["medium"] < complexity["high"]:
        raise ConfigError("Complexity thresholds must satisfy low < medium < high")

    levels = config["risk"]["levels"]
    if not levels["low"] < levels["medium"] < levels["high"]:
        raise ConfigError("Risk levels must satisfy low < medium < high")

    if config["history"]["maxSnapshots"] < 1:
        raise ConfigError("history.maxSnapshots must be at least 1")
