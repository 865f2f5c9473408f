import os
import logging
import sys
from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any, Tuple

import yaml


# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv(
    "LOG_FORMAT",
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


def setup_logging():
    """Configure application-wide logging

    Records go to stderr: stdout carries the CSV report.
    """
    level = getattr(logging, LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


def _split_csv(value: str) -> List[str]:
    return [s.strip() for s in (value or "").split(',') if s.strip()]


# =============================================================================
# Cluster Access
# =============================================================================
# Unset means: default kubeconfig loading rules, then in-cluster service account
KUBECONFIG: Optional[str] = os.getenv("KUBECONFIG") or None
KUBE_CONTEXT: Optional[str] = os.getenv("KUBE_CONTEXT") or None
KUBE_REQUEST_TIMEOUT_SECONDS: int = int(os.getenv("KUBE_REQUEST_TIMEOUT_SECONDS", "30"))
# 0 disables paginated list calls
KUBE_PAGE_SIZE: int = int(os.getenv("KUBE_PAGE_SIZE", "0"))

# =============================================================================
# Report Configuration
# =============================================================================
IGNORE_NAMESPACES: str = os.getenv(
    "IGNORE_NAMESPACES", "default,kube-node-lease,kube-public,kube-system"
)
# A workload is flagged when its per-pod surplus exceeds this share of the per-pod request
OVERPROVISION_THRESHOLD_PERCENT: int = int(os.getenv("OVERPROVISION_THRESHOLD_PERCENT", "10"))
REPORT_WORKERS: int = int(os.getenv("REPORT_WORKERS", "1"))
REPORT_INCLUDE_VERDICT: bool = _env_bool("REPORT_INCLUDE_VERDICT", True)
REPORT_CONFIG_FILE: Optional[str] = os.getenv("REPORT_CONFIG_FILE") or None


@dataclass(frozen=True)
class ReportConfig:
    """Resolved settings for one report run, passed explicitly to the driver."""
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    ignore_namespaces: Tuple[str, ...] = field(default_factory=tuple)
    threshold_percent: int = 10
    workers: int = 1
    include_verdict: bool = True
    page_size: int = 0
    request_timeout_seconds: int = 30


# Keys accepted in the YAML file, mapped to ReportConfig fields
_FILE_KEYS = (
    "kubeconfig",
    "context",
    "ignore_namespaces",
    "threshold_percent",
    "workers",
    "include_verdict",
    "page_size",
    "request_timeout_seconds",
)


def default_report_config() -> ReportConfig:
    """Build a ReportConfig from the environment-derived module constants"""
    return ReportConfig(
        kubeconfig=KUBECONFIG,
        context=KUBE_CONTEXT,
        ignore_namespaces=tuple(_split_csv(IGNORE_NAMESPACES)),
        threshold_percent=OVERPROVISION_THRESHOLD_PERCENT,
        workers=REPORT_WORKERS,
        include_verdict=REPORT_INCLUDE_VERDICT,
        page_size=KUBE_PAGE_SIZE,
        request_timeout_seconds=KUBE_REQUEST_TIMEOUT_SECONDS,
    )


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load YAML configuration file

    Raises:
        ConfigValidationError: If the file is missing, unparsable or has unknown keys
    """
    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigValidationError(f"Configuration file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"Invalid YAML configuration in {config_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{config_path} must contain a mapping at the top level")
    unknown = sorted(set(data) - set(_FILE_KEYS))
    if unknown:
        raise ConfigValidationError(f"Unknown keys in {config_path}: {', '.join(unknown)}")
    return data


def _coerce_ignore_namespaces(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(_split_csv(value))
    if isinstance(value, (list, tuple)):
        return tuple(value)
    raise ConfigValidationError(
        f"ignore_namespaces must be a list or a comma separated string, got {type(value).__name__}"
    )


def build_report_config(config_path: Optional[str] = None,
                        overrides: Optional[Dict[str, Any]] = None) -> ReportConfig:
    """Resolve a ReportConfig: environment defaults < YAML file < explicit overrides.

    `overrides` entries whose value is None are ignored so CLI flags that were
    not given do not clobber file or environment values.
    """
    cfg = default_report_config()

    path = config_path or REPORT_CONFIG_FILE
    layers: List[Dict[str, Any]] = []
    if path:
        layers.append(load_config_file(path))
    if overrides:
        layers.append({k: v for k, v in overrides.items() if v is not None})

    for layer in layers:
        values = dict(layer)
        if "ignore_namespaces" in values:
            values["ignore_namespaces"] = _coerce_ignore_namespaces(values["ignore_namespaces"])
        cfg = replace(cfg, **values)

    validate_config(cfg)
    return cfg


__all__ = [
    "LOG_LEVEL",
    "LOG_FORMAT",
    "setup_logging",
    "KUBECONFIG",
    "KUBE_CONTEXT",
    "KUBE_REQUEST_TIMEOUT_SECONDS",
    "KUBE_PAGE_SIZE",
    "IGNORE_NAMESPACES",
    "OVERPROVISION_THRESHOLD_PERCENT",
    "REPORT_WORKERS",
    "REPORT_INCLUDE_VERDICT",
    "REPORT_CONFIG_FILE",
    "ReportConfig",
    "default_report_config",
    "load_config_file",
    "build_report_config",
    "ConfigValidationError",
    "validate_config",
]


# =============================================================================
# Configuration Validation
# =============================================================================
class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""
    pass


def _validate_positive_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigValidationError(f"{name} must be a positive integer, got {value!r}")


def _validate_non_negative_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ConfigValidationError(f"{name} must be a non-negative integer, got {value!r}")


def _validate_percent(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not (0 <= value <= 100):
        raise ConfigValidationError(f"{name} must be an integer between 0 and 100, got {value!r}")


def _validate_namespaces(name: str, values: Tuple[str, ...]) -> None:
    for ns in values:
        if not isinstance(ns, str) or not ns.strip():
            raise ConfigValidationError(f"{name} entries must be non-empty strings, got {ns!r}")


def _validate_kubeconfig(name: str, value: Optional[str]) -> None:
    # KUBECONFIG may list several files; the client merges the ones that exist
    if not value:
        return
    paths = [p for p in value.split(os.pathsep) if p]
    if not any(os.path.isfile(os.path.expanduser(p)) for p in paths):
        raise ConfigValidationError(f"{name} does not point to a file: {value}")


def validate_config(cfg: Optional[ReportConfig] = None) -> None:
    """Validate all configuration values on startup

    Raises:
        ConfigValidationError: If any configuration value is invalid
    """
    if cfg is None:
        cfg = default_report_config()
    errors = []

    checks = [
        (_validate_positive_int, "workers", cfg.workers),
        (_validate_positive_int, "request_timeout_seconds", cfg.request_timeout_seconds),
        (_validate_non_negative_int, "page_size", cfg.page_size),
        (_validate_percent, "threshold_percent", cfg.threshold_percent),
        (_validate_namespaces, "ignore_namespaces", cfg.ignore_namespaces),
        (_validate_kubeconfig, "kubeconfig", cfg.kubeconfig),
    ]
    for check, name, value in checks:
        try:
            check(name, value)
        except ConfigValidationError as e:
            errors.append(str(e))

    if not isinstance(cfg.include_verdict, bool):
        errors.append(f"include_verdict must be a boolean, got {cfg.include_verdict!r}")

    if errors:
        raise ConfigValidationError(
            "Configuration validation failed:\n  - " + "\n  - ".join(errors)
        )
