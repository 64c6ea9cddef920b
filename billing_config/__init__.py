"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``get_active_config()``. Returns a frozen ``BillingConfig``: currency,
    default tax regime, round-off warning limit, purchase cost fallback
    ratio and document number prefixes.

Architecture position:
    Configuration -- YAML-driven settings. Sits above ``billing_kernel``
    and below ``billing_services``. Neither the kernel nor the engines
    import from here; services pass config values into them explicitly.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Validation before use: a configuration with errors never becomes a
      ``BillingConfig``.
    - Deterministic identity: the same YAML data always yields the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigValidationError`` -- one or more settings are invalid.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``BILLING_CONFIG_TRACE`` log entry with config_id, version and
    checksum, so any calculated document can be tied to the settings
    that shaped it.
"""

from __future__ import annotations

from pathlib import Path

from billing_config.loader import compute_checksum, load_yaml_file, parse_config
from billing_config.schema import TAX_REGIMES, BillingConfig, DocumentPrefixes
from billing_config.validator import (
    ConfigValidationError,
    ConfigValidationResult,
    validate_configuration,
)
from billing_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> BillingConfig:
    """The only public configuration entrypoint.

    Args:
        path: YAML file to load. Defaults to the packaged
            ``billing_config/sets/default.yaml``.

    Returns:
        A validated, frozen ``BillingConfig`` carrying the source checksum.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If validation reports any error.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(config_path)

    validation = validate_configuration(data)
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={
            "config_path": str(config_path),
            "warning": warning,
        })
    if not validation.is_valid:
        raise ConfigValidationError(validation.errors)

    checksum = compute_checksum(data)
    config = parse_config(data, checksum=checksum)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": config.currency,
            "default_tax_regime": config.default_tax_regime,
        },
    )
    return config


__all__ = [
    "TAX_REGIMES",
    "BillingConfig",
    "ConfigValidationError",
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "DocumentPrefixes",
    "get_active_config",
    "validate_configuration",
]
