"""
stock_config -- single public entrypoint for stock configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.  Returns the kernel's ``StockRules``; the full
    ``StockConfigurationSet`` (database and logging sections included)
    is available to entry-point scripts via
    ``load_active_configuration_set()``.

Architecture position:
    Configuration -- YAML-driven.  Sits above ``stock_kernel``.  The
    kernel MUST NEVER import from ``stock_config``; ``bridges`` translates
    configuration into kernel inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through this package.
    - Validation: a configuration with errors is never returned.

Failure modes:
    - ``FileNotFoundError`` -- no ``<name>.yaml`` in the sets directory.
    - ``ValueError`` -- parse or validation failures.
    - ``yaml.YAMLError`` -- malformed YAML.

Audit relevance:
    Every successful load emits a ``STOCK_CONFIG_TRACE`` log entry with
    the config id, version and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stock_config.bridges import rules_from_config
from stock_config.loader import load_configuration_set
from stock_config.schema import StockConfigurationSet
from stock_config.validator import validate_configuration
from stock_kernel.domain.policy import StockRules

_logger = logging.getLogger("stock_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def load_active_configuration_set(
    config_dir: Path | None = None,
    name: str = "default",
) -> StockConfigurationSet:
    """Load, validate and trace ``<config_dir>/<name>.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If parsing or validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = load_configuration_set(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("stock_config_warning", extra={"warning": warning})

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "sale_debit_timing": config.sales.debit_timing,
        },
    )
    return config


def get_active_config(
    config_dir: Path | None = None,
    name: str = "default",
) -> StockRules:
    """The public configuration entrypoint for kernel rules."""
    return rules_from_config(load_active_configuration_set(config_dir, name))


__all__ = [
    "StockConfigurationSet",
    "get_active_config",
    "load_active_configuration_set",
]
