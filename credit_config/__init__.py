"""
credit_config -- single public entrypoint for vendor credit configuration.

Responsibility:
    Provides the runtime way to obtain configuration through
    ``get_active_config()``.  Services receive the returned
    ``VendorCreditConfig``; they never read files or environment
    variables themselves.

Architecture position:
    Configuration -- YAML-driven settings.  Sits above ``credit_kernel``
    and ``credit_engines``; the kernel and engines MUST NEVER import from
    ``credit_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- the file is malformed or a value is out of range.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``CREDIT_CONFIG_TRACE`` log entry containing the config id, version,
    checksum and source path, tying each run to the exact settings that
    governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from credit_config.loader import (
    compute_checksum,
    load_vendor_credit_config,
    load_yaml_file,
    parse_vendor_credit_config,
)
from credit_modules.vendor_credits.config import VendorCreditConfig

_logger = logging.getLogger("credit_kernel.config")

# Default configuration file
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "vendor_credits.yaml"


def get_active_config(config_path: Path | None = None) -> VendorCreditConfig:
    """The runtime configuration entrypoint.

    Guarantees:
        - The returned config has passed ``VendorCreditConfig`` validation.
        - A ``CREDIT_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - Does NOT cache; callers hold the returned config.

    Args:
        config_path: Override path to the YAML file.  Defaults to
            credit_config/sets/vendor_credits.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the configuration is invalid.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)
    config = parse_vendor_credit_config(data)
    checksum = compute_checksum(data)

    _logger.info(
        "CREDIT_CONFIG_TRACE",
        extra={
            "trace_type": "CREDIT_CONFIG_TRACE",
            "config_id": data.get("config_id"),
            "config_version": data.get("version"),
            "checksum": checksum,
            "config_path": str(path),
            "base_currency": config.base_currency,
            "gst_bracket_count": len(config.gst_brackets),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "compute_checksum",
    "get_active_config",
    "load_vendor_credit_config",
    "load_yaml_file",
    "parse_vendor_credit_config",
]
