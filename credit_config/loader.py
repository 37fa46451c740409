"""
Configuration Loader (``credit_config.loader``).

Responsibility
--------------
Loads YAML configuration files and parses the ``vendor_credits`` section
into a ``VendorCreditConfig``.  Runtime callers go through
``credit_config.get_active_config()``; these functions are the tooling
underneath it and are used directly by tests.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the module config
schema only; the kernel and engines never import this package.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with a descriptive message; a missing
  ``vendor_credits`` section is an error, not a silent default.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from ``VendorCreditConfig``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from credit_modules.vendor_credits.config import VendorCreditConfig

SECTION = "vendor_credits"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Preconditions:
        - ``path`` must point to an existing, readable YAML file.
    Postconditions:
        - Returns a ``dict`` (possibly empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Top level of {path} must be a mapping")
    return data


def parse_vendor_credit_config(data: dict[str, Any]) -> VendorCreditConfig:
    """Build a ``VendorCreditConfig`` from a parsed document."""
    if SECTION not in data:
        raise ValueError(f"Configuration is missing the '{SECTION}' section")
    section = data[SECTION] or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{SECTION}' section must be a mapping")
    return VendorCreditConfig.from_dict(section)


def load_vendor_credit_config(path: Path) -> VendorCreditConfig:
    """Load and parse a vendor credit configuration file."""
    return parse_vendor_credit_config(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Returns a hex-encoded SHA-256 hash string.
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
