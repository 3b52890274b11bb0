"""
Ledger configuration (``rental_kernel.config``).

Responsibility
--------------
Loads the runtime configuration of a rental ledger deployment from a YAML
file, applies environment overrides, and validates the result into a frozen
``LedgerConfig``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with a descriptive message; there are
  no silent defaults for malformed values.
* ``compute_checksum`` gives a deterministic SHA-256 identity of the
  active configuration.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.

Environment overrides
---------------------
``RENTAL_DATABASE_URL``, ``RENTAL_OWNER`` and ``RENTAL_LOG_LEVEL`` replace
the corresponding file values when set.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Self

import yaml

from rental_kernel.domain.amounts import CurrencyUnit
from rental_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "ledger.yaml"

ENV_OVERRIDES = {
    "RENTAL_DATABASE_URL": "database_url",
    "RENTAL_OWNER": "owner",
    "RENTAL_LOG_LEVEL": "log_level",
}

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class LedgerConfig:
    """Configuration for one ledger deployment."""

    database_url: str = "sqlite:///rental_ledger.db"

    # Identity that initializes the ledger; None leaves it to the caller
    owner: str | None = None

    currency_code: str = "ETH"
    currency_decimals: int = 18

    log_level: str = "INFO"
    echo_sql: bool = False

    def __post_init__(self):
        if not self.database_url or not self.database_url.strip():
            raise ValueError("database_url cannot be empty")
        if self.owner is not None and not self.owner.strip():
            raise ValueError("owner cannot be blank")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {self.log_level}")
        # Validates code and decimals
        self.currency_unit()

    def currency_unit(self) -> CurrencyUnit:
        return CurrencyUnit(self.currency_code, self.currency_decimals)

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """
        Build a config from a parsed ``ledger:`` section.

        Raises:
            ValueError: unknown keys or badly typed values.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown ledger config keys: {sorted(unknown)}")

        values = dict(data)
        if "currency_decimals" in values:
            decimals = values["currency_decimals"]
            if isinstance(decimals, bool) or not isinstance(decimals, int):
                raise ValueError(f"currency_decimals must be an integer, got {decimals!r}")
        if "echo_sql" in values and not isinstance(values["echo_sql"], bool):
            raise ValueError(f"echo_sql must be true or false, got {values['echo_sql']!r}")
        for key in ("database_url", "owner", "currency_code", "log_level"):
            if values.get(key) is not None and not isinstance(values[key], str):
                raise ValueError(f"{key} must be a string, got {values[key]!r}")
        return cls(**values)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Read one YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    env = os.environ if environ is None else environ
    merged = dict(data)
    for var, key in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            merged[key] = value
    return merged


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """
    Load ``LedgerConfig`` from YAML plus environment overrides.

    The file holds a top-level ``ledger:`` mapping.  ``path`` defaults to
    the repository's ``config/ledger.yaml``.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    raw = load_yaml_file(config_path)
    if not isinstance(raw, dict):
        raise ValueError(f"{config_path}: expected a mapping at the top level")
    section = raw.get("ledger", {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{config_path}: 'ledger' must be a mapping")

    config = LedgerConfig.from_mapping(apply_env_overrides(section, environ))
    logger.info(
        "ledger_config_loaded",
        extra={
            "path": str(config_path),
            "currency_code": config.currency_code,
            "currency_decimals": config.currency_decimals,
            "checksum": compute_checksum(config),
        },
    )
    return config


def compute_checksum(config: LedgerConfig | Mapping[str, Any]) -> str:
    """
    SHA-256 of the canonical JSON form of a configuration.

    Identical configurations always produce identical checksums.
    """
    data = asdict(config) if isinstance(config, LedgerConfig) else dict(config)
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
