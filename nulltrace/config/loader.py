"""nulltrace/config/loader.py

Load NullTraceConfig from a nested YAML file plus environment overrides.

    rpc:
      url: https://mainnet.helius-rpc.com/?api-key=...
    operator:
      url: http://.../operator
    fees:
      rate: 0.001

Environment wins over the file: HELIUS_RPC_URL / NULLTRACE_RPC_URL,
NULLTRACE_OPERATOR_URL, NULLTRACE_SHARED_SECRET.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from nulltrace.config.schema import NullTraceConfig
from nulltrace.errors import InvalidArgument

logger = logging.getLogger(__name__)


class ConfigError(InvalidArgument):
    pass


# (section, key) -> NullTraceConfig field
_FIELD_MAP = {
    ("rpc", "url"): "rpc_url",
    ("rpc", "commitment"): "commitment",
    ("rpc", "timeout_sec"): "rpc_timeout_sec",
    ("rpc", "confirm_timeout_sec"): "confirm_timeout_sec",
    ("rpc", "confirm_poll_interval_sec"): "confirm_poll_interval_sec",
    ("operator", "url"): "operator_url",
    ("operator", "address"): "operator_address",
    ("operator", "shared_secret"): "shared_secret",
    ("operator", "timeout_sec"): "operator_timeout_sec",
    ("operator", "auth_step_sec"): "auth_step_sec",
    ("fees", "rate"): "fee_rate",
    ("fees", "native_reserve_lamports"): "native_reserve_lamports",
    ("packing", "lookup_table"): "lookup_table_address",
    ("packing", "compute_unit_limit"): "compute_unit_limit",
    ("packing", "compute_unit_price"): "compute_unit_price",
    ("packing", "max_tx_size"): "max_tx_size",
    ("swap", "poll_interval_sec"): "swap_poll_interval_sec",
    ("swap", "timeout_sec"): "swap_timeout_sec",
}

# Later entries win
_ENV_MAP = (
    ("HELIUS_RPC_URL", "rpc_url"),
    ("NULLTRACE_RPC_URL", "rpc_url"),
    ("NULLTRACE_OPERATOR_URL", "operator_url"),
    ("NULLTRACE_SHARED_SECRET", "shared_secret"),
)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"YAML not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a dictionary")
    return data


def flatten_config(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Map the nested file layout onto NullTraceConfig field names."""
    flat: Dict[str, Any] = {}
    for section, body in raw.items():
        if not isinstance(body, dict):
            raise ConfigError(f"Section '{section}' must be a mapping")
        for key, value in body.items():
            field_name = _FIELD_MAP.get((section, key))
            if field_name is None:
                raise ConfigError(f"Unknown config key '{section}.{key}'")
            flat[field_name] = value
    return flat


def load_config(
    path: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> NullTraceConfig:
    """Build a validated config.

    Args:
        path: Optional YAML file; defaults only when omitted.
        env: Environment mapping (defaults to os.environ).

    Raises:
        ConfigError / InvalidArgument: On unknown keys or invalid values.
    """
    env = os.environ if env is None else env
    flat: Dict[str, Any] = {}
    if path is not None:
        flat.update(flatten_config(_load_yaml(Path(path))))
        logger.info(f"[config] Loaded configuration from {path}")

    for var, field_name in _ENV_MAP:
        value = env.get(var)
        if value:
            flat[field_name] = value

    return NullTraceConfig(**flat)
