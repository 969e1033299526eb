from __future__ import annotations

from pathlib import Path

import pytest

from nulltrace.config import ConfigError, NullTraceConfig, load_config, validate_rpc_url
from nulltrace.config.schema import DEFAULT_OPERATOR_ADDRESS
from nulltrace.errors import InvalidArgument

HELIUS = "https://mainnet.helius-rpc.com/?api-key=abc"


def test_defaults():
    config = NullTraceConfig()
    assert config.fee_rate == 0.001
    assert config.max_tx_size == 1232
    assert config.operator_address == DEFAULT_OPERATOR_ADDRESS
    assert config.swap_timeout_sec == 120.0


def test_rpc_url_must_be_helius():
    assert validate_rpc_url(HELIUS) == HELIUS
    with pytest.raises(InvalidArgument, match="Helius"):
        NullTraceConfig(rpc_url="https://api.mainnet-beta.solana.com")
    with pytest.raises(InvalidArgument):
        validate_rpc_url("")


@pytest.mark.parametrize(
    "field, value",
    [("max_tx_size", 2000), ("fee_rate", -0.1), ("commitment", "recent"), ("operator_url", ""), ("swap_timeout_sec", "x")],
)
def test_invalid_values_raise(field, value):
    with pytest.raises(InvalidArgument):
        NullTraceConfig(**{field: value})


def test_load_yaml_with_env_override(tmp_path):
    path = tmp_path / "nulltrace.yaml"
    path.write_text(
        "rpc:\n"
        f"  url: {HELIUS}\n"
        "fees:\n"
        "  rate: 0.002\n"
        "swap:\n"
        "  timeout_sec: 30\n",
        encoding="utf-8",
    )
    config = load_config(path, env={"NULLTRACE_SHARED_SECRET": "s3cret"})
    assert config.rpc_url == HELIUS
    assert config.fee_rate == 0.002
    assert config.swap_timeout_sec == 30
    assert config.shared_secret == "s3cret"


def test_env_rpc_url_precedence():
    env = {"HELIUS_RPC_URL": HELIUS, "NULLTRACE_RPC_URL": "https://devnet.helius-rpc.com/?api-key=x"}
    assert load_config(env=env).rpc_url.startswith("https://devnet.helius")


def test_unknown_key_and_missing_file(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("rpc:\n  endpoint: x\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="rpc.endpoint"):
        load_config(path, env={})
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.yaml", env={})


def test_shipped_example_config_loads():
    path = Path(__file__).resolve().parents[1] / "configs" / "nulltrace.yaml"
    config = load_config(path, env={})
    assert config.compute_unit_limit == 1_400_000
