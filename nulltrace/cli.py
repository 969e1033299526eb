"""nulltrace/cli.py

Command line entry point.

Usage:
  nulltrace auth-token
  nulltrace quote --input So11111111111111111111111111111111111111112 --output <mint> --amount 0.5
  nulltrace balances --kind all --config configs/nulltrace.yaml

Results are printed as JSON on stdout. The wallet for `balances` is read from
SOLANA_PRIVATE_KEY.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from nulltrace.config import NullTraceConfig, load_config, validate_rpc_url
from nulltrace.errors import NullTraceError
from nulltrace.execution.auth import get_auth_token
from nulltrace.execution.fees import to_raw_amount
from nulltrace.execution.operator_client import OperatorClient
from nulltrace.ingestion.balances import BalanceReader
from nulltrace.ingestion.mint_resolver import MintResolver
from nulltrace.ingestion.rpc_ledger import RpcLedgerClient
from nulltrace.integration.key_manager import load_signer

logger = logging.getLogger(__name__)


def _ledger(config: NullTraceConfig) -> RpcLedgerClient:
    return RpcLedgerClient(
        validate_rpc_url(config.rpc_url),
        commitment=config.commitment,
        timeout_seconds=config.rpc_timeout_sec,
        confirm_timeout_seconds=config.confirm_timeout_sec,
        confirm_poll_seconds=config.confirm_poll_interval_sec,
    )


def cmd_auth_token(args: argparse.Namespace, config: NullTraceConfig) -> Dict[str, Any]:
    secret = args.secret or config.shared_secret
    return {"token": get_auth_token(secret, now=args.time, step=config.auth_step_sec)}


async def cmd_quote(args: argparse.Namespace, config: NullTraceConfig) -> Dict[str, Any]:
    async with _ledger(config) as ledger:
        asset = await MintResolver(ledger).resolve(args.input)
    raw = to_raw_amount(args.amount, asset.decimals)
    async with OperatorClient(
        base_url=config.operator_url,
        shared_secret=config.shared_secret,
        timeout_seconds=config.operator_timeout_sec,
        auth_step_seconds=config.auth_step_sec,
    ) as operator:
        return await operator.quote_swap(asset.mint, args.output, raw)


async def cmd_balances(args: argparse.Namespace, config: NullTraceConfig) -> List[Dict[str, Any]]:
    signer = load_signer()
    async with _ledger(config) as ledger:
        reader = BalanceReader(ledger, signer, MintResolver(ledger))
        if args.kind == "public":
            balances = await reader.get_public_balances()
        elif args.kind == "private":
            balances = await reader.get_private_balances()
        else:
            balances = await reader.get_balances()
    return [b.to_dict() for b in balances]


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="nulltrace", description="Compressed-balance client tools.")
    ap.add_argument("--config", default=None, help="Path to a YAML config file.")
    ap.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...).")
    sub = ap.add_subparsers(dest="command", required=True)

    auth = sub.add_parser("auth-token", help="Print the current operator auth code.")
    auth.add_argument("--secret", default=None, help="Shared secret (defaults to config).")
    auth.add_argument("--time", type=float, default=None, help="Unix time to compute the code for.")

    quote = sub.add_parser("quote", help="Request a swap quote from the operator.")
    quote.add_argument("--input", required=True, help="Input mint.")
    quote.add_argument("--output", required=True, help="Output mint.")
    quote.add_argument("--amount", required=True, help="Human-readable input amount.")

    balances = sub.add_parser("balances", help="Show wallet balances.")
    balances.add_argument("--kind", choices=("public", "private", "all"), default="all")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = load_config(args.config)
        if args.command == "auth-token":
            out: Any = cmd_auth_token(args, config)
        elif args.command == "quote":
            out = asyncio.run(cmd_quote(args, config))
        else:
            out = asyncio.run(cmd_balances(args, config))
    except NullTraceError as e:
        logger.error(f"[cli] {args.command} failed: {e}")
        print(json.dumps({"error": str(e)}, ensure_ascii=False), file=sys.stderr)
        return 1

    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
