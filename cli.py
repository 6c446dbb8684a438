#!/usr/bin/env python3
"""
batchdrop — CLI for batched distributions on the Bittensor network.

Usage:
    batchdrop transfer --wallet <name> --file <path> [--network <net>] [--asset-id <id>]
    batchdrop plan --file <path> --balance <amount> [--batch-size <n>]
    batchdrop validate --file <path>
    batchdrop generate-template --output <path> [--format csv|json] [--count <n>]

Examples:
    # Distribute TAO to recipients from a CSV file (testnet)
    batchdrop transfer --wallet my_wallet --file recipients.csv --network test

    # Distribute an Assets pallet token with 6 decimals
    batchdrop transfer --wallet my_wallet --file recipients.csv --asset-id 7 --decimals 6

    # Show how a list would be batched, without touching the network
    batchdrop plan --file recipients.csv --balance 100

    # Validate a recipient list
    batchdrop validate --file recipients.csv
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import bittensor as bt

from batchdrop import __version__
from batchdrop.batch import plan_batches, total_requested, validate_balance
from batchdrop.config import EngineConfig, load_config
from batchdrop.engine import ExecutionEngine, ExecutionSession
from batchdrop.errors import ConfigurationError, InsufficientBalance
from batchdrop.logging_config import setup_logging
from batchdrop.models import AssetDescriptor, Recipient
from batchdrop.recipients import parse_recipients, validate_recipients
from batchdrop.subtensor import (
    SubtensorNetworkClient,
    WalletSigner,
    is_valid_address,
    native_tao_descriptor,
)


def _load(path: str) -> Optional[list[Recipient]]:
    try:
        recipients = parse_recipients(path)
    except Exception as e:
        print(f"Error parsing file: {e}")
        return None
    print(f"Loaded {len(recipients)} recipients from {path}")
    return recipients


def _engine_config(args: argparse.Namespace) -> EngineConfig:
    return load_config(getattr(args, "config", None)).with_overrides(
        batch_size=getattr(args, "batch_size", None),
        batch_delay=getattr(args, "delay", None),
    )


def _print_progress(session: ExecutionSession) -> None:
    if session.batch_count:
        print(
            f"  [{session.status.value}] batch {session.batches_done}/{session.batch_count}"
            f" | ok {session.results.success_count}, failed {session.results.failure_count}"
        )


async def _run_transfer(
    args: argparse.Namespace, recipients: list[Recipient], config: EngineConfig
) -> int:
    async with bt.AsyncSubtensor(network=args.network) as subtensor:
        wallet = bt.Wallet(name=args.wallet)
        wallet.unlock_coldkey()

        network = SubtensorNetworkClient(
            subtensor,
            wait_for_finalization=args.finalize,
            token_decimals=args.decimals,
        )
        signer = WalletSigner(wallet, subtensor, keep_alive=not args.allow_death)

        if args.asset_id is None:
            balance = await subtensor.get_balance(signer.address)
            asset = native_tao_descriptor(balance)
        else:
            available = await network.get_balance(signer.address, args.asset_id)
            asset = AssetDescriptor.token(
                asset_id=args.asset_id,
                symbol=args.symbol or f"ASSET-{args.asset_id}",
                decimals=args.decimals,
                balance=available,
                source_account=signer.address,
            )

        total = total_requested(recipients)
        print(f"Asset: {asset.symbol} | Balance: {asset.balance} {asset.symbol}")
        print(f"Total to transfer: {total} {asset.symbol} across {len(recipients)} recipients")

        if not args.yes:
            response = input(f"\nProceed with transfer of {total} {asset.symbol}? [y/N]: ")
            if response.lower() not in ("y", "yes"):
                print("Aborted.")
                return 0

        engine = ExecutionEngine(network, signer, config, is_valid_address=is_valid_address)
        engine.subscribe(_print_progress)

        print("\nExecuting distribution...")
        try:
            results = await engine.start(asset, recipients)
        except InsufficientBalance as e:
            print(f"Error: {e}")
            return 1

        print()
        print(engine.session.summary())

        failures = [r for r in results if not r.ok]
        if failures:
            print(f"\nWARNING: {len(failures)}/{len(results)} transfers failed:")
            for r in failures:
                print(f"  ✗ #{r.recipient.index + 1} {r.recipient.short_address()}: {r.error}")
            return 1

        print("\nAll transfers completed successfully!")
        return 0


def cmd_transfer(args: argparse.Namespace) -> int:
    """Execute a batched distribution."""
    recipients = _load(args.file)
    if recipients is None:
        return 1

    print(f"Network: {args.network}")
    print(f"Wallet: {args.wallet}")

    is_valid, errors = validate_recipients(recipients, is_valid_address)
    if not is_valid:
        print("Validation errors:")
        for err in errors:
            print(f"  ✗ {err}")
        return 1

    try:
        config = _engine_config(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 1

    return asyncio.run(_run_transfer(args, recipients, config))


def cmd_plan(args: argparse.Namespace) -> int:
    """Show the batch plan for a recipient list."""
    recipients = _load(args.file)
    if recipients is None:
        return 1

    try:
        config = _engine_config(args)
        batches = plan_batches(recipients, config.batch_size)
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        return 1

    total = total_requested(recipients)
    print(f"Batch size: {config.batch_size}")
    print(f"Batch transactions needed: {len(batches)}")
    print(f"Total transfer amount: {total}")

    for batch in batches:
        print(f"  Batch {batch.index + 1}: {len(batch)} recipients, {batch.total_amount}")

    if args.balance is None:
        return 0

    try:
        balance = Decimal(args.balance)
    except InvalidOperation:
        print(f"Invalid balance '{args.balance}'")
        return 1

    asset = AssetDescriptor.native(asset_id="-", symbol="", decimals=0, balance=balance)
    try:
        validate_balance(asset, recipients)
    except InsufficientBalance as e:
        print(f"Balance: INSUFFICIENT ({e})")
        return 1
    print(f"Balance: SUFFICIENT ({balance} available)")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a recipient list."""
    recipients = _load(args.file)
    if recipients is None:
        return 1

    is_valid, errors = validate_recipients(recipients, is_valid_address)

    if not is_valid:
        print(f"\n✗ Found {len(errors)} validation errors:")
        for err in errors:
            print(f"  ✗ {err}")
        return 1

    if not recipients:
        print("\n✗ Recipient list is empty")
        return 1

    total = total_requested(recipients)
    amounts = [r.amount for r in recipients]
    print(f"\n✓ All {len(recipients)} recipients are valid")
    print(f"  Total amount: {total}")
    print(f"  Min: {min(amounts)}")
    print(f"  Max: {max(amounts)}")

    print("\nPreview (first 5):")
    for r in recipients[:5]:
        label = f" ({r.label})" if r.label else ""
        print(f"  {r.short_address()} → {r.amount}{label}")
    if len(recipients) > 5:
        print(f"  ... and {len(recipients) - 5} more")
    return 0


def cmd_generate_template(args: argparse.Namespace) -> int:
    """Generate a template recipient file."""
    count = args.count
    output = Path(args.output)

    # Well-known Substrate development accounts
    sample_addresses = [
        "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY",  # Alice
        "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty",  # Bob
        "5FLSigC9HGRKVhB9FiEo4Y3koPsNmBmLJbpXg2mp1hXcS59Y",  # Charlie
        "5DAAnrj7VHTznn2AWBemMuyBwZWs6FNFjdyVXUeYum3PTXFy",  # Dave
        "5HGjWAeFDfFCWPsjFQdVV2Msvz2XtMktvgocEZcCj68kUMaw",  # Eve
    ]
    labels = ["Alice", "Bob", "Charlie", "Dave", "Eve"]

    rows = []
    for i in range(count):
        rows.append({
            "address": sample_addresses[i % len(sample_addresses)],
            "amount": str(Decimal("1.0") + Decimal("0.5") * i),
            "label": labels[i] if i < len(labels) else f"Recipient_{i + 1}",
        })

    if args.format == "json":
        with open(output, "w") as f:
            json.dump(rows, f, indent=2)
    else:
        with open(output, "w", newline="") as f:
            f.write("address,amount,label\n")
            for r in rows:
                f.write(f"{r['address']},{r['amount']},{r['label']}\n")

    print(f"Generated template with {count} recipients: {output}")
    print(f"Format: {args.format.upper()}")
    if count > len(sample_addresses):
        print("Note: sample addresses repeat; replace them before validating.")
    print(f"\nEdit the file with your actual recipient addresses and amounts,")
    print(f"then run: batchdrop validate --file {output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batchdrop",
        description="batchdrop — batched distributions for the Bittensor ecosystem",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"batchdrop {__version__}"
    )
    parser.add_argument(
        "--log-level", default=None, help="Logging level (default: $LOG_LEVEL or INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Transfer command
    transfer_parser = subparsers.add_parser(
        "transfer", help="Execute a batched distribution"
    )
    transfer_parser.add_argument(
        "--wallet", "-w", required=True, help="Bittensor wallet name"
    )
    transfer_parser.add_argument(
        "--file", "-f", required=True, help="Path to recipient list (CSV or JSON)"
    )
    transfer_parser.add_argument(
        "--network", "-n", default="finney",
        help="Bittensor network (finney, test, local). Default: finney"
    )
    transfer_parser.add_argument(
        "--config", help="TOML file with an [engine] table"
    )
    transfer_parser.add_argument(
        "--batch-size", type=int, help="Recipients per transaction (default: 5)"
    )
    transfer_parser.add_argument(
        "--delay", type=float, help="Seconds to pause between batches (default: 2)"
    )
    transfer_parser.add_argument(
        "--asset-id", help="Assets pallet id to distribute instead of TAO"
    )
    transfer_parser.add_argument(
        "--decimals", type=int, default=0, help="Decimal precision of --asset-id"
    )
    transfer_parser.add_argument(
        "--symbol", help="Display symbol of --asset-id"
    )
    transfer_parser.add_argument(
        "--yes", "-y", action="store_true",
        help="Skip confirmation prompt"
    )
    transfer_parser.add_argument(
        "--allow-death", action="store_true",
        help="Allow transfers that may reduce accounts below existential deposit"
    )
    transfer_parser.add_argument(
        "--finalize", action="store_true",
        help="Wait for transaction finalization (slower but more certain)"
    )

    # Plan command
    plan_parser = subparsers.add_parser(
        "plan", help="Show how a recipient list would be batched"
    )
    plan_parser.add_argument(
        "--file", "-f", required=True, help="Path to recipient list"
    )
    plan_parser.add_argument(
        "--config", help="TOML file with an [engine] table"
    )
    plan_parser.add_argument(
        "--batch-size", type=int, help="Recipients per transaction"
    )
    plan_parser.add_argument(
        "--balance", help="Available balance to check the total against"
    )

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate", help="Validate a recipient list"
    )
    validate_parser.add_argument(
        "--file", "-f", required=True, help="Path to recipient list"
    )

    # Generate template command
    template_parser = subparsers.add_parser(
        "generate-template", help="Generate a template recipient file"
    )
    template_parser.add_argument(
        "--output", "-o", default="recipients.csv", help="Output file path"
    )
    template_parser.add_argument(
        "--format", choices=["csv", "json"], default="csv", help="File format"
    )
    template_parser.add_argument(
        "--count", "-c", type=int, default=5, help="Number of sample recipients"
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(args.log_level)

    commands = {
        "transfer": cmd_transfer,
        "plan": cmd_plan,
        "validate": cmd_validate,
        "generate-template": cmd_generate_template,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
