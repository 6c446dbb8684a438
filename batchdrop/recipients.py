"""
Recipient list loading.

Supports CSV (``address,amount[,label]`` header) and JSON (list of objects)
files. Amounts are parsed as Decimal so they keep the exact precision
written in the file.
"""

from __future__ import annotations

import csv
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Optional

from .models import Recipient


def _parse_amount(raw, where: str) -> Decimal:
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError(f"{where}: invalid amount '{raw}'")
    if not amount.is_finite():
        raise ValueError(f"{where}: invalid amount '{raw}'")
    return amount


def parse_recipients_csv(filepath: str | Path) -> list[Recipient]:
    """
    Parse a CSV file of recipients.

    Expected format:
        address,amount[,label]
        5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty,10.5,Alice
        5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY,5.0,Bob
    """
    recipients = []
    filepath = Path(filepath)

    with open(filepath, "r", newline="") as f:
        reader = csv.DictReader(f)

        if reader.fieldnames is None:
            raise ValueError("CSV file is empty or has no headers")

        for row_num, row in enumerate(reader, start=2):
            # Normalize keys
            normalized = {
                (k or "").strip().lower(): (v or "").strip() for k, v in row.items()
            }

            address = normalized.get("address", "")
            label = normalized.get("label", normalized.get("name", ""))

            if not address:
                raise ValueError(f"Row {row_num}: missing address")

            recipients.append(Recipient(
                address=address,
                amount=_parse_amount(normalized.get("amount", "0"), f"Row {row_num}"),
                index=len(recipients),
                label=label,
            ))

    return recipients


def parse_recipients_json(filepath: str | Path) -> list[Recipient]:
    """
    Parse a JSON file of recipients.

    Expected format:
        [
            {"address": "5FHne...", "amount": "10.5", "label": "Alice"},
            {"address": "5Grwv...", "amount": 5}
        ]
    """
    filepath = Path(filepath)
    with open(filepath, "r") as f:
        # Floats are read as Decimal to keep their written precision
        data = json.load(f, parse_float=Decimal)

    if not isinstance(data, list):
        raise ValueError("JSON must contain a list of recipient objects")

    recipients = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise ValueError(f"Entry {i}: must be an object")
        if "address" not in entry:
            raise ValueError(f"Entry {i}: missing 'address' field")
        if "amount" not in entry:
            raise ValueError(f"Entry {i}: missing 'amount' field")

        recipients.append(Recipient(
            address=str(entry["address"]),
            amount=_parse_amount(entry["amount"], f"Entry {i}"),
            index=i,
            label=str(entry.get("label", "")),
        ))

    return recipients


def parse_recipients(filepath: str | Path) -> list[Recipient]:
    """Parse recipients, picking the format from the file suffix."""
    filepath = Path(filepath)
    if filepath.suffix.lower() == ".json":
        return parse_recipients_json(filepath)
    return parse_recipients_csv(filepath)


def validate_recipients(
    recipients: list[Recipient],
    is_valid_address: Optional[Callable[[str], bool]] = None,
) -> tuple[bool, list[str]]:
    """
    Validate all recipients. Returns (is_valid, list_of_errors).
    Also checks for duplicate addresses.
    """
    errors = []
    seen_addresses: dict[str, int] = {}

    for i, r in enumerate(recipients):
        name = r.label or r.short_address()
        if is_valid_address is not None and not is_valid_address(r.address):
            errors.append(f"Recipient {i + 1} ({name}): invalid address {r.address}")
        if r.amount <= 0:
            errors.append(
                f"Recipient {i + 1} ({name}): amount must be positive, got {r.amount}"
            )

        if r.address in seen_addresses:
            prev = seen_addresses[r.address]
            errors.append(
                f"Duplicate address at positions {prev + 1} and {i + 1}: {r.address[:16]}..."
            )
        seen_addresses[r.address] = i

    return len(errors) == 0, errors
