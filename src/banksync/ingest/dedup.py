"""Deduplication of mapped transactions against previously stored records.

External id equality is the primary key. The content hash is a secondary
signal: when a provider starts sending real identifiers for records that were
stored under a hash-fallback id, the same economic event shows up under a new
external id with an identical hash. Such pairs are surfaced for review, never
merged automatically.
"""

import hashlib
from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal

from banksync.schemas.internal import MappedTransaction

HASH_LENGTH = 16


def transaction_hash(txn: MappedTransaction) -> str:
    """Return the 16 lowercase hex character dedup digest of a transaction.

    Covers account, day, amount (2 places), lower-cased trimmed description
    and direction. Time of day does not participate.
    """
    day = txn.date.date() if isinstance(txn.date, datetime) else txn.date
    direction = getattr(txn.direction, "value", txn.direction)
    data = "|".join(
        [
            txn.external_account_id,
            day.isoformat(),
            f"{Decimal(txn.amount):.2f}",
            txn.description.lower().strip(),
            str(direction),
        ]
    )
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def filter_new(
    candidates: Iterable[MappedTransaction], existing_external_ids: set[str]
) -> list[MappedTransaction]:
    """Return the candidates whose external id is not already stored."""
    return [txn for txn in candidates if txn.external_id not in existing_external_ids]


def group_by_account(
    transactions: Iterable[MappedTransaction],
) -> dict[str, list[MappedTransaction]]:
    """Partition transactions by external account id, keeping input order."""
    grouped: dict[str, list[MappedTransaction]] = {}
    for txn in transactions:
        grouped.setdefault(txn.external_account_id, []).append(txn)
    return grouped


def find_near_duplicates(
    candidates: Iterable[MappedTransaction], existing_hashes: Mapping[str, str]
) -> list[tuple[MappedTransaction, str]]:
    """Find candidates that look like an already stored event under another id.

    Args:
        candidates: New (already external-id-filtered) transactions
        existing_hashes: Mapping of dedup hash -> stored external id

    Returns:
        List of (candidate, stored external id) pairs for operator review
    """
    matches = []
    for txn in candidates:
        stored_id = existing_hashes.get(transaction_hash(txn))
        if stored_id is not None and stored_id != txn.external_id:
            matches.append((txn, stored_id))
    return matches
