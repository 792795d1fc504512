"""Normalization and deduplication of scraped bank transactions."""

from .dedup import filter_new, find_near_duplicates, group_by_account, transaction_hash
from .mapper import extract_merchant, map_account_transactions, map_transaction

__all__ = [
    "extract_merchant",
    "filter_new",
    "find_near_duplicates",
    "group_by_account",
    "map_account_transactions",
    "map_transaction",
    "transaction_hash",
]
