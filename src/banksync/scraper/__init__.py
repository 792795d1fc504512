"""External bank scraper boundary: raw record shapes, credentials and registry."""

from .registry import BankScraper, ScraperRegistry
from .types import (
    BankProvider,
    IsracardCredentials,
    OneZeroCredentials,
    ProviderCredentials,
    ScrapedAccount,
    ScrapedTransaction,
    ScrapedTransactionStatus,
    ScrapedTransactionType,
    parse_credentials,
)

__all__ = [
    "BankProvider",
    "BankScraper",
    "IsracardCredentials",
    "OneZeroCredentials",
    "ProviderCredentials",
    "ScrapedAccount",
    "ScrapedTransaction",
    "ScrapedTransactionStatus",
    "ScrapedTransactionType",
    "ScraperRegistry",
    "parse_credentials",
]
