"""Transaction normalizer: raw scraped records -> MappedTransaction.

One mapper serves every provider; provider differences are confined to the
raw record shape in ``banksync.scraper.types``.
"""

import hashlib
import logging
import re
from decimal import Decimal

from banksync.core.exceptions import FormatError
from banksync.scraper.types import (
    ScrapedAccount,
    ScrapedTransaction,
    ScrapedTransactionStatus,
    ScrapedTransactionType,
)
from banksync.schemas.internal import MappedTransaction, TransactionDirection

logger = logging.getLogger(__name__)

NOTES_DELIMITER = " | "
MERCHANT_MAX_LENGTH = 100
MIN_MERCHANT_LENGTH = 3

# Leading transaction-type words that carry no merchant information
# (English and the Hebrew forms used by Israeli banks).
_TYPE_PREFIX = re.compile(
    r"^(?:standing\s+order|charge|payment|transfer|withdrawal"
    r"|הוראת קבע|חיוב|תשלום|העברה|משיכה)(?=\s|$)\s*",
    re.IGNORECASE,
)


def _two_places(amount: Decimal) -> str:
    return f"{Decimal(amount):.2f}"


def extract_merchant(description: str | None) -> str | None:
    """Derive a merchant name from a bank description.

    Pattern: "[TYPE PREFIX] BUSINESS NAME[ - CITY]".

    Args:
        description: Raw transaction description

    Returns:
        Merchant name, or None when too little text remains
    """
    cleaned = _TYPE_PREFIX.sub("", (description or "").strip()).strip()
    if len(cleaned) < MIN_MERCHANT_LENGTH:
        return None

    dash_index = cleaned.find(" - ")
    if dash_index > 0:
        cleaned = cleaned[:dash_index]

    return cleaned[:MERCHANT_MAX_LENGTH]


def build_notes(txn: ScrapedTransaction, base_currency: str) -> str | None:
    """Assemble the notes field: installments, memo, foreign amount."""
    parts: list[str] = []
    if txn.type == ScrapedTransactionType.INSTALLMENTS and txn.installments:
        parts.append(f"payment {txn.installments.number}/{txn.installments.total}")
    if txn.memo:
        parts.append(txn.memo)
    if txn.original_currency and txn.original_currency != base_currency:
        parts.append(f"{txn.original_amount} {txn.original_currency}")
    return NOTES_DELIMITER.join(parts) if parts else None


def fallback_record_hash(txn: ScrapedTransaction, external_account_id: str) -> str:
    """Stable 16-hex digest identifying a record that has no provider id."""
    installments = (
        f"{txn.installments.number}/{txn.installments.total}" if txn.installments else ""
    )
    data = "|".join(
        [
            external_account_id,
            txn.date.isoformat(),
            _two_places(txn.charged_amount),
            txn.description,
            installments,
        ]
    )
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]


def generate_external_id(txn: ScrapedTransaction, external_account_id: str) -> str:
    """Build ``{account}_{identifier}``, falling back to a content hash."""
    if txn.identifier is not None and str(txn.identifier) != "":
        return f"{external_account_id}_{txn.identifier}"
    return f"{external_account_id}_{fallback_record_hash(txn, external_account_id)}"


def map_transaction(
    txn: ScrapedTransaction, external_account_id: str, base_currency: str = "ILS"
) -> MappedTransaction:
    """
    Map a single scraped transaction to the application format.

    Args:
        txn: Raw scraped record
        external_account_id: Account number the record belongs to
        base_currency: Household currency; other currencies are noted

    Returns:
        MappedTransaction

    Raises:
        FormatError: If the record cannot be normalized
    """
    if not txn.description or not txn.description.strip():
        raise FormatError("Scraped transaction has an empty description", error_code="VAL_001")

    charged = Decimal(txn.charged_amount)
    direction = TransactionDirection.INCOME if charged >= 0 else TransactionDirection.EXPENSE

    return MappedTransaction(
        external_id=generate_external_id(txn, external_account_id),
        date=txn.utc_date,
        description=txn.description,
        merchant=extract_merchant(txn.description),
        amount=abs(charged),
        direction=direction,
        notes=build_notes(txn, base_currency),
        external_account_id=external_account_id,
        external_category=txn.category,
    )


def map_account_transactions(
    accounts: list[ScrapedAccount], base_currency: str = "ILS"
) -> list[MappedTransaction]:
    """Map every completed transaction of the scraped accounts.

    Pending records are dropped. A record that fails to normalize is logged
    and skipped; the rest of the batch is still mapped.
    """
    transactions: list[MappedTransaction] = []
    skipped_pending = 0
    skipped_invalid = 0

    for account in accounts:
        for txn in account.txns:
            if txn.status == ScrapedTransactionStatus.PENDING:
                skipped_pending += 1
                continue
            try:
                transactions.append(map_transaction(txn, account.account_number, base_currency))
            except FormatError as e:
                skipped_invalid += 1
                logger.warning(
                    "Skipping malformed scraped transaction",
                    extra={"error_code": e.error_code, "account": account.account_number},
                )

    if skipped_pending or skipped_invalid:
        logger.info(
            "Mapped scraped transactions",
            extra={
                "mapped": len(transactions),
                "skipped_pending": skipped_pending,
                "skipped_invalid": skipped_invalid,
            },
        )
    return transactions
