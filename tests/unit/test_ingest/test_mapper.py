"""Unit tests for the transaction normalizer."""

from datetime import date
from decimal import Decimal

import pytest

from banksync.core.exceptions import FormatError
from banksync.ingest.mapper import (
    extract_merchant,
    generate_external_id,
    map_account_transactions,
    map_transaction,
)
from banksync.schemas.internal import TransactionDirection
from banksync.scraper.types import ScrapedAccount, ScrapedTransaction


def scraped(**overrides) -> ScrapedTransaction:
    data = {
        "type": "normal",
        "identifier": 1001,
        "date": "2024-06-10T08:30:00.000Z",
        "processedDate": "2024-07-02T00:00:00.000Z",
        "originalAmount": -120.5,
        "originalCurrency": "ILS",
        "chargedAmount": -120.5,
        "description": "SHUFERSAL DEAL - TEL AVIV",
        "status": "completed",
    }
    data.update(overrides)
    return ScrapedTransaction.model_validate(data)


class TestMapTransaction:
    def test_expense_amount_is_absolute(self):
        mapped = map_transaction(scraped(), "1234")

        assert mapped.amount == Decimal("120.5")
        assert mapped.direction == TransactionDirection.EXPENSE
        assert mapped.date == date(2024, 6, 10)
        assert mapped.external_account_id == "1234"

    def test_positive_charge_is_income(self):
        mapped = map_transaction(scraped(chargedAmount=2500, originalAmount=2500), "1234")

        assert mapped.direction == TransactionDirection.INCOME
        assert mapped.amount == Decimal("2500")

    def test_foreign_currency_note_keeps_sign(self):
        """-50 USD charged against an ILS household."""
        mapped = map_transaction(
            scraped(chargedAmount=-50, originalAmount=-50, originalCurrency="USD"),
            "1234",
            base_currency="ILS",
        )

        assert "-50 USD" in mapped.notes
        assert mapped.direction == TransactionDirection.EXPENSE
        assert mapped.amount == Decimal("50")

    def test_base_currency_adds_no_note(self):
        assert map_transaction(scraped(), "1234").notes is None

    def test_installments_and_memo_notes_order(self):
        mapped = map_transaction(
            scraped(
                type="installments",
                installments={"number": 2, "total": 6},
                memo="TV",
                originalCurrency="EUR",
                originalAmount=-600,
            ),
            "1234",
        )

        assert mapped.notes == "payment 2/6 | TV | -600 EUR"

    def test_installment_alias_is_accepted(self):
        mapped = map_transaction(
            scraped(type="installment", installments={"number": 1, "total": 3}), "1234"
        )
        assert mapped.notes == "payment 1/3"

    def test_category_hint_passes_through(self):
        mapped = map_transaction(scraped(category="מזון וצריכה"), "1234")
        assert mapped.external_category == "מזון וצריכה"

    def test_empty_description_is_format_error(self):
        with pytest.raises(FormatError):
            map_transaction(scraped(description="   "), "1234")

    def test_date_only_value_is_accepted(self):
        mapped = map_transaction(scraped(date="2024-06-10"), "1234")
        assert mapped.date == date(2024, 6, 10)


class TestExternalId:
    def test_uses_identifier(self):
        assert generate_external_id(scraped(identifier="abc"), "1234") == "1234_abc"
        assert generate_external_id(scraped(identifier=77), "1234") == "1234_77"

    def test_fallback_hash_is_stable_and_16_hex(self):
        txn = scraped(identifier=None)
        first = generate_external_id(txn, "1234")
        second = generate_external_id(scraped(identifier=None), "1234")

        assert first == second
        account, digest = first.split("_", 1)
        assert account == "1234"
        assert len(digest) == 16
        assert all(c in "0123456789abcdef" for c in digest)

    def test_fallback_hash_differs_by_installment(self):
        first = generate_external_id(
            scraped(identifier=None, type="installments", installments={"number": 1, "total": 3}),
            "1234",
        )
        second = generate_external_id(
            scraped(identifier=None, type="installments", installments={"number": 2, "total": 3}),
            "1234",
        )
        assert first != second


class TestExtractMerchant:
    @pytest.mark.parametrize(
        "description,expected",
        [
            ("SHUFERSAL DEAL - TEL AVIV", "SHUFERSAL DEAL"),
            ("Charge Netflix.com", "Netflix.com"),
            ("STANDING ORDER Electric Co", "Electric Co"),
            ("הוראת קבע חברת חשמל", "חברת חשמל"),
            ("Payment", None),
            ("ab", None),
            ("", None),
            (None, None),
            ("Chargers Ltd", "Chargers Ltd"),
        ],
    )
    def test_extract(self, description, expected):
        assert extract_merchant(description) == expected

    def test_long_merchant_is_capped(self):
        assert len(extract_merchant("X" * 250)) == 100


class TestMapAccountTransactions:
    def test_skips_pending_and_malformed(self):
        accounts = [
            ScrapedAccount(
                accountNumber="1111",
                txns=[
                    scraped(identifier=1),
                    scraped(identifier=2, status="pending"),
                    scraped(identifier=3, description=""),
                ],
            ),
            ScrapedAccount(accountNumber="2222", txns=[scraped(identifier=4)]),
        ]

        mapped = map_account_transactions(accounts)

        assert [m.external_id for m in mapped] == ["1111_1", "2222_4"]

    def test_empty_input(self):
        assert map_account_transactions([]) == []
