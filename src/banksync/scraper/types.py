"""Data shapes exchanged with the external bank scraper.

These models describe what the scraper collaborator returns (raw, provider
shaped records) and what it receives (decrypted, provider specific
credentials). Raw records are frozen: they are never modified after receipt.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class BankProvider(str, Enum):
    """Supported bank providers."""

    ONEZERO = "onezero"
    ISRACARD = "isracard"


class ScrapedTransactionType(str, Enum):
    NORMAL = "normal"
    INSTALLMENTS = "installments"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.lower() == "installment":
            return cls.INSTALLMENTS
        return None


class ScrapedTransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"


class Installments(BaseModel):
    """Installment position of a charge (payment `number` of `total`)."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., ge=1)
    total: int = Field(..., ge=1)


def _parse_scraped_datetime(value):
    if isinstance(value, str) and len(value) == 10:
        value = f"{value}T00:00:00"
    return value


class ScrapedTransaction(BaseModel):
    """A single raw transaction as produced by the scraper."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: ScrapedTransactionType = ScrapedTransactionType.NORMAL
    identifier: str | int | None = None
    date: datetime
    processed_date: datetime | None = Field(None, alias="processedDate")
    original_amount: Decimal = Field(..., alias="originalAmount")
    original_currency: str | None = Field(None, alias="originalCurrency")
    charged_amount: Decimal = Field(..., alias="chargedAmount")
    charged_currency: str | None = Field(None, alias="chargedCurrency")
    description: str
    memo: str | None = None
    category: str | None = Field(None, description="Provider sector/category hint")
    installments: Installments | None = None
    status: ScrapedTransactionStatus = ScrapedTransactionStatus.COMPLETED

    @field_validator("date", "processed_date", mode="before")
    @classmethod
    def accept_date_only(cls, v):
        """Providers sometimes send a bare YYYY-MM-DD date."""
        return _parse_scraped_datetime(v)

    @property
    def utc_date(self):
        """Calendar day of the transaction (UTC for timezone-aware values)."""
        if self.date.tzinfo is not None:
            return self.date.astimezone(timezone.utc).date()
        return self.date.date()


class ScrapedAccount(BaseModel):
    """Transactions of one account returned by a scrape."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    account_number: str = Field(..., alias="accountNumber")
    txns: list[ScrapedTransaction] = Field(default_factory=list)
    balance: Decimal | None = None


# Provider credential shapes (tagged union on ``provider``)


class OneZeroCredentials(BaseModel):
    provider: Literal["onezero"] = "onezero"
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1, alias="phoneNumber")

    model_config = ConfigDict(populate_by_name=True)


class IsracardCredentials(BaseModel):
    provider: Literal["isracard"] = "isracard"
    id: str = Field(..., min_length=1)
    card6_digits: str = Field(..., min_length=6, max_length=6, alias="card6Digits")
    password: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)


ProviderCredentials = Annotated[
    Union[OneZeroCredentials, IsracardCredentials],
    Field(discriminator="provider"),
]

_credentials_adapter: TypeAdapter = TypeAdapter(ProviderCredentials)


def parse_credentials(
    provider: BankProvider | str, payload: dict
) -> OneZeroCredentials | IsracardCredentials:
    """Validate a decrypted credential payload against the provider's shape.

    The stored payload does not need to carry the ``provider`` tag; the
    connection's provider is authoritative.

    Raises:
        pydantic.ValidationError: If the payload does not fit the shape
    """
    data = {**payload, "provider": BankProvider(provider).value}
    return _credentials_adapter.validate_python(data)
