"""Internal data schemas for normalized bank data.

These models represent the intermediate structures between the scraper
boundary and database persistence.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class TransactionDirection(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class MappedTransaction(BaseModel):
    """A scraped transaction normalized into the application's shape.

    Amounts are always non-negative; the sign lives in ``direction``.
    Only the calendar day of the transaction is kept.
    """

    external_id: str = Field(..., description="Stable per connection+record identity")
    date: date
    description: str
    merchant: str | None = Field(None, description="Merchant derived from the description")
    amount: Decimal = Field(..., ge=0)
    direction: TransactionDirection
    notes: str | None = None
    external_account_id: str
    external_category: str | None = Field(
        None, description="Provider category hint, passed through verbatim"
    )

    @field_validator("date", mode="before")
    @classmethod
    def drop_time_of_day(cls, v):
        """Truncate datetimes to the day."""
        if isinstance(v, datetime):
            return v.date()
        return v
