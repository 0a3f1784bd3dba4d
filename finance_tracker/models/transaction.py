"""
Core Transaction Models

These models define the strict schemas for every transaction stored in a
user's private list or a group's shared list. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are Decimal and always positive.
Whether money came in or went out is carried by `type`, never by the sign.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Opaque document identifier."""
    return uuid4().hex


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so instants always compare."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """Supported currency codes."""
    USD = "USD"
    CUP = "CUP"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"
    AUD = "AUD"
    JPY = "JPY"
    CHF = "CHF"


DEFAULT_CURRENCY = Currency.USD


class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class Category(str, Enum):
    """
    Fixed spending/income categories.

    DESIGN DECISION: Explicit categories rather than free text keep charts
    and reports consistent, and bound what the AI suggestion may return.
    """
    GROCERIES = "Groceries"
    DINING_OUT = "Dining Out"
    TRANSPORTATION = "Transportation"
    UTILITIES = "Utilities"
    RENT_MORTGAGE = "Rent/Mortgage"
    ENTERTAINMENT = "Entertainment"
    SHOPPING = "Shopping"
    TRAVEL = "Travel"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    INCOME = "Income"
    OTHER = "Other"


# =============================================================================
# OWNER SCOPE
# =============================================================================

class ScopeKind(str, Enum):
    USER = "users"
    GROUP = "groups"


class OwnerScope(BaseModel):
    """
    Partition key selecting which transaction collection is addressed.

    A scope is either a user's private list (users/{uid}/transactions)
    or a group's shared list (groups/{gid}/transactions), never both.
    """
    model_config = ConfigDict(frozen=True)

    kind: ScopeKind
    owner_id: str = Field(..., min_length=1)

    @classmethod
    def for_user(cls, user_id: str) -> "OwnerScope":
        return cls(kind=ScopeKind.USER, owner_id=user_id)

    @classmethod
    def for_group(cls, group_id: str) -> "OwnerScope":
        return cls(kind=ScopeKind.GROUP, owner_id=group_id)

    @property
    def is_group(self) -> bool:
        return self.kind == ScopeKind.GROUP

    @property
    def collection_path(self) -> str:
        return f"{self.kind.value}/{self.owner_id}/transactions"

    @classmethod
    def from_collection_path(cls, path: str) -> "OwnerScope":
        kind, owner_id, _ = path.split("/", 2)
        return cls(kind=ScopeKind(kind), owner_id=owner_id)


# =============================================================================
# TRANSACTION MODELS
# =============================================================================

class TransactionItem(BaseModel):
    """
    One line of an itemized transaction.

    e.g. 2 x "Milk" at 1.25 per "liter"
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What was bought"
    )
    quantity: Decimal = Field(
        ...,
        gt=0,
        description="How many units"
    )
    unit_price: Decimal = Field(
        ...,
        gt=0,
        description="Price per unit"
    )
    unit: Optional[str] = Field(
        default=None,
        max_length=20,
        description="Unit label (pack, KG, liter, piece)"
    )

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price


def items_total(items: list[TransactionItem]) -> Decimal:
    """Sum of quantity x unit price over all items, rounded to cents."""
    total = sum((item.total for item in items), Decimal("0"))
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


class TransactionFields(BaseModel):
    """
    The full, replaceable field set of a transaction (everything but its id).

    Used for creation and for whole-record replacement.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: datetime = Field(
        ...,
        description="When the transaction happened"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the transaction was for"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Always positive; direction comes from `type`"
    )
    currency: Currency = Field(
        default=DEFAULT_CURRENCY,
        description="Currency code"
    )
    type: TransactionType
    category: Category

    # Itemized breakdown
    items: list[TransactionItem] = Field(default_factory=list)
    has_item_details: bool = Field(
        default=False,
        description="Amount is derived from the item breakdown"
    )

    # Authorship
    created_by: str = Field(
        ...,
        min_length=1,
        description="User id of the creator"
    )
    created_by_name: Optional[str] = Field(
        default=None,
        description="Display name of the creator at creation time"
    )
    group_id: Optional[str] = Field(
        default=None,
        description="Owning group, if this is a group transaction"
    )

    @field_validator('date')
    @classmethod
    def make_date_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @field_validator('currency', mode='before')
    @classmethod
    def default_missing_currency(cls, v: Optional[Union[str, Currency]]):
        """Records written without a currency are read as USD."""
        return v or DEFAULT_CURRENCY

    @model_validator(mode='after')
    def validate_item_breakdown(self) -> 'TransactionFields':
        """Amount must match the items when it is derived from them."""
        if self.has_item_details:
            if not self.items:
                raise ValueError("Itemized transactions need at least one item")
            expected = items_total(self.items)
            if self.amount.quantize(CENT, rounding=ROUND_HALF_UP) != expected:
                raise ValueError(
                    f"Amount {self.amount} does not match item total {expected}"
                )
        return self

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the transaction type."""
        return self.amount if self.type == TransactionType.INCOME else -self.amount


class Transaction(TransactionFields):
    """
    A stored transaction.

    Identity is unique within its owning collection only.
    """

    id: str = Field(
        default_factory=new_id,
        description="Opaque id, unique within the owner collection"
    )

    def to_input(self) -> "TransactionInput":
        """Pre-fill an edit form from the stored record."""
        return TransactionInput(
            date=self.date,
            description=self.description,
            amount=self.amount,
            currency=self.currency,
            type=self.type,
            category=self.category,
            items=[ItemInput(**item.model_dump()) for item in self.items],
            has_item_details=self.has_item_details,
        )


# =============================================================================
# FORM INPUT - Loosely typed, checked by the validator before any write
# =============================================================================

class ItemInput(BaseModel):
    """One item row as typed into the form."""

    description: str = ""
    quantity: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    unit: Optional[str] = None


class TransactionInput(BaseModel):
    """
    Raw transaction form input.

    Nothing here is guaranteed valid; `TransactionValidator` reports
    every problem and builds `TransactionFields` once the input passes.
    """

    date: Optional[datetime] = None
    description: str = ""
    amount: Optional[Decimal] = None
    currency: Currency = DEFAULT_CURRENCY
    type: TransactionType = TransactionType.EXPENSE
    category: Optional[Category] = None
    items: list[ItemInput] = Field(default_factory=list)
    has_item_details: bool = False
