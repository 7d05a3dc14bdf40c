from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import Literal, List, Optional
from datetime import datetime
from decimal import Context, Decimal, ROUND_HALF_EVEN, localcontext

from errors import LockedAccount

MAX_CLIENT_ID = 2**16 - 1
MAX_TX_ID = 2**32 - 1

# Amounts carry at most 4 fractional digits within 28 significant digits.
AMOUNT_MAX_DIGITS = 28
AMOUNT_DECIMAL_PLACES = 4

# Balances are sums of amounts and must never be rounded.
LEDGER_DECIMAL_CONTEXT = Context(prec=50, rounding=ROUND_HALF_EVEN)


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


class TransactionRecord(BaseModel):
    type: TransactionType = Field(..., description="Transaction type")
    client: int = Field(
        ...,
        ge=0,
        le=MAX_CLIENT_ID,
        description="Client identifier (unsigned 16 bit)"
    )
    tx: int = Field(
        ...,
        ge=0,
        le=MAX_TX_ID,
        description="Transaction identifier (unsigned 32 bit)"
    )
    amount: Optional[Decimal] = Field(
        None,
        max_digits=AMOUNT_MAX_DIGITS,
        decimal_places=AMOUNT_DECIMAL_PLACES,
        description="Amount, only required for deposits and withdrawals"
    )

    @field_validator('type', mode='before')
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('amount', mode='before')
    @classmethod
    def blank_amount_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v is not None and not v.is_finite():
            raise ValueError('Amount must be a finite decimal')
        return v


class SparseAccount(BaseModel):
    """Mutable balances of one client. The total is derived, never stored."""

    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False

    def ensure_unlocked(self, client: int, tx: int) -> None:
        if self.locked:
            raise LockedAccount(client, tx)


class DepositRecord(BaseModel):
    """A past deposit that can still be disputed."""

    client: int
    amount: Decimal
    disputed: bool = False


class AccountSnapshot(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Funds available for trading or withdrawal")
    held: Decimal = Field(..., description="Funds held for dispute")
    total: Decimal = Field(..., description="Available plus held funds")
    locked: bool = Field(..., description="True once a chargeback occurred")

    @classmethod
    def from_account(cls, client: int, account: SparseAccount) -> "AccountSnapshot":
        with localcontext(LEDGER_DECIMAL_CONTEXT):
            total = account.available + account.held
        return cls(
            client=client,
            available=account.available,
            held=account.held,
            total=total,
            locked=account.locked,
        )


class TransactionResponse(BaseModel):
    status: Literal["applied"] = Field(..., description="Transaction status")
    account: AccountSnapshot = Field(..., description="Client account after the transaction")


class AccountListResponse(BaseModel):
    accounts: List[AccountSnapshot] = Field(..., description="All accounts ordered by client")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    accounts_count: int = Field(..., description="Number of accounts in the ledger")
    transactions_applied: int = Field(..., description="Transactions applied successfully")
    transactions_rejected: int = Field(..., description="Transactions rejected by the ledger")
