from decimal import Decimal
from typing import Any, Dict, Optional


class PaymentError(Exception):
    """Base class for every rejected ledger transition."""

    error_code = "PAYMENT_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Structured fields of the error, for logging and API responses."""
        return {}


class LockedAccount(PaymentError):
    error_code = "LOCKED_ACCOUNT"
    status_code = 409

    def __init__(self, client: int, tx: int):
        self.client = client
        self.tx = tx
        super().__init__(
            f"Account of client {client} is locked, cannot execute transaction {tx}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"client": self.client, "tx": self.tx}


class InsufficientFunds(PaymentError):
    error_code = "INSUFFICIENT_FUNDS"

    def __init__(self, client: int, tx: int, available: Decimal, amount: Decimal):
        self.client = client
        self.tx = tx
        self.available = available
        self.amount = amount
        super().__init__(
            f"Client {client} has insufficient funds for transaction {tx} "
            f"(available: {available}, necessary: {amount})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "client": self.client,
            "tx": self.tx,
            "available": str(self.available),
            "amount": str(self.amount),
        }


class UnknownClient(PaymentError):
    error_code = "UNKNOWN_CLIENT"
    status_code = 404

    def __init__(self, client: int, tx: int, operation: str):
        self.client = client
        self.tx = tx
        self.operation = operation
        super().__init__(
            f"{operation} {tx} refers to unknown client account {client}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"client": self.client, "tx": self.tx, "operation": self.operation}


class UnknownTransaction(PaymentError):
    error_code = "UNKNOWN_TRANSACTION"
    status_code = 404

    def __init__(self, client: int, tx: int, operation: str):
        self.client = client
        self.tx = tx
        self.operation = operation
        super().__init__(
            f"{operation} refers to unknown deposit transaction {tx} of client {client}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"client": self.client, "tx": self.tx, "operation": self.operation}


class InvalidTransaction(PaymentError):
    """Catch-all for transactions that are malformed or not applicable."""

    error_code = "INVALID_TRANSACTION"

    def __init__(self, message: str, client: Optional[int] = None, tx: Optional[int] = None):
        self.client = client
        self.tx = tx
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        fields = {"client": self.client, "tx": self.tx}
        return {key: value for key, value in fields.items() if value is not None}
