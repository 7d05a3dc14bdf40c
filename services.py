import asyncio
import functools
from decimal import Decimal, localcontext
from typing import Iterator, List, Optional

import structlog

from errors import (
    InsufficientFunds,
    InvalidTransaction,
    PaymentError,
    UnknownClient,
    UnknownTransaction,
)
from models import (
    AccountSnapshot,
    DepositRecord,
    LEDGER_DECIMAL_CONTEXT,
    SparseAccount,
    TransactionRecord,
    TransactionResponse,
    TransactionType,
)
from repositories import (
    AccountRepository,
    DepositRepository,
    InMemoryAccountRepository,
    InMemoryDepositRepository,
)

# Configure structured logging
logger = structlog.get_logger()


def exact_arithmetic(method):
    """Run a balance-changing method under the ledger decimal context."""
    @functools.wraps(method)
    def wrapper(*args, **kwargs):
        with localcontext(LEDGER_DECIMAL_CONTEXT):
            return method(*args, **kwargs)
    return wrapper


class PaymentsEngine:
    """
    Ledger state machine over client accounts and disputable deposits.

    Every operation either applies completely or raises a PaymentError
    without touching state. The engine never logs; callers decide what to
    do with a rejected transaction. Not safe for concurrent use: serialize
    calls against one instance.
    """

    def __init__(
        self,
        account_repo: Optional[AccountRepository] = None,
        deposit_repo: Optional[DepositRepository] = None,
    ):
        self.account_repo = account_repo or InMemoryAccountRepository()
        self.deposit_repo = deposit_repo or InMemoryDepositRepository()

    @exact_arithmetic
    def deposit(self, client: int, tx: int, amount: Decimal) -> None:
        """Credit a client's account, opening it on first deposit.

        Fails if the account is locked. The deposit becomes disputable under
        `tx`, replacing any earlier deposit recorded with the same id.
        """
        account = self.account_repo.get_or_create(client)
        account.ensure_unlocked(client, tx)
        account.available += amount
        self.deposit_repo.put(tx, DepositRecord(client=client, amount=amount))

    @exact_arithmetic
    def withdraw(self, client: int, tx: int, amount: Decimal) -> None:
        """Debit a client's account.

        Fails if the account does not exist, is locked or has insufficient
        available funds.
        """
        account = self.account_repo.get(client)
        if account is None:
            raise InvalidTransaction(
                f"Account {client} does not exist (transaction {tx})",
                client=client,
                tx=tx,
            )
        account.ensure_unlocked(client, tx)
        if account.available < amount:
            raise InsufficientFunds(client, tx, account.available, amount)
        account.available -= amount

    @exact_arithmetic
    def dispute(self, client: int, tx: int) -> None:
        """Move the amount of a past deposit from available to held."""
        account = self._existing_account(client, tx, "Dispute")
        deposit = self._existing_deposit(client, tx, "Dispute")
        if account.available < deposit.amount:
            raise InsufficientFunds(client, tx, account.available, deposit.amount)
        deposit.disputed = True
        account.available -= deposit.amount
        account.held += deposit.amount

    @exact_arithmetic
    def resolve(self, client: int, tx: int) -> None:
        """Release a disputed deposit back to available funds."""
        account = self._existing_account(client, tx, "Resolve")
        deposit = self._disputed_deposit(client, tx, "Resolve")
        account.available += deposit.amount
        account.held -= deposit.amount
        deposit.disputed = False

    def chargeback(self, client: int, tx: int) -> None:
        """Reverse a disputed deposit and lock the account.

        All held funds of the client are discarded, not only the amount of
        this deposit. The deposit can never be disputed again.
        """
        account = self._existing_account(client, tx, "Chargeback")
        self._disputed_deposit(client, tx, "Chargeback")
        account.held = Decimal("0")
        account.locked = True
        self.deposit_repo.remove(tx)

    def apply(self, record: TransactionRecord) -> None:
        """Dispatch a transaction record to the matching operation."""
        if record.type == TransactionType.deposit:
            self.deposit(record.client, record.tx, self._required_amount(record))
        elif record.type == TransactionType.withdrawal:
            self.withdraw(record.client, record.tx, self._required_amount(record))
        elif record.type == TransactionType.dispute:
            self.dispute(record.client, record.tx)
        elif record.type == TransactionType.resolve:
            self.resolve(record.client, record.tx)
        elif record.type == TransactionType.chargeback:
            self.chargeback(record.client, record.tx)
        else:
            raise InvalidTransaction(
                f"Unsupported transaction type {record.type!r}",
                client=record.client,
                tx=record.tx,
            )

    def accounts(self) -> Iterator[AccountSnapshot]:
        """Yield a snapshot of every account, in storage order."""
        for client, account in self.account_repo.items():
            yield AccountSnapshot.from_account(client, account)

    def account(self, client: int) -> Optional[AccountSnapshot]:
        account = self.account_repo.get(client)
        if account is None:
            return None
        return AccountSnapshot.from_account(client, account)

    def _existing_account(self, client: int, tx: int, operation: str) -> SparseAccount:
        account = self.account_repo.get(client)
        if account is None:
            raise UnknownClient(client, tx, operation)
        account.ensure_unlocked(client, tx)
        return account

    def _existing_deposit(self, client: int, tx: int, operation: str) -> DepositRecord:
        deposit = self.deposit_repo.get(tx)
        if deposit is None:
            raise UnknownTransaction(client, tx, operation)
        return deposit

    def _disputed_deposit(self, client: int, tx: int, operation: str) -> DepositRecord:
        deposit = self._existing_deposit(client, tx, operation)
        if not deposit.disputed:
            raise InvalidTransaction(
                f"{operation} refers to transaction {tx} of client {client} which is not disputed",
                client=client,
                tx=tx,
            )
        return deposit

    @staticmethod
    def _required_amount(record: TransactionRecord) -> Decimal:
        if record.amount is None:
            raise InvalidTransaction(
                f"{record.type.value.capitalize()} transaction {record.tx} does not specify amount",
                client=record.client,
                tx=record.tx,
            )
        return record.amount


class TransactionService:
    """Serializes access to one engine for concurrent callers and logs outcomes."""

    def __init__(self, engine: PaymentsEngine):
        self.engine = engine
        self.lock = asyncio.Lock()
        self.applied_count = 0
        self.rejected_count = 0

    async def process_transaction(self, record: TransactionRecord) -> TransactionResponse:
        """Apply one transaction record and return the client's account."""

        logger.info(
            "Processing transaction",
            type=record.type.value,
            client=record.client,
            tx=record.tx,
            amount=str(record.amount) if record.amount is not None else None
        )

        async with self.lock:
            try:
                self.engine.apply(record)
            except PaymentError as e:
                self.rejected_count += 1
                logger.warning(
                    "Transaction rejected",
                    error_code=e.error_code,
                    detail=e.message,
                    type=record.type.value,
                    **e.to_dict()
                )
                raise
            self.applied_count += 1
            snapshot = self.engine.account(record.client)

        logger.info(
            "Transaction processed successfully",
            client=record.client,
            tx=record.tx,
            available=str(snapshot.available),
            held=str(snapshot.held),
            locked=snapshot.locked
        )

        return TransactionResponse(status="applied", account=snapshot)

    async def list_accounts(self) -> List[AccountSnapshot]:
        async with self.lock:
            return sorted(self.engine.accounts(), key=lambda account: account.client)

    async def get_account(self, client: int) -> Optional[AccountSnapshot]:
        async with self.lock:
            return self.engine.account(client)

    async def get_accounts_count(self) -> int:
        return self.engine.account_repo.count()


# Factory function for dependency injection
def get_transaction_service(engine: Optional[PaymentsEngine] = None) -> TransactionService:
    return TransactionService(engine or PaymentsEngine())
