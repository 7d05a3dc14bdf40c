from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Tuple

from models import DepositRecord, SparseAccount


class AccountRepository(ABC):
    @abstractmethod
    def get(self, client: int) -> Optional[SparseAccount]:
        """Get account. Returns None if account doesn't exist."""
        pass

    @abstractmethod
    def get_or_create(self, client: int) -> SparseAccount:
        """Get account, creating an empty unlocked one on first use."""
        pass

    @abstractmethod
    def items(self) -> Iterator[Tuple[int, SparseAccount]]:
        """Iterate over (client, account) pairs in storage order."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of accounts."""
        pass


class DepositRepository(ABC):
    @abstractmethod
    def get(self, tx: int) -> Optional[DepositRecord]:
        """Get disputable deposit by transaction id."""
        pass

    @abstractmethod
    def put(self, tx: int, deposit: DepositRecord) -> None:
        """Store deposit, replacing any previous record with the same id."""
        pass

    @abstractmethod
    def remove(self, tx: int) -> None:
        """Forget deposit permanently."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Get total number of stored deposits."""
        pass


class InMemoryAccountRepository(AccountRepository):
    def __init__(self):
        self.accounts: Dict[int, SparseAccount] = {}

    def get(self, client: int) -> Optional[SparseAccount]:
        return self.accounts.get(client)

    def get_or_create(self, client: int) -> SparseAccount:
        account = self.accounts.get(client)
        if account is None:
            account = self.accounts[client] = SparseAccount()
        return account

    def items(self) -> Iterator[Tuple[int, SparseAccount]]:
        return iter(self.accounts.items())

    def count(self) -> int:
        return len(self.accounts)


class InMemoryDepositRepository(DepositRepository):
    def __init__(self):
        self.deposits: Dict[int, DepositRecord] = {}

    def get(self, tx: int) -> Optional[DepositRecord]:
        return self.deposits.get(tx)

    def put(self, tx: int, deposit: DepositRecord) -> None:
        self.deposits[tx] = deposit

    def remove(self, tx: int) -> None:
        self.deposits.pop(tx, None)

    def count(self) -> int:
        return len(self.deposits)
