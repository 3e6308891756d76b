"""
Registry Model for Household Ledger

The registry is the aggregate store: the ordered transaction log plus
the accounts those transactions move.

DESIGN DECISION: Running balances are only meaningful when earlier
dates are folded first. ``add_batch`` therefore sorts before folding,
and the sort is part of the contract rather than an optimization.

DESIGN DECISION: ``merge`` builds a new registry. Operands are left
untouched, so a failed merge never corrupts what was merged before.
The merged transaction log is the plain concatenation of both logs
(left first) and is NOT re-sorted; consumers that need chronological
order sort explicitly.
"""

from typing import Iterable, Optional, Union

from pydantic import BaseModel, Field

from household_ledger.models.account import Account
from household_ledger.models.transaction import (
    PERSISTED_COLUMNS,
    AccountName,
    TransactionEvent,
)


AccountSelector = Iterable[Union[AccountName, str]]


class Registry(BaseModel):
    """
    Set of transactions and the accounts they belong to.

    Every account referenced by a transaction in ``transactions`` has an
    entry in ``accounts``.
    """

    transactions: list[TransactionEvent] = Field(
        default_factory=list,
        description="Transaction log in insertion order"
    )
    accounts: dict[AccountName, Account] = Field(
        default_factory=dict,
        description="Accounts keyed by their name"
    )

    @classmethod
    def new(cls, accounts: Optional[Iterable[Account]] = None) -> "Registry":
        """
        Create a registry, optionally seeded with opening balances.

        Seed accounts are keyed by name; if two seeds share a name the
        last one wins, so callers pass one seed per account.
        """
        registry = cls()
        for account in accounts or []:
            registry.accounts[account.name] = account
        return registry

    # -------------------------------------------------------------------------
    # Incremental update
    # -------------------------------------------------------------------------

    def add_single(self, transaction: TransactionEvent) -> None:
        """
        Add a transaction to the registry.

        An account seen for the first time starts from the transaction's
        own amount. An existing account accumulates the amount and
        records the new value at the transaction date.
        """
        account = self.accounts.get(transaction.account)
        if account is None:
            self.accounts[transaction.account] = Account.new(
                transaction.account,
                transaction.amount,
                transaction.date,
            )
        else:
            account.set_value(
                account.current_value + transaction.amount,
                transaction.date,
            )
        self.transactions.append(transaction)

    def add_batch(self, transactions: Iterable[TransactionEvent]) -> None:
        """Add transactions in chronological order (stable sort by date)."""
        for transaction in sorted(transactions, key=lambda t: t.date):
            self.add_single(transaction)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_accounts(self) -> list[str]:
        """Get the printable names of the known accounts."""
        return [name.value for name in self.accounts]

    def get_account(self, name: Union[AccountName, str]) -> Optional[Account]:
        """Get an account by name, None if the registry does not know it."""
        return self.accounts.get(AccountName.parse(name))

    def get_initial_account_values(
        self,
        accounts: Optional[AccountSelector] = None,
    ) -> float:
        """
        Sum the opening balances of the selected accounts.

        Args:
            accounts: Account names to include. None means every known
                account. Names the registry does not know contribute 0.
        """
        if accounts is None:
            selected = list(self.accounts)
        else:
            selected = [AccountName.parse(name) for name in accounts]

        value = 0.0
        for name in selected:
            account = self.accounts.get(name)
            if account is not None:
                value += account.get_initial_value()
        return value

    # -------------------------------------------------------------------------
    # Merge
    # -------------------------------------------------------------------------

    def merge(self, other: "Registry") -> "Registry":
        """
        Combine two registries into a new one.

        Transactions: self's log followed by other's log.
        Accounts: union of both, same-named accounts merged.
        """
        accounts: dict[AccountName, Account] = {
            name: account.model_copy(deep=True)
            for name, account in self.accounts.items()
        }
        for name, other_account in other.accounts.items():
            existing = accounts.pop(name, None)
            if existing is None:
                accounts[name] = other_account.model_copy(deep=True)
            else:
                accounts[name] = existing.merge(other_account)

        return Registry(
            transactions=list(self.transactions) + list(other.transactions),
            accounts=accounts,
        )

    def __add__(self, other: "Registry") -> "Registry":
        return self.merge(other)

    # -------------------------------------------------------------------------
    # Persisted form
    # -------------------------------------------------------------------------

    def to_persisted_form(self) -> list[list[str]]:
        """
        Flatten the transaction log, one record per transaction.

        Accounts are not persisted; see ``from_persisted_form``.
        """
        return [transaction.to_record() for transaction in self.transactions]

    @classmethod
    def from_persisted_form(cls, records: Iterable[list]) -> "Registry":
        """
        Rebuild a registry by replaying a persisted transaction log.

        A leading header row is skipped. Accounts are reconstructed from
        the transactions, so each balance starts at its account's first
        transaction rather than at a true opening balance.
        """
        registry = cls()
        for index, record in enumerate(records):
            if index == 0 and list(record) == PERSISTED_COLUMNS:
                continue
            if not any(str(cell).strip() for cell in record):
                continue
            registry.add_single(TransactionEvent.from_record(record))
        return registry

    # -------------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------------

    def summary(self, last_transactions: int = 5) -> str:
        """Human-readable summary of balances and latest transactions."""
        lines = [f"The registry has {len(self.accounts)} accounts:", ""]
        for name, account in self.accounts.items():
            lines.append(f"\t> {name}:\t{account.current_value}€")

        if self.transactions:
            lines.append("")
            lines.append(
                f"There are {len(self.transactions)} transactions in the registry:"
            )
            lines.append("")
            for transaction in self.transactions[-last_transactions:]:
                lines.append(f"\t- {transaction}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()
