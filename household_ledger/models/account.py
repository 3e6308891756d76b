"""
Account Model for Household Ledger

An account is a named running balance together with the full history
of values it went through.

DESIGN DECISION: Account identity is its name only. Two accounts with
the same name are the same account seen from two worksheets, and
merging them combines their histories.
"""

import datetime as dt

from pydantic import BaseModel, Field, field_validator

from household_ledger.models.transaction import AccountName


class AccountMismatchError(Exception):
    """Attempted to merge two accounts with different names."""

    def __init__(self, left: AccountName, right: AccountName):
        self.left = left
        self.right = right
        super().__init__(
            f"Cannot merge account '{left}' with account '{right}': "
            "the accounts must have the same name"
        )


class AccountInvariantError(Exception):
    """An account was found in a state construction never produces."""
    pass


class Account(BaseModel):
    """
    Bank account with a name, a current value and its value history.

    Invariant: ``history`` is never empty and, as long as values are set
    in chronological order, ``current_value`` is the value paired with
    the latest date in ``history``.
    """

    name: AccountName = Field(
        ...,
        description="Account identifier"
    )
    current_value: float = Field(
        ...,
        description="Latest known balance"
    )
    history: list[tuple[dt.date, float]] = Field(
        ...,
        min_length=1,
        description="(date, value) pairs in insertion order"
    )

    @field_validator("name", mode="before")
    @classmethod
    def parse_name(cls, v):
        return AccountName.parse(v)

    @classmethod
    def new(cls, name, value: float, date: dt.date) -> "Account":
        """
        Create a new account.

        Args:
            name: Account name (member or workbook label)
            value: Value of the account when created
            date: Date the value refers to
        """
        return cls(
            name=AccountName.parse(name),
            current_value=value,
            history=[(date, value)],
        )

    def set_value(self, new_value: float, date: dt.date) -> None:
        """
        Record a new value for the account.

        The date is not checked against the existing history; callers
        add values in chronological order.
        """
        self.history.append((date, new_value))
        self.current_value = new_value

    def get_initial_value(self) -> float:
        """Get the value paired with the earliest date in the history."""
        if not self.history:
            raise AccountInvariantError(f"Account '{self.name}' has no history")
        # min() keeps the first entry among equal dates
        return min(self.history, key=lambda point: point[0])[1]

    def get_latest_date(self) -> dt.date:
        """Get the most recent date in the history."""
        if not self.history:
            raise AccountInvariantError(f"Account '{self.name}' has no history")
        return max(point[0] for point in self.history)

    def merge(self, other: "Account") -> "Account":
        """
        Combine two views of the same account into a new one.

        Histories are concatenated (self first, no de-duplication) and
        the current value is taken from the latest date; among equal
        dates the entry appended last wins. Neither operand is modified.

        Raises:
            AccountMismatchError: If the names differ
        """
        if self.name != other.name:
            raise AccountMismatchError(self.name, other.name)

        history = list(self.history) + list(other.history)
        # max() keeps the first maximum, so scan from the end
        current_value = max(reversed(history), key=lambda point: point[0])[1]
        return Account(
            name=self.name,
            current_value=current_value,
            history=history,
        )

    def __add__(self, other: "Account") -> "Account":
        return self.merge(other)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Account):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return f"{self.name}: {self.current_value}€"
