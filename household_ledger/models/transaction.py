"""
Transaction Models for Household Ledger

A transaction is one signed monetary movement on one account:
positive amounts are inflows, negative amounts are outflows.

DESIGN DECISION: Categories and accounts are closed enumerations.
Workbook labels are matched case-insensitively at the ingestion
boundary and anything unknown is rejected there, so the aggregation
code only ever sees enumeration members.
"""

import datetime as dt
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class LabelEnum(str, Enum):
    """
    String enumeration whose values are the labels used in the workbooks.

    Lookup ignores ASCII case and surrounding whitespace, so
    ``TransactionCategory("  SPESA ")`` is ``TransactionCategory.SPESA``.
    """

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in cls:
                if member.value.lower() == wanted:
                    return member
        return None

    @classmethod
    def parse(cls, label) -> "LabelEnum":
        """
        Parse a label (or an existing member) into a member.

        Raises:
            ValueError: If the label is not part of the enumeration
        """
        if isinstance(label, cls):
            return label
        try:
            return cls(label)
        except ValueError:
            raise ValueError(
                f"Unknown {cls.__name__} label: {label!r}"
            ) from None

    def __str__(self) -> str:
        return self.value


class AccountName(LabelEnum):
    """Accounts a transaction can be booked on."""
    ALE = "Ale"
    BUONO_PASTO = "buono pasto"
    CARTA_ALE = "carta ale"
    CARTA_GIULIA = "carta giulia"
    CONTANTE = "Contante"
    GIULIA = "Giulia"


class TransactionCategory(LabelEnum):
    """Categories a transaction can belong to."""
    AFFITTO = "Affitto"
    AUTO = "Auto"
    BANCA = "Banca"
    BOLLETTA = "Bolletta"
    CARTA_DI_CREDITO = "carta di credito"
    PASTO = "Pasto"
    PRANZO_LAVORO = "pranzo lavoro"
    RATA_AUTO = "rata auto"
    REGALO = "Regalo"
    RITIRO_BANCOMAT = "ritiro bancomat"
    SANITA = "sanità"
    SCARPE = "Scarpe"
    SPESA = "Spesa"
    STIPENDIO = "Stipendio"
    TELEFONO = "Telefono"
    TRENO = "Treno"
    USCITE = "Uscite"
    VARIE = "Varie"
    VESTITI = "Vestiti"
    VISTA = "Vista"
    VACANZA = "Vacanza"


# Field order of the persisted transaction log
PERSISTED_COLUMNS = ["date", "amount", "category", "description", "account"]


# =============================================================================
# TRANSACTION EVENT
# =============================================================================

class TransactionEvent(BaseModel):
    """
    A single, immutable transaction.

    Sign convention: positive = inflow, negative = outflow.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    date: dt.date = Field(
        ...,
        description="Day the transaction occurred"
    )
    amount: float = Field(
        ...,
        allow_inf_nan=False,
        description="Signed amount in euros"
    )
    category: TransactionCategory = Field(
        ...,
        description="Transaction category"
    )
    description: Optional[str] = Field(
        default=None,
        description="Free text note"
    )
    account: AccountName = Field(
        ...,
        description="Account the transaction is booked on"
    )

    @field_validator("category", mode="before")
    @classmethod
    def parse_category(cls, v):
        return TransactionCategory.parse(v)

    @field_validator("account", mode="before")
    @classmethod
    def parse_account(cls, v):
        return AccountName.parse(v)

    @field_validator("description", mode="before")
    @classmethod
    def blank_description_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    def to_record(self) -> list[str]:
        """
        Convert to a flat record for the persisted transaction log.

        Returns columns in order:
        [date, amount, category, description, account]
        """
        return [
            self.date.isoformat(),
            str(self.amount),
            self.category.value,
            self.description or "",
            self.account.value,
        ]

    @classmethod
    def from_record(cls, record: list) -> "TransactionEvent":
        """Rebuild a transaction from a persisted record."""
        if len(record) < len(PERSISTED_COLUMNS):
            # Trailing empty cells are dropped by some spreadsheet APIs
            record = list(record) + [""] * (len(PERSISTED_COLUMNS) - len(record))
        return cls.model_validate(dict(zip(PERSISTED_COLUMNS, record)))

    def __str__(self) -> str:
        return (
            f"Transaction on date {self.date} of category {self.category}, "
            f"amount: {self.amount}€, account: {self.account}, "
            f"description: {self.description or 'missing'}"
        )
