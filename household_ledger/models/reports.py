"""
Report Models for Household Ledger

Structured outputs of the extraction engine. They carry value data only:
axes, series, ranges and shares. Drawing them is the dashboard's job.

Ranges are (min, max) pairs. Indices are zero-based positions on a
categorical axis (days or months) stored as floats so they can be used
directly as plot coordinates.
"""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


Range = tuple[float, float]
Point = tuple[float, float]


class DailyTransactions(BaseModel):
    """Per-day net amounts and their running total."""
    model_config = ConfigDict(frozen=True)

    days: list[dt.date] = Field(
        ...,
        description="Distinct transaction dates, ascending"
    )
    amounts: list[float] = Field(
        ...,
        description="Net amount of each day"
    )
    cumsum_amounts: list[float] = Field(
        ...,
        description="Running total, offset by the opening balance if requested"
    )
    days_idx: list[float] = Field(
        ...,
        description="Zero-based index of each day"
    )
    days_idx_range: Range
    amounts_range: Range
    cumsum_amounts_range: Range

    @property
    def amounts_pairs(self) -> list[Point]:
        return list(zip(self.days_idx, self.amounts))

    @property
    def amount_cumulative_pairs(self) -> list[Point]:
        return list(zip(self.days_idx, self.cumsum_amounts))


class CategoriesSplit(BaseModel):
    """
    Income and expense totals per category.

    Both groups are sorted ascending by summed amount. Percentages are
    shares of the group total and are positive for both groups.
    """
    model_config = ConfigDict(frozen=True)

    income_categories: list[str] = Field(default_factory=list)
    income_percentages: list[float] = Field(default_factory=list)
    income_amounts: list[float] = Field(default_factory=list)
    expense_categories: list[str] = Field(default_factory=list)
    expense_percentages: list[float] = Field(default_factory=list)
    expense_amounts: list[float] = Field(default_factory=list)


class MonthlyTransactions(BaseModel):
    """
    Monthly net income plus the per-category expense breakdown.

    Per-category series are sparse: ``categories_months_idx[i]`` maps the
    months in which category ``categories[i]`` had expenses back onto the
    shared month axis.

    Per-month shares (``categories_amounts_perc*``) list, for every month
    on the axis, its expense categories by descending share.
    """
    model_config = ConfigDict(frozen=True)

    months: list[dt.date] = Field(
        ...,
        description="First day of each month, ascending"
    )
    net_income: list[float]
    months_idx: list[float]
    months_idx_range: Range
    net_income_range: Range

    categories: list[str]
    categories_amounts: list[list[float]]
    categories_months: list[list[dt.date]]
    categories_months_idx: list[list[float]]
    categories_amounts_range: Range
    categories_months_idx_range: Range

    categories_amounts_perc_months: list[str] = Field(
        ...,
        description="ISO label of each month"
    )
    categories_amounts_perc: list[list[float]] = Field(
        ...,
        description="Expense share (%) of each category, per month"
    )
    categories_amounts_perc_value: list[list[float]] = Field(
        ...,
        description="Expense amount of each category, per month"
    )
    categories_amounts_perc_names: list[list[str]] = Field(
        ...,
        description="Category names matching the shares, per month"
    )

    @property
    def net_income_pairs(self) -> list[Point]:
        return list(zip(self.months_idx, self.net_income))

    @property
    def categories_pairs(self) -> list[list[Point]]:
        return [
            list(zip(indices, amounts))
            for indices, amounts in zip(
                self.categories_months_idx, self.categories_amounts
            )
        ]
