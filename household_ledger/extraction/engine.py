"""
Report Extraction Engine

Pure, read-only computations that turn a Registry into the report views:
- daily net amounts and their running total
- income / expense split by category
- monthly net income and per-category expense breakdown

Every extraction accepts the same filters:
- accounts: account names to include (None = all accounts)
- date_range: inclusive (from, to) pair, compared as ISO date text
  (None = unbounded)

An extraction over an empty selection raises EmptyExtractionError instead
of returning made-up ranges. The caller decides whether to skip the view
or abort the report.
"""

import datetime as dt
from collections import defaultdict
from itertools import accumulate
from typing import Iterable, Optional, Sequence, Union

import structlog

from household_ledger.models.registry import AccountSelector, Registry
from household_ledger.models.reports import (
    CategoriesSplit,
    DailyTransactions,
    MonthlyTransactions,
    Range,
)
from household_ledger.models.transaction import (
    AccountName,
    TransactionCategory,
    TransactionEvent,
)


logger = structlog.get_logger(__name__)

DateBound = Union[dt.date, str]
DateRange = tuple[DateBound, DateBound]


class ExtractionError(Exception):
    """A report view could not be extracted from the registry."""
    pass


class EmptyExtractionError(ExtractionError):
    """The selected accounts and dates leave nothing to aggregate."""
    pass


# =============================================================================
# FILTERING
# =============================================================================

def _resolve_accounts(
    accounts: Optional[AccountSelector],
) -> Optional[list[AccountName]]:
    if accounts is None:
        return None
    try:
        return [AccountName.parse(name) for name in accounts]
    except ValueError as e:
        raise ExtractionError(str(e)) from e


def _iso(bound: DateBound) -> str:
    if isinstance(bound, dt.datetime):
        return bound.date().isoformat()
    if isinstance(bound, dt.date):
        return bound.isoformat()
    return str(bound)


def filter_transactions(
    registry: Registry,
    accounts: Optional[AccountSelector] = None,
    date_range: Optional[DateRange] = None,
) -> list[TransactionEvent]:
    """
    Select the transactions of the given accounts within the date range.

    Raises:
        ExtractionError: If an account name is not a known account
    """
    selected = _resolve_accounts(accounts)
    if selected is not None:
        selected = set(selected)

    date_from = date_to = None
    if date_range is not None:
        date_from, date_to = (_iso(bound) for bound in date_range)

    result = []
    for transaction in registry.transactions:
        if selected is not None and transaction.account not in selected:
            continue
        if date_range is not None:
            day = transaction.date.isoformat()
            if day < date_from or day > date_to:
                continue
        result.append(transaction)
    return result


def _select(
    registry: Registry,
    accounts: Optional[list[AccountName]],
    date_range: Optional[DateRange],
    view: str,
) -> list[TransactionEvent]:
    transactions = filter_transactions(registry, accounts, date_range)
    if not transactions:
        raise EmptyExtractionError(
            f"No transactions to build the {view} view "
            f"(accounts={[str(a) for a in accounts] if accounts is not None else 'all'}, "
            f"date_range={date_range})"
        )
    return transactions


def _value_range(values: Sequence[float], what: str) -> Range:
    """(min, max) of a series; the first extremal value found wins."""
    if not values:
        raise EmptyExtractionError(f"Cannot compute the range of empty {what}")
    return (min(values), max(values))


def _index(length: int) -> list[float]:
    return [float(i) for i in range(length)]


def _month_of(day: dt.date) -> dt.date:
    return day.replace(day=1)


def _check_max_categories(max_categories: Optional[int]) -> None:
    if max_categories is not None and max_categories < 0:
        raise ExtractionError(
            f"max_categories must not be negative, got {max_categories}"
        )


# =============================================================================
# DAILY TRANSACTIONS
# =============================================================================

def extract_daily_transactions(
    registry: Registry,
    accounts: Optional[AccountSelector] = None,
    date_range: Optional[DateRange] = None,
    with_initial_total_value: bool = False,
) -> DailyTransactions:
    """
    Net amount per day and its running total.

    Args:
        registry: Registry to read
        accounts: Accounts to include (None = all)
        date_range: Inclusive (from, to) filter (None = unbounded)
        with_initial_total_value: Offset the running total by the opening
            balance of the selected accounts. The offset ignores the
            date filter.

    Raises:
        EmptyExtractionError: If no transaction matches the filters
    """
    accounts = _resolve_accounts(accounts)
    transactions = _select(registry, accounts, date_range, "daily")

    offset = 0.0
    if with_initial_total_value:
        offset = registry.get_initial_account_values(accounts)

    per_day: dict[dt.date, float] = defaultdict(float)
    for transaction in transactions:
        per_day[transaction.date] += transaction.amount

    days = sorted(per_day)
    amounts = [per_day[day] for day in days]
    cumsum_amounts = [offset + total for total in accumulate(amounts)]
    days_idx = _index(len(days))

    logger.debug(
        "daily_transactions_extracted",
        days=len(days),
        transactions=len(transactions),
        offset=offset,
    )

    return DailyTransactions(
        days=days,
        amounts=amounts,
        cumsum_amounts=cumsum_amounts,
        days_idx=days_idx,
        days_idx_range=_value_range(days_idx, "day indices"),
        amounts_range=_value_range(amounts, "daily amounts"),
        cumsum_amounts_range=_value_range(cumsum_amounts, "cumulative amounts"),
    )


# =============================================================================
# CATEGORIES SPLIT
# =============================================================================

def _sum_by_category(
    transactions: Iterable[TransactionEvent],
) -> dict[TransactionCategory, float]:
    sums: dict[TransactionCategory, float] = defaultdict(float)
    for transaction in transactions:
        sums[transaction.category] += transaction.amount
    return sums


def _ranked_group(
    sums: dict[TransactionCategory, float],
    max_categories: Optional[int],
) -> tuple[list[str], list[float], list[float]]:
    """
    Sort a sign group ascending by amount, then truncate.

    Percentages are shares of the whole group, computed before truncation.
    """
    total = sum(sums.values())
    ranked = sorted(sums.items(), key=lambda item: item[1])
    if max_categories is not None:
        ranked = ranked[:max_categories]

    categories = [category.value for category, _ in ranked]
    amounts = [amount for _, amount in ranked]
    percentages = [amount / total * 100.0 for amount in amounts]
    return categories, percentages, amounts


def extract_categories_split(
    registry: Registry,
    accounts: Optional[AccountSelector] = None,
    date_range: Optional[DateRange] = None,
    max_categories: Optional[int] = None,
) -> CategoriesSplit:
    """
    Income and expense totals per category with their group shares.

    Incomes are the positive transactions, expenses the negative ones;
    zero amounts belong to neither. Each group is sorted ascending by
    summed amount and then cut to ``max_categories``: for expenses this
    keeps the largest outflows, for incomes the smallest inflows.

    Raises:
        EmptyExtractionError: If no transaction matches the filters
    """
    _check_max_categories(max_categories)
    accounts = _resolve_accounts(accounts)
    transactions = _select(registry, accounts, date_range, "categories split")

    incomes = _sum_by_category(t for t in transactions if t.is_income)
    expenses = _sum_by_category(t for t in transactions if t.is_expense)

    income_categories, income_percentages, income_amounts = _ranked_group(
        incomes, max_categories
    )
    expense_categories, expense_percentages, expense_amounts = _ranked_group(
        expenses, max_categories
    )

    logger.debug(
        "categories_split_extracted",
        income_categories=len(incomes),
        expense_categories=len(expenses),
    )

    return CategoriesSplit(
        income_categories=income_categories,
        income_percentages=income_percentages,
        income_amounts=income_amounts,
        expense_categories=expense_categories,
        expense_percentages=expense_percentages,
        expense_amounts=expense_amounts,
    )


# =============================================================================
# MONTHLY EXTRACTION
# =============================================================================

def monthly_extraction(
    registry: Registry,
    accounts: Optional[AccountSelector] = None,
    date_range: Optional[DateRange] = None,
    max_categories: Optional[int] = None,
) -> MonthlyTransactions:
    """
    Monthly net income and the per-category expense breakdown.

    Produces:
    - the month axis with the net income of each month
    - for each expense category, the months it appears in, its amounts
      and the positions of those months on the shared axis
    - for each month on the axis, its expense categories sorted by
      DESCENDING share of the month's expenses, cut to ``max_categories``

    Raises:
        EmptyExtractionError: If no transaction matches the filters, or
            none of them is an expense
    """
    _check_max_categories(max_categories)
    accounts = _resolve_accounts(accounts)
    transactions = _select(registry, accounts, date_range, "monthly")

    # Net income on the month axis
    net: dict[dt.date, float] = defaultdict(float)
    for transaction in transactions:
        net[_month_of(transaction.date)] += transaction.amount

    months = sorted(net)
    net_income = [net[month] for month in months]
    months_idx = _index(len(months))
    months_idx_range = _value_range(months_idx, "month indices")
    month_position = {month: float(i) for i, month in enumerate(months)}

    # Expenses per (month, category)
    expenses: dict[tuple[dt.date, TransactionCategory], float] = defaultdict(float)
    for transaction in transactions:
        if transaction.is_expense:
            key = (_month_of(transaction.date), transaction.category)
            expenses[key] += transaction.amount

    if not expenses:
        raise EmptyExtractionError(
            "No expense transactions to build the monthly category breakdown"
        )

    month_totals: dict[dt.date, float] = defaultdict(float)
    for (month, _), amount in expenses.items():
        month_totals[month] += amount
    shares = {
        key: amount / month_totals[key[0]] * 100.0
        for key, amount in expenses.items()
    }

    # Sparse series per category, categories in order of first appearance
    categories: list[TransactionCategory] = []
    series: dict[TransactionCategory, tuple[list, list, list]] = {}
    for month, category in sorted(expenses, key=lambda k: (k[0], k[1].value)):
        if category not in series:
            categories.append(category)
            series[category] = ([], [], [])
        cat_months, cat_amounts, cat_idx = series[category]
        cat_months.append(month)
        cat_amounts.append(expenses[(month, category)])
        cat_idx.append(month_position[month])

    all_amounts = [amount for category in categories for amount in series[category][1]]

    # Ranked shares per month
    per_month: dict[dt.date, list[tuple[str, float, float]]] = defaultdict(list)
    for (month, category), amount in expenses.items():
        per_month[month].append((category.value, shares[(month, category)], amount))

    perc_months, percs, perc_values, perc_names = [], [], [], []
    for month in months:
        ranked = sorted(per_month.get(month, []), key=lambda e: e[1], reverse=True)
        if max_categories is not None:
            ranked = ranked[:max_categories]
        perc_months.append(month.isoformat())
        perc_names.append([name for name, _, _ in ranked])
        percs.append([share for _, share, _ in ranked])
        perc_values.append([amount for _, _, amount in ranked])

    logger.debug(
        "monthly_extraction_completed",
        months=len(months),
        categories=len(categories),
    )

    return MonthlyTransactions(
        months=months,
        net_income=net_income,
        months_idx=months_idx,
        months_idx_range=months_idx_range,
        net_income_range=_value_range(net_income, "monthly net income"),
        categories=[category.value for category in categories],
        categories_months=[series[c][0] for c in categories],
        categories_amounts=[series[c][1] for c in categories],
        categories_months_idx=[series[c][2] for c in categories],
        categories_amounts_range=_value_range(all_amounts, "category amounts"),
        categories_months_idx_range=(0.0, months_idx_range[1]),
        categories_amounts_perc_months=perc_months,
        categories_amounts_perc=percs,
        categories_amounts_perc_value=perc_values,
        categories_amounts_perc_names=perc_names,
    )
