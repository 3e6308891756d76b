"""
Tests for the report extraction engine.
"""

import pytest
from datetime import date, datetime

from household_ledger.extraction import (
    EmptyExtractionError,
    ExtractionError,
    extract_categories_split,
    extract_daily_transactions,
    filter_transactions,
    monthly_extraction,
)
from household_ledger.models.account import Account
from household_ledger.models.registry import Registry
from household_ledger.models.transaction import TransactionEvent


def _tx(day, amount, category="Spesa", account="Ale"):
    return TransactionEvent(date=day, amount=amount, category=category, account=account)


@pytest.fixture
def registry():
    """Two months of transactions on two accounts with opening balances."""
    registry = Registry.new([
        Account.new("Ale", 1000.0, date(2023, 1, 1)),
        Account.new("Giulia", 500.0, date(2023, 1, 1)),
    ])
    registry.add_batch([
        _tx(date(2023, 1, 2), 1500.0, category="Stipendio"),
        _tx(date(2023, 1, 2), -40.0, category="Spesa"),
        _tx(date(2023, 1, 5), -700.0, category="Affitto"),
        _tx(date(2023, 1, 5), -60.0, category="Spesa", account="Giulia"),
        _tx(date(2023, 1, 9), 50.0, category="Regalo", account="Giulia"),
        _tx(date(2023, 2, 1), 1500.0, category="Stipendio"),
        _tx(date(2023, 2, 3), -700.0, category="Affitto"),
        _tx(date(2023, 2, 4), -25.0, category="Treno", account="Giulia"),
        _tx(date(2023, 2, 4), 0.0, category="Varie"),
    ])
    return registry


class TestFilterTransactions:
    """Tests for account and date filtering."""

    def test_no_filter_returns_everything(self, registry):
        """Test that None filters select the whole log."""
        assert len(filter_transactions(registry)) == 9

    def test_account_filter(self, registry):
        """Test filtering by account label."""
        selected = filter_transactions(registry, accounts=["giulia"])
        assert {str(t.account) for t in selected} == {"Giulia"}
        assert len(selected) == 3

    def test_date_range_is_inclusive(self, registry):
        """Test that both ends of the date range are included."""
        selected = filter_transactions(
            registry, date_range=(date(2023, 1, 5), date(2023, 2, 1))
        )
        assert [t.date for t in selected] == sorted([
            date(2023, 1, 5), date(2023, 1, 5), date(2023, 1, 9), date(2023, 2, 1)
        ])

    def test_date_range_accepts_iso_strings(self, registry):
        """Test that ISO date strings work as bounds."""
        selected = filter_transactions(registry, date_range=("2023-02-01", "2023-02-28"))
        assert len(selected) == 4

    def test_datetime_bounds_keep_the_whole_day(self, registry):
        """Test that datetime bounds select by calendar day."""
        selected = filter_transactions(
            registry, date_range=(datetime(2023, 1, 5, 18, 30), datetime(2023, 1, 5))
        )
        assert [t.date for t in selected] == [date(2023, 1, 5), date(2023, 1, 5)]

    def test_unknown_account_is_an_extraction_error(self, registry):
        """Test that an unknown account label is rejected."""
        with pytest.raises(ExtractionError):
            filter_transactions(registry, accounts=["Nobody"])


class TestDailyTransactions:
    """Tests for the daily view."""

    def test_daily_sums_per_day(self, registry):
        """Test per-day net amounts and axes."""
        daily = extract_daily_transactions(registry, accounts=["Ale"])
        assert daily.days == [date(2023, 1, 2), date(2023, 1, 5), date(2023, 2, 1),
                              date(2023, 2, 3), date(2023, 2, 4)]
        assert daily.amounts == pytest.approx([1460.0, -700.0, 1500.0, -700.0, 0.0])
        assert daily.days_idx == [0.0, 1.0, 2.0, 3.0, 4.0]
        assert daily.days_idx_range == (0.0, 4.0)
        assert daily.amounts_range == pytest.approx((-700.0, 1500.0))

    def test_cumulative_without_offset(self, registry):
        """Test cumulative[i] is the sum of the first i daily amounts."""
        daily = extract_daily_transactions(registry)
        running = 0.0
        for amount, cumulative in zip(daily.amounts, daily.cumsum_amounts):
            running += amount
            assert cumulative == pytest.approx(running)

    def test_cumulative_with_opening_balances(self, registry):
        """Test that the offset is the opening balance of the selection."""
        daily = extract_daily_transactions(
            registry, accounts=["Ale", "Giulia"], with_initial_total_value=True
        )
        assert daily.cumsum_amounts[0] == pytest.approx(1500.0 + 1460.0)
        assert daily.cumsum_amounts[-1] == pytest.approx(1500.0 + 1525.0)
        assert daily.cumsum_amounts_range[1] == pytest.approx(max(daily.cumsum_amounts))

    def test_opening_balances_ignore_the_date_filter(self, registry):
        """Test that the offset is the opening balance, not a rolled-forward one."""
        daily = extract_daily_transactions(
            registry,
            date_range=(date(2023, 2, 1), date(2023, 2, 28)),
            with_initial_total_value=True,
        )
        assert daily.days[0] == date(2023, 2, 1)
        # 1500 opening balance plus the 1500 salary of February 1st
        assert daily.cumsum_amounts[0] == pytest.approx(3000.0)
        assert daily.cumsum_amounts[0] != pytest.approx(1500.0 + 750.0 + 1500.0)

    def test_pairs(self, registry):
        """Test that pairs zip indices with values."""
        daily = extract_daily_transactions(registry, accounts=["Giulia"])
        assert daily.amounts_pairs == [(0.0, -60.0), (1.0, 50.0), (2.0, -25.0)]
        assert daily.amount_cumulative_pairs[-1] == (2.0, pytest.approx(-35.0))

    def test_empty_selection_raises(self, registry):
        """Test that no matching transaction is reported."""
        with pytest.raises(EmptyExtractionError):
            extract_daily_transactions(
                registry, date_range=(date(2024, 1, 1), date(2024, 12, 31))
            )

    def test_cleared_account_filter_is_reported_as_empty(self, registry):
        """Test that an explicit empty account list selects nothing."""
        with pytest.raises(EmptyExtractionError, match=r"accounts=\[\]"):
            extract_daily_transactions(registry, accounts=[])

    def test_empty_registry_raises(self):
        """Test that an empty registry has no daily view."""
        with pytest.raises(EmptyExtractionError):
            extract_daily_transactions(Registry.new())


class TestCategoriesSplit:
    """Tests for the income/expense split."""

    def test_groups_sorted_ascending(self, registry):
        """Test grouping by sign and ascending order."""
        split = extract_categories_split(registry)
        assert split.expense_categories == ["Affitto", "Spesa", "Treno"]
        assert split.expense_amounts == pytest.approx([-1400.0, -100.0, -25.0])
        assert split.income_categories == ["Regalo", "Stipendio"]
        assert split.income_amounts == pytest.approx([50.0, 3000.0])

    def test_zero_amounts_are_excluded(self, registry):
        """Test that zero transactions belong to no group."""
        split = extract_categories_split(registry)
        assert "Varie" not in split.income_categories
        assert "Varie" not in split.expense_categories

    def test_percentages_sum_to_100(self, registry):
        """Test that untruncated shares cover the whole group."""
        split = extract_categories_split(registry)
        assert sum(split.income_percentages) == pytest.approx(100.0, abs=1e-6)
        assert sum(split.expense_percentages) == pytest.approx(100.0, abs=1e-6)
        assert all(p > 0 for p in split.expense_percentages)

    def test_truncation_keeps_first_ranked(self, registry):
        """Test that max_categories cuts after sorting."""
        split = extract_categories_split(registry, max_categories=1)
        assert split.expense_categories == ["Affitto"]
        assert split.income_categories == ["Regalo"]
        assert split.expense_percentages == pytest.approx([1400.0 / 1525.0 * 100.0])

    def test_only_expenses(self, registry):
        """Test a selection without incomes."""
        split = extract_categories_split(
            registry, date_range=(date(2023, 2, 3), date(2023, 2, 3))
        )
        assert split.income_categories == []
        assert split.expense_percentages == pytest.approx([100.0])

    def test_negative_cap_is_rejected(self, registry):
        """Test that a negative category cap is an error."""
        with pytest.raises(ExtractionError):
            extract_categories_split(registry, max_categories=-1)

    def test_empty_selection_raises(self, registry):
        """Test that no matching transaction is reported."""
        with pytest.raises(EmptyExtractionError):
            extract_categories_split(registry, accounts=["Contante"])


class TestMonthlyExtraction:
    """Tests for the monthly view."""

    def test_net_income_per_month(self, registry):
        """Test the month axis and net income."""
        monthly = monthly_extraction(registry)
        assert monthly.months == [date(2023, 1, 1), date(2023, 2, 1)]
        assert monthly.net_income == pytest.approx([750.0, 775.0])
        assert monthly.months_idx == [0.0, 1.0]
        assert monthly.months_idx_range == (0.0, 1.0)
        assert monthly.net_income_range == pytest.approx((750.0, 775.0))
        assert monthly.net_income_pairs == [(0.0, pytest.approx(750.0)), (1.0, pytest.approx(775.0))]

    def test_sparse_category_series(self, registry):
        """Test that categories map back onto the month axis."""
        monthly = monthly_extraction(registry)
        assert monthly.categories == ["Affitto", "Spesa", "Treno"]

        treno = monthly.categories.index("Treno")
        assert monthly.categories_months[treno] == [date(2023, 2, 1)]
        assert monthly.categories_months_idx[treno] == [1.0]
        assert monthly.categories_amounts[treno] == pytest.approx([-25.0])

        spesa = monthly.categories.index("Spesa")
        assert monthly.categories_months_idx[spesa] == [0.0]
        assert monthly.categories_amounts[spesa] == pytest.approx([-100.0])

        assert monthly.categories_amounts_range == pytest.approx((-700.0, -25.0))
        assert monthly.categories_months_idx_range == (0.0, 1.0)
        assert monthly.categories_pairs[treno] == [(1.0, pytest.approx(-25.0))]

    def test_month_shares_descending(self, registry):
        """Test per-month shares sorted by descending share."""
        monthly = monthly_extraction(registry)
        assert monthly.categories_amounts_perc_months == ["2023-01-01", "2023-02-01"]
        assert monthly.categories_amounts_perc_names[0] == ["Affitto", "Spesa"]
        assert monthly.categories_amounts_perc[0] == pytest.approx(
            [700.0 / 800.0 * 100.0, 100.0 / 800.0 * 100.0]
        )
        assert monthly.categories_amounts_perc_value[1] == pytest.approx([-700.0, -25.0])
        for shares in monthly.categories_amounts_perc:
            assert sum(shares) == pytest.approx(100.0, abs=1e-6)

    def test_month_shares_truncated(self, registry):
        """Test max_categories on the monthly pies."""
        monthly = monthly_extraction(registry, max_categories=1)
        assert monthly.categories_amounts_perc_names == [["Affitto"], ["Affitto"]]

    def test_month_without_expenses_has_empty_pie(self, registry):
        """Test that a month with only incomes keeps its place on the axis."""
        registry.add_single(_tx(date(2023, 3, 1), 1500.0, category="Stipendio"))
        monthly = monthly_extraction(registry)
        assert monthly.categories_amounts_perc_months[-1] == "2023-03-01"
        assert monthly.categories_amounts_perc_names[-1] == []
        assert monthly.categories_amounts_perc[-1] == []

    def test_no_expenses_raises(self, registry):
        """Test that a selection without expenses is reported."""
        with pytest.raises(EmptyExtractionError):
            monthly_extraction(registry, date_range=(date(2023, 1, 9), date(2023, 1, 9)))

    def test_empty_selection_raises(self, registry):
        """Test that no matching transaction is reported."""
        with pytest.raises(EmptyExtractionError):
            monthly_extraction(registry, accounts=["buono pasto"])
