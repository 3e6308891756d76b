"""
Streamlit Frontend for Household Ledger

The dashboard the household opens to look at its books.

DESIGN PRINCIPLES:
1. Upload the monthly workbook, see at once which worksheets were rejected
2. Every chart reacts to the same account and date filters
3. Clear error messages in simple language
4. Nothing is saved without an explicit "Save" action
"""

import io
from datetime import date

import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from household_ledger.audit import create_correlation_id
from household_ledger.config import get_settings, validate_all_settings
from household_ledger.models.registry import Registry
from household_ledger.orchestrator import LedgerReport, ReportFlow, create_app_components
from household_ledger.services.storage import StorageError, write_transaction_log


# Page configuration
st.set_page_config(
    page_title="Household Ledger",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)

TEMPLATE = "plotly_white"


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def show_error(message: str, error: Exception):
    """Show an error; in debug mode also the traceback."""
    st.error(f"{message}: {error}")
    if get_settings().app.debug_mode:
        st.exception(error)


def main():
    """Main application entry point."""
    report_flow, _ = get_components()

    if "registry" not in st.session_state:
        st.session_state.registry = None
    if "failed_worksheets" not in st.session_state:
        st.session_state.failed_worksheets = {}

    # Sidebar navigation
    st.sidebar.title("📒 Household Ledger")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📤 Workbook", "📊 Reports", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Upload the household workbook (one `YYYY-MM` sheet per month)
        2. Check the worksheets that could not be read
        3. Open the reports and pick accounts and dates
        """
    )

    if page == "📤 Workbook":
        render_workbook_page(report_flow)
    elif page == "📊 Reports":
        render_reports_page(report_flow)
    elif page == "⚙️ Settings":
        render_settings_page()


# =============================================================================
# WORKBOOK PAGE
# =============================================================================

def render_workbook_page(report_flow: ReportFlow):
    """Render the workbook upload page."""
    st.title("📤 Workbook")
    st.markdown("Upload the household workbook or load the saved transaction log.")

    max_size = get_settings().app.max_upload_size_bytes

    uploaded_file = st.file_uploader(
        "Choose the workbook",
        type=["xlsx"],
        help="Only worksheets named like 2023-01 are read",
    )

    if uploaded_file and st.button("🔍 Read Workbook", type="primary"):
        if uploaded_file.size > max_size:
            st.error(
                f"The file is too large ({uploaded_file.size // 1024} KB). "
                f"The limit is {max_size // (1024 * 1024)} MB."
            )
            st.stop()

        with st.spinner("Reading the worksheets... Please wait."):
            try:
                result = report_flow.ingest_workbook(
                    uploaded_file,
                    filename=uploaded_file.name,
                    file_size=uploaded_file.size,
                    correlation_id=create_correlation_id(),
                )
            except (OSError, ValueError) as e:
                show_error("The workbook could not be opened", e)
                st.stop()

        st.session_state.registry = result.registry
        st.session_state.failed_worksheets = result.errors
        st.success(
            f"Read {len(result.extracted_worksheets)} worksheets: "
            f"{len(result.registry.transactions)} transactions "
            f"on {len(result.registry.accounts)} accounts."
        )

    if st.session_state.failed_worksheets:
        st.warning(
            f"{len(st.session_state.failed_worksheets)} worksheets were skipped:"
        )
        for worksheet, reason in st.session_state.failed_worksheets.items():
            st.markdown(f"- **{worksheet}**: {reason}")

    st.markdown("---")
    st.markdown("### Transaction log")

    col1, col2 = st.columns(2)

    with col1:
        if st.button("💾 Save Transaction Log", disabled=st.session_state.registry is None):
            try:
                count = report_flow.save_registry(st.session_state.registry)
                st.success(f"Saved {count} transactions.")
            except (StorageError, OSError) as e:
                show_error("Could not save the transaction log", e)

    with col2:
        if st.button("📂 Load Saved Transaction Log"):
            try:
                st.session_state.registry = report_flow.load_registry()
                st.session_state.failed_worksheets = {}
                st.success(
                    f"Loaded {len(st.session_state.registry.transactions)} transactions."
                )
            except (StorageError, OSError) as e:
                show_error("Could not load the transaction log", e)

    registry = st.session_state.registry
    if registry is not None:
        with st.expander("📋 Registry summary"):
            st.text(registry.summary())

        buffer = io.StringIO()
        write_transaction_log(registry, buffer)
        st.download_button(
            "⬇️ Download transactions (CSV)",
            data=buffer.getvalue(),
            file_name="transactions.csv",
            mime="text/csv",
        )


# =============================================================================
# REPORTS PAGE
# =============================================================================

def render_reports_page(report_flow: ReportFlow):
    """Render the report charts."""
    st.title("📊 Reports")

    registry: Registry = st.session_state.registry
    if registry is None or not registry.transactions:
        st.info(
            "📋 Your reports will appear here once a workbook is loaded. "
            "Use the 'Workbook' page first."
        )
        return

    settings = report_flow.settings
    known_accounts = registry.get_accounts()
    preselected = [
        name for name in (settings.default_accounts or known_accounts)
        if name in known_accounts
    ]
    days = [t.date for t in registry.transactions]

    col1, col2, col3 = st.columns(3)

    with col1:
        accounts = st.multiselect("Accounts", options=known_accounts, default=preselected)

    with col2:
        selected_dates = st.date_input(
            "Date Range",
            value=(min(days), max(days)),
            help="Both ends are included",
        )

    with col3:
        max_categories = st.number_input(
            "Categories per pie",
            min_value=1,
            max_value=30,
            value=settings.max_categories,
        )
        with_initial = st.checkbox(
            "Start from opening balances",
            value=settings.with_initial_total_value,
        )

    date_range = None
    if isinstance(selected_dates, (tuple, list)) and len(selected_dates) == 2:
        date_range = (selected_dates[0], selected_dates[1])

    report = report_flow.build_report(
        registry,
        accounts=accounts,
        date_range=date_range,
        max_categories=int(max_categories),
        with_initial_total_value=with_initial,
        correlation_id=create_correlation_id(),
    )

    for view, reason in report.errors.items():
        st.info(f"The {view} view is not available: {reason}")

    if report.is_empty:
        return

    st.markdown("---")
    render_daily(report)
    render_categories(report)
    render_monthly(report)


def render_daily(report: LedgerReport):
    daily = report.daily
    if daily is None:
        return

    st.markdown("### Daily")
    fig = go.Figure()
    fig.add_trace(go.Bar(x=daily.days, y=daily.amounts, name="Net amount"))
    fig.add_trace(go.Scatter(
        x=daily.days, y=daily.cumsum_amounts, mode="lines+markers", name="Cumulative",
    ))
    fig.update_layout(template=TEMPLATE, margin=dict(t=30, b=10, l=10, r=10))
    st.plotly_chart(fig, use_container_width=True)


def render_categories(report: LedgerReport):
    split = report.categories
    if split is None:
        return

    st.markdown("### Categories")
    col1, col2 = st.columns(2)

    with col1:
        if split.income_categories:
            fig = px.pie(
                values=split.income_amounts,
                names=split.income_categories,
                title="Incomes",
            )
            st.plotly_chart(fig, use_container_width=True)
        else:
            st.info("No incomes in the selection.")

    with col2:
        if split.expense_categories:
            fig = px.pie(
                values=[-amount for amount in split.expense_amounts],
                names=split.expense_categories,
                title="Expenses",
            )
            st.plotly_chart(fig, use_container_width=True)
        else:
            st.info("No expenses in the selection.")


def render_monthly(report: LedgerReport):
    monthly = report.monthly
    if monthly is None:
        return

    st.markdown("### Monthly")
    labels = [month.strftime("%b %y") for month in monthly.months]

    fig_net = px.bar(
        x=[labels[int(idx)] for idx, _ in monthly.net_income_pairs],
        y=[value for _, value in monthly.net_income_pairs],
        title="Net income",
        template=TEMPLATE,
    )
    st.plotly_chart(fig_net, use_container_width=True)

    fig_cat = go.Figure()
    for category, months, amounts in zip(
        monthly.categories, monthly.categories_months, monthly.categories_amounts
    ):
        fig_cat.add_trace(go.Scatter(
            x=[month.strftime("%b %y") for month in months],
            y=[-amount for amount in amounts],
            mode="lines+markers",
            name=category,
        ))
    fig_cat.update_layout(
        title="Expenses by category",
        template=TEMPLATE,
        xaxis=dict(categoryorder="array", categoryarray=labels),
    )
    st.plotly_chart(fig_cat, use_container_width=True)

    month = st.selectbox(
        "Month",
        options=list(range(len(monthly.categories_amounts_perc_months))),
        index=len(monthly.categories_amounts_perc_months) - 1,
        format_func=lambda i: date.fromisoformat(
            monthly.categories_amounts_perc_months[i]
        ).strftime("%B %Y"),
    )
    if monthly.categories_amounts_perc_names[month]:
        fig_month = px.pie(
            values=monthly.categories_amounts_perc[month],
            names=monthly.categories_amounts_perc_names[month],
            title="Share of the month's expenses",
        )
        st.plotly_chart(fig_month, use_container_width=True)
    else:
        st.info("No expenses in this month.")


# =============================================================================
# SETTINGS PAGE
# =============================================================================

def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    sections = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Reports", "report"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("app", False):
        app_settings = get_settings().app
        st.caption(
            f"Environment: {app_settings.app_environment}"
            f"{' (debug mode)' if app_settings.debug_mode else ''}"
        )

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables. Without Google "
        "Sheets the transaction log is kept in a local CSV file."
    )


if __name__ == "__main__":
    main()
