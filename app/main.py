"""
Streamlit Operator Console for Finance Tracker

The scheduler normally triggers the refresh runs. This console lets the
owner look at the portfolio and trigger the same runs by hand.

DESIGN PRINCIPLES:
1. Manual triggers go through the same single-flight coordinator as
   the scheduler, so a button press can never race a scheduled run
2. Every run result is shown with its counts and diagnostics
3. Configuration problems are shown in plain language
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from finance_tracker.config import validate_all_settings
from finance_tracker.models.positions import (
    CompoundingFrequency,
    Expense,
    InstrumentKind,
    InterestType,
    Investment,
    Loan,
    RecurringPlan,
)
from finance_tracker.models.results import RefreshSummary, RunStatus
from finance_tracker.orchestrator import AppComponents, create_app_components


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def money(value: Decimal) -> str:
    return f"₹{value:,.2f}"


def show_summary(summary: RefreshSummary):
    """Render the outcome of one refresh run."""
    counts = (
        f"updated {summary.succeeded}, failed {summary.failed}, "
        f"skipped {summary.skipped}"
    )
    if summary.status == RunStatus.COMPLETED:
        st.success(f"Run completed: {counts}")
    elif summary.status == RunStatus.ALREADY_RUNNING:
        st.info("This refresh is already running. Try again in a minute.")
    elif summary.status == RunStatus.TIMED_OUT:
        st.warning(f"Run stopped at its deadline: {counts}")
    else:
        st.error(f"Run aborted: {counts}")

    for diagnostic in summary.diagnostics:
        st.warning(f"⚠️ {diagnostic}")


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Overview", "📈 Investments", "🔁 SIPs", "🏦 Loans", "🧾 Expenses", "⚙️ Settings"],
        index=0,
    )

    if page == "📊 Overview":
        render_overview_page(components)
    elif page == "📈 Investments":
        render_investments_page(components)
    elif page == "🔁 SIPs":
        render_plans_page(components)
    elif page == "🏦 Loans":
        render_loans_page(components)
    elif page == "🧾 Expenses":
        render_expenses_page(components)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_overview_page(components: AppComponents):
    """Portfolio totals."""
    st.title("📊 Overview")

    queries = components.queries
    investments = run_async(queries.investment_totals())
    plans = run_async(queries.plan_totals())
    loans = run_async(queries.loan_totals())

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Investments", money(investments.total_current_value),
                  delta=money(investments.total_profit_loss))
    with col2:
        st.metric("SIPs", money(plans.total_current_value),
                  delta=money(plans.total_profit_loss))
    with col3:
        st.metric("Outstanding loans", money(loans.total_outstanding_balance))

    st.markdown("---")
    st.markdown("### Average monthly spend (last 6 months)")
    st.markdown(f"**{money(run_async(queries.average_monthly_expense()))}**")


def render_investments_page(components: AppComponents):
    st.title("📈 Investments")
    service = components.coordinator.investments

    if st.button("🔄 Refresh prices", type="primary"):
        with st.spinner("Fetching prices (providers are throttled, this can take a while)..."):
            show_summary(run_async(
                components.coordinator.refresh_prices(is_user_action=True)
            ))

    for inv in run_async(service.list_investments()):
        st.markdown(
            f"**{inv.name}** ({inv.symbol}) · {inv.quantity} @ {money(inv.current_price)} "
            f"= {money(inv.current_value)} · P/L {money(inv.profit_loss)} "
            f"({inv.return_percentage}%)"
        )

    with st.expander("➕ Add investment"):
        with st.form("add_investment"):
            name = st.text_input("Name")
            symbol = st.text_input("Symbol", placeholder="INFY.NS")
            kind = st.selectbox("Kind", list(InstrumentKind), format_func=lambda k: k.value)
            quantity = st.number_input("Quantity", min_value=0.0001, value=1.0)
            price = st.number_input("Purchase price", min_value=0.01, value=100.0)
            purchase_date = st.date_input("Purchase date", value=date.today())
            if st.form_submit_button("Save"):
                try:
                    run_async(service.save_investment(Investment(
                        name=name,
                        symbol=symbol,
                        kind=kind,
                        quantity=Decimal(str(quantity)),
                        purchase_price=Decimal(str(price)),
                        purchase_date=purchase_date,
                    )))
                    st.success("Saved")
                except Exception as e:
                    st.error(f"Could not save: {e}")


def render_plans_page(components: AppComponents):
    st.title("🔁 SIPs")
    coordinator = components.coordinator

    col1, col2 = st.columns(2)
    with col1:
        if st.button("🔄 Refresh NAVs"):
            with st.spinner("Downloading the AMFI NAV table..."):
                show_summary(run_async(coordinator.refresh_navs(is_user_action=True)))
    with col2:
        if st.button("💸 Process monthly contributions"):
            with st.spinner("Processing contributions..."):
                show_summary(run_async(coordinator.process_contributions(is_user_action=True)))

    today = date.today()
    for plan in run_async(coordinator.plans.list_plans()):
        st.markdown(
            f"**{plan.name}** (scheme {plan.scheme_code}) · {plan.total_units} units "
            f"@ {money(plan.current_nav)} = {money(plan.current_value)} · "
            f"invested {money(plan.total_invested(today))}"
        )

    with st.expander("➕ Add SIP"):
        with st.form("add_plan"):
            name = st.text_input("Name")
            scheme_code = st.text_input("AMFI scheme code")
            amount = st.number_input("Monthly amount", min_value=1.0, value=1000.0)
            start_date = st.date_input("Start date", value=today)
            duration = st.number_input("Duration (months)", min_value=1, value=60)
            if st.form_submit_button("Save"):
                try:
                    run_async(coordinator.plans.save_plan(RecurringPlan(
                        name=name,
                        scheme_code=scheme_code,
                        monthly_amount=Decimal(str(amount)).quantize(Decimal("0.01")),
                        start_date=start_date,
                        duration_months=int(duration),
                    )))
                    st.success("Saved")
                except Exception as e:
                    st.error(f"Could not save: {e}")


def render_loans_page(components: AppComponents):
    st.title("🏦 Loans")
    coordinator = components.coordinator

    if st.button("🔄 Update balances"):
        show_summary(run_async(coordinator.refresh_loan_balances(is_user_action=True)))

    today = date.today()
    for loan in run_async(coordinator.loans.list_loans()):
        st.markdown(
            f"**{loan.name}** · balance {money(loan.current_balance or Decimal('0'))} "
            f"of {money(loan.principal_amount)} · EMI {money(loan.emi_amount or Decimal('0'))} · "
            f"{loan.remaining_months(today)} month(s) left"
        )

    with st.expander("➕ Add loan"):
        with st.form("add_loan"):
            name = st.text_input("Name")
            principal = st.number_input("Principal", min_value=1.0, value=100000.0)
            rate = st.number_input("Annual interest rate (%)", min_value=0.01, value=10.0)
            interest_type = st.selectbox("Interest type", list(InterestType), format_func=lambda t: t.value)
            frequency = st.selectbox(
                "Compounding", list(CompoundingFrequency), format_func=lambda f: f.value
            )
            start_date = st.date_input("Start date", value=today)
            tenure = st.number_input("Tenure (months)", min_value=1, value=12)
            if st.form_submit_button("Save"):
                try:
                    loan = run_async(coordinator.loans.save_loan(Loan(
                        name=name,
                        principal_amount=Decimal(str(principal)).quantize(Decimal("0.01")),
                        interest_rate=Decimal(str(rate)),
                        interest_type=interest_type,
                        compounding_frequency=frequency,
                        start_date=start_date,
                        tenure_months=int(tenure),
                    )))
                    st.success(f"Saved. EMI: {money(loan.emi_amount)}")
                except Exception as e:
                    st.error(f"Could not save: {e}")


def render_expenses_page(components: AppComponents):
    st.title("🧾 Expenses")
    queries = components.queries

    col1, col2 = st.columns(2)
    with col1:
        start = st.date_input("From", value=date.today().replace(day=1))
    with col2:
        end = st.date_input("To", value=date.today())

    try:
        totals = run_async(queries.totals_by_category(start, end))
    except Exception as e:
        st.error(str(e))
        return

    if not totals:
        st.info("No expenses in this range.")
    for category, amount in sorted(totals.items()):
        st.markdown(f"- **{category}**: {money(amount)}")

    with st.expander("➕ Add expense"):
        with st.form("add_expense"):
            description = st.text_input("Description")
            amount = st.number_input("Amount", min_value=0.01, value=100.0)
            expense_date = st.date_input("Date", value=date.today())
            category = st.text_input("Category", value="Groceries")
            payment_method = st.text_input("Payment method", value="UPI")
            if st.form_submit_button("Save"):
                try:
                    run_async(components.expenses.save(Expense(
                        description=description,
                        amount=Decimal(str(amount)).quantize(Decimal("0.01")),
                        expense_date=expense_date,
                        category=category,
                        payment_method=payment_method,
                    )))
                    st.success("Saved")
                except Exception as e:
                    st.error(f"Could not save: {e}")


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Yahoo Finance (primary prices)", "yahoo"),
        ("Twelve Data (fallback prices)", "twelve_data"),
        ("Twelve Data API key", "twelve_data_api_key"),
        ("AMFI (fund NAVs)", "amfi"),
        ("Google Sheets (Storage)", "google_sheets"),
    ]

    for name, key in services:
        if status.get(key, True if key == "twelve_data_api_key" else False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your settings "
        "(for example `TWELVEDATA_API_KEY`, `GOOGLE_SHEETS_CREDENTIALS_PATH`, "
        "`GOOGLE_SHEETS_SPREADSHEET_ID`)."
    )


if __name__ == "__main__":
    main()
