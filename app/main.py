"""
Streamlit Frontend for SplitLedger

This is the interface people use to record shared expenses and see who
owes whom.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every form explains what is wrong in plain language
3. Visual feedback for every operation, including degraded saves
4. No hidden actions

The UI never hides a failed remote write: if a change was only kept
locally, the user is told so.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import streamlit as st

from splitledger.advisor import AdvisorChat, FinancialAdvisor
from splitledger.audit import AuditLogger, configure_logging
from splitledger.config import get_settings, validate_all_settings
from splitledger.models.transaction import (
    CURRENCIES,
    EXPENSE_CATEGORIES,
    Member,
    MetricScale,
    ParticipantShare,
    SortOption,
    SplitMethod,
    StatusFilter,
    TimePeriod,
    Transaction,
    TransactionDraft,
    UserProfile,
    WriteResult,
    new_id,
)
from splitledger.orchestrator import (
    LedgerError,
    TransactionLedger,
    TransactionValidationError,
    create_app_components,
)
from splitledger.queries import (
    AnalyticsCriteria,
    ListCriteria,
    category_spending_over_time,
    category_totals,
    format_currency,
    monthly_totals,
    scale_suffix,
    scale_value,
    spending_trend,
    summary_stats,
    top_spending_days,
)
from splitledger.services.storage import JsonFileKeyValueStore, StorageError
from splitledger.session import AppContext, AuthenticationError, Theme


# Page configuration
st.set_page_config(
    page_title="SplitLedger",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
</style>
""", unsafe_allow_html=True)

DARK_THEME_CSS = """
<style>
    .stApp { background-color: #0e1117; color: #fafafa; }
    section[data-testid="stSidebar"] { background-color: #262730; }
</style>
"""

PERIOD_LABELS = {
    None: "All time",
    TimePeriod.DAY: "Today",
    TimePeriod.WEEK: "Last 7 days",
    TimePeriod.MONTH: "Last 30 days",
}
SORT_LABELS = {
    SortOption.DATE_DESC: "Newest first",
    SortOption.DATE_ASC: "Oldest first",
    SortOption.AMOUNT_DESC: "Highest amount",
    SortOption.AMOUNT_ASC: "Lowest amount",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_key_value_store() -> JsonFileKeyValueStore:
    """The file-backed session store, shared by the server process."""
    settings = get_settings().app
    configure_logging(settings.debug_mode)
    return JsonFileKeyValueStore(settings.session_store_path)


def get_app_context() -> AppContext:
    """Session and theme for this browser session."""
    if "app_context" not in st.session_state:
        st.session_state.app_context = AppContext.create(
            store=get_key_value_store(),
            audit_logger=AuditLogger(),
        ).load()
    return st.session_state.app_context


@st.cache_resource
def get_components(uid: str, email: str, display_name: str):
    """Get or create the ledger and advisor for one user (cached)."""
    user = UserProfile(uid=uid, email=email, display_name=display_name)
    try:
        ledger, advisor, sheets_client = create_app_components(user, use_storage=True)
        ledger.start()
    except Exception as e:
        st.error(f"Failed to connect to Google Sheets, working offline: {e}")
        ledger, advisor, sheets_client = create_app_components(user, use_storage=False)
        ledger.start()
    return ledger, advisor, sheets_client


def show_write_result(result: WriteResult, success_message: str) -> None:
    if result.degraded:
        st.warning(
            f"{success_message} It is saved on this device only; "
            f"syncing failed ({result.error})."
        )
    elif result.changed:
        st.success(success_message)
    else:
        st.info("Nothing to change.")
    for warning in result.warnings:
        st.warning(warning)


def main():
    """Main application entry point."""
    context = get_app_context()

    if context.theme.resolve() == Theme.DARK:
        st.markdown(DARK_THEME_CSS, unsafe_allow_html=True)

    user = context.session.current_user
    if user is None:
        render_login_page(context)
        return

    ledger, advisor, _ = get_components(user.uid, user.email, user.display_name)
    try:
        ledger.refresh()
    except StorageError as e:
        st.sidebar.warning(f"Could not refresh: {e}")

    # Sidebar navigation
    st.sidebar.title("💸 SplitLedger")
    st.sidebar.markdown(f"Signed in as **{user.display_name or user.email}**")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏠 Dashboard", "➕ Add Transaction", "📋 Transactions",
         "📊 Analytics", "👥 Groups", "💬 Advisor", "⚙️ Profile & Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Add a shared expense
        2. Pick who paid and how to split it
        3. Settle up when the money comes back
        """
    )

    # Route to appropriate page
    if page == "🏠 Dashboard":
        render_dashboard_page(ledger)
    elif page == "➕ Add Transaction":
        render_add_transaction_page(ledger)
    elif page == "📋 Transactions":
        render_transactions_page(ledger)
    elif page == "📊 Analytics":
        render_analytics_page(ledger)
    elif page == "👥 Groups":
        render_groups_page(ledger)
    elif page == "💬 Advisor":
        render_advisor_page(advisor)
    elif page == "⚙️ Profile & Settings":
        render_settings_page(context)


def render_dashboard_page(ledger: TransactionLedger):
    """Balances, people and recent activity."""
    st.title("🏠 Dashboard")
    currency = get_settings().app.default_currency
    summary = ledger.balances()

    col1, col2, col3 = st.columns(3)
    col1.metric("You are owed", format_currency(summary.owed_to_me, currency),
                help=f"By {summary.people_owe_me} people")
    col2.metric("You owe", format_currency(summary.i_owe, currency),
                help=f"To {summary.people_i_owe} people")
    col3.metric("Net balance", format_currency(summary.net, currency))

    st.caption(f"{summary.pending_count} pending · {summary.settled_count} settled")
    st.markdown("---")

    left, right = st.columns(2)
    with left:
        st.markdown("### People")
        people = ledger.counterparties()
        if not people:
            st.info("You haven't split anything with anyone yet.")
        for person in people:
            balance = ledger.balance_with(person.id)
            c1, c2 = st.columns([3, 1])
            if balance > 0:
                c1.markdown(f"**{person.name or person.email}** owes you {format_currency(balance, currency)}")
            elif balance < 0:
                c1.markdown(f"You owe **{person.name or person.email}** {format_currency(-balance, currency)}")
            else:
                c1.markdown(f"**{person.name or person.email}**: all settled")
            if balance != 0 and c2.button("Settle up", key=f"settle-{person.id}"):
                results = run_async(ledger.settle_with_user(person.id))
                if any(r.degraded for r in results):
                    st.warning("Settled on this device; some changes failed to sync.")
                else:
                    st.success(f"Settled {len(results)} transactions.")
                st.rerun()

    with right:
        st.markdown("### Recent transactions")
        recent = ledger.recent()
        if not recent:
            st.info("📋 Your transactions will appear here once you add them.")
        for txn in recent:
            render_transaction_line(txn)


def render_transaction_line(txn: Transaction) -> None:
    status = "✅ Settled" if txn.settled else "⏳ Pending"
    st.markdown(
        f"**{txn.title}** · {format_currency(txn.amount, txn.currency)} · "
        f"{txn.transaction_date.strftime('%d %b %Y')} · paid by {txn.paid_by_name} · {status}"
    )


def _participant_options(ledger: TransactionLedger) -> dict[str, Member]:
    """Everyone the user can split with: themself, past counterparties, group members, new people."""
    options = {ledger.current_user.uid: ledger.current_user.as_member()}
    for person in ledger.counterparties():
        options.setdefault(person.id, person)
    for group in ledger.groups:
        for member in group.members:
            options.setdefault(member.id, member)
    for person in st.session_state.get("new_people", []):
        options.setdefault(person.id, person)
    return options


def render_add_transaction_page(ledger: TransactionLedger):
    """Render the add-transaction form."""
    st.title("➕ Add Transaction")
    settings = get_settings().app

    if "new_people" not in st.session_state:
        st.session_state.new_people = []

    with st.expander("👤 Add someone new"):
        name = st.text_input("Name", key="new_person_name")
        email = st.text_input("Email", key="new_person_email")
        if st.button("Add person") and (name or email):
            st.session_state.new_people.append(Member(id=new_id(), name=name, email=email))
            st.rerun()

    options = _participant_options(ledger)
    label = {uid: (m.name or m.email or uid) for uid, m in options.items()}

    col1, col2 = st.columns(2)
    with col1:
        title = st.text_input("Title", placeholder="e.g., Dinner at Luigi's")
        amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
        currency = st.selectbox(
            "Currency",
            options=settings.supported_currencies_list,
            index=settings.supported_currencies_list.index(settings.default_currency)
            if settings.default_currency in settings.supported_currencies_list else 0,
            format_func=lambda c: f"{c} ({CURRENCIES.get(c, c)})",
        )
        transaction_date = st.date_input("Date", value=date.today())
    with col2:
        category = st.selectbox("Category", options=[""] + EXPENSE_CATEGORIES,
                                format_func=lambda c: c or "Select a category")
        description = st.text_area("Description (optional)")
        groups = {g.id: g.name for g in ledger.groups}
        group = st.selectbox("Group (optional)", options=[None] + list(groups),
                             format_func=lambda g: "No group" if g is None else groups[g])

    st.markdown("### Split")
    participant_ids = st.multiselect(
        "Participants",
        options=list(options),
        default=[ledger.current_user.uid],
        format_func=lambda uid: label[uid],
    )
    paid_by = st.selectbox(
        "Paid by",
        options=participant_ids or [""],
        format_func=lambda uid: label.get(uid, "Select who paid"),
    )
    split_method = st.radio(
        "Split method",
        options=list(SplitMethod),
        format_func=lambda m: {"equal": "Equally", "percentage": "By percentage",
                               "amount": "By exact amount"}[m.value],
        horizontal=True,
    )

    shares = []
    for uid in participant_ids:
        share = Decimal("0")
        if split_method == SplitMethod.PERCENTAGE:
            share = Decimal(str(st.number_input(f"{label[uid]} (%)", min_value=0.0,
                                                max_value=100.0, step=1.0, key=f"pct-{uid}")))
        elif split_method == SplitMethod.AMOUNT:
            share = Decimal(str(st.number_input(f"{label[uid]} ({currency})", min_value=0.0,
                                                step=0.01, format="%.2f", key=f"amt-{uid}")))
        member = options[uid]
        shares.append(ParticipantShare(
            user_id=uid, name=member.name, email=member.email,
            photo_url=member.photo_url, share=share,
        ))

    draft = TransactionDraft(
        title=title,
        description=description or None,
        amount=Decimal(str(amount)).quantize(Decimal("0.01")) if amount else None,
        currency=currency,
        transaction_date=transaction_date,
        category=category,
        paid_by=paid_by,
        split_method=split_method,
        participants=shares,
        group=group,
    )

    result = ledger.validator.validate(draft)
    summary = ledger.validator.get_user_friendly_summary(result)
    box = "success-box" if result.is_valid and not result.warnings else "warning-box"
    st.markdown(f'<div class="{box}">{summary.replace(chr(10), "<br>")}</div>',
                unsafe_allow_html=True)

    if st.button("💾 Save Transaction", type="primary", disabled=not result.is_valid):
        try:
            write = run_async(ledger.create_transaction(draft))
        except TransactionValidationError as e:
            st.error(ledger.validator.get_user_friendly_summary(e.result))
        else:
            show_write_result(write, f"✅ Saved '{draft.title}'.")


def render_transactions_page(ledger: TransactionLedger):
    """Render the transaction list with filters and actions."""
    st.title("📋 Transactions")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        search = st.text_input("Search", placeholder="e.g., dinner")
    with col2:
        category = st.selectbox("Category", options=[None] + EXPENSE_CATEGORIES,
                                format_func=lambda c: "All Categories" if c is None else c)
    with col3:
        status = st.selectbox("Status", options=list(StatusFilter),
                              format_func=lambda s: s.value.title())
    with col4:
        sort = st.selectbox("Sort", options=list(SortOption), format_func=SORT_LABELS.get)

    transactions = ledger.filtered(ListCriteria(search=search, category=category,
                                                status=status, sort=sort))
    st.markdown("---")

    if not transactions:
        st.info("📋 No transactions match these filters.")
        return

    for txn in transactions:
        status_icon = "✅" if txn.settled else "⏳"
        with st.expander(f"{status_icon} {txn.title} · {format_currency(txn.amount, txn.currency)} · "
                         f"{txn.transaction_date.strftime('%d %b %Y')}"):
            st.markdown(f"**Category:** {txn.category}")
            st.markdown(f"**Paid by:** {txn.paid_by_name}")
            if txn.description:
                st.markdown(f"**Description:** {txn.description}")
            for p in txn.participants:
                paid = "paid" if p.paid else "unpaid"
                st.markdown(f"- {p.name or p.email or p.user_id}: "
                            f"{format_currency(p.amount, txn.currency)} ({paid})")

            c1, c2 = st.columns(2)
            if not txn.settled and c1.button("Mark settled", key=f"settle-{txn.id}"):
                try:
                    show_write_result(run_async(ledger.settle_transaction(txn.id)),
                                      "✅ Marked as settled.")
                except LedgerError as e:
                    st.error(str(e))
            if c2.button("🗑️ Delete", key=f"delete-{txn.id}"):
                try:
                    show_write_result(run_async(ledger.delete_transaction(txn.id)),
                                      "Transaction deleted.")
                except LedgerError as e:
                    st.error(str(e))


def render_analytics_page(ledger: TransactionLedger):
    """Render spending analytics."""
    st.title("📊 Analytics")

    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        search = st.text_input("Search")
    with col2:
        category = st.selectbox("Category", options=[None] + EXPENSE_CATEGORIES,
                                format_func=lambda c: "All Categories" if c is None else c)
    with col3:
        currency = st.selectbox("Currency", options=[None] + list(CURRENCIES),
                                format_func=lambda c: "All Currencies" if c is None else c)
    with col4:
        period = st.selectbox("Period", options=list(PERIOD_LABELS), format_func=PERIOD_LABELS.get)
    with col5:
        scale = st.selectbox("Show amounts in", options=list(MetricScale),
                             format_func=lambda s: s.value.title())

    transactions = ledger.analytics(
        AnalyticsCriteria(search=search, category=category, currency=currency, period=period),
        now=datetime.now(),
    )
    if not transactions:
        st.info("📋 No transactions to analyse yet.")
        return

    display_currency = currency or get_settings().app.default_currency
    suffix = scale_suffix(scale)

    def scaled(value: Decimal) -> str:
        return f"{format_currency(scale_value(value, scale), display_currency)}{suffix}"

    stats = summary_stats(transactions)
    c1, c2, c3 = st.columns(3)
    c1.metric("Total spent", scaled(stats.total))
    c2.metric("Average per transaction", scaled(stats.average))
    c3.metric("Transactions", stats.count)

    st.markdown("### By category")
    st.bar_chart(
        [{"category": s.category, "amount": float(scale_value(s.total_amount, scale))}
         for s in category_totals(transactions)],
        x="category", y="amount",
    )

    st.markdown("### By month")
    st.bar_chart(
        [{"month": m.label, "amount": float(scale_value(m.total_amount, scale))}
         for m in monthly_totals(transactions)],
        x="month", y="amount",
    )

    over_time = category_spending_over_time(transactions)
    if over_time["data"]:
        st.markdown("### Categories over time")
        st.area_chart(
            [{"month": row["label"],
              **{c: float(scale_value(row[c], scale)) for c in over_time["categories"]}}
             for row in over_time["data"]],
            x="month", y=over_time["categories"],
        )

    left, right = st.columns(2)
    with left:
        st.markdown("### Trends (last 3 months)")
        trend = spending_trend(ledger.transactions)
        if trend.increasing:
            st.markdown("📈 Spending more on: " + ", ".join(trend.increasing))
        if trend.decreasing:
            st.markdown("📉 Spending less on: " + ", ".join(trend.decreasing))
        if not trend.increasing and not trend.decreasing:
            st.markdown("No big changes in your spending.")
    with right:
        st.markdown("### Busiest days")
        for day in top_spending_days(transactions)[:3]:
            st.markdown(f"- **{day.day}**: {scaled(day.amount)}")


def render_groups_page(ledger: TransactionLedger):
    """Create and list groups."""
    st.title("👥 Groups")

    with st.form("create_group"):
        name = st.text_input("Group name")
        description = st.text_input("Description (optional)")
        options = _participant_options(ledger)
        member_ids = st.multiselect(
            "Members",
            options=[uid for uid in options if uid != ledger.current_user.uid],
            format_func=lambda uid: options[uid].name or options[uid].email or uid,
        )
        submitted = st.form_submit_button("Create group")

    if submitted:
        if not name.strip():
            st.error("Please enter a group name")
        else:
            result = run_async(ledger.create_group(
                name, description, [options[uid] for uid in member_ids],
            ))
            show_write_result(result, f"✅ Created '{name}'.")

    st.markdown("---")
    if not ledger.groups:
        st.info("You are not in any groups yet.")
    for group in ledger.groups:
        members = ", ".join(m.name or m.email or m.id for m in group.members)
        st.markdown(f"**{group.name}**: {members}")
        if group.description:
            st.caption(group.description)


def render_advisor_page(advisor: FinancialAdvisor):
    """Render the financial advisor chat."""
    st.title("💬 Financial Advisor")
    st.markdown("General money tips. The advisor never sees your transactions.")

    if "advisor_chat" not in st.session_state:
        st.session_state.advisor_chat = AdvisorChat(advisor, speak_replies=False)
    chat: AdvisorChat = st.session_state.advisor_chat

    for message in chat.history:
        with st.chat_message(message.role):
            st.markdown(("🎤 " if message.from_voice else "") + message.content)

    prompt = st.chat_input("Ask about budgeting, saving, investing...")
    if prompt is not None:
        run_async(chat.send(prompt))
        st.rerun()

    if chat.voice_input_available:
        audio = st.audio_input("🎤 Ask with your voice")
        if audio is not None and st.session_state.get("last_audio") != audio.file_id:
            st.session_state.last_audio = audio.file_id
            run_async(chat.send_voice(audio.getvalue()))
            st.rerun()

    if st.button("🧹 Clear conversation"):
        chat.clear()
        st.rerun()


def render_login_page(context: AppContext):
    """Sign in or create an account."""
    st.title("💸 SplitLedger")
    login_tab, signup_tab = st.tabs(["Log in", "Sign up"])

    with login_tab:
        email = st.text_input("Email", value=context.settings.demo_user_email)
        password = st.text_input("Password", type="password")
        if st.button("Log in", type="primary"):
            try:
                run_async(context.session.login(email, password))
                st.rerun()
            except AuthenticationError as e:
                st.error(str(e))
        if st.button("Continue with Google"):
            run_async(context.session.login_with_google())
            st.rerun()

    with signup_tab:
        display_name = st.text_input("Name")
        new_email = st.text_input("Email", key="signup_email")
        new_password = st.text_input("Password", type="password", key="signup_password")
        if st.button("Create account") and new_email and display_name:
            run_async(context.session.signup(new_email, new_password, display_name))
            st.rerun()


def render_settings_page(context: AppContext):
    """Render the profile and settings page."""
    st.title("⚙️ Profile & Settings")
    user = context.session.current_user

    st.markdown("### Profile")
    st.markdown(f"**Name:** {user.display_name}")
    st.markdown(f"**Email:** {user.email}")
    if st.button("Log out"):
        run_async(context.session.logout())
        st.rerun()

    st.markdown("---")
    st.markdown("### Appearance")
    themes = list(Theme)
    theme = st.radio(
        "Theme",
        options=themes,
        index=themes.index(context.theme.theme),
        format_func=lambda t: t.value.title(),
        horizontal=True,
    )
    if theme != context.theme.theme:
        context.theme.set(theme)
        st.rerun()

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Speech (Voice input)", "speech"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To connect shared storage, create a `.env` file with your Google Sheets "
        "credentials. Without it the ledger runs in memory on this device."
    )


if __name__ == "__main__":
    main()
