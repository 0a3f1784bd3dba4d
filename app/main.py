"""
Streamlit Frontend for the Shared Finance Tracker

This is the user interface for recording income and expenses, alone
or together with a group.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Visual feedback for all operations
4. No hidden actions

The UI never enforces rules on its own: every check lives in the
flows it calls, so what the UI shows is what the server allows.
"""

import asyncio
import math
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import streamlit as st

from finance_tracker.agents import CategorySuggestionError
from finance_tracker.audit import configure_logging
from finance_tracker.config import get_settings, validate_all_settings
from finance_tracker.groups import (
    GroupWorkflow,
    GroupWorkflowError,
    InvitationEmailMismatchError,
    InvitationNotValidError,
)
from finance_tracker.models import (
    AuthUser,
    Category,
    Currency,
    Group,
    GroupInvitation,
    ItemInput,
    NotificationSettings,
    OwnerScope,
    Transaction,
    TransactionInput,
    MemberRole,
    TransactionType,
    UserSettings,
    utc_now,
)
from finance_tracker.orchestrator import AccountFlow, TransactionFlow, create_app_components
from finance_tracker.reports import (
    ALL_CURRENCIES,
    ReportPeriod,
    category_breakdown,
    category_label,
    csv_export,
    daily_totals,
    expenses_by_category,
    export_filename,
    filter_by_currency,
    filter_by_period,
    format_currency,
    format_currency_label,
    format_percent,
    format_transaction_amount,
    main_currency,
    member_breakdown,
    member_stats,
    month_bounds,
    period_growth,
    recent_transactions,
    report_period_range,
    top_categories,
    totals_by_currency,
    transactions_on,
    used_currencies,
)
from finance_tracker.services.storage import StorageError
from finance_tracker.validation import GroupValidationError, TransactionValidationError


# Page configuration
st.set_page_config(
    page_title="Shared Finance Tracker",
    page_icon="💰",
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
    .income { color: #28a745; font-weight: bold; }
    .expense { color: #dc3545; font-weight: bold; }
</style>
""", unsafe_allow_html=True)


TOAST_KEY = "_pending_toast"


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    configure_logging(get_settings().app.log_level)
    return create_app_components(use_storage=True)


def queue_toast(message: str) -> None:
    """Show a toast on the next run (callbacks can't render directly)."""
    st.session_state[TOAST_KEY] = message


def init_state(key: str, value) -> None:
    if key not in st.session_state:
        st.session_state[key] = value


def clear_state(prefix: str) -> None:
    for key in [k for k in st.session_state if str(k).startswith(prefix)]:
        del st.session_state[key]


def user_timezone(settings: UserSettings):
    try:
        return ZoneInfo(settings.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")


def to_decimal(value) -> Optional[Decimal]:
    """Numbers from widgets and the item editor; blanks become None."""
    if value is None or value == "":
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


# =============================================================================
# AUTHENTICATION
# =============================================================================

def current_user() -> Optional[AuthUser]:
    """
    Resolve the signed-in user.

    Uses Streamlit's OIDC login. In debug mode without an identity
    provider, a local email can be entered instead.
    """
    if get_settings().app.debug_mode:
        email = st.sidebar.text_input("Dev sign-in email", key="dev_email").strip()
        if not email:
            return None
        return AuthUser(uid=email, email=email, email_verified=True)

    if not st.user.is_logged_in:
        return None

    return AuthUser(
        uid=str(st.user.get("sub")),
        email=st.user.get("email"),
        display_name=st.user.get("name"),
        email_verified=bool(st.user.get("email_verified", False)),
    )


def render_login_page():
    st.title("💰 Shared Finance Tracker")
    st.markdown("Track income and expenses on your own or together with your family and friends.")
    if get_settings().app.debug_mode:
        st.info("Enter an email in the sidebar to sign in.")
        return
    if st.button("Sign in"):
        st.login()


# =============================================================================
# MAIN
# =============================================================================

def main():
    """Main application entry point."""
    transaction_flow, group_workflow, account_flow, _ = get_components()

    if TOAST_KEY in st.session_state:
        st.toast(st.session_state.pop(TOAST_KEY))

    user = current_user()
    if user is None:
        render_login_page()
        return

    profile = run_async(account_flow.ensure_profile(user))
    settings = run_async(account_flow.get_settings(user))

    # Sidebar navigation
    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown(f"Signed in as **{profile.name or user.effective_display_name}**")
    st.sidebar.markdown("---")

    pages = [
        "📊 Dashboard",
        "💸 Transactions",
        "📅 Calendar",
        "📈 Reports",
        "👥 Groups",
        "✉️ Join Group",
        "👤 Profile",
        "⚙️ Settings",
    ]
    # Opening an invitation link lands on the join page
    default_page = 5 if st.query_params.get("invite") else 0
    page = st.sidebar.radio("Navigate to:", pages, index=default_page)

    st.sidebar.markdown("---")
    if not get_settings().app.debug_mode and st.sidebar.button("Sign out"):
        st.logout()

    # Route to appropriate page
    personal = OwnerScope.for_user(user.uid)
    if page == "📊 Dashboard":
        render_dashboard_page(transaction_flow, personal, user)
    elif page == "💸 Transactions":
        render_transactions_page(transaction_flow, personal, user, settings)
    elif page == "📅 Calendar":
        render_calendar_page(transaction_flow, personal, user, settings)
    elif page == "📈 Reports":
        render_reports_page(transaction_flow, personal, user, settings)
    elif page == "👥 Groups":
        render_groups_page(transaction_flow, group_workflow, user, settings)
    elif page == "✉️ Join Group":
        render_join_page(group_workflow, user)
    elif page == "👤 Profile":
        render_profile_page(account_flow, user)
    elif page == "⚙️ Settings":
        render_settings_page(account_flow, user, settings)


# =============================================================================
# SHARED WIDGETS
# =============================================================================

def load_transactions(
    transaction_flow: TransactionFlow,
    scope: OwnerScope,
    user: AuthUser,
) -> list[Transaction]:
    try:
        return run_async(transaction_flow.list_transactions(scope, user))
    except GroupWorkflowError as e:
        st.error(f"❌ {e}")
    except StorageError:
        st.error("❌ Failed to load transactions. Please try again.")
    return []


def render_totals(transactions: list[Transaction]):
    """One metric row per currency: income, expenses, net."""
    totals = totals_by_currency(transactions)
    if not totals:
        st.info("No transactions yet.")
        return
    for currency, bucket in sorted(totals.items(), key=lambda item: item[0].value):
        col1, col2, col3 = st.columns(3)
        col1.metric(f"Income ({currency.value})", format_currency(bucket.income, currency))
        col2.metric(f"Expenses ({currency.value})", format_currency(bucket.expenses, currency))
        sign = "-" if bucket.net < 0 else ""
        col3.metric(f"Net ({currency.value})", f"{sign}{format_currency(bucket.net, currency)}")


def render_transaction_row(transaction: Transaction, show_author: bool = False):
    amount = format_transaction_amount(
        transaction.amount, transaction.currency, transaction.type
    )
    css = "income" if transaction.type == TransactionType.INCOME else "expense"
    author = f" · {transaction.created_by_name or 'Unknown'}" if show_author else ""
    st.markdown(
        f"{transaction.date:%Y-%m-%d} · {category_label(transaction.category)} · "
        f"{transaction.description}{author} "
        f"<span class='{css}'>{amount}</span>",
        unsafe_allow_html=True,
    )


def suggest_category_callback(
    transaction_flow: TransactionFlow,
    description_key: str,
    category_key: str,
):
    """Runs before the rerun, so it may set the category widget's state."""
    try:
        category = run_async(
            transaction_flow.suggest_category(st.session_state.get(description_key, ""))
        )
    except CategorySuggestionError as e:
        queue_toast(f"❌ {e}")
        return
    st.session_state[category_key] = category
    queue_toast(f"✨ Suggested category: {category.value}")


def render_transaction_form(
    transaction_flow: TransactionFlow,
    scope: OwnerScope,
    user: AuthUser,
    settings: UserSettings,
    key: str,
    existing: Optional[Transaction] = None,
):
    """Add form, or edit form when `existing` is given."""
    tz = user_timezone(settings)
    initial = existing.to_input() if existing else TransactionInput(
        date=utc_now(), currency=settings.currency
    )

    def k(name: str) -> str:
        return f"{key}_{name}"

    init_state(k("description"), initial.description)
    init_state(k("date"), initial.date.astimezone(tz).date())
    init_state(k("type"), initial.type)
    init_state(k("category"), initial.category or Category.OTHER)
    init_state(k("currency"), initial.currency)
    init_state(k("amount"), float(initial.amount or 0))
    init_state(k("has_items"), initial.has_item_details)

    st.text_input("Description", key=k("description"), placeholder="e.g. Weekly groceries")

    col1, col2 = st.columns([3, 1])
    with col1:
        st.selectbox(
            "Category",
            options=list(Category),
            format_func=category_label,
            key=k("category"),
        )
    with col2:
        st.button(
            "✨ Suggest",
            key=k("suggest"),
            on_click=suggest_category_callback,
            args=(transaction_flow, k("description"), k("category")),
        )

    col1, col2, col3 = st.columns(3)
    with col1:
        st.date_input("Date", key=k("date"))
    with col2:
        st.radio(
            "Type",
            options=list(TransactionType),
            format_func=lambda t: t.value.title(),
            key=k("type"),
            horizontal=True,
        )
    with col3:
        st.selectbox(
            "Currency",
            options=list(Currency),
            format_func=format_currency_label,
            key=k("currency"),
        )

    has_items = st.toggle("Add item details", key=k("has_items"))
    items: list[ItemInput] = []
    if has_items:
        rows = st.data_editor(
            [
                {
                    "description": item.description,
                    "quantity": float(item.quantity or 0),
                    "unit_price": float(item.unit_price or 0),
                    "unit": item.unit or "",
                }
                for item in initial.items
            ] or [
                {"description": "", "quantity": 1.0, "unit_price": 0.0, "unit": ""}
            ],
            num_rows="dynamic",
            key=k("items"),
            column_config={
                "description": st.column_config.TextColumn("Item"),
                "quantity": st.column_config.NumberColumn("Quantity", min_value=0.0),
                "unit_price": st.column_config.NumberColumn("Unit price", min_value=0.0, format="%.2f"),
                "unit": st.column_config.TextColumn("Unit"),
            },
        )
        if hasattr(rows, "to_dict"):
            rows = rows.to_dict("records")
        items = [
            ItemInput(
                description=str(row.get("description") or ""),
                quantity=to_decimal(row.get("quantity")),
                unit_price=to_decimal(row.get("unit_price")),
                unit=str(row.get("unit") or "") or None,
            )
            for row in rows
        ]
        total = sum(
            (i.quantity * i.unit_price for i in items if i.quantity and i.unit_price),
            Decimal("0"),
        )
        st.markdown(f"**Total:** {format_currency(total, st.session_state[k('currency')])}")
    else:
        st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f", key=k("amount"))

    if st.button("💾 Save" if existing else "➕ Add transaction", key=k("save"), type="primary"):
        day: date = st.session_state[k("date")]
        data = TransactionInput(
            date=datetime.combine(day, time.min, tzinfo=tz),
            description=st.session_state[k("description")],
            amount=None if has_items else to_decimal(st.session_state[k("amount")]),
            currency=st.session_state[k("currency")],
            type=st.session_state[k("type")],
            category=st.session_state[k("category")],
            items=items,
            has_item_details=has_items,
        )
        try:
            if existing:
                run_async(transaction_flow.update_transaction(scope, user, existing.id, data))
                queue_toast("✅ Transaction updated")
            else:
                run_async(transaction_flow.add_transaction(scope, user, data))
                queue_toast("✅ Transaction added")
        except TransactionValidationError as e:
            st.error(transaction_flow.validate(data)[1] or str(e))
            return
        except GroupWorkflowError as e:
            st.error(f"❌ {e}")
            return
        except StorageError:
            st.error("❌ Failed to save transaction. Please try again.")
            return
        clear_state(key)
        st.rerun()


def render_transaction_list(
    transaction_flow: TransactionFlow,
    scope: OwnerScope,
    user: AuthUser,
    settings: UserSettings,
    transactions: list[Transaction],
    key: str,
):
    """Filterable list with edit and delete per transaction."""
    currencies = used_currencies(transactions)
    selected = st.selectbox(
        "Currency",
        options=[ALL_CURRENCIES] + currencies,
        format_func=lambda c: "All currencies" if c == ALL_CURRENCIES else c.value,
        key=f"{key}_filter",
    )
    shown = filter_by_currency(transactions, selected)

    if not shown:
        st.info("No transactions to show.")
        return

    for transaction in shown:
        label = (
            f"{transaction.date:%Y-%m-%d} · {transaction.description} · "
            f"{format_transaction_amount(transaction.amount, transaction.currency, transaction.type)}"
        )
        with st.expander(label):
            if scope.is_group:
                st.caption(f"Added by {transaction.created_by_name or 'Unknown'}")
            if transaction.has_item_details:
                st.table([
                    {
                        "Item": item.description,
                        "Quantity": str(item.quantity),
                        "Unit": item.unit or "",
                        "Unit price": format_currency(item.unit_price, transaction.currency),
                        "Total": format_currency(item.total, transaction.currency),
                    }
                    for item in transaction.items
                ])
            render_transaction_form(
                transaction_flow, scope, user, settings,
                key=f"{key}_edit_{transaction.id}",
                existing=transaction,
            )
            if st.button("🗑️ Delete", key=f"{key}_delete_{transaction.id}"):
                try:
                    run_async(transaction_flow.delete_transaction(scope, user, transaction.id))
                except (GroupWorkflowError, StorageError) as e:
                    st.error(f"❌ Failed to delete transaction: {e}")
                    return
                queue_toast("🗑️ Transaction deleted")
                st.rerun()


def render_calendar(transactions: list[Transaction], settings: UserSettings, key: str):
    """Month view: per-day totals, then the transactions of a chosen day."""
    tz = user_timezone(settings)
    today = utc_now().astimezone(tz).date()
    picked = st.date_input("Day", value=today, key=f"{key}_day")
    first, last = month_bounds(picked.year, picked.month)

    in_month = filter_by_period(
        transactions,
        datetime.combine(first, time.min, tzinfo=tz),
        datetime.combine(last, time.max, tzinfo=tz),
    )
    days = daily_totals(in_month, tz)

    st.subheader(f"{first:%B %Y}")
    if days:
        st.table([
            {
                "Day": day.isoformat(),
                "Transactions": cell.count,
                "Income": str(cell.income),
                "Expenses": str(cell.expenses),
            }
            for day, cell in sorted(days.items())
        ])
    else:
        st.info("No transactions this month.")

    st.subheader(f"{picked:%A, %d %B}")
    for transaction in transactions_on(transactions, picked, tz):
        render_transaction_row(transaction, show_author=bool(transaction.group_id))


def render_reports(
    transactions: list[Transaction],
    settings: UserSettings,
    report_name: str,
    key: str,
    group: Optional[Group] = None,
):
    """Period and currency filters, breakdowns and CSV download."""
    tz = user_timezone(settings)
    col1, col2 = st.columns(2)
    with col1:
        period = st.selectbox(
            "Period",
            options=list(ReportPeriod),
            format_func=lambda p: p.value.replace("-", " ").title(),
            key=f"{key}_period",
        )
    with col2:
        currency = st.selectbox(
            "Currency",
            options=[ALL_CURRENCIES] + used_currencies(transactions),
            format_func=lambda c: "All currencies" if c == ALL_CURRENCIES else c.value,
            key=f"{key}_currency",
        )

    if period == ReportPeriod.CUSTOM:
        col1, col2 = st.columns(2)
        start = col1.date_input("From", key=f"{key}_from")
        end = col2.date_input("To", key=f"{key}_to")
    else:
        start, end = report_period_range(period, tz=tz)

    selected = filter_by_currency(filter_by_period(transactions, start, end, tz), currency)
    st.caption(f"{start:%Y-%m-%d} to {end:%Y-%m-%d} · {len(selected)} transactions")

    render_totals(selected)

    st.subheader("By category")
    st.table([
        {
            "Category": category_label(category),
            "Currency": code.value,
            "Income": format_currency(cell.income, code),
            "Expenses": format_currency(cell.expenses, code),
            "Transactions": cell.count,
        }
        for category, per_currency in category_breakdown(selected).items()
        for code, cell in per_currency.items()
    ] or [{"Category": "-"}])

    if group is not None:
        st.subheader("By member")
        st.table([
            {
                "Member": name,
                "Currency": code.value,
                "Income": format_currency(cell.income, code),
                "Expenses": format_currency(cell.expenses, code),
                "Transactions": cell.count,
            }
            for name, per_currency in member_breakdown(selected, group.members).items()
            for code, cell in per_currency.items()
        ] or [{"Member": "-"}])

    st.download_button(
        "⬇️ Export CSV",
        data=csv_export(selected, group_export=group is not None),
        file_name=export_filename(report_name, start, end),
        mime="text/csv",
        key=f"{key}_export",
    )


# =============================================================================
# PERSONAL PAGES
# =============================================================================

def render_dashboard_page(transaction_flow: TransactionFlow, scope: OwnerScope, user: AuthUser):
    """Render the personal dashboard."""
    st.title("📊 Dashboard")
    transactions = load_transactions(transaction_flow, scope, user)

    render_totals(transactions)
    if not transactions:
        return

    currency = main_currency(transactions)
    growth = period_growth(transactions, currency)
    col1, col2 = st.columns(2)
    col1.metric(
        f"Income, last 30 days ({currency.value})",
        format_currency(growth.current_income, currency),
        delta=format_percent(growth.income_growth),
    )
    col2.metric(
        f"Expenses, last 30 days ({currency.value})",
        format_currency(growth.current_expenses, currency),
        delta=format_percent(growth.expense_growth),
        delta_color="inverse",
    )

    st.subheader(f"Expenses by category ({currency.value})")
    chart = expenses_by_category(transactions, currency)
    if chart:
        st.bar_chart(
            [{"Category": c.value, "Amount": float(a)} for c, a in chart],
            x="Category",
            y="Amount",
        )

    st.subheader("Recent transactions")
    limit = get_settings().app.recent_transactions_limit
    for transaction in recent_transactions(transactions, limit):
        render_transaction_row(transaction)


def render_transactions_page(
    transaction_flow: TransactionFlow,
    scope: OwnerScope,
    user: AuthUser,
    settings: UserSettings,
):
    st.title("💸 Transactions")
    with st.expander("➕ Add transaction", expanded=False):
        render_transaction_form(transaction_flow, scope, user, settings, key="add_personal")

    transactions = load_transactions(transaction_flow, scope, user)
    render_transaction_list(transaction_flow, scope, user, settings, transactions, key="personal")


def render_calendar_page(
    transaction_flow: TransactionFlow,
    scope: OwnerScope,
    user: AuthUser,
    settings: UserSettings,
):
    st.title("📅 Calendar")
    render_calendar(load_transactions(transaction_flow, scope, user), settings, key="personal_cal")


def render_reports_page(
    transaction_flow: TransactionFlow,
    scope: OwnerScope,
    user: AuthUser,
    settings: UserSettings,
):
    st.title("📈 Reports")
    transactions = load_transactions(transaction_flow, scope, user)
    name = user.effective_display_name
    render_reports(transactions, settings, report_name=name, key="personal_report")


# =============================================================================
# GROUP PAGES
# =============================================================================

def render_groups_page(
    transaction_flow: TransactionFlow,
    group_workflow: GroupWorkflow,
    user: AuthUser,
    settings: UserSettings,
):
    """Render the group list, pending invitations and the selected group."""
    st.title("👥 Groups")

    if user.email:
        pending = run_async(group_workflow.list_pending_invitations(user.email))
        for invitation in pending:
            render_invitation_card(group_workflow, invitation, user, key=f"pending_{invitation.id}")

    with st.expander("➕ Create group"):
        name = st.text_input("Group name", key="new_group_name")
        description = st.text_area("Description", key="new_group_description")
        if st.button("Create group", type="primary"):
            try:
                group = run_async(group_workflow.create_group(name, description, user))
            except GroupValidationError as e:
                st.error(f"❌ {e}")
            except StorageError:
                st.error("❌ Failed to create group. Please try again.")
            else:
                clear_state("new_group_")
                queue_toast(f"✅ Group '{group.name}' created")
                st.rerun()

    groups = run_async(group_workflow.list_groups_for_user(user.uid))
    if not groups:
        st.info("You are not in any group yet. Create one or accept an invitation.")
        return

    by_id = {g.id: g for g in groups}
    group_id = st.selectbox(
        "Group",
        options=list(by_id),
        format_func=lambda gid: f"{by_id[gid].name} ({len(by_id[gid].members)} members)",
        key="selected_group",
    )
    group = by_id[group_id]
    render_group_detail(transaction_flow, group_workflow, group, user, settings)


def render_group_detail(
    transaction_flow: TransactionFlow,
    group_workflow: GroupWorkflow,
    group: Group,
    user: AuthUser,
    settings: UserSettings,
):
    if group.description:
        st.caption(group.description)

    scope = OwnerScope.for_group(group.id)
    transactions = load_transactions(transaction_flow, scope, user)
    key = f"group_{group.id}"

    tabs = st.tabs(["Dashboard", "Transactions", "Calendar", "Reports", "Members"])

    with tabs[0]:
        render_totals(transactions)
        st.subheader("Top categories")
        for summary in top_categories(transactions):
            st.markdown(
                f"{category_label(summary.category)}: {summary.total_count} transactions, "
                + ", ".join(
                    format_currency(cell.total, code)
                    for code, cell in summary.currencies.items()
                )
            )
        st.subheader("Members")
        st.table([
            {
                "Member": stats.member.display_name,
                "Transactions": stats.transaction_count,
                "Total": str(stats.total_amount),
                "Average": f"{stats.average_transaction:.2f}",
            }
            for stats in member_stats(transactions, group.members)
        ])

    with tabs[1]:
        with st.expander("➕ Add group transaction"):
            render_transaction_form(transaction_flow, scope, user, settings, key=f"{key}_add")
        render_transaction_list(transaction_flow, scope, user, settings, transactions, key=key)

    with tabs[2]:
        render_calendar(transactions, settings, key=f"{key}_cal")

    with tabs[3]:
        render_reports(transactions, settings, report_name=group.name, key=f"{key}_report", group=group)

    with tabs[4]:
        render_members_tab(group_workflow, group, user, key)


def render_members_tab(group_workflow: GroupWorkflow, group: Group, user: AuthUser, key: str):
    for member in group.members:
        role = "👑 admin" if member.role == MemberRole.ADMIN else "member"
        st.markdown(f"**{member.display_name}** ({member.email}) · {role} · joined {member.joined_at:%Y-%m-%d}")

    st.subheader("Invite someone")
    email = st.text_input("Email address", key=f"{key}_invite_email")
    if st.button("Send invitation", key=f"{key}_invite"):
        try:
            invitation = run_async(group_workflow.create_invitation(group, user, email))
        except (GroupValidationError, GroupWorkflowError) as e:
            st.error(f"❌ {e}")
        except StorageError:
            st.error("❌ Failed to create invitation. Please try again.")
        else:
            st.success(f"Invitation created for {invitation.invited_email}. Share this link:")
            st.code(group_workflow.generate_invite_link(invitation.invite_token))

    invitations = run_async(group_workflow.list_group_invitations(group, user))
    if invitations:
        st.subheader("Invitations")
        st.table([
            {
                "Email": inv.invited_email,
                "Status": inv.effective_status().value,
                "Expires": f"{inv.expires_at:%Y-%m-%d %H:%M}",
            }
            for inv in invitations
        ])

    st.markdown("---")
    col1, col2 = st.columns(2)
    with col1:
        if st.button("🚪 Leave group", key=f"{key}_leave"):
            try:
                deleted = run_async(group_workflow.leave_group(group, user))
            except (GroupWorkflowError, StorageError) as e:
                st.error(f"❌ Failed to leave group: {e}")
            else:
                queue_toast("Group deleted: you were the last member" if deleted else "You left the group")
                st.rerun()
    with col2:
        if group.created_by == user.uid and st.button("🗑️ Delete group", key=f"{key}_delete"):
            try:
                run_async(group_workflow.delete_group(group, user))
            except (GroupWorkflowError, StorageError) as e:
                st.error(f"❌ Failed to delete group: {e}")
            else:
                queue_toast(f"🗑️ Group '{group.name}' deleted")
                st.rerun()


def render_invitation_card(
    group_workflow: GroupWorkflow,
    invitation: GroupInvitation,
    user: AuthUser,
    key: str,
):
    st.info(
        f"**{invitation.invited_by_name}** invited you to join **{invitation.group_name}** "
        f"(expires {invitation.expires_at:%Y-%m-%d})"
    )
    col1, col2 = st.columns(2)
    with col1:
        if st.button("✅ Accept", key=f"{key}_accept"):
            try:
                group = run_async(group_workflow.accept_invitation(invitation, user))
            except InvitationEmailMismatchError as e:
                st.error(f"Email mismatch: {e}")
            except InvitationNotValidError as e:
                st.error(f"❌ {e.reason}")
            except (GroupWorkflowError, StorageError):
                st.error("Failed to accept invitation. Please try again.")
            else:
                st.query_params.clear()
                queue_toast(f"You've joined {group.name}!")
                st.rerun()
    with col2:
        if st.button("❌ Decline", key=f"{key}_decline"):
            try:
                run_async(group_workflow.reject_invitation(invitation, user))
            except InvitationEmailMismatchError as e:
                st.error(f"Email mismatch: {e}")
            except InvitationNotValidError as e:
                st.error(f"❌ {e.reason}")
            except (GroupWorkflowError, StorageError):
                st.error("Failed to decline invitation. Please try again.")
            else:
                st.query_params.clear()
                queue_toast(f"You've declined the invitation to {invitation.group_name}.")
                st.rerun()


def render_join_page(group_workflow: GroupWorkflow, user: AuthUser):
    """Open an invitation from a link or a pasted token."""
    st.title("✉️ Join a group")

    link = st.text_input(
        "Invitation link",
        value=st.query_params.get("invite", ""),
        help="Paste the link you received",
    )
    token = group_workflow.extract_invite_token(link)
    if not token:
        return

    invitation = run_async(group_workflow.get_invitation_by_token(token))
    if invitation is None:
        st.error("Invitation not found. Please check the link.")
        return

    valid, reason = group_workflow.is_invitation_valid(invitation)
    if not valid:
        st.warning(reason)
        return

    if user.email != invitation.invited_email:
        st.warning(
            f"This invitation was sent to {invitation.invited_email}. "
            "Please sign in with that email address."
        )
    render_invitation_card(group_workflow, invitation, user, key=f"join_{invitation.id}")


# =============================================================================
# ACCOUNT PAGES
# =============================================================================

def render_profile_page(account_flow: AccountFlow, user: AuthUser):
    st.title("👤 Profile")
    profile = run_async(account_flow.ensure_profile(user))

    name = st.text_input("Name", value=profile.name)
    photo_url = st.text_input("Photo URL", value=profile.photo_url)
    st.text_input("Email", value=profile.email, disabled=True)
    st.caption(f"Member since {profile.created_at:%Y-%m-%d}")

    if st.button("Save profile", type="primary"):
        try:
            run_async(account_flow.update_profile(user, name=name, photo_url=photo_url))
        except StorageError:
            st.error("❌ Failed to save profile.")
        else:
            queue_toast("✅ Profile saved")
            st.rerun()


def render_settings_page(account_flow: AccountFlow, user: AuthUser, settings: UserSettings):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Preferences")
    currency = st.selectbox(
        "Default currency",
        options=list(Currency),
        index=list(Currency).index(settings.currency),
        format_func=format_currency_label,
    )
    themes = ["light", "dark", "system"]
    theme = st.selectbox("Theme", options=themes, index=themes.index(settings.theme))
    timezone = st.text_input("Timezone", value=settings.timezone, help="e.g. Europe/Madrid")
    budget_alerts = st.toggle("Budget alerts", value=settings.budget_alerts)

    st.markdown("### Notifications")
    notifications = NotificationSettings(
        email=st.toggle("Email", value=settings.notifications.email),
        push=st.toggle("Push", value=settings.notifications.push),
        weekly=st.toggle("Weekly summary", value=settings.notifications.weekly),
        monthly=st.toggle("Monthly summary", value=settings.notifications.monthly),
    )

    if st.button("Save settings", type="primary"):
        updated = settings.model_copy(update={
            "currency": currency,
            "theme": theme,
            "timezone": timezone.strip() or "UTC",
            "budget_alerts": budget_alerts,
            "notifications": notifications,
        })
        try:
            run_async(account_flow.save_settings(user, updated))
        except StorageError:
            st.error("❌ Failed to save settings.")
        else:
            queue_toast("✅ Settings saved")
            st.rerun()

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI suggestions)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
