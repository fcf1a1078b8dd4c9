"""
Streamlit Frontend for Wealthify Achievements

The achievements section of the app: progress on every achievement,
a celebration when one unlocks, and buttons to share unlocked ones.

DESIGN PRINCIPLES:
1. One celebration on screen at a time
2. Progress is always live; unlocks are permanent
3. Sharing never changes whether an achievement is unlocked
4. Clear error messages in simple language

Opening the achievements page runs an evaluation pass, as does every stats
change. The "Log Activity" page stands in for the rest of the finance app
when running on the in-memory backend: every change publishes a
stats-changed notification, which triggers an evaluation pass.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import streamlit as st

from wealthify.achievements import RecordingShareSink
from wealthify.config import get_settings, validate_all_settings
from wealthify.models.achievement import (
    AchievementCategory,
    AchievementState,
    AchievementView,
    SharePlatform,
)
from wealthify.models.finance import (
    Budget,
    FinancialGoal,
    LinkedAccount,
    Profile,
    Transaction,
    TransactionType,
)
from wealthify.orchestrator import AchievementFlow, create_app_components
from wealthify.services.storage import InMemoryFinanceData, StorageError
from wealthify.stats import StatsChangeNotifier


# Page configuration
st.set_page_config(
    page_title="Wealthify Achievements",
    page_icon="🏆",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .celebration-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .achievement-locked {
        opacity: 0.6;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


PLATFORM_LABELS = {
    SharePlatform.TWITTER: "🐦 Twitter",
    SharePlatform.FACEBOOK: "📘 Facebook",
    SharePlatform.LINKEDIN: "💼 LinkedIn",
}


@st.cache_resource
def get_event_loop():
    """One loop for the app's lifetime, so pooled connections stay valid."""
    return asyncio.new_event_loop()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return get_event_loop().run_until_complete(coro)


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    share_sink = RecordingShareSink()
    flow, finance_data, notifier = create_app_components(share_sink=share_sink)
    return flow, finance_data, notifier, share_sink


def main():
    """Main application entry point."""
    flow, finance_data, notifier, share_sink = get_components()

    st.sidebar.title("🏆 Wealthify")
    st.sidebar.markdown("---")

    user_id = st.sidebar.text_input("User", value="demo-user")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🏆 Achievements", "➕ Log Activity", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How it works:**
        1. Use the app as usual
        2. Achievements unlock as you reach milestones
        3. Share the ones you're proud of
        """
    )

    if not user_id:
        st.warning("Enter a user to continue.")
        st.stop()

    # Filled last; rendering the page may unlock achievements
    celebration_slot = st.container()

    if page == "🏆 Achievements":
        render_achievements_page(flow, share_sink, user_id)
    elif page == "➕ Log Activity":
        render_activity_page(finance_data, notifier, user_id)
    elif page == "⚙️ Settings":
        render_settings_page()

    with celebration_slot:
        render_celebration(flow, user_id)


def render_celebration(flow: AchievementFlow, user_id: str):
    """Show the current celebration, if any, until the user dismisses it."""
    current = flow.current_celebration(user_id)
    if current is None:
        return

    if st.session_state.get("celebrated_id") != current.id:
        st.session_state.celebrated_id = current.id
        st.balloons()

    st.markdown(f"""
    <div class="celebration-box">
        <h3>{current.icon} Achievement Unlocked!</h3>
        <p><strong>{current.achievement_name}</strong></p>
        <p>{current.description}</p>
    </div>
    """, unsafe_allow_html=True)

    if st.button("🎉 Awesome!", type="primary"):
        run_async(flow.acknowledge_celebration(user_id))
        st.rerun()


def render_achievements_page(
    flow: AchievementFlow,
    share_sink: RecordingShareSink,
    user_id: str,
):
    """Render the achievements section. Loading it runs an evaluation pass."""
    st.title("🏆 Achievements")

    try:
        summary, views = run_async(flow.load_page(user_id))
    except StorageError as e:
        st.error(f"Couldn't load your achievements right now. Please try again. ({e})")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown("**Unlocked**")
        st.markdown(
            f'<div class="big-number">{summary.completed_count}/{summary.total_count}</div>',
            unsafe_allow_html=True,
        )
    with col2:
        st.markdown("**Overall**")
        st.progress(summary.overall_percentage / 100.0)
    with col3:
        st.markdown("**Almost there**")
        if summary.near_completion:
            for view in summary.near_completion:
                st.markdown(f"{view.icon} {view.name} ({view.percentage:.0f}%)")
        else:
            st.markdown("*Keep going!*")

    if summary.recently_unlocked:
        with st.expander("🕒 Recently unlocked"):
            for view in summary.recently_unlocked:
                st.markdown(
                    f"{view.icon} **{view.name}** on "
                    f"{view.unlocked_at.strftime('%d %B %Y')}"
                )

    st.markdown("---")

    categories = [None] + list(AchievementCategory)
    tabs = st.tabs([
        "All" if c is None else c.value.title() for c in categories
    ])
    for tab, category in zip(tabs, categories):
        with tab:
            shown = [v for v in views if category is None or v.category == category]
            for view in shown:
                render_achievement_card(flow, share_sink, view, key_prefix=str(category))


def render_achievement_card(
    flow: AchievementFlow,
    share_sink: RecordingShareSink,
    view: AchievementView,
    key_prefix: str,
):
    with st.container(border=True):
        col1, col2 = st.columns([3, 2])

        with col1:
            if view.is_completed:
                st.markdown(f"### {view.icon} {view.name}")
            else:
                st.markdown(
                    f'<h3 class="achievement-locked">🔒 {view.name}</h3>',
                    unsafe_allow_html=True,
                )
            st.markdown(view.description)
            st.progress(
                view.percentage / 100.0,
                text=f"{min(view.progress, view.target):,.0f} / {view.target:,.0f}",
            )
            if view.state == AchievementState.LOCKED_ELIGIBLE:
                st.caption("Unlocking...")
            if view.unlocked_at:
                st.caption(f"Unlocked {view.unlocked_at.strftime('%d %B %Y')}")

        with col2:
            if not view.is_completed:
                return
            st.markdown("**Share**")
            for platform, label in PLATFORM_LABELS.items():
                if st.button(label, key=f"{key_prefix}-{view.id}-{platform.value}"):
                    shared_at = run_async(flow.share(view, platform))
                    if shared_at is None:
                        st.warning("Shared, but we couldn't record it this time.")
                    if share_sink.last_url:
                        st.link_button("Open share window", share_sink.last_url)


def render_activity_page(
    finance_data,
    notifier: StatsChangeNotifier,
    user_id: str,
):
    """Demo data entry for the in-memory backend."""
    st.title("➕ Log Activity")

    if not isinstance(finance_data, InMemoryFinanceData):
        st.info(
            "Finance data comes from the hosted database. "
            "Use the main app to add accounts, budgets and goals."
        )
        return

    def changed():
        run_async(notifier.publish(user_id))
        st.rerun()

    col1, col2 = st.columns(2)

    with col1:
        st.subheader("💰 Account")
        balance = st.number_input("Balance ($)", value=100.0, step=50.0)
        if st.button("Add account"):
            finance_data.add_account(
                LinkedAccount(user_id=user_id, balance=Decimal(str(balance)))
            )
            changed()

        st.subheader("📊 Budget")
        budget_category = st.text_input("Budget category", value="Groceries")
        limit = st.number_input("Limit ($)", value=300.0, min_value=0.0, step=10.0)
        if st.button("Add budget"):
            finance_data.add_budget(Budget(
                user_id=user_id,
                category=budget_category,
                limit_amount=Decimal(str(limit)),
            ))
            changed()

    with col2:
        st.subheader("📝 Transaction")
        tx_category = st.text_input("Transaction category", value="Groceries")
        amount = st.number_input("Amount ($)", value=25.0, min_value=0.0, step=5.0)
        tx_type = st.selectbox(
            "Type",
            options=list(TransactionType),
            format_func=lambda x: x.value.title(),
        )
        if st.button("Log transaction"):
            finance_data.add_transaction(Transaction(
                user_id=user_id,
                amount=Decimal(str(amount)),
                category=tx_category,
                transaction_type=tx_type,
            ))
            changed()

        st.subheader("🎯 Goal")
        target = st.number_input("Target ($)", value=500.0, min_value=0.0, step=50.0)
        saved = st.number_input("Saved so far ($)", value=0.0, min_value=0.0, step=50.0)
        if st.button("Add goal"):
            finance_data.add_goal(FinancialGoal(
                user_id=user_id,
                target_amount=Decimal(str(target)),
                current_amount=Decimal(str(saved)),
            ))
            changed()

    st.markdown("---")
    st.subheader("📅 Membership")
    days = st.slider("Member for (days)", min_value=0, max_value=60, value=0)
    if st.button("Set sign-up date"):
        finance_data.set_profile(Profile(
            id=user_id,
            created_at=datetime.now(timezone.utc) - timedelta(days=days),
        ))
        changed()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    app_settings = get_settings().app
    st.markdown(f"**Storage backend:** `{app_settings.storage_backend}`")
    st.markdown(f"**Share link:** {app_settings.app_url}")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("PostgreSQL (Hosted database)", "postgres"),
        ("Google Sheets (Storage)", "google_sheets"),
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
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
