import logging
from typing import Dict, List, Optional

import pandas as pd
import plotly.express as px
import streamlit as st

from constants.inventory import REASON_CODES, REASON_LABELS
from constants.schemas import InventoryItem, LookupOption
from utils.inventory_filters import ItemFilters, is_low_stock, load_filter_options
from utils.supabase_gateway import GatewayError, SupabaseGateway

logger = logging.getLogger(__name__)

# Session keys holding un-submitted local edits, per view
VIEW_INTENT_PREFIXES = {
    "cycle_counts": ("count_",),
    "item_detail": ("adjust_",),
    "inventory": ("reason_",),
}

# Loaded data that must be re-read from the backend whenever a view is entered
VIEW_CACHE_KEYS = ("inventory_signature", "count_items_signature")


def get_gateway() -> SupabaseGateway:
    """One gateway per browser session, passed explicitly to everything that reads or writes."""
    if "gateway" not in st.session_state:
        try:
            st.session_state.gateway = SupabaseGateway()
        except ValueError as e:
            st.error(f"❌ {e}")
            st.stop()
    return st.session_state.gateway


def enter_view(view_name: str):
    """
    Drop the un-submitted edits of whichever view the user just left, and mark
    loaded item lists stale so the new view reads fresh quantities.
    """
    previous = st.session_state.get("active_view")
    if previous and previous != view_name:
        prefixes = VIEW_INTENT_PREFIXES.get(previous, ())
        stale = [k for k in st.session_state.keys() if isinstance(k, str) and k.startswith(prefixes)]
        for key in stale:
            del st.session_state[key]
        if stale:
            logger.info(f"Discarded {len(stale)} pending edits from {previous}")
        for key in VIEW_CACHE_KEYS:
            st.session_state.pop(key, None)
    st.session_state.active_view = view_name


def require_session(gateway: SupabaseGateway):
    """Render the login flow and stop the page unless the user is signed in."""
    if gateway.has_session:
        return

    st.title("Log in")
    st.caption("Enter your work email to get a one-time login code.")

    with st.form("login_email_form"):
        email = st.text_input("Email", placeholder="you@clinic.com")
        send = st.form_submit_button("Send login code")

    if send:
        if not email.strip():
            st.warning("Please enter your email.")
        else:
            try:
                gateway.send_login_code(email.strip())
                st.session_state.login_email = email.strip()
            except GatewayError as e:
                st.error(f"❌ {e.message}")

    signed_in = False
    login_email = st.session_state.get("login_email")
    if login_email:
        st.info(f"Check {login_email} for your login code.")
        with st.form("login_code_form"):
            code = st.text_input("Login code")
            verify = st.form_submit_button("Sign in")
        if verify:
            try:
                gateway.verify_login_code(login_email, code.strip())
                signed_in = True
            except GatewayError as e:
                st.error(f"❌ {e.message}")

    if signed_in:
        st.session_state.pop("login_email", None)
        st.rerun()
    st.stop()


def render_user_menu(gateway: SupabaseGateway):
    with st.sidebar:
        st.caption(f"Signed in as {gateway.user_email}")
        if st.button("Sign out", key="sign_out"):
            try:
                gateway.sign_out()
            except GatewayError as e:
                logger.warning(f"Remote sign-out failed: {e}")
            for key in list(st.session_state.keys()):
                if key != "gateway":
                    del st.session_state[key]
            st.rerun()


def show_flash():
    """Show and clear messages queued by button callbacks."""
    for level, message in st.session_state.pop("flash", []):
        getattr(st, level)(message)


def flash(level: str, message: str):
    st.session_state.setdefault("flash", []).append((level, message))


def reason_label(code: str) -> str:
    return REASON_LABELS.get(code, "Reason…") if code else "Reason…"


def reason_options() -> List[str]:
    return [""] + REASON_CODES


def get_filter_options(gateway: SupabaseGateway) -> Dict[str, List[LookupOption]]:
    if "filter_options" not in st.session_state:
        try:
            st.session_state.filter_options = load_filter_options(gateway)
        except GatewayError as e:
            st.error(f"❌ Could not load filter options: {e.message}")
            return {"categories": [], "vendors": [], "locations": []}
    return st.session_state.filter_options


def _option_select(label: str, options: List[LookupOption], key: str) -> Optional[str]:
    names = {o.id: o.name for o in options}
    return st.selectbox(
        label,
        [None] + list(names.keys()),
        format_func=lambda v: "All" if v is None else names.get(v, v),
        key=key,
    )


def render_inventory_filters(
    options: Dict[str, List[LookupOption]],
    key_prefix: str,
    include_vendor: bool = True,
    include_low_stock: bool = True,
) -> ItemFilters:
    """Category / vendor / location / low-stock selectors."""
    cols = st.columns(4)
    with cols[0]:
        category_id = _option_select("Category", options.get("categories", []), f"{key_prefix}_category")
    vendor_id = None
    if include_vendor:
        with cols[1]:
            vendor_id = _option_select("Vendor", options.get("vendors", []), f"{key_prefix}_vendor")
    with cols[2]:
        location_id = _option_select("Location", options.get("locations", []), f"{key_prefix}_location")
    low_stock_only = False
    if include_low_stock:
        with cols[3]:
            st.write("")
            low_stock_only = st.checkbox("Low stock only", key=f"{key_prefix}_low_stock")
    return ItemFilters(
        category_id=category_id,
        vendor_id=vendor_id,
        location_id=location_id,
        low_stock_only=low_stock_only,
    )


def render_item_badges(item: InventoryItem):
    badges = [f"**{item.qty_on_hand} on hand**"]
    if is_low_stock(item):
        badges.append("🔻 Low")
    if item.is_controlled:
        badges.append("🔒 Controlled")
    if item.category_name:
        badges.append(item.category_name)
    if item.location_name:
        badges.append(f"📍 {item.location_name}")
    st.markdown(" · ".join(badges))


def create_history_chart(df: pd.DataFrame):
    """Line chart of the reconstructed quantity after each transaction"""
    fig = px.line(
        df,
        x="created_at",
        y="quantity",
        markers=True,
        title="Quantity on hand over recent transactions",
        labels={"created_at": "When", "quantity": "Quantity"},
    )
    fig.update_layout(showlegend=False, height=350)
    return fig
