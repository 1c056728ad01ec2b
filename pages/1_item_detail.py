import streamlit as st

from constants.inventory import DETAIL_COLUMNS, ITEMS_TABLE
from constants.schemas import InventoryItem
from utils.reconciliation import AdjustmentValidationError, quick_adjust
from utils.supabase_gateway import GatewayError
from utils.transaction_history import (
    load_item_history,
    running_change_frame,
    transactions_to_frame,
)
from utils.ui_components import (
    create_history_chart,
    enter_view,
    get_gateway,
    reason_label,
    reason_options,
    render_item_badges,
    render_user_menu,
    require_session,
)

st.set_page_config(
    page_title="Item Detail",
    page_icon="💊",
    layout="wide"
)


def load_item(gateway, item_id: str):
    row = gateway.get_row(ITEMS_TABLE, item_id, columns=DETAIL_COLUMNS)
    return InventoryItem.from_row(row) if row else None


def render_adjust_form(gateway, item: InventoryItem) -> bool:
    """Quick adjust with a standardized reason. Returns True when an adjustment went through."""
    st.markdown("**Quick adjust**")

    qty_col, reason_col = st.columns(2)
    with qty_col:
        qty = st.number_input("Qty", min_value=1, value=1, step=1, key="adjust_qty")
    with reason_col:
        reason = st.selectbox("Reason", reason_options(), format_func=reason_label, key="adjust_reason")

    add_col, deduct_col = st.columns(2)
    delta = None
    if add_col.button("+ Add", use_container_width=True):
        delta = int(qty)
    if deduct_col.button("− Deduct", use_container_width=True):
        delta = -int(qty)

    st.caption("All adjustments are recorded in the audit log with your selected reason.")

    if delta is None:
        return False
    try:
        quick_adjust(gateway, item.id, delta, reason)
    except AdjustmentValidationError as e:
        st.warning(str(e))
        return False
    except GatewayError as e:
        st.error(f"❌ {e.message}")
        return False
    return True


def render_history(gateway, item: InventoryItem):
    st.subheader("History")
    try:
        records = load_item_history(gateway, item.id)
    except GatewayError as e:
        st.error(f"❌ Error loading history: {e.message}")
        return

    if not records:
        st.caption("No transactions yet.")
        return

    st.plotly_chart(
        create_history_chart(running_change_frame(records, item.qty_on_hand)),
        use_container_width=True,
    )
    st.dataframe(
        transactions_to_frame(records).drop(columns=["Item"]),
        use_container_width=True,
        hide_index=True,
    )


def main():
    gateway = get_gateway()
    require_session(gateway)
    enter_view("item_detail")
    render_user_menu(gateway)

    if st.button("← Back"):
        st.switch_page("app.py")

    item_id = st.session_state.get("selected_item_id") or st.query_params.get("id")
    if not item_id:
        st.info("Pick an item from the inventory list to see its details.")
        return
    st.query_params["id"] = item_id

    try:
        item = load_item(gateway, item_id)
    except GatewayError as e:
        st.error(f"❌ Error loading item: {e.message}")
        return
    if item is None:
        st.error("Item not found.")
        return

    details_col, adjust_col = st.columns([2, 1])
    with details_col:
        st.title(item.item_name)
        st.caption(f"SKU: {item.sku or '—'}")
        render_item_badges(item)
        if item.notes:
            st.write(item.notes)

    with adjust_col:
        if render_adjust_form(gateway, item):
            # Fresh read so the page shows the backend's quantity
            st.rerun()

    render_history(gateway, item)


if __name__ == "__main__":
    main()
