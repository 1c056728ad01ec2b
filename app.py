import logging

import streamlit as st
from dotenv import load_dotenv

from constants.inventory import PAGE_SIZE, SORT_KEYS, SORT_LABELS
from utils.inventory_filters import (
    apply_client_filters,
    is_low_stock,
    load_items,
    paginate,
    parse_sort_option,
    sort_items,
)
from utils.reconciliation import AdjustmentValidationError, quick_adjust
from utils.supabase_gateway import GatewayError
from utils.ui_components import (
    enter_view,
    flash,
    get_filter_options,
    get_gateway,
    reason_label,
    reason_options,
    render_inventory_filters,
    render_user_menu,
    require_session,
    show_flash,
)

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Set page configuration
st.set_page_config(
    page_title="Clinic Inventory",
    page_icon="💊",
    layout="wide",
    initial_sidebar_state="expanded",
)

SORT_OPTIONS = [f"{key}:{d}" for key in SORT_KEYS for d in ("asc", "desc")]


def format_sort_option(option: str) -> str:
    key, ascending = parse_sort_option(option)
    return f"{SORT_LABELS[key]} {'↑' if ascending else '↓'}"


def adjust_item(gateway, item_id: str, delta: int):
    """Button callback for the inline +1 / -1 actions"""
    reason = st.session_state.get(f"reason_{item_id}")
    try:
        quick_adjust(gateway, item_id, delta, reason)
    except AdjustmentValidationError as e:
        flash("warning", str(e))
        return
    except GatewayError as e:
        flash("error", f"❌ {e.message}")
        return

    # Display only; the next load replaces it with the backend's value
    for item in st.session_state.get("inventory_items", []):
        if item.id == item_id:
            item.qty_on_hand += delta
            break


def open_details(item_id: str):
    st.session_state.selected_item_id = item_id


def main():
    gateway = get_gateway()
    require_session(gateway)
    enter_view("inventory")
    render_user_menu(gateway)

    header_col, search_col = st.columns([1, 2])
    with header_col:
        st.title("Inventory")
    with search_col:
        search = st.text_input(
            "Search",
            placeholder="Search items by name or SKU…",
            key="inv_search",
        )

    filters = render_inventory_filters(get_filter_options(gateway), key_prefix="inv")

    sort_option = st.selectbox(
        "Sort by", SORT_OPTIONS, format_func=format_sort_option, key="inv_sort"
    )
    sort_key, ascending = parse_sort_option(sort_option)

    # Reload the candidate set whenever the server-side predicates change
    signature = (search.strip(), filters.category_id, filters.vendor_id, filters.location_id)
    refresh = st.button("🔄 Refresh")
    if refresh or st.session_state.get("inventory_signature") != signature:
        with st.spinner("Loading inventory..."):
            try:
                st.session_state.inventory_items = load_items(gateway, search, filters)
                st.session_state.inventory_signature = signature
                st.session_state.inventory_page = 0
            except GatewayError as e:
                st.error(f"❌ Error loading inventory: {e.message}")
                return

    show_flash()

    items = st.session_state.get("inventory_items", [])
    visible = sort_items(apply_client_filters(items, filters), sort_key, ascending)
    page = st.session_state.get("inventory_page", 0)
    shown, has_more = paginate(visible, page, PAGE_SIZE)

    low_count = sum(1 for it in visible if is_low_stock(it))
    summary = f"{len(visible)} item{'' if len(visible) == 1 else 's'}"
    if filters.low_stock_only:
        summary += " (low-stock view)"
    metric_cols = st.columns(2)
    metric_cols[0].metric("Items", summary)
    metric_cols[1].metric("Low stock in view", low_count)

    if not shown:
        st.info("No matching items.")
        return

    widths = [4, 2, 1, 1, 2, 2, 1, 1, 1]
    header = st.columns(widths)
    for col, title in zip(header, ["Name", "Category", "Qty", "Par", "Location", "Reason", "", "", ""]):
        col.caption(title.upper())

    for item in shown:
        cols = st.columns(widths)
        name = f"**{item.item_name}**"
        if is_low_stock(item):
            name += " 🔻 Low"
        cols[0].markdown(name)
        cols[1].write(item.category_name or "—")
        cols[2].write(item.qty_on_hand)
        cols[3].write("—" if item.par_level_min is None else item.par_level_min)
        cols[4].write(item.location_name or "—")
        cols[5].selectbox(
            "Reason",
            reason_options(),
            format_func=reason_label,
            key=f"reason_{item.id}",
            label_visibility="collapsed",
        )
        cols[6].button("+1", key=f"inc_{item.id}", on_click=adjust_item, args=(gateway, item.id, 1))
        cols[7].button("−1", key=f"dec_{item.id}", on_click=adjust_item, args=(gateway, item.id, -1))
        if cols[8].button("Details", key=f"details_{item.id}", on_click=open_details, args=(item.id,)):
            st.switch_page("pages/1_item_detail.py")

    if has_more and st.button("Load more"):
        st.session_state.inventory_page = page + 1
        st.rerun()


if __name__ == "__main__":
    main()
