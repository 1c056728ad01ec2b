import logging

import streamlit as st

from constants.inventory import COUNT_ADJUSTMENT, COUNT_COLUMNS, REASON_LABELS
from utils.inventory_filters import ItemFilters, apply_client_filters, load_items
from utils.reconciliation import (
    AdjustmentValidationError,
    count_variance,
    parse_count_input,
    reconcile_counts,
)
from utils.supabase_gateway import GatewayError
from utils.ui_components import (
    enter_view,
    flash,
    get_filter_options,
    get_gateway,
    render_inventory_filters,
    render_user_menu,
    require_session,
    show_flash,
)

logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="Cycle Counts",
    page_icon="🧮",
    layout="wide"
)


def count_intents() -> dict:
    """item id -> counted quantity for every row the user has typed into"""
    return st.session_state.setdefault("count_intents", {})


def record_count(item_id: str):
    """on_change callback for a Counted field"""
    raw = st.session_state.get(f"count_input_{item_id}")
    try:
        counted = parse_count_input(raw)
    except AdjustmentValidationError as e:
        flash("warning", str(e))
        return
    intents = count_intents()
    if counted is None:
        intents.pop(item_id, None)
    else:
        intents[item_id] = counted


def submit_counts(gateway):
    """Submit callback; runs before the rows are redrawn so the inputs can be reset."""
    intents = dict(count_intents())
    if not intents:
        return

    logger.info(f"Submitting {len(intents)} cycle counts")
    try:
        result = reconcile_counts(gateway, intents, COUNT_ADJUSTMENT)
    except AdjustmentValidationError as e:
        flash("warning", str(e))
        return

    for outcome in result.completed:
        st.session_state.pop(f"count_input_{outcome.item_id}", None)
    st.session_state.count_intents = dict(result.remaining_counts)
    st.session_state.count_items_signature = None  # reload system quantities

    if result.completed:
        flash(
            "success",
            f"✅ Counts submitted: {len(result.applied)} adjusted, {len(result.unchanged)} already matched.",
        )
    if result.failed:
        lines = "\n".join(f"- {f.item_id}: {f.error}" for f in result.failed)
        flash("error", f"❌ {len(result.failed)} count(s) were not applied and are kept for retry:\n{lines}")


def main():
    gateway = get_gateway()
    require_session(gateway)
    enter_view("cycle_counts")
    render_user_menu(gateway)

    intents = count_intents()
    entered = len(intents)

    title_col, search_col, toggle_col, submit_col = st.columns([2, 2, 1, 1])
    with title_col:
        st.title("Cycle Counts")
    with search_col:
        search = st.text_input("Search", placeholder="Search by name", key="cc_search")
    with toggle_col:
        edited_only = st.toggle("Edited only", key="cc_edited_only")
    with submit_col:
        st.button(
            "Submit Counts",
            disabled=entered == 0,
            on_click=submit_counts,
            args=(gateway,),
            key="cc_submit_top",
        )

    show_flash()

    filters = render_inventory_filters(
        get_filter_options(gateway), key_prefix="cc", include_vendor=False, include_low_stock=False
    )
    server_filters = ItemFilters(category_id=filters.category_id, location_id=filters.location_id)

    signature = (filters.category_id, filters.location_id)
    if st.session_state.get("count_items_signature") != signature:
        with st.spinner("Loading items..."):
            try:
                st.session_state.count_items = load_items(
                    gateway, filters=server_filters, columns=COUNT_COLUMNS
                )
                st.session_state.count_items_signature = signature
            except GatewayError as e:
                st.error(f"❌ Error loading items: {e.message}")
                return

    items = apply_client_filters(st.session_state.get("count_items", []), search=search)
    if edited_only:
        items = [it for it in items if it.id in intents]

    widths = [6, 2, 2, 2]
    header = st.columns(widths)
    for col, title in zip(header, ["Name", "System", "Counted", "Variance"]):
        col.caption(title.upper())

    if not items:
        st.info("No items found.")

    for item in items:
        cols = st.columns(widths)
        cols[0].markdown(f"**{item.item_name}**  \nSKU: {item.sku or '—'}")
        cols[1].write(item.qty_on_hand)
        cols[2].number_input(
            "Counted",
            min_value=0,
            step=1,
            value=intents.get(item.id),
            placeholder="Counted",
            key=f"count_input_{item.id}",
            on_change=record_count,
            args=(item.id,),
            label_visibility="collapsed",
        )
        variance = count_variance(intents.get(item.id), item.qty_on_hand)
        if variance is None:
            cols[3].write("—")
        elif variance > 0:
            cols[3].markdown(f":green[+{variance}]")
        elif variance < 0:
            cols[3].markdown(f":red[{variance}]")
        else:
            cols[3].write("0")

    footer_left, footer_right = st.columns([3, 1])
    footer_left.caption(
        f"{entered} item(s) with counts entered · reason: {REASON_LABELS[COUNT_ADJUSTMENT]}"
    )
    with footer_right:
        st.button(
            "Submit Counts",
            disabled=entered == 0,
            on_click=submit_counts,
            args=(gateway,),
            key="cc_submit_bottom",
        )


if __name__ == "__main__":
    main()
