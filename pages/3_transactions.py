from datetime import datetime

import streamlit as st

from constants.inventory import TRANSACTIONS_PAGE_SIZE
from utils.supabase_gateway import GatewayError
from utils.transaction_history import load_transactions, to_csv_bytes, transactions_to_frame
from utils.ui_components import enter_view, get_gateway, render_user_menu, require_session

st.set_page_config(
    page_title="Transactions",
    page_icon="📜",
    layout="wide"
)


def main():
    gateway = get_gateway()
    require_session(gateway)
    enter_view("transactions")
    render_user_menu(gateway)

    st.title("Transactions")

    page = st.session_state.get("tx_page", 0)
    try:
        records, total = load_transactions(gateway, page=page)
    except GatewayError as e:
        st.error(f"❌ Error loading transactions: {e.message}")
        return

    if not records:
        st.caption("No transactions found.")
        return

    df = transactions_to_frame(records)
    first = page * TRANSACTIONS_PAGE_SIZE + 1
    last = first + len(records) - 1
    st.write(f"Showing {first}–{last}" + (f" of {total}" if total is not None else ""))
    st.dataframe(df, use_container_width=True, hide_index=True)

    prev_col, next_col, download_col = st.columns(3)
    if prev_col.button("← Newer", disabled=page == 0):
        st.session_state.tx_page = page - 1
        st.rerun()
    has_more = total > last if total is not None else len(records) == TRANSACTIONS_PAGE_SIZE
    if next_col.button("Older →", disabled=not has_more):
        st.session_state.tx_page = page + 1
        st.rerun()

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    download_col.download_button(
        label=f"📥 Download as CSV ({len(df)} rows)",
        data=to_csv_bytes(df),
        file_name=f"transactions_{timestamp}.csv",
        mime="text/csv",
    )


if __name__ == "__main__":
    main()
