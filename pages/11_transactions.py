import streamlit as st

from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.transactions import (
    IMPORT_LOG_TYPES,
    TRANSACTION_TYPES,
    import_logs_frame,
    load_import_logs,
    load_transactions,
    transactions_frame,
)

st.set_page_config(
    page_title="Transactions",
    page_icon="📜",
    layout="wide"
)


def render_transactions():
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        type_ = st.selectbox("Type", [''] + TRANSACTION_TYPES, format_func=lambda t: t or 'All', key="tx_type")
    with col2:
        item_code = st.text_input("Item Code", key="tx_item")
    with col3:
        start = st.date_input("Start", value=None, key="tx_start")
    with col4:
        end = st.date_input("End", value=None, key="tx_end")
    page = st.number_input("Page", min_value=1, value=1, step=1, key="tx_page")

    try:
        transactions = load_transactions(get_client(), page, type_, item_code, start, end)
    except ApiError as e:
        st.error(f"❌ {error_message(e, 'Failed to load')}")
        return
    st.dataframe(transactions_frame(transactions), use_container_width=True, hide_index=True)


def render_import_logs():
    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        type_ = st.selectbox("Type", [''] + IMPORT_LOG_TYPES, format_func=lambda t: t or 'All', key="log_type")
    with col2:
        po_number = st.text_input("PO #", key="log_po")
    with col3:
        item_code = st.text_input("Item Code", key="log_item")
    with col4:
        start = st.date_input("Start", value=None, key="log_start")
    with col5:
        end = st.date_input("End", value=None, key="log_end")

    page = st.session_state.get('log_page', 1)
    try:
        logs, page, pages = load_import_logs(get_client(), page, type_, po_number, item_code, start, end)
    except ApiError as e:
        st.error(f"❌ {error_message(e, 'Failed to load')}")
        return
    st.dataframe(import_logs_frame(logs), use_container_width=True, hide_index=True)

    col1, col2, col3 = st.columns([1, 2, 1])
    with col1:
        if st.button("⬅️ Prev", disabled=page <= 1, key="log_prev"):
            st.session_state['log_page'] = page - 1
            st.rerun()
    with col2:
        st.write(f"Page {page} / {pages}")
    with col3:
        if st.button("Next ➡️", disabled=page >= pages, key="log_next"):
            st.session_state['log_page'] = page + 1
            st.rerun()


def main():
    require_auth()
    st.title("📜 Transactions")

    tab_tx, tab_logs = st.tabs(["Transactions", "Import Logs"])
    with tab_tx:
        render_transactions()
    with tab_logs:
        render_import_logs()

    notifications.render_notifications()


if __name__ == "__main__":
    main()
