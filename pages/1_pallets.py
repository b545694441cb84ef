import pandas as pd
import streamlit as st

from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.datetime_utils import timestamp_compact
from utils.pallet_summary import (
    SUMMARY_SHEET,
    filter_summary_rows,
    load_on_process_details,
    load_on_water_details,
    load_summary,
    split_warehouses,
    summary_chart,
    summary_export_filename,
    summary_frame,
)
from utils.spreadsheets import XLSX_MIME, build_workbook, csv_bytes

st.set_page_config(
    page_title="Pallets Summary",
    page_icon="📦",
    layout="wide"
)


def refresh_summary():
    with st.spinner("Loading pallet summary..."):
        try:
            warehouses, rows = load_summary(get_client())
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to load'))
            warehouses, rows = [], []
    st.session_state['pallet_summary'] = (warehouses, rows)


def render_drill_down(rows, warehouses):
    st.subheader("Pallet Details")
    names = [r['itemGroup'] for r in rows if r['onWaterQty'] or r['onProcessQty']]
    if not names:
        st.info("No on-water or on-process pallets.")
        return
    group_name = st.selectbox("Pallet Description", names, key="pallet_drill_group")
    primary, _, _ = split_warehouses(warehouses)
    client = get_client()

    col1, col2 = st.columns(2)
    with col1:
        st.markdown(f"**On-Water - {group_name}**")
        try:
            on_water = load_on_water_details(client, primary.id if primary else '', group_name)
        except ApiError:
            on_water = []
        st.dataframe(pd.DataFrame(on_water, columns=['reference', 'edd', 'qty']).rename(
            columns={'reference': 'Reference', 'edd': 'EDD', 'qty': 'QTY'}), use_container_width=True, hide_index=True)
    with col2:
        st.markdown(f"**On-Process - {group_name}**")
        try:
            on_process = load_on_process_details(client, group_name)
        except ApiError:
            on_process = []
        st.dataframe(pd.DataFrame(on_process, columns=['reference', 'edd', 'qty']).rename(
            columns={'reference': 'Reference', 'edd': 'EDD', 'qty': 'QTY'}), use_container_width=True, hide_index=True)


def main():
    require_auth()
    st.title("📦 Pallets Summary")

    if st.button("🔄 Refresh") or 'pallet_summary' not in st.session_state:
        refresh_summary()

    warehouses, rows = st.session_state['pallet_summary']
    q = st.text_input("Search Pallet ID or Description")
    filtered = filter_summary_rows(rows, q)
    df = summary_frame(filtered, warehouses)

    st.write(f"Showing {len(filtered)} out of {len(rows)} Pallet Descriptions")
    st.dataframe(df, use_container_width=True, hide_index=True)

    if len(df):
        timestamp = timestamp_compact('-')
        col1, col2 = st.columns(2)
        with col1:
            st.download_button(
                label=f"📥 Export List ({len(df)} rows)",
                data=build_workbook({SUMMARY_SHEET: df}),
                file_name=summary_export_filename(timestamp),
                mime=XLSX_MIME
            )
        with col2:
            st.download_button(
                label="📥 Download as CSV",
                data=csv_bytes(df),
                file_name=f"Pallet_Quantity_Summary_{timestamp}.csv",
                mime="text/csv"
            )

        st.plotly_chart(summary_chart(filtered), use_container_width=True)
        render_drill_down(filtered, warehouses)

    notifications.render_notifications()


if __name__ == "__main__":
    main()
