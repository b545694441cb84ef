import pandas as pd
import streamlit as st

from constants.data_models import WAREHOUSE_EXPORT_COLUMNS
from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.datetime_utils import timestamp_compact
from utils.pallet_summary import (
    STOCK_SHEET,
    all_warehouses_filename,
    all_warehouses_rows,
    load_group_stock,
    warehouse_stock_filename,
    warehouse_stock_rows,
)
from utils.spreadsheets import XLSX_MIME, rows_to_workbook
from utils.warehouses import create_warehouse, delete_warehouse, load_warehouses, update_warehouse

st.set_page_config(
    page_title="Warehouses",
    page_icon="🏢",
    layout="wide"
)


def render_add():
    with st.form("add_warehouse", clear_on_submit=True):
        st.subheader("Add Warehouse")
        name = st.text_input("Name")
        address = st.text_input("Address")
        if st.form_submit_button("Add"):
            try:
                create_warehouse(get_client(), name, address)
            except ValueError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Failed to add warehouse'))
            else:
                notifications.success('Warehouse added')
                st.rerun()


def render_edit(warehouses):
    if not warehouses:
        return
    st.subheader("Edit Warehouse")
    by_name = {w.name: w for w in warehouses}
    warehouse = by_name[st.selectbox("Warehouse", list(by_name.keys()))]
    name = st.text_input("Name", value=warehouse.name, key=f"wh_name_{warehouse.id}")
    address = st.text_input("Address", value=warehouse.address or '', key=f"wh_addr_{warehouse.id}")
    client = get_client()

    col1, col2, col3 = st.columns(3)
    with col1:
        if st.button("💾 Save", key=f"wh_save_{warehouse.id}"):
            try:
                update_warehouse(client, warehouse.id, name, address)
            except ValueError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Update failed'))
            else:
                notifications.success('Warehouse updated')
                st.rerun()
    with col2:
        confirm = st.checkbox("Delete this warehouse?", key=f"wh_confirm_{warehouse.id}")
        if st.button("🗑️ Delete", disabled=not confirm, key=f"wh_delete_{warehouse.id}"):
            try:
                delete_warehouse(client, warehouse.id)
            except ApiError as e:
                notifications.error(error_message(e, 'Delete failed'))
            else:
                notifications.success('Deleted')
                st.rerun()
    with col3:
        try:
            rows = warehouse_stock_rows(load_group_stock(client), warehouse.id)
            st.download_button(
                label="📥 Export Stock",
                data=rows_to_workbook(WAREHOUSE_EXPORT_COLUMNS, rows, STOCK_SHEET),
                file_name=warehouse_stock_filename(warehouse.name, timestamp_compact('-')),
                mime=XLSX_MIME,
                key=f"wh_export_{warehouse.id}"
            )
        except ApiError as e:
            st.error(f"❌ {error_message(e, 'Export failed')}")


def main():
    require_auth()
    st.title("🏢 Warehouses")

    q = st.text_input("Search")
    client = get_client()
    try:
        warehouses = load_warehouses(client, q)
    except ApiError as e:
        st.error(f"❌ {error_message(e, 'Failed to load')}")
        warehouses = []

    st.dataframe(pd.DataFrame([
        {'Name': w.name, 'Address': w.address, 'Primary': bool(w.is_primary)}
        for w in warehouses
    ]), use_container_width=True, hide_index=True)

    if st.button("📦 Prepare All Warehouses Export"):
        try:
            all_warehouses = load_warehouses(client)
            header, rows = all_warehouses_rows(load_group_stock(client), all_warehouses)
        except ApiError as e:
            notifications.error(error_message(e, 'Export failed'))
        else:
            if all_warehouses:
                st.download_button(
                    label="📥 Download All Warehouses",
                    data=rows_to_workbook(header, rows, STOCK_SHEET),
                    file_name=all_warehouses_filename(timestamp_compact('-')),
                    mime=XLSX_MIME
                )

    render_add()
    render_edit(warehouses)

    notifications.render_notifications()


if __name__ == "__main__":
    main()
