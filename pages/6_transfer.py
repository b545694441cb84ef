import streamlit as st

from constants.data_models import TRANSFER_TEMPLATE_COLUMNS, TRANSFER_TEMPLATE_FILENAME, TRANSFER_TEMPLATE_SAMPLE
from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.datetime_utils import today_ymd, ymd_to_date
from utils.pallet_summary import load_group_stock
from utils.spreadsheets import XLSX_MIME, SpreadsheetError, read_sheet_rows, template_workbook
from utils.transfers import (
    TransferValidationError,
    available_by_group,
    default_edd,
    default_warehouses,
    parse_transfer_rows,
    preview_frame,
    submit_transfer,
    validate_transfer,
)
from utils.warehouses import load_warehouses

st.set_page_config(
    page_title="Transfer",
    page_icon="🔁",
    layout="wide"
)


def load_data():
    client = get_client()
    try:
        st.session_state['transfer_warehouses'] = load_warehouses(client)
        st.session_state['transfer_groups'] = load_group_stock(client)
    except ApiError as e:
        notifications.error(error_message(e, 'Failed to load'))
        st.session_state.setdefault('transfer_warehouses', [])
        st.session_state.setdefault('transfer_groups', [])


def main():
    require_auth()
    st.title("🔁 Transfer Pallets")

    if st.button("🔄 Refresh") or 'transfer_warehouses' not in st.session_state:
        load_data()

    warehouses = st.session_state['transfer_warehouses']
    groups = st.session_state['transfer_groups']
    today = today_ymd()

    names = {w.id: w.name for w in warehouses}
    ids = [''] + list(names.keys())
    default_source, default_dest = default_warehouses(warehouses)

    col1, col2 = st.columns(2)
    with col1:
        source_id = st.selectbox("From Warehouse", ids, index=ids.index(default_source) if default_source in ids else 0,
                                 format_func=lambda i: names.get(i, ''))
        po_number = st.text_input("PO#")
    with col2:
        destination_id = st.selectbox("To Warehouse", ids, index=ids.index(default_dest) if default_dest in ids else 0,
                                      format_func=lambda i: names.get(i, ''))
        edd = st.date_input("Estimated Delivery", value=ymd_to_date(default_edd(today)), min_value=ymd_to_date(today))

    st.download_button(
        label="📄 Download Template",
        data=template_workbook(TRANSFER_TEMPLATE_COLUMNS, TRANSFER_TEMPLATE_SAMPLE),
        file_name=TRANSFER_TEMPLATE_FILENAME,
        mime=XLSX_MIME
    )
    upload = st.file_uploader("Transfer file (.xlsx)", type=['xlsx'])
    if upload is not None and st.session_state.get('transfer_file') != upload.file_id:
        st.session_state['transfer_file'] = upload.file_id
        try:
            items = parse_transfer_rows(read_sheet_rows(upload))
        except SpreadsheetError as e:
            notifications.error(str(e))
            items = []
        else:
            notifications.success(f"Loaded {len(items)} items from file")
        st.session_state['transfer_items'] = items

    items = st.session_state.get('transfer_items', []) if upload is not None else []
    available = available_by_group(groups, source_id)
    if items:
        st.dataframe(preview_frame(items, available), use_container_width=True, hide_index=True)

    if st.button("🚀 Create Transfer", type="primary"):
        try:
            payload = validate_transfer(source_id, destination_id, po_number, edd, items, available, today)
            submit_transfer(get_client(), payload)
        except TransferValidationError as e:
            notifications.error(str(e))
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to create transfer'))
        else:
            notifications.success('Transfer created and items moved to on-water')
            st.session_state.pop('transfer_items', None)
            load_data()

    notifications.render_notifications()


if __name__ == "__main__":
    main()
