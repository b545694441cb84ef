import math

import pandas as pd
import streamlit as st

from constants.data_models import SHIPMENT_EXPORT_COLUMNS, SHIPMENT_STATUSES
from constants.schemas import ref_name
from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.datetime_utils import format_date_us, format_datetime_us, timestamp_compact, to_ymd, today_ymd, ymd_to_date
from utils.shipments import (
    ShipmentRuleError,
    deliver,
    display_kind,
    display_reference,
    export_filename,
    export_meta_rows,
    is_edd_locked,
    item_group_lookup_for,
    list_shipments,
    pallet_export_body,
    update_edd,
)
from utils.spreadsheets import XLSX_MIME, rows_to_workbook
from utils.warehouses import load_warehouses, warehouse_names

st.set_page_config(
    page_title="Ship",
    page_icon="🚢",
    layout="wide"
)


def _first_page():
    # A narrower list may not have the page that was open
    st.session_state['ship_page'] = 0


def render_actions(shipment, names):
    st.subheader(f"{display_reference(shipment)} ({shipment.status})")
    client = get_client()
    col1, col2, col3 = st.columns(3)

    with col1:
        new_edd = st.date_input(
            "EDD",
            value=ymd_to_date(shipment.est_delivery_date),
            disabled=is_edd_locked(shipment),
            key=f"ship_edd_{shipment.id}",
        )
        if st.button("Update EDD", disabled=is_edd_locked(shipment), key=f"ship_edd_btn_{shipment.id}"):
            try:
                update_edd(client, shipment, new_edd)
            except ShipmentRuleError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Failed to update EDD'))
            else:
                notifications.success('EDD updated')
                st.rerun()

    with col2:
        if st.button("✅ Deliver", disabled=shipment.status != 'on_water', key=f"ship_deliver_{shipment.id}"):
            try:
                deliver(client, shipment, today_ymd())
            except ShipmentRuleError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Failed to deliver'))
            else:
                notifications.success('Shipment delivered')
                st.rerun()

    with col3:
        if st.button("📦 Prepare Pallet Export", key=f"ship_export_prep_{shipment.id}"):
            body = pallet_export_body(shipment, item_group_lookup_for(client))
            st.session_state['ship_export'] = (
                export_filename(shipment, names, timestamp_compact('-')),
                rows_to_workbook(SHIPMENT_EXPORT_COLUMNS, body, 'Pallets', preamble=export_meta_rows(shipment, names)),
            )
        prepared = st.session_state.get('ship_export')
        if prepared:
            st.download_button("📥 Download", data=prepared[1], file_name=prepared[0], mime=XLSX_MIME)


def main():
    require_auth()
    st.title("🚢 Ship")

    client = get_client()
    if 'ship_warehouses' not in st.session_state:
        try:
            st.session_state['ship_warehouses'] = load_warehouses(client)
        except ApiError:
            st.session_state['ship_warehouses'] = []
    names = warehouse_names(st.session_state['ship_warehouses'])

    col1, col2, col3 = st.columns(3)
    with col1:
        status = st.selectbox("Status", [''] + SHIPMENT_STATUSES, format_func=lambda s: s or 'All',
                              key="ship_status", on_change=_first_page)
    with col2:
        q = st.text_input("Search reference", key="ship_q", on_change=_first_page)
    with col3:
        page_size = st.selectbox("Page size", [5, 10, 50], index=1, key="ship_page_size", on_change=_first_page)

    page = st.session_state.get('ship_page', 0)
    try:
        shipments, total = list_shipments(client, page=page, page_size=page_size, status=status, q=q)
    except ApiError as e:
        st.error(f"❌ {error_message(e, 'Failed to load shipments')}")
        shipments, total = [], 0

    st.dataframe(pd.DataFrame([
        {
            'Reference': display_reference(s),
            'Kind': display_kind(s),
            'Status': s.status,
            'To': ref_name(s.warehouse_id, names),
            'From': ref_name(s.source_warehouse_id, names),
            'EDD': format_date_us(to_ymd(s.est_delivery_date)),
            'Delivered At': format_datetime_us(s.delivered_at),
        }
        for s in shipments
    ]), use_container_width=True, hide_index=True)

    pages = max(1, math.ceil(total / page_size))
    col1, col2, col3 = st.columns([1, 2, 1])
    with col1:
        if st.button("⬅️ Prev", disabled=page <= 0):
            st.session_state['ship_page'] = page - 1
            st.rerun()
    with col2:
        st.write(f"Page {page + 1} of {pages} ({total} shipments)")
    with col3:
        if st.button("Next ➡️", disabled=page + 1 >= pages):
            st.session_state['ship_page'] = page + 1
            st.rerun()

    if shipments:
        by_label = {f"{display_reference(s)} - {s.status}": s for s in shipments}
        label = st.selectbox("Shipment", list(by_label.keys()))
        if st.session_state.get('ship_selected') != label:
            st.session_state['ship_selected'] = label
            st.session_state.pop('ship_export', None)
        render_actions(by_label[label], names)

    notifications.render_notifications()


if __name__ == "__main__":
    main()
