import pandas as pd
import streamlit as st

from constants.data_models import (
    IMPORT_STATUSES,
    PALLET_IMPORT_TEMPLATE_COLUMNS,
    PALLET_IMPORT_TEMPLATE_FILENAME,
    STOCK_IMPORT_TEMPLATE_COLUMNS,
    STOCK_IMPORT_TEMPLATE_FILENAME,
)
from constants.schemas import ref_id
from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.pallet_summary import (
    group_detail_frames,
    inventory_grid_frame,
    load_group_details,
    load_group_stock,
    record_loss,
    validate_loss,
)
from utils.spreadsheets import XLSX_MIME, template_workbook
from utils.stock_imports import (
    PARTIAL_COMMIT_MESSAGE,
    ImportParamsError,
    commit_pallet_import,
    commit_stock_import,
    error_rows,
    preview_pallet_import,
    preview_stock_import,
)
from utils.warehouses import load_warehouses

st.set_page_config(
    page_title="Inventory",
    page_icon="🏬",
    layout="wide"
)


def load_data(search=''):
    client = get_client()
    with st.spinner("Loading pallet inventory..."):
        try:
            st.session_state['inventory_warehouses'] = load_warehouses(client)
            st.session_state['inventory_groups'] = load_group_stock(client, search)
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to load'))
            st.session_state.setdefault('inventory_warehouses', [])
            st.session_state['inventory_groups'] = []
    st.session_state['inventory_search'] = search


def render_details(groups, warehouses):
    st.subheader("Pallet Description Details")
    names = [g.group_name for g in groups]
    if not names:
        return
    selected = st.selectbox("View details for", names, key="inventory_detail_group")
    if not st.button("🔍 View"):
        return
    try:
        details = load_group_details(get_client(), selected)
    except ApiError as e:
        notifications.error(error_message(e, 'Failed to load details'))
        return

    per = {ref_id(p.get('warehouseId')): p.get('pallets') or 0 for p in details.get('perWarehouse') or []}
    chips = [f"Total Pallets: {sum(per.values())}"] + [f"{w.name}: {per.get(w.id, 0)}" for w in warehouses]
    st.markdown(" | ".join(f"**{c}**" for c in chips))

    items_df, movements_df = group_detail_frames(details, warehouses)
    st.markdown("**Items per Pallet**")
    st.dataframe(items_df, use_container_width=True, hide_index=True)
    st.markdown("**Recent Transactions**")
    st.dataframe(movements_df, use_container_width=True, hide_index=True)


def render_record_loss(groups, warehouses):
    with st.expander("➖ Record Loss (Inventory Adjustment)"):
        with st.form("record_loss_form"):
            warehouse_names = {w.name: w.id for w in warehouses}
            warehouse_name = st.selectbox("Warehouse", [''] + list(warehouse_names.keys()))
            reference = st.text_input("Reference (optional)")
            edited = st.data_editor(
                pd.DataFrame([{'Pallet Description': None, 'Qty': None}]),
                num_rows="dynamic",
                use_container_width=True,
                hide_index=True,
                column_config={
                    'Pallet Description': st.column_config.SelectboxColumn(options=[g.group_name for g in groups]),
                    'Qty': st.column_config.NumberColumn(min_value=0, step=1),
                },
                key="record_loss_rows",
            )
            submitted = st.form_submit_button("Save")

        if submitted:
            items = [
                {'groupName': row['Pallet Description'], 'qty': row['Qty']}
                for row in edited.to_dict('records')
            ]
            try:
                payload = validate_loss(warehouse_names.get(warehouse_name, ''), reference, items)
                record_loss(get_client(), payload)
            except ValueError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Failed to record loss'))
            else:
                notifications.success('Loss recorded')
                load_data(st.session_state.get('inventory_search', ''))
                st.rerun()


def _import_options(prefix, warehouses):
    col1, col2, col3 = st.columns(3)
    names = {w.name: w.id for w in warehouses}
    with col1:
        warehouse_id = names.get(st.selectbox("Warehouse", [''] + list(names.keys()), key=f"{prefix}_wh"), '')
    with col2:
        status = st.selectbox("Status", IMPORT_STATUSES, key=f"{prefix}_status")
    with col3:
        edd = st.date_input("Estimated Delivery", value=None, key=f"{prefix}_edd", disabled=status != 'On-Water')
    return warehouse_id, status, edd


def _show_report(report):
    st.write(
        f"Parsed rows: {report.total_rows} | Errors: {report.error_count} | "
        f"Duplicates: {report.duplicate_count or 0}"
    )
    if report.errors:
        st.dataframe(pd.DataFrame(error_rows(report)), use_container_width=True, hide_index=True)


def render_pallet_import(warehouses):
    with st.expander("📥 Import Pallets"):
        st.download_button(
            label="📄 Download Template",
            data=template_workbook(PALLET_IMPORT_TEMPLATE_COLUMNS),
            file_name=PALLET_IMPORT_TEMPLATE_FILENAME,
            mime=XLSX_MIME,
            key="pallet_template"
        )
        warehouse_id, status, edd = _import_options('pallet_import', warehouses)
        upload = st.file_uploader("Pallet file (.xlsx)", type=['xlsx'], key="pallet_import_file")
        if upload is None:
            return
        client = get_client()

        col1, col2 = st.columns(2)
        with col1:
            if st.button("Preview", key="pallet_preview"):
                try:
                    st.session_state['pallet_preview'] = preview_pallet_import(client, warehouse_id, upload.name, upload.getvalue())
                    notifications.success('Preview parsed successfully')
                except ImportParamsError as e:
                    notifications.error(str(e))
                except ApiError as e:
                    notifications.error(error_message(e, 'Preview failed'))
        with col2:
            if st.button("Commit", type="primary", key="pallet_commit"):
                try:
                    report = commit_pallet_import(client, warehouse_id, status, edd, upload.name, upload.getvalue())
                except ImportParamsError as e:
                    notifications.error(str(e))
                except ApiError as e:
                    notifications.error(error_message(e, 'Import failed'))
                else:
                    st.session_state['pallet_preview'] = report
                    if report.error_count:
                        notifications.error(PARTIAL_COMMIT_MESSAGE)
                    else:
                        notifications.success('Import committed')
                    load_data(st.session_state.get('inventory_search', ''))

        preview = st.session_state.get('pallet_preview')
        if preview is not None:
            _show_report(preview)


def render_stock_import(warehouses):
    with st.expander("📥 Import Stock (Items)"):
        st.download_button(
            label="📄 Download Template",
            data=template_workbook(STOCK_IMPORT_TEMPLATE_COLUMNS),
            file_name=STOCK_IMPORT_TEMPLATE_FILENAME,
            mime=XLSX_MIME,
            key="stock_template"
        )
        warehouse_id, status, edd = _import_options('stock_import', warehouses)
        upload = st.file_uploader("Stock file (.xlsx)", type=['xlsx'], key="stock_import_file")
        if upload is None:
            return
        client = get_client()

        if st.button("Preview", key="stock_preview"):
            try:
                st.session_state['stock_preview'] = preview_stock_import(client, upload.name, upload.getvalue())
                notifications.success('Preview parsed successfully')
            except ApiError as e:
                notifications.error(error_message(e, 'Preview failed'))

        preview = st.session_state.get('stock_preview')
        if preview is not None:
            _show_report(preview['report'])
            if preview['duplicates']:
                st.warning(f"⚠️ {len(preview['duplicates'])} duplicate rows in file")
                st.dataframe(pd.DataFrame(preview['duplicates']), use_container_width=True, hide_index=True)

        can_commit = preview is not None and not preview['report'].errors
        if st.button("Commit (Stock IN)", type="primary", disabled=not can_commit, key="stock_commit"):
            try:
                commit_stock_import(client, warehouse_id, status, edd, upload.name, upload.getvalue())
            except ImportParamsError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Import failed'))
            else:
                notifications.success('Import committed')
                st.session_state.pop('stock_preview', None)
                load_data(st.session_state.get('inventory_search', ''))


def main():
    require_auth()
    st.title("🏬 Inventory")

    search = st.text_input("Search Pallet Description", value=st.session_state.get('inventory_search', ''))
    if st.button("🔄 Refresh") or 'inventory_groups' not in st.session_state or search != st.session_state.get('inventory_search'):
        load_data(search)

    groups = st.session_state['inventory_groups']
    warehouses = st.session_state['inventory_warehouses']

    st.dataframe(inventory_grid_frame(groups, warehouses), use_container_width=True, hide_index=True)

    render_record_loss(groups, warehouses)
    render_pallet_import(warehouses)
    render_stock_import(warehouses)
    render_details(groups, warehouses)

    notifications.render_notifications()


if __name__ == "__main__":
    main()
