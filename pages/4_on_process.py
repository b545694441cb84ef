import pandas as pd
import streamlit as st

from constants.data_models import (
    ON_PROCESS_BATCH_STATUSES,
    ON_PROCESS_ROW_STATUSES,
    ON_PROCESS_TEMPLATE_COLUMNS,
    ON_PROCESS_TEMPLATE_FILENAME,
    TRANSFER_MODES,
)
from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.datetime_utils import format_date_us, to_ymd, today_ymd, ymd_to_date
from utils.on_process import (
    OnProcessRuleError,
    add_batch_group,
    apply_row_edit,
    build_transfer_payload,
    default_batch_finish_date,
    default_transfer_warehouse,
    derive_batch_status,
    effective_locked,
    export_batch,
    import_message,
    import_pallets,
    load_batch_pallets,
    load_batches,
    remaining,
    save_batch_header,
    save_batch_rows,
    transfer_batch_pallets,
    validate_est_finish,
)
from utils.registry import load_registry
from utils.spreadsheets import XLSX_MIME, template_workbook
from utils.warehouses import load_warehouses

st.set_page_config(
    page_title="On-Process",
    page_icon="🏭",
    layout="wide"
)


def refresh_batches():
    with st.spinner("Loading batches..."):
        try:
            client = get_client()
            st.session_state['op_batches'] = load_batches(client)
            st.session_state['op_warehouses'] = load_warehouses(client)
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to load'))
            st.session_state.setdefault('op_batches', [])
            st.session_state.setdefault('op_warehouses', [])


def _cell(value):
    # Cleared grid cells come back as NaN/None
    return None if pd.isna(value) else value


def rows_frame(rows):
    return pd.DataFrame([
        {
            'Select': False,
            'Pallet Description': r.group_name,
            'Total Pallet': r.total_pallet or 0,
            'Finished Pallet': r.finished_pallet or 0,
            'Transferred Pallet': r.transferred_pallet or 0,
            'Remaining': remaining(r),
            'Status': r.status or 'in_progress',
            'Locked': effective_locked(r),
        }
        for r in rows
    ], columns=['Select', 'Pallet Description', 'Total Pallet', 'Finished Pallet',
                'Transferred Pallet', 'Remaining', 'Status', 'Locked'])


def render_import():
    with st.expander("📥 Import On-Process Pallets"):
        st.download_button(
            label="📄 Download Template",
            data=template_workbook(ON_PROCESS_TEMPLATE_COLUMNS),
            file_name=ON_PROCESS_TEMPLATE_FILENAME,
            mime=XLSX_MIME
        )
        upload = st.file_uploader("On-process file (.xlsx)", type=['xlsx'], key="op_import_file")
        if st.button("Import", disabled=upload is None):
            try:
                report = import_pallets(get_client(), upload.name, upload.getvalue())
            except ApiError as e:
                notifications.error(error_message(e, 'Import failed'))
                report = e.payload if isinstance(e.payload, dict) else None
            else:
                kind, message = import_message(report)
                notifications.notify(kind, message)
                refresh_batches()
            st.session_state['op_import_report'] = report

        report = st.session_state.get('op_import_report')
        if report and report.get('errors'):
            st.dataframe(pd.DataFrame([
                {'Row': e.get('rowNum', '-'), 'Errors': '; '.join(e.get('errors') or [])}
                for e in report['errors']
            ]), use_container_width=True, hide_index=True)


def render_transfer(batch, rows, selected):
    st.subheader("Transfer finished pallets")
    warehouses = st.session_state.get('op_warehouses', [])
    mode = st.radio("Mode", TRANSFER_MODES, horizontal=True, key="op_transfer_mode",
                    format_func=lambda m: 'On-Water' if m == 'on_water' else 'Delivered')
    names = {w.id: w.name for w in warehouses}
    ids = [''] + list(names.keys())
    default_id = default_transfer_warehouse(mode, warehouses)
    warehouse_id = st.selectbox(
        "Warehouse",
        ids,
        index=ids.index(default_id) if default_id in ids else 0,
        format_func=lambda i: names.get(i, ''),
        key=f"op_transfer_wh_{mode}",
    )
    edd = st.date_input("EDD", value=None, key="op_transfer_edd", disabled=mode != 'on_water')

    st.caption(f"{len(selected)} row(s) selected.")
    if st.button("Transfer selected", type="primary"):
        try:
            payload = build_transfer_payload(selected, mode, warehouse_id, edd, today_ymd())
            transfer_batch_pallets(get_client(), batch.id, payload)
        except OnProcessRuleError as e:
            notifications.warning(str(e))
        except ApiError as e:
            notifications.error(error_message(e, 'Transfer failed'))
        else:
            notifications.success('Transfer created')
            refresh_batches()
            st.rerun()


def render_batch(batch):
    client = get_client()
    try:
        rows = load_batch_pallets(client, batch.id)
    except ApiError as e:
        notifications.error(error_message(e, 'Failed to load'))
        return

    today = today_ymd()
    col1, col2, col3 = st.columns(3)
    with col1:
        status = st.selectbox(
            "Batch Status",
            ON_PROCESS_BATCH_STATUSES,
            index=ON_PROCESS_BATCH_STATUSES.index(batch.status) if batch.status in ON_PROCESS_BATCH_STATUSES else 0,
            key=f"op_status_{batch.id}",
        )
    with col2:
        est = st.date_input(
            "Estimated Date Finish",
            value=ymd_to_date(batch.est_finish_date) or ymd_to_date(default_batch_finish_date(today)),
            key=f"op_est_{batch.id}",
        )
    with col3:
        notes = st.text_input("Notes", value=batch.notes or '', key=f"op_notes_{batch.id}")

    edited = st.data_editor(
        rows_frame(rows),
        use_container_width=True,
        hide_index=True,
        disabled=['Pallet Description', 'Transferred Pallet', 'Remaining', 'Locked'],
        column_config={
            'Total Pallet': st.column_config.NumberColumn(min_value=0, step=1),
            'Finished Pallet': st.column_config.NumberColumn(min_value=0, step=1),
            'Status': st.column_config.SelectboxColumn(options=ON_PROCESS_ROW_STATUSES),
        },
        key=f"op_rows_{batch.id}",
    )

    reconciled = [
        apply_row_edit(row, total=_cell(rec['Total Pallet']), finished=_cell(rec['Finished Pallet']),
                       status=_cell(rec['Status']))
        for row, rec in zip(rows, edited.to_dict('records'))
    ]
    selected = [row for row, rec in zip(reconciled, edited.to_dict('records')) if rec['Select']]
    derived_status, derived_est = derive_batch_status(reconciled, today)
    if derived_status != status:
        st.caption(f"Rows suggest batch status: {derived_status}")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("💾 Save Changes", type="primary", key=f"op_save_{batch.id}"):
            try:
                est_ymd = validate_est_finish(est, today)
                if derived_status == 'completed':
                    status, est_ymd = derived_status, derived_est
                save_batch_header(client, batch.id, status, est_ymd, notes)
                save_batch_rows(client, batch.id, reconciled)
            except OnProcessRuleError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Save failed'))
            else:
                notifications.success('Changes saved')
                refresh_batches()
                st.rerun()
    with col2:
        try:
            file_name, content = export_batch(client, batch)
            st.download_button("📥 Export Batch", data=content, file_name=file_name, mime=XLSX_MIME, key=f"op_export_{batch.id}")
        except ApiError as e:
            st.error(f"❌ {error_message(e, 'Export failed')}")

    with st.expander("➕ Add Pallet Description"):
        try:
            groups, _ = load_registry(client)
        except ApiError:
            groups = []
        group_name = st.selectbox("Pallet Description", [''] + [g.name for g in groups], key=f"op_add_group_{batch.id}")
        total = st.number_input("Total Pallet", min_value=0, step=1, key=f"op_add_total_{batch.id}")
        if st.button("Add", key=f"op_add_{batch.id}"):
            try:
                add_batch_group(client, batch.id, group_name, total)
            except OnProcessRuleError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Failed to add'))
            else:
                notifications.success('Pallet description added')
                st.rerun()

    render_transfer(batch, reconciled, selected)


def main():
    require_auth()
    st.title("🏭 On-Process")

    if st.button("🔄 Refresh") or 'op_batches' not in st.session_state:
        refresh_batches()

    batches = st.session_state['op_batches']
    st.dataframe(pd.DataFrame([
        {
            'Reference': b.reference or b.id,
            'PO #': b.po_number,
            'Status': b.status,
            'Estimated Finish': format_date_us(to_ymd(b.est_finish_date)),
            'Pallet Descriptions': b.item_count,
            'Notes': b.notes,
        }
        for b in batches
    ]), use_container_width=True, hide_index=True)

    render_import()

    if batches:
        by_label = {f"{b.reference or b.id} ({b.status})": b for b in batches}
        label = st.selectbox("Open batch", list(by_label.keys()))
        render_batch(by_label[label])

    notifications.render_notifications()


if __name__ == "__main__":
    main()
