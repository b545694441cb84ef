import pandas as pd
import streamlit as st

from constants.data_models import REGISTRY_TEMPLATE_SAMPLE
from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.datetime_utils import format_datetime_us
from utils.registry import (
    GROUPS_EXPORT_FILENAME,
    GROUPS_EXPORT_SHEET,
    ITEMS_EXPORT_FILENAME,
    ITEMS_EXPORT_SHEET,
    ITEMS_TEMPLATE_FILENAME,
    RegistryValidationError,
    create_group,
    create_item,
    delete_group,
    delete_item,
    export_header,
    group_import_message,
    groups_export_rows,
    import_groups,
    import_items,
    items_export_rows,
    load_item,
    load_item_history,
    load_registry,
    registry_import_message,
    set_low_stock_threshold,
    unregistered_group_hint,
    update_group,
    update_item,
    validate_item,
    validate_item_edit,
)
from utils.spreadsheets import XLSX_MIME, rows_to_workbook, template_workbook

st.set_page_config(
    page_title="Item Registry",
    page_icon="🗂️",
    layout="wide"
)


def refresh():
    with st.spinner("Loading registry..."):
        try:
            groups, items = load_registry(get_client())
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to load'))
            groups, items = [], []
    st.session_state['registry'] = (groups, items)


def _import_errors(report):
    if report and report.get('errors'):
        st.dataframe(pd.DataFrame([
            {'Row': e.get('rowNum', '-'), 'Item Code': e.get('itemCode', ''), 'Errors': '; '.join(e.get('errors') or [])}
            for e in report['errors']
        ]), use_container_width=True, hide_index=True)


def render_groups(groups):
    st.subheader("Pallet Descriptions")
    st.dataframe(pd.DataFrame([
        {'Pallet Description': g.name, 'Pallet ID': g.line_item, 'Active': g.active is not False}
        for g in groups
    ]), use_container_width=True, hide_index=True)
    client = get_client()

    col1, col2 = st.columns(2)
    with col1:
        with st.form("add_group", clear_on_submit=True):
            name = st.text_input("New Pallet Description")
            if st.form_submit_button("Add"):
                try:
                    create_group(client, name)
                except RegistryValidationError as e:
                    notifications.error(str(e))
                except ApiError as e:
                    notifications.error(error_message(e, 'Failed to add group'))
                else:
                    notifications.success('Pallet Description added')
                    refresh()
                    st.rerun()
    with col2:
        if groups:
            by_name = {g.name: g for g in groups}
            group = by_name[st.selectbox("Pallet Description", list(by_name.keys()), key="reg_group_pick")]
            line_item = st.text_input("Pallet ID", value=group.line_item or '', key=f"reg_line_{group.id}")
            active = st.checkbox("Active", value=group.active is not False, key=f"reg_active_{group.id}")
            c1, c2 = st.columns(2)
            with c1:
                if st.button("💾 Save Group", key=f"reg_save_group_{group.id}"):
                    try:
                        update_group(client, group.id, lineItem=line_item.strip(), active=active)
                    except ApiError as e:
                        notifications.error(error_message(e, 'Failed to update group'))
                    else:
                        notifications.success('Pallet Description updated')
                        refresh()
                        st.rerun()
            with c2:
                if st.button("🗑️ Delete Group", key=f"reg_delete_group_{group.id}"):
                    try:
                        delete_group(client, group.id)
                    except ApiError as e:
                        notifications.error(error_message(e, 'Delete failed'))
                    else:
                        notifications.success('Pallet Description deleted')
                        refresh()
                        st.rerun()

    upload = st.file_uploader("Import Pallet Descriptions (.xlsx)", type=['xlsx'], key="reg_group_import")
    if st.button("Import Groups", disabled=upload is None):
        try:
            report = import_groups(client, upload.name, upload.getvalue())
        except ApiError as e:
            report = e.payload if isinstance(e.payload, dict) else None
            issues = int((report or {}).get('errorCount') or 0)
            if issues:
                notifications.error(f"Import rejected: {issues} issue(s). See details below.")
            else:
                notifications.error(error_message(e, 'Import failed'))
        else:
            kind, message = group_import_message(report)
            notifications.notify(kind, message)
            refresh()
        st.session_state['reg_group_report'] = report
    _import_errors(st.session_state.get('reg_group_report'))


def render_items(groups, items):
    st.subheader("Items")
    group_names = [g.name for g in groups]
    st.dataframe(pd.DataFrame([
        {
            'Item Code': it.item_code,
            'Pallet Description': it.item_group,
            'Item Description': it.description,
            'Color': it.color,
            'Pack Size': it.pack_size,
            'Enabled': it.enabled is not False,
        }
        for it in items
    ]), use_container_width=True, hide_index=True)
    client = get_client()

    with st.expander("➕ New Item"):
        with st.form("add_item", clear_on_submit=True):
            code = st.text_input("Item Code")
            group = st.selectbox("Pallet Description", [''] + group_names)
            description = st.text_input("Item Description")
            color = st.text_input("Color")
            pack = st.text_input("Pack Size", value="0")
            enabled = st.checkbox("Enabled", value=True)
            if st.form_submit_button("Create"):
                try:
                    create_item(client, validate_item(code, group, description, color, pack), enabled)
                except RegistryValidationError as e:
                    notifications.error(str(e))
                except ApiError as e:
                    notifications.error(error_message(e, 'Failed to create item'))
                else:
                    notifications.success('Item created')
                    refresh()
                    st.rerun()

    if items:
        with st.expander("✏️ Edit / Delete Item"):
            by_code = {it.item_code: it for it in items}
            item = by_code[st.selectbox("Item Code", list(by_code.keys()), key="reg_edit_pick")]
            group = st.selectbox("Pallet Description", group_names,
                                 index=group_names.index(item.item_group) if item.item_group in group_names else 0,
                                 key=f"reg_edit_group_{item.item_code}")
            description = st.text_input("Item Description", value=item.description or '', key=f"reg_edit_desc_{item.item_code}")
            color = st.text_input("Color", value=item.color or '', key=f"reg_edit_color_{item.item_code}")
            pack = st.text_input("Pack Size", value=str(item.pack_size or 0), key=f"reg_edit_pack_{item.item_code}")
            enabled = st.checkbox("Enabled", value=item.enabled is not False, key=f"reg_edit_enabled_{item.item_code}")
            c1, c2 = st.columns(2)
            with c1:
                if st.button("💾 Update Item", key=f"reg_update_{item.item_code}"):
                    try:
                        payload = validate_item_edit(group, description, color, pack)
                        update_item(client, item.item_code, {**payload, 'enabled': enabled})
                    except RegistryValidationError as e:
                        notifications.error(str(e))
                    except ApiError as e:
                        notifications.error(error_message(e, 'Failed to update item'))
                    else:
                        notifications.success('Item updated')
                        refresh()
                        st.rerun()
            with c2:
                if st.button("🗑️ Delete Item", key=f"reg_delete_{item.item_code}"):
                    try:
                        delete_item(client, item.item_code, item.item_group or '')
                    except ApiError as e:
                        notifications.error(error_message(e, 'Delete failed'))
                    else:
                        notifications.success('Item deleted')
                        refresh()
                        st.rerun()

    upload = st.file_uploader("Import Items (.xlsx)", type=['xlsx'], key="reg_item_import")
    if st.button("Import Items", disabled=upload is None):
        try:
            report = import_items(client, upload.name, upload.getvalue())
        except ApiError as e:
            report = e.payload if isinstance(e.payload, dict) else None
            hint = unregistered_group_hint((report or {}).get('errors'))
            notifications.error(error_message(e, 'Import failed') + hint)
        else:
            notifications.success(registry_import_message(report))
            refresh()
        st.session_state['reg_item_report'] = report
    _import_errors(st.session_state.get('reg_item_report'))


def render_item_detail(items):
    if not items:
        return
    st.subheader("Item Detail")
    code = st.selectbox("Item Code", [it.item_code for it in items], key="reg_detail_pick")
    client = get_client()
    try:
        item = load_item(client, code)
        history = load_item_history(client, code)
    except ApiError as e:
        st.error(f"❌ {error_message(e, 'Failed to load item')}")
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Total Qty", item.total_qty or 0)
    col2.metric("Pack Size", item.pack_size or 0)
    col3.metric("Low-Stock Threshold", item.low_stock_threshold or 0)
    if item.low_stock_threshold and (item.total_qty or 0) <= item.low_stock_threshold:
        st.warning("⚠️ Stock is at or below the low-stock threshold")

    threshold = st.number_input("Low-stock threshold", min_value=0.0, value=float(item.low_stock_threshold or 0),
                                key=f"reg_threshold_{code}")
    if st.button("Save Threshold", key=f"reg_threshold_btn_{code}"):
        try:
            set_low_stock_threshold(client, code, threshold)
        except RegistryValidationError as e:
            notifications.error(str(e))
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to update threshold'))
        else:
            notifications.success('Threshold updated')
            st.rerun()

    st.dataframe(pd.DataFrame([
        {
            'Date': format_datetime_us(t.created_at),
            'Type': t.type,
            'Reference': t.reference,
            'Qty': sum((i.qty_pieces or 0) for i in t.items if i.item_code == code),
            'Notes': t.notes,
        }
        for t in history
    ]), use_container_width=True, hide_index=True)


def main():
    require_auth()
    st.title("🗂️ Item Registry")

    if st.button("🔄 Refresh") or 'registry' not in st.session_state:
        refresh()
    groups, items = st.session_state['registry']

    col1, col2, col3 = st.columns(3)
    with col1:
        st.download_button("📥 Export Groups + Items",
                           data=rows_to_workbook(export_header(), groups_export_rows(items, groups), GROUPS_EXPORT_SHEET),
                           file_name=GROUPS_EXPORT_FILENAME, mime=XLSX_MIME)
    with col2:
        st.download_button("📥 Export Items Master",
                           data=rows_to_workbook(export_header(), items_export_rows(items, groups), ITEMS_EXPORT_SHEET),
                           file_name=ITEMS_EXPORT_FILENAME, mime=XLSX_MIME)
    with col3:
        st.download_button("📄 Download Template",
                           data=template_workbook(export_header(), REGISTRY_TEMPLATE_SAMPLE),
                           file_name=ITEMS_TEMPLATE_FILENAME, mime=XLSX_MIME)

    tab_groups, tab_items, tab_detail = st.tabs(["Pallet Descriptions", "Items", "Item Detail"])
    with tab_groups:
        render_groups(groups)
    with tab_items:
        render_items(groups, items)
    with tab_detail:
        render_item_detail(items)

    notifications.render_notifications()


if __name__ == "__main__":
    main()
