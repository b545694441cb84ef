import pandas as pd
import streamlit as st

from constants.data_models import ORDER_EDIT_POLL_SECONDS, ORDER_STATUSES, ORDERS_POLL_SECONDS
from constants.schemas import ManualOrderForm
from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_auth
from utils.datetime_utils import format_date_us, format_datetime_us, timestamp_compact, to_ymd, today_ymd, ymd_to_date
from utils.orders import (
    OrderRuleError,
    ShipdateAutoSaver,
    allocation_breakdown,
    check_status_transition,
    commit_csv,
    create_order,
    ensure_editable,
    filter_orders,
    filter_picker_rows,
    load_allocations,
    load_orders,
    load_picker,
    max_order,
    merge_visible_qty,
    orderable_export_frame,
    preview_csv,
    second_warehouse,
    suggest_shipdate_for_allocations,
    suggest_shipdate_for_selection,
    update_order,
    validate_manual_order,
)
from utils.spreadsheets import XLSX_MIME, build_workbook
from utils.stock_imports import error_rows
from utils.warehouses import load_warehouses

st.set_page_config(
    page_title="Orders",
    page_icon="🧾",
    layout="wide"
)


def get_warehouses():
    if 'orders_warehouses' not in st.session_state:
        try:
            st.session_state['orders_warehouses'] = load_warehouses(get_client())
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to load warehouses'))
            return []
    return st.session_state['orders_warehouses']


@st.fragment(run_every=ORDERS_POLL_SECONDS)
def orders_list():
    """Order list; refreshes on its own while the page is open."""
    try:
        rows = load_orders(get_client(), get_warehouses())
    except ApiError as e:
        st.error(f"❌ {error_message(e, 'Failed to load')}")
        rows = st.session_state.get('orders_rows', [])
    st.session_state['orders_rows'] = rows

    col1, col2 = st.columns(2)
    with col1:
        status = st.selectbox("Status", ['all'] + ORDER_STATUSES, key="orders_status_filter")
    with col2:
        q = st.text_input("Search order #, email, customer or warehouse", key="orders_q")

    filtered = filter_orders(rows, status, q)
    df = pd.DataFrame([
        {
            'Order #': r.order_number,
            'Type': r.type,
            'Status': r.status,
            'Warehouse': r.warehouse_name,
            'Customer': r.customer_name,
            'Email': r.email,
            'Lines': r.line_count,
            'Total Qty': r.total_qty,
            'Order Date': format_date_us(r.created_at_order),
            'Est. Shipdate': format_date_us(r.est_fulfillment_date),
            'Created': format_datetime_us(r.created_at),
        }
        for r in filtered
    ])
    st.write(f"Showing {len(filtered)} out of {len(rows)} orders")
    st.dataframe(df, use_container_width=True, hide_index=True)


def render_picker(warehouse_id, key_prefix, initial_qty=None):
    """
    Pallet picker grid with an editable Qty column.

    Returns:
        tuple: (picker rows, second warehouse, qty by Pallet Description)
    """
    if not warehouse_id:
        st.info("Select a warehouse to pick pallets.")
        return [], None, {}
    try:
        rows, warehouses = load_picker(get_client(), warehouse_id)
    except ApiError as e:
        notifications.error(error_message(e, 'Failed to load pallets'))
        return [], None, {}

    second = second_warehouse(warehouses, warehouse_id)
    this_name = next((w.name for w in warehouses if w.id == warehouse_id), 'Warehouse')
    q = st.text_input("Search Pallet ID or Description", key=f"{key_prefix}_picker_q")
    visible = filter_picker_rows(rows, q)

    # Quantities for the whole order; the grid only shows the searched rows
    qty_key = f"{key_prefix}_qty_by_group"
    if qty_key not in st.session_state:
        st.session_state[qty_key] = merge_visible_qty(initial_qty, [], {})
    qty_by_group = st.session_state[qty_key]

    df = orderable_export_frame(visible, this_name, second)
    df['Qty'] = [qty_by_group.get(r.group_name, 0) for r in visible]
    edited = st.data_editor(
        df,
        use_container_width=True,
        hide_index=True,
        disabled=[c for c in df.columns if c != 'Qty'],
        column_config={'Qty': st.column_config.NumberColumn(min_value=0, step=1)},
        key=f"{key_prefix}_picker_{q.strip().lower()}",
    )
    edited_qty = {
        rec['Pallet Description']: rec['Qty']
        for rec in edited.to_dict('records')
        if pd.notna(rec['Qty'])
    }
    qty_by_group = merge_visible_qty(qty_by_group, [r.group_name for r in visible], edited_qty)
    st.session_state[qty_key] = qty_by_group
    for r in visible:
        need = int(qty_by_group.get(r.group_name) or 0)
        if need > max_order(r, second.id if second else None):
            st.warning(f"⚠️ {r.group_name}: {need} is more than the {max_order(r, second.id if second else None)} pallets available")

    st.download_button(
        label="📥 Export Orderable Pallets",
        data=build_workbook({'Orderable Pallets': orderable_export_frame(rows, this_name, second)}),
        file_name=f"orderable_pallets_{timestamp_compact('_')}.xlsx",
        mime=XLSX_MIME,
        key=f"{key_prefix}_export"
    )
    return rows, second, qty_by_group


def _mark_touched(key):
    st.session_state[f"{key}_touched"] = True


def _customer_fields(key_prefix, defaults: ManualOrderForm, locked_dates=False):
    col1, col2, col3 = st.columns(3)
    with col1:
        email = st.text_input("Customer Email", value=defaults.customer_email, key=f"{key_prefix}_email")
    with col2:
        name = st.text_input("Customer Name", value=defaults.customer_name, key=f"{key_prefix}_name")
    with col3:
        phone = st.text_input("Phone Number", value=defaults.customer_phone, key=f"{key_prefix}_phone")
    col1, col2 = st.columns(2)
    with col1:
        created = st.date_input(
            "Created Order Date",
            value=ymd_to_date(defaults.created_at_order),
            key=f"{key_prefix}_created",
            disabled=locked_dates,
        )
    with col2:
        est_key = f"{key_prefix}_est"
        suggested = st.session_state.pop(f"{est_key}_suggested", None)
        if suggested and not st.session_state.get(f"{est_key}_touched"):
            st.session_state[est_key] = ymd_to_date(suggested)
        elif est_key not in st.session_state:
            st.session_state[est_key] = ymd_to_date(defaults.est_fulfillment_date)
        est = st.date_input(
            "Estimated Shipdate for Customer",
            key=est_key,
            on_change=_mark_touched,
            args=(est_key,),
        )
    address = st.text_area("Shipping Address", value=defaults.shipping_address, key=f"{key_prefix}_address")
    return defaults.model_copy(update={
        'customer_email': email,
        'customer_name': name,
        'customer_phone': phone,
        'created_at_order': to_ymd(created),
        'est_fulfillment_date': to_ymd(est),
        'shipping_address': address,
    })


def render_new_order():
    warehouses = get_warehouses()
    names = {w.name: w.id for w in warehouses}
    warehouse_name = st.selectbox("Warehouse", [''] + list(names.keys()), key="new_order_wh")
    warehouse_id = names.get(warehouse_name, '')

    today = today_ymd()
    form = _customer_fields('new_order', ManualOrderForm(warehouse_id=warehouse_id, created_at_order=today))
    picker_rows, second, qty_by_group = render_picker(warehouse_id, 'new_order')

    suggested = suggest_shipdate_for_selection(picker_rows, qty_by_group, second.id if second else None, today)
    st.info(f"📅 Suggested ship date: {format_date_us(suggested)}")

    if st.button("Create Order", type="primary", key="create_order"):
        form = form.model_copy(update={'warehouse_id': warehouse_id, 'qty_by_group': qty_by_group})
        errors, lines = validate_manual_order(form, [r.group_name for r in picker_rows], today)
        if errors:
            for err in errors:
                st.error(f"❌ {err}")
            notifications.error(errors[0])
            return
        try:
            create_order(get_client(), form, lines)
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to save'))
            return
        notifications.success('Order created')
        st.session_state.pop('new_order_qty_by_group', None)
        st.rerun()


@st.fragment(run_every=ORDER_EDIT_POLL_SECONDS)
def processing_order_live(row):
    """Server allocation of a processing order, with the ship date it implies."""
    client = get_client()
    try:
        picker_rows, _ = load_picker(client, row.warehouse_id)
        allocations, reserved = load_allocations(client, row.raw_id)
    except ApiError as e:
        st.warning(f"⚠️ {error_message(e, 'Failed to refresh allocations')}")
        return

    breakdown = allocation_breakdown(allocations, reserved)
    if breakdown:
        st.markdown("**Reserved pallets**")
        st.dataframe(pd.DataFrame(breakdown).rename(columns={
            'groupName': 'Pallet Description',
            'primary': 'This Warehouse',
            'onWater': 'On-Water',
            'second': '2nd Warehouse',
            'onProcess': 'On-Process',
        }), use_container_width=True, hide_index=True)

    suggested = suggest_shipdate_for_allocations(picker_rows, allocations, today_ymd())
    st.info(f"📅 Suggested ship date: {format_date_us(suggested)}")

    est_key = f"edit_{row.raw_id}_est"
    if st.session_state.get(f"{est_key}_touched"):
        st.caption("Ship date was set by hand, so the suggestion is not auto-saved.")
        return
    saver = st.session_state.setdefault('shipdate_saver', ShipdateAutoSaver())
    if to_ymd(row.est_fulfillment_date) != suggested and saver.maybe_save(client, row.raw_id, suggested):
        # Written into the ship date field before it is next drawn
        st.session_state[f"{est_key}_suggested"] = suggested


def render_edit_order():
    rows = st.session_state.get('orders_rows', [])
    if not rows:
        st.info("No orders loaded yet.")
        return
    labels = {f"{r.order_number or r.raw_id} - {r.customer_name} ({r.status})": r for r in rows}
    label = st.selectbox("Order", list(labels.keys()), key="edit_order_pick")
    row = labels[label]

    try:
        ensure_editable(row)
    except OrderRuleError as e:
        st.warning(f"⚠️ {str(e)}")
        return

    if row.status == 'processing':
        processing_order_live(row)

    status = st.selectbox(
        "Status",
        ORDER_STATUSES,
        index=ORDER_STATUSES.index(row.status) if row.status in ORDER_STATUSES else 0,
        key=f"edit_status_{row.raw_id}",
    )
    defaults = ManualOrderForm(
        warehouse_id=row.warehouse_id,
        status=status,
        customer_email=row.email,
        customer_name=row.customer_name,
        customer_phone=row.customer_phone,
        created_at_order=to_ymd(row.created_at_order),
        est_fulfillment_date=to_ymd(row.est_fulfillment_date),
        shipping_address=row.shipping_address,
    )
    form = _customer_fields(f"edit_{row.raw_id}", defaults, locked_dates=True)
    initial_qty = {str(line.get('groupName') or line.get('search') or ''): line.get('qty') for line in row.lines}
    picker_rows, _, qty_by_group = render_picker(row.warehouse_id, f"edit_{row.raw_id}", initial_qty)

    confirmed = True
    try:
        prompt = check_status_transition(row.status, status)
    except OrderRuleError as e:
        st.error(f"❌ {str(e)}")
        return
    if prompt:
        st.warning(f"⚠️ {prompt}")
        confirmed = st.checkbox("Yes, continue", key=f"edit_confirm_{row.raw_id}")

    if st.button("Save Order", type="primary", key=f"save_order_{row.raw_id}"):
        if not confirmed:
            notifications.warning('Confirm the status change first')
            return
        form = form.model_copy(update={'qty_by_group': qty_by_group})
        errors, lines = validate_manual_order(form, [r.group_name for r in picker_rows], today_ymd(), row.status)
        if errors:
            for err in errors:
                st.error(f"❌ {err}")
            notifications.error(errors[0])
            return
        try:
            update_order(get_client(), row, form, lines)
        except OrderRuleError as e:
            notifications.error(str(e))
            return
        except ApiError as e:
            notifications.error(error_message(e, 'Failed to save'))
            return
        notifications.success('Order updated')
        for key in (f"edit_{row.raw_id}_qty_by_group", f"edit_{row.raw_id}_est_touched"):
            st.session_state.pop(key, None)
        st.rerun()


def render_csv_import():
    warehouses = get_warehouses()
    names = {w.name: w.id for w in warehouses}
    warehouse_id = names.get(st.selectbox("Warehouse", [''] + list(names.keys()), key="csv_wh"), '')
    upload = st.file_uploader("Orders file (.csv)", type=['csv'], key="orders_csv")
    if upload is None:
        return
    client = get_client()

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Preview", key="csv_preview"):
            try:
                st.session_state['orders_csv_preview'] = preview_csv(client, warehouse_id, upload.name, upload.getvalue())
                notifications.success('Preview parsed successfully')
            except OrderRuleError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Preview failed'))
    with col2:
        if st.button("Commit", type="primary", key="csv_commit"):
            try:
                report = commit_csv(client, warehouse_id, upload.name, upload.getvalue())
            except OrderRuleError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Import failed'))
            else:
                notifications.success(f"Imported {report.committed_orders or 0} order(s)")
                st.session_state.pop('orders_csv_preview', None)

    preview = st.session_state.get('orders_csv_preview')
    if preview is not None:
        st.write(f"Rows: {preview.total_rows} | Orders: {preview.order_count} | Errors: {preview.error_count}")
        if preview.errors:
            st.dataframe(pd.DataFrame(error_rows(preview)), use_container_width=True, hide_index=True)


def main():
    require_auth()
    st.title("🧾 Orders")

    if st.button("🔄 Refresh Warehouses"):
        st.session_state.pop('orders_warehouses', None)

    tab_list, tab_new, tab_edit, tab_csv = st.tabs(["Orders", "New Order", "Edit Order", "Import CSV"])
    with tab_list:
        orders_list()
    with tab_new:
        render_new_order()
    with tab_edit:
        render_edit_order()
    with tab_csv:
        render_csv_import()

    notifications.render_notifications()


if __name__ == "__main__":
    main()
