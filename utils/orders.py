"""
Orders: merged order list, manual order rules and ship date hints.

Manual orders live under /orders/unfulfilled and stay editable while they
are processing. CSV-imported orders come from /orders/fulfilled/imports and
are read-only. The ship date hints are an approximation built from the
pallet picker buckets (this warehouse, on-water, second warehouse,
on-process). The server owns the real allocation.
"""

import math
import re
import time
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from constants.data_models import (
    ON_PROCESS_LEAD_MONTHS,
    ORDER_STATUS_ALIASES,
    SECOND_WAREHOUSE_LEAD_MONTHS,
    SHIPDATE_AUTOSAVE_THROTTLE_SECONDS,
)
from constants.schemas import (
    Allocation,
    ImportReport,
    ManualOrderForm,
    OrderRow,
    PickerRow,
    Warehouse,
    ref_id,
)
from utils.datetime_utils import add_months_ymd, parse_datetime, to_ymd

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

IMPORTED_ORDER_LOCKED = 'Admin disabled editing for imported orders. Please contact the admin.'
BACK_TO_PROCESSING_ERROR = (
    'Changing status back to PROCESSING is not allowed because inventory has already been deducted.'
)
CONFIRM_SHIPPED = (
    'Changing the status to SHIPPED cannot be changed back to PROCESSING since the inventory will be deducted. Continue?'
)
CONFIRM_COMPLETED = (
    'Changing the status to COMPLETED will lock this order and cannot be undone. Are you sure you want to proceed?'
)
CONFIRM_CANCEL = 'Are you sure you want to cancel this order? Canceling order cannot be undone.'


class OrderRuleError(ValueError):
    """An order action the rules do not allow."""


def normalize_status(value) -> str:
    s = str(value or '').strip().lower()
    if not s:
        return ''
    return ORDER_STATUS_ALIASES.get(s, s)


def is_locked_status(status) -> bool:
    return normalize_status(status) in ('canceled', 'completed')


def normalize_date_value(value) -> str:
    """Coerce the date shapes the API emits (ISO string, epoch ms, {$date}) to an ISO string."""
    if not value:
        return ''
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return pd.Timestamp(value, unit='ms', tz='UTC').isoformat()
    if isinstance(value, dict):
        inner = value.get('$date') or value.get('date') or value.get('value')
        return str(inner) if inner else ''
    return ''


def _lines_total(lines) -> float:
    total = 0.0
    for line in lines:
        try:
            total += float(line.get('qty') or 0)
        except (TypeError, ValueError):
            continue
    return total


def _sort_key(row: OrderRow) -> float:
    dt = parse_datetime(row.created_at) or parse_datetime(row.created_at_order)
    return dt.timestamp() if dt else 0.0


def merge_orders(unfulfilled, fulfilled_imports, warehouses: List[Warehouse]) -> List[OrderRow]:
    """
    Merge manual and imported orders into one list, newest first.

    Args:
        unfulfilled: raw documents from GET /orders/unfulfilled
        fulfilled_imports: raw documents from GET /orders/fulfilled/imports
        warehouses: used to resolve warehouse names

    Returns:
        list: OrderRow, ids prefixed with manual: or import:
    """
    names = {w.id: w.name for w in warehouses}
    rows = []

    for o in unfulfilled or []:
        lines = o.get('lines') if isinstance(o.get('lines'), list) else []
        wid = ref_id(o.get('warehouseId'))
        rows.append(OrderRow(
            id=f"manual:{o.get('_id') or o.get('orderNumber') or ''}",
            raw_id=str(o.get('_id') or ''),
            order_number=str(o.get('orderNumber') or ''),
            type='manual',
            status=normalize_status(o.get('status') or 'processing') or 'processing',
            warehouse_id=wid,
            warehouse_name=names.get(wid, ''),
            created_at=normalize_date_value(o.get('createdAt')),
            email=str(o.get('customerEmail') or ''),
            customer_name=str(o.get('customerName') or ''),
            customer_phone=str(o.get('customerPhone') or ''),
            shipping_address=str(o.get('shippingAddress') or ''),
            created_at_order=normalize_date_value(o.get('createdAtOrder')),
            est_fulfillment_date=normalize_date_value(o.get('estFulfillmentDate')),
            lines=lines,
            allocations=o.get('allocations') if isinstance(o.get('allocations'), list) else [],
            source='manual',
            line_count=len(lines),
            total_qty=_lines_total(lines),
        ))

    for o in fulfilled_imports or []:
        lines = o.get('lines') if isinstance(o.get('lines'), list) else []
        wid = ref_id(o.get('warehouseId'))
        source = str(o.get('source') or '')
        rows.append(OrderRow(
            id=f"import:{o.get('_id') or o.get('orderNumber') or ''}",
            raw_id=str(o.get('_id') or ''),
            order_number=str(o.get('orderNumber') or ''),
            type='import' if source == 'csv' else 'manual',
            status=normalize_status(o.get('status') or 'completed') or 'completed',
            warehouse_id=wid,
            warehouse_name=names.get(wid, ''),
            created_at=normalize_date_value(o.get('createdAt')),
            email=str(o.get('email') or ''),
            customer_name=str(o.get('billingName') or o.get('shippingName') or ''),
            customer_phone=str(o.get('billingPhone') or o.get('shippingPhone') or ''),
            shipping_address=str(o.get('shippingStreet') or o.get('shippingAddress1') or ''),
            created_at_order=normalize_date_value(o.get('createdAtOrder')),
            est_fulfillment_date=normalize_date_value(o.get('fulfilledAt')),
            lines=lines,
            source=source,
            line_count=len(lines),
            total_qty=_lines_total(lines),
        ))

    return sorted(rows, key=_sort_key, reverse=True)


def filter_orders(rows: List[OrderRow], status='all', q='') -> List[OrderRow]:
    needle = str(q or '').strip().lower()
    out = []
    for r in rows:
        if status and status != 'all' and normalize_status(r.status) != status:
            continue
        if needle:
            haystack = ' '.join([r.order_number, r.status, r.email, r.customer_name, r.warehouse_name]).lower()
            if needle not in haystack:
                continue
        out.append(r)
    return out


def ensure_editable(row: OrderRow):
    if not row.id.startswith('manual:'):
        raise OrderRuleError(IMPORTED_ORDER_LOCKED)


# --- Pallet picker ---


def second_warehouse(warehouses: List[Warehouse], selected_id) -> Optional[Warehouse]:
    """First warehouse that is not the one the order ships from."""
    selected = str(selected_id or '').strip()
    return next((w for w in warehouses if w.id and w.id != selected), None)


def _floor_pos(value) -> int:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number))


def second_qty(row: PickerRow, second_id) -> float:
    if not second_id:
        return 0.0
    return float(row.per_warehouse.get(str(second_id)) or 0)


def max_order(row: PickerRow, second_id=None) -> int:
    """Most pallets an order could take: this warehouse + on-water + second + on-process."""
    total = (
        float(row.selected_warehouse_available or 0)
        + float(row.on_water_pallets or 0)
        + second_qty(row, second_id)
        + float(row.on_process_pallets or 0)
    )
    return _floor_pos(total)


def filter_picker_rows(rows: List[PickerRow], q='') -> List[PickerRow]:
    needle = str(q or '').strip().lower()
    if not needle:
        return list(rows)
    return [r for r in rows if needle in (r.line_item or '').lower() or needle in (r.group_name or '').lower()]


def merge_visible_qty(qty_by_group: Dict[str, Any], visible_groups, edited_qty: Dict[str, Any]) -> Dict[str, int]:
    """
    Fold the grid's Qty edits for the visible picker rows into the order's
    full qty map. Groups hidden by the picker search keep their quantities.
    """
    merged = {str(g): _floor_pos(q) for g, q in (qty_by_group or {}).items() if _floor_pos(q) > 0}
    for group in visible_groups:
        n = _floor_pos(edited_qty.get(group))
        if n > 0:
            merged[group] = n
        else:
            merged.pop(group, None)
    return merged


def orderable_export_frame(rows: List[PickerRow], this_name, second: Optional[Warehouse]) -> pd.DataFrame:
    """Orderable pallets sheet for the selected warehouse"""
    records = []
    for r in rows:
        rec = {
            'Pallet ID': r.line_item or '',
            'Pallet Description': r.group_name or '',
            f"THIS - {this_name or 'Warehouse'}": _floor_pos(r.selected_warehouse_available),
            'On-Water': _floor_pos(r.on_water_pallets),
            'On-Process': _floor_pos(r.on_process_pallets),
        }
        if second:
            rec[second.name or '2nd Warehouse'] = _floor_pos(second_qty(r, second.id))
        rec['Max Order'] = max_order(r, second.id if second else None)
        records.append(rec)
    return pd.DataFrame(records)


# --- Ship date hints ---


def suggest_shipdate_for_selection(picker_rows: List[PickerRow], qty_by_group: Dict[str, Any],
                                   second_id, today: str) -> str:
    """
    Earliest ship date a new order can promise.

    Each picked group is filled from this warehouse (ready today), then
    on-water (ready at its EDD), then the second warehouse (today + 3 months),
    then on-process (its EDD + 3 months). The latest date used wins.
    """
    rows_by_group = {r.group_name: r for r in picker_rows}
    best = ''
    for group, qty in (qty_by_group or {}).items():
        need = _floor_pos(qty)
        if need <= 0:
            continue
        row = rows_by_group.get(str(group).strip()) or PickerRow(groupName=str(group))
        remaining = need
        dates = []

        take = min(_floor_pos(row.selected_warehouse_available), remaining)
        if take > 0:
            dates.append(today)
            remaining -= take

        take = min(_floor_pos(row.on_water_pallets), remaining)
        if take > 0:
            ready = to_ymd(row.on_water_edd)
            if ready:
                dates.append(ready)
            remaining -= take

        if remaining > 0 and second_id:
            take = min(_floor_pos(second_qty(row, second_id)), remaining)
            if take > 0:
                dates.append(add_months_ymd(today, SECOND_WAREHOUSE_LEAD_MONTHS))
                remaining -= take

        if remaining > 0:
            take = min(_floor_pos(row.on_process_pallets), remaining)
            if take > 0:
                base = to_ymd(row.on_process_edd)
                if base:
                    dates.append(add_months_ymd(base, ON_PROCESS_LEAD_MONTHS))
                remaining -= take

        for d in dates:
            if d and d > best:
                best = d
    return best or today


def suggest_shipdate_for_allocations(picker_rows: List[PickerRow], allocations: List[Allocation], today: str) -> str:
    """Ship date implied by the server's allocation of a processing order."""
    rows_by_group = {r.group_name: r for r in picker_rows}
    best = ''
    has_second = False
    for a in allocations:
        group = (a.group_name or '').strip()
        source = (a.source or '').strip().lower()
        if not group or _floor_pos(a.qty) <= 0:
            continue
        if source == 'second':
            has_second = True
            continue
        row = rows_by_group.get(group)
        if row is None:
            continue
        if source == 'on_water':
            edd = to_ymd(row.on_water_edd)
            if edd and edd > best:
                best = edd
        elif source == 'on_process':
            edd = to_ymd(row.on_process_edd)
            ready = add_months_ymd(edd, ON_PROCESS_LEAD_MONTHS) if edd else ''
            if ready and ready > best:
                best = ready

    out = best or today
    if has_second:
        out = add_months_ymd(today, SECOND_WAREHOUSE_LEAD_MONTHS) or out
    return out


def allocation_breakdown(allocations: List[Allocation], reserved_breakdown=None) -> List[Dict[str, Any]]:
    """Per-group pallets by source; the server's reservedBreakdown wins when present."""
    if reserved_breakdown:
        rows = []
        for r in reserved_breakdown:
            name = str(r.get('groupName') or '').strip()
            if not name:
                continue
            rows.append({
                'groupName': name,
                'primary': _floor_pos(r.get('primary')),
                'onWater': _floor_pos(r.get('onWater')),
                'second': _floor_pos(r.get('second')),
                'onProcess': _floor_pos(r.get('onProcess')),
            })
        return sorted(rows, key=lambda r: r['groupName'])

    by_group: Dict[str, Dict[str, Any]] = {}
    field_by_source = {'primary': 'primary', 'on_water': 'onWater', 'on_process': 'onProcess', 'second': 'second'}
    for a in allocations:
        name = (a.group_name or '').strip()
        qty = _floor_pos(a.qty)
        if not name or qty <= 0:
            continue
        rec = by_group.setdefault(name, {'groupName': name, 'primary': 0, 'onWater': 0, 'onProcess': 0, 'second': 0})
        field = field_by_source.get((a.source or '').strip().lower())
        if field:
            rec[field] += qty
    return sorted(by_group.values(), key=lambda r: r['groupName'])


class ShipdateAutoSaver:
    """
    Persist auto-suggested ship dates for processing orders.

    Saves at most once per throttle window and never repeats the last
    (order, date) pair.
    """

    def __init__(self, throttle_seconds=SHIPDATE_AUTOSAVE_THROTTLE_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.throttle_seconds = throttle_seconds
        self.clock = clock
        self.last_order_id = ''
        self.last_ymd = ''
        self.last_at = None

    def should_save(self, order_id, ymd) -> bool:
        if not order_id or not ymd:
            return False
        if self.last_order_id == str(order_id) and self.last_ymd == str(ymd):
            return False
        if self.last_at is not None and self.clock() - self.last_at < self.throttle_seconds:
            return False
        return True

    def maybe_save(self, client, order_id, ymd) -> bool:
        if not self.should_save(order_id, ymd):
            return False
        self.last_order_id = str(order_id)
        self.last_ymd = str(ymd)
        self.last_at = self.clock()
        try:
            client.put(f"/orders/unfulfilled/{order_id}", json={'estFulfillmentDate': ymd})
        except Exception as e:
            logger.warning(f"Auto-save of ship date failed for {order_id}: {str(e)}")
            return False
        logger.info(f"✅ Auto-saved ship date {ymd} for order {order_id}")
        return True


# --- Manual order form ---


def is_valid_email(email) -> bool:
    s = str(email or '').strip()
    return bool(s) and bool(EMAIL_RE.match(s))


def sanitize_int_text(value) -> str:
    return re.sub(r'[^0-9]', '', str(value if value is not None else ''))


def normalize_int_text(value) -> str:
    s = sanitize_int_text(value)
    if not s:
        return ''
    n = int(s)
    return str(n) if n > 0 else ''


def parse_order_lines(qty_by_group: Dict[str, Any], allowed_groups) -> List[Dict[str, Any]]:
    allowed = {str(g).strip().lower() for g in allowed_groups or [] if str(g).strip()}
    lines = []
    for group, qty in (qty_by_group or {}).items():
        name = str(group or '').strip()
        n = _floor_pos(qty)
        if name and name.lower() in allowed and n > 0:
            lines.append({'groupName': name, 'qty': n})
    return lines


def validate_manual_order(form: ManualOrderForm, allowed_groups, today: str,
                          prev_status: Optional[str] = None) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Validate the manual order dialog.

    Args:
        form: dialog values
        allowed_groups: Pallet Descriptions offered by the picker
        today: YYYY-MM-DD
        prev_status: status before the edit (None when creating)

    Returns:
        tuple: (errors in display order, parsed lines)
    """
    errors = []
    if not form.warehouse_id:
        errors.append('Warehouse is required')
    if not is_valid_email(form.customer_email):
        errors.append('Customer Email is required and must be a valid email')
    if not form.customer_name.strip():
        errors.append('Customer Name is required')
    if not form.customer_phone.strip():
        errors.append('Phone Number is required')

    created = to_ymd(form.created_at_order)
    if not created:
        errors.append('Created Order Date is required')
    elif created > today:
        errors.append('Created Order Date cannot be an advance date')

    est = to_ymd(form.est_fulfillment_date)
    if not est:
        errors.append('Estimated Shipdate for Customer is required')
    elif est < today:
        errors.append('Estimated Shipdate for Customer must be today or later')

    if not form.shipping_address.strip():
        errors.append('Shipping Address is required')

    lines = parse_order_lines(form.qty_by_group, allowed_groups)
    if not lines:
        errors.append('At least 1 Pallet ID is required')
    seen = set()
    for line in lines:
        key = line['groupName'].lower()
        if key in seen:
            errors.append(f"Duplicate Pallet Description: {line['groupName']}")
            break
        seen.add(key)

    prev = normalize_status(prev_status)
    if prev == 'canceled':
        errors.append('Canceled orders cannot be edited')
    if prev == 'completed':
        errors.append('Completed orders cannot be edited')
    return errors, lines


def check_status_transition(prev_status, next_status) -> Optional[str]:
    """
    Check a status change on an existing order.

    Returns:
        str or None: confirmation text the user must accept first

    Raises:
        OrderRuleError: for moves back to processing
    """
    prev = normalize_status(prev_status)
    nxt = normalize_status(next_status)
    if prev != 'processing' and nxt == 'processing':
        raise OrderRuleError(BACK_TO_PROCESSING_ERROR)
    if prev == 'processing' and nxt == 'shipped':
        return CONFIRM_SHIPPED
    if prev == 'shipped' and nxt == 'completed':
        return CONFIRM_COMPLETED
    if nxt == 'canceled' and prev != 'canceled':
        return CONFIRM_CANCEL
    return None


def _payload_lines(lines):
    return [{'search': line['groupName'], 'qty': line['qty']} for line in lines]


def build_create_payload(form: ManualOrderForm, lines) -> Dict[str, Any]:
    return {
        'warehouseId': form.warehouse_id,
        'status': 'processing',
        'customerEmail': form.customer_email.strip(),
        'customerName': form.customer_name.strip(),
        'customerPhone': form.customer_phone.strip(),
        'createdAtOrder': to_ymd(form.created_at_order) or None,
        'estFulfillmentDate': to_ymd(form.est_fulfillment_date) or None,
        'shippingAddress': form.shipping_address.strip(),
        'lines': _payload_lines(lines),
    }


def build_update_payload(form: ManualOrderForm, lines) -> Dict[str, Any]:
    return {
        'customerEmail': form.customer_email.strip(),
        'customerName': form.customer_name.strip(),
        'customerPhone': form.customer_phone.strip(),
        'estFulfillmentDate': to_ymd(form.est_fulfillment_date) or None,
        'shippingAddress': form.shipping_address.strip(),
        'lines': _payload_lines(lines),
    }


# --- API calls ---


def load_orders(client, warehouses: List[Warehouse]) -> List[OrderRow]:
    unfulfilled = client.get('/orders/unfulfilled') or []
    imports = client.get('/orders/fulfilled/imports') or []
    rows = merge_orders(unfulfilled, imports, warehouses)
    logger.info(f"Loaded {len(rows)} orders ({len(unfulfilled)} manual, {len(imports)} imported)")
    return rows


def load_picker(client, warehouse_id, q='') -> Tuple[List[PickerRow], List[Warehouse]]:
    if not warehouse_id:
        return [], []
    data = client.get('/orders/pallet-picker', params={'warehouseId': warehouse_id, 'q': q}) or {}
    rows = [PickerRow.model_validate(r) for r in data.get('rows') or []]
    warehouses = [Warehouse.model_validate(w) for w in data.get('warehouses') or []]
    return rows, warehouses


def load_allocations(client, raw_id) -> Tuple[List[Allocation], List[Dict[str, Any]]]:
    data = client.get(f"/orders/unfulfilled/{raw_id}", params={'_ts': int(time.time() * 1000)}) or {}
    allocations = [Allocation.model_validate(a) for a in data.get('allocations') or []]
    reserved = data.get('reservedBreakdown') if isinstance(data.get('reservedBreakdown'), list) else []
    return allocations, reserved


def create_order(client, form: ManualOrderForm, lines):
    logger.info(f"🚀 Creating manual order for {form.customer_email}")
    return client.post('/orders/unfulfilled', json=build_create_payload(form, lines))


def update_order(client, row: OrderRow, form: ManualOrderForm, lines):
    """Status goes through its own endpoint; other fields only while processing."""
    ensure_editable(row)
    status = normalize_status(form.status)
    client.put(f"/orders/unfulfilled/{row.raw_id}/status", json={'status': status})
    if status == 'processing':
        client.put(f"/orders/unfulfilled/{row.raw_id}", json=build_update_payload(form, lines))
    logger.info(f"✅ Order {row.order_number or row.raw_id} updated ({status})")


def preview_csv(client, warehouse_id, file_name, content) -> ImportReport:
    if not warehouse_id:
        raise OrderRuleError('Please select a Warehouse')
    data = client.upload('/orders/fulfilled/preview', file_name, content, params={'warehouseId': warehouse_id})
    return ImportReport.model_validate(data or {})


def commit_csv(client, warehouse_id, file_name, content) -> ImportReport:
    if not warehouse_id:
        raise OrderRuleError('Please select a Warehouse')
    data = client.upload('/orders/fulfilled', file_name, content, params={'warehouseId': warehouse_id})
    return ImportReport.model_validate(data or {})
