"""
Pallet counts per Pallet Description across warehouses.

Feeds the Pallets summary page, the Inventory group grid, the Warehouses
stock exports and the record-loss dialog.
"""

import math
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import pandas as pd
import plotly.express as px

from constants.data_models import WAREHOUSE_EXPORT_COLUMNS
from constants.schemas import ItemGroup, PalletGroupStock, Warehouse, ref_id
from utils.spreadsheets import safe_filename_part

logger = logging.getLogger(__name__)

SUMMARY_SHEET = 'Pallets'
STOCK_SHEET = 'Pallet Inventory'


def _num(value) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def split_warehouses(warehouses: List[Warehouse]) -> Tuple[Optional[Warehouse], Optional[Warehouse], List[Warehouse]]:
    """(primary, second, others); second is the first non-primary warehouse"""
    primary = next((w for w in warehouses if w.is_primary), None)
    second = next((w for w in warehouses if not w.is_primary), None)
    taken = {w.id for w in (primary, second) if w}
    others = [w for w in warehouses if w.id not in taken]
    return primary, second, others


def pallet_id_map(groups: List[ItemGroup]) -> Dict[str, str]:
    return {g.name.strip(): (g.line_item or '').strip() for g in groups if (g.name or '').strip()}


def build_summary_rows(rows, warehouses: List[Warehouse], pallet_ids: Dict[str, str]) -> List[Dict[str, Any]]:
    """
    Flatten /reports/pallet-summary-by-group rows.

    Args:
        rows: raw rows ({itemGroup, warehouses: {id: n}, onProcessQty, onWaterQty})
        warehouses: warehouses listed by the same report
        pallet_ids: Pallet Description -> Pallet ID

    Returns:
        list: dicts with palletId, itemGroup, onWaterQty, onProcessQty,
        warehouses (id -> count) and totalQty
    """
    out = []
    for r in rows or []:
        per = r.get('warehouses') or {}
        counts = {w.id: _num(per.get(w.id)) for w in warehouses}
        on_process = _num(r.get('onProcessQty'))
        on_water = _num(r.get('onWaterQty'))
        group_name = str(r.get('itemGroup') or '')
        out.append({
            'palletId': pallet_ids.get(group_name.strip(), ''),
            'itemGroup': group_name,
            'warehouses': counts,
            'onProcessQty': on_process,
            'onWaterQty': on_water,
            'totalQty': sum(counts.values()) + on_process + on_water,
        })
    return out


def filter_summary_rows(rows: List[Dict[str, Any]], q='') -> List[Dict[str, Any]]:
    needle = str(q or '').strip().lower()
    if not needle:
        return list(rows)
    return [
        r for r in rows
        if needle in str(r.get('itemGroup') or '').strip().lower()
        or needle in str(r.get('palletId') or '').strip().lower()
    ]


def summary_columns(warehouses: List[Warehouse]) -> List[Tuple[str, str]]:
    """Ordered (header, key) pairs; warehouse keys are 'wh:<id>'."""
    primary, second, others = split_warehouses(warehouses)
    cols = [('Pallet ID', 'palletId'), ('Pallet Description', 'itemGroup')]
    if primary:
        cols.append((primary.name, f"wh:{primary.id}"))
    cols.append(('On-Water', 'onWaterQty'))
    if second:
        cols.append((second.name, f"wh:{second.id}"))
    cols.append(('On-Process', 'onProcessQty'))
    cols.extend((w.name, f"wh:{w.id}") for w in others)
    cols.append(('Total Qty', 'totalQty'))
    return cols


def summary_frame(rows: List[Dict[str, Any]], warehouses: List[Warehouse]) -> pd.DataFrame:
    cols = summary_columns(warehouses)
    records = []
    for r in rows:
        values = []
        for _, key in cols:
            if key.startswith('wh:'):
                values.append(r['warehouses'].get(key[3:], 0))
            else:
                values.append(r.get(key, ''))
        records.append(values)
    return pd.DataFrame(records, columns=[h for h, _ in cols])


def summary_export_filename(ts: str) -> str:
    return f"Pallet_Quantity_Summary_{ts}.xlsx"


def summary_chart(rows: List[Dict[str, Any]], top_n=20):
    """Stacked bars of on-hand, on-water and on-process pallets for the largest groups"""
    records = []
    for r in sorted(rows, key=lambda x: x['totalQty'], reverse=True)[:top_n]:
        records.append({'Pallet Description': r['itemGroup'], 'Bucket': 'On-Hand', 'Pallets': sum(r['warehouses'].values())})
        records.append({'Pallet Description': r['itemGroup'], 'Bucket': 'On-Water', 'Pallets': r['onWaterQty']})
        records.append({'Pallet Description': r['itemGroup'], 'Bucket': 'On-Process', 'Pallets': r['onProcessQty']})
    df = pd.DataFrame(records, columns=['Pallet Description', 'Bucket', 'Pallets'])

    fig = px.bar(
        df,
        x='Pallet Description',
        y='Pallets',
        color='Bucket',
        title=f"Top {top_n}: Pallets by Description",
        barmode='stack',
    )
    fig.update_layout(
        xaxis_tickangle=-45,
        height=500
    )
    return fig


# --- Inventory grid and warehouse exports ---


def inventory_grid_frame(groups: List[PalletGroupStock], warehouses: List[Warehouse]) -> pd.DataFrame:
    """Pallet Description, Total Pallets, then one column per warehouse (0 when missing)"""
    records = []
    for g in groups:
        rec = {'Pallet Description': g.group_name, 'Total Pallets': _num(g.total_pallets)}
        for w in warehouses:
            rec[w.name] = g.pallets_in(w.id)
        records.append(rec)
    return pd.DataFrame(records, columns=['Pallet Description', 'Total Pallets'] + [w.name for w in warehouses])


def warehouse_stock_rows(groups: List[PalletGroupStock], warehouse_id) -> List[List[Any]]:
    rows = [[g.group_name or '', g.pallets_in(warehouse_id)] for g in groups]
    return [r for r in rows if r[1] > 0]


def warehouse_stock_filename(name, ts: str) -> str:
    return f"warehouse-pallet-inventory-({safe_filename_part(name or 'Warehouse')})-({ts}).xlsx"


def all_warehouses_rows(groups: List[PalletGroupStock], warehouses: List[Warehouse]) -> Tuple[List[str], List[List[Any]]]:
    header = list(WAREHOUSE_EXPORT_COLUMNS) + [w.name for w in warehouses]
    index = {w.id: i for i, w in enumerate(warehouses)}
    rows = []
    for g in groups:
        per = [0.0] * len(warehouses)
        for rec in g.per_warehouse:
            i = index.get(ref_id(rec.warehouse_id), -1)
            if i >= 0:
                per[i] = _num(rec.pallets)
        rows.append([g.group_name or '', sum(per)] + per)
    return header, rows


def all_warehouses_filename(ts: str) -> str:
    return f"all-warehouses-pallet-inventory-({ts}).xlsx"


def movement_status_label(t: Dict[str, Any]) -> str:
    """Readable status of a pallet movement in the group details view"""
    status = t.get('status') or ''
    committed_by = t.get('committedBy')
    if status == 'On-Water' and committed_by == 'transfer':
        return 'on_transfer | on_water'
    if status == 'Adjustment':
        reason = str(t.get('reason') or '').lower()
        if reason in ('loss', 'order_fulfilled'):
            return f"adjustment | {reason}"
        return 'adjustment'
    if status == 'Delivered':
        if committed_by == 'existing_inventory':
            return 'existing_inventory | Delivered'
        if committed_by == 'transfer':
            return 'transfered | Delivered'
        return 'On-Water | Delivered' if t.get('wasOnWater') else 'on_process | Delivered'
    return status


def group_detail_frames(details: Dict[str, Any], warehouses: List[Warehouse]) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """(items per pallet, recent transactions) for one Pallet Description"""
    items = pd.DataFrame(
        [
            {
                'Item Code': it.get('itemCode', ''),
                'Description': it.get('description', ''),
                'Color': it.get('color', ''),
                'Pack Size': it.get('packSize', 0),
            }
            for it in details.get('items') or []
        ],
        columns=['Item Code', 'Description', 'Color', 'Pack Size'],
    )
    names = {w.id: w.name for w in warehouses}
    movements = pd.DataFrame(
        [
            {
                'Date/Time': t.get('createdAt', ''),
                'PO #': t.get('poNumber', ''),
                'Warehouse': names.get(ref_id(t.get('warehouseId')), '-'),
                'Type': 'IN' if _num(t.get('palletsDelta')) >= 0 else 'OUT',
                'Status': movement_status_label(t),
                'Pallets': t.get('palletsDelta'),
            }
            for t in details.get('recentTransactions') or []
        ],
        columns=['Date/Time', 'PO #', 'Warehouse', 'Type', 'Status', 'Pallets'],
    )
    return items, movements


# --- Record loss ---


def validate_loss(warehouse_id, reference, items) -> Dict[str, Any]:
    """
    Check the record-loss dialog.

    Args:
        warehouse_id: selected warehouse
        reference: optional free text
        items: [{'groupName': str, 'qty': any}]; rows without a group are ignored

    Returns:
        dict: the /pallet-inventory/adjustments request body

    Raises:
        ValueError: first failing rule
    """
    if not warehouse_id:
        raise ValueError('Warehouse is required')
    normalized = [
        {'groupName': str(it.get('groupName') or '').strip(), 'qty': it.get('qty')}
        for it in items or []
    ]
    normalized = [it for it in normalized if it['groupName']]
    if not normalized:
        raise ValueError('At least one Pallet Description is required')
    for it in normalized:
        try:
            qty = float(it['qty'])
        except (TypeError, ValueError):
            qty = float('nan')
        if not math.isfinite(qty) or qty <= 0:
            raise ValueError('Qty must be > 0')
        it['qty'] = int(qty) if qty.is_integer() else qty
    seen = set()
    for it in normalized:
        key = it['groupName'].lower()
        if key in seen:
            raise ValueError(f"Duplicate Pallet Description: {it['groupName']}")
        seen.add(key)

    payload: Dict[str, Any] = {'warehouseId': warehouse_id, 'items': normalized}
    if str(reference or '').strip():
        payload['reference'] = str(reference).strip()
    return payload


# --- API calls ---


def load_summary(client) -> Tuple[List[Warehouse], List[Dict[str, Any]]]:
    data = client.get('/reports/pallet-summary-by-group') or {}
    groups = [ItemGroup.model_validate(g) for g in client.get('/item-groups') or []]
    warehouses = [Warehouse.model_validate(w) for w in data.get('warehouses') or []]
    rows = build_summary_rows(data.get('rows') or [], warehouses, pallet_id_map(groups))
    logger.info(f"Loaded pallet summary: {len(rows)} groups across {len(warehouses)} warehouses")
    return warehouses, rows


def load_group_stock(client, search='') -> List[PalletGroupStock]:
    params = {'search': search.strip()} if search and search.strip() else None
    return [PalletGroupStock.model_validate(g) for g in client.get('/pallet-inventory/groups', params=params) or []]


def load_group_details(client, group_name) -> Dict[str, Any]:
    return client.get(f"/pallet-inventory/groups/{quote(str(group_name), safe='')}") or {}


def load_on_water_details(client, warehouse_id, group_name) -> List[Dict[str, Any]]:
    if not warehouse_id or not str(group_name or '').strip():
        return []
    data = client.get('/orders/pallet-picker/on-water', params={'warehouseId': warehouse_id, 'groupName': group_name.strip()}) or {}
    return data.get('rows') or []


def load_on_process_details(client, group_name) -> List[Dict[str, Any]]:
    if not str(group_name or '').strip():
        return []
    data = client.get('/orders/pallet-picker/on-process', params={'groupName': group_name.strip()}) or {}
    return data.get('rows') or []


def record_loss(client, payload: Dict[str, Any]):
    logger.info(f"Recording loss of {len(payload['items'])} groups at warehouse {payload['warehouseId']}")
    return client.post('/pallet-inventory/adjustments', json=payload)
