"""
Pallet transfer between warehouses.

Transfer lines come only from an .xlsx upload (Pallet Description, Total
Pallet). Before submitting, each line is checked against the pallets the
source warehouse holds. The server re-checks everything.
"""

import math
import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from constants.data_models import TRANSFER_DEFAULT_EDD_MONTHS, TRANSFER_TEMPLATE_COLUMNS
from constants.schemas import PalletGroupStock, Warehouse
from utils.datetime_utils import add_months_ymd, to_ymd
from utils.spreadsheets import SpreadsheetError, rows_to_records, validate_template_header

logger = logging.getLogger(__name__)

NO_VALID_ROWS_ERROR = 'No valid rows found (need Pallet Description, Total Pallet)'

GROUP_ALIASES = ['pallet description', 'pallet group', 'groupname']
PALLETS_ALIASES = ['total pallet', 'pallets']


class TransferValidationError(ValueError):
    """A transfer form that must not be submitted."""


def default_warehouses(warehouses: List[Warehouse]) -> Tuple[str, str]:
    """Default (source, destination): first non-primary warehouse into the primary one."""
    primary = next((w for w in warehouses if w.is_primary), None)
    second = next((w for w in warehouses if not w.is_primary), None)
    return (second.id if second else ''), (primary.id if primary else '')


def default_edd(today: str) -> str:
    return add_months_ymd(today, TRANSFER_DEFAULT_EDD_MONTHS)


def available_by_group(groups: List[PalletGroupStock], source_id: str) -> Dict[str, float]:
    """Pallets the source warehouse holds, keyed by Pallet Description."""
    if not source_id:
        return {}
    available = {}
    for g in groups:
        name = (g.group_name or '').strip()
        if name:
            available[name] = g.pallets_in(source_id)
    return available


def _lookup(record: Dict[str, Any], aliases: List[str]):
    lowered = {str(k).strip().lower(): v for k, v in record.items()}
    for alias in aliases:
        value = lowered.get(alias)
        if value is not None and value != '':
            return value
    return ''


def _to_number(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return float('nan')
    return number


def parse_transfer_rows(rows) -> List[Dict[str, Any]]:
    """
    Turn worksheet rows into transfer lines.

    Args:
        rows: rows from read_sheet_rows, header first

    Returns:
        list: [{'groupName': str, 'pallets': number}]

    Raises:
        SpreadsheetError: bad header, or no usable line
    """
    validate_template_header(rows, TRANSFER_TEMPLATE_COLUMNS)

    parsed = []
    for record in rows_to_records(rows):
        group_name = str(_lookup(record, GROUP_ALIASES)).strip()
        pallets = _to_number(_lookup(record, PALLETS_ALIASES) or 0)
        if not group_name or not math.isfinite(pallets) or pallets <= 0:
            continue
        parsed.append({'groupName': group_name, 'pallets': int(pallets) if pallets.is_integer() else pallets})

    if not parsed:
        raise SpreadsheetError(NO_VALID_ROWS_ERROR)
    logger.info(f"Loaded {len(parsed)} transfer lines from file")
    return parsed


def row_status(pallets, available) -> str:
    return 'OK' if pallets > 0 and available >= pallets else 'Insufficient'


def preview_frame(items: List[Dict[str, Any]], available: Dict[str, float]) -> pd.DataFrame:
    """Uploaded lines with the source stock next to them"""
    df = pd.DataFrame(items, columns=['groupName', 'pallets'])
    df['available'] = df['groupName'].map(lambda g: available.get(g, 0)).astype(float)
    df['status'] = np.vectorize(row_status, otypes=[object])(df['pallets'], df['available'])
    return df.rename(columns={
        'groupName': 'Pallet Description',
        'pallets': 'Total Pallet',
        'available': 'Available',
        'status': 'Status',
    })


def validate_transfer(source_id, destination_id, po_number, edd, items, available, today) -> Dict[str, Any]:
    """
    Check a transfer form in the order the user should fix it.

    Returns:
        dict: the /shipments/transfer-pallet request body

    Raises:
        TransferValidationError: first failing rule
    """
    if not source_id or not destination_id:
        raise TransferValidationError('Select both source and destination warehouses')
    if source_id == destination_id:
        raise TransferValidationError('Source and destination must be different')
    if not str(po_number or '').strip():
        raise TransferValidationError('PO# is required')
    edd = to_ymd(edd)
    if edd and edd < today:
        raise TransferValidationError('Estimated Delivery cannot be earlier than today')

    valid = [i for i in items or [] if i.get('groupName') and math.isfinite(_to_number(i.get('pallets'))) and _to_number(i.get('pallets')) > 0]
    if not valid:
        raise TransferValidationError('Import at least one valid pallet row (Pallet Description, Total Pallet)')

    insufficient = [i['groupName'] for i in valid if row_status(i['pallets'], available.get(i['groupName']) or 0) != 'OK']
    if insufficient:
        raise TransferValidationError(f"Insufficient pallet stock for: {', '.join(insufficient)}")

    payload: Dict[str, Any] = {
        'sourceWarehouseId': source_id,
        'warehouseId': destination_id,
        'pallets': [{'groupName': i['groupName'], 'pallets': i['pallets']} for i in valid],
        'reference': str(po_number).strip(),
    }
    if edd:
        payload['estDeliveryDate'] = edd
    return payload


def submit_transfer(client, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    logger.info(f"🚀 Creating pallet transfer {payload.get('reference')} ({len(payload.get('pallets', []))} lines)")
    result = client.post('/shipments/transfer-pallet', json=payload)
    logger.info("✅ Transfer created")
    return result
