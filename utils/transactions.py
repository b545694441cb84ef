import logging
from typing import Any, Dict, List, Tuple

import pandas as pd

from constants.schemas import Transaction
from utils.datetime_utils import format_datetime_us, to_ymd

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = ['IN', 'OUT', 'ADJUSTMENT', 'ALLOCATE', 'RECEIPT']
IMPORT_LOG_TYPES = ['stock_in', 'initial', 'orders']
PAGE_LIMIT = 20


def items_summary(t: Transaction) -> str:
    """itemCode(qtyPieces) pairs, comma separated"""
    parts = []
    for i in t.items:
        qty = i.qty_pieces
        if isinstance(qty, float) and qty.is_integer():
            qty = int(qty)
        parts.append(f"{i.item_code}({qty})")
    return ', '.join(parts)


def transactions_frame(transactions: List[Transaction]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'Date': format_datetime_us(t.created_at),
            'Type': t.type,
            'Reference': t.reference,
            'Items': items_summary(t),
            'Notes': t.notes,
        }
        for t in transactions
    ], columns=['Date', 'Type', 'Reference', 'Items', 'Notes'])


def import_logs_frame(logs: List[Dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            'Date': format_datetime_us(log.get('createdAt')),
            'Type': log.get('type', ''),
            'File': log.get('fileName') or '',
            'PO #': log.get('poNumber') or '',
            'Item Code': log.get('itemCode') or '',
            'Qty': log.get('totalQty'),
            'Pack Size': log.get('packSize'),
        }
        for log in logs
    ], columns=['Date', 'Type', 'File', 'PO #', 'Item Code', 'Qty', 'Pack Size'])


def load_transactions(client, page=1, type_='', item_code='', start_date=None, end_date=None) -> List[Transaction]:
    data = client.get('/transactions', params={
        'page': page,
        'limit': PAGE_LIMIT,
        'type': type_,
        'itemCode': str(item_code or '').strip(),
        'startDate': to_ymd(start_date),
        'endDate': to_ymd(end_date),
    }) or {}
    return [Transaction.model_validate(t) for t in data.get('items') or []]


def load_import_logs(client, page=1, type_='', po_number='', item_code='', start_date=None,
                     end_date=None) -> Tuple[List[Dict[str, Any]], int, int]:
    """Returns (logs, page, pages)."""
    data = client.get('/import-logs', params={
        'page': page,
        'limit': PAGE_LIMIT,
        'type': type_,
        'poNumber': str(po_number or '').strip(),
        'itemCode': str(item_code or '').strip(),
        'startDate': to_ymd(start_date),
        'endDate': to_ymd(end_date),
    }) or {}
    return data.get('items') or [], int(data.get('page') or 1), int(data.get('pages') or 1)
