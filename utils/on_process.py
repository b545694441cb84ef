"""
On-process batch bookkeeping.

A batch groups per-Pallet-Description targets (total / finished /
transferred). Row edits made in the grid are reconciled here before they are
saved, and the batch status is derived from its rows.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from constants.data_models import ON_PROCESS_DEFAULT_FINISH_MONTHS, ON_PROCESS_ROW_STATUSES, TRANSFER_MODES
from constants.schemas import OnProcessBatch, OnProcessPallet, Warehouse
from utils.datetime_utils import add_months_ymd, to_ymd

logger = logging.getLogger(__name__)


class OnProcessRuleError(ValueError):
    """An on-process action that must not be submitted."""


def _n(value) -> float:
    return float(value or 0)


def remaining(row: OnProcessPallet) -> float:
    return max(0.0, _n(row.total_pallet) - (_n(row.transferred_pallet) + _n(row.finished_pallet)))


def effective_locked(row: OnProcessPallet) -> bool:
    # A locked row with pallets still to finish can be worked on again
    return bool(row.locked) and remaining(row) == 0


def is_transfer_eligible(row: OnProcessPallet) -> bool:
    return not effective_locked(row) and _n(row.finished_pallet) > 0


def eligible_rows(rows: List[OnProcessPallet]) -> List[OnProcessPallet]:
    return [r for r in rows if is_transfer_eligible(r)]


def apply_row_edit(row: OnProcessPallet, total=None, finished=None, status=None) -> OnProcessPallet:
    """
    Reconcile an edited grid row.

    Args:
        row: the row as last loaded
        total: new Total Pallet (None keeps the current value)
        finished: new Finished Pallet (None or negative keeps the current value)
        status: new status (unknown values keep the current status)

    Returns:
        OnProcessPallet: a new row with consistent totals, status and lock
    """
    was_locked = bool(row.locked)
    prev_status = row.status or 'in_progress'
    prev_total = _n(row.total_pallet)
    transferred = _n(row.transferred_pallet)

    new_total = _n(row.total_pallet) if total is None else float(total)
    new_finished = _n(row.finished_pallet) if finished is None or float(finished) < 0 else float(finished)
    new_status = status or prev_status
    if new_status not in ON_PROCESS_ROW_STATUSES:
        new_status = prev_status

    if new_status == 'cancelled':
        if transferred > 0:
            # Pallets already moved out; cancellation is refused
            new_status = prev_status
        else:
            new_total = 0.0
            new_finished = 0.0

    if was_locked or prev_status == 'completed':
        new_total = max(prev_total, new_total)

    if new_status != 'cancelled':
        new_total = max(1.0, transferred, new_total)
    else:
        new_total = max(new_total, transferred)

    new_finished = min(new_finished, max(0.0, new_total - transferred))
    left = max(0.0, new_total - (transferred + new_finished))
    if new_status != 'cancelled':
        if left == 0:
            new_status = 'completed'
        elif new_finished > 0:
            new_status = 'partial'
        else:
            new_status = 'in_progress'

    new_locked = False if was_locked and new_total > prev_total else row.locked
    return row.model_copy(update={
        'total_pallet': new_total,
        'finished_pallet': new_finished,
        'status': new_status,
        'locked': new_locked,
    })


def derive_batch_status(rows: List[OnProcessPallet], today: str) -> Tuple[str, Optional[str]]:
    """
    Batch status implied by its rows.

    Returns:
        tuple: (status, est_finish_date override or None); a completed batch
        finishes today
    """
    if rows and all((r.status or '') in ('completed', 'cancelled') for r in rows):
        return 'completed', today
    if rows and all(_n(r.finished_pallet) == 0 and _n(r.transferred_pallet) == 0 for r in rows):
        return 'in-progress', None
    return 'partial-done', None


def default_batch_finish_date(today: str) -> str:
    return add_months_ymd(today, ON_PROCESS_DEFAULT_FINISH_MONTHS)


def default_transfer_warehouse(mode: str, warehouses: List[Warehouse]) -> str:
    """Primary warehouse for on-water transfers, the second warehouse for deliveries."""
    primary = next((w for w in warehouses if w.is_primary), None)
    second = next((w for w in warehouses if not w.is_primary), None)
    chosen = primary if mode == 'on_water' else second
    return chosen.id if chosen else ''


def build_transfer_payload(rows: List[OnProcessPallet], mode: str, warehouse_id: str, edd, today: str) -> Dict[str, Any]:
    """
    Request body for moving finished pallets out of a batch.

    Raises:
        OnProcessRuleError: nothing eligible, bad mode, missing warehouse or EDD
    """
    items = eligible_rows(rows)
    if not items:
        raise OnProcessRuleError('No selected rows have finished pallets to transfer.')
    if mode not in TRANSFER_MODES:
        raise OnProcessRuleError(f"Unknown transfer mode: {mode}")
    if not warehouse_id:
        raise OnProcessRuleError('Warehouse is required')

    payload: Dict[str, Any] = {
        'mode': mode,
        'warehouseId': warehouse_id,
        'items': [{'groupName': r.group_name, 'pallets': r.finished_pallet or 0} for r in items],
    }
    if mode == 'on_water':
        edd = to_ymd(edd)
        if not edd:
            raise OnProcessRuleError('EDD is required for On-Water')
        if edd < today:
            raise OnProcessRuleError('EDD cannot be earlier than today')
        payload['estDeliveryDate'] = edd
    return payload


def rows_payload(rows: List[OnProcessPallet]) -> Dict[str, Any]:
    return {'pallets': [
        {
            'groupName': r.group_name,
            'totalPallet': r.total_pallet,
            'finishedPallet': r.finished_pallet,
            'status': r.status,
        }
        for r in rows
    ]}


# --- API calls ---


def load_batches(client) -> List[OnProcessBatch]:
    return [OnProcessBatch.model_validate(b) for b in client.get('/on-process/batches') or []]


def load_batch_pallets(client, batch_id) -> List[OnProcessPallet]:
    data = client.get(f"/on-process/batches/{quote(str(batch_id), safe='')}/pallets") or []
    return [OnProcessPallet.model_validate(p) for p in data]


def validate_est_finish(est_finish_date, today: str) -> str:
    est = to_ymd(est_finish_date)
    if est and est < today:
        raise OnProcessRuleError('Estimated Date Finish cannot be earlier than today')
    return est


def import_message(report: Dict[str, Any]) -> Tuple[str, str]:
    """(toast kind, text) for an on-process pallet import"""
    created = report.get('created') or 0
    issues = report.get('errorCount') or 0
    if issues:
        return 'warning', f"Import completed with issues. Created: {created}, Issues: {issues}. See details below."
    return 'success', f"Import completed. Created: {created}."


def save_batch_header(client, batch_id, status, est_finish_date, notes):
    return client.patch(f"/on-process/batches/{batch_id}", json={
        'status': status,
        'estFinishDate': to_ymd(est_finish_date) or None,
        'notes': notes,
    })


def save_batch_rows(client, batch_id, rows: List[OnProcessPallet]):
    logger.info(f"Saving {len(rows)} on-process rows for batch {batch_id}")
    return client.patch(f"/on-process/batches/{batch_id}/pallets", json=rows_payload(rows))


def add_batch_group(client, batch_id, group_name, total_pallet):
    if not str(group_name or '').strip():
        raise OnProcessRuleError('Pallet Description is required')
    if not total_pallet or float(total_pallet) <= 0:
        raise OnProcessRuleError('Total Pallet must be > 0')
    return client.post(f"/on-process/batches/{batch_id}/pallets", json={
        'groupName': group_name,
        'totalPallet': float(total_pallet),
    })


def transfer_batch_pallets(client, batch_id, payload):
    logger.info(f"🚀 Transferring {len(payload['items'])} on-process rows ({payload['mode']})")
    return client.post(f"/on-process/batches/{batch_id}/pallets/transfer", json=payload)


def import_pallets(client, file_name, content) -> Dict[str, Any]:
    logger.info(f"🚀 Importing on-process pallets from {file_name}")
    return client.upload('/on-process/pallets/import', file_name, content) or {}


def export_batch(client, batch: OnProcessBatch) -> Tuple[str, bytes]:
    content = client.download(f"/on-process/batches/{batch.id}/export")
    return f"{batch.reference or batch.id}.xlsx", content
