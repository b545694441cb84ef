"""
Bulk stock-in uploads: pallet imports and item (stock) imports.

Both run as preview then commit. The server reports failed rows one by one
and keeps the rows that succeeded; nothing is rolled back.
"""

import logging
from typing import Any, Dict, Optional

from constants.data_models import IMPORT_STATUSES
from constants.schemas import ImportReport
from utils.datetime_utils import to_ymd

logger = logging.getLogger(__name__)

PARTIAL_COMMIT_MESSAGE = 'Some rows failed. Successful rows were committed.'


class ImportParamsError(ValueError):
    """Import options that must be fixed before uploading."""


def preview_params(warehouse_id) -> Dict[str, Any]:
    if not warehouse_id:
        raise ImportParamsError('Please select a Warehouse')
    return {'warehouseId': warehouse_id}


def commit_params(warehouse_id, status, edd=None) -> Dict[str, Any]:
    """
    Query string for an import commit.

    Args:
        warehouse_id: destination warehouse
        status: 'Delivered' or 'On-Water'
        edd: estimated delivery date, required for On-Water

    Raises:
        ImportParamsError: missing warehouse or EDD, unknown status
    """
    if not warehouse_id:
        raise ImportParamsError('Please select a Warehouse')
    if status not in IMPORT_STATUSES:
        raise ImportParamsError(f"Unknown status: {status}")
    params: Dict[str, Any] = {'status': status, 'warehouseId': warehouse_id}
    if status == 'On-Water':
        ymd = to_ymd(edd)
        if not ymd:
            raise ImportParamsError('Please select Estimated Delivery Date')
        params['estDeliveryDate'] = ymd
    return params


def error_rows(report: ImportReport):
    """Row errors flattened for st.dataframe"""
    return [{'Row': e.row_num, 'Errors': '; '.join(e.errors)} for e in report.errors]


def preview_pallet_import(client, warehouse_id, file_name, content) -> ImportReport:
    data = client.upload('/pallet-inventory/import/preview', file_name, content, params=preview_params(warehouse_id))
    return ImportReport.model_validate(data or {})


def commit_pallet_import(client, warehouse_id, status, edd, file_name, content) -> ImportReport:
    params = commit_params(warehouse_id, status, edd)
    logger.info(f"🚀 Committing pallet import {file_name} ({status})")
    data = client.upload('/pallet-inventory/import', file_name, content, params=params)
    report = ImportReport.model_validate(data or {})
    if report.error_count:
        logger.warning(f"Pallet import {file_name} committed with {report.error_count} failed rows")
    return report


def preview_stock_import(client, file_name, content) -> Dict[str, Any]:
    """Returns the report plus the server's `duplicates` list."""
    data = client.upload('/items/import/preview', file_name, content) or {}
    return {
        'report': ImportReport.model_validate(data),
        'duplicates': data.get('duplicates') or [],
    }


def commit_stock_import(client, warehouse_id, status, edd, file_name, content) -> Optional[Dict[str, Any]]:
    params = {'type': 'stock_in', **commit_params(warehouse_id, status, edd)}
    logger.info(f"🚀 Committing stock import {file_name} ({status})")
    return client.upload('/items/import', file_name, content, params=params)
