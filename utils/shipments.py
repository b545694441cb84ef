import re
import logging
from urllib.parse import quote
from typing import Any, Dict, List, Optional, Tuple

from constants.data_models import SHIPMENT_LOCKED_STATUSES
from constants.schemas import Shipment, ref_name
from utils.api_client import ApiError
from utils.datetime_utils import to_ymd
from utils.spreadsheets import safe_filename_part

logger = logging.getLogger(__name__)

PALLET_NOTE_RE = re.compile(r'pallet-group:([^;|]+);\s*pallets:(\d+)')


class ShipmentRuleError(ValueError):
    """A shipment action the current state does not allow."""


def is_from_on_process(shipment: Shipment) -> bool:
    return shipment.kind == 'import' and 'on-process' in (shipment.notes or '').lower()


def display_reference(shipment: Shipment) -> str:
    if shipment.kind in ('transfer', 'import') and shipment.reference:
        return f"PO - {shipment.reference}"
    return shipment.reference or shipment.id or '-'


def display_kind(shipment: Shipment) -> str:
    return 'on-process' if is_from_on_process(shipment) else (shipment.kind or '')


def is_edd_locked(shipment: Shipment) -> bool:
    return shipment.status in SHIPMENT_LOCKED_STATUSES


def validate_deliver(shipment: Shipment, today: str) -> str:
    """
    Check that an on-water shipment may be marked delivered.

    Returns:
        str: the EDD (YYYY-MM-DD) the delivery will be booked on
    """
    if shipment.status != 'on_water':
        raise ShipmentRuleError('Only on-water shipments can be delivered')
    edd = to_ymd(shipment.est_delivery_date)
    if not edd:
        raise ShipmentRuleError('Set EDD first')
    if edd > today:
        raise ShipmentRuleError('EDD cannot be in the future')
    return edd


def validate_edd_update(shipment: Shipment, value) -> str:
    edd = to_ymd(value)
    if not edd:
        raise ShipmentRuleError('EDD is required')
    if is_edd_locked(shipment):
        raise ShipmentRuleError(f"EDD is locked for {shipment.status} shipments")
    return edd


def deliver(client, shipment: Shipment, today: str):
    validate_deliver(shipment, today)
    logger.info(f"Delivering shipment {shipment.id}")
    return client.post(f"/shipments/{shipment.id}/deliver")


def update_edd(client, shipment: Shipment, value):
    edd = validate_edd_update(shipment, value)
    return client.put(f"/shipments/{shipment.id}/edd", json={'estDeliveryDate': edd})


def parse_pallet_notes(notes) -> List[Tuple[str, int]]:
    """Extract (group, pallets) pairs from `pallet-group:<name>; pallets:<n>` note segments."""
    body = []
    for match in PALLET_NOTE_RE.finditer(str(notes or '')):
        group_name = match.group(1).strip()
        qty = int(match.group(2))
        if group_name and qty > 0:
            body.append((group_name, qty))
    return body


def list_shipments(client, page=0, page_size=25, status='', q='') -> Tuple[List[Shipment], int]:
    data = client.get('/shipments', params={'page': page, 'pageSize': page_size, 'status': status, 'q': q}) or {}
    items = [Shipment.model_validate(s) for s in data.get('items') or []]
    return items, int(data.get('total') or 0)


def export_meta_rows(shipment: Shipment, warehouse_names: Dict[str, str]) -> List[List[Any]]:
    return [
        ['Reference', shipment.reference or shipment.id or ''],
        ['Kind', display_kind(shipment)],
        ['Status', shipment.status or ''],
        ['To Warehouse', ref_name(shipment.warehouse_id, warehouse_names)],
        ['From Warehouse', ref_name(shipment.source_warehouse_id, warehouse_names)],
        ['Estimated Date', to_ymd(shipment.est_delivery_date)],
    ]


def pallet_export_body(shipment: Shipment, item_group_lookup) -> List[List[Any]]:
    """
    Pallet lines of a shipment.

    On-process imports and pallet transfers carry their lines in the notes.
    Anything else falls back to one row per shipment item, with the item's
    group resolved through item_group_lookup(item_code).
    """
    body = []
    if is_from_on_process(shipment):
        body = [[g, q] for g, q in parse_pallet_notes(shipment.notes)]

    is_pallet_transfer = shipment.kind == 'transfer' and 'pallet-group:' in (shipment.notes or '').lower()
    if not body and is_pallet_transfer:
        body = [[g, q] for g, q in parse_pallet_notes(shipment.notes)]

    if not body:
        groups = {}
        for code in {it.item_code for it in shipment.items if it.item_code}:
            groups[code] = item_group_lookup(code) or ''
        body = [[groups.get(it.item_code, ''), it.qty_pieces if it.qty_pieces is not None else ''] for it in shipment.items]
    return body


def export_filename(shipment: Shipment, warehouse_names: Dict[str, str], ts: str) -> str:
    to_name = ref_name(shipment.warehouse_id, warehouse_names)
    ref = shipment.reference or shipment.id
    return safe_filename_part(f"shipment-pallets-{ref}-({shipment.status or ''})-({to_name})-({ts})") + '.xlsx'


def item_group_lookup_for(client):
    """Build a cached item code -> item group resolver backed by GET /items/{code}."""
    cache: Dict[str, Optional[str]] = {}

    def lookup(code):
        if code not in cache:
            try:
                data = client.get(f"/items/{quote(code, safe='')}") or {}
                cache[code] = data.get('itemGroup') or ''
            except ApiError as e:
                logger.warning(f"Item lookup failed for {code}: {str(e)}")
                cache[code] = ''
        return cache[code]

    return lookup
