import re
import math
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from constants.data_models import REGISTRY_COLUMNS
from constants.schemas import Item, ItemGroup, Transaction

logger = logging.getLogger(__name__)

SIZE_RE = re.compile(r'\b(XXL|XL|L|M|S)\b', re.IGNORECASE)
SIZE_RANK = {'S': 1, 'M': 2, 'L': 3, 'XL': 4, 'XXL': 5}

GROUPS_EXPORT_FILENAME = 'pallet_groups.xlsx'
GROUPS_EXPORT_SHEET = 'Groups + Items'
ITEMS_EXPORT_FILENAME = 'items_master.xlsx'
ITEMS_EXPORT_SHEET = 'Items'
ITEMS_TEMPLATE_FILENAME = 'items_template.xlsx'


class RegistryValidationError(ValueError):
    """An item or group form that must not be submitted."""


def size_order(description) -> int:
    """Rank of the first size token in a description: S=1 ... XXL=5, 0 when none."""
    match = SIZE_RE.search(str(description or ''))
    return SIZE_RANK.get(match.group(1).upper(), 0) if match else 0


def base_desc(description) -> str:
    return SIZE_RE.sub('', str(description or '')).strip()


def _exportable(items: List[Item], groups: List[ItemGroup]) -> List[Item]:
    active = {g.name for g in groups if g.active is not False}
    return [it for it in items if it.enabled is not False and (it.item_group or '') in active]


def _export_row(item: Item, pallet_ids: Dict[str, str]) -> List[Any]:
    pack = item.pack_size if item.pack_size is not None else 0
    return [
        item.item_group or '',
        pallet_ids.get(item.item_group or '', ''),
        item.item_code,
        item.description or '',
        item.color or '',
        int(pack) if float(pack).is_integer() else pack,
    ]


def groups_export_rows(items: List[Item], groups: List[ItemGroup]) -> List[List[Any]]:
    """Enabled items of active groups, by group, color, base description, then size."""
    pallet_ids = {g.name: g.line_item or '' for g in groups}
    rows = sorted(_exportable(items, groups), key=lambda it: (
        (it.item_group or '').lower(),
        (it.color or '').lower(),
        base_desc(it.description).lower(),
        size_order(it.description),
    ))
    return [_export_row(it, pallet_ids) for it in rows]


def items_export_rows(items: List[Item], groups: List[ItemGroup]) -> List[List[Any]]:
    """Enabled items of active groups, by group, base description, size, then color."""
    pallet_ids = {g.name: g.line_item or '' for g in groups}
    rows = sorted(_exportable(items, groups), key=lambda it: (
        (it.item_group or '').lower(),
        base_desc(it.description).lower(),
        size_order(it.description),
        (it.color or '').lower(),
    ))
    return [_export_row(it, pallet_ids) for it in rows]


def export_header() -> List[str]:
    return list(REGISTRY_COLUMNS)


def pack_size_from(value) -> Optional[float]:
    """Blank means 0; negative or non-numeric values are rejected with None."""
    if value is None or value == '':
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def validate_item(item_code, item_group, description, color, pack_size) -> Dict[str, Any]:
    """
    Check the new item form.

    Returns:
        dict: the POST /items body (without `enabled`)

    Raises:
        RegistryValidationError: first failing field
    """
    if not str(item_code or '').strip():
        raise RegistryValidationError('Item Code is required')
    if not str(item_group or '').strip():
        raise RegistryValidationError('Pallet Description is required')
    if not str(description or '').strip():
        raise RegistryValidationError('Item Description is required')
    if not str(color or '').strip():
        raise RegistryValidationError('Color is required')
    ps = pack_size_from(pack_size)
    if ps is None:
        raise RegistryValidationError('Pack Size must be a non-negative number')
    return {
        'itemCode': str(item_code).strip(),
        'itemGroup': str(item_group).strip(),
        'description': str(description).strip(),
        'color': str(color).strip(),
        'packSize': ps,
    }


def validate_item_edit(item_group, description, color, pack_size) -> Dict[str, Any]:
    if not str(item_group or '').strip() or not str(description or '').strip() or not str(color or '').strip():
        raise RegistryValidationError('All fields are required')
    ps = pack_size_from(pack_size)
    if ps is None:
        raise RegistryValidationError('Pack Size must be a non-negative number')
    return {
        'itemGroup': str(item_group).strip(),
        'description': str(description).strip(),
        'color': str(color).strip(),
        'packSize': ps,
    }


def group_import_message(report: Dict[str, Any]) -> Tuple[str, str]:
    """(toast kind, text) summarising a Pallet Description import"""
    created = report.get('created') or 0
    issues = report.get('errorCount') or 0
    if issues:
        return 'warning', f"Import completed with issues. Created: {created}, Issues: {issues}. See details below."
    return 'success', f"Import completed. Created: {created}."


def registry_import_message(report: Dict[str, Any]) -> str:
    return (
        f"Import completed. Created: {report.get('created', 0)}, "
        f"Updated: {report.get('updated', 0)}, Skipped: {report.get('skipped', 0)}"
    )


def unregistered_group_hint(errors) -> str:
    """Point at rows whose errors mention an unregistered group."""
    group_errors = [
        e for e in errors or []
        if any('group' in str(s).lower() for s in e.get('errors') or [])
    ]
    if not group_errors:
        return ''
    first = ', '.join(f"Row {e.get('rowNum')} ({e.get('itemCode') or ''})" for e in group_errors[:5])
    more = '...' if len(group_errors) > 5 else ''
    return f" Possible cause: Some Item Groups are not registered. Affected: {len(group_errors)}. {first}{more}"


# --- API calls ---


def _item_path(code) -> str:
    return f"/items/{quote(str(code), safe='')}"


def load_registry(client) -> Tuple[List[ItemGroup], List[Item]]:
    groups = [ItemGroup.model_validate(g) for g in client.get('/item-groups') or []]
    items = [Item.model_validate(i) for i in client.get('/items', params={'includeDisabled': 1}) or []]
    logger.info(f"Loaded registry: {len(groups)} Pallet Descriptions, {len(items)} items")
    return groups, items


def create_group(client, name):
    if not str(name or '').strip():
        raise RegistryValidationError('Pallet Description is required')
    return client.post('/item-groups', json={'name': name.strip()})


def update_group(client, group_id, **fields):
    """PUT /item-groups/{id}; fields use the API names (active, lineItem, name)"""
    return client.put(f"/item-groups/{group_id}", json=fields)


def delete_group(client, group_id):
    return client.delete(f"/item-groups/{group_id}")


def import_groups(client, file_name, content) -> Dict[str, Any]:
    return client.upload('/item-groups/import', file_name, content) or {}


def create_item(client, payload: Dict[str, Any], enabled=True):
    return client.post('/items', json={**payload, 'enabled': bool(enabled)})


def update_item(client, code, payload: Dict[str, Any]):
    return client.put(_item_path(code), json=payload)


def delete_item(client, code, group=''):
    return client.delete(_item_path(code), params={'group': group})


def import_items(client, file_name, content) -> Dict[str, Any]:
    return client.upload('/items/registry-import', file_name, content) or {}


def load_item(client, code) -> Item:
    return Item.model_validate(client.get(_item_path(code)) or {'itemCode': code})


def load_item_history(client, code, limit=200) -> List[Transaction]:
    data = client.get('/transactions', params={'itemCode': code, 'limit': limit}) or {}
    rows = data.get('items') if isinstance(data, dict) else data
    return [Transaction.model_validate(t) for t in rows or []]


def set_low_stock_threshold(client, code, threshold):
    value = pack_size_from(threshold)
    if value is None:
        raise RegistryValidationError('Threshold must be a non-negative number')
    return client.put(_item_path(code), json={'lowStockThreshold': value})
