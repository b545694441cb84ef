import logging
from typing import List

from constants.schemas import Warehouse

logger = logging.getLogger(__name__)


def load_warehouses(client, q='') -> List[Warehouse]:
    data = client.get('/warehouses', params={'q': str(q or '').strip()}) or []
    return [Warehouse.model_validate(w) for w in data]


def warehouse_names(warehouses: List[Warehouse]):
    return {w.id: w.name for w in warehouses}


def create_warehouse(client, name, address=''):
    if not str(name or '').strip():
        raise ValueError('Name is required')
    logger.info(f"Adding warehouse {name.strip()}")
    return client.post('/warehouses', json={'name': name.strip(), 'address': address or ''})


def update_warehouse(client, warehouse_id, name, address=''):
    if not str(name or '').strip():
        raise ValueError('Name is required')
    return client.put(f"/warehouses/{warehouse_id}", json={'name': name.strip(), 'address': address or ''})


def delete_warehouse(client, warehouse_id):
    logger.info(f"Deleting warehouse {warehouse_id}")
    return client.delete(f"/warehouses/{warehouse_id}")
