import logging
from typing import Dict

from utils.api_client import ApiError

logger = logging.getLogger(__name__)

DUE_TODAY_ENDPOINTS = {
    'shipments': '/shipments/due-today',
    'on_process': '/on-process/batches/due-today',
}


def due_today_count(client, path) -> int:
    """{count} from a due-today endpoint; 0 on any failure."""
    try:
        data = client.get(path) or {}
        return int(data.get('count') or 0)
    except (ApiError, AttributeError, TypeError, ValueError) as e:
        logger.debug(f"Due-today count unavailable for {path}: {str(e)}")
        return 0


def due_today_counts(client) -> Dict[str, int]:
    return {key: due_today_count(client, path) for key, path in DUE_TODAY_ENDPOINTS.items()}
