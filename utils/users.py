import logging
from typing import List
from urllib.parse import quote

from constants.data_models import USER_ROLES
from constants.schemas import User

logger = logging.getLogger(__name__)


def _user_path(user_id) -> str:
    return f"/users/{quote(str(user_id), safe='')}"


def load_users(client) -> List[User]:
    return [User.model_validate(u) for u in client.get('/users') or []]


def create_user(client, username, password, role='user'):
    if not str(username or '').strip() or not password:
        raise ValueError('username and password required')
    if role not in USER_ROLES:
        raise ValueError(f"Unknown role: {role}")
    logger.info(f"Creating user {username.strip()} ({role})")
    return client.post('/users', json={'username': username.strip(), 'password': password, 'role': role})


def set_role(client, user_id, role):
    if role not in USER_ROLES:
        raise ValueError(f"Unknown role: {role}")
    return client.patch(f"{_user_path(user_id)}/role", json={'role': role})


def set_enabled(client, user_id, enabled):
    return client.patch(f"{_user_path(user_id)}/status", json={'enabled': bool(enabled)})


def reset_password(client, user_id, new_password):
    if not new_password:
        raise ValueError('new password required')
    logger.info(f"Resetting password for user {user_id}")
    return client.post(f"{_user_path(user_id)}/reset-password", json={'newPassword': new_password})
