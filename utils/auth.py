import base64
import json
import logging
from typing import Any, Dict

import streamlit as st

from constants.data_models import BADGE_POLL_SECONDS
from utils.api_client import ApiError, InventoryApiClient, error_message
from utils.badges import due_today_counts

logger = logging.getLogger(__name__)

TOKEN_KEY = 'auth_token'
LOGIN_PAGE = 'app.py'


def decode_token_payload(token) -> Dict[str, Any]:
    """
    Decode the claims segment of a JWT without verifying it.

    The server verifies the signature on every call; the client only reads
    display claims (name, role). Returns {} for anything malformed.
    """
    if not token or not isinstance(token, str):
        return {}
    parts = token.split('.')
    if len(parts) < 2 or not parts[1]:
        return {}
    segment = parts[1]
    segment += '=' * (-len(segment) % 4)
    try:
        decoded = base64.urlsafe_b64decode(segment.encode('ascii'))
        payload = json.loads(decoded.decode('utf-8'))
    except (ValueError, UnicodeError):
        return {}
    return payload if isinstance(payload, dict) else {}


def get_user_initial(payload) -> str:
    for claim in ('name', 'username', 'email'):
        value = str((payload or {}).get(claim) or '').strip()
        if value:
            return value[0].upper()
    return 'U'


def is_admin(payload) -> bool:
    return (payload or {}).get('role') == 'admin'


def get_token():
    return st.session_state.get(TOKEN_KEY)


def current_user() -> Dict[str, Any]:
    return decode_token_payload(get_token())


def get_client() -> InventoryApiClient:
    """API client bound to the signed-in user's token"""
    return InventoryApiClient(token=get_token())


def login(username, password):
    """
    Sign in against /auth/login and keep the token in the session.

    Raises:
        ValueError: with the message to show when sign-in fails.
    """
    client = InventoryApiClient()
    try:
        data = client.post('/auth/login', json={'username': username, 'password': password})
    except ApiError as e:
        raise ValueError(error_message(e, 'Login failed')) from e

    token = (data or {}).get('token') if isinstance(data, dict) else None
    if not token:
        raise ValueError('Login failed')

    st.session_state[TOKEN_KEY] = token
    logger.info(f"✅ Signed in as {username}")
    return token


def logout():
    """Drop the token and every cached page dataset."""
    for key in list(st.session_state.keys()):
        del st.session_state[key]
    logger.info("Signed out")


@st.fragment(run_every=BADGE_POLL_SECONDS)
def due_today_badges():
    counts = due_today_counts(get_client())
    st.markdown(f"🚢 Ship due today: **{counts['shipments']}**")
    st.markdown(f"🏭 On-Process due today: **{counts['on_process']}**")


def render_sidebar():
    """User marker, logout and the due-today badges."""
    payload = current_user()
    with st.sidebar:
        label = f"**{get_user_initial(payload)}**"
        if is_admin(payload):
            label += " · admin"
        st.markdown(label)
        due_today_badges()
        if st.button("Logout", key="sidebar_logout"):
            logout()
            st.switch_page(LOGIN_PAGE)


def require_auth():
    """Send visitors without a token to the login page."""
    if get_token():
        render_sidebar()
        return
    st.warning("Please sign in to continue.")
    st.switch_page(LOGIN_PAGE)
    st.stop()


def require_admin():
    require_auth()
    if not is_admin(current_user()):
        st.error("❌ Admin access required.")
        st.stop()


def change_password(old_password, new_password, confirm):
    """Validate and submit a password change for the signed-in user."""
    if not old_password or not new_password:
        raise ValueError('Fill all fields')
    if new_password != confirm:
        raise ValueError('Passwords do not match')
    get_client().post('/auth/change-password', json={'oldPassword': old_password, 'newPassword': new_password})
