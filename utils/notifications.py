import logging

import streamlit as st

logger = logging.getLogger(__name__)

TOAST_ICONS = {
    'success': '✅',
    'error': '❌',
    'info': 'ℹ️',
    'warning': '⚠️',
}

_QUEUE_KEY = '_pending_toasts'


def notify(kind, message):
    """Queue a toast. Queued toasts survive st.rerun() and show on the next render."""
    if kind not in TOAST_ICONS:
        kind = 'info'
    if kind == 'error':
        logger.warning(f"User-facing error: {message}")
    st.session_state.setdefault(_QUEUE_KEY, []).append((kind, str(message)))


def success(message):
    notify('success', message)


def error(message):
    notify('error', message)


def info(message):
    notify('info', message)


def warning(message):
    notify('warning', message)


def render_notifications():
    """Show and clear every queued toast."""
    pending = st.session_state.pop(_QUEUE_KEY, [])
    for kind, message in pending:
        st.toast(message, icon=TOAST_ICONS.get(kind))
