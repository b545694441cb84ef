import logging

import streamlit as st
from dotenv import load_dotenv

from utils import notifications
from utils.api_client import get_api_base
from utils.auth import get_client, get_token, login, render_sidebar
from utils.badges import due_today_counts

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)

# Set page configuration
st.set_page_config(
    page_title="📦 Pallet Inventory Console",
    page_icon="📦",
    layout="wide",
    initial_sidebar_state="expanded",
)

PAGES = [
    ("pages/1_pallets.py", "Pallets Summary", "📦"),
    ("pages/2_inventory.py", "Inventory", "🏬"),
    ("pages/3_orders.py", "Orders", "🧾"),
    ("pages/4_on_process.py", "On-Process", "🏭"),
    ("pages/5_ship.py", "Ship", "🚢"),
    ("pages/6_transfer.py", "Transfer", "🔁"),
    ("pages/7_warehouses.py", "Warehouses", "🏢"),
    ("pages/8_item_registry.py", "Item Registry", "🗂️"),
    ("pages/11_transactions.py", "Transactions", "📜"),
    ("pages/10_profile.py", "Profile", "👤"),
]


def render_login():
    st.title("📦 Pallet Inventory Console")
    st.caption(f"Backend: {get_api_base()}")
    with st.form("login"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")

    if submitted:
        try:
            login(username.strip(), password)
        except ValueError as e:
            st.error(f"❌ {str(e)}")
        else:
            logger.info("Signed in from home page")
            st.rerun()


def render_home():
    render_sidebar()
    st.title("📦 Pallet Inventory Console")

    counts = due_today_counts(get_client())
    col1, col2 = st.columns(2)
    col1.metric("Shipments due today", counts['shipments'])
    col2.metric("On-Process batches due today", counts['on_process'])

    st.subheader("Go to")
    cols = st.columns(3)
    for i, (path, label, icon) in enumerate(PAGES):
        with cols[i % 3]:
            st.page_link(path, label=label, icon=icon)


def main():
    if get_token():
        render_home()
    else:
        render_login()
    notifications.render_notifications()


if __name__ == "__main__":
    main()
