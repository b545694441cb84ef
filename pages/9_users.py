import pandas as pd
import streamlit as st

from constants.data_models import USER_ROLES
from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import get_client, require_admin
from utils.datetime_utils import format_datetime_us
from utils.users import create_user, load_users, reset_password, set_enabled, set_role

st.set_page_config(
    page_title="Users",
    page_icon="👥",
    layout="wide"
)


def main():
    require_admin()
    st.title("👥 Users")
    client = get_client()

    try:
        users = load_users(client)
    except ApiError as e:
        st.error(f"❌ {error_message(e, 'Failed to load users')}")
        users = []

    st.dataframe(pd.DataFrame([
        {
            'Username': u.username,
            'Role': u.role,
            'Enabled': u.enabled is not False,
            'Created': format_datetime_us(u.created_at),
        }
        for u in users
    ]), use_container_width=True, hide_index=True)

    with st.form("create_user", clear_on_submit=True):
        st.subheader("Create User")
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        role = st.selectbox("Role", USER_ROLES, index=USER_ROLES.index('user'))
        if st.form_submit_button("Create"):
            try:
                create_user(client, username, password, role)
            except ValueError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Failed to create user'))
            else:
                notifications.success('User created')
                st.rerun()

    if users:
        st.subheader("Manage User")
        by_name = {u.username: u for u in users}
        user = by_name[st.selectbox("User", list(by_name.keys()))]
        enabled = user.enabled is not False

        col1, col2, col3 = st.columns(3)
        with col1:
            new_role = st.selectbox("Role", USER_ROLES, index=USER_ROLES.index(user.role) if user.role in USER_ROLES else 1,
                                    key=f"role_{user.id}")
            if st.button("Save Role", key=f"role_btn_{user.id}"):
                try:
                    set_role(client, user.id, new_role)
                except ApiError as e:
                    notifications.error(error_message(e, 'Failed to update role'))
                else:
                    notifications.success('Role updated')
                    st.rerun()
        with col2:
            if st.button("Disable" if enabled else "Enable", key=f"status_btn_{user.id}"):
                try:
                    set_enabled(client, user.id, not enabled)
                except ApiError as e:
                    notifications.error(error_message(e, 'Failed to update status'))
                else:
                    notifications.success('User disabled' if enabled else 'User enabled')
                    st.rerun()
        with col3:
            new_password = st.text_input("New password", type="password", key=f"reset_{user.id}")
            if st.button("Reset Password", key=f"reset_btn_{user.id}"):
                try:
                    reset_password(client, user.id, new_password)
                except ValueError as e:
                    notifications.error(str(e))
                except ApiError as e:
                    notifications.error(error_message(e, 'Failed to reset password'))
                else:
                    notifications.success('Password reset')

    notifications.render_notifications()


if __name__ == "__main__":
    main()
