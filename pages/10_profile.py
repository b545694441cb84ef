import streamlit as st

from utils import notifications
from utils.api_client import ApiError, error_message
from utils.auth import change_password, current_user, require_auth

st.set_page_config(
    page_title="Profile",
    page_icon="👤",
    layout="wide"
)


def main():
    require_auth()
    st.title("👤 Profile")

    user = current_user()
    st.write(f"Signed in as **{user.get('username') or user.get('name') or user.get('email') or 'user'}** ({user.get('role', 'user')})")

    with st.form("change_password", clear_on_submit=True):
        st.subheader("Change Password")
        old_password = st.text_input("Current password", type="password")
        new_password = st.text_input("New password", type="password")
        confirm = st.text_input("Confirm new password", type="password")
        if st.form_submit_button("Update Password"):
            try:
                change_password(old_password, new_password, confirm)
            except ValueError as e:
                notifications.error(str(e))
            except ApiError as e:
                notifications.error(error_message(e, 'Failed to update password'))
            else:
                notifications.success('Password updated')

    notifications.render_notifications()


if __name__ == "__main__":
    main()
