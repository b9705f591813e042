"""Operator authentication for the admin panel."""
import hmac
from typing import Tuple

import streamlit as st

from signup_ledger.config import Settings

ADMIN_STATE_KEY = "admin_authenticated"


def authenticate_admin(username: str, password: str, settings: Settings) -> bool:
    """
    Check operator credentials against the configured ones.

    Returns:
        True if credentials match; always False while no admin password
        is configured
    """
    if not settings.admin_password:
        return False

    username_ok = hmac.compare_digest((username or "").encode("utf-8"), settings.admin_username.encode("utf-8"))
    password_ok = hmac.compare_digest((password or "").encode("utf-8"), settings.admin_password.encode("utf-8"))
    return username_ok and password_ok


def is_admin_authenticated() -> bool:
    """True if the operator logged in during this Streamlit session."""
    return st.session_state.get(ADMIN_STATE_KEY, False)


def login_admin(username: str, password: str, settings: Settings) -> Tuple[bool, str]:
    """
    Log in the operator.

    Returns:
        (True, "Logged in") on success, (False, reason) otherwise
    """
    if not settings.admin_password:
        return False, "Admin login is disabled (ADMIN_PASSWORD is not set)"
    if authenticate_admin(username, password, settings):
        st.session_state[ADMIN_STATE_KEY] = True
        return True, "Logged in"
    return False, "Invalid username or password"


def logout_admin() -> None:
    st.session_state.pop(ADMIN_STATE_KEY, None)
