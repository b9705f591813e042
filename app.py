"""
Thanksgiving calendar: weekly signup tracker
Streamlit entry point (`streamlit run app.py`)
"""
import logging

import streamlit as st

from signup_ledger.config import Settings, configure_logging, load_settings
from signup_ledger.services.ledger_factory import build_ledger
from signup_ledger.services.ledger_service import SignupLedger
from signup_ledger.ui.admin_panel import render_admin_panel
from signup_ledger.ui.calendar_page import render_calendar_page

logger = logging.getLogger(__name__)


st.set_page_config(
    page_title="Thanksgiving Calendar",
    page_icon="🦃",
    layout="wide",
    initial_sidebar_state="collapsed"
)


@st.cache_resource
def get_settings() -> Settings:
    settings = load_settings()
    configure_logging(settings.log_level)
    return settings


@st.cache_resource
def get_shared_ledger(_settings: Settings) -> SignupLedger:
    """One ledger per server process for file and remote backends."""
    return build_ledger(_settings)


def get_ledger(settings: Settings) -> SignupLedger:
    """Return the ledger for this session."""
    if settings.storage_backend != "browser":
        return get_shared_ledger(settings)

    # Client-only variant: data lives with the visitor's session
    if "browser_ledger" not in st.session_state:
        st.session_state.browser_ledger = build_ledger(settings, store=st.session_state)
    return st.session_state.browser_ledger


def initialize_session_state():
    """Initialize session state defaults."""
    if "current_page" not in st.session_state:
        st.session_state.current_page = "calendar"


def apply_custom_css():
    """Apply app-wide styles."""
    st.markdown("""
        <style>
        .stApp {
            background: linear-gradient(135deg, #fffbeb 0%, #fef3c7 50%, #fde68a 100%);
        }

        #MainMenu {visibility: hidden;}
        footer {visibility: hidden;}

        .stButton > button {
            border-radius: 12px;
            font-weight: 600;
            transition: all 0.3s;
        }

        .stButton > button[kind="primary"] {
            background: linear-gradient(145deg, #ea580c, #c2410c);
            color: white;
            border: none;
        }
        </style>
    """, unsafe_allow_html=True)


def render_navigation():
    """Render the page switcher."""
    nav_col1, _, nav_col3 = st.columns([1, 3, 1], gap="small")

    with nav_col1:
        if st.button("📅 Calendar", use_container_width=True, key="nav_calendar"):
            st.session_state.current_page = "calendar"

    with nav_col3:
        if st.button("👤 Operator", use_container_width=True, key="nav_admin"):
            st.session_state.current_page = "admin"


def render_current_page(ledger: SignupLedger, settings: Settings):
    """Render the page selected in session state."""
    try:
        if st.session_state.current_page == "calendar":
            render_calendar_page(ledger, settings)

        elif st.session_state.current_page == "admin":
            render_admin_panel(ledger, settings)

        else:
            st.error(f"Unknown page: {st.session_state.current_page}")
            if st.button("Back to calendar"):
                st.session_state.current_page = "calendar"
                st.rerun()

    except Exception as e:
        # Error boundary
        logger.exception("Unhandled exception while rendering page")
        st.error("Something went wrong, please try again later.")

        with st.expander("🔍 Error details"):
            st.code(str(e))

        if st.button("Back to calendar"):
            st.session_state.current_page = "calendar"
            st.rerun()


def main():
    """Application entry point."""
    try:
        settings = get_settings()
        ledger = get_ledger(settings)

        initialize_session_state()
        apply_custom_css()

        render_navigation()
        render_current_page(ledger, settings)
    except Exception as e:
        logger.exception("Unhandled exception during app execution")
        st.error("The application hit an error, please reload the page.")
        st.code(str(e))

        if st.button("🔄 Reload"):
            st.session_state.clear()
            st.rerun()


if __name__ == "__main__":
    main()
