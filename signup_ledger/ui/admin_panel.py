"""Operator panel: exports of the roster and written CSV artifacts."""
import logging
import traceback

import streamlit as st

from signup_ledger.config import Settings
from signup_ledger.services.admin_service import is_admin_authenticated, login_admin, logout_admin
from signup_ledger.services.export_service import ExportVariant, export_filename
from signup_ledger.services.ledger_service import SignupLedger
from signup_ledger.utils.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)

VARIANT_LABELS = {
    ExportVariant.FULL: "Backend (with phone numbers)",
    ExportVariant.PUBLIC: "Public (names and mass only)",
}


def _show_admin_exception(error: Exception, context: str) -> None:
    """Display error details in UI and log full traceback."""
    logger.exception("Admin panel error during %s", context)

    st.error(f"❌ {context} failed: {error}")
    with st.expander("🔍 Error details"):
        st.code("".join(traceback.format_exception(type(error), error, error.__traceback__)))


def render_login_page(settings: Settings) -> None:
    """Render the operator login form."""
    st.markdown("### 🔐 Operator login")

    with st.form("admin_login_form", clear_on_submit=False):
        username = st.text_input("Username", key="admin_username_input")
        password = st.text_input("Password", type="password", key="admin_password_input")
        submit = st.form_submit_button("Log in", type="primary")

    if submit:
        success, message = login_admin(username, password, settings)
        if success:
            st.success(message)
            st.rerun()
        else:
            st.error(message)


def _render_downloads(ledger: SignupLedger) -> None:
    st.markdown("#### Download roster")
    for variant, label in VARIANT_LABELS.items():
        st.markdown(f"**{label}**")
        json_col, csv_col = st.columns(2, gap="small")
        with json_col:
            st.download_button(
                "⬇️ JSON",
                data=ledger.export_json(variant),
                file_name=export_filename(variant, "json"),
                mime="application/json",
                key=f"admin_download_json_{variant.value}",
                use_container_width=True,
            )
        with csv_col:
            st.download_button(
                "⬇️ CSV",
                data=ledger.export_csv(variant),
                file_name=export_filename(variant, "csv"),
                mime="text/csv",
                key=f"admin_download_csv_{variant.value}",
                use_container_width=True,
            )


def _render_csv_artifacts(ledger: SignupLedger) -> None:
    st.markdown("#### CSV files on the server")

    write_cols = st.columns(len(VARIANT_LABELS), gap="small")
    for col, variant in zip(write_cols, VARIANT_LABELS):
        with col:
            if st.button(f"💾 Write {variant.value} CSV", key=f"admin_write_{variant.value}", use_container_width=True):
                try:
                    filename = ledger.write_csv(variant)
                except StorageUnavailable as e:
                    _show_admin_exception(e, "Writing CSV")
                else:
                    st.success(f"Wrote {filename}")

    try:
        artifacts = ledger.list_csv_files()
    except StorageUnavailable as e:
        _show_admin_exception(e, "Listing CSV files")
        return

    if not artifacts:
        st.info("No CSV files written yet.")
        return

    for info in artifacts:
        name_col, meta_col, action_col = st.columns([3, 2, 1], gap="small")
        name_col.write(info.filename)
        meta_col.caption(f"{info.size} bytes · {info.modified or 'unknown date'}")
        with action_col:
            content = ledger.read_csv_file(info.filename)
            if content is not None:
                st.download_button(
                    "⬇️",
                    data=content,
                    file_name=info.filename,
                    mime="text/csv",
                    key=f"admin_artifact_{info.filename}",
                )

def _render_clear_data(ledger: SignupLedger) -> None:
    """Reset for the client-only variant: drops this session's signups and CSV files."""
    st.markdown("#### Reset")
    confirm = st.checkbox("I understand this deletes every signup in this session", key="admin_clear_confirm")
    if st.button("🗑️ Clear all data", type="primary", disabled=not confirm, key="admin_clear_all"):
        ledger.clear_all()
        st.session_state.pop("admin_clear_confirm", None)
        st.success("All calendar data cleared.")
        st.rerun()



def render_admin_panel(ledger: SignupLedger, settings: Settings) -> None:
    """Render the operator panel, asking for login first."""
    if not is_admin_authenticated():
        render_login_page(settings)
        return

    header_col, logout_col = st.columns([4, 1])
    header_col.markdown("### 🛠️ Operator panel")
    with logout_col:
        if st.button("🚪 Log out", use_container_width=True):
            logout_admin()
            st.rerun()

    if settings.storage_backend == "browser":
        ledger_data = ledger.load_or_empty()
    else:
        try:
            ledger_data = ledger.load()
        except StorageUnavailable as e:
            _show_admin_exception(e, "Loading calendar data")
            return

    total = sum(len(records) for records in ledger_data.values())
    st.caption(f"{total} signups across {len(ledger_data)} dates · storage: {ledger.backend.name}")

    _render_downloads(ledger)
    st.markdown("---")
    _render_csv_artifacts(ledger)

    if settings.storage_backend == "browser":
        st.markdown("---")
        _render_clear_data(ledger)
