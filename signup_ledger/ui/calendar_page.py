"""Calendar page: weekly slot cards and the signup dialog."""
from datetime import date
from itertools import islice
from typing import Iterable, List, Optional, Sequence

import streamlit as st

from signup_ledger.config import Settings
from signup_ledger.models.attendee import PublicAttendee
from signup_ledger.services.calendar_service import generate_slot_dates
from signup_ledger.services.ledger_service import SignupLedger
from signup_ledger.ui.html_utils import escape, html_block
from signup_ledger.utils.date_utils import format_long_date, format_short_month, parse_date_key
from signup_ledger.utils.exceptions import ConflictError, StorageUnavailable, ValidationError

DIALOG_DECORATOR = getattr(st, "dialog", None) or getattr(st, "experimental_dialog", None)

SIGNUP_DIALOG_FLAG = "calendar_signup_dialog_open"
SIGNUP_DIALOG_DATE = "calendar_signup_date"
SIGNUP_FEEDBACK = "calendar_signup_feedback"

CARDS_PER_ROW = 4


def _chunk(items: Iterable[str], size: int) -> Iterable[List[str]]:
    """Yield successive chunks from iterable."""
    iterator = iter(items)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            break
        yield batch


def _attendance_label(count: int) -> str:
    return f"{count} attending" if count else "No one yet"


def _field_key(date_key: str, field: str) -> str:
    return f"calendar_signup_{field}_{date_key}"


def _open_signup_dialog(date_key: str) -> None:
    st.session_state[SIGNUP_DIALOG_DATE] = date_key
    st.session_state[SIGNUP_DIALOG_FLAG] = True


def _close_signup_dialog() -> None:
    date_key = st.session_state.get(SIGNUP_DIALOG_DATE)
    if date_key:
        for field in ("name", "phone", "mass"):
            st.session_state.pop(_field_key(date_key, field), None)
    st.session_state[SIGNUP_DIALOG_FLAG] = False
    st.session_state[SIGNUP_DIALOG_DATE] = None


def _slot_card_html(date_key: str, attendee_count: int) -> str:
    """Return the HTML card for one slot date."""
    day = parse_date_key(date_key).day
    count_badge = (
        f'<span class="slot-card__count">{attendee_count}</span>' if attendee_count else ""
    )
    return html_block(
        f"""
        <div class="slot-card" data-date="{escape(date_key)}">
            <div class="slot-card__day">{day}</div>
            <div class="slot-card__month">{format_short_month(date_key)}</div>
            <div class="slot-card__attendees">{_attendance_label(attendee_count)}{count_badge}</div>
        </div>
        """
    )


def _attendees_list_html(attendees: Sequence[PublicAttendee]) -> str:
    """Return the "Who's coming" list; contact numbers are never shown."""
    if not attendees:
        items_html = '<div class="slot-attendees__empty">No one has signed up yet. Be the first!</div>'
    else:
        items_html = "".join(
            f'<div class="slot-attendees__item">'
            f'<div class="slot-attendees__name">{escape(attendee.name)}</div>'
            f'<div class="slot-attendees__slot">Mass: {escape(attendee.slot_preference)}</div>'
            f"</div>"
            for attendee in attendees
        )

    return html_block(
        f"""
        <div class="slot-attendees">
            <h4>Who's Coming:</h4>
            {items_html}
        </div>
        """
    )


def _inject_calendar_styles() -> None:
    st.markdown(
        html_block(
            """
            <style>
            .slot-card {
                background: linear-gradient(145deg, #fff7ed, #ffedd5);
                border-radius: 16px;
                padding: 18px 12px;
                text-align: center;
                border: 1px solid rgba(234, 88, 12, 0.25);
                box-shadow: 0 8px 20px rgba(124, 45, 18, 0.15);
            }
            .slot-card__day {
                font-size: 32px;
                font-weight: 700;
                color: #9a3412;
            }
            .slot-card__month {
                font-size: 14px;
                letter-spacing: 0.08em;
                text-transform: uppercase;
                color: #c2410c;
            }
            .slot-card__attendees {
                margin-top: 8px;
                font-size: 13px;
                color: #7c2d12;
            }
            .slot-card__count {
                display: inline-block;
                margin-left: 6px;
                min-width: 22px;
                border-radius: 999px;
                background: #ea580c;
                color: #fff;
                font-weight: 600;
            }
            .slot-attendees__item {
                padding: 8px 12px;
                margin-bottom: 6px;
                border-radius: 10px;
                background: rgba(234, 88, 12, 0.08);
            }
            .slot-attendees__name {
                font-weight: 600;
            }
            .slot-attendees__slot, .slot-attendees__empty {
                font-size: 13px;
                color: #78716c;
            }
            </style>
            """
        ),
        unsafe_allow_html=True,
    )


def _render_signup_form(ledger: SignupLedger, settings: Settings, date_key: str) -> None:
    """Render the attendee list and the signup form for one date."""
    st.markdown(f"### {format_long_date(date_key)}")
    public_view = ledger.get_public_view().get(date_key, [])
    st.markdown(_attendees_list_html(public_view), unsafe_allow_html=True)

    name_key = _field_key(date_key, "name")
    phone_key = _field_key(date_key, "phone")
    mass_key = _field_key(date_key, "mass")

    st.text_input("Your Name:", key=name_key, placeholder="Enter your name")
    st.text_input("Phone Number:", key=phone_key, placeholder="Enter your phone number")
    st.selectbox(
        "Mass Preference:",
        options=["", *settings.slot_preferences],
        format_func=lambda option: option or "Select a mass",
        key=mass_key,
    )

    action_cols = st.columns(2, gap="small")
    with action_cols[0]:
        if st.button("Cancel", key=f"calendar_signup_cancel_{date_key}", use_container_width=True):
            _close_signup_dialog()
            st.rerun()

    with action_cols[1]:
        if st.button(
            "Add My Name",
            key=f"calendar_signup_submit_{date_key}",
            use_container_width=True,
            type="primary",
        ):
            name = st.session_state.get(name_key, "").strip()
            phone = st.session_state.get(phone_key, "")
            mass = st.session_state.get(mass_key, "")

            if not name or not phone or not mass:
                st.error("Please fill in all fields.")
                return

            try:
                record = ledger.add_attendee(date_key, name, phone, mass)
            except ConflictError:
                st.error("Someone with this name has already signed up for this date.")
                return
            except (ValidationError, StorageUnavailable) as e:
                st.error(e.message)
                return

            st.session_state[SIGNUP_FEEDBACK] = f"✅ {record.name} added to {format_long_date(date_key)}!"
            _close_signup_dialog()
            st.rerun()


def _render_signup_dialog(ledger: SignupLedger, settings: Settings) -> None:
    """Render the signup dialog, or an inline form if dialogs are unsupported."""
    date_key = st.session_state.get(SIGNUP_DIALOG_DATE)
    if not date_key:
        _close_signup_dialog()
        return

    if DIALOG_DECORATOR:
        @DIALOG_DECORATOR("Sign up")
        def _dialog():
            _render_signup_form(ledger, settings, date_key)

        _dialog()
    else:
        st.warning("Pop-up dialogs are not supported here; using the form below.")
        _render_signup_form(ledger, settings, date_key)


def render_calendar_page(ledger: SignupLedger, settings: Settings, reference: Optional[date] = None) -> None:
    """Render every slot date of the season with its attendee count."""
    _inject_calendar_styles()

    st.markdown("## Thanksgiving Calendar")
    st.caption("Pick a Sunday and add your name to let everyone know you're coming.")

    if settings.storage_backend == "browser":
        ledger.load_or_empty()
    else:
        try:
            ledger.load()
        except StorageUnavailable as e:
            st.error(f"Could not load the calendar: {e.message}")
            return

    feedback = st.session_state.pop(SIGNUP_FEEDBACK, None)
    if feedback:
        st.success(feedback)

    date_keys = generate_slot_dates(reference).date_keys()
    if not date_keys:
        st.info("There are no more dates this year.")
        return

    ledger_data = ledger.get_all()
    for row in _chunk(date_keys, CARDS_PER_ROW):
        cols = st.columns(CARDS_PER_ROW, gap="medium")
        for col, date_key in zip(cols, row):
            with col:
                st.markdown(
                    _slot_card_html(date_key, len(ledger_data.get(date_key, []))),
                    unsafe_allow_html=True,
                )
                if st.button("Sign up", key=f"calendar_card_{date_key}", use_container_width=True):
                    _open_signup_dialog(date_key)

    if st.session_state.get(SIGNUP_DIALOG_FLAG):
        _render_signup_dialog(ledger, settings)
