import streamlit as st

from core.config import configure_logging, get_config
from services import Services, build_services


@st.cache_resource
def get_services() -> Services:
    """Build the composition root once per Streamlit server process."""
    cfg = get_config()
    configure_logging(cfg.LOG_LEVEL, cfg.LOG_FILE)
    return build_services(cfg=cfg)


def patient_label(patient) -> str:
    return f"{patient.full_name} ({patient.id})"


# -----------------------------
# Sidebar helpers
# -----------------------------
def hide_default_sidebar_nav():
    """Hide Streamlit's default multi-page navigation for a cleaner custom menu."""
    st.markdown(
        """
        <style>
        /* Hide the auto-generated Pages section */
        [data-testid="stSidebarNav"] { display: none; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_sidebar():
    """Render the records menu.

    Items:
    - Home
    - Patients
    - Appointments
    - Billing
    - Medical Records
    """
    hide_default_sidebar_nav()
    with st.sidebar:
        st.markdown("### Records Menu")
        if st.button("Home", use_container_width=True):
            st.switch_page("app.py")
        if st.button("Patients", use_container_width=True):
            st.switch_page("pages/1_Patients.py")
        if st.button("Appointments", use_container_width=True):
            st.switch_page("pages/2_Appointments.py")
        if st.button("Billing", use_container_width=True):
            st.switch_page("pages/3_Billing.py")
        if st.button("Medical Records", use_container_width=True):
            st.switch_page("pages/4_Medical_Records.py")
