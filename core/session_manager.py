import streamlit as st


def init_session_state():
    """Ensure required session keys exist."""
    if "selected_patient" not in st.session_state:
        st.session_state.selected_patient = None


def select_patient(patient_id: str):
    """Remember only the id; pages fetch the record again on every run."""
    st.session_state.selected_patient = patient_id


def selected_patient_id():
    init_session_state()
    return st.session_state.selected_patient


def clear_selection():
    """Clear the selected patient without redirect."""
    st.session_state.pop("selected_patient", None)
