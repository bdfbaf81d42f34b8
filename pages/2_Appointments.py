from datetime import datetime, time

import streamlit as st

from core.errors import RecordsError
from core.helpers import get_services, patient_label, render_sidebar
from core.session_manager import select_patient, selected_patient_id
from models.appointment import AppointmentStatus

services = get_services()
render_sidebar()

st.title("Appointments")

patients = services.patients.list_patients()
if not patients:
    st.info("Register a patient first.")
    st.stop()

ids = [p.id for p in patients]
current = selected_patient_id()
choice = st.selectbox(
    "Patient",
    ids,
    index=ids.index(current) if current in ids else 0,
    format_func=lambda pid: patient_label(next(p for p in patients if p.id == pid)),
)
if choice != current:
    select_patient(choice)

with st.form("appointment_form"):
    appt_type = st.text_input("Type / Description", placeholder="Follow-up consultation")
    day = st.date_input("Date")
    at = st.time_input("Time", value=time(9, 0))
    if st.form_submit_button("Schedule"):
        try:
            appt = services.appointments.schedule_appointment(choice, appt_type, datetime.combine(day, at))
            st.success(f"Appointment {appt.id} scheduled.")
        except RecordsError as e:
            st.error(str(e))

st.write("---")

appointments = services.appointments.appointments_for_patient(choice)
if not appointments:
    st.info("No appointments for this patient.")

statuses = [s.value for s in AppointmentStatus]
for a in appointments:
    with st.container():
        st.write(f"**{a.id}** - {a.type} on {a.date_time:%Y-%m-%d %H:%M} ({a.status.value})")
        col1, col2, col3 = st.columns([2, 1, 1])
        with col1:
            new_status = st.selectbox(
                "Status", statuses, index=statuses.index(a.status.value), key=f"status_{a.id}"
            )
        with col2:
            if st.button("Update", key=f"upd_{a.id}"):
                try:
                    services.appointments.set_status(a.id, new_status)
                    st.rerun()
                except RecordsError as e:
                    st.error(str(e))
        with col3:
            if st.button("Delete", key=f"del_{a.id}"):
                try:
                    services.appointments.delete_appointment(a.id)
                    st.rerun()
                except RecordsError as e:
                    st.error(str(e))
        st.markdown("---")
