import streamlit as st

from core.errors import RecordsError
from core.helpers import get_services, patient_label, render_sidebar
from core.session_manager import select_patient, selected_patient_id

services = get_services()
render_sidebar()

st.title("Medical Records")

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

with st.form("record_form"):
    diagnosis = st.text_input("Diagnosis")
    notes = st.text_area("Notes")
    recorded = st.date_input("Record date")
    if st.form_submit_button("File Record"):
        try:
            record = services.medical_records.add_record(choice, diagnosis, notes, record_date=recorded)
            st.success(f"Medical record {record.id} filed.")
        except RecordsError as e:
            st.error(str(e))

st.write("---")

records = services.medical_records.records_for_patient(choice)
if not records:
    st.info("No medical records for this patient.")

for r in records:
    with st.container():
        st.write(f"**{r.id}** {r.record_date:%Y-%m-%d}: {r.diagnosis}")
        if r.notes:
            st.caption(r.notes)
        if st.button("Delete", key=f"del_{r.id}"):
            try:
                services.medical_records.delete_record(r.id)
                st.rerun()
            except RecordsError as e:
                st.error(str(e))
        st.markdown("---")
