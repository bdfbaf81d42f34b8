import streamlit as st

from core.errors import RecordsError
from core.helpers import get_services, patient_label, render_sidebar
from core.session_manager import clear_selection, select_patient, selected_patient_id
from models.patient import BLOOD_TYPES

GENDERS = ["Male", "Female", "Other", "Prefer not to say"]

services = get_services()
render_sidebar()

st.title("Patients")

# Step 1: Search existing patients
st.subheader("Find a Patient")
search_query = st.text_input("Search by name or patient ID", placeholder="e.g., John or P103")

matches = services.patients.search_patients(search_query)
if not matches:
    st.info("No patients found.")
for p in matches[:25]:
    col1, col2 = st.columns([4, 1])
    with col1:
        status = "Admitted" if p.is_admitted else "Not admitted"
        st.write(f"**{p.full_name}** - ID: {p.id}, Age: {p.age}, Blood type: {p.blood_type}, {status}")
    with col2:
        if st.button("Select", key=f"sel_{p.id}"):
            select_patient(p.id)
            st.rerun()

st.write("---")

# Step 2: Register new patient
with st.expander("Register New Patient", expanded=not matches):
    with st.form("patient_form"):
        first_name = st.text_input("First Name")
        last_name = st.text_input("Last Name")
        dob = st.date_input("Date of Birth", value=None, format="YYYY-MM-DD")
        gender = st.selectbox("Gender", GENDERS)
        contact = st.text_input("Contact Number")
        address = st.text_area("Address")
        blood_type = st.selectbox("Blood Type", BLOOD_TYPES, index=len(BLOOD_TYPES) - 1)
        submitted = st.form_submit_button("Create New Patient")

        if submitted:
            try:
                patient = services.patients.register_patient(
                    first_name, last_name, dob, gender, contact, address, blood_type
                )
                select_patient(patient.id)
                st.success(f"Patient created! ID: {patient.id}")
            except RecordsError as e:
                st.error(str(e))

# Step 3: Selected patient. Always fetched fresh by id.
patient_id = selected_patient_id()
if not patient_id:
    st.stop()

patient = services.patients.find_patient(patient_id)
if not patient:
    st.error(f"Patient {patient_id} no longer exists.")
    clear_selection()
    st.stop()

st.write("---")
st.subheader(patient_label(patient))
st.caption(f"Age: {patient.age} • Gender: {patient.gender or '-'} • Blood type: {patient.blood_type}")

with st.expander("Edit Patient Info", expanded=False):
    with st.form("edit_patient_form"):
        new_first = st.text_input("First Name", value=patient.first_name)
        new_last = st.text_input("Last Name", value=patient.last_name)
        new_dob = st.date_input("Date of Birth", value=patient.date_of_birth, format="YYYY-MM-DD")
        new_gender = st.selectbox(
            "Gender", GENDERS,
            index=GENDERS.index(patient.gender) if patient.gender in GENDERS else 0,
        )
        new_contact = st.text_input("Contact Number", value=patient.contact_number)
        new_address = st.text_area("Address", value=patient.address)
        new_blood = st.selectbox("Blood Type", BLOOD_TYPES, index=BLOOD_TYPES.index(patient.blood_type))
        if st.form_submit_button("Save Changes", type="primary"):
            try:
                services.patients.update_patient(
                    patient.id,
                    first_name=new_first,
                    last_name=new_last,
                    date_of_birth=new_dob or "",
                    gender=new_gender,
                    contact_number=new_contact,
                    address=new_address,
                    blood_type=new_blood,
                )
                st.success("Patient info updated.")
                st.rerun()
            except RecordsError as e:
                st.error(str(e))

c1, c2 = st.columns(2)
with c1:
    if patient.is_admitted:
        if st.button("Discharge", use_container_width=True):
            services.patients.discharge_patient(patient.id)
            st.rerun()
    else:
        if st.button("Admit", use_container_width=True):
            services.patients.admit_patient(patient.id)
            st.rerun()
with c2:
    if st.button("Appointments", use_container_width=True):
        st.switch_page("pages/2_Appointments.py")

# Danger zone: delete patient
with st.expander("Delete Patient", expanded=False):
    check = services.patients.check_deletion(patient.id)
    if not check.allowed:
        st.warning(f"This patient still has {', '.join(check.blocking_reasons)} and cannot be deleted.")
    confirm = st.text_input("Type DELETE to confirm", value="")
    if st.button("Delete Patient", type="secondary", help="Irreversible action"):
        if confirm.strip().upper() != "DELETE":
            st.error("Confirmation text does not match DELETE.")
        else:
            try:
                services.patients.delete_patient(patient.id)
                clear_selection()
                st.success("Patient deleted.")
                st.rerun()
            except RecordsError as e:
                st.error(str(e))
