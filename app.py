import streamlit as st

from core.helpers import get_services, render_sidebar
from core.session_manager import init_session_state


def go_to(page_path: str):
    st.switch_page(page_path)


def main():
    st.set_page_config(
        page_title="Hospital Records",
        page_icon="🏥",
        layout="wide",
        initial_sidebar_state="expanded",
    )

    init_session_state()
    services = get_services()
    render_sidebar()

    st.title("Hospital Records")
    st.write("---")

    patients = services.patients.list_patients()
    admitted = services.patients.list_admitted()
    appointments = services.appointments.list_appointments()
    bills = services.billing.list_bills()
    records = services.medical_records.list_records()

    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("Patients", len(patients))
    c2.metric("Admitted", len(admitted))
    c3.metric("Appointments", len(appointments))
    c4.metric("Bills", len(bills))
    c5.metric("Medical Records", len(records))

    st.subheader("Quick navigation")

    n1, n2, n3, n4 = st.columns(4)
    with n1:
        if st.button("Manage Patients"):
            go_to("pages/1_Patients.py")
    with n2:
        if st.button("Appointments"):
            go_to("pages/2_Appointments.py")
    with n3:
        if st.button("Billing"):
            go_to("pages/3_Billing.py")
    with n4:
        if st.button("Medical Records"):
            go_to("pages/4_Medical_Records.py")

    if admitted:
        st.subheader("Currently admitted")
        for p in admitted:
            st.write(f"**{p.full_name}** - {p.id}, Blood type: {p.blood_type}")


if __name__ == "__main__":
    main()
