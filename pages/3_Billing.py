import streamlit as st

from core.errors import RecordsError
from core.helpers import get_services, patient_label, render_sidebar
from core.session_manager import select_patient, selected_patient_id

PAYMENT_METHODS = ["CASH", "CARD", "INSURANCE", "TRANSFER"]

services = get_services()
render_sidebar()

st.title("Billing")

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

st.metric("Outstanding balance", f"{services.billing.outstanding_balance(choice):.2f}")

with st.form("bill_form"):
    total = st.number_input("Total amount", min_value=0.0, step=10.0, format="%.2f")
    paid = st.number_input("Paid now", min_value=0.0, step=10.0, format="%.2f")
    method = st.selectbox("Payment method", PAYMENT_METHODS)
    if st.form_submit_button("Issue Bill"):
        try:
            bill = services.billing.create_bill(choice, total, amount_paid=paid, payment_method=method)
            st.success(f"Bill {bill.id} issued ({bill.status}).")
        except RecordsError as e:
            st.error(str(e))

st.write("---")

bills = services.billing.find_bills_by_patient(choice)
if not bills:
    st.info("No bills for this patient.")

for b in bills:
    with st.container():
        paid_on = f", paid {b.date_paid:%Y-%m-%d}" if b.date_paid else ""
        st.write(
            f"**{b.id}** issued {b.date_issued:%Y-%m-%d}: {b.amount_paid:.2f} / {b.total_amount:.2f} "
            f"({b.status}{paid_on})"
        )
        for p in services.billing.payments_for_bill(b.id):
            st.caption(f"{p.id}: {p.amount:.2f} by {p.payment_method} on {p.payment_date_time:%Y-%m-%d %H:%M} ({p.status.value})")
        col1, col2, col3, col4 = st.columns([2, 1, 1, 1])
        with col1:
            amount = st.number_input("Payment", min_value=0.0, step=10.0, format="%.2f", key=f"amt_{b.id}")
        with col2:
            pay_method = st.selectbox("Method", PAYMENT_METHODS, key=f"method_{b.id}")
        with col3:
            if st.button("Record Payment", key=f"pay_{b.id}"):
                try:
                    services.billing.record_payment(b.id, amount, payment_method=pay_method)
                    st.rerun()
                except RecordsError as e:
                    st.error(str(e))
        with col4:
            if st.button("Delete", key=f"del_{b.id}"):
                try:
                    services.billing.delete_bill(b.id)
                    st.rerun()
                except RecordsError as e:
                    st.error(str(e))
        st.markdown("---")
