"""Tests for the billing service."""

from datetime import date
from decimal import Decimal

import pytest

from core.config import TestingConfig
from core.errors import DependencyError, NotFoundError, PersistenceError, ValidationError
from models.bill import BillStatus
from models.payment import PaymentStatus
from services import build_services


@pytest.fixture
def patient(services):
    return services.patients.register_patient("Ann", "Lee")


def test_create_bill(services, patient):
    bill = services.billing.create_bill(patient.id, "120.5", date_issued=date(2024, 2, 1))
    assert bill.id == "B101"
    assert bill.patient_name == "Ann Lee"
    assert bill.total_amount == Decimal("120.50")
    assert bill.amount_paid == Decimal("0.00")
    assert bill.status == BillStatus.UNPAID
    assert bill.date_paid is None


def test_bill_paid_up_front(services, patient):
    bill = services.billing.create_bill(patient.id, 40, date_issued=date(2024, 2, 1), amount_paid=40)
    assert bill.status == BillStatus.PAID
    assert bill.date_paid == date(2024, 2, 1)


def test_create_bill_for_unknown_patient(services):
    with pytest.raises(NotFoundError):
        services.billing.create_bill("P999", 10)


@pytest.mark.parametrize("total,paid,field", [
    (-1, 0, "total_amount"),
    ("abc", 0, "total_amount"),
    (10, -5, "amount_paid"),
    (10, 20, "amount_paid"),
    ("NaN", 0, "total_amount"),
    ("Infinity", 0, "total_amount"),
    (10, float("nan"), "amount_paid"),
])
def test_create_bill_validation(services, patient, total, paid, field):
    with pytest.raises(ValidationError) as exc:
        services.billing.create_bill(patient.id, total, amount_paid=paid)
    assert exc.value.field == field
    assert services.billing.list_bills() == []


def test_payments_move_status_to_paid(services, patient):
    bill = services.billing.create_bill(patient.id, "100.00")

    partial = services.billing.record_payment(bill.id, "30")
    assert partial.status == BillStatus.PARTIAL
    assert partial.balance == Decimal("70.00")

    paid = services.billing.record_payment(bill.id, "70.00", paid_on=date(2024, 3, 1))
    assert paid.status == BillStatus.PAID
    assert paid.date_paid == date(2024, 3, 1)


def test_overpayment_rejected(services, patient):
    bill = services.billing.create_bill(patient.id, "100.00")
    with pytest.raises(ValidationError) as exc:
        services.billing.record_payment(bill.id, "100.01")
    assert bill.id in str(exc.value)
    assert services.billing.get_bill(bill.id).amount_paid == Decimal("0.00")


def test_zero_payment_rejected(services, patient):
    bill = services.billing.create_bill(patient.id, "100.00")
    with pytest.raises(ValidationError):
        services.billing.record_payment(bill.id, 0)


@pytest.mark.parametrize("amount", [float("nan"), "NaN", "-Infinity"])
def test_non_finite_payment_rejected(services, patient, amount):
    bill = services.billing.create_bill(patient.id, "100.00")
    with pytest.raises(ValidationError) as exc:
        services.billing.record_payment(bill.id, amount)
    assert exc.value.field == "amount"
    assert services.billing.payments_for_bill(bill.id) == []


def test_payment_on_missing_bill(services):
    with pytest.raises(NotFoundError):
        services.billing.record_payment("B404", 10)


def test_outstanding_balance(services, patient):
    services.billing.create_bill(patient.id, "100.00", amount_paid="25.00")
    services.billing.create_bill(patient.id, "10.00")
    assert services.billing.outstanding_balance(patient.id) == Decimal("85.00")
    assert services.billing.outstanding_balance("P999") == Decimal("0.00")


def test_bills_survive_reload(services, patient, data_dir):
    bill = services.billing.create_bill(patient.id, "99.99", date_issued=date(2024, 2, 1))
    services.billing.record_payment(bill.id, "9.99")

    reloaded = build_services(data_dir=data_dir, cfg=TestingConfig)
    [loaded] = reloaded.billing.find_bills_by_patient(patient.id)
    assert loaded.amount_paid == Decimal("9.99")
    assert loaded.status == BillStatus.PARTIAL
    assert loaded.date_issued == date(2024, 2, 1)


def test_delete_bill(services, patient):
    bill = services.billing.create_bill(patient.id, 10)
    services.billing.delete_bill(bill.id)
    assert services.billing.get_bill(bill.id) is None
    with pytest.raises(NotFoundError):
        services.billing.delete_bill(bill.id)


def test_payments_are_kept_as_history(services, patient):
    bill = services.billing.create_bill(patient.id, "100.00", date_issued=date(2024, 2, 1))
    services.billing.record_payment(bill.id, "30", paid_on=date(2024, 2, 3), payment_method="card")
    services.billing.record_payment(bill.id, "20", paid_on=date(2024, 2, 2))

    history = services.billing.payments_for_bill(bill.id)
    assert [p.amount for p in history] == [Decimal("20.00"), Decimal("30.00")]
    assert [p.payment_method for p in history] == ["CASH", "CARD"]
    assert all(p.status == PaymentStatus.COMPLETED for p in history)
    assert sum(p.amount for p in history) == services.billing.get_bill(bill.id).amount_paid


def test_up_front_payment_is_recorded(services, patient):
    bill = services.billing.create_bill(patient.id, 40, date_issued=date(2024, 2, 1), amount_paid=15)
    [payment] = services.billing.payments_for_bill(bill.id)
    assert payment.amount == Decimal("15.00")
    assert payment.payment_date_time.date() == date(2024, 2, 1)


def test_payment_history_survives_reload(services, patient, data_dir):
    bill = services.billing.create_bill(patient.id, "50.00")
    services.billing.record_payment(bill.id, "12.34", payment_method="insurance")

    reloaded = build_services(data_dir=data_dir, cfg=TestingConfig)
    [payment] = reloaded.billing.payments_for_bill(bill.id)
    assert payment.id == "PAY101"
    assert payment.amount == Decimal("12.34")
    assert payment.payment_method == "INSURANCE"


def test_failed_bill_save_withdraws_the_payment(services, patient, monkeypatch):
    bill = services.billing.create_bill(patient.id, "100.00")

    def fail(_):
        raise PersistenceError("bills.csv", "disk full")

    monkeypatch.setattr(services.persistence, "save_bills", fail)
    with pytest.raises(PersistenceError):
        services.billing.record_payment(bill.id, "10")

    assert services.billing.get_bill(bill.id).amount_paid == Decimal("0.00")
    assert services.billing.list_payments() == []
    assert services.persistence.load_payments() == []


def test_bill_with_payments_cannot_be_deleted(services, patient):
    bill = services.billing.create_bill(patient.id, "100.00")
    services.billing.record_payment(bill.id, "10")
    services.billing.record_payment(bill.id, "5")

    with pytest.raises(DependencyError) as exc:
        services.billing.delete_bill(bill.id)
    assert exc.value.blocking_reasons == ["2 payment(s)"]
    assert services.billing.get_bill(bill.id) is not None
