import copy
import logging
import threading
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, List, Optional

from core.errors import DependencyError, NotFoundError, ValidationError
from core.ids import clean_id
from core.time_utils import now, today
from models.bill import Bill, BillStatus, to_money
from models.patient import Patient
from models.payment import DEFAULT_PAYMENT_METHOD, Payment, PaymentStatus
from services.persistence import CsvPersistenceService
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

BILL_ID_PREFIX = "B"
BILL_REQUIRED_FIELDS = ("patient_id", "date_issued")

PAYMENT_ID_PREFIX = "PAY"
PAYMENT_REQUIRED_FIELDS = ("bill_id", "amount", "payment_date_time")


def new_bill_store(bills: Iterable[Bill] = (), id_floor: int = 100) -> RecordStore[Bill]:
    return RecordStore(
        "bill",
        Bill,
        prefix=BILL_ID_PREFIX,
        id_floor=id_floor,
        required_fields=BILL_REQUIRED_FIELDS,
        records=bills,
    )


def new_payment_store(payments: Iterable[Payment] = (), id_floor: int = 100) -> RecordStore[Payment]:
    return RecordStore(
        "payment",
        Payment,
        prefix=PAYMENT_ID_PREFIX,
        id_floor=id_floor,
        required_fields=PAYMENT_REQUIRED_FIELDS,
        records=payments,
    )


def _money(value, field: str) -> Decimal:
    try:
        amount = to_money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(field, f"{value!r} is not an amount")
    if amount < 0:
        raise ValidationError(field, f"{amount} is negative")
    return amount


def _method(value: str | None) -> str:
    return (value or "").strip().upper() or DEFAULT_PAYMENT_METHOD


def status_for(total: Decimal, paid: Decimal) -> str:
    if paid >= total:
        return BillStatus.PAID
    if paid > 0:
        return BillStatus.PARTIAL
    return BillStatus.UNPAID


class BillingService:
    """Bills and their payment history.

    Every payment is kept as its own record; the bill carries the running
    ``amount_paid`` and the derived status.  Payments are written before the
    bill they change, and a payment whose bill cannot be saved is taken back
    out, so the two files stay in step.
    """

    def __init__(
        self,
        store: RecordStore[Bill],
        persistence: CsvPersistenceService,
        patient_lookup: Callable[[str], Optional[Patient]],
        payment_store: RecordStore[Payment] | None = None,
        patient_lock=None,
    ):
        self.store = store
        self.payments = payment_store if payment_store is not None else new_payment_store()
        self.persistence = persistence
        self.patient_lookup = patient_lookup
        self.patient_lock = patient_lock or threading.RLock()

    def _save(self, bills: List[Bill]):
        self.persistence.save_bills(bills)

    def _save_payments(self, payments: List[Payment]):
        self.persistence.save_payments(payments)

    def _get(self, bill_id: str) -> Bill:
        bill = self.store.find_by_id(clean_id(bill_id))
        if bill is None:
            raise NotFoundError("bill", bill_id)
        return bill

    def _add_payment(self, bill_id: str, amount: Decimal, when: datetime, method: str) -> Payment:
        with self.payments.mutation(self._save_payments):
            return self.payments.create(
                bill_id=bill_id,
                amount=amount,
                payment_date_time=when,
                payment_method=method,
                status=PaymentStatus.COMPLETED,
            )

    def _take_back_payment(self, payment: Payment):
        with self.payments.mutation(self._save_payments):
            self.payments.remove(payment.id)
        logger.warning("Withdrew payment %s after bill %s could not be saved", payment.id, payment.bill_id)

    # -----------------------------
    # Issue a bill
    # -----------------------------
    def create_bill(
        self,
        patient_id: str,
        total_amount,
        date_issued: date | None = None,
        amount_paid=0,
        payment_method: str | None = None,
    ) -> Bill:
        patient_id = clean_id(patient_id)
        total = _money(total_amount, "total_amount")
        paid = _money(amount_paid, "amount_paid")
        if paid > total:
            raise ValidationError("amount_paid", f"{paid} exceeds the total of {total}")

        issued = date_issued or today()
        status = status_for(total, paid)

        with self.patient_lock, self.store.lock, self.payments.lock:
            patient = self.patient_lookup(patient_id)
            if patient is None:
                raise NotFoundError("patient", patient_id)

            with self.store.mutation(self._save):
                bill = self.store.create(
                    patient_id=patient_id,
                    patient_name=patient.full_name,
                    date_issued=issued,
                    date_paid=issued if status == BillStatus.PAID else None,
                    status=status,
                    total_amount=total,
                    amount_paid=paid,
                )

            if paid > 0:
                # Money taken at the desk is history like any later payment
                try:
                    self._add_payment(bill.id, paid, datetime.combine(issued, time()), _method(payment_method))
                except Exception:
                    with self.store.mutation(self._save):
                        self.store.remove(bill.id)
                    raise

        logger.info("Issued bill %s for patient %s: %s", bill.id, patient_id, total)
        return copy.copy(bill)

    # -----------------------------
    # Lookups
    # -----------------------------
    def get_bill(self, bill_id: str) -> Optional[Bill]:
        bill = self.store.find_by_id(clean_id(bill_id))
        return copy.copy(bill) if bill else None

    def list_bills(self) -> List[Bill]:
        return [copy.copy(b) for b in self.store.list_all()]

    def find_bills_by_patient(self, patient_id: str) -> List[Bill]:
        return [copy.copy(b) for b in self.find_all_referencing(patient_id)]

    def find_all_referencing(self, patient_id: str) -> List[Bill]:
        patient_id = clean_id(patient_id)
        return self.store.find_by_predicate(lambda b: b.patient_id == patient_id)

    def outstanding_balance(self, patient_id: str) -> Decimal:
        return sum((b.balance for b in self.find_all_referencing(patient_id)), to_money(0))

    def list_payments(self) -> List[Payment]:
        return [copy.copy(p) for p in self.payments.list_all()]

    def payments_for_bill(self, bill_id: str) -> List[Payment]:
        """Payment history of one bill, oldest first."""
        bill_id = clean_id(bill_id)
        history = self.payments.find_by_predicate(lambda p: p.bill_id == bill_id)
        return [copy.copy(p) for p in sorted(history, key=lambda p: p.payment_date_time)]

    # -----------------------------
    # Payments
    # -----------------------------
    def record_payment(
        self,
        bill_id: str,
        amount,
        paid_on: date | None = None,
        payment_method: str | None = None,
    ) -> Bill:
        bill_id = clean_id(bill_id)
        payment = _money(amount, "amount")
        if payment == 0:
            raise ValidationError("amount", "payment must be greater than zero")

        with self.store.lock, self.payments.lock:
            bill = self._get(bill_id)
            new_paid = bill.amount_paid + payment
            if new_paid > bill.total_amount:
                raise ValidationError(
                    "amount", f"{payment} exceeds the outstanding balance of {bill.balance} on {bill_id}"
                )

            status = status_for(bill.total_amount, new_paid)
            changes = dict(amount_paid=new_paid, status=status)
            if status == BillStatus.PAID:
                changes["date_paid"] = paid_on or today()

            when = datetime.combine(paid_on, time()) if paid_on else now()
            entry = self._add_payment(bill_id, payment, when, _method(payment_method))
            try:
                with self.store.mutation(self._save):
                    bill = self.store.update(bill_id, **changes)
            except Exception:
                self._take_back_payment(entry)
                raise

        logger.info("Recorded payment %s of %s on bill %s (%s)", entry.id, payment, bill_id, status)
        return copy.copy(bill)

    # -----------------------------
    # Delete
    # -----------------------------
    def delete_bill(self, bill_id: str):
        """Remove a bill that has no payment history."""
        bill_id = clean_id(bill_id)
        with self.store.lock, self.payments.lock:
            self._get(bill_id)

            history = self.payments.find_by_predicate(lambda p: p.bill_id == bill_id)
            if history:
                raise DependencyError(bill_id, [f"{len(history)} payment(s)"])

            with self.store.mutation(self._save):
                self.store.remove(bill_id)

        logger.info("Deleted bill %s", bill_id)
