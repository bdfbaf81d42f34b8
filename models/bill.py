# models/bill.py

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTS = Decimal("0.01")


class BillStatus:
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


def to_money(value) -> Decimal:
    """Coerce to a two-decimal Decimal (floats go through str to avoid binary noise).

    Raises ``InvalidOperation`` for text that is not a number and for NaN or
    infinity.
    """
    if isinstance(value, float):
        value = str(value)
    amount = Decimal(value)
    if not amount.is_finite():
        raise InvalidOperation(f"{value!r} is not a finite amount")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class Bill:
    id: str

    # Weak link to the patient
    patient_id: str
    patient_name: str

    date_issued: date
    date_paid: date | None = None
    status: str = BillStatus.UNPAID
    total_amount: Decimal = Decimal("0.00")
    amount_paid: Decimal = Decimal("0.00")

    @property
    def balance(self) -> Decimal:
        return self.total_amount - self.amount_paid

    def __repr__(self):
        return f"<Bill {self.id} for Patient {self.patient_id}: {self.amount_paid}/{self.total_amount}>"
