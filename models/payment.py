# models/payment.py

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

DEFAULT_PAYMENT_METHOD = "CASH"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    @classmethod
    def parse(cls, value: str | None) -> "PaymentStatus":
        """Unrecognized or empty values fall back to COMPLETED."""
        try:
            return cls((value or "").strip().upper())
        except ValueError:
            return cls.COMPLETED


@dataclass
class Payment:
    id: str

    # One entry in a bill's payment history
    bill_id: str
    amount: Decimal
    payment_date_time: datetime
    payment_method: str = DEFAULT_PAYMENT_METHOD
    status: PaymentStatus = PaymentStatus.COMPLETED

    def __repr__(self):
        return f"<Payment {self.id} on Bill {self.bill_id}: {self.amount} ({self.status.value})>"
