from .patient import Patient, BLOOD_TYPES, UNKNOWN_BLOOD_TYPE
from .appointment import Appointment, AppointmentStatus
from .bill import Bill, BillStatus
from .medical_record import MedicalRecord
from .payment import Payment, PaymentStatus

__all__ = [
    "Patient", "BLOOD_TYPES", "UNKNOWN_BLOOD_TYPE",
    "Appointment", "AppointmentStatus",
    "Bill", "BillStatus",
    "MedicalRecord",
    "Payment", "PaymentStatus",
]
