# models/appointment.py

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CHECKED_IN = "CHECKED_IN"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"

    @classmethod
    def parse(cls, value: str | None) -> "AppointmentStatus":
        """Unrecognized or empty values fall back to SCHEDULED."""
        try:
            return cls((value or "").strip().upper())
        except ValueError:
            return cls.SCHEDULED


@dataclass
class Appointment:
    id: str

    # Weak link to the patient: lookup only, never ownership
    patient_id: str
    patient_name: str

    type: str
    date_time: datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED

    def __repr__(self):
        return f"<Appointment {self.id} for Patient {self.patient_id} at {self.date_time}>"
