# models/patient.py

import logging
import re
from dataclasses import dataclass
from datetime import date

logger = logging.getLogger(__name__)

UNKNOWN_BLOOD_TYPE = "Unknown"
BLOOD_TYPES = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-", UNKNOWN_BLOOD_TYPE)

_BLOOD_TYPE_PATTERN = re.compile(r"^(A|B|AB|O)[+-]$")


def normalize_blood_type(value: str | None, patient_id: str = "") -> str:
    """Return the canonical blood type, or Unknown for empty/invalid input.

    Invalid values are logged as rejections rather than raised, so a bad
    value in a file or form never leaves free text in the record.
    """
    if value is None or not str(value).strip():
        return UNKNOWN_BLOOD_TYPE

    normalized = str(value).strip().upper()
    if _BLOOD_TYPE_PATTERN.match(normalized):
        return normalized
    if normalized == UNKNOWN_BLOOD_TYPE.upper():
        return UNKNOWN_BLOOD_TYPE

    logger.warning(
        "Rejected blood type %r for patient %s, storing %s",
        value, patient_id or "<new>", UNKNOWN_BLOOD_TYPE,
    )
    return UNKNOWN_BLOOD_TYPE


@dataclass
class Patient:
    # Short human-friendly identifier (P101, P102...), never changes
    id: str

    # Demographics
    first_name: str
    last_name: str
    date_of_birth: date | None = None
    gender: str = ""
    contact_number: str = ""
    address: str = ""

    # Medical
    blood_type: str = UNKNOWN_BLOOD_TYPE
    is_admitted: bool = False

    def __post_init__(self):
        if not self.id or not self.id.strip():
            raise ValueError("Patient id cannot be empty")
        self.blood_type = normalize_blood_type(self.blood_type, self.id)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def age(self) -> int:
        """Whole years since birth; 0 when unknown or in the future."""
        if self.date_of_birth is None:
            return 0
        today = date.today()
        if self.date_of_birth > today:
            return 0
        years = today.year - self.date_of_birth.year
        if (today.month, today.day) < (self.date_of_birth.month, self.date_of_birth.day):
            years -= 1
        return years

    def set_blood_type(self, value: str | None):
        self.blood_type = normalize_blood_type(value, self.id)

    def admit(self):
        self.is_admitted = True

    def discharge(self):
        self.is_admitted = False

    def __repr__(self):
        return f"<Patient {self.id} - {self.full_name}>"
