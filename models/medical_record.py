# models/medical_record.py

from dataclasses import dataclass
from datetime import date


@dataclass
class MedicalRecord:
    id: str

    # Weak link to the patient
    patient_id: str
    patient_name: str

    diagnosis: str
    record_date: date
    notes: str = ""

    def __repr__(self):
        return f"<MedicalRecord {self.id} for Patient {self.patient_id}: {self.diagnosis}>"
