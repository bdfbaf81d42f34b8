import copy
import logging
import threading
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional

from core.errors import NotFoundError, ValidationError
from core.ids import clean_id
from core.time_utils import parse_date, today
from models.medical_record import MedicalRecord
from models.patient import Patient
from services.persistence import CsvPersistenceService
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

MEDICAL_RECORD_ID_PREFIX = "M"
MEDICAL_RECORD_REQUIRED_FIELDS = ("patient_id", "diagnosis", "record_date")


def new_medical_record_store(records: Iterable[MedicalRecord] = (), id_floor: int = 100) -> RecordStore[MedicalRecord]:
    return RecordStore(
        "medical_record",
        MedicalRecord,
        prefix=MEDICAL_RECORD_ID_PREFIX,
        id_floor=id_floor,
        required_fields=MEDICAL_RECORD_REQUIRED_FIELDS,
        records=records,
    )


def _record_date(value) -> date:
    if isinstance(value, str):
        try:
            value = parse_date(value)
        except ValueError:
            raise ValidationError("record_date", f"{value!r} is not a yyyy-mm-dd date")
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        raise ValidationError("record_date", f"{value!r} is not a date")
    if value > date.today():
        raise ValidationError("record_date", f"{value.isoformat()} is in the future")
    return value


class MedicalRecordService:
    """Diagnoses and clinical notes filed against a patient."""

    def __init__(
        self,
        store: RecordStore[MedicalRecord],
        persistence: CsvPersistenceService,
        patient_lookup: Callable[[str], Optional[Patient]],
        patient_lock=None,
    ):
        self.store = store
        self.persistence = persistence
        self.patient_lookup = patient_lookup
        self.patient_lock = patient_lock or threading.RLock()

    def _save(self, records: List[MedicalRecord]):
        self.persistence.save_medical_records(records)

    def _get(self, record_id: str) -> MedicalRecord:
        record = self.store.find_by_id(clean_id(record_id))
        if record is None:
            raise NotFoundError("medical record", record_id)
        return record

    # -----------------------------
    # File a new record
    # -----------------------------
    def add_record(
        self,
        patient_id: str,
        diagnosis: str,
        notes: str = "",
        record_date: date | str | None = None,
    ) -> MedicalRecord:
        patient_id = clean_id(patient_id)
        recorded = _record_date(record_date) if record_date else today()

        with self.patient_lock:
            patient = self.patient_lookup(patient_id)
            if patient is None:
                raise NotFoundError("patient", patient_id)

            with self.store.mutation(self._save):
                record = self.store.create(
                    patient_id=patient_id,
                    patient_name=patient.full_name,
                    diagnosis=(diagnosis or "").strip(),
                    notes=(notes or "").strip(),
                    record_date=recorded,
                )

        logger.info("Filed medical record %s for patient %s", record.id, patient_id)
        return copy.copy(record)

    # -----------------------------
    # Lookups
    # -----------------------------
    def get_record(self, record_id: str) -> Optional[MedicalRecord]:
        record = self.store.find_by_id(clean_id(record_id))
        return copy.copy(record) if record else None

    def list_records(self) -> List[MedicalRecord]:
        return [copy.copy(r) for r in self.store.list_all()]

    def records_for_patient(self, patient_id: str) -> List[MedicalRecord]:
        """A patient's history, newest first."""
        history = sorted(self.find_all_referencing(patient_id), key=lambda r: r.record_date, reverse=True)
        return [copy.copy(r) for r in history]

    def find_all_referencing(self, patient_id: str) -> List[MedicalRecord]:
        patient_id = clean_id(patient_id)
        return self.store.find_by_predicate(lambda r: r.patient_id == patient_id)

    # -----------------------------
    # Update
    # -----------------------------
    def update_record(
        self,
        record_id: str,
        *,
        diagnosis: str | None = None,
        notes: str | None = None,
        record_date: date | str | None = None,
    ) -> MedicalRecord:
        record_id = clean_id(record_id)
        self._get(record_id)

        changes = {}
        if diagnosis is not None:
            changes["diagnosis"] = diagnosis.strip()
        if notes is not None:
            changes["notes"] = notes.strip()
        if record_date is not None:
            changes["record_date"] = _record_date(record_date)

        with self.store.mutation(self._save):
            record = self.store.update(record_id, **changes)

        logger.info("Updated medical record %s: %s", record_id, ", ".join(sorted(changes)) or "no changes")
        return copy.copy(record)

    # -----------------------------
    # Delete
    # -----------------------------
    def delete_record(self, record_id: str):
        record_id = clean_id(record_id)
        with self.store.lock:
            self._get(record_id)
            with self.store.mutation(self._save):
                self.store.remove(record_id)

        logger.info("Deleted medical record %s", record_id)
