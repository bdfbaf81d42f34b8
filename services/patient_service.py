import copy
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from core.errors import DependencyError, NotFoundError, ValidationError
from core.ids import clean_id
from core.time_utils import parse_date
from models.patient import Patient, normalize_blood_type
from services.dependency_checker import DeletionCheck, DependencyChecker
from services.persistence import CsvPersistenceService
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

PATIENT_ID_PREFIX = "P"
PATIENT_REQUIRED_FIELDS = ("first_name", "last_name")


def new_patient_store(patients: Iterable[Patient] = (), id_floor: int = 100) -> RecordStore[Patient]:
    return RecordStore(
        "patient",
        Patient,
        prefix=PATIENT_ID_PREFIX,
        id_floor=id_floor,
        required_fields=PATIENT_REQUIRED_FIELDS,
        records=patients,
    )


def _clean_text(value: Optional[str]) -> str:
    return (value or "").strip()


def _validate_birth_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = parse_date(value)
        except ValueError:
            raise ValidationError("date_of_birth", f"{value!r} is not a yyyy-mm-dd date")
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        raise ValidationError("date_of_birth", f"{value!r} is not a date")
    if value > date.today():
        raise ValidationError("date_of_birth", f"{value.isoformat()} is in the future")
    return value


class PatientService:
    """Register, look up, update, admit/discharge and delete patients.

    Every state-changing call persists the full patient file before it
    returns.  Returned patients are copies: callers keep the id and fetch
    again rather than holding on to a record.
    """

    def __init__(
        self,
        store: RecordStore[Patient],
        persistence: CsvPersistenceService,
        dependency_checker: DependencyChecker,
        required_dependents: Iterable[str] = (),
    ):
        dependency_checker.assert_wired(required_dependents)
        self.store = store
        self.persistence = persistence
        self.dependency_checker = dependency_checker

    def _get(self, patient_id: str) -> Patient:
        patient = self.store.find_by_id(clean_id(patient_id))
        if patient is None:
            raise NotFoundError("patient", patient_id)
        return patient

    def _save(self, patients: List[Patient]):
        self.persistence.save_patients(patients)

    # ------------------------------------------
    # Register a new patient
    # ------------------------------------------
    def register_patient(
        self,
        first_name: str,
        last_name: str,
        date_of_birth: date | str | None = None,
        gender: str = "",
        contact_number: str = "",
        address: str = "",
        blood_type: str | None = None,
    ) -> Patient:
        fields = dict(
            first_name=_clean_text(first_name),
            last_name=_clean_text(last_name),
            date_of_birth=_validate_birth_date(date_of_birth),
            gender=_clean_text(gender),
            contact_number=_clean_text(contact_number),
            address=_clean_text(address),
            blood_type=blood_type,
        )

        with self.store.mutation(self._save):
            patient = self.store.create(**fields)

        logger.info("Registered patient %s (%s)", patient.id, patient.full_name)
        return copy.copy(patient)

    # ------------------------------------------
    # Lookups (never raise)
    # ------------------------------------------
    def find_patient(self, patient_id: str) -> Optional[Patient]:
        patient = self.store.find_by_id(clean_id(patient_id))
        return copy.copy(patient) if patient else None

    def search_patients(self, text: str) -> List[Patient]:
        """Case-insensitive substring match on full name or id."""
        query = _clean_text(text).lower()
        if not query:
            return self.list_patients()
        matches = self.store.find_by_predicate(
            lambda p: query in p.full_name.lower() or query in p.id.lower()
        )
        return [copy.copy(p) for p in matches]

    def list_patients(self) -> List[Patient]:
        return [copy.copy(p) for p in self.store.list_all()]

    def list_admitted(self) -> List[Patient]:
        return [copy.copy(p) for p in self.store.find_by_predicate(lambda p: p.is_admitted)]

    # ------------------------------------------
    # Update demographics (only the fields given)
    # ------------------------------------------
    def update_patient(
        self,
        patient_id: str,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        date_of_birth: date | str | None = None,
        gender: str | None = None,
        contact_number: str | None = None,
        address: str | None = None,
        blood_type: str | None = None,
    ) -> Patient:
        patient_id = clean_id(patient_id)
        self._get(patient_id)

        changes = {}
        if first_name is not None:
            changes["first_name"] = _clean_text(first_name)
        if last_name is not None:
            changes["last_name"] = _clean_text(last_name)
        if date_of_birth is not None:
            changes["date_of_birth"] = _validate_birth_date(date_of_birth)
        if gender is not None:
            changes["gender"] = _clean_text(gender)
        if contact_number is not None:
            changes["contact_number"] = _clean_text(contact_number)
        if address is not None:
            changes["address"] = _clean_text(address)
        if blood_type is not None:
            changes["blood_type"] = normalize_blood_type(blood_type, patient_id)

        with self.store.mutation(self._save):
            patient = self.store.update(patient_id, **changes)

        logger.info("Updated patient %s: %s", patient_id, ", ".join(sorted(changes)) or "no changes")
        return copy.copy(patient)

    def update_medical_info(self, patient_id: str, blood_type: str | None) -> Patient:
        """Set the blood type on its own; invalid values are stored as Unknown."""
        patient_id = clean_id(patient_id)

        with self.store.mutation(self._save):
            patient = self._get(patient_id)
            patient.set_blood_type(blood_type)

        logger.info("Blood type for patient %s set to %s", patient_id, patient.blood_type)
        return copy.copy(patient)

    # ------------------------------------------
    # Admission
    # ------------------------------------------
    def admit_patient(self, patient_id: str) -> Patient:
        return self._set_admitted(patient_id, True)

    def discharge_patient(self, patient_id: str) -> Patient:
        return self._set_admitted(patient_id, False)

    def _set_admitted(self, patient_id: str, admitted: bool) -> Patient:
        patient_id = clean_id(patient_id)

        with self.store.mutation(self._save):
            patient = self._get(patient_id)
            if admitted:
                patient.admit()
            else:
                patient.discharge()

        logger.info("Patient %s %s", patient_id, "admitted" if admitted else "discharged")
        return copy.copy(patient)

    # ------------------------------------------
    # Delete (blocked while anything references the patient)
    # ------------------------------------------
    def check_deletion(self, patient_id: str) -> DeletionCheck:
        return self.dependency_checker.can_delete(clean_id(patient_id))

    def delete_patient(self, patient_id: str):
        patient_id = clean_id(patient_id)

        with self.store.lock:
            self._get(patient_id)

            check = self.dependency_checker.can_delete(patient_id)
            if not check.allowed:
                logger.warning(
                    "Refused to delete patient %s: %s", patient_id, ", ".join(check.blocking_reasons)
                )
                raise DependencyError(patient_id, check.blocking_reasons)

            with self.store.mutation(self._save):
                self.store.remove(patient_id)

        logger.info("Deleted patient %s", patient_id)
