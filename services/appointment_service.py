import copy
import logging
import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from core.errors import NotFoundError, ValidationError
from core.ids import clean_id
from models.appointment import Appointment, AppointmentStatus
from models.patient import Patient
from services.persistence import CsvPersistenceService
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

APPOINTMENT_ID_PREFIX = "A"
APPOINTMENT_REQUIRED_FIELDS = ("patient_id", "type", "date_time")


def new_appointment_store(appointments: Iterable[Appointment] = (), id_floor: int = 100) -> RecordStore[Appointment]:
    return RecordStore(
        "appointment",
        Appointment,
        prefix=APPOINTMENT_ID_PREFIX,
        id_floor=id_floor,
        required_fields=APPOINTMENT_REQUIRED_FIELDS,
        records=appointments,
    )


def _status(value) -> AppointmentStatus:
    if isinstance(value, AppointmentStatus):
        return value
    try:
        return AppointmentStatus((value or "").strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in AppointmentStatus)
        raise ValidationError("status", f"{value!r} is not one of {allowed}")


def _when(value) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError("date_time", f"{value!r} is not a date and time")
    # Stored with one-second resolution
    return value.replace(microsecond=0)


class AppointmentService:
    def __init__(
        self,
        store: RecordStore[Appointment],
        persistence: CsvPersistenceService,
        patient_lookup: Callable[[str], Optional[Patient]],
        patient_lock=None,
    ):
        self.store = store
        self.persistence = persistence
        self.patient_lookup = patient_lookup
        # Shared with patient deletion so a patient cannot vanish mid-schedule
        self.patient_lock = patient_lock or threading.RLock()

    def _save(self, appointments: List[Appointment]):
        self.persistence.save_appointments(appointments)

    def _get(self, appointment_id: str) -> Appointment:
        appointment = self.store.find_by_id(clean_id(appointment_id))
        if appointment is None:
            raise NotFoundError("appointment", appointment_id)
        return appointment

    # -----------------------------
    # Schedule a new appointment
    # -----------------------------
    def schedule_appointment(
        self,
        patient_id: str,
        type: str,
        date_time: datetime,
        status: AppointmentStatus | str = AppointmentStatus.SCHEDULED,
    ) -> Appointment:
        patient_id = clean_id(patient_id)

        with self.patient_lock:
            patient = self.patient_lookup(patient_id)
            if patient is None:
                raise NotFoundError("patient", patient_id)

            fields = dict(
                patient_id=patient_id,
                patient_name=patient.full_name,
                type=(type or "").strip(),
                date_time=_when(date_time) if date_time is not None else None,
                status=_status(status),
            )

            with self.store.mutation(self._save):
                appointment = self.store.create(**fields)

        logger.info("Scheduled appointment %s for patient %s", appointment.id, patient_id)
        return copy.copy(appointment)

    # -----------------------------
    # Lookups
    # -----------------------------
    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        appointment = self.store.find_by_id(clean_id(appointment_id))
        return copy.copy(appointment) if appointment else None

    def list_appointments(self) -> List[Appointment]:
        return [copy.copy(a) for a in sorted(self.store.list_all(), key=lambda a: a.date_time)]

    def appointments_for_patient(self, patient_id: str) -> List[Appointment]:
        return [copy.copy(a) for a in sorted(self.find_all_referencing(patient_id), key=lambda a: a.date_time)]

    def find_all_referencing(self, patient_id: str) -> List[Appointment]:
        """Every appointment, in any status, that points at ``patient_id``."""
        patient_id = clean_id(patient_id)
        return self.store.find_by_predicate(lambda a: a.patient_id == patient_id)

    # -----------------------------
    # Update
    # -----------------------------
    def update_appointment(
        self,
        appointment_id: str,
        *,
        type: str | None = None,
        date_time: datetime | None = None,
        status: AppointmentStatus | str | None = None,
    ) -> Appointment:
        appointment_id = clean_id(appointment_id)
        self._get(appointment_id)

        changes = {}
        if type is not None:
            changes["type"] = type.strip()
        if date_time is not None:
            changes["date_time"] = _when(date_time)
        if status is not None:
            changes["status"] = _status(status)

        with self.store.mutation(self._save):
            appointment = self.store.update(appointment_id, **changes)

        logger.info("Updated appointment %s: %s", appointment_id, ", ".join(sorted(changes)) or "no changes")
        return copy.copy(appointment)

    def set_status(self, appointment_id: str, status: AppointmentStatus | str) -> Appointment:
        return self.update_appointment(appointment_id, status=status)

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        return self.set_status(appointment_id, AppointmentStatus.CANCELLED)

    # -----------------------------
    # Delete
    # -----------------------------
    def delete_appointment(self, appointment_id: str):
        appointment_id = clean_id(appointment_id)
        with self.store.lock:
            self._get(appointment_id)
            with self.store.mutation(self._save):
                self.store.remove(appointment_id)

        logger.info("Deleted appointment %s", appointment_id)
