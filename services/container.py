"""Composition root: builds every store and service once and wires them."""

import logging
from dataclasses import dataclass

from core.config import get_config
from core.setup_data import init_data_dir
from services.appointment_service import AppointmentService, new_appointment_store
from services.billing_service import BillingService, new_bill_store, new_payment_store
from services.dependency_checker import DependencyChecker
from services.medical_record_service import MedicalRecordService, new_medical_record_store
from services.patient_service import PatientService, new_patient_store
from services.persistence import CsvPersistenceService

logger = logging.getLogger(__name__)

# Every kind that can reference a patient; deletion checks must cover all of them
REQUIRED_DEPENDENTS = ("appointment", "bill", "medical record")


@dataclass
class Services:
    persistence: CsvPersistenceService
    patients: PatientService
    appointments: AppointmentService
    billing: BillingService
    medical_records: MedicalRecordService


def build_services(data_dir: str | None = None, cfg=None) -> Services:
    cfg = cfg or get_config()
    data_dir = data_dir or cfg.DATA_DIR
    init_data_dir(data_dir)

    persistence = CsvPersistenceService(data_dir, keep_backups=cfg.KEEP_BACKUPS)

    # Stores first, so the dependents can look patients up without
    # depending on the patient facade (which in turn depends on them).
    # Creating a dependent takes the patient store lock, the same lock
    # patient deletion holds while it checks for references.
    patient_store = new_patient_store(persistence.load_patients(), cfg.PATIENT_ID_FLOOR)
    patient_wiring = dict(patient_lookup=patient_store.find_by_id, patient_lock=patient_store.lock)

    appointments = AppointmentService(
        new_appointment_store(persistence.load_appointments(), cfg.APPOINTMENT_ID_FLOOR),
        persistence,
        **patient_wiring,
    )
    billing = BillingService(
        new_bill_store(persistence.load_bills(), cfg.BILL_ID_FLOOR),
        persistence,
        payment_store=new_payment_store(persistence.load_payments(), cfg.PAYMENT_ID_FLOOR),
        **patient_wiring,
    )
    medical_records = MedicalRecordService(
        new_medical_record_store(persistence.load_medical_records(), cfg.MEDICAL_RECORD_ID_FLOOR),
        persistence,
        **patient_wiring,
    )

    checker = DependencyChecker({
        "appointment": appointments,
        "bill": billing,
        "medical record": medical_records,
    })
    patients = PatientService(
        patient_store,
        persistence,
        checker,
        required_dependents=REQUIRED_DEPENDENTS,
    )

    logger.info(
        "Services ready: %d patient(s), %d appointment(s), %d bill(s), %d payment(s), "
        "%d medical record(s) in %s",
        len(patient_store), len(appointments.store), len(billing.store), len(billing.payments),
        len(medical_records.store), data_dir,
    )
    return Services(persistence, patients, appointments, billing, medical_records)
