"""
services.persistence
~~~~~~~~~~~~~~~~~~~~

Flat-file storage for patients, appointments, bills, medical records and
payments.

Each entity kind lives in its own UTF-8 CSV file with a header line.  Every
save rewrites the whole file from the in-memory collection; the previous file
is copied to ``<name>.bak`` first and the new content is written to a
temporary file that then replaces the original, so an interrupted write
leaves either the old or the new file in place.
"""

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Sequence

from core.csv_codec import decode_table, encode_table
from core.errors import PersistenceError
from core.ids import clean_id
from core.time_utils import format_date, format_datetime, parse_date, parse_datetime, today
from models.appointment import Appointment, AppointmentStatus
from models.bill import Bill, BillStatus, to_money
from models.medical_record import MedicalRecord
from models.patient import Patient
from models.payment import DEFAULT_PAYMENT_METHOD, Payment, PaymentStatus

logger = logging.getLogger(__name__)

PATIENTS_FILE = "patients.csv"
APPOINTMENTS_FILE = "appointments.csv"
BILLS_FILE = "bills.csv"
MEDICAL_RECORDS_FILE = "medical_records.csv"
PAYMENTS_FILE = "payments.csv"

PATIENT_HEADER = [
    "id", "firstName", "lastName", "dateOfBirth", "gender",
    "contactNumber", "address", "bloodType", "isAdmitted",
]
APPOINTMENT_HEADER = ["id", "patientId", "patientName", "type", "dateTime", "status"]
BILL_HEADER = [
    "billId", "patientId", "patientName", "dateIssued", "datePaid",
    "status", "totalAmount", "amountPaid",
]
MEDICAL_RECORD_HEADER = ["id", "patientId", "patientName", "diagnosis", "notes", "recordDate"]
PAYMENT_HEADER = ["id", "billId", "amount", "paymentDateTime", "paymentMethod", "status"]


@dataclass
class LoadDiagnostic:
    file: str
    line: int
    reason: str

    def __str__(self):
        return f"{self.file}:{self.line}: {self.reason}"


@dataclass
class TableFormat:
    """Column layout and row conversion for one entity kind."""
    kind: str
    filename: str
    header: Sequence[str]
    min_fields: int
    to_row: Callable[[object], list]
    # from_row(fields, warn) -> entity; raises ValueError or ArithmeticError
    # for unusable rows
    from_row: Callable[[List[str], Callable[[str], None]], object]
    diagnostics: List[LoadDiagnostic] = field(default_factory=list)


def _field(fields: List[str], index: int, default: str = "") -> str:
    return fields[index] if len(fields) > index else default


# -----------------------------
# Patients
# -----------------------------
def _patient_to_row(p: Patient) -> list:
    return [
        p.id,
        p.first_name,
        p.last_name,
        format_date(p.date_of_birth),
        p.gender or "",
        p.contact_number or "",
        p.address or "",
        p.blood_type,
        "true" if p.is_admitted else "false",
    ]


def _patient_from_row(fields: List[str], warn) -> Patient:
    patient_id = clean_id(fields[0])
    if not patient_id:
        raise ValueError("missing patient id")

    blood_type = _field(fields, 7).strip()
    admitted = _field(fields, 8, "false").strip().lower()
    if admitted not in ("true", "false"):
        warn(f"unreadable admission flag {admitted!r}, using false")

    return Patient(
        id=patient_id,
        first_name=fields[1],
        last_name=fields[2],
        date_of_birth=parse_date(fields[3]),
        gender=_field(fields, 4),
        contact_number=_field(fields, 5),
        address=_field(fields, 6),
        blood_type=blood_type,
        is_admitted=admitted == "true",
    )


# -----------------------------
# Appointments
# -----------------------------
def _appointment_to_row(a: Appointment) -> list:
    return [
        a.id,
        a.patient_id,
        a.patient_name or "",
        a.type or "",
        format_datetime(a.date_time),
        a.status.value,
    ]


def _appointment_from_row(fields: List[str], warn) -> Appointment:
    appointment_id = clean_id(fields[0])
    if not appointment_id:
        raise ValueError("missing appointment id")

    raw_status = _field(fields, 5).strip()
    status = AppointmentStatus.parse(raw_status)
    if raw_status and status.value != raw_status.upper():
        warn(f"unknown status {raw_status!r}, using {status.value}")

    return Appointment(
        id=appointment_id,
        patient_id=clean_id(fields[1]),
        patient_name=fields[2],
        type=fields[3],
        date_time=parse_datetime(fields[4]),
        status=status,
    )


# -----------------------------
# Bills
# -----------------------------
def _bill_to_row(b: Bill) -> list:
    return [
        b.id,
        b.patient_id,
        b.patient_name or "",
        format_date(b.date_issued),
        format_date(b.date_paid),
        b.status or "",
        f"{b.total_amount:.2f}",
        f"{b.amount_paid:.2f}",
    ]


def _amount(text: str, column: str, warn) -> Decimal:
    text = (text or "").strip()
    if not text:
        return to_money(0)
    try:
        value = to_money(text)
    except InvalidOperation:
        warn(f"unreadable {column} {text!r}, using 0.00")
        return to_money(0)
    if value < 0:
        warn(f"negative {column} {text!r}, using 0.00")
        return to_money(0)
    return value


def _bill_from_row(fields: List[str], warn) -> Bill:
    bill_id = clean_id(fields[0])
    if not bill_id:
        raise ValueError("missing bill id")

    date_issued = parse_date(fields[3])
    if date_issued is None:
        raise ValueError("missing issue date")

    return Bill(
        id=bill_id,
        patient_id=clean_id(fields[1]),
        patient_name=fields[2],
        date_issued=date_issued,
        date_paid=parse_date(fields[4]),
        status=fields[5].strip() or BillStatus.UNPAID,
        total_amount=_amount(_field(fields, 6), "totalAmount", warn),
        amount_paid=_amount(_field(fields, 7), "amountPaid", warn),
    )


# -----------------------------
# Medical records
# -----------------------------
def _medical_record_to_row(r: MedicalRecord) -> list:
    return [
        r.id,
        r.patient_id,
        r.patient_name or "",
        r.diagnosis or "",
        r.notes or "",
        format_date(r.record_date),
    ]


def _medical_record_from_row(fields: List[str], warn) -> MedicalRecord:
    record_id = clean_id(fields[0])
    if not record_id:
        raise ValueError("missing medical record id")

    record_date = parse_date(_field(fields, 5))
    if record_date is None:
        record_date = today()
        warn(f"missing recordDate, using {format_date(record_date)}")

    return MedicalRecord(
        id=record_id,
        patient_id=clean_id(fields[1]),
        patient_name=fields[2],
        diagnosis=fields[3],
        record_date=record_date,
        notes=_field(fields, 4),
    )


# -----------------------------
# Payments
# -----------------------------
def _payment_to_row(p: Payment) -> list:
    return [
        p.id,
        p.bill_id,
        f"{p.amount:.2f}",
        format_datetime(p.payment_date_time),
        p.payment_method or DEFAULT_PAYMENT_METHOD,
        p.status.value,
    ]


def _payment_from_row(fields: List[str], warn) -> Payment:
    payment_id = clean_id(fields[0])
    if not payment_id:
        raise ValueError("missing payment id")

    # A payment with no usable amount is not history worth keeping
    amount = to_money(fields[2].strip())
    if amount <= 0:
        raise ValueError(f"payment amount {fields[2].strip()!r} is not positive")

    method = _field(fields, 4).strip().upper() or DEFAULT_PAYMENT_METHOD

    raw_status = _field(fields, 5).strip()
    status = PaymentStatus.parse(raw_status)
    if raw_status and status.value != raw_status.upper():
        warn(f"unknown status {raw_status!r}, using {status.value}")

    return Payment(
        id=payment_id,
        bill_id=clean_id(fields[1]),
        amount=amount,
        payment_date_time=parse_datetime(fields[3]),
        payment_method=method,
        status=status,
    )


class CsvPersistenceService:
    """Reads and writes the per-kind CSV files under ``data_dir``."""

    def __init__(self, data_dir: str, keep_backups: bool = True):
        self.data_dir = data_dir
        self.keep_backups = keep_backups
        self.formats: Dict[str, TableFormat] = {
            "patient": TableFormat("patient", PATIENTS_FILE, PATIENT_HEADER, 4,
                                   _patient_to_row, _patient_from_row),
            "appointment": TableFormat("appointment", APPOINTMENTS_FILE, APPOINTMENT_HEADER, 5,
                                       _appointment_to_row, _appointment_from_row),
            "bill": TableFormat("bill", BILLS_FILE, BILL_HEADER, 6,
                                _bill_to_row, _bill_from_row),
            "medical_record": TableFormat("medical_record", MEDICAL_RECORDS_FILE, MEDICAL_RECORD_HEADER, 4,
                                          _medical_record_to_row, _medical_record_from_row),
            "payment": TableFormat("payment", PAYMENTS_FILE, PAYMENT_HEADER, 4,
                                   _payment_to_row, _payment_from_row),
        }

    def path_for(self, kind: str) -> str:
        return os.path.join(self.data_dir, self.formats[kind].filename)

    def diagnostics(self, kind: str) -> List[LoadDiagnostic]:
        """Problems found by the most recent load of ``kind``."""
        return list(self.formats[kind].diagnostics)

    # ------------------------------------------
    # Public load/save API
    # ------------------------------------------
    def load_patients(self) -> List[Patient]:
        return self._load("patient")

    def save_patients(self, patients: List[Patient]):
        self._save("patient", patients)

    def load_appointments(self) -> List[Appointment]:
        return self._load("appointment")

    def save_appointments(self, appointments: List[Appointment]):
        self._save("appointment", appointments)

    def load_bills(self) -> List[Bill]:
        return self._load("bill")

    def save_bills(self, bills: List[Bill]):
        self._save("bill", bills)

    def load_medical_records(self) -> List[MedicalRecord]:
        return self._load("medical_record")

    def save_medical_records(self, records: List[MedicalRecord]):
        self._save("medical_record", records)

    def load_payments(self) -> List[Payment]:
        return self._load("payment")

    def save_payments(self, payments: List[Payment]):
        self._save("payment", payments)

    # ------------------------------------------
    # Internals
    # ------------------------------------------
    def _load(self, kind: str) -> list:
        fmt = self.formats[kind]
        fmt.diagnostics = []
        path = self.path_for(kind)

        if not os.path.exists(path):
            logger.info("No %s file at %s yet", kind, path)
            return []

        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(path, str(e), action="read") from e

        header, rows = decode_table(text)
        if header and list(header) != list(fmt.header):
            logger.warning("Unexpected header in %s: %s", path, ",".join(header))

        records = []
        first_seen: Dict[str, int] = {}
        for line_no, fields in rows:
            def warn(reason, line_no=line_no):
                self._diagnose(fmt, line_no, reason, skipped=False)

            if len(fields) < fmt.min_fields:
                self._diagnose(fmt, line_no, f"expected at least {fmt.min_fields} fields, got {len(fields)}")
                continue
            try:
                record = fmt.from_row(fields, warn)
            except (ValueError, ArithmeticError) as e:
                self._diagnose(fmt, line_no, str(e))
                continue

            # The store keeps the last row for an id; the earlier one is lost on the next save
            if record.id in first_seen:
                warn(f"duplicate id {record.id}, replaces line {first_seen[record.id]}")
            first_seen[record.id] = line_no
            records.append(record)

        logger.info("Loaded %d %s record(s) from %s", len(records), kind, path)
        return records

    def _diagnose(self, fmt: TableFormat, line_no: int, reason: str, skipped: bool = True):
        diagnostic = LoadDiagnostic(fmt.filename, line_no, reason)
        fmt.diagnostics.append(diagnostic)
        if skipped:
            logger.warning("Skipping %s line: %s", fmt.kind, diagnostic)
        else:
            logger.warning("Loaded %s line with a warning: %s", fmt.kind, diagnostic)

    def _save(self, kind: str, records: list):
        fmt = self.formats[kind]
        path = self.path_for(kind)
        content = encode_table(fmt.header, (fmt.to_row(r) for r in records))

        try:
            os.makedirs(self.data_dir, exist_ok=True)
        except OSError as e:
            raise PersistenceError(path, f"cannot create data directory: {e}") from e

        if self.keep_backups and os.path.exists(path):
            try:
                shutil.copy2(path, path + ".bak")
            except OSError as e:
                logger.warning("Could not back up %s: %s", path, e)

        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{fmt.filename}.", dir=self.data_dir)
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
            tmp_path = None
        except OSError as e:
            raise PersistenceError(path, str(e)) from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

        logger.info("Saved %d %s record(s) to %s", len(records), kind, path)
