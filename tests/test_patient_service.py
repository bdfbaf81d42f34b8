"""Tests for the patient service facade."""

import logging
import os
import threading
from datetime import date, datetime, timedelta

import pytest

from core.config import TestingConfig
from core.errors import DependencyError, NotFoundError, PersistenceError, ValidationError
from services import build_services
from services.persistence import APPOINTMENTS_FILE, PATIENTS_FILE
from tests.utils import read_text


def register(services, n):
    return [
        services.patients.register_patient(f"First{i}", f"Last{i}", date(1980, 1, i + 1))
        for i in range(n)
    ]


class TestRegister:

    def test_ids_start_at_p101(self, services):
        patients = register(services, 5)
        assert [p.id for p in patients] == ["P101", "P102", "P103", "P104", "P105"]

    def test_deleted_id_in_the_middle_is_not_reused(self, services):
        register(services, 5)
        services.patients.delete_patient("P103")
        new = services.patients.register_patient("New", "Person")
        assert new.id == "P106"

    def test_ids_stay_unique_after_deleting_the_highest(self, services):
        register(services, 3)
        services.patients.delete_patient("P103")
        services.patients.register_patient("New", "Person")
        services.patients.register_patient("Other", "Person")
        ids = [p.id for p in services.patients.list_patients()]
        assert len(ids) == len(set(ids)) == 4

    def test_existing_records_never_change(self, services):
        before = {p.id: p for p in register(services, 6)}
        services.patients.delete_patient("P102")
        services.patients.delete_patient("P106")
        register(services, 3)
        for pid, original in before.items():
            if pid in ("P102", "P106"):
                continue
            assert services.patients.find_patient(pid) == original

    def test_fields_are_trimmed_and_defaults_applied(self, services):
        p = services.patients.register_patient("  Ann ", " Lee ", None, " Female ")
        assert (p.first_name, p.last_name, p.gender) == ("Ann", "Lee", "Female")
        assert p.blood_type == "Unknown"
        assert p.is_admitted is False

    def test_blood_type_normalized_on_register(self, services):
        assert services.patients.register_patient("Ann", "Lee", blood_type="o+").blood_type == "O+"

    @pytest.mark.parametrize("first,last,field", [("", "Lee", "first_name"), ("Ann", "  ", "last_name")])
    def test_missing_name(self, services, first, last, field):
        with pytest.raises(ValidationError) as exc:
            services.patients.register_patient(first, last)
        assert exc.value.field == field
        assert services.patients.list_patients() == []

    def test_future_birth_date_rejected(self, services):
        with pytest.raises(ValidationError) as exc:
            services.patients.register_patient("Ann", "Lee", date.today() + timedelta(days=1))
        assert exc.value.field == "date_of_birth"

    def test_birth_date_string_is_parsed(self, services):
        p = services.patients.register_patient("Ann", "Lee", "1990-05-17")
        assert p.date_of_birth == date(1990, 5, 17)

    def test_register_is_persisted(self, services, data_dir):
        services.patients.register_patient("Ann", "Lee")
        text = read_text(os.path.join(data_dir, PATIENTS_FILE))
        assert "P101,Ann,Lee,,,,,Unknown,false\n" in text


class TestLookup:

    def test_find_missing_returns_none(self, services):
        assert services.patients.find_patient("P999") is None

    def test_find_is_case_and_space_tolerant(self, services):
        register(services, 1)
        assert services.patients.find_patient(" p101 ").id == "P101"

    def test_search_is_case_insensitive_substring(self, services):
        services.patients.register_patient("Ann", "Lee")
        services.patients.register_patient("Joanna", "Smith")
        services.patients.register_patient("Bob", "Stone")
        assert [p.id for p in services.patients.search_patients("ANN")] == ["P101", "P102"]
        assert [p.id for p in services.patients.search_patients("p103")] == ["P103"]
        assert services.patients.search_patients("zzz") == []

    def test_blank_search_lists_everyone(self, services):
        register(services, 2)
        assert len(services.patients.search_patients("  ")) == 2

    def test_returned_patient_is_a_snapshot(self, services):
        p = services.patients.register_patient("Ann", "Lee")
        p.first_name = "Mallory"
        assert services.patients.find_patient("P101").first_name == "Ann"


class TestUpdate:

    def test_update_only_given_fields(self, services):
        services.patients.register_patient("Ann", "Lee", date(1980, 1, 1), "Female", "555", "1 Road")
        p = services.patients.update_patient("P101", address="2 Street", contact_number="777")
        assert (p.first_name, p.gender, p.address, p.contact_number) == ("Ann", "Female", "2 Street", "777")

    def test_update_missing_patient(self, services):
        with pytest.raises(NotFoundError) as exc:
            services.patients.update_patient("P404", first_name="X")
        assert "P404" in str(exc.value)

    def test_invalid_update_changes_nothing(self, services):
        services.patients.register_patient("Ann", "Lee")
        with pytest.raises(ValidationError):
            services.patients.update_patient("P101", first_name="Anna", last_name="")
        assert services.patients.find_patient("P101").first_name == "Ann"

    def test_blood_type_is_normalized(self, services):
        register(services, 1)
        assert services.patients.update_patient("P101", blood_type="b+").blood_type == "B+"

    def test_invalid_blood_type_is_recorded_and_stored_unknown(self, services, caplog):
        register(services, 1)
        services.patients.update_patient("P101", blood_type="b+")
        with caplog.at_level(logging.WARNING):
            p = services.patients.update_patient("P101", blood_type="Z9")
        assert p.blood_type == "Unknown"
        assert "Rejected blood type 'Z9' for patient P101" in caplog.text

    def test_update_medical_info_persists(self, services, data_dir):
        register(services, 1)
        services.patients.update_medical_info("P101", "ab-")
        reloaded = build_services(data_dir=data_dir, cfg=TestingConfig)
        assert reloaded.patients.find_patient("P101").blood_type == "AB-"

    def test_update_medical_info_missing_patient(self, services):
        with pytest.raises(NotFoundError):
            services.patients.update_medical_info("P101", "A+")

    def test_failed_save_leaves_memory_unchanged(self, services, monkeypatch):
        register(services, 1)

        def fail(_):
            raise PersistenceError("patients.csv", "disk full")

        monkeypatch.setattr(services.persistence, "save_patients", fail)
        with pytest.raises(PersistenceError):
            services.patients.update_patient("P101", first_name="Changed")
        assert services.patients.find_patient("P101").first_name == "First0"


class TestAdmission:

    def test_admit_and_discharge(self, services, data_dir):
        register(services, 2)
        services.patients.admit_patient("P102")
        assert [p.id for p in services.patients.list_admitted()] == ["P102"]

        reloaded = build_services(data_dir=data_dir, cfg=TestingConfig)
        assert reloaded.patients.find_patient("P102").is_admitted is True

        services.patients.discharge_patient("P102")
        assert services.patients.list_admitted() == []

    def test_admit_missing_patient(self, services):
        with pytest.raises(NotFoundError):
            services.patients.admit_patient("P101")
        with pytest.raises(NotFoundError):
            services.patients.discharge_patient("P101")

    def test_failed_save_keeps_admission_state(self, services, monkeypatch):
        register(services, 1)

        def fail(_):
            raise PersistenceError("patients.csv", "disk full")

        monkeypatch.setattr(services.persistence, "save_patients", fail)
        with pytest.raises(PersistenceError):
            services.patients.admit_patient("P101")
        assert services.patients.find_patient("P101").is_admitted is False


class TestDelete:

    def test_delete_without_dependents(self, services, data_dir):
        register(services, 2)
        services.patients.delete_patient("P101")
        assert services.patients.find_patient("P101") is None

        reloaded = build_services(data_dir=data_dir, cfg=TestingConfig)
        assert [p.id for p in reloaded.patients.list_patients()] == ["P102"]

    def test_delete_missing_patient(self, services):
        with pytest.raises(NotFoundError):
            services.patients.delete_patient("P101")

    def test_bill_blocks_deletion_until_removed(self, services):
        register(services, 5)
        bill = services.billing.create_bill("P104", "80.00")

        with pytest.raises(DependencyError) as exc:
            services.patients.delete_patient("P104")
        assert exc.value.blocking_reasons == ["1 bill(s)"]
        assert "1 bill(s)" in str(exc.value)
        assert services.patients.find_patient("P104") is not None

        services.billing.delete_bill(bill.id)
        services.patients.delete_patient("P104")
        assert services.patients.find_patient("P104") is None

    def test_appointments_and_bills_are_itemized(self, services):
        register(services, 1)
        when = datetime(2024, 6, 1, 10, 0)
        services.appointments.schedule_appointment("P101", "Check-up", when)
        services.appointments.schedule_appointment("P101", "Follow-up", when + timedelta(days=7))
        services.billing.create_bill("P101", 50)

        check = services.patients.check_deletion("P101")
        assert not check.allowed
        assert check.blocking_reasons == ["2 appointment(s)", "1 bill(s)"]

        with pytest.raises(DependencyError) as exc:
            services.patients.delete_patient("P101")
        assert exc.value.blocking_reasons == ["2 appointment(s)", "1 bill(s)"]

    def test_cancelled_appointment_still_blocks(self, services):
        register(services, 1)
        appt = services.appointments.schedule_appointment("P101", "Check-up", datetime(2024, 6, 1, 10, 0))
        services.appointments.cancel_appointment(appt.id)
        with pytest.raises(DependencyError):
            services.patients.delete_patient("P101")

    def test_medical_records_are_itemized(self, services):
        register(services, 1)
        services.billing.create_bill("P101", 50)
        services.medical_records.add_record("P101", "Flu")
        services.medical_records.add_record("P101", "Sprain")

        with pytest.raises(DependencyError) as exc:
            services.patients.delete_patient("P101")
        assert exc.value.blocking_reasons == ["1 bill(s)", "2 medical record(s)"]

    @pytest.mark.parametrize("create", [
        lambda s: s.appointments.schedule_appointment("P101", "Check-up", datetime(2024, 6, 1, 10, 0)),
        lambda s: s.billing.create_bill("P101", 10),
        lambda s: s.medical_records.add_record("P101", "Flu"),
    ], ids=["appointment", "bill", "medical_record"])
    def test_new_dependent_waits_for_running_delete(self, services, monkeypatch, create):
        register(services, 1)
        checker = services.patients.dependency_checker
        original = checker.can_delete
        checked = threading.Event()
        release = threading.Event()

        def paused_can_delete(patient_id):
            check = original(patient_id)
            checked.set()
            release.wait(timeout=5)
            return check

        monkeypatch.setattr(checker, "can_delete", paused_can_delete)

        deleter = threading.Thread(target=services.patients.delete_patient, args=("P101",))
        deleter.start()
        assert checked.wait(timeout=5)

        outcome = {}

        def add_dependent():
            try:
                outcome["created"] = create(services)
            except NotFoundError as e:
                outcome["error"] = e

        creator = threading.Thread(target=add_dependent)
        creator.start()
        creator.join(timeout=0.2)
        assert creator.is_alive()

        release.set()
        deleter.join(timeout=5)
        creator.join(timeout=5)

        assert services.patients.find_patient("P101") is None
        assert "created" not in outcome
        assert isinstance(outcome["error"], NotFoundError)
        for source in checker.dependents.values():
            assert source.find_all_referencing("P101") == []


class TestLoadedIds:

    def test_lower_case_ids_in_files_are_usable(self, data_dir, write_file):
        write_file(
            PATIENTS_FILE,
            "id,firstName,lastName,dateOfBirth,gender,contactNumber,address,bloodType,isAdmitted\n"
            "p101,Ann,Lee,,,,,A+,false\n",
        )
        write_file(
            APPOINTMENTS_FILE,
            "id,patientId,patientName,type,dateTime,status\n"
            "a101, p101 ,Ann Lee,Check-up,2024-06-01 10:00:00,SCHEDULED\n",
        )
        reloaded = build_services(data_dir=data_dir, cfg=TestingConfig)

        assert reloaded.patients.find_patient("p101").id == "P101"
        assert reloaded.patients.register_patient("Bob", "Ray").id == "P102"
        assert reloaded.appointments.get_appointment("A101").patient_id == "P101"
        with pytest.raises(DependencyError) as exc:
            reloaded.patients.delete_patient("P101")
        assert exc.value.blocking_reasons == ["1 appointment(s)"]
