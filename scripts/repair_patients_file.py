"""
Rewrite patients.csv in canonical form.

Legacy files may lack the bloodType/isAdmitted columns or carry free-text
blood types.  Loading applies the defaults (Unknown, not admitted) and the
blood type normalisation; saving writes every row back with all columns.
Lines that cannot be read are dropped from the new file; the previous
file is kept as patients.csv.bak.
"""

import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from core.config import configure_logging, get_config
from services.persistence import CsvPersistenceService


def main():
    cfg = get_config()
    configure_logging(cfg.LOG_LEVEL)

    persistence = CsvPersistenceService(cfg.DATA_DIR, keep_backups=True)
    path = persistence.path_for("patient")
    if not os.path.exists(path):
        print(f"Patients file not found at {path}")
        return

    patients = persistence.load_patients()
    problems = persistence.diagnostics("patient")
    print(f"Loaded {len(patients)} patient(s), {len(problems)} problem line(s).")
    for d in problems:
        print("   ", d)

    persistence.save_patients(patients)
    print(f"Rewrote {path}. Previous version kept at {path}.bak")


if __name__ == "__main__":
    main()
