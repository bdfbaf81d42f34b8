import os
import sys

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, ROOT)

from core.config import get_config
from services.persistence import CsvPersistenceService

cfg = get_config()
persistence = CsvPersistenceService(cfg.DATA_DIR, keep_backups=False)
print("Data dir:", cfg.DATA_DIR, "exists:", os.path.exists(cfg.DATA_DIR))

loaders = {
    "patient": persistence.load_patients,
    "appointment": persistence.load_appointments,
    "bill": persistence.load_bills,
    "payment": persistence.load_payments,
    "medical_record": persistence.load_medical_records,
}

for kind, load in loaders.items():
    path = persistence.path_for(kind)
    records = load()
    print(f"{kind}s: {len(records)} record(s) in {path} (exists: {os.path.exists(path)})")
    for d in persistence.diagnostics(kind):
        print("   ", d)
    for r in records[-5:]:
        print("   ", r)
