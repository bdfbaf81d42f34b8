import os

import pytest

from core.config import TestingConfig
from services import build_services
from services.persistence import CsvPersistenceService


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def persistence(data_dir):
    os.makedirs(data_dir, exist_ok=True)
    return CsvPersistenceService(data_dir)


@pytest.fixture
def services(data_dir):
    return build_services(data_dir=data_dir, cfg=TestingConfig)


@pytest.fixture
def write_file(data_dir):
    """Write raw text into a file under the data directory."""
    def _write(name, text):
        os.makedirs(data_dir, exist_ok=True)
        path = os.path.join(data_dir, name)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        return path
    return _write
