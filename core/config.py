import logging
import os
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv

load_dotenv()

# Path: project_root/data
BASE_DIR = os.path.dirname(os.path.dirname(__file__))


class Config:
    """Base configuration"""
    DATA_DIR = os.getenv("DATA_DIR", os.path.join(BASE_DIR, "data"))

    # First issued id is floor + 1 (P101, A101, B101, M101, PAY101)
    PATIENT_ID_FLOOR = int(os.getenv("PATIENT_ID_FLOOR", "100"))
    APPOINTMENT_ID_FLOOR = int(os.getenv("APPOINTMENT_ID_FLOOR", "100"))
    BILL_ID_FLOOR = int(os.getenv("BILL_ID_FLOOR", "100"))
    MEDICAL_RECORD_ID_FLOOR = int(os.getenv("MEDICAL_RECORD_ID_FLOOR", "100"))
    PAYMENT_ID_FLOOR = int(os.getenv("PAYMENT_ID_FLOOR", "100"))

    KEEP_BACKUPS = os.getenv("KEEP_BACKUPS", "true").lower() == "true"

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE")


class DevelopmentConfig(Config):
    """Development configuration"""
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    """Production configuration"""
    LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")
    LOG_FILE = os.getenv("LOG_FILE", os.path.join(BASE_DIR, "logs", "records.log"))


class TestingConfig(Config):
    """Testing configuration"""
    DATA_DIR = os.getenv("TEST_DATA_DIR", os.path.join(BASE_DIR, "data", "test"))
    KEEP_BACKUPS = True
    LOG_FILE = None


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


def get_config():
    """Get configuration based on RECORDS_ENV"""
    env = os.getenv("RECORDS_ENV", "development")
    return config.get(env, config["default"])


def configure_logging(level: str = "INFO", log_file: str | None = None):
    """Set up root logging once; optionally mirror to a rotating file."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s: %(message)s",
    )

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(log_file, maxBytes=10240000, backupCount=10)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"
        ))
        logging.getLogger().addHandler(file_handler)
