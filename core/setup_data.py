# core/setup_data.py

import os

from core.config import configure_logging, get_config


def init_data_dir(path: str):
    """Create the data directory if needed. Missing files load as empty."""
    if not os.path.exists(path):
        os.makedirs(path)


def main():
    cfg = get_config()
    configure_logging(cfg.LOG_LEVEL, cfg.LOG_FILE)
    print(f"Preparing data directory {cfg.DATA_DIR}...")

    init_data_dir(cfg.DATA_DIR)

    print("Data directory ready.")

if __name__ == "__main__":
    main()
