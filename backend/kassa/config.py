# backend/kassa/config.py
from __future__ import annotations
import os
from pathlib import Path

DB_FILE_NAME = "pos_system.db"


def default_data_dir() -> Path:
    """
    Per-user application data directory.

    KASSA_DATA_DIR wins; otherwise %APPDATA%\\kassa on Windows and
    $XDG_DATA_HOME/kassa (or ~/.local/share/kassa) elsewhere.
    """
    override = os.environ.get("KASSA_DATA_DIR")
    if override:
        return Path(override)
    if os.name == "nt":
        root = os.environ.get("APPDATA") or str(Path.home() / "AppData" / "Roaming")
    else:
        root = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(root) / "kassa"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [part for part in raw.split(os.pathsep) if part.strip()]


class Config:
    # SQLite DB stored in the per-user data dir unless DATABASE_URL says otherwise
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{(default_data_dir() / DB_FILE_NAME).as_posix()}",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a writer waits on a locked store before OperationalError
    SQLITE_BUSY_TIMEOUT = float(os.environ.get("SQLITE_BUSY_TIMEOUT", "5"))

    # Upgrade the schema on every startup (idempotent)
    AUTO_MIGRATE = _env_flag("KASSA_AUTO_MIGRATE", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    STORE_NAME = os.environ.get("STORE_NAME", "Do'kon")

    # Printer executables: extra directories are probed before the bundled ones
    PRINTER_BIN_DIRS = _env_list("KASSA_BIN_DIR")
    LABEL_BINARIES = ["testbarcode.exe", "labelc.exe", "labelc"]
    RECEIPT_BINARIES = ["receipt.exe", "receipt2.exe", "receipt2"]
    LABEL_PRINTER_NAME = os.environ.get("LABEL_PRINTER_NAME", "label")
    RECEIPT_PRINTER_NAME = os.environ.get("RECEIPT_PRINTER_NAME", "receipt")

    BARCODE_MAX_TRIES = int(os.environ.get("BARCODE_MAX_TRIES", "20"))
