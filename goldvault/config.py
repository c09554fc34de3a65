"""
config.py - settings, logging and backend selection

Settings come from environment variables (see Settings.from_env). The
Google Sheets store is used when GOOGLE_SHEET_ID is set and the sheet can be
opened; otherwise data lives in a local JSON file.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple
import calendar
import logging
import os

from goldvault.storage import GoogleSheetsStore, JsonFileStore, KeyValueStore

logger = logging.getLogger(__name__)

# location of the JSON store (relative to goldvault/)
DEFAULT_DATA_FILE = os.path.join(os.path.dirname(__file__), "..", "data", "goldvault_data.json")

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


@dataclass(frozen=True)
class Settings:
    data_file: str = DEFAULT_DATA_FILE
    google_sheet_id: str = ""
    google_service_account_json: str = ""
    google_service_account_file: str = ""
    first_weekday: int = field(default_factory=calendar.firstweekday)
    validation: str = "accept_all"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        weekday_raw = (env.get("GOLDVAULT_FIRST_WEEKDAY") or "").strip()
        try:
            first_weekday = int(weekday_raw) if weekday_raw else calendar.firstweekday()
        except ValueError:
            logger.warning("Ignoring invalid GOLDVAULT_FIRST_WEEKDAY=%r", weekday_raw)
            first_weekday = calendar.firstweekday()
        if not 0 <= first_weekday <= 6:
            logger.warning("GOLDVAULT_FIRST_WEEKDAY=%d out of range, using 0", first_weekday)
            first_weekday = 0
        return cls(
            data_file=(env.get("GOLDVAULT_DATA_FILE") or "").strip() or DEFAULT_DATA_FILE,
            google_sheet_id=(env.get("GOOGLE_SHEET_ID") or "").strip(),
            google_service_account_json=(env.get("GOOGLE_SERVICE_ACCOUNT_JSON") or "").strip(),
            google_service_account_file=(env.get("GOOGLE_SERVICE_ACCOUNT_FILE") or "").strip(),
            first_weekday=first_weekday,
            validation=(env.get("GOLDVAULT_VALIDATION") or "accept_all").strip(),
            log_level=(env.get("GOLDVAULT_LOG_LEVEL") or "INFO").strip().upper(),
        )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the package logger once."""
    root = logging.getLogger("goldvault")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return root


def build_store(settings: Settings) -> Tuple[KeyValueStore, str]:
    """
    Return the store to use and a short diagnostic message for the UI.
    """
    if settings.google_sheet_id:
        gs = GoogleSheetsStore(
            sheet_id=settings.google_sheet_id,
            service_account_json=settings.google_service_account_json,
            service_account_file=settings.google_service_account_file,
        )
        if gs.available:
            logger.info("Using Google Sheets storage")
            return gs, "Persistent storage active (Google Sheets)."
        reason = gs.reason
    else:
        reason = "Google Sheets not configured"
    store = JsonFileStore(settings.data_file)
    logger.info("Using local JSON storage at %s", store.path)
    return store, f"Using local file fallback: {reason}."
