from __future__ import annotations

import os
from pathlib import Path
from typing import List


class Settings:
    """Centralized configuration for the symptom tracker backend."""

    def __init__(self) -> None:
        base_dir = Path(__file__).resolve().parent
        repo_root = base_dir.parent
        data_root_default = repo_root / "data"

        self.data_root: Path = Path(
            os.environ.get("SYMTRACK_DATA_ROOT") or data_root_default
        ).expanduser()
        self.db_path: Path = Path(
            os.environ.get("SYMTRACK_DB_PATH") or (self.data_root / "symptom_tracker.db")
        ).expanduser()

        # ---- Analytics caching ----
        self.correlation_ttl_hours: float = float(
            os.environ.get("SYMTRACK_CORRELATION_TTL_HOURS") or "24"
        )
        self.trend_ttl_hours: float = float(
            os.environ.get("SYMTRACK_TREND_TTL_HOURS") or "24"
        )

        # ---- Background recalculation ----
        self.recalc_debounce_sec: float = float(
            os.environ.get("SYMTRACK_RECALC_DEBOUNCE_SEC") or "300"
        )
        self.recalc_fresh_sec: float = float(
            os.environ.get("SYMTRACK_RECALC_FRESH_SEC") or "3600"
        )
        self.correlation_retention_days: int = int(
            os.environ.get("SYMTRACK_CORRELATION_RETENTION_DAYS") or "7"
        )
        self.workers: int = max(1, int(os.environ.get("SYMTRACK_WORKERS") or "2"))
        self.min_threshold: float = float(
            os.environ.get("SYMTRACK_MIN_THRESHOLD") or "0.3"
        )

        self.host: str = os.environ.get("SYMTRACK_HOST") or "127.0.0.1"
        self.port_raw: str = os.environ.get("SYMTRACK_PORT") or "8000"
        self.log_level: str = (os.environ.get("SYMTRACK_LOG_LEVEL") or "INFO").upper()

        cors = os.environ.get("SYMTRACK_CORS_ORIGINS", "*")
        if cors.strip() == "*":
            self.cors_origins: List[str] = ["*"]
        else:
            self.cors_origins = [
                origin.strip() for origin in cors.split(",") if origin.strip()
            ]


settings = Settings()
