from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SCHEDULE_NOTE = "To be taken 28 days after 1st Dose"


class BridgeSettings(BaseModel):
    """Deployment knobs for the DigiLocker bridge, read from DIGILOCKER_* variables."""

    model_config = ConfigDict(frozen=True)

    auth_key_name: str = Field("x-digilocker-hmac", description="Header carrying the request HMAC")
    auth_hmac_key: str = Field("", description="Pre-shared key agreed with DigiLocker")
    doc_type: str = "VACER"
    uri_template: str = Field(
        "https://moh.india.gov/vc/{certificate_id}",
        description="Public locator for a resolved certificate",
    )
    registry_url: Optional[str] = None
    registry_timeout: float = Field(10.0, gt=0)
    registry_seed: Optional[Path] = Field(
        None, description="JSON file with records for the in-memory registry"
    )
    template_path: Path = Path("Certificate.pdf")
    font_path: Optional[Path] = None
    schedule_note: str = DEFAULT_SCHEDULE_NOTE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "BridgeSettings":
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"DIGILOCKER_{name.upper()}")
            if raw is None:
                continue
            raw = raw.strip()
            if not raw:
                continue
            values[name] = raw
        return cls(**values)


def init_logging(level: str = "INFO") -> None:
    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "digilocker_bridge": {"level": level.upper()},
        },
        "root": {"level": "WARNING", "handlers": ["console"]},
    }
    logging.config.dictConfig(config)
