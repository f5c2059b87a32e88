"""
Runtime configuration for the dispatcher dashboard.

Settings come from environment variables (optionally loaded from .env),
and the board/phase matching policy is plain data so it can be swapped
or tested on its own.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Pattern, Tuple

DEFAULT_CRM_URL = "https://api.pipedrive.com/v1"
DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_ADDRESS_FIELD = "29d06d3e2226db5e54236028b71cc4189a9b0828"

TRANSPORT = "transport"
SERVICE = "service"

TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUE_VALUES


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass
class ClassifierConfig:
    """
    Keyword policy used to recognise boards and active phases.

    All matching is a case-insensitive substring test against display names.
    """

    board_keywords: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: {
        TRANSPORT: ("dostarczenie", "delivery", "transport"),
        SERVICE: ("serwis", "service", "naprawy", "warsztat"),
    })
    active_phase_keywords: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: {
        TRANSPORT: ("przygotowanie", "transport", "gotowe"),
        SERVICE: ("usterki", "diagnoza", "rozwiązanie", "termin", "napraw", "zgłoszenie"),
    })


@dataclass
class AdvanceTarget:
    """Where a job of one type goes when the dispatcher marks it done."""

    board_pattern: Pattern
    phase_pattern: Pattern


def default_advance_targets() -> Dict[str, AdvanceTarget]:
    return {
        TRANSPORT: AdvanceTarget(
            board_pattern=re.compile(r"dostarczenie|delivery", re.IGNORECASE),
            phase_pattern=re.compile(r"u klienta|maszyna u klienta", re.IGNORECASE),
        ),
        SERVICE: AdvanceTarget(
            board_pattern=re.compile(r"serwis|service|naprawy", re.IGNORECASE),
            phase_pattern=re.compile(r"wykonanie|zrealizowane|gotowe", re.IGNORECASE),
        ),
    }


@dataclass
class BaseLocation:
    """Company depot, the fixed first stop of every route."""

    name: str = "Baza LUPUS"
    address: str = "Mleczarska 6, Ciechanów"
    lat: float = 52.866405
    lng: float = 20.618454


@dataclass
class Settings:
    api_token: str = ""
    crm_url: str = DEFAULT_CRM_URL
    company_domain: str = "lupus"
    address_field: str = DEFAULT_ADDRESS_FIELD
    geocoder_url: str = DEFAULT_GEOCODER_URL
    geocoder_country: str = "pl"
    geocoder_min_interval: float = 1.1
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    db_path: Path = Path("data/dispatch.db")
    use_mock: bool = False
    http_timeout: float = 10.0
    record_limit: int = 500
    log_level: str = "INFO"
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    advance_targets: Dict[str, AdvanceTarget] = field(default_factory=default_advance_targets)
    base: BaseLocation = field(default_factory=BaseLocation)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        return cls(
            api_token=os.getenv("PIPEDRIVE_API_TOKEN", ""),
            crm_url=os.getenv("PIPEDRIVE_BASE_URL", DEFAULT_CRM_URL).rstrip("/"),
            company_domain=os.getenv("PIPEDRIVE_COMPANY_DOMAIN", "lupus"),
            address_field=os.getenv("PIPEDRIVE_ADDRESS_FIELD", DEFAULT_ADDRESS_FIELD),
            geocoder_url=os.getenv("GEOCODER_URL", DEFAULT_GEOCODER_URL),
            geocoder_country=os.getenv("GEOCODER_COUNTRY", "pl"),
            geocoder_min_interval=_env_float("GEOCODER_MIN_INTERVAL", 1.1),
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
            db_path=Path(os.getenv("DISPATCH_DB", "data/dispatch.db")),
            use_mock=_env_bool("DISPATCH_USE_MOCK"),
            http_timeout=_env_float("DISPATCH_HTTP_TIMEOUT", 10.0),
            record_limit=_env_int("DISPATCH_RECORD_LIMIT", 500),
            log_level=os.getenv("DISPATCH_LOG_LEVEL", "INFO"),
        )

    def project_link(self, project_id: int) -> str:
        return f"https://{self.company_domain}.pipedrive.com/projects/{project_id}/plan"
