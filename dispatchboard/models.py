"""
Typed shapes for CRM payloads and dispatcher jobs.

Raw API dicts are converted here and nowhere else; everything past the
fetch pipeline works with these dataclasses.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import PayloadError

UNKNOWN_CLIENT = "Unknown"
UNKNOWN_PHASE = "Unknown Phase"


class JobType(str, Enum):
    TRANSPORT = "transport"
    SERVICE = "service"


class JobStatus(str, Enum):
    OPEN = "open"
    COMPLETED = "completed"
    GEOCODING_ERROR = "geocoding_error"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class Board:
    id: int
    name: str


@dataclass(frozen=True)
class Phase:
    id: int
    name: str
    board_id: Optional[int] = None


@dataclass(frozen=True)
class ProjectRecord:
    id: int
    title: str
    phase_id: Optional[int]
    person_id: Optional[int] = None


@dataclass
class Contact:
    id: int
    name: str
    address: str = ""
    phone: Optional[str] = None


@dataclass
class Job:
    id: int
    title: str
    type: JobType
    client_name: str = UNKNOWN_CLIENT
    address: str = ""
    coordinates: Optional[Coordinates] = None
    status: JobStatus = JobStatus.OPEN
    phase_name: str = UNKNOWN_PHASE
    phone: Optional[str] = None
    person_id: Optional[int] = None
    link: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type.value,
            "client_name": self.client_name,
            "address": self.address,
            "coordinates": (
                {"lat": self.coordinates.lat, "lng": self.coordinates.lng}
                if self.coordinates else None
            ),
            "status": self.status.value,
            "phase_name": self.phase_name,
            "phone": self.phone,
            "person_id": self.person_id,
            "link": self.link,
        }

    def summary(self) -> str:
        """One-line description used in logs and the CLI listing."""
        where = self.address or "(no address)"
        return f"[{self.id}] {self.type.value:<9} {self.title} | {self.client_name} | {where} | {self.phase_name}"


def status_for(address: str, coordinates: Optional[Coordinates]) -> JobStatus:
    """A job is flagged only when it has an address that failed to resolve."""
    if coordinates is None and address.strip():
        return JobStatus.GEOCODING_ERROR
    return JobStatus.OPEN


def _ref_id(value: Any) -> Optional[int]:
    """Relations come back either as a bare id or as an object with 'value'."""
    if isinstance(value, dict):
        value = value.get("value", value.get("id"))
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _require(raw: Dict[str, Any], key: str, kind: str) -> Any:
    if not isinstance(raw, dict) or raw.get(key) is None:
        raise PayloadError(f"{kind} payload missing '{key}'")
    return raw[key]


def parse_board(raw: Dict[str, Any]) -> Board:
    return Board(id=int(_require(raw, "id", "board")), name=str(raw.get("name") or ""))


def parse_phase(raw: Dict[str, Any]) -> Phase:
    return Phase(
        id=int(_require(raw, "id", "phase")),
        name=str(raw.get("name") or ""),
        board_id=_ref_id(raw.get("board_id")),
    )


def parse_record(raw: Dict[str, Any]) -> ProjectRecord:
    return ProjectRecord(
        id=int(_require(raw, "id", "project")),
        title=str(raw.get("title") or ""),
        phase_id=_ref_id(raw.get("phase_id")),
        person_id=_ref_id(raw.get("person_id")),
    )


def _first_text(*candidates: Any) -> str:
    for c in candidates:
        if isinstance(c, str) and c.strip():
            return c.strip()
    return ""


def parse_contact(raw: Dict[str, Any], address_field: str) -> Contact:
    """
    Convert a person payload into a Contact.

    Address fallback order: custom address field, organization address,
    postal address. Phone is the first listed value, if any.
    """
    org = raw.get("org_id") if isinstance(raw, dict) else None
    org_address = org.get("address") if isinstance(org, dict) else None
    address = _first_text(raw.get(address_field), org_address, raw.get("postal_address"))

    phone = None
    phones = raw.get("phone")
    if isinstance(phones, list) and phones:
        first = phones[0]
        value = first.get("value") if isinstance(first, dict) else first
        if isinstance(value, str) and value.strip():
            phone = value.strip()

    return Contact(
        id=int(_require(raw, "id", "person")),
        name=_first_text(raw.get("name")) or UNKNOWN_CLIENT,
        address=address,
        phone=phone,
    )


REQUIRED_JOB_FIELDS = ["id", "title", "type", "status"]


def validate_job_dict(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Used to reject corrupt snapshot entries.
    """
    errors: List[str] = []
    if not isinstance(data, dict):
        return ["Entry must be an object"]

    for f in REQUIRED_JOB_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")

    if "id" in data and (not isinstance(data["id"], int) or isinstance(data["id"], bool)):
        errors.append("Field 'id' must be an integer")
    if "type" in data and data["type"] not in {t.value for t in JobType}:
        errors.append(f"Field 'type' has unknown value: {data['type']!r}")
    if "status" in data and data["status"] not in {s.value for s in JobStatus}:
        errors.append(f"Field 'status' has unknown value: {data['status']!r}")

    coords = data.get("coordinates")
    if coords is not None:
        if not isinstance(coords, dict) or not all(
            isinstance(coords.get(k), (int, float)) for k in ("lat", "lng")
        ):
            errors.append("Field 'coordinates' must hold numeric lat and lng")

    for f in ("title", "client_name", "address", "phase_name", "link"):
        if f in data and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    person_id = data.get("person_id")
    if person_id is not None and (not isinstance(person_id, int) or isinstance(person_id, bool)):
        errors.append("Field 'person_id' must be an integer or null")
    phone = data.get("phone")
    if phone is not None and not isinstance(phone, str):
        errors.append("Field 'phone' must be a string or null")

    return errors


def job_from_dict(data: Dict[str, Any]) -> Job:
    """Inverse of Job.to_dict; call validate_job_dict first."""
    coords = data.get("coordinates")
    return Job(
        id=data["id"],
        title=data["title"],
        type=JobType(data["type"]),
        client_name=data.get("client_name") or UNKNOWN_CLIENT,
        address=data.get("address") or "",
        coordinates=Coordinates(float(coords["lat"]), float(coords["lng"])) if coords else None,
        status=JobStatus(data["status"]),
        phase_name=data.get("phase_name") or UNKNOWN_PHASE,
        phone=data.get("phone"),
        person_id=data.get("person_id"),
        link=data.get("link") or "",
    )
