"""
Pytest configuration and shared fixtures.
"""

from dispatchboard.logger import get_logger

# Create the shared logger before any module grabs it, without a log file.
get_logger(enable_file=False, enable_console=False)

import pytest
import requests
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from dispatchboard.errors import CrmError
from dispatchboard.geocoding import GeoResolver
from dispatchboard.models import Board, Contact, Phase, ProjectRecord
from dispatchboard.ratelimit import MinIntervalLimiter
from dispatchboard.snapshot import SnapshotCache


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload: Any = None, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """
    Records calls and answers them through a handler.

    The handler receives (method, url, kwargs) and returns a FakeResponse
    or raises a requests exception.
    """

    def __init__(self, handler: Callable[[str, str, dict], FakeResponse]):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.handler(method, url, kwargs)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self.request("PUT", url, **kwargs)


class FakeCrm:
    """In-memory CRM with call counting and injectable failures."""

    def __init__(
        self,
        boards: Optional[List[Board]] = None,
        phases: Optional[Dict[int, List[Phase]]] = None,
        records: Optional[List[ProjectRecord]] = None,
        contacts: Optional[Dict[int, Contact]] = None,
    ):
        self.boards = boards if boards is not None else []
        self.phases = phases if phases is not None else {}
        self.records = records if records is not None else []
        self.contacts = contacts if contacts is not None else {}
        self.fail: set = set()
        self.calls: List[tuple] = []

    def _check(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.fail:
            raise CrmError(f"{name} failed", status=500)

    def list_boards(self):
        self._check("list_boards")
        return list(self.boards)

    def list_phases(self, board_id):
        self._check("list_phases", board_id)
        return list(self.phases.get(board_id, []))

    def list_open_records(self, limit=500):
        self._check("list_open_records", limit)
        return list(self.records)[:limit]

    def get_contact(self, person_id):
        self._check("get_contact", person_id)
        if person_id not in self.contacts:
            raise CrmError(f"Person {person_id} not found", status=404)
        c = self.contacts[person_id]
        return Contact(c.id, c.name, c.address, c.phone)

    def update_contact_address(self, person_id, address):
        self._check("update_contact_address", person_id, address)
        self.contacts[person_id].address = address

    def update_record_phase(self, record_id, phase_id):
        self._check("update_record_phase", record_id, phase_id)
        for i, r in enumerate(self.records):
            if r.id == record_id:
                self.records[i] = ProjectRecord(r.id, r.title, phase_id, r.person_id)
                return
        raise CrmError(f"Project {record_id} not found", status=404)


KNOWN_PLACES = {
    "Warszawska 1, Mława": ("53.1128", "20.3841"),
    "ul. Polna 5, Płońsk": ("52.6240", "20.3758"),
    "Szamotuły, Dworcowa 10": ("52.6121", "16.5776"),
    "Mleczarska 6, Ciechanów": ("52.8664", "20.6184"),
}


def nominatim_handler(method, url, kwargs):
    query = kwargs["params"]["q"]
    if query in KNOWN_PLACES:
        lat, lon = KNOWN_PLACES[query]
        return FakeResponse([{"lat": lat, "lon": lon, "display_name": query}])
    return FakeResponse([])


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def limiter(sleeps) -> MinIntervalLimiter:
    """Limiter that records its delays instead of sleeping."""
    return MinIntervalLimiter(1.1, sleep=sleeps.append)


@pytest.fixture
def geo_session() -> FakeSession:
    return FakeSession(nominatim_handler)


@pytest.fixture
def geocoder(geo_session, limiter) -> GeoResolver:
    return GeoResolver(limiter=limiter, session=geo_session)


@pytest.fixture
def snapshot(tmp_path) -> SnapshotCache:
    return SnapshotCache(tmp_path / "dispatch.db")


@pytest.fixture
def scenario_crm() -> FakeCrm:
    """Two boards, one active phase each, plus a done phase per board."""
    return FakeCrm(
        boards=[Board(1, "Dostarczenie"), Board(2, "Serwis")],
        phases={
            1: [Phase(10, "Przygotowanie", 1), Phase(12, "Maszyna u klienta", 1)],
            2: [Phase(20, "Zgłoszenie usterki", 2), Phase(22, "Wykonanie", 2)],
        },
        records=[
            ProjectRecord(500, "Kombajn Zbożowy CX8", 10, 1),
            ProjectRecord(501, "Naprawa talerzówki", 20, 2),
            ProjectRecord(502, "Ciągnik w magazynie", 999, None),
            ProjectRecord(503, "Siewnik Precyzyjny 4m", 10, 3),
        ],
        contacts={
            1: Contact(1, "Jan Kowalski", "ul. Polna 5, Płońsk", "500-100-100"),
            2: Contact(2, "Piotr Zieliński", "Warszawska 1, Mława", "700-300-300"),
            3: Contact(3, "Adam Nowak", "Nieistniejąca 99, Nigdzie", None),
        },
    )
