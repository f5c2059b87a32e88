"""In-memory stand-in for the CRM, used in mock mode and demos."""

import copy
from typing import Dict, List

from .errors import CrmError
from .models import Board, Contact, Phase, ProjectRecord

MOCK_BOARDS = [
    Board(1, "Dostarczenie maszyn"),
    Board(2, "Serwis"),
]

MOCK_PHASES = {
    1: [
        Phase(10, "Przygotowanie maszyny", 1),
        Phase(11, "Transport LUPUS lub inny", 1),
        Phase(12, "Maszyna u klienta", 1),
    ],
    2: [
        Phase(20, "Zgłoszenie usterki", 2),
        Phase(21, "Diagnoza", 2),
        Phase(22, "Wykonanie", 2),
    ],
}

MOCK_RECORDS = [
    ProjectRecord(101, "Kombajn Zbożowy CX8", 10, 1),
    ProjectRecord(102, "Siewnik Precyzyjny 4m", 11, 2),
    ProjectRecord(103, "Naprawa gwarancyjna talerzówki", 20, 3),
]

MOCK_CONTACTS = {
    1: Contact(1, "Jan Kowalski", "ul. Polna 5, Płońsk", "500-100-100"),
    2: Contact(2, "Adam Nowak", "Szamotuły, Dworcowa 10", "600-200-200"),
    3: Contact(3, "Piotr Zieliński", "Mława, Warszawska 1", "700-300-300"),
}


class MockCrmClient:
    """Same interface as PipedriveClient; updates change the in-memory data."""

    def __init__(self):
        self.boards: List[Board] = list(MOCK_BOARDS)
        self.phases: Dict[int, List[Phase]] = {k: list(v) for k, v in MOCK_PHASES.items()}
        self.records: Dict[int, ProjectRecord] = {r.id: r for r in MOCK_RECORDS}
        self.contacts: Dict[int, Contact] = copy.deepcopy(MOCK_CONTACTS)

    def list_boards(self) -> List[Board]:
        return list(self.boards)

    def list_phases(self, board_id: int) -> List[Phase]:
        return list(self.phases.get(board_id, []))

    def list_open_records(self, limit: int = 500) -> List[ProjectRecord]:
        return list(self.records.values())[:limit]

    def get_contact(self, person_id: int) -> Contact:
        if person_id not in self.contacts:
            raise CrmError(f"Person {person_id} not found", status=404)
        return copy.copy(self.contacts[person_id])

    def update_contact_address(self, person_id: int, address: str) -> None:
        if person_id not in self.contacts:
            raise CrmError(f"Person {person_id} not found", status=404)
        self.contacts[person_id].address = address

    def update_record_phase(self, record_id: int, phase_id: int) -> None:
        record = self.records.get(record_id)
        if record is None:
            raise CrmError(f"Project {record_id} not found", status=404)
        self.records[record_id] = ProjectRecord(record.id, record.title, phase_id, record.person_id)
