"""
Job classification by workflow board and phase names.

Board and phase names are edited by people in the CRM, so matching is a
case-insensitive substring test against the keyword sets in ClassifierConfig.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import ClassifierConfig
from .errors import ClassificationError
from .logger import get_logger
from .models import Board, JobType, Phase, ProjectRecord

logger = get_logger()

# Transport is checked before service.
TYPE_ORDER = (JobType.TRANSPORT, JobType.SERVICE)


def matches_any(name: str, keywords: Iterable[str]) -> bool:
    lowered = (name or "").lower()
    return any(k.lower() in lowered for k in keywords)


@dataclass
class BoardSelection:
    """Boards chosen for each job type plus their phases once loaded."""

    boards: Dict[JobType, Board] = field(default_factory=dict)
    phases: Dict[JobType, List[Phase]] = field(default_factory=dict)
    active_phase_ids: Dict[JobType, Set[int]] = field(default_factory=dict)

    def phase_names(self) -> Dict[int, str]:
        names: Dict[int, str] = {}
        for phases in self.phases.values():
            for p in phases:
                names[p.id] = p.name
        return names


class ProjectClassifier:
    def __init__(self, config: Optional[ClassifierConfig] = None):
        self.config = config or ClassifierConfig()

    def select_boards(self, boards: Sequence[Board]) -> BoardSelection:
        """
        Pick at most one board per job type, first match wins.

        Raises:
            ClassificationError: If no board matches either type
        """
        selection = BoardSelection()
        for job_type in TYPE_ORDER:
            keywords = self.config.board_keywords.get(job_type.value, ())
            board = next((b for b in boards if matches_any(b.name, keywords)), None)
            if board is None:
                logger.warning(f"No {job_type.value} board found", boards=[b.name for b in boards])
                continue
            logger.info(f"{job_type.value.capitalize()} board selected", board_id=board.id, name=board.name)
            selection.boards[job_type] = board

        if not selection.boards:
            raise ClassificationError("Neither a transport nor a service board was found")
        return selection

    def active_phases(self, job_type: JobType, phases: Sequence[Phase]) -> Set[int]:
        keywords = self.config.active_phase_keywords.get(job_type.value, ())
        return {p.id for p in phases if matches_any(p.name, keywords)}

    def attach_phases(self, selection: BoardSelection, job_type: JobType, phases: Sequence[Phase]) -> None:
        selection.phases[job_type] = list(phases)
        selection.active_phase_ids[job_type] = self.active_phases(job_type, phases)
        logger.debug(
            f"Active {job_type.value} phases",
            all=[p.name for p in phases],
            active=sorted(selection.active_phase_ids[job_type]),
        )

    def classify_record(self, selection: BoardSelection, record: ProjectRecord) -> Optional[JobType]:
        if record.phase_id is None:
            return None
        for job_type in TYPE_ORDER:
            if record.phase_id in selection.active_phase_ids.get(job_type, ()):
                return job_type
        return None

    def classify(self, selection: BoardSelection, records: Iterable[ProjectRecord]) -> List[Tuple[ProjectRecord, JobType]]:
        """Keep records in an active phase of a selected board, tagged with their type."""
        classified = []
        for record in records:
            job_type = self.classify_record(selection, record)
            if job_type is not None:
                classified.append((record, job_type))
        return classified
