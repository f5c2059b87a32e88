"""Moves a job to its type-specific "done" phase in the CRM."""

from typing import Dict, Optional

from .config import AdvanceTarget, default_advance_targets
from .errors import DispatchError
from .logger import get_logger
from .models import JobType

logger = get_logger()


class StageAdvancer:
    """
    Locates the destination board and phase by name pattern and moves the
    record there. The record's current phase is never inspected.
    """

    def __init__(self, crm, targets: Optional[Dict[str, AdvanceTarget]] = None):
        self.crm = crm
        self.targets = targets or default_advance_targets()

    def advance(self, job_id: int, job_type: JobType) -> bool:
        target = self.targets.get(JobType(job_type).value)
        if target is None:
            logger.error("No advance target configured", job_id=job_id, type=str(job_type))
            return False

        logger.info(f"Advancing project {job_id}", type=JobType(job_type).value)
        try:
            boards = self.crm.list_boards()
            board = next((b for b in boards if target.board_pattern.search(b.name)), None)
            if board is None:
                logger.error(
                    "Destination board not found",
                    job_id=job_id,
                    pattern=target.board_pattern.pattern,
                    boards=[b.name for b in boards],
                )
                return False

            phases = self.crm.list_phases(board.id)
            phase = next((p for p in phases if target.phase_pattern.search(p.name)), None)
            if phase is None:
                logger.error(
                    "Destination phase not found",
                    job_id=job_id,
                    pattern=target.phase_pattern.pattern,
                    phases=[p.name for p in phases],
                )
                return False

            logger.info(f"Moving project {job_id} to [{board.name}] -> [{phase.name}]")
            self.crm.update_record_phase(job_id, phase.id)
        except DispatchError as e:
            logger.error("Stage advance failed", job_id=job_id, error=str(e))
            return False
        return True
