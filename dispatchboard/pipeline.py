"""
Full refresh: CRM records to geocoded, typed jobs.

Steps run strictly in order and none of them retries. Contact lookups
and geocoding run one record at a time because the geocoder is rate
limited; a full refresh over many jobs is slow for that reason alone.
"""

from typing import Callable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from .classifier import BoardSelection, ProjectClassifier
from .errors import FETCH_FAILED, ClassificationError, DispatchError, _FetchFailed
from .geocoding import GeoResolver
from .logger import get_logger
from .models import UNKNOWN_CLIENT, UNKNOWN_PHASE, Contact, Job, JobType, ProjectRecord, status_for
from .snapshot import SnapshotCache

logger = get_logger()

FetchResult = Union[List[Job], _FetchFailed]


class ProjectFetchPipeline:
    def __init__(
        self,
        crm,
        geocoder: GeoResolver,
        snapshot: Optional[SnapshotCache] = None,
        classifier: Optional[ProjectClassifier] = None,
        record_limit: int = 500,
        link_for: Optional[Callable[[int], str]] = None,
    ):
        self.crm = crm
        self.geocoder = geocoder
        self.snapshot = snapshot
        self.classifier = classifier or ProjectClassifier()
        self.record_limit = record_limit
        self.link_for = link_for or (lambda project_id: "")

    def fetch_all(self) -> FetchResult:
        """
        Rebuild the full job list from the CRM.

        Returns FETCH_FAILED when boards, phases or records cannot be loaded,
        or when no board can be classified. The snapshot is only written on
        a non-empty success.
        """
        try:
            jobs = self._run()
        except ClassificationError as e:
            logger.error("Classification impossible, refresh aborted", error=str(e))
            return FETCH_FAILED
        except DispatchError as e:
            logger.error("Refresh failed, keeping previous data", error=str(e), type=type(e).__name__)
            return FETCH_FAILED

        if jobs:
            self._persist(jobs)
        else:
            logger.warning("Refresh returned no jobs, snapshot left unchanged")
        return jobs

    def _persist(self, jobs: List[Job]) -> None:
        if self.snapshot is None:
            return
        try:
            self.snapshot.replace(jobs)
        except SQLAlchemyError as e:
            logger.error("Snapshot write failed", error=str(e))

    def _run(self) -> List[Job]:
        logger.info("Fetching boards")
        boards = self.crm.list_boards()
        selection = self.classifier.select_boards(boards)
        self._load_phases(selection)

        logger.info("Fetching open projects", limit=self.record_limit)
        records = self.crm.list_open_records(self.record_limit)
        classified = self.classifier.classify(selection, records)
        logger.record_fetch(len(records), len(classified))
        logger.info(
            f"Classified {len(classified)} of {len(records)} projects",
            transport=sum(1 for _, t in classified if t is JobType.TRANSPORT),
            service=sum(1 for _, t in classified if t is JobType.SERVICE),
        )

        phase_names = selection.phase_names()
        jobs: List[Job] = []
        seen = set()
        for index, (record, job_type) in enumerate(classified, start=1):
            if record.id in seen:
                logger.warning("Duplicate project id skipped", project_id=record.id)
                continue
            seen.add(record.id)
            jobs.append(self._build_job(record, job_type, phase_names))
            if index % 5 == 0:
                logger.info(f"Processed {index} / {len(classified)} projects")
        return jobs

    def _load_phases(self, selection: BoardSelection) -> None:
        for job_type, board in selection.boards.items():
            phases = self.crm.list_phases(board.id)
            self.classifier.attach_phases(selection, job_type, phases)

    def _lookup_contact(self, record: ProjectRecord) -> Optional[Contact]:
        if record.person_id is None:
            return None
        try:
            return self.crm.get_contact(record.person_id)
        except DispatchError as e:
            logger.warning("Contact lookup failed, using defaults", project_id=record.id, person_id=record.person_id, error=str(e))
            return None

    def _build_job(self, record: ProjectRecord, job_type: JobType, phase_names: dict) -> Job:
        contact = self._lookup_contact(record)
        address = contact.address if contact else ""
        coordinates = self.geocoder.resolve(address)
        return Job(
            id=record.id,
            title=record.title,
            type=job_type,
            client_name=contact.name if contact else UNKNOWN_CLIENT,
            address=address,
            coordinates=coordinates,
            status=status_for(address, coordinates),
            phase_name=phase_names.get(record.phase_id, UNKNOWN_PHASE),
            phone=contact.phone if contact else None,
            person_id=record.person_id,
            link=self.link_for(record.id),
        )
