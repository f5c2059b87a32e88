"""
Dispatcher session state and the operations the map UI calls.

The live job list is changed in exactly three ways: a full replace after a
successful refresh, removal of one job after a stage advance, and an
in-place patch after an address correction. Each call runs to completion
before the next one starts.
"""

from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .advancer import StageAdvancer
from .advice import AdviceService
from .classifier import ProjectClassifier
from .config import Settings
from .crm import PipedriveClient
from .errors import FETCH_FAILED, DispatchError
from .geocoding import GeoResolver
from .logger import get_logger
from .mock import MockCrmClient
from .models import Job, JobStatus, JobType
from .pipeline import FetchResult, ProjectFetchPipeline
from .ratelimit import MinIntervalLimiter
from .routing import RoutePlan
from .snapshot import SnapshotCache

logger = get_logger()


class Dispatcher:
    def __init__(
        self,
        crm,
        pipeline: ProjectFetchPipeline,
        advancer: StageAdvancer,
        geocoder: GeoResolver,
        snapshot: SnapshotCache,
        advice: Optional[AdviceService] = None,
        route: Optional[RoutePlan] = None,
    ):
        self.crm = crm
        self.pipeline = pipeline
        self.advancer = advancer
        self.geocoder = geocoder
        self.snapshot = snapshot
        self.advice_service = advice
        self.route = route or RoutePlan()

        self.jobs: List[Job] = []
        self.filters: Dict[JobType, bool] = {JobType.TRANSPORT: True, JobType.SERVICE: True}
        self.selected_id: Optional[int] = None
        self.advice: Optional[str] = None

    def find(self, job_id: int) -> Optional[Job]:
        return next((j for j in self.jobs if j.id == job_id), None)

    # Loading

    def load_cached(self) -> Optional[List[Job]]:
        """Show the last snapshot immediately, before a live refresh completes."""
        cached = self.get_cached_snapshot()
        if cached is not None:
            self.jobs = cached
            logger.info("Loaded jobs from snapshot", jobs=len(cached))
        return cached

    def refresh(self) -> FetchResult:
        """Run a full refresh. On failure the current list stays as it is."""
        result = self.pipeline.fetch_all()
        if result is FETCH_FAILED:
            logger.warning("Refresh failed, showing last known data", jobs=len(self.jobs))
            return result
        self.jobs = list(result)
        if self.selected_id is not None and self.find(self.selected_id) is None:
            self._clear_selection()
        return result

    # Mutations

    def advance_stage(self, job_id: int) -> bool:
        """
        Move a job to its done phase and drop it from the session.

        Unknown ids fail without calling the CRM, which is also what makes
        a second advance of the same job fail.
        """
        job = self.find(job_id)
        if job is None:
            logger.warning("Advance requested for unknown job", job_id=job_id)
            return False

        if not self.advancer.advance(job.id, job.type):
            return False

        self.jobs = [j for j in self.jobs if j.id != job_id]
        self.route.remove(job_id)
        self.evict_from_cache(job_id)
        if self.selected_id == job_id:
            self._clear_selection()
        logger.info("Job advanced and removed", job_id=job_id)
        return True

    def update_address(self, job_id: int, new_address: str) -> bool:
        """
        Correct a job's address: push it to the contact, re-geocode, patch the job.

        Any failure leaves the job untouched.
        """
        address = (new_address or "").strip()
        if not address:
            return False
        job = self.find(job_id)
        if job is None:
            return False

        if job.person_id is not None:
            try:
                self.crm.update_contact_address(job.person_id, address)
            except DispatchError as e:
                logger.error("Address update rejected by CRM", job_id=job_id, error=str(e))
                return False

        coords = self.geocoder.resolve(address)
        if coords is None:
            logger.warning("New address could not be geocoded", job_id=job_id, address=address)
            return False

        job.address = address
        job.coordinates = coords
        job.status = JobStatus.OPEN
        try:
            self.snapshot.update(job)
        except SQLAlchemyError as e:
            logger.error("Snapshot patch failed", job_id=job_id, error=str(e))
        return True

    # Snapshot access

    def get_cached_snapshot(self) -> Optional[List[Job]]:
        return self.snapshot.load()

    def evict_from_cache(self, job_id: int) -> None:
        try:
            self.snapshot.evict(job_id)
        except SQLAlchemyError as e:
            logger.error("Snapshot eviction failed", job_id=job_id, error=str(e))

    # View state

    def toggle_filter(self, job_type: JobType) -> bool:
        self.filters[job_type] = not self.filters[job_type]
        return self.filters[job_type]

    def visible_jobs(self) -> List[Job]:
        return [j for j in self.jobs if self.filters.get(j.type, True)]

    def search(self, text: str = "", errors_only: bool = False) -> List[Job]:
        """Filter visible jobs by title, client or address."""
        needle = (text or "").lower()
        result = []
        for job in self.visible_jobs():
            haystack = (job.title, job.client_name, job.address)
            if needle and not any(needle in h.lower() for h in haystack):
                continue
            if errors_only and job.status is not JobStatus.GEOCODING_ERROR:
                continue
            result.append(job)
        return result

    def counts(self) -> Dict[str, int]:
        return {
            JobStatus.OPEN.value: sum(1 for j in self.jobs if j.status is JobStatus.OPEN),
            JobStatus.GEOCODING_ERROR.value: sum(1 for j in self.jobs if j.status is JobStatus.GEOCODING_ERROR),
        }

    def select(self, job_id: int) -> Optional[Job]:
        job = self.find(job_id)
        if job is None or not self.filters.get(job.type, True):
            return None
        self.selected_id = job_id
        self.advice = None
        return job

    def _clear_selection(self) -> None:
        self.selected_id = None
        self.advice = None

    def ask_advice(self, job_id: int) -> Optional[str]:
        job = self.find(job_id)
        if job is None or self.advice_service is None:
            return None
        self.advice = self.advice_service.generate(job)
        return self.advice

    def add_to_route(self, job_id: int) -> bool:
        job = self.find(job_id)
        return job is not None and self.route.add(job)


def build_dispatcher(settings: Settings) -> Dispatcher:
    """Wire the real (or mock) collaborators from settings."""
    if settings.use_mock:
        logger.info("Using mock CRM data")
        crm = MockCrmClient()
    else:
        crm = PipedriveClient(
            api_token=settings.api_token,
            base_url=settings.crm_url,
            address_field=settings.address_field,
            timeout=settings.http_timeout,
        )

    geocoder = GeoResolver(
        endpoint=settings.geocoder_url,
        country=settings.geocoder_country,
        limiter=MinIntervalLimiter(settings.geocoder_min_interval),
        timeout=settings.http_timeout,
    )
    snapshot = SnapshotCache(settings.db_path)
    pipeline = ProjectFetchPipeline(
        crm,
        geocoder,
        snapshot=snapshot,
        classifier=ProjectClassifier(settings.classifier),
        record_limit=settings.record_limit,
        link_for=settings.project_link,
    )
    return Dispatcher(
        crm=crm,
        pipeline=pipeline,
        advancer=StageAdvancer(crm, settings.advance_targets),
        geocoder=geocoder,
        snapshot=snapshot,
        advice=AdviceService(settings.gemini_api_key, settings.gemini_model, settings.http_timeout),
        route=RoutePlan(settings.base),
    )
