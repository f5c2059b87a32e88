"""
Last-known-good job snapshot.

Two entries are kept: the serialized job list and the time it was
written. A failed refresh never touches either of them.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .database import SnapshotEntry, get_session, init_database
from .logger import get_logger
from .models import Job, job_from_dict, validate_job_dict

logger = get_logger()

JOBS_KEY = "jobs"
TIMESTAMP_KEY = "jobs_timestamp"


class SnapshotCache:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.engine = init_database(db_path)

    def _read(self, key: str) -> Optional[str]:
        session = get_session(self.engine)
        try:
            entry = session.get(SnapshotEntry, key)
            return entry.value if entry is not None else None
        finally:
            session.close()

    def _write(self, values: dict) -> None:
        """Write all given keys in one transaction."""
        session = get_session(self.engine)
        try:
            for key, value in values.items():
                entry = session.get(SnapshotEntry, key)
                if entry is None:
                    session.add(SnapshotEntry(key=key, value=value))
                else:
                    entry.value = value
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def load(self) -> Optional[List[Job]]:
        """
        Return the persisted job list, or None.

        Missing, undecodable or invalid snapshots are all treated as a miss.
        """
        try:
            raw = self._read(JOBS_KEY)
        except SQLAlchemyError as e:
            logger.warning("Snapshot read failed", error=str(e))
            return None
        if raw is None:
            return None

        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Snapshot is not valid JSON, ignoring it", error=str(e))
            return None
        if not isinstance(entries, list):
            logger.warning("Snapshot has unexpected shape, ignoring it")
            return None

        seen = set()
        for entry in entries:
            errors = validate_job_dict(entry)
            if errors:
                logger.warning("Snapshot entry is invalid, ignoring snapshot", errors=errors)
                return None
            if entry["id"] in seen:
                logger.warning("Snapshot repeats a job id, ignoring snapshot", job_id=entry["id"])
                return None
            seen.add(entry["id"])
        return [job_from_dict(e) for e in entries]

    def replace(self, jobs: List[Job]) -> None:
        """Overwrite the snapshot and its timestamp atomically."""
        self._write({
            JOBS_KEY: json.dumps([j.to_dict() for j in jobs], ensure_ascii=False),
            TIMESTAMP_KEY: datetime.now().isoformat(),
        })
        logger.debug("Snapshot replaced", jobs=len(jobs))

    def evict(self, job_id: int) -> bool:
        """Remove one job from the snapshot. Returns True if it was present."""
        jobs = self.load()
        if not jobs:
            return False
        kept = [j for j in jobs if j.id != job_id]
        if len(kept) == len(jobs):
            return False
        self._write({JOBS_KEY: json.dumps([j.to_dict() for j in kept], ensure_ascii=False)})
        logger.debug("Evicted job from snapshot", job_id=job_id)
        return True

    def update(self, job: Job) -> bool:
        """Replace the stored copy of one job in place. Returns True if it was present."""
        jobs = self.load()
        if not jobs:
            return False
        found = False
        for i, existing in enumerate(jobs):
            if existing.id == job.id:
                jobs[i] = job
                found = True
        if not found:
            return False
        self._write({JOBS_KEY: json.dumps([j.to_dict() for j in jobs], ensure_ascii=False)})
        return True

    def timestamp(self) -> Optional[datetime]:
        try:
            raw = self._read(TIMESTAMP_KEY)
        except SQLAlchemyError:
            return None
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None
