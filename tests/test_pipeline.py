"""
Tests for the full refresh pipeline.
"""

import pytest

from dispatchboard.errors import FETCH_FAILED
from dispatchboard.geocoding import GeoResolver
from dispatchboard.models import UNKNOWN_CLIENT, UNKNOWN_PHASE, Board, JobStatus, JobType, Phase, ProjectRecord
from dispatchboard.pipeline import ProjectFetchPipeline
from dispatchboard.ratelimit import MinIntervalLimiter

from conftest import FakeCrm, FakeSession, nominatim_handler


def make_pipeline(crm, geocoder, snapshot, **kwargs):
    return ProjectFetchPipeline(
        crm,
        geocoder,
        snapshot=snapshot,
        link_for=lambda pid: f"https://lupus.pipedrive.com/projects/{pid}/plan",
        **kwargs,
    )


class TestFetchAll:
    def test_builds_jobs(self, scenario_crm, geocoder, snapshot):
        jobs = make_pipeline(scenario_crm, geocoder, snapshot).fetch_all()

        by_id = {j.id: j for j in jobs}
        assert sorted(by_id) == [500, 501, 503]
        assert by_id[500].type is JobType.TRANSPORT
        assert by_id[501].type is JobType.SERVICE
        assert by_id[500].client_name == "Jan Kowalski"
        assert by_id[500].phone == "500-100-100"
        assert by_id[500].phase_name == "Przygotowanie"
        assert by_id[501].phase_name == "Zgłoszenie usterki"
        assert by_id[500].link == "https://lupus.pipedrive.com/projects/500/plan"

    def test_geocoding_status(self, scenario_crm, geocoder, snapshot):
        jobs = make_pipeline(scenario_crm, geocoder, snapshot).fetch_all()

        for job in jobs:
            expected = job.coordinates is None and job.address != ""
            assert (job.status is JobStatus.GEOCODING_ERROR) == expected
        assert {j.id for j in jobs if j.status is JobStatus.GEOCODING_ERROR} == {503}

    def test_success_replaces_snapshot(self, scenario_crm, geocoder, snapshot):
        jobs = make_pipeline(scenario_crm, geocoder, snapshot).fetch_all()

        assert snapshot.load() == jobs

    def test_records_processed_one_at_a_time(self, scenario_crm, snapshot):
        """Each record's contact lookup, delay and geocode finish before the next record starts."""
        events = scenario_crm.calls

        def handler(method, url, kwargs):
            events.append(("geocode", kwargs["params"]["q"]))
            return nominatim_handler(method, url, kwargs)

        limiter = MinIntervalLimiter(1.1, sleep=lambda seconds: events.append(("sleep", seconds)))
        geocoder = GeoResolver(limiter=limiter, session=FakeSession(handler))

        make_pipeline(scenario_crm, geocoder, snapshot).fetch_all()

        start = events.index(("list_open_records", 500)) + 1
        assert events[start:] == [
            ("get_contact", 1), ("sleep", 1.1), ("geocode", "ul. Polna 5, Płońsk"),
            ("get_contact", 2), ("sleep", 1.1), ("geocode", "Warszawska 1, Mława"),
            ("get_contact", 3), ("sleep", 1.1), ("geocode", "Nieistniejąca 99, Nigdzie"),
        ]

    def test_record_limit_passed(self, scenario_crm, geocoder, snapshot):
        make_pipeline(scenario_crm, geocoder, snapshot, record_limit=2).fetch_all()

        assert ("list_open_records", 2) in scenario_crm.calls

    def test_contact_failure_is_absorbed(self, scenario_crm, geocoder, snapshot):
        scenario_crm.fail.add("get_contact")

        jobs = make_pipeline(scenario_crm, geocoder, snapshot).fetch_all()

        assert len(jobs) == 3
        for job in jobs:
            assert job.client_name == UNKNOWN_CLIENT
            assert job.address == ""
            assert job.status is JobStatus.OPEN

    def test_record_without_person(self, geocoder, snapshot):
        crm = FakeCrm(
            boards=[Board(1, "Transport")],
            phases={1: [Phase(10, "Gotowe")]},
            records=[ProjectRecord(9, "Prasa", 10, None)],
        )

        jobs = make_pipeline(crm, geocoder, snapshot).fetch_all()

        assert jobs[0].client_name == UNKNOWN_CLIENT
        assert jobs[0].person_id is None
        assert not any(c[0] == "get_contact" for c in crm.calls)

    def test_duplicate_ids_collapsed(self, geocoder, snapshot):
        crm = FakeCrm(
            boards=[Board(1, "Transport")],
            phases={1: [Phase(10, "Gotowe")]},
            records=[ProjectRecord(9, "Prasa", 10), ProjectRecord(9, "Prasa", 10)],
        )

        jobs = make_pipeline(crm, geocoder, snapshot).fetch_all()

        assert [j.id for j in jobs] == [9]

    def test_unknown_phase_name_sentinel(self, geocoder, snapshot):
        pipeline = make_pipeline(FakeCrm(), geocoder, snapshot)

        job = pipeline._build_job(ProjectRecord(1, "x", 77), JobType.SERVICE, {})

        assert job.phase_name == UNKNOWN_PHASE


class TestFetchFailures:
    @pytest.mark.parametrize("step", ["list_boards", "list_phases", "list_open_records"])
    def test_failure_returns_sentinel_and_keeps_snapshot(self, scenario_crm, geocoder, snapshot, step):
        pipeline = make_pipeline(scenario_crm, geocoder, snapshot)
        good = pipeline.fetch_all()
        before = snapshot._read("jobs")

        scenario_crm.fail.add(step)
        result = pipeline.fetch_all()

        assert result is FETCH_FAILED
        assert result != []
        assert snapshot._read("jobs") == before
        assert snapshot.load() == good

    def test_no_boards_is_fatal(self, geocoder, snapshot):
        crm = FakeCrm(boards=[Board(1, "Sprzedaż")])

        assert make_pipeline(crm, geocoder, snapshot).fetch_all() is FETCH_FAILED
        assert not any(c[0] == "list_open_records" for c in crm.calls)

    def test_empty_success_does_not_touch_snapshot(self, scenario_crm, geocoder, snapshot):
        pipeline = make_pipeline(scenario_crm, geocoder, snapshot)
        pipeline.fetch_all()

        scenario_crm.records = []
        result = pipeline.fetch_all()

        assert result == []
        assert result is not FETCH_FAILED
        assert len(snapshot.load()) == 3

    def test_works_without_snapshot(self, scenario_crm, geocoder):
        jobs = ProjectFetchPipeline(scenario_crm, geocoder).fetch_all()

        assert len(jobs) == 3
