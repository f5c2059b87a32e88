import argparse
from pathlib import Path
from typing import List

from .env import load_env

from . import __version__
from .config import Settings
from .dispatcher import Dispatcher, build_dispatcher
from .errors import FETCH_FAILED
from .logger import get_logger
from .models import Job, JobStatus, JobType


def print_jobs(jobs: List[Job]) -> None:
    if not jobs:
        print("No jobs.")
        return
    for job in jobs:
        flag = " [!]" if job.status is JobStatus.GEOCODING_ERROR else ""
        print(f"{job.summary()}{flag}")


def _ensure_job(dispatcher: Dispatcher, job_id: int) -> bool:
    """Make sure the job is in the live list, refreshing if the snapshot lacks it."""
    dispatcher.load_cached()
    if dispatcher.find(job_id) is not None:
        return True
    if dispatcher.refresh() is FETCH_FAILED:
        raise SystemExit("Refresh failed; cannot look up the job.")
    return dispatcher.find(job_id) is not None


def cmd_refresh(dispatcher: Dispatcher, args: argparse.Namespace) -> None:
    cached = dispatcher.load_cached()
    if cached is not None:
        stamp = dispatcher.snapshot.timestamp()
        print(f"Snapshot: {len(cached)} jobs" + (f" from {stamp:%Y-%m-%d %H:%M}" if stamp else ""))
    print("Refreshing from CRM (geocoding is rate limited, this can take a while)...")
    result = dispatcher.refresh()
    if result is FETCH_FAILED:
        print("Refresh failed. Showing last known data.")
    print_jobs(dispatcher.visible_jobs())
    counts = dispatcher.counts()
    print(f"Done. open={counts['open']} geocoding_error={counts['geocoding_error']}")
    get_logger().log_metrics_summary()


def cmd_list(dispatcher: Dispatcher, args: argparse.Namespace) -> None:
    if dispatcher.load_cached() is None:
        print("No snapshot yet. Run 'refresh' first.")
        return
    if args.type:
        other = JobType.SERVICE if args.type == JobType.TRANSPORT.value else JobType.TRANSPORT
        dispatcher.toggle_filter(other)
    print_jobs(dispatcher.search(args.search or "", errors_only=args.errors_only))


def cmd_advance(dispatcher: Dispatcher, args: argparse.Namespace) -> None:
    if not _ensure_job(dispatcher, args.id):
        raise SystemExit(f"Job {args.id} is not an open job.")
    if not dispatcher.advance_stage(args.id):
        raise SystemExit(f"Could not advance job {args.id}.")
    print(f"Job {args.id} advanced.")


def cmd_update_address(dispatcher: Dispatcher, args: argparse.Namespace) -> None:
    if not _ensure_job(dispatcher, args.id):
        raise SystemExit(f"Job {args.id} is not an open job.")
    if not dispatcher.update_address(args.id, args.address):
        raise SystemExit(f"Address for job {args.id} was not updated.")
    job = dispatcher.find(args.id)
    print(f"Updated: {job.summary()}")


def cmd_advice(dispatcher: Dispatcher, args: argparse.Namespace) -> None:
    if not _ensure_job(dispatcher, args.id):
        raise SystemExit(f"Job {args.id} is not an open job.")
    print(dispatcher.ask_advice(args.id))


def cmd_route(dispatcher: Dispatcher, args: argparse.Namespace) -> None:
    ids = [int(x) for x in args.ids.split(",") if x.strip()]
    if dispatcher.load_cached() is None:
        raise SystemExit("No snapshot yet. Run 'refresh' first.")
    if args.from_base:
        dispatcher.route.add_base()
    for job_id in ids:
        if not dispatcher.add_to_route(job_id):
            print(f"Skip {job_id}: unknown job or no coordinates")
    for stop, leg in zip(dispatcher.route.stops[1:], dispatcher.route.leg_distances_km()):
        print(f" -> {stop.label} (+{leg:.1f} km)")
    print(f"Total: {dispatcher.route.total_distance_km()} km")
    link = dispatcher.route.maps_link()
    if link:
        print(link)


def main():
    load_env()
    parser = argparse.ArgumentParser(prog="dispatchboard", description="Dispatcher dashboard for transport and service jobs")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--token", help="Pipedrive API token (or set PIPEDRIVE_API_TOKEN)")
    parser.add_argument("--db", help="Snapshot database path (default: data/dispatch.db)")
    parser.add_argument("--mock", action="store_true", help="Use built-in sample data instead of the CRM")

    subparsers = parser.add_subparsers(dest="command")
    ref = subparsers.add_parser("refresh", help="Fetch, classify and geocode open jobs")
    ref.set_defaults(func=cmd_refresh)

    lst = subparsers.add_parser("list", help="List jobs from the last snapshot")
    lst.add_argument("--type", choices=[t.value for t in JobType], help="Only one job type")
    lst.add_argument("--search", help="Match title, client or address")
    lst.add_argument("--errors-only", action="store_true", help="Only jobs whose address failed to geocode")
    lst.set_defaults(func=cmd_list)

    adv = subparsers.add_parser("advance", help="Move a job to its done phase")
    adv.add_argument("--id", type=int, required=True, help="Project id")
    adv.set_defaults(func=cmd_advance)

    upd = subparsers.add_parser("update-address", help="Correct a job's address and re-geocode it")
    upd.add_argument("--id", type=int, required=True, help="Project id")
    upd.add_argument("--address", required=True, help="New address")
    upd.set_defaults(func=cmd_update_address)

    adc = subparsers.add_parser("advice", help="Ask the AI assistant for a driver note")
    adc.add_argument("--id", type=int, required=True, help="Project id")
    adc.set_defaults(func=cmd_advice)

    rte = subparsers.add_parser("route", help="Plan a route through jobs and print a Google Maps link")
    rte.add_argument("--ids", required=True, help="Comma-separated project ids in visiting order")
    rte.add_argument("--from-base", action="store_true", help="Start at the company base")
    rte.set_defaults(func=cmd_route)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    settings = Settings.from_env()
    if args.token:
        settings.api_token = args.token
    if args.db:
        settings.db_path = Path(args.db)
    if args.mock:
        settings.use_mock = True
    if not settings.use_mock and not settings.api_token:
        raise SystemExit("PIPEDRIVE_API_TOKEN not set. Set env var, pass --token, or use --mock.")

    get_logger().set_level(settings.log_level)
    args.func(build_dispatcher(settings), args)


if __name__ == "__main__":
    main()
