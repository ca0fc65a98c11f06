"""CLI entry point for the job ingestion pipeline."""

import argparse
import logging
import sys
import time

from job_ingestion.config import AppConfig, ConfigError, build_config, load_config, validate_config
from job_ingestion.matching.ranker import DEFAULT_LIMIT, rank_jobs
from job_ingestion.pipeline import OrchestrationResult, Orchestrator
from job_ingestion.profile.models import load_profile
from job_ingestion.storage.database import JobStore
from job_ingestion.utils.logging_config import setup_logging

logger = logging.getLogger("job_ingestion")

DEFAULT_CONFIG_PATH = "config.yaml"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job ingestion - fetch, dedupe and rank remote job listings",
    )
    parser.add_argument(
        "--config", default=None,
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH}, optional)",
    )
    parser.add_argument(
        "--source", metavar="KEY",
        help="Sync a single source (built-in name or custom source key)",
    )
    parser.add_argument(
        "--expire", action="store_true",
        help="Run the expiry sweep only",
    )
    parser.add_argument(
        "--stats", action="store_true",
        help="Print database statistics and exit",
    )
    parser.add_argument(
        "--list-sources", action="store_true",
        help="List the sources that would be synced and exit",
    )
    parser.add_argument(
        "--rank", metavar="PROFILE",
        help="Rank active jobs against a YAML profile and exit",
    )
    parser.add_argument(
        "--limit", type=int, default=DEFAULT_LIMIT,
        help=f"Number of ranked jobs to show (default: {DEFAULT_LIMIT})",
    )
    parser.add_argument(
        "--schedule", action="store_true",
        help="Run the sync and expiry jobs on a schedule in the foreground",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Debug logging",
    )
    return parser.parse_args(argv)


def resolve_config(path) -> AppConfig:
    """Load ``path``; without an explicit path a missing config.yaml means env-only config."""
    try:
        return load_config(path or DEFAULT_CONFIG_PATH)
    except FileNotFoundError:
        if path:
            raise
        return build_config({})


def print_stats(store: JobStore):
    """Print database statistics."""
    stats = store.get_stats()
    print("\n=== Job Ingestion Statistics ===")
    print(f"Total jobs: {stats['total_jobs']}")
    for status, count in sorted(stats["by_status"].items()):
        print(f"  {status}: {count}")
    print(f"Source records: {stats['total_source_records']}")

    if stats.get("active_by_source"):
        print("\nActive jobs by primary source:")
        for source, count in sorted(stats["active_by_source"].items()):
            print(f"  {source}: {count}")

    if stats.get("sync_metrics"):
        print("\nLast syncs:")
        for m in stats["sync_metrics"]:
            print(
                f"  {m.source}: {m.last_sync_status} at {m.last_sync_at:%Y-%m-%d %H:%M} "
                f"(fetched {m.jobs_fetched}, upserted {m.jobs_upserted}, "
                f"duplicates {m.duplicates_found}, errors {m.errors_count})"
            )
            if m.last_error:
                print(f"    Last error: {m.last_error}")
    print()


def print_run(result: OrchestrationResult):
    print(f"\n=== Sync run {result.run_id} ===")
    for s in result.sources:
        state = s.status if s.enabled else "disabled"
        print(
            f"  {s.source:<20} {state:<8} fetched {s.fetched:>4}  new {s.inserted:>4}  "
            f"duplicates {s.duplicates:>4}  errors {len(s.errors)}"
        )
        if s.last_error:
            print(f"    {s.last_error}")
    if result.expired:
        print(f"Expired: {result.expired}")
    print()


def print_ranking(store: JobStore, profile_path: str, limit: int):
    profile = load_profile(profile_path)
    summary = profile.to_summary_string()
    if summary:
        print(f"\n=== Profile ===\n{summary}\n")
    results = rank_jobs(store.list_active_jobs(), profile, limit=limit)
    if not results:
        print("No active jobs to rank.")
        return
    for i, r in enumerate(results, 1):
        print(f"#{i:<3} [{r.score * 100:3.0f}%] {r.job.title} @ {r.job.company_name}")
        print(f"      {r.job.apply_url}")


def print_schedule(info: dict):
    print("\n=== Scheduled jobs ===")
    if not info["jobs"]:
        print("  (none)")
    for job in info["jobs"]:
        print(f"  {job['name']:<24} next run {job['next_run_time'] or 'paused'}  ({job['trigger']})")
    print()


def run_scheduler(orchestrator: Orchestrator, config: AppConfig):
    from job_ingestion.scheduler import get_scheduler_info, init_scheduler, schedule_ingestion, shutdown_scheduler

    init_scheduler()
    schedule_ingestion(
        orchestrator,
        interval_hours=config.ingestion.sync_interval_hours,
        expire_hour=config.ingestion.expire_hour,
    )
    print_schedule(get_scheduler_info())
    logger.info("Scheduler running, press Ctrl+C to stop")
    try:
        while True:
            time.sleep(60)
    except KeyboardInterrupt:
        logger.info("Stopping scheduler")
    finally:
        shutdown_scheduler()


def main(argv=None):
    args = parse_args(argv)

    try:
        config = resolve_config(args.config)
    except (FileNotFoundError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config.log_dir, logging.DEBUG if args.verbose else logging.INFO)

    for w in validate_config(config):
        logger.warning("Config: %s", w)

    with JobStore(config.database_url) as store:
        if args.stats:
            print_stats(store)
            return

        if args.rank:
            try:
                print_ranking(store, args.rank, args.limit)
            except (FileNotFoundError, ConfigError) as e:
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(1)
            return

        orchestrator = Orchestrator(config, store)

        if args.list_sources:
            enabled = set(orchestrator.enabled_sources())
            for spec in orchestrator.source_specs():
                print(f"{spec.key:<20} {'enabled' if spec.key in enabled else 'disabled'}")
            return

        if args.expire:
            count = orchestrator.expire_stale_jobs()
            print(f"Expired {count} jobs")
            return

        if args.schedule:
            run_scheduler(orchestrator, config)
            return

        try:
            if args.source:
                result = orchestrator.run_source(args.source)
            else:
                result = orchestrator.run_sync()
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        print_run(result)
        if result.failed_sources and len(result.failed_sources) == len(result.sources):
            sys.exit(1)


if __name__ == "__main__":
    main()
