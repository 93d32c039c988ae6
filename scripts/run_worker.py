#!/usr/bin/env python3
"""
Job Worker and Queue Maintenance Script

Run a standalone job worker, or maintain the job queue, outside the API
process. Useful when the API runs with RUN_EMBEDDED_WORKER=false and
workers are scaled separately.

Setup:
    1. Ensure PostgreSQL is running (docker-compose up -d postgres)
    2. Copy .env.example to .env in the project root and fill in API keys
    3. Run any command below

Usage:
    # Run a worker until Ctrl+C (finishes active jobs before exiting)
    python scripts/run_worker.py work
    python scripts/run_worker.py work --max-jobs 5 --poll-interval 2

    # Generate notes for a local text file without touching the queue
    python scripts/run_worker.py notes lecture.txt --language Polish --no-quiz

    # Queue statistics
    python scripts/run_worker.py stats
    python scripts/run_worker.py stats --user user-1

    # Delete finished jobs older than N days
    python scripts/run_worker.py cleanup --days 30

    # Fail processing jobs whose worker died
    python scripts/run_worker.py reap --stale-after 1800

Environment Variables (set in .env or environment):
    Required:
    - POSTGRES_* or DATABASE_URL_OVERRIDE: Job database
    - OPENAI_API_KEY (or the key for TEXT_MODEL's provider): For generation

    Optional:
    - QUEUE_*: Worker tuning (see backend/app/config/queue.py)
    - PIPELINE_*: Pipeline tuning (see backend/app/config/pipeline.py)
    - DEBUG: Enable verbose logging
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

# Add backend to path for imports (must be before app.* imports)
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from dotenv import load_dotenv

# Load environment variables from project root .env
project_root = Path(__file__).parent.parent
if (project_root / ".env").exists():
    load_dotenv(project_root / ".env")
else:
    load_dotenv(project_root / "backend" / ".env")

# App imports (after sys.path setup and env loading)
from app.config import queue_settings, settings
from app.db.base import async_session_maker, init_db
from app.middleware.error_handling import ServiceError
from app.models.jobs import JobOptions
from app.services.jobs import ExtractorRegistry, JobQueue, JobWorker, RedisJobEventPublisher
from app.services.llm import GenerationClient
from app.services.processing import NotesPipeline


def setup_logging(debug: bool = False) -> None:
    """Configure logging based on debug flag."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    # Reduce noise from httpx and other libs (unless --debug)
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("LiteLLM").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def build_queue() -> JobQueue:
    events = RedisJobEventPublisher() if settings.JOB_EVENTS_BACKEND == "redis" else None
    return JobQueue(async_session_maker, events=events)


# =============================================================================
# Commands
# =============================================================================


async def run_worker(max_jobs: int, poll_interval: float) -> None:
    """Run a worker until SIGINT/SIGTERM."""
    await init_db()

    worker_settings = queue_settings.model_copy(
        update={"MAX_CONCURRENT_JOBS": max_jobs, "POLL_INTERVAL_SECONDS": poll_interval}
    )
    worker = JobWorker(
        build_queue(),
        NotesPipeline(GenerationClient()),
        extractor=ExtractorRegistry(),
        settings=worker_settings,
    )

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    await worker.start()
    print(f"Worker {worker.worker_id} running (max {max_jobs} jobs). Ctrl+C to stop.")

    await stop_requested.wait()
    print("Stopping worker, waiting for active jobs...")
    await worker.stop()


async def generate_notes_for_file(
    path: Path,
    language: str,
    generate_quiz: bool,
    custom_prompt: str | None,
) -> None:
    """Run the notes pipeline on a local file and print the result as JSON."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Cannot read {path}: {e}", file=sys.stderr)
        sys.exit(1)

    pipeline = NotesPipeline(GenerationClient())
    try:
        result = await pipeline.generate_notes(
            text,
            options=JobOptions(
                language=language,
                generate_quiz=generate_quiz,
                custom_prompt=custom_prompt,
            ),
        )
    except ServiceError as e:
        print(f"Notes generation failed: {e.message}", file=sys.stderr)
        logging.debug("Notes generation error", exc_info=True)
        sys.exit(1)

    if result.partial_success:
        print(f"Warning: {result.error}", file=sys.stderr)
    print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))


async def show_stats(user_id: str | None) -> None:
    stats = await build_queue().get_stats(user_id)
    print(json.dumps(stats.model_dump(), indent=2))


async def cleanup(days: int) -> None:
    deleted = await build_queue().cleanup_old_jobs(days)
    print(f"Deleted {deleted} jobs finished more than {days} days ago")


async def reap(stale_after: int) -> None:
    reaped = await build_queue().reap_stale_jobs(stale_after)
    print(f"Failed {reaped} stale processing jobs")


# =============================================================================
# CLI Setup
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="Run a notes job worker or maintain the job queue",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    work_parser = subparsers.add_parser("work", help="Run a job worker")
    work_parser.add_argument(
        "--max-jobs",
        type=int,
        default=queue_settings.MAX_CONCURRENT_JOBS,
        help=f"Concurrent jobs (default: {queue_settings.MAX_CONCURRENT_JOBS})",
    )
    work_parser.add_argument(
        "--poll-interval",
        type=float,
        default=queue_settings.POLL_INTERVAL_SECONDS,
        help=f"Seconds between polls when idle (default: {queue_settings.POLL_INTERVAL_SECONDS})",
    )

    notes_parser = subparsers.add_parser("notes", help="Generate notes for a text file")
    notes_parser.add_argument("path", type=Path, help="UTF-8 text file")
    notes_parser.add_argument("--language", default="English", help="Output language")
    notes_parser.add_argument("--no-quiz", action="store_true", help="Skip quiz generation")
    notes_parser.add_argument("--prompt", default=None, help="Extra note instructions")

    stats_parser = subparsers.add_parser("stats", help="Show job counts")
    stats_parser.add_argument("--user", default=None, help="Only this user's jobs")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old finished jobs")
    cleanup_parser.add_argument(
        "--days",
        type=int,
        default=queue_settings.CLEANUP_AFTER_DAYS,
        help=f"Age in days (default: {queue_settings.CLEANUP_AFTER_DAYS})",
    )

    reap_parser = subparsers.add_parser("reap", help="Fail stale processing jobs")
    reap_parser.add_argument(
        "--stale-after",
        type=int,
        default=queue_settings.STALE_JOB_TIMEOUT_SECONDS,
        help=f"Seconds without updates (default: {queue_settings.STALE_JOB_TIMEOUT_SECONDS})",
    )

    return parser


async def main() -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.debug)

    if args.command == "work":
        await run_worker(args.max_jobs, args.poll_interval)
    elif args.command == "notes":
        await generate_notes_for_file(
            args.path,
            language=args.language,
            generate_quiz=not args.no_quiz,
            custom_prompt=args.prompt,
        )
    elif args.command == "stats":
        await show_stats(args.user)
    elif args.command == "cleanup":
        await cleanup(args.days)
    elif args.command == "reap":
        await reap(args.stale_after)


if __name__ == "__main__":
    asyncio.run(main())
