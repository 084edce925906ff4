"""
Batch job runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable, parses the per-run flags and delegates to the job.

Usage:
    python -m vibes_pipeline.jobs.worker property_vibes --limit 50 --resume
    python -m vibes_pipeline.jobs.worker neighborhood_vibes --states CA,OR --all
    python -m vibes_pipeline.jobs.worker vibes_coverage --kind neighborhood
"""

import argparse
import asyncio
import os
import re
import sys
import uuid
from collections.abc import Awaitable, Callable

from vibes_pipeline.config import settings
from vibes_pipeline.features.vibes.errors import ConfigurationError
from vibes_pipeline.features.vibes.jobs.backfill_job import (
    run_neighborhood_vibes,
    run_property_vibes,
)
from vibes_pipeline.features.vibes.jobs.coverage_job import run_vibes_coverage
from vibes_pipeline.infrastructure.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)

JobCoroutine = Callable[[argparse.Namespace], Awaitable[int]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "property_vibes": run_property_vibes,
    "neighborhood_vibes": run_neighborhood_vibes,
    "vibes_coverage": run_vibes_coverage,
}

STATE_CODE = re.compile(r"^[A-Z]{2}$")


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _uuid_list(value: str) -> list[str]:
    ids = _split(value)
    for item in ids:
        try:
            uuid.UUID(item)
        except ValueError:
            raise argparse.ArgumentTypeError(f"not a UUID: {item}") from None
    return [item.lower() for item in ids]


def _state_list(value: str) -> list[str]:
    states = [s.upper() for s in _split(value)]
    bad = [s for s in states if not STATE_CODE.match(s)]
    if bad:
        raise argparse.ArgumentTypeError(f"state codes must be two letters: {', '.join(bad)}")
    return states


def _non_negative(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return number


def _positive(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vibes-worker", description="Generate and backfill property / neighborhood vibes."
    )
    parser.add_argument("job", nargs="?", help=f"one of: {', '.join(sorted(JOB_REGISTRY))}")
    parser.add_argument("--limit", type=_non_negative, help="max targets to generate this run")
    parser.add_argument("--all", action="store_true", help="no limit; run until candidates run out")
    parser.add_argument("--batch-size", type=_positive, help="candidates per page")
    parser.add_argument("--delay-ms", type=_non_negative, help="pause between generations")
    parser.add_argument("--force", action="store_true", help="regenerate up-to-date vibes too")
    parser.add_argument("--offset", type=_non_negative, help="start offset; overrides the cursor")
    parser.add_argument("--resume", action="store_true", help="continue from the saved cursor")
    parser.add_argument("--ids", type=_uuid_list, help="comma-separated target UUIDs")
    parser.add_argument("--states", type=_state_list, help="comma-separated state codes")
    parser.add_argument("--min-price", type=_non_negative, help="property listing price floor")
    parser.add_argument("--sample-limit", type=_positive, help="sample listings per neighborhood")
    parser.add_argument(
        "--stop-after-no-success", type=_positive, help="consecutive failed pages before stopping"
    )
    parser.add_argument(
        "--kind", choices=("property", "neighborhood"), default="property", help="coverage target"
    )
    parser.add_argument("--cursor-file", help="cursor JSON path")
    parser.add_argument("--report-dir", help="directory for run reports")
    parser.add_argument("--log-file", help="run log path")
    return parser


def _resolve_job_name(args: argparse.Namespace) -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if args.job:
        return args.job.strip().lower()
    return os.getenv("WORKER_JOB", "property_vibes").strip().lower()


async def run_worker(job_name: str, args: argparse.Namespace | None = None) -> int:
    """Run the requested job and return its exit code."""
    name = job_name.strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    if args is None:
        args = build_parser().parse_args([name])

    logger.info("Starting batch worker", job=name)
    return await JOB_REGISTRY[name](args)


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    setup_logging(settings.LOG_LEVEL)
    job_name = _resolve_job_name(args)

    try:
        return asyncio.run(run_worker(job_name, args))
    except ConfigurationError as e:
        logger.error("Configuration error; nothing was processed", error=str(e))
        return 1
    except ValueError as e:
        logger.error("Invalid worker invocation", error=str(e))
        return 1
    except Exception as e:
        logger.exception("Worker failed", job=job_name, error_type=type(e).__name__)
        return 1


if __name__ == "__main__":
    sys.exit(main())
