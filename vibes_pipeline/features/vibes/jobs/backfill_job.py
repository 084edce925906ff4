"""
Resumable vibes backfill.

Pages through candidates in a fixed order, generates vibes one target at a
time, upserts each success and checkpoints the cursor as it goes. The cursor
offset always counts candidates examined (generated, failed or skipped), so a
resumed run picks up exactly where the previous one stopped.
"""

import argparse
import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from vibes_pipeline.config import settings
from vibes_pipeline.db.pool import db_pool
from vibes_pipeline.features.vibes.domain.models import (
    CandidateFilters,
    EnrichmentTarget,
    GenerationFailure,
    GenerationResult,
    TargetKind,
    UsageInfo,
)
from vibes_pipeline.features.vibes.errors import ConfigurationError, VibesPipelineError
from vibes_pipeline.features.vibes.jobs.cancellation import CancellationToken, SignalScope
from vibes_pipeline.features.vibes.jobs.cursor_store import Cursor, CursorStore, write_report
from vibes_pipeline.features.vibes.providers.openrouter_client import OpenRouterClient
from vibes_pipeline.features.vibes.repository.vibes_repository import (
    EntityStore,
    NeighborhoodVibesRepository,
    PropertyVibesRepository,
)
from vibes_pipeline.features.vibes.services.generation_service import (
    VibesGenerationService,
    source_hash,
)
from vibes_pipeline.infrastructure.observability.logging import (
    RunLogFile,
    get_logger,
    log_run_summary,
)

logger = get_logger(__name__)

JOB_NAMES = {
    TargetKind.PROPERTY: "property_vibes",
    TargetKind.NEIGHBORHOOD: "neighborhood_vibes",
}


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CHECKPOINTED = "checkpointed"
    COMPLETED = "completed"
    FATALLY_FAILED = "fatally_failed"


class StopReason(str, Enum):
    EXHAUSTED = "exhausted"
    LIMIT = "limit"
    STUCK = "stuck"
    CANCELED = "canceled"
    NO_PROGRESS = "no_progress"
    FATAL = "fatal"


@dataclass(slots=True)
class BackfillOptions:
    """Per-run knobs. ``None`` limit means process until candidates run out."""

    limit: int | None = None
    batch_size: int = 10
    delay_ms: int = 1000
    force: bool = False
    offset: int | None = None
    resume: bool = False
    stop_after_no_success: int = 3
    checkpoint_every: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "limit": self.limit,
            "batchSize": self.batch_size,
            "delayMs": self.delay_ms,
            "force": self.force,
            "offset": self.offset,
            "resume": self.resume,
            "stopAfterNoSuccess": self.stop_after_no_success,
        }


class BackfillMetrics:
    """Counters for one run."""

    def __init__(self):
        self.reset()

    def reset(self):
        """Reset all metrics for new job run."""
        self.start_time = datetime.now(UTC)
        self.attempted = 0
        self.success = 0
        self.failed = 0
        self.skipped = 0
        self.total_cost_usd = 0.0
        self.total_duration_seconds = 0.0
        self.failures: list[GenerationFailure] = []

    def record_success(self, target: EnrichmentTarget, result: GenerationResult):
        self.attempted += 1
        self.success += 1
        self.total_cost_usd += result.usage.estimated_cost_usd

        logger.info(
            "Vibes stored",
            target_id=target.id,
            label=target.label,
            tagline=result.vibes.tagline,
            tags=len(result.vibes.suggested_tags),
            repaired=result.repair_applied,
            cost_usd=round(result.usage.estimated_cost_usd, 6),
            processing_time_ms=result.processing_time_ms,
        )

    def record_failure(
        self, target: EnrichmentTarget, error: str, code: str, usage: UsageInfo | None = None
    ):
        self.attempted += 1
        self.failed += 1
        if usage:
            self.total_cost_usd += usage.estimated_cost_usd
        self.failures.append(
            GenerationFailure(target_id=target.id, error=error, code=code, label=target.label)
        )

        logger.warning(
            "Vibes generation failed",
            target_id=target.id,
            label=target.label,
            code=code,
            error=error,
        )

    def record_skip(self, target: EnrichmentTarget):
        self.skipped += 1
        logger.debug("Vibes up to date; skipping", target_id=target.id)

    def finalize(self):
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "totalCostUsd": round(self.total_cost_usd, 6),
            "durationSeconds": round(self.total_duration_seconds, 2),
            "successRatePercent": round(
                (self.success / self.attempted * 100) if self.attempted > 0 else 0, 2
            ),
        }


class BackfillRunner:
    """
    Drives one backfill run.

    State moves ``idle -> running`` and ends in ``completed`` (limit reached or
    candidates exhausted), ``checkpointed`` (canceled or stopped early with the
    cursor saved) or ``fatally_failed``.
    """

    def __init__(
        self,
        job_name: str,
        store: EntityStore,
        service: VibesGenerationService,
        cursor_store: CursorStore,
        filters: CandidateFilters,
        options: BackfillOptions,
        token: CancellationToken | None = None,
        report_dir: str | Path | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.job_name = job_name
        self.store = store
        self.service = service
        self.cursor_store = cursor_store
        self.filters = filters
        self.options = options
        self.token = token or CancellationToken()
        self.report_dir = report_dir
        self._sleep = sleep

        self.state = RunState.IDLE
        self.stop_reason: StopReason | None = None
        self.metrics = BackfillMetrics()
        self.start_offset = 0
        self.offset = 0
        self.last_processed_id: str | None = None
        self._base = Cursor()
        self._generated = 0

    def _resolve_start(self) -> int:
        """Explicit offset wins; otherwise a matching cursor when resuming; otherwise 0."""
        if self.options.offset is not None:
            logger.info("Starting from explicit offset", offset=self.options.offset)
            return self.options.offset

        if self.options.resume:
            cursor = self.cursor_store.load()
            if cursor is not None:
                self._base = cursor
                self.last_processed_id = cursor.last_processed_id
                logger.info(
                    "Resuming from cursor",
                    offset=cursor.offset,
                    last_processed_id=cursor.last_processed_id,
                    previously_attempted=cursor.attempted,
                )
                return cursor.offset

        return 0

    def current_cursor(self) -> Cursor:
        """Cumulative cursor: totals from the resumed cursor plus this run."""
        return Cursor(
            offset=self.offset,
            last_processed_id=self.last_processed_id,
            attempted=self._base.attempted + self.metrics.attempted,
            success=self._base.success + self.metrics.success,
            failed=self._base.failed + self.metrics.failed,
            skipped=self._base.skipped + self.metrics.skipped,
            total_cost_usd=self._base.total_cost_usd + self.metrics.total_cost_usd,
            canceled=self.token.is_cancelled,
        )

    def checkpoint(self) -> None:
        """Persist the cursor. Synchronous so the signal handler can call it."""
        self.cursor_store.save(self.current_cursor())

    def _limit_reached(self) -> bool:
        return self.options.limit is not None and self._generated >= self.options.limit

    async def _process(self, target: EnrichmentTarget, current_hash: str) -> bool:
        """Generate and store one target. Returns True on success."""
        try:
            result = await self.service.generate(target)
        except ConfigurationError:
            raise
        except VibesPipelineError as e:
            self.metrics.record_failure(target, str(e), e.code, e.usage)
            return False
        except Exception as e:
            logger.exception("Unexpected error generating vibes", target_id=target.id)
            self.metrics.record_failure(target, str(e), "unexpected_error")
            return False

        try:
            await self.store.upsert_result(target, result, current_hash)
        except VibesPipelineError as e:
            # Tokens were spent even though nothing was stored
            self.metrics.record_failure(target, str(e), e.code, result.usage)
            return False

        self.metrics.record_success(target, result)
        return True

    async def _run_page(self, targets: list[EnrichmentTarget]) -> tuple[int, int]:
        """Process one page. Returns (successes, failures) for the page."""
        page_start = self.offset
        successes = failures = 0
        since_checkpoint = 0

        existing = {} if self.options.force else await self.store.load_existing_hashes(
            [t.id for t in targets]
        )

        for index, target in enumerate(targets):
            if self.token.is_cancelled or self._limit_reached():
                break

            current_hash = source_hash(target)
            if not self.options.force and existing.get(target.id) == current_hash:
                self.metrics.record_skip(target)
            else:
                if self._generated > 0 and self.options.delay_ms > 0:
                    await self._sleep(self.options.delay_ms / 1000)
                    if self.token.is_cancelled:
                        break
                self._generated += 1
                if await self._process(target, current_hash):
                    successes += 1
                else:
                    failures += 1

            self.offset = page_start + index + 1
            self.last_processed_id = target.id

            since_checkpoint += 1
            if since_checkpoint >= self.options.checkpoint_every:
                self.checkpoint()
                since_checkpoint = 0

        self.checkpoint()
        return successes, failures

    async def _loop(self) -> StopReason:
        no_success_pages = 0

        while True:
            if self.token.is_cancelled:
                return StopReason.CANCELED
            if self._limit_reached():
                return StopReason.LIMIT

            targets = await self.store.list_candidates(
                self.filters, self.offset, self.options.batch_size
            )
            if not targets:
                return StopReason.EXHAUSTED

            page_start = self.offset
            logger.info(
                "Processing page",
                offset=page_start,
                candidates=len(targets),
                generated=self._generated,
            )

            successes, failures = await self._run_page(targets)

            if self.token.is_cancelled:
                return StopReason.CANCELED

            if successes > 0:
                no_success_pages = 0
            elif failures > 0:
                no_success_pages += 1
                if no_success_pages >= self.options.stop_after_no_success:
                    logger.error(
                        "Stopping: consecutive pages without a success",
                        pages=no_success_pages,
                        offset=self.offset,
                    )
                    return StopReason.STUCK

            if self.offset == page_start and not self._limit_reached():
                logger.error("Stopping: cursor did not advance", offset=self.offset)
                return StopReason.NO_PROGRESS

    def _report(self, error: str | None = None) -> dict[str, Any]:
        report = {
            "state": self.state.value,
            "stopReason": self.stop_reason.value if self.stop_reason else None,
            "canceled": self.token.is_cancelled,
            "args": {**self.options.to_dict(), "filters": self.filters.to_dict()},
            "totals": self.metrics.to_dict(),
            "cumulative": self.current_cursor().to_dict(),
            "startOffset": self.start_offset,
            "nextOffset": self.offset,
            "failures": [f.to_dict() for f in self.metrics.failures],
        }
        if error:
            report["error"] = error
        return report

    def _finish(self, error: str | None = None) -> dict[str, Any]:
        self.metrics.finalize()
        report = self._report(error)
        if self.report_dir is not None:
            try:
                write_report(self.report_dir, self.job_name, report)
            except OSError as e:
                logger.error("Failed to write run report", error=str(e))
        log_run_summary(
            self.job_name,
            {**self.metrics.to_dict(), "next_offset": self.offset, "state": self.state.value},
            canceled=self.token.is_cancelled,
        )
        return report

    async def run(self) -> dict[str, Any]:
        """
        Run until a stop condition. Returns the run report.

        Raises:
            ConfigurationError: fatal misconfiguration; nothing else aborts a run
            PersistenceError: candidates could not be listed
        """
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"Runner already used (state={self.state.value})")

        self.state = RunState.RUNNING
        self.metrics.reset()
        self.start_offset = self.offset = self._resolve_start()

        logger.info(
            "Starting vibes backfill",
            job=self.job_name,
            start_offset=self.offset,
            filters=self.filters.to_dict(),
            **self.options.to_dict(),
        )

        try:
            self.stop_reason = await self._loop()
        except Exception as e:
            self.state = RunState.FATALLY_FAILED
            self.stop_reason = StopReason.FATAL
            logger.error("Vibes backfill failed", error=str(e), error_type=type(e).__name__)
            self.checkpoint()
            self._finish(error=str(e))
            raise

        if self.stop_reason in (StopReason.EXHAUSTED, StopReason.LIMIT):
            self.state = RunState.COMPLETED
        else:
            self.state = RunState.CHECKPOINTED

        self.checkpoint()
        return self._finish()


def _job_paths(job: str, args: argparse.Namespace) -> tuple[Path, Path, Path]:
    log_dir = Path(settings.VIBES_LOG_DIR)
    cursor_file = Path(args.cursor_file) if args.cursor_file else log_dir / f"{job}-cursor.json"
    report_dir = Path(args.report_dir) if args.report_dir else log_dir / "reports"
    stamp = time.strftime("%Y%m%d-%H%M%S")
    log_file = Path(args.log_file) if args.log_file else log_dir / f"{job}-{stamp}.log"
    return cursor_file, report_dir, log_file


def build_filters(kind: TargetKind, args: argparse.Namespace) -> CandidateFilters:
    min_price = None
    if kind is TargetKind.PROPERTY:
        min_price = args.min_price if args.min_price is not None else settings.VIBES_BACKFILL_MIN_PRICE
    return CandidateFilters(
        kind=kind,
        ids=tuple(args.ids) if args.ids else None,
        states=tuple(args.states) if args.states else None,
        min_price=min_price,
    )


def build_options(kind: TargetKind, args: argparse.Namespace) -> BackfillOptions:
    if args.all:
        limit = None
    elif args.limit is not None:
        limit = args.limit
    else:
        limit = settings.VIBES_BACKFILL_LIMIT

    default_delay = (
        settings.VIBES_BACKFILL_DELAY_MS
        if kind is TargetKind.PROPERTY
        else settings.NEIGHBORHOOD_VIBES_DELAY_MS
    )
    stop_after = args.stop_after_no_success or settings.VIBES_BACKFILL_STOP_AFTER_NO_SUCCESS_BATCHES

    return BackfillOptions(
        limit=limit,
        batch_size=args.batch_size or settings.VIBES_BACKFILL_BATCH_SIZE,
        delay_ms=args.delay_ms if args.delay_ms is not None else default_delay,
        force=args.force,
        offset=args.offset,
        resume=args.resume,
        stop_after_no_success=stop_after,
        checkpoint_every=settings.VIBES_BACKFILL_CHECKPOINT_EVERY,
    )


async def run_vibes_backfill(kind: TargetKind, args: argparse.Namespace) -> int:
    """
    Wire settings, database, provider and cursor into one runner and run it.

    Returns the process exit code.
    """
    job = JOB_NAMES[kind]
    settings.require_backfill_credentials()

    filters = build_filters(kind, args)
    options = build_options(kind, args)
    cursor_file, report_dir, log_path = _job_paths(job, args)
    sample_limit = args.sample_limit or settings.NEIGHBORHOOD_VIBES_SAMPLE_LIMIT

    if kind is TargetKind.PROPERTY:
        store: EntityStore = PropertyVibesRepository()
    else:
        store = NeighborhoodVibesRepository(sample_limit=sample_limit)

    client = OpenRouterClient()
    service = VibesGenerationService(client, max_listings=sample_limit)
    token = CancellationToken()
    runner = BackfillRunner(
        job_name=job,
        store=store,
        service=service,
        cursor_store=CursorStore(cursor_file, filters, settings.supabase_host()),
        filters=filters,
        options=options,
        token=token,
        report_dir=report_dir,
    )

    with RunLogFile(log_path) as log_file:
        logger.info("Run log attached", path=str(log_path), cursor_file=str(cursor_file))
        await db_pool.initialize()
        try:
            with SignalScope(token, runner.checkpoint, log_file=log_file):
                await runner.run()
        finally:
            await client.close()
            await db_pool.close()

    return 1 if runner.stop_reason in (StopReason.STUCK, StopReason.NO_PROGRESS) else 0


async def run_property_vibes(args: argparse.Namespace) -> int:
    return await run_vibes_backfill(TargetKind.PROPERTY, args)


async def run_neighborhood_vibes(args: argparse.Namespace) -> int:
    return await run_vibes_backfill(TargetKind.NEIGHBORHOOD, args)
