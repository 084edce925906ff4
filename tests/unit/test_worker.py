import argparse

import pytest

from vibes_pipeline.features.vibes.domain.models import TargetKind
from vibes_pipeline.features.vibes.errors import ConfigurationError
from vibes_pipeline.features.vibes.jobs.backfill_job import build_filters, build_options
from vibes_pipeline.jobs import worker


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch):
    called = {"args": None}

    async def dummy_job(args):
        called["args"] = args
        return 0

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)
    args = argparse.Namespace(job="dummy")

    assert await worker.run_worker("dummy", args) == 0
    assert called["args"] is args


@pytest.mark.asyncio
async def test_run_worker_unknown_job():
    with pytest.raises(ValueError):
        await worker.run_worker("missing")


def test_registry_has_all_jobs():
    assert set(worker.JOB_REGISTRY) == {"property_vibes", "neighborhood_vibes", "vibes_coverage"}


def test_parser_normalizes_states_and_ids():
    args = worker.build_parser().parse_args(
        [
            "neighborhood_vibes",
            "--states",
            "ca, or",
            "--ids",
            "6F9619FF-8B86-D011-B42D-00C04FC964FF",
            "--limit",
            "25",
            "--resume",
        ]
    )

    assert args.job == "neighborhood_vibes"
    assert args.states == ["CA", "OR"]
    assert args.ids == ["6f9619ff-8b86-d011-b42d-00c04fc964ff"]
    assert args.limit == 25
    assert args.resume is True


@pytest.mark.parametrize(
    "argv",
    [
        ["property_vibes", "--states", "California"],
        ["property_vibes", "--ids", "not-a-uuid"],
        ["property_vibes", "--batch-size", "0"],
        ["property_vibes", "--limit", "-1"],
    ],
)
def test_parser_rejects_bad_values(argv):
    with pytest.raises(SystemExit):
        worker.build_parser().parse_args(argv)


def test_all_flag_overrides_limit():
    args = worker.build_parser().parse_args(["property_vibes", "--limit", "5", "--all"])

    assert build_options(TargetKind.PROPERTY, args).limit is None


def test_options_fall_back_to_settings(monkeypatch):
    monkeypatch.setattr(worker.settings, "VIBES_BACKFILL_BATCH_SIZE", 7)
    monkeypatch.setattr(worker.settings, "NEIGHBORHOOD_VIBES_DELAY_MS", 800)
    args = worker.build_parser().parse_args(["neighborhood_vibes"])

    options = build_options(TargetKind.NEIGHBORHOOD, args)

    assert options.batch_size == 7
    assert options.delay_ms == 800
    assert options.force is False
    assert options.offset is None


def test_min_price_only_applies_to_properties():
    args = worker.build_parser().parse_args(["property_vibes", "--min-price", "250000"])

    assert build_filters(TargetKind.PROPERTY, args).min_price == 250000
    assert build_filters(TargetKind.NEIGHBORHOOD, args).min_price is None


def test_main_returns_one_on_configuration_error(monkeypatch):
    async def broken_job(args):
        raise ConfigurationError("Missing required settings: OPENROUTER_API_KEY")

    monkeypatch.setitem(worker.JOB_REGISTRY, "property_vibes", broken_job)
    monkeypatch.setattr(worker, "setup_logging", lambda level: None)

    assert worker.main(["property_vibes"]) == 1


def test_main_returns_job_exit_code(monkeypatch):
    async def ok_job(args):
        return 0

    monkeypatch.setitem(worker.JOB_REGISTRY, "vibes_coverage", ok_job)
    monkeypatch.setattr(worker, "setup_logging", lambda level: None)

    assert worker.main(["vibes_coverage", "--kind", "neighborhood"]) == 0
