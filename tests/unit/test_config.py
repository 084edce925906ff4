import pytest

from vibes_pipeline.config import Settings
from vibes_pipeline.features.vibes.errors import ConfigurationError


def _settings(**overrides):
    fields = {
        "SUPABASE_URL": None,
        "SUPABASE_DB_URL": None,
        "OPENROUTER_API_KEY": None,
    }
    fields.update(overrides)
    return Settings(_env_file=None, **fields)


def test_missing_credentials_are_listed():
    with pytest.raises(ConfigurationError) as exc:
        _settings(OPENROUTER_API_KEY="  ").require_backfill_credentials()

    assert "OPENROUTER_API_KEY" in str(exc.value)
    assert "SUPABASE_DB_URL" in str(exc.value)


def test_credentials_present():
    _settings(
        OPENROUTER_API_KEY="sk-or-test",
        SUPABASE_DB_URL="postgresql://postgres:pw@db.abc.supabase.co:5432/postgres",
    ).require_backfill_credentials()


def test_supabase_host_prefers_project_url():
    s = _settings(
        SUPABASE_URL="https://abc.supabase.co",
        SUPABASE_DB_URL="postgresql://postgres:pw@db.abc.supabase.co:5432/postgres",
    )

    assert s.supabase_host() == "abc.supabase.co"


def test_supabase_host_falls_back_to_db_url():
    s = _settings(SUPABASE_DB_URL="postgresql://postgres:pw@db.abc.supabase.co:5432/postgres")

    assert s.supabase_host() == "db.abc.supabase.co"
    assert _settings().supabase_host() == ""


def test_pool_config_keys():
    assert set(_settings().get_db_pool_config()) == {
        "min_size",
        "max_size",
        "timeout",
        "max_idle",
        "max_lifetime",
    }
