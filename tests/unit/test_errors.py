import pytest

from vibes_pipeline.features.vibes.domain.models import UsageInfo
from vibes_pipeline.features.vibes.errors import (
    ConfigurationError,
    NoSamplesError,
    ParseError,
    PersistenceError,
    ProviderError,
    ProviderTimeoutError,
    ValidationError,
    VibesPipelineError,
)


@pytest.mark.parametrize(
    "error_cls, code",
    [
        (VibesPipelineError, "pipeline_error"),
        (ConfigurationError, "configuration_error"),
        (ProviderError, "provider_error"),
        (ProviderTimeoutError, "provider_timeout"),
        (ParseError, "parse_error"),
        (ValidationError, "validation_error"),
        (PersistenceError, "persistence_error"),
        (NoSamplesError, "no_samples"),
    ],
)
def test_each_error_has_a_stable_code(error_cls, code):
    assert error_cls.code == code
    assert error_cls("boom").code == code


def test_errors_carry_spent_usage():
    spent = UsageInfo(prompt_tokens=10, completion_tokens=5, total_tokens=15, estimated_cost_usd=0.002)

    error = ParseError("Model returned invalid JSON", usage=spent)

    assert str(error) == "Model returned invalid JSON"
    assert error.usage is spent
    assert VibesPipelineError("x").usage is None


def test_timeout_is_a_non_retryable_provider_error():
    error = ProviderTimeoutError()

    assert isinstance(error, ProviderError)
    assert error.status == 408
    assert error.retryable is False
