"""
Error taxonomy for the vibes enrichment pipeline.

Every error carries a stable ``code`` that ends up in run reports. Errors
raised after the provider already billed tokens carry the accumulated
``usage`` so the orchestrator can still charge their cost.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vibes_pipeline.features.vibes.domain.models import UsageInfo


class VibesPipelineError(Exception):
    """Base exception for vibes pipeline errors."""

    code = "pipeline_error"

    def __init__(self, message: str, usage: UsageInfo | None = None):
        super().__init__(message)
        self.usage = usage


class ConfigurationError(VibesPipelineError):
    """Missing credential or required setting. Fatal for the whole run."""

    code = "configuration_error"


class ProviderError(VibesPipelineError):
    """HTTP, network or timeout failure talking to the LLM provider."""

    code = "provider_error"

    def __init__(
        self,
        message: str,
        status: int | None = None,
        retryable: bool = False,
        usage: UsageInfo | None = None,
    ):
        super().__init__(message, usage=usage)
        self.status = status
        self.retryable = retryable


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within the configured timeout."""

    code = "provider_timeout"

    def __init__(self, message: str = "Request timed out", usage: UsageInfo | None = None):
        super().__init__(message, status=408, retryable=False, usage=usage)


class ParseError(VibesPipelineError):
    """Model output could not be turned into JSON, even after repair."""

    code = "parse_error"


class ValidationError(VibesPipelineError):
    """Model output violates the vibes schema, even after field repair."""

    code = "validation_error"


class PersistenceError(VibesPipelineError):
    """Entity store read or write failed."""

    code = "persistence_error"


class NoSamplesError(VibesPipelineError):
    """Target has nothing to show the model."""

    code = "no_samples"
