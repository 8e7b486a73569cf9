"""Error taxonomy for the visualization pipeline.

Terminal errors (``retryable = False``) propagate to the caller immediately.
Everything else is absorbed by the retry, degrade, or fail-open policies of
the component that raised it.
"""

from __future__ import annotations


class VisualizerError(Exception):
    """Base class. ``retryable`` tells the caller whether trying again can help."""

    retryable: bool = True

    def __init__(self, message: str, *, capability: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.capability = capability


class CapabilityUnavailable(VisualizerError):
    """A required capability is not configured (missing credentials)."""

    retryable = False


class CapabilityQuotaExceeded(VisualizerError):
    """Provider-side rate limit or quota exhaustion."""

    retryable = False


class GenerationTimeout(VisualizerError):
    """A single generation attempt exceeded its time bound."""


class GenerationEmpty(VisualizerError):
    """The generator answered but produced no usable image."""


class GenerationFailed(VisualizerError):
    """Any other provider error during one generation attempt."""


class AnalysisFailed(VisualizerError):
    """Photo analysis failed; callers degrade to a neutral analysis."""


class ValidationUnavailable(VisualizerError):
    """The structure validator errored; callers accept the image as-is."""


def is_terminal(exc: BaseException) -> bool:
    """True for errors that must never be retried."""
    return isinstance(exc, VisualizerError) and not exc.retryable
