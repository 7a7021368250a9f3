"""Insights engine error types."""

from __future__ import annotations


class InsightsError(Exception):
    """Base class for insights engine failures."""


class InsightGenerationError(InsightsError):
    """Computing a snapshot failed; the underlying cause is chained."""

    def __init__(self, message: str = "insight generation failed") -> None:
        super().__init__(message)


class CacheClearError(InsightsError):
    """An explicit cache clear could not be completed."""


class InvalidPeriodError(InsightsError, ValueError):
    """Trend period outside the supported set of day counts."""
