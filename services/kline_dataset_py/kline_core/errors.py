"""Exceptions raised inside the fetch/enrich pipeline.

"No data" is not an exception: an empty upstream page is a
regular :class:`~kline_core.models.FetchStatus` outcome.
"""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline failures."""


class UnsupportedIntervalError(PipelineError, ValueError):
    def __init__(self, interval: str):
        super().__init__(f"Unsupported interval {interval!r}")
        self.interval = interval


class TransportError(PipelineError):
    """Network failure, non-2xx status, malformed JSON or undecodable rows."""


class NoDatasetError(PipelineError):
    def __init__(self, message: str = "No dataset to enrich; fetch data first"):
        super().__init__(message)
