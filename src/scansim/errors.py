"""Exceptions raised by scansim.

Every error is fatal for the run that raised it: nothing is retried, and
files that were already opened are closed on the way out.
"""

from __future__ import annotations

from pathlib import Path


class ScanSimError(Exception):
    """Base class for all scansim errors."""


class TrajectoryParseError(ScanSimError, ValueError):
    """A trajectory record does not match the expected field layout."""

    def __init__(self, message: str, path: str | Path | None = None, lineno: int = 0):
        self.path = path
        self.lineno = lineno
        if path is not None:
            message = f"{path}:{lineno}: {message}"
        super().__init__(message)


class ParameterValidationError(ScanSimError, ValueError):
    """Parameters are individually valid but inconsistent for this run."""


class MissingConfigurationError(ScanSimError, LookupError):
    """A configuration block required by the selected mode is absent."""
