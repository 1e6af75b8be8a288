# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Error taxonomy for Shop Reports.

Every failure raised by the report pipeline derives from ``ReportError`` so
that the orchestrator can recover from all of them at a single boundary.
A few classes also derive from a builtin exception (``ValueError``,
``RuntimeError``) so that callers used to the builtin types keep working.

- InvalidRangeError   : malformed or missing date bounds, unknown preset.
- UnknownReportError  : report type / sub type not registered.
- InvalidFilterError  : group-by or include flag not supported by a report.
- FetchError          : one or more store queries failed.
- FetchTimeoutError   : the fan-out fetch did not finish in time.
- ReportCancelledError: the request was cancelled while fetching.
- ExportError         : rendering or writing an export failed.
- ReportStateError    : an orchestrator operation was called in the wrong state.
- EmptyResultWarning  : zero rows; a warning, not an error.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional


class ReportError(Exception):
    """Base class for all report pipeline errors."""

    def __init__(
        self, message: str, *, context: Optional[Mapping[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})


class InvalidRangeError(ReportError, ValueError):
    """A date range could not be resolved from the given preset/bounds."""


class UnknownReportError(ReportError, ValueError):
    """No descriptor is registered for the requested report."""


class InvalidFilterError(ReportError, ValueError):
    """A filter field is not supported by the requested report."""


class FetchError(ReportError):
    """
    One or more queries of a report failed.

    Attributes
    ----------
    fetches:
        Names of the failed fetches, in plan order.
    """

    def __init__(
        self,
        message: str,
        *,
        fetches: Iterable[str] = (),
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message, context=context)
        self.fetches: tuple[str, ...] = tuple(fetches)


class FetchTimeoutError(FetchError):
    """The fan-out fetch exceeded its time budget."""


class ReportCancelledError(ReportError):
    """The report request was cancelled before its data was fetched."""


class ExportError(ReportError):
    """Rendering or writing an export artifact failed."""


class ReportStateError(ReportError, RuntimeError):
    """An orchestrator operation is not allowed in the current state."""


class EmptyResultWarning(UserWarning):
    """A report matched zero source rows."""
