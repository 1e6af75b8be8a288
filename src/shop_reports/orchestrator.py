# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report orchestrator: the public surface used by presentation layers.

State machine
-------------
    IDLE -> LOADING -> READY | FAILED
    READY -> EXPORTING -> IDLE | FAILED

- ``prepare`` resolves a date preset into a ``ReportFilter``. An invalid
  range moves straight to FAILED; generation never starts.
- ``generate`` runs the aggregation engine. Each call takes a new in-flight
  token and cancels the previous one; a response that arrives after a newer
  request has started is discarded. Aggregation errors become a FAILED state
  holding an ``ErrorInfo``; the previously held result is left untouched.
- ``export`` renders the current result to CSV, a printable HTML document or
  a PDF, reporting progress to a ``ProgressListener`` and to the caller's
  completion / error callbacks. An export failure keeps the result, so the
  export can be retried without fetching again.

No aggregation or export exception escapes this module; only calling an
operation in the wrong state raises ``ReportStateError``.
"""

import logging
import threading
import warnings
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from .config import CompanyInfo, DisplayConfig, ReportSettings
from .engine import aggregate
from .errors import (
    EmptyResultWarning,
    ExportError,
    FetchError,
    FetchTimeoutError,
    InvalidFilterError,
    InvalidRangeError,
    ReportCancelledError,
    ReportError,
    ReportStateError,
    UnknownReportError,
)
from .export import FORMATS, default_filename, render_result
from .fetch import CancelToken
from .models import ReportFilter, ReportResult
from .pdf import PdfGenerator, ReportLabPdfGenerator, build_pdf_payload, pdf_filename
from .periods import DayLike, resolve
from .registry import get_descriptor
from .store import DataStore

logger = logging.getLogger(__name__)


class ReportState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    EXPORTING = "exporting"


@dataclass(frozen=True)
class ErrorInfo:
    """
    Error descriptor held in the FAILED state.

    kind is one of: invalid_range, invalid_filter, fetch, timeout, export,
    error (other report errors) or unexpected.
    """

    kind: str
    message: str
    fetches: tuple[str, ...] = ()


class ProgressListener(Protocol):
    def start_download(self, name: str, kind: str) -> None: ...

    def complete_download(self) -> None: ...

    def set_error(self, message: str) -> None: ...


class NullProgress:
    """Listener that ignores every notification."""

    def start_download(self, name: str, kind: str) -> None:
        pass

    def complete_download(self) -> None:
        pass

    def set_error(self, message: str) -> None:
        pass


def _error_kind(exc: ReportError) -> str:
    if isinstance(exc, InvalidRangeError):
        return "invalid_range"
    if isinstance(exc, (UnknownReportError, InvalidFilterError)):
        return "invalid_filter"
    if isinstance(exc, FetchTimeoutError):
        return "timeout"
    if isinstance(exc, FetchError):
        return "fetch"
    if isinstance(exc, ExportError):
        return "export"
    return "error"


class ReportOrchestrator:
    """
    Binds report filters to the aggregation engine and the export sinks.

    One orchestrator serves one report panel.
    """

    def __init__(
        self,
        store: DataStore,
        settings: Optional[ReportSettings] = None,
        *,
        display: Optional[DisplayConfig] = None,
        company: Optional[CompanyInfo] = None,
        pdf_generator: Optional[PdfGenerator] = None,
        print_target: Optional[Callable[[Path], Any]] = None,
        listener: Optional[ProgressListener] = None,
        output_dir: Optional[Path] = None,
    ) -> None:
        self.store = store
        self.settings = settings or ReportSettings()
        self.display = display or DisplayConfig()
        self.pdf_generator = pdf_generator or ReportLabPdfGenerator(
            company, currency=self.display.currency, decimals=self.display.decimals
        )
        self.print_target = print_target
        self.listener = listener or NullProgress()
        self.output_dir = Path(output_dir) if output_dir else Path.cwd()

        self._lock = threading.Lock()
        self._state = ReportState.IDLE
        self._result: Optional[ReportResult] = None
        self._error: Optional[ErrorInfo] = None
        self._request_id = 0
        self._token: Optional[CancelToken] = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ReportState:
        return self._state

    @property
    def error(self) -> Optional[ErrorInfo]:
        return self._error

    @property
    def last_result(self) -> Optional[ReportResult]:
        """Most recent successful result, kept across failures and exports."""
        return self._result

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _fail(self, info: ErrorInfo) -> None:
        self._state = ReportState.FAILED
        self._error = info

    def prepare(
        self,
        report_type: str,
        preset: Optional[str] = None,
        start: Optional[DayLike] = None,
        end: Optional[DayLike] = None,
        *,
        sub_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        include_flags: Optional[Iterable[str]] = None,
        group_by: Optional[str] = None,
        options: Optional[Mapping[str, Any]] = None,
        now=None,
    ) -> Optional[ReportFilter]:
        """
        Resolve the date range and build the filter of a report request.

        Returns ``None`` (state FAILED, kind 'invalid_range') when the range
        cannot be resolved.
        """
        try:
            date_range = resolve(
                preset or self.settings.default_preset,
                start,
                end,
                now=now,
                anchor=self.settings.anchor,
                epoch=self.settings.epoch,
            )
        except InvalidRangeError as exc:
            logger.info("Rejected date range: %s", exc.message)
            with self._lock:
                self._fail(ErrorInfo("invalid_range", exc.message))
            return None

        return ReportFilter(
            report_type=report_type,
            date_range=date_range,
            sub_type=sub_type,
            entity_id=entity_id,
            include_flags=None if include_flags is None else frozenset(include_flags),
            group_by=group_by,
            options=dict(options or {}),
        )

    def generate(
        self, report_filter: ReportFilter, *, cancel_token: Optional[CancelToken] = None
    ) -> Optional[ReportResult]:
        """
        Generate a report.

        Returns the result when it becomes the panel's current result, or
        ``None`` when the request failed, was cancelled or was superseded.

        Raises:
            ReportStateError: an export is running.
        """
        token = cancel_token or CancelToken()
        with self._lock:
            if self._state is ReportState.EXPORTING:
                raise ReportStateError(
                    "Cannot generate while an export is running.",
                    context={"state": self._state.value},
                )
            if self._token is not None:
                self._token.cancel()
            self._request_id += 1
            request_id = self._request_id
            self._token = token
            self._state = ReportState.LOADING
            self._error = None

        try:
            result = aggregate(
                self.store, report_filter, settings=self.settings, cancel_token=token
            )
        except ReportCancelledError:
            logger.info("Report request %d cancelled", request_id)
            with self._lock:
                if request_id == self._request_id:
                    self._state = ReportState.IDLE
                    self._token = None
            return None
        except ReportError as exc:
            logger.warning("Report request %d failed: %s", request_id, exc.message)
            info = ErrorInfo(
                kind=_error_kind(exc),
                message=exc.message,
                fetches=getattr(exc, "fetches", ()),
            )
            self._finish_failed(request_id, info)
            return None
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Unexpected error while generating %s report", report_filter.report_type
            )
            self._finish_failed(request_id, ErrorInfo("unexpected", str(exc)))
            return None

        with self._lock:
            if request_id != self._request_id:
                logger.warning(
                    "Discarding stale %s report (request %d superseded by %d)",
                    result.report_type,
                    request_id,
                    self._request_id,
                )
                return None
            self._state = ReportState.READY
            self._result = result
            self._token = None

        if result.is_empty:
            logger.info("%s matched no data", result.title)
            warnings.warn(
                f"{result.title}: no data for the selected period.",
                EmptyResultWarning,
                stacklevel=2,
            )
        return result

    def _finish_failed(self, request_id: int, info: ErrorInfo) -> None:
        with self._lock:
            if request_id != self._request_id:
                return
            self._fail(info)
            self._token = None

    def cancel(self) -> None:
        """Cancel the in-flight request, if any."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def _target_path(self, destination: Optional[Path], filename: str) -> Path:
        if destination is None:
            target = self.output_dir / filename
        else:
            destination = Path(destination)
            if destination.is_dir() or not destination.suffix:
                target = destination / filename
            else:
                target = destination
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    def _write(self, result: ReportResult, fmt: str, target: Path) -> None:
        anchor = self.settings.anchor
        if fmt == "pdf":
            code = get_descriptor(result.report_type, result.sub_type).report_code
            payload = build_pdf_payload(result, report_code=code, anchor=anchor)
            target.write_bytes(self.pdf_generator.generate(payload))
            return

        rendered = render_result(
            result,
            fmt,
            currency=self.display.currency,
            decimals=self.display.decimals,
            stylesheet_url=self.display.stylesheet_url,
            anchor=anchor,
        )
        if isinstance(rendered, bytes):
            target.write_bytes(rendered)
        else:
            target.write_text(rendered, encoding="utf-8")
            if self.print_target is not None:
                self.print_target(target)

    def _filename(self, result: ReportResult, fmt: str, name: Optional[str]) -> str:
        if fmt == "pdf" and not name:
            generated = result.generated_at.astimezone(self.settings.anchor.tzinfo)
            return pdf_filename(result.report_type, generated)
        return default_filename(result.report_type, fmt, name)

    def export(
        self,
        result: ReportResult,
        fmt: str,
        destination: Optional[Path] = None,
        *,
        name: Optional[str] = None,
        on_complete: Optional[Callable[[Path], Any]] = None,
        on_error: Optional[Callable[[ExportError], Any]] = None,
    ) -> Optional[Path]:
        """
        Export a result to 'csv', 'print' or 'pdf'.

        Allowed from READY, or from FAILED after a failed export. Returns the
        written path, or ``None`` on failure (reported through ``on_error``
        and ``listener.set_error``).

        Raises:
            ReportStateError: called in any other state.
        """
        with self._lock:
            retry = (
                self._state is ReportState.FAILED
                and self._error is not None
                and self._error.kind == "export"
            )
            if self._state is not ReportState.READY and not retry:
                raise ReportStateError(
                    f"Cannot export while the report is {self._state.value}.",
                    context={"state": self._state.value},
                )
            self._state = ReportState.EXPORTING

        filename = name or f"{result.report_type}-report"
        try:
            if fmt not in FORMATS:
                raise ExportError(f"Unsupported export format: {fmt!r}")
            filename = self._filename(result, fmt, name)
            self.listener.start_download(filename, fmt)
            target = self._target_path(destination, filename)
            self._write(result, fmt, target)
        except Exception as exc:  # noqa: BLE001
            if isinstance(exc, ExportError):
                error = exc
            else:
                error = ExportError(
                    f"Export of {filename} failed: {exc}", context={"format": fmt}
                )
                error.__cause__ = exc
            logger.error("Export failed: %s", error.message)
            with self._lock:
                self._fail(ErrorInfo("export", error.message))
            self.listener.set_error(error.message)
            if on_error is not None:
                on_error(error)
            return None

        with self._lock:
            if self._state is ReportState.EXPORTING:
                self._state = ReportState.IDLE
                self._error = None
        logger.info("Exported %s to %s", result.title, target)
        self.listener.complete_download()
        if on_complete is not None:
            on_complete(target)
        return target
