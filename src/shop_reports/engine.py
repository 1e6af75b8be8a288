# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report aggregation engine for Shop Reports.

Every report, whatever its domain, runs through the same pipeline driven by
its registry descriptor:

1. Fetch
   -----
   ``descriptor.plan(filter)`` returns the named store queries of the
   report. They are independent, so they run concurrently (see ``fetch``)
   and the engine waits for all of them, bounded by the configured timeout
   and the caller's cancel token.

2. Failure policy
   --------------
   A failed fetch never silently corrupts a total:
   - 'fail'    : any failure raises ``FetchError`` naming the failed fetches.
   - 'degrade' : failures of the descriptor's optional fetches are replaced
                 by empty result sets and listed in ``ReportResult.degraded``;
                 a failure of any other fetch still raises ``FetchError``.

3. Normalize and aggregate
   -----------------------
   ``descriptor.build(filter, data, context)`` maps the heterogeneous source
   records onto the report's row shape, computes derived fields and groups.

4. Totals
   ------
   Every column declared with ``total=True`` is summed over the emitted rows.
"""

import logging
from typing import Optional

from .aggregation import column_totals
from .config import ReportSettings
from .errors import FetchError, InvalidFilterError
from .fetch import CancelToken, fan_out
from .models import BuildContext, ReportDescriptor, ReportFilter, ReportResult
from .registry import get_descriptor
from .store import DataStore

logger = logging.getLogger(__name__)


def validate_filter(descriptor: ReportDescriptor, report_filter: ReportFilter) -> None:
    """
    Check the filter fields a descriptor constrains.

    Raises:
        InvalidFilterError: unsupported group-by or include flag.
    """
    group_by = report_filter.group_by
    if group_by and group_by not in descriptor.group_by_choices:
        choices = ", ".join(descriptor.group_by_choices) or "none"
        raise InvalidFilterError(
            f"Report {descriptor.report_type}/{descriptor.sub_type} cannot be "
            f"grouped by {group_by!r} (choices: {choices}).",
            context={"group_by": group_by},
        )

    if report_filter.include_flags is not None:
        unknown = set(report_filter.include_flags) - set(descriptor.flag_choices)
        if unknown:
            raise InvalidFilterError(
                f"Unsupported include flag(s) for {descriptor.report_type}: "
                f"{', '.join(sorted(unknown))}",
                context={"flags": sorted(unknown)},
            )


def aggregate(
    store: DataStore,
    report_filter: ReportFilter,
    *,
    settings: Optional[ReportSettings] = None,
    cancel_token: Optional[CancelToken] = None,
) -> ReportResult:
    """
    Run the fetch / normalize / aggregate pipeline of one report.

    Args:
        store: Data store the queries are sent to.
        report_filter: Report type, sub type, date range and filters.
        settings: Timezone anchor, fetch timeout and worker count.
        cancel_token: Checked while the fetches are running.

    Returns:
        The immutable ``ReportResult``. Zero matching source rows give an
        empty row tuple and all-zero totals.

    Raises:
        UnknownReportError: the report is not registered.
        InvalidFilterError: unsupported group-by or include flag.
        FetchError: a required fetch failed (``FetchTimeoutError`` on timeout).
        ReportCancelledError: the token was cancelled while fetching.
    """
    settings = settings or ReportSettings()
    descriptor = get_descriptor(report_filter.report_type, report_filter.sub_type)
    validate_filter(descriptor, report_filter)

    queries = descriptor.plan(report_filter)
    logger.info(
        "Generating %s/%s for %s (%d fetch(es))",
        descriptor.report_type,
        descriptor.sub_type,
        report_filter.date_range.describe(settings.anchor),
        len(queries),
    )

    outcome = fan_out(
        store,
        queries,
        timeout=settings.fetch_timeout_seconds,
        cancel_token=cancel_token,
        max_workers=settings.max_workers,
    )

    data = dict(outcome.results)
    degraded: tuple[str, ...] = ()
    if outcome.failures:
        if descriptor.failure_policy == "degrade":
            fatal = [n for n in outcome.failures if n not in descriptor.optional_fetches]
        else:
            fatal = list(outcome.failures)

        if fatal:
            first = outcome.failures[fatal[0]]
            raise FetchError(
                f"{descriptor.title}: fetch {', '.join(repr(n) for n in fatal)} "
                f"failed ({first})",
                fetches=fatal,
                context={"report": descriptor.key},
            ) from first

        degraded = tuple(outcome.failures)
        for name in degraded:
            data[name] = []
        logger.warning(
            "%s: section(s) %s zero-filled after fetch failure",
            descriptor.title,
            ", ".join(degraded),
        )

    ctx = BuildContext(anchor=settings.anchor, degraded=degraded)
    body = descriptor.build(report_filter, data, ctx)

    return ReportResult(
        report_type=descriptor.report_type,
        sub_type=descriptor.sub_type,
        title=descriptor.title,
        columns=body.columns,
        rows=tuple(body.rows),
        totals=column_totals(body.columns, body.rows),
        period=report_filter.date_range,
        degraded=degraded,
        summary=body.summary,
    )
