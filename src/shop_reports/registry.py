# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Registry of report descriptors, keyed by ``(report_type, sub_type)``.

Every report domain module exposes a ``DESCRIPTORS`` tuple; this module
collects them so the aggregation engine can run any report through one
generic pipeline.
"""

from collections.abc import Iterable
from typing import Optional

from . import clients, custom, expenses, financial, inventory, sales
from .errors import UnknownReportError
from .models import ReportDescriptor


def build_registry(
    *groups: Iterable[ReportDescriptor],
) -> dict[tuple[str, str], ReportDescriptor]:
    """Index descriptors by key; the first descriptor of a type is its default."""
    registry: dict[tuple[str, str], ReportDescriptor] = {}
    for group in groups:
        for descriptor in group:
            if descriptor.key in registry:
                raise ValueError(f"Duplicate report descriptor: {descriptor.key}")
            registry[descriptor.key] = descriptor
    return registry


REGISTRY = build_registry(
    sales.DESCRIPTORS,
    expenses.DESCRIPTORS,
    inventory.DESCRIPTORS,
    clients.DESCRIPTORS,
    financial.DESCRIPTORS,
    custom.DESCRIPTORS,
)


def report_types() -> list[str]:
    """Registered report types, in registration order."""
    return list(dict.fromkeys(t for t, _ in REGISTRY))


def sub_types(report_type: str) -> list[str]:
    return [s for t, s in REGISTRY if t == report_type]


def get_descriptor(report_type: str, sub_type: Optional[str] = None) -> ReportDescriptor:
    """
    Return the descriptor of a report.

    ``sub_type=None`` selects the first sub type registered for the type.

    Raises
    ------
    UnknownReportError
        If the type or sub type is not registered.
    """
    available = sub_types(report_type)
    if not available:
        raise UnknownReportError(
            f"Unknown report type: {report_type!r}",
            context={"choices": report_types()},
        )
    key = (report_type, sub_type or available[0])
    if key not in REGISTRY:
        raise UnknownReportError(
            f"Unknown sub type {sub_type!r} for report {report_type!r}",
            context={"choices": available},
        )
    return REGISTRY[key]
