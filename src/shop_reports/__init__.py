# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Shop Reports
------------

Report aggregation and export for cabinet and furniture fabrication shops.
Business records (quotations, sales orders, invoices, cash sales, payments,
expenses, stock, account transactions and clients) are fetched from a data
store, aggregated client-side into report rows and totals, and exported as
CSV, a printable HTML document or a PDF.

Main capabilities:
- date-range presets anchored to the shop's civil timezone,
- concurrent multi-table fetch with timeout, cancellation and a per-report
  partial-failure policy,
- sales, expenses, inventory, client, financial and custom summary reports,
- CSV / print / PDF export sinks,
- a report orchestrator with an explicit state machine for UI shells,
- a SQLite store with CSV import and a command-line interface.


Version: 0.1.0

Usage:
    shop-reports --help
"""

__all__ = ["periods", "engine", "export", "orchestrator"]

__version__ = "0.1.0"
