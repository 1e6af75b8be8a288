# Shop Reports - Report aggregation & export for fabrication shops
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for Shop Reports.

This module is responsible for:
- loading the application configuration from a TOML file,
- validating each section and applying defaults,
- exposing typed dataclasses used by the rest of the application.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .periods import APPLICATION_EPOCH, PRESETS, WEEKDAYS, CalendarAnchor, normalize_preset
from .store import DatabaseConfig

DEFAULT_CONFIG_FILE = "shop_reports_config.toml"

DEFAULT_STYLESHEET_URL = (
    "https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/css/bootstrap.min.css"
)


@dataclass(frozen=True)
class ReportSettings:
    """
    Settings of the aggregation pipeline.

    Attributes
    ----------
    anchor:
        Civil timezone used for date presets and day/week/month grouping.
    epoch:
        First day covered by the 'all' preset.
    fetch_timeout_seconds:
        Time budget of the fan-out fetch of one report (None: unbounded).
    max_workers:
        Maximum number of concurrent store queries per report.
    default_preset:
        Preset used when the user does not pick one.
    """

    anchor: CalendarAnchor = field(default_factory=CalendarAnchor)
    epoch: date = APPLICATION_EPOCH
    fetch_timeout_seconds: Optional[float] = 30.0
    max_workers: int = 4
    default_preset: str = "month"


@dataclass(frozen=True)
class DisplayConfig:
    """Formatting options of the export sinks."""

    currency: str = "KES"
    decimals: int = 2
    stylesheet_url: str = DEFAULT_STYLESHEET_URL


@dataclass(frozen=True)
class CompanyInfo:
    """Company header printed on PDF reports."""

    name: str = "CABINET MASTER STYLES & FINISHES"
    location: str = "Ruiru Eastern By-Pass"
    phone: str = "+254729554475"
    email: str = "cabinetmasterstyles@gmail.com"


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for Shop Reports.

    This aggregates:
    - the database configuration (where the business records live),
    - the report pipeline settings (timezone anchor, timeouts),
    - display options for the export sinks,
    - the company header for PDF output,
    - the default output directory and log level.
    """

    database: DatabaseConfig
    reports: ReportSettings
    display: DisplayConfig
    company: CompanyInfo
    output_dir: Path
    log_level: str = "WARNING"


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Config section [{name}] must be a table.")
    return section


def _parse_anchor(section: Mapping[str, Any]) -> CalendarAnchor:
    """
    Build the calendar anchor from the [timezone] section.

    Raises:
        ValueError: if the offset is not a number or the week start is unknown.
    """
    defaults = CalendarAnchor()

    try:
        offset = float(section.get("utc_offset_hours", defaults.utc_offset_hours))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'timezone.utc_offset_hours', expected a number."
        ) from exc

    week_start_raw = str(section.get("week_start", "sunday")).strip().lower()
    if week_start_raw not in WEEKDAYS:
        raise ValueError(
            f"Invalid value for 'timezone.week_start': {week_start_raw!r}. "
            f"Expected one of: {', '.join(WEEKDAYS)}."
        )

    return CalendarAnchor(
        name=str(section.get("name") or defaults.name),
        utc_offset_hours=offset,
        week_start=WEEKDAYS[week_start_raw],
    )


def _parse_report_settings(
    section: Mapping[str, Any], anchor: CalendarAnchor
) -> ReportSettings:
    try:
        epoch = date.fromisoformat(str(section.get("epoch", APPLICATION_EPOCH.isoformat())))
    except ValueError as exc:
        raise ValueError("Invalid 'reports.epoch', expected YYYY-MM-DD format.") from exc

    raw_timeout = section.get("fetch_timeout_seconds", 30)
    try:
        timeout: Optional[float] = float(raw_timeout)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'reports.fetch_timeout_seconds', expected a number."
        ) from exc
    if timeout is not None and timeout <= 0:
        timeout = None

    try:
        max_workers = int(section.get("max_workers", 4))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'reports.max_workers', expected an integer."
        ) from exc
    if max_workers < 1:
        raise ValueError("'reports.max_workers' must be at least 1.")

    default_preset = normalize_preset(str(section.get("default_preset", "month")))
    if default_preset == "custom":
        raise ValueError(
            "'reports.default_preset' cannot be 'custom'. "
            f"Choose one of: {', '.join(p for p in PRESETS if p != 'custom')}."
        )

    return ReportSettings(
        anchor=anchor,
        epoch=epoch,
        fetch_timeout_seconds=timeout,
        max_workers=max_workers,
        default_preset=default_preset,
    )


def _parse_display(section: Mapping[str, Any]) -> DisplayConfig:
    defaults = DisplayConfig()
    try:
        decimals = int(section.get("decimals", defaults.decimals))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'display.decimals', expected an integer."
        ) from exc
    return DisplayConfig(
        currency=str(section.get("currency") or defaults.currency),
        decimals=decimals,
        stylesheet_url=str(section.get("stylesheet_url") or defaults.stylesheet_url),
    )


def _parse_company(section: Mapping[str, Any]) -> CompanyInfo:
    defaults = CompanyInfo()
    return CompanyInfo(
        name=str(section.get("name") or defaults.name),
        location=str(section.get("location") or defaults.location),
        phone=str(section.get("phone") or defaults.phone),
        email=str(section.get("email") or defaults.email),
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the Shop Reports application configuration from a TOML file.

    Expected top-level sections in the TOML file (all optional)
    -----------------------------------------------------------
    [timezone]
        Civil timezone of the shop: name, utc_offset_hours, week_start.

    [database]
        Database engine and SQLite file path.

    [reports]
        epoch, fetch_timeout_seconds, max_workers, default_preset.

    [display]
        currency, decimals, stylesheet_url (print output).

    [company]
        name, location, phone, email (PDF header).

    [output]
        dir: default directory for exported files.

    [logging]
        level: root log level (DEBUG, INFO, WARNING, ...).

    Notes
    -----
    - When no path is given and ``shop_reports_config.toml`` does not exist
      in the working directory, the built-in defaults are used.
    - All file paths in the TOML are resolved relative to the directory of
      the TOML file itself.

    Raises
    ------
    FileNotFoundError
        If an explicit config path does not exist.
    ValueError
        If the TOML cannot be parsed or a value is invalid.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
        raw: Mapping[str, Any] = _load_toml(config_file) if config_file.is_file() else {}
    else:
        config_file = Path(config_path).resolve()
        raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Timezone and report pipeline
    anchor = _parse_anchor(_section(raw, "timezone"))
    reports = _parse_report_settings(_section(raw, "reports"), anchor)

    # 2) Database
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/shop_reports.sqlite"
    database = DatabaseConfig(engine=db_engine, path=(base_dir / str(db_path_raw)).resolve())

    # 3) Display, company header, output
    display = _parse_display(_section(raw, "display"))
    company = _parse_company(_section(raw, "company"))

    output_section = _section(raw, "output")
    output_dir = (base_dir / str(output_section.get("dir") or "exports")).resolve()

    logging_section = _section(raw, "logging")
    log_level = str(logging_section.get("level") or "WARNING").upper()

    return AppConfig(
        database=database,
        reports=reports,
        display=display,
        company=company,
        output_dir=output_dir,
        log_level=log_level,
    )
