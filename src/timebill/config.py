"""Configuration loading for timebill."""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

import tomli

from .models import ScheduleConfig, validate_hours, validate_percent, validate_rate

logger = logging.getLogger("timebill.config")


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"           # INFO or DEBUG
    output: str = "console"       # console, file, or both
    file: str = ""                # log file path
    rotate: bool = True           # enable rotation
    max_size_mb: int = 10         # max file size before rotation
    backup_count: int = 5         # rotated files to keep


@dataclass
class ScheduleDefaults:
    frequency: str = "BOTH_15TH_AND_LAST"
    day_policy: str = "WEEKDAYS_ONLY"
    default_hours_per_day: float = 8

    def to_schedule_config(self) -> ScheduleConfig:
        return ScheduleConfig(
            frequency=self.frequency,
            day_policy=self.day_policy,
            default_hours_per_day=self.default_hours_per_day,
        )


@dataclass
class InvoiceDefaults:
    """Starting values for every new draft."""
    currency: str = "USD"
    payment_terms: str = "NET_30"
    hourly_rate: float = 0
    discount_percent: float = 0
    tax_percent: float = 0
    page_size: str = "A4"
    job_title: str = ""
    notes: str = ""
    terms: str = ""

    def to_draft_fields(self) -> dict:
        return asdict(self)


@dataclass
class Config:
    db_path: Path = field(default_factory=lambda: Path("data/timebill.db"))
    output_dir: Path = field(default_factory=lambda: Path("invoices"))
    timezone: str = "UTC"
    user_id: str = "default"
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    schedule: ScheduleDefaults = field(default_factory=ScheduleDefaults)
    invoice: InvoiceDefaults = field(default_factory=InvoiceDefaults)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from TOML file."""
    if config_path is None:
        # Look for config in standard locations
        candidates = [
            Path("config/config.toml"),
            Path.home() / ".config/timebill/config.toml",
            Path("/etc/timebill/config.toml"),
        ]
        for candidate in candidates:
            if candidate.exists():
                config_path = candidate
                break

    config = Config()

    if config_path is None or not Path(config_path).exists():
        if config_path is not None:
            logger.warning("Config file %s not found, using defaults", config_path)
    else:
        with open(config_path, "rb") as f:
            data = tomli.load(f)
        _apply(config, data)
        logger.debug("Loaded config from %s", config_path)

    env_db_path = os.environ.get("TIMEBILL_DB_PATH")
    if env_db_path:
        config.db_path = Path(env_db_path)

    return config


def _apply(config: Config, data: dict) -> None:
    if "db_path" in data:
        config.db_path = Path(data["db_path"])

    if "output_dir" in data:
        config.output_dir = Path(data["output_dir"])

    if "timezone" in data:
        config.timezone = data["timezone"]

    if "user_id" in data:
        config.user_id = data["user_id"]

    if "logging" in data:
        log = data["logging"]
        config.logging = LoggingConfig(
            level=log.get("level", "INFO"),
            output=log.get("output", "console"),
            file=log.get("file", ""),
            rotate=log.get("rotate", True),
            max_size_mb=log.get("max_size_mb", 10),
            backup_count=log.get("backup_count", 5),
        )

    if "schedule" in data:
        sched = data["schedule"]
        config.schedule = ScheduleDefaults(
            frequency=sched.get("frequency", "BOTH_15TH_AND_LAST"),
            day_policy=sched.get("day_policy", "WEEKDAYS_ONLY"),
            default_hours_per_day=sched.get("default_hours_per_day", 8),
        )
        validate_hours(config.schedule.default_hours_per_day)

    if "invoice" in data:
        inv = data["invoice"]
        defaults = InvoiceDefaults()
        config.invoice = InvoiceDefaults(**{
            name: inv.get(name, value) for name, value in asdict(defaults).items()
        })
        unknown = set(inv) - set(asdict(defaults))
        if unknown:
            logger.warning("Ignoring unknown [invoice] keys: %s", ", ".join(sorted(unknown)))
        validate_rate(config.invoice.hourly_rate)
        validate_percent(config.invoice.discount_percent, "[invoice] discount_percent")
        validate_percent(config.invoice.tax_percent, "[invoice] tax_percent")
