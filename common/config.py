from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _default_env_file() -> str:
    return str(Path.cwd() / ".env")


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str

    alert_cooldown_minutes: float

    smtp_host: str | None
    smtp_port: int
    smtp_user: str | None
    smtp_password: str | None
    smtp_use_tls: bool
    email_from: str
    email_timeout_seconds: float
    dashboard_url: str

    simulate_sensor: bool
    simulation_interval_seconds: float
    reading_queue_size: int
    buzzer_auto_off_seconds: float

    device_name: str
    log_level: str
    environment: str

    @property
    def email_configured(self) -> bool:
        return bool(self.smtp_host)


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("WATER_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./water_monitor.db"),
        alert_cooldown_minutes=float(os.getenv("ALERT_COOLDOWN_MINUTES", "30")),
        smtp_host=os.getenv("SMTP_HOST") or None,
        smtp_port=int(os.getenv("SMTP_PORT", "587")),
        smtp_user=os.getenv("SMTP_USER") or None,
        smtp_password=os.getenv("SMTP_PASSWORD") or None,
        smtp_use_tls=_flag("SMTP_USE_TLS", "true"),
        email_from=os.getenv("EMAIL_FROM", '"Water Monitor" <alert@watermonitor.com>'),
        email_timeout_seconds=float(os.getenv("EMAIL_TIMEOUT_SECONDS", "10")),
        dashboard_url=os.getenv("DASHBOARD_URL", "http://localhost:3000/dashboard"),
        simulate_sensor=_flag("SIMULATE_SENSOR"),
        simulation_interval_seconds=float(os.getenv("SIMULATION_INTERVAL_SECONDS", "5")),
        reading_queue_size=int(os.getenv("READING_QUEUE_SIZE", "1000")),
        buzzer_auto_off_seconds=float(os.getenv("BUZZER_AUTO_OFF_SECONDS", "0")),
        device_name=os.getenv("DEVICE_NAME", "Water Monitor"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        environment=os.getenv("ENVIRONMENT", "development"),
    )
