# src/reservation_engine/config.py

from dataclasses import dataclass, field
from datetime import timedelta
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    value = os.getenv(name, default).strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class MailSettings:
    enabled: bool = False
    username: str = ""
    password: str = ""
    mail_from: str = "noreply@example.com"
    from_name: str = "Event Tickets"
    server: str = "localhost"
    port: int = 465
    starttls: bool = False
    ssl_tls: bool = True
    use_credentials: bool = True


@dataclass(frozen=True)
class Settings:
    payment_window: timedelta = timedelta(hours=2)
    confirmation_grace: timedelta = timedelta(days=3)
    point_expiry_warning: timedelta = timedelta(days=7)
    referral_reward_points: int = 10000
    referral_coupon_amount: int = 50000
    referral_reward_valid_months: int = 3
    reaper_enabled: bool = False
    reaper_interval_seconds: float = 60.0
    frontend_base_url: str = "http://localhost:3000"
    log_level: str = "INFO"
    mail: MailSettings = field(default_factory=MailSettings)


def load_settings() -> Settings:
    mail = MailSettings(
        enabled=_env_bool("MAIL_ENABLED", "false"),
        username=os.getenv("MAIL_USERNAME", ""),
        password=os.getenv("MAIL_PASSWORD", ""),
        mail_from=os.getenv("MAIL_FROM", "noreply@example.com"),
        from_name=os.getenv("MAIL_FROM_NAME", "Event Tickets"),
        server=os.getenv("MAIL_SERVER", "localhost"),
        port=int(os.getenv("MAIL_PORT", "465")),
        starttls=_env_bool("MAIL_STARTTLS", "false"),
        ssl_tls=_env_bool("MAIL_SSL_TLS", "true"),
        use_credentials=_env_bool("MAIL_USE_CREDENTIALS", "true"),
    )

    return Settings(
        payment_window=timedelta(hours=float(os.getenv("PAYMENT_WINDOW_HOURS", "2"))),
        confirmation_grace=timedelta(days=float(os.getenv("CONFIRMATION_GRACE_DAYS", "3"))),
        point_expiry_warning=timedelta(days=float(os.getenv("POINT_EXPIRY_WARNING_DAYS", "7"))),
        referral_reward_points=int(os.getenv("REFERRAL_REWARD_POINTS", "10000")),
        referral_coupon_amount=int(os.getenv("REFERRAL_COUPON_AMOUNT", "50000")),
        referral_reward_valid_months=int(os.getenv("REFERRAL_REWARD_VALID_MONTHS", "3")),
        reaper_enabled=_env_bool("REAPER_ENABLED", "false"),
        reaper_interval_seconds=float(os.getenv("REAPER_INTERVAL_SECONDS", "60")),
        frontend_base_url=os.getenv("FRONTEND_BASE_URL", "http://localhost:3000").rstrip("/"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        mail=mail,
    )
