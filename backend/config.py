"""
Configuration management for the Grocito delivery policy service.

Loads settings from .env via pydantic-settings.

Every delivery-fee, earnings and cancellation constant is a setting so the
customer app, the partner portal and the order flow all read one value.
Defaults mirror domain/constants.py.
"""
import logging
from decimal import Decimal
from typing import List, Tuple

from pydantic_settings import BaseSettings, SettingsConfigDict

from domain import constants

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Delivery Fee Policy ─────────────────────────────────────────
    free_delivery_threshold: Decimal = constants.FREE_DELIVERY_THRESHOLD
    delivery_fee: Decimal = constants.DELIVERY_FEE

    # ── Partner Earnings ────────────────────────────────────────────
    partner_earnings_free: Decimal = constants.PARTNER_EARNINGS_FREE
    partner_earnings_paid: Decimal = constants.PARTNER_EARNINGS_PAID

    # ── Bonuses ─────────────────────────────────────────────────────
    peak_hour_bonus: Decimal = constants.PEAK_HOUR_BONUS
    weekend_bonus: Decimal = constants.WEEKEND_BONUS
    daily_target_bonus: Decimal = constants.DAILY_TARGET_BONUS
    daily_target_threshold: int = constants.DAILY_TARGET_THRESHOLD
    peak_hours: str = constants.PEAK_HOURS          # "start-end,start-end" (end exclusive)
    local_timezone: str = constants.LOCAL_TIMEZONE
    bonus_time_basis: str = "delivery"              # "delivery" or "observation"

    # ── Cancellation ────────────────────────────────────────────────
    cancellation_window_ms: int = constants.CANCELLATION_WINDOW_MS

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/grocito.db"
    cart_backend: str = "sql"                       # "sql" or "memory"

    # ── Payments (Razorpay) ─────────────────────────────────────────
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_api_url: str = "https://api.razorpay.com/v1"
    payment_currency: str = "INR"
    payment_timeout_seconds: float = 300.0

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    simulation_mode: bool = True  # Simulated gateway instead of Razorpay

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:3001,http://127.0.0.1:3001"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def peak_hour_windows(self) -> Tuple[Tuple[int, int], ...]:
        """Parse PEAK_HOURS ("7-10,18-21") into (start, end) hour pairs."""
        return parse_peak_hours(self.peak_hours)

    def validate_policy_settings(self):
        """
        Reject policy values that would produce nonsensical fees or payouts.

        Called during app startup, before validate_production_settings().
        """
        money = {
            "FREE_DELIVERY_THRESHOLD": self.free_delivery_threshold,
            "DELIVERY_FEE": self.delivery_fee,
            "PARTNER_EARNINGS_FREE": self.partner_earnings_free,
            "PARTNER_EARNINGS_PAID": self.partner_earnings_paid,
            "PEAK_HOUR_BONUS": self.peak_hour_bonus,
            "WEEKEND_BONUS": self.weekend_bonus,
            "DAILY_TARGET_BONUS": self.daily_target_bonus,
        }
        for name, value in money.items():
            if value < 0:
                raise ValueError(f"{name} must not be negative (got {value})")
        if self.daily_target_threshold < 1:
            raise ValueError("DAILY_TARGET_THRESHOLD must be at least 1")
        if self.cancellation_window_ms < 0:
            raise ValueError("CANCELLATION_WINDOW_MS must not be negative")
        if self.bonus_time_basis not in ("delivery", "observation"):
            raise ValueError(
                f"BONUS_TIME_BASIS must be 'delivery' or 'observation' "
                f"(got {self.bonus_time_basis!r})"
            )
        if self.cart_backend not in ("sql", "memory"):
            raise ValueError(f"CART_BACKEND must be 'sql' or 'memory' (got {self.cart_backend!r})")
        # Raises ValueError on malformed windows
        self.peak_hour_windows

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Blocks the simulated payment gateway and a missing Razorpay secret
        in production. Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if self.simulation_mode:
                raise ValueError(
                    "SIMULATION_MODE must be false in production. "
                    "The simulated gateway marks every payment as captured."
                )
            if not self.razorpay_key_id or not self.razorpay_key_secret:
                raise ValueError(
                    "RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET must be set in production. "
                    "The secret is used to verify payment signatures."
                )
            if self.cart_backend == "memory":
                raise ValueError("CART_BACKEND=memory is for offline demos only")
            logger.info("Production settings validated")
        else:
            warnings = []
            if self.simulation_mode:
                warnings.append("SIMULATION_MODE=true (payments are simulated)")
            if self.cart_backend == "memory":
                warnings.append("CART_BACKEND=memory (carts are lost on restart)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


def parse_peak_hours(raw: str) -> Tuple[Tuple[int, int], ...]:
    """
    Parse "7-10,18-21" into ((7, 10), (18, 21)).

    Each window is half-open: the start hour is included, the end hour is not.
    """
    windows = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            start_s, end_s = part.split("-")
            start, end = int(start_s), int(end_s)
        except ValueError:
            raise ValueError(f"Invalid peak hour window: {part!r} (expected 'start-end')")
        if not (0 <= start < end <= 24):
            raise ValueError(f"Invalid peak hour window: {part!r} (need 0 <= start < end <= 24)")
        windows.append((start, end))
    if not windows:
        raise ValueError("PEAK_HOURS must define at least one window")
    return tuple(windows)


# Global settings instance
settings = Settings()
