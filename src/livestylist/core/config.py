"""
LiveStylist Configuration — single source of truth for all settings.

Reads from environment variables with sensible defaults.
No config files, no YAML. Just env vars (optionally from a .env file).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class SessionConfig:
    """Session timing and daily quota knobs."""

    duration_seconds: int = 300
    warning_seconds: int = 270
    free_sessions_per_day: int = 1
    premium_sessions_per_day: int = 5
    memory_context_limit: int = 3

    def __post_init__(self) -> None:
        if self.warning_seconds >= self.duration_seconds:
            raise ValueError(
                f"warning_seconds ({self.warning_seconds}) must be less than "
                f"duration_seconds ({self.duration_seconds})"
            )

    @property
    def seconds_after_warning(self) -> int:
        return self.duration_seconds - self.warning_seconds

    def daily_limit(self, tier: str) -> int:
        if tier == "premium":
            return self.premium_sessions_per_day
        return self.free_sessions_per_day

    @classmethod
    def from_env(cls) -> SessionConfig:
        return cls(
            duration_seconds=int(os.getenv("SESSION_DURATION_SECONDS", "300")),
            warning_seconds=int(os.getenv("SESSION_WARNING_SECONDS", "270")),
            free_sessions_per_day=int(os.getenv("FREE_SESSIONS_PER_DAY", "1")),
            premium_sessions_per_day=int(os.getenv("PREMIUM_SESSIONS_PER_DAY", "5")),
            memory_context_limit=int(
                os.getenv("LIVESTYLIST_MEMORY_CONTEXT_LIMIT", "3")
            ),
        )


@dataclass(frozen=True)
class RelayConfig:
    """Per-connection relay gating."""

    vision_cooldown_seconds: float = 10.0
    preview_cooldown_seconds: float = 5.0
    # Upper bound on a single vision or preview call; keeps the
    # in-progress flags from sticking on a hung upstream request.
    side_effect_timeout_seconds: float = 45.0
    min_style_description_length: int = 10
    input_sample_rate: int = 16000

    @classmethod
    def from_env(cls) -> RelayConfig:
        return cls(
            vision_cooldown_seconds=float(
                os.getenv("LIVESTYLIST_VISION_COOLDOWN", "10.0")
            ),
            preview_cooldown_seconds=float(
                os.getenv("LIVESTYLIST_PREVIEW_COOLDOWN", "5.0")
            ),
            side_effect_timeout_seconds=float(
                os.getenv("LIVESTYLIST_SIDE_EFFECT_TIMEOUT", "45.0")
            ),
            min_style_description_length=int(
                os.getenv("LIVESTYLIST_MIN_STYLE_DESCRIPTION", "10")
            ),
            input_sample_rate=int(os.getenv("LIVESTYLIST_INPUT_SAMPLE_RATE", "16000")),
        )


@dataclass(frozen=True)
class GeminiConfig:
    """Gemini model settings (live, vision, image and summary calls)."""

    api_key: str = ""
    live_model: str = "gemini-2.5-flash-native-audio-latest"
    vision_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    summary_model: str = "gemini-2.0-flash"
    voice_name: str = "Aoede"

    @classmethod
    def from_env(cls) -> GeminiConfig:
        return cls(
            api_key=os.getenv("GEMINI_API_KEY", ""),
            live_model=os.getenv(
                "GEMINI_MODEL", "gemini-2.5-flash-native-audio-latest"
            ),
            vision_model=os.getenv("GEMINI_VISION_MODEL", "gemini-2.5-flash"),
            image_model=os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image"),
            summary_model=os.getenv("GEMINI_SUMMARY_MODEL", "gemini-2.0-flash"),
            voice_name=os.getenv("GEMINI_VOICE", "Aoede"),
        )


@dataclass(frozen=True)
class EntitlementConfig:
    """RevenueCat entitlement lookup."""

    api_key: str = ""
    base_url: str = "https://api.revenuecat.com/v1"
    entitlement_id: str = "premium"
    timeout: float = 5.0

    @classmethod
    def from_env(cls) -> EntitlementConfig:
        return cls(
            api_key=os.getenv("REVENUECAT_API_KEY", ""),
            base_url=os.getenv(
                "REVENUECAT_BASE_URL", "https://api.revenuecat.com/v1"
            ),
            entitlement_id=os.getenv("REVENUECAT_ENTITLEMENT_ID", "premium"),
            timeout=float(os.getenv("REVENUECAT_TIMEOUT", "5.0")),
        )


@dataclass(frozen=True)
class StoreConfig:
    """SQLite store for users, session records and session memories."""

    db_path: str = "livestylist.db"

    @classmethod
    def from_env(cls) -> StoreConfig:
        return cls(db_path=os.getenv("LIVESTYLIST_DB_PATH", "livestylist.db"))


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-device request limits, in `limits` notation ("30/minute")."""

    enabled: bool = True
    general: str = "30/minute"
    session_start: str = "10/hour"

    @classmethod
    def from_env(cls) -> RateLimitConfig:
        return cls(
            enabled=os.getenv("LIVESTYLIST_RATE_LIMIT_ENABLED", "true").lower() != "false",
            general=os.getenv("LIVESTYLIST_RATE_LIMIT", "30/minute"),
            session_start=os.getenv("LIVESTYLIST_SESSION_START_RATE_LIMIT", "10/hour"),
        )


@dataclass(frozen=True)
class ServerConfig:
    """Server settings."""

    host: str = "0.0.0.0"
    port: int = 8080
    ws_send_timeout: float = 5.0
    public_ws_url: str = "ws://localhost:8080/ws/live"

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            host=os.getenv("LIVESTYLIST_HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8080")),
            ws_send_timeout=float(os.getenv("LIVESTYLIST_WS_SEND_TIMEOUT", "5.0")),
            public_ws_url=os.getenv(
                "LIVESTYLIST_PUBLIC_WS_URL", "ws://localhost:8080/ws/live"
            ),
        )


@dataclass(frozen=True)
class StylistConfig:
    """Root configuration."""

    session: SessionConfig = field(default_factory=SessionConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    entitlements: EntitlementConfig = field(default_factory=EntitlementConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    @classmethod
    def from_env(cls) -> StylistConfig:
        return cls(
            session=SessionConfig.from_env(),
            relay=RelayConfig.from_env(),
            gemini=GeminiConfig.from_env(),
            entitlements=EntitlementConfig.from_env(),
            store=StoreConfig.from_env(),
            server=ServerConfig.from_env(),
            rate_limit=RateLimitConfig.from_env(),
        )


# Singleton — import this wherever you need config
config = StylistConfig.from_env()
