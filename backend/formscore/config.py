import os
from dataclasses import dataclass, field

DEFAULT_EVENT_ID_DENYLIST = (
    "00000000-0000-0000-0000-000000000000",
    "825717f4-7d11-48b5-85bc-61caec00ad3a",
    "22b36496-a025-4845-89a8-9001c4bcccd6",
    "b5c6412d-f8a3-4d2e-9c1a-8b7f6e5d4c3b",
)


def _env_flag(name: str, default: str) -> bool:
    value = os.getenv(name, default).strip().lower()
    return value in {"1", "true", "yes", "on"}


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str | None = None
    cors_origins: tuple[str, ...] = ("http://localhost:5173", "http://127.0.0.1:5173")
    auto_seed_on_empty: bool = False
    log_level: str = "INFO"

    event_retry_max_attempts: int = 5
    event_retry_initial_delay_ms: int = 100
    event_retry_backoff: float = 2.0
    event_use_upsert: bool = True
    event_id_denylist: tuple[str, ...] = field(default=DEFAULT_EVENT_ID_DENYLIST)


def load_settings() -> Settings:
    cors_origins = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    )

    return Settings(
        database_url=os.getenv("DATABASE_URL"),
        cors_origins=tuple(origin.strip() for origin in cors_origins.split(",") if origin.strip()),
        auto_seed_on_empty=_env_flag("AUTO_SEED_ON_EMPTY", "false"),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        event_retry_max_attempts=max(1, int(os.getenv("EVENT_RETRY_MAX_ATTEMPTS", "5"))),
        event_retry_initial_delay_ms=max(0, int(os.getenv("EVENT_RETRY_INITIAL_DELAY_MS", "100"))),
        event_retry_backoff=max(1.0, float(os.getenv("EVENT_RETRY_BACKOFF", "2.0"))),
        event_use_upsert=_env_flag("EVENT_USE_UPSERT", "true"),
        event_id_denylist=_env_list("EVENT_ID_DENYLIST", DEFAULT_EVENT_ID_DENYLIST),
    )


settings = load_settings()
