from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv


_TRUTHY = {"1", "true", "yes", "on"}


def _require_env(name: str) -> str:
    value = (os.environ.get(name) or "").strip()
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in _TRUTHY


@dataclass(frozen=True)
class Settings:
    db_url: str
    host: str = "0.0.0.0"
    port: int = 4000
    cors_allow_origins: list[str] = field(default_factory=lambda: ["*"])
    create_schema: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            db_url=_require_env("GAME_RENTAL_DB_URL"),
            host=(os.environ.get("GAME_RENTAL_HOST") or "0.0.0.0").strip(),
            port=int(os.environ.get("GAME_RENTAL_PORT") or "4000"),
            cors_allow_origins=_parse_csv_env("CORS_ALLOW_ORIGINS", "*"),
            create_schema=_parse_bool_env("GAME_RENTAL_CREATE_SCHEMA", True),
            log_level=(os.environ.get("LOG_LEVEL") or "INFO").strip().upper(),
        )
