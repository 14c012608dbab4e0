import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")


@dataclass
class RelaySettings:
    host: str
    port: int
    static_dir: str
    cors_origins: list[str]
    queue_maxsize: int
    log_level: str


def _split_origins(raw: str | None) -> list[str]:
    if not raw:
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


def load_settings() -> RelaySettings:
    """Read relay settings from the environment."""

    return RelaySettings(
        host=os.getenv("RELAY_HOST", "127.0.0.1"),
        port=int(os.getenv("RELAY_PORT", "3030")),
        static_dir=os.getenv("RELAY_STATIC_DIR", "public"),
        cors_origins=_split_origins(os.getenv("CORS_ORIGINS")),
        queue_maxsize=max(0, int(os.getenv("RELAY_QUEUE_MAXSIZE", "0"))),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
