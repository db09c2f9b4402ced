from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [PID:%(process)d] - %(message)s"


@dataclass(frozen=True)
class Settings:
    db_path: Path
    client_db_path: Path
    api_host: str
    api_port: int
    api_base_url: str
    signing_secret: Optional[str]
    bot_token: str
    timezone: str
    log_level: str

    def require_bot_token(self) -> str:
        if not self.bot_token:
            raise RuntimeError("BOT_TOKEN missing in .env")
        return self.bot_token


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def load_settings() -> Settings:
    # .env is looked up from the working directory upwards
    load_dotenv(find_dotenv(usecwd=True))

    api_host = os.getenv("API_HOST", "127.0.0.1").strip()
    api_port = _env_int("API_PORT", 8000)
    if not 0 < api_port < 65536:
        raise RuntimeError("API_PORT out of range")

    secret = os.getenv("WORKFLOW_SIGNING_SECRET", "").strip()

    # paths stay relative here; entry points resolve them
    return Settings(
        db_path=Path(os.getenv("DB_PATH", "data/todos.db").strip()),
        client_db_path=Path(os.getenv("CLIENT_DB_PATH", "data/client.db").strip()),
        api_host=api_host,
        api_port=api_port,
        api_base_url=os.getenv("API_BASE_URL", f"http://{api_host}:{api_port}").strip().rstrip("/"),
        signing_secret=secret or None,
        bot_token=os.getenv("BOT_TOKEN", "").strip(),
        timezone=os.getenv("TZ", "UTC").strip() or "UTC",
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )


def resolve_path(path: Path, root: Optional[Path] = None) -> Path:
    """Absolute path for a data file (relative paths hang off the repo root); makes the parent dir."""
    if not path.is_absolute():
        path = (root or Path(__file__).resolve().parents[1]) / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
