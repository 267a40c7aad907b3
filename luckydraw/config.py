"""Runtime configuration loaded from the environment (and an optional ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .db.utils import resolve_sqlite_url

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./lottery.db"
DEFAULT_FALLBACK_PRIZE_TEXT = "Congratulations, you won!"
DEFAULT_TELEGRAM_API_BASE = "https://api.telegram.org"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"Environment variable '{name}' must be a boolean, got {raw!r}")


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Environment variable '{name}' must be an integer, got {raw!r}"
        ) from None
    if value < minimum:
        raise ValueError(f"Environment variable '{name}' must be >= {minimum}")
    return value


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(
            f"Environment variable '{name}' must be a number, got {raw!r}"
        ) from None
    if value < 0:
        raise ValueError(f"Environment variable '{name}' must be >= 0")
    return value


@dataclass(frozen=True)
class Settings:
    """Engine settings.

    Attributes
    ----------
    db_url : str
        SQLAlchemy database URL. Relative SQLite paths are resolved against
        the project root.
    db_echo : bool
        Echo SQL statements (development only).
    db_busy_timeout : int
        Seconds a SQLite connection waits for a competing writer.
    default_warehouse : str
        Prize warehouse bound to lotteries created without one.
    claim_timeout : int
        Default claim window in seconds for new lotteries.
    fallback_prize_text : str
        Prize text assigned when the warehouse has no stock left.
    send_interval : float
        Pause in seconds between automatic prize notifications.
    eligibility_fail_closed : bool
        Treat every resolver error as "ineligible" instead of only the bot and
        channel checks.
    telegram_bot_token : Optional[str]
        Bot API token used by :mod:`luckydraw.telegram.api`.
    telegram_api_base : str
        Bot API base URL.
    telegram_timeout : int
        Request timeout in seconds for Bot API calls.
    """

    db_url: str = DEFAULT_DB_URL
    db_echo: bool = False
    db_busy_timeout: int = 30
    default_warehouse: str = "default"
    claim_timeout: int = 86400
    fallback_prize_text: str = DEFAULT_FALLBACK_PRIZE_TEXT
    send_interval: float = 1.0
    eligibility_fail_closed: bool = False
    telegram_bot_token: Optional[str] = None
    telegram_api_base: str = DEFAULT_TELEGRAM_API_BASE
    telegram_timeout: int = 30

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, *, dotenv: bool = True
    ) -> "Settings":
        """Build settings from ``env`` (defaults to ``os.environ``).

        When ``dotenv`` is true a ``.env`` file is loaded first; variables that
        are already set take precedence over the file.
        """
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        return cls(
            db_url=resolve_sqlite_url(env.get("DB_URL") or DEFAULT_DB_URL, ROOT_DIR),
            db_echo=_get_bool(env, "DB_ECHO", False),
            db_busy_timeout=_get_int(env, "DB_BUSY_TIMEOUT", 30),
            default_warehouse=env.get("LOTTERY_DEFAULT_WAREHOUSE") or "default",
            claim_timeout=_get_int(env, "LOTTERY_CLAIM_TIMEOUT", 86400, minimum=1),
            fallback_prize_text=(
                env.get("LOTTERY_FALLBACK_PRIZE_TEXT") or DEFAULT_FALLBACK_PRIZE_TEXT
            ),
            send_interval=_get_float(env, "LOTTERY_SEND_INTERVAL", 1.0),
            eligibility_fail_closed=_get_bool(
                env, "LOTTERY_ELIGIBILITY_FAIL_CLOSED", False
            ),
            telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN") or None,
            telegram_api_base=(
                env.get("TELEGRAM_API_BASE") or DEFAULT_TELEGRAM_API_BASE
            ).rstrip("/"),
            telegram_timeout=_get_int(env, "TELEGRAM_TIMEOUT", 30, minimum=1),
        )


__all__ = ["Settings", "ROOT_DIR", "DEFAULT_DB_URL", "DEFAULT_FALLBACK_PRIZE_TEXT"]
