from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger


ROOT = Path(__file__).resolve().parents[1]

# Load env from the project root, then the working directory; the first hit
# wins and real environment variables are never overridden.
for _env_path in (ROOT / ".env", Path.cwd() / ".env"):
    if _env_path.is_file():
        load_dotenv(dotenv_path=str(_env_path), override=False)
        break


@dataclass(frozen=True)
class Settings:
    data_path: Path
    responses_path: Path
    autoresponder_id: str = "mimi"
    delay_scale: float = 1.0
    log_level: str = "INFO"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"config_bad_value | {name}={raw!r} | using {default}")
        return default
    return max(0.0, value)


def load_settings() -> Settings:
    """Build settings from the environment.

    Env:
      - MESSENGER_DATA_PATH (default: data/messenger.json)
      - MESSENGER_RESPONSES_PATH (default: data/responses.json)
      - MESSENGER_AUTORESPONDER_ID (default: mimi)
      - MESSENGER_DELAY_SCALE (default: 1.0; 0 replies immediately)
      - MESSENGER_LOG_LEVEL (default: INFO)
    """
    return Settings(
        data_path=Path(os.getenv("MESSENGER_DATA_PATH") or ROOT / "data" / "messenger.json"),
        responses_path=Path(os.getenv("MESSENGER_RESPONSES_PATH") or ROOT / "data" / "responses.json"),
        autoresponder_id=os.getenv("MESSENGER_AUTORESPONDER_ID") or "mimi",
        delay_scale=_float_env("MESSENGER_DELAY_SCALE", 1.0),
        log_level=(os.getenv("MESSENGER_LOG_LEVEL") or "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
