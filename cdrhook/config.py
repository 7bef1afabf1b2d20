# =====================================================================
# Configuration and Setup
# =====================================================================

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

# Third-party dependencies
from dotenv import load_dotenv

from cdrhook.errors import CdrHookError


BASE_DIR = Path(__file__).resolve().parent

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("cdrhook")


class ConfigurationError(CdrHookError):
    """Raised when the environment holds a missing or malformed setting."""


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings for the forwarder.

    Built from environment variables by load_settings(); tests construct
    it directly.
    """

    webhook_url: str
    webhook_headers: Dict[str, str] = field(default_factory=dict)

    # FreeSWITCH connection settings
    freeswitch_host: str = "127.0.0.1"
    freeswitch_port: int = 8021
    freeswitch_password: str = "ClueCon"

    # Recordings and field cleanup
    recordings_dir: Path = Path("/var/lib/freeswitch/recordings")
    tech_prefix: str = ""
    phone_region: str = "US"
    ffmpeg_path: str = "ffmpeg"

    # Timing and retry policy
    min_call_duration: int = 2
    recording_grace_period: float = 2.0
    reconnect_delay: float = 5.0
    delivery_retries: int = 20
    delivery_retry_max_wait: float = 60.0


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _get_headers(name: str) -> Dict[str, str]:
    raw = os.getenv(name)
    if not raw:
        return {}
    try:
        headers = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{name} is not valid JSON: {e}")
    if not isinstance(headers, dict):
        raise ConfigurationError(f"{name} must be a JSON object")
    return {str(k): str(v) for k, v in headers.items()}


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a .env file and the process environment.

    Variables already present in the environment win over the file.
    """
    load_dotenv(env_file or f"{BASE_DIR}/.env")

    webhook_url = os.getenv("WEBHOOK_URL")
    if not webhook_url:
        raise ConfigurationError("WEBHOOK_URL is required")

    return Settings(
        webhook_url=webhook_url,
        webhook_headers=_get_headers("WEBHOOK_HEADERS"),
        freeswitch_host=os.getenv("FREESWITCH_HOST", "127.0.0.1"),
        freeswitch_port=_get_int("FREESWITCH_PORT", 8021),
        freeswitch_password=os.getenv("FREESWITCH_PASSWORD", "ClueCon"),
        recordings_dir=Path(
            os.getenv("RECORDINGS_DIR", "/var/lib/freeswitch/recordings")
        ),
        tech_prefix=os.getenv("TECH_PREFIX", ""),
        phone_region=os.getenv("PHONE_REGION", "US"),
        ffmpeg_path=os.getenv("FFMPEG_PATH", "ffmpeg"),
        min_call_duration=_get_int("MIN_CALL_DURATION", 2),
        recording_grace_period=_get_float("RECORDING_GRACE_PERIOD", 2.0),
        reconnect_delay=_get_float("RECONNECT_DELAY", 5.0),
        delivery_retries=_get_int("DELIVERY_RETRIES", 20),
        delivery_retry_max_wait=_get_float("DELIVERY_RETRY_MAX_WAIT", 60.0),
    )
