import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

FOLDER_ID = "15_hvPJKeccpOVXPfFRJy8StFxdN9SVXK"
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
ALLOWED_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/heic",
)
CREDENTIALS_ENV = "GOOGLE_SERVICE_ACCOUNT_CREDENTIALS"

UPLOAD_TIMEOUT_SECONDS = 60.0
UPLOAD_CHUNK_SIZE = 4 * 256 * 1024  # resumable chunks must be multiples of 256 KiB
REQUEST_READ_SIZE = 64 * 1024
# One upload worker per request thread functions-framework serves (its gunicorn default)
UPLOAD_WORKERS = int(os.environ.get("THREADS", (os.cpu_count() or 1) * 4))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadSettings:
    """Everything the relay needs to know besides the request itself."""

    folder_id: str = FOLDER_ID
    max_file_size: int = MAX_FILE_SIZE
    allowed_types: tuple[str, ...] = ALLOWED_TYPES
    credentials_env: str = CREDENTIALS_ENV
    upload_timeout: float = UPLOAD_TIMEOUT_SECONDS
    chunk_size: int = UPLOAD_CHUNK_SIZE
    read_size: int = REQUEST_READ_SIZE
    upload_workers: int = UPLOAD_WORKERS
    clock: Callable[[], datetime] = field(default=utc_now, compare=False)

    def is_allowed(self, mime_type: str) -> bool:
        return mime_type.lower() in self.allowed_types


def load_service_account_info(env_name: str = CREDENTIALS_ENV) -> dict:
    """Read the service account key JSON from the environment.

    Raises:
        ConfigurationError: variable unset/empty, or not a JSON object.
    """
    raw = os.environ.get(env_name)
    if not raw:
        logger.error("Missing %s", env_name)
        raise ConfigurationError("Configuration error: missing credentials")

    try:
        info = json.loads(raw)
    except ValueError as e:
        logger.error("Failed to parse credentials JSON: %s", e)
        raise ConfigurationError("Configuration error: invalid credentials format") from e

    if not isinstance(info, dict):
        logger.error("Credentials JSON is a %s, expected an object", type(info).__name__)
        raise ConfigurationError("Configuration error: invalid credentials format")

    # Keys pasted into env vars often keep their newlines escaped
    private_key = info.get("private_key")
    if isinstance(private_key, str) and "\\n" in private_key:
        info["private_key"] = private_key.replace("\\n", "\n")

    return info


def configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("google.auth").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
