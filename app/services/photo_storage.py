"""
Local filesystem storage for uploaded job photos.
Keys look like "verification-photos/<company_id>/<file_name>" and live under PHOTO_STORAGE_DIR.
"""
import logging
from pathlib import Path

from app.core.config import get_settings

logger = logging.getLogger(__name__)


def _path(key: str) -> Path:
    clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
    return Path(get_settings().photo_storage_dir) / clean_key


def save(key: str, data: bytes) -> None:
    path = _path(key)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)


def exists(key: str) -> bool:
    return _path(key).exists()


def read(key: str) -> bytes:
    with open(_path(key), "rb") as f:
        return f.read()


def delete(key: str) -> None:
    path = _path(key)
    try:
        if path.exists():
            path.unlink()
    except OSError:
        logger.warning("Could not delete stored photo", extra={"storage_key": key}, exc_info=True)
