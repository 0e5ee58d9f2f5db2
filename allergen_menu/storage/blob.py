from __future__ import annotations

import threading
import time
from typing import Any

from .config import DEFAULT_STORAGE_CONFIG, StorageConfig

_blobs: dict[str, dict[str, Any]] = {}
_lock = threading.Lock()

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}


class LogoRejected(ValueError):
    pass


def upload(
    path: str,
    data: bytes,
    content_type: str,
    config: StorageConfig = DEFAULT_STORAGE_CONFIG,
) -> str:
    """Store ``data`` under ``path`` (overwriting) and return its public URL."""
    key = path.lstrip("/")
    with _lock:
        _blobs[key] = {"data": data, "content_type": content_type, "created_at": time.time()}
    return f"{config.public_base_url.rstrip('/')}/{key}"


def upload_logo(
    restaurant_id: str,
    data: bytes,
    content_type: str | None,
    config: StorageConfig = DEFAULT_STORAGE_CONFIG,
) -> str:
    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type not in config.logo_content_types:
        raise LogoRejected(f"Unsupported logo type {content_type or 'unknown'!r}")
    if not data:
        raise LogoRejected("Logo file is empty")
    if len(data) > config.max_logo_bytes:
        raise LogoRejected("Logo file is too large")
    path = f"logos/{restaurant_id}.{_EXTENSIONS[content_type]}"
    return upload(path, data, content_type, config)


def get_blob(path: str) -> dict[str, Any] | None:
    with _lock:
        return _blobs.get(path.lstrip("/"))


def clear_blobs() -> None:
    with _lock:
        _blobs.clear()
