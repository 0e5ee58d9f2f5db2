from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class StorageConfig:
    public_base_url: str = os.getenv("BLOB_PUBLIC_BASE_URL", "http://localhost:8000/blobs")
    max_logo_bytes: int = 2 * 1024 * 1024
    logo_content_types: tuple[str, ...] = (
        "image/png",
        "image/jpeg",
        "image/webp",
        "image/svg+xml",
    )


DEFAULT_STORAGE_CONFIG = StorageConfig()
