import os
import re
from typing import Optional
from urllib.parse import quote

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")

# Remote file-listing API backing every layer's folder tree
FILES_API_BASE_URL = os.getenv("FILES_API_BASE_URL", "http://localhost:5000")
FILES_API_TIMEOUT = int(os.getenv("FILES_API_TIMEOUT_S", "20"))

# Drive folder holding the panoramic photo tree
PANORAMA_FOLDER_ID = os.getenv("PANORAMA_FOLDER_ID", "1tsbcsTEfg5RLHLJLYXR41avy9SrajsqM")
PANORAMA_STALE_TIME = float(os.getenv("PANORAMA_STALE_TIME_S", "300"))

SESSION_TTL = int(os.getenv("SESSION_TTL", "1800"))
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "256"))

_FILENAME_SANITIZE_PATTERN = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_export_filename(value: Optional[str], extension: str) -> Optional[str]:
    if not value:
        return None

    trimmed = value.strip()
    if not trimmed:
        return None

    if extension and trimmed.lower().endswith(extension.lower()):
        trimmed = trimmed[: -len(extension)]

    cleaned = _FILENAME_SANITIZE_PATTERN.sub("-", trimmed)
    cleaned = re.sub(r"-{2,}", "-", cleaned)
    cleaned = cleaned.strip("-_.")

    if not cleaned:
        return None

    return f"{cleaned[:100]}{extension}"


def build_content_disposition(filename: str) -> str:
    safe = filename.replace('"', "")
    return f'attachment; filename="{safe}"; filename*=UTF-8\'\'{quote(safe)}'
