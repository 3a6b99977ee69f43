import logging
import os
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from constructpm.core.config import settings

logger = logging.getLogger(__name__)


def _safe_name(filename: str) -> str:
    name = Path(filename or "file").name
    return "".join(ch if ch.isalnum() or ch in "._-" else "_" for ch in name) or "file"


def save_upload(content: bytes, filename: str, folder: str) -> str:
    """
    Store an uploaded file under UPLOAD_DIR/<folder>/<yyyy>/<mm>/ and return
    its public path, e.g. /static/uploads/documents/2024/05/ab12_permit.pdf
    """
    now = datetime.now()
    relative = Path(folder) / str(now.year) / f"{now.month:02d}"
    target_dir = Path(settings.UPLOAD_DIR) / relative
    target_dir.mkdir(parents=True, exist_ok=True)

    stored_name = f"{uuid.uuid4().hex[:12]}_{_safe_name(filename)}"
    (target_dir / stored_name).write_bytes(content)
    return f"{settings.UPLOAD_URL_PREFIX}/{relative.as_posix()}/{stored_name}"


def resolve_path(public_path: str) -> Optional[Path]:
    prefix = settings.UPLOAD_URL_PREFIX.rstrip("/") + "/"
    if not public_path or not public_path.startswith(prefix):
        return None
    return Path(settings.UPLOAD_DIR) / public_path[len(prefix):]


def delete_upload(public_path: str) -> bool:
    """Remove a stored file. Failures are logged, never raised."""
    path = resolve_path(public_path)
    if path is None:
        return False
    try:
        os.remove(path)
        return True
    except OSError as e:
        logger.warning("Could not delete stored file %s: %s", path, e)
        return False
