import os
import time
from pathlib import Path

from pp_app.core.config import settings
from pp_app.core.signup_rules import InvalidSignup, random_code

ALLOWED_TYPES = {
    "application/pdf": "pdf",
    "image/png": "png",
    "image/jpeg": "jpg",
}


def check_certificate(content_type: str, size: int) -> str:
    """Return the file extension for an acceptable upload."""
    ext = ALLOWED_TYPES.get((content_type or "").lower())
    if ext is None:
        raise InvalidSignup("Certificate must be PDF, JPG, or PNG.")
    if size > settings.certificate_max_bytes:
        mb = settings.certificate_max_bytes // (1024 * 1024)
        raise InvalidSignup(f"Certificate too large (max {mb}MB).")
    return ext


def _write_atomic_bytes(path: Path, data: bytes) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def store_certificate(email: str, ext: str, data: bytes) -> str:
    """Write the upload under the certificate root; returns its relative path."""
    rel = f"{email}/{int(time.time() * 1000)}-{random_code(6)}.{ext}"
    target = Path(settings.certificate_dir) / rel
    target.parent.mkdir(parents=True, exist_ok=True)
    _write_atomic_bytes(target, data)
    return rel


def remove_certificate(rel: str) -> None:
    (Path(settings.certificate_dir) / rel).unlink(missing_ok=True)
