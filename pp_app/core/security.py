from __future__ import annotations
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext

from pp_app.core.config import settings

pwd = CryptContext(schemes=["argon2"], deprecated="auto")
ALGO = "HS256"
QUEUE_SCOPE = "queue"

bearer = HTTPBearer(auto_error=False)


def hash_code(code: str) -> str:
    return pwd.hash(code)


def verify_code(code: str, code_hash: str) -> bool:
    return pwd.verify(code, code_hash)


def admin_secret_matches(provided: Optional[str]) -> bool:
    expected = settings.admin_secret
    if not expected:
        # dev convenience: admin routes are open until a secret is configured
        return not settings.is_production
    given = (provided or "").strip()
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


async def require_admin(x_admin_secret: Optional[str] = Header(None)) -> None:
    if not admin_secret_matches(x_admin_secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


def create_queue_token(email: str) -> str:
    exp = datetime.now(tz=timezone.utc) + timedelta(minutes=settings.queue_token_minutes)
    payload = {"sub": email, "scope": QUEUE_SCOPE, "exp": exp}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)


async def get_queue_email(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> str:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization token")
    try:
        payload = jwt.decode(creds.credentials, settings.jwt_secret, algorithms=[ALGO])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    email = str(payload.get("sub") or "").strip().lower()
    if not email or payload.get("scope") != QUEUE_SCOPE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    return email
