from __future__ import annotations

import datetime as dt
import hashlib
import hmac
import logging
import secrets
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from .config import settings
from .models import AccessToken

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[dt.datetime]) -> Optional[dt.datetime]:
    """SQLite hands timestamps back naive; they are stored as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=dt.timezone.utc)


def hash_token(value: str) -> str:
    return hmac.new(settings.token_secret.encode(), value.encode(), hashlib.sha256).hexdigest()


def check_password(password: str) -> bool:
    """Compare against the single shared dashboard password."""
    return hmac.compare_digest(password.encode(), settings.access_password.encode())


def create_token(db: Session, ttl_minutes: Optional[int] = None) -> Tuple[AccessToken, str]:
    """Issue a bearer token; a ttl of 0 means the token never expires."""
    value = secrets.token_urlsafe(32)
    ttl = settings.token_ttl_minutes if ttl_minutes is None else ttl_minutes
    issued = dt.datetime.now(dt.timezone.utc)
    token = AccessToken(
        token_hash=hash_token(value),
        expires_at=issued + dt.timedelta(minutes=ttl) if ttl else None,
    )
    db.add(token)
    db.commit()
    db.refresh(token)
    logger.info("Issued dashboard access token %s", token.id)
    return token, value


def verify_token(db: Session, value: str) -> Optional[AccessToken]:
    token = db.query(AccessToken).filter_by(token_hash=hash_token(value)).one_or_none()
    if token is None or token.revoked:
        return None
    now = dt.datetime.now(dt.timezone.utc)
    expires_at = _as_utc(token.expires_at)
    if expires_at is not None and expires_at <= now:
        logger.info("Rejected expired access token %s", token.id)
        return None
    token.last_used_at = now
    db.commit()
    return token


def revoke_token(db: Session, token: AccessToken) -> None:
    token.revoked = True
    db.commit()
    logger.info("Revoked access token %s", token.id)
