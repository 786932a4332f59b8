# Overview: Bearer session tokens; creation, validation and revocation.

"""
Session Token Management

Tokens are 32 random bytes (hex). Only the SHA-256 of a token is stored, so
a leaked database does not leak usable tokens. Sessions expire after
SESSION_HOURS and are revoked on logout.

MULTI-TENANT: a session captures business_id at login; every authenticated
request is scoped to it.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from storedesk.time_utils import utcnow


@dataclass
class SessionContext:
    user: User
    session: SessionToken
    business_id: int


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user: User) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token); only the hash is stored."""
    plaintext = generate_token()
    now = utcnow()
    hours = int(current_app.config.get("SESSION_HOURS", 24))

    session = SessionToken(
        user_id=user.id,
        business_id=user.business_id,
        token_hash=hash_token(plaintext),
        created_at=now,
        expires_at=now + timedelta(hours=hours),
        is_revoked=False,
        low_stock_notified=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext


def validate_session(token: str | None) -> SessionContext | None:
    """
    None when the token is unknown, expired or revoked, or when its user or
    business has been deactivated.
    """
    if not token:
        return None
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return None
    if session.expires_at < utcnow():
        return None

    user = session.user
    if user is None or not user.is_active:
        return None
    if user.business is None or not user.business.is_active:
        return None

    return SessionContext(user=user, session=session, business_id=session.business_id)


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return False
    session.is_revoked = True
    db.session.commit()
    return True


def cleanup_expired_sessions() -> int:
    """Delete expired or revoked sessions older than 30 days."""
    cutoff = utcnow() - timedelta(days=30)
    deleted = db.session.query(SessionToken).filter(
        db.or_(SessionToken.expires_at < utcnow(), SessionToken.is_revoked.is_(True)),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
