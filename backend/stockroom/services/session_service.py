# Overview: Operator session lifecycle; issue, validate, revoke and clean up session tokens.

"""
Session Token Management Service

Operator sessions are issued, expire and can be revoked.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS, default 24)
- Idle timeout (SESSION_IDLE_TIMEOUT_HOURS, default 2)
- Revocable on logout
"""

import hashlib
import logging
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import AdminSession
from stockroom.time_utils import utcnow


logger = logging.getLogger(__name__)

# Expired or revoked sessions older than this are deleted by cleanup
SESSION_RETENTION = timedelta(days=30)


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 hex digest; only this is stored."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    username: str,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[AdminSession, str]:
    """
    Issue a new session.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = AdminSession(
        username=username,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()
    logger.info("Issued session %s for %s", session.id, username)

    return session, plaintext_token


def _revoke(session: AdminSession, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(token: str) -> AdminSession | None:
    """
    Return the live session for token, or None if it is unknown, revoked,
    past its absolute expiry or idle for too long.

    Updates last_used_at on success.
    """
    now = utcnow()

    session = db.session.query(AdminSession).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    # Check absolute timeout
    if session.expires_at < now:
        _revoke(session, "Expired")
        db.session.commit()
        return None

    # Check idle timeout
    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return session


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns True if session was revoked, False if not found."""
    session = db.session.query(AdminSession).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    db.session.commit()
    logger.info("Revoked session %s (%s)", session.id, reason)
    return True


def revoke_all_sessions(reason: str = "Revoke all sessions") -> int:
    """Force re-login everywhere, e.g. after a credential change."""
    sessions = db.session.query(AdminSession).filter_by(is_revoked=False).all()
    for session in sessions:
        _revoke(session, reason)
    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions() -> int:
    """
    Delete expired and revoked sessions older than SESSION_RETENTION.

    Returns count of sessions deleted.
    """
    now = utcnow()
    cutoff = now - SESSION_RETENTION

    deleted = db.session.query(AdminSession).filter(
        db.or_(
            AdminSession.expires_at < now,
            AdminSession.is_revoked.is_(True)
        ),
        AdminSession.created_at < cutoff
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted
