# Overview: Service-layer operations for session tokens; issue, validate and revoke bearer sessions.

"""
Session Token Management

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout from SESSION_LIFETIME_HOURS
- Revocable on logout, secret reset or account deactivation
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Account, SessionToken
from ..time_utils import utcnow


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(
    account_id: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for an account.

    Returns (session_record, plaintext_token); the database keeps only the hash.
    """
    plaintext_token = generate_token()
    now = utcnow()
    lifetime = timedelta(hours=current_app.config.get("SESSION_LIFETIME_HOURS", 24))

    session = SessionToken(
        account_id=account_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + lifetime,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str | None) -> Account | None:
    """
    Return the active Account behind a token, or None.

    Sessions of deactivated accounts are revoked on sight.
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    if session.expires_at < now:
        return None

    account = session.account
    if not account or not account.is_active:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = "Account deactivated"
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return account


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Returns True if an active session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
    return True


def revoke_all_account_sessions(account_id: str, reason: str = "Revoke all sessions") -> int:
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(
        account_id=account_id,
        is_revoked=False,
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)
