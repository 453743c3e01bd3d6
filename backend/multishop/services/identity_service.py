# Overview: Identity provider; accounts, authentication, secret reset and principal-change listeners.

"""
Identity Provider

Accounts hold credentials only. The principal a caller acts as is built
from the account plus its user record (same id), which carries the role
and the shop binding.

SECURITY NOTES:
- Secrets hashed with bcrypt (rounds from BCRYPT_ROUNDS)
- Session tokens managed separately (see session_service.py)
- Reset challenges are single-use and stored hashed
- Unknown emails never reveal themselves: reset requests for them are
  silent no-ops

Listeners registered with subscribe() are called with ("login", principal)
and ("logout", principal). A failing listener is logged and skipped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

import bcrypt
from flask import current_app

from ..errors import IdentityMismatch, Unauthenticated, ValidationFailure
from ..extensions import PRINCIPAL_LISTENERS_KEY, db
from ..models import Account, ResetChallenge, User
from ..models.auth import ROLE_ADMIN
from ..time_utils import utcnow
from . import session_service

MIN_SECRET_LENGTH = 8

PrincipalListener = Callable[[str, "Principal"], None]


@dataclass(frozen=True)
class Principal:
    id: str
    email: str
    role: str
    shop_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "shop_id": self.shop_id,
        }


def normalize_email(email) -> str:
    if not isinstance(email, str) or "@" not in email:
        raise ValidationFailure("A valid email is required", field="email")
    return email.strip().lower()


def hash_secret(secret: str) -> str:
    if not isinstance(secret, str) or len(secret) < MIN_SECRET_LENGTH:
        raise ValidationFailure(
            f"Password must be at least {MIN_SECRET_LENGTH} characters long",
            field="password",
        )
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_secret(secret: str, secret_hash: str) -> bool:
    if not isinstance(secret, str) or not secret_hash:
        return False
    try:
        return bcrypt.checkpw(secret.encode("utf-8"), secret_hash.encode("utf-8"))
    except ValueError:
        return False


def create_account(email: str, secret: str) -> str:
    """Register credentials and return the new principal id."""
    email = normalize_email(email)
    if db.session.query(Account).filter_by(email=email).first():
        raise ValidationFailure("An account with this email already exists", field="email")

    account = Account(email=email, password_hash=hash_secret(secret), is_active=True)
    db.session.add(account)
    db.session.commit()
    current_app.logger.info("Created account %s", account.id)
    return account.id


def deactivate_account(account_id: str) -> int:
    """Disable sign-in for an account and revoke its sessions. Returns sessions revoked."""
    account = db.session.get(Account, account_id)
    if account is None:
        return 0
    account.is_active = False
    db.session.commit()
    return session_service.revoke_all_account_sessions(account_id, reason="Account deactivated")


def principal_for_account(account: Account) -> Principal:
    user = db.session.get(User, account.id)
    if user is None:
        raise IdentityMismatch("Account has no user profile", {"account_id": account.id})
    return Principal(id=account.id, email=account.email, role=user.role, shop_id=user.shop_id)


def authenticate(
    email: str,
    secret: str,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[Principal, str]:
    """
    Verify credentials and open a session.

    Returns (principal, plaintext_token). Emits a "login" event.
    """
    if not isinstance(email, str) or not email.strip():
        raise Unauthenticated("Invalid credentials")
    account = db.session.query(Account).filter_by(email=email.strip().lower()).first()
    if not account or not verify_secret(secret, account.password_hash):
        raise Unauthenticated("Invalid credentials")
    if not account.is_active:
        raise Unauthenticated("Account is disabled")

    principal = principal_for_account(account)

    account.last_login_at = utcnow()
    db.session.commit()

    _, token = session_service.create_session(account.id, user_agent=user_agent, ip_address=ip_address)
    current_app.logger.info("Principal %s signed in as %s", principal.id, principal.role)
    _emit("login", principal)
    return principal, token


def get_current_principal(token: str | None) -> Principal | None:
    account = session_service.validate_session(token)
    if account is None:
        return None
    user = db.session.get(User, account.id)
    if user is None:
        return None
    return Principal(id=account.id, email=account.email, role=user.role, shop_id=user.shop_id)


def end_session(token: str) -> bool:
    """Revoke the session. Emits a "logout" event when one was active."""
    principal = get_current_principal(token)
    revoked = session_service.revoke_session(token)
    if revoked and principal is not None:
        current_app.logger.info("Principal %s signed out", principal.id)
        _emit("logout", principal)
    return revoked


def send_secret_reset_challenge(email: str) -> str | None:
    """
    Issue a single-use reset challenge.

    Returns the plaintext challenge token for delivery, or None when no
    account matches. Delivery itself is out of band; the issue is logged.
    """
    email = normalize_email(email)
    account = db.session.query(Account).filter_by(email=email).first()
    if account is None:
        current_app.logger.info("Secret reset requested for unknown email")
        return None

    token = session_service.generate_token()
    minutes = current_app.config.get("RESET_CHALLENGE_MINUTES", 30)
    now = utcnow()
    challenge = ResetChallenge(
        account_id=account.id,
        token_hash=session_service.hash_token(token),
        created_at=now,
        expires_at=now + timedelta(minutes=minutes),
    )
    db.session.add(challenge)
    db.session.commit()
    current_app.logger.info("Secret reset challenge issued for account %s", account.id)
    return token


def reset_secret(challenge_token: str, new_secret: str) -> str:
    """Consume a challenge, set a new secret and revoke existing sessions. Returns the account id."""
    if not challenge_token:
        raise ValidationFailure("Reset token is required", field="token")

    challenge = db.session.query(ResetChallenge).filter_by(
        token_hash=session_service.hash_token(challenge_token),
    ).first()
    if challenge is None or challenge.used_at is not None or challenge.expires_at < utcnow():
        raise ValidationFailure("Reset token is invalid or expired", field="token")

    account = challenge.account
    account.password_hash = hash_secret(new_secret)
    challenge.used_at = utcnow()
    db.session.commit()

    session_service.revoke_all_account_sessions(account.id, reason="Secret reset")
    current_app.logger.info("Secret reset completed for account %s", account.id)
    return account.id


def _listeners() -> list[PrincipalListener]:
    return current_app.extensions.setdefault(PRINCIPAL_LISTENERS_KEY, [])


def subscribe(listener: PrincipalListener) -> Callable[[], None]:
    """Register a principal-change listener. Returns an unsubscribe callable."""
    listeners = _listeners()
    listeners.append(listener)

    def unsubscribe() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return unsubscribe


def _emit(event: str, principal: Principal) -> None:
    for listener in list(_listeners()):
        try:
            listener(event, principal)
        except Exception:
            current_app.logger.exception("Principal listener failed on %s for %s", event, principal.id)
