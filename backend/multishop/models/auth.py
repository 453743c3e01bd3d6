from __future__ import annotations

from ..extensions import db
from ..ids import new_id
from ..money import format_cents
from ..time_utils import to_iso_date, to_utc_z, utcnow

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_EMPLOYEE = "employee"
ROLE_RIDER = "rider"
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE, ROLE_RIDER)

# Roles bound to exactly one shop
SHOP_BOUND_ROLES = (ROLE_MANAGER, ROLE_EMPLOYEE)


class Account(db.Model):
    """
    Identity provider credentials.

    One account per login email. The matching User row (same id) carries
    the role and shop binding; this table only knows about secrets.
    """
    __tablename__ = "accounts"

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }


class User(db.Model):
    """
    Profile record of a principal.

    id equals the Account id. Managers and employees carry a shop_id;
    admins and riders do not.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_shop_role", "shop_id", "role"),
    )

    id = db.Column(db.String(32), primary_key=True, default=new_id)
    email = db.Column(db.String(255), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(16), nullable=False, index=True)
    shop_id = db.Column(db.String(32), db.ForeignKey("shops.id"), nullable=True)

    # Employee profile fields
    position = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    salary_cents = db.Column(db.Integer, nullable=True)
    joining_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_by = db.Column(db.String(32), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)
    updated_by = db.Column(db.String(32), nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role} shop_id={self.shop_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "shop_id": self.shop_id,
            "position": self.position,
            "phone": self.phone,
            "salary_cents": self.salary_cents,
            "salary": format_cents(self.salary_cents),
            "joining_date": to_iso_date(self.joining_date),
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
            "updated_at": to_utc_z(self.updated_at),
            "updated_by": self.updated_by,
        }


class SessionToken(db.Model):
    """
    Bearer session issued at authentication.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute timeout from SESSION_LIFETIME_HOURS
    - Revocable on logout, secret reset or account deactivation
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_account_active", "account_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.String(32), db.ForeignKey("accounts.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    account = db.relationship("Account", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at),
        }


class ResetChallenge(db.Model):
    """Single-use secret reset token, stored hashed like session tokens."""
    __tablename__ = "reset_challenges"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.String(32), db.ForeignKey("accounts.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    account = db.relationship("Account", backref=db.backref("reset_challenges", lazy=True))
