from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class AdminSession(db.Model):
    """
    Operator session with an explicit lifecycle: issued, expires, revoked.

    SECURITY NOTES:
    - Tokens stored hashed (SHA-256); the plaintext only goes to the client
    - Absolute and idle timeouts come from config
    - Revocable on logout
    """
    __tablename__ = "admin_sessions"
    __table_args__ = (
        db.Index("ix_admin_sessions_active", "username", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(128), nullable=False)

    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<AdminSession id={self.id} username={self.username!r} revoked={self.is_revoked}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at),
            "revoked_reason": self.revoked_reason,
        }
