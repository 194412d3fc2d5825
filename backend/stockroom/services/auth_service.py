# Overview: Operator credential check against the single configured account.

"""
Authentication Service

There is exactly one operator account, defined in config:
- ADMIN_USERNAME
- ADMIN_PASSWORD_HASH (bcrypt) if set, otherwise ADMIN_PASSWORD

SECURITY NOTES:
- bcrypt with cost factor 12 for stored hashes
- Plaintext comparison (dev default) is constant-time
- Sessions are issued separately (see session_service.py)
"""

import hmac

import bcrypt
from flask import current_app


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12."""
    if not password:
        raise ValueError("Password must not be empty")
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def authenticate(username: str | None, password: str | None) -> bool:
    if not username or not password:
        return False

    config = current_app.config
    expected_username = config.get("ADMIN_USERNAME") or ""
    username_ok = hmac.compare_digest(username.encode("utf-8"), expected_username.encode("utf-8"))

    password_hash = config.get("ADMIN_PASSWORD_HASH")
    if password_hash:
        password_ok = verify_password(password, password_hash)
    else:
        expected_password = config.get("ADMIN_PASSWORD") or ""
        password_ok = bool(expected_password) and hmac.compare_digest(
            password.encode("utf-8"), expected_password.encode("utf-8")
        )

    return username_ok and password_ok
