# Overview: Service-layer operations for bearer sessions; issues, checks and revokes shopper tokens.

"""
Shopper Session Tokens

Once a phone is proven by OTP the shopper gets an opaque bearer token.
Only its SHA-256 digest is persisted; the plaintext leaves the server once,
in the verify-otp response.

LIFETIME:
- SESSION_ABSOLUTE_TIMEOUT (7 days) from issue, regardless of use
- SESSION_IDLE_TIMEOUT (48 hours) since the last authenticated request
- Logout, or a deactivated account, revokes immediately
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from grosave.time_utils import utcnow


# Shoppers stay signed in on their phone for a week
SESSION_ABSOLUTE_TIMEOUT = timedelta(days=7)
SESSION_IDLE_TIMEOUT = timedelta(hours=48)

TOKEN_BYTES = 32


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def generate_token() -> str:
    """64 hex characters from the secrets CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    # Tokens carry full entropy, so a plain digest is enough (no salt, no KDF)
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _find_live(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _revoke(session: SessionToken, reason: str, *, at=None) -> None:
    session.is_revoked = True
    session.revoked_at = at or utcnow()
    session.revoked_reason = reason


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for an active user and commit it.

    Returns (row, plaintext_token). Raises ValueError for an unknown or
    deactivated user.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is deactivated")

    issued_at = utcnow()
    token = generate_token()
    row = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=issued_at,
        last_used_at=issued_at,
        expires_at=issued_at + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
    )
    db.session.add(row)
    db.session.commit()
    return row, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user, or None.

    A token past its idle window, or whose user has been deactivated, is
    revoked on the spot. A successful check slides last_used_at forward.
    """
    row = _find_live(token)
    if row is None:
        return None

    now = utcnow()
    if now > row.expires_at:
        return None

    if now - row.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(row, "Idle timeout", at=now)
        db.session.commit()
        return None

    user = row.user
    if user is None or not user.is_active:
        _revoke(row, "User account deactivated", at=now)
        db.session.commit()
        return None

    row.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=row)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """False when the token is unknown or already revoked."""
    row = _find_live(token)
    if row is None:
        return False
    _revoke(row, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    rows = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    now = utcnow()
    for row in rows:
        _revoke(row, reason, at=now)
    db.session.commit()
    return len(rows)


def cleanup_expired_sessions(*, retention_days: int = 30) -> int:
    """
    Purge dead sessions (expired or revoked) issued more than
    retention_days ago. Returns the number of rows deleted.
    """
    now = utcnow()
    dead = db.or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True))
    deleted = (
        db.session.query(SessionToken)
        .filter(dead, SessionToken.created_at < now - timedelta(days=retention_days))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
