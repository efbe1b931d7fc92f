# Overview: Bearer session tokens that carry the tenant context of each request.

"""
Session Token Service

Login and password handling live outside the stock engine. This module only
issues and validates the bearer tokens the API expects, so requests arrive
with an actor, a role and a tenant scope.

SECURITY:
- Tokens are 32 random bytes, hex-encoded; only the SHA-256 hash is stored
- Absolute expiry (SESSION_ABSOLUTE_TIMEOUT); revocable
- company_id / shop_id are captured when the session is issued and do not
  change for the session lifetime
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User, Company
from shopstock.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)


class SessionError(Exception):
    """Raised when a session cannot be issued for a user."""
    pass


@dataclass
class SessionContext:
    user: User
    session: SessionToken
    company_id: str | None
    shop_id: str | None

    @property
    def role(self) -> str:
        return self.user.role


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is enough here: tokens are high-entropy, unlike passwords."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_session(user_id: str, ttl: timedelta | None = None) -> tuple[SessionToken, str]:
    """
    Create a session for user_id and return (session_record, plaintext_token).

    superAdmin users may hold a session without a company; everyone else
    must belong to an active company.
    """
    user = db.session.query(User).filter_by(user_id=user_id).first()
    if not user:
        raise SessionError("User not found")
    if not user.is_active:
        raise SessionError("User is not active")

    if user.role != "superAdmin":
        if not user.company_id:
            raise SessionError("User must belong to a company")
        company = db.session.get(Company, user.company_id)
        if not company or not company.is_active:
            raise SessionError("Company is not active")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.user_id,
        company_id=user.company_id,
        shop_id=user.shop_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + (ttl or SESSION_ABSOLUTE_TIMEOUT),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Return the SessionContext for token, or None when the token is unknown,
    revoked, expired, or its user has been deactivated.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    return SessionContext(
        user=user,
        session=session,
        company_id=session.company_id,
        shop_id=session.shop_id,
    )


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
