# Overview: Service-layer operations for phone + OTP sign-in; encapsulates business logic and database work.

"""
Authentication Service

Phone numbers are the only identity. A user proves control of a phone with
a one-time password; the first successful verification creates the User and
opens their Wallet with the monthly GroCoin allocation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..exceptions import ValidationError
from ..models import User, SessionToken
from . import otp_service, session_service, wallet_service
from .concurrency import run_with_retry


PHONE_PATTERN = re.compile(r"^\+?\d{10,15}$")


@dataclass
class LoginResult:
    user: User
    session: SessionToken
    token: str
    is_new_user: bool


def normalize_phone(phone) -> str:
    """Strip spaces, dashes and parentheses; require 10-15 digits."""
    if not isinstance(phone, str) or not phone.strip():
        raise ValidationError("Phone required")
    cleaned = re.sub(r"[\s\-()]", "", phone)
    if not PHONE_PATTERN.match(cleaned):
        raise ValidationError("Invalid phone number")
    return cleaned


def send_otp(phone) -> str:
    """Issue a fresh code for the phone. Returns the code."""
    phone = normalize_phone(phone)
    code = otp_service.get_store().issue(phone)
    # Delivery is out of band; the log line is the dev channel
    current_app.logger.info("OTP issued for %s", phone)
    return code


def _get_or_create_user(phone: str) -> tuple[User, bool]:
    def _op():
        user = db.session.query(User).filter_by(phone=phone).first()
        if user:
            return user, False

        user = User(phone=phone)
        db.session.add(user)
        db.session.flush()
        wallet_service.create_wallet(user.id)
        db.session.commit()
        return user, True

    # IntegrityError: a parallel first login for the same phone won
    return run_with_retry(_op, retry_on=(IntegrityError,))


def verify_otp_and_login(
    phone,
    otp,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> LoginResult:
    """
    Consume a valid OTP and open a session.

    Raises ValidationError when either field is missing or the code is
    wrong, expired or already used.
    """
    if not phone or not otp:
        raise ValidationError("Phone and OTP required")
    phone = normalize_phone(phone)

    if not otp_service.get_store().verify(phone, str(otp)):
        current_app.logger.warning("OTP verification failed for %s", phone)
        raise ValidationError("Invalid OTP")

    user, created = _get_or_create_user(phone)
    if not user.is_active:
        raise ValidationError("Account is deactivated")

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    if created:
        current_app.logger.info("New user %s signed up", user.id)
    return LoginResult(user=user, session=session, token=token, is_new_user=created)
