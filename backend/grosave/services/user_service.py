# Overview: Service-layer operations for user profiles; encapsulates business logic and database work.

from __future__ import annotations

import re
from typing import Any

from ..extensions import db
from ..exceptions import NotFoundError, ValidationError
from ..models import User
from ..models.users import INCOME_RANGES


ELIGIBILITY_APPROVED = "approved"

# UI payloads send these short forms
_INCOME_FRIENDLY = {
    "below-1.5": "BELOW_1_5_LPA",
    "1.5-2.5": "BETWEEN_1_5_2_5_LPA",
    "2.5-3.5": "BETWEEN_2_5_3_5_LPA",
    "above-3.5": "ABOVE_3_5_LPA",
}
_INCOME_LOOSE = {
    "1_5_2_5": "BETWEEN_1_5_2_5_LPA",
    "2_5_3_5": "BETWEEN_2_5_3_5_LPA",
}


def normalize_income_range(value: Any) -> str | None:
    """
    Map friendly ("1.5-2.5"), loose ("1_5_2_5") or exact
    ("BETWEEN_1_5_2_5_LPA") inputs to an income range. None if unknown.
    """
    if not value:
        return None
    raw = str(value).strip()
    if raw in _INCOME_FRIENDLY:
        return _INCOME_FRIENDLY[raw]

    upper = re.sub(r"[^A-Z0-9_]", "_", raw.upper())
    if upper in _INCOME_LOOSE:
        return _INCOME_LOOSE[upper]
    if upper in INCOME_RANGES:
        return upper
    return None


def _clean_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def build_profile_update(body: dict) -> dict:
    """
    Pick the writable profile fields out of a camelCase payload.

    Only well-formed values are kept; anything else is silently left out
    so a partial or sloppy form does not wipe stored fields.
    """
    data: dict[str, Any] = {}

    name = _clean_str(body.get("name"))
    if name:
        data["name"] = name

    aadhaar = body.get("aadhaarLast4")
    if isinstance(aadhaar, str) and re.fullmatch(r"\d{0,4}", aadhaar.strip()):
        data["aadhaar_last4"] = aadhaar.strip()

    income = normalize_income_range(body.get("incomeRange"))
    if income:
        data["income_range"] = income

    children = body.get("schoolGoingChildren")
    if not isinstance(children, bool):
        try:
            children = int(children)
        except (TypeError, ValueError):
            children = None
        if children is not None and children >= 0:
            data["school_going_children"] = children

    # address is a single string column; an object form contributes its street
    address = body.get("address")
    if isinstance(address, dict):
        street = _clean_str(address.get("street"))
        if street:
            data["address"] = street
    else:
        address = _clean_str(address)
        if address:
            data["address"] = address

    for key, column in (("city", "city"), ("pincode", "pincode"), ("language", "language"),
                        ("eligibilityStatus", "eligibility_status")):
        value = _clean_str(body.get(key))
        if value:
            data[column] = value

    if isinstance(body.get("isVerified"), bool):
        data["is_verified"] = body["isVerified"]

    if "notificationPrefs" in body:
        data["notification_prefs"] = body["notificationPrefs"]

    return data


def get_user(user_id: int) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def _apply(user: User, data: dict) -> User:
    for column, value in data.items():
        setattr(user, column, value)
    db.session.commit()
    return user


def update_profile(user_id: int, body: dict) -> User:
    """Partial update; only provided, valid fields are written."""
    data = build_profile_update(body)
    if not data:
        raise ValidationError("No valid fields to update")
    return _apply(get_user(user_id), data)


def register_user(user_id: int, body: dict) -> User:
    """Complete onboarding: save profile fields and mark the user verified."""
    data = build_profile_update(body)
    data["is_verified"] = True
    data.setdefault("eligibility_status", ELIGIBILITY_APPROVED)
    return _apply(get_user(user_id), data)
