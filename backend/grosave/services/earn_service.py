# Overview: Service-layer operations for earning bonus GroCoins; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app

from ..exceptions import ValidationError
from ..models.ledger import EARN_AD, EARN_SURVEY, EARN_REFERRAL
from .concurrency import begin_write, run_with_retry
from . import wallet_service
from ..extensions import db


# earn type -> (coins, ledger description, payload field kept as meta)
EARN_RULES = {
    EARN_AD: (10, "Ad view reward", "adId"),
    EARN_SURVEY: (25, "Survey reward", "surveyId"),
    EARN_REFERRAL: (50, "Referral reward", "referredPhone"),
}


def earn(user_id: int, earn_type: str, payload: dict | None = None) -> int:
    """
    Credit the reward for one earn action, capped by the monthly bonus
    ceiling. Returns the coins actually credited (0 once capped).
    """
    if earn_type not in EARN_RULES:
        raise ValidationError(f"Unknown earn type {earn_type!r}")
    amount, description, meta_field = EARN_RULES[earn_type]
    payload = payload or {}
    meta = {meta_field: payload.get(meta_field)}

    def _op():
        begin_write()
        credited = wallet_service.credit_bonus(
            user_id,
            amount,
            description=description,
            earn_type=earn_type,
            meta=meta,
        )
        db.session.commit()
        return credited

    credited = run_with_retry(_op)
    if credited < amount:
        current_app.logger.info(
            "Bonus ceiling reached for user %s: %s credited of %s (%s)",
            user_id, credited, amount, earn_type,
        )
    return credited
