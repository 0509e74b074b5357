# Overview: Service-layer operations for food-rescue impact figures; encapsulates reporting queries.

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Order
from ..models.orders import ORDER_STATUS_COMPLETED
from grosave.time_utils import utcnow


# Display multipliers
KG_PER_UNIT = 1.0
CO2_PER_KG = 2.5
RUPEES_PER_COIN = 1


def get_impact(user_id: int, *, now: datetime | None = None, range_days: int | None = None) -> dict:
    """Totals over the user's orders completed in the trailing window."""
    if range_days is None:
        range_days = int(current_app.config.get("IMPACT_RANGE_DAYS", 30))
    since = (now or utcnow()) - timedelta(days=range_days)

    count, units, coins = (
        db.session.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.quantity), 0),
            func.coalesce(func.sum(Order.coins_spent), 0),
        )
        .filter(
            Order.user_id == user_id,
            Order.status == ORDER_STATUS_COMPLETED,
            Order.completed_at >= since,
        )
        .one()
    )

    kg_rescued = int(units) * KG_PER_UNIT
    return {
        "rangeDays": range_days,
        "ordersCompleted": int(count),
        "kgRescued": kg_rescued,
        "co2SavedKg": kg_rescued * CO2_PER_KG,
        "rupeesSaved": int(coins) * RUPEES_PER_COIN,
    }
