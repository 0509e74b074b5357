# Overview: Service-layer operations for product stock and catalog reads; encapsulates business logic and database work.

from __future__ import annotations

import re
from datetime import datetime, timedelta

from sqlalchemy import func, or_

from ..extensions import db
from ..exceptions import InsufficientStockError, NotFoundError
from ..models import Product
from ..models.catalog import DEACTIVATED_SOLD_OUT, DEACTIVATED_EXPIRED, DEACTIVATED_MANUAL
from grosave.time_utils import utcnow
from .concurrency import lock_for_update


PHASE_NORMAL = "normal"
PHASE_DROP = "drop"
PHASE_FREE = "free"
PHASE_EXPIRED = "expired"

ALL_CATEGORIES = "All"


# =============================================================================
# STOCK COUNTER
# =============================================================================

def get_product(product_id: int, *, for_update: bool = False) -> Product | None:
    query = db.session.query(Product).filter_by(id=product_id)
    if for_update:
        query = lock_for_update(query)
    return query.first()


def require_active_product(product_id: int, *, for_update: bool = False) -> Product:
    product = get_product(product_id, for_update=for_update)
    if not product or not product.is_active:
        raise NotFoundError("Product not found")
    return product


def reserve_stock(product: Product, quantity: int) -> None:
    """
    Take `quantity` units out of stock.

    The product is hidden (reason "sold_out") when the last unit goes.
    Does not commit.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    if product.units_available < quantity:
        raise InsufficientStockError(requested=quantity, available=product.units_available)

    product.units_available -= quantity
    if product.units_available == 0:
        product.is_active = False
        product.deactivation_reason = DEACTIVATED_SOLD_OUT


def release_stock(product: Product, quantity: int, *, now: datetime | None = None) -> None:
    """
    Put `quantity` units back into stock (order cancelled).

    Relisting only undoes a sell-out: a product hidden by hand or because
    it expired stays hidden. Does not commit.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    product.units_available += quantity

    if product.is_active or product.deactivation_reason != DEACTIVATED_SOLD_OUT:
        return
    if is_expired(product, now):
        return
    product.is_active = True
    product.deactivation_reason = None


def deactivate_product(product: Product, *, reason: str = DEACTIVATED_MANUAL) -> None:
    product.is_active = False
    product.deactivation_reason = reason


def deactivate_expired_products(*, now: datetime | None = None) -> int:
    """Hide every active product past its expiry date. Commits. Returns count."""
    now = now or utcnow()
    expired = lock_for_update(
        db.session.query(Product).filter(
            Product.is_active.is_(True),
            Product.expiry_date.isnot(None),
            Product.expiry_date <= now,
        )
    ).all()

    for product in expired:
        deactivate_product(product, reason=DEACTIVATED_EXPIRED)

    db.session.commit()
    return len(expired)


# =============================================================================
# DYNAMIC PRICING WINDOW
# =============================================================================

def is_expired(product: Product, now: datetime | None = None) -> bool:
    if product.expiry_date is None:
        return False
    return (now or utcnow()) >= product.expiry_date


def pricing_phase(product: Product, now: datetime | None = None) -> str:
    """
    Where a product sits in its expiry-driven pricing window.

    normal -> drop (N hours before expiry) -> free (M hours before expiry)
    -> expired. Products without dynamic pricing are normal until expiry.
    """
    now = now or utcnow()
    expiry = product.expiry_date
    if expiry is None:
        return PHASE_NORMAL
    if now >= expiry:
        return PHASE_EXPIRED
    if not product.dynamic_pricing_enabled:
        return PHASE_NORMAL

    free_hours = product.free_at_hours_before_expiry
    if free_hours is not None and now >= expiry - timedelta(hours=free_hours):
        return PHASE_FREE

    drop_hours = product.drop_to_price_at_hours_before_expiry
    if drop_hours is not None and now >= expiry - timedelta(hours=drop_hours):
        return PHASE_DROP

    return PHASE_NORMAL


def serialize_product(product: Product, now: datetime | None = None) -> dict:
    data = product.to_dict()
    data["pricingPhase"] = pricing_phase(product, now)
    return data


# =============================================================================
# CATALOG READS
# =============================================================================

def list_products(
    *,
    category: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Product], int]:
    """Active products, soonest expiry first."""
    query = db.session.query(Product).filter(Product.is_active.is_(True))

    # "All" is kept as a no-op for UI compatibility
    if category and category != ALL_CATEGORIES:
        query = query.filter(Product.category == category)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.brand.ilike(pattern)))

    total = query.count()
    products = (
        query.order_by(Product.expiry_date.asc(), Product.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return products, total


def _category_slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


def list_categories() -> list[dict]:
    rows = (
        db.session.query(Product.category, func.count(Product.id))
        .filter(Product.is_active.is_(True))
        .group_by(Product.category)
        .order_by(Product.category.asc())
        .all()
    )
    categories = [
        {"id": _category_slug(name), "name": name, "productCount": count}
        for name, count in rows
    ]
    # Synthetic "All" entry first; -1 means "not counted"
    return [{"id": "all", "name": ALL_CATEGORIES, "productCount": -1}] + categories
