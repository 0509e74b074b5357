# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime

from flask import current_app

from . import inventory_service, session_service, wallet_service


def cleanup_sessions(*, retention_days: int = 30) -> int:
    """Delete expired or revoked sessions older than retention_days."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    current_app.logger.info("Deleted %d stale session(s)", deleted)
    return deleted


def deactivate_expired(*, now: datetime | None = None) -> int:
    """Hide products whose expiry date has passed."""
    count = inventory_service.deactivate_expired_products(now=now)
    if count:
        current_app.logger.info("Deactivated %d expired product(s)", count)
    return count


def refill_wallets(*, now: datetime | None = None) -> int:
    return wallet_service.refill_due_wallets(now=now)
