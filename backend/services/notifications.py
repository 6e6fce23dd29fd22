from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.db.base import utcnow
from backend.app.db.models.core_types import NotificationType
from backend.app.db.models.models_v1 import Item, Location, Notification

logger = logging.getLogger("inventory.notifications")


@dataclass(frozen=True)
class LowStockSignal:
    organization_id: int
    item_id: int
    location_id: int
    new_quantity: int
    reorder_point: int | None

    @property
    def is_low(self) -> bool:
        return self.reorder_point is not None and self.new_quantity < self.reorder_point


class LowStockNotifier:
    """
    Collaborateur "stock bas" : appelé de façon synchrone, dans la transaction.

    Implémentation par défaut : une Notification persistée, sauf si une
    notification non lue existe déjà pour ce couple item/emplacement dans
    la fenêtre de déduplication.
    """

    def __init__(self, dedup_hours: int | None = None) -> None:
        self.dedup_window = timedelta(
            hours=settings.low_stock_dedup_hours if dedup_hours is None else dedup_hours
        )

    def notify(self, db: Session, signal: LowStockSignal) -> Notification | None:
        if not signal.is_low:
            return None

        item = db.get(Item, signal.item_id)
        location = db.get(Location, signal.location_id)
        if not item or not location:
            return None

        recent = db.execute(
            select(Notification.id)
            .where(Notification.organization_id == signal.organization_id)
            .where(Notification.type == NotificationType.low_stock)
            .where(Notification.item_id == signal.item_id)
            .where(Notification.location_id == signal.location_id)
            .where(Notification.read.is_(False))
            .where(Notification.created_at >= utcnow() - self.dedup_window)
            .limit(1)
        ).scalar_one_or_none()
        if recent is not None:
            logger.debug(
                "low stock already notified item=%s location=%s", signal.item_id, signal.location_id
            )
            return None

        notification = Notification(
            organization_id=signal.organization_id,
            type=NotificationType.low_stock,
            title=f"Low stock: {item.name}",
            message=(
                f'Location "{location.name}" is below its reorder point '
                f"({signal.new_quantity} < {signal.reorder_point})."
            ),
            item_id=signal.item_id,
            location_id=signal.location_id,
        )
        db.add(notification)
        db.flush()

        logger.info(
            "low stock item=%s location=%s qty=%s reorder_point=%s",
            signal.item_id, signal.location_id, signal.new_quantity, signal.reorder_point,
        )
        return notification
