from __future__ import annotations

from dataclasses import dataclass

from backend.services.adjustments import StockAdjustmentService
from backend.services.audit import AuditService
from backend.services.inventory import InventoryLedger
from backend.services.low_stock import LowStockAggregator
from backend.services.notifications import LowStockNotifier
from backend.services.order_status import OrderStatusUpdater
from backend.services.procurement import ProcurementService
from backend.services.receiving import ReceivingService
from backend.services.stock_count import StockCountService


@dataclass(frozen=True)
class Services:
    ledger: InventoryLedger
    audit: AuditService
    notifier: LowStockNotifier
    adjustments: StockAdjustmentService
    stock_counts: StockCountService
    receiving: ReceivingService
    low_stock: LowStockAggregator
    procurement: ProcurementService


def build_services(
    *,
    ledger: InventoryLedger | None = None,
    notifier: LowStockNotifier | None = None,
    audit: AuditService | None = None,
) -> Services:
    """Graphe construit une fois ; les tests peuvent substituer ledger/notifier/audit."""
    ledger = ledger or InventoryLedger()
    notifier = notifier or LowStockNotifier()
    audit = audit or AuditService()
    low_stock = LowStockAggregator()

    return Services(
        ledger=ledger,
        audit=audit,
        notifier=notifier,
        adjustments=StockAdjustmentService(ledger, notifier, audit),
        stock_counts=StockCountService(ledger, notifier, audit),
        receiving=ReceivingService(ledger, notifier, audit, OrderStatusUpdater(audit)),
        low_stock=low_stock,
        procurement=ProcurementService(low_stock, audit),
    )
