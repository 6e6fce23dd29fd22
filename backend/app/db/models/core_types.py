import enum

class Role(str, enum.Enum):
    admin = "admin"
    staff = "staff"
    viewer = "viewer"

class StockCountStatus(str, enum.Enum):
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    cancelled = "CANCELLED"

class ReceiptStatus(str, enum.Enum):
    draft = "DRAFT"
    confirmed = "CONFIRMED"
    cancelled = "CANCELLED"

class OrderStatus(str, enum.Enum):
    draft = "DRAFT"
    sent = "SENT"
    partially_received = "PARTIALLY_RECEIVED"
    received = "RECEIVED"

class NotificationType(str, enum.Enum):
    low_stock = "LOW_STOCK"
