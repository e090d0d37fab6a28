from datetime import datetime
from typing import Optional

from beanie import DecimalAnnotation, Document, Indexed, PydanticObjectId
from pydantic import Field

from app.ledger.records import OrderRecord, OrderStatus


class Order(Document):
    """Submitted order number; number -> user is write-once."""
    number: Indexed(str, unique=True)
    user_id: Indexed(PydanticObjectId)
    status: OrderStatus = OrderStatus.NEW
    accrual: Optional[DecimalAnnotation] = None  # set only with PROCESSED
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "orders"
        indexes = [
            [("status", 1), ("uploaded_at", 1)],
            [("user_id", 1), ("uploaded_at", 1)],
        ]

    def to_record(self) -> OrderRecord:
        return OrderRecord(
            number=self.number,
            user_id=str(self.user_id),
            status=self.status,
            accrual=self.accrual,
            uploaded_at=self.uploaded_at,
        )
