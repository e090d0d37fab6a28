from datetime import datetime

from beanie import DecimalAnnotation, Document, PydanticObjectId
from pydantic import Field

from app.ledger.records import WithdrawalRecord


class Withdrawal(Document):
    order: str  # free-form spend label, not necessarily an Order number
    user_id: PydanticObjectId
    sum: DecimalAnnotation
    processed_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "withdrawals"
        indexes = [[("user_id", 1), ("processed_at", 1)]]

    def to_record(self) -> WithdrawalRecord:
        return WithdrawalRecord(
            order=self.order,
            user_id=str(self.user_id),
            sum=self.sum,
            processed_at=self.processed_at,
        )
