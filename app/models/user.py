from datetime import datetime
from decimal import Decimal

from beanie import DecimalAnnotation, Document, Indexed
from pydantic import Field

from app.ledger.records import UserRecord


class User(Document):
    login: Indexed(str, unique=True)  # case-sensitive
    password_hash: str
    # Only the balance ledger writes these two, always through conditional $inc
    balance: DecimalAnnotation = Decimal("0")
    withdrawn: DecimalAnnotation = Decimal("0")
    session_version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"

    def to_record(self) -> UserRecord:
        return UserRecord(
            id=str(self.id),
            login=self.login,
            password_hash=self.password_hash,
            session_version=self.session_version,
            created_at=self.created_at,
        )
