"""Plain records exchanged with a ledger store, independent of the backend."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel


class OrderStatus(str, Enum):
    NEW = "NEW"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    INVALID = "INVALID"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.PROCESSED, OrderStatus.INVALID)


PENDING_STATUSES = (OrderStatus.NEW, OrderStatus.PROCESSING)


class UserRecord(BaseModel):
    id: str
    login: str
    password_hash: str
    session_version: int = 0
    created_at: datetime


class OrderRecord(BaseModel):
    number: str
    user_id: str
    status: OrderStatus
    accrual: Decimal | None = None
    uploaded_at: datetime


class WithdrawalRecord(BaseModel):
    order: str
    user_id: str
    sum: Decimal
    processed_at: datetime


class BalanceRecord(BaseModel):
    current: Decimal
    withdrawn: Decimal


class InsertResult(BaseModel):
    created: bool
    owner_id: str


class DebitResult(BaseModel):
    ok: bool
    balance: Decimal
    withdrawal: WithdrawalRecord | None = None
