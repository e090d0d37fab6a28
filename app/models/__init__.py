from app.models.user import User
from app.models.order import Order
from app.models.withdrawal import Withdrawal
from app.models.failed_job import FailedJob

__all__ = [
    "User",
    "Order",
    "Withdrawal",
    "FailedJob",
]
