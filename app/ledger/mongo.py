"""MongoDB ledger store on Beanie documents.

Single-document guards (unique indexes, conditional find_one_and_update) give
the check-and-act semantics; pairs of writes that must land together run in a
Motor session transaction.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable

from beanie import PydanticObjectId
from beanie.operators import In
from bson import Decimal128
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import InternalError, LoginAlreadyExistsError, NotFoundError
from app.ledger.base import LedgerStore
from app.ledger.records import (
    PENDING_STATUSES,
    BalanceRecord,
    DebitResult,
    InsertResult,
    OrderRecord,
    OrderStatus,
    UserRecord,
    WithdrawalRecord,
)
from app.models.order import Order
from app.models.user import User
from app.models.withdrawal import Withdrawal

_PENDING = [s.value for s in PENDING_STATUSES]


def _oid(user_id: str) -> PydanticObjectId:
    try:
        return PydanticObjectId(user_id)
    except (InvalidId, TypeError) as e:
        raise NotFoundError("User not found") from e


def _dec(value) -> Decimal:
    if isinstance(value, Decimal128):
        return value.to_decimal()
    return Decimal(str(value or 0))


class MongoLedgerStore(LedgerStore):
    def __init__(self, use_transactions: bool = True) -> None:
        self.use_transactions = use_transactions

    async def _in_transaction(self, fn: Callable[[Any], Awaitable[Any]]) -> Any:
        """Run fn(session) in a transaction, retried on transient errors.

        With transactions off, fn runs once with session=None.
        """
        if not self.use_transactions:
            return await fn(None)
        client = User.get_motor_collection().database.client
        async with await client.start_session() as session:
            return await session.with_transaction(fn)

    # Users

    async def create_user(self, login: str, password_hash: str) -> UserRecord:
        user = User(login=login, password_hash=password_hash)
        try:
            await user.insert()
        except DuplicateKeyError as e:
            raise LoginAlreadyExistsError(login) from e
        return user.to_record()

    async def get_user(self, user_id: str) -> UserRecord | None:
        try:
            oid = _oid(user_id)
        except NotFoundError:
            return None
        user = await User.get(oid)
        return user.to_record() if user else None

    async def get_user_by_login(self, login: str) -> UserRecord | None:
        user = await User.find_one(User.login == login)
        return user.to_record() if user else None

    # Orders

    async def insert_order_if_absent(self, number: str, owner_id: str) -> InsertResult:
        order = Order(number=number, user_id=_oid(owner_id))
        try:
            await order.insert()
            return InsertResult(created=True, owner_id=owner_id)
        except DuplicateKeyError:
            pass
        existing = await Order.find_one(Order.number == number)
        if not existing:
            # unique index fired but the row is gone; orders are never deleted
            raise InternalError("Order vanished after duplicate key", details={"order": number})
        return InsertResult(created=False, owner_id=str(existing.user_id))

    async def transition_order(self, number: str, status: OrderStatus) -> bool:
        doc = await Order.get_motor_collection().find_one_and_update(
            {"number": number, "status": {"$in": _PENDING}},
            {"$set": {"status": status.value, "updated_at": datetime.utcnow()}},
        )
        return doc is not None

    async def credit_and_transition_order(self, number: str, status: OrderStatus, accrual: Decimal) -> bool:
        orders = Order.get_motor_collection()
        users = User.get_motor_collection()

        async def apply(session) -> bool:
            doc = await orders.find_one_and_update(
                {"number": number, "status": {"$in": _PENDING}},
                {"$set": {
                    "status": status.value,
                    "accrual": Decimal128(accrual),
                    "updated_at": datetime.utcnow(),
                }},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            if doc is None:
                return False
            if accrual > 0:
                res = await users.update_one(
                    {"_id": doc["user_id"]},
                    {"$inc": {"balance": Decimal128(accrual)}},
                    session=session,
                )
                if res.matched_count != 1:
                    # raising aborts the transaction, the order stays pending
                    raise InternalError("Order owner not found", details={"order": number})
            return True

        return await self._in_transaction(apply)

    # Balance

    async def credit(self, user_id: str, amount: Decimal) -> BalanceRecord:
        doc = await User.get_motor_collection().find_one_and_update(
            {"_id": _oid(user_id)},
            {"$inc": {"balance": Decimal128(amount)}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise NotFoundError("User not found")
        return BalanceRecord(current=_dec(doc.get("balance")), withdrawn=_dec(doc.get("withdrawn")))

    async def debit_if_sufficient(self, user_id: str, order_number: str, amount: Decimal) -> DebitResult:
        oid = _oid(user_id)
        users = User.get_motor_collection()

        async def apply(session) -> DebitResult:
            doc = await users.find_one_and_update(
                {"_id": oid, "balance": {"$gte": Decimal128(amount)}},
                {"$inc": {"balance": Decimal128(-amount), "withdrawn": Decimal128(amount)}},
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            if doc is None:
                current = await users.find_one({"_id": oid}, {"balance": 1}, session=session)
                if current is None:
                    raise NotFoundError("User not found")
                return DebitResult(ok=False, balance=_dec(current.get("balance")))
            withdrawal = Withdrawal(order=order_number, user_id=oid, sum=amount)
            await withdrawal.insert(session=session)
            return DebitResult(ok=True, balance=_dec(doc.get("balance")), withdrawal=withdrawal.to_record())

        return await self._in_transaction(apply)

    async def get_balance(self, user_id: str) -> BalanceRecord:
        user = await User.get(_oid(user_id))
        if not user:
            raise NotFoundError("User not found")
        return BalanceRecord(current=user.balance, withdrawn=user.withdrawn)

    # Listings

    async def list_orders_needing_poll(self, limit: int, after: OrderRecord | None = None) -> list[OrderRecord]:
        query = Order.find(In(Order.status, _PENDING))
        if after is not None:
            query = query.find({"$or": [
                {"uploaded_at": {"$gt": after.uploaded_at}},
                {"uploaded_at": after.uploaded_at, "number": {"$gt": after.number}},
            ]})
        orders = await query.sort(+Order.uploaded_at, +Order.number).limit(limit).to_list()
        return [o.to_record() for o in orders]

    async def list_orders(self, user_id: str) -> list[OrderRecord]:
        orders = await Order.find(Order.user_id == _oid(user_id)).sort(+Order.uploaded_at).to_list()
        return [o.to_record() for o in orders]

    async def list_withdrawals(self, user_id: str) -> list[WithdrawalRecord]:
        items = await Withdrawal.find(Withdrawal.user_id == _oid(user_id)).sort(+Withdrawal.processed_at).to_list()
        return [w.to_record() for w in items]
