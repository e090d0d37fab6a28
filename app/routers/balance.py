from decimal import Decimal

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from app.deps import get_current_user, get_service
from app.ledger.records import UserRecord
from app.services.loyalty import LoyaltyService

router = APIRouter()


class WithdrawRequest(BaseModel):
    order: str = Field(min_length=1)
    sum: Decimal = Field(gt=0)


@router.get("")
async def balance(
    user: UserRecord = Depends(get_current_user),
    service: LoyaltyService = Depends(get_service),
):
    """Current spendable points and total withdrawn."""
    bal = await service.get_balance(user.id)
    return {"current": float(bal.current), "withdrawn": float(bal.withdrawn)}


@router.post("/withdraw")
async def withdraw(
    body: WithdrawRequest,
    user: UserRecord = Depends(get_current_user),
    service: LoyaltyService = Depends(get_service),
):
    """Spend points against an order number. 402 if the balance is too low."""
    w = await service.withdraw(user.id, body.order, body.sum)
    return {"order": w.order, "sum": float(w.sum), "processed_at": w.processed_at.isoformat()}


@router.get("/withdrawals")
async def withdrawals(
    user: UserRecord = Depends(get_current_user),
    service: LoyaltyService = Depends(get_service),
):
    """Withdrawals, oldest first. 204 when there are none."""
    items = await service.list_withdrawals(user.id)
    if not items:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return [
        {"order": w.order, "sum": float(w.sum), "processed_at": w.processed_at.isoformat()}
        for w in items
    ]
