from fastapi import APIRouter, Depends, Request, Response, status

from app.core.exceptions import BadRequestError
from app.deps import get_current_user, get_service
from app.ledger.records import UserRecord
from app.services.loyalty import LoyaltyService
from app.services.orders import SubmitOutcome

router = APIRouter()


@router.post("/orders")
async def submit_order(
    request: Request,
    user: UserRecord = Depends(get_current_user),
    service: LoyaltyService = Depends(get_service),
):
    """Upload an order number (text/plain). 202 accepted, 200 if this user already sent it."""
    if "text/plain" not in request.headers.get("content-type", ""):
        raise BadRequestError("Content-Type must be text/plain")
    body = await request.body()
    try:
        number = body.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise BadRequestError("Order number must be UTF-8 text") from e
    if not number:
        raise BadRequestError("Empty order number")
    outcome = await service.submit_order(user.id, number)
    if outcome is SubmitOutcome.ALREADY_SUBMITTED:
        return Response(status_code=status.HTTP_200_OK)
    return Response(status_code=status.HTTP_202_ACCEPTED)


@router.get("/orders")
async def list_orders(
    user: UserRecord = Depends(get_current_user),
    service: LoyaltyService = Depends(get_service),
):
    """Uploaded orders, oldest first. 204 when there are none."""
    orders = await service.list_orders(user.id)
    if not orders:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    out = []
    for o in orders:
        item = {
            "number": o.number,
            "status": o.status.value,
            "uploaded_at": o.uploaded_at.isoformat(),
        }
        if o.accrual is not None:
            item["accrual"] = float(o.accrual)
        out.append(item)
    return out
