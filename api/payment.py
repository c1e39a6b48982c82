from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.card import PROXY_METHODS, PaymeCardClient, extract_receipt, get_card_client
from core.payme import PaymeService, get_payme_service
from crud.receipt import save_receipt
from db.session import get_db
from models.user import User
from schemas.payment import CardRequestIn, CheckoutIn, CheckoutOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payment", tags=["payment"])

@router.post("/checkout", response_model=CheckoutOut, summary="Build a Payme hosted checkout URL")
async def checkout(
    data: CheckoutIn,
    current_user: User = Depends(get_current_user),
    service: PaymeService = Depends(get_payme_service)
):
    url = service.checkout(current_user.id, data.product_id, data.amount)
    logger.info(f"Checkout URL issued for user {current_user.id}, order {data.product_id}")
    return {"url": url}

@router.post("/card", summary="Proxy card tokenization and receipt calls to Payme")
async def card(
    data: CardRequestIn,
    current_user: User = Depends(get_current_user),
    client: PaymeCardClient = Depends(get_card_client),
    db: Session = Depends(get_db)
):
    if data.method not in PROXY_METHODS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported method: {data.method}"
        )

    result = await client.call(data.method, data.params)

    if data.method in ("receipts.create", "receipts.pay"):
        receipt = extract_receipt(result)
        if receipt:
            save_receipt(db, current_user.id, receipt)

    return result
