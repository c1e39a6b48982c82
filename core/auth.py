import base64
import binascii
import json
import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from config.settings import settings
from core.errors import PaymeError, TransactionError
from crud.user import get_user_by_id
from db.session import get_db
from models.user import User
from utilities.jwt import verify_jwt_token

logger = logging.getLogger(__name__)
security = HTTPBearer()

async def _rpc_request_id(request: Request) -> Optional[Any]:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body.get("id") if isinstance(body, dict) else None

def _decode_token(token: str) -> Optional[str]:
    try:
        return base64.b64decode(token, validate=False).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return None

def is_valid_merchant_token(auth_header: Optional[str], merchant_key: str) -> bool:
    """Check a ``<scheme> base64(login:key)`` header against the merchant key"""
    if not auth_header or not merchant_key:
        return False
    parts = auth_header.split(" ")
    if len(parts) < 2 or not parts[1]:
        return False
    data = _decode_token(parts[1])
    return data is not None and merchant_key in data

async def payme_check_token(request: Request) -> None:
    """Reject Payme RPC calls that do not carry the merchant key"""
    request_id = await _rpc_request_id(request)
    if not is_valid_merchant_token(request.headers.get("authorization"), settings.PAYME_MERCHANT_KEY):
        logger.warning(f"Payme authorization failed for request id={request_id}")
        raise TransactionError(PaymeError.InvalidAuthorization, request_id)

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    payload = verify_jwt_token(credentials.credentials)

    if not payload or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials"
        )

    user = get_user_by_id(db, str(user_id))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    return user
