import httpx
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from config.settings import settings

logger = logging.getLogger(__name__)

CARD_METHODS = {"cards.create", "cards.get_verify_code", "cards.verify"}
RECEIPT_METHODS = {"receipts.create", "receipts.pay", "receipts.check"}

# Methods end users may reach through the card proxy; receipts.check is internal
PROXY_METHODS = CARD_METHODS | {"receipts.create", "receipts.pay"}

RECEIPT_PAID = 4
RECEIPT_CANCELLED = 50
RECEIPT_FINAL_STATES = (RECEIPT_PAID, RECEIPT_CANCELLED)


class PaymeCardClient:
    """Client for the Payme Subscribe API (card tokens and receipts)"""

    def __init__(
        self,
        merchant_id: Optional[str] = None,
        merchant_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.merchant_id = merchant_id if merchant_id is not None else settings.PAYME_MERCHANT_ID
        self.merchant_key = merchant_key if merchant_key is not None else settings.PAYME_MERCHANT_KEY
        self.api_url = api_url or settings.PAYME_API_URL
        self.timeout = timeout if timeout is not None else settings.PAYME_API_TIMEOUT
        self.transport = transport

    def auth_header(self, method: str) -> str:
        """Card calls authenticate with the merchant id alone, receipts need the key"""
        if method.startswith("receipts."):
            return f"{self.merchant_id}:{self.merchant_key}"
        return self.merchant_id

    async def call(self, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Send one JSON-RPC call and return the provider body as-is"""
        if method not in CARD_METHODS and method not in RECEIPT_METHODS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported Payme method: {method}"
            )

        payload = {"id": uuid.uuid4().hex, "method": method, "params": params}
        headers = {
            "Content-Type": "application/json",
            "X-Auth": self.auth_header(method),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Payme {method} request failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Payme API unavailable"
            )

        if response.status_code != 200:
            logger.error(f"Payme {method} failed: {response.status_code} {response.text[:500]}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Payme API error"
            )

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Payme {method} returned a non-JSON body: {response.text[:500]}")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Payme API error"
            )

        if "error" in data:
            logger.warning(f"Payme {method} returned error: {data['error']}")
        return data


def extract_receipt(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the receipt object of a successful receipts.* response"""
    result = data.get("result")
    if not isinstance(result, dict):
        return None
    receipt = result.get("receipt")
    if isinstance(receipt, dict) and receipt.get("_id"):
        return receipt
    return None


def get_card_client() -> PaymeCardClient:
    """Dependency to get the Payme card API client"""
    return PaymeCardClient()
