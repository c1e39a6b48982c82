from enum import Enum
from typing import Any, Dict, Optional, Union


class PaymeError(Enum):
    """Merchant API error codes with their default messages."""

    InvalidAmount = (-31001, "Invalid amount")
    TransactionNotFound = (-31003, "Transaction not found")
    CantDoOperation = (-31008, "Unable to perform operation")
    UserNotFound = (-31050, "User not found")
    ProductNotFound = (-31051, "Product not found")
    AlreadyDone = (-31060, "Order already paid")
    Pending = (-31061, "Order is awaiting payment")
    InvalidAuthorization = (-32504, "Insufficient privileges")
    MethodNotFound = (-32601, "Method not found")
    InvalidRequest = (-32600, "Invalid request")
    ParseError = (-32700, "Parse error")

    @property
    def code(self) -> int:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


class TransactionError(Exception):
    """Domain failure reported back to Payme as an RPC error envelope."""

    def __init__(self, error: PaymeError, request_id: Optional[Union[str, int]] = None, data: Optional[str] = None):
        super().__init__(error.message)
        self.error = error
        self.request_id = request_id
        self.data = data

    @property
    def code(self) -> int:
        return self.error.code

    def to_response(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.error.code, "message": self.error.message}
        if self.data is not None:
            error["data"] = self.data
        return {"error": error, "id": self.request_id}

    def __repr__(self) -> str:
        return f"TransactionError({self.error.name}, id={self.request_id!r}, data={self.data!r})"
