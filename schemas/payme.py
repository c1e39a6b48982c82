import math
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.enums import FiscalType


def _floor_amount(value: Any) -> Any:
    if isinstance(value, float):
        return math.floor(value)
    return value


class Account(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    user_id: Optional[str] = None
    product_id: Optional[str] = None


class CheckPerformTransactionParams(BaseModel):
    account: Account
    amount: int

    @field_validator("amount", mode="before")
    @classmethod
    def floor_amount(cls, value: Any) -> Any:
        return _floor_amount(value)


class CheckTransactionParams(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str


class CreateTransactionParams(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    time: int
    amount: int
    account: Account

    @field_validator("amount", mode="before")
    @classmethod
    def floor_amount(cls, value: Any) -> Any:
        return _floor_amount(value)


class PerformTransactionParams(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str


class CancelTransactionParams(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    reason: Optional[int] = None


class GetStatementParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: int = Field(alias="from")
    to: int


class SetFiscalDataParams(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    type: FiscalType
    fiscal_data: Dict[str, Any]


class RPCRequest(BaseModel):
    """JSON-RPC envelope sent by Payme"""
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)
    id: Optional[Any] = None
