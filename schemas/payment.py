from typing import Any, Dict
from pydantic import BaseModel, ConfigDict, Field


class CheckoutIn(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    product_id: str
    amount: int = Field(gt=0)


class CheckoutOut(BaseModel):
    url: str


class CardRequestIn(BaseModel):
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)
