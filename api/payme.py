from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ValidationError
import json
import logging
from typing import Any, Callable, Dict, Tuple, Type

from core.auth import payme_check_token
from core.enums import PaymeMethod
from core.errors import PaymeError, TransactionError
from core.payme import PaymeService, get_payme_service
from schemas.payme import (
    RPCRequest,
    CancelTransactionParams,
    CheckPerformTransactionParams,
    CheckTransactionParams,
    CreateTransactionParams,
    GetStatementParams,
    PerformTransactionParams,
    SetFiscalDataParams,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payme", tags=["payme"])

Handler = Callable[[PaymeService, Any, Any], Any]

METHODS: Dict[PaymeMethod, Tuple[Type[BaseModel], Handler]] = {
    PaymeMethod.CheckPerformTransaction: (CheckPerformTransactionParams, PaymeService.check_perform_transaction),
    PaymeMethod.CheckTransaction: (CheckTransactionParams, PaymeService.check_transaction),
    PaymeMethod.CreateTransaction: (CreateTransactionParams, PaymeService.create_transaction),
    PaymeMethod.PerformTransaction: (PerformTransactionParams, PaymeService.perform_transaction),
    PaymeMethod.CancelTransaction: (CancelTransactionParams, PaymeService.cancel_transaction),
    PaymeMethod.GetStatement: (GetStatementParams, PaymeService.get_statement),
    PaymeMethod.SetFiscalData: (SetFiscalDataParams, PaymeService.set_fiscal_data),
}

async def _read_rpc_request(request: Request) -> RPCRequest:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise TransactionError(PaymeError.ParseError)

    if not isinstance(body, dict):
        raise TransactionError(PaymeError.InvalidRequest)

    try:
        return RPCRequest.model_validate(body)
    except ValidationError:
        raise TransactionError(PaymeError.InvalidRequest, body.get("id"))

def _first_error_field(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return ""
    return ".".join(str(part) for part in errors[0].get("loc", ()))

def _wrap_result(method: PaymeMethod, result: Any) -> Any:
    if method == PaymeMethod.CheckPerformTransaction:
        return {"allow": True, "detail": result}
    if method == PaymeMethod.GetStatement:
        return {"transactions": result}
    return result

@router.post("", dependencies=[Depends(payme_check_token)], summary="Payme Merchant API endpoint")
async def payme(request: Request, service: PaymeService = Depends(get_payme_service)):
    """Dispatch a Payme JSON-RPC call to the transaction service"""
    rpc = await _read_rpc_request(request)

    try:
        method = PaymeMethod(rpc.method)
    except ValueError:
        logger.warning(f"Unknown Payme method: {rpc.method}")
        raise TransactionError(PaymeError.MethodNotFound, rpc.id, rpc.method)

    params_model, handler = METHODS[method]
    try:
        params = params_model.model_validate(rpc.params)
    except ValidationError as e:
        raise TransactionError(PaymeError.InvalidRequest, rpc.id, _first_error_field(e))

    logger.info(f"Payme {method.value} id={rpc.id}")
    result = handler(service, params, rpc.id)
    return {"result": _wrap_result(method, result), "id": rpc.id}
