from enum import Enum, IntEnum


class TransactionState(IntEnum):
    Pending = 1
    Paid = 2
    PendingCanceled = -1
    PaidCanceled = -2


class PaymeMethod(str, Enum):
    CheckPerformTransaction = "CheckPerformTransaction"
    CheckTransaction = "CheckTransaction"
    CreateTransaction = "CreateTransaction"
    PerformTransaction = "PerformTransaction"
    CancelTransaction = "CancelTransaction"
    GetStatement = "GetStatement"
    SetFiscalData = "SetFiscalData"


class PaymeData(str, Enum):
    UserId = "user_id"
    ProductId = "product_id"


class CancelReason(IntEnum):
    Timeout = 4


class FiscalType(str, Enum):
    Perform = "PERFORM"
    Cancel = "CANCEL"


PAYME_PROVIDER = "payme"
