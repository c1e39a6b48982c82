import base64
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config.settings import settings
from core.enums import PAYME_PROVIDER, CancelReason, FiscalType, PaymeData, TransactionState
from core.errors import PaymeError, TransactionError
from crud.order import get_order_by_id
from crud.transaction import (
    create_transaction,
    get_active_transaction_for_account,
    get_transaction_by_id,
    get_transactions_by_create_time,
    update_transaction,
    update_transaction_if_state,
)
from crud.user import get_user_by_id
from db.session import get_db
from models.order import Order
from models.transaction import Transaction
from schemas.payme import (
    CancelTransactionParams,
    CheckPerformTransactionParams,
    CheckTransactionParams,
    CreateTransactionParams,
    GetStatementParams,
    PerformTransactionParams,
    SetFiscalDataParams,
)

logger = logging.getLogger(__name__)

RequestId = Optional[Union[str, int]]

SHIPPING_TITLE = "Delivery"


def current_time_ms() -> int:
    return int(time.time() * 1000)


class PaymeService:
    """Payme Merchant API state machine over the transactions table.

    Every call re-reads the stored transaction before deciding; nothing is
    cached between calls. State changes that depend on a previous read go
    through a conditional update on that state, and a lost race re-runs the
    decision against the fresh row.
    """

    def __init__(
        self,
        db: Session,
        merchant_id: Optional[str] = None,
        checkout_url: Optional[str] = None,
        timeout_minutes: Optional[int] = None,
        clock: Callable[[], int] = current_time_ms,
    ):
        self.db = db
        self.merchant_id = merchant_id if merchant_id is not None else settings.PAYME_MERCHANT_ID
        self.checkout_url = checkout_url or settings.PAYME_CHECKOUT_URL
        minutes = timeout_minutes if timeout_minutes is not None else settings.PAYME_TRANSACTION_TIMEOUT_MINUTES
        self.timeout_ms = minutes * 60 * 1000
        self.clock = clock

    # ---------------- RPC methods ----------------

    def check_perform_transaction(self, params: CheckPerformTransactionParams, request_id: RequestId) -> Dict[str, Any]:
        """Validate account and amount; return the receipt preview for Payme."""
        account = params.account

        if not account.user_id:
            raise TransactionError(PaymeError.UserNotFound, request_id, PaymeData.UserId.value)

        if not account.product_id:
            raise TransactionError(PaymeError.ProductNotFound, request_id, PaymeData.ProductId.value)

        user = get_user_by_id(self.db, account.user_id)
        if not user:
            raise TransactionError(PaymeError.UserNotFound, request_id, PaymeData.UserId.value)

        order = get_order_by_id(self.db, account.product_id)
        if not order:
            raise TransactionError(PaymeError.ProductNotFound, request_id, PaymeData.ProductId.value)

        if params.amount != order.price:
            logger.warning(f"Amount mismatch for order {order.id}: got {params.amount}, expected {order.price}")
            raise TransactionError(PaymeError.InvalidAmount, request_id)

        return self._receipt_detail(order)

    def check_transaction(self, params: CheckTransactionParams, request_id: RequestId) -> Dict[str, Any]:
        transaction = self._get_transaction(params.id, request_id)
        return self._transaction_status(transaction)

    def create_transaction(self, params: CreateTransactionParams, request_id: RequestId) -> Dict[str, Any]:
        """Create a pending transaction, or replay an existing one within its window."""
        # Payme sends tiyin; orders are priced in sum
        amount = params.amount // 100
        self.check_perform_transaction(
            CheckPerformTransactionParams(account=params.account, amount=amount), request_id
        )

        transaction = get_transaction_by_id(self.db, params.id)
        if transaction:
            return self._replay_creation(transaction, request_id)

        user_id = params.account.user_id
        product_id = params.account.product_id

        other = get_active_transaction_for_account(self.db, user_id, product_id, PAYME_PROVIDER, params.id)
        if other:
            logger.warning(f"Transaction {params.id} collides with {other.id} (state={other.state})")
            if other.state == TransactionState.Paid:
                raise TransactionError(PaymeError.AlreadyDone, request_id)
            raise TransactionError(PaymeError.Pending, request_id)

        try:
            create_transaction(
                self.db,
                id=params.id,
                state=TransactionState.Pending,
                amount=amount,
                user_id=user_id,
                product_id=product_id,
                create_time=params.time,
                provider=PAYME_PROVIDER,
                perform_time=0,
                cancel_time=0,
                reason=None,
            )
        except IntegrityError:
            # Same id inserted by a concurrent request
            transaction = get_transaction_by_id(self.db, params.id)
            if not transaction:
                raise
            return self._replay_creation(transaction, request_id)

        return {
            "transaction": params.id,
            "state": TransactionState.Pending,
            "create_time": params.time,
        }

    def perform_transaction(self, params: PerformTransactionParams, request_id: RequestId) -> Dict[str, Any]:
        transaction = self._get_transaction(params.id, request_id)

        if transaction.state != TransactionState.Pending:
            if transaction.state != TransactionState.Paid:
                raise TransactionError(PaymeError.CantDoOperation, request_id)
            return {
                "perform_time": transaction.perform_time,
                "transaction": transaction.id,
                "state": TransactionState.Paid,
            }

        now = self.clock()
        if self._is_expired(transaction, now) and not self._expire(transaction, now, request_id):
            return self.perform_transaction(params, request_id)

        changed = update_transaction_if_state(
            self.db,
            transaction.id,
            TransactionState.Pending,
            {"state": TransactionState.Paid, "perform_time": now},
        )
        if not changed:
            return self.perform_transaction(params, request_id)

        logger.info(f"Transaction {transaction.id} paid at {now}")
        return {
            "perform_time": now,
            "transaction": transaction.id,
            "state": TransactionState.Paid,
        }

    def cancel_transaction(self, params: CancelTransactionParams, request_id: RequestId) -> Dict[str, Any]:
        transaction = self._get_transaction(params.id, request_id)

        if transaction.state < 0:
            return {
                "cancel_time": transaction.cancel_time,
                "transaction": transaction.id,
                "state": transaction.state,
            }

        now = self.clock()
        cancelled = -transaction.state
        changed = update_transaction_if_state(
            self.db,
            transaction.id,
            transaction.state,
            {"state": cancelled, "reason": params.reason, "cancel_time": now},
        )
        if not changed:
            return self.cancel_transaction(params, request_id)

        logger.info(f"Transaction {transaction.id} cancelled: state={cancelled} reason={params.reason}")
        return {
            "cancel_time": now,
            "transaction": transaction.id,
            "state": cancelled,
        }

    def get_statement(self, params: GetStatementParams, request_id: RequestId) -> List[Dict[str, Any]]:
        transactions = get_transactions_by_create_time(self.db, PAYME_PROVIDER, params.from_, params.to)
        return [
            {
                "id": tx.id,
                "time": tx.create_time,
                "amount": tx.amount,
                "account": {
                    "user_id": tx.user_id,
                    "product_id": tx.product_id,
                },
                **self._transaction_status(tx),
            }
            for tx in transactions
        ]

    def set_fiscal_data(self, params: SetFiscalDataParams, request_id: RequestId) -> Dict[str, Any]:
        transaction = self._get_transaction(params.id, request_id)
        field = "fiscal_perform" if params.type == FiscalType.Perform else "fiscal_cancel"
        update_transaction(self.db, transaction.id, {field: params.fiscal_data})
        return {"success": True}

    # ---------------- Checkout ----------------

    def checkout(self, user_id: str, product_id: str, amount: int) -> str:
        """Build the hosted checkout URL for an order."""
        query = f"m={self.merchant_id};ac.user_id={user_id};ac.product_id={product_id};a={amount * 100}"
        encoded = base64.b64encode(query.encode("utf-8")).decode("ascii")
        return f"{self.checkout_url.rstrip('/')}/{encoded}"

    # ---------------- Helpers ----------------

    def _get_transaction(self, transaction_id: str, request_id: RequestId) -> Transaction:
        transaction = get_transaction_by_id(self.db, transaction_id)
        if not transaction:
            raise TransactionError(PaymeError.TransactionNotFound, request_id)
        return transaction

    def _replay_creation(self, transaction: Transaction, request_id: RequestId) -> Dict[str, Any]:
        if transaction.state != TransactionState.Pending:
            raise TransactionError(PaymeError.CantDoOperation, request_id)

        now = self.clock()
        if self._is_expired(transaction, now) and not self._expire(transaction, now, request_id):
            return self._replay_creation(self._get_transaction(transaction.id, request_id), request_id)

        return {
            "create_time": transaction.create_time,
            "transaction": transaction.id,
            "state": TransactionState.Pending,
        }

    def _is_expired(self, transaction: Transaction, now: int) -> bool:
        return now - transaction.create_time >= self.timeout_ms

    def _expire(self, transaction: Transaction, now: int, request_id: RequestId) -> bool:
        """Cancel a timed-out pending transaction.

        Returns False when the row left Pending before the update landed.
        """
        changed = update_transaction_if_state(
            self.db,
            transaction.id,
            TransactionState.Pending,
            {
                "state": TransactionState.PendingCanceled,
                "reason": CancelReason.Timeout,
                "cancel_time": now,
            },
        )
        if not changed:
            return False

        logger.info(f"Transaction {transaction.id} expired after {self.timeout_ms // 60000} minutes")
        raise TransactionError(PaymeError.CantDoOperation, request_id)

    @staticmethod
    def _transaction_status(transaction: Transaction) -> Dict[str, Any]:
        return {
            "create_time": transaction.create_time or 0,
            "perform_time": transaction.perform_time or 0,
            "cancel_time": transaction.cancel_time or 0,
            "transaction": transaction.id,
            "state": transaction.state,
            "reason": transaction.reason,
        }

    @staticmethod
    def _receipt_detail(order: Order) -> Dict[str, Any]:
        items = []
        for item in order.items or []:
            items.append({
                "discount": int(item.get("discount") or 0),
                "title": item.get("title") or item.get("name") or "",
                "price": int(item.get("price") or 0),
                "count": int(item.get("count") or item.get("quantity") or 1),
                "code": str(item.get("code") or item.get("mxik") or ""),
                "vat_percent": int(item.get("vat_percent") or 0),
                "package_code": str(item.get("package_code") or ""),
            })
        return {
            "receipt_type": 0,
            "shipping": {"title": SHIPPING_TITLE, "price": 0},
            "items": items,
        }


def get_payme_service(db: Session = Depends(get_db)) -> PaymeService:
    """Dependency to get a request-scoped Payme service"""
    return PaymeService(db)
