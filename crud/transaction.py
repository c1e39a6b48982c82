from sqlalchemy import update
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional, List
import logging

from core.enums import TransactionState
from models.transaction import Transaction

logger = logging.getLogger(__name__)

def get_transaction_by_id(db: Session, transaction_id: str) -> Optional[Transaction]:
    """Get transaction by ID"""
    return db.query(Transaction).filter(Transaction.id == transaction_id).first()

def create_transaction(db: Session, **fields: Any) -> Transaction:
    """Create new transaction"""
    try:
        db_transaction = Transaction(**fields)
        db.add(db_transaction)
        db.commit()
        db.refresh(db_transaction)

        logger.info(f"Created new transaction: {db_transaction.id}")
        return db_transaction

    except Exception as e:
        logger.error(f"Error creating transaction: {e}")
        db.rollback()
        raise e

def update_transaction_if_state(db: Session, transaction_id: str, expected_state: int, values: Dict[str, Any]) -> bool:
    """Update transaction only while it is still in ``expected_state``.

    Returns False when another request changed the state first.
    """
    try:
        result = db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.state == expected_state)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        changed = result.rowcount == 1
        db.commit()
    except Exception as e:
        logger.error(f"Error updating transaction {transaction_id}: {e}")
        db.rollback()
        raise e

    # Drop cached instances so the next read sees the stored row
    db.expire_all()
    return changed

def update_transaction(db: Session, transaction_id: str, values: Dict[str, Any]) -> Optional[Transaction]:
    """Update transaction fields unconditionally"""
    try:
        transaction = get_transaction_by_id(db, transaction_id)
        if not transaction:
            return None

        for field, value in values.items():
            setattr(transaction, field, value)

        db.commit()
        db.refresh(transaction)

        logger.info(f"Updated transaction {transaction_id}")
        return transaction

    except Exception as e:
        logger.error(f"Error updating transaction: {e}")
        db.rollback()
        raise e

def get_active_transaction_for_account(
    db: Session, user_id: str, product_id: str, provider: str, exclude_id: str
) -> Optional[Transaction]:
    """Get another pending or paid transaction for the same user and product.

    Paid transactions win over pending ones when both exist.
    """
    return (
        db.query(Transaction)
        .filter(
            Transaction.user_id == user_id,
            Transaction.product_id == product_id,
            Transaction.provider == provider,
            Transaction.id != exclude_id,
            Transaction.state.in_([TransactionState.Pending, TransactionState.Paid]),
        )
        .order_by(Transaction.state.desc(), Transaction.create_time)
        .first()
    )

def get_transactions_by_create_time(db: Session, provider: str, time_from: int, time_to: int) -> List[Transaction]:
    """Get provider transactions created within [time_from, time_to]"""
    return (
        db.query(Transaction)
        .filter(
            Transaction.provider == provider,
            Transaction.create_time >= time_from,
            Transaction.create_time <= time_to,
        )
        .order_by(Transaction.create_time)
        .all()
    )
