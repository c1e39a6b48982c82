from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, Optional
import logging

from models.receipt import Receipt

logger = logging.getLogger(__name__)

def _account_value(account: Any, name: str) -> Optional[str]:
    # Receipts echo the account either as a mapping or as [{"name", "value"}, ...]
    if isinstance(account, dict):
        value = account.get(name)
    elif isinstance(account, list):
        value = next((a.get("value") for a in account if isinstance(a, dict) and a.get("name") == name), None)
    else:
        value = None
    return str(value) if value is not None else None

def get_receipt_by_id(db: Session, receipt_id: str) -> Optional[Receipt]:
    """Get receipt by ID"""
    return db.query(Receipt).filter(Receipt.id == receipt_id).first()

def get_receipts_by_user(db: Session, user_id: str) -> List[Receipt]:
    """Get receipts by user ID"""
    return db.query(Receipt).filter(Receipt.user_id == user_id).all()

def get_unsettled_receipts(db: Session, final_states: Iterable[int]) -> List[Receipt]:
    """Get receipts still waiting for a final state"""
    return db.query(Receipt).filter(Receipt.state.notin_(list(final_states))).all()

def save_receipt(db: Session, user_id: str, receipt: Dict[str, Any]) -> Receipt:
    """Insert or refresh a receipt from a Payme receipt object"""
    try:
        receipt_id = str(receipt["_id"])
        db_receipt = get_receipt_by_id(db, receipt_id)
        if not db_receipt:
            db_receipt = Receipt(id=receipt_id, user_id=user_id)
            db.add(db_receipt)

        db_receipt.amount = receipt.get("amount", db_receipt.amount or 0)
        db_receipt.state = receipt.get("state", db_receipt.state or 0)
        db_receipt.order_id = _account_value(receipt.get("account"), "product_id") or db_receipt.order_id
        db_receipt.payload = receipt

        db.commit()
        db.refresh(db_receipt)

        logger.info(f"Saved receipt {receipt_id} for user {user_id} (state={db_receipt.state})")
        return db_receipt

    except Exception as e:
        logger.error(f"Error saving receipt: {e}")
        db.rollback()
        raise e
