from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging

from models.order import Order

logger = logging.getLogger(__name__)

def get_order_by_id(db: Session, order_id: str) -> Optional[Order]:
    """Get order by ID"""
    return db.query(Order).filter(Order.id == order_id).first()

def create_order(db: Session, order_id: str, price: int, items: List[Dict[str, Any]], user_id: Optional[str] = None) -> Order:
    """Create new order"""
    try:
        db_order = Order(id=order_id, user_id=user_id, price=price, items=items)
        db.add(db_order)
        db.commit()
        db.refresh(db_order)

        logger.info(f"Created new order: {order_id}")
        return db_order

    except Exception as e:
        logger.error(f"Error creating order: {e}")
        db.rollback()
        raise e
