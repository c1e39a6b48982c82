from sqlalchemy.orm import Session
from typing import Optional
import logging

from models.user import User

logger = logging.getLogger(__name__)

def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    """Get user by ID"""
    return db.query(User).filter(User.id == user_id).first()

def create_user(db: Session, user_id: str, name: Optional[str] = None, phone: Optional[str] = None) -> User:
    """Create new user"""
    try:
        db_user = User(id=user_id, name=name, phone=phone)
        db.add(db_user)
        db.commit()
        db.refresh(db_user)

        logger.info(f"Created new user: {user_id}")
        return db_user

    except Exception as e:
        logger.error(f"Error creating user: {e}")
        db.rollback()
        raise e
