from sqlalchemy import Column, Integer, String, BigInteger, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from db.base import Base

class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(String(64), primary_key=True, index=True)  # Payme receipt _id
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(String(64), nullable=True)
    amount = Column(BigInteger, nullable=False, default=0)
    state = Column(Integer, nullable=False, default=0, index=True)  # 0 created, 4 paid, 50 cancelled
    payload = Column(JSON, nullable=True)  # last receipt object seen from Payme
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="receipts")
