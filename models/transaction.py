from sqlalchemy import Column, Integer, String, BigInteger, JSON, Index
from db.base import Base

class Transaction(Base):
    """Payment attempt record, keyed by the provider's transaction id.

    ``state`` is signed: the magnitude is the phase reached (1 pending,
    2 paid) and a negative sign marks cancellation. Timestamps are epoch
    milliseconds, ``0`` until the corresponding event happens.
    """
    __tablename__ = "transactions"

    id = Column(String(64), primary_key=True, index=True)
    state = Column(Integer, nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    user_id = Column("user", String(64), nullable=False)
    product_id = Column("product", String(64), nullable=False)
    provider = Column(String(32), nullable=False, default="payme")
    create_time = Column(BigInteger, nullable=False, index=True)
    perform_time = Column(BigInteger, nullable=False, default=0)
    cancel_time = Column(BigInteger, nullable=False, default=0)
    reason = Column(Integer, nullable=True)
    fiscal_perform = Column(JSON, nullable=True)
    fiscal_cancel = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_transactions_account", "user", "product", "provider"),
    )
