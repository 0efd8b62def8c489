from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.sql import func

from tradespark.core.database import Base


class OrderStatus:
    PENDING = "PENDING"
    VERIFYING = "VERIFYING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


# PENDING ORDER

class PendingOrder(Base):
    """A deposit handed to the payment gateway and awaiting the return URL."""

    __tablename__ = "pending_orders"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(String, unique=True, index=True, nullable=False)
    auth_id = Column(String, index=True, nullable=False)
    user_id = Column(String, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String, nullable=False)
    checkout_url = Column(String, nullable=False)

    status = Column(String, default=OrderStatus.PENDING, nullable=False)
    gateway_status = Column(String, nullable=True)
    verified = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    verified_at = Column(DateTime(timezone=True), nullable=True)
