from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    property_id = Column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    conversation_id = Column(Integer, nullable=True, index=True)

    # Terms
    monthly_rent = Column(Numeric(10, 2), nullable=False)
    charges = Column(Numeric(10, 2), nullable=False, default=0)
    deposit_amount = Column(Numeric(10, 2), nullable=False)
    platform_commission = Column(Numeric(10, 2), nullable=False)
    owner_payout = Column(Numeric(10, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_editable = Column(Boolean, nullable=False, default=False)

    # Signatures
    owner_signature = Column(Text, nullable=True)
    owner_signed_at = Column(DateTime, nullable=True)
    student_signature = Column(Text, nullable=True)
    student_signed_at = Column(DateTime, nullable=True)

    # Payment linkage
    stripe_subscription_id = Column(String(255), nullable=True, unique=True)
    deposit_payment_ref = Column(String(255), nullable=True)
    subscription_unlink_pending = Column(Boolean, nullable=False, default=False)

    # Lifecycle
    status = Column(String(20), nullable=False, default="pending", index=True)
    activated_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    property = relationship("Property", backref="contracts")
    owner = relationship("User", foreign_keys=[owner_id])
    student = relationship("User", foreign_keys=[student_id])
