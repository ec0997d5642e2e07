from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import backref, relationship

from app.core.clock import utcnow
from app.db.base import Base


class OwnerPaymentAccount(Base):
    """Payout account an owner holds at the payment processor."""

    __tablename__ = "owner_payment_accounts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    stripe_account_id = Column(String(255), nullable=False, unique=True)
    onboarding_complete = Column(Boolean, nullable=False, default=False)
    payouts_enabled = Column(Boolean, nullable=False, default=False)
    charges_enabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", backref=backref("payment_account", uselist=False))
