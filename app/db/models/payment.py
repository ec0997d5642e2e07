from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)
    # monthly_rent | deposit
    payment_type = Column(String(20), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    platform_fee = Column(Numeric(10, 2), nullable=False, default=0)
    owner_payout = Column(Numeric(10, 2), nullable=False, default=0)
    # pending | succeeded | failed
    payment_status = Column(String(20), nullable=False, default="pending")
    provider_ref = Column(String(255), nullable=False, unique=True)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    paid_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    contract = relationship("Contract", backref="payments")

    __table_args__ = (
        Index(
            "uq_payments_one_succeeded_deposit",
            "contract_id",
            unique=True,
            sqlite_where=text("payment_type = 'deposit' AND payment_status = 'succeeded'"),
            postgresql_where=text("payment_type = 'deposit' AND payment_status = 'succeeded'"),
        ),
    )
