from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base


class Property(Base):
    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    city_name = Column(String(255), nullable=True)
    address = Column(String(500), nullable=True)
    monthly_rent = Column(Numeric(10, 2), nullable=False)
    charges = Column(Numeric(10, 2), nullable=False, default=0)
    # available | pending | rented
    status = Column(String(20), nullable=False, default="available")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    owner = relationship("User", backref="properties")
