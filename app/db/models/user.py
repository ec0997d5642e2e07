from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    password_hash = Column(String, nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    email_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    kyc_verified = Column(Boolean, nullable=False, default=False)

    # Moderation; a null expiry means indefinite
    is_banned = Column(Boolean, nullable=False, default=False)
    banned_until = Column(DateTime, nullable=True)
    ban_reason = Column(Text, nullable=True)
    is_muted = Column(Boolean, nullable=False, default=False)
    muted_until = Column(DateTime, nullable=True)
    mute_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationship
    role = relationship("Role", backref="users")
