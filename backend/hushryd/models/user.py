"""
User model. Riders, drivers and admins share one table; `role` separates them.
"""

from sqlalchemy import Column, String, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from hushryd.db.base import Base, TimestampMixin, new_id

ROLES = ("user", "admin", "superadmin")
ADMIN_ROLES = ("admin", "superadmin")


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="user")
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    rides = relationship("Ride", back_populates="driver")
    bookings = relationship("Booking", back_populates="user")

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin', 'superadmin')", name="check_user_role"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
