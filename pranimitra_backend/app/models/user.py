from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base
import enum


class UserRole(enum.Enum):
    FARMER = "farmer"
    ADMIN = "admin"
    SUPPORT = "support"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    phone_number = Column(String(15), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=True)
    role = Column(SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e]), default=UserRole.FARMER, nullable=False)

    # Location, used by voucher location conditions and invoice address
    state = Column(String, nullable=True)
    district = Column(String, nullable=True)
    village = Column(String, nullable=True)
    pincode = Column(String(6), nullable=True)

    farming_types = Column(JSON, default=list)  # crops, dairy, poultry, goats, sheep, fishery, mixed
    preferred_language = Column(String, default="english")
    is_verified = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    # Call usage
    total_calls = Column(Integer, default=0)
    monthly_calls_used = Column(Integer, default=0)
    last_call_date = Column(DateTime, nullable=True)
    last_reset_date = Column(DateTime, server_default=func.now())

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    subscription = relationship("Subscription", uselist=False, back_populates="user")
    payments = relationship("Payment", back_populates="user")

    @property
    def address(self) -> dict:
        return {
            "village": self.village,
            "district": self.district,
            "state": self.state,
            "pincode": self.pincode,
            "country": "IN",
        }
