from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Numeric, Boolean, JSON,
    UniqueConstraint, CheckConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base
import enum


class DiscountType(enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_TRIAL = "free_trial"


class Voucher(Base):
    __tablename__ = "vouchers"
    __table_args__ = (
        CheckConstraint("total_limit IS NULL OR total_used <= total_limit", name="ck_vouchers_total_used"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, index=True, nullable=False)  # always stored upper-case
    name = Column(String, nullable=False)
    description = Column(JSON, nullable=True)  # {"en": ..., "hi": ..., "te": ...}

    discount_type = Column(SQLEnum(DiscountType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    max_discount = Column(Numeric(10, 2), nullable=True)
    min_order_amount = Column(Numeric(10, 2), default=0, nullable=False)

    # Applicability; an empty list means no restriction
    applicable_plans = Column(JSON, default=list)  # plan ids, plan types, or "all"
    billing_cycles = Column(JSON, default=list)

    # Usage caps and counters
    total_limit = Column(Integer, nullable=True)  # None = unlimited
    per_user_limit = Column(Integer, default=1, nullable=False)
    total_used = Column(Integer, default=0, nullable=False)

    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, index=True)
    is_public = Column(Boolean, default=False)

    # Conditions
    first_time_user = Column(Boolean, default=False)
    user_types = Column(JSON, default=list)
    locations = Column(JSON, default=list)  # [{"state": ..., "districts": [...]}]
    farming_types = Column(JSON, default=list)

    campaign = Column(String, nullable=True)
    category = Column(String, nullable=True)  # welcome, seasonal, loyalty, referral, festival, special
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    usages = relationship("VoucherUsage", back_populates="voucher", cascade="all, delete-orphan")

    @property
    def remaining_usage(self):
        if self.total_limit is None:
            return None
        return max(0, self.total_limit - (self.total_used or 0))

    @property
    def usage_percentage(self) -> int:
        if not self.total_limit:
            return 0
        return round((self.total_used or 0) / self.total_limit * 100)


class VoucherUsage(Base):
    """Per-user redemption ledger entry for a voucher."""

    __tablename__ = "voucher_usages"
    __table_args__ = (UniqueConstraint("voucher_id", "user_id", name="uq_voucher_usage_user"),)

    id = Column(Integer, primary_key=True, index=True)
    voucher_id = Column(Integer, ForeignKey("vouchers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    used_count = Column(Integer, default=0, nullable=False)
    last_used = Column(DateTime, nullable=True)

    voucher = relationship("Voucher", back_populates="usages")
