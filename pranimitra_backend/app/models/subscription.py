from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum, Boolean, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base
from sqlalchemy import JSON
import enum

LANGUAGE_CODES = {"english": "en", "hindi": "hi", "telugu": "te"}


class PlanType(enum.Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(enum.Enum):
    FREE = "free"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    plan_type = Column(SQLEnum(PlanType, values_callable=lambda e: [m.value for m in e]), nullable=False)
    display_name = Column(JSON, nullable=False)  # {"en": ..., "hi": ..., "te": ...}
    description = Column(JSON, nullable=True)
    price_monthly = Column(Numeric(10, 2), nullable=False)
    price_yearly = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, default="INR")
    features = Column(JSON, default=list)  # [{"name": {"en": ...}, "included": true}]

    # Limits
    call_limit = Column(Integer, nullable=False, default=0)
    call_duration_limit = Column(Integer, default=30)  # minutes
    sms_limit = Column(Integer, default=100)
    priority_support = Column(Boolean, default=False)

    is_active = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    plan_metadata = Column("metadata", JSON, nullable=True)  # color, icon, badge, popular
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    subscriptions = relationship("Subscription", back_populates="plan")

    def price_for(self, billing_cycle):
        cycle = getattr(billing_cycle, "value", billing_cycle)
        return self.price_yearly if cycle == "yearly" else self.price_monthly

    @property
    def yearly_discount(self) -> int:
        """Percent saved by paying yearly instead of twelve monthly payments."""
        monthly_total = float(self.price_monthly or 0) * 12
        if not monthly_total:
            return 0
        return round((monthly_total - float(self.price_yearly or 0)) / monthly_total * 100)

    def localized_details(self, language: str = "english") -> dict:
        lang = LANGUAGE_CODES.get(language, language if language in ("en", "hi", "te") else "en")

        def pick(text):
            if not isinstance(text, dict):
                return text
            return text.get(lang) or text.get("en")

        return {
            "id": self.id,
            "name": self.name,
            "display_name": pick(self.display_name),
            "description": pick(self.description),
            "price": {"monthly": float(self.price_monthly), "yearly": float(self.price_yearly)},
            "currency": self.currency,
            "features": [
                {"name": pick(feature.get("name")), "included": feature.get("included", True)}
                for feature in (self.features or [])
            ],
            "limits": {
                "call_limit": self.call_limit,
                "call_duration_limit": self.call_duration_limit,
                "sms_limit": self.sms_limit,
                "priority_support": self.priority_support,
            },
            "plan_type": self.plan_type.value,
            "metadata": self.plan_metadata or {},
            "yearly_discount": self.yearly_discount,
        }


class Subscription(Base):
    """The user's current entitlement, overwritten on every successful payment."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True)
    status = Column(
        SQLEnum(SubscriptionStatus, values_callable=lambda e: [m.value for m in e]),
        default=SubscriptionStatus.FREE,
        nullable=False,
    )
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    auto_renewal = Column(Boolean, default=False)
    last_payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="subscription")
    plan = relationship("Plan", back_populates="subscriptions")
