import sys
import os
from decimal import Decimal

# Add the current directory to the Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

# Import ALL models to ensure they're registered with SQLAlchemy
import app.models  # noqa: F401
from app.models.subscription import Plan, PlanType

# Now import session
from app.db.session import SessionLocal


def feature(en, hi, te, included=True):
    return {"name": {"en": en, "hi": hi, "te": te}, "included": included}


PLANS = [
    {
        "name": "free",
        "plan_type": PlanType.FREE,
        "display_name": {"en": "Free Plan", "hi": "मुफ्त योजना", "te": "ఉచిత ప్లాన్"},
        "description": {
            "en": "Basic access with limited calls for trying our service",
            "hi": "हमारी सेवा आज़माने के लिए सीमित कॉल के साथ बुनियादी पहुंच",
            "te": "మా సేవను ప్రయత్నించడానికి పరిమిత కాల్‌లతో ప్రాథమిక యాక్సెస్",
        },
        "price_monthly": Decimal("0"),
        "price_yearly": Decimal("0"),
        "features": [
            feature("10 calls per month", "प्रति माह 10 कॉल", "నెలకు 10 కాల్‌లు"),
            feature("SMS summaries", "SMS सारांश", "SMS సారాంశాలు"),
            feature("Priority support", "प्राथमिकता सहायता", "ప్రాధాన్యత మద్దతు", included=False),
        ],
        "call_limit": 10,
        "call_duration_limit": 15,
        "sms_limit": 20,
        "priority_support": False,
        "sort_order": 1,
        "plan_metadata": {"color": "#6c757d", "icon": "free-plan", "popular": False},
    },
    {
        "name": "basic",
        "plan_type": PlanType.BASIC,
        "display_name": {"en": "Basic Plan", "hi": "बेसिक प्लान", "te": "బేసిక్ ప్లాన్"},
        "description": {
            "en": "Perfect for small farmers with regular consultation needs",
            "hi": "नियमित परामर्श आवश्यकताओं वाले छोटे किसानों के लिए बिल्कुल सही",
            "te": "సాధారణ సలహా అవసరాలు ఉన్న చిన్న రైతులకు పర్ఫెక్ట్",
        },
        "price_monthly": Decimal("299"),
        "price_yearly": Decimal("2999"),
        "features": [
            feature("50 calls per month", "प्रति माह 50 कॉल", "నెలకు 50 కాల్‌లు"),
            feature("SMS summaries", "SMS सारांश", "SMS సారాంశాలు"),
            feature("Email support", "ईमेल सहायता", "ఇమెయిల్ మద్దతు"),
            feature("Priority support", "प्राथमिकता सहायता", "ప్రాధాన్యత మద్దతు", included=False),
        ],
        "call_limit": 50,
        "call_duration_limit": 30,
        "sms_limit": 100,
        "priority_support": False,
        "sort_order": 2,
        "plan_metadata": {"color": "#007bff", "icon": "basic-plan", "popular": False},
    },
    {
        "name": "premium",
        "plan_type": PlanType.PREMIUM,
        "display_name": {"en": "Premium Plan", "hi": "प्रीमियम प्लान", "te": "ప్రీమియం ప్లాన్"},
        "description": {
            "en": "Best for commercial farmers with extensive consultation needs",
            "hi": "व्यापक परामर्श आवश्यकताओं वाले वाणिज्यिक किसानों के लिए सर्वोत्तम",
            "te": "విస్తృత సలహా అవసరాలు ఉన్న వాణిజ్య రైతులకు ఉత్తమం",
        },
        "price_monthly": Decimal("599"),
        "price_yearly": Decimal("5999"),
        "features": [
            feature("Unlimited calls", "असीमित कॉल", "అపరిమిత కాల్‌లు"),
            feature("SMS summaries", "SMS सारांश", "SMS సారాంశాలు"),
            feature("Priority support", "प्राथमिकता सहायता", "ప్రాధాన్యత మద్దతు"),
            feature("Expert consultation", "विशेषज्ञ परामर्श", "నిపుణుల సలహా"),
        ],
        "call_limit": -1,  # unlimited
        "call_duration_limit": 60,
        "sms_limit": 500,
        "priority_support": True,
        "sort_order": 3,
        "plan_metadata": {"color": "#28a745", "icon": "premium-plan", "popular": True},
    },
]


def seed_plans():
    db = SessionLocal()

    try:
        for plan_data in PLANS:
            existing = db.query(Plan).filter(Plan.name == plan_data["name"]).first()
            if existing:
                print(f"Plan {plan_data['name']} already exists.")
                continue

            db.add(Plan(currency="INR", is_active=True, **plan_data))
            print(f"Added plan {plan_data['name']}.")

        db.commit()
    finally:
        db.close()
    print("Plans seeded successfully!")


if __name__ == "__main__":
    seed_plans()
