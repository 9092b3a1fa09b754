"""
Script to create a voucher from the command line
Usage: python create_voucher.py WELCOME50 --name "Welcome offer" --type percentage --value 50 \
           --max-discount 300 --min-order 100 --validity 30 --public
"""
import argparse
import sys
from datetime import datetime, timedelta
from decimal import Decimal

from app.db.session import SessionLocal
import app.models  # noqa: F401
from app.models.voucher import DiscountType, Voucher


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create a Prani Mitra voucher")
    parser.add_argument("code", help="4-20 alphanumeric characters")
    parser.add_argument("--name", required=True)
    parser.add_argument("--type", dest="discount_type", choices=[t.value for t in DiscountType], default="percentage")
    parser.add_argument("--value", type=Decimal, required=True)
    parser.add_argument("--max-discount", type=Decimal, default=None)
    parser.add_argument("--min-order", type=Decimal, default=Decimal("0"))
    parser.add_argument("--validity", type=int, default=30, help="days from now")
    parser.add_argument("--total-limit", type=int, default=None)
    parser.add_argument("--per-user-limit", type=int, default=1)
    parser.add_argument("--plans", nargs="*", default=[], help="plan ids, plan types or 'all'")
    parser.add_argument("--billing-cycles", nargs="*", default=[], choices=["monthly", "yearly"])
    parser.add_argument("--first-time-only", action="store_true")
    parser.add_argument("--public", action="store_true")
    parser.add_argument("--campaign", default=None)
    parser.add_argument("--category", default=None)
    return parser.parse_args(argv)


def create_voucher(args):
    code = args.code.strip().upper()
    if not code.isalnum() or not 4 <= len(code) <= 20:
        print("Voucher code must be 4-20 alphanumeric characters")
        sys.exit(1)
    if args.discount_type == "percentage" and args.value > 100:
        print("Percentage discount cannot exceed 100")
        sys.exit(1)

    db = SessionLocal()
    try:
        existing = db.query(Voucher).filter(Voucher.code == code).first()
        if existing:
            print(f"Voucher {code} already exists.")
            print(f"Usage: {existing.total_used}/{existing.total_limit or 'unlimited'}")
            return existing

        now = datetime.utcnow()
        voucher = Voucher(
            code=code,
            name=args.name,
            discount_type=DiscountType(args.discount_type),
            value=args.value,
            max_discount=args.max_discount,
            min_order_amount=args.min_order,
            applicable_plans=args.plans,
            billing_cycles=args.billing_cycles,
            total_limit=args.total_limit,
            per_user_limit=args.per_user_limit,
            total_used=0,
            start_date=now,
            end_date=now + timedelta(days=args.validity),
            is_active=True,
            is_public=args.public,
            first_time_user=args.first_time_only,
            campaign=args.campaign,
            category=args.category,
        )
        db.add(voucher)
        db.commit()
        db.refresh(voucher)

        print("Voucher created successfully!")
        print(f"Code: {voucher.code}")
        print(f"Type: {voucher.discount_type.value}, value {voucher.value}")
        print(f"Valid until: {voucher.end_date:%Y-%m-%d}")
        return voucher
    finally:
        db.close()


if __name__ == "__main__":
    create_voucher(parse_args())
