"""
Script to create an admin user in the database and print an access token
Usage: python create_admin.py
"""
from sqlalchemy.orm import Session
from app.db.session import SessionLocal
import app.models  # noqa: F401
from app.models.user import User, UserRole
from app.core.security import create_user_token
import sys


def create_admin_user(phone_number: str, name: str, email: str = None):
    """Create an admin user, or promote an existing one"""
    db: Session = SessionLocal()

    try:
        user = db.query(User).filter(User.phone_number == phone_number).first()
        if user:
            print(f"User with phone number {phone_number} already exists.")

            # Update to admin if not already
            if user.role != UserRole.ADMIN:
                user.role = UserRole.ADMIN
                db.commit()
                print(f"User {phone_number} has been upgraded to admin.")
            else:
                print(f"User {phone_number} is already an admin.")
        else:
            user = User(
                phone_number=phone_number,
                name=name,
                email=email or None,
                role=UserRole.ADMIN,
                is_verified=True,
                is_active=True,
            )
            db.add(user)
            db.commit()
            db.refresh(user)

            print("Admin user created successfully!")
            print(f"Phone: {phone_number}")
            print(f"Name: {name}")

        print(f"Role: {user.role.value}")
        print(f"Access token: {create_user_token(user)}")

    except Exception as e:
        print(f"Error creating admin user: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    print("=== Create Admin User ===")

    phone_number = input("Enter admin phone number: ").strip()
    name = input("Enter admin name: ").strip()
    email = input("Enter admin email (optional): ").strip()

    if not phone_number or not name:
        print("Phone number and name are required!")
        sys.exit(1)

    create_admin_user(phone_number, name, email)
