"""
Create a test photographer account with one client.
Use it to log in and try the client space without registering.

Run from project root:
  python scripts/create_test_user.py

Credentials are printed at the end.
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.database import SessionLocal
from app.models.client import Client
from app.models.user import User
from app.services.auth import get_password_hash

# Default credentials (change if you want)
PHOTOGRAPHER_EMAIL = "photographer@lumina.demo"
PHOTOGRAPHER_PASSWORD = "Password123!"
PHOTOGRAPHER_BUSINESS = "Lumina Demo Studio"

CLIENT_NAME = "Alice Martin"
CLIENT_EMAIL = "alice@lumina.demo"


def main():
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == PHOTOGRAPHER_EMAIL).first()
        if user:
            print(f"Photographer already exists: {PHOTOGRAPHER_EMAIL}")
        else:
            user = User(
                email=PHOTOGRAPHER_EMAIL,
                hashed_password=get_password_hash(PHOTOGRAPHER_PASSWORD),
                full_name="Demo Photographer",
                business_name=PHOTOGRAPHER_BUSINESS,
                address="1 rue de la Paix",
                postal_code="75002",
                city="Paris",
                siret="12345678900012",
            )
            db.add(user)
            db.flush()
            print(f"Created photographer: {PHOTOGRAPHER_EMAIL}")

        if not db.query(Client).filter(Client.user_id == user.id, Client.email == CLIENT_EMAIL).first():
            db.add(Client(user_id=user.id, name=CLIENT_NAME, email=CLIENT_EMAIL))
            print(f"Created client: {CLIENT_NAME}")
        db.commit()
    finally:
        db.close()

    print()
    print(f"  Email:    {PHOTOGRAPHER_EMAIL}")
    print(f"  Password: {PHOTOGRAPHER_PASSWORD}")


if __name__ == "__main__":
    main()
