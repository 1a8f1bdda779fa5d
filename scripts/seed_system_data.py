"""Standalone script to create DB tables and seed system event types, questions and contract templates."""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.database import engine, SessionLocal, Base
import app.models  # noqa: F401
from app.seed import seed_system_data

if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_system_data(db)
        print("System event types, questions and contract templates seeded.")
    finally:
        db.close()
