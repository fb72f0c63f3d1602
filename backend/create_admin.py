# create_admin.py
import os

from edurecords import crud
from edurecords.db import Base, build_engine, build_session_factory

# --- Configuration ---
# Override with ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME in the environment
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@school.org")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Administrator")

def create_first_admin():
    print("Connecting to the database...")
    engine = build_engine()
    Base.metadata.create_all(bind=engine)
    db = build_session_factory(engine)()

    try:
        if crud.get_user_by_email(db, email=ADMIN_EMAIL):
            print(f"User with email '{ADMIN_EMAIL}' already exists. Aborting.")
            return

        print("Creating new admin user...")
        crud.create_admin_user(db, email=ADMIN_EMAIL, password=ADMIN_PASSWORD, name=ADMIN_NAME)
        print(f"Admin user '{ADMIN_EMAIL}' created successfully!")
    finally:
        db.close()

if __name__ == "__main__":
    create_first_admin()
