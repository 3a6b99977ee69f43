import sys

from constructpm.db.session import SessionLocal, engine
from constructpm.db.base import Base
from constructpm.db.models.organization import Organization
from constructpm.db.models.user import User
from constructpm.core.permissions import ADMIN, ROLES
from constructpm.core.security import get_password_hash

def create_initial_data(email="admin@example.com", password="admin123", org_name="Demo Construction"):
    # Create Tables
    print("Creating tables...")
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        admin = db.query(User).filter(User.email == email).first()
        if admin:
            print(f"User {email} already exists.")
            return

        org = Organization(name=org_name)
        db.add(org)
        db.flush()

        print(f"Creating admin user {email} in '{org_name}'...")
        admin = User(
            organization_id=org.id,
            email=email,
            hashed_password=get_password_hash(password),
            full_name="Admin User",
            role=ADMIN
        )
        db.add(admin)

        # One demo login per remaining role, same organization
        for role in ROLES[1:]:
            demo_email = f"{role.lower()}@example.com"
            if db.query(User).filter(User.email == demo_email).first():
                continue
            db.add(User(
                organization_id=org.id,
                email=demo_email,
                hashed_password=get_password_hash(f"{role.lower()}123"),
                full_name=role.replace("_", " ").title(),
                role=role
            ))
        db.commit()
        print("Users created.")
    finally:
        db.close()

if __name__ == "__main__":
    create_initial_data(*sys.argv[1:4])
