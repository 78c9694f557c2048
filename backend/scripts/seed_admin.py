#!/usr/bin/env python3
"""
Staff User Seed Script
Creates an ADMIN or STAFF user for the retention console.

Usage:
    python -m scripts.seed_admin <email> <password> [ADMIN|STAFF] [first_name] [last_name]

Example:
    python -m scripts.seed_admin admin@gym.example securepassword123 ADMIN Dana Reyes
"""
import sys
import os
from uuid import uuid4

# Add the parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from app.database import SessionLocal, engine, Base
from app.models.db_models import UserDB, UserRole, UserStatus, ASSIGNABLE_ROLES
from app.auth import hash_password


def create_staff_user(
    email: str,
    password: str,
    role: UserRole = UserRole.ADMIN,
    first_name: str = "",
    last_name: str = "",
) -> bool:
    """Create an ADMIN or STAFF user in the database."""
    # Ensure tables exist
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()
    try:
        existing = db.query(UserDB).filter(UserDB.email == email).first()

        if existing:
            if existing.role == role:
                print(f"Error: User '{email}' already exists with role {role.value}.")
                return False
            # Promote existing user
            existing.role = role
            existing.status = UserStatus.ACTIVE
            db.commit()
            print(f"Updated existing user '{email}' to {role.value} role.")
            return True

        user = UserDB(
            id=str(uuid4()),
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            status=UserStatus.ACTIVE,
        )

        db.add(user)
        db.commit()

        print("User created successfully!")
        print(f"  Email: {email}")
        print(f"  Role: {role.value}")
        return True

    except Exception as e:
        print(f"Error creating user: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    if len(sys.argv) < 3 or len(sys.argv) > 6:
        print(__doc__)
        sys.exit(1)

    email = sys.argv[1]
    password = sys.argv[2]
    role_name = sys.argv[3].upper() if len(sys.argv) > 3 else UserRole.ADMIN.value
    first_name = sys.argv[4] if len(sys.argv) > 4 else ""
    last_name = sys.argv[5] if len(sys.argv) > 5 else ""

    # Basic validation
    if len(password) < 8:
        print("Error: Password must be at least 8 characters.")
        sys.exit(1)

    if "@" not in email:
        print("Error: Invalid email format.")
        sys.exit(1)

    try:
        role = UserRole(role_name)
    except ValueError:
        role = None
    if role not in ASSIGNABLE_ROLES:
        print("Error: Role must be ADMIN or STAFF.")
        sys.exit(1)

    success = create_staff_user(email, password, role, first_name, last_name)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
