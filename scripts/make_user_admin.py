"""
Promote an account to admin, creating it when it does not exist.
Run: python -m scripts.make_user_admin user@example.com [--password PW] [--role super_admin]
"""
import argparse
import logging
import sys

from app.db.session import SessionLocal
from app.db.models.user import User, ADMIN_ROLES
from app.core.security import hash_password
from app.services.quota_service import assign_default_plan

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def make_user_admin(db, email: str, password: str = None, role: str = "admin") -> User:
    """Set ``role`` on the account for ``email``; create it (on the default plan) if missing."""
    if role not in ADMIN_ROLES:
        raise ValueError(f"role must be one of {ADMIN_ROLES}")

    user = db.query(User).filter(User.email == email.lower()).first()
    try:
        if not user:
            if not password:
                raise ValueError(f"User {email} not found and no password provided")
            logger.info(f"Creating new user: {email}")
            user = User(
                email=email.lower(),
                full_name="Administrator",
                password_hash=hash_password(password),
            )
            db.add(user)
            db.flush()
            assign_default_plan(db, user.id, commit=False)
        else:
            logger.info(f"Found existing user: {email} (ID: {user.id})")

        user.role = role
        user.status = "active"
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(user)
    logger.info(f"User {email} now has role {role}")
    return user


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("email")
    parser.add_argument("--password", default=None)
    parser.add_argument("--role", default="admin", choices=ADMIN_ROLES)
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        make_user_admin(db, args.email, args.password, args.role)
    except Exception as e:
        logger.error(f"Error promoting user: {e}", exc_info=True)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
