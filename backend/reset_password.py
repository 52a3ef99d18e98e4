# reset_password.py: reset a password and optionally promote to admin
import sys

from dotenv import load_dotenv

load_dotenv()

from spentiva.db import models  # noqa: E402
from spentiva.db.session import SessionLocal  # noqa: E402
from spentiva.services.security import hash_password  # noqa: E402


def reset_password(email: str, new_password: str, make_admin: bool = False):
    db = SessionLocal()
    try:
        user = db.query(models.User).filter(models.User.email == email.strip().lower()).first()
        if not user:
            print("User not found:", email)
            return 1
        user.hashed_password = hash_password(new_password)
        if make_admin:
            user.role = models.UserRole.admin
        db.add(user)
        db.commit()
        print(f"Password reset for {email}" + (" (now admin)" if make_admin else ""))
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a != "--admin"]
    if len(args) < 2:
        print("Usage: python reset_password.py <email> <new_password> [--admin]")
        sys.exit(2)
    sys.exit(reset_password(args[0], args[1], make_admin="--admin" in sys.argv[1:]))
