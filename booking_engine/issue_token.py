"""Print a bearer token for an existing user.

Usage:
    python -m booking_engine.issue_token <user_id> [expires_minutes]
"""
import sys

from booking_engine.auth.jwt_handler import create_access_token
from booking_engine.database import SessionLocal
from booking_engine.models import appointment, pet, provider, reminder  # noqa: F401
from booking_engine.scheduling.directory import get_user


def main() -> None:
    if len(sys.argv) < 2 or not sys.argv[1].isdigit():
        print("Usage: python -m booking_engine.issue_token <user_id> [expires_minutes]", file=sys.stderr)
        sys.exit(2)

    expires_minutes = int(sys.argv[2]) if len(sys.argv) > 2 else None

    db = SessionLocal()
    try:
        user = get_user(db, int(sys.argv[1]))
    finally:
        db.close()

    if user is None:
        print(f"User {sys.argv[1]} not found", file=sys.stderr)
        sys.exit(1)

    print(create_access_token(subject=user.id, expires_minutes=expires_minutes))


if __name__ == "__main__":
    main()
