"""Print a bearer token for an existing portal user.

Usage:
    python -m carebook.issue_token user@example.com
"""
import sys

from carebook.auth.jwt_handler import create_access_token
from carebook.database import SessionLocal
from carebook.models.user import User


def issue_token(db, email: str) -> str:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        raise LookupError(f"No user with email {email!r}")
    return create_access_token(subject=user.email, role=user.role)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("Usage: python -m carebook.issue_token EMAIL", file=sys.stderr)
        return 2

    db = SessionLocal()
    try:
        token = issue_token(db, args[0])
    except LookupError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        db.close()

    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
