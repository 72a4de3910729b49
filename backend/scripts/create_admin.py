from __future__ import annotations

import argparse
import getpass
import sys
from pathlib import Path

# Allow running as `python scripts/create_admin.py` from backend/.
sys.path.append(str(Path(__file__).resolve().parents[1]))

from sqlalchemy import or_, select

from quizhub.core.security import hash_password, password_problem
from quizhub.db import session as db_session
from quizhub.models.user import User, UserRole


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or promote a QuizHub administrator.")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", default=None, help="prompted for when omitted")
    args = parser.parse_args()

    password = args.password or getpass.getpass("Password: ")
    problem = password_problem(password)
    if problem:
        print(problem, file=sys.stderr)
        return 2

    db_session.init_db()
    with db_session.SessionLocal() as db:
        email = args.email.strip().lower()
        user = db.scalar(select(User).where(or_(User.username == args.username, User.email == email)))
        if user is None:
            user = User(username=args.username, email=email, role=UserRole.admin, password_hash=hash_password(password))
            db.add(user)
            action = "created"
        else:
            user.role = UserRole.admin
            user.password_hash = hash_password(password)
            action = "promoted"
        db.commit()
        print(f"admin {user.username} {action} ({user.id})")
    db_session.shutdown_db()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
