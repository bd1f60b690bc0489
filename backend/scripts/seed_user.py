#!/usr/bin/env python
"""Create a user (and optionally an empty portfolio).

Usage:
    python -m scripts.seed_user
    python -m scripts.seed_user --email me@example.com --name Me --portfolio "Long term"
"""

import argparse

from config import settings
from database import Base, get_engine, get_session_local
from models import Portfolio, User


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create a user for the portfolio tracker.")
    parser.add_argument("--user-id", default=settings.DEFAULT_USER_ID)
    parser.add_argument("--email", default=settings.DEFAULT_USER_EMAIL)
    parser.add_argument("--name", default=settings.DEFAULT_USER_NAME)
    parser.add_argument("--portfolio", help="Also create a portfolio with this name")
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=get_engine())
    db = get_session_local()()
    try:
        user = db.get(User, args.user_id)
        if user is None:
            user = User(id=args.user_id, email=args.email, name=args.name)
            db.add(user)
            print(f"Created user {args.email} ({args.user_id})")
        else:
            print(f"User {user.email} ({user.id}) already exists")

        if args.portfolio:
            db.add(Portfolio(user_id=user.id, name=args.portfolio, is_default=False))
            print(f"Created portfolio {args.portfolio!r}")
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    main()
