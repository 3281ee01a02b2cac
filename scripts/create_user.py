"""Create a user or admin account in the configured DB.

Usage:
  python scripts/create_user.py --name Alice --email alice@example.com --password '...' --role user

NOTE: This is intended for local/dev and first-admin setup.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from devsource_platform.auth.crud import create_user
from devsource_platform.auth.security import password_context
from devsource_platform.config import load_config
from devsource_platform.db import connect, init_db
from devsource_platform.errors import AppError


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--name", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=["user", "admin"], default="user")
    args = ap.parse_args()

    cfg = load_config()
    pwd = password_context(cfg.AUTH_PASSWORD_ROUNDS)
    init_db(cfg.DB_DSN)

    try:
        with connect(cfg.DB_DSN) as conn:
            u = create_user(conn, pwd, name=args.name, email=args.email, password=args.password, role=args.role)
    except AppError as e:
        sys.exit(f"Could not create user: {e.message}")

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
